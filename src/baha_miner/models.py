"""
Data models for Baha Miner.

A thread ("building") is extracted into a tree of plain dataclasses:

    BuildingRecord -> PageRecord -> FloorRecord -> ReplyRecord

The records are ephemeral extraction results. Surrogate ids (``id``,
``pid``, ``fid``) stay ``None`` until the store assigns them during sync.
"""

from dataclasses import asdict, dataclass, field
from typing import List, Optional

import orjson


@dataclass
class ReplyRecord:
    """
    One reply attached to a floor.

    Attributes:
        reply_index: Position of the reply under its floor (0-based)
        author_name: Display name of the replier
        author_id: Account id of the replier
        content: Plain-text reply body
        fid: Id of the owning floor, set once the floor is persisted
    """
    reply_index: int
    author_name: str = ""
    author_id: str = ""
    content: str = ""
    fid: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FloorRecord:
    """
    One top-level post in a thread.

    ``floor_index`` is assigned by the site. It grows through the thread but
    has gaps where floors were deleted. ``content`` keeps the inner HTML of
    the article so edits can be compared verbatim.

    Attributes:
        floor_index: Site-assigned floor number (natural key within a thread)
        author_name: Display name of the poster
        author_id: Account id of the poster
        content: Article body as an HTML fragment
        messages: Replies sorted by reply_index
        fid: Surrogate id, set once the floor is persisted
        bid: Id of the owning building
        pid: Id of the owning page
    """
    floor_index: int
    author_name: str = ""
    author_id: str = ""
    content: str = ""
    messages: List[ReplyRecord] = field(default_factory=list)
    fid: Optional[str] = None
    bid: Optional[str] = None
    pid: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PageRecord:
    """One page of a thread, floors in document order. ``bid`` is the owning building's id."""
    bsn: int
    sna: int
    page_index: int
    floor_records: List[FloorRecord] = field(default_factory=list)
    pid: Optional[str] = None
    bid: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)


@dataclass
class BuildingRecord:
    """
    A complete thread.

    ``bsn`` (board) and ``sna`` (thread) identify the building. ``pages`` is
    ordered by page index and ``poster_floor`` is the first floor of page 1
    when the thread has one.

    Example:
        building = BuildingRecord(bsn=60076, sna=8292214,
                                  building_title="...", last_page_index=3)
    """
    bsn: int
    sna: int
    building_title: str = ""
    last_page_index: int = 0
    poster_floor: Optional[FloorRecord] = None
    pages: List[PageRecord] = field(default_factory=list)
    id: Optional[str] = None

    @property
    def floors(self) -> List[FloorRecord]:
        """All floors of the building across pages, in page order."""
        return [floor for page in self.pages for floor in page.floor_records]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)
