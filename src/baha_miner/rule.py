"""
Tracking rules for the monitor.

A rule names one thread and one author to watch, how often to poll, how
many consecutive failed polls to tolerate, and what to call when the last
floor changes. Callbacks default to logging the floor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import InvalidTarget
from .models import FloorRecord
from .target import TargetInfo

logger = logging.getLogger(__name__)

DEFAULT_ASYLUM_BSN = 60076  # 場外休憩區
DEFAULT_INTERVAL = 30.0
DEFAULT_MAX_FAILURE = 20

FloorCallback = Callable[[FloorRecord], Any]


def log_new_post(floor: FloorRecord) -> None:
    logger.info("New post (floor %d by %s): %s", floor.floor_index, floor.author_id, floor.content)


def log_update_last(floor: FloorRecord) -> None:
    logger.info("Last floor updated (floor %d by %s): %s", floor.floor_index, floor.author_id, floor.content)


@dataclass
class TrackingRule:
    """
    One thread/author pair to poll.

    Attributes:
        sna: Thread id
        author_id: Only floors by this account are shown on the polled page
        bsn: Board id, defaults to the main off-topic board
        interval: Seconds between polls
        max_failure: Consecutive failed polls tolerated before the monitor stops
        sync_local_db: Carried for callers that persist what the rule reports
        on_new_post: Called with the last floor when a new floor appears
        on_update: Called with the last floor when its content changes

    Callbacks may be plain functions or coroutine functions.

    Example:
        rule = TrackingRule(sna=3146926, author_id="leichitw", interval=10)
    """
    sna: int = 0
    author_id: str = ""
    bsn: int = DEFAULT_ASYLUM_BSN
    interval: float = DEFAULT_INTERVAL
    max_failure: int = DEFAULT_MAX_FAILURE
    sync_local_db: bool = False
    on_new_post: Optional[FloorCallback] = None
    on_update: Optional[FloorCallback] = None

    def __post_init__(self):
        if self.bsn <= 0 or self.sna <= 0:
            raise InvalidTarget(f"bsn and sna must be positive: bsn={self.bsn} sna={self.sna}")
        if not self.author_id:
            raise InvalidTarget("author_id is not set")
        if self.interval < 0:
            raise ValueError(f"interval must not be negative: {self.interval}")
        if self.max_failure < 1:
            raise ValueError(f"max_failure must be at least 1: {self.max_failure}")

        if self.on_new_post is None:
            self.on_new_post = log_new_post
        if self.on_update is None:
            self.on_update = log_update_last

    @property
    def target(self) -> TargetInfo:
        return TargetInfo(bsn=self.bsn, sna=self.sna)

    @property
    def url(self) -> str:
        return f"{self.target.building_url()}&s_author={self.author_id}"

    @property
    def last_page_url(self) -> str:
        return f"{self.url}&last=1#down"

    @property
    def name(self) -> str:
        return f"{self.bsn}/{self.sna}@{self.author_id}"
