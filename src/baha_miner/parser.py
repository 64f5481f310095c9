"""
HTML extraction for Bahamut thread pages.

Everything here is a pure function of the markup. The one step that needs
the network, fetching the full reply list of a floor whose replies are
truncated, is described by an ``ExpandRequest`` that the crawler resolves
and feeds back through ``parse_extended_replies``.

Page layout (selectors below):

    section.c-section[id]                       one floor
      div.c-section__main
        div.c-post__header__author
          a.floor[data-floor]  a.username  a.userid
        div.c-article__content                  floor body (kept as HTML)
        div.c-reply
          div.nocontent > a[onclick]            replies truncated
          div.c-reply__item > div > div.reply-content
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .errors import NotFound, ParseError
from .models import FloorRecord, PageRecord, ReplyRecord

logger = logging.getLogger(__name__)

EXTEND_REPLY_URL = "https://forum.gamer.com.tw/ajax/moreCommend.php?"

PAGE_BUTTONS_SELECTOR = "p.BH-pagebtnA>a"
TITLE_SELECTOR = "div.c-post__header>h1.c-post__header__title"
FLOOR_SECTION_SELECTOR = "section.c-section[id]"
MAIN_SELECTOR = "div.c-section__main"
AUTHOR_SELECTOR = "div.c-post__header__author"
CONTENT_SELECTOR = "div.c-article__content"
REPLY_CONTAINER_SELECTOR = "div.c-reply"
TRUNCATED_SELECTOR = "div.nocontent"
EXPAND_TRIGGER_SELECTOR = "div.nocontent a"
INLINE_REPLY_SELECTOR = "div.c-reply__item>div>div.reply-content"

EXTEND_COMMENT_RE = re.compile(r"extendComment\((\d+),\s*(\d+)\);")

# Key in the expand response that points at the next batch, not a reply.
NEXT_CURSOR_KEY = "next_snC"

DisabledPredicate = Callable[[str], bool]


def default_disabled_predicate(section_id: str) -> bool:
    """Sections of deleted or hidden floors carry "disable" in their id."""
    return "disable" in section_id


@dataclass(frozen=True)
class ExpandRequest:
    """Parameters of the ``extendComment(bsn, snB)`` trigger of one floor."""
    bsn: int
    snb: int

    @property
    def url(self) -> str:
        return f"{EXTEND_REPLY_URL}bsn={self.bsn}&snB={self.snb}&returnHtml=0"


@dataclass
class ParsedPage:
    """
    A page as far as the markup alone can tell.

    ``pending`` lists the floors whose replies still have to be fetched
    through the expand endpoint.
    """
    page: PageRecord
    pending: List[Tuple[FloorRecord, ExpandRequest]] = field(default_factory=list)


def make_soup(document) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document, "lxml")


def parse_building_page_and_title(soup: BeautifulSoup) -> Tuple[int, str]:
    """
    Read the total page count and the title from a thread's first page.

    Raises:
        NotFound: if the pagination buttons or the title are missing
        ParseError: if the last page button is not a number
    """
    buttons = soup.select(PAGE_BUTTONS_SELECTOR)
    if not buttons:
        logger.error("Page buttons not found")
        raise NotFound("page buttons not found")

    last_text = buttons[-1].get_text(strip=True)
    try:
        last_page = int(last_text)
    except ValueError as e:
        logger.error("Last page button is not numeric: %r", last_text)
        raise ParseError(f"last page button is not numeric: {last_text!r}") from e

    title_elem = soup.select_one(TITLE_SELECTOR)
    title = title_elem.get_text(strip=True) if title_elem else ""
    if not title:
        logger.error("Title not found")
        raise NotFound("title not found")

    return last_page, title


def author_id_from_href(href: str) -> str:
    """Return the last path segment of a profile link."""
    return href.rstrip("/").split("/")[-1]


def extract_extend_params(onclick: str) -> Tuple[int, int]:
    """
    Pull the two integers out of ``extendComment(A, B);``.

    Raises:
        ParseError: if the expression does not match
    """
    match = EXTEND_COMMENT_RE.search(onclick)
    if not match:
        raise ParseError(f"no extendComment call in {onclick!r}")
    return int(match.group(1)), int(match.group(2))


def parse_inline_replies(reply_container: Tag) -> List[ReplyRecord]:
    """Replies shown directly on the page, indexed by document position."""
    replies = []
    for index, item in enumerate(reply_container.select(INLINE_REPLY_SELECTOR)):
        user = item.select_one("a.reply-content__user")
        href = user.get("href") if user else None
        if not href:
            logger.warning("Reply %d has no author link, skipping", index)
            continue

        comment = item.select_one("article.c-article>span.comment_content")
        replies.append(ReplyRecord(
            reply_index=index,
            author_name=user.get_text(),
            author_id=author_id_from_href(href),
            content=comment.get_text() if comment else "",
        ))
    return replies


def parse_extended_replies(payload: Any) -> List[ReplyRecord]:
    """
    Decode the expand endpoint response.

    The payload maps a reply index (as a string) to
    ``{"nick", "userid", "comment"}``, plus the ``next_snC`` cursor. Broken
    entries are logged and skipped. The result is sorted by reply index.

    Raises:
        ParseError: if the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ParseError(f"expand response is not an object: {type(payload).__name__}")

    replies = []
    for key, entry in payload.items():
        if key == NEXT_CURSOR_KEY:
            continue

        try:
            reply_index = int(key)
        except ValueError:
            logger.warning("Skipping reply with non-numeric index %r", key)
            continue

        if not isinstance(entry, dict):
            logger.warning("Skipping reply %d: unexpected type %s", reply_index, type(entry).__name__)
            continue

        fields = [entry.get(name) for name in ("nick", "userid", "comment")]
        if not all(isinstance(value, str) for value in fields):
            logger.warning("Skipping reply %d: missing nick/userid/comment", reply_index)
            continue

        nick, userid, comment = fields
        replies.append(ReplyRecord(
            reply_index=reply_index,
            author_name=nick,
            author_id=userid,
            content=comment,
        ))

    replies.sort(key=lambda reply: reply.reply_index)
    return replies


def parse_floor_section(
    section: Tag,
    is_disabled: DisabledPredicate = default_disabled_predicate,
) -> Optional[Tuple[FloorRecord, Optional[ExpandRequest]]]:
    """
    Parse one ``section.c-section``.

    Returns:
        None for sections without an id or with a disabled id, otherwise the
        floor and, when its replies are truncated, the expand request.

    Raises:
        ParseError: if the floor index is missing or not numeric, or the
            expand trigger is malformed
        NotFound: if the article body is missing
    """
    section_id = section.get("id")
    if not section_id or is_disabled(section_id):
        return None

    main = section.select_one(MAIN_SELECTOR)
    if main is None:
        raise NotFound(f"section {section_id} has no main block")

    author = main.select_one(AUTHOR_SELECTOR)
    floor_link = author.select_one("a.floor") if author else None
    raw_index = floor_link.get("data-floor") if floor_link else None
    if raw_index is None:
        logger.error("Floor index not found in section %s", section_id)
        raise ParseError(f"floor index not found in section {section_id}")
    try:
        floor_index = int(raw_index)
    except ValueError as e:
        logger.error("Floor index %r is not numeric", raw_index)
        raise ParseError(f"floor index is not numeric: {raw_index!r}") from e

    content_elem = main.select_one(CONTENT_SELECTOR)
    if content_elem is None:
        logger.error("Content not found for floor %d", floor_index)
        raise NotFound(f"content not found for floor {floor_index}")

    name_elem = author.select_one("a.username")
    id_elem = author.select_one("a.userid")
    floor = FloorRecord(
        floor_index=floor_index,
        author_name=name_elem.get_text() if name_elem else "",
        author_id=id_elem.get_text() if id_elem else "",
        content=content_elem.decode_contents(),
    )

    reply_container = main.select_one(REPLY_CONTAINER_SELECTOR)
    if reply_container is None:
        return floor, None

    if reply_container.select_one(TRUNCATED_SELECTOR) is None:
        floor.messages = sorted(parse_inline_replies(reply_container),
                                key=lambda reply: reply.reply_index)
        return floor, None

    trigger = reply_container.select_one(EXPAND_TRIGGER_SELECTOR)
    onclick = trigger.get("onclick") if trigger else None
    if not onclick:
        logger.warning("Floor %d is truncated but has no expand trigger", floor_index)
        return floor, None

    bsn, snb = extract_extend_params(onclick)
    return floor, ExpandRequest(bsn=bsn, snb=snb)


def parse_page(
    document,
    bsn: int,
    sna: int,
    page_index: int,
    is_disabled: DisabledPredicate = default_disabled_predicate,
) -> ParsedPage:
    """Parse every floor section of one page in document order."""
    soup = make_soup(document)
    parsed = ParsedPage(page=PageRecord(bsn=bsn, sna=sna, page_index=page_index))

    skipped = 0
    for section in soup.select(FLOOR_SECTION_SELECTOR):
        result = parse_floor_section(section, is_disabled)
        if result is None:
            skipped += 1
            continue
        floor, expand = result
        parsed.page.floor_records.append(floor)
        if expand is not None:
            parsed.pending.append((floor, expand))

    logger.debug("Page %d: %d floors, %d skipped sections, %d to expand",
                 page_index, len(parsed.page.floor_records), skipped, len(parsed.pending))
    return parsed
