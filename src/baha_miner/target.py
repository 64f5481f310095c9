"""Thread targets and the URLs derived from them."""

import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from .errors import InvalidTarget

logger = logging.getLogger(__name__)

BASE_URL = "https://forum.gamer.com.tw"
BUILDING_URL = f"{BASE_URL}/C.php?"


@dataclass
class TargetInfo:
    """
    Identifies one thread on the forum.

    Attributes:
        bsn: Board id
        sna: Thread id (the ``snA`` query parameter)
        page: Page number carried by the source URL, 0 when absent
    """
    bsn: int = 0
    sna: int = 0
    page: int = 0

    def validate(self) -> None:
        """Raise InvalidTarget unless both ids are positive integers."""
        if self.bsn <= 0 or self.sna <= 0:
            raise InvalidTarget(f"invalid target: bsn={self.bsn} sna={self.sna}")

    def building_url(self) -> str:
        return f"{BUILDING_URL}bsn={self.bsn}&snA={self.sna}"

    def page_url(self, page: int) -> str:
        return f"{self.building_url()}&page={page}"

    @classmethod
    def from_url(cls, raw_url: str) -> "TargetInfo":
        """
        Build a target from a thread URL such as
        ``https://forum.gamer.com.tw/C.php?bsn=60076&snA=8292214&page=2``.

        Missing parameters stay 0 and are rejected later by validate().

        Raises:
            InvalidTarget: if a parameter is present but not an integer
        """
        params = parse_qs(urlparse(raw_url).query)
        target = cls()
        for name, attr in (("bsn", "bsn"), ("snA", "sna"), ("page", "page")):
            values = params.get(name)
            if not values:
                continue
            try:
                setattr(target, attr, int(values[0]))
            except ValueError as e:
                logger.error("Non-numeric %s in %s", name, raw_url)
                raise InvalidTarget(f"{name} is not an integer: {values[0]!r}") from e
        return target
