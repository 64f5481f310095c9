"""
Exception hierarchy for Baha Miner.

Every failure raised by the package derives from ``BahaMinerError`` so
callers can catch one base class. The subclasses tell apart the failures
that are worth retrying (``TransientFetchError``) from the ones that mean
the target, the session or the page layout is wrong.
"""

from typing import Optional


class BahaMinerError(Exception):
    """Base class for all Baha Miner errors."""


class InvalidTarget(BahaMinerError):
    """Board id / thread id (or rule author) is missing or not positive."""


class SessionInactive(BahaMinerError):
    """The transport was used before ``login()`` established a session."""


class LoginError(BahaMinerError):
    """The login handshake did not complete."""


class NotFound(BahaMinerError):
    """An expected element (title, pagination, content block) is absent."""


class ParseError(BahaMinerError):
    """A numeric attribute or payload could not be decoded."""


class TransientFetchError(BahaMinerError):
    """
    A network or HTTP failure that survived the transport's own retries.

    Attributes:
        url: The URL that was being fetched
        status_code: HTTP status of the last response, None for network errors
    """

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
