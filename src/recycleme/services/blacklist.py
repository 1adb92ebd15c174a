"""Blacklist of source URLs known to return the wrong product.

Entries are keyed by URL rather than EAN: the same EAN may still have a
correct match at another source.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from typing import Protocol

from recycleme.errors import InvalidBlacklistURLError, ProductError

logger = logging.getLogger(__name__)


class BlacklistDB(Protocol):
    def contains(self, url: str) -> bool: ...

    def add(self, url: str) -> None: ...


class URLValidator(Protocol):
    def is_url_valid_for_ean(self, url: str, ean: str) -> bool: ...


class MemoryBlacklistDB:
    """In-process blacklist with set semantics. Entries are never removed."""

    def __init__(self, urls: Iterable[str] = ()) -> None:
        self._urls: set[str] = set(urls)
        self._lock = threading.Lock()

    def contains(self, url: str) -> bool:
        with self._lock:
            return url in self._urls

    def add(self, url: str) -> None:
        with self._lock:
            self._urls.add(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._urls))


def is_blacklisted(blacklist: BlacklistDB, ean: str, url: str) -> bool:
    """Ask *blacklist* about *url*; a failing store is reported against *ean* and *url*."""
    try:
        return blacklist.contains(url)
    except Exception as e:
        raise ProductError(ean, url, e) from e


def blacklist_product(blacklist: BlacklistDB, fetcher: URLValidator, ean: str, url: str) -> None:
    """Blacklist *url* after checking that *fetcher* could have produced it for *ean*.

    Raises:
        InvalidBlacklistURLError: if no source builds *url* for *ean*.
    """
    if not fetcher.is_url_valid_for_ean(url, ean):
        raise InvalidBlacklistURLError(ean, url)
    if blacklist.contains(url):
        logger.info("%s already blacklisted for %s", url, ean)
        return
    blacklist.add(url)
    logger.info("Blacklisted %s for %s", url, ean)
