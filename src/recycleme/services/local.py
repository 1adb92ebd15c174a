"""Fetcher over locally curated products (no network I/O)."""

import logging
import threading
from collections.abc import Iterable

from recycleme.errors import NotFoundError, ProductError
from recycleme.models import Product
from recycleme.services.blacklist import BlacklistDB, is_blacklisted

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "/local/"


def local_url(website_name: str, ean: str) -> str:
    """Synthetic URL identifying a local product, used as blacklist key."""
    return f"{LOCAL_PREFIX}{website_name}/{ean}"


class LocalProductFetcher:
    """Serve products entered by hand, one list of candidates per EAN.

    Candidates are tried in insertion order; the first one whose synthetic
    URL is not blacklisted wins.
    """

    name = "local"

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._by_ean: dict[str, list[Product]] = {}
        self._lock = threading.Lock()
        for product in products:
            self.add(product)

    def add(self, product: Product) -> None:
        with self._lock:
            self._by_ean.setdefault(product.ean, []).append(product)

    def candidates(self, ean: str) -> list[Product]:
        with self._lock:
            return list(self._by_ean.get(ean, []))

    async def fetch(self, ean: str, blacklist: BlacklistDB) -> Product:
        candidates = self.candidates(ean)
        if not candidates:
            raise ProductError(ean, LOCAL_PREFIX, NotFoundError())

        for product in candidates:
            url = local_url(product.website_name, ean)
            if is_blacklisted(blacklist, ean, url):
                logger.debug("Skipping blacklisted local product %s", url)
                continue
            return product.model_copy(update={"ean": ean, "url": url})

        err = NotFoundError("all local products are blacklisted")
        raise ProductError(ean, LOCAL_PREFIX, err) from err

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool:
        # Looking for WEBSITE in /local/WEBSITE/EAN
        suffix = f"/{ean}"
        if not url.startswith(LOCAL_PREFIX) or not url.endswith(suffix):
            return False
        website_name = url[len(LOCAL_PREFIX) : -len(suffix)]
        if not website_name:
            return False
        matches = [p for p in self.candidates(ean) if p.website_name == website_name]
        return len(matches) == 1
