"""Resolve an EAN by racing every registered fetcher.

All fetchers start together; the first product to arrive wins and the caller
gets it immediately.  Fetchers still in flight are left to finish on their
own and whatever they report is dropped.  When every fetcher fails, the
errors of all of them are reported together.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence

import httpx

from recycleme.ean import is_valid_ean
from recycleme.errors import ConfigurationError, InvalidEANError, NoProductFoundError, ProductError
from recycleme.models import Product
from recycleme.services.amazon import AmazonFetcher
from recycleme.services.blacklist import BlacklistDB
from recycleme.services.fetchers import Fetcher, scraped_fetchers

logger = logging.getLogger(__name__)

_Result = tuple[Product | None, ProductError | None]


class DefaultFetcher:
    """Fan an EAN out to *fetchers* and return the fastest successful product."""

    name = "default"

    def __init__(self, fetchers: Sequence[Fetcher]) -> None:
        if not fetchers:
            raise ConfigurationError("DefaultFetcher needs at least one fetcher")
        self.fetchers: tuple[Fetcher, ...] = tuple(fetchers)
        # Strong references to running tasks, including stragglers.
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of fetch tasks still running, stragglers included."""
        return len(self._tasks)

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool:
        return any(f.is_url_valid_for_ean(url, ean) for f in self.fetchers)

    async def fetch(self, ean: str, blacklist: BlacklistDB) -> Product:
        """Return the first product found for *ean*.

        Raises:
            InvalidEANError:     *ean* fails the checksum; nothing is fetched.
            NoProductFoundError: every fetcher failed; carries one error per fetcher.
        """
        if not is_valid_ean(ean):
            raise InvalidEANError(ean)

        results: asyncio.Queue[_Result] = asyncio.Queue()
        tasks = []
        for fetcher in self.fetchers:
            task = asyncio.create_task(self._run(fetcher, ean, blacklist, results))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)

        errors: list[ProductError] = []
        try:
            while len(errors) < len(tasks):
                product, error = await results.get()
                if product is not None:
                    logger.info("Found %s via %s", ean, product.website_name or product.url)
                    return product
                errors.append(error)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        logger.warning("No product found for %s (%d sources failed)", ean, len(errors))
        raise NoProductFoundError(ean, errors)

    @staticmethod
    async def _run(fetcher: Fetcher, ean: str, blacklist: BlacklistDB, results: asyncio.Queue) -> None:
        try:
            product = await fetcher.fetch(ean, blacklist)
        except ProductError as e:
            logger.debug("%s failed: %s", fetcher.name, e)
            results.put_nowait((None, e))
        except Exception as e:  # noqa: BLE001
            logger.exception("Fetcher %s crashed for %s", fetcher.name, ean)
            results.put_nowait((None, ProductError(ean, fetcher.name, e)))
        else:
            results.put_nowait((product, None))


def default_fetchers(
    client: httpx.AsyncClient | None = None,
    extra: Iterable[Fetcher] = (),
    environ: Mapping[str, str] | None = None,
) -> list[Fetcher]:
    """Build the ordered fetcher list: *extra* first, then scraped sources, then Amazon.

    Amazon is only registered when its credentials are present in *environ*
    (``os.environ`` by default).
    """
    fetchers: list[Fetcher] = [*extra, *scraped_fetchers(client)]
    try:
        fetchers.append(AmazonFetcher.from_env(environ, client=client))
    except ConfigurationError as e:
        logger.warning("%s", e)
    return fetchers
