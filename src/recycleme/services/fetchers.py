"""Source fetchers: turn an EAN into a Product from one external source.

A fetcher builds the source URL for an EAN, refuses blacklisted URLs without
any network traffic, issues a single GET and hands the body to the source's
parser.  Every failure is raised as a :class:`ProductError` carrying the EAN
and URL that produced it.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import partial
from typing import Protocol

import httpx
from pydantic import ValidationError

from recycleme import __version__
from recycleme.errors import (
    BlacklistedError,
    ConfigurationError,
    FetchError,
    MalformedResponseError,
    NotFoundError,
    ProductError,
    SourceError,
    TransportError,
)
from recycleme.models import ParsedProduct, Product
from recycleme.services import parsers
from recycleme.services.blacklist import BlacklistDB, is_blacklisted

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
USER_AGENT = f"recycleme/{__version__}"
EAN_PLACEHOLDER = "{ean}"

Parser = Callable[[bytes], ParsedProduct]


class Fetcher(Protocol):
    """Anything that can resolve an EAN into a Product."""

    name: str

    async def fetch(self, ean: str, blacklist: BlacklistDB) -> Product: ...

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool: ...


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def new_client() -> httpx.AsyncClient:
    """Return an HTTP client with the house timeout and User-Agent."""
    return httpx.AsyncClient(
        timeout=DEFAULT_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


@contextmanager
def product_errors(ean: str, url: str) -> Iterator[None]:
    """Re-raise any :class:`FetchError` as a :class:`ProductError` for *ean* at *url*.

    A parsed body that does not fit :class:`ParsedProduct` counts as a
    :class:`MalformedResponseError`.
    """
    try:
        yield
    except FetchError as e:
        raise ProductError(ean, url, e) from e
    except ValidationError as e:
        err = MalformedResponseError(f"unexpected product fields: {e.error_count()} validation error(s)")
        raise ProductError(ean, url, err) from e


def check_blacklist(blacklist: BlacklistDB, ean: str, url: str) -> None:
    if is_blacklisted(blacklist, ean, url):
        raise BlacklistedError()


def stamp_product(ean: str, url: str, parsed: ParsedProduct, website_name: str) -> Product:
    """Turn a source's :class:`ParsedProduct` into a :class:`Product` found at *url*."""
    return Product(
        ean=ean,
        name=parsed.name,
        url=url,
        image_url=parsed.image_url,
        website_url=parsed.website_url or url,
        website_name=website_name,
    )


async def get_body(client: httpx.AsyncClient | None, url: str) -> bytes:
    """:func:`fetch_url` through *client*, or through a short-lived client when None."""
    if client is not None:
        return await fetch_url(client, url)
    async with new_client() as own_client:
        return await fetch_url(own_client, url)


async def fetch_url(client: httpx.AsyncClient, url: str) -> bytes:
    """GET *url* and return the body of a 200 response.

    404 is :class:`NotFoundError`; any other status is a :class:`SourceError`.
    """
    try:
        response = await client.get(url)
    except httpx.TimeoutException as e:
        raise TransportError(f"timed out: {e}") from e
    except httpx.HTTPError as e:
        raise TransportError(str(e) or e.__class__.__name__) from e

    if response.status_code == 200:
        return response.content
    if response.status_code == 404:
        raise NotFoundError()
    raise SourceError(f"received code {response.status_code}", status_code=response.status_code)


# ---------------------------------------------------------------------------
# URL template fetcher
# ---------------------------------------------------------------------------


class FetchableURL:
    """A source reached through a URL template containing ``{ean}``.

    Args:
        url_template: Source URL with an ``{ean}`` placeholder.
        website_name: Display name of the source.
        parser:       Turns a response body into a :class:`ParsedProduct`.
        client:       Shared HTTP client; a short-lived one is opened per
                      fetch when omitted.
    """

    def __init__(
        self,
        url_template: str,
        website_name: str,
        parser: Parser,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if EAN_PLACEHOLDER not in url_template:
            raise ConfigurationError(f"URL {url_template} does not contain {EAN_PLACEHOLDER} to insert the EAN")
        self.url_template = url_template
        self.website_name = website_name
        self.name = website_name
        self.parser = parser
        self.client = client

    def __repr__(self) -> str:
        return f"FetchableURL({self.url_template!r}, {self.website_name!r})"

    def full_url(self, ean: str) -> str:
        return self.url_template.replace(EAN_PLACEHOLDER, ean)

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool:
        return self.full_url(ean) == url

    async def fetch(self, ean: str, blacklist: BlacklistDB) -> Product:
        url = self.full_url(ean)
        with product_errors(ean, url):
            check_blacklist(blacklist, ean, url)
            body = await get_body(self.client, url)
            parsed = self.parser(body)
        return stamp_product(ean, url, parsed, self.website_name)


# ---------------------------------------------------------------------------
# Registered sources
# ---------------------------------------------------------------------------

IGALERIE_BASE_URL = "http://90.80.54.225/"
MISTERPHARMAWEB_BASE_URL = "http://www.misterpharmaweb.com/"
MEDDISPAR_BASE_URL = "http://www.meddispar.fr"

#: (url template, website name, parser) for every scraped source, in registration order.
SOURCES: tuple[tuple[str, str, Parser], ...] = (
    ("http://www.upcitemdb.com/upc/{ean}", "UPCItemDB", parsers.parse_upcitemdb),
    ("http://fr.openfoodfacts.org/api/v0/produit/{ean}.json", "OpenFoodFacts", parsers.parse_openfoodfacts),
    ("http://www.isbnsearch.org/isbn/{ean}", "ISBNSearch", parsers.parse_isbnsearch),
    (
        IGALERIE_BASE_URL + "?search={ean}",
        "90.80.54.225",
        partial(parsers.parse_igalerie, base_url=IGALERIE_BASE_URL),
    ),
    ("https://starrymart.co.uk/catalogsearch/result/?q={ean}", "StarryMart", parsers.parse_starrymart),
    (
        MISTERPHARMAWEB_BASE_URL + "recherche-resultats.php?search_in_description=1&ac_keywords={ean}",
        "MisterPharmaWeb",
        partial(parsers.parse_misterpharmaweb, base_url=MISTERPHARMAWEB_BASE_URL),
    ),
    (
        MEDDISPAR_BASE_URL + "/content/search?search_by_name=&search_by_cip={ean}",
        "Medispar",
        partial(parsers.parse_meddispar, base_url=MEDDISPAR_BASE_URL),
    ),
    ("http://www.digit-eyes.com/upcCode/{ean}.html", "Digit-Eyes", parsers.parse_digiteyes),
)


def scraped_fetchers(client: httpx.AsyncClient | None = None) -> list[FetchableURL]:
    """Build one :class:`FetchableURL` per entry of :data:`SOURCES`."""
    return [FetchableURL(url, name, parser, client=client) for url, name, parser in SOURCES]
