"""Tests for the URL-template fetcher and its HTTP handling."""

import httpx
import pytest

from recycleme.errors import (
    BlacklistedError,
    ConfigurationError,
    MalformedResponseError,
    NotFoundError,
    ProductError,
    SourceError,
    TransportError,
)
from recycleme.models import ParsedProduct
from recycleme.services.blacklist import MemoryBlacklistDB
from recycleme.services.fetchers import SOURCES, FetchableURL, scraped_fetchers
from recycleme.services.parsers import parse_openfoodfacts

EAN = "7613034383808"
TEMPLATE = "http://www.example.com/{ean}/"


def _name_parser(body: bytes) -> ParsedProduct:
    return ParsedProduct(name=body.decode())


def _client(handler, calls: list | None = None) -> httpx.AsyncClient:
    def _handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(_handler))


def test_template_without_placeholder_is_rejected():
    with pytest.raises(ConfigurationError):
        FetchableURL("http://www.example.com/search", "Example.com", _name_parser)


def test_full_url_and_url_validation():
    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser)
    assert fetcher.full_url(EAN) == "http://www.example.com/7613034383808/"
    assert fetcher.is_url_valid_for_ean("http://www.example.com/7613034383808/", EAN)
    assert not fetcher.is_url_valid_for_ean("http://www.example.com/7613034383808/", "4006381333931")
    assert not fetcher.is_url_valid_for_ean("invalid", EAN)


@pytest.mark.anyio
async def test_fetch_stamps_product():
    client = _client(lambda request: httpx.Response(200, content=b"Four a Pierre"))
    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=client)

    product = await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert product.ean == EAN
    assert product.name == "Four a Pierre"
    assert product.url == "http://www.example.com/7613034383808/"
    assert product.website_url == product.url
    assert product.website_name == "Example.com"


@pytest.mark.anyio
async def test_fetch_keeps_parser_website_url():
    body = b'{"code": "7613034383808", "status": 1, "product": {"product_name": "Pizza"}}'
    client = _client(lambda request: httpx.Response(200, content=body))
    fetcher = FetchableURL(
        "http://fr.openfoodfacts.org/api/v0/produit/{ean}.json", "OpenFoodFacts", parse_openfoodfacts, client=client
    )

    product = await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert product.url == "http://fr.openfoodfacts.org/api/v0/produit/7613034383808.json"
    assert product.website_url == "https://fr.openfoodfacts.org/produit/7613034383808/"


@pytest.mark.anyio
async def test_blacklisted_url_is_not_requested():
    calls: list[str] = []
    client = _client(lambda request: httpx.Response(200, content=b"always found"), calls)
    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=client)
    blacklist = MemoryBlacklistDB([fetcher.full_url(EAN)])

    for _ in range(2):
        with pytest.raises(ProductError) as exc_info:
            await fetcher.fetch(EAN, blacklist)
        assert isinstance(exc_info.value.reason, BlacklistedError)
        assert exc_info.value.url == fetcher.full_url(EAN)
        assert exc_info.value.ean == EAN

    assert calls == []
    # Other EANs at the same source are unaffected.
    product = await fetcher.fetch("4006381333931", blacklist)
    assert product.name == "always found"
    assert calls == ["http://www.example.com/4006381333931/"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "reason"),
    [(404, NotFoundError), (500, SourceError), (403, SourceError)],
)
async def test_http_status_mapping(status, reason):
    client = _client(lambda request: httpx.Response(status, content=b"oops"))
    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=client)

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert isinstance(exc_info.value.reason, reason)
    if reason is SourceError:
        assert exc_info.value.reason.status_code == status
        assert str(status) in str(exc_info.value)


@pytest.mark.anyio
async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=_client(handler))

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert isinstance(exc_info.value.reason, TransportError)
    assert str(exc_info.value).endswith(f"for {EAN} at http://www.example.com/{EAN}/")


@pytest.mark.anyio
async def test_timeout_is_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=_client(handler))

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, MemoryBlacklistDB())
    assert isinstance(exc_info.value.reason, TransportError)


@pytest.mark.anyio
async def test_parser_errors_are_attributed():
    client = _client(lambda request: httpx.Response(200, content=b"not json"))
    fetcher = FetchableURL(TEMPLATE, "Example.com", parse_openfoodfacts, client=client)

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert isinstance(exc_info.value.reason, MalformedResponseError)
    assert exc_info.value.__cause__ is exc_info.value.reason


def test_scraped_fetchers_cover_all_sources():
    fetchers = scraped_fetchers()
    assert [f.website_name for f in fetchers] == [name for _, name, _ in SOURCES]
    assert fetchers[1].full_url(EAN) == "http://fr.openfoodfacts.org/api/v0/produit/7613034383808.json"


class _BrokenBlacklist:
    def contains(self, url):
        raise ConnectionError("blacklist store down")

    def add(self, url):
        raise ConnectionError("blacklist store down")


@pytest.mark.anyio
async def test_wrongly_typed_fields_are_malformed():
    body = b'{"code": "7613034383808", "status": 1, "product": {"product_name": ["Pizza"]}}'
    client = _client(lambda request: httpx.Response(200, content=body))
    fetcher = FetchableURL(
        "http://fr.openfoodfacts.org/api/v0/produit/{ean}.json", "OpenFoodFacts", parse_openfoodfacts, client=client
    )

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, MemoryBlacklistDB())

    assert isinstance(exc_info.value.reason, MalformedResponseError)
    assert exc_info.value.url == "http://fr.openfoodfacts.org/api/v0/produit/7613034383808.json"


@pytest.mark.anyio
async def test_blacklist_failure_is_attributed():
    calls: list[str] = []
    client = _client(lambda request: httpx.Response(200, content=b"found"), calls)
    fetcher = FetchableURL(TEMPLATE, "Example.com", _name_parser, client=client)

    with pytest.raises(ProductError) as exc_info:
        await fetcher.fetch(EAN, _BrokenBlacklist())

    assert isinstance(exc_info.value.reason, ConnectionError)
    assert exc_info.value.ean == EAN
    assert exc_info.value.url == fetcher.full_url(EAN)
    assert calls == []
