import pytest
from httpx import ASGITransport, AsyncClient

import recycleme.app as app_module
from recycleme.app import app, configure_state
from recycleme.errors import NotFoundError, ProductError
from recycleme.models import Product

CATALOG = {
    "bins": [
        {"id": 1, "name": "Green"},
        {"id": 2, "name": "Yellow"},
        {"id": 3, "name": "White"},
    ],
    "materials": [
        {"id": 1, "name": "Cardboard", "bin_id": 2},
        {"id": 2, "name": "Plastic foil", "bin_id": 1},
        {"id": 3, "name": "Glass bottle", "bin_id": 3},
    ],
    "packages": [
        {"ean": "7613034383808", "material_ids": [1, 2]},
    ],
    "blacklist": [],
}


class StaticFetcher:
    """Answers from a fixed EAN -> name table without touching the network."""

    def __init__(self, products: dict[str, str], website_name: str = "Example.com") -> None:
        self.products = products
        self.website_name = website_name
        self.name = website_name
        self.calls: list[str] = []

    def url(self, ean: str) -> str:
        return f"http://www.example.com/{ean}/"

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool:
        return url == self.url(ean)

    async def fetch(self, ean, blacklist):
        self.calls.append(ean)
        url = self.url(ean)
        if ean not in self.products:
            raise ProductError(ean, url, NotFoundError())
        return Product(ean=ean, name=self.products[ean], url=url, website_url=url, website_name=self.website_name)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def static_fetcher() -> StaticFetcher:
    return StaticFetcher({"7613034383808": "Four à Pierre Royale", "4006381333931": "Stabilo pen"})


@pytest.fixture(autouse=True)
def _configure_app(static_fetcher):
    """Wire the app to an in-memory catalog and the offline fetcher."""
    configure_state(app_module.app, CATALOG, fetchers=[static_fetcher])


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
