"""FastAPI application for recycleme."""

import logging
import os
from collections.abc import Mapping, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recycleme import __version__
from recycleme.models import HealthResponse, Product
from recycleme.routers import blacklist, ean, packaging
from recycleme.services.blacklist import MemoryBlacklistDB
from recycleme.services.fetchers import Fetcher, new_client
from recycleme.services.local import LocalProductFetcher
from recycleme.services.packaging import Catalog, MemoryPackagesDB, load_data_file
from recycleme.services.resolver import DefaultFetcher, default_fetchers

logger = logging.getLogger(__name__)

DATA_PATH = Path(os.environ.get("RECYCLEME_DATA_FILE", Path(__file__).parent / "data" / "catalog.yaml"))


def configure_state(
    app: FastAPI,
    data: Mapping[str, Any],
    fetchers: Sequence[Fetcher] | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Build the catalog, the stores and the resolver from *data* onto ``app.state``.

    When *fetchers* is omitted the default sources are registered, behind
    the locally curated products.
    """
    catalog = Catalog.from_dict(data)
    app.state.catalog = catalog
    app.state.packages = MemoryPackagesDB.from_dict(catalog, data)
    app.state.blacklist = MemoryBlacklistDB(data.get("blacklist") or [])
    if fetchers is None:
        local = LocalProductFetcher(Product(**p) for p in data.get("local_products") or [])
        fetchers = default_fetchers(client, extra=[local])
    app.state.fetcher = DefaultFetcher(fetchers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the data file and open the shared HTTP client."""
    async with new_client() as client:
        configure_state(app, load_data_file(DATA_PATH), client=client)
        logger.info(
            "Loaded %d bins, %d materials from %s; %d sources registered",
            len(app.state.catalog.bins),
            len(app.state.catalog.materials),
            DATA_PATH,
            len(app.state.fetcher.fetchers),
        )
        yield


app = FastAPI(
    title="recycleme",
    description="Find out which bin a product's packaging goes into",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ean.router, prefix="/api/ean", tags=["ean"])
app.include_router(packaging.router, prefix="/api", tags=["packaging"])
app.include_router(blacklist.router, prefix="/api/blacklist", tags=["blacklist"])


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check."""
    return HealthResponse(version=__version__)
