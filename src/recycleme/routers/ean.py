"""EAN/barcode product lookup endpoints."""

from fastapi import APIRouter, HTTPException, Request

from recycleme.errors import InvalidEANError, NoProductFoundError
from recycleme.models import Product, ProductPackage, ThrowAwayResponse
from recycleme.services.packaging import new_product_package, throw_away

router = APIRouter()


async def _resolve(request: Request, ean: str) -> Product:
    state = request.app.state
    try:
        return await state.fetcher.fetch(ean, state.blacklist)
    except InvalidEANError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except NoProductFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/{ean}", response_model=ProductPackage)
async def lookup_ean(ean: str, request: Request) -> ProductPackage:
    """Look up product data and packaging materials by EAN/barcode."""
    product = await _resolve(request, ean)
    return new_product_package(product, request.app.state.packages)


@router.get("/{ean}/throwaway", response_model=ThrowAwayResponse)
async def lookup_throwaway(ean: str, request: Request) -> ThrowAwayResponse:
    """Look up a product and group its packaging materials by disposal bin."""
    packages = request.app.state.packages
    product_package = new_product_package(await _resolve(request, ean), packages)
    grouped = throw_away(product_package, packages)
    return ThrowAwayResponse(
        product=product_package,
        throwAway={bin_.name: materials for bin_, materials in grouped.items()},
    )
