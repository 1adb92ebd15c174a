"""Bin, material and package endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Request

from recycleme.errors import CatalogError, InvalidEANError, InvalidPackageError
from recycleme.models import Bin, Material, PackageRequest, StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/bins")
async def get_bins(request: Request) -> dict[str, Bin]:
    """Return every bin, keyed by id."""
    return {str(bin_id): b for bin_id, b in request.app.state.catalog.bins.items()}


@router.get("/bins/{bin_id}", response_model=Bin)
async def get_bin(bin_id: int, request: Request) -> Bin:
    bin_ = request.app.state.catalog.bins.get(bin_id)
    if bin_ is None:
        raise HTTPException(status_code=404, detail=f"bin id {bin_id} not found")
    return bin_


@router.get("/materials")
async def get_materials(request: Request) -> dict[str, Material]:
    """Return every material, keyed by id."""
    return {str(m.id): m for m in request.app.state.catalog.get_all()}


@router.post("/packages", response_model=StatusResponse)
async def add_package(body: PackageRequest, request: Request) -> StatusResponse:
    """Record which materials a product is wrapped in."""
    state = request.app.state
    try:
        materials = [state.catalog.material(i) for i in body.material_ids]
        state.packages.set(body.ean, materials)
    except (CatalogError, InvalidEANError, InvalidPackageError) as e:
        logger.warning("Rejected package for %s: %s", body.ean, e)
        raise HTTPException(status_code=400, detail=str(e)) from e
    return StatusResponse()
