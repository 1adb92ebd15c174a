"""Packaging lookup: which materials wrap a product, and which bin each goes to.

Bins and materials form a small read-only catalog, loaded once and frozen.
Packages (EAN -> materials) live in a :class:`PackagesDB`.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Protocol

import yaml

from recycleme.ean import is_valid_ean
from recycleme.errors import CatalogError, InvalidEANError, InvalidPackageError, PackageNotFoundError
from recycleme.models import Bin, Material, Package, Product, ProductPackage

logger = logging.getLogger(__name__)


def load_data_file(path: Path) -> dict[str, Any]:
    """Load the bins/materials/packages YAML data file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise CatalogError(f"{path} does not contain a mapping")
    return data


class Catalog:
    """Bins, materials and the material -> bin mapping.

    Built once from plain data, read-only afterwards.  A material pointing
    at an unknown bin is rejected here, not at lookup time.
    """

    def __init__(self, bins: Iterable[Bin], materials: Mapping[Material, Bin]) -> None:
        bins_by_id = {b.id: b for b in bins}
        for material, bin_ in materials.items():
            if bins_by_id.get(bin_.id) != bin_:
                raise CatalogError(f"bin {bin_.id} of material {material.id} not found in bins")
        self.bins: Mapping[int, Bin] = MappingProxyType(bins_by_id)
        self.materials: Mapping[int, Material] = MappingProxyType({m.id: m for m in materials})
        self._material_bins: Mapping[Material, Bin] = MappingProxyType(dict(materials))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Catalog":
        """Build a catalog from ``{"bins": [...], "materials": [{id, name, bin_id}, ...]}``."""
        try:
            bins = [Bin(id=b["id"], name=b["name"]) for b in data.get("bins") or []]
            bins_by_id = {b.id: b for b in bins}
            materials: dict[Material, Bin] = {}
            for m in data.get("materials") or []:
                bin_ = bins_by_id.get(m["bin_id"])
                if bin_ is None:
                    raise CatalogError(f"bin_id {m['bin_id']} of material {m['id']} not found in bins")
                materials[Material(id=m["id"], name=m["name"])] = bin_
        except KeyError as e:
            raise CatalogError(f"catalog entry is missing {e}") from e
        return cls(bins, materials)

    def get_all(self) -> list[Material]:
        return list(self.materials.values())

    def material(self, material_id: int) -> Material:
        try:
            return self.materials[material_id]
        except KeyError:
            raise CatalogError(f"material id {material_id} not found in materials") from None

    def bin_for(self, material: Material) -> Bin | None:
        return self._material_bins.get(material)


class PackagesDB(Protocol):
    def get(self, ean: str) -> Package: ...

    def set(self, ean: str, materials: list[Material]) -> None: ...

    def get_bins(self, materials: Iterable[Material]) -> dict[Material, Bin]: ...


def _unique(materials: Iterable[Material]) -> list[Material]:
    seen: set[int] = set()
    out = []
    for m in materials:
        if m.id not in seen:
            seen.add(m.id)
            out.append(m)
    return out


class MemoryPackagesDB:
    """In-process package store backed by a :class:`Catalog`."""

    def __init__(self, catalog: Catalog, packages: Mapping[str, Iterable[int]] | None = None) -> None:
        self.catalog = catalog
        self._by_ean: dict[str, Package] = {}
        self._lock = threading.Lock()
        for ean, material_ids in (packages or {}).items():
            materials = [catalog.material(i) for i in material_ids]
            self._by_ean[ean] = Package(ean=ean, materials=_unique(materials))

    @classmethod
    def from_dict(cls, catalog: Catalog, data: Mapping[str, Any]) -> "MemoryPackagesDB":
        """Build from ``{"packages": [{"ean": ..., "material_ids": [...]}, ...]}``."""
        try:
            packages = {str(p["ean"]): p["material_ids"] for p in data.get("packages") or []}
        except KeyError as e:
            raise CatalogError(f"package entry is missing {e}") from e
        return cls(catalog, packages)

    def get(self, ean: str) -> Package:
        with self._lock:
            try:
                return self._by_ean[ean]
            except KeyError:
                raise PackageNotFoundError(ean) from None

    def set(self, ean: str, materials: list[Material]) -> None:
        """Record *materials* for *ean*, dropping duplicate ids.

        Raises:
            InvalidEANError:     *ean* fails the checksum.
            InvalidPackageError: no materials, or a material unknown to the catalog.
        """
        if not is_valid_ean(ean):
            raise InvalidEANError(ean)
        if not materials:
            raise InvalidPackageError(f"no materials given for {ean}")
        for m in materials:
            if self.catalog.materials.get(m.id) != m:
                raise InvalidPackageError(f"unknown material {m.id} ({m.name})")

        package = Package(ean=ean, materials=_unique(materials))
        with self._lock:
            self._by_ean[ean] = package
        logger.info("Stored package for %s: %s", ean, ", ".join(m.name for m in package.materials))

    def get_bins(self, materials: Iterable[Material]) -> dict[Material, Bin]:
        bins = {}
        for m in materials:
            bin_ = self.catalog.bin_for(m)
            if bin_ is not None:
                bins[m] = bin_
        return bins


def new_product_package(product: Product, packages: PackagesDB) -> ProductPackage:
    """Attach the packaging materials of *product*; none recorded is not an error."""
    try:
        materials = packages.get(product.ean).materials
    except PackageNotFoundError:
        materials = []
    return ProductPackage(**product.model_dump(exclude={"materials"}), materials=tuple(materials))


def throw_away(product_package: ProductPackage, packages: PackagesDB) -> dict[Bin, list[Material]]:
    """Group the product's materials by disposal bin.

    Materials without a bin are left out.
    """
    material_bins = packages.get_bins(product_package.materials)
    bins: dict[Bin, list[Material]] = {}
    for m in product_package.materials:
        bin_ = material_bins.get(m)
        if bin_ is not None:
            bins.setdefault(bin_, []).append(m)
    return bins


def throw_away_names(product_package: ProductPackage, packages: PackagesDB) -> dict[str, list[str]]:
    """Like :func:`throw_away`, keyed and listed by name."""
    return {
        bin_.name: [m.name for m in materials]
        for bin_, materials in throw_away(product_package, packages).items()
    }
