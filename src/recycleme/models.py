"""Pydantic models for products, packaging and API payloads."""

from pydantic import BaseModel, ConfigDict


class ParsedProduct(BaseModel):
    """What a source parser could extract from a response body."""

    name: str = ""
    image_url: str = ""
    website_url: str = ""


class Product(BaseModel):
    """A product resolved from one source."""

    model_config = ConfigDict(frozen=True)

    ean: str
    name: str = ""
    #: URL where the details of the product were found (the blacklist key).
    url: str = ""
    image_url: str = ""
    website_url: str = ""
    website_name: str = ""

    def __str__(self) -> str:
        s = f"{self.name} ({self.ean}) at {self.url} ({self.website_url})"
        if self.image_url:
            s += f"\n\tImage: {self.image_url}"
        return s


class Material(BaseModel):
    """Something a package is made of: cardboard box, plastic foil, ..."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class Bin(BaseModel):
    """A disposal container category."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class Package(BaseModel):
    """The materials a product is wrapped in."""

    ean: str
    materials: list[Material] = []

    def __str__(self) -> str:
        names = ", ".join(m.name for m in self.materials)
        return f"Product {self.ean} is composed of {names}"


class ProductPackage(Product):
    """A product together with its packaging materials."""

    materials: tuple[Material, ...] = ()


class ThrowAwayResponse(BaseModel):
    """A product package and its materials grouped by bin name."""

    product: ProductPackage
    throwAway: dict[str, list[Material]] = {}


class PackageRequest(BaseModel):
    """Request body for recording a product's packaging."""

    ean: str
    material_ids: list[int]


class BlacklistRequest(BaseModel):
    """Request body for reporting a wrong match."""

    ean: str
    url: str
    #: What the product should have been, for the log.
    name: str = ""
    website: str = ""


class StatusResponse(BaseModel):
    status: str = "added"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
