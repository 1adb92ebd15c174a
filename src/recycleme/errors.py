"""Exception hierarchy for product resolution and packaging lookups."""


class RecyclemeError(Exception):
    """Base class for every error raised by recycleme."""


class ConfigurationError(RecyclemeError):
    """A fetcher or the service was set up with unusable settings."""


class InvalidEANError(RecyclemeError):
    """The barcode failed checksum validation."""

    def __init__(self, ean: str) -> None:
        self.ean = ean
        super().__init__(f"invalid EAN {ean!r}")


# ---------------------------------------------------------------------------
# Per-source failures
# ---------------------------------------------------------------------------


class FetchError(RecyclemeError):
    """Why a single source could not produce a product."""

    message = "fetch failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NotFoundError(FetchError):
    message = "product not found"


class AmbiguousError(FetchError):
    message = "too many products found"


class BlacklistedError(FetchError):
    message = "product blacklisted for url"


class MalformedResponseError(FetchError):
    message = "malformed response"


class TransportError(FetchError):
    message = "transport error"


class SourceError(FetchError):
    """The source answered, but with an error of its own."""

    message = "source error"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        codes: tuple[str, ...] = (),
    ) -> None:
        self.status_code = status_code
        self.codes = codes
        super().__init__(message)


class ProductError(RecyclemeError):
    """A :class:`FetchError` (or anything else) attributed to an EAN and URL."""

    def __init__(self, ean: str, url: str, reason: Exception) -> None:
        self.ean = ean
        self.url = url
        self.reason = reason
        super().__init__(f"{reason} for {ean} at {url}")


class NoProductFoundError(RecyclemeError):
    """Every registered source failed for an EAN."""

    def __init__(self, ean: str, errors: list[ProductError]) -> None:
        self.ean = ean
        self.errors = errors
        lines = "".join(f"\n - {err}" for err in errors)
        super().__init__(f"no product found because of the following errors:{lines}")


# ---------------------------------------------------------------------------
# Packaging and administration
# ---------------------------------------------------------------------------


class CatalogError(RecyclemeError):
    """The bins/materials/packages data is inconsistent."""


class PackageNotFoundError(RecyclemeError):
    """No package is recorded for an EAN."""

    def __init__(self, ean: str) -> None:
        self.ean = ean
        super().__init__(f"ean {ean} not found in packages db")


class InvalidPackageError(RecyclemeError):
    """A package cannot be stored as given."""


class InvalidBlacklistURLError(RecyclemeError):
    """No registered fetcher could have produced the URL for the EAN."""

    def __init__(self, ean: str, url: str) -> None:
        self.ean = ean
        self.url = url
        super().__init__(f"url {url} is not valid for {ean}")
