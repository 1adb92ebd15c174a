"""Amazon Product Advertising API fetcher (signed ItemSearch requests).

Unlike the scraped sources, the API tells us how many items matched, so zero
and several results are reported distinctly, and API error codes are passed
through verbatim.
"""

import base64
import hashlib
import hmac
import logging
import os
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from datetime import datetime, timezone
from urllib.parse import quote, urlencode

import httpx

from recycleme.errors import (
    AmbiguousError,
    ConfigurationError,
    MalformedResponseError,
    NotFoundError,
    SourceError,
)
from recycleme.models import ParsedProduct, Product
from recycleme.services.blacklist import BlacklistDB
from recycleme.services.fetchers import check_blacklist, get_body, product_errors, stamp_product

logger = logging.getLogger(__name__)

ACCESS_KEY_ENV = "RECYCLEME_ACCESS_KEY"
SECRET_KEY_ENV = "RECYCLEME_SECRET_KEY"
ASSOCIATE_TAG_ENV = "RECYCLEME_ASSOCIATE_TAG"

DEFAULT_ENDPOINT = "webservices.amazon.fr"
REQUEST_URI = "/onca/xml"


def _encode(params: Mapping[str, str]) -> str:
    """Key-sorted query string with spaces as ``%20``, as the signature requires."""
    return urlencode(sorted(params.items()), quote_via=quote)


def _strip_namespaces(root: ET.Element) -> None:
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.split("}", 1)[1]


def parse_item_search_response(body: bytes) -> ParsedProduct:
    """Parse an ItemSearch XML response.

    Raises:
        SourceError:            the request was rejected (``IsValid`` is False).
        NotFoundError:          no item matched.
        AmbiguousError:         more than one item matched.
        MalformedResponseError: the body is not the expected XML.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise MalformedResponseError(f"invalid xml: {e}") from e
    _strip_namespaces(root)

    if root.findtext("Items/Request/IsValid") == "False":
        errors = root.findall("Items/Request/Errors/Error")
        if not errors:
            request_id = root.findtext("OperationRequest/RequestId", "")
            raise SourceError(f"invalid response for RequestId {request_id}")
        codes = tuple(e.findtext("Code", "") for e in errors)
        messages = [f"error from amazon: Code: {e.findtext('Code', '')}, Message: {e.findtext('Message', '')}" for e in errors]
        raise SourceError("; ".join(messages), codes=codes)

    try:
        total = int(root.findtext("Items/TotalResults", "0"))
    except ValueError as e:
        raise MalformedResponseError(f"invalid TotalResults: {e}") from e
    if total == 0:
        raise NotFoundError()
    if total > 1:
        raise AmbiguousError()

    item = root.find("Items/Item")
    if item is None:
        raise MalformedResponseError("TotalResults is 1 but no Item in response")
    return ParsedProduct(
        name=item.findtext("ItemAttributes/Title", ""),
        image_url=item.findtext("LargeImage/URL", ""),
        website_url=item.findtext("DetailPageURL", ""),
    )


class AmazonFetcher:
    """Search Amazon's catalog by EAN through the Product Advertising API."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        associate_tag: str,
        endpoint: str = DEFAULT_ENDPOINT,
        website_name: str = "Amazon.fr",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.access_key = access_key
        self.secret_key = secret_key
        self.associate_tag = associate_tag
        self.endpoint = endpoint
        self.website_name = website_name
        self.name = website_name
        self.client = client

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **kwargs) -> "AmazonFetcher":
        """Build a fetcher from the ``RECYCLEME_*`` credentials.

        Raises:
            ConfigurationError: if any credential is missing.
        """
        env = os.environ if environ is None else environ
        keys = (ACCESS_KEY_ENV, SECRET_KEY_ENV, ASSOCIATE_TAG_ENV)
        if not all(env.get(k) for k in keys):
            raise ConfigurationError(
                f"Missing either {', '.join(keys)} in environment. AmazonFetcher will not be used"
            )
        return cls(env[ACCESS_KEY_ENV], env[SECRET_KEY_ENV], env[ASSOCIATE_TAG_ENV], **kwargs)

    def endpoint_url(self, ean: str) -> str:
        """The stable URL recorded on products and used as blacklist key."""
        return f"{self.endpoint}/{ean}"

    def is_url_valid_for_ean(self, url: str, ean: str) -> bool:
        return self.endpoint_url(ean) == url

    def signed_url(self, ean: str, timestamp: datetime | None = None) -> str:
        """Build the signed ItemSearch request URL for *ean*."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        params = {
            "AWSAccessKeyId": self.access_key,
            "AssociateTag": self.associate_tag,
            "Service": "AWSECommerceService",
            "Operation": "ItemSearch",
            "Timestamp": timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "SearchIndex": "All",
            "ResponseGroup": "Images,Small",
            "Keywords": ean,
        }
        to_sign = f"GET\n{self.endpoint}\n{REQUEST_URI}\n{_encode(params)}"
        digest = hmac.new(self.secret_key.encode(), to_sign.encode(), hashlib.sha256).digest()
        params["Signature"] = base64.b64encode(digest).decode()
        return f"http://{self.endpoint}{REQUEST_URI}?{_encode(params)}"

    async def fetch(self, ean: str, blacklist: BlacklistDB) -> Product:
        url = self.endpoint_url(ean)
        with product_errors(ean, url):
            check_blacklist(blacklist, ean, url)
            body = await get_body(self.client, self.signed_url(ean))
            parsed = parse_item_search_response(body)
        return stamp_product(ean, url, parsed, self.website_name)
