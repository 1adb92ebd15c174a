"""Response body parsers, one per scraped source.

Each parser is a pure function ``bytes -> ParsedProduct``.  A missing marker
raises :class:`NotFoundError`; a body that cannot be decoded raises
:class:`MalformedResponseError`.  Parsers never guess.
"""

import json
import re

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from recycleme.errors import AmbiguousError, MalformedResponseError, NotFoundError
from recycleme.models import ParsedProduct

OPENFOODFACTS_PRODUCT_URL = "https://fr.openfoodfacts.org/produit/{code}/"

_IGALERIE_STYLE_RE = re.compile(r"background:url\(/getimg\.php\?img=([^)]+)\)")


def _soup(body: bytes, encoding: str = "utf-8") -> BeautifulSoup:
    """Decode *body* strictly and parse it as HTML."""
    try:
        text = body.decode(encoding)
    except UnicodeDecodeError as e:
        raise MalformedResponseError(f"cannot decode body as {encoding}: {e}") from e
    try:
        return BeautifulSoup(text, "html.parser")
    except ParserRejectedMarkup as e:
        raise MalformedResponseError(f"cannot parse html: {e}") from e


def _attr(tag, name: str) -> str:
    """Return a tag attribute as a single string (class lists are joined)."""
    value = tag.get(name, "")
    if isinstance(value, list):
        return " ".join(value)
    return value


# ---------------------------------------------------------------------------
# JSON sources
# ---------------------------------------------------------------------------


def parse_openfoodfacts(body: bytes) -> ParsedProduct:
    """Parse the Open Food Facts v0 product API.

    ``status`` is 1 when the product exists.
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise MalformedResponseError(f"invalid json: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("json document is not an object")

    if data.get("status") != 1:
        raise NotFoundError()
    product = data.get("product")
    if not isinstance(product, dict):
        raise MalformedResponseError("no product object in json")

    code = data.get("code", "")
    return ParsedProduct(
        name=product.get("product_name") or "",
        image_url=product.get("image_front_url") or "",
        website_url=OPENFOODFACTS_PRODUCT_URL.format(code=code) if code else "",
    )


# ---------------------------------------------------------------------------
# HTML sources
# ---------------------------------------------------------------------------


def parse_upcitemdb(body: bytes) -> ParsedProduct:
    """Looks for ``<p class="detailtitle">...<b>NAME</b></p>``."""
    soup = _soup(body)
    title = soup.select_one("p.detailtitle b")
    name = title.get_text(strip=True) if title else ""
    if not name:
        raise NotFoundError()

    image_url = ""
    for img in soup.find_all("img", src=True):
        if "product" in _attr(img, "class"):
            image_url = img["src"]
            break
    return ParsedProduct(name=name, image_url=image_url)


def parse_isbnsearch(body: bytes) -> ParsedProduct:
    """Looks for ``<div class="bookinfo"><h2>NAME</h2></div>``."""
    soup = _soup(body)
    title = soup.select_one("div.bookinfo h2")
    name = title.get_text(strip=True) if title else ""
    if not name:
        raise NotFoundError()

    img = soup.find("img", src=True)
    return ParsedProduct(name=name, image_url=img["src"] if img else "")


def parse_igalerie(body: bytes, base_url: str) -> ParsedProduct:
    """Parse an iGalerie search page.

    Only a page announcing exactly one image is usable; the image path is
    hidden in the ``style`` attribute of the ``a.img_link`` thumbnail.
    """
    soup = _soup(body)
    summary = soup.select_one("div#search_result p")
    if summary is not None and "1 image trouv" not in summary.get_text():
        raise AmbiguousError()

    for link in soup.select("a.img_link"):
        match = _IGALERIE_STYLE_RE.search(_attr(link, "style"))
        if match:
            image_url = base_url.split("?")[0] + "albums/" + match.group(1)
            return ParsedProduct(image_url=image_url)
    raise NotFoundError()


def parse_starrymart(body: bytes) -> ParsedProduct:
    """Looks for the first ``<div class="item-img-info"><a title=... href=...><img>``."""
    soup = _soup(body)
    link = soup.select_one("div.item-img-info > a")
    if link is None or not _attr(link, "title"):
        raise NotFoundError()

    img = link.find("img", src=True)
    return ParsedProduct(
        name=_attr(link, "title"),
        website_url=_attr(link, "href"),
        image_url=img["src"] if img else "",
    )


def parse_misterpharmaweb(body: bytes, base_url: str) -> ParsedProduct:
    """Looks for ``<a href=...><img class="lazy" alt=NAME data-src=...></a>``. ISO-8859-1."""
    soup = _soup(body, "iso-8859-1")
    for img in soup.find_all("img", class_="lazy"):
        name = _attr(img, "alt")
        if not name:
            continue
        data_src = _attr(img, "data-src")
        parent = img.parent
        website_url = ""
        if parent is not None and parent.name == "a":
            website_url = _attr(parent, "href")
        return ParsedProduct(
            name=name,
            image_url=base_url + data_src if data_src else "",
            website_url=website_url,
        )
    raise NotFoundError()


def parse_meddispar(body: bytes, base_url: str) -> ParsedProduct:
    """Looks for ``<a class="drug_title" title=NAME href=...>``. ISO-8859-1."""
    soup = _soup(body, "iso-8859-1")
    for link in soup.find_all("a", class_="drug_title"):
        name = _attr(link, "title").replace("  ", " ").replace("\n", "")
        url = _attr(link, "href")
        if not name or not url:
            continue
        if "http" not in url:
            url = base_url + url
        return ParsedProduct(name=name, website_url=url)
    raise NotFoundError()


def parse_digiteyes(body: bytes) -> ParsedProduct:
    """Looks for ``<img alt="image of NAME" src=...>``. ISO-8859-1."""
    soup = _soup(body, "iso-8859-1")
    for img in soup.find_all("img", alt=True):
        alt = _attr(img, "alt")
        if "image of " in alt:
            return ParsedProduct(name=alt.replace("image of ", ""), image_url=_attr(img, "src"))
    raise NotFoundError()
