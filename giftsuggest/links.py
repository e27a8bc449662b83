"""
Commerce link helpers: product identifier (ASIN) extraction and validation,
canonical / search / cart link builders and affiliate tagging.
"""
import logging
import re
import unicodedata
from typing import Optional
from urllib.parse import parse_qs, quote_plus, unquote, urlencode, urlparse, urlunparse

import requests

from . import config

logger = logging.getLogger("giftsuggest.links")

ASIN_PATTERNS = [
    re.compile(r"/dp/([A-Z0-9]{10})(?:[/?]|$)", re.I),
    re.compile(r"/gp/product/([A-Z0-9]{10})(?:[/?]|$)", re.I),
    re.compile(r"/gp/aw/d/([A-Z0-9]{10})(?:[/?]|$)", re.I),
    re.compile(r"/gp/offer-listing/([A-Z0-9]{10})(?:[/?]|$)", re.I),
    re.compile(r"/exec/obidos/ASIN/([A-Z0-9]{10})(?:[/?]|$)", re.I),
    re.compile(r"[?&]ASIN=([A-Z0-9]{10})(?:[&#]|$)", re.I),
]
_ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")


def normalize_asin(raw) -> str:
    return str(raw or "").strip().upper()


def is_valid_asin(raw) -> bool:
    return bool(_ASIN_RE.match(normalize_asin(raw)))


def is_commerce_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    return "amazon." in host


def _unwrap_redirect(url: str) -> str:
    """Sponsored results point at a redirect whose `url` param is the real page."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if "/slredirect/" in parsed.path or "/gp/redirect" in parsed.path:
        target = (parse_qs(parsed.query).get("url") or [""])[0]
        if target:
            target = unquote(target)
            if target.startswith("/"):
                target = f"https://www.{config.AMAZON_DOMAIN}{target}"
            return target
    return url


def extract_asin_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = _unwrap_redirect(url)
    for pattern in ASIN_PATTERNS:
        m = pattern.search(url)
        if m:
            return normalize_asin(m.group(1))
    return None


def canonical_detail_link(url: Optional[str]) -> Optional[str]:
    """Return a direct product page link, or None for search/redirect/foreign URLs."""
    if not url:
        return None
    url = _unwrap_redirect(url.strip())
    if not is_commerce_url(url):
        return None
    asin = extract_asin_from_url(url)
    if asin:
        return product_url_for_asin(asin)
    parsed = urlparse(url)
    path = parsed.path or "/"
    if path in ("/", "/s", "/s/") or path.startswith("/s/") or "/slredirect/" in path:
        return None
    # Other detail-style pages (e.g. /Some-Title/dp-less listings) are kept without tracking params.
    if "/dp/" not in path and "/gp/" not in path:
        return None
    return urlunparse(parsed._replace(query="", fragment=""))


def product_url_for_asin(asin: str) -> str:
    return f"https://www.{config.AMAZON_DOMAIN}/dp/{normalize_asin(asin)}"


def search_keywords(raw: str) -> str:
    """Strip accents and punctuation for use in a search-results link."""
    if not raw:
        return ""
    s = unicodedata.normalize("NFD", raw)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^\w\s-]", " ", s)
    s = s.replace("_", " ")
    return re.sub(r"\s+", " ", s).strip()


def build_search_url(query: str) -> str:
    q = search_keywords(query)
    if not q:
        return ""
    return f"https://www.{config.AMAZON_DOMAIN}/s?k={quote_plus(q)}&ref=sr_st_relevancerank"


def affiliate_active() -> bool:
    return bool(config.AMZ_PARTNER_TAG_ACTIVE and config.AMZ_PARTNER_TAG)


def add_affiliate_tag(url: Optional[str]) -> Optional[str]:
    """Set (never append) the partner tag on commerce URLs when tagging is active."""
    if not url or not is_commerce_url(url) or not affiliate_active():
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query, keep_blank_values=True)
    qs["tag"] = [config.AMZ_PARTNER_TAG]
    return urlunparse(parsed._replace(query=urlencode(qs, doseq=True)))


def build_cart_url(asin: Optional[str]) -> Optional[str]:
    if not is_valid_asin(asin) or not affiliate_active():
        return None
    return (
        f"https://www.{config.AMAZON_DOMAIN}/gp/aws/cart/add.html"
        f"?ASIN.1={normalize_asin(asin)}&Quantity.1=1&tag={quote_plus(config.AMZ_PARTNER_TAG)}"
    )


def verify_link(url: str) -> bool:
    """Lightweight existence check for a synthesized product link."""
    try:
        resp = requests.head(
            url,
            allow_redirects=True,
            timeout=config.LINK_VERIFY_TIMEOUT_SECONDS,
            headers={"User-Agent": "Mozilla/5.0 (compatible; giftsuggest/1.0)"},
        )
    except requests.RequestException as e:
        logger.warning("Link verification failed for %s: %s", url, type(e).__name__)
        return False
    return resp.status_code < 400
