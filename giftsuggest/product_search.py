"""
Amazon product search: SerpAPI Amazon engine (primary), Rainforest API (secondary).
Runs a handful of queries with bounded concurrency under a global deadline and
returns verified CandidateProducts (identifier or detail link required).
"""
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional

import requests

from . import config
from .calls import ExternalCall
from .links import canonical_detail_link, extract_asin_from_url, is_valid_asin, normalize_asin
from .models import CandidateProduct, SearchQuery

logger = logging.getLogger("giftsuggest.product_search")

SERPAPI_SEARCH = "https://serpapi.com/search.json"
RAINFOREST_SEARCH = "https://api.rainforestapi.com/request"


class ProviderError(Exception):
    """A search provider answered with an error payload or unusable response."""


def parse_price(value) -> Optional[float]:
    """Parse 12.99, {"value": 12.99}, "$1,299.00" or "12,99 €" into a float."""
    if isinstance(value, dict):
        value = value.get("value", value.get("raw"))
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    s = re.sub(r"[^\d.,]", "", str(value))
    if not s:
        return None
    if "," in s and "." in s:
        # Whichever separator comes last is the decimal mark.
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        s = f"{head.replace(',', '')}.{tail}" if len(tail) in (1, 2) else s.replace(",", "")
    try:
        price = float(s)
    except ValueError:
        return None
    return price if price > 0 else None


def _parse_rating(value) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    m = re.search(r"(\d+(?:[.,]\d+)?)", str(value or ""))
    return float(m.group(1).replace(",", ".")) if m else None


def _parse_count(value) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    digits = re.sub(r"[^\d]", "", str(value or ""))
    return int(digits) if digits else None


def _to_candidate(item: dict, raw_asin, query: SearchQuery, source: str) -> Optional[CandidateProduct]:
    """Convert a provider row; None when it must not enter the pool."""
    title = str(item.get("title") or "").strip()
    if len(title) <= 5:
        return None
    raw_link = str(item.get("link_clean") or item.get("link") or "").strip()
    asin = extract_asin_from_url(raw_link) or normalize_asin(raw_asin)
    if not is_valid_asin(asin):
        asin = None
    link = canonical_detail_link(raw_link)
    if not link and not asin:
        return None
    price = parse_price(item.get("extracted_price") or item.get("price"))
    # Advisory filter: unparsable prices pass through.
    if price is not None and not (query.min_price <= price <= query.max_price):
        return None
    return CandidateProduct(
        title=title,
        price=price,
        asin=asin,
        link=link,
        rating=_parse_rating(item.get("rating")),
        review_count=_parse_count(item.get("reviews") or item.get("ratings_total") or item.get("reviews_count")),
        image_url=str(item.get("thumbnail") or item.get("image") or "").strip() or None,
        snippet=str(item.get("snippet") or item.get("description") or "").strip()[:200],
        source=source,
    )


def _rank_provider_rows(products: List[CandidateProduct]) -> List[CandidateProduct]:
    seen = set()
    out = []
    for p in products:
        if p.key in seen:
            continue
        seen.add(p.key)
        out.append(p)
    out.sort(key=lambda p: (1 if p.asin else 0, p.rating or 0.0, p.review_count or 0), reverse=True)
    return out[: config.PRODUCTS_PER_SEARCH]


def _serpapi_amazon_search(query: SearchQuery, api_key: str, timeout: float) -> List[CandidateProduct]:
    """Fetch Amazon products via SerpAPI Amazon engine."""
    resp = requests.get(
        SERPAPI_SEARCH,
        params={
            "api_key": api_key,
            "engine": "amazon",
            "k": query.text,
            "amazon_domain": config.AMAZON_DOMAIN,
            "low_price": str(int(query.min_price)),
            "high_price": str(int(query.max_price)),
        },
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    if data.get("error"):
        raise ProviderError(str(data.get("error")))
    items = list(data.get("product_results") or []) + list(data.get("organic_results") or [])
    products = []
    for item in items:
        if not isinstance(item, dict):
            continue
        c = _to_candidate(item, item.get("asin"), query, "serpapi")
        if c:
            products.append(c)
    logger.info("SerpAPI %r: %s raw rows, %s kept", query.text, len(items), len(products))
    return _rank_provider_rows(products)


def _rainforest_search(query: SearchQuery, api_key: str, timeout: float) -> List[CandidateProduct]:
    """Fetch Amazon products via Rainforest API search."""
    resp = requests.get(
        RAINFOREST_SEARCH,
        params={
            "api_key": api_key,
            "type": "search",
            "amazon_domain": config.AMAZON_DOMAIN,
            "search_term": query.text,
        },
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    info = data.get("request_info") or {}
    if info.get("success") is False:
        raise ProviderError(str(info.get("message") or "request failed"))
    items = data.get("search_results") or []
    products = []
    for item in items:
        if not isinstance(item, dict):
            continue
        c = _to_candidate(item, item.get("asin"), query, "rainforest")
        if c:
            products.append(c)
    logger.info("Rainforest %r: %s raw rows, %s kept", query.text, len(items), len(products))
    return _rank_provider_rows(products)


def _run_provider(name: str, fn, query: SearchQuery, api_key: str, timeout: float) -> ExternalCall:
    call = ExternalCall(f"{name}:{query.text}", max_attempts=1)
    call.start()
    try:
        call.succeed(fn(query, api_key, timeout))
    except (requests.RequestException, ProviderError, ValueError) as e:
        logger.warning("%s search error for %r: %s", name, query.text, type(e).__name__)
        call.fail(e)
    return call


def _fetch_for_query(
    query: SearchQuery,
    serpapi_key: str,
    rainforest_key: str,
    call_timeout: float,
    deadline: float,
) -> List[CandidateProduct]:
    """Primary provider first; the secondary is tried once, only when the primary
    errored or produced nothing and the global deadline has not passed."""
    items: List[CandidateProduct] = []
    if serpapi_key:
        primary = _run_provider("SerpAPI", _serpapi_amazon_search, query, serpapi_key, call_timeout)
        items = primary.result or []
    if not items and rainforest_key and time.monotonic() < deadline:
        secondary = _run_provider("Rainforest", _rainforest_search, query, rainforest_key, call_timeout)
        items = secondary.result or []
    return items


def search_products(
    queries: List[SearchQuery],
    serpapi_key: Optional[str] = None,
    rainforest_key: Optional[str] = None,
    max_concurrency: Optional[int] = None,
    global_timeout: Optional[float] = None,
    call_timeout: Optional[float] = None,
) -> List[CandidateProduct]:
    """
    Run up to SEARCH_MAX_QUERIES queries, at most `max_concurrency` at a time.
    Queries not started before the global deadline are skipped. The merge is keyed
    by query position, so completion order never changes the result.
    """
    serpapi_key = config.SERPAPI_API_KEY if serpapi_key is None else serpapi_key
    rainforest_key = config.RAINFOREST_API_KEY if rainforest_key is None else rainforest_key
    max_concurrency = max_concurrency or config.SEARCH_MAX_CONCURRENCY
    global_timeout = config.SEARCH_GLOBAL_TIMEOUT_SECONDS if global_timeout is None else global_timeout
    call_timeout = config.SEARCH_CALL_TIMEOUT_SECONDS if call_timeout is None else call_timeout

    clean_queries = [q for q in (queries or [])[: config.SEARCH_MAX_QUERIES] if q.text.strip()]
    if not clean_queries or not (serpapi_key or rainforest_key):
        return []

    started = time.monotonic()
    deadline = started + global_timeout

    def _run(q: SearchQuery):
        if time.monotonic() >= deadline:
            logger.info("Search deadline passed, skipping %r", q.text)
            return []
        return _fetch_for_query(q, serpapi_key, rainforest_key, call_timeout, deadline)

    out_by_idx = {}
    pool = ThreadPoolExecutor(max_workers=min(max_concurrency, len(clean_queries)))
    try:
        futures = {pool.submit(_run, q): idx for idx, q in enumerate(clean_queries)}
        done, pending = wait(futures, timeout=global_timeout)
        in_flight = [f for f in pending if not f.cancel()]
        if in_flight:
            # In-flight calls get at most their own timeout; later ones were cancelled above.
            more_done, _ = wait(in_flight, timeout=call_timeout)
            done = set(done) | set(more_done)
        for fut in done:
            idx = futures[fut]
            try:
                out_by_idx[idx] = fut.result() or []
            except Exception as e:
                logger.warning("Parallel query fetch error: %s", type(e).__name__)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    merged: List[CandidateProduct] = []
    seen = set()
    for idx in sorted(out_by_idx):
        for p in out_by_idx[idx]:
            if p.key in seen:
                continue
            seen.add(p.key)
            merged.append(p)
    logger.info(
        "Product search: %s/%s queries completed, %s unique candidates in %.1fs",
        len(out_by_idx), len(clean_queries), len(merged), time.monotonic() - started,
    )
    return merged
