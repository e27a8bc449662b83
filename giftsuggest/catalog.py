"""Sanitizes merged search results into the small working pool shown to the model."""
import logging
from typing import List, Optional

from . import config
from .links import is_valid_asin
from .models import CandidateProduct

logger = logging.getLogger("giftsuggest.catalog")

NEUTRAL_RATING = 3.0


def is_verifiable(p: CandidateProduct) -> bool:
    return bool(p.link) or is_valid_asin(p.asin)


def relevance_score(p: CandidateProduct) -> float:
    rating = p.rating if isinstance(p.rating, (int, float)) and p.rating > 0 else NEUTRAL_RATING
    reviews = p.review_count if isinstance(p.review_count, int) and p.review_count > 0 else 1
    return float(rating) * reviews


def build_working_pool(candidates: List[CandidateProduct], limit: Optional[int] = None) -> List[CandidateProduct]:
    limit = limit or config.WORKING_POOL_SIZE
    seen = set()
    unique = []
    for p in candidates or []:
        if not is_verifiable(p):
            continue
        if p.key in seen:
            continue
        seen.add(p.key)
        unique.append(p)
    # sorted() is stable, so ties keep input order.
    ranked = sorted(unique, key=relevance_score, reverse=True)
    pool = ranked[:limit]
    logger.info("Working pool: %s of %s candidates kept", len(pool), len(candidates or []))
    return pool
