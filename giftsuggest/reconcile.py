"""
Checks model selections against the working pool so that no suggestion carries a
product identifier that was not present among the real search results.
"""
import logging
import re
import unicodedata
from typing import List, Optional, Set

from . import config
from .errors import BudgetExceededError, NoValidSuggestionsError
from .links import normalize_asin
from .models import (
    MATCH_BACKFILL,
    MATCH_EXACT,
    MATCH_FUZZY,
    MATCH_RELAXED,
    CandidateProduct,
    ModelSelection,
    ReconciledSuggestion,
)

logger = logging.getLogger("giftsuggest.reconcile")


def title_tokens(title: str) -> Set[str]:
    s = unicodedata.normalize("NFD", str(title or "").casefold())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^\w\s]", " ", s).replace("_", " ")
    return {t for t in s.split() if t}


def title_similarity(a: str, b: str) -> float:
    """Jaccard overlap of normalized word sets, in [0, 1]."""
    ta, tb = title_tokens(a), title_tokens(b)
    if not ta or not tb:
        return 0.0
    return len(ta & tb) / len(ta | tb)


def _over_budget(price: Optional[float], budget: Optional[float]) -> bool:
    return budget is not None and price is not None and price > budget


def _from_candidate(c: CandidateProduct, sel: Optional[ModelSelection], match: str) -> ReconciledSuggestion:
    price = c.price if c.price is not None else (sel.price if sel else None)
    return ReconciledSuggestion(
        title=c.title,
        price=price,
        asin=c.asin,
        confidence=sel.confidence if sel else config.BACKFILL_CONFIDENCE,
        reasoning=sel.reasoning if sel else "",
        match=match,
        candidate=c,
    )


def reconcile(
    selections: List[ModelSelection],
    pool: List[CandidateProduct],
    threshold: Optional[float] = None,
    small_pool_size: Optional[int] = None,
    count: Optional[int] = None,
    budget: Optional[float] = None,
) -> List[ReconciledSuggestion]:
    """Exact identifier, then best unused title match, then small-pool leniency.

    A lenient pick keeps the model's own price, so it is discarded when that price is
    over `budget` and its slot is backfilled from the pool instead.
    """
    threshold = config.RECONCILE_SIMILARITY_THRESHOLD if threshold is None else threshold
    small_pool_size = config.RECONCILE_SMALL_POOL_SIZE if small_pool_size is None else small_pool_size
    count = count or config.SUGGESTION_COUNT

    by_asin = {}
    for idx, c in enumerate(pool):
        if c.asin and c.asin not in by_asin:
            by_asin[c.asin] = idx
    used: Set[int] = set()
    accepted: List[ReconciledSuggestion] = []
    stats = {MATCH_EXACT: 0, MATCH_FUZZY: 0, MATCH_RELAXED: 0, "discarded": 0, "over_budget": 0}

    for sel in selections[:count]:
        asin = normalize_asin(sel.asin)
        idx = by_asin.get(asin) if asin else None
        if idx is not None and idx not in used:
            used.add(idx)
            accepted.append(_from_candidate(pool[idx], sel, MATCH_EXACT))
            stats[MATCH_EXACT] += 1
            continue

        best_idx, best_score = None, 0.0
        for i, c in enumerate(pool):
            if i in used:
                continue
            score = title_similarity(sel.title, c.title)
            if score > best_score:
                best_idx, best_score = i, score
        if best_idx is not None and best_score >= threshold:
            used.add(best_idx)
            accepted.append(_from_candidate(pool[best_idx], sel, MATCH_FUZZY))
            stats[MATCH_FUZZY] += 1
            continue

        if len(pool) < small_pool_size and _over_budget(sel.price, budget):
            stats["over_budget"] += 1
            logger.info("Discarded lenient selection %r: price %s over budget %s", sel.title, sel.price, budget)
            continue

        if len(pool) < small_pool_size:
            # Sparse results: keep the idea, but never with an unverified identifier.
            accepted.append(
                ReconciledSuggestion(
                    title=sel.title,
                    price=sel.price,
                    asin=None,
                    confidence=sel.confidence,
                    reasoning=sel.reasoning,
                    match=MATCH_RELAXED,
                )
            )
            stats[MATCH_RELAXED] += 1
            continue

        stats["discarded"] += 1
        logger.info("Discarded selection %r (asin=%s, best similarity %.2f)", sel.title, asin or None, best_score)

    if not accepted:
        if stats["over_budget"]:
            raise BudgetExceededError(budget)
        raise NoValidSuggestionsError()

    backfilled = 0
    for i, c in enumerate(pool):
        if len(accepted) >= count:
            break
        if i in used or _over_budget(c.price, budget):
            continue
        used.add(i)
        accepted.append(_from_candidate(c, None, MATCH_BACKFILL))
        backfilled += 1

    logger.info(
        "Reconciled: exact=%s fuzzy=%s relaxed=%s discarded=%s over_budget=%s backfilled=%s",
        stats[MATCH_EXACT], stats[MATCH_FUZZY], stats[MATCH_RELAXED], stats["discarded"], stats["over_budget"], backfilled,
    )
    return accepted[:count]
