"""
Asks the language model to pick gifts from the verified working pool.
The model sees titles, prices and identifiers only, and must echo identifiers verbatim.
"""
import json
import logging
import re
from typing import List, Optional

import openai

from . import config, llm
from .calls import CallState, ExternalCall
from .errors import UpstreamError
from .links import normalize_asin
from .models import CandidateProduct, ModelSelection, SubjectProfile
from .product_search import parse_price

logger = logging.getLogger("giftsuggest.selector")

COMPACT_POOL_SIZE = 3
COMPACT_NOTES_CHARS = 120

PRODUCT_SELECTOR_PROMPT = """
You are a gift selection assistant.

Task:
- Choose exactly {count} gifts for the person described, from the candidate products provided.
- You may ONLY choose products from the candidate list. Never invent products.
- Copy each chosen product's "asin" exactly as given (or null if it is null). Never create or alter an identifier.
- Copy the title and price of the chosen product from the candidate list.
- Prefer variety: do not pick near-duplicate products.
- Respect the budget.
- confidence is a number between 0 and 1.
- reasoning is one or two sentences, specific to this person, explaining why the gift fits.
- Return ONLY valid JSON:
{{
  "selections": [
    {{"title": "string", "price": number | null, "asin": "string | null", "confidence": number, "reasoning": "string"}}
  ]
}}
""".strip()


def strip_code_fences(text: str) -> str:
    t = (text or "").strip()
    t = re.sub(r"^```(?:json)?\s*", "", t, flags=re.I)
    t = re.sub(r"\s*```$", "", t)
    return t.strip()


def _as_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    # "$1,299.00", "12,99 €" and "85%" share the provider price parser.
    return parse_price(value)


def _confidence(value) -> float:
    c = _as_float(value)
    if c is None:
        return 0.5
    if c > 1.0:
        c = c / 100.0
    return max(0.0, min(c, 1.0))


def normalize_selections(parsed) -> List[ModelSelection]:
    """Map either accepted response shape ({"selections": [...]} or
    {"suggestions": [...]}) onto ModelSelection."""
    if not isinstance(parsed, dict):
        raise UpstreamError("Language model returned an unexpected response shape")
    rows = parsed.get("selections")
    if rows is None:
        rows = parsed.get("suggestions")
    if not isinstance(rows, list):
        raise UpstreamError("Language model response has no selections")
    out = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        title = str(row.get("title") or row.get("name") or "").strip()
        if not title:
            continue
        raw_asin = row.get("asin") or row.get("product_id") or row.get("productId")
        out.append(
            ModelSelection(
                title=title,
                price=_as_float(row.get("price", row.get("estimatedPrice"))),
                asin=normalize_asin(raw_asin) or None,
                confidence=_confidence(row.get("confidence")),
                reasoning=str(row.get("reasoning") or row.get("description") or "").strip(),
            )
        )
    return out


def _profile_context(
    profile: SubjectProfile,
    event_type: str,
    budget: float,
    additional_context: str,
    compact: bool,
) -> dict:
    notes = profile.notes
    if compact and len(notes) > COMPACT_NOTES_CHARS:
        notes = notes[:COMPACT_NOTES_CHARS].rstrip() + "..."
    ctx = {
        "name": profile.name,
        "relationship": profile.relationship or None,
        "age": profile.age,
        "interests": profile.interests[:6] if compact else profile.interests,
        "notes": notes or None,
        "event_type": event_type,
        "budget": budget,
    }
    if additional_context and not compact:
        ctx["additional_context"] = additional_context
    return ctx


def _build_messages(pool_view: list, context: dict) -> list:
    payload = {"person": context, "candidates": pool_view}
    return [
        {"role": "developer", "content": PRODUCT_SELECTOR_PROMPT.format(count=config.SUGGESTION_COUNT)},
        {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
    ]


def select_products(
    pool: List[CandidateProduct],
    profile: SubjectProfile,
    event_type: str,
    budget: float,
    additional_context: str = "",
) -> List[ModelSelection]:
    """
    One call, at most one retry: a truncated answer is retried with a larger
    token allowance, a context-length rejection with a compressed prompt.
    Everything else is terminal.
    """
    call = ExternalCall("openai:select", max_attempts=2)
    max_tokens = config.OPENAI_MAX_TOKENS
    compact = False

    while call.can_attempt:
        view = [{"asin": p.asin, "title": p.title, "price": p.price} for p in pool]
        if compact:
            view = view[:COMPACT_POOL_SIZE]
        messages = _build_messages(view, _profile_context(profile, event_type, budget, additional_context, compact))
        call.start()
        try:
            content, finish_reason = llm.complete_json(messages, max_tokens=max_tokens)
        except openai.OpenAIError as e:
            if llm.is_context_length_error(e):
                logger.warning("Selector prompt too long, retrying compressed")
                compact = True
                call.fail(e, retryable=True)
            elif llm.is_timeout_error(e):
                logger.warning("Selector call timed out (attempt %s)", call.attempts)
                call.fail(e, retryable=True)
            else:
                logger.warning("Selector call failed: %s", type(e).__name__)
                call.fail(e)
            continue
        if finish_reason == "length":
            logger.warning("Selector response truncated at %s tokens", max_tokens)
            max_tokens = config.OPENAI_RETRY_MAX_TOKENS
            call.fail(UpstreamError("Language model response was truncated"), retryable=True)
            continue
        call.succeed(content)

    if call.state is not CallState.SUCCEEDED:
        raise UpstreamError(
            "Gift selection failed",
            details={"reason": type(call.error).__name__ if call.error else "unknown", "attempts": call.attempts},
        )

    try:
        parsed = json.loads(strip_code_fences(call.result))
    except ValueError:
        raise UpstreamError("Could not parse the language model response")
    selections = normalize_selections(parsed)
    logger.info("Selector returned %s selections after %s attempt(s)", len(selections), call.attempts)
    return selections
