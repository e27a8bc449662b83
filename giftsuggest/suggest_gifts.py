"""
Gift suggestion handler.
validate -> auth -> usage gate -> profile -> queries -> product search -> working pool
-> model selection -> reconciliation -> enrichment, with a static fallback when
search produces nothing usable.
"""
import logging
import random
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from flask import jsonify, request

from . import config, supabase_store, telemetry
from .catalog import build_working_pool
from .enrich import enrich
from .errors import ConfigurationError, GiftSuggestionError, InputError, QuotaExceededError
from .fallback import generate_fallback
from .models import FinalGiftSuggestion, SubjectProfile
from .product_search import search_products
from .queries import generate_queries
from .reconcile import reconcile
from .selector import select_products

logger = logging.getLogger("giftsuggest.suggest_gifts")

MAX_CONTEXT_CHARS = 500


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _next_reset_iso() -> str:
    now = datetime.now(timezone.utc)
    midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.isoformat()


def validate_request(data) -> dict:
    if not isinstance(data, dict):
        raise InputError("Missing or invalid request body")
    person_id = data.get("personId")
    event_type = data.get("eventType")
    budget = data.get("budget")
    if person_id is None or not str(person_id).strip():
        raise InputError("Missing or invalid parameters: personId")
    if not isinstance(event_type, str) or not event_type.strip():
        raise InputError("Missing or invalid parameters: eventType")
    if isinstance(budget, bool) or not isinstance(budget, (int, float)) or budget <= 0:
        raise InputError("Missing or invalid parameters: budget")
    context = data.get("additionalContext")
    if context is not None and not isinstance(context, str):
        raise InputError("Missing or invalid parameters: additionalContext")
    return {
        "person_id": str(person_id).strip(),
        "event_type": event_type.strip(),
        "budget": float(budget),
        "additional_context": (context or "").strip()[:MAX_CONTEXT_CHARS],
    }


def enforce_usage_limit(account_id: str) -> dict:
    usage = supabase_store.check_and_increment_usage(account_id)
    role = str(usage.get("role") or "free").strip().lower()
    if role in config.UNLIMITED_ROLES:
        return usage
    if not usage.get("allowed"):
        limit = usage.get("limit")
        remaining = usage.get("remaining")
        raise QuotaExceededError(
            limit=int(limit) if isinstance(limit, (int, float)) else config.FREE_DAILY_LIMIT,
            remaining=max(0, int(remaining)) if isinstance(remaining, (int, float)) else 0,
            role=role,
            reset_time=usage.get("reset_time") or usage.get("resetTime") or _next_reset_iso(),
        )
    return usage


def generate_suggestions(
    profile: SubjectProfile,
    event_type: str,
    budget: float,
    additional_context: str = "",
    rng: Optional[random.Random] = None,
    trace: Optional[dict] = None,
) -> Tuple[List[FinalGiftSuggestion], str]:
    """Run the pipeline for one profile. Returns (suggestions, source).

    `trace` is filled with the stage reached and the working pool size.
    """
    trace = {} if trace is None else trace
    trace["stage"] = "queries"
    queries = generate_queries(profile, event_type, budget, rng=rng)
    trace["stage"] = "search"
    candidates = search_products(queries[: config.SEARCH_MAX_QUERIES])
    pool = build_working_pool(candidates)
    trace["pool_size"] = len(pool)

    if not pool:
        trace["stage"] = "fallback"
        logger.info("[SUGGEST_GIFTS] no usable products, using fallback table")
        return generate_fallback(profile, budget, event_type, rng=rng), "fallback"

    trace["stage"] = "select"
    if not config.OPENAI_API_KEY:
        raise ConfigurationError("Language model is not configured")
    selections = select_products(pool, profile, event_type, budget, additional_context)
    trace["stage"] = "reconcile"
    reconciled = reconcile(selections, pool, budget=budget)
    trace["stage"] = "enrich"
    return enrich(reconciled, pool, profile, event_type, budget), "verified"


def suggest_gifts():
    """POST /suggest-gifts - Gift suggestions for one person, event and budget."""
    if request.method == "OPTIONS":
        return ("", 204)
    if request.method == "GET":
        return jsonify({"ok": True, "timestamp": utc_now_iso()})

    started = time.perf_counter()
    account_id = None
    trace = {"stage": "validate"}
    try:
        params = validate_request(request.get_json(silent=True))
        trace["stage"] = "auth"
        user = supabase_store.get_user(request.headers.get("Authorization"))
        account_id = str(user.get("id"))
        trace["stage"] = "quota"
        enforce_usage_limit(account_id)
        trace["stage"] = "profile"
        profile = supabase_store.fetch_person(params["person_id"])
        logger.info(
            "[SUGGEST_GIFTS] person=%s event=%r budget=%s interests=%s",
            profile.id, params["event_type"], params["budget"], profile.interests,
        )
        suggestions, source = generate_suggestions(
            profile,
            params["event_type"],
            params["budget"],
            params["additional_context"],
            trace=trace,
        )
    except GiftSuggestionError as e:
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.warning(
            "[SUGGEST_GIFTS] failed stage=%s kind=%s status=%s: %s", trace["stage"], e.kind, e.status, e.message
        )
        telemetry.track_event(
            "suggestions_failed", account_id, latency_ms, {"kind": e.kind}, stage=trace["stage"]
        )
        return jsonify(e.to_payload()), e.status
    except Exception as e:
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.exception("[SUGGEST_GIFTS] unexpected error at stage=%s", trace["stage"])
        telemetry.track_event(
            "suggestions_failed", account_id, latency_ms, {"kind": "internal"}, stage=trace["stage"]
        )
        return jsonify({"success": False, "error": "Internal server error", "details": str(e)}), 200

    latency_ms = int((time.perf_counter() - started) * 1000)
    telemetry.track_event(
        "suggestions_generated",
        account_id,
        latency_ms,
        {
            "source": source,
            "count": len(suggestions),
            "pool_size": trace.get("pool_size", 0),
            "match_types": dict(Counter(s.match_type for s in suggestions)),
        },
        stage=trace["stage"],
    )
    logger.info("[SUGGEST_GIFTS] %s %s suggestions in %sms", len(suggestions), source, latency_ms)
    return jsonify({
        "success": True,
        "suggestions": [s.to_dict() for s in suggestions],
        "personName": profile.name,
        "eventType": params["event_type"],
        "budget": params["budget"],
        "source": source,
        "message": f"{len(suggestions)} gift ideas generated for {profile.name or 'this person'}",
    })
