"""
Environment-driven settings for the gift suggestion service.
Values are read once at import; numeric settings are clamped to sane ranges.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env_str(name, "true" if default else "false").lower()
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, lo: int, hi: int) -> int:
    try:
        value = int(_env_str(name, str(default)))
    except Exception:
        value = default
    return max(lo, min(value, hi))


def _env_float(name: str, default: float, lo: float, hi: float) -> float:
    try:
        value = float(_env_str(name, str(default)))
    except Exception:
        value = default
    return max(lo, min(value, hi))


LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper() or "INFO"

# Language model
OPENAI_API_KEY = _env_str("OPENAI_API_KEY")
OPENAI_MODEL = _env_str("OPENAI_MODEL", "gpt-4o-mini") or "gpt-4o-mini"
OPENAI_TEMPERATURE = _env_float("OPENAI_TEMPERATURE", 0.2, 0.0, 1.0)
OPENAI_MAX_TOKENS = _env_int("OPENAI_MAX_TOKENS", 900, 200, 4000)
OPENAI_RETRY_MAX_TOKENS = _env_int("OPENAI_RETRY_MAX_TOKENS", 1800, 400, 8000)
OPENAI_TIMEOUT_SECONDS = _env_float("OPENAI_TIMEOUT_SECONDS", 20.0, 2.0, 120.0)

# Product search providers
SERPAPI_API_KEY = _env_str("SERPAPI_API_KEY")
RAINFOREST_API_KEY = _env_str("RAINFOREST_API_KEY")
SEARCH_MAX_QUERIES = _env_int("SEARCH_MAX_QUERIES", 4, 1, 8)
SEARCH_MAX_CONCURRENCY = _env_int("SEARCH_MAX_CONCURRENCY", 2, 1, 8)
SEARCH_GLOBAL_TIMEOUT_SECONDS = _env_float("SEARCH_GLOBAL_TIMEOUT_SECONDS", 15.0, 1.0, 60.0)
SEARCH_CALL_TIMEOUT_SECONDS = _env_float("SEARCH_CALL_TIMEOUT_SECONDS", 8.0, 1.0, 30.0)
PRODUCTS_PER_SEARCH = _env_int("PRODUCTS_PER_SEARCH", 10, 1, 30)

# Commerce links
# Marketplace for search and detail links. Titles are matched in English and French,
# so amazon.fr works as well as the amazon.com default.
AMAZON_DOMAIN = _env_str("AMAZON_DOMAIN", "amazon.com") or "amazon.com"
AMZ_PARTNER_TAG = _env_str("AMZ_PARTNER_TAG")
AMZ_PARTNER_TAG_ACTIVE = _env_bool("AMZ_PARTNER_TAG_ACTIVE", False)
VERIFY_PRODUCT_LINKS = _env_bool("VERIFY_PRODUCT_LINKS", False)
LINK_VERIFY_TIMEOUT_SECONDS = _env_float("LINK_VERIFY_TIMEOUT_SECONDS", 4.0, 1.0, 15.0)

# Working pool and reconciliation (tunable, no derivation behind the defaults)
WORKING_POOL_SIZE = _env_int("WORKING_POOL_SIZE", 4, 3, 12)
RECONCILE_SIMILARITY_THRESHOLD = _env_float("RECONCILE_SIMILARITY_THRESHOLD", 0.45, 0.05, 1.0)
RECONCILE_SMALL_POOL_SIZE = _env_int("RECONCILE_SMALL_POOL_SIZE", 6, 0, 50)
BACKFILL_CONFIDENCE = _env_float("BACKFILL_CONFIDENCE", 0.6, 0.0, 1.0)
SUGGESTION_COUNT = 3

# Persistence / auth
SUPABASE_URL = _env_str("SUPABASE_URL").rstrip("/")
SUPABASE_ANON_KEY = _env_str("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = _env_str("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_TIMEOUT_SECONDS = _env_float("SUPABASE_TIMEOUT_SECONDS", 8.0, 1.0, 30.0)
UNLIMITED_ROLES = tuple(
    r.strip().lower()
    for r in _env_str("UNLIMITED_ROLES", "admin,premium_1,premium_2").split(",")
    if r.strip()
)
FREE_DAILY_LIMIT = _env_int("FREE_DAILY_LIMIT", 5, 0, 1000)

# Telemetry
TELEMETRY_DB_URL = _env_str("DATABASE_URL")
TELEMETRY_RETENTION_DAYS = _env_int("TELEMETRY_RETENTION_DAYS", 90, 1, 3650)
