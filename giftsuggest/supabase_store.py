"""
Supabase collaborator over its REST endpoints: bearer token -> user, person rows,
and the atomic daily usage check-and-increment RPC.
"""
import logging
from typing import Optional

import requests

from . import config
from .errors import AuthError, ConfigurationError, NotFoundError, UpstreamError
from .models import SubjectProfile

logger = logging.getLogger("giftsuggest.supabase")

PERSON_COLUMNS = "id,name,age_years,interests,notes,relationship"


def is_configured() -> bool:
    return bool(config.SUPABASE_URL and config.SUPABASE_ANON_KEY and config.SUPABASE_SERVICE_ROLE_KEY)


def _require_config():
    if not is_configured():
        raise ConfigurationError("Supabase configuration is incomplete")


def _service_headers() -> dict:
    key = config.SUPABASE_SERVICE_ROLE_KEY
    return {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def get_user(authorization: Optional[str]) -> dict:
    """Resolve an `Authorization: Bearer ...` header to the Supabase user."""
    _require_config()
    if not authorization or not authorization.lower().startswith("bearer ") or not authorization[7:].strip():
        raise AuthError("Authentication required")
    try:
        resp = requests.get(
            f"{config.SUPABASE_URL}/auth/v1/user",
            headers={"apikey": config.SUPABASE_ANON_KEY, "Authorization": authorization},
            timeout=config.SUPABASE_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("Supabase auth request failed: %s", type(e).__name__)
        raise UpstreamError("Authentication service unavailable")
    if resp.status_code in (401, 403):
        raise AuthError("Authentication failed")
    if resp.status_code >= 400:
        raise UpstreamError("Authentication service error", details={"status": resp.status_code})
    user = resp.json() or {}
    if not user.get("id"):
        raise AuthError("Authentication failed")
    return user


def check_and_increment_usage(user_id: str) -> dict:
    """Single remote call: checks the daily limit and counts this request."""
    _require_config()
    try:
        resp = requests.post(
            f"{config.SUPABASE_URL}/rest/v1/rpc/check_and_increment_ai_usage",
            headers=_service_headers(),
            json={"p_user_id": user_id},
            timeout=config.SUPABASE_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Usage check failed: %s", type(e).__name__)
        raise UpstreamError("Usage limit check failed")
    # RPCs returning a composite row come back as a one-element list.
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict):
        raise UpstreamError("Usage limit check failed")
    return data


def fetch_person(person_id: str) -> SubjectProfile:
    _require_config()
    try:
        resp = requests.get(
            f"{config.SUPABASE_URL}/rest/v1/persons",
            headers=_service_headers(),
            params={"id": f"eq.{person_id}", "select": PERSON_COLUMNS, "limit": "1"},
            timeout=config.SUPABASE_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        rows = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Person fetch failed: %s", type(e).__name__)
        raise UpstreamError("Could not load the person profile")
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
        raise NotFoundError("Person not found")
    return SubjectProfile.from_row(rows[0])
