import json

import pytest

from giftsuggest import config
from giftsuggest.models import CandidateProduct, SubjectProfile


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """No real credentials, no telemetry database, affiliate tagging off."""
    monkeypatch.setattr(config, "OPENAI_API_KEY", "test-key")
    monkeypatch.setattr(config, "SERPAPI_API_KEY", "")
    monkeypatch.setattr(config, "RAINFOREST_API_KEY", "")
    monkeypatch.setattr(config, "AMZ_PARTNER_TAG", "")
    monkeypatch.setattr(config, "AMZ_PARTNER_TAG_ACTIVE", False)
    monkeypatch.setattr(config, "VERIFY_PRODUCT_LINKS", False)
    monkeypatch.setattr(config, "TELEMETRY_DB_URL", "")
    monkeypatch.setattr(config, "SUPABASE_URL", "https://project.supabase.test")
    monkeypatch.setattr(config, "SUPABASE_ANON_KEY", "anon")
    monkeypatch.setattr(config, "SUPABASE_SERVICE_ROLE_KEY", "service")


@pytest.fixture
def affiliate(monkeypatch):
    monkeypatch.setattr(config, "AMZ_PARTNER_TAG", "giftsuggest-20")
    monkeypatch.setattr(config, "AMZ_PARTNER_TAG_ACTIVE", True)


@pytest.fixture
def profile():
    return SubjectProfile(
        id="p-1",
        name="Camille",
        interests=["Sport"],
        notes="Runs two half marathons a year and likes gadgets.",
        age=34,
        relationship="friend",
    )


def make_product(n: int, price: float = 30.0, rating: float = 4.5, reviews: int = 100, **kw) -> CandidateProduct:
    asin = kw.pop("asin", f"B0TEST{n:04d}")
    return CandidateProduct(
        title=kw.pop("title", f"Test product number {n}"),
        price=price,
        asin=asin,
        link=kw.pop("link", f"https://www.amazon.com/dp/{asin}" if asin else None),
        rating=rating,
        review_count=reviews,
        **kw,
    )


def fake_selector_reply(pick_asins=None, extra=None):
    """Build a complete_json stand-in that picks from the candidates it is shown."""

    def _complete_json(messages, max_tokens):
        payload = json.loads(messages[-1]["content"])
        candidates = payload["candidates"]
        chosen = candidates[:3] if pick_asins is None else [c for c in candidates if c["asin"] in pick_asins]
        rows = [
            {
                "title": c["title"],
                "price": c["price"],
                "asin": c["asin"],
                "confidence": 0.9,
                "reasoning": "Camille trains all year, so this fits straight into the weekly routine.",
            }
            for c in chosen
        ]
        rows.extend(extra or [])
        return json.dumps({"selections": rows}), "stop"

    return _complete_json
