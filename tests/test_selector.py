import json

import httpx
import openai
import pytest

from giftsuggest import config, llm, selector
from giftsuggest.errors import UpstreamError

from conftest import fake_selector_reply, make_product

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _context_length_error():
    response = httpx.Response(400, request=REQUEST)
    return openai.BadRequestError(
        "This model's maximum context length is 8192 tokens",
        response=response,
        body={"code": "context_length_exceeded", "message": "maximum context length"},
    )


@pytest.fixture
def pool():
    return [make_product(n) for n in range(1, 5)]


def test_strip_code_fences():
    assert selector.strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert selector.strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_both_response_shapes_normalize_the_same():
    a = selector.normalize_selections(
        {"selections": [{"title": "Yoga mat deluxe", "price": 20, "asin": "b0test0001", "confidence": 0.8}]}
    )
    b = selector.normalize_selections(
        {"suggestions": [{"name": "Yoga mat deluxe", "estimatedPrice": "20", "product_id": "B0TEST0001", "confidence": 80}]}
    )
    assert a == b
    assert a[0].asin == "B0TEST0001"
    assert a[0].confidence == 0.8


@pytest.mark.parametrize(
    "raw,price",
    [("$1,299.00", 1299.0), ("1.299,00 €", 1299.0), ("12,99 €", 12.99), ("$45", 45.0), (45, 45.0), ("n/a", None)],
)
def test_model_prices_keep_thousands_separators(raw, price):
    rows = selector.normalize_selections({"selections": [{"title": "Carbon road bike", "price": raw}]})
    assert rows[0].price == price


def test_percent_confidence_is_scaled():
    rows = selector.normalize_selections({"selections": [{"title": "Yoga mat", "confidence": "85%"}]})
    assert rows[0].confidence == pytest.approx(0.85)


def test_unexpected_shape_is_an_upstream_error():
    with pytest.raises(UpstreamError):
        selector.normalize_selections({"gifts": []})
    with pytest.raises(UpstreamError):
        selector.normalize_selections(["not", "an", "object"])


def test_model_only_sees_titles_prices_and_identifiers(monkeypatch, pool, profile):
    seen = {}

    def _complete(messages, max_tokens):
        seen["payload"] = json.loads(messages[-1]["content"])
        return fake_selector_reply()(messages, max_tokens)

    monkeypatch.setattr(llm, "complete_json", _complete)
    selections = selector.select_products(pool, profile, "birthday", 50)

    assert len(selections) == 3
    assert all(set(c) == {"asin", "title", "price"} for c in seen["payload"]["candidates"])
    assert seen["payload"]["person"]["name"] == "Camille"


def test_truncated_response_is_retried_with_more_tokens(monkeypatch, pool, profile):
    budgets = []
    reply = fake_selector_reply()

    def _complete(messages, max_tokens):
        budgets.append(max_tokens)
        if len(budgets) == 1:
            return '{"selections": [', "length"
        return reply(messages, max_tokens)

    monkeypatch.setattr(llm, "complete_json", _complete)
    selections = selector.select_products(pool, profile, "birthday", 50)

    assert budgets == [config.OPENAI_MAX_TOKENS, config.OPENAI_RETRY_MAX_TOKENS]
    assert len(selections) == 3


def test_truncated_twice_gives_up(monkeypatch, pool, profile):
    monkeypatch.setattr(llm, "complete_json", lambda messages, max_tokens: ("{", "length"))
    with pytest.raises(UpstreamError) as exc:
        selector.select_products(pool, profile, "birthday", 50)
    assert exc.value.details["attempts"] == 2


def test_context_length_error_retries_with_compact_prompt(monkeypatch, pool, profile):
    pool_sizes = []
    reply = fake_selector_reply()

    def _complete(messages, max_tokens):
        pool_sizes.append(len(json.loads(messages[-1]["content"])["candidates"]))
        if len(pool_sizes) == 1:
            raise _context_length_error()
        return reply(messages, max_tokens)

    monkeypatch.setattr(llm, "complete_json", _complete)
    selector.select_products(pool, profile, "birthday", 50, additional_context="loves trail running")

    assert pool_sizes == [4, selector.COMPACT_POOL_SIZE]


def test_timeout_is_retried_once(monkeypatch, pool, profile):
    attempts = []

    def _complete(messages, max_tokens):
        attempts.append(1)
        raise openai.APITimeoutError(request=REQUEST)

    monkeypatch.setattr(llm, "complete_json", _complete)
    with pytest.raises(UpstreamError):
        selector.select_products(pool, profile, "birthday", 50)
    assert len(attempts) == 2


def test_other_provider_errors_are_not_retried(monkeypatch, pool, profile):
    attempts = []

    def _complete(messages, max_tokens):
        attempts.append(1)
        raise openai.APIConnectionError(request=REQUEST)

    monkeypatch.setattr(llm, "complete_json", _complete)
    with pytest.raises(UpstreamError) as exc:
        selector.select_products(pool, profile, "birthday", 50)
    assert len(attempts) == 1
    assert exc.value.details["reason"] == "APIConnectionError"


def test_unparsable_json_is_a_failure_not_a_fallback(monkeypatch, pool, profile):
    monkeypatch.setattr(llm, "complete_json", lambda messages, max_tokens: ("Here are some gifts!", "stop"))
    with pytest.raises(UpstreamError):
        selector.select_products(pool, profile, "birthday", 50)
