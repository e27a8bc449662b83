import random

import pytest

from giftsuggest.models import SubjectProfile
from giftsuggest.queries import MAX_QUERIES, MIN_QUERIES, generate_queries, normalize_tag, price_band


@pytest.mark.parametrize(
    "interests",
    [
        [],
        ["Sport"],
        ["lecture", "cuisine", "Voyage"],
        ["sport", "reading", "cooking", "travel", "music", "tech", "art", "gaming", "coffee"],
        ["knitting", "  ", "unknown hobby"],
    ],
)
@pytest.mark.parametrize("seed", [1, 7, 42])
def test_query_count_and_distinctness(interests, seed):
    profile = SubjectProfile(id="p", name="Alex", interests=interests, age=40)
    queries = generate_queries(profile, "birthday", 60, rng=random.Random(seed), now=1_700_000_000)

    assert MIN_QUERIES <= len(queries) <= MAX_QUERIES
    texts = [q.text for q in queries]
    assert all(t.strip() for t in texts)
    assert len({t.lower() for t in texts}) == len(texts)


def test_queries_carry_budget_band():
    profile = SubjectProfile(id="p", name="Alex", interests=["music"])
    queries = generate_queries(profile, "christmas", 50, rng=random.Random(3))
    assert {(q.min_price, q.max_price) for q in queries} == {(15.0, 50.0)}


def test_interest_aliases_reach_templates():
    profile = SubjectProfile(id="p", name="Alex", interests=["Musique"])
    texts = " ".join(q.text for q in generate_queries(profile, "birthday", 80, rng=random.Random(5)))
    assert any(word in texts for word in ("headphones", "music", "vinyl"))


def test_free_form_event_with_braces_is_safe():
    profile = SubjectProfile(id="p", name="Alex")
    queries = generate_queries(profile, "house {warming}", 30, rng=random.Random(1))
    assert any("house warming gift" in q.text for q in queries)


def test_generic_fill_varies_with_time():
    profile = SubjectProfile(id="p", name="Alex")
    a = {q.text for q in generate_queries(profile, "birthday", 30, rng=random.Random(1), now=0)}
    b = {q.text for q in generate_queries(profile, "birthday", 30, rng=random.Random(1), now=2)}
    assert a != b


def test_normalize_tag():
    assert normalize_tag("  Cuisine ") == "cooking"
    assert normalize_tag("Randonnée") == "outdoors"
    assert normalize_tag("jeux_video") == "gaming"


@pytest.mark.parametrize("budget,expected", [(50, (15.0, 50.0)), (2, (1.0, 2.0)), (99.9, (29.0, 99.9))])
def test_price_band(budget, expected):
    assert price_band(budget) == expected
