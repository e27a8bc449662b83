import pytest

from giftsuggest.enrich import enrich
from giftsuggest.errors import BudgetExceededError, NoValidSuggestionsError
from giftsuggest.models import MATCH_BACKFILL, MATCH_EXACT, MATCH_FUZZY, MATCH_RELAXED, ModelSelection
from giftsuggest.reconcile import reconcile, title_similarity
from giftsuggest.selector import normalize_selections

from conftest import make_product


def _sel(title, asin=None, price=20.0, confidence=0.9):
    return ModelSelection(title=title, price=price, asin=asin, confidence=confidence, reasoning="fits well")


@pytest.fixture
def big_pool():
    titles = [
        "Stainless steel water bottle insulated",
        "Wireless earbuds with charging case",
        "Cast iron skillet ten inch",
        "Hardcover hiking trail guidebook",
        "Ceramic pour over coffee dripper",
        "Merino wool running socks",
        "LED desk lamp with USB port",
        "Bamboo cutting board set",
    ]
    return [make_product(n, title=t) for n, t in enumerate(titles)]


def test_title_similarity_normalizes_case_accents_and_punctuation():
    assert title_similarity("Café Crème, Mug!", "cafe creme mug") == 1.0
    assert title_similarity("", "anything") == 0.0


def test_exact_identifier_matches_are_accepted(big_pool):
    out = reconcile([_sel("whatever", asin=p.asin) for p in big_pool[:3]], big_pool)
    assert [s.match for s in out] == [MATCH_EXACT] * 3
    assert [s.asin for s in out] == [p.asin for p in big_pool[:3]]


def test_fuzzy_title_match_substitutes_pool_identifier_title_and_price(big_pool):
    target = big_pool[2]
    out = reconcile(
        [
            _sel("Cast Iron Skillet, 10 inch", asin="B0NOTREAL1", price=99.0),
            _sel("x", asin=big_pool[0].asin),
            _sel("y", asin=big_pool[1].asin),
        ],
        big_pool,
    )
    fuzzy = out[0]
    assert fuzzy.match == MATCH_FUZZY
    assert fuzzy.asin == target.asin
    assert fuzzy.title == target.title
    assert fuzzy.price == target.price


def test_unmatchable_selection_discarded_and_backfilled(big_pool):
    out = reconcile(
        [
            _sel("Completely unrelated widget", asin="B0NOTREAL1"),
            _sel("a", asin=big_pool[0].asin),
            _sel("b", asin=big_pool[1].asin),
        ],
        big_pool,
    )
    assert len(out) == 3
    assert [s.match for s in out] == [MATCH_EXACT, MATCH_EXACT, MATCH_BACKFILL]
    assert out[2].asin == big_pool[2].asin


def test_all_selections_unmatched_in_large_pool_fails(big_pool):
    with pytest.raises(NoValidSuggestionsError):
        reconcile(
            [
                _sel("Purple elephant costume", asin="B0NOTREAL1"),
                _sel("Quantum flux capacitor", asin="B0NOTREAL2"),
                _sel("Antique globe replica", asin="B0NOTREAL3"),
            ],
            big_pool,
        )


def test_small_pool_keeps_unmatched_selection_without_identifier():
    pool = [make_product(1, title="Insulated travel mug"), make_product(2, title="Yoga mat extra thick")]
    out = reconcile([_sel("Purple elephant costume", asin="B0NOTREAL1")], pool)
    relaxed = out[0]
    assert relaxed.match == MATCH_RELAXED
    assert relaxed.asin is None
    # The remaining slots are filled from the pool.
    assert [s.match for s in out[1:]] == [MATCH_BACKFILL, MATCH_BACKFILL]


def test_pool_entry_is_never_used_twice(big_pool):
    same = big_pool[0].asin
    out = reconcile([_sel("a", asin=same), _sel("a", asin=same), _sel("a", asin=same)], big_pool)
    asins = [s.asin for s in out]
    assert len(set(asins)) == len(asins)


def test_every_identifier_comes_from_the_pool(big_pool):
    selections = [
        _sel("Wireless earbuds charging case", asin="B0FAKEFAKE"),
        _sel("Nothing like the pool", asin="B0FAKEFAK2"),
        _sel("z", asin=big_pool[5].asin),
    ]
    pool_asins = {p.asin for p in big_pool}
    for s in reconcile(selections, big_pool):
        assert s.asin is None or s.asin in pool_asins


def test_overpriced_lenient_picks_give_way_to_pool_products(profile):
    pool = [make_product(n, price=20.0) for n in range(4)]
    selections = [
        _sel("whatever", asin=pool[0].asin),
        _sel("Carbon road bike", price=900.0),
        _sel("Smart treadmill", price=700.0),
    ]
    out = reconcile(selections, pool, budget=50)
    assert [s.match for s in out] == [MATCH_EXACT, MATCH_BACKFILL, MATCH_BACKFILL]

    final = enrich(out, pool, profile, "birthday", 50)
    pool_asins = {p.asin for p in pool}
    assert len(final) == 3
    assert len({s.asin for s in final}) == 3
    for s in final:
        assert s.asin in pool_asins
        assert s.estimated_price <= 50


def test_lenient_pick_within_budget_is_still_kept():
    pool = [make_product(n, price=20.0) for n in range(4)]
    out = reconcile([_sel("Purple elephant costume", price=45.0)], pool, budget=50)
    assert out[0].match == MATCH_RELAXED
    assert out[0].price == 45.0


def test_backfill_skips_pool_products_over_budget():
    pool = [make_product(1, price=20.0), make_product(2, price=80.0), make_product(3, price=30.0)]
    out = reconcile([_sel("whatever", asin=pool[0].asin)], pool, budget=50)
    assert [s.asin for s in out] == [pool[0].asin, pool[2].asin]


def test_only_overpriced_lenient_picks_is_a_budget_error():
    pool = [make_product(n, price=20.0) for n in range(4)]
    with pytest.raises(BudgetExceededError):
        reconcile([_sel("Carbon road bike", price=900.0), _sel("Smart treadmill", price=700.0)], pool, budget=50)


def test_thousands_separated_model_price_is_not_under_budget(profile):
    pool = [make_product(n, price=20.0) for n in range(4)]
    selections = normalize_selections(
        {"selections": [
            {"title": "Carbon road bike", "price": "$1,299.00", "asin": None, "confidence": 0.9},
            {"title": "whatever", "price": 20, "asin": pool[1].asin, "confidence": 0.9},
        ]}
    )
    final = enrich(reconcile(selections, pool, budget=50), pool, profile, "birthday", 50)
    assert "Carbon road bike" not in [s.title for s in final]
    assert all(s.estimated_price <= 50 for s in final)
