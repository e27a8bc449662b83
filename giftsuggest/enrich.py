"""
Turns reconciled picks into user-facing suggestions: description, purchase links,
affiliate tagging and a final budget check.
"""
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import config
from .errors import BudgetExceededError
from .links import (
    add_affiliate_tag,
    build_cart_url,
    build_search_url,
    is_valid_asin,
    product_url_for_asin,
    verify_link,
)
from .models import MATCH_EXACT, MATCH_RELAXED, CandidateProduct, FinalGiftSuggestion, ReconciledSuggestion, SubjectProfile
from .queries import normalize_tag

logger = logging.getLogger("giftsuggest.enrich")

MIN_REASONING_CHARS = 40

BOILERPLATE_REASONING = (
    "great gift",
    "perfect gift",
    "nice gift",
    "good gift",
    "a great choice",
    "a perfect choice",
    "fits the budget",
    "within budget",
)


@dataclass(frozen=True)
class DescriptionRule:
    category: str
    keywords: Tuple[str, ...]
    template: str

    def matches(self, text: str) -> bool:
        return any(re.search(r"\b" + re.escape(k), text) for k in self.keywords)


# Evaluated in order; the first matching rule wins. Keywords are matched against the
# lowercased, accent-stripped title, and include the French terms used by listings
# on amazon.fr.
DESCRIPTION_RULES: List[DescriptionRule] = [
    DescriptionRule("Outdoor", ("tent", "tente", "camping", "hiking", "randonnee", "backpack", "sac a dos", "lantern"),
                    "Sturdy outdoor gear for {name}'s next adventure outside."),
    DescriptionRule("Fitness", ("yoga", "fitness", "dumbbell", "haltere", "resistance band", "foam roller", "massage gun", "smartwatch", "montre connectee", "running"),
                    "Practical fitness gear that fits right into {name}'s training routine."),
    DescriptionRule("Travel", ("luggage", "valise", "suitcase", "travel", "voyage", "packing cube", "passport", "neck pillow"),
                    "A travel companion that makes {name}'s next trip a little easier."),
    DescriptionRule("Apparel", ("hoodie", "sweat", "t-shirt", "shirt", "jacket", "veste", "scarf", "echarpe", "socks", "chaussettes", "sneaker", "baskets"),
                    "A comfortable piece {name} can wear every day."),
    DescriptionRule("Electronics", ("headphone", "casque", "earbuds", "ecouteurs", "speaker", "enceinte", "charger", "chargeur", "kindle", "tablet", "tablette", "camera", "bluetooth"),
                    "A well-reviewed gadget {name} will actually use."),
    DescriptionRule("Kitchen", ("knife", "couteau", "frying pan", "poele", "cookware", "kitchen", "cuisine", "coffee", "cafe", "espresso", "tea", "mug", "grinder", "moulin"),
                    "A kitchen upgrade for the cook in {name}."),
    DescriptionRule("Books", ("book", "livre", "novel", "roman", "cookbook", "guide", "coffret livres"),
                    "A book chosen with {name}'s tastes in mind."),
    DescriptionRule("Beauty", ("skincare", "soin", "perfume", "parfum", "spa", "bath", "bain", "candle", "bougie"),
                    "A little self-care treat for {name}."),
    DescriptionRule("Music", ("vinyl", "vinyle", "guitar", "guitare", "ukulele", "record player", "platine"),
                    "Something for {name}'s love of music."),
    DescriptionRule("Art", ("paint", "peinture", "sketch", "croquis", "canvas", "toile", "marker", "brush", "pinceau"),
                    "Quality supplies to feed {name}'s creative side."),
    DescriptionRule("Home", ("lamp", "lampe", "blanket", "plaid", "pillow", "coussin", "decor", "frame", "cadre", "plant", "plante"),
                    "A cozy touch for {name}'s home."),
    DescriptionRule("Games", ("board game", "jeu de societe", "puzzle", "lego", "card game", "jeu de cartes"),
                    "A fun pick for {name}'s game nights."),
]

INTEREST_DESCRIPTIONS = {
    "sport": ("Fitness", "Picked for {name}'s love of sport."),
    "reading": ("Books", "Picked for {name}, who always has something to read."),
    "cooking": ("Kitchen", "Picked for {name}'s time in the kitchen."),
    "travel": ("Travel", "Picked for {name}'s next trip."),
    "music": ("Music", "Picked for {name}'s love of music."),
    "tech": ("Electronics", "Picked for {name}, who enjoys good tech."),
    "art": ("Art", "Picked for {name}'s creative side."),
}

GENERIC_DESCRIPTION = "A well-rated gift for {name} for this {event}, within your budget."


def _fold(text: str) -> str:
    s = unicodedata.normalize("NFD", str(text or "").lower())
    return "".join(ch for ch in s if not unicodedata.combining(ch))


def is_substantive(reasoning: str) -> bool:
    text = " ".join(str(reasoning or "").split())
    if len(text) < MIN_REASONING_CHARS:
        return False
    folded = _fold(text).strip(" .!")
    return not any(folded == b or folded.startswith(b + " for") for b in BOILERPLATE_REASONING)


def describe(title: str, reasoning: str, profile: SubjectProfile, event_type: str) -> Tuple[str, str]:
    """Return (description, category) for one suggestion."""
    name = profile.name or "them"
    folded_title = _fold(title)
    category = None
    template = None
    for rule in DESCRIPTION_RULES:
        if rule.matches(folded_title):
            category, template = rule.category, rule.template
            break
    if template is None:
        for tag in profile.interests:
            hit = INTEREST_DESCRIPTIONS.get(normalize_tag(tag))
            if hit:
                category, template = hit
                break
    if is_substantive(reasoning):
        return " ".join(reasoning.split()), category or "Gift"
    if template is None:
        return GENERIC_DESCRIPTION.format(name=name, event=event_type or "occasion"), "Gift"
    return template.format(name=name), category


def _resolve_product_url(s: ReconciledSuggestion) -> Optional[str]:
    c = s.candidate
    if c is not None and c.link:
        return c.link
    if is_valid_asin(s.asin):
        url = product_url_for_asin(s.asin)
        if config.VERIFY_PRODUCT_LINKS and not verify_link(url):
            logger.info("Dropping unverifiable product link %s", url)
            return None
        return url
    return None


def enrich(
    reconciled: List[ReconciledSuggestion],
    pool: List[CandidateProduct],
    profile: SubjectProfile,
    event_type: str,
    budget: float,
) -> List[FinalGiftSuggestion]:
    used_titles = {s.title for s in reconciled}
    alternatives = [c.title for c in pool if c.title not in used_titles][:2]

    out: List[FinalGiftSuggestion] = []
    over_budget = 0
    for s in reconciled:
        if s.price is not None and s.price > budget:
            over_budget += 1
            logger.info("Dropping %r: price %.2f over budget %.2f", s.title, s.price, budget)
            continue
        description, category = describe(s.title, s.reasoning, profile, event_type)
        product_url = _resolve_product_url(s)
        search_url = build_search_url(s.title)
        primary = add_affiliate_tag(product_url or search_url)
        c = s.candidate
        out.append(
            FinalGiftSuggestion(
                title=s.title,
                description=description,
                estimated_price=s.price,
                confidence=s.confidence,
                reasoning=s.reasoning or description,
                category=category,
                match_type=MATCH_RELAXED if s.match == MATCH_RELAXED else MATCH_EXACT,
                asin=s.asin if c is not None else None,
                product_url=primary,
                search_url=add_affiliate_tag(search_url),
                cart_url=build_cart_url(s.asin) if c is not None else None,
                purchase_links=[primary] if primary else [],
                alternatives=alternatives,
                within_budget=True,
                rating=c.rating if c else None,
                review_count=c.review_count if c else None,
                image_url=c.image_url if c else None,
            )
        )

    if reconciled and not out and over_budget:
        raise BudgetExceededError(budget)
    logger.info("Enriched %s suggestions (%s over budget)", len(out), over_budget)
    return out
