"""
Builds product search queries from a subject profile.
Phrasing is randomized so repeated calls for the same person surface different listings.
"""
import logging
import random
import time
import unicodedata
from typing import List, Optional

from .models import SearchQuery, SubjectProfile

logger = logging.getLogger("giftsuggest.queries")

MIN_QUERIES = 3
MAX_QUERIES = 8

INTEREST_TEMPLATES = {
    "sport": ["{adj} fitness gear", "{adj} workout accessories", "{adj} sports recovery kit"],
    "reading": ["{adj} book lover gift", "{adj} reading light", "{adj} e-reader accessories"],
    "cooking": ["{adj} kitchen gadget", "{adj} chef knife set", "{adj} cooking gift set"],
    "travel": ["{adj} travel accessories", "{adj} carry-on organizer", "{adj} travel gadget"],
    "music": ["{adj} headphones", "{adj} music lover gift", "{adj} vinyl accessories"],
    "tech": ["{adj} tech gadget", "{adj} smart home device", "{adj} phone accessories"],
    "art": ["{adj} art supplies set", "{adj} sketchbook kit", "{adj} painting set"],
    "gaming": ["{adj} gaming accessories", "{adj} gamer gift"],
    "gardening": ["{adj} gardening tools", "{adj} indoor plant kit"],
    "photography": ["{adj} camera accessories", "{adj} photography gift"],
    "outdoors": ["{adj} hiking gear", "{adj} camping accessories"],
    "fashion": ["{adj} fashion accessories", "{adj} leather wallet"],
    "wellness": ["{adj} spa gift set", "{adj} relaxation gift"],
    "coffee": ["{adj} coffee gift set", "{adj} pour over coffee kit"],
}

# Tags as stored by the relationship tracker (some in French) mapped to template keys.
INTEREST_ALIASES = {
    "sports": "sport",
    "fitness": "sport",
    "lecture": "reading",
    "books": "reading",
    "livres": "reading",
    "cuisine": "cooking",
    "voyage": "travel",
    "voyages": "travel",
    "musique": "music",
    "technology": "tech",
    "technologie": "tech",
    "jeux video": "gaming",
    "jardinage": "gardening",
    "photo": "photography",
    "photographie": "photography",
    "randonnee": "outdoors",
    "hiking": "outdoors",
    "mode": "fashion",
    "bien-etre": "wellness",
    "cafe": "coffee",
}

ADJECTIVES = ["best", "unique", "premium", "popular", "top rated", "trending", "thoughtful", "clever"]

EVENT_TEMPLATES = {
    "birthday": "{adj} birthday gift",
    "anniversary": "{adj} anniversary gift",
    "wedding": "{adj} wedding gift",
    "christmas": "{adj} christmas gift",
    "graduation": "{adj} graduation gift",
    "valentine": "{adj} valentines gift",
    "mothers_day": "{adj} mothers day gift",
    "fathers_day": "{adj} fathers day gift",
}

GENERIC_TEMPLATES = [
    "{adj} gift idea",
    "{adj} gift for adults",
    "{adj} everyday essentials gift",
    "{adj} gift basket",
    "{adj} desk accessories",
]


def normalize_tag(tag: str) -> str:
    s = unicodedata.normalize("NFD", str(tag or "").strip().lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("_", " ")
    return INTEREST_ALIASES.get(s, s)


def _age_template(age: Optional[int]) -> Optional[str]:
    if age is None or age < 0:
        return None
    if age < 4:
        return "{adj} toddler toy"
    if age < 13:
        return "{adj} gift for kids"
    if age < 18:
        return "{adj} gift for teens"
    if age < 30:
        return "{adj} gift for young adults"
    if age < 60:
        return "{adj} gift for adults"
    return "{adj} gift for seniors"


def _event_template(event_type: str) -> str:
    key = normalize_tag(event_type).replace(" ", "_").replace("-", "_")
    for name, template in EVENT_TEMPLATES.items():
        if name in key:
            return template
    raw = str(event_type or "").replace("_", " ").replace("{", " ").replace("}", " ")
    label = " ".join(raw.split()) or "special occasion"
    return "{adj} " + label + " gift"


def _clean(text: str) -> str:
    return " ".join(str(text or "").split()).strip()


def price_band(budget: float) -> tuple:
    return (max(1.0, float(int(budget * 0.3))), float(budget))


def generate_queries(
    profile: SubjectProfile,
    event_type: str,
    budget: float,
    rng: Optional[random.Random] = None,
    now: Optional[float] = None,
) -> List[SearchQuery]:
    """Return 3-8 distinct, non-empty queries targeting the budget band."""
    rng = rng or random.Random()
    now = time.time() if now is None else now
    texts: List[str] = []
    seen = set()

    def _add(template: str):
        q = _clean(template.format(adj=rng.choice(ADJECTIVES)))
        key = q.lower()
        if q and key not in seen:
            seen.add(key)
            texts.append(q)

    for tag in profile.interests:
        templates = INTEREST_TEMPLATES.get(normalize_tag(tag))
        if not templates:
            continue
        for template in rng.sample(templates, k=min(len(templates), rng.choice((1, 2)))):
            _add(template)

    age_template = _age_template(profile.age)
    if age_template:
        _add(age_template)
    _add(_event_template(event_type))

    # Timestamp-seeded rotation keeps the generic fill varied across calls.
    offset = int(now) % len(GENERIC_TEMPLATES)
    rotated = GENERIC_TEMPLATES[offset:] + GENERIC_TEMPLATES[:offset]
    for template in rotated:
        if len(texts) >= MIN_QUERIES:
            break
        _add(template)

    rng.shuffle(texts)
    lo, hi = price_band(budget)
    queries = [SearchQuery(text=t, min_price=lo, max_price=hi) for t in texts[:MAX_QUERIES]]
    logger.info("Built %s search queries for profile %s", len(queries), profile.id)
    return queries
