"""
Static, interest-keyed suggestions used when product search yields nothing.
These never claim a product identifier; links are search-results links.
"""
import logging
import random
from typing import List, Optional

from . import config
from .links import add_affiliate_tag, build_search_url
from .models import FinalGiftSuggestion, SubjectProfile
from .queries import normalize_tag

logger = logging.getLogger("giftsuggest.fallback")

MATCH_SEARCH = "search"

# (title, description, category, share of budget, confidence)
INTEREST_GIFTS = {
    "sport": [
        ("Fitness tracker watch", "Tracks daily activity and health", "Tech", 0.9, 0.8),
        ("Premium workout outfit", "Breathable technical sportswear", "Apparel", 0.6, 0.75),
        ("Muscle recovery kit", "Foam roller and resistance bands", "Wellness", 0.4, 0.7),
    ],
    "reading": [
        ("E-reader with built-in light", "Kindle or equivalent for reading anywhere", "Tech", 0.95, 0.8),
        ("Curated book box", "A selection matched to their literary taste", "Books", 0.6, 0.75),
        ("Designer reading lamp", "Comfortable light for long reading sessions", "Home", 0.4, 0.65),
    ],
    "cooking": [
        ("Professional chef knife set", "Japanese-style knives for everyday cooking", "Kitchen", 0.9, 0.8),
        ("Spice discovery box", "Spices from around the world", "Kitchen", 0.4, 0.7),
        ("Cast iron skillet", "A pan that lasts for decades", "Kitchen", 0.6, 0.7),
    ],
    "travel": [
        ("Lightweight carry-on suitcase", "360 degree wheels, cabin size", "Travel", 0.95, 0.8),
        ("Packing cube set", "Keeps every bag organized", "Travel", 0.35, 0.7),
        ("Travel guide for a dream destination", "Inspiration for the next trip", "Books", 0.3, 0.65),
    ],
    "music": [
        ("High quality headphones", "Immersive sound for everyday listening", "Electronics", 0.9, 0.8),
        ("Vinyl record of a favorite artist", "Reissue or collector edition", "Music", 0.5, 0.75),
        ("Portable Bluetooth speaker", "Music anywhere, indoors or out", "Electronics", 0.7, 0.7),
    ],
    "tech": [
        ("Smart home starter kit", "Connected plugs and bulbs", "Electronics", 0.8, 0.75),
        ("Innovative tech gadget", "A trending connected accessory", "Electronics", 0.5, 0.7),
        ("Fast wireless charger", "Clean desk, charged phone", "Electronics", 0.35, 0.65),
    ],
    "art": [
        ("Professional art supplies set", "Brushes, paints and canvases", "Art", 0.8, 0.8),
        ("Premium sketchbook and pencils", "For drawing on the go", "Art", 0.4, 0.7),
        ("Art reference book", "A monograph of a great master", "Books", 0.5, 0.7),
    ],
}

GENERIC_GIFTS = [
    ("Personalized gift box", "A carefully assembled box of small treats", "Lifestyle", 0.7, 0.6),
    ("Wellness gift set", "Care and relaxation products", "Wellness", 0.6, 0.6),
    ("Cozy throw blanket", "Soft, warm and always appreciated", "Home", 0.5, 0.55),
    ("Gourmet snack basket", "Artisanal treats to share", "Food", 0.6, 0.55),
]


def generate_fallback(
    profile: SubjectProfile,
    budget: float,
    event_type: str = "",
    rng: Optional[random.Random] = None,
    count: Optional[int] = None,
) -> List[FinalGiftSuggestion]:
    rng = rng or random.Random()
    count = count or config.SUGGESTION_COUNT

    matches = []
    seen = set()
    for tag in profile.interests:
        for entry in INTEREST_GIFTS.get(normalize_tag(tag), []):
            if entry[0] not in seen:
                seen.add(entry[0])
                matches.append(entry)
    rng.shuffle(matches)
    if len(matches) < count:
        generic = [g for g in GENERIC_GIFTS if g[0] not in seen]
        rng.shuffle(generic)
        matches.extend(generic[: count - len(matches)])

    name = profile.name or "them"
    out = []
    for title, description, category, share, confidence in matches[:count]:
        search_url = add_affiliate_tag(build_search_url(title))
        out.append(
            FinalGiftSuggestion(
                title=title,
                description=description,
                estimated_price=round(budget * share, 2),
                confidence=confidence,
                reasoning=f"A dependable {category.lower()} pick for {name}.",
                category=category,
                match_type=MATCH_SEARCH,
                asin=None,
                product_url=search_url,
                search_url=search_url,
                cart_url=None,
                purchase_links=[search_url] if search_url else [],
                within_budget=True,
            )
        )
    logger.info("Fallback produced %s suggestions for profile %s (event %s)", len(out), profile.id, event_type or "-")
    return out
