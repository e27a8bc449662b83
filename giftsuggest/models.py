"""
Per-request entities of the gift suggestion pipeline.
Nothing here is persisted; every object lives for one request.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class SubjectProfile:
    id: str
    name: str
    interests: List[str] = field(default_factory=list)
    notes: str = ""
    age: Optional[int] = None
    relationship: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "SubjectProfile":
        interests = row.get("interests") or []
        if isinstance(interests, str):
            interests = [s for s in interests.split(",")]
        age = row.get("age_years", row.get("age"))
        try:
            age = int(age) if age not in (None, "") else None
        except (TypeError, ValueError):
            age = None
        return cls(
            id=str(row.get("id") or ""),
            name=str(row.get("name") or "").strip(),
            interests=[str(i).strip() for i in interests if str(i or "").strip()],
            notes=str(row.get("notes") or "").strip(),
            age=age,
            relationship=str(row.get("relationship") or "").strip(),
        )


@dataclass(frozen=True)
class SearchQuery:
    text: str
    min_price: float
    max_price: float


@dataclass
class CandidateProduct:
    title: str
    price: Optional[float] = None
    asin: Optional[str] = None
    link: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    image_url: Optional[str] = None
    snippet: str = ""
    source: str = ""

    @property
    def key(self) -> str:
        """Stable dedupe key: the identifier when present, else the detail link."""
        if self.asin:
            return f"asin:{self.asin}"
        return f"link:{(self.link or '').lower()}"


@dataclass
class ModelSelection:
    title: str
    price: Optional[float]
    asin: Optional[str]
    confidence: float
    reasoning: str = ""


MATCH_EXACT = "exact"
MATCH_FUZZY = "fuzzy"
MATCH_RELAXED = "relaxed"
MATCH_BACKFILL = "backfill"


@dataclass
class ReconciledSuggestion:
    title: str
    price: Optional[float]
    asin: Optional[str]
    confidence: float
    reasoning: str
    match: str
    candidate: Optional[CandidateProduct] = None


@dataclass
class FinalGiftSuggestion:
    title: str
    description: str
    estimated_price: Optional[float]
    confidence: float
    reasoning: str
    category: str
    match_type: str
    asin: Optional[str] = None
    product_url: Optional[str] = None
    search_url: Optional[str] = None
    cart_url: Optional[str] = None
    purchase_links: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)
    within_budget: bool = True
    rating: Optional[float] = None
    review_count: Optional[int] = None
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        verified = self.match_type == MATCH_EXACT
        price = round(self.estimated_price, 2) if isinstance(self.estimated_price, float) else self.estimated_price
        return {
            "title": self.title,
            "description": self.description,
            "estimatedPrice": price,
            "confidence": round(float(self.confidence), 2),
            "reasoning": self.reasoning,
            "category": self.category,
            "alternatives": list(self.alternatives),
            "purchaseLinks": list(self.purchase_links),
            "withinBudget": bool(self.within_budget),
            "priceInfo": {
                "displayPrice": price,
                "source": "amazon_price" if verified and price is not None else "ai_estimate",
                "originalEstimate": price,
                "amazonPrice": price if verified else None,
            },
            "amazonData": {
                "asin": self.asin,
                "productUrl": self.product_url,
                "addToCartUrl": self.cart_url,
                "searchUrl": self.search_url,
                "matchType": self.match_type,
                "rating": self.rating,
                "reviewCount": self.review_count,
                "imageUrl": self.image_url,
            },
        }
