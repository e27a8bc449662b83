"""Error taxonomy for the gift suggestion handler."""
from typing import Optional


class GiftSuggestionError(Exception):
    """Base error rendered as {"success": false, "error": ...}.

    Most business failures answer with HTTP 200 and success=false; only auth
    and quota failures use a non-200 status.
    """

    kind = "processing"
    status = 200

    def __init__(self, message: str, details: Optional[dict] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status is not None:
            self.status = status

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InputError(GiftSuggestionError):
    kind = "input"


class AuthError(GiftSuggestionError):
    kind = "auth"
    status = 401


class QuotaExceededError(GiftSuggestionError):
    kind = "quota"
    status = 429

    def __init__(self, limit: int, remaining: int, role: str, reset_time: Optional[str]):
        super().__init__(
            "Daily AI generation limit reached",
            details={
                "limit": limit,
                "remaining": remaining,
                "role": role,
                "resetTime": reset_time,
            },
        )


class ConfigurationError(GiftSuggestionError):
    kind = "config"


class NotFoundError(GiftSuggestionError):
    kind = "not_found"


class UpstreamError(GiftSuggestionError):
    kind = "upstream"


class NoValidSuggestionsError(GiftSuggestionError):
    kind = "reconciliation"

    def __init__(self, message: str = "No valid suggestions could be matched to real products"):
        super().__init__(message)


class BudgetExceededError(GiftSuggestionError):
    kind = "budget"

    def __init__(self, budget: float):
        super().__init__(
            f"All matching products exceed the budget of {budget:g}",
            details={"budget": budget},
        )
