"""OpenAI chat completion helpers shared by the selector and the personal note endpoint."""
import logging
from typing import List, Optional, Tuple

import openai
from openai import OpenAI

from . import config

logger = logging.getLogger("giftsuggest.llm")

_client: Optional[OpenAI] = None


def get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=config.OPENAI_API_KEY, timeout=config.OPENAI_TIMEOUT_SECONDS, max_retries=0)
    return _client


def _chat_messages(messages: List[dict]) -> List[dict]:
    out = []
    for m in messages:
        role = m.get("role", "user")
        content = m.get("content", "")
        if role == "developer":
            role = "system"
        if role in ("system", "user", "assistant") and content:
            out.append({"role": role, "content": content})
    return out


def complete_json(messages: List[dict], max_tokens: int) -> Tuple[str, str]:
    """Forced-JSON completion. Returns (content, finish_reason)."""
    resp = get_client().chat.completions.create(
        model=config.OPENAI_MODEL,
        messages=_chat_messages(messages),
        temperature=config.OPENAI_TEMPERATURE,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    choice = resp.choices[0]
    return (choice.message.content or "").strip(), (choice.finish_reason or "")


def complete_text(system: str, user: str, temperature: float = 0.7, max_tokens: int = 200) -> str:
    resp = get_client().chat.completions.create(
        model=config.OPENAI_MODEL,
        messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return (resp.choices[0].message.content or "").strip()


def is_context_length_error(e: BaseException) -> bool:
    if not isinstance(e, openai.BadRequestError):
        return False
    code = getattr(e, "code", None)
    return code == "context_length_exceeded" or "context length" in str(e).lower() or "context_length" in str(e).lower()


def is_timeout_error(e: BaseException) -> bool:
    return isinstance(e, openai.APITimeoutError)
