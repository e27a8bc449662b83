"""POST /generate-personal-note - short third-person note about a person."""
import logging

import openai
from flask import jsonify, request

from . import config, llm
from .errors import ConfigurationError, GiftSuggestionError, InputError, UpstreamError

logger = logging.getLogger("giftsuggest.personal_note")

PERSONAL_NOTE_PROMPT = (
    "You write short personal notes about people for a gift planning app. "
    "Write 2-3 sentences in the third person, warm and specific, based only on the facts given. "
    "Start the note with \"{name} is\". No greetings, no lists, no emojis."
)


def _describe_person(data: dict) -> str:
    lines = [f"Name: {data['name']}", f"Relationship: {data['relationship']}"]
    if data.get("gender"):
        lines.append(f"Gender: {data['gender']}")
    if data.get("age") not in (None, ""):
        lines.append(f"Age: {data['age']}")
    interests = data.get("interests")
    if isinstance(interests, list):
        interests = ", ".join(str(i).strip() for i in interests if str(i).strip())
    if interests:
        lines.append(f"Interests: {interests}")
    return "\n".join(lines)


def _validate(data) -> dict:
    if not isinstance(data, dict):
        raise InputError("Missing or invalid request body")
    name = str(data.get("name") or "").strip()
    relationship = str(data.get("relationship") or "").strip()
    if not name or not relationship:
        raise InputError("Name and relationship are required")
    return {**data, "name": name, "relationship": relationship}


def generate_personal_note(data: dict) -> str:
    data = _validate(data)
    if not config.OPENAI_API_KEY:
        raise ConfigurationError("Language model is not configured")
    try:
        note = llm.complete_text(
            PERSONAL_NOTE_PROMPT.format(name=data["name"]),
            _describe_person(data),
            temperature=0.7,
            max_tokens=200,
        )
    except openai.OpenAIError as e:
        raise UpstreamError("Personal note generation failed", details={"reason": str(e)}) from e
    if not note:
        raise UpstreamError("Personal note generation returned no text")
    return note


def personal_note():
    if request.method == "OPTIONS":
        return ("", 204)
    try:
        note = generate_personal_note(request.get_json(silent=True))
    except GiftSuggestionError as e:
        logger.warning("[PERSONAL_NOTE] failed kind=%s: %s", e.kind, e.message)
        return jsonify(e.to_payload()), e.status
    except Exception as e:
        logger.exception("[PERSONAL_NOTE] unexpected error")
        return jsonify({"success": False, "error": "Internal server error", "details": str(e)}), 200
    return jsonify({"success": True, "personalNote": note})
