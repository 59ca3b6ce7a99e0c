from __future__ import annotations

import json
import re
from typing import Any, Iterable, Iterator, Protocol

import requests

from parkshare.config import Settings, settings as default_settings
from parkshare.exceptions import AIServiceError
from parkshare.logging_config import get_logger
from parkshare.models import AIRecommendation, ListingDraft, ParkingSpot

logger = get_logger(__name__)

DESCRIPTION_FAILURE_TEXT = "A secure and convenient parking space."
DESCRIPTION_EMPTY_TEXT = "A great parking spot in a convenient location."

_NOT_PRICE_CHARS = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


class TextModel(Protocol):
    def generate(self, prompt: str) -> str: ...


class GeminiClient:
    """Minimal client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model_name: str = "gemini-3-flash-preview",
        timeout_s: float = 30.0,
    ):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, s: Settings) -> "GeminiClient":
        return cls(
            api_key=s.gemini_api_key,
            base_url=s.gemini_api_base_url,
            model_name=s.gemini_model_name,
            timeout_s=s.gemini_timeout_s,
        )

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AIServiceError("GEMINI_API_KEY is not set")
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def generate(self, prompt: str) -> str:
        try:
            resp = requests.post(
                f"{self.base_url}/models/{self.model_name}:generateContent",
                headers=self._headers(),
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise AIServiceError(f"Gemini request failed: {_shorten_error_text(str(e))}") from e

        if resp.status_code != 200:
            raise AIServiceError(
                f"Gemini generateContent failed: {resp.status_code} {_shorten_error_text(resp.text)}"
            )

        try:
            data = resp.json() if resp.content else {}
        except ValueError as e:
            raise AIServiceError("Gemini returned a non-JSON body") from e

        return _response_text(data)


def _response_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [p.get("text") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    return "".join(texts).strip()


def _shorten_error_text(s: str, max_len: int = 240) -> str:
    if not s:
        return ""
    one_line = " ".join(s.replace("\r", " ").replace("\n", " ").split())
    if len(one_line) <= max_len:
        return one_line
    return one_line[:max_len] + "..."


def _iter_json_arrays(text: str) -> Iterator[list[Any]]:
    """Yield every well-formed JSON array embedded in ``text``, in order."""
    if not text:
        return
    s = text.strip()
    try:
        obj = json.loads(s)
        if isinstance(obj, list):
            yield obj
            return
    except ValueError:
        pass

    decoder = json.JSONDecoder()
    pos = 0
    while True:
        start = s.find("[", pos)
        if start < 0:
            return
        try:
            obj, end = decoder.raw_decode(s, start)
        except ValueError:
            pos = start + 1
            continue
        if isinstance(obj, list):
            yield obj
        pos = end


def _extract_first_json_array(text: str) -> list[Any] | None:
    return next(_iter_json_arrays(text), None)


def _to_recommendation(item: Any) -> AIRecommendation | None:
    if not isinstance(item, dict):
        return None
    spot_id = item.get("spotId", item.get("spot_id"))
    reason = item.get("reason")
    if spot_id is None or isinstance(spot_id, (bool, dict, list)) or not isinstance(reason, str):
        return None
    spot_id = str(spot_id).strip()
    reason = reason.strip()
    if not spot_id or not reason:
        return None
    link = item.get("groundingLink", item.get("grounding_link"))
    return AIRecommendation(
        spot_id=spot_id,
        reason=reason,
        grounding_link=link.strip() if isinstance(link, str) and link.strip() else None,
    )


def _parse_price(text: str) -> float | None:
    cleaned = _NOT_PRICE_CHARS.sub("", text or "")
    # Leading number only, so "12.50." or "1.2.3" still parse.
    m = _LEADING_NUMBER.match(cleaned)
    if not m:
        return None
    price = float(m.group(0))
    if price <= 0 or price == float("inf"):
        return None
    return price


def _spot_context(spots: Iterable[ParkingSpot]) -> list[dict[str, Any]]:
    return [
        {
            "id": s.id,
            "title": s.title,
            "price": s.price_per_hour,
            "address": s.address,
            "type": s.type.value,
        }
        for s in spots
    ]


def recommend_spots(model: TextModel, query: str, candidates: Iterable[ParkingSpot]) -> list[AIRecommendation]:
    """Ask the model which candidate spots fit ``query``.

    Best effort: any transport failure or unparseable answer yields ``[]``.
    """
    try:
        prompt = (
            f'You are a parking assistant. A user is looking for: "{query}".\n'
            f"Available spots: {json.dumps(_spot_context(candidates), ensure_ascii=False)}.\n\n"
            'Return a JSON array of objects with "spotId" and "reason". '
            '"reason" should be a short, encouraging sentence explaining the match.\n'
            'Example: [{"spotId": "1", "reason": "Perfect location for your commute!"}]\n'
            "Return ONLY the raw JSON array."
        )
        text = model.generate(prompt)
        found = False
        recs: list[AIRecommendation] = []
        # Stray arrays like "[1]" in the prose are skipped until one holds recommendations.
        for items in _iter_json_arrays(text):
            found = True
            recs = [r for r in (_to_recommendation(i) for i in items) if r is not None]
            if recs:
                break
        if not found:
            logger.warning("AI recommendation returned no JSON array: %s", _shorten_error_text(text))
            return []
        logger.info("AI recommended %d spot(s) for %r", len(recs), query)
        return recs
    except Exception as e:
        logger.warning("AI recommendation failed: %s", _shorten_error_text(str(e)))
        return []


def generate_description(model: TextModel, draft: ListingDraft) -> str:
    try:
        prompt = (
            f"Write a high-converting 2-sentence description for a {draft.type.value} "
            f"at {draft.address}."
        )
        if draft.features:
            prompt += f" Mention these features: {', '.join(draft.features)}."
        prompt += " Focus on safety and convenience."
        return model.generate(prompt) or DESCRIPTION_EMPTY_TEXT
    except Exception as e:
        logger.warning("AI description failed: %s", _shorten_error_text(str(e)))
        return DESCRIPTION_FAILURE_TEXT


def suggest_price(
    model: TextModel,
    address: str,
    spot_type: str,
    fallback: float = default_settings.fallback_price,
) -> float:
    try:
        text = model.generate(
            f"Suggest a competitive hourly parking price for a {spot_type} in {address}. "
            "Return ONLY the number."
        )
    except Exception as e:
        logger.warning("AI price suggestion failed: %s", _shorten_error_text(str(e)))
        return fallback

    price = _parse_price(text)
    if price is None:
        logger.warning("AI price suggestion was not a number: %s", _shorten_error_text(text))
        return fallback
    return price
