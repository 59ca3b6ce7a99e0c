from __future__ import annotations

import os

from pydantic import BaseModel


def _env(*names: str, default: str = "") -> str:
    for name in names:
        v = os.getenv(name, "").strip()
        if v:
            return v
    return default


def _env_int(name: str) -> int | None:
    v = os.getenv(name, "").strip()
    if not v:
        return None
    try:
        return int(v)
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


class Settings(BaseModel):
    # Hosted text model (Gemini REST API)
    gemini_api_key: str = ""
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model_name: str = "gemini-3-flash-preview"
    gemini_timeout_s: float = 30.0

    # Optional JSON file replacing the built-in seed spots.
    seed_path: str | None = None

    # Seed for listing location jitter; None means non-deterministic.
    random_seed: int | None = None

    log_level: str = "INFO"
    log_format: str = "text"

    # Demo constants
    demo_user_id: str = "user-1"
    booking_hours: int = 2
    fallback_price: float = 12.0
    default_draft_price: float = 10.0
    reference_lat: float = 37.7749
    reference_lng: float = -122.4194
    location_jitter: float = 0.05
    placeholder_image_url: str = "https://picsum.photos/seed/{seed}/800/600"

    # Simulated map viewport (San Francisco)
    map_label: str = "SAN FRANCISCO, CA"
    map_min_lat: float = 37.70
    map_max_lat: float = 37.82
    map_min_lng: float = -122.52
    map_max_lng: float = -122.35


def load_settings() -> Settings:
    return Settings(
        gemini_api_key=_env("GEMINI_API_KEY", "API_KEY"),
        gemini_api_base_url=_env(
            "GEMINI_API_BASE_URL",
            default="https://generativelanguage.googleapis.com/v1beta",
        ).rstrip("/"),
        gemini_model_name=_env("GEMINI_MODEL_NAME", default="gemini-3-flash-preview"),
        gemini_timeout_s=_env_float("GEMINI_TIMEOUT_S", 30.0),
        seed_path=_env("PARKSHARE_SEED_PATH") or None,
        random_seed=_env_int("PARKSHARE_RANDOM_SEED"),
        log_level=_env("PARKSHARE_LOG_LEVEL", default="INFO").upper(),
        log_format=_env("PARKSHARE_LOG_FORMAT", default="text").lower(),
    )


settings = load_settings()
