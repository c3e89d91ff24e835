# studyflow/config/settings.py

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

# Expose BASE_DIR for other modules
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


@dataclass
class Settings:
    # Core OpenAI config
    openai_api_key: str
    openai_model: str = "gpt-4.1-mini"

    # Image generation model used by the tutor's image tool
    openai_image_model: str = "gpt-image-1"

    # Video generation model
    openai_video_model: str = "sora-2"

    # Base URL override (proxies, compatible gateways)
    openai_base_url: str = "https://api.openai.com/v1"

    # Durable local storage
    db_path: str = str(BASE_DIR / "studyflow" / "data" / "studyflow.db")

    # Quality/latency tuning knobs
    openai_timeout_seconds: float = 60.0   # total request timeout
    openai_max_retries: int = 2           # how many times to retry transient failures

    # Video job polling
    video_poll_seconds: float = 5.0
    video_max_wait_seconds: float = 600.0

    # "Saving..." indicator lifetime after each history write
    saving_indicator_seconds: float = 0.8


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
        # safeguard: enforce positive
        return value if value > 0 else default
    except ValueError:
        return default


def _parse_int_env(name: str, default: int, min_val: int = 0, max_val: int = 10) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
        # safeguard: clamp into sane range
        return max(min_val, min(max_val, value))
    except ValueError:
        return default


def _normalize_base_url(raw: str) -> str:
    """
    Strip quotes and trailing slashes; make sure the base ends with /v1.
    """
    base = (raw or "").strip()
    if len(base) >= 2 and base[0] == base[-1] and base[0] in ("'", '"'):
        base = base[1:-1].strip()
    if not (base.startswith("http://") or base.startswith("https://")):
        raise RuntimeError(f"OPENAI_BASE_URL is invalid (missing scheme): {base!r}")
    base = base.rstrip("/")
    if "/v1/" in base:
        return base.split("/v1/")[0] + "/v1"
    if base.endswith("/v1"):
        return base
    return base + "/v1"


def load_settings() -> Settings:
    """
    Load configuration from environment variables (and defaults).
    Raises a RuntimeError if required settings are missing.
    Also ensures the DB directory exists.
    """
    # --- Required: API key ---
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set in .env or environment")

    # --- Models ---
    openai_model = os.getenv("OPENAI_MODEL", "gpt-4.1-mini").strip() or "gpt-4.1-mini"
    openai_image_model = os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1").strip() or "gpt-image-1"
    openai_video_model = os.getenv("OPENAI_VIDEO_MODEL", "sora-2").strip() or "sora-2"

    base_url = _normalize_base_url(
        os.getenv("OPENAI_BASE_URL") or os.getenv("OPENAI_API_BASE") or "https://api.openai.com"
    )

    # --- DB path (optional override) ---
    default_db_path = BASE_DIR / "studyflow" / "data" / "studyflow.db"
    db_path_env = os.getenv("STUDYFLOW_DB_PATH", str(default_db_path)).strip() or str(default_db_path)
    db_path = Path(db_path_env)

    # Ensure data directory exists for DB
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # --- Quality / speed tuning knobs ---
    timeout_seconds = _parse_float_env("OPENAI_TIMEOUT_SECONDS", 60.0)
    max_retries = _parse_int_env("OPENAI_MAX_RETRIES", 2, min_val=0, max_val=5)

    # --- Video polling ---
    poll_seconds = _parse_float_env("STUDYFLOW_VIDEO_POLL_SECONDS", 5.0)
    max_wait_seconds = _parse_float_env("STUDYFLOW_VIDEO_MAX_WAIT_SECONDS", 600.0)

    settings = Settings(
        openai_api_key=api_key,
        openai_model=openai_model,
        openai_image_model=openai_image_model,
        openai_video_model=openai_video_model,
        openai_base_url=base_url,
        db_path=str(db_path),
        openai_timeout_seconds=timeout_seconds,
        openai_max_retries=max_retries,
        video_poll_seconds=poll_seconds,
        video_max_wait_seconds=max_wait_seconds,
    )

    return settings
