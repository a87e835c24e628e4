from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for generation, catalog, ranking, and rate limits."""
    gemini_api_key: str
    gemini_model: str
    catalog_path: Path
    prompts_dir: Path
    generation_timeout_sec: float
    candidate_cap: int
    compare_cap: int
    additional_cap: int
    rate_limit: int
    rate_limit_window_sec: float
    rate_limit_ttl_sec: float
    log_level: str


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid numeric env values raise ValueError.
    If Removed: App cannot configure catalog, generation, or limits and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve catalog and prompt paths, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = (BASE_DIR / ".." / "resources" / "phones.json").resolve()

    prompts_dir = (BASE_DIR / "prompts").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        catalog_path=catalog_file,
        prompts_dir=prompts_dir,
        generation_timeout_sec=float(os.getenv("GENERATION_TIMEOUT_SEC", "15")),
        candidate_cap=int(os.getenv("CANDIDATE_CAP", "3")),
        compare_cap=int(os.getenv("COMPARE_CAP", "3")),
        additional_cap=int(os.getenv("ADDITIONAL_CAP", "2")),
        rate_limit=int(os.getenv("RATE_LIMIT", "20")),
        rate_limit_window_sec=float(os.getenv("RATE_LIMIT_WINDOW_SEC", "60")),
        rate_limit_ttl_sec=float(os.getenv("RATE_LIMIT_TTL_SEC", "600")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
