"""Environment configuration.

Values come from the process environment, optionally seeded from a `.env`
file in the repository root. A missing credential is not an error: it
switches every AI-backed operation to canned responses (see
`script_craft.llm.llm_from_config`).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_MOCK_DELAY = 1.5


class AppConfig(BaseModel):
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    mock_delay: float = DEFAULT_MOCK_DELAY
    log_level: str = "INFO"

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)


def load_config(env_file: Path | None = None) -> AppConfig:
    """Read configuration from the environment (after loading `.env`)."""
    load_dotenv(env_file or ROOT / ".env")
    return AppConfig(
        api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL),
        mock_delay=float(os.getenv("SCRIPT_CRAFT_MOCK_DELAY", str(DEFAULT_MOCK_DELAY))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
