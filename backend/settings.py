"""
Runtime configuration
Values come from the environment (.env supported) and are read once
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("gene-guard-settings")

DEFAULT_PROMPT_PATH = Path(__file__).parent / "prompts" / "prompt.txt"
SUPPORTED_PROVIDERS = ("gemini", "ollama")


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    llm_provider: str = "gemini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"
    ollama_url: str = "http://localhost:11434/api/generate"
    ollama_model: str = "llama3.1:8b"
    llm_timeout_seconds: int = 300
    genai_prompt: Optional[str] = None
    prompt_template_path: Path = DEFAULT_PROMPT_PATH
    patient_age: str = "25"
    patient_gender: str = "female"
    port: int = 5174
    max_upload_bytes: int = 10 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        provider = _env_str("LLM_PROVIDER", cls.llm_provider).lower()
        if provider not in SUPPORTED_PROVIDERS:
            logger.warning(f"Unknown LLM_PROVIDER {provider!r}, falling back to gemini")
            provider = "gemini"

        return cls(
            llm_provider=provider,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=_env_str("GEMINI_MODEL", cls.gemini_model),
            ollama_url=_env_str("OLLAMA_URL", cls.ollama_url),
            ollama_model=_env_str("OLLAMA_MODEL", cls.ollama_model),
            llm_timeout_seconds=_env_int("LLM_TIMEOUT_SECONDS", cls.llm_timeout_seconds),
            genai_prompt=os.getenv("GENAI_PROMPT") or None,
            prompt_template_path=Path(_env_str("PROMPT_TEMPLATE_PATH", str(DEFAULT_PROMPT_PATH))),
            patient_age=_env_str("PATIENT_AGE", cls.patient_age),
            patient_gender=_env_str("PATIENT_GENDER", cls.patient_gender),
            port=_env_int("PORT", cls.port),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", cls.max_upload_bytes),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
