"""
Narrative risk report generation
Sends the composed prompt to an LLM and pulls the JSON payload out of its reply
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests
from google import genai
from google.genai import errors, types

from settings import Settings

logger = logging.getLogger("report-client")

_JSON_RE = re.compile(r"```json\s*([\s\S]*?)```|(\{[\s\S]*\})")


class ReportError(RuntimeError):
    """Base class for report generation failures"""


class ConfigurationError(ReportError):
    pass


class ReportGenerationError(ReportError):
    pass


class ReportParseError(ReportError):
    pass


def extract_json_payload(raw_text: Optional[str]) -> Dict:
    """
    Parse the JSON object embedded in free text.

    Looks for a ```json fenced block first, then the outermost {...} span,
    and finally tries the whole text.
    """
    if not raw_text or not raw_text.strip():
        raise ReportParseError("Empty response from model")

    match = _JSON_RE.search(raw_text)
    candidate = raw_text
    if match:
        candidate = match.group(1) or match.group(2) or raw_text

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ReportParseError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ReportParseError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


class ReportClient(ABC):
    """Common interface: generate() returns the parsed report"""

    provider = "base"
    model = ""

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the raw reply text for prompt"""

    def generate(self, prompt: str) -> Dict:
        logger.info(f"Requesting report from {self.provider} ({self.model}), prompt {len(prompt)} chars")
        raw_text = self.complete(prompt)
        return extract_json_payload(raw_text)


# -----------------------------
# Gemini
# -----------------------------
class GeminiReportClient(ReportClient):
    provider = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash-lite", timeout: int = 300,
                 temperature: float = 0.5, max_output_tokens: int = 3000):
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY missing")
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout * 1000),
        )

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini request failed: {e}")
            raise ReportGenerationError(f"Gemini request failed: {e}") from e

        return response.text or ""


# -----------------------------
# Ollama
# -----------------------------
class OllamaReportClient(ReportClient):
    provider = "ollama"

    def __init__(self, url: str = "http://localhost:11434/api/generate",
                 model: str = "llama3.1:8b", timeout: int = 300):
        self.url = url
        self.model = model
        self.timeout = timeout

    def complete(self, prompt: str) -> str:
        try:
            response = requests.post(
                self.url,
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()["response"]
        except requests.exceptions.RequestException as e:
            logger.error(f"Ollama request failed: {str(e)}")
            raise ReportGenerationError(f"Ollama request failed: {str(e)}") from e
        except (KeyError, ValueError) as e:
            raise ReportGenerationError(f"Unexpected Ollama response: {e}") from e


def build_report_client(settings: Settings) -> ReportClient:
    if settings.llm_provider == "ollama":
        return OllamaReportClient(
            url=settings.ollama_url,
            model=settings.ollama_model,
            timeout=settings.llm_timeout_seconds,
        )
    return GeminiReportClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout=settings.llm_timeout_seconds,
    )
