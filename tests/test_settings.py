"""Tests for environment-driven settings."""

from settings import DEFAULT_PROMPT_PATH, Settings


def test_defaults(monkeypatch):
    for name in ("LLM_PROVIDER", "GEMINI_API_KEY", "PROMPT_TEMPLATE_PATH", "PORT", "PATIENT_AGE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.llm_provider == "gemini"
    assert settings.gemini_api_key is None
    assert settings.prompt_template_path == DEFAULT_PROMPT_PATH
    assert settings.port == 5174
    assert settings.patient_age == "25"
    assert settings.max_upload_bytes == 10 * 1024 * 1024


def test_overrides(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "Ollama")
    monkeypatch.setenv("OLLAMA_MODEL", "mistral")
    monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "60")
    monkeypatch.setenv("PATIENT_GENDER", "male")

    settings = Settings.from_env()

    assert settings.llm_provider == "ollama"
    assert settings.ollama_model == "mistral"
    assert settings.llm_timeout_seconds == 60
    assert settings.patient_gender == "male"


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.setenv("PROMPT_TEMPLATE_PATH", "")

    settings = Settings.from_env()

    assert settings.llm_provider == "gemini"
    assert settings.port == 5174
    assert settings.prompt_template_path == DEFAULT_PROMPT_PATH
