from pathlib import Path

from plan_extraction.clients.llm_client import LlmExtractionClient
from plan_extraction.clients.ocr_client import CloudOcrClient
from plan_extraction.config import Settings, build_llm_client, build_ocr_client

ENV_VARS = [
    "PLAN_OCR_URL",
    "PLAN_OCR_API_KEY",
    "PLAN_LLM_URL",
    "PLAN_LLM_API_KEY",
    "PLAN_CACHE_DIR",
    "PLAN_CACHE_TTL_DAYS",
    "PLAN_HTTP_TIMEOUT",
    "PLAN_HTTP_MAX_RETRIES",
    "PLAN_ENABLE_LLM",
]


def _clear_env(monkeypatch) -> None:
    # setenv first so monkeypatch also removes anything load_dotenv adds
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_without_environment(monkeypatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    settings = Settings.from_env(tmp_path / "missing.env")

    assert settings.ocr_url is None
    assert settings.cache_dir == Path(".plan_extraction_cache")
    assert settings.cache_ttl_days == 30
    assert not settings.enable_llm
    assert build_ocr_client(settings) is None
    assert build_llm_client(settings) is None


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("PLAN_OCR_URL", "https://ocr.test/layout")
    monkeypatch.setenv("PLAN_LLM_URL", " https://llm.test/extract ")
    monkeypatch.setenv("PLAN_LLM_API_KEY", "secret")
    monkeypatch.setenv("PLAN_HTTP_MAX_RETRIES", "5")
    monkeypatch.setenv("PLAN_ENABLE_LLM", "yes")

    settings = Settings.from_env(tmp_path / "missing.env")
    ocr = build_ocr_client(settings)
    llm = build_llm_client(settings)

    assert settings.enable_llm
    assert isinstance(ocr, CloudOcrClient)
    assert ocr.max_retries == 5
    assert isinstance(llm, LlmExtractionClient)
    assert llm.base_url == "https://llm.test/extract"
    assert llm.api_key == "secret"


def test_dotenv_file_is_read(monkeypatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    dotenv = tmp_path / ".env"
    dotenv.write_text("PLAN_OCR_URL=https://ocr.test/layout\nPLAN_CACHE_TTL_DAYS=7\n", encoding="utf-8")

    settings = Settings.from_env(dotenv)
    assert settings.ocr_url == "https://ocr.test/layout"
    assert settings.cache_ttl_days == 7
