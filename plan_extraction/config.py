"""Runtime settings for the extraction pipeline, loaded from the environment and an optional .env file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from plan_extraction.clients.llm_client import LlmExtractionClient
from plan_extraction.clients.ocr_client import CloudOcrClient


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    ocr_url: str | None = None
    ocr_api_key: str | None = None
    llm_url: str | None = None
    llm_api_key: str | None = None
    cache_dir: Path = Path(".plan_extraction_cache")
    cache_ttl_days: int = 30
    http_timeout: float = 120.0
    http_max_retries: int = 3
    enable_llm: bool = False

    @classmethod
    def from_env(cls, dotenv_path: Path | None = None) -> Settings:
        load_dotenv(dotenv_path=dotenv_path)
        return cls(
            ocr_url=_env_optional("PLAN_OCR_URL"),
            ocr_api_key=_env_optional("PLAN_OCR_API_KEY"),
            llm_url=_env_optional("PLAN_LLM_URL"),
            llm_api_key=_env_optional("PLAN_LLM_API_KEY"),
            cache_dir=Path(os.getenv("PLAN_CACHE_DIR", ".plan_extraction_cache")),
            cache_ttl_days=int(os.getenv("PLAN_CACHE_TTL_DAYS", "30")),
            http_timeout=float(os.getenv("PLAN_HTTP_TIMEOUT", "120")),
            http_max_retries=int(os.getenv("PLAN_HTTP_MAX_RETRIES", "3")),
            enable_llm=_env_bool("PLAN_ENABLE_LLM", False),
        )


def build_ocr_client(settings: Settings) -> CloudOcrClient | None:
    if settings.ocr_url is None:
        return None
    return CloudOcrClient(
        base_url=settings.ocr_url,
        api_key=settings.ocr_api_key,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
    )


def build_llm_client(settings: Settings) -> LlmExtractionClient | None:
    if settings.llm_url is None:
        return None
    return LlmExtractionClient(
        base_url=settings.llm_url,
        api_key=settings.llm_api_key,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
    )
