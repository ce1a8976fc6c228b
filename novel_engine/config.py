"""Runtime settings read from the environment (and an optional .env file).

    NOVEL_ENGINE_LLM_URL              base URL of the text-generation backend
    NOVEL_ENGINE_LLM_API_KEY          bearer token, empty when not required
    NOVEL_ENGINE_LLM_FORMAT           koboldcpp | openai | chat (default chat)
    NOVEL_ENGINE_LLM_MODEL            model id for the openai/chat formats
    NOVEL_ENGINE_LLM_TIMEOUT          HTTP timeout in seconds (default 120)
    NOVEL_ENGINE_CHECK_REFERENCES     reject dangling scene references on load
    NOVEL_ENGINE_ALLOW_DUPLICATE_IDS  accept repeated scene ids on load
    NOVEL_ENGINE_LOG_LEVEL            logging level name (default WARNING)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import get_args

from dotenv import load_dotenv

from novel_engine.llm import HttpLLM, ProviderFormat

_TRUE = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE


@dataclass(frozen=True)
class Settings:
    llm_url: str = ""
    llm_api_key: str = ""
    llm_format: ProviderFormat = "chat"
    llm_model: str = ""
    llm_timeout: float = 120.0
    check_references: bool = False
    allow_duplicate_ids: bool = False
    log_level: str = "WARNING"

    def create_llm(self) -> HttpLLM:
        if not self.llm_url:
            raise ValueError("NOVEL_ENGINE_LLM_URL is not set")
        return HttpLLM(
            provider_url=self.llm_url,
            api_key=self.llm_api_key,
            provider_format=self.llm_format,
            model=self.llm_model,
            timeout=self.llm_timeout,
        )


def load_settings(env_file: Path | None = None) -> Settings:
    """Read Settings from the environment.

    Values already present in the environment win over the .env file.
    """
    load_dotenv(env_file or Path.cwd() / ".env")

    fmt = os.getenv("NOVEL_ENGINE_LLM_FORMAT", "chat")
    if fmt not in get_args(ProviderFormat):
        raise ValueError(f"Unknown NOVEL_ENGINE_LLM_FORMAT {fmt!r}")

    timeout = os.getenv("NOVEL_ENGINE_LLM_TIMEOUT", "120")
    try:
        llm_timeout = float(timeout)
    except ValueError as e:
        raise ValueError(f"NOVEL_ENGINE_LLM_TIMEOUT must be a number, got {timeout!r}") from e

    return Settings(
        llm_url=os.getenv("NOVEL_ENGINE_LLM_URL", ""),
        llm_api_key=os.getenv("NOVEL_ENGINE_LLM_API_KEY", ""),
        llm_format=fmt,
        llm_model=os.getenv("NOVEL_ENGINE_LLM_MODEL", ""),
        llm_timeout=llm_timeout,
        check_references=_env_bool("NOVEL_ENGINE_CHECK_REFERENCES"),
        allow_duplicate_ids=_env_bool("NOVEL_ENGINE_ALLOW_DUPLICATE_IDS"),
        log_level=os.getenv("NOVEL_ENGINE_LOG_LEVEL", "WARNING").upper(),
    )
