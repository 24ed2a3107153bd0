"""LLM provider loader.

Centralises construction of chat models so we can swap providers via env vars.
Supports OpenAI by default and Groq when `langchain-groq` is installed.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from langchain_core.language_models.chat_models import BaseChatModel

load_dotenv()


class LLMConfigError(RuntimeError):
    """Raised when the requested LLM provider cannot be initialised."""


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip() or default


def get_provider_name() -> str:
    return (_env("LLM_PROVIDER", "openai") or "openai").lower()


def _resolve_model(default: str) -> str:
    return _env("LLM_MODEL", default) or default


def create_chat_model(temperature: float = 0.1) -> BaseChatModel:
    """Return a LangChain chat model for the configured provider."""

    provider = get_provider_name()

    if provider in {"openai", "oa"}:
        from langchain_openai import ChatOpenAI

        api_key = _env("LLM_API_KEY") or _env("OPENAI_API_KEY")
        if not api_key:
            raise LLMConfigError(
                "OpenAI provider selected but no API key found. "
                "Set LLM_API_KEY or OPENAI_API_KEY."
            )

        kwargs: Dict[str, Any] = {
            "model": _resolve_model("gpt-4o"),
            "temperature": temperature,
            "api_key": api_key,
        }
        base_url = _env("LLM_BASE_URL") or _env("OPENAI_BASE_URL")
        if base_url:
            kwargs["base_url"] = base_url.rstrip("/")
        return ChatOpenAI(**kwargs)

    if provider == "groq":
        try:
            from langchain_groq import ChatGroq  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise LLMConfigError(
                "Groq provider selected but langchain-groq is not installed. "
                "Run `pip install langchain-groq` or switch LLM_PROVIDER."
            ) from exc

        api_key = _env("LLM_API_KEY") or _env("GROQ_API_KEY")
        if not api_key:
            raise LLMConfigError(
                "Groq provider selected but no API key found. "
                "Set LLM_API_KEY or GROQ_API_KEY."
            )

        return ChatGroq(
            model=_resolve_model("llama-3.1-8b-instant"),
            temperature=temperature,
            groq_api_key=api_key,
        )

    raise LLMConfigError(
        f"Unsupported LLM_PROVIDER '{provider}'. Expected 'openai' or 'groq'."
    )


def get_chat_model(temperature: float = 0.1) -> BaseChatModel:
    """Public entry point used by the rest of the app."""

    return create_chat_model(temperature=temperature)
