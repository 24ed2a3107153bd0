"""
LLM collaborator.

Wraps a LangChain chat model behind ``chat_json(system, user)``, which always
returns parsed JSON or raises LLMError. Skills take the collaborator as a
parameter; ``get_client()`` builds one from the environment on demand.
"""

import json
import logging
import re
from typing import Any, Optional, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from .llm_loader import LLMConfigError, get_chat_model

logger = logging.getLogger("uvicorn.error")

JSONPayload = Union[dict, list]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE | re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_PY_LITERAL_RE = re.compile(r"\b(?:None|True|False)\b")
_PY_LITERALS = {"None": "null", "True": "true", "False": "false"}


class LLMError(RuntimeError):
    pass


def _response_text(resp: Any) -> str:
    """Text of a chat response; list content is a sequence of text chunks."""
    content = getattr(resp, "content", None)
    if isinstance(content, list):
        return "".join(c.get("text", "") if isinstance(c, dict) else str(c) for c in content)
    return content if isinstance(content, str) else ""


def load_json_payload(text: str) -> JSONPayload:
    """
    Parse model output: plain or fenced JSON, or the first JSON value embedded
    in prose. Trailing commas and Python literals are tolerated.
    """
    txt = _FENCE_RE.sub("", (text or "").strip())
    starts = [i for i in (txt.find("{"), txt.find("[")) if i >= 0]
    if not starts:
        raise ValueError("no JSON value in response")
    body = txt[min(starts):]
    decoder = json.JSONDecoder()
    try:
        return decoder.raw_decode(body)[0]
    except ValueError:
        repaired = _TRAILING_COMMA_RE.sub(r"\1", body)
        repaired = _PY_LITERAL_RE.sub(lambda m: _PY_LITERALS[m.group(0)], repaired)
        return decoder.raw_decode(repaired)[0]


def _short_error(exc: Exception) -> str:
    return (str(exc) or exc.__class__.__name__).replace("\n", " ").strip()[:200]


# ---------- client ----------


class LLMClient:
    """
    JSON-mode chat against one chat model.

    The model is created on first use so constructing a client never needs
    credentials; a missing key surfaces as LLMError from ``chat_json``.
    """

    def __init__(
        self,
        chat_model: Optional[BaseChatModel] = None,
        *,
        temperature: float = 0.1,
        max_tokens: int = 1024,
    ) -> None:
        self._chat_model = chat_model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _model(self) -> BaseChatModel:
        if self._chat_model is None:
            try:
                self._chat_model = get_chat_model(temperature=self.temperature)
            except LLMConfigError as exc:
                raise LLMError(str(exc)) from exc
        return self._chat_model

    def chat_json(self, system_prompt: str, user_message: str) -> JSONPayload:
        llm = self._model().bind(
            response_format={"type": "json_object"},
            max_tokens=self.max_tokens,
        )
        messages = [
            SystemMessage(system_prompt + "\nReturn ONE JSON object. No prose, no code fences."),
            HumanMessage(user_message),
        ]
        try:
            resp = llm.invoke(messages)
        except Exception as exc:
            raise LLMError(f"invoke_failed: {_short_error(exc)}") from exc

        text = _response_text(resp)
        if not text.strip():
            raise LLMError(f"no_content: additional={getattr(resp, 'additional_kwargs', None)}")
        logger.debug("LLM raw text teaser: %r", text[:200])
        try:
            return load_json_payload(text)
        except ValueError as exc:
            raise LLMError(_short_error(exc)) from exc


def get_client() -> LLMClient:
    """Client for the provider configured in the environment."""
    return LLMClient()
