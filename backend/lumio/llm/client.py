"""
LLM Client — the single call site for AI text and vision requests

Wraps a LangChain chat model with:
  - a hard per-call timeout (no provider call may block a worker indefinitely)
  - error classification into TransientProviderError / ProviderError
  - defensive JSON extraction from free-form model output

The OCR and analysis engines only speak to this class, so tests replace it
with an AsyncMock and never touch the network.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage

from lumio.core.config import Settings
from lumio.core.exceptions import (
    ProviderError,
    ProviderResponseError,
    TransientProviderError,
)
from lumio.llm.retry import is_retryable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def parse_json_object(raw: str) -> dict[str, Any]:
    """
    Parse the JSON object embedded in a model response.

    Models like to wrap JSON in markdown fences or prose, so take everything
    between the first '{' and the last '}'.
    """
    start = raw.find("{")
    end   = raw.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ProviderResponseError("No JSON object found in the model response")

    try:
        parsed = json.loads(raw[start:end + 1])
    except json.JSONDecodeError as exc:
        raise ProviderResponseError(f"Malformed JSON in model response: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ProviderResponseError("Model response JSON is not an object")
    return parsed


# ---------------------------------------------------------------------------
# Model factory
# ---------------------------------------------------------------------------

def build_chat_model(settings: Settings, *, vision: bool = False) -> BaseChatModel:
    """Instantiate the configured LangChain chat model."""
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.llm_vision_model if vision else settings.llm_model,
        api_key=settings.openai_api_key,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,   # retries are owned by lumio.llm.retry
    )


# ---------------------------------------------------------------------------
# LLMClient
# ---------------------------------------------------------------------------

class LLMClient:
    """
    Thin async facade over a chat model.

    Safe for concurrent use: holds no per-request state.
    """

    def __init__(
        self,
        model:           BaseChatModel,
        vision_model:    BaseChatModel | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._model        = model
        self._vision_model = vision_model or model
        self._timeout      = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            model=build_chat_model(settings),
            vision_model=build_chat_model(settings, vision=True),
            timeout_seconds=settings.llm_timeout_seconds,
        )

    async def complete(self, prompt: str) -> str:
        """Send a single user prompt and return the raw text answer."""
        return await self._invoke(self._model, [HumanMessage(content=prompt)], "text")

    async def complete_with_image(
        self,
        prompt:      str,
        image_bytes: bytes,
        mime_type:   str = "image/png",
    ) -> str:
        """Send a prompt plus one inline image (base64 data URL)."""
        encoded = base64.b64encode(image_bytes).decode("ascii")
        message = HumanMessage(content=[
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
        ])
        return await self._invoke(self._vision_model, [message], "vision")

    async def complete_json(self, prompt: str) -> dict[str, Any]:
        return parse_json_object(await self.complete(prompt))

    async def complete_json_with_image(
        self,
        prompt:      str,
        image_bytes: bytes,
        mime_type:   str = "image/png",
    ) -> dict[str, Any]:
        return parse_json_object(await self.complete_with_image(prompt, image_bytes, mime_type))

    async def _invoke(self, model: BaseChatModel, messages: list[BaseMessage], kind: str) -> str:
        t0 = time.perf_counter()
        try:
            result = await asyncio.wait_for(model.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TransientProviderError(
                f"LLM {kind} call timed out after {self._timeout}s"
            ) from exc
        except ProviderError:
            raise
        except Exception as exc:
            if is_retryable(exc):
                raise TransientProviderError(f"{type(exc).__name__}: {exc}") from exc
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        content = result.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )

        logger.debug(
            "LLMClient | kind=%s latency_ms=%.1f chars=%d",
            kind, (time.perf_counter() - t0) * 1000, len(content),
        )
        return content
