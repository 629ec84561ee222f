"""
Observability Tracing — logging baseline + optional LangSmith

The async pipeline stages (extraction, analysis, hashtags, persistence) are
wrapped in `@traced(name)`, which records elapsed time and failures through
the standard logging module. PII redaction is a synchronous regex pass that
runs inside the job runner without a span. When a LangSmith API key is
configured, LangChain's own callback tracing is switched on as well and every
LLM call made by `lumio.llm.client` shows up in the LangSmith project.

Environment variables:
  LANGSMITH_API_KEY=ls__...
  LANGSMITH_PROJECT=lumio
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Callable, Coroutine, TypeVar

from lumio.core.config import Settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging once per process (API or worker)."""
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# TracingConfig: initialise at process startup
# ---------------------------------------------------------------------------

class TracingConfig:
    """
    Enable LangSmith tracing from settings.

    Call once per process::

        TracingConfig.init(settings)
    """

    _initialised: bool = False

    @classmethod
    def init(cls, settings: Settings) -> None:
        if cls._initialised:
            return
        cls._initialised = True

        # LangChain reads these on first use; explicit env always wins
        if settings.langsmith_api_key and not os.environ.get("LANGCHAIN_API_KEY"):
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_API_KEY"]    = settings.langsmith_api_key
            os.environ["LANGCHAIN_PROJECT"]    = settings.langsmith_project
            logger.info("LangSmith tracing enabled | project=%s", settings.langsmith_project)
        elif os.environ.get("LANGCHAIN_TRACING_V2") == "true":
            logger.info(
                "LangSmith tracing active (from env) | project=%s",
                os.environ.get("LANGCHAIN_PROJECT", "default"),
            )
        else:
            logger.debug("LangSmith tracing disabled")


# ---------------------------------------------------------------------------
# @traced decorator
# ---------------------------------------------------------------------------

def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Instrument an async function with timing and error logging.

    Usage::

        @traced("extraction")
        async def extract(self, data: bytes, mime_type: str) -> ExtractionResult:
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            t0 = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "trace | span=%s elapsed_ms=%.1f error=%s: %s",
                    span_name, (time.perf_counter() - t0) * 1000, type(exc).__name__, exc,
                )
                raise
            logger.debug(
                "trace | span=%s elapsed_ms=%.1f ok",
                span_name, (time.perf_counter() - t0) * 1000,
            )
            return result

        return wrapper  # type: ignore[return-value]
    return decorator
