"""
LLM Package

Provider access for the pipeline's AI stages:
  - LLMClient        text + vision completions with timeouts and error classification
  - with_retry       bounded exponential-backoff retry for transient provider errors
  - prompts          OCR / analysis / hashtag prompt templates
"""

from lumio.llm.client import LLMClient, build_chat_model, parse_json_object
from lumio.llm.retry import is_retryable, with_retry

__all__ = [
    "LLMClient",
    "build_chat_model",
    "is_retryable",
    "parse_json_object",
    "with_retry",
]
