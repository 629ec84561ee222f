"""
Storage Package

  KeyValueBackend / InMemoryBackend / RedisBackend   TTL key-value stores
  AnalysisCache                                      fingerprint → analysis
  ResultStore                                        job id → JobResult
  UploadFileStore                                    per-job temporary files
"""

from lumio.storage.backends import (
    InMemoryBackend,
    KeyValueBackend,
    RedisBackend,
    create_redis_client,
)
from lumio.storage.cache import AnalysisCache, fingerprint, normalize_text
from lumio.storage.files import UploadFileStore
from lumio.storage.results import ResultStore

__all__ = [
    "AnalysisCache",
    "InMemoryBackend",
    "KeyValueBackend",
    "RedisBackend",
    "ResultStore",
    "UploadFileStore",
    "create_redis_client",
    "fingerprint",
    "normalize_text",
]
