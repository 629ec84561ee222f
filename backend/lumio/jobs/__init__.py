"""
Jobs Package — durable queue semantics over a ledger + Celery transport

  JobQueue      enqueue / claim / progress / ack / nack / status / delete
  JobRunner     one attempt of the extraction → redaction → analysis pipeline
  JobStore      ledger backends (in-memory, Redis)
  JobDispatcher message publishing (Celery)
"""

from lumio.jobs.dispatch import CeleryDispatcher, JobDispatcher
from lumio.jobs.queue import JobQueue, StalledSweep, is_job_id, new_job_id
from lumio.jobs.runner import JobOutcome, JobRunner
from lumio.jobs.store import InMemoryJobStore, JobStore, RedisJobStore

__all__ = [
    "CeleryDispatcher",
    "InMemoryJobStore",
    "JobDispatcher",
    "JobOutcome",
    "JobQueue",
    "JobRunner",
    "JobStore",
    "RedisJobStore",
    "StalledSweep",
    "is_job_id",
    "new_job_id",
]
