from lumio.schemas.analysis import (
    AnalysisReport,
    AnalysisResult,
    Hashtag,
    Platform,
    PlatformRewrites,
    Sentiment,
)
from lumio.schemas.jobs import (
    Job,
    JobMeta,
    JobPayload,
    JobResult,
    JobState,
    JobStatusSnapshot,
    QueueStats,
    RetryDecision,
)

__all__ = [
    "AnalysisReport",
    "AnalysisResult",
    "Hashtag",
    "Job",
    "JobMeta",
    "JobPayload",
    "JobResult",
    "JobState",
    "JobStatusSnapshot",
    "Platform",
    "PlatformRewrites",
    "QueueStats",
    "RetryDecision",
    "Sentiment",
]
