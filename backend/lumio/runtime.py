"""
Runtime — explicit construction of every long-lived collaborator.

One Runtime per process: the API builds it in the FastAPI lifespan, each
Celery worker process builds it on `worker_process_init`. Nothing opens a
connection at import time.

    runtime = Runtime.build(settings)
    ...
    await runtime.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lumio.analysis.engine import AIAnalyzer, ContentAnalysisEngine, HeuristicAnalyzer
from lumio.core.config import Settings
from lumio.jobs.dispatch import JobDispatcher
from lumio.jobs.queue import JobQueue
from lumio.jobs.runner import JobRunner
from lumio.jobs.store import InMemoryJobStore, JobStore, RedisJobStore
from lumio.llm.client import LLMClient
from lumio.processing.extractor import TextExtractorOrchestrator
from lumio.processing.ocr import BaseOCREngine, FallbackOCR, TesseractOCR, VisionLLMOCR
from lumio.processing.pdf import PyMuPDFReader
from lumio.services.jobs import JobService
from lumio.storage.backends import (
    InMemoryBackend,
    KeyValueBackend,
    RedisBackend,
    create_redis_client,
)
from lumio.storage.cache import AnalysisCache
from lumio.storage.files import UploadFileStore
from lumio.storage.results import ResultStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings:  Settings
    kv:        KeyValueBackend
    job_store: JobStore
    queue:     JobQueue
    files:     UploadFileStore
    cache:     AnalysisCache
    results:   ResultStore
    extractor: TextExtractorOrchestrator
    analyzer:  ContentAnalysisEngine
    runner:    JobRunner
    service:   JobService
    _closed:   bool = field(default=False, repr=False)

    @classmethod
    def build(
        cls,
        settings:    Settings,
        *,
        dispatcher:  JobDispatcher | None = None,
        llm:         LLMClient | None = None,
        ocr_engines: list[BaseOCREngine] | None = None,
        pdf_reader:  PyMuPDFReader | None = None,
        kv:          KeyValueBackend | None = None,
        job_store:   JobStore | None = None,
    ) -> "Runtime":
        """
        Wire the pipeline from settings. Keyword overrides replace individual
        collaborators (tests pass fakes; everything else is real).
        """
        if kv is None or job_store is None:
            if settings.store_backend == "memory":
                kv = kv or InMemoryBackend()
                job_store = job_store or InMemoryJobStore(ttl_seconds=settings.job_ttl_seconds)
            else:
                client = create_redis_client(settings)
                kv = kv or RedisBackend(client, settings.key_prefix)
                job_store = job_store or RedisJobStore(
                    client, settings.key_prefix, settings.job_ttl_seconds,
                )

        if dispatcher is None:
            from lumio.jobs.dispatch import CeleryDispatcher
            from lumio.workers.celery_app import celery_app

            dispatcher = CeleryDispatcher(celery_app)

        if llm is None and settings.ai_enabled:
            llm = LLMClient.from_settings(settings)

        if ocr_engines is None:
            ocr_engines = []
            if llm is not None:
                ocr_engines.append(VisionLLMOCR(
                    llm,
                    attempts=settings.ocr_ai_attempts,
                    base_delay=settings.ocr_ai_base_delay_seconds,
                ))
            ocr_engines.append(TesseractOCR(
                lang=settings.tesseract_lang,
                timeout_seconds=settings.ocr_timeout_seconds,
            ))

        queue = JobQueue(
            job_store,
            dispatcher,
            max_attempts=settings.job_max_attempts,
            backoff_base_seconds=settings.job_backoff_base_seconds,
            lease_seconds=settings.job_lease_seconds,
        )
        files   = UploadFileStore(settings.upload_dir)
        cache   = AnalysisCache(kv, settings.cache_ttl_seconds, settings.hashtag_cache_ttl_seconds)
        results = ResultStore(kv, settings.job_ttl_seconds)

        extractor = TextExtractorOrchestrator(
            pdf_reader or PyMuPDFReader(),
            FallbackOCR(ocr_engines),
            max_pages=settings.max_pdf_pages,
            render_scale=settings.pdf_render_scale,
            min_text_chars=settings.text_layer_min_chars,
        )
        ai = None
        if llm is not None:
            ai = AIAnalyzer(
                llm,
                attempts=settings.analysis_ai_attempts,
                base_delay=settings.analysis_ai_base_delay_seconds,
                max_chars=settings.max_analysis_chars,
            )
        analyzer = ContentAnalysisEngine(
            cache, ai, HeuristicAnalyzer(), hashtag_attempts=settings.hashtag_ai_attempts,
        )

        runner  = JobRunner(queue, files, extractor, analyzer, results)
        service = JobService(
            queue, files, results, analyzer,
            max_file_bytes=settings.max_file_size_bytes,
            max_analysis_chars=settings.max_analysis_chars,
        )

        logger.info(
            "Runtime built | store=%s ai=%s ocr=%s worker_id=%s",
            settings.store_backend,
            ai is not None,
            ",".join(e.engine_name for e in ocr_engines),
            runner.worker_id,
        )
        return cls(
            settings=settings, kv=kv, job_store=job_store, queue=queue, files=files,
            cache=cache, results=results, extractor=extractor, analyzer=analyzer,
            runner=runner, service=service,
        )

    async def ping(self) -> bool:
        return await self.kv.ping() and await self.job_store.ping()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Redis stores share one client; closing the KV backend closes it
        await self.kv.close()
        if not isinstance(self.job_store, RedisJobStore):
            await self.job_store.close()
        logger.info("Runtime closed")
