"""
Direct Analysis API Router

  POST /api/v1/analyze            text + target platforms → AnalysisReport
  POST /api/v1/analyze/hashtags   text → HashtagReport

Synchronous; no extraction, same cache and AI → heuristic fallback as the
document pipeline.
"""

from __future__ import annotations

from fastapi import APIRouter

from lumio.api.deps import JobServiceDep
from lumio.schemas.analysis import AnalysisReport, AnalyzeRequest, HashtagReport, HashtagRequest
from lumio.schemas.errors import ErrorResponse

router = APIRouter(
    prefix="/analyze",
    tags=["Content Analysis"],
)


@router.post(
    "",
    response_model=AnalysisReport,
    summary="Analyze text directly",
    responses={413: {"model": ErrorResponse, "description": "Text exceeds the length limit"}},
)
async def analyze_text(body: AnalyzeRequest, service: JobServiceDep) -> AnalysisReport:
    return await service.analyze(body.text, body.targets)


@router.post(
    "/hashtags",
    response_model=HashtagReport,
    summary="Suggest hashtags for text",
)
async def suggest_hashtags(body: HashtagRequest, service: JobServiceDep) -> HashtagReport:
    return await service.hashtags(body.text)
