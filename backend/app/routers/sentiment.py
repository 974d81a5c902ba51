"""
API routes for session-scoped sentiment analysis.
Handles analysis requests, file uploads, current results, exports and restores.
"""

import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Path, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.routers.deps import get_current_user_id, get_sentiment_service, get_session_registry
from app.schemas.sentiment import (
    AnalyzeRequest, AnalyzeResponse, FileUploadResponse, SampleTextsResponse,
    SessionResultsResponse, SessionStats, TruncationWarning
)
from app.services import export_service
from app.services.history_service import HistoryService
from app.services.sentiment_service import SAMPLE_TEXTS, SentimentService
from app.services.session_store import BatchInProgressError, SessionRegistry
from app.services.upload_service import UploadService
from app.utils.file_handler import TruncatedWarning
from app.utils.logger import get_logger, set_session_id

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["sentiment"])

SessionId = Annotated[str, Path(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_\-]+$")]

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "pdf": "application/pdf",
}


def _warning_schema(warning: Optional[TruncatedWarning]) -> Optional[TruncationWarning]:
    if warning is None:
        return None
    return TruncationWarning(
        original_count=warning.original_count,
        kept_count=warning.kept_count,
        message=str(warning),
    )


@router.get("/sentiment/samples", response_model=SampleTextsResponse)
def get_sample_texts() -> SampleTextsResponse:
    """Sample social media texts for trying the analyzer."""
    return SampleTextsResponse(texts=SAMPLE_TEXTS)


@router.post("/sessions/{session_id}/analyze", response_model=AnalyzeResponse)
async def analyze(
    payload: AnalyzeRequest,
    session_id: SessionId,
    service: SentimentService = Depends(get_sentiment_service),
    registry: SessionRegistry = Depends(get_session_registry),
) -> AnalyzeResponse:
    """
    Classify a batch of texts and make it the session's current results.

    Accepts explicit text items (at most 50) or a pasted block with one text
    per line (only the first 50 lines are analyzed).
    """
    set_session_id(session_id)

    if payload.content is not None:
        logger.info("Analyze pasted text request", content_length=len(payload.content))
        outcome = await service.analyze_pasted(session_id, payload.content)
    else:
        logger.info("Analyze texts request", texts_count=len(payload.texts))
        outcome = await service.analyze_texts(session_id, payload.texts)

    return AnalyzeResponse(
        session_id=session_id,
        source_type=outcome.source_type,
        results=outcome.results,
        stats=registry.get(session_id).stats(),
        warning=_warning_schema(outcome.warning),
    )


@router.post("/sessions/{session_id}/upload", response_model=FileUploadResponse)
async def upload_file(
    session_id: SessionId,
    file: UploadFile = File(...),
) -> FileUploadResponse:
    """
    Extract texts from an uploaded .csv, .txt or .json file.

    The texts are returned for review; send them to the analyze endpoint
    to classify them.
    """
    set_session_id(session_id)

    extraction = await UploadService().parse_upload(file)

    return FileUploadResponse(
        filename=file.filename,
        source_type=extraction.source_type,
        texts=extraction.texts,
        count=len(extraction.texts),
        warning=_warning_schema(extraction.warning),
        message=f"Loaded {len(extraction.texts)} texts from {file.filename}",
    )


@router.get("/sessions/{session_id}/results", response_model=SessionResultsResponse)
async def get_results(
    session_id: SessionId,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResultsResponse:
    """Current results and aggregates for the session."""
    store = registry.peek(session_id)
    return SessionResultsResponse(
        session_id=session_id,
        results=list(store.results),
        stats=store.stats(),
    )


@router.get("/sessions/{session_id}/stats", response_model=SessionStats)
async def get_stats(
    session_id: SessionId,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStats:
    """Aggregates over the session's current results."""
    return registry.peek(session_id).stats()


@router.delete("/sessions/{session_id}/results")
async def clear_results(
    session_id: SessionId,
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict[str, str]:
    """Start a new analysis by emptying the session's results."""
    set_session_id(session_id)
    registry.reset(session_id)
    logger.info("Cleared session results")
    return {"message": "Results cleared"}


@router.get("/sessions/{session_id}/export")
async def export_results(
    session_id: SessionId,
    export_format: str = Query("csv", alias="format", pattern="^(csv|json|pdf)$"),
    filename: str = Query("sentiment-analysis", min_length=1, max_length=100,
                          pattern=r"^[A-Za-z0-9_\-]+$"),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """Download the session's results as CSV, JSON or a PDF report."""
    set_session_id(session_id)
    store = registry.peek(session_id)
    results = store.results

    if export_format == "csv":
        content = export_service.to_csv(results)
    elif export_format == "json":
        content = export_service.to_json(results)
    else:
        content = export_service.to_pdf(results, store.stats())

    logger.info("Exported session results", format=export_format, results_count=len(results))

    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}.{export_format}"'},
    )


@router.post("/sessions/{session_id}/restore/{analysis_id}", response_model=SessionResultsResponse)
async def restore_analysis(
    analysis_id: uuid.UUID,
    session_id: SessionId,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
    db: Session = Depends(get_db),
) -> SessionResultsResponse:
    """Load a saved analysis into the session, replacing its current results."""
    set_session_id(session_id)

    service = HistoryService(db)
    _, items = service.load(user_id, analysis_id)
    results = service.to_results(items)

    if registry.is_busy(session_id):
        raise BatchInProgressError("An analysis is already running for this session")

    store = registry.get(session_id)
    store.replace(results)
    logger.info("Restored analysis into session", analysis_id=analysis_id, results_count=len(results))

    return SessionResultsResponse(session_id=session_id, results=results, stats=store.stats())
