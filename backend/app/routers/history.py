"""
API routes for saved analysis history.
Handles saving, listing, loading and deleting a user's analyses.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.routers.deps import get_current_user_id
from app.schemas.history import (
    AnalysisListResponse, AnalysisResponse, AnalysisWithItemsResponse,
    AnalysisItemResponse, SaveAnalysisRequest
)
from app.services.history_service import HistoryService
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/analyses", tags=["history"])


@router.post("", response_model=AnalysisResponse, status_code=201)
def save_analysis(
    payload: SaveAnalysisRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> AnalysisResponse:
    """
    Save a classified batch to the user's history.

    Per-sentiment counts are computed from the submitted results and stored
    with the analysis.
    """
    logger.info("Save analysis request",
                title=payload.title,
                source_type=payload.source_type,
                results_count=len(payload.results))

    service = HistoryService(db)
    analysis = service.save(user_id, payload.title, payload.source_type, payload.results)

    return AnalysisResponse.model_validate(analysis)


@router.get("", response_model=AnalysisListResponse)
def list_analyses(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> AnalysisListResponse:
    """List the user's saved analyses, newest first."""
    service = HistoryService(db)
    analyses = service.list(user_id)

    return AnalysisListResponse(
        analyses=[AnalysisResponse.model_validate(a) for a in analyses],
        total=len(analyses)
    )


@router.get("/{analysis_id}", response_model=AnalysisWithItemsResponse)
def get_analysis(
    analysis_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> AnalysisWithItemsResponse:
    """Get a saved analysis with its items in their original order."""
    logger.info("Get analysis request", analysis_id=analysis_id)

    service = HistoryService(db)
    analysis, items = service.load(user_id, analysis_id)

    return AnalysisWithItemsResponse(
        **AnalysisResponse.model_validate(analysis).model_dump(),
        items=[AnalysisItemResponse.model_validate(item) for item in items]
    )


@router.delete("/{analysis_id}")
def delete_analysis(
    analysis_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> dict[str, str]:
    """
    Delete a saved analysis and all of its items.

    This action cannot be undone.
    """
    logger.info("Delete analysis request", analysis_id=analysis_id)

    service = HistoryService(db)
    service.delete(user_id, analysis_id)

    return {"message": "Analysis deleted"}
