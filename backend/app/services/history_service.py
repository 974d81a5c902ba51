"""
Service layer for saved analysis history.
Persists classified batches per user and loads them back in order.
"""

import uuid
from typing import List, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.analysis import Analysis
from app.models.analysis_item import AnalysisItem
from app.schemas.sentiment import ClassificationResult
from app.utils.logger import get_logger

logger = get_logger(__name__)


class AnalysisNotFoundError(Exception):
    """Raised when an analysis does not exist or belongs to another user."""
    pass


class PersistenceError(Exception):
    """Raised when the database rejects a history operation."""
    pass


class HistoryService:
    """
    Service class for saving, loading, listing and deleting analyses.

    Every operation is scoped to the calling user. Database failures are
    rolled back and surfaced as PersistenceError.
    """

    def __init__(self, db: Session) -> None:
        """
        Initialize the history service.

        Args:
            db: Database session for operations
        """
        self.db: Session = db

    def save(self, user_id: str, title: str, source_type: str,
             results: Sequence[ClassificationResult]) -> Analysis:
        """
        Save a classified batch with its aggregate counts.

        Counts are taken from exactly the results passed in. The analysis and
        its items are committed together.

        Returns:
            The created Analysis
        """
        counts = {"positive": 0, "negative": 0, "neutral": 0}
        for result in results:
            counts[result.sentiment] += 1

        analysis = Analysis(
            user_id=user_id,
            title=title,
            source_type=source_type,
            total_texts=len(results),
            positive_count=counts["positive"],
            negative_count=counts["negative"],
            neutral_count=counts["neutral"],
        )
        analysis.items = [
            AnalysisItem(
                position=position,
                text_content=result.text,
                sentiment=result.sentiment,
                confidence=result.confidence,
                keywords=list(result.keywords),
                explanation=result.explanation,
            )
            for position, result in enumerate(results)
        ]

        try:
            self.db.add(analysis)
            self.db.commit()
            self.db.refresh(analysis)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to save analysis", user_id=user_id, error=str(e))
            raise PersistenceError(f"Failed to save analysis: {str(e)}")

        logger.info("Saved analysis",
                    analysis_id=analysis.id,
                    user_id=user_id,
                    total_texts=analysis.total_texts,
                    positive=analysis.positive_count,
                    negative=analysis.negative_count,
                    neutral=analysis.neutral_count)
        return analysis

    def _get_owned(self, user_id: str, analysis_id: uuid.UUID) -> Analysis:
        try:
            analysis = (self.db.query(Analysis)
                        .filter(Analysis.id == analysis_id, Analysis.user_id == user_id)
                        .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to query analysis", analysis_id=analysis_id, error=str(e))
            raise PersistenceError(f"Failed to read analysis: {str(e)}")

        if not analysis:
            logger.warning("Analysis not found", analysis_id=analysis_id, user_id=user_id)
            raise AnalysisNotFoundError(f"Analysis {analysis_id} not found")
        return analysis

    def load(self, user_id: str, analysis_id: uuid.UUID) -> Tuple[Analysis, List[AnalysisItem]]:
        """
        Load an analysis with its items in saved order.

        Raises:
            AnalysisNotFoundError: If the analysis is missing or not the user's
        """
        analysis = self._get_owned(user_id, analysis_id)
        try:
            items = (self.db.query(AnalysisItem)
                     .filter(AnalysisItem.analysis_id == analysis.id)
                     .order_by(AnalysisItem.position)
                     .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to load analysis items", analysis_id=analysis_id, error=str(e))
            raise PersistenceError(f"Failed to load analysis: {str(e)}")

        logger.info("Loaded analysis", analysis_id=analysis_id, items_count=len(items))
        return analysis, items

    @staticmethod
    def to_results(items: Sequence[AnalysisItem]) -> List[ClassificationResult]:
        """Map saved items back onto classification results."""
        return [
            ClassificationResult(
                id=str(item.id),
                text=item.text_content,
                sentiment=item.sentiment,
                confidence=float(item.confidence),
                keywords=list(item.keywords or []),
                explanation=item.explanation or "",
            )
            for item in items
        ]

    def delete(self, user_id: str, analysis_id: uuid.UUID) -> None:
        """
        Delete an analysis and its items.

        Raises:
            AnalysisNotFoundError: If the analysis is missing or not the user's
        """
        analysis = self._get_owned(user_id, analysis_id)
        try:
            self.db.delete(analysis)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to delete analysis", analysis_id=analysis_id, error=str(e))
            raise PersistenceError(f"Failed to delete analysis: {str(e)}")

        logger.info("Deleted analysis", analysis_id=analysis_id, user_id=user_id)

    def list(self, user_id: str) -> List[Analysis]:
        """List the user's analyses, newest first."""
        try:
            analyses = (self.db.query(Analysis)
                        .filter(Analysis.user_id == user_id)
                        .order_by(Analysis.created_at.desc())
                        .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to list analyses", user_id=user_id, error=str(e))
            raise PersistenceError(f"Failed to list analyses: {str(e)}")

        logger.info("Listed analyses", user_id=user_id, count=len(analyses))
        return analyses
