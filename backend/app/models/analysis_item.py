"""
SQLAlchemy model for individual classified texts of a saved analysis.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Text, Float, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship

from app.db.database import Base


class AnalysisItem(Base):
    """
    Database model for one classified text within a saved analysis.

    Rows are written in the same transaction as their parent analysis and
    removed with it.
    """

    __tablename__ = "analysis_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    analysis_id = Column(Uuid, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0-based order within the batch
    text_content = Column(Text, nullable=False)
    sentiment = Column(String(20), nullable=False, index=True)  # positive, negative, neutral
    confidence = Column(Float, nullable=False)  # 0.5 to 1.0
    keywords = Column(JSON, nullable=False, default=list)
    explanation = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationship
    analysis = relationship("Analysis", back_populates="items")

    def __repr__(self) -> str:
        return f"<AnalysisItem(id={self.id}, sentiment='{self.sentiment}', confidence={self.confidence})>"
