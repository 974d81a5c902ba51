"""
SQLAlchemy model for saved sentiment analyses.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Uuid
from sqlalchemy.orm import relationship

from app.db.database import Base


class Analysis(Base):
    """
    Database model for a saved sentiment analysis batch.

    Holds the batch title, where the texts came from, and the per-class
    counts captured at save time. The counts are a snapshot and are never
    recomputed from the items.
    """

    __tablename__ = "analyses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    source_type = Column(String(20), nullable=False, default="text")  # text, csv, txt, json
    total_texts = Column(Integer, nullable=False, default=0)
    positive_count = Column(Integer, nullable=False, default=0)
    negative_count = Column(Integer, nullable=False, default=0)
    neutral_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationship to classified items
    items = relationship(
        "AnalysisItem",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="AnalysisItem.position",
    )

    def __repr__(self) -> str:
        return f"<Analysis(id={self.id}, title='{self.title}', total_texts={self.total_texts})>"
