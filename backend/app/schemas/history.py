"""
Pydantic schemas for saved analysis history.
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.sentiment import ClassificationResult


class SaveAnalysisRequest(BaseModel):
    """Schema for saving a classified batch to history."""
    title: str = Field(..., min_length=1, max_length=255)
    source_type: str = Field("text", pattern="^(text|csv|txt|json)$")
    results: List[ClassificationResult] = Field(..., min_length=1)


class AnalysisResponse(BaseModel):
    """Schema for a saved analysis without its items."""
    id: UUID
    user_id: str
    title: str
    source_type: str
    total_texts: int
    positive_count: int
    negative_count: int
    neutral_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class AnalysisItemResponse(BaseModel):
    """Schema for one saved classified text."""
    id: UUID
    analysis_id: UUID
    position: int
    text_content: str
    sentiment: str
    confidence: float
    keywords: List[str]
    explanation: str
    created_at: datetime

    class Config:
        from_attributes = True


class AnalysisWithItemsResponse(AnalysisResponse):
    """Schema for a saved analysis together with its ordered items."""
    items: List[AnalysisItemResponse]


class AnalysisListResponse(BaseModel):
    """Schema for the caller's saved analyses, newest first."""
    analyses: List[AnalysisResponse]
    total: int
