"""
Pydantic schemas for sentiment analysis requests, results and session views.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

Sentiment = Literal["positive", "negative", "neutral"]


class TextItem(BaseModel):
    """One text submitted for classification, with an optional caller id."""
    text: str
    id: Optional[str] = None

    class Config:
        frozen = True


class ClassificationResult(BaseModel):
    """Sentiment judgment for one input text."""
    id: str
    text: str
    sentiment: Sentiment
    confidence: float = Field(..., ge=0.5, le=1.0)
    keywords: List[str] = Field(default_factory=list, max_length=5)
    explanation: str

    class Config:
        frozen = True
        from_attributes = True


class TruncationWarning(BaseModel):
    """Advisory returned when an input list was cut down to the batch ceiling."""
    code: str = "TRUNCATED"
    original_count: int
    kept_count: int
    message: str


class AnalyzeRequest(BaseModel):
    """
    Schema for an analyze call.

    Either explicit text items or a pasted block (one text per line).
    """
    texts: Optional[List[TextItem]] = None
    content: Optional[str] = None

    @model_validator(mode="after")
    def check_one_source(self) -> "AnalyzeRequest":
        if self.texts is None and self.content is None:
            raise ValueError("Provide either 'texts' or 'content'")
        if self.texts is not None and self.content is not None:
            raise ValueError("Provide only one of 'texts' or 'content'")
        return self


class SessionStats(BaseModel):
    """Aggregate view over the results held by a session."""
    total: int
    positive: int
    negative: int
    neutral: int
    avg_confidence: float


class AnalyzeResponse(BaseModel):
    """Schema for a completed batch classification."""
    session_id: str
    source_type: str
    results: List[ClassificationResult]
    stats: SessionStats
    warning: Optional[TruncationWarning] = None


class SessionResultsResponse(BaseModel):
    """Schema for reading the results currently held by a session."""
    session_id: str
    results: List[ClassificationResult]
    stats: SessionStats


class FileUploadResponse(BaseModel):
    """Schema for file upload API response."""
    filename: str
    source_type: str
    texts: List[str]
    count: int
    warning: Optional[TruncationWarning] = None
    message: str


class SampleTextsResponse(BaseModel):
    """Schema for the built-in sample texts."""
    texts: List[str]
