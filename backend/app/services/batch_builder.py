"""
Validation and payload construction for sentiment batches.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from app.config import get_settings
from app.schemas.sentiment import TextItem
from app.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class BatchValidationError(Exception):
    """Raised when a batch is rejected before any oracle call."""
    pass


class EmptyBatchError(BatchValidationError):
    """Raised when a batch has no texts."""
    pass


class BatchTooLargeError(BatchValidationError):
    """Raised when a batch exceeds the per-call ceiling."""
    pass


@dataclass(frozen=True)
class SentimentBatch:
    """A validated, ordered group of texts ready for one oracle call."""
    items: Tuple[TextItem, ...]

    def __len__(self) -> int:
        return len(self.items)

    def to_payload(self) -> Dict[str, Any]:
        """Wire form of the batch: {"texts": [{"text", "id"?}, ...]}."""
        return {"texts": [item.model_dump(exclude_none=True) for item in self.items]}

    def numbered_lines(self) -> List[str]:
        """Prompt lines pairing each text with its 1-based position."""
        return [f'[{position}] "{item.text}"' for position, item in enumerate(self.items, 1)]


def build_batch(items: Sequence[TextItem], max_size: int = None) -> SentimentBatch:
    """
    Validate a list of text items and wrap it as a batch.

    Identifiers are left as given; missing ones are assigned during
    reconciliation.

    Raises:
        EmptyBatchError: If the list is empty
        BatchTooLargeError: If the list holds more than max_size items
    """
    if max_size is None:
        max_size = settings.max_batch_size

    if not items:
        raise EmptyBatchError("Please provide at least one text to analyze")

    if len(items) > max_size:
        logger.warning("Batch rejected as too large", size=len(items), max_size=max_size)
        raise BatchTooLargeError(f"Maximum {max_size} texts can be analyzed at once")

    batch = SentimentBatch(items=tuple(items))
    logger.info("Built sentiment batch", size=len(batch))
    return batch
