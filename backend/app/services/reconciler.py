"""
Alignment of raw oracle output back onto the submitted texts.

The oracle answers with free text that should contain a JSON array of
entries shaped like {"index", "sentiment", "confidence", "keywords",
"explanation"}. Locating and decoding that array is a batch-level step;
turning each entry into a ClassificationResult never fails and falls back
to defaults field by field.
"""

import json
import math
import uuid
from typing import Any, Callable, List, Optional, Sequence

from app.schemas.sentiment import ClassificationResult, TextItem
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SENTIMENT = "neutral"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_EXPLANATION = "Unable to determine sentiment."
MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 1.0
MAX_KEYWORDS = 5
SENTIMENTS = ("positive", "negative", "neutral")


class OracleResponseError(Exception):
    """Raised when no JSON array can be recovered from the oracle's reply."""
    pass


def new_result_id() -> str:
    return str(uuid.uuid4())


def extract_json_array(blob: str) -> List[Any]:
    """
    Find the first well-formed JSON array in a block of text.

    The oracle usually wraps its answer in prose or a markdown fence, so the
    blob is scanned from each "[" until one decodes as a list holding at
    least one object. Lists without objects, such as "[1]" markers echoed
    from the prompt, are skipped. An empty array is returned only when no
    list of objects follows it. A reply that is a {"results": [...]} object
    resolves to its inner array the same way.

    Raises:
        OracleResponseError: If no array can be decoded
    """
    if not blob:
        raise OracleResponseError("Empty oracle response")

    decoder = json.JSONDecoder()
    empty_found = False
    start = blob.find("[")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(blob, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            if any(isinstance(entry, dict) for entry in value):
                return value
            if not value:
                empty_found = True
        start = blob.find("[", start + 1)

    if empty_found:
        logger.warning("Oracle response holds only an empty array")
        return []

    logger.error("No JSON array found in oracle response", response_length=len(blob))
    raise OracleResponseError("No JSON array found in response")


def _declared_index(entry: Any) -> Optional[int]:
    if not isinstance(entry, dict):
        return None
    index = entry.get("index")
    if isinstance(index, bool) or not isinstance(index, (int, float)):
        return None
    if isinstance(index, float) and not index.is_integer():
        return None
    return int(index)


def _match_entry(position: int, oracle_output: Sequence[Any]) -> Optional[dict]:
    """
    Pick the oracle entry for a 0-based input position.

    First entry declaring index position+1 wins; otherwise the entry at the
    same raw position. Entries that are not objects count as absent.
    """
    for entry in oracle_output:
        if _declared_index(entry) == position + 1:
            return entry

    if position < len(oracle_output) and isinstance(oracle_output[position], dict):
        return oracle_output[position]
    return None


def clamp_confidence(value: Any) -> float:
    """Coerce an oracle confidence into [0.5, 1.0]; unusable values become 0.5."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        return DEFAULT_CONFIDENCE
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, float(value)))


def _coerce_sentiment(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in SENTIMENTS:
        return value.strip().lower()
    return DEFAULT_SENTIMENT


def _coerce_keywords(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    keywords = [keyword.strip() for keyword in value if isinstance(keyword, str) and keyword.strip()]
    return keywords[:MAX_KEYWORDS]


def _coerce_explanation(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return DEFAULT_EXPLANATION


def reconcile(
    items: Sequence[TextItem],
    oracle_output: Any,
    id_factory: Callable[[], str] = new_result_id,
) -> List[ClassificationResult]:
    """
    Map oracle output onto the input texts.

    Args:
        items: The texts as submitted, in order
        oracle_output: Decoded oracle entries (anything non-list is treated as empty)
        id_factory: Generator for ids of items submitted without one

    Returns:
        One ClassificationResult per input item, in input order
    """
    if not isinstance(oracle_output, list):
        logger.warning("Oracle output is not a list, using defaults",
                       output_type=type(oracle_output).__name__)
        oracle_output = []

    results = []
    defaulted = 0
    for position, item in enumerate(items):
        entry = _match_entry(position, oracle_output)
        if entry is None:
            entry = {}
            defaulted += 1

        results.append(ClassificationResult(
            id=item.id if item.id else id_factory(),
            text=item.text,
            sentiment=_coerce_sentiment(entry.get("sentiment")),
            confidence=clamp_confidence(entry.get("confidence")),
            keywords=_coerce_keywords(entry.get("keywords")),
            explanation=_coerce_explanation(entry.get("explanation")),
        ))

    if defaulted:
        logger.warning("Oracle entries missing for some texts", missing=defaulted, total=len(items))

    return results
