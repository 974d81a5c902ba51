"""
Text extraction utilities for uploaded sentiment files.
Turns .csv, .txt and .json uploads (or a pasted block) into an ordered list of texts.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from app.utils.logger import get_logger

logger = get_logger(__name__)

MAX_TEXTS = 50

# First CSV field: a leading quoted value, or everything up to the first comma
CSV_FIRST_FIELD = re.compile(r'^"((?:[^"]|"")*)"|^([^,]*)')


class FileValidationError(Exception):
    """Raised when an uploaded file cannot be read or parsed."""
    pass


class UnsupportedFormatError(FileValidationError):
    """Raised when the file extension is not csv, txt or json."""
    pass


class EmptyExtractionError(FileValidationError):
    """Raised when no usable texts were found in the input."""
    pass


class TruncatedWarning(UserWarning):
    """Non-fatal advisory: the input held more texts than one batch allows."""

    def __init__(self, original_count: int, kept_count: int = MAX_TEXTS) -> None:
        self.original_count = original_count
        self.kept_count = kept_count
        super().__init__(
            f"Input contains {original_count} texts. Only the first {kept_count} will be analyzed."
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Texts pulled out of one upload or paste."""
    texts: List[str]
    source_type: str
    warning: Optional[TruncatedWarning] = None


class TextExtractor:
    """Extractor for sentiment input files in .csv, .txt and .json formats."""

    @staticmethod
    def validate_file_extension(filename: str, allowed_extensions: list[str]) -> None:
        """
        Validate that file has an allowed extension.

        Args:
            filename: Name of the uploaded file
            allowed_extensions: List of allowed file extensions (e.g., ['.csv', '.txt'])

        Raises:
            UnsupportedFormatError: If extension is not allowed
        """
        file_ext = Path(filename).suffix.lower()
        if file_ext not in allowed_extensions:
            logger.warning("Invalid file extension", filename=filename, extension=file_ext)
            raise UnsupportedFormatError(
                f"Unsupported file type '{file_ext or filename}'. Please use CSV, TXT, or JSON files."
            )

    @staticmethod
    def validate_file_size(file_size: int, max_size: int) -> None:
        """
        Validate that file size is within limits.

        Raises:
            FileValidationError: If file is too large
        """
        if file_size > max_size:
            max_mb = max_size / (1024 * 1024)
            current_mb = file_size / (1024 * 1024)
            logger.warning("File too large", file_size_mb=current_mb, max_size_mb=max_mb)
            raise FileValidationError(
                f"File size ({current_mb:.2f} MB) exceeds maximum allowed size ({max_mb:.2f} MB)"
            )

    @staticmethod
    def decode_content(raw: bytes, filename: str) -> str:
        """Decode uploaded bytes as UTF-8, tolerating a leading BOM."""
        try:
            return raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            logger.error("File encoding error", filename=filename)
            raise FileValidationError("File must be valid UTF-8 encoded text")

    @staticmethod
    def parse_txt(content: str) -> List[str]:
        """Each non-blank line is one text."""
        return [line.strip() for line in content.split("\n") if line.strip()]

    @staticmethod
    def parse_csv(content: str) -> List[str]:
        """
        Take the first field of every row.

        A first row mentioning "text" is treated as a header and skipped.
        """
        lines = [line for line in content.split("\n") if line.strip()]
        if not lines:
            return []

        start_index = 1 if "text" in lines[0].lower() else 0

        texts = []
        for line in lines[start_index:]:
            match = CSV_FIRST_FIELD.match(line)
            if match.group(1) is not None:
                value = match.group(1).replace('""', '"')
            else:
                value = match.group(2)
            value = value.strip()
            if value:
                texts.append(value)
        return texts

    @staticmethod
    def _stringify(value: Any) -> str:
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def _first_field(item: Any, fields: tuple) -> str:
        """Return the first truthy field of an object, else the item stringified."""
        if isinstance(item, dict):
            for field in fields:
                if item.get(field):
                    return TextExtractor._stringify(item[field])
        return TextExtractor._stringify(item)

    @staticmethod
    def parse_json(content: str) -> List[str]:
        """
        Extract texts from a JSON document.

        Accepted shapes: a list of strings or objects, {"texts": [...]},
        or {"data": [...]}. Anything else yields no texts.

        Raises:
            FileValidationError: If the content is not valid JSON
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON format", error=str(e))
            raise FileValidationError(f"Invalid JSON format: {str(e)}")

        if isinstance(data, list):
            texts = [TextExtractor._first_field(item, ("text", "content", "message")).strip() for item in data]
            return [text for text in texts if text]

        if isinstance(data, dict):
            if isinstance(data.get("texts"), list):
                return [TextExtractor._stringify(item) for item in data["texts"]]
            if isinstance(data.get("data"), list):
                texts = [TextExtractor._first_field(item, ("text", "content")).strip() for item in data["data"]]
                return [text for text in texts if text]

        logger.info("JSON document has no recognised text container", root_type=type(data).__name__)
        return []

    @staticmethod
    def cap_texts(texts: List[str], source_type: str, max_texts: int = MAX_TEXTS) -> ExtractionResult:
        """
        Apply the shared post-processing to extracted texts.

        Raises:
            EmptyExtractionError: If there is nothing to analyze
        """
        if not texts:
            raise EmptyExtractionError("No valid texts found in the file")

        warning = None
        if len(texts) > max_texts:
            warning = TruncatedWarning(len(texts), max_texts)
            logger.warning("Truncated extracted texts", original_count=len(texts), kept_count=max_texts)
            texts = texts[:max_texts]

        return ExtractionResult(texts=texts, source_type=source_type, warning=warning)

    @staticmethod
    def extract(filename: str, content: str, max_texts: int = MAX_TEXTS) -> ExtractionResult:
        """
        Extract texts from a file based on its extension.

        Args:
            filename: Name of the uploaded file
            content: Decoded content of the file

        Returns:
            ExtractionResult with at most max_texts texts

        Raises:
            UnsupportedFormatError: If the extension is not csv, txt or json
            EmptyExtractionError: If no texts were found
            FileValidationError: If a JSON file cannot be parsed
        """
        file_ext = Path(filename).suffix.lower().lstrip(".")

        logger.info("Extracting texts from file", filename=filename, extension=file_ext)

        if file_ext == "txt":
            texts = TextExtractor.parse_txt(content)
        elif file_ext == "csv":
            texts = TextExtractor.parse_csv(content)
        elif file_ext == "json":
            texts = TextExtractor.parse_json(content)
        else:
            raise UnsupportedFormatError(
                f"Unsupported file type '{file_ext or filename}'. Please use CSV, TXT, or JSON files."
            )

        result = TextExtractor.cap_texts(texts, file_ext, max_texts)
        logger.info("Extracted texts", filename=filename, count=len(result.texts), truncated=bool(result.warning))
        return result

    @staticmethod
    def extract_pasted(content: str, max_texts: int = MAX_TEXTS) -> ExtractionResult:
        """
        Split a pasted block into one text per non-blank line.

        An empty paste yields no texts rather than an error; the batch
        builder rejects it.
        """
        texts = TextExtractor.parse_txt(content)
        if not texts:
            return ExtractionResult(texts=[], source_type="text")
        return TextExtractor.cap_texts(texts, "text", max_texts)
