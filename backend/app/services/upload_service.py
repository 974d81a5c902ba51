"""
Service layer for uploaded sentiment files.
Validates the upload and extracts its texts; nothing is stored.
"""

from fastapi import UploadFile

from app.config import get_settings
from app.utils.file_handler import ExtractionResult, TextExtractor
from app.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class UploadService:
    """Turns an uploaded .csv, .txt or .json file into texts ready to analyze."""

    def __init__(self) -> None:
        self.parser: TextExtractor = TextExtractor()

    async def parse_upload(self, file: UploadFile) -> ExtractionResult:
        """
        Validate an uploaded file and extract its texts.

        Args:
            file: Uploaded file object from FastAPI

        Returns:
            ExtractionResult with at most max_batch_size texts

        Raises:
            UnsupportedFormatError: If the extension is not allowed
            EmptyExtractionError: If the file holds no usable texts
            FileValidationError: If the file is too large, not UTF-8 or malformed
        """
        logger.info("File upload received",
                    filename=file.filename,
                    content_type=file.content_type)

        filename = file.filename or ""
        self.parser.validate_file_extension(filename, settings.allowed_extensions)

        raw = await file.read()
        self.parser.validate_file_size(len(raw), settings.max_file_size)
        content = self.parser.decode_content(raw, filename)

        result = self.parser.extract(filename, content, settings.max_batch_size)
        logger.info("File parsed successfully",
                    filename=filename,
                    source_type=result.source_type,
                    texts_count=len(result.texts),
                    truncated_from=result.warning.original_count if result.warning else None)
        return result
