from __future__ import annotations

from typing import Optional


class VoyageExtractionError(Exception):
    """Base class for pipeline errors."""

    user_message = "An unknown error occurred while processing the documents."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class DocumentReadError(VoyageExtractionError):
    user_message = "A document could not be opened or decoded."

    def __init__(self, document: str, reason: str):
        self.document = document
        self.reason = reason
        super().__init__(f"Cannot read {document}: {reason}")


class PageRenderError(VoyageExtractionError):
    user_message = "A page could not be rendered."

    def __init__(self, document: str, page_number: int, reason: str):
        self.document = document
        self.page_number = page_number
        super().__init__(f"Cannot render page {page_number} of {document}: {reason}")


class ExtractorError(VoyageExtractionError):
    """The structured extractor call failed (transport, model or protocol error)."""

    user_message = "The extraction model call failed."


class CredentialError(ExtractorError):
    user_message = (
        "The extraction model rejected the API key. "
        "Re-enter a valid key (--api-key or OPENAI_API_KEY) and try again."
    )


class ChunkExtractionFailure(VoyageExtractionError):
    """A single chunk produced no rows; recorded, never raised across chunk boundaries."""

    def __init__(self, label: str, index: int, cause: BaseException):
        self.label = label
        self.index = index
        self.cause = cause
        super().__init__(f"{label} chunk {index} failed: {cause}")


class NoDataExtractedError(VoyageExtractionError):
    user_message = (
        "No structured data could be extracted from the provided PDFs. "
        "Please check the files and try again."
    )


class NoVoyagesIdentifiedError(VoyageExtractionError):
    user_message = (
        "Rows were extracted, but none of them carries a voyage number, "
        "so no voyages could be identified."
    )
