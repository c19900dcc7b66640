"""Custom exception classes for the application."""

from typing import Any


class ContentSystemError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# Document store errors
class DocumentStoreError(ContentSystemError):
    """Document store request failed."""

    def __init__(
        self,
        collection: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.collection = collection
        super().__init__(f"{collection}: {message}", details)


class SlugConflictError(DocumentStoreError):
    """Create rejected because a record with the same slug already exists."""

    def __init__(self, collection: str, slug: str | None = None) -> None:
        self.slug = slug
        suffix = f" (slug: {slug})" if slug else ""
        super().__init__(collection, f"unique slug violation{suffix}")


class DocumentNotFoundError(DocumentStoreError):
    """Record not found."""

    def __init__(self, collection: str, record_id: Any) -> None:
        super().__init__(collection, f"record not found: {record_id}")


# Pipeline errors
class PipelineError(ContentSystemError):
    """Base class for pipeline errors."""

    pass


class StepExecutionError(PipelineError):
    """A gated pipeline step failed and the run was aborted."""

    def __init__(self, step_number: int, message: str) -> None:
        self.step_number = step_number
        super().__init__(message)


class ItineraryNotFoundError(PipelineError):
    """Itinerary not found."""

    def __init__(self, itinerary_id: int | str) -> None:
        super().__init__(f"Itinerary {itinerary_id} not found")


class ModelOutputError(PipelineError):
    """Language model returned output that could not be parsed."""

    pass


# External API errors
class ExternalAPIError(ContentSystemError):
    """Error calling external API."""

    def __init__(self, api_name: str, message: str) -> None:
        super().__init__(f"{api_name} API error: {message}")


class APIKeyMissingError(ExternalAPIError):
    """API key not configured."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "API key not configured")
