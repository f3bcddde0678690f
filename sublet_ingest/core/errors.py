class IngestionError(Exception):
    """Base error for the ingestion pipeline."""


class RejectedInput(IngestionError):
    """Raised when a raw post is permanently unprocessable."""


class ExtractionFailure(IngestionError):
    """Raised when the AI extractor fails or returns an unusable payload."""


class GeocodeFailure(IngestionError):
    """Raised when an external geocoding lookup fails."""


class PersistenceFailure(IngestionError):
    """Raised when a write to the listing store fails."""


class ConfigurationFailure(IngestionError):
    """Raised when a required credential or endpoint is missing."""
