from __future__ import annotations


class PipelineError(Exception):
    """Base class for every failure raised by the ingestion and retrieval pipeline."""


class InvalidInput(PipelineError):
    """Raised for malformed identifiers, before any I/O happens."""


class ExtractionError(PipelineError):
    """Raised when a source file cannot be turned into text."""


class UnsupportedFormat(ExtractionError):
    pass


class NoExtractableText(ExtractionError):
    pass


class CorruptFile(ExtractionError):
    pass


class NoContentExtracted(PipelineError):
    """Raised when normalized text produces zero chunks."""


class EmbeddingProviderError(PipelineError):
    """Raised when the embedding provider rejects or fails a request."""

    _RATE_LIMIT_MARKERS = ("429", "quota", "resource_exhausted", "rate limit")

    def __init__(self, status: int | None, body: str) -> None:
        super().__init__(f"Embedding provider error (status={status}): {body}")
        self.status = status
        self.body = body

    @property
    def is_rate_limit(self) -> bool:
        if self.status == 429:
            return True
        lowered = (self.body or "").lower()
        return any(marker in lowered for marker in self._RATE_LIMIT_MARKERS)


class MalformedEmbedding(PipelineError):
    """Raised when the provider returns a vector of the wrong dimensionality."""


class PersistenceFailure(PipelineError):
    pass


class RetrievalFailed(PipelineError):
    pass
