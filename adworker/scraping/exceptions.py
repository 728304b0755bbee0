class ScrapingError(Exception):
    """Base exception for all scraping service errors."""


class TransientTransportError(ScrapingError):
    """Raised for retryable transport failures (connection reset, timeout, 429/5xx)."""


class UpstreamJobFailedError(ScrapingError):
    """Raised when the scraping service reports the job itself as failed."""


class PollTimeoutError(ScrapingError, TimeoutError):
    """Raised when the poll budget is exhausted before the job finishes."""


class ResultUnavailableError(ScrapingError):
    """Raised when a finished job has no retrievable result body."""


class SubmissionError(ScrapingError):
    """Raised when a job cannot be submitted to the scraping service."""


class RenderingUnavailableError(ScrapingError):
    """Raised when the rendering endpoint cannot be reached at all."""


class InvalidRenderTargetError(ScrapingError):
    """Raised when a URL cannot be rendered (empty, malformed or local)."""


class ServiceUnreachableError(TransientTransportError):
    """Raised when no connection to the service could be established."""
