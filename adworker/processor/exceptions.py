class ProcessorError(Exception):
    """Base exception for all pipeline-related errors."""


class QueueInvariantViolation(ProcessorError):
    """Raised when queue state contradicts an expected transition.

    Signals that a previous run crashed mid-transition and the queue needs
    manual recovery. Never swallowed by the worker.
    """


class JobNotFoundError(QueueInvariantViolation):
    """Raised when a job is absent from the pool a transition expects it in."""


class DuplicateJobError(ProcessorError):
    """Raised when enqueueing a job id that is already queued."""


class TrackingRecordNotFoundError(ProcessorError):
    """Raised when a job has no tracking record."""


class StageError(ProcessorError):
    """Raised by a pipeline step to fail its stage with a message."""
