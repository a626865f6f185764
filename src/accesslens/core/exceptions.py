"""Exception types surfaced by AccessLens services."""


class AnalysisError(Exception):
    """Base class for errors reported to callers of the analysis services.

    Each subclass carries a stable ``code`` so a presentation layer can map
    it to a status without inspecting the message.
    """

    code = "ANALYSIS_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QueueSaturatedError(AnalysisError):
    """The worker pool and its queue are full; the submission was not accepted."""

    code = "ANALYSIS_QUEUE_FULL"


class JobNotFoundError(AnalysisError):
    """No job exists with the requested id."""

    code = "ANALYSIS_NOT_FOUND"


class InvalidLogFileError(AnalysisError):
    """The uploaded log file cannot be analysed."""

    code = "INVALID_LOG_FILE"


class InvalidTransitionError(RuntimeError):
    """A job was moved to a state that does not follow its current one."""
    pass
