"""
Exception types raised by the submission engine.

AuthenticationFailure is batch-fatal. PageNotAvailable fails fast when the
browser session is not started or already closed. SubmissionRejected and
StabilityTimeout drive the retry ladder. RowValidationFailure skips a row.
UnexpectedError records any other row failure.
"""


class SubmissionError(Exception):
    """Base class for all submission engine errors."""
    pass


class AuthenticationFailure(SubmissionError):
    """Raised when login does not complete; stops the batch before any row."""
    pass


class PageNotAvailable(SubmissionError):
    """Raised when the browser page is used outside a live session."""

    def __init__(self, message: str = "Page is not available. Call start() first."):
        super().__init__(message)


class RowValidationFailure(SubmissionError):
    """Raised when a row is malformed or targets the wrong form."""
    pass


class SubmissionRejected(SubmissionError):
    """Raised when the destination signals failure or no success pattern matched."""
    pass


class StabilityTimeout(SubmissionError):
    """Raised when a stability detector deadline elapses during a submission."""
    pass


class UnexpectedError(SubmissionError):
    """Wraps any other exception caught at the row boundary."""

    def __init__(self, original: BaseException):
        super().__init__(f"{type(original).__name__}: {original}")
        self.original = original
