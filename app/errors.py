"""Error taxonomy shared by the request handlers and the worker.

Request-side errors carry the HTTP status they are rendered with. Worker-side
errors (``JobError``) never reach a client; the worker loop turns them into a
retry or a terminal failure on the job record.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(ServiceError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Unauthorized(ServiceError):
    """Scheduler trigger presented a wrong or missing shared secret."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RateLimited(ServiceError):
    status_code = 429

    def __init__(self, retry_after: int, headers: dict[str, str] | None = None):
        super().__init__(f"Rate limit exceeded. Try again in {retry_after} seconds.")
        self.retry_after = retry_after
        self.headers = headers or {}


class InsufficientCredits(ServiceError):
    status_code = 402

    def __init__(self, message: str = "Insufficient credits"):
        super().__init__(message)


class InvalidSubmission(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404

    def __init__(self, message: str = "Generation not found"):
        super().__init__(message)


class JobError(Exception):
    retryable = True


class TranscriptUnavailable(JobError):
    pass


class MalformedModelOutput(JobError):
    pass
