from __future__ import annotations


class MarketLensError(Exception):
    """Base class for errors raised by the pipeline."""


class SearchServiceError(MarketLensError):
    """A single request to the search service failed.

    ``status_code`` is the HTTP status of the response, or ``None`` when the
    request never produced one (connection reset, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def server_error(self) -> bool:
        return self.status_code is None or self.status_code >= 500

    @property
    def retryable(self) -> bool:
        return self.rate_limited or self.server_error


class TermSearchFailed(MarketLensError):
    """One search term exhausted its retries or hit a non-retryable error."""

    def __init__(self, term: str, cause: SearchServiceError):
        super().__init__(f"Search for '{term}' failed: {cause}")
        self.term = term
        self.cause = cause

    @property
    def rate_limited(self) -> bool:
        return self.cause.rate_limited


class ServiceUnavailableError(MarketLensError):
    """The search service could not serve any term of the strategy."""

    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class InvalidStrategyError(MarketLensError):
    """A search strategy without primary terms reached the gatherer."""


class LLMResponseError(MarketLensError):
    """The language model returned no usable JSON object."""


class PipelineCancelledError(MarketLensError):
    """The caller's timeout elapsed before the run finished."""


class AdmissionRejectedError(MarketLensError):
    """A run was requested while the concurrency ceiling was reached."""

    def __init__(self, active: int, limit: int):
        super().__init__(
            f"Maximum concurrent analyses reached ({active}/{limit}). Please try again later."
        )
        self.active = active
        self.limit = limit
