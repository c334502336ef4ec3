"""
Exception handling utilities.

Defines categorized exception types for collaborator failures.

User input problems and guard denials are not exceptions: they are returned
as step results and guard decisions. Exceptions are reserved for failures of
collaborators (payments API, session store) that callers must translate.
"""


class UpstreamError(Exception):
    """Payments API call failed; the flow step must not advance."""

    user_message = "The payments service is not responding. Please try again."

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UpstreamUnavailable(UpstreamError):
    """Network error or 5xx response."""


class UpstreamTimeout(UpstreamError):
    """Call exceeded its timeout; outcome unknown, never assumed successful."""

    user_message = "The payments service took too long to answer. Please try again."


class UpstreamRejected(UpstreamError):
    """API answered with a 4xx: the request itself was refused."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.detail = detail

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return self.detail or "The request was refused by the payments service."

    @property
    def is_unauthorized(self) -> bool:
        return self.status in (401, 403)


class SessionConflictError(Exception):
    """Stored session changed since it was read (stale write)."""

    def __init__(self, user_id: str, expected_version: int) -> None:
        super().__init__(
            f"Session for user {user_id} changed (expected version {expected_version})"
        )
        self.user_id = user_id
        self.expected_version = expected_version


class LockTimeoutError(Exception):
    """Per-user lock could not be acquired in time."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Could not acquire lock for {key}")
        self.key = key
