"""Error taxonomy shared by the list core."""

from __future__ import annotations


class ListCoreError(Exception):
    """Base error with a retryability hint for the UI."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


class NetworkFailure(ListCoreError):
    """Transport or HTTP status failure talking to the backend."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class InvalidResponseShape(ListCoreError):
    """List response did not match `{records, pagination}`."""

    def __init__(self, message: str, *, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NoNextPage(ListCoreError):
    """Forward navigation requested while the current page is the last one."""

    def __init__(self, message: str = "No next page available") -> None:
        super().__init__(message)


class NoPreviousPage(ListCoreError):
    """Back navigation requested on the first page."""

    def __init__(self, message: str = "No previous page available") -> None:
        super().__init__(message)


class LookupLoadFailure(ListCoreError):
    """Options for one filter level could not be loaded."""

    retryable = True

    def __init__(self, level_id: str, message: str) -> None:
        super().__init__(message)
        self.level_id = level_id


class IllegalTransition(ListCoreError):
    """List controller asked to move between phases it cannot connect."""
