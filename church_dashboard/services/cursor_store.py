"""Client-side cursor history for server-issued page tokens."""

from __future__ import annotations

from dataclasses import dataclass

from church_dashboard.services.errors import NoPreviousPage

FIRST_PAGE: str | None = None


@dataclass(frozen=True)
class CursorPosition:
    """Current page number and the token that fetches the next page."""

    page: int
    token: str | None


@dataclass(frozen=True)
class CursorSnapshot:
    page: int
    next_token: str | None
    history: tuple[str | None, ...]


class CursorStore:
    """Tracks the next-page token plus the tokens used to reach each page.

    `history[i]` is the token that produced page `i + 2`, so
    `len(history) == page - 1` always holds.
    """

    def __init__(self) -> None:
        self._page = 1
        self._next_token: str | None = FIRST_PAGE
        self._history: list[str | None] = []

    def reset(self) -> None:
        self._history.clear()
        self._page = 1
        self._next_token = FIRST_PAGE

    def advance(self, token: str | None) -> None:
        """Record that the next token produced a new current page.

        Args:
            token: Next-page token reported by the page just fetched.
        """
        self._history.append(self._next_token)
        self._page += 1
        self._next_token = token

    def retreat(self) -> str | None:
        """Step back one page and return the token that fetches it.

        Raises:
            NoPreviousPage: If already on the first page.
        """
        if not self._history:
            raise NoPreviousPage()
        popped = self._history.pop()
        self._page -= 1
        # The popped token fetches the page after the new current one.
        self._next_token = popped
        return self.current_page_token()

    def remember_next(self, token: str | None) -> None:
        """Store the next token from a fetch that did not move the cursor."""
        self._next_token = token

    def current(self) -> CursorPosition:
        return CursorPosition(page=self._page, token=self._next_token)

    def current_page_token(self) -> str | None:
        """Token that produced the current page (first-page sentinel on page 1)."""
        return self._history[-1] if self._history else FIRST_PAGE

    @property
    def page(self) -> int:
        return self._page

    @property
    def history(self) -> tuple[str | None, ...]:
        return tuple(self._history)

    @property
    def has_previous(self) -> bool:
        return bool(self._history)

    def snapshot(self) -> CursorSnapshot:
        return CursorSnapshot(
            page=self._page, next_token=self._next_token, history=tuple(self._history)
        )

    def restore(self, snapshot: CursorSnapshot) -> None:
        self._page = snapshot.page
        self._next_token = snapshot.next_token
        self._history = list(snapshot.history)
