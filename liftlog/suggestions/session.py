import asyncio
from contextlib import suppress
from typing import Callable

from loguru import logger

from config.app_settings import settings
from liftlog.enums import SessionState
from liftlog.schemas import FetchErrorInfo, Suggestion
from liftlog.suggestions.freshness import FreshnessController
from liftlog.suggestions.ranking import search_exercises


class SuggestionSession:
    """Autocomplete state for one exercise-name input.

    Keystrokes go through ``on_input`` and are debounced; the list is
    navigated with ``move_up``/``move_down`` and applied with ``select``.
    While a selection is being applied (``SessionState.applying``) input is
    ignored, so echoing the chosen name back into the field does not reopen
    the list. ``finish_apply`` returns the session to idle.
    """

    def __init__(
        self,
        controller: FreshnessController,
        *,
        limit: int | None = None,
        debounce: float | None = None,
        on_results: Callable[[list[Suggestion]], None] | None = None,
    ) -> None:
        self.controller = controller
        self.limit = settings.SUGGESTIONS_LIMIT if limit is None else limit
        self.debounce = settings.SUGGESTIONS_DEBOUNCE_MS / 1000 if debounce is None else debounce
        self._on_results = on_results
        self._state = SessionState.idle
        self._suggestions: list[Suggestion] = []
        self._highlighted = -1
        self._open = False
        self._pending: asyncio.Task[None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def suggestions(self) -> list[Suggestion]:
        return list(self._suggestions)

    @property
    def highlighted(self) -> int:
        return self._highlighted

    @property
    def is_open(self) -> bool:
        return self._open

    def search(self, query: str, limit: int | None = None) -> list[Suggestion]:
        text = (query or "").strip()
        return search_exercises(text, self.controller.snapshot, self.limit if limit is None else limit)

    def is_ready(self) -> bool:
        return self.controller.is_ready

    def last_error(self) -> FetchErrorInfo | None:
        return self.controller.last_error

    def on_input(self, text: str) -> None:
        if self._state == SessionState.applying:
            return
        self._cancel_pending()
        self._highlighted = -1
        if not (text or "").strip():
            self._reset_list()
            self._state = SessionState.idle
            return
        self._state = SessionState.debouncing
        self._pending = asyncio.create_task(self._debounced_search(text))

    async def flush(self) -> None:
        """Wait for a pending debounced search to finish."""
        task = self._pending
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    def move_down(self) -> None:
        if not self._open or not self._suggestions:
            return
        self._highlighted = self._highlighted + 1 if self._highlighted < len(self._suggestions) - 1 else 0

    def move_up(self) -> None:
        if not self._open or not self._suggestions:
            return
        self._highlighted = self._highlighted - 1 if self._highlighted > 0 else len(self._suggestions) - 1

    def select(self) -> Suggestion | None:
        if not self._open or not 0 <= self._highlighted < len(self._suggestions):
            return None
        return self.apply(self._suggestions[self._highlighted])

    def apply(self, suggestion: Suggestion) -> Suggestion:
        self._cancel_pending()
        self._state = SessionState.applying
        self._reset_list()
        return suggestion

    def finish_apply(self) -> None:
        if self._state == SessionState.applying:
            self._state = SessionState.idle

    def escape(self) -> None:
        self._open = False
        self._highlighted = -1

    async def on_exercise_logged(self) -> None:
        await self.controller.invalidate()

    async def close(self) -> None:
        self._cancel_pending()
        await self.flush()
        self._pending = None

    async def _debounced_search(self, text: str) -> None:
        await asyncio.sleep(self.debounce)
        self._state = SessionState.searching
        results = self.search(text)
        self._suggestions = results
        self._highlighted = -1
        self._open = True
        self._state = SessionState.idle
        self._pending = None
        if not results and not self.is_ready():
            logger.debug(f"exercise_suggestions_unavailable user={self.controller.user_id}")
        if self._on_results is not None:
            self._on_results(self.suggestions)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    def _reset_list(self) -> None:
        self._suggestions = []
        self._highlighted = -1
        self._open = False


__all__ = ["SuggestionSession"]
