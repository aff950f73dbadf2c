"""Session - owns the current prediction, selection and result log."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from .backend import Backend
from .dispatch import ActionRequest, DispatchOutcome, build_action_request, dispatch
from .errors import BackendError
from .prediction import Prediction
from .refresh import RefreshLoop, RefreshState
from .save import SaveIdentity
from .selection import SelectionEntry, SelectionStore, reconcile
from .view import SelectionView, build_view

logger = logging.getLogger(__name__)


@dataclass
class ResultEntry:
    kind: str  # refresh, upload, download, error
    message: str
    at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "at": self.at.isoformat()}


class ResultLog:
    """Ordered, bounded log of messages shown to the user."""

    def __init__(self, limit: int = 100):
        self._entries: deque[ResultEntry] = deque(maxlen=limit)

    def append(self, kind: str, message: str, at: datetime | None = None) -> ResultEntry:
        entry = ResultEntry(kind, message, at or datetime.now())
        self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def messages(self) -> list[str]:
        return [e.message for e in self._entries]

    def last(self) -> ResultEntry | None:
        return self._entries[-1] if self._entries else None


class SyncSession:
    """
    State shared by the refresh loop, the dispatcher and the UI surfaces.

    All methods must be called from the thread running the session's event
    loop. Store updates happen between awaits, so readers never see a
    half-merged selection.
    """

    def __init__(
        self,
        backend: Backend,
        result_log_limit: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.prediction: Prediction | None = None
        self.store = SelectionStore()
        self.results = ResultLog(result_log_limit)
        self._clock = clock
        self._dispatch_lock = asyncio.Lock()
        self.refresh_loop = RefreshLoop(
            predict=backend.predict,
            on_prediction=self._apply_prediction,
            on_error=self._record_refresh_error,
        )

    @property
    def refreshing(self) -> bool:
        return self.refresh_loop.state is RefreshState.REFRESHING

    def _apply_prediction(self, prediction: Prediction) -> None:
        self.store = reconcile(self.store, prediction)
        self.prediction = prediction
        now = self._clock()
        self.results.append("refresh", f"Checked: {now.strftime('%H:%M:%S')}", now)
        logger.info(
            "Prediction merged: %d item(s), autosave %s",
            len(self.store),
            prediction.autosave.status.value,
        )

    def _record_refresh_error(self, error: BackendError) -> None:
        self.results.append("error", str(error), self._clock())

    async def refresh(self, reason: str = "manual") -> Prediction | None:
        """Fetch a new prediction and merge it. Failures leave the selection as it was."""
        return await self.refresh_loop.trigger(reason)

    def on_host_reopen(self) -> asyncio.Task:
        """Host window was reopened; refresh in the background."""
        return self.refresh_loop.schedule("host reopen")

    def toggle(self, item: SaveIdentity | str, included: bool | None = None) -> SelectionEntry:
        entry = self.store.toggle(item, included)
        logger.debug("%s %s", "Included" if entry.included else "Excluded", entry.token)
        return entry

    def build_request(self) -> ActionRequest:
        return build_action_request(self.store)

    @property
    def can_dispatch(self) -> bool:
        return not self.build_request().is_empty

    async def go(self) -> DispatchOutcome:
        """
        Upload and download the selected items, then refresh.

        Nothing is sent (and no refresh is forced) when nothing is selected.
        """
        async with self._dispatch_lock:
            request = self.build_request()
            if request.is_empty:
                return DispatchOutcome(request=request)

            logger.info(
                "Dispatching %d upload(s), %d download(s)",
                len(request.upload_items),
                len(request.download_items),
            )
            outcome = await dispatch(self.backend, request)
            for result in outcome.results:
                self.results.append(result.action if result.ok else "error", result.message, self._clock())

            await self.refresh("after dispatch")
            return outcome

    def view(self) -> SelectionView:
        return build_view(self.prediction, self.store)
