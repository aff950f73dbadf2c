"""Refresh loop: asks the backend for predictions and feeds them to a handler."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from .errors import BackendError
from .prediction import Prediction

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshLoop:
    """
    Runs at most one predict request at a time.

    A trigger that arrives while a request is in flight supersedes it: the
    in-flight response is discarded when it lands and exactly one follow-up
    request is issued, however many triggers arrived meanwhile. Only the
    response to the latest request reaches ``on_prediction`` / ``on_error``.
    """

    def __init__(
        self,
        predict: Callable[[], Awaitable[Prediction]],
        on_prediction: Callable[[Prediction], None],
        on_error: Callable[[BackendError], None],
    ):
        self._predict = predict
        self._on_prediction = on_prediction
        self._on_error = on_error
        self._generation = 0
        self._issued = 0
        self._task: asyncio.Task | None = None
        self.state = RefreshState.IDLE

    @property
    def requests_issued(self) -> int:
        return self._issued

    def schedule(self, reason: str = "") -> asyncio.Task:
        """Request a refresh without waiting for it. Needs a running loop."""
        self._generation += 1
        if reason:
            logger.debug("Refresh requested (%s), generation %d", reason, self._generation)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def trigger(self, reason: str = "") -> Prediction | None:
        """
        Request a refresh and wait until a current response has been handled.

        Returns the applied prediction, or None if the request failed.
        """
        task = self.schedule(reason)
        return await asyncio.shield(task)

    async def _run(self) -> Prediction | None:
        self.state = RefreshState.REFRESHING
        try:
            while True:
                generation = self._generation
                self._issued += 1
                try:
                    prediction = await self._predict()
                except BackendError as e:
                    if generation != self._generation:
                        logger.debug("Discarding superseded predict failure: %s", e)
                        continue
                    logger.warning("Refresh failed: %s", e)
                    self._on_error(e)
                    return None

                if generation != self._generation:
                    logger.debug("Discarding superseded prediction (generation %d)", generation)
                    continue
                self._on_prediction(prediction)
                return prediction
        finally:
            self.state = RefreshState.IDLE
