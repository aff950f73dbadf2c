"""Event loop running on a background thread, shared by request handlers."""

import asyncio
import threading
from typing import Any, Callable, Coroutine

DEFAULT_TIMEOUT = 120.0


class LoopThread:
    """
    Runs an asyncio event loop in a daemon thread.

    Request threads hand work to the loop with ``run`` (coroutines) and
    ``call`` (plain callables), so all session state is touched from the
    loop thread only.
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name="turnsync-loop", daemon=True)
        self._started = threading.Event()

    def _serve(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.call_soon(self._started.set)
        self.loop.run_forever()

    def start(self) -> "LoopThread":
        if not self._thread.is_alive():
            self._thread.start()
            self._started.wait()
        return self

    def run(self, coro: Coroutine, timeout: float | None = DEFAULT_TIMEOUT) -> Any:
        """Run a coroutine on the loop and wait for its result."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def call(self, fn: Callable, *args, timeout: float | None = DEFAULT_TIMEOUT) -> Any:
        """Run a callable on the loop thread and wait for its result."""

        async def _call():
            return fn(*args)

        return self.run(_call(), timeout)

    def submit(self, fn: Callable, *args) -> None:
        """Run a callable on the loop thread without waiting."""
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self) -> None:
        if self._thread.is_alive():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join(timeout=5)
        self.loop.close()
