"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os

import pytest

# Rich wraps non-TTY output at 80 columns; long tmp paths would split messages.
os.environ.setdefault("COLUMNS", "200")

from turnsync.errors import BackendError
from turnsync.prediction import AutosaveSlot, Origin, Prediction, SaveCandidate
from turnsync.save import SaveIdentity, decode


# =============================================================================
# BUILDERS
# =============================================================================

def ident(token: str) -> SaveIdentity:
    return decode(token)


def make_prediction(
    autosave: str | None = None,
    uploads: list[str] = (),
    downloads: list[str] = (),
    reason: str = "No local autosave was found",
) -> Prediction:
    """Prediction from tokens. autosave=None means a not-ready autosave."""
    if autosave is None:
        slot = AutosaveSlot.not_ready(reason)
    else:
        slot = AutosaveSlot.ready(ident(autosave))
    return Prediction(
        autosave=slot,
        uploads=tuple(SaveCandidate(ident(t), Origin.LOCAL) for t in uploads),
        downloads=tuple(SaveCandidate(ident(t), Origin.REMOTE) for t in downloads),
    )


# =============================================================================
# FAKE BACKEND
# =============================================================================

class FakeBackend:
    """
    In-memory backend.

    ``predictions`` is consumed one per predict call (the last one repeats);
    an exception instance in the list is raised instead. Setting ``hold``
    makes predict wait on an asyncio.Event per call, released with
    ``release()``.
    """

    def __init__(self, *predictions):
        self.predictions = list(predictions)
        self.predict_calls = 0
        self.upload_calls: list[tuple[str | None, set[str]]] = []
        self.download_calls: list[set[str]] = []
        self.upload_error: BackendError | None = None
        self.download_error: BackendError | None = None
        self.hold = False
        self.gates: list[asyncio.Event] = []
        self.events: list[str] = []

    async def predict(self):
        self.predict_calls += 1
        call = self.predict_calls
        self.events.append(f"predict:{call}")
        item = self.predictions[0] if len(self.predictions) == 1 else self.predictions.pop(0)
        if self.hold:
            gate = asyncio.Event()
            self.gates.append(gate)
            await gate.wait()
        self.events.append(f"predicted:{call}")
        if isinstance(item, Exception):
            raise item
        return item

    def release(self, index: int = 0) -> None:
        self.gates[index].set()

    async def upload(self, autosave, items):
        self.events.append("upload")
        self.upload_calls.append((autosave, set(items)))
        await asyncio.sleep(0)
        if self.upload_error:
            raise self.upload_error
        self.events.append("uploaded")
        return f"Uploaded {len(items) + (1 if autosave else 0)} save(s)"

    async def download(self, items):
        self.events.append("download")
        self.download_calls.append(set(items))
        await asyncio.sleep(0)
        if self.download_error:
            raise self.download_error
        self.events.append("downloaded")
        return f"Downloaded {len(items)} save(s)"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def basic_prediction():
    """Ready autosave, one upload, one download."""
    return make_prediction(
        autosave="Allies 13",
        uploads=["Axis DM 12"],
        downloads=["Axis Bob 12"],
    )


@pytest.fixture
def fake_backend(basic_prediction):
    return FakeBackend(basic_prediction)

