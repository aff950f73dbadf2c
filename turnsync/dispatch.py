"""Turning a selection into upload/download requests and running them."""

import asyncio
import logging
from dataclasses import dataclass, field

from .backend import Backend
from .errors import BackendError
from .selection import Pool, SelectionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRequest:
    upload_items: frozenset[str] = frozenset()
    download_items: frozenset[str] = frozenset()
    autosave: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.upload_items and not self.download_items and self.autosave is None

    @property
    def upload_saves(self) -> frozenset[str]:
        """Upload items without the autosave token."""
        if self.autosave is None:
            return self.upload_items
        return self.upload_items - {self.autosave}


@dataclass
class ActionResult:
    action: str  # upload, download
    ok: bool
    message: str


@dataclass
class DispatchOutcome:
    request: ActionRequest
    sent: bool = False
    results: list[ActionResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [r.message for r in self.results if not r.ok]


def build_action_request(store: SelectionStore) -> ActionRequest:
    """Collect the tokens of every included item, split by direction."""
    uploads: set[str] = set()
    downloads: set[str] = set()
    autosave = None

    for entry in store:
        if not entry.included:
            continue
        if entry.pool is Pool.AUTOSAVE:
            autosave = entry.token
            uploads.add(entry.token)
        elif entry.pool is Pool.UPLOAD:
            uploads.add(entry.token)
        elif entry.pool is Pool.DOWNLOAD:
            downloads.add(entry.token)

    return ActionRequest(
        upload_items=frozenset(uploads),
        download_items=frozenset(downloads),
        autosave=autosave,
    )


async def _run_upload(backend: Backend, request: ActionRequest) -> ActionResult:
    try:
        message = await backend.upload(request.autosave, set(request.upload_saves))
    except BackendError as e:
        logger.warning("Upload failed: %s", e)
        return ActionResult("upload", False, str(e))
    logger.info("Uploaded %d item(s)", len(request.upload_items))
    return ActionResult("upload", True, message)


async def _run_download(backend: Backend, request: ActionRequest) -> ActionResult:
    try:
        message = await backend.download(set(request.download_items))
    except BackendError as e:
        logger.warning("Download failed: %s", e)
        return ActionResult("download", False, str(e))
    logger.info("Downloaded %d item(s)", len(request.download_items))
    return ActionResult("download", True, message)


async def dispatch(backend: Backend, request: ActionRequest) -> DispatchOutcome:
    """
    Send a request to the backend.

    Upload and download run concurrently and both are awaited before
    returning; a failure in one half is reported next to the other half's
    result. An empty request is not sent.
    """
    outcome = DispatchOutcome(request=request)
    if request.is_empty:
        logger.debug("Nothing selected, not dispatching")
        return outcome

    halves = []
    if request.upload_items:
        halves.append(_run_upload(backend, request))
    if request.download_items:
        halves.append(_run_download(backend, request))

    outcome.sent = True
    outcome.results = list(await asyncio.gather(*halves))
    return outcome
