"""Backend command client (predict, upload, download) over HTTP."""

import asyncio
import logging
from typing import Any, Protocol

import requests

from .errors import ActionFailure, BackendUnavailable, ScanError
from .prediction import Prediction, parse_prediction

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://127.0.0.1:7878"


class Backend(Protocol):
    """Commands the selection layer invokes on the save-sync backend."""

    async def predict(self) -> Prediction: ...

    async def upload(self, autosave: str | None, items: set[str]) -> str: ...

    async def download(self, items: set[str]) -> str: ...


class BackendClient:
    """Client for the save-sync backend's HTTP command endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BACKEND_URL,
        api_key: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "turnsync/0.1.0"})
        if api_key:
            self.session.headers.update({"X-Api-Key": api_key})

    def _post(self, command: str, payload: dict[str, Any] | None = None) -> requests.Response:
        url = f"{self.base_url}/{command}"
        try:
            response = self.session.post(url, json=payload or {}, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise BackendUnavailable(f"Backend unreachable at {self.base_url}: {e}")
        except requests.RequestException as e:
            raise BackendUnavailable(f"Request to {url} failed: {e}")

        if response.status_code >= 500:
            raise BackendUnavailable(
                f"Backend error {response.status_code}: {_error_text(response)}"
            )
        return response

    def predict_sync(self) -> Prediction:
        """Fetch and parse a prediction."""
        response = self._post("predict")
        if not response.ok:
            raise ScanError(f"Prediction failed ({response.status_code}): {_error_text(response)}")
        try:
            data = response.json()
        except ValueError as e:
            raise ScanError(f"Invalid prediction response: {e}")
        return parse_prediction(data)

    def upload_sync(self, autosave: str | None, items: set[str]) -> str:
        payload = {"autosave": autosave, "items": sorted(items)}
        logger.debug("Uploading autosave=%s items=%s", autosave, payload["items"])
        return self._action("upload", payload)

    def download_sync(self, items: set[str]) -> str:
        payload = {"items": sorted(items)}
        logger.debug("Downloading items=%s", payload["items"])
        return self._action("download", payload)

    def _action(self, action: str, payload: dict[str, Any]) -> str:
        response = self._post(action, payload)
        if not response.ok:
            raise ActionFailure(action, _error_text(response))
        return _message_text(response)

    async def predict(self) -> Prediction:
        return await asyncio.to_thread(self.predict_sync)

    async def upload(self, autosave: str | None, items: set[str]) -> str:
        return await asyncio.to_thread(self.upload_sync, autosave, items)

    async def download(self, items: set[str]) -> str:
        return await asyncio.to_thread(self.download_sync, items)


def _message_text(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        return str(data.get("message", data))
    return str(data)


def _error_text(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason or "no details"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)
