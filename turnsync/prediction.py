"""Prediction snapshots and parsing of the backend's prediction payload."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import ScanError
from .save import MalformedIdentity, SaveIdentity

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class AutosaveStatus(str, Enum):
    READY = "ready"
    NOT_READY = "notReady"


@dataclass(frozen=True)
class SaveCandidate:
    """A save file or object known to exist locally or remotely."""

    identity: SaveIdentity
    origin: Origin

    @property
    def token(self) -> str:
        return self.identity.token


@dataclass(frozen=True)
class AutosaveSlot:
    status: AutosaveStatus
    candidate: SaveCandidate | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.status is AutosaveStatus.READY:
            if self.candidate is None:
                raise ValueError("A ready autosave needs a candidate")
            if self.reason is not None:
                raise ValueError("A ready autosave has no reason")

    @property
    def is_ready(self) -> bool:
        return self.status is AutosaveStatus.READY

    @classmethod
    def ready(cls, identity: SaveIdentity) -> "AutosaveSlot":
        return cls(AutosaveStatus.READY, SaveCandidate(identity, Origin.LOCAL))

    @classmethod
    def not_ready(
        cls, reason: str, identity: SaveIdentity | None = None
    ) -> "AutosaveSlot":
        candidate = None
        if identity is not None:
            candidate = SaveCandidate(identity, Origin.LOCAL)
        return cls(AutosaveStatus.NOT_READY, candidate, reason)


@dataclass(frozen=True)
class Prediction:
    """What the backend thinks should be uploaded and downloaded right now."""

    autosave: AutosaveSlot
    uploads: tuple[SaveCandidate, ...] = field(default_factory=tuple)
    downloads: tuple[SaveCandidate, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.autosave.is_ready or self.uploads or self.downloads)

    def identities(self) -> list[SaveIdentity]:
        """Actionable identities in display order."""
        result = []
        if self.autosave.is_ready:
            result.append(self.autosave.candidate.identity)
        result.extend(c.identity for c in self.uploads)
        result.extend(c.identity for c in self.downloads)
        return result


# Reasons a backend gives for not uploading the autosave
REASON_TEXT = {
    "autosavealreadyuploaded": "The autosave has already been uploaded",
    "teammatesavenotuploaded": "Your teammate has not uploaded their save for this turn yet",
    "newturnavailable": "A new turn is available to download",
    "autosavenotavailable": "No local autosave was found",
    "turnnotplayed": "You have not saved your turn yet",
    "newteammatesaveavailable": "A new save from your teammate is available to download",
}


def _normalize(name: str) -> str:
    return re.sub(r"[\s_\-]", "", str(name)).lower()


def describe_reason(reason: Any) -> str:
    """
    Turn a not-ready reason into readable text.

    Accepts a plain string ("autosaveAlreadyUploaded") or a single-key
    object carrying a save ({"turnNotPlayed": {...}}).
    """
    if reason is None:
        return "Autosave is not ready"

    detail = None
    if isinstance(reason, dict):
        if len(reason) != 1:
            return str(reason)
        name, payload = next(iter(reason.items()))
        try:
            detail = SaveIdentity.from_wire(payload).label
        except MalformedIdentity:
            detail = None
    else:
        name = str(reason)

    text = REASON_TEXT.get(_normalize(name))
    if text is None:
        return name
    if detail:
        text = f"{text} ({detail})"
    return text


def _parse_status(value: Any) -> AutosaveStatus:
    normalized = _normalize(value) if isinstance(value, str) else ""
    if normalized == "ready":
        return AutosaveStatus.READY
    if normalized == "notready":
        return AutosaveStatus.NOT_READY
    raise ScanError(f"Unknown autosave status: {value!r}")


def _parse_autosave(data: Any) -> AutosaveSlot:
    if not isinstance(data, dict):
        raise ScanError(f"Autosave prediction must be an object, got {type(data).__name__}")
    if "status" not in data:
        raise ScanError("Autosave prediction has no status")

    status = _parse_status(data["status"])
    save = data.get("save")
    reason = data.get("reason")

    if status is AutosaveStatus.NOT_READY and isinstance(save, list):
        # tagged form: {"status": "notReady", "save": [save, reason]}
        if len(save) != 2:
            raise ScanError(f"Malformed not-ready autosave: {save!r}")
        save, reason = save

    identity = None
    if save is not None:
        try:
            identity = SaveIdentity.from_wire(save)
            if not identity.is_autosave:
                raise MalformedIdentity(f"Autosave has a player: {identity.token!r}")
        except MalformedIdentity as e:
            logger.warning("Dropping autosave candidate: %s", e)
            identity = None
            if status is AutosaveStatus.READY:
                return AutosaveSlot.not_ready(f"Autosave could not be read: {e}")

    if status is AutosaveStatus.READY:
        if identity is None:
            raise ScanError("Ready autosave has no save")
        return AutosaveSlot.ready(identity)

    return AutosaveSlot.not_ready(describe_reason(reason), identity)


def _parse_candidates(
    items: Any, origin: Origin, key: str, seen: set[SaveIdentity]
) -> tuple[SaveCandidate, ...]:
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ScanError(f"'{key}' must be a list, got {type(items).__name__}")

    candidates = []
    for item in items:
        try:
            identity = SaveIdentity.from_wire(item)
        except MalformedIdentity as e:
            logger.warning("Dropping %s item %r: %s", key, item, e)
            continue
        if identity in seen:
            logger.warning("Dropping duplicate %s item %s", key, identity.token)
            continue
        seen.add(identity)
        candidates.append(SaveCandidate(identity, origin))
    return tuple(candidates)


def parse_prediction(data: Any) -> Prediction:
    """
    Convert a raw prediction payload into a Prediction.

    Raises ScanError for structural problems. Individual malformed items are
    dropped with a warning.
    """
    if not isinstance(data, dict):
        raise ScanError(f"Prediction must be an object, got {type(data).__name__}")
    if "autosave" not in data:
        raise ScanError("Prediction has no autosave")

    autosave = _parse_autosave(data["autosave"])

    seen: set[SaveIdentity] = set()
    if autosave.is_ready:
        seen.add(autosave.candidate.identity)

    uploads = _parse_candidates(data.get("uploads"), Origin.LOCAL, "uploads", seen)
    downloads = _parse_candidates(data.get("downloads"), Origin.REMOTE, "downloads", seen)

    return Prediction(autosave=autosave, uploads=uploads, downloads=downloads)
