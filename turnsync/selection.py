"""Selection store and reconciliation of new predictions into it."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator

from .prediction import Prediction
from .save import SaveIdentity, decode


class Pool(str, Enum):
    AUTOSAVE = "autosave"
    UPLOAD = "upload"
    DOWNLOAD = "download"


class UnknownItem(KeyError):
    """Raised when toggling an item that is not in the selection."""

    pass


@dataclass(frozen=True)
class SelectionEntry:
    identity: SaveIdentity
    pool: Pool
    included: bool

    @property
    def token(self) -> str:
        return self.identity.token


class SelectionStore:
    """Inclusion flags for the items of the last merged prediction."""

    def __init__(self, entries: list[SelectionEntry] | None = None):
        self._entries: dict[SaveIdentity, SelectionEntry] = {}
        for entry in entries or []:
            if entry.identity in self._entries:
                raise ValueError(f"Duplicate selection entry: {entry.token}")
            if entry.pool is Pool.AUTOSAVE and self.autosave is not None:
                raise ValueError("A selection holds at most one autosave entry")
            self._entries[entry.identity] = entry

    @classmethod
    def from_prediction(cls, prediction: Prediction) -> "SelectionStore":
        return reconcile(cls(), prediction)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SelectionEntry]:
        return iter(list(self._entries.values()))

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectionStore):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"SelectionStore({list(self._entries.values())!r})"

    def get(self, identity: SaveIdentity) -> SelectionEntry | None:
        return self._entries.get(identity)

    def is_included(self, identity: SaveIdentity) -> bool:
        entry = self._entries.get(identity)
        return entry is not None and entry.included

    def entries(self, pool: Pool | None = None) -> list[SelectionEntry]:
        return [e for e in self._entries.values() if pool is None or e.pool is pool]

    @property
    def autosave(self) -> SelectionEntry | None:
        for entry in self._entries.values():
            if entry.pool is Pool.AUTOSAVE:
                return entry
        return None

    def set_included(self, identity: SaveIdentity, included: bool) -> SelectionEntry:
        entry = self._entries.get(identity)
        if entry is None:
            raise UnknownItem(identity.token)
        entry = replace(entry, included=bool(included))
        self._entries[identity] = entry
        return entry

    def toggle(self, identity: SaveIdentity | str, included: bool | None = None) -> SelectionEntry:
        """Flip (or set) an item's inclusion. Accepts an identity or a token."""
        if isinstance(identity, str):
            identity = decode(identity)
        entry = self._entries.get(identity)
        if entry is None:
            raise UnknownItem(identity.token)
        if included is None:
            included = not entry.included
        return self.set_included(identity, included)

    def copy(self) -> "SelectionStore":
        return SelectionStore(list(self._entries.values()))


def reconcile(previous: SelectionStore, prediction: Prediction) -> SelectionStore:
    """
    Merge a new prediction into a selection.

    Items still present keep the user's inclusion flag, new items get the
    default (included, or for the autosave, included when it is ready) and
    items that disappeared are dropped. ``previous`` is not modified.
    """
    merged: dict[SaveIdentity, SelectionEntry] = {}

    def add(identity: SaveIdentity, pool: Pool) -> None:
        # first occurrence wins
        if identity in merged:
            return
        old = previous.get(identity)
        included = old.included if old is not None else True
        merged[identity] = SelectionEntry(identity=identity, pool=pool, included=included)

    if prediction.autosave.is_ready:
        add(prediction.autosave.candidate.identity, Pool.AUTOSAVE)
    for candidate in prediction.uploads:
        add(candidate.identity, Pool.UPLOAD)
    for candidate in prediction.downloads:
        add(candidate.identity, Pool.DOWNLOAD)

    return SelectionStore(list(merged.values()))
