"""Display rows for UI surfaces."""

from dataclasses import asdict, dataclass, field

from .dispatch import build_action_request
from .prediction import Prediction
from .selection import Pool, SelectionEntry, SelectionStore


@dataclass
class SaveRow:
    token: str
    label: str
    pool: str
    included: bool


@dataclass
class SelectionView:
    autosave: SaveRow | None = None
    autosave_reason: str | None = None
    uploads: list[SaveRow] = field(default_factory=list)
    downloads: list[SaveRow] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)
    loaded: bool = False
    nothing_to_do: bool = False
    can_dispatch: bool = False

    def rows(self) -> list[SaveRow]:
        head = [self.autosave] if self.autosave else []
        return head + self.uploads + self.downloads

    def to_dict(self) -> dict:
        return asdict(self)


def _row(entry: SelectionEntry) -> SaveRow:
    return SaveRow(
        token=entry.token,
        label=entry.identity.label,
        pool=entry.pool.value,
        included=entry.included,
    )


def build_view(prediction: Prediction | None, store: SelectionStore) -> SelectionView:
    """Rows for every item in the store, in prediction order."""
    if prediction is None:
        return SelectionView()

    autosave = store.autosave
    uploads = [_row(e) for e in store.entries(Pool.UPLOAD)]
    downloads = [_row(e) for e in store.entries(Pool.DOWNLOAD)]

    notices = []
    if not uploads and not prediction.autosave.is_ready:
        notices.append("No saves to upload")
    if not downloads:
        notices.append("No saves to download")

    return SelectionView(
        autosave=_row(autosave) if autosave else None,
        autosave_reason=prediction.autosave.reason,
        uploads=uploads,
        downloads=downloads,
        notices=notices,
        loaded=True,
        nothing_to_do=prediction.is_empty,
        can_dispatch=not build_action_request(store).is_empty,
    )
