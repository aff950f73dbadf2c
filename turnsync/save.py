"""Save identities and their string tokens."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class MalformedIdentity(ValueError):
    """Raised when a save identity or token cannot be parsed."""

    pass


class Side(str, Enum):
    ALLIES = "Allies"
    AXIS = "Axis"

    @classmethod
    def parse(cls, value: str) -> "Side":
        for side in cls:
            if side.value.lower() == str(value).strip().lower():
                return side
        raise MalformedIdentity(f"Unknown side: {value!r}")

    def __str__(self) -> str:
        return self.value


PLAYER_RE = re.compile(r"^[A-Za-z]+$")
PART_RE = re.compile(r"^[A-Za-z0-9]+$")

# SIDE [" " PLAYER] [" " TURN] ["#" PART]
TOKEN_RE = re.compile(
    r"^(?P<side>[A-Za-z]+)"
    r"(?: (?P<player>[A-Za-z]+))?"
    r"(?: (?P<turn>\d+))?"
    r"(?:#(?P<part>[A-Za-z0-9]+))?$"
)


@dataclass(frozen=True)
class SaveIdentity:
    """Canonical key of a save file. ``player=None`` is the autosave slot."""

    side: Side
    turn: int | None = None
    player: str | None = None
    part: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.side, Side):
            object.__setattr__(self, "side", Side.parse(self.side))
        if self.turn is not None:
            if isinstance(self.turn, bool) or not isinstance(self.turn, int) or self.turn < 0:
                raise MalformedIdentity(f"Invalid turn number: {self.turn!r}")
        if self.player is not None and not (isinstance(self.player, str) and PLAYER_RE.match(self.player)):
            raise MalformedIdentity(f"Invalid player name: {self.player!r}")
        if self.part is not None and not (isinstance(self.part, str) and PART_RE.match(self.part)):
            raise MalformedIdentity(f"Invalid save part: {self.part!r}")

    @property
    def is_autosave(self) -> bool:
        return self.player is None

    @property
    def token(self) -> str:
        return encode(self)

    @property
    def label(self) -> str:
        return label(self)

    @classmethod
    def from_wire(cls, data: Any) -> "SaveIdentity":
        """
        Build an identity from backend data.

        Accepts a token string, the nested backend form
        ``{"player", "turn": {"side", "number"}, "part"}`` or a flat
        ``{"side", "turn", "player", "part"}`` object.
        """
        if isinstance(data, str):
            return decode(data)
        if not isinstance(data, dict):
            raise MalformedIdentity(f"Expected a save object, got {type(data).__name__}")

        turn = data.get("turn")
        if isinstance(turn, dict):
            side = turn.get("side")
            number = turn.get("number")
        else:
            side = data.get("side")
            number = turn

        if side is None:
            raise MalformedIdentity(f"Save has no side: {data!r}")

        return cls(
            side=Side.parse(side),
            turn=number,
            player=data.get("player") or None,
            part=data.get("part") or None,
        )

    def sort_key(self) -> tuple:
        # player saves come before the autosave that follows them
        return (
            self.turn if self.turn is not None else -1,
            self.side.value,
            self.player is None,
            self.player or "",
            self.part is not None,
            self.part or "",
        )

    def __lt__(self, other: "SaveIdentity") -> bool:
        if not isinstance(other, SaveIdentity):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return encode(self)


def encode(identity: SaveIdentity) -> str:
    """Encode an identity as its item token."""
    token = identity.side.value
    if identity.player is not None:
        token += f" {identity.player}"
    if identity.turn is not None:
        token += f" {identity.turn}"
    if identity.part is not None:
        token += f"#{identity.part}"
    return token


def decode(token: str) -> SaveIdentity:
    """
    Parse an item token back into a SaveIdentity.

    Supported formats:
        - "Axis 12" (autosave)
        - "Axis DM 12"
        - "Axis DM 12#b"

    Raises MalformedIdentity if the token does not match.
    """
    if not isinstance(token, str):
        raise MalformedIdentity(f"Expected a token string, got {type(token).__name__}")

    match = TOKEN_RE.match(token)
    if not match:
        raise MalformedIdentity(f"Invalid save token: {token!r}")

    turn = match.group("turn")
    return SaveIdentity(
        side=Side.parse(match.group("side")),
        turn=int(turn) if turn is not None else None,
        player=match.group("player"),
        part=match.group("part"),
    )


def label(identity: SaveIdentity) -> str:
    """Human readable label for display."""
    parts = [identity.side.value]
    if identity.player is not None:
        parts.append(identity.player)
    number = "" if identity.turn is None else str(identity.turn)
    if identity.part is not None:
        number += identity.part
    if number:
        parts.append(number)
    text = " ".join(parts)
    if identity.is_autosave:
        text += " (Autosave)"
    return text
