"""
Interactive components and the correlation ids that bind them to listeners.

Component models are plain dataclasses handed to the transport, which owns
their wire encoding. ComponentId is the opaque custom id of a published
button or menu: fresh per publication, optionally expiring and optionally
restricted to one user.

ComponentId string form
    colloquy/<unique>/<session>/<expires-at or ->/<allowed-user or ->
"""
from __future__ import annotations

import dataclasses
import enum
import time
import uuid
from dataclasses import dataclass, field

SESSION_START = time.time()
"""Start of the current process session; ids minted before it are stale."""

_PREFIX = "colloquy"


class ComponentIdStatus(enum.Enum):
    OK = "ok"
    NO_HANDLER = "no handler found"
    SESSION_EXPIRED = "session expired"
    EXPIRED = "expired"
    WRONG_USER = "wrong user"


@dataclass(frozen=True, slots=True)
class ComponentId:
    """Correlation token carried as the custom id of a component."""

    unique: str
    """Random hex identifier; distinct for every generated id."""

    session: float
    """Session start of the process that minted the id."""

    expires_at: float | None = None
    """Unix timestamp after which the id no longer matches, or ``None``."""

    allowed_user: int | None = None
    """Only events from this user match, or ``None`` for anybody."""

    @classmethod
    def generate(cls, *, expires_in=None, allowed_user=None):
        """
        Mint a fresh id. `expires_in` is a number of seconds from now.
        """
        if expires_in is not None and expires_in < 0:
            raise ValueError("component-id 'expires_in' must be non-negative")
        return cls(
            uuid.uuid4().hex,
            SESSION_START,
            None if expires_in is None else time.time() + expires_in,
            allowed_user,
        )

    @classmethod
    def parse(cls, raw, /):
        """
        Parse a custom id; return None when it was not minted by colloquy.
        """
        if not isinstance(raw, str):
            return None
        parts = raw.split("/")
        if len(parts) != 5 or parts[0] != _PREFIX:
            return None
        try:
            return cls(
                parts[1],
                float(parts[2]),
                None if parts[3] == "-" else float(parts[3]),
                None if parts[4] == "-" else int(parts[4]),
            )
        except ValueError:
            return None

    @property
    def remaining(self):
        """Seconds until expiry (never negative), or None without expiry."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.time())

    def status(self, user_id=None, *, listening=True):
        """
        Classify an inbound event for this id.
        """
        if self.session != SESSION_START:
            return ComponentIdStatus.SESSION_EXPIRED
        if self.expires_at is not None and self.expires_at <= time.time():
            return ComponentIdStatus.EXPIRED
        if self.allowed_user is not None and user_id != self.allowed_user:
            return ComponentIdStatus.WRONG_USER
        if not listening:
            return ComponentIdStatus.NO_HANDLER
        return ComponentIdStatus.OK

    def __str__(self):
        return "/".join((
            _PREFIX,
            self.unique,
            repr(self.session),
            "-" if self.expires_at is None else repr(self.expires_at),
            "-" if self.allowed_user is None else str(self.allowed_user),
        ))


class ButtonStyle(enum.IntEnum):
    PRIMARY = 1
    SECONDARY = 2
    SUCCESS = 3
    DANGER = 4
    LINK = 5


@dataclass(frozen=True, slots=True)
class Button:
    label: str
    style: ButtonStyle = ButtonStyle.PRIMARY
    custom_id: str = ""
    emoji: str | None = None
    disabled: bool = False


@dataclass(frozen=True, slots=True)
class SelectOption:
    label: str
    value: str
    description: str | None = None


@dataclass(slots=True)
class SelectMenu:
    custom_id: str
    options: list[SelectOption] = field(default_factory=list)
    placeholder: str | None = None
    min_values: int = 1
    max_values: int = 1
    disabled: bool = False


@dataclass(slots=True)
class ActionRow:
    """A row of up to five buttons, or exactly one select menu."""

    components: list = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TextInput:
    custom_id: str
    label: str
    short: bool = True
    required: bool = True
    value: str | None = None


@dataclass(slots=True)
class Modal:
    custom_id: str
    title: str
    components: list[ActionRow] = field(default_factory=list)


@dataclass(slots=True)
class MessageBuilder:
    """Outgoing message; the transport decides how it is encoded."""

    content: str | None = None
    components: list[ActionRow] = field(default_factory=list)
    reply_to: int | None = None
    mention: bool | None = None

    def copy(self):
        return dataclasses.replace(self, components=[ActionRow(list(row.components)) for row in self.components])


def button_ids(components, /):
    """
    Yield the raw custom id of every button found in rows of components.
    """
    for row in components:
        for component in getattr(row, "components", (row,)):
            if isinstance(component, Button) and component.custom_id:
                yield component.custom_id


__all__ = (
    "SESSION_START",
    "ComponentIdStatus",
    "ComponentId",
    "ButtonStyle",
    "Button",
    "SelectOption",
    "SelectMenu",
    "ActionRow",
    "TextInput",
    "Modal",
    "MessageBuilder",
    "button_ids",
)
