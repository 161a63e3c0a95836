"""
Contract with the chat platform transport, plus inbound event records.

The engine never talks to the network. A host hands inbound events to the
Commands root (as the records below) and provides an object satisfying
Transport for everything published in response.
"""
from __future__ import annotations

import collections
from typing import Any, Protocol

Message = collections.namedtuple(
    "Message",
    ("id", "channel_id", "author_id", "content", "components", "author_bot"),
    defaults=("", (), False),
)
"""A published or received message. `components` holds ActionRows."""

CommandInteraction = collections.namedtuple(
    "CommandInteraction",
    ("id", "user_id", "channel_id", "path", "arguments"),
)
"""A structured invocation: `path` is the tuple of names from the top-level command."""

ComponentInteraction = collections.namedtuple(
    "ComponentInteraction",
    ("id", "user_id", "channel_id", "custom_id", "values", "message"),
    defaults=(None, None),
)
"""A button press (`values` is None) or a menu selection (the selected option values)."""

ModalSubmission = collections.namedtuple(
    "ModalSubmission",
    ("id", "user_id", "channel_id", "custom_id", "values"),
)
"""A submitted modal; `values` maps text input ids to their contents."""

AutocompleteInteraction = collections.namedtuple(
    "AutocompleteInteraction",
    ("id", "user_id", "channel_id", "path", "arguments", "focused"),
)
"""A partially typed structured invocation; `focused` names the edited parameter."""

UserCommandInteraction = collections.namedtuple(
    "UserCommandInteraction",
    ("id", "user_id", "channel_id", "name", "target_id"),
)
"""A user command opened from the context menu of user `target_id`."""


class Transport(Protocol):
    """
    Publishing surface consumed by contexts and the Commands root.

    Every method is a coroutine. Messages returned are Message records (or
    any object with the same fields).
    """

    async def send(self, channel_id: int, builder: Any) -> Any:
        """Send a message to a channel; `builder.reply_to` may name a message to reply to."""
        ...

    async def send_dm(self, user_id: int, builder: Any) -> Any:
        """Send a direct message to a user."""
        ...

    async def respond(self, interaction: Any, builder: Any, *, ephemeral: bool, update_message: bool = False) -> Any:
        """Send the initial response to an interaction (or edit the component's message)."""
        ...

    async def followup(self, interaction: Any, builder: Any, *, ephemeral: bool) -> Any:
        """Send a followup message to an already answered interaction."""
        ...

    async def acknowledge(self, interaction: Any, *, ephemeral: bool, update_message: bool = False) -> None:
        """Acknowledge an interaction without content."""
        ...

    async def edit(self, message: Any, builder: Any) -> Any:
        """Replace the content and components of a published message."""
        ...

    async def respond_modal(self, interaction: Any, modal: Any) -> None:
        """Answer an interaction by opening a modal."""
        ...

    async def autocomplete(self, interaction: Any, choices: list[dict[str, Any]]) -> None:
        """Answer an autocomplete request with suggested choices."""
        ...

    async def register_commands(self, definitions: list[dict[str, Any]]) -> None:
        """Advertise structured and user command definitions to the platform."""
        ...


__all__ = (
    "Message",
    "CommandInteraction",
    "ComponentInteraction",
    "ModalSubmission",
    "AutocompleteInteraction",
    "UserCommandInteraction",
    "Transport",
)
