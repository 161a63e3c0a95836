"""
In-memory transport shared by the asynchronous suites.

Every publication is deep-copied (later edits of a builder do not leak into
what was recorded) and pushed to `published`, so a test can wait for the
next prompt of a running command with `await transport.published.get()`.
"""

from __future__ import annotations

import asyncio
import copy
import itertools

from colloquy import Message

BOT_ID = 1
USER_ID = 42
OTHER_USER_ID = 99
CHANNEL_ID = 10


class FakeTransport:
    def __init__(self):
        self.published = asyncio.Queue()
        self.sent = []
        self.edits = []
        self.acknowledgements = []
        self.autocompletions = []
        self.definitions = None
        self._ids = itertools.count(1000)

    def _publish(self, kind, target, builder, **flags):
        snapshot = copy.deepcopy(builder)
        record = (kind, snapshot, flags)
        self.sent.append(record)
        self.published.put_nowait(record)
        return Message(next(self._ids), target, BOT_ID, snapshot.content or "", snapshot.components, True)

    async def send(self, channel_id, builder):
        return self._publish("send", channel_id, builder)

    async def send_dm(self, user_id, builder):
        return self._publish("dm", user_id, builder)

    async def respond(self, interaction, builder, *, ephemeral, update_message=False):
        return self._publish(
            "respond", interaction.channel_id, builder, ephemeral=ephemeral, update_message=update_message
        )

    async def followup(self, interaction, builder, *, ephemeral):
        return self._publish("followup", interaction.channel_id, builder, ephemeral=ephemeral)

    async def acknowledge(self, interaction, *, ephemeral, update_message=False):
        self.acknowledgements.append((interaction, ephemeral, update_message))

    async def edit(self, message, builder):
        self.edits.append(copy.deepcopy(builder))
        return message

    async def respond_modal(self, interaction, modal):
        record = ("modal", copy.deepcopy(modal), {})
        self.sent.append(record)
        self.published.put_nowait(record)

    async def autocomplete(self, interaction, choices):
        self.autocompletions.append(choices)

    async def register_commands(self, definitions):
        self.definitions = definitions


def text(content, /, author_id=USER_ID, *, author_bot=False):
    """A text message from `author_id` in the test channel."""
    return Message(1, CHANNEL_ID, author_id, content, (), author_bot)
