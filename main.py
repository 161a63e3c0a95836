import asyncio
import itertools

from rich.pretty import pprint

from colloquy import *


class ConsoleTransport:
    """Prints everything the bot publishes."""

    def __init__(self):
        self.ids = itertools.count(1000)

    async def send(self, channel_id, builder):
        pprint(builder)
        return Message(next(self.ids), channel_id, 0, builder.content or "", builder.components)

    async def send_dm(self, user_id, builder):
        return await self.send(user_id, builder)

    async def respond(self, interaction, builder, *, ephemeral, update_message=False):
        return await self.send(interaction.channel_id, builder)

    async def followup(self, interaction, builder, *, ephemeral):
        return await self.send(interaction.channel_id, builder)

    async def acknowledge(self, interaction, *, ephemeral, update_message=False):
        pass

    async def edit(self, message, builder):
        return message

    async def respond_modal(self, interaction, modal):
        pprint(modal)

    async def autocomplete(self, interaction, choices):
        pprint(choices)

    async def register_commands(self, definitions):
        pprint(definitions)


bot = Commands(ConsoleTransport(), "!", client_id=1)

tools = bot.group("tools", "Small utilities")


@tools.command(parameters=[Parameter("a", int), Parameter("b", int, default=5)])
async def add(context, a, b):
    """Add two numbers."""
    await context.respond(MessageBuilder(f"{a} + {b} = {a + b}"))


if __name__ == '__main__':
    pprint(bot)
    asyncio.run(bot.sync_commands())
    asyncio.run(bot.process_message(Message(1, 10, 42, "!tools add 3")))
