"""
Interactive session tests (awaits, races, selections, pagination, modals).

Scope
- Validate button selection layout, id release and mandatory disabling.
- Validate paginated menus: page capacity, republishing on page controls,
  returning to the previous page, completion and disabling.
- Validate unmatched component events (wrong user, unknown id, foreign id).
- Validate timeouts (buttons and menus), races whose keys are released,
  delegation chains and contexts created outside commands.
- Validate modal round-trips.

Conventions
- Test method names follow CamelCase per project convention.
- A command runs as a task; the test plays the user by waiting for the next
  publication on the fake transport and feeding component events back.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest import IsolatedAsyncioTestCase

from colloquy import (
    ButtonContext,
    Commands,
    CommandInteraction,
    ComponentId,
    ComponentIdStatus,
    ComponentInteraction,
    ConfigurationError,
    InteractionTimeoutError,
    MessageBuilder,
    ModalSubmission,
    SelectMenu,
    TextInput,
    UnhandledInteractionError,
    button_ids,
)

from fakes import CHANNEL_ID, OTHER_USER_ID, USER_ID, FakeTransport, text


def _press(custom_id, user_id=USER_ID):
    return ComponentInteraction(2, user_id, CHANNEL_ID, custom_id)


def _select(menu, value, user_id=USER_ID):
    return ComponentInteraction(3, user_id, CHANNEL_ID, menu.custom_id, [value])


def _menu(builder):
    component, = builder.components[-1].components
    assert isinstance(component, SelectMenu)
    return component


def _labels(menu):
    return [option.label for option in menu.options]


def _value(menu, label):
    option, = (option for option in menu.options if option.label == label)
    return option.value


class InteractiveTestCase(IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.transport = FakeTransport()
        self.bot = Commands(self.transport, "!", client_id=1)
        self.faults = []
        self.bot.on_command_error.connect(self.faults.append)
        self.result = {}

    def run_command(self, content):
        return asyncio.create_task(self.bot.process_message(text(content)))

    async def next_publication(self):
        return await asyncio.wait_for(self.transport.published.get(), 1)

    async def listening_for(self, *keys):
        for _ in range(100):
            if all(self.bot.events.is_listening(key) for key in keys):
                return
            await asyncio.sleep(0)
        self.fail(f"nobody listens for {keys}")


class TestButtonSelection(InteractiveTestCase):

    async def testSevenButtonsMakeTwoRowsAndReleaseEveryId(self):
        @self.bot.command
        async def pick(context):
            self.result["value"] = await context.get_button_selection(list(range(7)), MessageBuilder("pick one"))

        task = self.run_command("!pick")
        kind, builder, _ = await self.next_publication()
        self.assertEqual(kind, "send")
        self.assertEqual([len(row.components) for row in builder.components], [5, 2])

        ids = list(button_ids(builder.components))
        self.assertEqual(len(set(ids)), 7)
        self.assertEqual(len(self.bot.events.listening), 7)

        await self.bot.process_component(_press(ids[3]))
        await task

        self.assertEqual(self.result["value"], 3)
        self.assertFalse(self.bot.events.listening)
        disabled = self.transport.edits[-1]
        self.assertTrue(all(button.disabled for row in disabled.components for button in row.components))
        self.assertEqual(self.faults, [])

    async def testConfirmation(self):
        @self.bot.command
        async def confirm(context):
            self.result["value"] = await context.get_confirmation(MessageBuilder("sure?"))

        task = self.run_command("!confirm")
        _, builder, _ = await self.next_publication()
        yes, no = builder.components[0].components
        self.assertEqual((yes.label, no.label), ("Yes", "No"))

        await self.bot.process_component(_press(no.custom_id))
        await task
        self.assertIs(self.result["value"], False)

    async def testOtherUsersCannotAnswer(self):
        @self.bot.command
        async def confirm(context):
            self.result["value"] = await context.get_confirmation(MessageBuilder("sure?"))

        task = self.run_command("!confirm")
        _, builder, _ = await self.next_publication()
        yes, _ = builder.components[0].components

        await self.bot.process_component(_press(yes.custom_id, OTHER_USER_ID))
        fault, = self.faults
        self.assertIsInstance(fault, UnhandledInteractionError)
        self.assertIs(fault.status, ComponentIdStatus.WRONG_USER)
        self.assertFalse(task.done())

        await self.bot.process_component(_press(yes.custom_id))
        await task
        self.assertIs(self.result["value"], True)

    async def testTimeoutDisablesAndReports(self):
        @self.bot.command
        async def confirm(context):
            await context.get_confirmation(MessageBuilder("sure?"), timeout=0.05)

        await self.run_command("!confirm")

        fault, = self.faults
        self.assertIsInstance(fault, InteractionTimeoutError)
        self.assertFalse(self.bot.events.listening)
        self.assertTrue(all(button.disabled for button in self.transport.edits[-1].components[0].components))

    async def testPressAfterCompletionIsUnhandled(self):
        @self.bot.command
        async def confirm(context):
            self.result["value"] = await context.get_confirmation(MessageBuilder("sure?"))

        task = self.run_command("!confirm")
        _, builder, _ = await self.next_publication()
        yes, no = builder.components[0].components
        await self.bot.process_component(_press(yes.custom_id))
        await task

        await self.bot.process_component(_press(no.custom_id))
        fault, = self.faults
        self.assertIs(fault.status, ComponentIdStatus.NO_HANDLER)

    async def testForeignIdsAreIgnored(self):
        self.assertIsNone(await self.bot.process_component(_press("somebody-else")))
        self.assertEqual(self.faults, [])


class TestPagination(InteractiveTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        items = [f"item-{number}" for number in range(30)]

        @self.bot.command
        async def choose(context):
            self.result["value"] = await context.get_selection(items, MessageBuilder("choose"))

    async def testFirstPageHoldsTwentyFourValuesAndNext(self):
        task = self.run_command("!choose")
        _, builder, _ = await self.next_publication()
        menu = _menu(builder)

        self.assertEqual(len(menu.options), 25)
        self.assertEqual(_labels(menu)[:24], [f"item-{n}" for n in range(24)])
        self.assertEqual(menu.options[-1].label, "Next page")
        task.cancel()

    async def testNextRepublishesAndValueTerminates(self):
        task = self.run_command("!choose")
        _, builder, _ = await self.next_publication()
        first = _menu(builder)

        await self.bot.process_component(_select(first, first.options[-1].value))
        self.assertFalse(task.done())

        kind, builder, flags = await self.next_publication()
        self.assertEqual(kind, "respond")
        self.assertTrue(flags["update_message"])
        second = _menu(builder)
        self.assertNotEqual(second.custom_id, first.custom_id)
        self.assertEqual(second.options[0].label, "Previous page")
        self.assertEqual(_labels(second)[1:], [f"item-{n}" for n in range(24, 30)])

        await self.bot.process_component(_select(second, _value(second, "item-25")))
        await task

        self.assertEqual(self.result["value"], "item-25")
        self.assertTrue(_menu(self.transport.edits[-1]).disabled)
        self.assertFalse(self.bot.events.listening)

    async def testPreviousReturnsToTheVisitedPage(self):
        task = self.run_command("!choose")
        _, builder, _ = await self.next_publication()
        first = _menu(builder)
        await self.bot.process_component(_select(first, first.options[-1].value))

        _, builder, _ = await self.next_publication()
        second = _menu(builder)
        await self.bot.process_component(_select(second, second.options[0].value))

        _, builder, _ = await self.next_publication()
        again = _menu(builder)
        self.assertEqual(_labels(again), _labels(first))

        await self.bot.process_component(_select(again, _value(again, "item-0")))
        await task
        self.assertEqual(self.result["value"], "item-0")


class TestSelection(InteractiveTestCase):

    async def testLookalikeChoicesStayDistinct(self):
        @self.bot.command
        async def pick(context):
            self.result["value"] = await context.get_selection([1, "1"], MessageBuilder("pick"))

        task = self.run_command("!pick")
        _, builder, _ = await self.next_publication()
        menu = _menu(builder)
        self.assertEqual(_labels(menu), ["1", "1"])
        first, second = (option.value for option in menu.options)
        self.assertNotEqual(first, second)

        await self.bot.process_component(_select(menu, first))
        await task
        self.assertEqual(self.result["value"], 1)
        self.assertIsInstance(self.result["value"], int)

    async def testTimeoutDisablesAndReports(self):
        @self.bot.command
        async def pick(context):
            await context.get_selection(["a", "b"], MessageBuilder("pick"), timeout=0.05)

        await self.run_command("!pick")

        fault, = self.faults
        self.assertIsInstance(fault, InteractionTimeoutError)
        self.assertTrue(_menu(self.transport.edits[-1]).disabled)
        self.assertFalse(self.bot.events.listening)


class TestPageBoundaries(InteractiveTestCase):

    async def _first_page(self, count):
        @self.bot.command(name=f"choose-{count}")
        async def choose(context):
            await context.get_selection(list(range(count)), MessageBuilder("choose"))

        task = self.run_command(f"!choose-{count}")
        _, builder, _ = await self.next_publication()
        task.cancel()
        return _menu(builder)

    async def testTwentyFiveFitOnOnePage(self):
        menu = await self._first_page(25)
        self.assertEqual(len(menu.options), 25)
        self.assertNotIn("Next page", [option.label for option in menu.options])

    async def testTwentySixNeedANextPage(self):
        menu = await self._first_page(26)
        self.assertEqual(len(menu.options), 25)
        self.assertEqual(menu.options[-1].label, "Next page")


class TestMultiSelection(InteractiveTestCase):

    async def testEveryChoiceIsRequired(self):
        @self.bot.command
        async def order(context):
            self.result["value"] = await context.get_multi_selection(["a", "b", "c"], MessageBuilder("order"))

        task = self.run_command("!order")
        _, builder, _ = await self.next_publication()
        menu = _menu(builder)
        self.assertEqual((menu.min_values, menu.max_values), (3, 3))

        values = [_value(menu, label) for label in ("c", "a", "b")]
        await self.bot.process_component(ComponentInteraction(4, USER_ID, CHANNEL_ID, menu.custom_id, values))
        await task
        self.assertEqual(self.result["value"], ["c", "a", "b"])
        self.assertTrue(_menu(self.transport.edits[-1]).disabled)

    async def testTimeoutDisablesAndReports(self):
        @self.bot.command
        async def order(context):
            await context.get_multi_selection(["a", "b"], MessageBuilder("order"), timeout=0.05)

        await self.run_command("!order")

        fault, = self.faults
        self.assertIsInstance(fault, InteractionTimeoutError)
        self.assertTrue(_menu(self.transport.edits[-1]).disabled)
        self.assertFalse(self.bot.events.listening)


class TestDelegation(InteractiveTestCase):

    async def testChainedAwaitsForwardToTheLatestContext(self):
        first_id = ComponentId.generate()
        second_id = ComponentId.generate()

        @self.bot.command
        async def chain(context):
            first = await context.await_button_press(first_id)
            second = await context.await_button_press(second_id)
            await context.respond(MessageBuilder("done"))
            self.result.update(context=context, first=first, second=second)

        task = self.run_command("!chain")
        await self.listening_for(first_id)
        await self.bot.process_component(_press(str(first_id)))
        await self.listening_for(second_id)
        await self.bot.process_component(_press(str(second_id)))
        await task

        context, first, second = self.result["context"], self.result["first"], self.result["second"]
        self.assertIs(context.delegate, first)
        self.assertIs(first.delegate, second)
        self.assertIs(context.latest, second)
        self.assertIs(second.parent, first)
        # the final response answered the newest interaction
        kind, _, _ = self.transport.sent[-1]
        self.assertEqual(kind, "respond")

    async def testRaceReleasesTheLosers(self):
        ids = [ComponentId.generate() for _ in range(3)]

        @self.bot.command
        async def race(context):
            self.result["winner"] = await context.race_components(ids)

        task = self.run_command("!race")
        await self.listening_for(*ids)
        self.assertEqual(self.bot.events.listening, frozenset(ids))
        await self.bot.process_component(_press(str(ids[1])))
        await task

        self.assertEqual(self.result["winner"].component_id, ids[1])
        self.assertFalse(self.bot.events.listening)

    async def testReleasedRaceKeysCountAsFailures(self):
        ids = [ComponentId.generate() for _ in range(2)]
        race = asyncio.create_task(self.bot.events.race(ids))
        await self.listening_for(*ids)
        for component_id in ids:
            self.bot.events.stop_listening_for(component_id)

        with self.assertRaises(TimeoutError):
            await race
        self.assertFalse(self.bot.events.listening)

    async def testRaceSurvivesOneReleasedKey(self):
        ids = [ComponentId.generate() for _ in range(2)]
        race = asyncio.create_task(self.bot.events.race(ids))
        await self.listening_for(*ids)
        self.bot.events.stop_listening_for(ids[0])
        await asyncio.sleep(0)

        await self.bot.process_component(_press(str(ids[1])))
        self.assertEqual((await race).component_id, ids[1])

    async def testLiveIdsCannotBeReused(self):
        component_id = ComponentId.generate()
        self.bot.events.listen(component_id)
        with self.assertRaises(ConfigurationError):
            self.bot.events.listen(component_id)
        self.bot.events.stop_listening_for(component_id)
        self.assertFalse(self.bot.events.is_listening(component_id))

    async def testContextsOutsideCommandsAreRejected(self):
        component_id = ComponentId.generate()
        context = ButtonContext(self.bot, _press(str(component_id)), component_id)
        with self.assertRaises(ConfigurationError):
            await context.await_component(ComponentId.generate())
        with self.assertRaises(ConfigurationError):
            await context.get_confirmation(MessageBuilder("sure?"))
        self.assertFalse(self.bot.events.listening)


class TestModals(InteractiveTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.bot = Commands(self.transport, client_id=1)
        self.bot.on_command_error.connect(self.faults.append)

    async def testModalRoundTrip(self):
        @self.bot.command
        async def profile(context):
            submitted = await context.get_modal("Profile", [TextInput("name", "Your name")])
            self.result["name"] = submitted["name"]
            await submitted.respond(MessageBuilder("thanks"))

        task = asyncio.create_task(
            self.bot.process_interaction(CommandInteraction(5, USER_ID, CHANNEL_ID, ("profile",), {}))
        )
        kind, modal, _ = await self.next_publication()
        self.assertEqual(kind, "modal")
        self.assertEqual(modal.title, "Profile")

        await self.bot.process_modal(ModalSubmission(6, USER_ID, CHANNEL_ID, modal.custom_id, {"name": "Ada"}))
        await task

        self.assertEqual(self.result["name"], "Ada")
        self.assertEqual(self.faults, [])
        self.assertEqual(self.transport.acknowledgements, [])

    async def testModalsNeedAnInteraction(self):
        bot = Commands(self.transport, "!", client_id=1)
        bot.on_command_error.connect(self.faults.append)

        @bot.command
        async def profile(context):
            await context.get_modal("Profile", [TextInput("name", "Your name")])

        await bot.process_message(text("!profile"))
        fault, = self.faults
        self.assertIsInstance(fault.exception, ConfigurationError)

    async def testUnknownSubmissionsAreIgnored(self):
        self.assertIsNone(await self.bot.process_modal(ModalSubmission(6, USER_ID, CHANNEL_ID, "nobody", {})))


if __name__ == "__main__":
    unittest.main()
