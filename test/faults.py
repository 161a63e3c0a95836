"""
Fault layer and small building blocks (faults, utils, signals, checks).

Scope
- Validate fault options, replacement and rich rendering through trigger().
- Validate host hooks on __main__ (__codes__, __docs__).
- Validate Unset/coalesce/ordinal and sealed option classes.
- Validate Signal ordering and the check combinators.

Conventions
- Test method names follow CamelCase per project convention.
- Rendering is captured by swapping the module console for a recording one.
"""

from __future__ import annotations

import copy
import io
import unittest
from unittest import IsolatedAsyncioTestCase, TestCase, mock

from rich.console import Console

from colloquy import (
    CheckFailedError,
    CommandOptions,
    ComponentId,
    ComponentIdStatus,
    FaultCode,
    ResponseLevel,
    Signal,
    all_of,
    any_of,
    check,
    getdoc,
    negate,
    trigger,
)
from colloquy.utils import Unset, coalesce, ordinal


class TestFaults(TestCase):

    def testOptionsAreAttributes(self):
        fault = CheckFailedError("no entry", context="ctx", hint="ask an admin")
        self.assertEqual(fault.context, "ctx")
        self.assertEqual(fault.code, FaultCode.CHECK_FAILED)
        self.assertEqual(fault.title, "check failed")
        self.assertEqual(str(fault), "no entry")
        with self.assertRaises(AttributeError):
            fault.missing

    def testReplaceKeepsTheMessage(self):
        fault = copy.replace(CheckFailedError("no entry"), hint="later")
        self.assertIsInstance(fault, CheckFailedError)
        self.assertEqual((str(fault), fault.hint), ("no entry", "later"))

    def testTriggerRenders(self):
        buffer = io.StringIO()
        with mock.patch("colloquy.faults.console", Console(file=buffer, width=120)):
            trigger(CheckFailedError("no entry", hint="ask an admin"), colorful=False)
        rendered = buffer.getvalue()
        self.assertIn(str(FaultCode.CHECK_FAILED.value), rendered)
        self.assertIn("Check Failed", rendered)
        self.assertIn("ask an admin", rendered)

    def testTriggerNeedsAFault(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("plain"))

    def testHostHooks(self):
        import __main__

        with mock.patch.object(__main__, "__codes__", {FaultCode.CHECK_FAILED: "E-CHECK"}, create=True), \
                mock.patch.object(__main__, "__docs__", {FaultCode.CHECK_FAILED: "A check said no."}, create=True):
            self.assertEqual(FaultCode.CHECK_FAILED.normalize(), "E-CHECK")
            self.assertEqual(getdoc(FaultCode.CHECK_FAILED), "A check said no.")
            self.assertIsNone(getdoc(FaultCode.DUPLICATE_NAME))
        with self.assertRaises(TypeError):
            getdoc(22111)


class TestUtilities(TestCase):

    def testCoalesce(self):
        self.assertEqual(coalesce(Unset, 1), 1)
        self.assertIsNone(coalesce(None, 1))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertFalse(Unset)

    def testOrdinal(self):
        self.assertEqual([ordinal(n) for n in (1, 3, 11, 12, 21, 22, 113)],
                         ["first", "third", "11th", "12th", "21st", "22nd", "113th"])

    def testOptionsAreSealedValues(self):
        with self.assertRaises(TypeError):
            class Custom(CommandOptions):
                pass
        self.assertEqual(copy.replace(ResponseLevel.PUBLIC, hide_interaction=True), ResponseLevel.PRIVATE)
        with self.assertRaises(AttributeError):
            ResponseLevel.PUBLIC.is_dm = True

    def testComponentIdRoundTrip(self):
        component_id = ComponentId.generate(expires_in=60, allowed_user=42)
        self.assertEqual(ComponentId.parse(str(component_id)), component_id)
        self.assertIs(component_id.status(42), ComponentIdStatus.OK)
        self.assertIs(component_id.status(7), ComponentIdStatus.WRONG_USER)
        self.assertIsNone(ComponentId.parse("colloquy/not/an/id"))

    def testStaleComponentIds(self):
        expired = ComponentId.generate(expires_in=0)
        self.assertIs(expired.status(), ComponentIdStatus.EXPIRED)
        stale = ComponentId("abc", 0.0)
        self.assertIs(stale.status(), ComponentIdStatus.SESSION_EXPIRED)


class TestSignalsAndChecks(IsolatedAsyncioTestCase):

    async def testSignalNotifiesInOrder(self):
        seen = []
        signal = Signal("test")

        async def second(payload):
            seen.append(("second", payload))

        first = signal.connect(lambda payload: seen.append(("first", payload)))
        signal.connect(second)
        await signal.emit(1)
        signal.disconnect(first)
        await signal.emit(2)
        self.assertEqual(seen, [("first", 1), ("second", 1), ("second", 2)])
        with self.assertRaises(ValueError):
            signal.disconnect(first)

    async def testCombinators(self):
        yes = check(lambda context: True, "yes")
        no = check(lambda context: False, "no")

        self.assertTrue(await all_of(yes, yes)(None))
        self.assertFalse(await all_of(yes, no)(None))
        self.assertTrue(await any_of(no, yes)(None))
        self.assertFalse(await any_of(no, no)(None))
        self.assertTrue(await negate(no)(None))
        self.assertEqual(negate(no).name, "not no")

    async def testCombinatorsKeepHooks(self):
        hook = check(lambda context: True, "hooked", pre_call_hooks=[print])
        self.assertEqual(all_of(hook, hook).pre_call_hooks, (print, print))


if __name__ == "__main__":
    unittest.main()
