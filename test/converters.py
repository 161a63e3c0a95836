"""
Converter registry tests (resolution, registration faults, conversion).

Scope
- Validate exact and most-specific resolution and its determinism.
- Validate that a failed conversion leaves the view untouched.
- Validate the built-in converters (int, float, bool, Snowflake, str).

Conventions
- Test method names follow CamelCase per project convention.
- Conversions run without a context (the built-ins never read it).
"""

from __future__ import annotations

import unittest
from unittest import IsolatedAsyncioTestCase, TestCase

from colloquy import (
    BUILTIN_CONVERTERS,
    ConversionFailedError,
    Converter,
    ConverterRegistrationError,
    ConverterRegistry,
    OptionKind,
    Snowflake,
    StringView,
    boolean_converter,
    converter,
    integer_converter,
    snowflake_converter,
    string_converter,
)


class Animal:
    pass


class Dog(Animal):
    pass


class Puppy(Dog):
    pass


def _never(view, context):
    return None


class TestResolution(TestCase):

    def testExactMatchWins(self):
        registry = ConverterRegistry(BUILTIN_CONVERTERS)
        self.assertIs(registry.resolve(int), integer_converter)
        self.assertIs(registry.resolve(Snowflake), snowflake_converter)
        self.assertIs(registry.resolve(str), string_converter)

    def testMostSpecificAssignableWins(self):
        dog = Converter(_never, Dog)
        puppy = Converter(_never, Puppy)
        self.assertIs(ConverterRegistry([dog, puppy]).resolve(Animal), puppy)
        self.assertIs(ConverterRegistry([puppy, dog]).resolve(Animal), puppy)

    def testTiesGoToTheFirstRegistered(self):
        registry = ConverterRegistry([snowflake_converter, boolean_converter])
        self.assertIs(registry.resolve(int), snowflake_converter)
        registry = ConverterRegistry([boolean_converter, snowflake_converter])
        self.assertIs(registry.resolve(int), boolean_converter)

    def testResolutionIsDeterministic(self):
        registry = ConverterRegistry([snowflake_converter, boolean_converter, Converter(_never, Dog)])
        first = registry.resolve(int)
        for _ in range(10):
            self.assertIs(registry.resolve(int), first)

    def testNullableTypesUseTheExactBaseConverter(self):
        registry = ConverterRegistry(BUILTIN_CONVERTERS)
        self.assertIs(registry.resolve(int | None), integer_converter)
        self.assertIs(registry.resolve(str | None), string_converter)
        nullable_dog = Converter(_never, Dog | None)
        registry = ConverterRegistry([Converter(_never, Puppy), Converter(_never, Dog), nullable_dog])
        self.assertIs(registry.resolve(Dog | None), nullable_dog)

    def testUnrelatedTypeResolvesToNothing(self):
        self.assertIsNone(ConverterRegistry(BUILTIN_CONVERTERS).resolve(Animal))

    def testDuplicateExactTypeIsRejected(self):
        registry = ConverterRegistry(BUILTIN_CONVERTERS)
        with self.assertRaises(ConverterRegistrationError):
            registry.register(Converter(_never, int))

    def testDecoratorFactory(self):
        @converter(Dog, kind=OptionKind.USER)
        def dog(view, context):
            return Dog()

        self.assertIsInstance(dog, Converter)
        self.assertEqual(dog.kind, OptionKind.USER)
        self.assertIs(ConverterRegistry([dog]).resolve(Dog), dog)


class TestConversion(IsolatedAsyncioTestCase):

    def setUp(self):
        self.registry = ConverterRegistry(BUILTIN_CONVERTERS)

    async def testIntegers(self):
        view = StringView("12 34")
        self.assertEqual(await self.registry.convert(view, None, int), 12)
        self.assertEqual(await self.registry.convert(view, None, int), 34)

    async def testNullableIntegers(self):
        self.assertEqual(await self.registry.convert(StringView("3"), None, int | None), 3)

    async def testFailedConversionDoesNotConsume(self):
        view = StringView("  twelve")
        with self.assertRaises(ConversionFailedError) as caught:
            await self.registry.convert(view, None, int)
        self.assertEqual(caught.exception.input, "twelve")
        self.assertEqual(view.index, 0)
        self.assertEqual(await self.registry.convert(view, None, str), "twelve")

    async def testFailingConverterExceptionDoesNotConsume(self):
        def explode(view, context):
            view.get_word()
            raise RuntimeError("boom")

        view = StringView("word")
        with self.assertRaises(RuntimeError):
            await self.registry.convert(view, None, Dog, Converter(explode, Dog))
        self.assertEqual(view.index, 0)

    async def testMissingConverter(self):
        with self.assertRaises(ConversionFailedError):
            await self.registry.convert(StringView("x"), None, Animal)

    async def testOverrideIsUsedFirst(self):
        async def shout(view, context):
            return view.get_quoted_word().upper()

        view = StringView("quiet")
        self.assertEqual(await self.registry.convert(view, None, str, Converter(shout, str)), "QUIET")

    async def testBooleans(self):
        for raw, expected in (("yes", True), ("+", True), ("TRUE", True), ("no", False), ("0", False)):
            with self.subTest(raw=raw):
                self.assertIs(await self.registry.convert(StringView(raw), None, bool), expected)
        with self.assertRaises(ConversionFailedError):
            await self.registry.convert(StringView("maybe"), None, bool)

    async def testFloats(self):
        self.assertEqual(await self.registry.convert(StringView("2.5"), None, float), 2.5)

    async def testSnowflakes(self):
        for raw in ("<@123456789012345678>", "<@!123456789012345678>", "<#123456789012345678>",
                    "123456789012345678"):
            with self.subTest(raw=raw):
                value = await self.registry.convert(StringView(raw), None, Snowflake)
                self.assertEqual(value, 123456789012345678)
                self.assertIsInstance(value, Snowflake)
        with self.assertRaises(ConversionFailedError):
            await self.registry.convert(StringView("1234"), None, Snowflake)

    async def testQuotedStrings(self):
        view = StringView('"two words" rest')
        self.assertEqual(await self.registry.convert(view, None, str), "two words")


if __name__ == "__main__":
    unittest.main()
