"""
Converters: raw input to typed values.

Converter
- Wraps a sync or async callable (view, context) -> value | None, where None
  means "no match". Carries the output type (a Python annotation, described
  through the type lattice), the option kind advertised for structured
  parameters, optional fixed choices, and presentation hooks rendering a
  value as a Button or a SelectOption.

ConverterRegistry
- resolve(type): exact match first (for a nullable type, then the exact match
  of its non-null base); otherwise the most specific registered output
  assignable to the requested type, earliest registration on ties.
- convert(view, context, type, override): runs the override or the resolved
  converter. A converter that does not match leaves the view where it was.

Built-ins
- str, int, float, bool and Snowflake (mention or raw id).
"""
import enum
import inspect
import re

from loguru import logger

from .components import Button, SelectOption
from .faults import ConversionFailedError, ConverterRegistrationError
from .internals import SpecType
from .lattice import assignable, describe, non_nullable
from .utils import *


class OptionKind(enum.IntEnum):
    """Kinds of structured parameters, numbered as the platform numbers them."""
    SUB_COMMAND = 1
    SUB_COMMAND_GROUP = 2
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5
    USER = 6
    CHANNEL = 7
    ROLE = 8
    MENTIONABLE = 9
    NUMBER = 10
    ATTACHMENT = 11


class Snowflake(int):
    """Platform identifier: a 64-bit integer rendered as a decimal string."""

    def __repr__(self):
        return f"Snowflake({int(self)})"


def _to_button(value):
    return Button(str(value))


def _to_option(value):
    return SelectOption(str(value), str(value))


class Converter(metaclass=SpecType):
    """
    Declarative converter for one output type.

    Parameters
    - function: sync or async callable (view, context) -> value | None.
    - output: Python annotation of the produced values.
    - kind: OptionKind advertised for structured parameters.
    - choices: optional mapping of display name -> value to advertise.
    - to_button / to_option: presentation hooks for interactive selections.
    """
    __introspectable__ = ("function", "output", "type", "kind", "choices", "to_button", "to_option")
    __displayable__ = ("output", "kind")

    def __init__(
            self,
            function,
            output,
            /,
            *,
            kind=OptionKind.STRING,
            choices=None,
            to_button=_to_button,
            to_option=_to_option,
    ):
        cls = type(self)
        if not callable(function):
            raise TypeError(f"{cls.__typename__} 'function' must be callable")
        if not isinstance(kind, OptionKind):
            raise TypeError(f"{cls.__typename__} 'kind' must be an option kind")
        if choices is not None and not isinstance(choices, dict):
            raise TypeError(f"{cls.__typename__} 'choices' must be a dict or None")
        for name, hook in (("to_button", to_button), ("to_option", to_option)):
            if hook is not None and not callable(hook):
                raise TypeError(f"{cls.__typename__} {name!r} must be callable or None")

        self._function = function
        self._output = output
        self._type = describe(output)
        self._kind = kind
        self._choices = choices
        self._to_button = to_button
        self._to_option = to_option

    async def __call__(self, view, context, /):
        result = self._function(view, context)
        if inspect.isawaitable(result):
            result = await result
        return result


def converter(output, function=Unset, /, **kwargs):
    """
    Create a Converter for `output`, or return a decorator that builds one.

        @converter(Color, kind=OptionKind.STRING)
        def color(view, context): ...
    """
    @rename("converter")
    def wrapper(function, /):
        if not callable(function):
            raise TypeError("@converter() must be applied to a callable")
        return Converter(function, output, **kwargs)

    return wrapper(function) if function is not Unset else wrapper


class ConverterRegistry:
    """
    Ordered registry of converters keyed by their output descriptor.
    """

    def __init__(self, converters=(), /):
        self._converters = {}
        for item in converters:
            self.register(item)

    def __repr__(self):
        return f"ConverterRegistry({list(self._converters)!r})"

    def __len__(self):
        return len(self._converters)

    def __iter__(self):
        return iter(self._converters.values())

    def register(self, converter, /):
        """
        Add a converter. Returns it, so this works as a decorator.

        Raises
        - ConverterRegistrationError when another converter already produces
          the exact same type.
        """
        if not isinstance(converter, Converter):
            raise TypeError("converter-registry can only register converters")
        if converter.type in self._converters:
            raise ConverterRegistrationError(
                f"a converter for {converter.type!r} is already registered",
                hint="pass the alternative as a converter override on the parameter instead",
            )
        self._converters[converter.type] = converter
        logger.debug("registered converter for {!r}", converter.type)
        return converter

    def resolve(self, annotation, /):
        """
        Return the converter for a declared type, or None.

        A nullable type uses the exact converter of its non-null base before
        any subtype converter is considered.
        """
        target = describe(annotation)
        for exact in dict.fromkeys((target, non_nullable(target))):
            if exact in self._converters:
                return self._converters[exact]

        best = None
        for descriptor, candidate in self._converters.items():
            if not assignable(descriptor, target):
                continue
            if best is None or (assignable(descriptor, best.type) and not assignable(best.type, descriptor)):
                best = candidate
        return best

    async def convert(self, view, context, annotation, /, override=None):
        """
        Convert the next input of `view` to `annotation`.

        Raises
        - ConversionFailedError when no converter applies or the converter
          does not match; the view is restored to where it was.
        """
        selected = override if override is not None else self.resolve(annotation)
        checkpoint = view.checkpoint()

        if selected is None:
            raise ConversionFailedError(
                f"no converter found for {describe(annotation)!r}",
                context=context,
                hint="register a converter for this type or set a converter override",
            )

        try:
            result = await selected(view, context)
        except BaseException:
            view.restore(checkpoint)
            raise

        if result is None:
            word = view.buffer[checkpoint[0]:view.index].strip()
            view.restore(checkpoint)
            raise ConversionFailedError(
                f"could not convert {word!r} to {selected.type!r}",
                context=context,
                input=word,
            )
        return result


def _convert_str(view, context):
    return view.get_quoted_word()


def _convert_int(view, context):
    try:
        return int(view.get_quoted_word())
    except ValueError:
        return None


def _convert_float(view, context):
    try:
        return float(view.get_quoted_word())
    except ValueError:
        return None


_TRUTHY = frozenset(("y", "yes", "+", "1", "true"))
_FALSY = frozenset(("n", "no", "-", "0", "false"))


def _convert_bool(view, context):
    word = view.get_quoted_word().lower()
    if word in _TRUTHY:
        return True
    if word in _FALSY:
        return False
    return None


def _bool_to_option(value):
    return SelectOption("Yes" if value else "No", "true" if value else "false")


SNOWFLAKE_PATTERN = re.compile(r"^(?:<(?:@(?:!|&)?|#)([0-9]{15,20})>|([0-9]{15,20}))$")
"""User, member, role or channel mention, or a raw id."""


def _convert_snowflake(view, context):
    match = SNOWFLAKE_PATTERN.match(view.get_quoted_word())
    if match is None:
        return None
    # mention first, raw id second
    return Snowflake(match.group(1) or match.group(2))


string_converter = Converter(_convert_str, str)
integer_converter = Converter(_convert_int, int, kind=OptionKind.INTEGER)
number_converter = Converter(_convert_float, float, kind=OptionKind.NUMBER)
boolean_converter = Converter(_convert_bool, bool, kind=OptionKind.BOOLEAN, to_option=_bool_to_option)
snowflake_converter = Converter(_convert_snowflake, Snowflake)

BUILTIN_CONVERTERS = (
    string_converter,
    integer_converter,
    number_converter,
    boolean_converter,
    snowflake_converter,
)


__all__ = (
    "OptionKind",
    "Snowflake",
    "Converter",
    "converter",
    "ConverterRegistry",
    "SNOWFLAKE_PATTERN",
    "string_converter",
    "integer_converter",
    "number_converter",
    "boolean_converter",
    "snowflake_converter",
    "BUILTIN_CONVERTERS",
)
