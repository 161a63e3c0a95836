"""
Colloquy faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every fault. Codes are
  grouped by domain so logs and searches stay predictable.
- CommandsException: base type carrying a message plus options (title, code,
  hint, and any payload such as the failing context) that knows how to render
  itself with rich.
- trigger(): central entry point to surface a fault on the console.
- getdoc(): optional description lookup for a code from the host application.

Taxonomy
- ConfigurationError: fatal at setup time, raised synchronously to whoever is
  building the tree (bad names, duplicate names or aliases, re-parenting,
  ambiguous converters, contexts used outside of a command).
- InvocationError: raised while running a command and surfaced through the
  error channel of the Commands root, never back into the event source.
- UnhandledInteractionError: a component event nobody was waiting for.

Integration
- Options are readable as attributes: error.context, error.check, error.exception.
- Hosts can remap codes and styles through __codes__ / __styles__ / __docs__
  mappings defined in __main__.
"""
import copy
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from loguru import logger
from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping (by high-level domain)
    - configuration (21xxx)
      • naming and registration (2110x), converters (2111x), contexts (2112x),
        type lattice (2113x), correlation ids (2114x), presentation (2115x)
    - invocation (22xxx)
      • binding (2210x), checks (2211x), handlers (2212x), interactions (2213x/2214x)
    """
    # --- configuration: naming and registration (21xxx) ---
    INVALID_NAME                = 21101
    DUPLICATE_NAME              = 21102
    ALREADY_REGISTERED          = 21103
    NESTED_STRUCTURED_COMMAND   = 21104

    # --- configuration: converters (21xxx) ---
    DUPLICATE_CONVERTER         = 21111

    # --- configuration: contexts (21xxx) ---
    OUTSIDE_COMMAND             = 21121
    UNSUPPORTED_DELEGATE        = 21122

    # --- configuration: type lattice (21xxx) ---
    UNHANDLED_ASSIGNABILITY     = 21131

    # --- configuration: correlation ids (21xxx) ---
    LIVE_COMPONENT_ID           = 21141
    FOREIGN_COMPONENT_ID        = 21142

    # --- configuration: presentation (21xxx) ---
    MISSING_PRESENTATION        = 21151

    # --- invocation: binding (22xxx) ---
    NOT_ENOUGH_ARGUMENTS        = 22101
    CONVERSION_FAILED           = 22102

    # --- invocation: checks (22xxx) ---
    CHECK_FAILED                = 22111

    # --- invocation: handlers (22xxx) ---
    UNCAUGHT_EXCEPTION          = 22121

    # --- invocation: interactions (22xxx) ---
    INTERACTION_TIMEOUT         = 22131
    UNHANDLED_INTERACTION       = 22141

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandsException(Exception):
    """
    Base of every colloquy fault.

    Subclasses declare __title__ and __fault__ so raise sites only need the
    message and the payload. Any option can be overridden per raise.
    """
    __title__ = "commands exception"
    __fault__ = Unset

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        options.setdefault("title", type(self).__title__)
        options.setdefault("code", type(self).__fault__)
        options.setdefault("hint", None)
        self.message = message
        self.options = MappingProxyType(options)

    def __getattr__(self, name, /):
        if name.startswith("_") or name == "options":
            raise AttributeError(name)
        try:
            return self.options[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}") from None

    def __str__(self):
        return self.message if self.message is not Unset else self.options["title"]

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        colorful = self.options.get("colorful", True)

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        code = self.options["code"]
        header = Text.assemble(
            "[ ",
            text(getattr(main, "__prog__", "colloquy"), "prog-name"),
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "?", "code"),
            " | ",
            text(self.options["title"].title(), "error-title"),
            " ]"
        )
        message = text(str(self), "error-message")
        hint = Text.assemble(text(" → ", "hint-arrow"), text(self.options["hint"], "hint"))

        if self.options.get("fancy", True):
            return Panel(Group(message, hint), title=header, title_align="left")
        return Group(header, message, hint)

    def __trigger__(self):
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ConfigurationError(CommandsException):
    __title__ = "configuration error"


class CommandRegistrationError(ConfigurationError):
    __title__ = "invalid registration"
    __fault__ = FaultCode.ALREADY_REGISTERED


class DuplicateNameError(CommandRegistrationError):
    __title__ = "duplicate name"
    __fault__ = FaultCode.DUPLICATE_NAME


class ConverterRegistrationError(ConfigurationError):
    __title__ = "ambiguous converter"
    __fault__ = FaultCode.DUPLICATE_CONVERTER


class InvocationError(CommandsException):
    """
    Base for faults raised while a command runs. Always carries `context`.
    """
    __title__ = "invocation error"


class NotEnoughArgumentsError(InvocationError):
    __title__ = "not enough arguments"
    __fault__ = FaultCode.NOT_ENOUGH_ARGUMENTS


class ConversionFailedError(InvocationError):
    __title__ = "bad argument"
    __fault__ = FaultCode.CONVERSION_FAILED


class CheckFailedError(InvocationError):
    __title__ = "check failed"
    __fault__ = FaultCode.CHECK_FAILED


class UncaughtException(InvocationError):
    """
    Wraps any fault raised by a command handler; the original is `exception`.
    """
    __title__ = "uncaught exception"
    __fault__ = FaultCode.UNCAUGHT_EXCEPTION

    def __trigger__(self):
        logger.opt(exception=self.options.get("exception")).error(str(self))
        console.print(self)


class InteractionTimeoutError(InvocationError):
    __title__ = "interaction timed out"
    __fault__ = FaultCode.INTERACTION_TIMEOUT


class UnhandledInteractionError(CommandsException):
    """
    A component event that matched no live listener; `status` tells why.
    """
    __title__ = "unhandled interaction"
    __fault__ = FaultCode.UNHANDLED_INTERACTION


def trigger(fault, /, **options):
    """
    surface a fault with the given rendering options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandsException).
    - options are merged into the fault via __replace__(**options) before triggering.

    typical options
    - fancy, colorful, hint, and any other context the reporter may want to show.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code from a __docs__ mapping in __main__.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be an fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandsException",
    "ConfigurationError",
    "CommandRegistrationError",
    "DuplicateNameError",
    "ConverterRegistrationError",
    "InvocationError",
    "NotEnoughArgumentsError",
    "ConversionFailedError",
    "CheckFailedError",
    "UncaughtException",
    "InteractionTimeoutError",
    "UnhandledInteractionError",
    "FaultCode",
    "trigger",
    "getdoc",
)
