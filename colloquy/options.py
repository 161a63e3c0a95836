"""
Inherited command configuration.

- CommandType: how a command can be invoked (text, structured, both, or the
  inherited default).
- ResponseLevel: visibility policy for responses.
- CommandOptions: nullable fields resolved nearest-non-null toward the root.
"""
import builtins
import enum

from .internals import SpecType


class CommandType(enum.Enum):
    TEXT_ONLY = "text-only"
    STRUCTURED_ONLY = "structured-only"
    ALL = "all"
    DEFAULT = "default"


class ResponseLevel(metaclass=SpecType, sealed=True):
    """
    How a response is published.

    Fields
    - hide_interaction: respond ephemerally to interactions.
    - is_dm: send text responses in a direct message.
    - mention: None leaves mentions alone, True/False forces the reply mention.
    - preserve_component_messages: when responding to a component event, send
      a new message instead of editing the one carrying the component.
    """
    __introspectable__ = ("hide_interaction", "is_dm", "mention", "preserve_component_messages")

    def __init__(self, *, hide_interaction, is_dm=False, mention=None, preserve_component_messages=True):
        for name, value in (("hide_interaction", hide_interaction), ("is_dm", is_dm),
                            ("preserve_component_messages", preserve_component_messages)):
            if not isinstance(value, bool):
                raise TypeError(f"{type(self).__typename__} {name!r} must be a boolean")
        if mention is not None and not isinstance(mention, bool):
            raise TypeError(f"{type(self).__typename__} 'mention' must be a boolean or None")
        self._hide_interaction = hide_interaction
        self._is_dm = is_dm
        self._mention = mention
        self._preserve_component_messages = preserve_component_messages

    def __eq__(self, other, /):
        if not isinstance(other, ResponseLevel):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    def __hash__(self):
        return hash(tuple(self.__rich_repr__()))

    def __replace__(self, **overrides):
        return type(self)(**dict(self.__rich_repr__()) | overrides)


ResponseLevel.PUBLIC = ResponseLevel(hide_interaction=False)
ResponseLevel.PRIVATE = ResponseLevel(hide_interaction=True)
ResponseLevel.HINT = ResponseLevel(hide_interaction=True, is_dm=True, mention=False)


class CommandOptions(metaclass=SpecType, sealed=True):
    """
    Per-node configuration. Every field defaults to None, meaning "inherit".

    Fields
    - auto_acknowledge_interactions: acknowledge structured invocations that
      have not responded after auto_acknowledge_duration seconds.
    - auto_acknowledge_duration: seconds before the automatic acknowledgement.
    - accept_bot_commands: run text commands sent by bots.
    - accept_self_commands: run text commands sent by this bot itself.
    - default_response_level: ResponseLevel used when none is given.
    - type: default CommandType for commands declared with DEFAULT.
    - case_insensitive_commands: look up command words lower-cased.
    """
    __introspectable__ = (
        "auto_acknowledge_interactions",
        "auto_acknowledge_duration",
        "accept_bot_commands",
        "accept_self_commands",
        "default_response_level",
        "type",
        "case_insensitive_commands",
    )

    def __init__(
            self,
            *,
            auto_acknowledge_interactions=None,
            auto_acknowledge_duration=None,
            accept_bot_commands=None,
            accept_self_commands=None,
            default_response_level=None,
            type=None,
            case_insensitive_commands=None,
    ):
        cls = builtins.type(self)
        for name, value in (
                ("auto_acknowledge_interactions", auto_acknowledge_interactions),
                ("accept_bot_commands", accept_bot_commands),
                ("accept_self_commands", accept_self_commands),
                ("case_insensitive_commands", case_insensitive_commands),
        ):
            if value is not None and not isinstance(value, bool):
                raise TypeError(f"{cls.__typename__} {name!r} must be a boolean or None")
        if auto_acknowledge_duration is not None and (
                not isinstance(auto_acknowledge_duration, int | float) or auto_acknowledge_duration < 0
        ):
            raise ValueError(f"{cls.__typename__} 'auto_acknowledge_duration' must be a non-negative number")
        if default_response_level is not None and not isinstance(default_response_level, ResponseLevel):
            raise TypeError(f"{cls.__typename__} 'default_response_level' must be a response-level or None")
        if type is not None and not isinstance(type, CommandType):
            raise TypeError(f"{cls.__typename__} 'type' must be a command type or None")

        self._auto_acknowledge_interactions = auto_acknowledge_interactions
        self._auto_acknowledge_duration = auto_acknowledge_duration
        self._accept_bot_commands = accept_bot_commands
        self._accept_self_commands = accept_self_commands
        self._default_response_level = default_response_level
        self._type = type
        self._case_insensitive_commands = case_insensitive_commands

    def __eq__(self, other, /):
        if not isinstance(other, CommandOptions):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    def __hash__(self):
        return hash(tuple(self.__rich_repr__()))

    def __replace__(self, **overrides):
        return builtins.type(self)(**dict(self.__rich_repr__()) | overrides)

    def merge(self, fallback, /):
        """
        Return options where every None field is taken from `fallback`.
        """
        return builtins.type(self)(**{
            name: value if value is not None else getattr(fallback, name)
            for name, value in self.__rich_repr__()
        })


DEFAULT_OPTIONS = CommandOptions(
    auto_acknowledge_interactions=True,
    auto_acknowledge_duration=2.0,
    accept_bot_commands=False,
    accept_self_commands=False,
    default_response_level=ResponseLevel.PUBLIC,
    type=CommandType.ALL,
    case_insensitive_commands=False,
)
"""Concrete values supplied by the Commands root under user overrides."""


__all__ = (
    "CommandType",
    "ResponseLevel",
    "CommandOptions",
    "DEFAULT_OPTIONS",
)
