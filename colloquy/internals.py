"""
Internal plumbing shared by the command tree, converters and parameters.

SpecType
- Metaclass for every declarative object of the engine (commands, groups,
  parameters, converters, checks, options). It gives each class:
  • __typename__: the class name split on camel-case humps and hyphenated
    (e.g. "ConverterRegistry" → "converter-registry"), used in messages.
  • read-only properties for each name in __introspectable__, backed by
    "_{name}" fields (see utils.mirror).
  • stable __repr__/__rich_repr__ driven by __displayable__ (or
    __introspectable__ when unset), so rich.pretty renders specs nicely.

Naming
- validate_name(): platform naming rule for commands, groups and parameters.
"""
import functools
import operator
import re

from .faults import CommandRegistrationError, FaultCode
from .utils import *

NAME_PATTERN = re.compile(r"[-\w]{1,32}")
"""
Platform naming rule: 1 to 32 word characters or hyphens (unicode letters
and digits included). Names are additionally required to be lowercase.
"""


class SpecType(type):
    """
    Metaclass that turns plain classes into introspectable, read-only specs.

    Options (construction-time)
    - sealed: when True, the resulting class cannot be subclassed.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        if "__repr__" not in namespace:
            @rename("__repr__")
            def __repr__(self):
                return f"{type(self).__typename__}({
                    ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
                })"
            self.__repr__ = __repr__

        if "__rich_repr__" not in namespace:
            @rename("__rich_repr__")
            def __rich_repr__(self):
                for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                    yield name, getattr(self, name)
            self.__rich_repr__ = __rich_repr__

        if options.get("sealed", False):
            @rename("__init_subclass__")
            def __init_subclass__(cls, **options):  # NOQA: F-841
                raise TypeError(f"type {self.__name__!r} is not an acceptable base type")
            self.__init_subclass__ = classmethod(__init_subclass__)

        return self


def validate_name(cls, name, /, label="name"):
    """
    Validate a platform name for the spec class `cls`.

    Raises
    - TypeError: when the name is not a string.
    - CommandRegistrationError: when the name does not match NAME_PATTERN or
      is not lowercase.

    Returns
    - the name unchanged.
    """
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} {label!r} must be a string")
    if not NAME_PATTERN.fullmatch(name) or name != name.lower():
        raise CommandRegistrationError(
            f"invalid {cls.__typename__} {label} {name!r}",
            title="invalid name",
            code=FaultCode.INVALID_NAME,
            hint="use 1 to 32 lowercase letters, digits, '-' or '_'",
        )
    return name


__all__ = (
    "NAME_PATTERN",
    "SpecType",
    "validate_name",
)
