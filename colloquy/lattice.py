"""
Type lattice: which declared argument type accepts which runtime value type.

Descriptors
- DYNAMIC (top), VOID (top for everything but NEVER), NEVER (bottom).
- InterfaceType(identity, arguments, supertypes, nullable=...): a class,
  possibly generic (arguments) and possibly nullable. `identity` is the base
  class identity shared by every parameterization of the class.
- FunctionType(parameters, returns, nullable=...): a callable shape.

Descriptors are interned: constructing the same shape twice returns the same
object, so identity comparison is structural comparison.

Python bridge
- describe(annotation) turns Python annotations into descriptors.
- typeof(value) describes a runtime value.

Quick example
    >>> assignable(describe(bool), describe(int))
    True
    >>> assignable(describe(int | None), describe(int))
    False
"""
import collections.abc
import functools
import types
import typing

from .faults import ConfigurationError, FaultCode


class TypeDescriptor:
    """
    Base of every node in the type lattice. Instances are immutable.
    """
    __slots__ = ()

    nullable = False

    def __setattr__(self, name, value, /):
        raise AttributeError(f"{type(self).__name__!r} object is read-only")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


class DynamicType(TypeDescriptor):
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __repr__(self):
        return "dynamic"


class VoidType(TypeDescriptor):
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __repr__(self):
        return "void"


class NeverType(TypeDescriptor):
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __repr__(self):
        return "never"


class InterfaceType(TypeDescriptor):
    """
    A class type, possibly parameterized and possibly nullable.

    Parameters
    - identity: str, the base class identity (e.g. "builtins.list").
    - arguments: descriptors of the type arguments, in order.
    - supertypes: descriptors of the declared supertypes, in order.
    - nullable: whether None is part of the type.
    """
    __slots__ = ("identity", "arguments", "supertypes", "nullable")

    _interned = {}

    def __new__(cls, identity, /, arguments=(), supertypes=(), *, nullable=False):
        if not isinstance(identity, str):
            raise TypeError("interface-type 'identity' must be a string")
        arguments = tuple(arguments)
        supertypes = tuple(supertypes)
        if not all(isinstance(x, TypeDescriptor) for x in arguments + supertypes):
            raise TypeError("interface-type 'arguments' and 'supertypes' must be type descriptors")

        key = (identity, arguments, supertypes, bool(nullable))
        try:
            return cls._interned[key]
        except KeyError:
            pass

        self = super().__new__(cls)
        object.__setattr__(self, "identity", identity)
        object.__setattr__(self, "arguments", arguments)
        object.__setattr__(self, "supertypes", supertypes)
        object.__setattr__(self, "nullable", bool(nullable))
        return cls._interned.setdefault(key, self)

    def __repr__(self):
        name = self.identity.removeprefix("builtins.")
        if self.arguments:
            name += "[%s]" % ", ".join(map(repr, self.arguments))
        return name + "?" * self.nullable


class FunctionType(TypeDescriptor):
    """
    A callable shape: positional parameter types and a return type.
    """
    __slots__ = ("parameters", "returns", "nullable")

    _interned = {}

    def __new__(cls, parameters, returns, /, *, nullable=False):
        parameters = tuple(parameters)
        if not all(isinstance(x, TypeDescriptor) for x in parameters + (returns,)):
            raise TypeError("function-type 'parameters' and 'returns' must be type descriptors")

        key = (parameters, returns, bool(nullable))
        try:
            return cls._interned[key]
        except KeyError:
            pass

        self = super().__new__(cls)
        object.__setattr__(self, "parameters", parameters)
        object.__setattr__(self, "returns", returns)
        object.__setattr__(self, "nullable", bool(nullable))
        return cls._interned.setdefault(key, self)

    def __repr__(self):
        return "(%s) -> %r%s" % (", ".join(map(repr, self.parameters)), self.returns, "?" * self.nullable)


DYNAMIC = DynamicType()
VOID = VoidType()
NEVER = NeverType()

OBJECT = InterfaceType("builtins.object")
"""Universal object type: every interface is (transitively) assignable to it."""

FUNCTION = InterfaceType("builtins.function", supertypes=(OBJECT,))
"""Universal function type: the interface every function value satisfies."""

NULL = InterfaceType("builtins.NoneType", nullable=True)


def _nullable_ok(a, b):
    return b.nullable or not a.nullable


def assignable(a, b, /):
    """
    Return whether a value of type `a` is usable where `b` is expected.

    Rules, in order
    1. identical descriptors → True
    2. either side NEVER → False
    3. b is VOID → True; a is VOID → False
    4. b is DYNAMIC → True; a is DYNAMIC → False
    5. non-function a, function b → False
    6. interface vs interface: same identity → covariant type arguments and
       nullability; otherwise search a's supertypes depth-first
    7. function a, interface b → only OBJECT or FUNCTION, subject to nullability
    8. interface a, function b → False
    9. function vs function: same arity, each of b's parameters assignable to
       a's, b's return assignable to a's return, nullability

    Raises
    - ConfigurationError for a pair of descriptors the rules do not cover.
    """
    if a is b:
        return True

    if a is NEVER or b is NEVER:
        return False

    if b is VOID:
        return True
    if a is VOID:
        return False
    if b is DYNAMIC:
        return True
    if a is DYNAMIC:
        return False

    if not isinstance(a, FunctionType) and isinstance(b, FunctionType):
        return False

    match a, b:
        case InterfaceType(), InterfaceType():
            if a.identity == b.identity:
                # type arguments are covariant; a raw type matches any parameterization
                for x, y in zip(a.arguments, b.arguments):
                    if not assignable(x, y):
                        return False
                return _nullable_ok(a, b)
            return any(assignable(supertype, b) for supertype in a.supertypes)

        case FunctionType(), InterfaceType():
            return b.identity in (OBJECT.identity, FUNCTION.identity) and not b.arguments and _nullable_ok(a, b)

        case FunctionType(), FunctionType():
            if len(a.parameters) != len(b.parameters):
                return False
            # parameters can be widened but not narrowed
            for x, y in zip(a.parameters, b.parameters):
                if not assignable(y, x):
                    return False
            # the expected return type must be usable as the provided one
            if not assignable(b.returns, a.returns):
                return False
            return _nullable_ok(a, b)

    raise ConfigurationError(
        f"unhandled assignability check between {a!r} and {b!r}",
        title="unhandled assignability",
        code=FaultCode.UNHANDLED_ASSIGNABILITY,
    )


def nullable(descriptor, /):
    """
    Return the nullable variant of an interface or function descriptor.
    """
    match descriptor:
        case InterfaceType():
            return InterfaceType(descriptor.identity, descriptor.arguments, descriptor.supertypes, nullable=True)
        case FunctionType():
            return FunctionType(descriptor.parameters, descriptor.returns, nullable=True)
    return descriptor


def non_nullable(descriptor, /):
    """
    Return the variant of a descriptor that excludes None.
    """
    match descriptor:
        case InterfaceType():
            return InterfaceType(descriptor.identity, descriptor.arguments, descriptor.supertypes)
        case FunctionType():
            return FunctionType(descriptor.parameters, descriptor.returns)
    return descriptor


def _identity(cls):
    return f"{cls.__module__}.{cls.__qualname__}"


@functools.cache
def _describe_class(cls):
    if cls is object:
        return OBJECT
    if cls is types.FunctionType:
        return FUNCTION
    if cls is type(None):
        return NULL
    return InterfaceType(_identity(cls), supertypes=tuple(map(_describe_class, cls.__bases__)))


def describe(annotation, /):
    """
    Build a descriptor from a Python annotation.

    Mapping
    - TypeDescriptor → itself
    - typing.Any → DYNAMIC; None → VOID; typing.Never / typing.NoReturn → NEVER
    - X | None (or Optional[X]) → nullable X
    - Callable[[A, B], R] → FunctionType; bare Callable or Callable[..., R] → FUNCTION
    - list[int], dict[str, X], user generics → InterfaceType with arguments
    - classes → InterfaceType whose supertypes follow __bases__

    Raises
    - TypeError for unions of several non-None types and unsupported annotations.
    """
    if isinstance(annotation, TypeDescriptor):
        return annotation
    if annotation is typing.Any:
        return DYNAMIC
    if annotation is None:
        return VOID
    if annotation is typing.Never or annotation is typing.NoReturn:
        return NEVER

    origin = typing.get_origin(annotation)
    arguments = typing.get_args(annotation)

    if origin is typing.Union or origin is types.UnionType:
        members = [x for x in arguments if x is not type(None)]
        if len(members) != 1:
            raise TypeError(f"describe() cannot describe union {annotation!r}")
        described = describe(members[0])
        return nullable(described) if len(members) != len(arguments) else described

    if origin is collections.abc.Callable:
        if not arguments or arguments[0] is Ellipsis:
            return FUNCTION
        parameters, returns = arguments
        return FunctionType(tuple(map(describe, parameters)), describe(returns))
    if annotation is collections.abc.Callable or annotation is typing.Callable:
        return FUNCTION

    if origin is not None:
        base = _describe_class(origin)
        return InterfaceType(base.identity, tuple(map(describe, arguments)), base.supertypes, nullable=base.nullable)

    if isinstance(annotation, type):
        return _describe_class(annotation)

    raise TypeError(f"describe() cannot describe {annotation!r}")


def typeof(value, /):
    """
    Describe the runtime type of a value (type arguments are not inferred).
    """
    return _describe_class(type(value))


__all__ = (
    "TypeDescriptor",
    "DynamicType",
    "VoidType",
    "NeverType",
    "InterfaceType",
    "FunctionType",
    "DYNAMIC",
    "VOID",
    "NEVER",
    "OBJECT",
    "FUNCTION",
    "NULL",
    "assignable",
    "nullable",
    "non_nullable",
    "describe",
    "typeof",
)
