"""
Checks: async predicates gating command execution.

A Check wraps a predicate over the invocation context plus optional pre-call
and post-call hooks. Hooks are connected to the command's signals when the
check is attached, so they see exactly the invocations the check gates.

Combinators
- any_of(*checks): passes when one passes.
- all_of(*checks): passes when every check passes.
- negate(check): inverts the predicate.
"""
import inspect

from .internals import SpecType
from .utils import *


class Check(metaclass=SpecType):
    """
    Named predicate over a context.

    Parameters
    - predicate: sync or async callable (context) -> bool.
    - name: label shown when the check fails (defaults to the predicate name).
    - pre_call_hooks / post_call_hooks: observers attached with the check.
    """
    __introspectable__ = ("name", "predicate", "pre_call_hooks", "post_call_hooks")
    __displayable__ = ("name",)

    def __init__(self, predicate, /, name=Unset, *, pre_call_hooks=(), post_call_hooks=()):
        if not callable(predicate):
            raise TypeError(f"{type(self).__typename__} 'predicate' must be callable")
        name = coalesce(name, getattr(predicate, "__name__", "check"))
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} 'name' must be a string")
        for hook in (*pre_call_hooks, *post_call_hooks):
            if not callable(hook):
                raise TypeError(f"{type(self).__typename__} hooks must be callable")
        self._predicate = predicate
        self._name = name
        self._pre_call_hooks = list(pre_call_hooks)
        self._post_call_hooks = list(post_call_hooks)

    async def __call__(self, context, /):
        result = self._predicate(context)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


def check(predicate=Unset, /, name=Unset, **kwargs):
    """
    Create a Check, or return a decorator that builds one.
    """
    @rename("check")
    def wrapper(predicate, /):
        return Check(predicate, name, **kwargs)

    return wrapper(predicate) if predicate is not Unset else wrapper


def all_of(*checks, name="all"):
    async def predicate(context):
        for item in checks:
            if not await item(context):
                return False
        return True

    return Check(
        predicate,
        name,
        pre_call_hooks=[hook for item in checks for hook in item.pre_call_hooks],
        post_call_hooks=[hook for item in checks for hook in item.post_call_hooks],
    )


def any_of(*checks, name="any"):
    async def predicate(context):
        for item in checks:
            if await item(context):
                return True
        return False

    return Check(
        predicate,
        name,
        pre_call_hooks=[hook for item in checks for hook in item.pre_call_hooks],
        post_call_hooks=[hook for item in checks for hook in item.post_call_hooks],
    )


def negate(check, /, name=Unset):
    async def predicate(context):
        return not await check(context)

    return Check(predicate, coalesce(name, f"not {check.name}"))


__all__ = (
    "Check",
    "check",
    "all_of",
    "any_of",
    "negate",
)
