"""
Signal: an ordered observer list.

Observers are sync or async callables taking one payload. A node forwards its
signals to its parent by connecting the parent's `emit` to its own signal, so
one emission reaches the node and every ancestor, in registration order.
"""
import inspect

from loguru import logger


class Signal:
    __slots__ = ("name", "_observers")

    def __init__(self, name, /):
        self.name = name
        self._observers = []

    def __repr__(self):
        return f"Signal({self.name!r}, observers={len(self._observers)})"

    def __len__(self):
        return len(self._observers)

    def __bool__(self):
        return True

    def connect(self, observer, /):
        """
        Append an observer. Returns it, so this works as a decorator.
        """
        if not callable(observer):
            raise TypeError("signal observer must be callable")
        self._observers.append(observer)
        return observer

    def disconnect(self, observer, /):
        try:
            self._observers.remove(observer)
        except ValueError:
            raise ValueError(f"observer {observer!r} is not connected to signal {self.name!r}") from None

    async def emit(self, payload, /):
        """
        Notify every observer in order, awaiting async ones.
        """
        logger.debug("signal {} emitted to {} observer(s)", self.name, len(self._observers))
        for observer in tuple(self._observers):
            result = observer(payload)
            if inspect.isawaitable(result):
                await result


__all__ = (
    "Signal",
)
