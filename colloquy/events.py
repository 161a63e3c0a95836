"""
EventManager: the process-wide correlation-id table.

Keys are ComponentIds (buttons, menus) or plain custom ids (modals); each key
maps to the single future waiting for it. A key is inserted when a wait
starts and removed exactly once, when the wait resolves, times out, or is
explicitly released. Inserting a key that is still live is an error.
"""
import asyncio

from loguru import logger

from .components import ComponentId, ComponentIdStatus
from .contexts import ButtonContext, ModalContext, SelectMenuContext
from .faults import ConfigurationError, FaultCode, UnhandledInteractionError
from .utils import *


class EventManager:
    def __init__(self, commands, /):
        self.commands = commands
        self._listeners = {}

    def __repr__(self):
        return f"EventManager(listening={len(self._listeners)})"

    @property
    def listening(self):
        """Keys currently waited for."""
        return frozenset(self._listeners)

    def is_listening(self, key, /):
        return key in self._listeners

    def listen(self, key, /):
        """
        Insert a listener for `key` and return its future.

        Raises
        - ConfigurationError when `key` already has a live listener.
        """
        if key in self._listeners:
            raise ConfigurationError(
                f"already listening for {key}",
                title="live component id",
                code=FaultCode.LIVE_COMPONENT_ID,
                hint="generate a fresh component id for every publication",
            )
        future = asyncio.get_running_loop().create_future()
        self._listeners[key] = future
        logger.debug("listening for {}", key)
        return future

    def stop_listening_for(self, key, /):
        """
        Release the listener for `key`, cancelling it if still pending.
        """
        future = self._listeners.pop(key, None)
        if future is None:
            return
        if not future.done():
            future.cancel()
        logger.debug("stopped listening for {}", key)

    async def settle(self, key, future, /, timeout=Unset):
        """
        Await a future obtained from listen(), releasing `key` afterwards.

        The timeout defaults to the remaining lifetime of a ComponentId.

        Raises
        - TimeoutError when the deadline passes first.
        """
        if timeout is Unset:
            timeout = key.remaining if isinstance(key, ComponentId) else None
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.stop_listening_for(key)

    async def wait_for(self, key, /, timeout=Unset):
        """
        Wait for the next event on `key`.
        """
        return await self.settle(key, self.listen(key), timeout)

    async def race(self, keys, /):
        """
        Wait on several keys; the first event wins.

        Every key is released when the race ends. A key released from
        elsewhere while racing counts as a failed wait (TimeoutError). When
        every wait fails, the last failure observed is raised.
        """
        keys = list(keys)
        if not keys:
            raise ValueError("race() needs at least one key")

        futures = []
        try:
            for key in keys:
                futures.append(self.listen(key))
        except ConfigurationError:
            for key in keys[:len(futures)]:
                self.stop_listening_for(key)
            raise

        tasks = {
            asyncio.ensure_future(asyncio.wait_for(future, key.remaining if isinstance(key, ComponentId) else None)): key
            for key, future in zip(keys, futures)
        }

        try:
            failure = None
            async for done in asyncio.as_completed(tasks):
                if done.cancelled():
                    failure = TimeoutError(f"stopped listening for {tasks[done]}")
                elif done.exception() is not None:
                    failure = done.exception()
                else:
                    return done.result()
            raise failure
        finally:
            for task in tasks:
                task.cancel()
            for key in keys:
                self.stop_listening_for(key)

    def process_component(self, interaction, /):
        """
        Route a component event to the listener of its custom id.

        Returns the created context, or None for custom ids colloquy did not
        mint.

        Raises
        - UnhandledInteractionError (with `status`) when the id has no live
          listener, expired, belongs to a previous session or to another user.
        """
        component_id = ComponentId.parse(interaction.custom_id)
        if component_id is None:
            logger.debug("ignoring component event with foreign custom id {!r}", interaction.custom_id)
            return None

        future = self._listeners.get(component_id)
        status = component_id.status(interaction.user_id, listening=future is not None and not future.done())
        if status is not ComponentIdStatus.OK:
            logger.warning("unhandled component event on {} ({})", component_id, status.value)
            raise UnhandledInteractionError(
                f"component event on {component_id} was not handled: {status.value}",
                status=status,
                interaction=interaction,
                component_id=component_id,
            )

        if interaction.values is None:
            context = ButtonContext(self.commands, interaction, component_id)
        else:
            context = SelectMenuContext(self.commands, interaction, component_id)
        future.set_result(context)
        return context

    def process_modal(self, submission, /):
        """
        Route a modal submission to the listener of its custom id.

        Submissions nobody waits for are ignored and None is returned.
        """
        future = self._listeners.get(submission.custom_id)
        if future is None or future.done():
            logger.debug("ignoring modal submission {!r}", submission.custom_id)
            return None
        context = ModalContext(self.commands, submission)
        future.set_result(context)
        return context


__all__ = (
    "EventManager",
)
