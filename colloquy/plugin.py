"""
Commands: the root of a command tree and the entry point for inbound events.

Responsibilities
- Hold the converter registry (built-ins registered) and the event manager.
- Dispatch text messages (prefix, bot and self filters), structured
  interactions and user commands (context-menu commands run on a user);
  route component events, modal submissions and autocomplete requests.
- Auto-acknowledge structured invocations that did not answer in time.
- Publish every invocation error on `on_command_error`, the per-process error
  channel. Without observers, errors are logged with loguru and rendered with
  rich through faults.trigger().
- Describe structured and user commands for platform registration.
"""
import asyncio
import copy
import inspect

from loguru import logger

from .commands import Command, CommandGroup, DefinitionKind, UserCommand, user_command
from .contexts import AutocompleteContext, StructuredContext, TextContext, UserContext
from .converters import BUILTIN_CONVERTERS, ConverterRegistry
from .events import EventManager
from .faults import *
from .options import DEFAULT_OPTIONS, CommandType
from .signals import Signal
from .utils import *
from .view import StringView


class Commands(CommandGroup):
    """
    Root of the command tree.

    Parameters
    - transport: object satisfying colloquy.transport.Transport.
    - prefix: text command prefix; a string, a sync or async callable of the
      message returning a string (or None to ignore the message), or None to
      disable text commands.
    - client_id: the bot's own user id (for the self-command filter).
    - options: root CommandOptions layered over the library defaults.
    - converters: converters registered at construction.
    """
    __introspectable__ = ("transport", "prefix", "client_id", "converters", "events")
    __displayable__ = ("prefix", "client_id", "options")

    def __init__(
            self,
            transport,
            /,
            prefix=None,
            *,
            client_id=None,
            options=None,
            converters=BUILTIN_CONVERTERS,
            children=(),
            checks=(),
    ):
        if prefix is not None and not isinstance(prefix, str) and not callable(prefix):
            raise TypeError(f"{type(self).__typename__} 'prefix' must be a string, a callable or None")
        self._transport = transport
        self._prefix = prefix
        self._client_id = client_id
        self._converters = ConverterRegistry(converters)
        self._events = EventManager(self)
        self._user_commands = {}
        self.on_command_error = Signal("command-error")
        super().__init__(children=children, checks=checks, options=options)

    @property
    def user_commands(self):
        return tuple(self._user_commands.values())

    def add_command(self, node, /):
        """
        Attach a child node, or register a user command.

        Raises
        - DuplicateNameError when another user command has the same name.
        """
        if not isinstance(node, UserCommand):
            return super().add_command(node)

        if node.name in self._user_commands:
            raise DuplicateNameError(
                f"a user command named {node.name!r} already exists",
                hint="pick another name",
            )
        node.parent = self
        self._user_commands[node.name] = node
        node.on_pre_call.connect(self.on_pre_call.emit)
        node.on_post_call.connect(self.on_post_call.emit)
        logger.debug("registered user command {!r}", node.name)
        return node

    def user_command(self, source=Unset, /, *args, **kwargs):
        """
        Create a UserCommand and register it here (directly or as a decorator).
        """
        @rename("user_command")
        def wrapper(source, /):
            return self.add_command(user_command(source, *args, **kwargs))

        return wrapper(source) if source is not Unset else wrapper

    @property
    def resolved_options(self):
        options = self._options.merge(DEFAULT_OPTIONS)
        if self._prefix is None and options.type is CommandType.ALL:
            # without a prefix nothing can be invoked through text
            options = copy.replace(options, type=CommandType.STRUCTURED_ONLY)
        return options

    def add_converter(self, converter, /):
        return self._converters.register(converter)

    async def report(self, fault, /):
        """
        Publish a fault on the error channel, or log and render it.
        """
        if len(self.on_command_error):
            await self.on_command_error.emit(fault)
            return
        if not isinstance(fault, UncaughtException):
            logger.warning("{}: {}", fault.options["title"], fault)
        trigger(fault)

    async def _execute(self, command, context):
        try:
            await command.invoke(context)
        except CommandsException as fault:
            await self.report(fault)
        except Exception as exception:
            await self.report(UncaughtException(
                f"{type(exception).__name__} while invoking {command.full_name!r}: {exception}",
                context=context,
                exception=exception,
            ))

    async def _get_prefix(self, message):
        prefix = self._prefix(message) if callable(self._prefix) else self._prefix
        if inspect.isawaitable(prefix):
            prefix = await prefix
        return prefix

    async def process_message(self, message, /):
        """
        Run the text command named by `message`, if any.
        """
        options = self.resolved_options
        if self._client_id is not None and message.author_id == self._client_id:
            if not options.accept_self_commands:
                return
        elif message.author_bot and not options.accept_bot_commands:
            return

        prefix = await self._get_prefix(message)
        if not prefix or not message.content.startswith(prefix):
            return

        view = StringView(message.content[len(prefix):])
        command = self.get_command(view)
        if command is None:
            logger.debug("no command matches {!r}", message.content)
            return
        if command.resolved_type is CommandType.STRUCTURED_ONLY:
            logger.debug("ignoring text invocation of structured-only command {!r}", command.full_name)
            return

        context = TextContext(self, message, command, prefix, view.remaining)
        await self._execute(command, context)

    async def process_interaction(self, interaction, /):
        """
        Run the structured command addressed by `interaction.path`.
        """
        command = self.get_command(StringView(" ".join(interaction.path)))
        if command is None or command.resolved_type is CommandType.TEXT_ONLY:
            logger.debug("no structured command matches {!r}", interaction.path)
            return

        context = StructuredContext(self, interaction, command, dict(interaction.arguments))
        await self._execute_interaction(command, context)

    async def process_user_command(self, interaction, /):
        """
        Run the user command named by `interaction.name`.
        """
        command = self._user_commands.get(interaction.name)
        if command is None:
            logger.debug("no user command matches {!r}", interaction.name)
            return

        await self._execute_interaction(command, UserContext(self, interaction, command))

    async def _execute_interaction(self, command, context):
        options = command.resolved_options
        acknowledger = None
        if options.auto_acknowledge_interactions:
            acknowledger = asyncio.ensure_future(
                self._auto_acknowledge(context, options.auto_acknowledge_duration, options.default_response_level)
            )
        try:
            await self._execute(command, context)
        finally:
            if acknowledger is not None:
                acknowledger.cancel()

    async def _auto_acknowledge(self, context, duration, level):
        await asyncio.sleep(duration)
        if context.responder.responded:
            return
        logger.debug("auto-acknowledging {!r}", context)
        try:
            await context.responder.acknowledge(context, level)
        except Exception:
            logger.exception("automatic acknowledgement of {!r} failed", context)

    async def process_component(self, interaction, /):
        """
        Resolve the listener waiting for a button press or menu selection.
        """
        try:
            return self._events.process_component(interaction)
        except UnhandledInteractionError as fault:
            await self.report(fault)
            return None

    async def process_modal(self, submission, /):
        return self._events.process_modal(submission)

    async def process_autocomplete(self, interaction, /):
        """
        Answer an autocomplete request with the parameter's suggestions.
        """
        command = self.get_command(StringView(" ".join(interaction.path)))
        if command is None:
            return
        parameter = next((item for item in command.parameters if item.name == interaction.focused), None)
        if parameter is None:
            return

        partial = str(interaction.arguments.get(interaction.focused, ""))
        if parameter.autocomplete is not None:
            context = AutocompleteContext(self, interaction, command, parameter, partial)
            try:
                suggestions = parameter.autocomplete(context, partial)
                if inspect.isawaitable(suggestions):
                    suggestions = await suggestions
            except Exception as exception:
                await self.report(UncaughtException(
                    f"{type(exception).__name__} in autocompletion of {parameter.name!r}: {exception}",
                    context=context,
                    exception=exception,
                ))
                return
        else:
            selected = parameter.converter or self._converters.resolve(parameter.type)
            choices = parameter.choices or getattr(selected, "choices", None) or {}
            suggestions = {name: value for name, value in choices.items() if name.lower().startswith(partial.lower())}

        await self._transport.autocomplete(
            interaction,
            [{"name": str(name), "value": value} for name, value in list(dict(suggestions).items())[:25]],
        )

    def get_definitions(self):
        """
        Describe every structured-capable top-level node, then every user
        command, for registration.
        """
        definitions = []
        for child in self.children:
            if child.has_structured or (
                    isinstance(child, Command) and child.resolved_type is not CommandType.TEXT_ONLY
            ):
                definitions.append({
                    "type": DefinitionKind.CHAT_INPUT,
                    "name": child.name,
                    "description": child.description,
                    "options": child.get_options(self._converters),
                })
        for command in self._user_commands.values():
            definitions.append({"type": DefinitionKind.USER, "name": command.name})
        return definitions

    async def sync_commands(self):
        definitions = self.get_definitions()
        logger.debug("advertising {} command(s)", len(definitions))
        await self._transport.register_commands(definitions)


__all__ = (
    "Commands",
)
