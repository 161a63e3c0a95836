"""
Contexts: per-event state handed to handlers, and the interactive operations.

Hierarchy
- InteractiveContext: base of every context. Holds the Commands root, the
  user and channel, a responder, and the delegation chain:
  • parent: the context that spawned this one through an await.
  • delegate: the context produced by this context's most recent await.
  • latest: the innermost delegate (or self).
  Every interactive operation first locates the nearest command context (a
  context created outside any command is a ConfigurationError), then forwards
  to the delegate when there is one.
- CommandContext → TextContext (prefix message), StructuredContext
  (structured interaction), UserContext (user command).
- ComponentContext → ButtonContext, SelectMenuContext.
- ModalContext: a submitted modal.
- AutocompleteContext: a partially typed structured invocation.

Responders
- MessageResponder answers a text message (reply, mention policy, DM).
- InteractionResponder answers an interaction (response, then followups,
  acknowledgement with a visibility level).

Cleanup (listener unregistration, component disabling) always runs in
`finally` blocks, whatever ended the wait.
"""
import asyncio
import builtins
import copy
import dataclasses
import inspect

from loguru import logger

from .commands import InvocationState
from .components import *
from .faults import *
from .transport import ComponentInteraction
from .utils import *
from .view import StringView


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class MessageResponder:
    """Answers a text message."""

    def __init__(self, message, /):
        self.message = message

    async def respond(self, context, builder, level, /):
        transport = context.commands.transport
        if level.is_dm:
            return await transport.send_dm(context.user_id, builder)

        if builder.reply_to is None:
            builder.reply_to = self.message.id
            if level.mention is not None:
                builder.mention = level.mention

        return await transport.send(self.message.channel_id, builder)

    async def acknowledge(self, context, level, /):
        """Text messages need no acknowledgement."""


class InteractionResponder:
    """
    Answers an interaction.

    The first answer is a response (or an in-place edit of a component's
    message); later answers are followups. An acknowledgement counts as the
    first answer, so responses after it are followups.
    """

    def __init__(self, interaction, /):
        self.interaction = interaction
        self.responded = False
        self.acknowledged = None
        self._lock = asyncio.Lock()

    async def respond(self, context, builder, level, /):
        transport = context.commands.transport
        async with self._lock:
            if self.responded or self.acknowledged is not None:
                self.responded = True
                return await transport.followup(self.interaction, builder, ephemeral=level.hide_interaction)

            self.responded = True
            if not level.hide_interaction and isinstance(self.interaction, ComponentInteraction):
                return await transport.respond(
                    self.interaction,
                    builder,
                    ephemeral=False,
                    update_message=not level.preserve_component_messages,
                )
            return await transport.respond(self.interaction, builder, ephemeral=level.hide_interaction)

    async def acknowledge(self, context, level, /):
        transport = context.commands.transport
        async with self._lock:
            if self.responded or self.acknowledged is not None:
                return
            self.acknowledged = level
            await transport.acknowledge(
                self.interaction,
                ephemeral=level.hide_interaction,
                update_message=(
                    isinstance(self.interaction, ComponentInteraction) and not level.preserve_component_messages
                ),
            )


class InteractiveContext:
    supports_modal = False

    def __init__(self, commands, user_id, channel_id, responder, /):
        self.commands = commands
        self.user_id = user_id
        self.channel_id = channel_id
        self.responder = responder
        self._parent = None
        self._delegate = None

    def __repr__(self):
        return f"{type(self).__name__}(user_id={self.user_id!r}, channel_id={self.channel_id!r})"

    @property
    def parent(self):
        return self._parent

    @property
    def delegate(self):
        return self._delegate

    @property
    def latest(self):
        return self._delegate.latest if self._delegate is not None else self

    def _nearest_command_context(self):
        context = self
        while not isinstance(context, CommandContext):
            if context._parent is None:
                raise ConfigurationError(
                    "cannot use command functionality in a context created outside of a command",
                    title="outside command",
                    code=FaultCode.OUTSIDE_COMMAND,
                    hint="only use contexts handed to command handlers or produced by their awaits",
                )
            context = context._parent
        return context

    def _adopt(self, context):
        context._parent = self
        self._delegate = context
        logger.debug("{!r} delegates to {!r}", self, context)
        return context

    def _level(self, level):
        if level is not None:
            return level
        return self._nearest_command_context().command.resolved_options.default_response_level

    def _timeout(self, description, command_context):
        return InteractionTimeoutError(f"timed out waiting for {description}", context=command_context)

    def _component_id(self, author_only, timeout):
        return ComponentId.generate(expires_in=timeout, allowed_user=self.user_id if author_only else None)

    async def respond(self, builder, /, *, level=None):
        """
        Publish a response; forwards to the delegate when there is one.
        """
        if self._delegate is not None:
            return await self._delegate.respond(builder, level=level)
        return await self.responder.respond(self, builder, self._level(level))

    async def acknowledge(self, *, level=None):
        if self._delegate is not None:
            return await self._delegate.acknowledge(level=level)
        await self.responder.acknowledge(self, self._level(level))

    async def await_component(self, component_id, /):
        """
        Wait for the next event on `component_id` and make it the delegate.

        Raises
        - InteractionTimeoutError once the id expires.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.await_component(component_id)

        try:
            context = await self.commands.events.wait_for(component_id)
        except TimeoutError:
            raise self._timeout(f"component {component_id}", command_context) from None
        return self._adopt(context)

    async def await_button_press(self, component_id, /):
        return await self.await_component(component_id)

    async def await_selection(self, component_id, /, type=str, *, converter_override=None):
        """
        Wait for a selection on a menu and convert its single value to `type`.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.await_selection(component_id, type, converter_override=converter_override)

        try:
            context = await self.commands.events.wait_for(component_id)
        except TimeoutError:
            raise self._timeout(f"selection on {component_id}", command_context) from None

        view = StringView(context.raw_values[0], is_rest_block=True)
        context.selected = await self.commands.converters.convert(view, command_context, type, converter_override)
        return self._adopt(context)

    async def await_multi_selection(self, component_id, /, type=str, *, converter_override=None):
        """
        Wait for a selection on a menu and convert every value to `type`.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.await_multi_selection(component_id, type, converter_override=converter_override)

        try:
            context = await self.commands.events.wait_for(component_id)
        except TimeoutError:
            raise self._timeout(f"selection on {component_id}", command_context) from None

        converters = self.commands.converters
        context.selected = list(await asyncio.gather(*(
            converters.convert(StringView(value, is_rest_block=True), command_context, type, converter_override)
            for value in context.raw_values
        )))
        return self._adopt(context)

    async def race_components(self, component_ids, /):
        """
        Wait on several ids; the first event wins and the others are released.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.race_components(component_ids)

        try:
            context = await self.commands.events.race(component_ids)
        except TimeoutError:
            raise self._timeout("any of %d components" % len(component_ids), command_context) from None
        return self._adopt(context)

    async def get_button_press(self, message, /):
        """
        Wait for a press on any button of an already published message.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.get_button_press(message)

        component_ids = [ComponentId.parse(raw) for raw in button_ids(message.components)]
        if not component_ids or None in component_ids:
            raise ConfigurationError(
                f"buttons of message {message.id!r} must carry generated component ids",
                title="foreign component id",
                code=FaultCode.FOREIGN_COMPONENT_ID,
                hint="set custom ids with ComponentId.generate()",
            )

        try:
            context = await self.commands.events.race(component_ids)
        except TimeoutError:
            raise self._timeout(f"a button press on message {message.id!r}", command_context) from None
        return self._adopt(context)

    def _presentation(self, hook, name, values, type, converter_override):
        if hook is not None and converter_override is not None:
            raise ValueError(f"cannot specify both {name!r} and 'converter_override'")
        if hook is None and converter_override is not None:
            hook = getattr(converter_override, name)
        if hook is None:
            type = coalesce(type, builtins.type(values[0]) if values else object)
            hook = getattr(self.commands.converters.resolve(type), name, None)
        if hook is None:
            raise ConfigurationError(
                f"no suitable method found for presenting {type!r} values",
                title="missing presentation",
                code=FaultCode.MISSING_PRESENTATION,
                hint=f"pass {name!r} or register a converter with a {name!r} hook",
            )
        return hook

    async def get_button_selection(
            self,
            values,
            builder,
            /,
            *,
            type=Unset,
            styles=None,
            author_only=True,
            level=None,
            timeout=None,
            to_button=None,
            converter_override=None,
    ):
        """
        Publish one button per value (five per row) and return the pressed value.

        The buttons are disabled once the selection ends, whatever ended it.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.get_button_selection(
                values,
                builder,
                type=type,
                styles=styles,
                author_only=author_only,
                level=level,
                timeout=timeout,
                to_button=to_button,
                converter_override=converter_override,
            )

        to_button = self._presentation(to_button, "to_button", values, type, converter_override)

        id_to_value = {}
        buttons = []
        for value in values:
            button = await _resolve(to_button(value))
            component_id = self._component_id(author_only, timeout)
            id_to_value[component_id] = value
            buttons.append(dataclasses.replace(
                button,
                custom_id=str(component_id),
                style=styles.get(value, button.style) if styles else button.style,
            ))

        active = list(builder.components)
        disabled = list(builder.components)
        for start in range(0, len(buttons), 5):
            chunk = buttons[start:start + 5]
            active.append(ActionRow(chunk))
            disabled.append(ActionRow([dataclasses.replace(button, disabled=True) for button in chunk]))

        builder.components = active
        message = await self.respond(builder, level=level)

        try:
            context = await self.commands.events.race(list(id_to_value))
            self._adopt(context)
            return id_to_value[context.component_id]
        except TimeoutError:
            raise self._timeout("button selection", command_context) from None
        finally:
            for component_id in id_to_value:
                self.commands.events.stop_listening_for(component_id)
            builder.components = disabled
            await self.commands.transport.edit(message, builder)

    async def get_confirmation(
            self,
            builder,
            /,
            *,
            values=None,
            styles=None,
            author_only=True,
            level=None,
            timeout=None,
    ):
        """
        Ask a yes/no question with two buttons.
        """
        values = {True: "Yes", False: "No"} | (values or {})
        styles = {True: ButtonStyle.SUCCESS, False: ButtonStyle.DANGER} | (styles or {})
        return await self.get_button_selection(
            [True, False],
            builder,
            to_button=lambda value: Button(values[value]),
            styles=styles,
            author_only=author_only,
            level=level,
            timeout=timeout,
        )

    async def _options(self, choices, to_option):
        # option values are positions; labels may repeat
        id_to_value = {}
        options = []
        for index, value in enumerate(choices):
            option = await _resolve(to_option(value))
            option = dataclasses.replace(option, value=str(index))
            id_to_value[option.value] = value
            options.append(option)
        return id_to_value, options

    async def get_selection(
            self,
            choices,
            builder,
            /,
            *,
            type=Unset,
            level=None,
            timeout=None,
            author_only=True,
            to_option=None,
            converter_override=None,
    ):
        """
        Publish a menu over `choices` and return the selected value.

        Pages hold 25 entries, minus one for each page control shown. Picking
        a page control republishes the menu and keeps waiting; picking a value
        ends the selection. The menu is disabled once the selection ends.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.get_selection(
                choices,
                builder,
                type=type,
                level=level,
                timeout=timeout,
                author_only=author_only,
                to_option=to_option,
                converter_override=converter_override,
            )

        to_option = self._presentation(to_option, "to_option", choices, type, converter_override)
        id_to_value, options = await self._options(choices, to_option)
        level = self._level(level)

        previous_page = SelectOption("Previous page", str(ComponentId.generate()))
        next_page = SelectOption("Next page", str(ComponentId.generate()))

        offsets = []
        offset = 0
        context = None
        menu = None
        message = None

        try:
            while True:
                has_previous = bool(offsets)
                capacity = 25 - has_previous
                has_next = offset + capacity < len(options)
                capacity -= has_next

                menu_id = self._component_id(author_only, timeout)
                menu = SelectMenu(str(menu_id), [
                    *([previous_page] if has_previous else []),
                    *options[offset:offset + capacity],
                    *([next_page] if has_next else []),
                ])
                row = ActionRow([menu])

                if context is None:
                    builder.components.append(row)
                    message = await self.respond(builder, level=level)
                else:
                    # replace the previous page in place
                    builder.components[-1] = row
                    message = await context.respond(
                        builder,
                        level=copy.replace(level, preserve_component_messages=False),
                    ) or message

                context = await self.commands.events.wait_for(menu_id)
                selected = context.raw_values[0]

                if selected == next_page.value:
                    offsets.append(offset)
                    offset += capacity
                elif selected == previous_page.value:
                    offset = offsets.pop()
                else:
                    break

            context.selected = id_to_value[selected]
            self._adopt(context)
            return context.selected
        except TimeoutError:
            raise self._timeout("selection", command_context) from None
        finally:
            if menu is not None and message is not None:
                menu.disabled = True
                await self.commands.transport.edit(message, builder)

    async def get_multi_selection(
            self,
            choices,
            builder,
            /,
            *,
            type=Unset,
            level=None,
            timeout=None,
            author_only=True,
            to_option=None,
            converter_override=None,
    ):
        """
        Publish a menu requiring every choice to be selected, in the user's order.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.get_multi_selection(
                choices,
                builder,
                type=type,
                level=level,
                timeout=timeout,
                author_only=author_only,
                to_option=to_option,
                converter_override=converter_override,
            )

        to_option = self._presentation(to_option, "to_option", choices, type, converter_override)
        id_to_value, options = await self._options(choices, to_option)

        menu_id = self._component_id(author_only, timeout)
        menu = SelectMenu(str(menu_id), options, min_values=len(choices), max_values=len(choices))
        builder.components.append(ActionRow([menu]))
        message = await self.respond(builder, level=level)

        try:
            context = await self.commands.events.wait_for(menu_id)
            context.selected = [id_to_value[value] for value in context.raw_values]
            self._adopt(context)
            return context.selected
        except TimeoutError:
            raise self._timeout("selection", command_context) from None
        finally:
            menu.disabled = True
            await self.commands.transport.edit(message, builder)

    async def _settle_modal(self, custom_id, future, timeout, command_context):
        try:
            context = await self.commands.events.settle(custom_id, future, timeout)
        except TimeoutError:
            raise self._timeout(f"modal {custom_id!r}", command_context) from None
        return self._adopt(context)

    async def await_modal(self, custom_id, /, *, timeout=None):
        """
        Wait for the submission of the modal published with `custom_id`.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.await_modal(custom_id, timeout=timeout)
        future = self.commands.events.listen(custom_id)
        return await self._settle_modal(custom_id, future, timeout, command_context)

    async def get_modal(self, title, inputs, /, *, timeout=None):
        """
        Open a modal made of `inputs` (TextInputs) and wait for its submission.
        """
        command_context = self._nearest_command_context()
        if self._delegate is not None:
            return await self._delegate.get_modal(title, inputs, timeout=timeout)

        if not self.supports_modal:
            raise ConfigurationError(
                f"cannot respond to a {type(self).__name__} with a modal",
                title="unsupported delegate",
                code=FaultCode.UNSUPPORTED_DELEGATE,
                hint="modals can only answer structured invocations and component events",
            )

        modal = Modal(str(ComponentId.generate()), title, [ActionRow([text_input]) for text_input in inputs])
        future = self.commands.events.listen(modal.custom_id)
        try:
            await self.commands.transport.respond_modal(self.interaction, modal)
        except BaseException:
            self.commands.events.stop_listening_for(modal.custom_id)
            raise
        self.responder.responded = True
        return await self._settle_modal(modal.custom_id, future, timeout, command_context)


class CommandContext(InteractiveContext):
    """
    Context of one command invocation.

    Attributes
    - command: the resolved Command.
    - raw_arguments: the text after the command words, or a mapping of
      parameter names to structured values.
    - arguments: bound arguments once binding succeeded.
    - state: current InvocationState.
    """

    def __init__(self, commands, user_id, channel_id, responder, command, raw_arguments, /):
        super().__init__(commands, user_id, channel_id, responder)
        self.command = command
        self.raw_arguments = raw_arguments
        self.arguments = []
        self.state = InvocationState.RESOLVING

    def __repr__(self):
        return f"{type(self).__name__}(command={self.command.full_name!r}, user_id={self.user_id!r})"


class TextContext(CommandContext):
    def __init__(self, commands, message, command, prefix, raw_arguments, /):
        super().__init__(commands, message.author_id, message.channel_id, MessageResponder(message), command,
                         raw_arguments)
        self.message = message
        self.prefix = prefix


class StructuredContext(CommandContext):
    supports_modal = True

    def __init__(self, commands, interaction, command, raw_arguments, /):
        super().__init__(commands, interaction.user_id, interaction.channel_id, InteractionResponder(interaction),
                         command, raw_arguments)
        self.interaction = interaction


class UserContext(CommandContext):
    """
    Context of a user command; `target_id` is the user the menu was opened on.
    """
    supports_modal = True

    def __init__(self, commands, interaction, command, /):
        super().__init__(commands, interaction.user_id, interaction.channel_id, InteractionResponder(interaction),
                         command, {})
        self.interaction = interaction
        self.target_id = interaction.target_id


class ComponentContext(InteractiveContext):
    supports_modal = True

    def __init__(self, commands, interaction, component_id, /):
        super().__init__(commands, interaction.user_id, interaction.channel_id, InteractionResponder(interaction))
        self.interaction = interaction
        self.component_id = component_id


class ButtonContext(ComponentContext):
    pass


class SelectMenuContext(ComponentContext):
    """
    A menu selection. `raw_values` are the selected option values; `selected`
    is set by the operation that awaited the menu (converted or mapped).
    """

    def __init__(self, commands, interaction, component_id, /):
        super().__init__(commands, interaction, component_id)
        self.raw_values = tuple(interaction.values)
        self.selected = Unset


class ModalContext(InteractiveContext):
    def __init__(self, commands, submission, /):
        super().__init__(commands, submission.user_id, submission.channel_id, InteractionResponder(submission))
        self.interaction = submission
        self.values = dict(submission.values)

    def __getitem__(self, custom_id, /):
        return self.values[custom_id]


class AutocompleteContext:
    def __init__(self, commands, interaction, command, parameter, partial, /):
        self.commands = commands
        self.interaction = interaction
        self.command = command
        self.parameter = parameter
        self.partial = partial
        self.user_id = interaction.user_id

    def __repr__(self):
        return f"AutocompleteContext(command={self.command.full_name!r}, parameter={self.parameter.name!r})"


__all__ = (
    "MessageResponder",
    "InteractionResponder",
    "InteractiveContext",
    "CommandContext",
    "TextContext",
    "StructuredContext",
    "UserContext",
    "ComponentContext",
    "ButtonContext",
    "SelectMenuContext",
    "ModalContext",
    "AutocompleteContext",
)
