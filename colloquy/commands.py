"""
Colloquy command layer: build command trees and run invocations.

What this module provides
- CommandGroup: anything that holds children (the Commands root included).
  Children are reachable under their name and every alias; registration
  subscribes the group's pre/post-call signals to the child's, so a group
  observes every invocation below it.
- CommandNode: a named, aliased, attachable CommandGroup. Its parent is set
  exactly once; its effective options and checks walk to the root.
- Group: a pure routing node.
- Command: a leaf (that may still route text to children) with a parameter
  table, a handler and an invocation type.
- Parameter: one entry of a command's parameter table.
- UserCommand: a context-menu command run on a user, attached to the root.
- Invocable: the invocation pipeline shared by Command and UserCommand.
- InvocationState: states of the invocation pipeline.

Factories
- command(...) / group(...) / user_command(...): build nodes directly or as
  decorators.
- CommandGroup.command(...) / CommandGroup.group(...): same, attaching the
  result to the group.

Quick start
    from colloquy import Commands, Parameter, command

    @command(parameters=[Parameter("times", int, default=1)])
    async def ping(context, times):
        await context.respond(MessageBuilder("pong" * times))

    bot = Commands(transport, prefix="!")
    bot.add_command(ping)

Pipeline (Invocable.invoke; user commands bind no arguments)
    RESOLVING → BINDING_ARGUMENTS → CHECKING → PRE_CALL_EMITTED → EXECUTING
    → POST_CALL_EMITTED → DONE, with FAILED reachable from binding, checking
    and executing. Handler faults are wrapped in UncaughtException after the
    post-call signal fired; invocation errors (timeouts of interactive
    operations, nested conversions) are raised unchanged.
"""
import enum
import inspect

from loguru import logger

from .checks import Check
from .converters import OptionKind
from .faults import *
from .internals import SpecType, validate_name
from .lattice import assignable, describe, typeof
from .options import CommandOptions, CommandType
from .signals import Signal
from .utils import *
from .view import StringView

DEFAULT_DESCRIPTION = "No description provided"


class InvocationState(enum.Enum):
    RESOLVING = "resolving"
    BINDING_ARGUMENTS = "binding arguments"
    CHECKING = "checking"
    PRE_CALL_EMITTED = "pre-call emitted"
    EXECUTING = "executing"
    POST_CALL_EMITTED = "post-call emitted"
    DONE = "done"
    FAILED = "failed"


class DefinitionKind(enum.IntEnum):
    """Kinds of advertised commands, numbered as the platform numbers them."""
    CHAT_INPUT = 1
    USER = 2


def _validate_description(cls, description, /):
    if not isinstance(description, str):
        raise TypeError(f"{cls.__typename__} 'description' must be a string")
    if not description or len(description) > 100:
        raise CommandRegistrationError(
            f"invalid {cls.__typename__} description {description!r}",
            title="invalid description",
            hint="descriptions must hold 1 to 100 characters",
        )
    return description


class Invocable:
    """
    The invocation pipeline shared by chat and user commands.

    Subclasses provide `_handler`, `full_name`, the pre/post-call signals,
    `_bind` (the positional arguments after the context) and
    `invocation_checks` (the checks to pass, in order).
    """

    @property
    def invocation_checks(self):
        return self.checks

    async def _bind(self, context):
        return []

    @staticmethod
    def _transition(context, state):
        context.state = state
        logger.debug("invocation of {!r}: {}", context.command.full_name, state.value)

    async def invoke(self, context, /):
        """
        Run the invocation pipeline for `context`.

        Raises
        - InvocationError subclasses; handler faults as UncaughtException.
        """
        state = InvocationState.BINDING_ARGUMENTS
        try:
            self._transition(context, state)
            context.arguments = await self._bind(context)

            self._transition(context, state := InvocationState.CHECKING)
            for item in self.invocation_checks:
                if not await item(context):
                    raise CheckFailedError(
                        f"check {item.name!r} failed for {self.full_name!r}",
                        context=context,
                        check=item,
                    )

            await self.on_pre_call.emit(context)
            self._transition(context, InvocationState.PRE_CALL_EMITTED)

            self._transition(context, state := InvocationState.EXECUTING)
            fault = None
            try:
                result = self._handler(context, *context.arguments)
                if inspect.isawaitable(result):
                    await result
            except Exception as exception:
                fault = exception

            await self.on_post_call.emit(context)
            self._transition(context, InvocationState.POST_CALL_EMITTED)

            if isinstance(fault, InvocationError):
                raise fault
            if fault is not None:
                raise UncaughtException(
                    f"{type(fault).__name__} in {self.full_name!r}: {fault}",
                    context=context,
                    exception=fault,
                ) from fault
        except InvocationError:
            logger.debug("invocation of {!r} failed while {}", self.full_name, state.value)
            self._transition(context, InvocationState.FAILED)
            raise

        self._transition(context, InvocationState.DONE)


class Parameter(metaclass=SpecType):
    """
    One declared parameter of a command.

    Parameters
    - name: platform name of the parameter (lowercase, 1-32 characters).
    - type: Python annotation of the expected value.
    - description: 1 to 100 characters.
    - default: the value used when the parameter is omitted; a parameter is
      optional iff it has a default.
    - choices: optional mapping of display name -> value to advertise.
    - converter: optional Converter overriding registry resolution.
    - autocomplete: optional sync or async callable (context, partial) ->
      mapping of display name -> value.
    """
    __introspectable__ = ("name", "type", "description", "default", "choices", "converter", "autocomplete")
    __displayable__ = ("name", "type", "default")

    def __init__(
            self,
            name,
            type=str,
            /,
            description=DEFAULT_DESCRIPTION,
            *,
            default=Unset,
            choices=None,
            converter=None,
            autocomplete=None,
    ):
        cls = self.__class__
        validate_name(cls, name)
        _validate_description(cls, description)
        if choices is not None and not isinstance(choices, dict):
            raise TypeError(f"{cls.__typename__} 'choices' must be a dict or None")
        if converter is not None and not callable(converter):
            raise TypeError(f"{cls.__typename__} 'converter' must be a converter or None")
        if autocomplete is not None and not callable(autocomplete):
            raise TypeError(f"{cls.__typename__} 'autocomplete' must be callable or None")
        if converter is not None and not assignable(converter.type, describe(type)):
            raise CommandRegistrationError(
                f"converter override for parameter {name!r} does not produce {describe(type)!r}",
                title="invalid converter override",
            )

        self._name = name
        self._type = type
        self._description = description
        self._default = default
        self._choices = choices
        self._converter = converter
        self._autocomplete = autocomplete

    @property
    def required(self):
        return self._default is Unset


class CommandGroup(metaclass=SpecType):
    """
    Holder of named children, signals, checks and options.

    Signals
    - on_pre_call / on_post_call: emitted with the context of every invocation
      of this node or any descendant.
    """
    __introspectable__ = ("options",)
    __displayable__ = ()

    def __init__(self, *, children=(), checks=(), options=None):
        if options is not None and not isinstance(options, CommandOptions):
            raise TypeError(f"{type(self).__typename__} 'options' must be command-options or None")
        self._children = {}
        self._checks = []
        self._options = options if options is not None else CommandOptions()
        self.on_pre_call = Signal("pre-call")
        self.on_post_call = Signal("post-call")

        for item in checks:
            self.check(item)
        for child in children:
            self.add_command(child)

    @property
    def parent(self):
        return None

    @property
    def children(self):
        """Distinct children in registration order."""
        return tuple(dict.fromkeys(self._children.values()))

    @property
    def checks(self):
        return tuple(self._checks)

    @property
    def resolved_options(self):
        return self._options

    @property
    def has_structured(self):
        """Whether a structured-capable command exists below this node."""
        return any(
            (isinstance(child, Command) and child.resolved_type is not CommandType.TEXT_ONLY) or child.has_structured
            for child in self.children
        )

    def check(self, check, /):
        """
        Add an inherited check. Its hooks observe this node's signals.
        """
        if not isinstance(check, Check):
            raise TypeError(f"{type(self).__typename__} checks must be check objects")
        self._checks.append(check)
        self._connect_hooks(check)
        return check

    def _connect_hooks(self, check):
        for hook in check.pre_call_hooks:
            self.on_pre_call.connect(hook)
        for hook in check.post_call_hooks:
            self.on_post_call.connect(hook)

    def add_command(self, node, /):
        """
        Attach a child node.

        Raises
        - DuplicateNameError when its name or an alias is already taken here.
        - CommandRegistrationError when the node already has a parent.
        """
        if not isinstance(node, CommandNode):
            raise TypeError(f"{type(self).__typename__} children must be groups or commands")

        for name in (node.name, *node.aliases):
            if name in self._children:
                label = "name" if name == node.name else "alias"
                raise DuplicateNameError(
                    f"a child with {label} {self._route(name)!r} already exists",
                    hint="pick another name or alias",
                )

        if self.parent is not None:
            logger.warning(
                "registering {!r} under {!r} after it was attached; advertised definitions may be stale",
                node.name,
                self._route(""),
            )

        node.parent = self

        for name in (node.name, *node.aliases):
            self._children[name] = node

        node.on_pre_call.connect(self.on_pre_call.emit)
        node.on_post_call.connect(self.on_post_call.emit)

        logger.debug("registered {} {!r}", type(node).__typename__, node.full_name)
        return node

    def _route(self, name):
        return name

    def get_command(self, view, /):
        """
        Resolve the command named by the next words of `view`.

        Returns None (with the word un-read) when the next word names no child.
        """
        word = view.get_word()
        if self.resolved_options.case_insensitive_commands:
            word = word.lower()

        try:
            child = self._children[word]
        except KeyError:
            view.undo()
            return None

        if isinstance(child, Command) and child.resolved_type is CommandType.STRUCTURED_ONLY:
            return child

        found = child.get_command(view)
        if found is None and isinstance(child, Command):
            return child
        return found

    def walk_commands(self):
        """
        Yield every command at or below this node, depth first.
        """
        if isinstance(self, Command):
            yield self
        for child in self.children:
            yield from child.walk_commands()

    def get_options(self, registry, /):
        """
        Describe structured-capable children as platform options.
        """
        options = []
        for child in self.children:
            if child.has_structured:
                kind = OptionKind.SUB_COMMAND_GROUP
            elif isinstance(child, Command) and child.resolved_type is not CommandType.TEXT_ONLY:
                kind = OptionKind.SUB_COMMAND
            else:
                continue
            options.append({
                "type": kind,
                "name": child.name,
                "description": child.description,
                "options": child.get_options(registry),
            })
        return options

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Create a Command and attach it here (directly or as a decorator).
        """
        @rename("command")
        def wrapper(source, /):
            return self.add_command(command(source, *args, **kwargs))

        return wrapper(source) if source is not Unset else wrapper

    def group(self, name, /, *args, **kwargs):
        """
        Create a Group named `name` and attach it here.
        """
        return self.add_command(Group(name, *args, **kwargs))


class CommandNode(CommandGroup):
    """
    A named node of the command tree.

    Identity
    - name: validated platform name.
    - aliases: additional names, unique within the parent.
    - parent: set once on registration; re-parenting is an error.
    """
    __introspectable__ = ("name", "aliases", "description")
    __displayable__ = ("name", "aliases", "description")

    def __init__(self, name, description=DEFAULT_DESCRIPTION, /, *, aliases=(), children=(), checks=(), options=None):
        cls = type(self)
        validate_name(cls, name)
        _validate_description(cls, description)
        if isinstance(aliases, str):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")
        aliases = tuple(aliases)
        for alias in aliases:
            validate_name(cls, alias, "alias")
        if len({name, *aliases}) != len(aliases) + 1:
            raise DuplicateNameError(f"{cls.__typename__} {name!r} repeats a name among its aliases")

        self._name = name
        self._aliases = aliases
        self._description = description
        self._parent = None
        super().__init__(children=children, checks=checks, options=options)

    @property
    def parent(self):
        return self._parent

    @parent.setter
    def parent(self, parent):
        if self._parent is not None:
            raise CommandRegistrationError(
                f"cannot register {type(self).__typename__} {self._name!r} again",
                hint="create a separate node for each parent",
            )
        self._parent = parent

    @property
    def full_name(self):
        """Space-joined route from the top-level node."""
        names = [self._name]
        node = self._parent
        while isinstance(node, CommandNode):
            names.append(node.name)
            node = node.parent
        return " ".join(reversed(names))

    def _route(self, name):
        return f"{self.full_name} {name}".strip()

    @property
    def checks(self):
        inherited = self._parent.checks if self._parent is not None else ()
        return (*inherited, *self._checks)

    @property
    def resolved_options(self):
        if self._parent is None:
            return self._options
        return self._options.merge(self._parent.resolved_options)


class Group(CommandNode):
    """
    A routing node without a handler.
    """


class Command(Invocable, CommandNode):
    """
    A command: parameters, handler and invocation type.

    Parameters
    - handler: sync or async callable (context, *arguments).
    - name: defaults to the handler name with '_' replaced by '-'.
    - description: defaults to the first line of the handler docstring.
    - parameters: ordered Parameter table; required parameters come first.
    - type: CommandType; DEFAULT defers to the inherited `type` option.
    - single_checks: checks applied to this command but not its children.
    """
    __introspectable__ = ("handler", "parameters", "type", "single_checks")
    __displayable__ = ("name", "aliases", "description", "parameters", "type")

    def __init__(
            self,
            handler,
            /,
            name=Unset,
            description=Unset,
            parameters=(),
            *,
            type=CommandType.DEFAULT,
            aliases=(),
            children=(),
            checks=(),
            single_checks=(),
            options=None,
    ):
        cls = self.__class__
        if not callable(handler):
            raise TypeError(f"{cls.__typename__} 'handler' must be callable")
        if not isinstance(type, CommandType):
            raise TypeError(f"{cls.__typename__} 'type' must be a command type")

        name = coalesce(name, getattr(handler, "__name__", "").replace("_", "-"))
        description = coalesce(description, (inspect.getdoc(handler) or DEFAULT_DESCRIPTION).partition("\n")[0])

        parameters = tuple(parameters)
        seen = set()
        optional = False
        for parameter in parameters:
            if not isinstance(parameter, Parameter):
                raise TypeError(f"{cls.__typename__} 'parameters' must be parameter objects")
            if parameter.name in seen:
                raise DuplicateNameError(f"{cls.__typename__} {name!r} declares parameter {parameter.name!r} twice")
            if parameter.required and optional:
                raise CommandRegistrationError(
                    f"required parameter {parameter.name!r} of {cls.__typename__} {name!r} follows an optional one",
                    title="invalid parameters",
                    hint="declare required parameters first",
                )
            seen.add(parameter.name)
            optional = optional or not parameter.required

        self._handler = handler
        self._parameters = parameters
        self._type = type
        self._single_checks = []
        super().__init__(name, description, aliases=aliases, children=children, checks=checks, options=options)

        for item in single_checks:
            self.single_check(item)

    @property
    def resolved_type(self):
        if self._type is not CommandType.DEFAULT:
            return self._type
        return self.resolved_options.type or CommandType.DEFAULT

    @property
    def required_count(self):
        return sum(parameter.required for parameter in self._parameters)

    @property
    def invocation_checks(self):
        return (*self.checks, *self._single_checks)

    def single_check(self, check, /):
        """
        Add a check that applies to this command only.
        """
        if not isinstance(check, Check):
            raise TypeError(f"{type(self).__typename__} checks must be check objects")
        self._single_checks.append(check)
        self._connect_hooks(check)
        return check

    def add_command(self, node, /):
        if self.resolved_type is not CommandType.TEXT_ONLY and (
                node.has_structured or (isinstance(node, Command) and node.resolved_type is not CommandType.TEXT_ONLY)
        ):
            raise CommandRegistrationError(
                f"cannot nest structured command {node.name!r} under structured command {self._name!r}",
                title="nested structured command",
                code=FaultCode.NESTED_STRUCTURED_COMMAND,
                hint="make one of them text-only or use a group",
            )
        return super().add_command(node)

    def get_options(self, registry, /):
        if self.resolved_type is CommandType.TEXT_ONLY:
            # text-only commands may still route to structured children
            return super().get_options(registry)

        options = []
        for parameter in self._parameters:
            selected = parameter.converter or registry.resolve(parameter.type)
            choices = parameter.choices if parameter.choices is not None else getattr(selected, "choices", None)
            option = {
                "type": selected.kind if selected is not None else OptionKind.STRING,
                "name": parameter.name,
                "description": parameter.description,
                "required": parameter.required,
            }
            if choices:
                option["choices"] = [{"name": key, "value": value} for key, value in choices.items()]
            if parameter.autocomplete is not None:
                option["autocomplete"] = True
            options.append(option)
        return options

    async def _bind(self, context):
        registry = context.commands.converters
        arguments = []

        if isinstance(context.raw_arguments, str):
            view = StringView(context.raw_arguments)
            for parameter in self._parameters:
                view.skip_ws()
                if view.eof:
                    break
                arguments.append(await registry.convert(view, context, parameter.type, parameter.converter))

            if len(arguments) < self.required_count:
                missing = self._parameters[len(arguments)]
                raise NotEnoughArgumentsError(
                    f"{self.full_name!r} expects at least {self.required_count} argument(s), got {len(arguments)}",
                    context=context,
                    hint=f"the {ordinal(len(arguments) + 1)} argument ({missing.name!r}) is missing",
                )
            arguments.extend(parameter.default for parameter in self._parameters[len(arguments):])
            return arguments

        for parameter in self._parameters:
            try:
                raw = context.raw_arguments[parameter.name]
            except KeyError:
                arguments.append(coalesce(parameter.default, None))
                continue

            if assignable(typeof(raw), describe(parameter.type)):
                arguments.append(raw)
                continue

            view = StringView(str(raw), is_rest_block=True)
            arguments.append(await registry.convert(view, context, parameter.type, parameter.converter))
        return arguments


class UserCommand(Invocable, metaclass=SpecType):
    """
    A context-menu command run on a user.

    User commands attach to the Commands root only, in a namespace separate
    from chat commands. The handler receives the context alone; the user the
    menu was opened on is `context.target_id`.

    Parameters
    - handler: sync or async callable (context).
    - name: 1 to 32 characters, displayed as given (case and spaces kept);
      defaults to the handler name with '_' replaced by ' '.
    - checks: checks to pass, after the ones inherited from the root.
    - options: CommandOptions layered over the root's.
    """
    __introspectable__ = ("name", "handler", "options")
    __displayable__ = ("name", "options")

    def __init__(self, handler, /, name=Unset, *, checks=(), options=None):
        cls = self.__class__
        if not callable(handler):
            raise TypeError(f"{cls.__typename__} 'handler' must be callable")
        if options is not None and not isinstance(options, CommandOptions):
            raise TypeError(f"{cls.__typename__} 'options' must be command-options or None")

        name = coalesce(name, getattr(handler, "__name__", "").replace("_", " "))
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        if not name.strip() or len(name) > 32:
            raise CommandRegistrationError(
                f"invalid {cls.__typename__} name {name!r}",
                title="invalid name",
                code=FaultCode.INVALID_NAME,
                hint="use 1 to 32 characters",
            )

        self._handler = handler
        self._name = name
        self._options = options if options is not None else CommandOptions()
        self._checks = []
        self._parent = None
        self.on_pre_call = Signal("pre-call")
        self.on_post_call = Signal("post-call")

        for item in checks:
            self.check(item)

    @property
    def parent(self):
        return self._parent

    @parent.setter
    def parent(self, parent):
        if self._parent is not None:
            raise CommandRegistrationError(
                f"cannot register {type(self).__typename__} {self._name!r} again",
                hint="create a separate user command for each root",
            )
        self._parent = parent

    @property
    def full_name(self):
        return self._name

    @property
    def checks(self):
        inherited = self._parent.checks if self._parent is not None else ()
        return (*inherited, *self._checks)

    @property
    def resolved_options(self):
        if self._parent is None:
            return self._options
        return self._options.merge(self._parent.resolved_options)

    def check(self, check, /):
        if not isinstance(check, Check):
            raise TypeError(f"{type(self).__typename__} checks must be check objects")
        self._checks.append(check)
        for hook in check.pre_call_hooks:
            self.on_pre_call.connect(hook)
        for hook in check.post_call_hooks:
            self.on_post_call.connect(hook)
        return check


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator that builds it later.

    Invocation modes
    - Direct: cmd = command(handler, "name", "description", [...])
    - Decorator:
        @command(parameters=[Parameter("user", Snowflake)])
        async def whois(context, user): ...
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def group(name, /, *args, **kwargs):
    """
    Create a Group; children may be passed or added later with add_command.
    """
    return Group(name, *args, **kwargs)


def user_command(source=Unset, /, *args, **kwargs):
    """
    Create a UserCommand or return a decorator that builds it later.

        @user_command(name="Show avatar")
        async def avatar(context): ...
    """
    @rename("user_command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@user_command() must be applied to a callable")
        return UserCommand(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "InvocationState",
    "DefinitionKind",
    "Invocable",
    "Parameter",
    "CommandGroup",
    "CommandNode",
    "Group",
    "Command",
    "UserCommand",
    "command",
    "group",
    "user_command",
)
