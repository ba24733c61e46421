"""Registry — immutable name-to-handler tables for tools and prompts.

Built once at startup with :class:`RegistryBuilder` and frozen by
:meth:`RegistryBuilder.build`. The frozen :class:`Registry` exposes read-only
mapping views, so any number of concurrent dispatches can read it without
locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from string import Template
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from utctime.protocol.errors import InvalidParamsError, PromptArgumentMissingError
from utctime.protocol.models import PromptDescriptor, PromptMessage, TextContent, ToolDescriptor

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping


@dataclass(frozen=True)
class ToolEntry:
    """A tool descriptor and the coroutine function that serves it.

    The handler receives the call's ``arguments`` object and returns any
    JSON-serializable value; it raises to signal a failed call.
    """

    descriptor: ToolDescriptor
    handler: Callable[[dict[str, Any]], Awaitable[Any]]

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True)
class PromptEntry:
    """A prompt descriptor with its message template.

    ``template`` uses ``$name`` placeholders. Besides the declared arguments,
    the optional ``context`` coroutine can contribute extra substitutions
    (e.g. a freshly rendered time document) computed from the arguments.
    """

    descriptor: PromptDescriptor
    template: str
    description_template: str | None = None
    context: Callable[[dict[str, str]], Awaitable[dict[str, str]]] | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    def bind(self, arguments: Mapping[str, Any] | None) -> dict[str, str]:
        """Check required arguments and coerce the supplied ones to strings."""
        supplied = dict(arguments or {})
        bound: dict[str, str] = {}
        for arg in self.descriptor.arguments:
            value = supplied.get(arg.name)
            if value is None or value == "":
                if arg.required:
                    raise PromptArgumentMissingError(self.name, arg.name)
                continue
            if not isinstance(value, str | int | float):
                msg = f"Argument '{arg.name}' of prompt '{self.name}' must be a string"
                raise InvalidParamsError(msg)
            bound[arg.name] = str(value)
        return bound

    async def render(self, arguments: Mapping[str, Any] | None) -> dict[str, Any]:
        """Produce the ``prompts/get`` result for *arguments*."""
        bound = self.bind(arguments)
        values = dict(bound)
        if self.context is not None:
            values.update(await self.context(bound))

        text = Template(self.template).safe_substitute(values)
        description = Template(
            self.description_template or self.descriptor.description
        ).safe_substitute(values)
        message = PromptMessage(role="user", content=TextContent(text=text))
        return {"description": description, "messages": [message.model_dump()]}


class Registry:
    """Frozen tool and prompt tables. Construct via :class:`RegistryBuilder`."""

    def __init__(self, tools: dict[str, ToolEntry], prompts: dict[str, PromptEntry]) -> None:
        self._tools: Mapping[str, ToolEntry] = MappingProxyType(dict(tools))
        self._prompts: Mapping[str, PromptEntry] = MappingProxyType(dict(prompts))
        self._tool_list = tuple(entry.descriptor for entry in self._tools.values())
        self._prompt_list = tuple(entry.descriptor for entry in self._prompts.values())

    def resolve_tool(self, name: str) -> ToolEntry | None:
        return self._tools.get(name)

    def resolve_prompt(self, name: str) -> PromptEntry | None:
        return self._prompts.get(name)

    def tools(self) -> tuple[ToolDescriptor, ...]:
        """Tool descriptors in registration order."""
        return self._tool_list

    def prompts(self) -> tuple[PromptDescriptor, ...]:
        """Prompt descriptors in registration order."""
        return self._prompt_list

    def __repr__(self) -> str:
        return f"Registry(tools={list(self._tools)}, prompts={list(self._prompts)})"


class RegistryBuilder:
    """Collects tools and prompts, then freezes them into a :class:`Registry`.

    Usage::

        builder = RegistryBuilder()
        builder.add_tool(descriptor, handler)
        builder.add_prompt(prompt_descriptor, "Here is the time in $timezone")
        registry = builder.build()
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolEntry] = {}
        self._prompts: dict[str, PromptEntry] = {}
        self._built = False

    def add_tool(
        self,
        descriptor: ToolDescriptor,
        handler: Callable[[dict[str, Any]], Awaitable[Any]],
    ) -> RegistryBuilder:
        self._check_open()
        if descriptor.name in self._tools:
            msg = f"Tool already registered: {descriptor.name}"
            raise ValueError(msg)
        self._tools[descriptor.name] = ToolEntry(descriptor=descriptor, handler=handler)
        return self

    def add_prompt(
        self,
        descriptor: PromptDescriptor,
        template: str,
        *,
        description_template: str | None = None,
        context: Callable[[dict[str, str]], Awaitable[dict[str, str]]] | None = None,
    ) -> RegistryBuilder:
        self._check_open()
        if descriptor.name in self._prompts:
            msg = f"Prompt already registered: {descriptor.name}"
            raise ValueError(msg)
        self._prompts[descriptor.name] = PromptEntry(
            descriptor=descriptor,
            template=template,
            description_template=description_template,
            context=context,
        )
        return self

    def build(self) -> Registry:
        """Freeze the tables. The builder can't be used afterwards."""
        self._check_open()
        self._built = True
        return Registry(self._tools, self._prompts)

    def _check_open(self) -> None:
        if self._built:
            msg = "Registry already built"
            raise RuntimeError(msg)
