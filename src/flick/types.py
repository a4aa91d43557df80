## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from types import MappingProxyType
from typing import Any, Callable, Mapping
from dataclasses import dataclass, field

from . import nodes as N
from .environment import Environment
from .errors import FlickNameError


@dataclass(frozen=True)
class Task:
    """User-defined task closed over the environment it was declared in; for methods
    that is the field environment of one instance."""
    declaration: N.TaskDeclaration
    closure: Environment = field(compare=False)

    @property
    def name(self) -> str:
        return self.declaration.name

    def __repr__(self):
        return f"<task {self.name}>"


@dataclass(frozen=True)
class Builtin:
    """Python function exposed to programs, sync or async."""
    name: str
    fn: Callable[..., Any]

    def __repr__(self):
        return f"<builtin {self.name}>"


@dataclass(frozen=True)
class BlueprintDefinition:
    name: str
    signatures: Mapping[str, N.TaskSignature]

    @classmethod
    def from_declaration(cls, node: N.BlueprintDeclaration) -> "BlueprintDefinition":
        return cls(node.name, MappingProxyType({sig.name: sig for sig in node.methods}))


@dataclass(frozen=True, eq=False)
class GroupDefinition:
    """Record type; calling it instantiates a new `Instance`.

    `methods` is sealed at declaration. `implementations` gains one sealed table per
    `do <Blueprint> for <Group>` block, each at most once.
    """
    name: str
    fields: tuple[N.VariableDeclaration, ...]
    methods: Mapping[str, N.TaskDeclaration]
    implementations: dict[str, Mapping[str, N.TaskDeclaration]] = field(default_factory=dict)

    @classmethod
    def from_declaration(cls, node: N.GroupDeclaration) -> "GroupDefinition":
        return cls(node.name, node.fields, MappingProxyType({m.name: m for m in node.methods}))

    def find_method(self, name: str) -> N.TaskDeclaration | None:
        # Later `do` blocks override earlier ones, which override the group body.
        for table in reversed(self.implementations.values()):
            if name in table: return table[name]
        return self.methods.get(name)

    def __repr__(self):
        return f"<group {self.name}>"


class Instance:
    """Allocation of a group. Each instance owns a fresh field environment whose parent
    is the global environment, so methods see globals and capability built-ins."""

    def __init__(self, group: GroupDefinition, fields: Environment):
        self.group = group
        self.fields = fields

    def get(self, name: str) -> Any:
        if (method := self.group.find_method(name)) is not None:
            return Task(method, self.fields)
        if self.fields.has_own(name):
            return self.fields.bindings[name].value
        raise FlickNameError(f"Instance of `{self.group.name}` has no member `{name}`.", name=name)

    def set(self, name: str, value: Any) -> None:
        if not self.fields.has_own(name):
            raise FlickNameError(f"Instance of `{self.group.name}` has no field `{name}`.", name=name)
        self.fields.assign(name, value)

    def has(self, name: str) -> bool:
        return self.fields.has_own(name)

    def as_dict(self) -> dict[str, Any]:
        return {name: binding.value for name, binding in self.fields.bindings.items()}

    def __repr__(self):
        return f"<{self.group.name} instance>"


# All runtime value types: Number, Text, Boolean, Null, List, Map, Callable, Instance.
Value = int | float | str | bool | None | list | dict | Task | Builtin | GroupDefinition | Instance


def is_callable(value: Any) -> bool:
    return isinstance(value, (Task, Builtin, GroupDefinition))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


TYPE_NAMES: dict[type, str] = {
    bool: 'boolean', int: 'num', float: 'num', str: 'literal', type(None): 'null',
    list: 'list', dict: 'map', Task: 'task', Builtin: 'builtin', GroupDefinition: 'group',
}

def type_name(value: Any) -> str:
    if isinstance(value, Instance): return value.group.name
    return TYPE_NAMES.get(type(value), type(value).__name__)
