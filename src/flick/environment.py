## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any, Iterator
from dataclasses import dataclass

from .errors import FlickNameError, FlickImmutableError


@dataclass
class Binding:
    value: Any
    mutable: bool


class Environment:
    """One scope of name bindings with a link to its enclosing scope.

    Parents are shared, never copied: every closure or child scope created from an
    environment sees later writes made to it.
    """

    def __init__(self, parent: "Environment | None" = None):
        self.parent = parent
        self.bindings: dict[str, Binding] = {}

    def child(self) -> "Environment":
        return Environment(self)

    def define(self, name: str, value: Any, mutable: bool = True) -> None:
        self.bindings[name] = Binding(value, mutable)

    def has_own(self, name: str) -> bool:
        return name in self.bindings

    def resolve(self, name: str) -> "Environment | None":
        """Return the innermost environment binding `name`, if any."""
        env = self
        while env is not None:
            if name in env.bindings: return env
            env = env.parent
        return None

    def lookup(self, name: str) -> Any:
        if (env := self.resolve(name)) is None:
            raise FlickNameError(f"Undefined variable `{name}`.", name=name)
        return env.bindings[name].value

    def assign(self, name: str, value: Any) -> None:
        if (env := self.resolve(name)) is None:
            raise FlickNameError(f"Cannot assign to undefined variable `{name}`.", name=name)
        binding = env.bindings[name]
        if not binding.mutable:
            raise FlickImmutableError(f"Cannot reassign immutable variable `{name}`.", name=name)
        binding.value = value

    @property
    def root(self) -> "Environment":
        env = self
        while env.parent is not None:
            env = env.parent
        return env

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.bindings)

    def __repr__(self):
        return f"<Environment {list(self.bindings)}{' +parent' if self.parent else ''}>"
