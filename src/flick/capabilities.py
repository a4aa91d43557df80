## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any
from dataclasses import dataclass, field

from .errors import FlickCapabilityError


class Capability:
    """An opt-in extension unlocked by `declare <name>` at the top of a file.

    Subclasses list the keywords whose syntax they gate and the built-in names they
    inject, and override any of the four hooks below.
    """
    name: str = ''
    keywords: frozenset[str] = frozenset()
    builtins: frozenset[str] = frozenset()

    def on_declare(self, argument: Any) -> None:
        """Called by the parser when the `declare` statement is consumed."""

    def register_builtins(self, env, argument: Any) -> None:
        """Called by the evaluator to inject values into the root environment."""

    async def execute(self, node, evaluator, env) -> Any:
        """Handle a statement node that only this capability understands."""
        return None

    async def on_file_complete(self, declared: dict[str, Any], env) -> None:
        """Called once after the whole program was evaluated."""

    def __repr__(self):
        return f"<capability {self.name}>"


@dataclass
class CapabilityRegistry:
    capabilities: dict[str, Capability] = field(default_factory=dict)

    def register(self, capability: Capability) -> Capability:
        assert capability.name, "Capabilities must have a name."
        self.capabilities[capability.name] = capability
        return capability

    def get(self, name: str, *, keyword: str | None = None) -> Capability:
        if (capability := self.capabilities.get(name)) is not None:
            return capability
        raise FlickCapabilityError(f"Unknown capability `{name}` in `declare {name}`.",
                                   keyword=keyword or 'declare', capability=name)

    def __contains__(self, name: str) -> bool:
        return name in self.capabilities

    def owner_of_keyword(self, keyword: str) -> Capability | None:
        return next((c for c in self.capabilities.values() if keyword in c.keywords), None)

    def owner_of_builtin(self, name: str) -> Capability | None:
        return next((c for c in self.capabilities.values() if name in c.builtins), None)

    @property
    def gated_keywords(self) -> frozenset[str]:
        return frozenset(k for c in self.capabilities.values() for k in c.keywords)
