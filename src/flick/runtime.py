## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import asyncio
from typing import Any, Callable

from . import nodes as N
from .types import Builtin
from .parser import parse
from .builtins import load_builtin_capabilities
from .interpreter import Evaluator
from .environment import Environment
from .capabilities import Capability, CapabilityRegistry


class Runtime:
    """Minimal runtime facade focused on embedding and extension.

    One runtime owns a capability registry and a persistent evaluator, so successive
    `run` calls share globals and declarations, as in the REPL.
    """

    def __init__(self, registry: CapabilityRegistry | None = None, *, serve: bool = True,
                 write: Callable[[str], Any] | None = None, ask: Callable[[str], Any] | None = None):
        self.registry = registry or load_builtin_capabilities(serve=serve)
        self.write, self.ask = write, ask
        self.globals_: dict[str, Any] = {}
        self.reset()

    def reset(self) -> None:
        self.evaluator = Evaluator(self.registry, write=self.write, ask=self.ask)
        for name, value in self.globals_.items():
            self.evaluator.globals.define(name, value, mutable=False)

    @property
    def globals(self) -> Environment:
        return self.evaluator.globals

    @property
    def declared(self) -> dict[str, Any]:
        return self.evaluator.declared

    # Parsing ─────────────────────────────────────────────────────────────────────────────────
    def parse(self, source: str, filename: str | None = None) -> N.Program:
        # A scratch copy, so that parsing alone never marks capabilities as declared.
        return parse(source, self.registry, filename=filename, declared=dict(self.declared))

    # Execution ───────────────────────────────────────────────────────────────────────────────
    async def run_async(self, source: str, filename: str | None = None, verbosity: int = 0,
                        stats: dict | None = None, complete: bool = True) -> list[str]:
        """Parse and evaluate `source`; returns the lines printed by this run."""
        program = parse(source, self.registry, filename=filename, declared=dict(self.declared))
        evaluator = self.evaluator
        evaluator.filename, evaluator.verbosity = filename, verbosity
        if stats is not None: evaluator.stats = stats
        first = len(evaluator.output)
        await evaluator.run(program, complete=complete)
        return evaluator.output[first:]

    def run(self, source: str, filename: str | None = None, verbosity: int = 0,
            stats: dict | None = None, complete: bool = True) -> list[str]:
        return asyncio.run(self.run_async(source, filename, verbosity, stats, complete))

    # Registration ────────────────────────────────────────────────────────────────────────────
    def register(self, capability: Capability) -> Capability:
        return self.registry.register(capability)

    def register_builtin(self, name: str, fn: Callable) -> None:
        """Expose a Python function to every program run by this runtime."""
        self.globals_[name] = Builtin(name, fn)
        self.evaluator.globals.define(name, self.globals_[name], mutable=False)

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def lookup(self, name: str) -> Any:
        return self.evaluator.globals.lookup(name)
