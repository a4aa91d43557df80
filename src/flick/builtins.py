## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import os
import time
import random
import asyncio
from datetime import datetime, timezone

from .types import Builtin
from .errors import FlickRuntimeError, FlickTypeError
from .formatting import format_value
from .capabilities import Capability, CapabilityRegistry


class BuiltinCapability(Capability):
    """Capability whose only effect is injecting its `op_*` methods as built-ins."""

    def functions(self) -> dict:
        return {k[3:]: getattr(self, k) for k in dir(self) if k.startswith('op_')}

    def register_builtins(self, env, argument):
        for name, fn in self.functions().items():
            env.define(name, Builtin(name, fn), mutable=False)


class FilesCapability(BuiltinCapability):
    name = 'files'
    builtins = frozenset({'read', 'write', 'exists', 'listdir'})

    def op_read(self, path: str) -> str:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def op_write(self, path: str, content) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(format_value(content))

    def op_exists(self, path: str) -> bool:
        return os.path.exists(path)

    def op_listdir(self, path: str) -> list[str]:
        return sorted(os.listdir(path))


class TimeCapability(BuiltinCapability):
    name = 'time'
    builtins = frozenset({'now', 'sleep', 'timestamp'})

    def op_now(self) -> int:
        return int(time.time() * 1000)

    async def op_sleep(self, ms) -> None:
        await asyncio.sleep(ms / 1000)

    def op_timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()


class RandomCapability(BuiltinCapability):
    name = 'random'
    builtins = frozenset({'random', 'randint', 'shuffle', 'choice'})

    def op_random(self) -> float:
        return random.random()

    def op_randint(self, a, b) -> int:
        if isinstance(a, float) and a.is_integer(): a = int(a)
        if isinstance(b, float) and b.is_integer(): b = int(b)
        if not (isinstance(a, int) and isinstance(b, int)) or a > b:
            raise FlickRuntimeError(f"randint needs two whole numbers with a <= b, got {format_value(a)} and {format_value(b)}.")
        return random.randint(a, b)

    def op_shuffle(self, items: list) -> list:
        if not isinstance(items, list):
            raise FlickTypeError("shuffle needs a list.")
        return random.sample(items, len(items))

    def op_choice(self, items: list):
        if not isinstance(items, list):
            raise FlickTypeError("choice needs a list.")
        return random.choice(items) if items else None


def load_builtin_capabilities(serve: bool = True) -> CapabilityRegistry:
    from .web import WebCapability

    registry = CapabilityRegistry()
    for capability in (FilesCapability(), TimeCapability(), RandomCapability(), WebCapability(serve=serve)):
        registry.register(capability)
    return registry
