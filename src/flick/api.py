## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Task, Builtin, GroupDefinition, Instance
from .errors import *
from .capabilities import Capability, CapabilityRegistry
from .runtime import Runtime

_RUNTIME = Runtime()

def __getattr__(name):
    return getattr(_RUNTIME, name)
