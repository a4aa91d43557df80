## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re
import json

from . import nodes as N
from .types import Task, Builtin, GroupDefinition, Instance


def write_without_ansi(write_fn):
    """Wrapper function that strips ANSI codes before calling the original writer."""
    ansi_re = re.compile(r'\033\[[0-9;]*m')
    return lambda text: write_fn(ansi_re.sub('', text))


def _plain(it):
    """Convert a value into JSON-compatible data for list/map rendering."""
    if isinstance(it, float) and it.is_integer(): return int(it)
    if isinstance(it, list): return [_plain(v) for v in it]
    if isinstance(it, dict): return {str(k): _plain(v) for k, v in it.items()}
    if isinstance(it, Instance): return {k: _plain(v) for k, v in it.as_dict().items()}
    if isinstance(it, (Task, Builtin, GroupDefinition)): return repr(it)
    return it


def format_value(it) -> str:
    """Textual representation used by `print`, string concatenation and responses."""
    if isinstance(it, str): return it
    if isinstance(it, bool): return 'yes' if it else 'no'
    if it is None: return 'null'
    if isinstance(it, float): return str(int(it)) if it.is_integer() else repr(it)
    if isinstance(it, (list, dict)): return json.dumps(_plain(it), separators=(',', ':'), ensure_ascii=False)
    if isinstance(it, Instance): return it.group.name + json.dumps(_plain(it), separators=(',', ':'), ensure_ascii=False)
    return str(it) if isinstance(it, int) else repr(it)


def format_node(node: N.Node, width: int = 60) -> str:
    """One-line summary of a statement for execution traces."""
    match node:
        case N.VariableDeclaration(name=name, mutable=mutable):
            text = f"{'free' if mutable else 'lock'} {name}"
        case N.Assignment(target=N.Identifier(name=name)):
            text = f"{name} := …"
        case N.TaskDeclaration(name=name) | N.GroupDeclaration(name=name) | N.BlueprintDeclaration(name=name):
            text = f"{type(node).__name__} {name}"
        case N.DoImplementation(blueprint=blueprint, group=group):
            text = f"do {blueprint} for {group}"
        case N.ExpressionStatement(expression=N.CallExpression(callee=N.Identifier(name=name))):
            text = f"call {name}"
        case N.RouteStatement(path=path):
            text = f"route {path!r}"
        case _:
            text = type(node).__name__
    if len(text) > width:
        text = text[:width-2] + ' …'
    return f"{text} \033[90m(line {node.line})\033[0m"
