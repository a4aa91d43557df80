## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Node:
    # Source position of the first token, for diagnostics only.
    line: int = field(default=0, kw_only=True, compare=False)
    column: int = field(default=0, kw_only=True, compare=False)


# Expressions ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Literal(Node):
    value: Any
    raw: str

@dataclass(frozen=True)
class Identifier(Node):
    name: str

@dataclass(frozen=True)
class ArrayLiteral(Node):
    elements: tuple[Node, ...]

@dataclass(frozen=True)
class ObjectLiteral(Node):
    properties: tuple[tuple[str, Node], ...]

@dataclass(frozen=True)
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node

@dataclass(frozen=True)
class UnaryExpression(Node):
    operator: str
    operand: Node

@dataclass(frozen=True)
class CallExpression(Node):
    callee: Node
    args: tuple[Node, ...]

@dataclass(frozen=True)
class MemberExpression(Node):
    object: Node
    property: Node
    computed: bool      # True for obj[expr], False for obj.name and obj/name

@dataclass(frozen=True)
class AskExpression(Node):
    prompt: Node


# Declarations ────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Parameter:
    name: str
    type: str           # 'num', 'literal' or a type name

@dataclass(frozen=True)
class TaskSignature:
    name: str
    parameters: tuple[Parameter, ...]

@dataclass(frozen=True)
class TaskDeclaration(Node):
    name: str
    parameters: tuple[Parameter, ...]
    body: tuple[Node, ...]

@dataclass(frozen=True)
class VariableDeclaration(Node):
    name: str
    mutable: bool       # `free` is mutable, `lock` is not.
    type: str | None = None
    initializer: Node | None = None

@dataclass(frozen=True)
class GroupDeclaration(Node):
    name: str
    fields: tuple[VariableDeclaration, ...]
    methods: tuple[TaskDeclaration, ...]

@dataclass(frozen=True)
class BlueprintDeclaration(Node):
    name: str
    methods: tuple[TaskSignature, ...]

@dataclass(frozen=True)
class DoImplementation(Node):
    blueprint: str
    group: str
    methods: tuple[TaskDeclaration, ...]

@dataclass(frozen=True)
class DeclareStatement(Node):
    capability: str
    argument: Node | None = None


# Statements ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Assignment(Node):
    target: Node        # Identifier or MemberExpression
    value: Node

@dataclass(frozen=True)
class PrintStatement(Node):
    expressions: tuple[Node, ...]

@dataclass(frozen=True)
class Branch:
    condition: Node | None      # None for the `otherwise` branch.
    body: tuple[Node, ...]

@dataclass(frozen=True)
class IfStatement(Node):
    branches: tuple[Branch, ...]

@dataclass(frozen=True)
class EachLoop(Node):
    variable: str
    iterable: Node
    body: tuple[Node, ...]

@dataclass(frozen=True)
class MarchLoop(Node):
    variable: str
    start: Node
    end: Node
    body: tuple[Node, ...]

@dataclass(frozen=True)
class SelectCase:
    key: str
    guard: Node | None
    body: tuple[Node, ...]

@dataclass(frozen=True)
class SelectStatement(Node):
    subject: Node
    cases: tuple[SelectCase, ...]

@dataclass(frozen=True)
class ExpressionStatement(Node):
    expression: Node

@dataclass(frozen=True)
class RouteStatement(Node):
    path: str
    body: tuple[Node, ...] = ()
    forward: str | None = None

@dataclass(frozen=True)
class RespondStatement(Node):
    content: Node


@dataclass(frozen=True)
class Program(Node):
    body: tuple[Node, ...]

    @property
    def declarations(self) -> tuple[DeclareStatement, ...]:
        return tuple(s for s in self.body if isinstance(s, DeclareStatement))
