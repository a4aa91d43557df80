## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import sys
import asyncio
import inspect
from types import MappingProxyType
from typing import Any, Callable

from . import nodes as N
from .types import Task, Builtin, GroupDefinition, BlueprintDefinition, Instance, is_number, type_name
from .errors import FlickError, FlickNameError, FlickTypeError, FlickRuntimeError, FlickCapabilityError
from .operators import apply_binary, apply_unary, is_truthy
from .formatting import format_value, format_node
from .environment import Environment
from .capabilities import CapabilityRegistry


# Statements handled by a capability's execution hook, by the keyword that gates them.
CAPABILITY_STATEMENTS = {N.RouteStatement: 'route', N.RespondStatement: 'respond'}


async def ainput(prompt: str) -> str:
    """Write the prompt, then wait for one line of stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt + ' ')
    sys.stdout.flush()
    line = await loop.run_in_executor(None, sys.stdin.readline)
    return line.rstrip('\r\n')


def print_line(text: str) -> None:
    print(text, flush=True)


class Evaluator:
    """Tree-walking evaluator. Every statement and expression is awaited in source order,
    so suspensions (`ask`, asynchronous built-ins) never interleave their effects."""

    def __init__(self, registry: CapabilityRegistry, *, write: Callable[[str], Any] | None = None,
                 ask: Callable[[str], Any] | None = None, verbosity: int = 0, filename: str | None = None,
                 stats: dict | None = None):
        self.registry = registry
        self.globals = Environment()
        self.groups: dict[str, GroupDefinition] = {}
        self.blueprints: dict[str, BlueprintDefinition] = {}
        self.declared: dict[str, Any] = {}
        self.output: list[str] = []
        self.last: Any = None
        self.write = write or print_line
        self.ask = ask or ainput
        self.verbosity = verbosity
        self.filename = filename
        self.stats = stats if stats is not None else {'steps': 0}

    # Program ─────────────────────────────────────────────────────────────────────────────
    async def run(self, program: N.Program, *, complete: bool = True) -> Environment:
        self.last = None
        for statement in program.body:
            if self.verbosity == 1: self._trace(statement)
            self.last = await self.execute(statement, self.globals)
        if complete:
            await self.complete()
        return self.globals

    async def complete(self) -> None:
        """Run the file-complete hook of every declared capability, in declaration order."""
        for name in list(self.declared):
            await self.registry.get(name).on_file_complete(dict(self.declared), self.globals)

    def _trace(self, node: N.Node) -> None:
        print(f"\033[90m{self.stats['steps']:>3} :\033[0m  {format_node(node)}", file=sys.stderr)

    def emit(self, text: str) -> None:
        self.output.append(text)
        self.write(text)

    # Statements ──────────────────────────────────────────────────────────────────────────
    async def execute(self, node: N.Node, env: Environment) -> Any:
        if self.verbosity >= 2: self._trace(node)
        self.stats['steps'] += 1
        try:
            return await self._execute(node, env)
        except FlickError as exc:
            if exc.line is None: exc.line, exc.column = node.line, node.column
            if exc.filename is None: exc.filename = self.filename
            raise

    async def execute_block(self, body: tuple[N.Node, ...], env: Environment) -> Any:
        result = None
        for statement in body:
            result = await self.execute(statement, env)
        return result

    async def _execute(self, node: N.Node, env: Environment) -> Any:
        match node:
            case N.DeclareStatement():
                self.declare(node, env)
            case N.RouteStatement() | N.RespondStatement():
                return await self.dispatch_capability(node, env)
            case N.GroupDeclaration():
                self.define_group(node, env)
            case N.BlueprintDeclaration():
                self.define_blueprint(node)
            case N.DoImplementation():
                self.implement_blueprint(node)
            case N.TaskDeclaration():
                env.define(node.name, Task(node, env), mutable=False)
            case N.VariableDeclaration():
                value = await self.evaluate(node.initializer, env) if node.initializer is not None else None
                env.define(node.name, value, node.mutable)
            case N.Assignment():
                value = await self.evaluate(node.value, env)
                await self.assign(node.target, value, env)
                return value
            case N.PrintStatement():
                await self.execute_print(node, env)
            case N.IfStatement():
                for branch in node.branches:
                    if branch.condition is None or is_truthy(await self.evaluate(branch.condition, env)):
                        await self.execute_block(branch.body, env.child())
                        break
            case N.EachLoop():
                await self.execute_each(node, env)
            case N.MarchLoop():
                await self.execute_march(node, env)
            case N.SelectStatement():
                await self.execute_select(node, env)
            case N.ExpressionStatement(expression=expression):
                value = await self.evaluate(expression, env)
                # A bare `greet` or `player/greet` statement calls the task.
                if isinstance(expression, (N.Identifier, N.MemberExpression)) and isinstance(value, (Task, Builtin)):
                    value = await self.call(value, [])
                return value
            case _:
                raise FlickRuntimeError(f"Unknown statement type `{type(node).__name__}`.")
        return None

    def declare(self, node: N.DeclareStatement, env: Environment) -> None:
        capability = self.registry.get(node.capability)
        match node.argument:
            case N.Literal(value=value): argument = value
            case N.Identifier(name=name): argument = name
            case _: argument = None
        self.declared[capability.name] = argument
        capability.register_builtins(env.root, argument)

    async def dispatch_capability(self, node: N.Node, env: Environment) -> Any:
        keyword = CAPABILITY_STATEMENTS[type(node)]
        owner = self.registry.owner_of_keyword(keyword)
        if owner is None or owner.name not in self.declared:
            capability = owner.name if owner else None
            raise FlickCapabilityError(f"Keyword `{keyword}` requires capability `{capability}`, which was not declared.",
                                       keyword=keyword, capability=capability)
        return await owner.execute(node, self, env)

    def define_group(self, node: N.GroupDeclaration, env: Environment) -> None:
        if node.name in self.groups:
            raise FlickRuntimeError(f"Group `{node.name}` is already declared; groups cannot be re-opened.")
        group = self.groups[node.name] = GroupDefinition.from_declaration(node)
        env.define(node.name, group, mutable=False)

    def define_blueprint(self, node: N.BlueprintDeclaration) -> None:
        if node.name in self.blueprints:
            raise FlickRuntimeError(f"Blueprint `{node.name}` is already declared; blueprints cannot be re-opened.")
        self.blueprints[node.name] = BlueprintDefinition.from_declaration(node)

    def implement_blueprint(self, node: N.DoImplementation) -> None:
        if (group := self.groups.get(node.group)) is None:
            raise FlickNameError(f"Unknown group `{node.group}` in `do {node.blueprint} for {node.group}`.", name=node.group)
        if node.blueprint not in self.blueprints:
            raise FlickNameError(f"Unknown blueprint `{node.blueprint}` in `do {node.blueprint} for {node.group}`.", name=node.blueprint)
        if node.blueprint in group.implementations:
            raise FlickRuntimeError(f"Blueprint `{node.blueprint}` is already implemented for `{node.group}`.")
        group.implementations[node.blueprint] = MappingProxyType({m.name: m for m in node.methods})

    async def execute_print(self, node: N.PrintStatement, env: Environment) -> None:
        parts = []
        for expr in node.expressions:
            value = await self.evaluate(expr, env)
            if isinstance(value, (Task, Builtin)):
                value = await self.call(value, [])
            parts.append(format_value(value))
        self.emit(''.join(parts))

    async def execute_each(self, node: N.EachLoop, env: Environment) -> None:
        iterable = await self.evaluate(node.iterable, env)
        if not isinstance(iterable, list):
            raise FlickTypeError(f"`each` loop requires a list, got `{type_name(iterable)}`.")
        for item in list(iterable):
            scope = env.child()
            scope.define(node.variable, item, mutable=False)
            await self.execute_block(node.body, scope)

    async def execute_march(self, node: N.MarchLoop, env: Environment) -> None:
        start = await self.evaluate(node.start, env)
        end = await self.evaluate(node.end, env)
        if not (is_number(start) and is_number(end)):
            raise FlickTypeError(f"`march` loop requires numbers, got `{type_name(start)}` to `{type_name(end)}`.")
        if not (float(start).is_integer() and float(end).is_integer()):
            raise FlickTypeError(f"`march` loop requires whole numbers, got `{format_value(start)}` to `{format_value(end)}`.")
        start, end = int(start), int(end)
        i = start
        while i <= end:
            scope = env.child()
            scope.define(node.variable, i, mutable=False)
            await self.execute_block(node.body, scope)
            i += 1

    async def execute_select(self, node: N.SelectStatement, env: Environment) -> None:
        subject = await self.evaluate(node.subject, env)
        # Every case whose key is present and whose guard holds runs; cases do not exclude each other.
        for case in node.cases:
            match subject:
                case dict():
                    if case.key not in subject: continue
                    bound = {case.key: subject[case.key]}
                case Instance():
                    if not subject.has(case.key): continue
                    bound = {case.key: subject.fields.bindings[case.key].value}
                case list():
                    if case.key not in subject: continue
                    bound = {}
                case _:
                    raise FlickTypeError(f"`select` requires a map, instance or list, got `{type_name(subject)}`.")

            scope = env.child()
            for name, value in bound.items():
                scope.define(name, value, mutable=False)
            if case.guard is not None and not is_truthy(await self.evaluate(case.guard, scope)):
                continue
            await self.execute_block(case.body, scope)

    async def assign(self, target: N.Node, value: Any, env: Environment) -> None:
        match target:
            case N.Identifier(name=name):
                env.assign(name, value)
            case N.MemberExpression():
                obj = await self.evaluate(target.object, env)
                key = await self.member_key(target, env)
                set_member(obj, key, value)
            case _:
                raise FlickTypeError(f"Cannot assign to `{type(target).__name__}`.")

    # Expressions ─────────────────────────────────────────────────────────────────────────
    async def evaluate(self, node: N.Node, env: Environment) -> Any:
        match node:
            case N.Literal(value=value):
                return value
            case N.Identifier(name=name):
                return self.lookup(name, env)
            case N.ArrayLiteral(elements=elements):
                return [await self.evaluate(e, env) for e in elements]
            case N.ObjectLiteral(properties=properties):
                return {key: await self.evaluate(value, env) for key, value in properties}
            case N.BinaryExpression(operator='and', left=left, right=right):
                return is_truthy(await self.evaluate(left, env)) and is_truthy(await self.evaluate(right, env))
            case N.BinaryExpression(operator='or', left=left, right=right):
                return is_truthy(await self.evaluate(left, env)) or is_truthy(await self.evaluate(right, env))
            case N.BinaryExpression(operator=operator, left=left, right=right):
                lhs = await self.evaluate(left, env)
                return apply_binary(operator, lhs, await self.evaluate(right, env))
            case N.UnaryExpression(operator=operator, operand=operand):
                return apply_unary(operator, await self.evaluate(operand, env))
            case N.CallExpression(callee=callee, args=args):
                function = await self.evaluate(callee, env)
                return await self.call(function, [await self.evaluate(a, env) for a in args])
            case N.MemberExpression():
                obj = await self.evaluate(node.object, env)
                return get_member(obj, await self.member_key(node, env))
            case N.AskExpression(prompt=prompt):
                answer = self.ask(format_value(await self.evaluate(prompt, env)))
                return await answer if inspect.isawaitable(answer) else answer
        raise FlickRuntimeError(f"Unknown expression type `{type(node).__name__}`.")

    async def member_key(self, node: N.MemberExpression, env: Environment) -> Any:
        return await self.evaluate(node.property, env) if node.computed else node.property.name

    def lookup(self, name: str, env: Environment) -> Any:
        try:
            return env.lookup(name)
        except FlickNameError:
            owner = self.registry.owner_of_builtin(name)
            if owner is None or owner.name in self.declared: raise
            raise FlickCapabilityError(f"Built-in `{name}` requires capability `{owner.name}`; add `declare {owner.name}` at the top of the file.",
                                       keyword=name, capability=owner.name) from None

    async def call(self, function: Any, args: list) -> Any:
        match function:
            case Task():
                return await self.invoke(function, args)
            case Builtin(name=name, fn=fn):
                try:
                    result = fn(*args)
                    return await result if inspect.isawaitable(result) else result
                except FlickError:
                    raise
                except Exception as exc:
                    raise FlickRuntimeError(f"Built-in `{name}` failed: {exc}") from exc
            case GroupDefinition():
                return await self.instantiate(function, args)
        raise FlickTypeError(f"Value of type `{type_name(function)}` is not callable.")

    async def invoke(self, task: Task, args: list) -> Any:
        """Run a task body in a fresh scope; the value of its last statement is the result."""
        scope = task.closure.child()
        for i, param in enumerate(task.declaration.parameters):
            scope.define(param.name, args[i] if i < len(args) else None, mutable=True)
        return await self.execute_block(task.declaration.body, scope)

    async def instantiate(self, group: GroupDefinition, args: list) -> Instance:
        instance = Instance(group, Environment(self.globals))
        remaining = list(args)
        for field in group.fields:
            if field.initializer is not None:
                value = await self.evaluate(field.initializer, instance.fields)
            else:
                value = remaining.pop(0) if remaining else None
            instance.fields.define(field.name, value, field.mutable)
        if remaining:
            raise FlickTypeError(f"Group `{group.name}` got {len(args)} argument(s), but only {len(args) - len(remaining)} field(s) take one.")
        return instance


def _index(container: list | str, key: Any) -> int:
    if isinstance(key, float) and key.is_integer(): key = int(key)
    if not isinstance(key, int) or isinstance(key, bool):
        raise FlickTypeError(f"Index must be a whole number, got `{type_name(key)}`.")
    if not -len(container) <= key < len(container):
        raise FlickRuntimeError(f"Index {key} is out of range for length {len(container)}.")
    return key


def get_member(obj: Any, key: Any) -> Any:
    match obj:
        case Instance():
            return obj.get(format_value(key))
        case dict():
            return obj.get(key if isinstance(key, str) else format_value(key))
        case list() | str():
            return obj[_index(obj, key)]
    raise FlickTypeError(f"Cannot read member `{format_value(key)}` of `{type_name(obj)}`.")


def set_member(obj: Any, key: Any, value: Any) -> None:
    match obj:
        case Instance():
            obj.set(format_value(key), value)
        case dict():
            obj[key if isinstance(key, str) else format_value(key)] = value
        case list():
            obj[_index(obj, key)] = value
        case _:
            raise FlickTypeError(f"Cannot set member `{format_value(key)}` of `{type_name(obj)}`.")
