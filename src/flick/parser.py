## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any

from lark import Token

from . import nodes as N
from .lexer import tokenize, significant, unescape_string
from .errors import FlickError, FlickParseError, FlickIncompleteParse, FlickCapabilityError
from .capabilities import CapabilityRegistry


COMPARISON_OPS = ('EQUALS', 'NOT_EQUALS', 'LESS_THAN', 'GREATER_THAN', 'LESS_EQUAL', 'GREATER_EQUAL')
ARGUMENT_TOKENS = ('STRING', 'NUMBER', 'IDENTIFIER')
TYPE_TOKENS = ('NUM', 'LITERAL', 'IDENTIFIER')
# Tokens that always end a bare, space-separated argument list.
STATEMENT_ENDS = ('ARROW', 'ASSIGN', 'SET', 'SEMICOLON', 'EOF', 'END', 'MAYBE', 'OTHERWISE')


class Parser:
    """Recursive-descent parser producing one `Program` per source text.

    Capability declarations are consumed first; their names are kept in `declared`
    so that keywords gated by a capability are only accepted after its declaration.
    Passing the same `declared` mapping to a later parser (e.g. in a REPL) carries the
    declarations over.
    """

    def __init__(self, tokens, registry: CapabilityRegistry, *, filename=None, declared: dict | None = None):
        self.tokens: list[Token] = significant(tokens)
        self.position = 0
        self.registry = registry
        self.filename = filename
        self.declared: dict[str, Any] = {} if declared is None else declared
        self._in_print = False

    # Token helpers ───────────────────────────────────────────────────────────────────────
    def peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.position + offset, len(self.tokens) - 1)]

    def previous(self) -> Token:
        return self.tokens[max(self.position - 1, 0)]

    def advance(self) -> Token:
        token = self.peek()
        self.position = min(self.position + 1, len(self.tokens) - 1)
        return token

    def match(self, *types: str) -> bool:
        return self.peek().type in types

    def expect(self, type_: str, what: str | None = None) -> Token:
        if not self.match(type_):
            self.fail(f"Expected {what or type_}")
        return self.advance()

    def skip(self, type_: str) -> bool:
        if self.match(type_):
            self.advance(); return True
        return False

    def fail(self, message: str, token: Token | None = None):
        token = token or self.peek()
        if token.type in ('EOF', 'UNTERMINATED_STRING'):
            reason = "unterminated string" if token.type == 'UNTERMINATED_STRING' else "end of input"
            raise FlickIncompleteParse(f"{message}, but reached {reason} at line {token.line}, column {token.column}.",
                                       filename=self.filename, line=token.line, column=token.column, token=str(token))
        if token.type == 'INVALID':
            message = f"Invalid character `{token}`"
        else:
            message = f"{message}, but got `{token}` ({token.type})"
        raise FlickParseError(f"{message} at line {token.line}, column {token.column}.",
                              filename=self.filename, line=token.line, column=token.column, token=str(token))

    def same_line(self) -> bool:
        """Whether the next token starts on the line where the previous token ended."""
        return self.peek().line == self.previous().end_line

    def _pos(self, token: Token) -> dict:
        return {'line': token.line, 'column': token.column}

    # Program ─────────────────────────────────────────────────────────────────────────────
    def parse(self) -> N.Program:
        first = self.peek()
        body = []
        while self.match('DECLARE'):
            body.append(self.parse_declare())
            self.skip('SEMICOLON')

        while not self.match('EOF'):
            if self.skip('SEMICOLON'): continue
            body.append(self.parse_top_level())

        return N.Program(tuple(body), **self._pos(first))

    def parse_declare(self) -> N.DeclareStatement:
        start = self.expect('DECLARE')
        name = self.expect('IDENTIFIER', "capability name after `declare`")
        if str(name) not in self.registry:
            raise FlickCapabilityError(f"Unknown capability `{name}` in `declare {name}` at line {name.line}, column {name.column}.",
                                       keyword='declare', capability=str(name), filename=self.filename,
                                       line=name.line, column=name.column)
        if str(name) in self.declared:
            self.fail(f"Capability `{name}` is already declared; expected a single `declare {name}`", name)
        capability = self.registry.get(str(name))

        argument, value = None, None
        if self.skip('AT'):
            token = self.advance()
            match token.type:
                case 'NUMBER':
                    value = _number(token)
                    argument = N.Literal(value, str(token), **self._pos(token))
                case 'STRING':
                    value = unescape_string(token)
                    argument = N.Literal(value, str(token), **self._pos(token))
                case 'IDENTIFIER':
                    value = str(token)
                    argument = N.Identifier(value, **self._pos(token))
                case _:
                    self.fail("Expected number, string or name after `@`", token)

        try:
            capability.on_declare(value)
        except FlickError as exc:
            if exc.line is None: exc.filename, exc.line, exc.column = self.filename, start.line, start.column
            raise
        self.declared[capability.name] = value
        return N.DeclareStatement(capability.name, argument, **self._pos(start))

    def check_gated(self, token: Token) -> None:
        keyword = str(token)
        owner = self.registry.owner_of_keyword(keyword)
        if owner is None:
            raise FlickCapabilityError(f"Keyword `{keyword}` is not provided by any registered capability.",
                                       keyword=keyword, filename=self.filename, line=token.line, column=token.column)
        if owner.name not in self.declared:
            raise FlickCapabilityError(
                f"Keyword `{keyword}` requires capability `{owner.name}`; add `declare {owner.name}` at the top of the file.",
                keyword=keyword, capability=owner.name, filename=self.filename, line=token.line, column=token.column)

    def parse_top_level(self) -> N.Node:
        match self.peek().type:
            case 'DECLARE':
                self.fail("Capability declarations must appear before any other statement; expected a statement")
            case 'ROUTE':
                self.check_gated(self.peek())
                return self.parse_route()
            case 'GROUP':
                return self.parse_group()
            case 'BLUEPRINT':
                return self.parse_blueprint()
            case 'DO':
                return self.parse_do()
            case 'TASK':
                return self.parse_task()
        return self.parse_statement()

    def parse_block(self, *terminators: str) -> tuple[N.Node, ...]:
        body = []
        while not self.match(*terminators):
            if self.match('EOF'):
                self.fail(f"Expected `{'` or `'.join(t.lower() for t in terminators)}` to close block")
            if self.skip('SEMICOLON'): continue
            body.append(self.parse_statement())
        return tuple(body)

    # Declarations ────────────────────────────────────────────────────────────────────────
    def parse_route(self) -> N.RouteStatement:
        start = self.expect('ROUTE')
        path = unescape_string(self.expect('STRING', "route path string"))

        # Forwarding form: route "/auth" -> AuthRoutes
        if self.match('MINUS') and self.peek(1).type == 'GREATER_THAN':
            self.advance(); self.advance()
            forward = str(self.expect('IDENTIFIER', "forwarding target name"))
            return N.RouteStatement(path, forward=forward, **self._pos(start))

        self.expect('ARROW', "`=>`")
        body = self.parse_block('END')
        self.expect('END')
        return N.RouteStatement(path, body, **self._pos(start))

    def parse_group(self) -> N.GroupDeclaration:
        start = self.expect('GROUP')
        name = str(self.expect('IDENTIFIER', "group name"))
        self.expect('LBRACE', "`{`")

        fields, methods = [], []
        while not self.match('RBRACE'):
            if self.match('TASK'):
                methods.append(self.parse_task())
            elif self.match('FREE', 'LOCK'):
                fields.append(self.parse_variable())
            elif not self.skip('SEMICOLON'):
                self.fail(f"Expected field or task in group `{name}`")
        self.expect('RBRACE')
        return N.GroupDeclaration(name, tuple(fields), tuple(methods), **self._pos(start))

    def parse_blueprint(self) -> N.BlueprintDeclaration:
        start = self.expect('BLUEPRINT')
        name = str(self.expect('IDENTIFIER', "blueprint name"))
        self.expect('LBRACE', "`{`")

        methods = []
        while not self.match('RBRACE'):
            if self.skip('SEMICOLON'): continue
            self.expect('TASK', f"task signature in blueprint `{name}`")
            method = str(self.expect('IDENTIFIER', "task name"))
            parameters = self.parse_parameters() if self.skip('WITH') else ()
            if self.match('ARROW'):
                self.fail(f"Blueprint `{name}` declares signatures only, task `{method}` cannot have a body; expected `}}`")
            methods.append(N.TaskSignature(method, parameters))
        self.expect('RBRACE')
        return N.BlueprintDeclaration(name, tuple(methods), **self._pos(start))

    def parse_do(self) -> N.DoImplementation:
        start = self.expect('DO')
        blueprint = str(self.expect('IDENTIFIER', "blueprint name"))
        self.expect('FOR', "`for`")
        group = str(self.expect('IDENTIFIER', "group name"))
        self.expect('ARROW', "`=>`")

        methods = []
        while not self.match('END'):
            if self.skip('SEMICOLON'): continue
            if not self.match('TASK'):
                self.fail(f"Expected task implementing `{blueprint}` for `{group}`")
            methods.append(self.parse_task())
        self.expect('END')
        return N.DoImplementation(blueprint, group, tuple(methods), **self._pos(start))

    def parse_task(self) -> N.TaskDeclaration:
        start = self.expect('TASK')
        name = str(self.expect('IDENTIFIER', "task name"))
        parameters = self.parse_parameters() if self.skip('WITH') else ()
        self.expect('ARROW', "`=>`")
        body = self.parse_block('END')
        self.expect('END')
        return N.TaskDeclaration(name, parameters, body, **self._pos(start))

    def parse_parameters(self) -> tuple[N.Parameter, ...]:
        parameters = []
        while True:
            if not self.match(*TYPE_TOKENS):
                self.fail("Expected parameter type such as `num(x)`")
            type_ = str(self.advance())
            self.expect('LPAREN', "`(`")
            name = str(self.expect('IDENTIFIER', "parameter name"))
            self.expect('RPAREN', "`)`")
            parameters.append(N.Parameter(name, type_))
            if not self.skip('COMMA'): break
        return tuple(parameters)

    def parse_variable(self) -> N.VariableDeclaration:
        start = self.advance()
        mutable = start.type == 'FREE'

        # `free Type name` only when both are on one line, otherwise `free x` followed
        # by a statement starting with a name would be misread.
        type_ = None
        if self.match(*TYPE_TOKENS) and self.peek(1).type == 'IDENTIFIER' and self.peek(1).line == self.peek().end_line:
            type_ = str(self.advance())
        name = str(self.expect('IDENTIFIER', "variable name"))

        initializer = None
        if self.match('ASSIGN', 'SET'):
            self.advance()
            initializer = self.parse_expression()
        return N.VariableDeclaration(name, mutable, type_, initializer, **self._pos(start))

    # Statements ──────────────────────────────────────────────────────────────────────────
    def parse_statement(self) -> N.Node:
        match self.peek().type:
            case 'RESPOND':
                self.check_gated(self.peek())
                return self.parse_respond()
            case 'ROUTE':
                self.check_gated(self.peek())
                self.fail("Routes are only allowed at the top level; expected a statement")
            case 'PRINT':
                return self.parse_print()
            case 'ASSUME':
                return self.parse_if()
            case 'EACH':
                return self.parse_each()
            case 'MARCH':
                return self.parse_march()
            case 'SELECT':
                return self.parse_select()
            case 'FREE' | 'LOCK':
                return self.parse_variable()

        start = self.peek()
        expr = self.parse_expression()
        if self.match('ASSIGN', 'SET'):
            if not isinstance(expr, (N.Identifier, N.MemberExpression)):
                self.fail("Expected a name or member on the left side of assignment", start)
            self.advance()
            value = self.parse_expression()
            return N.Assignment(expr, value, **self._pos(start))
        return N.ExpressionStatement(expr, **self._pos(start))

    def parse_respond(self) -> N.RespondStatement:
        start = self.expect('RESPOND')
        return N.RespondStatement(self.parse_expression(), **self._pos(start))

    def parse_print(self) -> N.PrintStatement:
        start = self.expect('PRINT')
        self._in_print, outer = True, self._in_print
        try:
            expressions = [self.parse_expression()]
            while self.skip('AND'):
                expressions.append(self.parse_expression())
        finally:
            self._in_print = outer
        return N.PrintStatement(tuple(expressions), **self._pos(start))

    def parse_if(self) -> N.IfStatement:
        start = self.expect('ASSUME')
        condition = self.parse_expression()
        self.expect('ARROW', "`=>`")
        branches = [N.Branch(condition, self.parse_block('MAYBE', 'OTHERWISE', 'END'))]

        while self.skip('MAYBE'):
            condition = self.parse_expression()
            self.expect('ARROW', "`=>`")
            branches.append(N.Branch(condition, self.parse_block('MAYBE', 'OTHERWISE', 'END')))

        if self.skip('OTHERWISE'):
            self.expect('ARROW', "`=>`")
            branches.append(N.Branch(None, self.parse_block('END')))

        self.expect('END')
        return N.IfStatement(tuple(branches), **self._pos(start))

    def parse_each(self) -> N.EachLoop:
        start = self.expect('EACH')
        variable = str(self.expect('IDENTIFIER', "loop variable"))
        self.expect('IN', "`in`")
        iterable = self.parse_expression()
        self.expect('ARROW', "`=>`")
        body = self.parse_block('END')
        self.expect('END')
        return N.EachLoop(variable, iterable, body, **self._pos(start))

    def parse_march(self) -> N.MarchLoop:
        start = self.expect('MARCH')
        variable = str(self.expect('IDENTIFIER', "loop variable"))
        self.expect('FROM', "`from`")
        first = self.parse_expression()
        self.expect('TO', "`to`")
        last = self.parse_expression()
        self.expect('ARROW', "`=>`")
        body = self.parse_block('END')
        self.expect('END')
        return N.MarchLoop(variable, first, last, body, **self._pos(start))

    def parse_select(self) -> N.SelectStatement:
        start = self.expect('SELECT')
        subject = self.parse_expression()
        self.expect('ARROW', "`=>`")

        cases = []
        while self.skip('WHEN'):
            key = unescape_string(self.expect('STRING', "case key string"))
            self.expect('ARROW', "`=>`")
            guard = None
            if self.skip('SUPPOSE'):
                guard = self.parse_expression()
                self.expect('ARROW', "`=>`")
            cases.append(N.SelectCase(key, guard, self.parse_block('WHEN', 'END')))

        self.expect('END', "`when` or `end`")
        return N.SelectStatement(subject, tuple(cases), **self._pos(start))

    # Expressions ─────────────────────────────────────────────────────────────────────────
    def parse_expression(self) -> N.Node:
        return self.parse_logical()

    def parse_logical(self) -> N.Node:
        left = self.parse_comparison()
        # Within `print`, `and` separates the printed expressions instead.
        while self.match('OR') or (self.match('AND') and not self._in_print):
            token = self.advance()
            right = self.parse_comparison()
            left = N.BinaryExpression(str(token), left, right, **self._pos(token))
        return left

    def parse_comparison(self) -> N.Node:
        left = self.parse_additive()
        while self.match(*COMPARISON_OPS):
            token = self.advance()
            left = N.BinaryExpression(str(token), left, self.parse_additive(), **self._pos(token))
        return left

    def parse_additive(self) -> N.Node:
        left = self.parse_multiplicative()
        while self.match('PLUS', 'MINUS'):
            # `->` belongs to a forwarding route, never to subtraction.
            if self.match('MINUS') and self.peek(1).type == 'GREATER_THAN': break
            token = self.advance()
            left = N.BinaryExpression(str(token), left, self.parse_multiplicative(), **self._pos(token))
        return left

    def parse_multiplicative(self) -> N.Node:
        left = self.parse_unary()
        while self.match('MULTIPLY', 'DIVIDE'):
            token = self.advance()
            left = N.BinaryExpression(str(token), left, self.parse_unary(), **self._pos(token))
        return left

    def parse_unary(self) -> N.Node:
        if self.match('MINUS', 'BANG'):
            token = self.advance()
            return N.UnaryExpression(str(token), self.parse_unary(), **self._pos(token))
        return self.parse_postfix()

    def _at_slash_member(self) -> bool:
        """`a/b` with no whitespace around `/` is member access, `a / b` is division."""
        slash, name = self.peek(), self.peek(1)
        return (slash.type == 'DIVIDE' and name.type == 'IDENTIFIER'
                and self.previous().end_pos == slash.start_pos and slash.end_pos == name.start_pos)

    def parse_member(self, expr: N.Node) -> N.Node | None:
        """Parse one member-access postfix on `expr`, or return None if there is none."""
        if self.match('DOT') or self._at_slash_member():
            self.advance()
            token = self.expect('IDENTIFIER', "member name")
            prop = N.Identifier(str(token), **self._pos(token))
            return N.MemberExpression(expr, prop, False, line=expr.line, column=expr.column)
        if self.match('LBRACKET') and self.same_line():
            self.advance()
            prop = self.parse_expression()
            self.expect('RBRACKET', "`]`")
            return N.MemberExpression(expr, prop, True, line=expr.line, column=expr.column)
        return None

    def parse_postfix(self) -> N.Node:
        expr = self.parse_primary()
        while True:
            if (member := self.parse_member(expr)) is not None:
                expr = member
            elif self.match('LPAREN') and self.same_line():
                self.advance()
                args = []
                while not self.match('RPAREN'):
                    args.append(self.parse_expression())
                    if not self.skip('COMMA'): break
                self.expect('RPAREN', "`)` to close call arguments")
                expr = N.CallExpression(expr, tuple(args), line=expr.line, column=expr.column)
            elif isinstance(expr, (N.Identifier, N.MemberExpression)) and self.at_bare_argument():
                expr = N.CallExpression(expr, self.parse_bare_arguments(), line=expr.line, column=expr.column)
            else:
                break
        return expr

    def at_bare_argument(self) -> bool:
        return self.match(*ARGUMENT_TOKENS) and not self.match(*STATEMENT_ENDS) and self.same_line()

    def parse_bare_arguments(self) -> tuple[N.Node, ...]:
        """Greedy run of space-separated arguments: `greet "Ann", 3`. The run ends at the
        end of the line or at the first token that cannot start an argument."""
        args = []
        while True:
            arg = self.parse_primary()
            while (member := self.parse_member(arg)) is not None:
                arg = member
            args.append(arg)
            if self.skip('COMMA'):
                if not self.match(*ARGUMENT_TOKENS):
                    self.fail("Expected another argument after `,`")
                continue
            if not self.at_bare_argument():
                return tuple(args)

    def parse_primary(self) -> N.Node:
        token = self.peek()
        pos = self._pos(token)
        match token.type:
            case 'STRING':
                self.advance()
                return N.Literal(unescape_string(token), str(token), **pos)
            case 'NUMBER':
                self.advance()
                return N.Literal(_number(token), str(token), **pos)
            case 'YES' | 'NO':
                self.advance()
                return N.Literal(token.type == 'YES', str(token), **pos)
            case 'ASK':
                self.advance()
                return N.AskExpression(self.parse_expression(), **pos)
            case 'IDENTIFIER':
                self.advance()
                return N.Identifier(str(token), **pos)
            case 'LBRACKET':
                self.advance()
                elements = []
                while not self.match('RBRACKET'):
                    elements.append(self.parse_expression())
                    if not self.skip('COMMA'): break
                self.expect('RBRACKET', "`]` to close list")
                return N.ArrayLiteral(tuple(elements), **pos)
            case 'LBRACE':
                self.advance()
                properties = []
                while not self.match('RBRACE'):
                    key = unescape_string(self.expect('STRING', "string key in map literal"))
                    self.expect('COLON', "`:`")
                    properties.append((key, self.parse_expression()))
                    if not self.skip('COMMA'): break
                self.expect('RBRACE', "`}` to close map")
                return N.ObjectLiteral(tuple(properties), **pos)
            case 'LPAREN':
                self.advance()
                # Parentheses restore `and` as a logical operator inside `print`.
                self._in_print, outer = False, self._in_print
                try:
                    expr = self.parse_expression()
                finally:
                    self._in_print = outer
                self.expect('RPAREN', "`)`")
                return expr
            case 'RESPOND' | 'ROUTE':
                self.check_gated(token)
        self.fail("Expected an expression")


def _number(token: Token) -> int | float:
    return float(token) if '.' in token else int(token)


def parse(source: str, registry: CapabilityRegistry, *, filename=None, declared: dict | None = None) -> N.Program:
    return Parser(tokenize(source), registry, filename=filename, declared=declared).parse()


def format_parse_error_context(filename, line, column, token_value, source=None):
    lines = source.splitlines(keepends=True) if source else open(filename, 'r').readlines()
    start_line, end_line = max(0, line - 3), min(len(lines), line + 2)
    result = [f"\033[97m  File \"{filename}\", line {line}\033[0m"]

    for i in range(start_line, end_line):
        line_content = lines[i].rstrip('\n')
        line_color = '\033[90m'
        if i+1 == line:
            line_color = '\033[97m'
            if column > 0 and column <= len(line_content):
                width = max(len(token_value or ''), 1)
                line_content = (
                    line_content[:column-1] +
                    f"\033[48;5;30m\033[1;97m{line_content[column-1:column+width-1]}\033[0m" +
                    line_content[column+width-1:]
                )
        result.append(f"{line_color}{i+1:>5} |\033[0m {line_content}")
    return '\n' + '\n'.join(result) + '\n'
