## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re
from typing import Iterator

import lark
from lark import Token


KEYWORDS = frozenset({
    'free', 'lock', 'group', 'blueprint', 'task', 'do', 'for', 'with', 'declare',
    'assume', 'maybe', 'otherwise', 'each', 'in', 'march', 'from', 'to',
    'select', 'when', 'suppose', 'print', 'ask', 'route', 'respond',
    'end', 'yes', 'no', 'num', 'literal', 'and', 'or',
})

OPERATORS = {
    ':=': 'ASSIGN', '==': 'EQUALS', '!=': 'NOT_EQUALS', '<=': 'LESS_EQUAL', '>=': 'GREATER_EQUAL', '=>': 'ARROW',
    '+': 'PLUS', '-': 'MINUS', '*': 'MULTIPLY', '/': 'DIVIDE', '<': 'LESS_THAN', '>': 'GREATER_THAN',
    '=': 'SET', '!': 'BANG', '.': 'DOT', ',': 'COMMA', ';': 'SEMICOLON', ':': 'COLON', '@': 'AT',
    '(': 'LPAREN', ')': 'RPAREN', '{': 'LBRACE', '}': 'RBRACE', '[': 'LBRACKET', ']': 'RBRACKET',
}

# Token types that carry no meaning for the parser, but keep line/column tracking exact.
TRIVIA = frozenset({'WHITESPACE', 'NEWLINE', 'COMMENT'})

# Keywords share IDENTIFIER's priority, so lark retypes a whole-word match instead of
# splitting `freedom` into `free` + `dom`. INVALID is the only priority-0 terminal.
GRAMMAR = r"""
    start: _token*
    _token: WHITESPACE | NEWLINE | COMMENT | STRING | UNTERMINATED_STRING | NUMBER
          | IDENTIFIER | %(keywords)s
          | %(operators)s
          | INVALID

    WHITESPACE.1: /[ \t\f\v\r]+/
    NEWLINE.1: /\r?\n/
    COMMENT.1: /#[^\r\n]*/
    STRING.3: /"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'/
    UNTERMINATED_STRING.2: /"(?:[^"\\]|\\.)*\\?|'(?:[^'\\]|\\.)*\\?/s
    NUMBER.1: /\d+(?:\.\d+)?/
    IDENTIFIER.1: /[A-Za-z_][A-Za-z0-9_]*/
%(terminals)s
    INVALID: /./s
""" % {
    'keywords': ' | '.join(k.upper() for k in sorted(KEYWORDS)),
    'operators': ' | '.join(OPERATORS.values()),
    'terminals': '\n'.join(
        [f'    {k.upper()}.1: "{k}"' for k in sorted(KEYWORDS)] +
        [f'    {name}.{len(op)}: "{op}"' for op, name in OPERATORS.items()]),
}

_LEXER = lark.Lark(GRAMMAR, parser='lalr', lexer='basic')

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0'}


def tokenize(source: str) -> Iterator[Token]:
    """Split source text into tokens covering every character, followed by one `EOF` token.
    Never raises: unknown characters become `INVALID` tokens for the parser to report."""
    last = None
    for last in _LEXER.lex(source, dont_ignore=True):
        yield last

    if last is None:
        yield Token('EOF', '', 0, 1, 1, 1, 1, 0)
    else:
        yield Token('EOF', '', len(source), last.end_line, last.end_column, last.end_line, last.end_column, len(source))


def significant(tokens) -> list[Token]:
    return [t for t in tokens if t.type not in TRIVIA]


def unescape_string(raw: str) -> str:
    """Strip the quotes from a STRING token and resolve its backslash escapes."""
    body = raw[1:-1] if len(raw) >= 2 and raw[-1] == raw[0] else raw[1:]
    return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(1)), body, flags=re.DOTALL)
