## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from flick.lexer import tokenize, significant, unescape_string


def kinds(source):
    return [t.type for t in significant(tokenize(source))]


def test_keywords_and_identifiers():
    assert kinds("free lock greet") == ['FREE', 'LOCK', 'IDENTIFIER', 'EOF']
    assert kinds("yes no num literal") == ['YES', 'NO', 'NUM', 'LITERAL', 'EOF']

def test_two_character_operators_win_over_prefixes():
    assert kinds("x := 1 == 2 => <= >= !=") == [
        'IDENTIFIER', 'ASSIGN', 'NUMBER', 'EQUALS', 'NUMBER', 'ARROW',
        'LESS_EQUAL', 'GREATER_EQUAL', 'NOT_EQUALS', 'EOF']

def test_numbers_integers_and_decimals():
    tokens = significant(tokenize("42 3.25"))
    assert [(t.type, str(t)) for t in tokens[:2]] == [('NUMBER', '42'), ('NUMBER', '3.25')]

def test_positions_are_one_based_and_track_lines():
    tokens = significant(tokenize('print "a"\n  x'))
    assert (tokens[0].line, tokens[0].column) == (1, 1)
    assert (tokens[1].line, tokens[1].column) == (1, 7)
    assert (tokens[2].line, tokens[2].column) == (2, 3)

def test_multiline_string_updates_end_position():
    tokens = significant(tokenize('"a\nb" x'))
    assert tokens[0].type == 'STRING'
    assert tokens[0].end_line == 2
    assert (tokens[1].line, tokens[1].column) == (2, 4)

def test_comments_and_whitespace_are_trivia():
    assert kinds("x # a comment\ny") == ['IDENTIFIER', 'IDENTIFIER', 'EOF']

def test_invalid_character_is_a_token_not_an_exception():
    assert kinds("x $ y") == ['IDENTIFIER', 'INVALID', 'IDENTIFIER', 'EOF']

def test_unterminated_string():
    assert kinds('print "hello') == ['PRINT', 'UNTERMINATED_STRING', 'EOF']

def test_eof_token_always_last():
    assert kinds("") == ['EOF']

def test_unescape_string():
    assert unescape_string('"a\\nb"') == 'a\nb'
    assert unescape_string("'it\\'s'") == "it's"
    assert unescape_string('"tab\\there"') == 'tab\there'
    assert unescape_string('"\\q"') == 'q'

def test_keyword_prefixes_stay_identifiers():
    assert kinds("freedom endless in_stock") == ['IDENTIFIER', 'IDENTIFIER', 'IDENTIFIER', 'EOF']

def test_every_character_is_covered_by_a_token():
    source = 'print "a" # c\n\tx := $1'
    tokens = list(tokenize(source))
    assert ''.join(str(t) for t in tokens) == source
    assert (tokens[-1].type, tokens[-1].line, tokens[-1].column) == ('EOF', 2, 9)
