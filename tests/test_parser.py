## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from flick import nodes as N
from flick.parser import parse
from flick.builtins import load_builtin_capabilities
from flick.errors import FlickParseError, FlickIncompleteParse, FlickCapabilityError


@pytest.fixture
def registry():
    return load_builtin_capabilities(serve=False)


def body(source, registry):
    return parse(source, registry).body


def test_variable_declarations(registry):
    free, lock = body("free x := 1\nlock y = 'a'", registry)
    assert free == N.VariableDeclaration('x', True, None, N.Literal(1, '1'))
    assert lock == N.VariableDeclaration('y', False, None, N.Literal('a', "'a'"))

def test_typed_declaration_needs_type_and_name_on_one_line(registry):
    decl, = body("free num total := 0", registry)
    assert decl.type == 'num' and decl.name == 'total'

    first, second = body("free x\ncount := 2", registry)
    assert first == N.VariableDeclaration('x', True)
    assert isinstance(second, N.Assignment)

def test_declaration_without_initializer(registry):
    decl, = body("lock y", registry)
    assert decl.initializer is None and not decl.mutable

def test_precedence(registry):
    stmt, = body("1 + 2 * 3 == 7 or no", registry)
    expr = stmt.expression
    assert expr.operator == 'or'
    assert expr.left.operator == '=='
    assert expr.left.left.operator == '+'
    assert expr.left.left.right.operator == '*'

def test_unary_operators(registry):
    stmt, = body("!yes", registry)
    assert stmt.expression == N.UnaryExpression('!', N.Literal(True, 'yes'))
    stmt, = body("-x", registry)
    assert stmt.expression == N.UnaryExpression('-', N.Identifier('x'))

def test_slash_member_access_versus_division(registry):
    member, = body("player/name", registry)
    assert member.expression == N.MemberExpression(N.Identifier('player'), N.Identifier('name'), False)

    division, = body("a / b", registry)
    assert division.expression == N.BinaryExpression('/', N.Identifier('a'), N.Identifier('b'))

def test_dot_and_index_member_access(registry):
    dot, = body("config.mode", registry)
    assert dot.expression == N.MemberExpression(N.Identifier('config'), N.Identifier('mode'), False)
    index, = body("items[0]", registry)
    assert index.expression == N.MemberExpression(N.Identifier('items'), N.Literal(0, '0'), True)

def test_parenthesised_call(registry):
    stmt, = body('add(1, 2)', registry)
    assert stmt.expression == N.CallExpression(N.Identifier('add'), (N.Literal(1, '1'), N.Literal(2, '2')))

def test_space_separated_call_stays_on_one_line(registry):
    call, = body('greet "Ann", 3', registry)
    assert call.expression.args == (N.Literal('Ann', '"Ann"'), N.Literal(3, '3'))

    first, second = body('greet\nname := 1', registry)
    assert first.expression == N.Identifier('greet')
    assert isinstance(second, N.Assignment)

def test_space_separated_call_without_commas(registry):
    call, = body('add 1 2', registry)
    assert len(call.expression.args) == 2

def test_trailing_comma_in_bare_call_fails(registry):
    with pytest.raises(FlickParseError, match="another argument"):
        parse('greet "Ann",\nprint 1', registry)

def test_print_splits_on_and(registry):
    stmt, = body('print "a" and b and (yes and no)', registry)
    assert isinstance(stmt, N.PrintStatement)
    assert len(stmt.expressions) == 3
    assert stmt.expressions[2].operator == 'and'

def test_lists_and_maps(registry):
    stmt, = body('[1, "a", {"k": 2}]', registry)
    items = stmt.expression.elements
    assert items[2] == N.ObjectLiteral((('k', N.Literal(2, '2')),))

def test_if_chain(registry):
    stmt, = body('assume x > 1 =>\n print 1\nmaybe x > 0 =>\n print 2\notherwise =>\n print 3\nend', registry)
    assert len(stmt.branches) == 3
    assert stmt.branches[-1].condition is None

def test_loops(registry):
    each, march = body('each n in names => print n end\nmarch i from 1 to 3 => print i end', registry)
    assert each.variable == 'n' and each.iterable == N.Identifier('names')
    assert march.variable == 'i' and march.start == N.Literal(1, '1') and march.end == N.Literal(3, '3')

def test_select_with_guard(registry):
    source = 'select cfg =>\n when "mode" => suppose mode == "debug" =>\n  print 1\n when "port" =>\n  print 2\nend'
    stmt, = body(source, registry)
    assert [c.key for c in stmt.cases] == ['mode', 'port']
    assert stmt.cases[0].guard.operator == '=='
    assert stmt.cases[1].guard is None

def test_task_with_typed_parameters(registry):
    task, = body('task greet with literal(name), num(times) =>\n print name\nend', registry)
    assert [(p.name, p.type) for p in task.parameters] == [('name', 'literal'), ('times', 'num')]
    assert len(task.body) == 1

def test_group_blueprint_and_do(registry):
    source = """
group Hero {
  free name
  lock level := 1
  task greet => print name end
}
blueprint Speaker { task speak with literal(word) }
do Speaker for Hero =>
  task speak with literal(word) => print word end
end
"""
    group, blueprint, impl = body(source, registry)
    assert [f.name for f in group.fields] == ['name', 'level']
    assert [m.name for m in group.methods] == ['greet']
    assert blueprint.methods == (N.TaskSignature('speak', (N.Parameter('word', 'literal'),)),)
    assert (impl.blueprint, impl.group) == ('Speaker', 'Hero')

def test_blueprint_methods_cannot_have_bodies(registry):
    with pytest.raises(FlickParseError, match="signatures only"):
        parse('blueprint B { task go => print 1 end }', registry)

def test_assignment_target_must_be_name_or_member(registry):
    with pytest.raises(FlickParseError, match="left side of assignment"):
        parse('1 := 2', registry)

def test_semicolons_separate_statements(registry):
    assert len(body('free a := 1; free b := 2;', registry)) == 2

def test_positions_recorded(registry):
    _, stmt = body('free a := 1\n  print a', registry)
    assert (stmt.line, stmt.column) == (2, 3)

def test_error_reports_line_and_column(registry):
    with pytest.raises(FlickParseError) as exc:
        parse('free x := 1\nprint )', registry)
    assert (exc.value.line, exc.value.column) == (2, 7)
    assert "line 2" in str(exc.value)

def test_invalid_character(registry):
    with pytest.raises(FlickParseError, match="Invalid character `\\$`"):
        parse('free x := $', registry)

@pytest.mark.parametrize('source', ['task go =>\n print 1', 'print "abc', 'free x := [1, 2'])
def test_incomplete_input(registry, source):
    with pytest.raises(FlickIncompleteParse):
        parse(source, registry)


# Capability declarations and gating.

WEB_FILE = 'route "/hi" =>\n respond "hello"\nend'

def test_gated_keyword_without_declaration(registry):
    with pytest.raises(FlickCapabilityError) as exc:
        parse(WEB_FILE, registry)
    assert exc.value.keyword == 'route' and exc.value.capability == 'web'
    assert "`route`" in str(exc.value) and "`web`" in str(exc.value)

def test_gated_keyword_after_declaration(registry):
    program = parse('declare web\n' + WEB_FILE, registry)
    declare, route = program.body
    assert declare == N.DeclareStatement('web')
    assert isinstance(route, N.RouteStatement) and route.path == '/hi'

def test_respond_is_gated_too(registry):
    with pytest.raises(FlickCapabilityError, match="respond"):
        parse('respond "x"', registry)

def test_declare_with_argument(registry):
    declare, = parse('declare web@8080', registry).body
    assert declare.argument == N.Literal(8080, '8080')

def test_declare_must_come_first(registry):
    with pytest.raises(FlickParseError, match="before any other statement"):
        parse('print 1\ndeclare web', registry)

def test_duplicate_declare(registry):
    with pytest.raises(FlickParseError, match="already declared"):
        parse('declare time\ndeclare time', registry)

def test_unknown_capability(registry):
    with pytest.raises(FlickCapabilityError, match="Unknown capability `teleport`") as exc:
        parse('declare teleport', registry)
    assert exc.value.line == 1

def test_forwarding_route(registry):
    _, route = parse('declare web\nroute "/auth" -> login', registry).body
    assert route.forward == 'login' and route.body == ()

def test_routes_only_at_top_level(registry):
    with pytest.raises(FlickParseError, match="top level"):
        parse('declare web\ntask t =>\n route "/x" => end\nend', registry)

def test_declared_mapping_is_shared(registry):
    declared = {}
    parse('declare web', registry, declared=declared)
    assert 'web' in declared
    parse('route "/x" => respond "y" end', registry, declared=declared)
