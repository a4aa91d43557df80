## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from flick.environment import Environment
from flick.errors import FlickNameError, FlickImmutableError


def test_lookup_walks_parents():
    root = Environment()
    root.define('x', 1)
    assert root.child().child().lookup('x') == 1

def test_child_shadows_parent():
    root = Environment()
    root.define('x', 1)
    child = root.child()
    child.define('x', 2)
    assert child.lookup('x') == 2 and root.lookup('x') == 1

def test_assign_updates_defining_scope():
    root = Environment()
    root.define('x', 1)
    root.child().assign('x', 5)
    assert root.lookup('x') == 5

def test_closures_see_later_writes():
    root = Environment()
    root.define('count', 0)
    closure = root.child()
    root.assign('count', 3)
    assert closure.lookup('count') == 3

def test_undefined_name():
    with pytest.raises(FlickNameError, match="Undefined variable `ghost`") as exc:
        Environment().lookup('ghost')
    assert exc.value.name == 'ghost'

def test_assign_to_undefined_name():
    with pytest.raises(FlickNameError):
        Environment().assign('ghost', 1)

def test_immutable_binding():
    env = Environment()
    env.define('x', 5, mutable=False)
    with pytest.raises(FlickImmutableError, match="`x`") as exc:
        env.child().assign('x', 6)
    assert exc.value.name == 'x'
    assert env.lookup('x') == 5

def test_redefine_in_same_scope_replaces():
    env = Environment()
    env.define('x', 1, mutable=False)
    env.define('x', 2)
    assert env.lookup('x') == 2

def test_root_and_contains():
    root = Environment()
    root.define('a', 1)
    leaf = root.child().child()
    assert leaf.root is root
    assert 'a' in leaf and 'b' not in leaf
