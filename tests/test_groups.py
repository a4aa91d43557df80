## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from flick.runtime import Runtime
from flick.types import Instance, GroupDefinition
from flick.errors import FlickNameError, FlickTypeError, FlickRuntimeError, FlickImmutableError


def run(source: str) -> list[str]:
    return Runtime(serve=False, write=lambda _: None).run(source)


HERO = """
group Hero {
  free name
  lock kind := "hero"
  free level := 1
  task describe =>
    print name and " (" and kind and ") level " and level
  end
}
"""

def test_positional_arguments_fill_fields_without_initializer():
    assert run(HERO + 'lock h := Hero("Ann")\nh/describe') == ['Ann (hero) level 1']

def test_fields_without_value_are_null():
    assert run(HERO + 'lock h := Hero()\nprint h/name') == ['null']

def test_too_many_arguments():
    with pytest.raises(FlickTypeError, match="Hero"):
        run(HERO + 'Hero("a", "b")')

def test_field_assignment_respects_mutability():
    assert run(HERO + 'lock h := Hero("Ann")\nh/level := 5\nprint h/level') == ['5']
    with pytest.raises(FlickImmutableError):
        run(HERO + 'lock h := Hero("Ann")\nh/kind := "villain"')

def test_assigning_unknown_field():
    with pytest.raises(FlickNameError, match="no field `power`"):
        run(HERO + 'lock h := Hero("Ann")\nh/power := 9')

def test_instances_do_not_share_fields():
    source = HERO + 'lock a := Hero("A")\nlock b := Hero("B")\na/level := 9\nprint a/level and b/level'
    assert run(source) == ['91']

def test_instance_printing():
    assert run(HERO + 'print Hero("Ann")') == ['Hero{"name":"Ann","kind":"hero","level":1}']

def test_methods_see_globals():
    source = 'free greeting := "hey"\ngroup G { task hi => print greeting end }\nG()/hi'
    assert run(source) == ['hey']

def test_blueprint_implementation_adds_methods():
    source = HERO + """
blueprint Speaker {
  task speak with literal(word)
}
do Speaker for Hero =>
  task speak with literal(word) =>
    print name and " says " and word
  end
end
lock h := Hero("Ann")
h/speak "hello"
"""
    assert run(source) == ['Ann says hello']

def test_later_implementation_overrides_group_method():
    source = HERO + """
blueprint Describable { task describe }
do Describable for Hero =>
  task describe => print "custom " and name end
end
Hero("Ann")/describe
"""
    assert run(source) == ['custom Ann']

def test_implementation_applies_to_existing_instances():
    source = HERO + """
lock h := Hero("Ann")
blueprint Waver { task wave }
do Waver for Hero =>
  task wave => print name and " waves" end
end
h/wave
"""
    assert run(source) == ['Ann waves']

def test_groups_are_sealed():
    with pytest.raises(FlickRuntimeError, match="already declared"):
        run('group A { free x }\ngroup A { free y }')

def test_blueprints_are_sealed():
    with pytest.raises(FlickRuntimeError, match="already declared"):
        run('blueprint B { task go }\nblueprint B { task stop }')

def test_implementing_twice_is_rejected():
    source = 'group A { free x }\nblueprint B { task go }\ndo B for A => task go => 1 end end\ndo B for A => task go => 2 end end'
    with pytest.raises(FlickRuntimeError, match="already implemented"):
        run(source)

def test_do_for_unknown_group_or_blueprint():
    with pytest.raises(FlickNameError, match="Unknown group `Nope`"):
        run('blueprint B { task go }\ndo B for Nope => task go => 1 end end')
    with pytest.raises(FlickNameError, match="Unknown blueprint `Nope`"):
        run('group A { free x }\ndo Nope for A => task go => 1 end end')

def test_group_value_and_instance_types():
    rt = Runtime(serve=False, write=lambda _: None)
    rt.run(HERO + 'lock h := Hero("Ann")')
    assert isinstance(rt.lookup('Hero'), GroupDefinition)
    h = rt.lookup('h')
    assert isinstance(h, Instance) and h.as_dict() == {'name': 'Ann', 'kind': 'hero', 'level': 1}

def test_group_name_is_immutable():
    with pytest.raises(FlickImmutableError):
        run('group A { free x }\nA := 1')
