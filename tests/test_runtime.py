## flick — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from flick import nodes as N
from flick.runtime import Runtime
from flick.errors import FlickParseError, FlickNameError


def test_parse_returns_program_without_running():
    out = []
    rt = Runtime(serve=False, write=out.append)
    program = rt.parse('print "x"')
    assert isinstance(program, N.Program) and isinstance(program.body[0], N.PrintStatement)
    assert out == []

def test_run_returns_lines_of_this_run_only():
    out = []
    rt = Runtime(serve=False, write=out.append)
    assert rt.run('print 1') == ['1']
    assert rt.run('print 2') == ['2']
    assert out == ['1', '2']

def test_successive_runs_share_globals_and_declarations():
    rt = Runtime(serve=False, write=lambda _: None)
    rt.run('declare time\nfree n := 1')
    rt.run('n := n + 1\nfree t := now()')
    assert rt.lookup('n') == 2
    assert 'time' in rt.declared

def test_reset_clears_state_but_keeps_registered_builtins():
    rt = Runtime(serve=False, write=lambda _: None)
    rt.register_builtin('seven', lambda: 7)
    rt.run('free n := seven()')
    rt.reset()
    with pytest.raises(FlickNameError):
        rt.lookup('n')
    assert rt.run('print seven()') == ['7']

def test_parse_errors_leave_state_untouched():
    rt = Runtime(serve=False, write=lambda _: None)
    rt.run('free n := 1')
    with pytest.raises(FlickParseError):
        rt.run('n := 2\nprint (')
    assert rt.lookup('n') == 1

@pytest.mark.asyncio
async def test_run_async_awaits_async_builtins():
    calls = []
    async def fetch(x):
        calls.append(x)
        return x * 10
    rt = Runtime(serve=False, write=lambda _: None)
    rt.register_builtin('fetch', fetch)
    assert await rt.run_async('print fetch(1)\nprint fetch(2)') == ['10', '20']
    assert calls == [1, 2]

def test_stats_count_steps():
    stats = {'steps': 0}
    rt = Runtime(serve=False, write=lambda _: None)
    rt.run('march i from 1 to 3 => free y := i end', stats=stats)
    assert stats['steps'] == 4

def test_api_module_forwards_to_default_runtime(capsys):
    from flick import api
    assert api.run('print "from api"') == ['from api']
    assert api.Runtime is Runtime
    assert issubclass(api.FlickNameError, api.FlickError)
    assert capsys.readouterr().out == 'from api\n'
