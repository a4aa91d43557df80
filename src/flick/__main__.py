## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# flick — A small, friendly scripting language with opt-in capabilities.
#

import sys
import time
from dataclasses import dataclass

import click

from .errors import FlickError, FlickParseError, FlickIncompleteParse, FlickCapabilityError
from .parser import format_parse_error_context
from .formatting import write_without_ansi, format_value

from . import api


@dataclass(frozen=True)
class RuntimeConfig:
    verbose: int
    stats: bool
    plain: bool


BANNERS = [
    (FlickCapabilityError, "CAPABILITY ERROR."),
    (FlickParseError, "SYNTAX ERROR."),
    (FlickError, "RUNTIME ERROR."),
]


class FlickRunner:
    def __init__(self, config: RuntimeConfig):
        self.verbose = config.verbose
        self.stats_enabled = config.stats
        self.plain = config.plain

        if self.plain:
            writer = write_without_ansi(sys.stdout.write)
            sys.stdout.write, sys.stderr.write = writer, writer

        self.runtime = api._RUNTIME
        self.total_stats = {'steps': 0, 'start': time.time()} if self.stats_enabled else None
        self.failure = False
        self.executed_items = 0

    def _handle_exception(self, exc: Exception, filename: str, source: str, is_repl: bool = False) -> bool:
        """Report an error on one line; returns True when the REPL should keep buffering input."""
        if is_repl and isinstance(exc, FlickIncompleteParse): return True
        if not is_repl: self.failure = True

        if isinstance(exc, FlickError):
            banner = next(text for cls, text in BANNERS if isinstance(exc, cls))
            print(f'\033[30;43m {banner} \033[0m {exc} \033[90m({exc.location})\033[0m', file=sys.stderr)
            if isinstance(exc, FlickParseError) and self.verbose and exc.line is not None:
                print(format_parse_error_context(filename, exc.line, exc.column or 0, exc.token, source=source), file=sys.stderr)
        else:
            print(f'\033[30;43m RUNTIME ERROR. \033[0m {exc} (Exception: \033[33m{type(exc).__name__}\033[0m)', file=sys.stderr)
        return False

    def execute_file(self, source: str, filename: str) -> None:
        try:
            self.runtime.run(source, filename=filename, verbosity=self.verbose, stats=self.total_stats)
        except (FlickError, Exception) as exc:
            self._handle_exception(exc, filename, source)
        else:
            self.executed_items += 1

    def repl(self) -> None:
        if sys.platform != "win32": import readline

        print('flick - Scripting language REPL; type Ctrl+C to exit.')
        source = ""

        while True:
            try:
                prompt = "\033[36m<<< \033[0m" if not source.strip() else "\033[36m... \033[0m"
                line = input(prompt)
                if len(line.strip()) == 0 and not source: continue
                if line.strip() in ('quit', 'exit'): break
                source += line + "\n"

                try:
                    output = self.runtime.run(source, filename='<REPL>', verbosity=self.verbose,
                                              stats=self.total_stats, complete=False)
                    if not output and (value := self.runtime.evaluator.last) is not None:
                        print("\033[90m>>>\033[0m", format_value(value))
                    source = ""
                    self.executed_items += 1
                except (FlickError, Exception) as exc:
                    if not self._handle_exception(exc, '<REPL>', source, is_repl=True):
                        source = ""

            except (KeyboardInterrupt, EOFError):
                print(""); break

    def finalize(self) -> int:
        if self.total_stats and self.executed_items > 0:
            elapsed_time = time.time() - self.total_stats['start']
            print(f"\n\033[97m\033[48;5;30m STATISTICS. \033[0m", file=sys.stderr)
            print(f"step\t\033[97m{self.total_stats['steps']:,}\033[0m", file=sys.stderr)
            print(f"time\t\033[97m{elapsed_time:.3f}s\033[0m", file=sys.stderr)
        return 1 if self.failure else 0


@click.group(invoke_without_command=True)
@click.option('--verbose', '-v', default=0, count=True, help='Trace executed statements on stderr; twice for nested ones.')
@click.option('--stats', is_flag=True, help='Display execution statistics (e.g., number of steps).')
@click.option('--plain', '-p', is_flag=True, help='Strip ANSI color codes from the output.')
@click.pass_context
def cli(ctx: click.Context, verbose: int, stats: bool, plain: bool) -> None:
    ctx.ensure_object(dict)
    ctx.obj['config'] = RuntimeConfig(verbose=verbose, stats=stats, plain=plain)


@cli.command('run-file')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.pass_context
def run_file(ctx: click.Context, script) -> None:
    runner = FlickRunner(ctx.obj['config'])
    runner.execute_file(script.read(), script.name or '<STDIN>')
    ctx.exit(runner.finalize())


@cli.command('run-repl')
@click.pass_context
def run_repl(ctx: click.Context) -> None:
    runner = FlickRunner(ctx.obj['config'])
    runner.repl()
    ctx.exit(runner.finalize())


def main(argv: list[str] | None = None) -> None:
    a = list(sys.argv[1:] if argv is None else argv)
    g = [t for t in a if t in ('--stats', '--plain', '-p', '--help') or (t.startswith('-v') and set(t[1:]) <= {'v'}) or t == '--verbose']
    r = [t for t in a if t not in g]

    if len(r) == 0:
        # No args: if stdin has data, treat as file '-', else REPL
        cmd, tail = ('run-file', ['-']) if not sys.stdin.isatty() else ('run-repl', [])
    elif r in (['--repl'], ['-r']):
        cmd, tail = 'run-repl', []
    else:
        cmd, tail = 'run-file', r

    cli.main(args=[*g, cmd, *tail], prog_name='flick')


if __name__ == "__main__":
    main()
