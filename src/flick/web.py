## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import sys
from typing import Any
from contextvars import ContextVar
from dataclasses import dataclass

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from . import nodes as N
from .errors import FlickRuntimeError, FlickCapabilityError
from .formatting import format_value
from .capabilities import Capability


DEFAULT_PORT = 3000

# Text set by `respond` for the request being handled; unset outside of a handler.
_response: ContextVar[list | None] = ContextVar('flick_response', default=None)


@dataclass
class RouteHandler:
    path: str
    node: N.RouteStatement
    evaluator: Any
    env: Any

    async def run(self) -> str | None:
        box = [None]
        token = _response.set(box)
        try:
            if self.node.forward is not None:
                target = self.evaluator.lookup(self.node.forward, self.env)
                await self.evaluator.call(target, [])
            else:
                await self.evaluator.execute_block(self.node.body, self.env.child())
        finally:
            _response.reset(token)
        return box[0]

    async def endpoint(self, request: Request) -> PlainTextResponse:
        try:
            content = await self.run()
        except Exception as exc:
            return PlainTextResponse(f"Error: {exc}", status_code=500)
        return PlainTextResponse('OK' if content is None else content)


class WebCapability(Capability):
    """HTTP routes served once the whole file was evaluated.

    `declare web@8080` selects the port. Each `route` registers a handler; `respond`
    sets the text answered to the request currently being handled.
    """
    name = 'web'
    keywords = frozenset({'route', 'respond'})

    def __init__(self, serve: bool = True, host: str = '127.0.0.1'):
        self.serve = serve
        self.host = host
        self.port = DEFAULT_PORT
        self.routes: dict[str, RouteHandler] = {}

    def on_declare(self, argument):
        if argument is not None and not (isinstance(argument, (int, float)) and float(argument).is_integer()):
            raise FlickCapabilityError(f"Capability `web` expects a port number, got `{argument}`.",
                                       keyword='declare', capability='web')

    def register_builtins(self, env, argument):
        # Reset on evaluation only; `on_declare` also runs when a program is merely parsed.
        self.routes = {}
        self.port = int(argument) if argument is not None else DEFAULT_PORT

    async def execute(self, node, evaluator, env):
        match node:
            case N.RouteStatement(path=path):
                if not path.startswith('/'):
                    raise FlickRuntimeError(f"Route path `{path}` must start with `/`.")
                self.routes[path] = RouteHandler(path, node, evaluator, env)
            case N.RespondStatement(content=content):
                if (box := _response.get()) is None:
                    raise FlickRuntimeError("`respond` can only be used while handling a request.")
                box[0] = format_value(await evaluator.evaluate(content, env))
        return None

    async def dispatch(self, request: Request) -> PlainTextResponse:
        # Paths match exactly: no parameters, and `/hello/` is not `/hello`.
        if (handler := self.routes.get(request.url.path)) is None:
            return PlainTextResponse('Not Found', status_code=404)
        return await handler.endpoint(request)

    def build_app(self) -> Starlette:
        return Starlette(routes=[Route('/{path:path}', self.dispatch, methods=['GET', 'POST', 'PUT', 'DELETE'])])

    async def on_file_complete(self, declared, env):
        if not self.serve or not self.routes:
            return
        print(f"\033[97m\033[48;5;30m WEB. \033[0m Serving {len(self.routes)} route(s) at "
              f"\033[97mhttp://{self.host}:{self.port}/\033[0m", file=sys.stderr)
        for path in self.routes:
            print(f"  \033[90m{path}\033[0m", file=sys.stderr)
        config = uvicorn.Config(self.build_app(), host=self.host, port=self.port, log_level='warning')
        await uvicorn.Server(config).serve()
