## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import lark


class FlickError(Exception):
    def __init__(self, message: str = "", *, line=None, column=None, filename=None):
        """Base class for all Flick-raised errors."""
        super().__init__(message)
        self.line: int | None = line
        self.column: int | None = column
        self.filename: str | None = filename

    @property
    def location(self) -> str:
        parts = [self.filename or '<input>']
        if self.line is not None: parts.append(str(self.line))
        if self.column is not None: parts.append(str(self.column))
        return ':'.join(parts)

class FlickParseError(FlickError):
    def __init__(self, message, *, filename=None, line=None, column=None, token=None):
        super().__init__(message, filename=filename, line=line, column=column)
        self.token = token

class FlickIncompleteParse(FlickParseError, lark.exceptions.ParseError):
    """Input ended inside a block, expression or string; more source may complete it."""
    def __init__(self, message, *, filename=None, line=None, column=None, token=None):
        super().__init__(message, filename=filename, line=line, column=column, token=token)


class FlickCapabilityError(FlickError):
    def __init__(self, message, *, keyword=None, capability=None, filename=None, line=None, column=None):
        super().__init__(message, filename=filename, line=line, column=column)
        self.keyword = keyword
        self.capability = capability


class FlickRuntimeError(FlickError, RuntimeError):
    pass

class FlickNameError(FlickRuntimeError, NameError):
    def __init__(self, message, *, name=None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name

class FlickImmutableError(FlickRuntimeError):
    def __init__(self, message, *, name=None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name

class FlickTypeError(FlickRuntimeError, TypeError):
    pass
