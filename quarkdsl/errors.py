"""
QuarkDSL Errors
===============

Exception taxonomy shared by every stage of the pipeline.

    LexError      - unrecognized character in the source
    ParseError    - grammar violation (expected vs. found token)
    CompileError  - malformed AST or bytecode assembly
    VMRuntimeError - failure while executing bytecode
"""

from typing import Optional


class QuarkError(Exception):
    """Base class for all QuarkDSL errors."""
    pass


class PositionedError(QuarkError):
    """An error that points at a line/column in the source text."""

    def __init__(self, message: str, line: Optional[int] = None,
                 column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} at line {line}, column {column}"
        super().__init__(message)


class LexError(PositionedError):
    """Raised when the tokenizer meets a character it does not recognize."""
    pass


class ParseError(PositionedError):
    """Raised on the first grammar violation; parsing is not resumable."""
    pass


class CompileError(QuarkError):
    """Raised when lowering meets a node or jump it cannot resolve."""
    pass


class DuplicateFunctionError(CompileError):
    """Raised when two functions in one program share a name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate function definition: {name}")


class VMRuntimeError(QuarkError):
    """Raised when the interpreter cannot continue."""
    pass


class IterationLimitError(VMRuntimeError):
    """Raised when a run dispatches more instructions than allowed."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum iteration limit exceeded ({limit} instructions)")
