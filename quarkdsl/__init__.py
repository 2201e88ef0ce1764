"""
QuarkDSL: Hybrid Classical/Quantum Scripting VM
===============================================

A small C-like language whose programs mix classical arithmetic with
quantum gate calls on an 8-qubit simulated register.

Core Components:
    - lexer: source text -> tokens
    - parser: tokens -> AST (recursive descent)
    - compiler: AST -> Q-ISA stack bytecode, plus the text assembler
    - interpreter: Q-ISA stack machine with a shared operand stack
    - quantum: numpy state-vector simulator
    - runtime: compile/execute facade and result formatting

Example:
    >>> from quarkdsl import execute
    >>>
    >>> result = execute('''
    ...     @quantum
    ...     fn main() -> int {
    ...         h(0);
    ...         cx(0, 1);
    ...         return measure(0) + measure(1);
    ...     }
    ... ''')
    >>> result.return_value in (0, 2)
    True
"""

from .errors import (
    QuarkError,
    LexError,
    ParseError,
    CompileError,
    DuplicateFunctionError,
    VMRuntimeError,
    IterationLimitError,
)

from .isa import (
    OpCode,
    Instruction,
    BytecodeFunction,
    BytecodeModule,
    VMConstants,
    dump_module,
)

from .lexer import (
    QuarkLexer,
    Token,
    TokenType,
    tokenize,
)

from .parser import (
    QuarkParser,
    parse,
    parse_source,
)

from .compiler import (
    BytecodeCompiler,
    BytecodeAssembler,
    compile_program,
    assemble,
)

from .quantum import (
    QuantumSimulator,
    GateOp,
)

from .interpreter import (
    Interpreter,
    ExecutionResult,
    format_value,
)

from .runtime import (
    CompilationResult,
    VMExecutionResult,
    compile_source,
    execute,
    format_result,
)

__version__ = "1.0.0"
__all__ = [
    # Errors
    "QuarkError",
    "LexError",
    "ParseError",
    "CompileError",
    "DuplicateFunctionError",
    "VMRuntimeError",
    "IterationLimitError",
    # ISA
    "OpCode",
    "Instruction",
    "BytecodeFunction",
    "BytecodeModule",
    "VMConstants",
    "dump_module",
    # Front end
    "QuarkLexer",
    "Token",
    "TokenType",
    "tokenize",
    "QuarkParser",
    "parse",
    "parse_source",
    # Compiler
    "BytecodeCompiler",
    "BytecodeAssembler",
    "compile_program",
    "assemble",
    # Execution
    "QuantumSimulator",
    "GateOp",
    "Interpreter",
    "ExecutionResult",
    "format_value",
    # Facade
    "CompilationResult",
    "VMExecutionResult",
    "compile_source",
    "execute",
    "format_result",
]
