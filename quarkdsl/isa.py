"""
Q-ISA: QuarkDSL Stack-Machine Instruction Set
==============================================

The bytecode vocabulary shared by the compiler and the interpreter.

Key Concepts:
    - Every function lowers to a flat list of stack instructions
    - One operand stack is shared by all call frames of a run
    - Jump operands are absolute instruction indices resolved at compile time
    - Domain tags (classical / gpu / quantum) ride along as metadata
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .ast import Domain
from .errors import DuplicateFunctionError


# Runtime values: numbers, booleans and (mutable, shared) arrays of values
Value = Union[int, float, bool, List["Value"]]


# =============================================================================
# VM CONSTANTS
# =============================================================================

class VMConstants:
    """
    Fixed parameters of the QuarkDSL virtual machine.

    Every constructor that needs one of these takes a keyword argument
    defaulting to the value here.
    """

    # Quantum register
    NUM_QUBITS: int = 8          # 2^8 = 256 amplitudes
    SHOTS: int = 1024            # Samples drawn after every run
    NOISE_FLOOR: float = 1e-10   # Probabilities below this are dropped

    # Runaway-loop guard (dispatched instructions per run)
    MAX_ITERATIONS: int = 100_000

    ENTRY_POINT: str = "main"

    # Outcomes listed by format_result
    DISPLAY_STATES: int = 10


# =============================================================================
# OPCODES
# =============================================================================

class OpCode(Enum):
    """
    Q-ISA OpCodes.

    Stack effects (top of stack on the right):
        PUSH v          -> v
        LOAD name       -> locals[name]
        STORE name      v ->
        LOAD_INDEX      arr i -> arr[i]
        STORE_INDEX     arr i v ->
        NEW_ARRAY n     e1 .. en -> [e1, .., en]
        JUMP_IF_FALSE t cond ->
        CALL f n        a1 .. an -> (frame pushed)
        RETURN          v -> (frame popped, v left for the caller)
        BUILTIN_CALL f n / QUANTUM_GATE g n   a1 .. an -> result
    """
    # Stack
    PUSH = auto()
    POP = auto()
    DUP = auto()

    # Arithmetic
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    MOD = auto()
    NEG = auto()

    # Comparison
    EQ = auto()
    NE = auto()
    LT = auto()
    LE = auto()
    GT = auto()
    GE = auto()

    # Logical
    AND = auto()
    OR = auto()
    NOT = auto()

    # Variables
    LOAD = auto()
    STORE = auto()
    LOAD_INDEX = auto()
    STORE_INDEX = auto()

    # Control flow
    JUMP = auto()
    JUMP_IF_FALSE = auto()
    CALL = auto()
    RETURN = auto()

    # Arrays
    NEW_ARRAY = auto()
    ARRAY_LEN = auto()

    # Dispatch to native handlers
    BUILTIN_CALL = auto()
    QUANTUM_GATE = auto()
    MEASURE = auto()


BINARY_ARITHMETIC = frozenset({OpCode.ADD, OpCode.SUB, OpCode.MUL, OpCode.DIV, OpCode.MOD})
COMPARISONS = frozenset({OpCode.EQ, OpCode.NE, OpCode.LT, OpCode.LE, OpCode.GT, OpCode.GE})
JUMPS = frozenset({OpCode.JUMP, OpCode.JUMP_IF_FALSE})


# =============================================================================
# INSTRUCTION CLASS
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """
    A single Q-ISA instruction.

    Attributes:
        opcode: The operation to perform
        operand: Immediate value, variable/function name or jump target
        operand2: Argument count for the call-style opcodes
    """
    opcode: OpCode
    operand: Any = None
    operand2: Any = None

    def __str__(self) -> str:
        parts = [self.opcode.name]
        for op in (self.operand, self.operand2):
            if op is not None:
                parts.append(format_operand(op))
        return " ".join(parts)

    @classmethod
    def push(cls, value: Value) -> "Instruction":
        """Create PUSH instruction."""
        return cls(OpCode.PUSH, value)

    @classmethod
    def load(cls, name: str) -> "Instruction":
        """Create LOAD instruction."""
        return cls(OpCode.LOAD, name)

    @classmethod
    def store(cls, name: str) -> "Instruction":
        """Create STORE instruction."""
        return cls(OpCode.STORE, name)

    @classmethod
    def jump(cls, target: int, conditional: bool = False) -> "Instruction":
        """Create JUMP / JUMP_IF_FALSE instruction."""
        opcode = OpCode.JUMP_IF_FALSE if conditional else OpCode.JUMP
        return cls(opcode, target)

    @classmethod
    def call(cls, name: str, argc: int) -> "Instruction":
        """Create CALL instruction for a user function."""
        return cls(OpCode.CALL, name, argc)

    @classmethod
    def builtin(cls, name: str, argc: int) -> "Instruction":
        """Create BUILTIN_CALL instruction."""
        return cls(OpCode.BUILTIN_CALL, name, argc)

    @classmethod
    def gate(cls, name: str, argc: int) -> "Instruction":
        """Create QUANTUM_GATE instruction."""
        return cls(OpCode.QUANTUM_GATE, name, argc)

    @classmethod
    def new_array(cls, size: int) -> "Instruction":
        """Create NEW_ARRAY instruction."""
        return cls(OpCode.NEW_ARRAY, size)

    def retarget(self, target: int) -> "Instruction":
        """Copy of a jump with its target patched."""
        return Instruction(self.opcode, target, self.operand2)


# =============================================================================
# BYTECODE CONTAINERS
# =============================================================================

@dataclass
class BytecodeFunction:
    """
    A compiled function.

    Attributes:
        name: Function name
        params: Parameter names in declaration order
        instructions: Immutable instruction sequence
        domain: Domain tag carried from the source (never consulted at runtime)
    """
    name: str
    params: List[str]
    instructions: Tuple[Instruction, ...]
    domain: Domain = Domain.CLASSICAL

    def __len__(self) -> int:
        return len(self.instructions)


class BytecodeModule:
    """
    Name-keyed collection of compiled functions.

    The compiler builds a module; the interpreter only reads it.
    """

    def __init__(self, functions: Optional[List[BytecodeFunction]] = None):
        self._functions: Dict[str, BytecodeFunction] = {}
        for func in functions or []:
            self.add(func)

    def add(self, func: BytecodeFunction) -> BytecodeFunction:
        """Register a function, refusing a second definition of the same name."""
        if func.name in self._functions:
            raise DuplicateFunctionError(func.name)
        self._functions[func.name] = func
        return func

    def get(self, name: str) -> Optional[BytecodeFunction]:
        return self._functions.get(name)

    @property
    def functions(self) -> Dict[str, BytecodeFunction]:
        return dict(self._functions)

    @property
    def num_instructions(self) -> int:
        """Total instruction count over all functions."""
        return sum(len(f) for f in self._functions.values())

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[BytecodeFunction]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BytecodeModule):
            return NotImplemented
        return self._functions == other._functions

    def __repr__(self) -> str:
        return f"BytecodeModule({list(self._functions)})"


# =============================================================================
# TEXT DUMP
# =============================================================================

def format_operand(operand: Any) -> str:
    """Render an operand the way the assembler reads it back."""
    if isinstance(operand, bool):
        return "true" if operand else "false"
    if isinstance(operand, float):
        return repr(operand)
    return str(operand)


def dump_function(func: BytecodeFunction) -> str:
    """
    Render one function in Q-ISA text form.

    Example:
        @quantum
        fn bell(a, b):
            0000  LOAD a
            0001  QUANTUM_GATE h 1
    """
    lines = []
    if func.domain is not Domain.CLASSICAL:
        lines.append(f"@{func.domain.value}")
    lines.append(f"fn {func.name}({', '.join(func.params)}):")
    for idx, instr in enumerate(func.instructions):
        lines.append(f"    {idx:04d}  {instr}")
    return "\n".join(lines)


def dump_module(module: BytecodeModule) -> str:
    """Render a whole module, functions separated by a blank line."""
    return "\n\n".join(dump_function(f) for f in module) + "\n"
