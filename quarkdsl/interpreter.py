"""
QuarkDSL Interpreter: Q-ISA Stack Machine
=========================================

Executes a BytecodeModule.

Execution model:
    - One operand stack shared by every frame of a run; RETURN pops one
      value, drops the frame and leaves the value for the caller
    - A call stack of frames, each with its own locals and instruction pointer
    - A global dispatch ceiling (VMConstants.MAX_ITERATIONS) stops runaway loops
    - One QuantumSimulator per interpreter, reset at the start of every run
    - After the entry function returns, the register is sampled
      VMConstants.SHOTS times
"""

import math
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .errors import IterationLimitError, VMRuntimeError
from .isa import (
    BINARY_ARITHMETIC,
    COMPARISONS,
    BytecodeFunction,
    BytecodeModule,
    Instruction,
    OpCode,
    Value,
    VMConstants,
)
from .compiler import MAP_PREFIX
from .quantum import GateOp, QuantumSimulator


logger = logging.getLogger(__name__)


# =============================================================================
# FRAMES & RESULTS
# =============================================================================

@dataclass
class MapState:
    """A map(f, xs) in progress: f has returned for results so far."""
    func: BytecodeFunction
    items: List[Value]
    results: List[Value] = field(default_factory=list)


@dataclass
class CallFrame:
    """
    Activation record for one in-progress call.

    Attributes:
        func: The function being executed
        ip: Index of the next instruction
        locals: Variable name -> value
        return_address: Caller's instruction pointer at the call (-1 for the entry)
        pending_map: Map this frame is waiting on, if any
    """
    func: BytecodeFunction
    ip: int = 0
    locals: Dict[str, Value] = field(default_factory=dict)
    return_address: int = -1
    pending_map: Optional[MapState] = None


@dataclass
class ExecutionResult:
    """
    Outcome of one run.

    Attributes:
        return_value: Value returned by the entry function
        output: Lines written by print/println
        quantum_counts: Outcome bitstring -> count over the final sample
        gate_log: Human-readable gate invocations, in order
        execution_time: Wall time in milliseconds
        operations: Structured gate trace (see circuit.build_circuit)
        iterations: Instructions dispatched
    """
    return_value: Value
    output: List[str]
    quantum_counts: Dict[str, int]
    gate_log: List[str]
    execution_time: float
    operations: List[GateOp] = field(default_factory=list)
    iterations: int = 0


# =============================================================================
# VALUE HELPERS
# =============================================================================

def format_value(value: Value) -> str:
    """Render a value the way print() shows it."""
    if isinstance(value, list):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int) and abs(value) >= 10 ** 21:
        return format_value(_to_float(value))
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _format_float(value)
    return str(value)


def _format_float(value: float) -> str:
    """Shortest round-trip digits; exponent form below 1e-6 and from 1e21 up."""
    text = repr(value)
    mantissa, _, exponent = text.partition("e")
    if not exponent:
        return text
    exp = int(exponent)
    if -7 < exp < 21:
        return np.format_float_positional(value, trim='-')
    return f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"


def is_truthy(value: Value) -> bool:
    """Arrays are always true; NaN and zero are false."""
    if isinstance(value, list):
        return True
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _number(value: Value, what: str):
    if isinstance(value, list):
        raise VMRuntimeError(f"{what} expects a number, got an array")
    return value


def _to_float(value) -> float:
    """float(value), saturating ints beyond the double range to +/-inf."""
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def _whole(value: float):
    """np.floor/ceil results back to int when finite."""
    value = float(value)
    return int(value) if math.isfinite(value) else value


def _rounding(fn: Callable, what: str) -> Callable:
    def apply(x):
        x = _number(x, what)
        if isinstance(x, int):
            return int(x)
        return _whole(fn(x))
    return apply


def _float_unary(fn: Callable) -> Callable:
    def apply(x):
        with np.errstate(all="ignore"):
            return float(fn(_to_float(_number(x, fn.__name__))))
    return apply


def _divide(a, b):
    if b == 0:
        with np.errstate(all="ignore"):
            return float(np.float64(_to_float(a)) / np.float64(_to_float(b)))
    try:
        return a / b
    except OverflowError:
        if isinstance(a, int) and isinstance(b, int):
            return math.inf if (a < 0) == (b < 0) else -math.inf
        return _to_float(a) / _to_float(b)


def _modulo(a, b):
    """Remainder with the sign of the dividend; x % 0 is NaN."""
    if isinstance(a, int) and isinstance(b, int) and b != 0:
        r = abs(a) % abs(b)
        return -r if a < 0 else r
    with np.errstate(all="ignore"):
        return float(np.fmod(_to_float(a), _to_float(b)))


ARITHMETIC = {
    OpCode.ADD: lambda a, b: a + b,
    OpCode.SUB: lambda a, b: a - b,
    OpCode.MUL: lambda a, b: a * b,
    OpCode.DIV: _divide,
    OpCode.MOD: _modulo,
}

COMPARISON = {
    OpCode.EQ: lambda a, b: a == b,
    OpCode.NE: lambda a, b: a != b,
    OpCode.LT: lambda a, b: a < b,
    OpCode.LE: lambda a, b: a <= b,
    OpCode.GT: lambda a, b: a > b,
    OpCode.GE: lambda a, b: a >= b,
}

# name -> (simulator method, arity, swap args). Rotations are written
# rx(angle, qubit) in source; the simulator takes (qubit, angle).
GATE_TABLE: Dict[str, Tuple[str, int, bool]] = {
    "h": ("h", 1, False),
    "hadamard": ("h", 1, False),
    "x": ("x", 1, False),
    "pauli_x": ("x", 1, False),
    "y": ("y", 1, False),
    "pauli_y": ("y", 1, False),
    "z": ("z", 1, False),
    "pauli_z": ("z", 1, False),
    "cx": ("cx", 2, False),
    "cnot": ("cx", 2, False),
    "cz": ("cz", 2, False),
    "rx": ("rx", 2, True),
    "ry": ("ry", 2, True),
    "rz": ("rz", 2, True),
    "measure": ("measure", 1, False),
}


# =============================================================================
# INTERPRETER
# =============================================================================

class Interpreter:
    """
    Stack-machine interpreter for compiled QuarkDSL.

    Example:
        >>> interp = Interpreter(module, rng=np.random.default_rng(1))
        >>> result = interp.execute("main")
        >>> result.return_value
        11
    """

    def __init__(self,
                 module: BytecodeModule,
                 num_qubits: int = VMConstants.NUM_QUBITS,
                 max_iterations: int = VMConstants.MAX_ITERATIONS,
                 shots: int = VMConstants.SHOTS,
                 rng: Optional[np.random.Generator] = None):
        self.module = module
        self.max_iterations = max_iterations
        self.shots = shots
        self.quantum = QuantumSimulator(num_qubits, rng=rng)

        self.stack: List[Value] = []
        self.call_stack: List[CallFrame] = []
        self.output: List[str] = []
        self._iterations = 0

        self._handlers: Dict[OpCode, Callable[[Instruction, CallFrame], None]] = {
            OpCode.PUSH: self._op_push,
            OpCode.POP: self._op_pop,
            OpCode.DUP: self._op_dup,
            OpCode.NEG: self._op_neg,
            OpCode.AND: self._op_and,
            OpCode.OR: self._op_or,
            OpCode.NOT: self._op_not,
            OpCode.LOAD: self._op_load,
            OpCode.STORE: self._op_store,
            OpCode.LOAD_INDEX: self._op_load_index,
            OpCode.STORE_INDEX: self._op_store_index,
            OpCode.JUMP: self._op_jump,
            OpCode.JUMP_IF_FALSE: self._op_jump_if_false,
            OpCode.CALL: self._op_call,
            OpCode.RETURN: self._op_return,
            OpCode.NEW_ARRAY: self._op_new_array,
            OpCode.ARRAY_LEN: self._op_array_len,
            OpCode.BUILTIN_CALL: self._op_builtin,
            OpCode.QUANTUM_GATE: self._op_quantum_gate,
            OpCode.MEASURE: self._op_measure,
        }
        for opcode in BINARY_ARITHMETIC:
            self._handlers[opcode] = self._op_arithmetic
        for opcode in COMPARISONS:
            self._handlers[opcode] = self._op_comparison

        self._builtins: Dict[str, Tuple[Optional[int], Callable]] = {
            "print": (None, self._builtin_print),
            "println": (None, self._builtin_print),
            "sqrt": (1, _float_unary(np.sqrt)),
            "sin": (1, _float_unary(np.sin)),
            "cos": (1, _float_unary(np.cos)),
            "tan": (1, _float_unary(np.tan)),
            "exp": (1, _float_unary(np.exp)),
            "log": (1, _float_unary(np.log)),
            "abs": (1, lambda x: abs(_number(x, "abs"))),
            "floor": (1, _rounding(np.floor, "floor")),
            "ceil": (1, _rounding(np.ceil, "ceil")),
            "round": (1, _rounding(lambda x: np.floor(x + 0.5), "round")),
            "min": (2, lambda a, b: min(_number(a, "min"), _number(b, "min"))),
            "max": (2, lambda a, b: max(_number(a, "max"), _number(b, "max"))),
            "len": (1, self._builtin_len),
            "random": (0, lambda: float(self.quantum.rng.random())),
        }

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def execute(self, entry_point: str = VMConstants.ENTRY_POINT) -> ExecutionResult:
        """
        Run a function of the module to completion.

        Args:
            entry_point: Name of the function to start in (called with no arguments)

        Returns:
            ExecutionResult

        Raises:
            VMRuntimeError (IterationLimitError for runaway loops)
        """
        start = time.perf_counter()
        self.stack = []
        self.call_stack = []
        self.output = []
        self._iterations = 0
        self.quantum.reset()

        func = self.module.get(entry_point)
        if func is None:
            raise VMRuntimeError(f"Entry point function '{entry_point}' not found")

        logger.debug(f"▶️  Executing '{entry_point}'")
        self.call_stack.append(CallFrame(func))
        self._run()

        return_value = self.stack.pop() if self.stack else 0
        counts = self.quantum.sample(self.shots)
        elapsed = (time.perf_counter() - start) * 1000.0

        logger.debug(f"✅ '{entry_point}' finished: {self._iterations} instructions, "
                     f"{elapsed:.2f} ms")
        return ExecutionResult(
            return_value=return_value,
            output=list(self.output),
            quantum_counts=counts,
            gate_log=self.quantum.get_gate_log(),
            execution_time=elapsed,
            operations=self.quantum.operations,
            iterations=self._iterations,
        )

    # -------------------------------------------------------------------------
    # Fetch-decode-execute
    # -------------------------------------------------------------------------

    def _run(self) -> None:
        """Dispatch until the call stack is empty."""
        while self.call_stack:
            self._iterations += 1
            if self._iterations > self.max_iterations:
                raise IterationLimitError(self.max_iterations)

            frame = self.call_stack[-1]
            if frame.ip >= len(frame.func.instructions):
                # Implicit return 0
                self._return(0)
                continue

            instr = frame.func.instructions[frame.ip]
            frame.ip += 1
            self._handlers[instr.opcode](instr, frame)

    def _return(self, value: Value) -> None:
        """Drop the current frame and hand value to its caller."""
        self.call_stack.pop()
        caller = self.call_stack[-1] if self.call_stack else None
        if caller is None or caller.pending_map is None:
            self.stack.append(value)
            return

        state = caller.pending_map
        state.results.append(value)
        if len(state.results) < len(state.items):
            self._push_frame(state.func, [state.items[len(state.results)]],
                             return_address=caller.ip)
        else:
            caller.pending_map = None
            self.stack.append(state.results)

    def _push_frame(self, func: BytecodeFunction, args: List[Value],
                    return_address: int = -1) -> None:
        if len(args) != len(func.params):
            raise VMRuntimeError(
                f"Function '{func.name}' expects {len(func.params)} argument(s), got {len(args)}"
            )
        self.call_stack.append(CallFrame(
            func=func,
            locals=dict(zip(func.params, args)),
            return_address=return_address,
        ))

    # -------------------------------------------------------------------------
    # Stack helpers
    # -------------------------------------------------------------------------

    def _pop(self) -> Value:
        if not self.stack:
            raise VMRuntimeError("Operand stack underflow")
        return self.stack.pop()

    def _pop_args(self, count: int) -> List[Value]:
        """Pop count values, returned in push order."""
        if count > len(self.stack):
            raise VMRuntimeError("Operand stack underflow")
        if count == 0:
            return []
        args = self.stack[-count:]
        del self.stack[-count:]
        return args

    def _lookup(self, name: str) -> BytecodeFunction:
        func = self.module.get(name)
        if func is None:
            raise VMRuntimeError(f"Undefined function: {name}")
        return func

    @staticmethod
    def _index(array: Value, index: Value) -> int:
        if not isinstance(array, list):
            raise VMRuntimeError("Cannot index non-array value")
        if isinstance(index, list) or (isinstance(index, float) and not index.is_integer()):
            raise VMRuntimeError(f"Array index must be an integer, got {format_value(index)}")
        idx = int(index)
        if not 0 <= idx < len(array):
            raise VMRuntimeError(f"Index {idx} out of bounds for array of length {len(array)}")
        return idx

    # -------------------------------------------------------------------------
    # Opcode handlers
    # -------------------------------------------------------------------------

    def _op_push(self, instr: Instruction, frame: CallFrame):
        self.stack.append(instr.operand)

    def _op_pop(self, instr: Instruction, frame: CallFrame):
        self._pop()

    def _op_dup(self, instr: Instruction, frame: CallFrame):
        if not self.stack:
            raise VMRuntimeError("Operand stack underflow")
        self.stack.append(self.stack[-1])

    def _op_arithmetic(self, instr: Instruction, frame: CallFrame):
        b = _number(self._pop(), instr.opcode.name)
        a = _number(self._pop(), instr.opcode.name)
        op = ARITHMETIC[instr.opcode]
        try:
            result = op(a, b)
        except OverflowError:
            # int operand too large to mix with a float
            result = op(_to_float(a), _to_float(b))
        self.stack.append(result)

    def _op_comparison(self, instr: Instruction, frame: CallFrame):
        b = self._pop()
        a = self._pop()
        if instr.opcode not in (OpCode.EQ, OpCode.NE):
            _number(a, instr.opcode.name)
            _number(b, instr.opcode.name)
        self.stack.append(COMPARISON[instr.opcode](a, b))

    def _op_neg(self, instr: Instruction, frame: CallFrame):
        self.stack.append(-_number(self._pop(), "NEG"))

    def _op_and(self, instr: Instruction, frame: CallFrame):
        b = self._pop()
        a = self._pop()
        self.stack.append(is_truthy(a) and is_truthy(b))

    def _op_or(self, instr: Instruction, frame: CallFrame):
        b = self._pop()
        a = self._pop()
        self.stack.append(is_truthy(a) or is_truthy(b))

    def _op_not(self, instr: Instruction, frame: CallFrame):
        self.stack.append(not is_truthy(self._pop()))

    def _op_load(self, instr: Instruction, frame: CallFrame):
        if instr.operand not in frame.locals:
            raise VMRuntimeError(f"Undefined variable: {instr.operand}")
        self.stack.append(frame.locals[instr.operand])

    def _op_store(self, instr: Instruction, frame: CallFrame):
        frame.locals[instr.operand] = self._pop()

    def _op_load_index(self, instr: Instruction, frame: CallFrame):
        index = self._pop()
        array = self._pop()
        self.stack.append(array[self._index(array, index)])

    def _op_store_index(self, instr: Instruction, frame: CallFrame):
        value = self._pop()
        index = self._pop()
        array = self._pop()
        array[self._index(array, index)] = value

    def _op_jump(self, instr: Instruction, frame: CallFrame):
        frame.ip = instr.operand

    def _op_jump_if_false(self, instr: Instruction, frame: CallFrame):
        if not is_truthy(self._pop()):
            frame.ip = instr.operand

    def _op_call(self, instr: Instruction, frame: CallFrame):
        func = self._lookup(instr.operand)
        args = self._pop_args(instr.operand2)
        self._push_frame(func, args, return_address=frame.ip)

    def _op_return(self, instr: Instruction, frame: CallFrame):
        self._return(self._pop())

    def _op_new_array(self, instr: Instruction, frame: CallFrame):
        self.stack.append(self._pop_args(instr.operand))

    def _op_array_len(self, instr: Instruction, frame: CallFrame):
        self.stack.append(self._builtin_len(self._pop()))

    def _op_builtin(self, instr: Instruction, frame: CallFrame):
        name, argc = instr.operand, instr.operand2
        args = self._pop_args(argc)

        if name.startswith(MAP_PREFIX):
            self._start_map(frame, name[len(MAP_PREFIX):], args)
            return

        if name not in self._builtins:
            raise VMRuntimeError(f"Unknown builtin: {name}")
        arity, fn = self._builtins[name]
        if arity is not None and argc != arity:
            raise VMRuntimeError(f"Builtin '{name}' expects {arity} argument(s), got {argc}")
        self.stack.append(fn(*args))

    def _op_quantum_gate(self, instr: Instruction, frame: CallFrame):
        name, argc = instr.operand, instr.operand2
        if name not in GATE_TABLE:
            raise VMRuntimeError(f"Unknown quantum gate: {name}")
        method, arity, swap = GATE_TABLE[name]
        if argc != arity:
            raise VMRuntimeError(f"Gate '{name}' expects {arity} argument(s), got {argc}")

        args = self._pop_args(argc)
        for arg in args:
            _number(arg, f"Gate '{name}'")
        if swap:
            args = [args[1], args[0]]

        try:
            result = getattr(self.quantum, method)(*args)
        except ValueError as e:
            raise VMRuntimeError(f"Gate '{name}': {e}") from e
        self.stack.append(result if method == "measure" else 0)

    def _op_measure(self, instr: Instruction, frame: CallFrame):
        qubit = _number(self._pop(), "MEASURE")
        try:
            self.stack.append(self.quantum.measure(qubit))
        except ValueError as e:
            raise VMRuntimeError(f"MEASURE: {e}") from e

    # -------------------------------------------------------------------------
    # Builtins with interpreter access
    # -------------------------------------------------------------------------

    def _builtin_print(self, *args: Value) -> int:
        self.output.append(" ".join(format_value(a) for a in args))
        return 0

    @staticmethod
    def _builtin_len(value: Value) -> int:
        if not isinstance(value, list):
            raise VMRuntimeError("len expects an array")
        return len(value)

    def _start_map(self, frame: CallFrame, func_name: str, args: List[Value]) -> None:
        """
        Begin map(f, xs) by calling f on the first element.

        Each later call is pushed by _return as the previous one finishes,
        so the mapped calls run on the dispatch loop like any other call.
        """
        func = self._lookup(func_name)
        if len(args) != 1 or not isinstance(args[0], list):
            raise VMRuntimeError(f"map({func_name}, ...) expects an array")
        items = list(args[0])
        if not items:
            self.stack.append([])
            return
        frame.pending_map = MapState(func, items)
        self._push_frame(func, [items[0]], return_address=frame.ip)
