"""
BytecodeCompiler: QuarkDSL AST -> Q-ISA Bytecode
================================================

Lowers a parsed Program into a BytecodeModule for the stack interpreter.

Pipeline:
    1. LOWER: each function body -> instruction list (jumps hold placeholders)
    2. RESOLVE: patch every jump with the index its label was placed at
    3. SEAL: guarantee a trailing RETURN, freeze the instruction tuple
"""

import re
import logging
from typing import Dict, List, Optional, Tuple

from .ast import (
    ArrayLiteral,
    Assign,
    Binary,
    BinaryOp,
    BoolLiteral,
    Call,
    Domain,
    ExprStatement,
    Expression,
    FloatLiteral,
    For,
    Function,
    If,
    Index,
    IntLiteral,
    Let,
    MapExpr,
    Program,
    Return,
    Statement,
    Unary,
    UnaryOp,
    Variable,
)
from .errors import CompileError
from .isa import (
    JUMPS,
    BytecodeFunction,
    BytecodeModule,
    Instruction,
    OpCode,
    Value,
)


logger = logging.getLogger(__name__)


# Call-site classification. Membership decides the runtime handler,
# never the callee's own domain tag.
BUILTINS = (
    "print", "println",
    "sqrt", "sin", "cos", "tan", "exp", "log",
    "abs", "floor", "ceil", "round",
    "min", "max", "len", "random",
)

QUANTUM_GATES = (
    "h", "x", "y", "z", "cx", "cz", "rx", "ry", "rz", "measure",
    "hadamard", "pauli_x", "pauli_y", "pauli_z", "cnot",
)

MAP_PREFIX = "map:"

BINARY_OPCODES = {
    BinaryOp.ADD: OpCode.ADD,
    BinaryOp.SUB: OpCode.SUB,
    BinaryOp.MUL: OpCode.MUL,
    BinaryOp.DIV: OpCode.DIV,
    BinaryOp.MOD: OpCode.MOD,
    BinaryOp.EQ: OpCode.EQ,
    BinaryOp.NE: OpCode.NE,
    BinaryOp.LT: OpCode.LT,
    BinaryOp.LE: OpCode.LE,
    BinaryOp.GT: OpCode.GT,
    BinaryOp.GE: OpCode.GE,
    BinaryOp.AND: OpCode.AND,
    BinaryOp.OR: OpCode.OR,
}

UNARY_OPCODES = {
    UnaryOp.NEG: OpCode.NEG,
    UnaryOp.NOT: OpCode.NOT,
}


# =============================================================================
# COMPILER
# =============================================================================

class BytecodeCompiler:
    """
    Compiles a Program AST into a BytecodeModule.

    Control flow uses labels: a label is allocated per branch/loop point,
    jumps are emitted with a placeholder target and recorded against the
    label, and all of them are patched once the function body is lowered.

    Example:
        >>> module = BytecodeCompiler().compile(parse_source(source))
        >>> print(dump_module(module))
    """

    def __init__(self):
        self._instructions: List[Instruction] = []
        self._label_counter = 0
        self._labels: Dict[str, int] = {}
        self._pending_jumps: Dict[str, List[int]] = {}

    def compile(self, program: Program) -> BytecodeModule:
        """
        Compile every function of the program.

        Raises:
            DuplicateFunctionError: two functions share a name
            CompileError: the AST contains something the parser never builds
        """
        module = BytecodeModule()
        for func in program.functions:
            module.add(self.compile_function(func))

        logger.info(f"📝 Compiled {len(module)} function(s), "
                    f"{module.num_instructions} instructions")
        return module

    def compile_function(self, func: Function) -> BytecodeFunction:
        """Lower a single function."""
        self._instructions = []
        self._labels = {}
        self._pending_jumps = {}

        for stmt in func.body:
            self._compile_statement(stmt)

        # Execution must never fall off the end of a function
        if not self._instructions or self._instructions[-1].opcode != OpCode.RETURN:
            self._emit(Instruction.push(0))
            self._emit(Instruction(OpCode.RETURN))

        self._resolve_pending_jumps(func.name)

        logger.debug(f"   fn {func.name}: {len(self._instructions)} instructions "
                     f"[{func.domain.value}]")
        return BytecodeFunction(
            name=func.name,
            params=[p.name for p in func.params],
            instructions=tuple(self._instructions),
            domain=func.domain,
        )

    # -------------------------------------------------------------------------
    # Labels & jumps
    # -------------------------------------------------------------------------

    def _emit(self, instr: Instruction) -> int:
        self._instructions.append(instr)
        return len(self._instructions) - 1

    def _new_label(self) -> str:
        label = f"L{self._label_counter}"
        self._label_counter += 1
        return label

    def _mark_label(self, label: str):
        self._labels[label] = len(self._instructions)

    def _emit_jump(self, label: str, conditional: bool = False):
        idx = self._emit(Instruction.jump(-1, conditional))
        self._pending_jumps.setdefault(label, []).append(idx)

    def _resolve_pending_jumps(self, func_name: str):
        for label, indices in self._pending_jumps.items():
            if label not in self._labels:
                raise CompileError(f"Unresolved jump label {label} in function '{func_name}'")
            target = self._labels[label]
            for idx in indices:
                self._instructions[idx] = self._instructions[idx].retarget(target)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _compile_statement(self, stmt: Statement):
        if isinstance(stmt, Let):
            self._compile_expression(stmt.value)
            self._emit(Instruction.store(stmt.name))

        elif isinstance(stmt, Assign):
            if stmt.index is not None:
                self._emit(Instruction.load(stmt.target))
                self._compile_expression(stmt.index)
                self._compile_expression(stmt.value)
                self._emit(Instruction(OpCode.STORE_INDEX))
            else:
                self._compile_expression(stmt.value)
                self._emit(Instruction.store(stmt.target))

        elif isinstance(stmt, Return):
            self._compile_expression(stmt.value)
            self._emit(Instruction(OpCode.RETURN))

        elif isinstance(stmt, ExprStatement):
            self._compile_expression(stmt.expr)
            self._emit(Instruction(OpCode.POP))

        elif isinstance(stmt, For):
            self._compile_for(stmt)

        elif isinstance(stmt, If):
            self._compile_if(stmt)

        else:
            raise CompileError(f"Cannot compile statement of type {type(stmt).__name__}")

    def _compile_for(self, stmt: For):
        """
        for v in a..b { body }  lowers to:

                v = a
            start:
                if !(v < b) goto end
                body
                v = v + 1
                goto start
            end:
        """
        loop_start = self._new_label()
        loop_end = self._new_label()

        self._compile_expression(stmt.start)
        self._emit(Instruction.store(stmt.var))

        self._mark_label(loop_start)
        self._emit(Instruction.load(stmt.var))
        self._compile_expression(stmt.end)
        self._emit(Instruction(OpCode.LT))
        self._emit_jump(loop_end, conditional=True)

        for s in stmt.body:
            self._compile_statement(s)

        self._emit(Instruction.load(stmt.var))
        self._emit(Instruction.push(1))
        self._emit(Instruction(OpCode.ADD))
        self._emit(Instruction.store(stmt.var))
        self._emit_jump(loop_start)

        self._mark_label(loop_end)

    def _compile_if(self, stmt: If):
        else_label = self._new_label()
        end_label = self._new_label()

        self._compile_expression(stmt.condition)
        self._emit_jump(else_label if stmt.else_body is not None else end_label,
                        conditional=True)

        for s in stmt.then_body:
            self._compile_statement(s)

        if stmt.else_body is not None:
            self._emit_jump(end_label)
            self._mark_label(else_label)
            for s in stmt.else_body:
                self._compile_statement(s)

        self._mark_label(end_label)

    # -------------------------------------------------------------------------
    # Expressions (operands pushed left to right)
    # -------------------------------------------------------------------------

    def _compile_expression(self, expr: Expression):
        if isinstance(expr, (IntLiteral, FloatLiteral, BoolLiteral)):
            self._emit(Instruction.push(expr.value))

        elif isinstance(expr, Variable):
            self._emit(Instruction.load(expr.name))

        elif isinstance(expr, Binary):
            self._compile_expression(expr.left)
            self._compile_expression(expr.right)
            self._emit(Instruction(BINARY_OPCODES[expr.op]))

        elif isinstance(expr, Unary):
            self._compile_expression(expr.operand)
            self._emit(Instruction(UNARY_OPCODES[expr.op]))

        elif isinstance(expr, Call):
            for arg in expr.args:
                self._compile_expression(arg)
            self._emit(self._classify_call(expr.function, len(expr.args)))

        elif isinstance(expr, Index):
            self._compile_expression(expr.array)
            self._compile_expression(expr.index)
            self._emit(Instruction(OpCode.LOAD_INDEX))

        elif isinstance(expr, ArrayLiteral):
            for elem in expr.elements:
                self._compile_expression(elem)
            self._emit(Instruction.new_array(len(expr.elements)))

        elif isinstance(expr, MapExpr):
            self._compile_expression(expr.array)
            self._emit(Instruction.builtin(f"{MAP_PREFIX}{expr.function}", 1))

        else:
            raise CompileError(f"Cannot compile expression of type {type(expr).__name__}")

    @staticmethod
    def _classify_call(name: str, argc: int) -> Instruction:
        if name in BUILTINS:
            return Instruction.builtin(name, argc)
        if name in QUANTUM_GATES:
            return Instruction.gate(name, argc)
        return Instruction.call(name, argc)


# =============================================================================
# Q-ISA ASSEMBLER (Text Assembly Format)
# =============================================================================

class BytecodeAssembler:
    """
    Assembler for the Q-ISA text format written by dump_module().

    Example:
        @quantum
        fn main():
            0000  PUSH 0
            0001  QUANTUM_GATE h 1
            0002  RETURN

    The index column is optional; '#' starts a comment.
    """

    OPERAND_COUNTS = {
        OpCode.PUSH: 1,
        OpCode.LOAD: 1,
        OpCode.STORE: 1,
        OpCode.JUMP: 1,
        OpCode.JUMP_IF_FALSE: 1,
        OpCode.NEW_ARRAY: 1,
        OpCode.CALL: 2,
        OpCode.BUILTIN_CALL: 2,
        OpCode.QUANTUM_GATE: 2,
    }

    FUNCTION_HEADER = re.compile(r"fn\s+(\w+)\s*\(([^)]*)\)\s*:?$")
    INT_PATTERN = re.compile(r"-?\d+$")
    FLOAT_PATTERN = re.compile(r"-?(\d+\.\d*|\.\d+|\d+(?=[eE]))([eE][-+]?\d+)?$")

    def assemble(self, source: str) -> BytecodeModule:
        """Assemble Q-ISA text into a module."""
        module = BytecodeModule()
        domain = Domain.CLASSICAL
        current: Optional[Tuple[str, List[str], Domain]] = None
        instructions: List[Instruction] = []
        # (line number, text) of a domain line still waiting for its header
        pending: Optional[Tuple[int, str]] = None

        for line_num, raw in enumerate(source.splitlines(), 1):
            line = raw.split('#', 1)[0].strip()
            if not line:
                continue

            if line.startswith('@'):
                if pending is not None:
                    self._dangling_domain(pending)
                try:
                    domain = Domain(line[1:])
                except ValueError:
                    raise CompileError(f"Line {line_num}: Unknown domain '{line}'")
                pending = (line_num, line)
                continue

            header = self.FUNCTION_HEADER.match(line)
            if header:
                if current is not None:
                    module.add(self._finish(current, instructions))
                params = [p.strip() for p in header.group(2).split(',') if p.strip()]
                current = (header.group(1), params, domain)
                instructions = []
                domain = Domain.CLASSICAL
                pending = None
                continue

            if pending is not None:
                self._dangling_domain(pending)
            if current is None:
                raise CompileError(f"Line {line_num}: Instruction outside of a function")
            instructions.append(self._parse_instruction(line, line_num))

        if pending is not None:
            self._dangling_domain(pending)
        if current is not None:
            module.add(self._finish(current, instructions))
        return module

    @staticmethod
    def _dangling_domain(pending: Tuple[int, str]):
        line_num, line = pending
        raise CompileError(f"Line {line_num}: Domain '{line}' is not followed by a function header")

    def _parse_instruction(self, line: str, line_num: int) -> Instruction:
        parts = line.split()
        if parts[0].isdigit():
            parts = parts[1:]
        if not parts:
            raise CompileError(f"Line {line_num}: Missing opcode")

        opcode_str = parts[0].upper()
        try:
            opcode = OpCode[opcode_str]
        except KeyError:
            raise CompileError(f"Line {line_num}: Unknown opcode '{opcode_str}'")

        operands = [self._parse_operand(p) for p in parts[1:]]
        expected = self.OPERAND_COUNTS.get(opcode, 0)
        if len(operands) != expected:
            raise CompileError(
                f"Line {line_num}: {opcode.name} takes {expected} operand(s), got {len(operands)}"
            )

        if opcode in JUMPS or opcode == OpCode.NEW_ARRAY:
            self._require_int(operands[0], opcode, line_num)
        elif expected == 2:
            self._require_int(operands[1], opcode, line_num)

        return Instruction(opcode, *operands)

    def _parse_operand(self, text: str) -> Value:
        if text == "true":
            return True
        if text == "false":
            return False
        if self.INT_PATTERN.match(text):
            return int(text)
        if self.FLOAT_PATTERN.match(text):
            return float(text)
        return text

    @staticmethod
    def _require_int(operand, opcode: OpCode, line_num: int):
        if not isinstance(operand, int) or isinstance(operand, bool):
            raise CompileError(f"Line {line_num}: {opcode.name} expects an integer, got '{operand}'")

    @staticmethod
    def _finish(header: Tuple[str, List[str], Domain],
                instructions: List[Instruction]) -> BytecodeFunction:
        name, params, domain = header
        for idx, instr in enumerate(instructions):
            if instr.opcode in JUMPS and not 0 <= instr.operand <= len(instructions):
                raise CompileError(
                    f"Jump target {instr.operand} out of range in function '{name}' "
                    f"(instruction {idx})"
                )
        return BytecodeFunction(name, params, tuple(instructions), domain)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def compile_program(program: Program) -> BytecodeModule:
    """Convenience function: compile a Program AST."""
    return BytecodeCompiler().compile(program)


def assemble(source: str) -> BytecodeModule:
    """Convenience function: assemble Q-ISA text."""
    return BytecodeAssembler().assemble(source)
