"""
QuarkDSL Runtime: Compile & Execute Facade
==========================================

One-call entry points over the whole pipeline:

    source -> tokenize -> parse -> compile -> interpret -> sample

Every failure is captured in the returned record; nothing raises out of
compile_source() or execute().
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .ast import Program
from .compiler import compile_program
from .errors import QuarkError
from .interpreter import Interpreter, format_value
from .isa import BytecodeModule, Value, VMConstants
from .parser import parse_source
from .quantum import GateOp


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


# =============================================================================
# RESULT CONTAINERS
# =============================================================================

@dataclass
class CompilationResult:
    """
    Outcome of compile_source().

    Attributes:
        success: True when every stage completed
        ast: Parsed Program (None on failure)
        ir: Compiled BytecodeModule (None on failure)
        error: Error message on failure
        error_type: Exception class name on failure
    """
    success: bool
    ast: Optional[Program] = None
    ir: Optional[BytecodeModule] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass
class VMExecutionResult:
    """
    Outcome of execute().

    Attributes:
        success: True when the program compiled and ran to completion
        return_value: Value returned by the entry function
        output: Lines written by print/println
        quantum_counts: Outcome bitstring -> count over VMConstants.SHOTS samples
        gate_log: Gate invocations in order, e.g. 'H(q0)'
        execution_time: Wall time of the run in milliseconds
        error: Error message on failure
        error_type: Exception class name on failure
        operations: Structured gate trace for circuit export
    """
    success: bool
    return_value: Value = None
    output: List[str] = field(default_factory=list)
    quantum_counts: Dict[str, int] = field(default_factory=dict)
    gate_log: List[str] = field(default_factory=list)
    execution_time: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None
    operations: List[GateOp] = field(default_factory=list)

    def to_circuit(self, num_qubits: int = VMConstants.NUM_QUBITS):
        """Replay the gate trace as a qiskit QuantumCircuit."""
        from .circuit import build_circuit
        return build_circuit(self.operations, num_qubits=num_qubits)

    def __str__(self) -> str:
        return format_result(self)


# =============================================================================
# FACADE
# =============================================================================

def _failure_fields(e: Exception) -> Dict[str, str]:
    return {"error": str(e), "error_type": type(e).__name__}


def compile_source(source: str) -> CompilationResult:
    """
    Tokenize, parse and compile QuarkDSL source.

    Args:
        source: Program text

    Returns:
        CompilationResult with the AST and bytecode, or the error
    """
    try:
        program = parse_source(source)
        module = compile_program(program)
    except QuarkError as e:
        logger.warning(f"⚠️ Compilation failed: {e}")
        return CompilationResult(success=False, **_failure_fields(e))
    except Exception as e:
        logger.warning(f"⚠️ Internal compiler error: {type(e).__name__}: {e}")
        return CompilationResult(success=False, **_failure_fields(e))

    return CompilationResult(success=True, ast=program, ir=module)


def execute(source: str,
            entry_point: str = VMConstants.ENTRY_POINT,
            **options: Any) -> VMExecutionResult:
    """
    Compile and run QuarkDSL source.

    Args:
        source: Program text
        entry_point: Function to start in
        **options: Forwarded to Interpreter (max_iterations, shots, rng, num_qubits)

    Returns:
        VMExecutionResult; success is False on any compile or runtime error
    """
    compiled = compile_source(source)
    if not compiled.success:
        return VMExecutionResult(success=False, error=compiled.error,
                                 error_type=compiled.error_type)

    try:
        result = Interpreter(compiled.ir, **options).execute(entry_point)
    except QuarkError as e:
        logger.warning(f"⚠️ Execution failed: {e}")
        return VMExecutionResult(success=False, **_failure_fields(e))
    except Exception as e:
        logger.warning(f"⚠️ Internal runtime error: {type(e).__name__}: {e}")
        return VMExecutionResult(success=False, **_failure_fields(e))

    return VMExecutionResult(
        success=True,
        return_value=result.return_value,
        output=result.output,
        quantum_counts=result.quantum_counts,
        gate_log=result.gate_log,
        execution_time=result.execution_time,
        operations=result.operations,
    )


# =============================================================================
# REPORTING
# =============================================================================

def format_result(result: VMExecutionResult) -> str:
    """
    Render an execution result as a multi-section text report.

    Sections: output, result, gate circuit (when gates ran) and the
    ten most frequent measurement outcomes (when any were sampled).
    """
    if not result.success:
        return f"❌ {result.error_type}: {result.error}"

    lines = []
    if result.output:
        lines.append("=== Output ===")
        lines.extend(result.output)
        lines.append("")

    lines.append("=== Result ===")
    lines.append(f"Return value: {format_value(result.return_value)}")
    lines.append(f"Execution time: {result.execution_time:.2f}ms")

    if result.gate_log:
        lines.append("")
        lines.append("=== Quantum Circuit ===")
        lines.append(" -> ".join(result.gate_log))

    if result.quantum_counts:
        total = sum(result.quantum_counts.values())
        ranked = sorted(result.quantum_counts.items(), key=lambda kv: kv[1], reverse=True)
        lines.append("")
        lines.append(f"=== Quantum Measurement Results ({total} shots) ===")
        for state, count in ranked[:VMConstants.DISPLAY_STATES]:
            lines.append(f"  |{state}>: {count} ({count / total:.1%})")

    return "\n".join(lines)
