"""
Circuit Export: Gate Trace -> Qiskit QuantumCircuit
===================================================

Replays the operations recorded by the simulator into a Qiskit circuit,
for drawing or for cross-checking against Qiskit's own simulators.

Layout:
    - QuantumRegister 'q' with one qubit per simulator qubit
    - ClassicalRegister 'meas' with one bit per measurement, in order
"""

from typing import Iterable, List

from qiskit import ClassicalRegister, QuantumCircuit, QuantumRegister

from .isa import VMConstants
from .quantum import GateOp


SINGLE_QUBIT_GATES = ("h", "x", "y", "z")
ROTATION_GATES = ("rx", "ry", "rz")
CONTROLLED_GATES = ("cx", "cz")


def build_circuit(operations: Iterable[GateOp],
                  num_qubits: int = VMConstants.NUM_QUBITS,
                  name: str = "quarkdsl") -> QuantumCircuit:
    """
    Build a QuantumCircuit from a recorded gate trace.

    Args:
        operations: GateOp records in application order
        num_qubits: Width of the quantum register
        name: Circuit name

    Returns:
        The equivalent QuantumCircuit

    Raises:
        ValueError on an operation name the exporter does not know
    """
    ops: List[GateOp] = list(operations)
    n_meas = sum(1 for op in ops if op.name == "measure")

    qreg = QuantumRegister(num_qubits, 'q')
    if n_meas:
        creg = ClassicalRegister(n_meas, 'meas')
        qc = QuantumCircuit(qreg, creg, name=name)
    else:
        qc = QuantumCircuit(qreg, name=name)

    measure_idx = 0
    for op in ops:
        if op.name in SINGLE_QUBIT_GATES:
            getattr(qc, op.name)(qreg[op.qubits[0]])
        elif op.name in ROTATION_GATES:
            getattr(qc, op.name)(op.params[0], qreg[op.qubits[0]])
        elif op.name in CONTROLLED_GATES:
            getattr(qc, op.name)(qreg[op.qubits[0]], qreg[op.qubits[1]])
        elif op.name == "measure":
            qc.measure(qreg[op.qubits[0]], creg[measure_idx])
            measure_idx += 1
        else:
            raise ValueError(f"Cannot export operation '{op.name}'")

    return qc
