"""
Unit Tests for Circuit Export
=============================
"""

import sys
import os
import unittest

import numpy as np

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from qiskit.quantum_info import Statevector

from quarkdsl.circuit import build_circuit
from quarkdsl.quantum import GateOp, QuantumSimulator
from quarkdsl.runtime import execute


class TestBuildCircuit(unittest.TestCase):
    """Gate trace -> QuantumCircuit."""

    def test_gate_counts(self):
        ops = [
            GateOp("h", (0,)),
            GateOp("cx", (0, 1)),
            GateOp("rx", (2,), (0.5,)),
            GateOp("measure", (0,), result=1),
            GateOp("measure", (1,), result=1),
        ]
        qc = build_circuit(ops)
        self.assertEqual(qc.num_qubits, 8)
        self.assertEqual(qc.num_clbits, 2)
        counts = qc.count_ops()
        self.assertEqual(counts["h"], 1)
        self.assertEqual(counts["cx"], 1)
        self.assertEqual(counts["rx"], 1)
        self.assertEqual(counts["measure"], 2)

    def test_no_measurements_no_clbits(self):
        qc = build_circuit([GateOp("x", (3,))], num_qubits=4)
        self.assertEqual(qc.num_qubits, 4)
        self.assertEqual(qc.num_clbits, 0)

    def test_unknown_operation(self):
        with self.assertRaises(ValueError):
            build_circuit([GateOp("swap", (0, 1))])

    def test_replay_matches_simulator(self):
        sim = QuantumSimulator(rng=np.random.default_rng(5))
        sim.h(0)
        sim.ry(1, 0.9)
        sim.cx(0, 1)
        sim.rz(1, 1.1)
        sim.cz(1, 4)
        qc = build_circuit(sim.operations)
        np.testing.assert_allclose(sim.state, Statevector(qc).data, atol=1e-10)


class TestResultCircuit(unittest.TestCase):
    """VMExecutionResult.to_circuit()."""

    def test_program_circuit(self):
        result = execute("""
            @quantum
            fn main() -> int {
                h(0);
                cx(0, 1);
                rx(1.5708, 2);
                return measure(0);
            }
        """, rng=np.random.default_rng(3))
        self.assertTrue(result.success)
        qc = result.to_circuit()
        counts = qc.count_ops()
        self.assertEqual(counts["h"], 1)
        self.assertEqual(counts["cx"], 1)
        self.assertEqual(counts["rx"], 1)
        self.assertEqual(counts["measure"], 1)


if __name__ == "__main__":
    # Run with verbose output
    unittest.main(verbosity=2)
