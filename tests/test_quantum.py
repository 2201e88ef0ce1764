"""
Unit Tests for the State-Vector Simulator
=========================================

Amplitudes are cross-checked against qiskit.quantum_info.Statevector,
which uses the same little-endian qubit ordering.
"""

import sys
import os
import unittest

import numpy as np

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from qiskit import QuantumCircuit
from qiskit.quantum_info import Statevector

from quarkdsl.quantum import GateOp, QuantumSimulator


def make_sim(seed=1234, num_qubits=8):
    return QuantumSimulator(num_qubits, rng=np.random.default_rng(seed))


class TestGates(unittest.TestCase):
    """Single- and two-qubit gate action."""

    def test_initial_state(self):
        sim = make_sim()
        expected = np.zeros(256, dtype=complex)
        expected[0] = 1
        np.testing.assert_allclose(sim.state, expected)
        self.assertAlmostEqual(sim.norm(), 1.0)

    def test_hadamard(self):
        sim = make_sim()
        sim.h(0)
        state = sim.state
        self.assertAlmostEqual(state[0].real, 1 / np.sqrt(2))
        self.assertAlmostEqual(state[1].real, 1 / np.sqrt(2))
        self.assertAlmostEqual(sim.norm(), 1.0)

    def test_x_sets_bit(self):
        sim = make_sim()
        sim.x(3)
        self.assertAlmostEqual(abs(sim.state[8]), 1.0)

    def test_ry_pi_flips(self):
        sim = make_sim()
        sim.ry(0, np.pi)
        self.assertAlmostEqual(abs(sim.state[1]), 1.0)

    def test_cx_only_when_control_set(self):
        sim = make_sim()
        sim.cx(0, 1)
        self.assertAlmostEqual(abs(sim.state[0]), 1.0)
        sim.x(0)
        sim.cx(0, 1)
        self.assertAlmostEqual(abs(sim.state[0b11]), 1.0)

    def test_cz_phase(self):
        sim = make_sim()
        sim.x(0)
        sim.x(1)
        sim.cz(0, 1)
        self.assertAlmostEqual(sim.state[0b11].real, -1.0)

    def test_invalid_qubits(self):
        sim = make_sim()
        with self.assertRaises(ValueError):
            sim.h(8)
        with self.assertRaises(ValueError):
            sim.h(-1)
        with self.assertRaises(ValueError):
            sim.x(1.5)
        with self.assertRaises(ValueError):
            sim.cx(2, 2)

    def test_matches_qiskit_statevector(self):
        sim = make_sim()
        qc = QuantumCircuit(8)

        sim.h(0); qc.h(0)
        sim.rx(1, 0.7); qc.rx(0.7, 1)
        sim.cx(0, 2); qc.cx(0, 2)
        sim.ry(3, 1.3); qc.ry(1.3, 3)
        sim.rz(0, -0.4); qc.rz(-0.4, 0)
        sim.y(5); qc.y(5)
        sim.cz(3, 1); qc.cz(3, 1)
        sim.h(7); qc.h(7)
        sim.cx(7, 6); qc.cx(7, 6)
        sim.z(2); qc.z(2)

        np.testing.assert_allclose(sim.state, Statevector(qc).data, atol=1e-10)


class TestMeasurement(unittest.TestCase):
    """Collapse and sampling."""

    def test_collapse_renormalizes(self):
        sim = make_sim()
        sim.h(0)
        result = sim.measure(0)
        self.assertIn(result, (0, 1))
        self.assertAlmostEqual(abs(sim.state[result]), 1.0)
        self.assertAlmostEqual(sim.norm(), 1.0)

    def test_measure_is_repeatable(self):
        sim = make_sim()
        sim.h(2)
        first = sim.measure(2)
        self.assertEqual(sim.measure(2), first)

    def test_bell_correlation(self):
        for seed in range(20):
            sim = make_sim(seed)
            sim.h(0)
            sim.cx(0, 1)
            self.assertEqual(sim.measure(0), sim.measure(1))

    def test_bell_sampling(self):
        sim = make_sim()
        sim.h(0)
        sim.cx(0, 1)
        counts = sim.sample(1024)
        self.assertEqual(sum(counts.values()), 1024)
        self.assertTrue(set(counts) <= {"00000000", "00000011"})
        self.assertEqual(len(counts), 2)

    def test_sampling_does_not_collapse(self):
        sim = make_sim()
        sim.h(0)
        before = sim.state
        sim.sample(100)
        np.testing.assert_allclose(sim.state, before)

    def test_seeded_sampling_reproducible(self):
        a, b = make_sim(99), make_sim(99)
        for sim in (a, b):
            sim.h(0)
            sim.h(1)
        self.assertEqual(a.sample(500), b.sample(500))

    def test_zero_shots(self):
        self.assertEqual(make_sim().sample(0), {})

    def test_probabilities_drop_noise(self):
        sim = make_sim()
        sim.h(4)
        probs = sim.get_probabilities()
        self.assertEqual(set(probs), {"00000000", "00010000"})
        self.assertAlmostEqual(sum(probs.values()), 1.0)


class TestGateLog(unittest.TestCase):
    """Readable log and structured trace."""

    def test_log_format(self):
        sim = make_sim()
        sim.h(0)
        sim.rx(0, np.pi / 2)
        sim.cx(0, 1)
        sim.measure(0)
        self.assertEqual(
            sim.get_gate_log(),
            ["H(q0)", "RX(q0, 1.571)", "CX(q0, q1)", "MEASURE(q0)"],
        )

    def test_operations_trace(self):
        sim = make_sim()
        sim.rz(3, 0.25)
        sim.cz(1, 2)
        self.assertEqual(sim.operations, [
            GateOp("rz", (3,), (0.25,)),
            GateOp("cz", (1, 2)),
        ])

    def test_reset_clears(self):
        sim = make_sim()
        sim.x(0)
        sim.reset()
        self.assertEqual(sim.get_gate_log(), [])
        self.assertAlmostEqual(abs(sim.state[0]), 1.0)


if __name__ == "__main__":
    # Run with verbose output
    unittest.main(verbosity=2)
