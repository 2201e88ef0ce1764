"""
QuantumSimulator: Ideal State-Vector Engine
===========================================

Dense complex state vector over a fixed qubit register (8 qubits = 256
amplitudes), driven by the interpreter's quantum-gate dispatch.

Conventions:
    - Qubit k is bit k of the basis index (qubit 0 = least significant bit)
    - Outcome strings are written most significant qubit first: '00000011'
      means qubits 0 and 1 read 1
    - Noiseless: no error model, no decoherence
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .isa import VMConstants


# =============================================================================
# GATE MATRICES
# =============================================================================

_SQRT1_2 = 1 / np.sqrt(2)

H_GATE = np.array([[_SQRT1_2, _SQRT1_2], [_SQRT1_2, -_SQRT1_2]], dtype=np.complex128)
X_GATE = np.array([[0, 1], [1, 0]], dtype=np.complex128)
Y_GATE = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
Z_GATE = np.array([[1, 0], [0, -1]], dtype=np.complex128)


def rx_matrix(theta: float) -> np.ndarray:
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)


def ry_matrix(theta: float) -> np.ndarray:
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def rz_matrix(theta: float) -> np.ndarray:
    return np.array([[np.exp(-0.5j * theta), 0], [0, np.exp(0.5j * theta)]],
                    dtype=np.complex128)


# =============================================================================
# GATE RECORD
# =============================================================================

@dataclass(frozen=True)
class GateOp:
    """
    One applied operation, kept for circuit export.

    Attributes:
        name: Lower-case gate name (h, x, y, z, rx, ry, rz, cx, cz, measure)
        qubits: Target qubits, control first for two-qubit gates
        params: Rotation angles
        result: Measured bit for 'measure', None otherwise
    """
    name: str
    qubits: Tuple[int, ...]
    params: Tuple[float, ...] = ()
    result: Optional[int] = None


# =============================================================================
# SIMULATOR
# =============================================================================

class QuantumSimulator:
    """
    State-vector simulator.

    Example:
        >>> sim = QuantumSimulator(rng=np.random.default_rng(7))
        >>> sim.h(0)
        >>> sim.cx(0, 1)
        >>> counts = sim.sample(1024)   # only '00000000' and '00000011'
    """

    def __init__(self, num_qubits: int = VMConstants.NUM_QUBITS,
                 rng: Optional[np.random.Generator] = None):
        if num_qubits < 1:
            raise ValueError("num_qubits must be >= 1")
        self.num_qubits = int(num_qubits)
        self.dim = 1 << self.num_qubits
        self.rng = rng if rng is not None else np.random.default_rng()
        self._indices = np.arange(self.dim)
        self.reset()

    def reset(self) -> None:
        """Restore |00...0> and clear the gate log."""
        self._state = np.zeros(self.dim, dtype=np.complex128)
        self._state[0] = 1.0
        self._gate_log: List[str] = []
        self._operations: List[GateOp] = []

    @property
    def state(self) -> np.ndarray:
        """Copy of the amplitude vector."""
        return self._state.copy()

    @property
    def operations(self) -> List[GateOp]:
        return list(self._operations)

    def get_gate_log(self) -> List[str]:
        return list(self._gate_log)

    # -------------------------------------------------------------------------
    # Single-qubit gates
    # -------------------------------------------------------------------------

    def h(self, qubit: int) -> None:
        self._apply_named("h", H_GATE, qubit)

    def x(self, qubit: int) -> None:
        self._apply_named("x", X_GATE, qubit)

    def y(self, qubit: int) -> None:
        self._apply_named("y", Y_GATE, qubit)

    def z(self, qubit: int) -> None:
        self._apply_named("z", Z_GATE, qubit)

    def rx(self, qubit: int, theta: float) -> None:
        self._apply_named("rx", rx_matrix(theta), qubit, theta)

    def ry(self, qubit: int, theta: float) -> None:
        self._apply_named("ry", ry_matrix(theta), qubit, theta)

    def rz(self, qubit: int, theta: float) -> None:
        self._apply_named("rz", rz_matrix(theta), qubit, theta)

    # -------------------------------------------------------------------------
    # Two-qubit gates
    # -------------------------------------------------------------------------

    def cx(self, control: int, target: int) -> None:
        self._apply_controlled("cx", X_GATE, control, target)

    def cz(self, control: int, target: int) -> None:
        self._apply_controlled("cz", Z_GATE, control, target)

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def measure(self, qubit: int) -> int:
        """
        Measure one qubit and collapse the state.

        The outcome is drawn with the Born probabilities; amplitudes
        inconsistent with it are zeroed and the survivors rescaled by
        1/sqrt(p(outcome)) so the vector stays normalized.

        Returns:
            The measured bit (0 or 1)
        """
        qubit = self._check_qubit(qubit)
        self._gate_log.append(f"MEASURE(q{qubit})")

        is_one = (self._indices & (1 << qubit)) != 0
        prob0 = float(np.sum(np.abs(self._state[~is_one]) ** 2))

        result = 0 if self.rng.random() < prob0 else 1
        prob = prob0 if result == 0 else 1.0 - prob0

        keep = is_one if result == 1 else ~is_one
        self._state[~keep] = 0
        self._state[keep] /= np.sqrt(prob)

        self._operations.append(GateOp("measure", (qubit,), result=result))
        return result

    # -------------------------------------------------------------------------
    # Readout
    # -------------------------------------------------------------------------

    def get_probabilities(self, noise_floor: float = VMConstants.NOISE_FLOOR) -> Dict[str, float]:
        """Basis-state probabilities above the noise floor, keyed by bitstring."""
        probs = np.abs(self._state) ** 2
        return {
            self._bitstring(i): float(probs[i])
            for i in np.nonzero(probs > noise_floor)[0]
        }

    def sample(self, shots: int = VMConstants.SHOTS) -> Dict[str, int]:
        """
        Draw independent outcomes from the current state without collapsing it.

        Args:
            shots: Number of samples

        Returns:
            Mapping of outcome bitstring -> count
        """
        probs = self.get_probabilities()
        if shots <= 0 or not probs:
            return {}

        states = list(probs.keys())
        cumulative = np.cumsum(list(probs.values()))

        draws = self.rng.random(shots)
        picks = np.searchsorted(cumulative, draws, side="left")
        picks = np.minimum(picks, len(states) - 1)

        hits = np.bincount(picks, minlength=len(states))
        return {states[i]: int(n) for i, n in enumerate(hits) if n > 0}

    def norm(self) -> float:
        """Sum of squared magnitudes (1.0 for a valid state)."""
        return float(np.sum(np.abs(self._state) ** 2))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _apply_named(self, name: str, gate: np.ndarray, qubit: int,
                     theta: Optional[float] = None) -> None:
        qubit = self._check_qubit(qubit)
        if theta is None:
            self._gate_log.append(f"{name.upper()}(q{qubit})")
            self._operations.append(GateOp(name, (qubit,)))
        else:
            self._gate_log.append(f"{name.upper()}(q{qubit}, {theta:.3f})")
            self._operations.append(GateOp(name, (qubit,), (float(theta),)))
        self._apply_pairs(gate, qubit)

    def _apply_controlled(self, name: str, gate: np.ndarray,
                          control: int, target: int) -> None:
        control = self._check_qubit(control)
        target = self._check_qubit(target)
        if control == target:
            raise ValueError(f"Control and target must differ, both are q{control}")
        self._gate_log.append(f"{name.upper()}(q{control}, q{target})")
        self._operations.append(GateOp(name, (control, target)))
        self._apply_pairs(gate, target, control_mask=1 << control)

    def _apply_pairs(self, gate: np.ndarray, target: int, control_mask: int = 0) -> None:
        """
        Apply a 2x2 unitary to every (i, i | bit) amplitude pair.

        Only indices with the target bit clear are taken as the lower half
        of a pair, so each pair is updated exactly once. With a control
        mask, pairs whose control bit is 0 are left untouched.
        """
        bit = 1 << target
        selector = (self._indices & bit) == 0
        if control_mask:
            selector &= (self._indices & control_mask) != 0

        low = self._indices[selector]
        high = low | bit

        a0 = self._state[low]
        a1 = self._state[high]
        self._state[low] = gate[0, 0] * a0 + gate[0, 1] * a1
        self._state[high] = gate[1, 0] * a0 + gate[1, 1] * a1

    def _check_qubit(self, qubit) -> int:
        try:
            index = int(qubit)
        except (TypeError, ValueError, OverflowError):
            raise ValueError(f"Qubit index must be an integer, got {qubit!r}")
        if index != qubit or not 0 <= index < self.num_qubits:
            raise ValueError(
                f"Qubit index {qubit} out of range [0, {self.num_qubits})"
            )
        return index

    def _bitstring(self, index: int) -> str:
        return format(int(index), f"0{self.num_qubits}b")
