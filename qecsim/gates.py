"""
Quantum gate definitions.

This module contains the gate set used by the simulator: single-qubit gates
(Pauli, Hadamard, phase, rotation), two-qubit gates (CNOT, CZ, SWAP) and the
three-qubit Toffoli gate, together with ``GateOperation``, the immutable
description of one gate applied to specific qubits.

Two-qubit matrices use the first listed qubit as the high bit of the 4x4
basis, so CNOT(control, target) maps |10⟩ to |11⟩.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidOperandCountError, UnsupportedGateError

# =============================================================================
# Single-qubit gates
# =============================================================================

X_gate = np.array([[0, 1],      # Pauli X gate (NOT gate)
                   [1, 0]], dtype=complex)

Y_gate = np.array([[ 0, -1j],   # Pauli Y gate
                   [1j,   0]], dtype=complex)

Z_gate = np.array([[1,  0],     # Pauli Z gate
                   [0, -1]], dtype=complex)

H_gate = np.array([[1,  1],     # Hadamard gate
                   [1, -1]], dtype=complex) * np.sqrt(1/2)

S_gate = np.array([[1,  0],     # Phase gate = T²
                   [0, 1j]], dtype=complex)

T_gate = np.array([[1,                  0],   # T gate = diag(1, e^{iπ/4})
                   [0, np.exp(np.pi / -4j)]], dtype=complex)

I_gate = np.array([[1, 0],      # Identity gate
                   [0, 1]], dtype=complex)


def Rx_gate(theta):
    """X rotation gate Rx(θ)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c,    -1j * s],
                     [-1j * s,    c]], dtype=complex)


def Ry_gate(theta):
    """Y rotation gate Ry(θ)"""
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return np.array([[c, -s],
                     [s,  c]], dtype=complex)


def Rz_gate(theta):
    """Z rotation gate Rz(θ)"""
    return np.array([[np.exp(-1j * theta / 2),                    0],
                     [                      0, np.exp(1j * theta / 2)]])


# =============================================================================
# Two-qubit gates
# =============================================================================

CNOT_gate = np.array([[1, 0, 0, 0],   # Controlled NOT gate (XOR)
                      [0, 1, 0, 0],
                      [0, 0, 0, 1],
                      [0, 0, 1, 0]], dtype=complex)

CZ_gate = np.array([[1, 0, 0,  0],    # Controlled Z gate
                    [0, 1, 0,  0],
                    [0, 0, 1,  0],
                    [0, 0, 0, -1]], dtype=complex)

SWAP_gate = np.array([[1, 0, 0, 0],   # Swap gate
                      [0, 0, 1, 0],
                      [0, 1, 0, 0],
                      [0, 0, 0, 1]], dtype=complex)


# =============================================================================
# Three-qubit gates
# =============================================================================

TOFF_gate = np.eye(8, dtype=complex)   # Toffoli gate (CCNOT)
TOFF_gate[[6, 7]] = TOFF_gate[[7, 6]]


# =============================================================================
# Gate set
# =============================================================================

class Gate(str, Enum):
    """Closed set of supported gates; each knows its arity and parameter count."""

    I = "I"
    X = "X"
    Y = "Y"
    Z = "Z"
    H = "H"
    S = "S"
    T = "T"
    RX = "Rx"
    RY = "Ry"
    RZ = "Rz"
    CNOT = "CNOT"
    CZ = "CZ"
    SWAP = "SWAP"
    TOFFOLI = "Toffoli"

    @classmethod
    def from_name(cls, name) -> "Gate":
        if isinstance(name, Gate):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedGateError(f"Unknown gate: {name!r}") from None

    @property
    def arity(self) -> int:
        return _ARITY.get(self, 1)

    @property
    def num_params(self) -> int:
        return 1 if self in ROTATION_GATES else 0


_ARITY = {
    Gate.CNOT: 2,
    Gate.CZ: 2,
    Gate.SWAP: 2,
    Gate.TOFFOLI: 3,
}

ROTATION_GATES = frozenset({Gate.RX, Gate.RY, Gate.RZ})
PAULI_GATES = frozenset({Gate.X, Gate.Y, Gate.Z})

_FIXED_MATRICES = {
    Gate.I: I_gate,
    Gate.X: X_gate,
    Gate.Y: Y_gate,
    Gate.Z: Z_gate,
    Gate.H: H_gate,
    Gate.S: S_gate,
    Gate.T: T_gate,
    Gate.CNOT: CNOT_gate,
    Gate.CZ: CZ_gate,
    Gate.SWAP: SWAP_gate,
    Gate.TOFFOLI: TOFF_gate,
}

_ROTATIONS = {
    Gate.RX: Rx_gate,
    Gate.RY: Ry_gate,
    Gate.RZ: Rz_gate,
}


@dataclass(frozen=True)
class GateOperation:
    """
    One gate applied to specific qubits.

    Attributes:
        gate: Gate kind (a ``Gate`` or its name, e.g. "CNOT")
        qubits: Target qubit indices; for controlled gates, controls first
        params: Real parameters; rotations use params[0] as the angle
        label: Optional display label
    """
    gate: Gate
    qubits: Tuple[int, ...]
    params: Tuple[float, ...] = field(default=())
    label: Optional[str] = None

    def __post_init__(self):
        gate = Gate.from_name(self.gate)
        qubits = tuple(int(q) for q in self.qubits)
        params = tuple(float(p) for p in self.params)
        object.__setattr__(self, "gate", gate)
        object.__setattr__(self, "qubits", qubits)
        object.__setattr__(self, "params", params)

        if len(qubits) != gate.arity:
            raise InvalidOperandCountError(
                f"{gate.value} acts on {gate.arity} qubit(s), got {len(qubits)}"
            )
        if len(params) < gate.num_params:
            raise InvalidOperandCountError(
                f"{gate.value} needs {gate.num_params} parameter(s), got {len(params)}"
            )
        if len(qubits) != len(set(qubits)):
            raise ValueError("The same qubit cannot occur twice as an argument")
        if any(q < 0 for q in qubits):
            raise IndexError(f"Negative qubit index in {qubits}")

    @property
    def name(self) -> str:
        return self.gate.value

    @property
    def display_name(self) -> str:
        return self.label or self.gate.value

    def matrix(self) -> np.ndarray:
        """Unitary matrix of this operation (2x2, 4x4 or 8x8)."""
        if self.gate in _ROTATIONS:
            return _ROTATIONS[self.gate](self.params[0])
        return _FIXED_MATRICES[self.gate]


def gate_op(name, *qubits: int, params=(), label: Optional[str] = None) -> GateOperation:
    """Shorthand for ``GateOperation(name, qubits, params, label)``."""
    return GateOperation(name, tuple(qubits), tuple(params), label)
