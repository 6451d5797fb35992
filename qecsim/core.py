"""
Gate engine: applies gate operations to a StateVector in place.

Every gate is applied by selecting the amplitude indices it mixes:

* single-qubit gates act on index pairs that differ only in the target bit,
* CZ and SWAP act on index quadruples that differ only in the two target bits,
* CNOT and Toffoli are permutations, done by swapping the amplitudes whose
  control bits are all 1 and whose target bit differs.

The functions here are stateless; logging of steps belongs to
``qecsim.system.QuantumSystem``.
"""

import logging
from typing import Sequence

import numpy as np

from .gates import Gate, GateOperation
from .state import StateVector

logger = logging.getLogger(__name__)


def _indices_with_bits_clear(dimension: int, qubits: Sequence[int]) -> np.ndarray:
    """Basis indices in which every listed qubit is 0."""
    mask = 0
    for q in qubits:
        mask |= 1 << q
    indices = np.arange(dimension)
    return indices[(indices & mask) == 0]


def _check_targets(state: StateVector, qubits: Sequence[int]):
    n = state.num_qubits
    for q in qubits:
        if not 0 <= q < n:
            raise IndexError(f"Qubit index {q} out of range for {n} qubits")


# =============================================================================
# Matrix application
# =============================================================================

def apply_single_qubit_gate(state: StateVector, gate: np.ndarray, qubit: int):
    """
    Apply a 2x2 unitary to one qubit.

    Args:
        state: State to mutate
        gate: 2x2 matrix in the (|0⟩, |1⟩) basis of the target
        qubit: Target qubit index
    """
    _check_targets(state, (qubit,))
    amps = state.amplitudes
    i0 = _indices_with_bits_clear(state.dimension, (qubit,))
    idx = np.stack([i0, i0 | (1 << qubit)])
    amps[idx] = gate @ amps[idx]


def apply_two_qubit_gate(state: StateVector, gate: np.ndarray, qubit1: int, qubit2: int):
    """
    Apply a 4x4 unitary to two qubits.

    qubit1 is the high bit of the 4x4 basis: rows are ordered
    |q1 q2⟩ = |00⟩, |01⟩, |10⟩, |11⟩.
    """
    _check_targets(state, (qubit1, qubit2))
    amps = state.amplitudes
    m1, m2 = 1 << qubit1, 1 << qubit2
    i00 = _indices_with_bits_clear(state.dimension, (qubit1, qubit2))
    idx = np.stack([i00, i00 | m2, i00 | m1, i00 | m1 | m2])
    amps[idx] = gate @ amps[idx]


# =============================================================================
# Permutation shortcuts
# =============================================================================

def apply_controlled_x(state: StateVector, controls: Sequence[int], target: int):
    """
    Flip the target bit wherever all control bits are 1.

    Equivalent to CNOT (one control) or Toffoli (two controls), done as an
    amplitude swap instead of a matrix product.
    """
    _check_targets(state, list(controls) + [target])
    ctrl_mask = 0
    for c in controls:
        ctrl_mask |= 1 << c
    t_mask = 1 << target

    indices = np.arange(state.dimension)
    i = indices[((indices & ctrl_mask) == ctrl_mask) & ((indices & t_mask) == 0)]
    j = i | t_mask
    amps = state.amplitudes
    amps[i], amps[j] = amps[j], amps[i]


# =============================================================================
# Dispatch
# =============================================================================

def apply_gate(state: StateVector, op: GateOperation):
    """
    Apply a gate operation to the state in place.

    Args:
        state: State to mutate
        op: Gate operation; arity was validated when it was constructed

    Raises:
        IndexError: If a target qubit is outside the state
    """
    gate = op.gate
    qubits = op.qubits
    logger.debug("apply %s to %s", op.display_name, qubits)

    if gate is Gate.CNOT:
        apply_controlled_x(state, qubits[:1], qubits[1])
    elif gate is Gate.TOFFOLI:
        apply_controlled_x(state, qubits[:2], qubits[2])
    elif gate.arity == 2:
        apply_two_qubit_gate(state, op.matrix(), qubits[0], qubits[1])
    else:
        apply_single_qubit_gate(state, op.matrix(), qubits[0])


def apply_gates(state: StateVector, ops: Sequence[GateOperation]):
    """Apply a sequence of gate operations in order."""
    for op in ops:
        apply_gate(state, op)
