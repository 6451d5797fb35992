"""
3-qubit bit-flip repetition code.

|ψ⟩ = α|0⟩ + β|1⟩ on q0 is encoded as α|000⟩ + β|111⟩ on q0-q2 by CNOT
fan-out (q0→q1, q0→q2); decoding runs the same CNOTs in reverse order.

Syndrome extraction measures the parities Z0Z1 and Z1Z2 through ancillas:
both data qubits of a pair are CNOT-ed into an ancilla in |0⟩, the ancilla
is measured and then reset, so the data qubits are never measured directly.

    s1 s2 | error on | correction
    ------+----------+-----------
     0  0 | none     | none
     1  0 | q0       | X q0
     1  1 | q1       | X q1
     0  1 | q2       | X q2

The table assumes at most one flip. With two or more, the syndrome points at
the wrong qubit or reads (0, 0), and the correction makes a logical error.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .gates import Gate, GateOperation
from .state import StateVector
from .system import (
    CorrectionDetails,
    QuantumSystem,
    StepType,
    create_repetition_system,
)

logger = logging.getLogger(__name__)

DATA_QUBITS = (0, 1, 2)

# Syndrome -> position within the block that gets the X correction
SYNDROME_TO_POSITION: Dict[Tuple[int, int], Optional[int]] = {
    (0, 0): None,
    (1, 0): 0,
    (1, 1): 1,
    (0, 1): 2,
}

SYNDROME_TABLE = [
    {"syndrome": (0, 0), "meaning": "No error", "correction": "None"},
    {"syndrome": (1, 0), "meaning": "Error on q0", "correction": "Apply X0"},
    {"syndrome": (1, 1), "meaning": "Error on q1", "correction": "Apply X1"},
    {"syndrome": (0, 1), "meaning": "Error on q2", "correction": "Apply X2"},
]


# =============================================================================
# Encoding
# =============================================================================

def encode_repetition(system: QuantumSystem, block: Sequence[int] = DATA_QUBITS):
    """Copy the basis value of block[0] onto the other two qubits with CNOTs."""
    leader, a, b = block
    system.apply_gate(GateOperation(Gate.CNOT, (leader, a)), StepType.ENCODE)
    system.apply_gate(GateOperation(Gate.CNOT, (leader, b)), StepType.ENCODE)
    system.log_step(StepType.ENCODE, "Encoding complete: 3-qubit repetition code")


def decode_repetition(system: QuantumSystem, block: Sequence[int] = DATA_QUBITS):
    """Undo ``encode_repetition``: CNOTs in reverse order."""
    leader, a, b = block
    system.apply_gate(GateOperation(Gate.CNOT, (leader, b)), StepType.DECODE)
    system.apply_gate(GateOperation(Gate.CNOT, (leader, a)), StepType.DECODE)
    system.log_step(StepType.DECODE, "Decoded from 3-qubit repetition code")


# =============================================================================
# Syndrome extraction
# =============================================================================

def measure_z_parity(system: QuantumSystem, qubits: Sequence[int], role: str) -> int:
    """
    Measure the parity Z⊗...⊗Z of data qubits through an ancilla.

    The ancilla is allocated under ``role``, each data qubit is CNOT-ed into
    it, and it is measured, reset and released.

    Returns:
        0 for even parity, 1 for odd
    """
    anc = system.allocate_ancilla(role)
    for q in qubits:
        system.apply_gate(
            GateOperation(Gate.CNOT, (q, anc), label=f"CNOT q{q}→{role} (syndrome)"),
            StepType.MEASUREMENT,
        )
    names = ",".join(f"q{q}" for q in qubits)
    return system.measure_ancilla(role, f"Measure {role} (Z): parity({names})")


def measure_syndrome_repetition(system: QuantumSystem,
                                block: Sequence[int] = DATA_QUBITS,
                                roles: Sequence[str] = ("a0", "a1")) -> Tuple[int, int]:
    """
    Measure (s1, s2) = (parity(q0, q1), parity(q1, q2)) for one block.

    Args:
        system: System with at least one free ancilla
        block: The three data qubits
        roles: Virtual ancilla names for the two parity checks

    Returns:
        Syndrome tuple (s1, s2)
    """
    q0, q1, q2 = block
    s1 = measure_z_parity(system, (q0, q1), roles[0])
    s2 = measure_z_parity(system, (q1, q2), roles[1])
    logger.debug("repetition syndrome on %s: (%d, %d)", tuple(block), s1, s2)
    return s1, s2


def syndrome_flip(position: int) -> Tuple[int, int]:
    """Syndrome bits flipped by an X (or Y) on the qubit at this block position."""
    return (int(position in (0, 1)), int(position in (1, 2)))


# =============================================================================
# Correction
# =============================================================================

def decode_syndrome(syndrome: Sequence[int]) -> Optional[int]:
    """Block position to correct for a 2-bit syndrome, or None."""
    return SYNDROME_TO_POSITION[(int(syndrome[0]), int(syndrome[1]))]


def correct_error_repetition(system: QuantumSystem, syndrome: Sequence[int],
                             block: Sequence[int] = DATA_QUBITS,
                             reference: Optional[StateVector] = None) -> Optional[int]:
    """
    Apply the X correction indicated by the syndrome.

    The syndrome is trusted as-is; no check is made for error counts beyond
    what the code can handle.

    Args:
        system: System to correct
        syndrome: (s1, s2)
        block: The three data qubits
        reference: Optional codeword; if given, fidelities are recorded

    Returns:
        The corrected qubit, or None
    """
    syndrome = (int(syndrome[0]), int(syndrome[1]))
    position = decode_syndrome(syndrome)
    fidelity_before = system.fidelity_with(reference) if reference is not None else None

    if position is None:
        target = None
        decision = f"syndrome {syndrome} → no error"
    else:
        target = block[position]
        decision = f"syndrome {syndrome} → apply X to q{target}"
        system.apply_gate(
            GateOperation(Gate.X, (target,), label=f"X{target} (correction)"),
            StepType.CORRECTION,
            f"Correction: X on {system.label(target)}",
        )

    fidelity_after = system.fidelity_with(reference) if reference is not None else None
    details = CorrectionDetails(
        syndrome=syndrome,
        corrected_qubits=() if target is None else (target,),
        steps=(("bit-flip", decision),),
        fidelity_before=fidelity_before,
        fidelity_after=fidelity_after,
    )
    summary = ("No error detected - no correction needed" if target is None
               else f"Corrected bit flip on q{target}")
    system.log_step(StepType.CORRECTION, summary, correction_details=details)
    logger.debug("repetition correction: %s", decision)
    return target


# =============================================================================
# Reference states and full cycle
# =============================================================================

def repetition_logical_state(alpha: complex = 1.0, beta: complex = 0.0,
                             num_qubits: int = 5) -> StateVector:
    """α|0_L⟩ + β|1_L⟩ = α|00000⟩ + β|00111⟩ (ancillas in |0⟩)."""
    amps = np.zeros(1 << num_qubits, dtype=complex)
    amps[0b000] = alpha
    amps[0b111] = beta
    return StateVector.from_amplitudes(amps, normalize=True)


@dataclass
class RepetitionCodeResult:
    system: QuantumSystem
    syndrome: Tuple[int, int]
    error_detected: bool
    corrected_qubit: Optional[int]
    logical_state: str


def run_repetition_cycle(initial_state: str = "zero",
                         errors: Sequence[Tuple[int, str]] = (),
                         rng: Optional[np.random.Generator] = None,
                         seed: Optional[int] = None) -> RepetitionCodeResult:
    """
    Initialize, encode, inject the given errors, measure and correct.

    Args:
        initial_state: "zero" or "one"
        errors: (qubit, pauli) pairs applied after encoding

    Returns:
        RepetitionCodeResult; logical_state is "zero", "one" or "superposition"
    """
    system = create_repetition_system(rng=rng, seed=seed)
    if initial_state == "one":
        system.initialize_logical_one()
    else:
        system.initialize_logical_zero()
    encode_repetition(system)

    for qubit, pauli in errors:
        system.apply_error(pauli, qubit)

    syndrome = measure_syndrome_repetition(system)
    corrected = correct_error_repetition(system, syndrome)

    if system.state.probability(0b000) > 0.99:
        logical = "zero"
    elif system.state.probability(0b111) > 0.99:
        logical = "one"
    else:
        logical = "superposition"

    return RepetitionCodeResult(
        system=system,
        syndrome=syndrome,
        error_detected=any(syndrome),
        corrected_qubit=corrected,
        logical_state=logical,
    )
