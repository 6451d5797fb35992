"""
9-qubit Shor code.

The Shor code concatenates a phase-flip repetition code (across three blocks)
with a bit-flip repetition code (inside each block), so it corrects an
arbitrary single-qubit error.

Qubit layout:
    block 0: q0 q1 q2     block 1: q3 q4 q5     block 2: q6 q7 q8
    q0, q3 and q6 are the block leaders; q9 is the single physical ancilla.

Encoding (applied to the logical value loaded on q0):
    layer A  H q0; CNOT q0→q3; CNOT q0→q6; H q0, q3, q6
    layer B  CNOT leader→other two, in every block
Decoding runs the same gates in reverse order (every gate is self-inverse).

Syndrome (8 bits):
    bits 0-5  Z-parities (q0q1, q1q2) of each block, like the repetition code
    bits 6-7  X⊗6 over blocks 0+1 and blocks 1+2, measured by preparing the
              ancilla in |+⟩, CNOT-ing from it into six data qubits, and
              measuring it in the X basis

Syndrome bits are taken one at a time through the same physical ancilla under
virtual names a0-a7; the ancilla pool checks it is back in |0⟩ before each
reuse, which keeps the state at 2^10 amplitudes.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from . import core
from .gates import Gate, GateOperation
from .repetition import SYNDROME_TO_POSITION, measure_syndrome_repetition, syndrome_flip
from .state import StateVector
from .system import (
    CorrectionDetails,
    QuantumSystem,
    StepType,
    create_shor_system,
)

logger = logging.getLogger(__name__)

BLOCKS = ((0, 1, 2), (3, 4, 5), (6, 7, 8))
LEADERS = (0, 3, 6)
NUM_DATA_QUBITS = 9

PHASE_SYNDROME_TO_BLOCK = {
    (0, 0): None,
    (1, 0): 0,
    (1, 1): 1,
    (0, 1): 2,
}

BIT_FLIP_SYNDROME_TABLE = [
    {"block": b, "syndrome": s, "meaning": "No error" if pos is None else f"Error on q{block[pos]}",
     "correction": "None" if pos is None else f"Apply X{block[pos]}"}
    for b, block in enumerate(BLOCKS)
    for s, pos in SYNDROME_TO_POSITION.items()
]

PHASE_FLIP_SYNDROME_TABLE = [
    {"syndrome": (0, 0), "meaning": "No phase error", "correction": "None"},
    {"syndrome": (1, 0), "meaning": "Phase error in block 0", "correction": "Apply Z0"},
    {"syndrome": (1, 1), "meaning": "Phase error in block 1", "correction": "Apply Z3"},
    {"syndrome": (0, 1), "meaning": "Phase error in block 2", "correction": "Apply Z6"},
]


# =============================================================================
# Encoding circuit
# =============================================================================

def phase_layer() -> List[GateOperation]:
    """Layer A: spread q0 over the block leaders and rotate them into the X basis."""
    ops = [GateOperation(Gate.H, (0,))]
    ops += [GateOperation(Gate.CNOT, (0, leader)) for leader in LEADERS[1:]]
    ops += [GateOperation(Gate.H, (leader,)) for leader in LEADERS]
    return ops


def bit_layer() -> List[GateOperation]:
    """Layer B: repetition-encode each block from its leader."""
    ops = []
    for leader, a, b in BLOCKS:
        ops.append(GateOperation(Gate.CNOT, (leader, a)))
        ops.append(GateOperation(Gate.CNOT, (leader, b)))
    return ops


def encoding_circuit() -> List[GateOperation]:
    return phase_layer() + bit_layer()


def decoding_circuit() -> List[GateOperation]:
    return list(reversed(encoding_circuit()))


def encode_shor(system: QuantumSystem):
    """Encode the value on q0 into the 9 data qubits."""
    system.apply_gates(phase_layer(), StepType.ENCODE)
    system.log_step(StepType.ENCODE, "Phase-flip protection: block leaders q0, q3, q6 in X basis")
    system.apply_gates(bit_layer(), StepType.ENCODE)
    system.log_step(StepType.ENCODE, "Encoding complete: 1 logical qubit → 9 physical qubits (Shor code)")


def decode_shor(system: QuantumSystem):
    """Exact reverse of ``encode_shor``."""
    system.apply_gates(list(reversed(bit_layer())), StepType.DECODE)
    system.apply_gates(list(reversed(phase_layer())), StepType.DECODE)
    system.log_step(StepType.DECODE, "Decoded from 9-qubit Shor code")


def shor_logical_state(alpha: complex = 1.0, beta: complex = 0.0,
                       num_qubits: int = NUM_DATA_QUBITS + 1) -> StateVector:
    """Noiseless encoding of α|0⟩ + β|1⟩, with the ancilla in |0⟩."""
    amps = np.zeros(1 << num_qubits, dtype=complex)
    amps[0] = alpha
    amps[1] = beta
    state = StateVector.from_amplitudes(amps, normalize=True)
    core.apply_gates(state, encoding_circuit())
    return state


# =============================================================================
# Syndrome extraction
# =============================================================================

def measure_x_parity(system: QuantumSystem, qubits: Sequence[int], role: str) -> int:
    """
    Measure X⊗...⊗X on data qubits through an ancilla prepared in |+⟩.

    Returns:
        0 for the +1 eigenvalue, 1 for -1
    """
    anc = system.allocate_ancilla(role)
    system.apply_gate(GateOperation(Gate.H, (anc,), label=f"H {role}"), StepType.MEASUREMENT)
    for q in qubits:
        system.apply_gate(
            GateOperation(Gate.CNOT, (anc, q), label=f"CNOT {role}→q{q} (syndrome)"),
            StepType.MEASUREMENT,
        )
    system.apply_gate(GateOperation(Gate.H, (anc,), label=f"H {role}"), StepType.MEASUREMENT)
    return system.measure_ancilla(role, f"Measure {role} (X⊗{len(qubits)})")


def measure_bit_flip_syndrome(system: QuantumSystem) -> Tuple[int, ...]:
    """Six Z-parity bits, two per block, via virtual ancillas a0-a5."""
    bits: List[int] = []
    for b, block in enumerate(BLOCKS):
        bits.extend(measure_syndrome_repetition(system, block, (f"a{2 * b}", f"a{2 * b + 1}")))
    return tuple(bits)


def measure_phase_flip_syndrome(system: QuantumSystem) -> Tuple[int, int]:
    """X⊗6 over blocks 0+1 (a6) and blocks 1+2 (a7)."""
    s1 = measure_x_parity(system, BLOCKS[0] + BLOCKS[1], "a6")
    s2 = measure_x_parity(system, BLOCKS[1] + BLOCKS[2], "a7")
    return s1, s2


def measure_syndrome_shor(system: QuantumSystem) -> Tuple[int, ...]:
    """Full 8-bit syndrome: 6 bit-flip bits followed by 2 phase-flip bits."""
    syndrome = measure_bit_flip_syndrome(system) + measure_phase_flip_syndrome(system)
    logger.debug("shor syndrome: %s", syndrome)
    return syndrome


def pauli_syndrome(pauli: str, qubit: int) -> Tuple[int, ...]:
    """
    Syndrome a single Pauli on one data qubit produces on a codeword.

    X flips the two Z-parity bits of its block position, Z flips the phase
    bits of its block, Y flips both and I flips nothing.
    """
    if not 0 <= qubit < NUM_DATA_QUBITS:
        raise IndexError(f"q{qubit} is not a Shor data qubit")
    block, position = divmod(qubit, 3)
    bits = [0] * 8
    if pauli in ("X", "Y"):
        bits[2 * block:2 * block + 2] = syndrome_flip(position)
    if pauli in ("Z", "Y"):
        bits[6:8] = syndrome_flip(block)
    return tuple(bits)


# =============================================================================
# Correction
# =============================================================================

def correct_bit_flip_errors(system: QuantumSystem, syndrome: Sequence[int],
                            reference: Optional[StateVector] = None) -> List[int]:
    """
    Apply per-block X corrections from the 6 bit-flip syndrome bits.

    Returns:
        Qubits that received an X
    """
    syndrome = tuple(int(s) for s in syndrome[:6])
    fidelity_before = system.fidelity_with(reference) if reference is not None else None
    corrected: List[int] = []
    decisions = []

    for b, block in enumerate(BLOCKS):
        pair = syndrome[2 * b], syndrome[2 * b + 1]
        position = SYNDROME_TO_POSITION[pair]
        if position is None:
            decisions.append((f"block {b}", f"syndrome {pair} → no error"))
            continue
        q = block[position]
        system.apply_gate(GateOperation(Gate.X, (q,), label=f"X{q} (bit correction)"),
                          StepType.CORRECTION, f"Correction: X on {system.label(q)}")
        corrected.append(q)
        decisions.append((f"block {b}", f"syndrome {pair} → apply X to q{q}"))

    details = CorrectionDetails(
        syndrome=syndrome,
        corrected_qubits=tuple(corrected),
        steps=tuple(decisions),
        fidelity_before=fidelity_before,
        fidelity_after=system.fidelity_with(reference) if reference is not None else None,
    )
    summary = (f"Bit-flip correction on qubits {corrected}" if corrected
               else "Bit-flip correction: no errors detected")
    system.log_step(StepType.CORRECTION, summary, correction_details=details)
    return corrected


def correct_phase_flip_errors(system: QuantumSystem, syndrome: Sequence[int],
                              reference: Optional[StateVector] = None) -> List[int]:
    """
    Apply a Z to the leader of the block the phase syndrome points at.

    All three qubits of a block share one phase, so a Z on the leader fixes
    a phase flip on any qubit of the block.

    Returns:
        The corrected leader, or an empty list
    """
    pair = (int(syndrome[0]), int(syndrome[1]))
    fidelity_before = system.fidelity_with(reference) if reference is not None else None
    block = PHASE_SYNDROME_TO_BLOCK[pair]
    corrected: List[int] = []

    if block is None:
        decision = f"syndrome {pair} → no phase error"
    else:
        leader = LEADERS[block]
        system.apply_gate(GateOperation(Gate.Z, (leader,), label=f"Z{leader} (phase correction)"),
                          StepType.CORRECTION, f"Correction: Z on {system.label(leader)}")
        corrected.append(leader)
        decision = f"syndrome {pair} → phase error in block {block}, apply Z to q{leader}"

    details = CorrectionDetails(
        syndrome=pair,
        corrected_qubits=tuple(corrected),
        steps=(("phase-flip", decision),),
        fidelity_before=fidelity_before,
        fidelity_after=system.fidelity_with(reference) if reference is not None else None,
    )
    summary = (f"Phase-flip correction on block {block}" if corrected
               else "Phase-flip correction: no errors detected")
    system.log_step(StepType.CORRECTION, summary, correction_details=details)
    return corrected


def correct_shor(system: QuantumSystem, syndrome: Sequence[int],
                 reference: Optional[StateVector] = None) -> Tuple[List[int], List[int]]:
    """Apply bit-flip then phase-flip corrections from an 8-bit syndrome."""
    bit_corrected = correct_bit_flip_errors(system, syndrome[:6], reference)
    phase_corrected = correct_phase_flip_errors(system, syndrome[6:8], reference)
    return bit_corrected, phase_corrected


@dataclass
class ShorCorrectionResult:
    bit_flip_syndrome: Tuple[int, ...]
    phase_flip_syndrome: Tuple[int, int]
    bit_corrected: List[int]
    phase_corrected: List[int]

    @property
    def syndrome(self) -> Tuple[int, ...]:
        return tuple(self.bit_flip_syndrome) + tuple(self.phase_flip_syndrome)

    @property
    def corrected_qubits(self) -> List[int]:
        return self.bit_corrected + self.phase_corrected


def measure_and_correct_shor(system: QuantumSystem,
                             reference: Optional[StateVector] = None) -> ShorCorrectionResult:
    """Measure the full syndrome and apply both corrections."""
    syndrome = measure_syndrome_shor(system)
    bit_corrected, phase_corrected = correct_shor(system, syndrome, reference)
    return ShorCorrectionResult(syndrome[:6], syndrome[6:8], bit_corrected, phase_corrected)


# =============================================================================
# Full cycle
# =============================================================================

@dataclass
class ShorCodeResult:
    system: QuantumSystem
    bit_flip_syndrome: Tuple[int, ...]
    phase_flip_syndrome: Tuple[int, int]
    error_detected: bool
    corrected_qubits: List[int]
    error_type: str


def run_shor_cycle(initial_state: str = "zero",
                   errors: Sequence[Tuple[int, str]] = (),
                   rng: Optional[np.random.Generator] = None,
                   seed: Optional[int] = None) -> ShorCodeResult:
    """
    Initialize, encode, inject the given errors, measure and correct.

    Returns:
        ShorCodeResult; error_type is "none", "bit-flip", "phase-flip" or "both"
    """
    system = create_shor_system(rng=rng, seed=seed)
    if initial_state == "one":
        system.initialize_logical_one()
    else:
        system.initialize_logical_zero()
    encode_shor(system)

    for qubit, pauli in errors:
        system.apply_error(pauli, qubit)

    result = measure_and_correct_shor(system)
    has_bit = bool(result.bit_corrected)
    has_phase = bool(result.phase_corrected)
    if has_bit and has_phase:
        error_type = "both"
    elif has_bit:
        error_type = "bit-flip"
    elif has_phase:
        error_type = "phase-flip"
    else:
        error_type = "none"

    return ShorCodeResult(
        system=system,
        bit_flip_syndrome=result.bit_flip_syndrome,
        phase_flip_syndrome=result.phase_flip_syndrome,
        error_detected=has_bit or has_phase,
        corrected_qubits=result.corrected_qubits,
        error_type=error_type,
    )
