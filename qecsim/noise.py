"""
Noise models for quantum error simulation.

Two kinds of error are modelled:

* ambient noise, applied between encoding and syndrome extraction by
  ``apply_noise``. It only ever touches qubits with the DATA role.
* gate errors, configured by ``GateErrorConfig`` and injected by
  ``QuantumSystem.apply_gate`` right after each gate.

All randomness comes from a ``numpy.random.Generator``; by default the
system's own generator is used so a seeded system gives reproducible noise.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

import numpy as np

from .gates import PAULI_GATES

if TYPE_CHECKING:
    from .system import QuantumSystem

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

class NoiseType(str, Enum):
    BIT_FLIP = "bit-flip"
    PHASE_FLIP = "phase-flip"
    BIT_PHASE_FLIP = "bit-phase-flip"
    DEPOLARIZING = "depolarizing"
    NONE = "none"

    @property
    def pauli(self) -> Optional[str]:
        """Fixed Pauli of this channel, or None for depolarizing/none."""
        return _FIXED_PAULI.get(self)


_FIXED_PAULI = {
    NoiseType.BIT_FLIP: "X",
    NoiseType.PHASE_FLIP: "Z",
    NoiseType.BIT_PHASE_FLIP: "Y",
}


class NoiseMode(str, Enum):
    PROBABILITY = "probability"
    EXACT_COUNT = "exact-count"


class GateErrorScope(str, Enum):
    ALL = "all"
    SINGLE_QUBIT = "single-qubit"
    TWO_QUBIT = "two-qubit"

    def matches(self, qubit_count: int) -> bool:
        if self is GateErrorScope.SINGLE_QUBIT:
            return qubit_count == 1
        if self is GateErrorScope.TWO_QUBIT:
            return qubit_count >= 2
        return True


def _check_probability(p: float):
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"probability must be in [0, 1], got {p}")


@dataclass(frozen=True)
class NoiseConfig:
    """
    Ambient noise applied once per cycle.

    Attributes:
        type: Error channel
        probability: Per-qubit error probability (probability mode)
        mode: PROBABILITY (independent per qubit) or EXACT_COUNT
        exact_count: Number of qubits to hit in EXACT_COUNT mode
        target_qubits: Qubits to consider; None means every qubit
    """
    type: NoiseType = NoiseType.NONE
    probability: float = 0.0
    mode: NoiseMode = NoiseMode.PROBABILITY
    exact_count: Optional[int] = None
    target_qubits: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "type", NoiseType(self.type))
        object.__setattr__(self, "mode", NoiseMode(self.mode))
        object.__setattr__(self, "probability", float(self.probability))
        _check_probability(self.probability)
        if self.exact_count is not None and self.exact_count < 0:
            raise ValueError(f"exact_count must be >= 0, got {self.exact_count}")
        if self.target_qubits is not None:
            object.__setattr__(self, "target_qubits", tuple(int(q) for q in self.target_qubits))


@dataclass(frozen=True)
class GateErrorConfig:
    """
    Stochastic Pauli errors injected after gates.

    Attributes:
        enabled: Master switch
        type: Error channel; depolarizing picks X, Y or Z uniformly
        probability: Error probability per target qubit of each gate
        apply_to: Which gates trigger injection
    """
    enabled: bool = False
    type: NoiseType = NoiseType.DEPOLARIZING
    probability: float = 0.0
    apply_to: GateErrorScope = GateErrorScope.ALL

    def __post_init__(self):
        object.__setattr__(self, "type", NoiseType(self.type))
        object.__setattr__(self, "apply_to", GateErrorScope(self.apply_to))
        object.__setattr__(self, "probability", float(self.probability))
        _check_probability(self.probability)

    @property
    def active(self) -> bool:
        return self.enabled and self.probability > 0 and self.type is not NoiseType.NONE


DISABLED_GATE_ERRORS = GateErrorConfig()


@dataclass(frozen=True)
class NoiseEvent:
    """Outcome of noise on one requested qubit; error_type is X, Y, Z or none."""
    qubit_index: int
    error_type: str
    applied: bool


# =============================================================================
# Pauli sampling
# =============================================================================

def pick_depolarizing_pauli(rng: np.random.Generator) -> str:
    """Uniform choice among X, Y and Z."""
    r = rng.random()
    if r < 1 / 3:
        return "X"
    if r < 2 / 3:
        return "Y"
    return "Z"


def pick_pauli(noise_type: NoiseType, rng: np.random.Generator) -> Optional[str]:
    """Pauli for a channel that has fired, or None for NoiseType.NONE."""
    if noise_type is NoiseType.DEPOLARIZING:
        return pick_depolarizing_pauli(rng)
    return noise_type.pauli


# =============================================================================
# Single-qubit channels
# =============================================================================

def _apply_with_probability(system: "QuantumSystem", pauli: str, qubit: int,
                            probability: float, description: str,
                            rng: Optional[np.random.Generator]) -> bool:
    rng = rng if rng is not None else system.rng
    if rng.random() < probability:
        system.apply_error(pauli, qubit, description=description)
        return True
    return False


def apply_bit_flip(system: "QuantumSystem", qubit: int, probability: float,
                   rng: Optional[np.random.Generator] = None) -> bool:
    """Apply X to the qubit with the given probability; return whether it fired."""
    return _apply_with_probability(system, "X", qubit, probability,
                                   f"Bit-flip error on qubit {qubit}", rng)


def apply_phase_flip(system: "QuantumSystem", qubit: int, probability: float,
                     rng: Optional[np.random.Generator] = None) -> bool:
    """Apply Z to the qubit with the given probability; return whether it fired."""
    return _apply_with_probability(system, "Z", qubit, probability,
                                   f"Phase-flip error on qubit {qubit}", rng)


def apply_bit_phase_flip(system: "QuantumSystem", qubit: int, probability: float,
                         rng: Optional[np.random.Generator] = None) -> bool:
    """Apply Y to the qubit with the given probability; return whether it fired."""
    return _apply_with_probability(system, "Y", qubit, probability,
                                   f"Bit-phase-flip (Y) error on qubit {qubit}", rng)


def apply_depolarizing(system: "QuantumSystem", qubit: int, probability: float,
                       rng: Optional[np.random.Generator] = None) -> str:
    """
    Depolarizing channel on one qubit.

    With probability p/3 each, apply X, Y or Z; otherwise do nothing. A single
    uniform draw decides both whether and which error occurs.

    Returns:
        "X", "Y", "Z" or "none"
    """
    rng = rng if rng is not None else system.rng
    r = rng.random()
    if r < probability / 3:
        pauli = "X"
    elif r < 2 * probability / 3:
        pauli = "Y"
    elif r < probability:
        pauli = "Z"
    else:
        return "none"
    system.apply_error(pauli, qubit, description=f"Depolarizing {pauli} error on qubit {qubit}")
    return pauli


def _apply_channel(system: "QuantumSystem", noise_type: NoiseType, qubit: int,
                   probability: float, rng: np.random.Generator) -> str:
    if noise_type is NoiseType.DEPOLARIZING:
        return apply_depolarizing(system, qubit, probability, rng)
    channel = {
        NoiseType.BIT_FLIP: apply_bit_flip,
        NoiseType.PHASE_FLIP: apply_phase_flip,
        NoiseType.BIT_PHASE_FLIP: apply_bit_phase_flip,
    }[noise_type]
    return noise_type.pauli if channel(system, qubit, probability, rng) else "none"


# =============================================================================
# Noise over a whole system
# =============================================================================

def apply_noise(system: "QuantumSystem", config: NoiseConfig,
                rng: Optional[np.random.Generator] = None) -> List[NoiseEvent]:
    """
    Apply ambient noise to the data qubits of a system.

    In probability mode each data qubit independently suffers an error with
    ``config.probability``. In exact-count mode the requested data qubits are
    shuffled and the first ``min(exact_count, len(data))`` each get a forced
    error. Qubits that are not DATA are never touched.

    Args:
        system: System to mutate
        config: Noise configuration
        rng: Random generator; defaults to ``system.rng``

    Returns:
        One NoiseEvent per requested qubit, in request order
    """
    rng = rng if rng is not None else system.rng
    requested = list(config.target_qubits) if config.target_qubits is not None \
        else list(range(system.num_qubits))
    data = set(system.data_qubits())
    eligible = [q for q in requested if q in data]

    if config.type is NoiseType.NONE:
        return [NoiseEvent(q, "none", False) for q in requested]

    outcomes = {}
    if config.mode is NoiseMode.EXACT_COUNT and config.exact_count is not None:
        count = min(config.exact_count, len(eligible))
        chosen = set(int(q) for q in rng.permutation(eligible)[:count]) if count else set()
        for q in eligible:
            if q in chosen:
                outcomes[q] = _apply_channel(system, config.type, q, 1.0, rng)
        logger.debug("exact-count noise hit qubits %s", sorted(chosen))
    else:
        for q in eligible:
            outcomes[q] = _apply_channel(system, config.type, q, config.probability, rng)

    events = []
    for q in requested:
        error = outcomes.get(q, "none")
        events.append(NoiseEvent(q, error, error != "none"))
    logger.debug("noise applied: %d of %d qubits hit",
                 sum(e.applied for e in events), len(events))
    return events


def inject_error(system: "QuantumSystem", qubit: int, error_type: str):
    """Apply a specific Pauli error to a specific qubit (manual injection)."""
    if error_type not in {g.value for g in PAULI_GATES}:
        raise ValueError(f"error_type must be X, Y or Z, got {error_type!r}")
    system.apply_error(error_type, qubit,
                       description=f"Manually injected {error_type} error on qubit {qubit}",
                       label=f"{error_type}{qubit} (injected)")


def inject_errors(system: "QuantumSystem", errors: Sequence[Tuple[int, str]]):
    """Apply several (qubit, pauli) errors in order."""
    for qubit, error_type in errors:
        inject_error(system, qubit, error_type)


# =============================================================================
# Theoretical logical error rates
# =============================================================================

def repetition_logical_error_rate(p: float) -> float:
    """
    Logical error rate of the 3-qubit repetition code under bit-flip noise.

    p_L = 3p²(1-p) + p³, the probability of two or more flips among three.
    """
    return 3 * p * p * (1 - p) + p * p * p


def shor_logical_error_rate(p: float) -> float:
    """
    Approximate logical error rate of the Shor code: p²(1 + 2p).

    This is a simplified reference curve, not a derived bound.
    """
    return p * p * (1 + 2 * p)


def noise_description(config: NoiseConfig) -> str:
    """One-line plain-text summary of a noise configuration."""
    if config.type is NoiseType.NONE:
        return "No noise"

    targets = ("qubits " + ", ".join(str(q) for q in config.target_qubits)
               if config.target_qubits is not None else "all qubits")
    names = {
        NoiseType.BIT_FLIP: "Bit-flip (X) noise",
        NoiseType.PHASE_FLIP: "Phase-flip (Z) noise",
        NoiseType.BIT_PHASE_FLIP: "Bit-phase-flip (Y) noise",
        NoiseType.DEPOLARIZING: "Depolarizing noise",
    }
    if config.mode is NoiseMode.EXACT_COUNT and config.exact_count is not None:
        return f"{names[config.type]}: exactly {config.exact_count} error(s) on {targets}"
    return f"{names[config.type]} with p={config.probability * 100:.1f}% on {targets}"
