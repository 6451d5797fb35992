"""
Quantum system with multi-qubit state management.

A ``QuantumSystem`` owns the live ``StateVector``, per-qubit metadata (label
and role), an append-only history of executed steps, and a pool of physical
ancilla qubits that syndrome circuits borrow under virtual role names.

Every mutation goes through this class so that the history holds a copy of
the state before and after each step; an external renderer replays the
history, and the simulator keeps cloned systems as undo snapshots.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import core
from .errors import AncillaNotResetError
from .gates import Gate, GateOperation
from .noise import GateErrorConfig, pick_pauli
from .state import StateVector

logger = logging.getLogger(__name__)

# P(|1⟩) below which an ancilla counts as reset.
ANCILLA_RESET_TOLERANCE = 1e-9


# =============================================================================
# Metadata and history records
# =============================================================================

class QubitRole(str, Enum):
    DATA = "data"
    ANCILLA = "ancilla"
    SYNDROME = "syndrome"


@dataclass(frozen=True)
class QubitInfo:
    index: int
    label: str
    role: QubitRole


class StepType(str, Enum):
    GATE = "gate"
    MEASUREMENT = "measurement"
    NOISE = "noise"
    GATE_ERROR = "gate-error"
    ENCODE = "encode"
    DECODE = "decode"
    CORRECTION = "correction"


@dataclass(frozen=True)
class GateErrorDetails:
    gate_name: str
    error_type: str
    qubit_index: int
    probability: float


@dataclass(frozen=True)
class CorrectionDetails:
    """
    What a correction step did.

    Attributes:
        syndrome: Syndrome bits the correction acted on
        corrected_qubits: Qubits that received a correcting gate
        steps: (name, description) per decoding decision, e.g. per block
        fidelity_before: Fidelity with the reference before correcting
        fidelity_after: Fidelity with the reference after correcting
    """
    syndrome: Tuple[int, ...]
    corrected_qubits: Tuple[int, ...]
    steps: Tuple[Tuple[str, str], ...] = ()
    fidelity_before: Optional[float] = None
    fidelity_after: Optional[float] = None


@dataclass
class QuantumStep:
    """One entry of the simulation history."""
    type: StepType
    description: str
    state_before: StateVector
    state_after: StateVector
    timestamp: int
    operation: Optional[GateOperation] = None
    measurement_result: Optional[int] = None
    qubit_index: Optional[int] = None
    gate_error_details: Optional[GateErrorDetails] = None
    correction_details: Optional[CorrectionDetails] = None

    def copy(self) -> "QuantumStep":
        """Copy with independent state vectors; the records themselves are immutable."""
        return replace(self, state_before=self.state_before.copy(),
                       state_after=self.state_after.copy())


# =============================================================================
# Ancilla pool
# =============================================================================

class AncillaPool:
    """
    Maps virtual ancilla roles onto a fixed set of physical qubits.

    A role is bound to a free physical ancilla by ``allocate`` and unbound by
    ``release``. Both check that the physical qubit is in |0⟩, so an ancilla
    that still carries entanglement from a previous use can never be handed
    out again.
    """

    def __init__(self, physical: Sequence[int]):
        self.physical_qubits: Tuple[int, ...] = tuple(physical)
        self._assigned: Dict[str, int] = {}

    def copy(self) -> "AncillaPool":
        pool = AncillaPool(self.physical_qubits)
        pool._assigned = dict(self._assigned)
        return pool

    @property
    def assigned(self) -> Dict[str, int]:
        return dict(self._assigned)

    def free(self) -> List[int]:
        used = set(self._assigned.values())
        return [q for q in self.physical_qubits if q not in used]

    def physical(self, role: str) -> int:
        return self._assigned[role]

    def allocate(self, role: str, state: StateVector) -> int:
        """
        Bind a virtual role to a free physical ancilla.

        Raises:
            AncillaNotResetError: If no ancilla is free, or the candidate is not in |0⟩
        """
        if role in self._assigned:
            raise AncillaNotResetError(f"Ancilla role {role!r} is already allocated")
        free = self.free()
        if not free:
            raise AncillaNotResetError(
                f"No free ancilla for role {role!r}; in use: {self._assigned}"
            )
        qubit = free[0]
        _require_zero(state, qubit, f"allocating {role!r}")
        self._assigned[role] = qubit
        return qubit

    def release(self, role: str, state: StateVector) -> int:
        """
        Unbind a role; its physical ancilla must already be back in |0⟩.

        Raises:
            AncillaNotResetError: If the ancilla was not reset
        """
        qubit = self._assigned[role]
        _require_zero(state, qubit, f"releasing {role!r}")
        del self._assigned[role]
        return qubit

    def clear(self):
        self._assigned.clear()


def _require_zero(state: StateVector, qubit: int, action: str):
    p1 = state.qubit_probability(qubit)
    if p1 > ANCILLA_RESET_TOLERANCE:
        raise AncillaNotResetError(
            f"Ancilla q{qubit} is not in |0⟩ when {action} (P(1)={p1:.3g})"
        )


# =============================================================================
# Quantum system
# =============================================================================

class QuantumSystem:
    """
    Main quantum system class for QEC simulation.

    Args:
        num_qubits: Number of physical qubits (data + ancillas)
        gate_error_config: Gate-error model applied by ``apply_gate``
        rng: Random generator for measurement and errors
        seed: Seed for a new generator when ``rng`` is not given
    """

    def __init__(self, num_qubits: int,
                 gate_error_config: Optional[GateErrorConfig] = None,
                 rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        self.state = StateVector(num_qubits)
        self.qubits: List[QubitInfo] = [
            QubitInfo(i, f"q{i}", QubitRole.DATA) for i in range(num_qubits)
        ]
        self.history: List[QuantumStep] = []
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.gate_error_config = gate_error_config
        self.ancillas = AncillaPool(())
        self._ancilla_labels: Dict[int, str] = {}
        self._step_counter = 0

    @property
    def num_qubits(self) -> int:
        return len(self.qubits)

    @property
    def step_counter(self) -> int:
        return self._step_counter

    # -------------------------------------------------------------------------
    # Qubit metadata
    # -------------------------------------------------------------------------

    def set_qubit_info(self, index: int, label: str, role: QubitRole):
        """Relabel a qubit and set its role."""
        if not 0 <= index < self.num_qubits:
            raise IndexError(f"Qubit index {index} out of range for {self.num_qubits} qubits")
        self.qubits[index] = QubitInfo(index, label, QubitRole(role))

    def label(self, index: int) -> str:
        if 0 <= index < self.num_qubits:
            return self.qubits[index].label
        return f"q{index}"

    def data_qubits(self) -> List[int]:
        return [q.index for q in self.qubits if q.role is QubitRole.DATA]

    def ancilla_qubits(self) -> List[int]:
        return [q.index for q in self.qubits if q.role is QubitRole.ANCILLA]

    def define_ancillas(self, indices: Sequence[int], prefix: str = "anc"):
        """Mark qubits as ancillas and make them the physical ancilla pool."""
        for i, q in enumerate(indices):
            self.set_qubit_info(q, f"{prefix}{i}", QubitRole.ANCILLA)
        self.ancillas = AncillaPool(indices)
        self._ancilla_labels = {q: f"{prefix}{i}" for i, q in enumerate(indices)}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self):
        """Reset to |0...0⟩ and clear the history."""
        self.state = StateVector(self.num_qubits)
        self.history = []
        self._step_counter = 0
        for role in list(self.ancillas.assigned):
            self._restore_ancilla_label(self.ancillas.physical(role))
        self.ancillas.clear()

    def clone(self) -> "QuantumSystem":
        """
        Deep copy of state, metadata, history and ancilla bookkeeping.

        The random generator is shared with the original.
        """
        new = QuantumSystem.__new__(QuantumSystem)
        new.state = self.state.copy()
        new.qubits = list(self.qubits)
        new.history = [step.copy() for step in self.history]
        new.rng = self.rng
        new.gate_error_config = self.gate_error_config
        new.ancillas = self.ancillas.copy()
        new._ancilla_labels = dict(self._ancilla_labels)
        new._step_counter = self._step_counter
        return new

    def set_gate_error_config(self, config: Optional[GateErrorConfig]):
        self.gate_error_config = config

    # -------------------------------------------------------------------------
    # Logical state preparation
    # -------------------------------------------------------------------------

    def _prepare(self, ops: Sequence[GateOperation], description: str):
        self.state = StateVector(self.num_qubits)
        before = self.state.copy()
        core.apply_gates(self.state, ops)
        self._record(StepType.ENCODE, description, before)

    def initialize_logical_zero(self):
        """Load |0⟩ on qubit 0 (all qubits |0⟩)."""
        self._prepare([], "Initialize to |0...0⟩")

    def initialize_logical_one(self):
        """Load |1⟩ on qubit 0."""
        self._prepare([GateOperation(Gate.X, (0,))], "Initialize to |1⟩ on data qubit")

    def initialize_logical_plus(self):
        """Load |+⟩ = (|0⟩ + |1⟩)/√2 on qubit 0."""
        self._prepare([GateOperation(Gate.H, (0,))], "Initialize to |+⟩ on data qubit")

    def initialize_logical_minus(self):
        """Load |−⟩ = (|0⟩ - |1⟩)/√2 on qubit 0."""
        self._prepare([GateOperation(Gate.X, (0,)), GateOperation(Gate.H, (0,))],
                      "Initialize to |−⟩ on data qubit")

    # -------------------------------------------------------------------------
    # Gates and errors
    # -------------------------------------------------------------------------

    def _record(self, step_type: StepType, description: str,
                before: Optional[StateVector] = None, **details) -> QuantumStep:
        step = QuantumStep(
            type=step_type,
            description=description,
            state_before=before if before is not None else self.state.copy(),
            state_after=self.state.copy(),
            timestamp=self._step_counter,
            **details,
        )
        self._step_counter += 1
        self.history.append(step)
        return step

    def apply_gate(self, op: GateOperation, step_type: StepType = StepType.GATE,
                   description: Optional[str] = None):
        """
        Apply a gate, log it, then inject gate errors if configured.

        Each target qubit of the gate independently receives at most one
        error; each error is logged as its own GATE_ERROR step.

        Args:
            op: Gate operation
            step_type: History type for the gate itself (GATE, ENCODE, ...)
            description: Override for the generated description
        """
        before = self.state.copy()
        core.apply_gate(self.state, op)
        if description is None:
            targets = ", ".join(self.label(q) for q in op.qubits)
            description = f"Apply {op.display_name} to {targets}"
        self._record(step_type, description, before, operation=op)
        self._inject_gate_errors(op)

    def apply_gates(self, ops: Sequence[GateOperation],
                    step_type: StepType = StepType.GATE):
        for op in ops:
            self.apply_gate(op, step_type)

    def _inject_gate_errors(self, op: GateOperation):
        cfg = self.gate_error_config
        if cfg is None or not cfg.active or not cfg.apply_to.matches(len(op.qubits)):
            return

        for q in op.qubits:
            if self.rng.random() >= cfg.probability:
                continue
            pauli = pick_pauli(cfg.type, self.rng)
            if pauli is None:
                continue
            error_op = GateOperation(pauli, (q,), label=f"{pauli}{q} (gate error)")
            before = self.state.copy()
            core.apply_gate(self.state, error_op)
            self._record(
                StepType.GATE_ERROR,
                f"Gate error: {pauli} on {self.label(q)} after {op.name}",
                before,
                operation=error_op,
                qubit_index=q,
                gate_error_details=GateErrorDetails(op.name, pauli, q, cfg.probability),
            )
            logger.debug("gate error %s on q%d after %s", pauli, q, op.name)

    def apply_error(self, pauli: str, qubit: int, step_type: StepType = StepType.NOISE,
                    description: Optional[str] = None, label: Optional[str] = None):
        """Apply a Pauli error as a single logged step, without gate-error injection."""
        op = GateOperation(pauli, (qubit,), label=label or f"{pauli}{qubit} (noise)")
        before = self.state.copy()
        core.apply_gate(self.state, op)
        self._record(step_type, description or f"{pauli} error on {self.label(qubit)}",
                     before, operation=op, qubit_index=qubit)

    def gate_error_count(self, since: int = 0) -> int:
        """Number of GATE_ERROR steps with timestamp >= since."""
        return sum(1 for s in self.history
                   if s.type is StepType.GATE_ERROR and s.timestamp >= since)

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def measure_qubit(self, qubit: int, description: Optional[str] = None) -> int:
        """Measure a qubit (destructive) and log the result."""
        before = self.state.copy()
        result = self.state.measure_qubit(qubit, self.rng)
        if description is None:
            description = f"Measure {self.label(qubit)}: result = {result}"
        self._record(StepType.MEASUREMENT, description, before,
                     measurement_result=result, qubit_index=qubit)
        return result

    def reset_qubit(self, qubit: int, measured: int):
        """
        Return a just-measured qubit to |0⟩ by applying X if it read 1.

        The reset is not a noisy gate: no gate errors are injected.
        """
        before = self.state.copy()
        op = None
        if measured:
            op = GateOperation(Gate.X, (qubit,), label=f"X{qubit} (reset)")
            core.apply_gate(self.state, op)
        self._record(StepType.MEASUREMENT, f"Reset {self.label(qubit)} to |0⟩",
                     before, operation=op, qubit_index=qubit)

    def measure_z_expectation(self, qubit: int) -> float:
        """⟨Z⟩ = P(0) - P(1), without collapsing the state."""
        return 1 - 2 * self.state.qubit_probability(qubit)

    # -------------------------------------------------------------------------
    # Ancillas
    # -------------------------------------------------------------------------

    def allocate_ancilla(self, role: str) -> int:
        """Borrow a physical ancilla (checked to be |0⟩) under a virtual role name."""
        qubit = self.ancillas.allocate(role, self.state)
        self.qubits[qubit] = replace(self.qubits[qubit], label=role)
        return qubit

    def release_ancilla(self, role: str) -> int:
        """Return an ancilla to the pool; it must have been reset."""
        qubit = self.ancillas.release(role, self.state)
        self._restore_ancilla_label(qubit)
        return qubit

    def _restore_ancilla_label(self, qubit: int):
        if qubit in self._ancilla_labels:
            self.qubits[qubit] = replace(self.qubits[qubit], label=self._ancilla_labels[qubit])

    def measure_ancilla(self, role: str, description: Optional[str] = None) -> int:
        """Measure an allocated ancilla, reset it, and release its role."""
        qubit = self.ancillas.physical(role)
        result = self.measure_qubit(qubit, description)
        self.reset_qubit(qubit, result)
        self.release_ancilla(role)
        return result

    # -------------------------------------------------------------------------
    # Logging and queries
    # -------------------------------------------------------------------------

    def log_step(self, step_type: StepType, description: str, **details) -> QuantumStep:
        """Record a step without changing the state."""
        return self._record(StepType(step_type), description, **details)

    def fidelity_with(self, target: StateVector) -> float:
        return self.state.fidelity(target)

    def state_string(self) -> str:
        return self.state.to_string()

    def bloch_coordinates(self) -> Dict[int, Tuple[float, float, float]]:
        """Bloch vector of every qubit."""
        return {i: self.state.bloch_coordinates(i) for i in range(self.num_qubits)}


# =============================================================================
# Factories
# =============================================================================

def create_repetition_system(gate_error_config: Optional[GateErrorConfig] = None,
                             rng: Optional[np.random.Generator] = None,
                             seed: Optional[int] = None) -> QuantumSystem:
    """5 qubits: data q0-q2 and two dedicated ancillas (q3, q4)."""
    system = QuantumSystem(5, gate_error_config, rng=rng, seed=seed)
    for i in range(3):
        system.set_qubit_info(i, f"q{i}", QubitRole.DATA)
    system.define_ancillas([3, 4])
    return system


def create_shor_system(gate_error_config: Optional[GateErrorConfig] = None,
                       rng: Optional[np.random.Generator] = None,
                       seed: Optional[int] = None) -> QuantumSystem:
    """10 qubits: data q0-q8 and one physical ancilla (q9) reused for every syndrome bit."""
    system = QuantumSystem(10, gate_error_config, rng=rng, seed=seed)
    for i in range(9):
        system.set_qubit_info(i, f"q{i}", QubitRole.DATA)
    system.define_ancillas([9])
    return system
