"""
QEC simulator: drives one logical qubit through a full error-correction cycle.

Phases:
    init → encode → noise → syndrome → correction → (decode) → complete

Each command (``initialize``, ``encode``, ``apply_noise``, ``measure_syndrome``,
``correct``, ``decode``) performs one phase on the underlying ``QuantumSystem``.
After a command the simulator may store a deep clone of its state as a
snapshot; ``step_backward`` and ``go_to_step`` restore snapshots instead of
recomputing anything. Which commands are captured is decided by a
``SnapshotPolicy``.

Batch helpers at the bottom of the module run many independent cycles to
estimate logical error rates.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import core
from . import noise
from .errors import PhaseOrderError, UnsupportedCustomGateError
from .gates import PAULI_GATES, Gate, GateOperation
from .noise import (
    DISABLED_GATE_ERRORS,
    GateErrorConfig,
    GateErrorScope,
    NoiseConfig,
    NoiseEvent,
    NoiseType,
)
from .repetition import (
    DATA_QUBITS,
    correct_error_repetition,
    decode_repetition,
    encode_repetition,
    measure_syndrome_repetition,
    syndrome_flip,
)
from .shor import (
    correct_shor,
    decode_shor,
    encode_shor,
    measure_syndrome_shor,
    pauli_syndrome,
)
from .state import StateVector
from .system import (
    QuantumStep,
    QuantumSystem,
    StepType,
    create_repetition_system,
    create_shor_system,
)
from .utils import xor_bits

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

class CodeType(str, Enum):
    REPETITION = "repetition"
    SHOR = "shor"


class LogicalState(str, Enum):
    ZERO = "zero"
    ONE = "one"
    PLUS = "plus"
    MINUS = "minus"


class Phase(str, Enum):
    INIT = "init"
    ENCODE = "encode"
    NOISE = "noise"
    SYNDROME = "syndrome"
    CORRECTION = "correction"
    DECODE = "decode"
    COMPLETE = "complete"


_NEXT_PHASE = {
    Phase.INIT: Phase.ENCODE,
    Phase.ENCODE: Phase.NOISE,
    Phase.NOISE: Phase.SYNDROME,
    Phase.SYNDROME: Phase.CORRECTION,
    Phase.CORRECTION: Phase.COMPLETE,
    Phase.DECODE: Phase.COMPLETE,
    Phase.COMPLETE: Phase.COMPLETE,
}


def next_phase(phase: Phase, decode: bool = False) -> Phase:
    """
    The phase that follows ``phase``.

    Interactive stepping goes from correction straight to complete; with
    ``decode=True`` it passes through the decode phase first. Complete is
    terminal and maps to itself.
    """
    phase = Phase(phase)
    if decode and phase is Phase.CORRECTION:
        return Phase.DECODE
    return _NEXT_PHASE[phase]


@dataclass(frozen=True)
class SnapshotPolicy:
    """
    When the simulator stores an undo snapshot.

    Attributes:
        enabled: Master switch; when off, step_backward/go_to_step have nothing to restore
        interval: Capture every ``interval``-th command; phase changes are always captured
    """
    enabled: bool = True
    interval: int = 1

    def __post_init__(self):
        if self.interval < 1:
            raise ValueError(f"interval must be >= 1, got {self.interval}")

    def should_capture(self, pending: int, phase_boundary: bool) -> bool:
        """Whether to capture after ``pending`` uncaptured commands."""
        if not self.enabled:
            return False
        return phase_boundary or pending >= self.interval


@dataclass(frozen=True)
class SimulatorConfig:
    code_type: CodeType = CodeType.REPETITION
    initial_state: LogicalState = LogicalState.ZERO
    noise_config: NoiseConfig = field(default_factory=NoiseConfig)
    gate_error_config: Optional[GateErrorConfig] = None
    snapshot_policy: SnapshotPolicy = field(default_factory=SnapshotPolicy)

    def __post_init__(self):
        object.__setattr__(self, "code_type", CodeType(self.code_type))
        object.__setattr__(self, "initial_state", LogicalState(self.initial_state))


@dataclass
class CustomGateStep:
    """
    A user-placed gate with its own gate-error model.

    Attributes:
        op: The intentional gate
        error_probability: Error probability for this gate only; 0 disables errors
        error_type: Error channel used when the gate errs
        apply_to: Scope filter for the per-gate config
    """
    op: GateOperation
    error_probability: float = 0.0
    error_type: NoiseType = NoiseType.DEPOLARIZING
    apply_to: GateErrorScope = GateErrorScope.ALL

    def gate_error_config(self) -> GateErrorConfig:
        if self.error_probability <= 0:
            return DISABLED_GATE_ERRORS
        return GateErrorConfig(enabled=True, type=self.error_type,
                               probability=self.error_probability, apply_to=self.apply_to)


@dataclass
class SimulatorState:
    """Everything a snapshot has to restore."""
    system: QuantumSystem
    phase: Phase
    config: SimulatorConfig
    noise_events: List[NoiseEvent] = field(default_factory=list)
    syndrome: Optional[Tuple[int, ...]] = None
    corrected_qubits: List[int] = field(default_factory=list)
    step_index: int = 0
    initialized: bool = False
    encoded_at: Optional[int] = None
    custom_ops: List[GateOperation] = field(default_factory=list)

    def clone(self) -> "SimulatorState":
        return replace(
            self,
            system=self.system.clone(),
            noise_events=list(self.noise_events),
            corrected_qubits=list(self.corrected_qubits),
            custom_ops=list(self.custom_ops),
        )


@dataclass
class SimulationResult:
    system: QuantumSystem
    initial_logical_state: LogicalState
    final_fidelity: float
    error_detected: bool
    errors_applied: List[NoiseEvent]
    correction_applied: bool
    steps: List[QuantumStep]
    syndrome: Tuple[int, ...]


@dataclass
class CustomCircuitResult:
    measured_syndrome: Tuple[int, ...]
    expected_syndrome: Tuple[int, ...]
    residual_syndrome: Tuple[int, ...]
    corrected_qubits: List[int]
    fidelity: float


# =============================================================================
# Code-specific helpers
# =============================================================================

def _create_system(config: SimulatorConfig,
                   rng: Optional[np.random.Generator] = None) -> QuantumSystem:
    if config.code_type is CodeType.REPETITION:
        return create_repetition_system(config.gate_error_config, rng=rng)
    return create_shor_system(config.gate_error_config, rng=rng)


def _initialize(system: QuantumSystem, state: LogicalState):
    {
        LogicalState.ZERO: system.initialize_logical_zero,
        LogicalState.ONE: system.initialize_logical_one,
        LogicalState.PLUS: system.initialize_logical_plus,
        LogicalState.MINUS: system.initialize_logical_minus,
    }[state]()


def _encode(system: QuantumSystem, code_type: CodeType):
    if code_type is CodeType.REPETITION:
        encode_repetition(system)
    else:
        encode_shor(system)


def initial_state_vector(code_type: CodeType, logical: LogicalState) -> StateVector:
    """The prepared but unencoded state: the logical value on q0, all else |0⟩."""
    system = _create_system(SimulatorConfig(code_type, logical))
    _initialize(system, LogicalState(logical))
    return system.state.copy()


def reference_state(code_type: CodeType, logical: LogicalState) -> StateVector:
    """Noiseless codeword for a logical state, ancillas in |0⟩."""
    code_type = CodeType(code_type)
    system = _create_system(SimulatorConfig(code_type, logical))
    _initialize(system, LogicalState(logical))
    _encode(system, code_type)
    return system.state.copy()


def flips_basis_state(op: GateOperation) -> bool:
    """
    True if the single-qubit gate maps |0⟩ to |1⟩ with probability >= 1/2.

    Holds for X, Y and H, and for Rx/Ry with sin²(θ/2) >= 1/2.
    """
    return bool(abs(op.matrix()[1, 0]) ** 2 >= 0.5 - 1e-12)


def is_pauli(op: GateOperation) -> bool:
    return op.gate is Gate.I or op.gate in PAULI_GATES


def expected_syndrome(code_type: CodeType, ops: Sequence[GateOperation]) -> Tuple[int, ...]:
    """
    Syndrome the intentional gates alone would produce.

    For the repetition code every basis-flipping gate toggles the two parity
    bits of its qubit. For the Shor code each Pauli contributes its
    ``pauli_syndrome``; other gates leave the syndrome random and are rejected.

    Raises:
        UnsupportedCustomGateError: For a non-Pauli gate on the Shor code
    """
    if CodeType(code_type) is CodeType.SHOR:
        syndrome: Tuple[int, ...] = (0,) * 8
        for op in ops:
            if not is_pauli(op):
                raise UnsupportedCustomGateError(
                    f"Shor custom circuits support I, X, Y and Z only, got {op.name}"
                )
            syndrome = xor_bits(syndrome, pauli_syndrome(op.name, op.qubits[0]))
        return syndrome
    syndrome = (0, 0)
    for op in ops:
        if flips_basis_state(op):
            syndrome = xor_bits(syndrome, syndrome_flip(DATA_QUBITS.index(op.qubits[0])))
    return syndrome


# =============================================================================
# Simulator
# =============================================================================

class QECSimulator:
    """
    Phase-sequenced QEC simulator with snapshot-based replay.

    Args:
        config: Code, logical state, noise and snapshot settings
        rng: Random generator shared with the underlying system
        seed: Seed for a new generator when ``rng`` is not given
    """

    def __init__(self, config: Optional[SimulatorConfig] = None,
                 rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self._start(config if config is not None else SimulatorConfig())

    def _start(self, config: SimulatorConfig):
        self.state = SimulatorState(system=_create_system(config, self.rng),
                                    phase=Phase.INIT, config=config)
        self.snapshots: List[SimulatorState] = []
        self._pending = 0
        if config.snapshot_policy.enabled:
            self._save_snapshot()

    @property
    def config(self) -> SimulatorConfig:
        return self.state.config

    @property
    def system(self) -> QuantumSystem:
        return self.state.system

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def _save_snapshot(self):
        self.state.step_index = len(self.snapshots)
        self.snapshots.append(self.state.clone())
        self._pending = 0
        logger.debug("snapshot %d saved (phase %s)", self.state.step_index, self.state.phase.value)

    def _checkpoint(self, phase: Optional[Phase] = None):
        """Enter ``phase`` (if given) and let the policy decide on a snapshot."""
        boundary = phase is not None and phase is not self.state.phase
        if phase is not None:
            if boundary:
                logger.info("phase %s → %s", self.state.phase.value, phase.value)
            self.state.phase = phase
        self._pending += 1
        if self.config.snapshot_policy.should_capture(self._pending, boundary):
            self._save_snapshot()

    def _restore(self, index: int):
        self.state = self.snapshots[index].clone()
        self.state.step_index = index
        self._pending = 0

    def step_backward(self) -> bool:
        """Restore the previous snapshot; False if there is none."""
        if self.state.step_index > 0 and self.snapshots:
            self._restore(self.state.step_index - 1)
            return True
        return False

    def go_to_step(self, index: int) -> bool:
        """Restore snapshot ``index``; False if it does not exist."""
        if 0 <= index < len(self.snapshots):
            self._restore(index)
            return True
        return False

    def snapshot_count(self) -> int:
        return len(self.snapshots)

    def current_snapshot_index(self) -> int:
        return self.state.step_index

    def reset(self, config: Optional[SimulatorConfig] = None):
        """Start over with a fresh system, optionally with a new configuration."""
        self._start(config if config is not None else self.config)

    # -------------------------------------------------------------------------
    # Phase commands
    # -------------------------------------------------------------------------

    def initialize(self):
        """Load the configured logical state onto q0."""
        _initialize(self.system, self.config.initial_state)
        self.state.initialized = True
        self._checkpoint(Phase.INIT)

    def encode(self):
        _encode(self.system, self.config.code_type)
        self.state.encoded_at = self.system.step_counter
        self._checkpoint(Phase.ENCODE)

    def apply_noise(self) -> List[NoiseEvent]:
        """Apply the configured ambient noise to the data qubits."""
        system, config = self.system, self.config
        events = noise.apply_noise(system, config.noise_config)
        self.state.noise_events = events

        applied = [e for e in events if e.applied]
        if not applied and config.noise_config.type is not NoiseType.NONE:
            system.log_step(StepType.NOISE, "No errors occurred (probabilistic)")
        elif len(applied) > 1:
            verdict = ("exceeds" if config.code_type is CodeType.REPETITION
                       else "may exceed")
            system.log_step(StepType.NOISE,
                            f"{len(applied)} errors applied - {verdict} correction capability")
        logger.info("noise: %d error(s) applied (%s)", len(applied),
                    noise.noise_description(config.noise_config))
        self._checkpoint(Phase.NOISE)
        return events

    def inject_error(self, qubit: int, error_type: str):
        """
        Apply a chosen Pauli to a chosen data qubit and record it as a noise event.

        Raises:
            ValueError: If the qubit is not a data qubit
        """
        if qubit not in self.system.data_qubits():
            raise ValueError(f"Errors can only be injected on data qubits, got q{qubit}")
        noise.inject_error(self.system, qubit, error_type)
        self.state.noise_events.append(NoiseEvent(qubit, error_type, True))
        self._checkpoint(Phase.NOISE)

    def _measure(self) -> Tuple[int, ...]:
        if self.config.code_type is CodeType.REPETITION:
            return measure_syndrome_repetition(self.system)
        return measure_syndrome_shor(self.system)

    def measure_syndrome(self) -> Tuple[int, ...]:
        syndrome = self._measure()
        self.state.syndrome = syndrome
        logger.info("syndrome measured: %s", syndrome)
        self._checkpoint(Phase.SYNDROME)
        return syndrome

    def _apply_correction(self, syndrome: Tuple[int, ...], reference: StateVector) -> List[int]:
        if self.config.code_type is CodeType.REPETITION:
            corrected = correct_error_repetition(self.system, syndrome, reference=reference)
            return [] if corrected is None else [corrected]
        bit_corrected, phase_corrected = correct_shor(self.system, syndrome, reference)
        return bit_corrected + phase_corrected

    def actual_error_count(self) -> int:
        """Applied noise events plus gate errors since encoding finished."""
        since = self.state.encoded_at if self.state.encoded_at is not None else 0
        applied = sum(1 for e in self.state.noise_events if e.applied)
        return applied + self.system.gate_error_count(since=since)

    def correct(self) -> List[int]:
        """
        Apply the correction indicated by the last measured syndrome.

        When two or more errors actually occurred, a warning step is logged
        before correcting: an all-zero syndrome means the errors formed an
        undetectable logical error, anything else may be a miscorrection.

        Raises:
            PhaseOrderError: If no syndrome has been measured
        """
        syndrome = self.state.syndrome
        if syndrome is None:
            raise PhaseOrderError("correct() called before measure_syndrome()")

        errors = self.actual_error_count()
        if errors >= 2:
            if not any(syndrome):
                message = (f"Logical error: {errors} errors caused an undetectable "
                           f"change of the logical state")
            else:
                message = (f"Possible miscorrection: {errors} errors exceed the code's "
                           f"capability (only 1 error is corrected)")
            self.system.log_step(StepType.CORRECTION, message)
            logger.info(message)

        corrected = self._apply_correction(syndrome, self.target_state())
        self.state.corrected_qubits = corrected
        logger.info("correction applied to qubits %s", corrected)
        self._checkpoint(Phase.CORRECTION)
        return corrected

    def decode(self):
        if self.config.code_type is CodeType.REPETITION:
            decode_repetition(self.system)
        else:
            decode_shor(self.system)
        self._checkpoint(Phase.DECODE)

    def step_forward(self) -> bool:
        """Advance by one phase; False once complete."""
        phase = self.state.phase
        if phase is Phase.COMPLETE:
            return False

        commands: Dict[Phase, Callable] = {
            Phase.ENCODE: self._initialize_and_encode,
            Phase.NOISE: self.apply_noise,
            Phase.SYNDROME: self.measure_syndrome,
            Phase.CORRECTION: self.correct,
            Phase.COMPLETE: lambda: self._checkpoint(Phase.COMPLETE),
        }
        commands[next_phase(phase)]()
        return True

    def _initialize_and_encode(self):
        if not self.state.initialized:
            self.initialize()
        self.encode()

    # -------------------------------------------------------------------------
    # Custom circuits
    # -------------------------------------------------------------------------

    def apply_custom_gate(self, step: CustomGateStep):
        """Apply one user gate with its own gate-error model, then restore the configured one."""
        self._check_custom_step(step)
        system = self.system
        original = system.gate_error_config
        system.set_gate_error_config(step.gate_error_config())
        try:
            system.apply_gate(step.op)
        finally:
            system.set_gate_error_config(original)
        self.state.custom_ops.append(step.op)
        self._checkpoint()

    def _check_custom_step(self, step: CustomGateStep):
        op = step.op
        if op.gate.arity != 1:
            raise UnsupportedCustomGateError(
                f"Custom circuits support single-qubit gates only, got {op.name} on {op.qubits}"
            )
        if op.qubits[0] not in self.system.data_qubits():
            raise UnsupportedCustomGateError(
                f"Custom gate {op.name} targets q{op.qubits[0]}, which is not a data qubit"
            )
        if self.config.code_type is CodeType.SHOR and not is_pauli(op):
            raise UnsupportedCustomGateError(
                f"Shor custom circuits support I, X, Y and Z only, got {op.name}"
            )

    def apply_custom_circuit(self, plan: Sequence[CustomGateStep]) -> CustomCircuitResult:
        """
        Run user gates, then measure and correct only the unintended part of the syndrome.

        The syndrome expected from every intentional gate applied so far is
        XOR-ed out of the measured one, and the residual drives correction.
        Fidelity is taken against the reference codeword with the intentional
        gates applied.

        Raises:
            UnsupportedCustomGateError: If a gate is multi-qubit or touches a
                non-data qubit, or is not a Pauli on the Shor code; nothing is
                applied in that case
        """
        for step in plan:
            self._check_custom_step(step)

        for step in plan:
            self.apply_custom_gate(step)

        code_type = self.config.code_type
        expected = expected_syndrome(code_type, self.state.custom_ops)
        measured = self._measure()
        residual = xor_bits(measured, expected)
        self.state.syndrome = measured
        self.system.log_step(StepType.MEASUREMENT,
                             f"Syndrome measured {measured}, expected {expected}, residual {residual}")

        target = self.target_state()
        self.state.corrected_qubits = self._apply_correction(residual, target)
        self._checkpoint(Phase.CORRECTION)

        fidelity = self.system.fidelity_with(target)
        self.system.log_step(StepType.CORRECTION,
                             f"Fidelity with target state: {fidelity * 100:.2f}%")
        logger.info("custom circuit of %d gate(s): fidelity %.4f", len(plan), fidelity)
        self._checkpoint(Phase.COMPLETE)

        return CustomCircuitResult(
            measured_syndrome=measured,
            expected_syndrome=expected,
            residual_syndrome=residual,
            corrected_qubits=list(self.state.corrected_qubits),
            fidelity=fidelity,
        )

    # -------------------------------------------------------------------------
    # Full cycle
    # -------------------------------------------------------------------------

    def run_full_cycle(self) -> SimulationResult:
        """
        initialize → encode → noise → syndrome → correct → decode.

        The final fidelity compares the decoded state with the prepared,
        unencoded logical state.
        """
        self.initialize()
        self.encode()
        errors_applied = self.apply_noise()
        self.measure_syndrome()
        corrected = self.correct()
        self.decode()

        reference = initial_state_vector(self.config.code_type, self.config.initial_state)
        final_fidelity = self.system.fidelity_with(reference)
        self._checkpoint(Phase.COMPLETE)

        syndrome = self.state.syndrome
        return SimulationResult(
            system=self.system,
            initial_logical_state=self.config.initial_state,
            final_fidelity=final_fidelity,
            error_detected=any(syndrome),
            errors_applied=errors_applied,
            correction_applied=bool(corrected),
            steps=self.system.history,
            syndrome=syndrome,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_state(self) -> SimulatorState:
        return self.state

    def get_phase(self) -> Phase:
        return self.state.phase

    def get_history(self) -> List[QuantumStep]:
        return self.system.history

    def get_bloch_coordinates(self) -> Dict[int, Tuple[float, float, float]]:
        return self.system.bloch_coordinates()

    def target_state(self) -> StateVector:
        """Reference codeword with any intentional custom gates applied noiselessly."""
        target = reference_state(self.config.code_type, self.config.initial_state)
        core.apply_gates(target, self.state.custom_ops)
        return target


# =============================================================================
# Monte Carlo
# =============================================================================

@dataclass
class MonteCarloResult:
    num_trials: int
    failures: int
    logical_error_rate: float
    standard_error: float
    results: List[SimulationResult] = field(default_factory=list)


def run_monte_carlo(config: SimulatorConfig, num_trials: int,
                    fidelity_threshold: float = 0.99,
                    seed: Union[int, np.random.SeedSequence, None] = None,
                    keep_results: bool = False) -> MonteCarloResult:
    """
    Estimate the logical error rate by running independent full cycles.

    Each trial runs on a fresh simulator with its own generator spawned from
    one ``SeedSequence``, with snapshots disabled. A trial fails when its
    final fidelity is below ``fidelity_threshold``.

    Args:
        config: Simulator configuration for every trial
        num_trials: Number of cycles
        fidelity_threshold: Fidelity below which a trial counts as a logical error
        seed: Seed (or SeedSequence) for reproducible batches
        keep_results: Keep every SimulationResult (memory grows with num_trials)

    Returns:
        MonteCarloResult with the empirical rate and its standard error
    """
    if num_trials < 1:
        raise ValueError(f"num_trials must be >= 1, got {num_trials}")

    seq = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    trial_config = replace(config, snapshot_policy=SnapshotPolicy(enabled=False))

    failures = 0
    results = []
    for child in seq.spawn(num_trials):
        simulator = QECSimulator(trial_config, rng=np.random.default_rng(child))
        result = simulator.run_full_cycle()
        if result.final_fidelity < fidelity_threshold:
            failures += 1
        if keep_results:
            results.append(result)

    rate = failures / num_trials
    stderr = math.sqrt(rate * (1 - rate) / num_trials)
    logger.info("monte carlo: %d/%d failures, rate %.5f ± %.5f",
                failures, num_trials, rate, stderr)
    return MonteCarloResult(num_trials, failures, rate, stderr, results)


@dataclass(frozen=True)
class ErrorRatePoint:
    probability: float
    logical_error_rate: float
    theoretical_rate: float


def logical_error_curve(code_type: CodeType, initial_state: LogicalState,
                        noise_type: NoiseType, probabilities: Sequence[float],
                        trials_per_point: int = 100,
                        seed: Optional[int] = None) -> List[ErrorRatePoint]:
    """Empirical and theoretical logical error rates over a range of physical rates."""
    code_type = CodeType(code_type)
    theory = (noise.repetition_logical_error_rate if code_type is CodeType.REPETITION
              else noise.shor_logical_error_rate)
    children = np.random.SeedSequence(seed).spawn(len(probabilities))

    points = []
    for p, child in zip(probabilities, children):
        config = SimulatorConfig(code_type, initial_state,
                                 NoiseConfig(type=noise_type, probability=p))
        mc = run_monte_carlo(config, trials_per_point, seed=child)
        points.append(ErrorRatePoint(p, mc.logical_error_rate, theory(p)))
    return points
