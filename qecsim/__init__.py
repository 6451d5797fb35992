"""
qecsim - A quantum error correction simulator in Python.

This package provides a dense state-vector simulator specialised for
demonstrating quantum error correction on a single logical qubit.

Modules:
    state      - StateVector (amplitudes, measurement, Bloch coordinates, fidelity)
    gates      - Gate matrices, the Gate enum and GateOperation
    core       - Gate engine (apply_gate on a StateVector)
    system     - QuantumSystem with history, ancilla pool and gate-error injection
    noise      - Noise and gate-error models, theoretical logical error rates
    repetition - 3-qubit bit-flip repetition code
    shor       - 9-qubit Shor code
    simulator  - Phase-sequenced QECSimulator, custom circuits, Monte Carlo
    utils      - State comparison and bit helpers

Quick Start:
    >>> from qecsim import *
    >>> config = SimulatorConfig("repetition", "one",
    ...                          NoiseConfig("bit-flip", mode="exact-count", exact_count=1))
    >>> sim = QECSimulator(config, seed=1)
    >>> result = sim.run_full_cycle()
    >>> print(result.syndrome, round(result.final_fidelity, 6))
"""

# Errors
from .errors import (
    QECError,
    InvalidStateError,
    UnsupportedGateError,
    InvalidOperandCountError,
    UnsupportedCustomGateError,
    AncillaNotResetError,
    PhaseOrderError,
)

# State and gates
from .state import StateVector
from .gates import (
    X_gate,
    Y_gate,
    Z_gate,
    H_gate,
    S_gate,
    T_gate,
    I_gate,
    Rx_gate,
    Ry_gate,
    Rz_gate,
    CNOT_gate,
    CZ_gate,
    SWAP_gate,
    TOFF_gate,
    Gate,
    GateOperation,
    gate_op,
)
from .core import apply_gate, apply_gates

# Quantum system
from .system import (
    QubitRole,
    QubitInfo,
    StepType,
    QuantumStep,
    GateErrorDetails,
    CorrectionDetails,
    AncillaPool,
    QuantumSystem,
    create_repetition_system,
    create_shor_system,
)

# Noise
from .noise import (
    NoiseType,
    NoiseMode,
    GateErrorScope,
    NoiseConfig,
    GateErrorConfig,
    NoiseEvent,
    apply_noise,
    inject_error,
    inject_errors,
    repetition_logical_error_rate,
    shor_logical_error_rate,
    noise_description,
)

# Codes
from .repetition import (
    encode_repetition,
    decode_repetition,
    measure_syndrome_repetition,
    correct_error_repetition,
    run_repetition_cycle,
)
from .shor import (
    encode_shor,
    decode_shor,
    measure_syndrome_shor,
    correct_shor,
    measure_and_correct_shor,
    pauli_syndrome,
    run_shor_cycle,
)

# Simulator
from .simulator import (
    CodeType,
    LogicalState,
    Phase,
    next_phase,
    SnapshotPolicy,
    SimulatorConfig,
    CustomGateStep,
    QECSimulator,
    run_monte_carlo,
    logical_error_curve,
)

# Utilities
from .utils import (
    allclose_up_to_global_phase,
    state_fidelity,
)

__version__ = "0.1.0"
__all__ = [
    # Errors
    "QECError",
    "InvalidStateError",
    "UnsupportedGateError",
    "InvalidOperandCountError",
    "UnsupportedCustomGateError",
    "AncillaNotResetError",
    "PhaseOrderError",
    # State and gates
    "StateVector",
    "X_gate",
    "Y_gate",
    "Z_gate",
    "H_gate",
    "S_gate",
    "T_gate",
    "I_gate",
    "Rx_gate",
    "Ry_gate",
    "Rz_gate",
    "CNOT_gate",
    "CZ_gate",
    "SWAP_gate",
    "TOFF_gate",
    "Gate",
    "GateOperation",
    "gate_op",
    "apply_gate",
    "apply_gates",
    # System
    "QubitRole",
    "QubitInfo",
    "StepType",
    "QuantumStep",
    "GateErrorDetails",
    "CorrectionDetails",
    "AncillaPool",
    "QuantumSystem",
    "create_repetition_system",
    "create_shor_system",
    # Noise
    "NoiseType",
    "NoiseMode",
    "GateErrorScope",
    "NoiseConfig",
    "GateErrorConfig",
    "NoiseEvent",
    "apply_noise",
    "inject_error",
    "inject_errors",
    "repetition_logical_error_rate",
    "shor_logical_error_rate",
    "noise_description",
    # Codes
    "encode_repetition",
    "decode_repetition",
    "measure_syndrome_repetition",
    "correct_error_repetition",
    "run_repetition_cycle",
    "encode_shor",
    "decode_shor",
    "measure_syndrome_shor",
    "correct_shor",
    "measure_and_correct_shor",
    "pauli_syndrome",
    "run_shor_cycle",
    # Simulator
    "CodeType",
    "LogicalState",
    "Phase",
    "next_phase",
    "SnapshotPolicy",
    "SimulatorConfig",
    "CustomGateStep",
    "QECSimulator",
    "run_monte_carlo",
    "logical_error_curve",
    # Utils
    "allclose_up_to_global_phase",
    "state_fidelity",
]
