"""Tests for QuantumSystem: history, gate errors, ancilla pool."""

import numpy as np
import pytest

from qecsim import (
    QuantumSystem, QubitRole, StepType, GateErrorConfig, StateVector,
    AncillaNotResetError, gate_op, create_repetition_system, create_shor_system,
)
from qecsim.system import AncillaPool


class TestHistory:
    """Tests for step logging."""

    def test_gate_logs_one_step(self):
        """A gate without errors adds exactly one GATE step."""
        system = QuantumSystem(2, seed=0)
        system.apply_gate(gate_op("H", 0))
        assert len(system.history) == 1
        step = system.history[0]
        assert step.type is StepType.GATE
        assert step.operation.name == "H"
        assert np.isclose(step.state_before.probability(0), 1.0)
        assert np.isclose(step.state_after.probability(0), 0.5)

    def test_step_states_are_owned_copies(self):
        """Later gates do not change recorded states."""
        system = QuantumSystem(1, seed=0)
        system.apply_gate(gate_op("X", 0))
        recorded = system.history[0].state_after.to_array()
        system.apply_gate(gate_op("H", 0))
        assert np.allclose(system.history[0].state_after.to_array(), recorded)

    def test_timestamps_increase(self):
        system = QuantumSystem(2, seed=0)
        system.apply_gate(gate_op("H", 0))
        system.log_step(StepType.ENCODE, "marker")
        system.measure_qubit(0)
        assert [s.timestamp for s in system.history] == [0, 1, 2]

    def test_state_string(self):
        system = create_repetition_system(seed=0)
        system.initialize_logical_one()
        assert system.state_string() == "(1.0000)|00001⟩"

    def test_log_step_does_not_change_state(self):
        system = QuantumSystem(1, seed=0)
        system.log_step("correction", "nothing to do")
        step = system.history[-1]
        assert step.type is StepType.CORRECTION
        assert step.state_before.allclose(step.state_after)

    def test_measurement_logged_with_result(self):
        system = QuantumSystem(2, seed=0)
        system.apply_gate(gate_op("X", 1))
        result = system.measure_qubit(1)
        step = system.history[-1]
        assert result == 1
        assert step.type is StepType.MEASUREMENT
        assert step.measurement_result == 1
        assert step.qubit_index == 1

    def test_normalized_after_every_step(self):
        """Every recorded state has unit norm."""
        system = create_repetition_system(seed=3)
        system.initialize_logical_plus()
        for op in [gate_op("CNOT", 0, 1), gate_op("CNOT", 0, 2), gate_op("Ry", 1, params=[0.3])]:
            system.apply_gate(op)
        system.apply_error("Y", 2)
        system.measure_qubit(1)
        for step in system.history:
            assert step.state_after.is_normalized()

    def test_measure_z_expectation(self):
        system = QuantumSystem(1, seed=0)
        assert np.isclose(system.measure_z_expectation(0), 1.0)
        system.apply_gate(gate_op("H", 0))
        assert np.isclose(system.measure_z_expectation(0), 0.0)


class TestResetAndClone:
    """Tests for reset and clone."""

    def test_reset_is_idempotent(self):
        """reset() twice equals reset() once."""
        system = create_repetition_system(seed=1)
        system.initialize_logical_one()
        system.apply_gate(gate_op("CNOT", 0, 1))
        system.reset()
        once = (system.state.to_array(), len(system.history), system.step_counter)
        system.reset()
        assert np.allclose(system.state.to_array(), once[0])
        assert np.isclose(system.state.probability(0), 1.0)
        assert system.history == [] and once[1] == 0
        assert system.step_counter == once[2] == 0

    def test_reset_releases_ancillas(self):
        system = create_repetition_system(seed=1)
        system.allocate_ancilla("a0")
        system.reset()
        assert system.ancillas.assigned == {}
        assert system.label(3) == "anc0"

    def test_clone_is_deep(self):
        """Mutating a clone leaves the original and its history alone."""
        system = QuantumSystem(2, seed=0)
        system.apply_gate(gate_op("H", 0))
        clone = system.clone()
        clone.apply_gate(gate_op("X", 1))
        clone.history[0].state_after.amplitudes[:] = 0

        assert len(system.history) == 1
        assert np.isclose(system.state.qubit_probability(1), 0.0)
        assert system.history[0].state_after.is_normalized()

    def test_clone_shares_rng(self):
        system = QuantumSystem(1, seed=0)
        assert system.clone().rng is system.rng


class TestGateErrors:
    """Tests for gate-error injection."""

    def test_disabled_config_injects_nothing(self):
        cfg = GateErrorConfig(enabled=False, type="bit-flip", probability=1.0)
        system = QuantumSystem(2, cfg, seed=0)
        system.apply_gate(gate_op("CNOT", 0, 1))
        assert system.gate_error_count() == 0

    def test_one_error_per_target_qubit(self):
        """With p=1 a two-qubit gate gets one error on each target."""
        cfg = GateErrorConfig(enabled=True, type="bit-flip", probability=1.0)
        system = QuantumSystem(2, cfg, seed=0)
        system.apply_gate(gate_op("CNOT", 0, 1))
        errors = [s for s in system.history if s.type is StepType.GATE_ERROR]
        assert [s.qubit_index for s in errors] == [0, 1]
        assert all(s.gate_error_details.error_type == "X" for s in errors)
        assert errors[0].gate_error_details.gate_name == "CNOT"
        # CNOT on |00⟩ then X on both qubits
        assert np.isclose(system.state.probability(0b11), 1.0)

    @pytest.mark.parametrize("scope,single_hits,two_hits", [
        ("all", 1, 2),
        ("single-qubit", 1, 0),
        ("two-qubit", 0, 2),
    ])
    def test_scope_filter(self, scope, single_hits, two_hits):
        cfg = GateErrorConfig(enabled=True, type="phase-flip", probability=1.0, apply_to=scope)
        system = QuantumSystem(2, cfg, seed=0)
        system.apply_gate(gate_op("H", 0))
        assert system.gate_error_count() == single_hits
        mark = system.step_counter
        system.apply_gate(gate_op("CZ", 0, 1))
        assert system.gate_error_count(since=mark) == two_hits

    def test_depolarizing_picks_all_paulis(self):
        """Depolarizing gate errors produce X, Y and Z."""
        cfg = GateErrorConfig(enabled=True, type="depolarizing", probability=1.0)
        system = QuantumSystem(1, cfg, seed=42)
        for _ in range(60):
            system.apply_gate(gate_op("I", 0))
        seen = {s.gate_error_details.error_type for s in system.history
                if s.type is StepType.GATE_ERROR}
        assert seen == {"X", "Y", "Z"}

    def test_apply_error_bypasses_gate_errors(self):
        cfg = GateErrorConfig(enabled=True, type="bit-flip", probability=1.0)
        system = QuantumSystem(1, cfg, seed=0)
        system.apply_error("Z", 0)
        assert len(system.history) == 1
        assert system.history[0].type is StepType.NOISE

    def test_reset_qubit_bypasses_gate_errors(self):
        cfg = GateErrorConfig(enabled=True, type="bit-flip", probability=1.0)
        system = QuantumSystem(1, cfg, seed=0)
        system.apply_error("X", 0)
        system.reset_qubit(0, 1)
        assert system.gate_error_count() == 0
        assert np.isclose(system.state.probability(0), 1.0)

    def test_seeded_gate_errors_reproducible(self):
        cfg = GateErrorConfig(enabled=True, type="depolarizing", probability=0.3)

        def trace(seed):
            system = QuantumSystem(3, cfg, seed=seed)
            for q in range(3):
                system.apply_gate(gate_op("H", q))
            return [(s.qubit_index, s.gate_error_details.error_type)
                    for s in system.history if s.type is StepType.GATE_ERROR]

        assert trace(9) == trace(9)


class TestAncillaPool:
    """Tests for the ancilla allocate/reset/release protocol."""

    def test_factories(self):
        rep = create_repetition_system()
        assert rep.data_qubits() == [0, 1, 2]
        assert rep.ancilla_qubits() == [3, 4]
        shor = create_shor_system()
        assert shor.num_qubits == 10
        assert shor.data_qubits() == list(range(9))
        assert shor.ancillas.physical_qubits == (9,)

    def test_allocate_relabels_and_release_restores(self):
        system = create_shor_system(seed=0)
        q = system.allocate_ancilla("a3")
        assert q == 9
        assert system.label(9) == "a3"
        system.release_ancilla("a3")
        assert system.label(9) == "anc0"
        assert system.qubits[9].role is QubitRole.ANCILLA

    def test_single_ancilla_cannot_be_double_booked(self):
        system = create_shor_system(seed=0)
        system.allocate_ancilla("a0")
        with pytest.raises(AncillaNotResetError):
            system.allocate_ancilla("a1")

    def test_release_requires_reset(self):
        """An ancilla left in |1⟩ cannot be released."""
        system = create_shor_system(seed=0)
        system.allocate_ancilla("a0")
        system.apply_gate(gate_op("X", 9))
        with pytest.raises(AncillaNotResetError):
            system.release_ancilla("a0")

    def test_allocate_requires_zero(self):
        """A dirty physical ancilla is never handed out."""
        pool = AncillaPool([1])
        state = StateVector.from_amplitudes([0, 0, 1, 0])  # q1 = 1
        with pytest.raises(AncillaNotResetError):
            pool.allocate("a0", state)

    def test_measure_ancilla_resets_and_releases(self):
        system = create_repetition_system(seed=0)
        system.allocate_ancilla("a0")
        system.apply_gate(gate_op("X", 3))
        assert system.measure_ancilla("a0") == 1
        assert np.isclose(system.state.qubit_probability(3), 0.0)
        assert system.ancillas.free() == [3, 4]

    def test_ancilla_not_reset_is_runtime_error(self):
        assert issubclass(AncillaNotResetError, RuntimeError)

    def test_set_qubit_info_out_of_range(self):
        with pytest.raises(IndexError):
            QuantumSystem(2).set_qubit_info(5, "x", QubitRole.DATA)
