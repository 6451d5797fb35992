"""Tests for the 3-qubit repetition code."""

import itertools

import numpy as np
import pytest

from qecsim import (
    NoiseConfig, StepType, StateVector, create_repetition_system, apply_noise,
    encode_repetition, decode_repetition, measure_syndrome_repetition,
    correct_error_repetition, run_repetition_cycle,
)
from qecsim.repetition import (
    SYNDROME_TABLE, decode_syndrome, repetition_logical_state, syndrome_flip,
)


def encoded_system(initial="zero", seed=0):
    system = create_repetition_system(seed=seed)
    if initial == "one":
        system.initialize_logical_one()
    elif initial == "plus":
        system.initialize_logical_plus()
    else:
        system.initialize_logical_zero()
    encode_repetition(system)
    return system


def reference(initial):
    alpha, beta = {"zero": (1, 0), "one": (0, 1), "plus": (1, 1)}[initial]
    return repetition_logical_state(alpha, beta)


class TestEncoding:
    """Tests for encoding and decoding."""

    @pytest.mark.parametrize("initial,index", [("zero", 0b000), ("one", 0b111)])
    def test_basis_codewords(self, initial, index):
        system = encoded_system(initial)
        assert np.isclose(system.state.probability(index), 1.0)

    def test_superposition_codeword(self):
        """|+⟩ encodes to (|000⟩ + |111⟩)/√2."""
        system = encoded_system("plus")
        assert system.state.allclose(reference("plus"))

    def test_encoding_uses_cnot_fan_out(self):
        system = encoded_system("one")
        ops = [s.operation for s in system.history if s.operation is not None]
        assert [(op.name, op.qubits) for op in ops] == [("CNOT", (0, 1)), ("CNOT", (0, 2))]
        assert system.history[-1].type is StepType.ENCODE

    @pytest.mark.parametrize("initial", ["zero", "one", "plus"])
    def test_decode_inverts_encode(self, initial):
        system = encoded_system(initial)
        decode_repetition(system)
        expected = StateVector(5)
        if initial == "one":
            expected = StateVector.from_amplitudes(np.eye(32)[1])
        elif initial == "plus":
            expected = StateVector.from_amplitudes(np.eye(32)[0] + np.eye(32)[1], normalize=True)
        assert np.isclose(system.state.fidelity(expected), 1.0)


class TestSyndrome:
    """Tests for ancilla-based syndrome extraction."""

    @pytest.mark.parametrize("initial", ["zero", "one", "plus"])
    def test_no_error_gives_zero_syndrome(self, initial):
        system = encoded_system(initial)
        assert measure_syndrome_repetition(system) == (0, 0)

    @pytest.mark.parametrize("qubit,syndrome", [(0, (1, 0)), (1, (1, 1)), (2, (0, 1))])
    def test_single_flip_syndromes(self, qubit, syndrome):
        system = encoded_system("plus")
        system.apply_error("X", qubit)
        assert measure_syndrome_repetition(system) == syndrome

    def test_syndrome_does_not_disturb_codeword(self):
        """Measuring parities leaves a superposed codeword intact."""
        system = encoded_system("plus")
        measure_syndrome_repetition(system)
        assert np.isclose(system.fidelity_with(reference("plus")), 1.0)

    def test_ancillas_reset_after_measurement(self):
        system = encoded_system("zero")
        system.apply_error("X", 1)
        measure_syndrome_repetition(system)
        assert np.isclose(system.state.qubit_probability(3), 0.0)
        assert np.isclose(system.state.qubit_probability(4), 0.0)
        assert system.ancillas.assigned == {}

    def test_data_qubits_never_measured(self):
        system = encoded_system("plus")
        measure_syndrome_repetition(system)
        measured = {s.qubit_index for s in system.history
                    if s.type is StepType.MEASUREMENT and s.measurement_result is not None}
        assert measured == {3}

    def test_syndrome_flip_matches_table(self):
        for position in range(3):
            assert decode_syndrome(syndrome_flip(position)) == position
        assert decode_syndrome((0, 0)) is None
        assert [row["syndrome"] for row in SYNDROME_TABLE] == [(0, 0), (1, 0), (1, 1), (0, 1)]


class TestCorrection:
    """Tests for the 0, 1 and 2 error behaviour."""

    @pytest.mark.parametrize("initial", ["zero", "one"])
    def test_zero_errors(self, initial):
        """No noise: syndrome (0,0), no gate, fidelity 1."""
        system = encoded_system(initial)
        syndrome = measure_syndrome_repetition(system)
        before = len([s for s in system.history if s.operation is not None])
        corrected = correct_error_repetition(system, syndrome)
        after = len([s for s in system.history if s.operation is not None])
        assert syndrome == (0, 0)
        assert corrected is None
        assert before == after
        assert np.isclose(system.fidelity_with(reference(initial)), 1.0)

    @pytest.mark.parametrize("initial,qubit", itertools.product(["zero", "one"], [0, 1, 2]))
    def test_one_error_exact_count(self, initial, qubit):
        """Exactly one forced flip is located and undone."""
        system = encoded_system(initial, seed=qubit)
        cfg = NoiseConfig("bit-flip", mode="exact-count", exact_count=1, target_qubits=[qubit])
        events = apply_noise(system, cfg)
        assert [e.qubit_index for e in events if e.applied] == [qubit]

        syndrome = measure_syndrome_repetition(system)
        assert syndrome == syndrome_flip(qubit)
        assert correct_error_repetition(system, syndrome) == qubit
        assert np.isclose(system.fidelity_with(reference(initial)), 1.0)

    @pytest.mark.parametrize("initial,pair", itertools.product(
        ["zero", "one"], [(0, 1), (0, 2), (1, 2)]))
    def test_two_errors_miscorrect(self, initial, pair):
        """Two flips exceed the distance: the correction completes a logical flip."""
        system = encoded_system(initial, seed=sum(pair))
        cfg = NoiseConfig("bit-flip", mode="exact-count", exact_count=2, target_qubits=list(pair))
        apply_noise(system, cfg)
        syndrome = measure_syndrome_repetition(system)
        correct_error_repetition(system, syndrome)
        assert system.fidelity_with(reference(initial)) < 0.99

    def test_three_errors_undetected(self):
        system = encoded_system("zero")
        apply_noise(system, NoiseConfig("bit-flip", 1.0))
        syndrome = measure_syndrome_repetition(system)
        assert syndrome == (0, 0)
        assert correct_error_repetition(system, syndrome) is None
        assert system.fidelity_with(reference("zero")) < 0.99

    def test_correction_details_logged(self):
        system = encoded_system("zero")
        system.apply_error("X", 2)
        syndrome = measure_syndrome_repetition(system)
        correct_error_repetition(system, syndrome, reference=reference("zero"))
        step = system.history[-1]
        assert step.type is StepType.CORRECTION
        details = step.correction_details
        assert details.syndrome == (0, 1)
        assert details.corrected_qubits == (2,)
        assert details.fidelity_before < 0.01
        assert np.isclose(details.fidelity_after, 1.0)

    def test_phase_flip_is_invisible(self):
        """The bit-flip code cannot see Z errors."""
        system = encoded_system("plus")
        system.apply_error("Z", 0)
        assert measure_syndrome_repetition(system) == (0, 0)


class TestFullCycle:
    """Tests for run_repetition_cycle."""

    def test_no_errors(self):
        result = run_repetition_cycle("one", seed=0)
        assert result.syndrome == (0, 0)
        assert not result.error_detected
        assert result.logical_state == "one"

    @pytest.mark.parametrize("qubit", [0, 1, 2])
    def test_single_error(self, qubit):
        result = run_repetition_cycle("zero", errors=[(qubit, "X")], seed=0)
        assert result.error_detected
        assert result.corrected_qubit == qubit
        assert result.logical_state == "zero"

    def test_two_errors_flip_logical_value(self):
        result = run_repetition_cycle("zero", errors=[(0, "X"), (1, "X")], seed=0)
        assert result.logical_state == "one"
