"""Tests for quantum gates and the gate engine."""

import numpy as np
import pytest

from qecsim import (
    StateVector, Gate, GateOperation, gate_op, apply_gate, apply_gates,
    H_gate, X_gate, CNOT_gate, TOFF_gate, Rz_gate,
    allclose_up_to_global_phase,
    UnsupportedGateError, InvalidOperandCountError,
)


def basis(n, index):
    """n-qubit computational basis state |index⟩."""
    amps = np.zeros(2 ** n, dtype=complex)
    amps[index] = 1
    return StateVector.from_amplitudes(amps)


def single(a, b):
    return StateVector.from_amplitudes([a, b], normalize=True)


class TestSingleQubitGates:
    """Tests for single-qubit gates."""

    def test_x_gate_flips_zero_to_one(self):
        """X gate should flip |0⟩ to |1⟩."""
        state = StateVector(1)
        apply_gate(state, gate_op("X", 0))
        assert np.allclose(state.to_array(), [0, 1])

    def test_x_gate_flips_one_to_zero(self):
        """X gate should flip |1⟩ to |0⟩."""
        state = basis(1, 1)
        apply_gate(state, gate_op("X", 0))
        assert np.allclose(state.to_array(), [1, 0])

    def test_h_gate_creates_superposition(self):
        """H gate on |0⟩ should create equal superposition."""
        state = StateVector(1)
        apply_gate(state, gate_op("H", 0))
        expected = np.array([1, 1]) / np.sqrt(2)
        assert np.allclose(state.to_array(), expected)

    def test_h_gate_on_one(self):
        """H gate on |1⟩ should create |−⟩."""
        state = basis(1, 1)
        apply_gate(state, gate_op("H", 0))
        expected = np.array([1, -1]) / np.sqrt(2)
        assert np.allclose(state.to_array(), expected)

    def test_z_gate_flips_phase(self):
        """Z gate should flip phase of |1⟩."""
        state = single(1, 1)  # Will be normalized
        apply_gate(state, gate_op("Z", 0))
        expected = np.array([1, -1]) / np.sqrt(2)
        assert np.allclose(state.to_array(), expected)

    def test_y_gate_on_zero(self):
        """Y|0⟩ = i|1⟩."""
        state = StateVector(1)
        apply_gate(state, gate_op("Y", 0))
        assert np.allclose(state.to_array(), [0, 1j])

    def test_s_is_t_squared(self):
        """T² = S on |+⟩."""
        a = single(1, 1)
        b = single(1, 1)
        apply_gates(a, [gate_op("T", 0), gate_op("T", 0)])
        apply_gate(b, gate_op("S", 0))
        assert np.allclose(a.to_array(), b.to_array())

    def test_gate_acts_on_selected_qubit_only(self):
        """X on qubit 1 of |000⟩ gives index 2 (bit 1 set)."""
        state = StateVector(3)
        apply_gate(state, gate_op("X", 1))
        assert np.isclose(state.probability(0b010), 1.0)

    def test_rx_pi_is_x_up_to_phase(self):
        """Rx(π) = -iX."""
        state = StateVector(1)
        apply_gate(state, gate_op("Rx", 0, params=[np.pi]))
        assert allclose_up_to_global_phase(state, [0, 1])

    def test_ry_half_pi_superposition(self):
        """Ry(π/2)|0⟩ = |+⟩."""
        state = StateVector(1)
        apply_gate(state, gate_op("Ry", 0, params=[np.pi / 2]))
        assert np.allclose(state.to_array(), np.array([1, 1]) / np.sqrt(2))


class TestRoundTrips:
    """Applying a gate and then its inverse gives back the original state."""

    @pytest.mark.parametrize("ops", [
        [gate_op("X", 1), gate_op("X", 1)],
        [gate_op("H", 0), gate_op("H", 0)],
        [gate_op("CNOT", 0, 2), gate_op("CNOT", 0, 2)],
        [gate_op("SWAP", 1, 2), gate_op("SWAP", 1, 2)],
        [gate_op("CZ", 0, 1), gate_op("CZ", 0, 1)],
        [gate_op("Toffoli", 0, 1, 2), gate_op("Toffoli", 0, 1, 2)],
    ])
    def test_self_inverse(self, ops):
        """Self-inverse gates cancel on a generic state."""
        rng = np.random.default_rng(7)
        amps = rng.normal(size=8) + 1j * rng.normal(size=8)
        state = StateVector.from_amplitudes(amps, normalize=True)
        original = state.to_array()
        apply_gates(state, ops)
        assert np.allclose(state.to_array(), original)

    @pytest.mark.parametrize("theta", [0.1, np.pi / 3, np.pi, 2.5])
    def test_rz_inverse(self, theta):
        """Rz(θ)·Rz(−θ) = I up to global phase."""
        state = StateVector(2)
        apply_gates(state, [gate_op("H", 0), gate_op("H", 1)])
        original = state.to_array()
        apply_gate(state, gate_op("Rz", 1, params=[theta]))
        apply_gate(state, gate_op("Rz", 1, params=[-theta]))
        assert allclose_up_to_global_phase(state, original)

    def test_gates_preserve_norm(self):
        """Norm stays 1 after a long mixed sequence."""
        state = StateVector(4)
        ops = [gate_op("H", 0), gate_op("CNOT", 0, 3), gate_op("Ry", 2, params=[0.7]),
               gate_op("T", 3), gate_op("SWAP", 1, 3), gate_op("Toffoli", 0, 1, 2)]
        for op in ops:
            apply_gate(state, op)
            assert abs(state.norm() - 1) < 1e-9


class TestTwoQubitGates:
    """Tests for two-qubit gates."""

    def test_cnot_controlled_flip(self):
        """CNOT should flip target when control is |1⟩."""
        state = basis(2, 0b01)  # q0 = 1
        apply_gate(state, gate_op("CNOT", 0, 1))
        # State should be |11⟩
        assert np.isclose(state.probability(0b11), 1.0)

    def test_cnot_no_flip_when_control_zero(self):
        """CNOT should not flip target when control is |0⟩."""
        state = basis(2, 0b10)  # q1 = 1, control q0 = 0
        apply_gate(state, gate_op("CNOT", 0, 1))
        assert np.isclose(state.probability(0b10), 1.0)

    def test_cnot_matches_matrix(self):
        """The swap shortcut agrees with the 4x4 CNOT matrix."""
        rng = np.random.default_rng(3)
        amps = rng.normal(size=4) + 1j * rng.normal(size=4)
        fast = StateVector.from_amplitudes(amps, normalize=True)
        apply_gate(fast, gate_op("CNOT", 1, 0))

        # Matrix basis is |q1 q0⟩ with the control (q1) as high bit: index = 2*q1 + q0
        expected = CNOT_gate @ StateVector.from_amplitudes(amps, normalize=True).to_array()
        assert np.allclose(fast.to_array(), expected)

    def test_swap_gate(self):
        """SWAP should exchange two qubits."""
        state = basis(2, 0b10)  # q1 = 1
        apply_gate(state, gate_op("SWAP", 0, 1))
        assert np.isclose(state.probability(0b01), 1.0)

    def test_cz_phase(self):
        """CZ puts -1 on |11⟩ only."""
        state = StateVector(2)
        apply_gates(state, [gate_op("H", 0), gate_op("H", 1), gate_op("CZ", 0, 1)])
        assert np.allclose(state.to_array(), np.array([1, 1, 1, -1]) / 2)

    def test_bell_state(self):
        """H then CNOT gives (|00⟩ + |11⟩)/√2."""
        state = StateVector(2)
        apply_gates(state, [gate_op("H", 0), gate_op("CNOT", 0, 1)])
        assert np.allclose(state.to_array(), np.array([1, 0, 0, 1]) / np.sqrt(2))


class TestThreeQubitGates:
    """Tests for three-qubit gates."""

    def test_toffoli_truth_table(self):
        """Toffoli gate should implement AND."""
        for c1 in (0, 1):
            for c2 in (0, 1):
                for t in (0, 1):
                    index = c1 | (c2 << 1) | (t << 2)
                    state = basis(3, index)
                    apply_gate(state, gate_op("Toffoli", 0, 1, 2))
                    expected = index ^ (4 if c1 and c2 else 0)
                    assert np.isclose(state.probability(expected), 1.0)

    def test_toffoli_matrix_swaps_last_rows(self):
        """TOFF_gate differs from identity only on |110⟩, |111⟩."""
        assert np.allclose(TOFF_gate[:6, :6], np.eye(6))
        assert np.allclose(TOFF_gate[6:, 6:], X_gate)


class TestGateOperation:
    """Tests for GateOperation validation."""

    def test_name_coerced_to_enum(self):
        """String names become Gate members."""
        op = GateOperation("CNOT", (0, 1))
        assert op.gate is Gate.CNOT
        assert op.qubits == (0, 1)

    def test_unknown_gate(self):
        """Unknown names raise UnsupportedGateError."""
        with pytest.raises(UnsupportedGateError):
            GateOperation("FOO", (0,))

    @pytest.mark.parametrize("name,qubits", [
        ("X", (0, 1)),
        ("CNOT", (0,)),
        ("Toffoli", (0, 1)),
        ("H", ()),
    ])
    def test_wrong_arity(self, name, qubits):
        """Wrong target counts raise InvalidOperandCountError."""
        with pytest.raises(InvalidOperandCountError):
            GateOperation(name, qubits)

    def test_rotation_needs_angle(self):
        """Rx without a parameter is rejected."""
        with pytest.raises(InvalidOperandCountError):
            gate_op("Rx", 0)

    def test_fixed_gate_ignores_extra_params(self):
        """Non-rotation gates ignore parameters."""
        state = StateVector(1)
        apply_gate(state, gate_op("X", 0, params=[1.23]))
        assert np.allclose(state.to_array(), [0, 1])

    def test_repeated_qubit(self):
        """CNOT on the same qubit twice is a ValueError."""
        with pytest.raises(ValueError):
            gate_op("CNOT", 1, 1)

    def test_target_out_of_range(self):
        """Targets outside the state raise IndexError when applied."""
        state = StateVector(2)
        with pytest.raises(IndexError):
            apply_gate(state, gate_op("X", 2))

    def test_matrix_lookup(self):
        """matrix() returns the gate's unitary."""
        assert np.allclose(gate_op("H", 0).matrix(), H_gate)
        assert np.allclose(gate_op("Rz", 0, params=[0.4]).matrix(), Rz_gate(0.4))

    def test_display_name_prefers_label(self):
        """Labels override the gate name for display."""
        assert gate_op("X", 0, label="X0 (noise)").display_name == "X0 (noise)"
        assert gate_op("X", 0).display_name == "X"

    def test_arity_metadata(self):
        """Every gate knows its arity."""
        assert Gate.H.arity == 1
        assert Gate.SWAP.arity == 2
        assert Gate.TOFFOLI.arity == 3
        assert Gate.RY.num_params == 1
