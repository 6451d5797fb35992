"""
Dense state-vector representation of an n-qubit pure state.

Amplitudes are held in a complex128 numpy array of length 2^n. Bit i of an
index encodes the basis value of qubit i, so index 0b101 is the state with
qubits 0 and 2 set to |1⟩.

Individual amplitudes are plain Python complex numbers: addition,
multiplication, conjugate() and abs() come from the language, and the phase
of an amplitude is cmath.phase(z).
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidStateError
from .utils import format_amplitude

logger = logging.getLogger(__name__)

_NORM_EPS = 1e-10


class StateVector:
    """
    Pure state of a fixed number of qubits.

    The vector starts in |0...0⟩ and is never resized. Gate application in
    ``qecsim.core`` mutates ``amplitudes`` in place; everything else goes
    through the methods below.
    """

    def __init__(self, num_qubits: int):
        if num_qubits < 1:
            raise InvalidStateError(f"num_qubits must be >= 1, got {num_qubits}")
        self._amplitudes = np.zeros(1 << num_qubits, dtype=complex)
        self._amplitudes[0] = 1.0

    @classmethod
    def from_amplitudes(cls, amplitudes, normalize: bool = False) -> "StateVector":
        """
        Build a state from an explicit amplitude array.

        Args:
            amplitudes: Array-like of length 2^n, n >= 1
            normalize: If True, rescale the copy to unit norm

        Raises:
            InvalidStateError: If the length is not a power of two >= 2
        """
        arr = np.array(amplitudes, dtype=complex).reshape(-1)
        size = arr.size
        if size < 2 or size & (size - 1):
            raise InvalidStateError(
                f"Amplitude count must be a power of two >= 2, got {size}"
            )
        sv = cls.__new__(cls)
        sv._amplitudes = arr
        if normalize:
            sv.normalize()
        return sv

    # -------------------------------------------------------------------------
    # Shape
    # -------------------------------------------------------------------------

    @property
    def num_qubits(self) -> int:
        return self._amplitudes.size.bit_length() - 1

    @property
    def dimension(self) -> int:
        return self._amplitudes.size

    def __len__(self) -> int:
        return self._amplitudes.size

    @property
    def amplitudes(self) -> np.ndarray:
        """Return a reference to the amplitude array (for the gate engine)."""
        return self._amplitudes

    def to_array(self) -> np.ndarray:
        """Return a copy of the amplitudes as a flat vector."""
        return self._amplitudes.copy()

    def copy(self) -> "StateVector":
        sv = StateVector.__new__(StateVector)
        sv._amplitudes = self._amplitudes.copy()
        return sv

    # -------------------------------------------------------------------------
    # Normalization and probabilities
    # -------------------------------------------------------------------------

    def norm(self) -> float:
        return float(np.linalg.norm(self._amplitudes))

    def normalize(self):
        """Rescale to unit norm. A (numerically) zero vector is left alone."""
        norm = self.norm()
        if norm > _NORM_EPS:
            self._amplitudes /= norm

    def is_normalized(self, atol: float = 1e-9) -> bool:
        return abs(float(np.sum(np.abs(self._amplitudes) ** 2)) - 1.0) <= atol

    def probability(self, index: int) -> float:
        """Probability |amp|² of a single basis state."""
        return float(abs(self._amplitudes[index]) ** 2)

    def probabilities(self) -> np.ndarray:
        return np.abs(self._amplitudes) ** 2

    def _bit_set(self, qubit: int) -> np.ndarray:
        if not 0 <= qubit < self.num_qubits:
            raise IndexError(
                f"Qubit index {qubit} out of range for {self.num_qubits} qubits"
            )
        indices = np.arange(self.dimension)
        return (indices >> qubit) & 1 == 1

    def qubit_probability(self, qubit: int) -> float:
        """
        Probability of measuring the qubit as |1⟩.

        Args:
            qubit: Qubit index

        Returns:
            Sum of |amp|² over basis states with that qubit's bit set
        """
        return float(np.sum(self.probabilities()[self._bit_set(qubit)]))

    def measure_qubit(self, qubit: int, rng: Optional[np.random.Generator] = None) -> int:
        """
        Measure one qubit in the Z basis and collapse the state.

        The other qubits stay in the state, projected onto the sampled
        outcome and renormalized.

        Args:
            qubit: Qubit index
            rng: Random generator; a fresh unseeded one is used if omitted

        Returns:
            0 or 1
        """
        if rng is None:
            rng = np.random.default_rng()
        prob1 = self.qubit_probability(qubit)
        result = 1 if rng.random() < prob1 else 0

        mask = self._bit_set(qubit)
        if result == 1:
            self._amplitudes[~mask] = 0
        else:
            self._amplitudes[mask] = 0
        self.normalize()
        logger.debug("measured qubit %d -> %d (P(1)=%.6f)", qubit, result, prob1)
        return result

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    def bloch_coordinates(self, qubit: int) -> Tuple[float, float, float]:
        """
        Bloch vector of one qubit, from its reduced density matrix.

        Amplitude pairs that differ only in the chosen qubit are summed to
        get rho00, rho11 and rho01 = Σ a(..0..) · conj(a(..1..)).

        Returns:
            (x, y, z) = (2 Re rho01, -2 Im rho01, rho00 - rho11)
        """
        mask = 1 << qubit
        ones = self._bit_set(qubit)
        zeros_idx = np.nonzero(~ones)[0]
        amps = self._amplitudes
        a0 = amps[zeros_idx]
        a1 = amps[zeros_idx | mask]

        rho00 = float(np.sum(np.abs(a0) ** 2))
        rho11 = float(np.sum(np.abs(a1) ** 2))
        rho01 = complex(np.sum(a0 * np.conj(a1)))
        return (2 * rho01.real, -2 * rho01.imag, rho00 - rho11)

    def inner(self, other: "StateVector") -> complex:
        """Inner product ⟨self|other⟩, or 0 if the dimensions differ."""
        if self.dimension != other.dimension:
            return 0j
        return complex(np.vdot(self._amplitudes, other._amplitudes))

    def fidelity(self, other: "StateVector") -> float:
        """
        Fidelity |⟨self|other⟩|².

        States of different dimension give 0.0 rather than an error.
        """
        if self.dimension != other.dimension:
            return 0.0
        return abs(self.inner(other)) ** 2

    def allclose(self, other: "StateVector", atol: float = 1e-9) -> bool:
        return (self.dimension == other.dimension
                and np.allclose(self._amplitudes, other._amplitudes, atol=atol))

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    @staticmethod
    def basis_state_label(index: int, num_qubits: int) -> str:
        """Ket label with qubit n-1 on the left, e.g. |00101⟩."""
        return "|" + format(index, "b").zfill(num_qubits) + "⟩"

    def to_string(self, threshold: float = 0.01) -> str:
        """Render terms with probability above threshold, e.g. (0.7071)|000⟩ + ..."""
        n = self.num_qubits
        terms = []
        for i, amp in enumerate(self._amplitudes):
            if abs(amp) ** 2 > threshold:
                terms.append(f"({format_amplitude(amp)}){self.basis_state_label(i, n)}")
        return " + ".join(terms) if terms else "0"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"StateVector(num_qubits={self.num_qubits}, {self.to_string()})"
