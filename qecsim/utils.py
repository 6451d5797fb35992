"""
Utility functions for state comparison and bit manipulation.

This module provides helper functions for:
- Quantum state comparison (accounting for global phase)
- Syndrome bit vectors (XOR)
- Human-readable formatting of complex amplitudes
"""

import numpy as np
from typing import Sequence, Tuple


# =============================================================================
# Quantum state utilities
# =============================================================================

def allclose_up_to_global_phase(v, w, atol: float = 1e-9) -> bool:
    """
    Check if two quantum states are equal up to a global phase.

    Args:
        v: First quantum state (array-like or StateVector)
        w: Second quantum state (array-like or StateVector)
        atol: Absolute tolerance for comparison

    Returns:
        True if states are equal up to global phase
    """
    v = _as_flat_array(v)
    w = _as_flat_array(w)
    if v.shape != w.shape:
        return False

    # Find a stable pivot amplitude in w
    idx = np.argmax(np.abs(w))
    if np.abs(w[idx]) < atol:
        return np.allclose(v, w, atol=atol)

    phase = v[idx] / w[idx]
    return np.allclose(v, phase * w, atol=atol)


def state_fidelity(v, w) -> float:
    """
    Compute the fidelity |⟨v|w⟩|² between two pure states.

    Returns 0.0 when the states have different dimensions.
    """
    v = _as_flat_array(v)
    w = _as_flat_array(w)
    if v.shape != w.shape:
        return 0.0
    return float(np.abs(np.vdot(v, w)) ** 2)


def _as_flat_array(x) -> np.ndarray:
    if hasattr(x, "to_array"):
        x = x.to_array()
    return np.asarray(x, dtype=complex).reshape(-1)


def format_amplitude(z: complex, digits: int = 4) -> str:
    """Format a complex amplitude, dropping a negligible real or imaginary part."""
    z = complex(z)
    if abs(z.imag) < 1e-10:
        return f"{z.real:.{digits}f}"
    if abs(z.real) < 1e-10:
        return f"{z.imag:.{digits}f}i"
    sign = "+" if z.imag >= 0 else "-"
    return f"{z.real:.{digits}f}{sign}{abs(z.imag):.{digits}f}i"


# =============================================================================
# Binary utilities
# =============================================================================

def xor_bits(a: Sequence[int], b: Sequence[int]) -> Tuple[int, ...]:
    """Element-wise XOR of two equal-length bit vectors."""
    if len(a) != len(b):
        raise ValueError(f"Bit vectors differ in length: {len(a)} != {len(b)}")
    return tuple(int(x) ^ int(y) for x, y in zip(a, b))
