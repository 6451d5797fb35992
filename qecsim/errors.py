"""
Exception types raised by the simulator.

Malformed circuits and invalid states are programming errors and fail fast.
Simulation outcomes such as a miscorrection are never raised; they show up
in the step history instead.
"""


class QECError(Exception):
    """Base class for all simulator errors."""


class InvalidStateError(QECError, ValueError):
    """State vector has an invalid size (not a power of two, or empty)."""


class UnsupportedGateError(QECError, ValueError):
    """Gate name is not part of the supported gate set."""


class InvalidOperandCountError(QECError, ValueError):
    """Gate received the wrong number of target qubits or parameters."""


class UnsupportedCustomGateError(QECError, ValueError):
    """Gate cannot be used in a custom circuit run."""


class AncillaNotResetError(QECError, RuntimeError):
    """Ancilla was reassigned or released without being returned to |0⟩."""


class PhaseOrderError(QECError, RuntimeError):
    """Simulator command was issued before the data it needs exists."""
