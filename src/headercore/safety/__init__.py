"""
Safety gate for hardware-job artifacts.

Public API::

    from headercore.safety import BoundaryViolation, GateDecision, SafetyGate
"""

from headercore.safety.gate import BoundaryViolation, GateDecision, SafetyGate

__all__ = [
    "BoundaryViolation",
    "GateDecision",
    "SafetyGate",
]
