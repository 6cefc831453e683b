"""Failure types and non-fatal diagnostics.

Structural precondition failures are raised.  Geometric degeneracies and
exhausted iteration budgets are recovered locally and recorded as
:class:`Diagnostic` values on the result that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SiteMeshError(Exception):
    """Base class for all errors raised by sitemesh."""


class InvalidInputError(SiteMeshError, ValueError):
    """Duplicate ids, non-finite coordinates, or out-of-range parameters."""


class CapacityExceededError(SiteMeshError, OverflowError):
    """A fixed-capacity structure is full; the structure is left unchanged."""


class DisconnectedGraphError(SiteMeshError, RuntimeError):
    """A spanning tree was requested over a graph with unreachable vertices."""


class DiagnosticKind(str, Enum):
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    NON_CONVERGENT = "non_convergent"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    subject: Optional[int] = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "subject": self.subject}


def degenerate(message: str, subject: Optional[int] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.DEGENERATE_GEOMETRY, message, subject)


def non_convergent(message: str, subject: Optional[int] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.NON_CONVERGENT, message, subject)
