"""Custom exceptions for the :mod:`starevol` package."""
from __future__ import annotations


class StarEvolError(Exception):
    """Base exception for compact-star evolution errors."""


class ConfigurationError(StarEvolError, ValueError):
    """Wiring or configuration error detected before or during a run."""


class PhysicsError(StarEvolError, ValueError):
    """A caller supplied a non-physical value to a physics helper."""


class EvaluationError(StarEvolError, RuntimeError):
    """A driver raised while the right-hand side was being evaluated."""


class NumericalError(StarEvolError, RuntimeError):
    """The ODE integrator failed to advance the system."""


class CatalogFormatError(StarEvolError, ValueError):
    """A diagnostics catalog document could not be parsed."""


__all__ = [
    "StarEvolError",
    "ConfigurationError",
    "PhysicsError",
    "EvaluationError",
    "NumericalError",
    "CatalogFormatError",
]
