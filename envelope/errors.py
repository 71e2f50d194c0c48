"""Error types raised by the envelope heat-transfer core.

Configuration problems (``InvalidMaterial``, ``EmptyConstruction``) and
integration problems (``NotInitialized``, ``NonFiniteResult``) are fatal and
propagate to the caller. Convergence trouble is not an exception: it is
reported through :class:`envelope.dataclasses.Status` on the returned results.
"""

from __future__ import annotations


class EnvelopeError(Exception):
    """Base class for all envelope errors."""

    pass


class InvalidMaterial(EnvelopeError, ValueError):
    """Raised when a layer property is non-positive, non-finite or out of range.

    Attributes:
        field: Name of the offending property (e.g. ``"conductivity"``).
        value: The rejected value.
    """

    def __init__(self, message: str, field: str | None = None, value: object = None):
        self.field = field
        self.value = value
        super().__init__(message)


class EmptyConstruction(EnvelopeError, ValueError):
    """Raised when a construction is built without any layers."""

    def __init__(self, name: str = ""):
        self.name = name
        label = f" {name!r}" if name else ""
        super().__init__(f"Construction{label} has no layers")


class NotInitialized(EnvelopeError, RuntimeError):
    """Raised when a conduction solver is advanced before it has a temperature profile."""

    pass


class NonFiniteResult(EnvelopeError, ArithmeticError):
    """Raised when an input or a computed temperature is not finite.

    This signals bad boundary data or an unstable configuration upstream; the
    value is never clamped.

    Attributes:
        where: Short description of the quantity that was not finite.
    """

    def __init__(self, message: str, where: str | None = None):
        self.where = where
        super().__init__(message)
