"""Exception types raised while building ring geometries."""


class GeometryError(Exception):
    """Base class for every torchrings construction failure."""


class InvalidConfiguration(GeometryError, ValueError):
    """Grid parameters violate a structural precondition (ring-count parity, sizes)."""


class NumericalNonConvergence(GeometryError, ArithmeticError):
    """The Gauss-Legendre Newton iteration did not converge within its cap."""

    def __init__(self, message: str, *, n: int, iterations: int):
        super().__init__(message)
        self.n = n
        self.iterations = iterations


class ResourceExhaustion(GeometryError, MemoryError):
    """Temporary ring arrays could not be allocated."""

    def __init__(self, message: str, *, bytes_needed: int):
        super().__init__(message)
        self.bytes_needed = bytes_needed


class RingTableError(GeometryError, ValueError):
    """Per-ring arrays handed to the packager are structurally inconsistent."""
