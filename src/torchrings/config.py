"""
Numerical and resource configuration for torchrings.

Defaults can be overridden through ``TORCHRINGS_*`` environment variables,
which are read once at import. Builders also accept an explicit
:class:`GeometryConfig`.
"""

import os
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class GeometryConfig:
    """Tunables for the quadrature solvers and the allocation guard."""

    newton_tol: float = 3e-14
    newton_max_iter: int = 100
    pole_eps: float = 1e-15
    check_memory: bool = True
    memory_fraction: float = 0.5

    @classmethod
    def from_environment(cls) -> "GeometryConfig":
        """Build a configuration from the process environment."""
        return cls(
            newton_tol=float(os.environ.get("TORCHRINGS_NEWTON_TOL", "3e-14")),
            newton_max_iter=int(os.environ.get("TORCHRINGS_NEWTON_MAX_ITER", "100")),
            pole_eps=float(os.environ.get("TORCHRINGS_POLE_EPS", "1e-15")),
            check_memory=os.environ.get("TORCHRINGS_CHECK_MEMORY", "1") != "0",
            memory_fraction=float(os.environ.get("TORCHRINGS_MEMORY_FRACTION", "0.5")),
        )

    def with_overrides(self, **kwargs) -> "GeometryConfig":
        """Return a copy with the given fields replaced, e.g. ``with_overrides(newton_max_iter=200)``."""
        return replace(self, **kwargs)


DEFAULT_CONFIG = GeometryConfig.from_environment()


def get_config() -> GeometryConfig:
    """Return the configuration snapshot taken at import."""
    return DEFAULT_CONFIG
