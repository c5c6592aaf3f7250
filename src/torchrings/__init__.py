"""
torchrings: ring geometry and quadrature weights for spherical harmonic transforms

This package builds per-ring descriptor tables (colatitude, weight, samples per
ring, phase offset, buffer offset and stride) for HEALPix, Gauss-Legendre,
equidistant-cylindrical and Driscoll-Healy polar sphere grids, as PyTorch
tensors.
"""

from .config import DEFAULT_CONFIG, GeometryConfig, get_config
from .errors import (
    GeometryError,
    InvalidConfiguration,
    NumericalNonConvergence,
    ResourceExhaustion,
    RingTableError,
)
from .geometry import (
    RingSet,
    available_geometries,
    build_rings,
    make_ecp_geometry,
    make_gauss_geometry,
    make_geometry,
    make_healpix_geometry,
    make_hw_geometry,
    make_weighted_healpix_geometry,
)
from .logging import set_log_level
from .quadrature import (
    check_polar_ring_count,
    driscoll_healy_weights,
    gauss_legendre,
    keiner_potts_eps,
    keiner_potts_weights,
)
from .table import Ring, RingTable

__version__ = "0.1.0"
__all__ = [
    # Geometry builders
    "make_healpix_geometry", "make_weighted_healpix_geometry",
    "make_gauss_geometry", "make_ecp_geometry", "make_hw_geometry",
    "make_geometry", "available_geometries", "build_rings", "RingSet",
    # Ring table
    "RingTable", "Ring",
    # Quadrature
    "gauss_legendre", "driscoll_healy_weights", "check_polar_ring_count",
    "keiner_potts_eps", "keiner_potts_weights",
    # Errors
    "GeometryError", "InvalidConfiguration", "NumericalNonConvergence",
    "ResourceExhaustion", "RingTableError",
    # Configuration
    "GeometryConfig", "DEFAULT_CONFIG", "get_config", "set_log_level",
]
