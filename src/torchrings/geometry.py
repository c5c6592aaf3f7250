"""
Ring geometries for HEALPix, Gauss-Legendre, equidistant-cylindrical and
Driscoll-Healy polar sphere grids.

Every builder goes through :func:`build_rings`: a transient :class:`RingSet`
is allocated, filled by a grid-specific populate function, packaged into a
:class:`~torchrings.table.RingTable` and released. Rings are ordered from the
north pole to the south pole.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

import psutil
import torch
from torch import Tensor

from .config import GeometryConfig, get_config
from .errors import InvalidConfiguration, ResourceExhaustion
from .logging import log_memory_usage, log_performance, log_ring_summary
from .quadrature import (
    check_polar_ring_count,
    driscoll_healy_weights,
    gauss_legendre,
    keiner_potts_weights,
)
from .table import RingTable

# theta, weight, phi0 (float64) + nph, ofs, stride (int64)
_BYTES_PER_RING = 6 * 8


@dataclass
class RingSet:
    """Six parallel per-ring columns filled by a populate function."""

    theta: Tensor
    weight: Tensor
    nph: Tensor
    phi0: Tensor
    ofs: Tensor
    stride: Tensor

    @classmethod
    def allocate(cls, nrings: int) -> "RingSet":
        return cls(
            theta=torch.empty(nrings, dtype=torch.float64),
            weight=torch.empty(nrings, dtype=torch.float64),
            nph=torch.empty(nrings, dtype=torch.int64),
            phi0=torch.empty(nrings, dtype=torch.float64),
            ofs=torch.empty(nrings, dtype=torch.int64),
            stride=torch.empty(nrings, dtype=torch.int64),
        )

    @property
    def nrings(self) -> int:
        return int(self.theta.shape[0])

    def release(self) -> None:
        for name in ("theta", "weight", "nph", "phi0", "ofs", "stride"):
            setattr(self, name, None)


Populate = Callable[[RingSet], None]


def _check_allocation(nrings: int, config: GeometryConfig) -> None:
    bytes_needed = int(nrings) * _BYTES_PER_RING
    log_memory_usage("ring arrays", bytes_needed / (1024**2))
    if not config.check_memory:
        return
    available = psutil.virtual_memory().available
    if bytes_needed > available * config.memory_fraction:
        raise ResourceExhaustion(
            f"{nrings} rings need {bytes_needed} bytes, more than "
            f"{config.memory_fraction:.0%} of the {available} bytes available",
            bytes_needed=bytes_needed,
        )


@contextmanager
def _ring_arrays(nrings: int, config: GeometryConfig) -> Iterator[RingSet]:
    _check_allocation(nrings, config)
    try:
        rings = RingSet.allocate(nrings)
    except (MemoryError, RuntimeError) as e:
        raise ResourceExhaustion(
            f"could not allocate ring arrays for {nrings} rings: {e}",
            bytes_needed=nrings * _BYTES_PER_RING,
        ) from e
    try:
        yield rings
    finally:
        rings.release()


def build_rings(
    nrings: int,
    populate: Populate,
    *,
    kind: str = "custom",
    config: GeometryConfig | None = None,
) -> RingTable:
    """
    Allocate ``nrings`` ring slots, let ``populate`` fill them and package the result.

    The temporary arrays are dropped on every exit path; either a complete
    :class:`RingTable` is returned or an exception propagates.
    """
    nrings = int(nrings)
    if nrings < 1:
        raise InvalidConfiguration(f"nrings must be >= 1, got {nrings}")
    cfg = config or get_config()
    with _ring_arrays(nrings, cfg) as rings:
        populate(rings)
        table = RingTable.from_arrays(
            rings.nph,
            rings.ofs,
            rings.stride,
            rings.phi0,
            rings.theta,
            rings.weight,
            alt_weight=None,
        )
    log_ring_summary(kind, table.nrings, table.npix, table.total_weight())
    return table


def _require_positive(name: str, value: int) -> int:
    value = int(value)
    if value < 1:
        raise InvalidConfiguration(f"{name} must be >= 1, got {value}")
    return value


def _healpix_rings(nside: int, band_weight: Tensor, stride: int) -> Populate:
    npix = 12 * nside * nside
    ncap = 2 * nside * (nside - 1)

    def populate(rings: RingSet) -> None:
        ring = torch.arange(1, rings.nrings + 1, dtype=torch.int64)
        northring = torch.where(ring > 2 * nside, 4 * nside - ring, ring)
        cap = northring < nside
        south = northring != ring
        nr = northring.to(torch.float64)

        theta_cap = 2.0 * torch.asin(nr / (math.sqrt(6.0) * nside))
        theta_belt = torch.acos((2 * nside - nr) * ((8.0 * nside) / npix))
        theta = torch.where(cap, theta_cap, theta_belt)

        nph = torch.where(cap, 4 * northring, torch.full_like(northring, 4 * nside))
        shifted = cap | ((northring - nside) % 2 == 0)
        phi0 = torch.where(shifted, math.pi / nph.to(torch.float64), torch.zeros_like(nr))

        ofs = torch.where(
            cap,
            2 * northring * (northring - 1),
            ncap + (northring - nside) * nph,
        ) * stride

        rings.theta.copy_(torch.where(south, math.pi - theta, theta))
        rings.nph.copy_(nph)
        rings.phi0.copy_(phi0)
        rings.ofs.copy_(torch.where(south, (npix - nph) * stride - ofs, ofs))
        rings.stride.fill_(stride)
        rings.weight.copy_((4.0 * math.pi / npix) * band_weight[northring - 1])

    return populate


def _gauss_rings(nphi: int, stride_lon: int, stride_lat: int, config: GeometryConfig) -> Populate:
    def populate(rings: RingSet) -> None:
        x, w = gauss_legendre(rings.nrings, config=config)
        rings.theta.copy_(torch.acos(-x))
        rings.weight.copy_(w * (2.0 * math.pi / nphi))
        _fill_uniform_longitudes(rings, nphi, 0.0, stride_lon, stride_lat)

    return populate


def _ecp_rings(nphi: int, phi0: float, stride_lon: int, stride_lat: int) -> Populate:
    def populate(rings: RingSet) -> None:
        n = rings.nrings
        m = torch.arange(n, dtype=torch.float64)
        rings.theta.copy_((m + 0.5) * math.pi / n)
        rings.weight.copy_(driscoll_healy_weights(n // 2) * (2.0 * math.pi / nphi))
        _fill_uniform_longitudes(rings, nphi, phi0, stride_lon, stride_lat)

    return populate


def _hw_rings(ppring: int, phi0: float, stride_lon: int, stride_lat: int, config: GeometryConfig) -> Populate:
    def populate(rings: RingSet) -> None:
        n = rings.nrings
        m = torch.arange(n, dtype=torch.float64)
        theta = math.pi * m / (n - 1.0)
        rings.theta.copy_(theta.clamp(config.pole_eps, math.pi - config.pole_eps))
        rings.weight.copy_(keiner_potts_weights(n) / ppring)
        _fill_uniform_longitudes(rings, ppring, phi0, stride_lon, stride_lat)

    return populate


def _fill_uniform_longitudes(
    rings: RingSet, nphi: int, phi0: float, stride_lon: int, stride_lat: int
) -> None:
    rings.nph.fill_(nphi)
    rings.phi0.fill_(phi0)
    rings.ofs.copy_(torch.arange(rings.nrings, dtype=torch.int64) * stride_lat)
    rings.stride.fill_(stride_lon)


@log_performance
def make_weighted_healpix_geometry(
    nside: int,
    weight: Tensor | Sequence[float],
    stride: int = 1,
    *,
    config: GeometryConfig | None = None,
) -> RingTable:
    """
    HEALPix ring geometry with per-band quadrature weights.

    Args:
        nside: HEALPix resolution parameter (any positive integer).
        weight: ``2*nside`` factors, one per iso-latitude band counted from the
            north pole to the equator; the southern half reuses them.
        stride: Distance between neighbouring pixels in the data buffer.

    Returns:
        A table of ``4*nside - 1`` rings covering ``12*nside**2`` pixels.
    """
    nside = _require_positive("nside", nside)
    band_weight = torch.as_tensor(weight, dtype=torch.float64).flatten()
    if band_weight.shape[0] != 2 * nside:
        raise InvalidConfiguration(
            f"HEALPix weight table needs {2 * nside} entries for nside={nside}, "
            f"got {band_weight.shape[0]}"
        )
    return build_rings(
        4 * nside - 1,
        _healpix_rings(nside, band_weight, int(stride)),
        kind="healpix",
        config=config,
    )


def make_healpix_geometry(
    nside: int, stride: int = 1, *, config: GeometryConfig | None = None
) -> RingTable:
    """HEALPix ring geometry with uniform weights ``4*pi/npix``."""
    nside = _require_positive("nside", nside)
    return make_weighted_healpix_geometry(
        nside, torch.ones(2 * nside, dtype=torch.float64), stride, config=config
    )


@log_performance
def make_gauss_geometry(
    nrings: int,
    nphi: int,
    stride_lon: int = 1,
    stride_lat: int | None = None,
    *,
    config: GeometryConfig | None = None,
) -> RingTable:
    """
    Gauss-Legendre grid: ``nrings`` rings at the Legendre roots, ``nphi`` samples each.

    ``stride_lat`` defaults to ``nphi * stride_lon`` (one ring per row).
    """
    nrings = _require_positive("nrings", nrings)
    nphi = _require_positive("nphi", nphi)
    stride_lat = nphi * int(stride_lon) if stride_lat is None else int(stride_lat)
    cfg = config or get_config()
    return build_rings(
        nrings,
        _gauss_rings(nphi, int(stride_lon), stride_lat, cfg),
        kind="gauss",
        config=cfg,
    )


@log_performance
def make_ecp_geometry(
    nrings: int,
    nphi: int,
    phi0: float = 0.0,
    stride_lon: int = 1,
    stride_lat: int | None = None,
    *,
    config: GeometryConfig | None = None,
) -> RingTable:
    """
    Equidistant-cylindrical grid with Driscoll-Healy weights.

    Rings sit at ``(m + 0.5) * pi / nrings``; ``nrings`` must be even.
    """
    nrings = _require_positive("nrings", nrings)
    if nrings % 2 != 0:
        raise InvalidConfiguration("Even number of rings needed for equidistant grid!")
    nphi = _require_positive("nphi", nphi)
    stride_lat = nphi * int(stride_lon) if stride_lat is None else int(stride_lat)
    return build_rings(
        nrings,
        _ecp_rings(nphi, float(phi0), int(stride_lon), stride_lat),
        kind="ecp",
        config=config,
    )


@log_performance
def make_hw_geometry(
    nrings: int,
    ppring: int,
    phi0: float = 0.0,
    stride_lon: int = 1,
    stride_lat: int | None = None,
    *,
    config: GeometryConfig | None = None,
) -> RingTable:
    """
    Equiangular polar grid (rings on both poles) with Keiner-Potts weights.

    Rings sit at ``m * pi / (nrings - 1)``, pulled in from the poles by
    ``config.pole_eps``. ``nrings`` must be odd and at least 3.
    """
    nrings = check_polar_ring_count(nrings)
    ppring = _require_positive("ppring", ppring)
    stride_lat = ppring * int(stride_lon) if stride_lat is None else int(stride_lat)
    cfg = config or get_config()
    return build_rings(
        nrings,
        _hw_rings(ppring, float(phi0), int(stride_lon), stride_lat, cfg),
        kind="hw",
        config=cfg,
    )


_BUILDERS: dict[str, Callable[..., RingTable]] = {
    "healpix": make_healpix_geometry,
    "weighted_healpix": make_weighted_healpix_geometry,
    "gauss": make_gauss_geometry,
    "ecp": make_ecp_geometry,
    "hw": make_hw_geometry,
}
_ALIASES = {"gl": "gauss", "cc": "ecp", "dh": "hw"}


def available_geometries() -> list[str]:
    return sorted(_BUILDERS)


def make_geometry(kind: str, *args, **kwargs) -> RingTable:
    """
    Build a ring table by grid name.

    ``kind`` is one of :func:`available_geometries` or an alias
    (``gl``, ``cc``, ``dh``); remaining arguments go to the matching builder.
    """
    key = _ALIASES.get(kind.lower(), kind.lower())
    builder = _BUILDERS.get(key)
    if builder is None:
        raise InvalidConfiguration(
            f"unknown geometry {kind!r}; expected one of {available_geometries()}"
        )
    return builder(*args, **kwargs)
