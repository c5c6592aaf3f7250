"""Immutable per-ring geometry table consumed by spherical-harmonic transforms."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

import torch
from torch import Tensor

from .errors import RingTableError
from .logging import log_errors

# Two rings mirror each other when theta_n + theta_s == pi to within this.
_PAIR_TOL = 1e-12


class Ring(NamedTuple):
    theta: float
    weight: float
    nph: int
    phi0: float
    ofs: int
    stride: int


def _as_column(name: str, values, dtype: torch.dtype) -> Tensor:
    t = torch.as_tensor(values)
    if t.ndim != 1:
        raise RingTableError(f"{name} must be one-dimensional, got shape {tuple(t.shape)}")
    if dtype.is_floating_point and not t.is_floating_point():
        t = t.to(dtype)
    elif not dtype.is_floating_point and t.is_floating_point():
        raise RingTableError(f"{name} must hold integers, got {t.dtype}")
    return t.to(device="cpu", dtype=dtype).clone().contiguous()


@dataclass(frozen=True, eq=False)
class RingTable:
    """
    Ring geometry of a sphere grid, ordered from north to south.

    Each ring ``i`` holds ``nph[i]`` samples at longitudes
    ``phi0[i] + 2*pi*k/nph[i]`` whose values live in a flat buffer at
    ``ofs[i] + k*stride[i]``. Build instances with :meth:`from_arrays`.
    """

    theta: Tensor
    weight: Tensor
    nph: Tensor
    phi0: Tensor
    ofs: Tensor
    stride: Tensor
    alt_weight: Optional[Tensor] = None

    @classmethod
    @log_errors
    def from_arrays(
        cls,
        nph,
        ofs,
        stride,
        phi0,
        theta,
        weight,
        alt_weight=None,
    ) -> "RingTable":
        """
        Validate and package six parallel per-ring arrays.

        The inputs are copied, so later changes to them do not affect the table.

        Raises:
            RingTableError: on mismatched lengths, empty input, ``nph < 1``,
                colatitudes outside ``[0, pi]`` or non-finite weights.
        """
        cols = {
            "nph": _as_column("nph", nph, torch.int64),
            "ofs": _as_column("ofs", ofs, torch.int64),
            "stride": _as_column("stride", stride, torch.int64),
            "phi0": _as_column("phi0", phi0, torch.float64),
            "theta": _as_column("theta", theta, torch.float64),
            "weight": _as_column("weight", weight, torch.float64),
        }
        if alt_weight is not None:
            cols["alt_weight"] = _as_column("alt_weight", alt_weight, torch.float64)

        lengths = {name: int(t.shape[0]) for name, t in cols.items()}
        nrings = lengths["nph"]
        if nrings < 1:
            raise RingTableError("a ring table needs at least one ring")
        if len(set(lengths.values())) != 1:
            raise RingTableError(f"per-ring arrays differ in length: {lengths}")
        if bool((cols["nph"] < 1).any()):
            raise RingTableError("every ring needs at least one sample (nph >= 1)")
        theta = cols["theta"]
        if bool(((theta < 0.0) | (theta > math.pi) | ~torch.isfinite(theta)).any()):
            raise RingTableError("colatitudes must lie in [0, pi]")
        if not bool(torch.isfinite(cols["weight"]).all()):
            raise RingTableError("weights must be finite")
        return cls(**cols)

    @property
    def nrings(self) -> int:
        return int(self.theta.shape[0])

    @property
    def npix(self) -> int:
        return int(self.nph.sum())

    def __len__(self) -> int:
        return self.nrings

    def __iter__(self) -> Iterator[Ring]:
        for i in range(self.nrings):
            yield Ring(
                float(self.theta[i]),
                float(self.weight[i]),
                int(self.nph[i]),
                float(self.phi0[i]),
                int(self.ofs[i]),
                int(self.stride[i]),
            )

    def total_weight(self) -> float:
        """Integral of the constant 1 under this quadrature (4*pi for a full sphere)."""
        return float((self.weight * self.nph.to(torch.float64)).sum())

    def addresses(self) -> Tensor:
        """Flat buffer address of every sample, ring by ring."""
        device = self.nph.device
        ring_idx = torch.repeat_interleave(torch.arange(self.nrings, device=device), self.nph)
        starts = torch.cumsum(self.nph, dim=0) - self.nph
        k = torch.arange(self.npix, dtype=torch.int64, device=device) - starts[ring_idx]
        return self.ofs[ring_idx] + k * self.stride[ring_idx]

    def pairs(self) -> list[tuple[int, Optional[int]]]:
        """
        Pair each northern ring with its southern mirror.

        Returns ``(north, south)`` index tuples; ``south`` is ``None`` for an
        unpaired ring (e.g. the equator).
        """
        order = torch.argsort(self.theta).tolist()
        theta = self.theta.tolist()
        nph = self.nph.tolist()
        out: list[tuple[int, Optional[int]]] = []
        lo, hi = 0, len(order) - 1
        while lo <= hi:
            a, b = order[lo], order[hi]
            if lo < hi and nph[a] == nph[b] and abs(theta[a] + theta[b] - math.pi) < _PAIR_TOL:
                out.append((a, b))
                lo += 1
                hi -= 1
            elif lo == hi or theta[a] < math.pi - theta[b]:
                out.append((a, None))
                lo += 1
            else:
                out.append((b, None))
                hi -= 1
        return out

    def to(self, device: torch.device | str) -> "RingTable":
        def move(t):
            return None if t is None else t.to(device)

        return RingTable(
            theta=move(self.theta),
            weight=move(self.weight),
            nph=move(self.nph),
            phi0=move(self.phi0),
            ofs=move(self.ofs),
            stride=move(self.stride),
            alt_weight=move(self.alt_weight),
        )

    def dump_host(self) -> dict:
        out = {
            "nrings": self.nrings,
            "npix": self.npix,
            "theta": self.theta.cpu().numpy(),
            "weight": self.weight.cpu().numpy(),
            "nph": self.nph.cpu().numpy(),
            "phi0": self.phi0.cpu().numpy(),
            "ofs": self.ofs.cpu().numpy(),
            "stride": self.stride.cpu().numpy(),
        }
        if self.alt_weight is not None:
            out["alt_weight"] = self.alt_weight.cpu().numpy()
        return out

    def __repr__(self) -> str:
        return (
            f"RingTable(nrings={self.nrings}, npix={self.npix}, "
            f"total_weight={self.total_weight():.12g})"
        )
