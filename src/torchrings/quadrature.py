"""Quadrature nodes and weights for latitude-ring sphere grids."""

from __future__ import annotations

import math

import torch
from torch import Tensor

from .config import GeometryConfig, get_config
from .errors import InvalidConfiguration, NumericalNonConvergence


def _legendre_pair(x: Tensor, n: int) -> tuple[Tensor, Tensor]:
    """Return ``(P_n(x), P_{n-1}(x))`` via the three-term recurrence."""
    p_prev = torch.ones_like(x)
    p_cur = x.clone()
    for k in range(2, n + 1):
        p_prev2 = p_prev
        p_prev = p_cur
        p_cur = x * p_prev + ((k - 1.0) / k) * (x * p_prev - p_prev2)
    return p_cur, p_prev


def gauss_legendre(
    n: int,
    *,
    tol: float | None = None,
    max_iter: int | None = None,
    config: GeometryConfig | None = None,
) -> tuple[Tensor, Tensor]:
    """
    Gauss-Legendre nodes and weights on [-1, 1].

    Only the ``ceil(n/2)`` non-negative roots are solved for, all of them at
    once in a single tensor; the negative half is obtained by reflection.
    Each root runs Newton steps until ``|dx| <= tol`` and then takes exactly
    one more step, so the stored derivative belongs to the last evaluation.

    Returns:
        (x, w): float64 tensors of length ``n``, ``x`` increasing.

    Raises:
        InvalidConfiguration: if ``n < 1``.
        NumericalNonConvergence: if a root needs more than ``max_iter`` evaluations.
    """
    n = int(n)
    if n < 1:
        raise InvalidConfiguration(f"Gauss-Legendre order must be >= 1, got {n}")
    cfg = config or get_config()
    tol = cfg.newton_tol if tol is None else float(tol)
    max_iter = cfg.newton_max_iter if max_iter is None else int(max_iter)

    m = (n + 1) >> 1
    t0 = 1.0 - (1.0 - 1.0 / n) / (8.0 * n * n)
    t1 = 1.0 / (4.0 * n + 2.0)
    i = torch.arange(1, m + 1, dtype=torch.float64)
    x = torch.cos(math.pi * (4.0 * i - 1.0) * t1) * t0

    dpdx = torch.zeros_like(x)
    dobreak = torch.zeros(m, dtype=torch.bool)
    finished = torch.zeros(m, dtype=torch.bool)

    for _ in range(max_iter):
        active = ~finished
        p_n, p_nm1 = _legendre_pair(x, n)
        d = (x * p_n - p_nm1) * n / (x * x - 1.0)
        x_new = x - p_n / d
        dx = x - x_new
        x = torch.where(active, x_new, x)
        dpdx = torch.where(active, d, dpdx)
        finished = finished | (active & dobreak)
        dobreak = dobreak | (active & (dx.abs() <= tol))
        if bool(finished.all()):
            break
    else:
        pending = int((~finished).sum())
        raise NumericalNonConvergence(
            f"convergence problem: {pending} of {m} Gauss-Legendre roots for n={n} "
            f"not converged after {max_iter} iterations",
            n=n,
            iterations=max_iter,
        )

    w_half = 2.0 / ((1.0 - x * x) * dpdx * dpdx)

    # x[i-1] = -x0 and x[n-i] = x0; the odd middle root is written twice.
    nodes = torch.empty(n, dtype=torch.float64)
    weights = torch.empty(n, dtype=torch.float64)
    nodes[:m] = -x
    weights[:m] = w_half
    nodes[n - m:] = torch.flip(x, dims=(0,))
    weights[n - m:] = torch.flip(w_half, dims=(0,))
    return nodes, weights


def driscoll_healy_weights(bw: int) -> Tensor:
    """
    Equiangular (Driscoll-Healy) quadrature weights for ``2*bw`` rings.

    Rings sit at colatitudes ``(j + 0.5) * pi / (2*bw)``; the weights sum to 2.
    """
    bw = int(bw)
    if bw < 1:
        raise InvalidConfiguration(f"bandwidth must be >= 1, got {bw}")
    fudge = math.pi / (4 * bw)
    j_odd = (2.0 * torch.arange(2 * bw, dtype=torch.float64) + 1.0).unsqueeze(1)
    k_odd = (2.0 * torch.arange(bw, dtype=torch.float64) + 1.0).unsqueeze(0)
    tmpsum = (torch.sin(j_odd * k_odd * fudge) / k_odd).sum(dim=1)
    return tmpsum * torch.sin(j_odd.squeeze(1) * fudge) * (2.0 / bw)


def keiner_potts_eps(j: int, J: int) -> float:
    """Boundary indicator: 0.5 at j == 0 or j == J, 1 strictly inside, 0 outside."""
    if j == 0 or j == J:
        return 0.5
    if 0 < j < J:
        return 1.0
    return 0.0


def check_polar_ring_count(nrings: int) -> int:
    """Validate the ring count of an equiangular grid with rings on both poles."""
    nrings = int(nrings)
    if nrings % 2 != 1:
        raise InvalidConfiguration("nrings must be an odd number")
    if nrings < 3:
        raise InvalidConfiguration(f"at least 3 rings needed for a polar grid, got {nrings}")
    return nrings


def keiner_potts_weights(nrings: int) -> Tensor:
    """
    Keiner-Potts weights for an odd number of equiangular rings including both poles.

    Returned per ring (not divided by the samples per ring); they sum to 4*pi.
    """
    nrings = check_polar_ring_count(nrings)
    lmax = (nrings - 1) // 2

    ell = torch.arange(lmax + 1, dtype=torch.float64)
    eps_l = torch.tensor([keiner_potts_eps(l, lmax) for l in range(lmax + 1)], dtype=torch.float64)
    coef = eps_l / (1.0 - 4.0 * ell * ell)

    m = torch.arange(nrings, dtype=torch.float64).unsqueeze(1)
    wgt = (coef.unsqueeze(0) * torch.cos((math.pi * m * ell.unsqueeze(0)) / lmax)).sum(dim=1)

    prefac = torch.tensor(
        [4.0 * math.pi * keiner_potts_eps(k, 2 * lmax) / lmax for k in range(nrings)],
        dtype=torch.float64,
    )
    return prefac * wgt
