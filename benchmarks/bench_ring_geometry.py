#!/usr/bin/env python3
"""Benchmark ring-geometry construction for each supported grid."""

from __future__ import annotations

import argparse
import time
from typing import Any, Callable

import numpy as np

from torchrings import (
    make_ecp_geometry,
    make_gauss_geometry,
    make_healpix_geometry,
    make_hw_geometry,
)


def _time_many(fn: Callable[[], Any], runs: int) -> float:
    fn()
    samples: list[float] = []
    for _ in range(runs):
        t0 = time.perf_counter()
        fn()
        samples.append(time.perf_counter() - t0)
    return float(np.median(samples))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--lmax", type=int, default=1023, help="Band limit used to size the grids")
    parser.add_argument("--runs", type=int, default=5)
    args = parser.parse_args()

    lmax = int(args.lmax)
    nside = max(1, (lmax + 1) // 2)
    cases: dict[str, Callable[[], Any]] = {
        "healpix": lambda: make_healpix_geometry(nside),
        "gauss": lambda: make_gauss_geometry(lmax + 1, 2 * lmax + 1),
        "ecp": lambda: make_ecp_geometry(2 * (lmax + 1), 2 * lmax + 2),
        "hw": lambda: make_hw_geometry(2 * lmax + 3, 2 * lmax + 2),
    }
    print(f"lmax={lmax} nside={nside} runs={args.runs}")
    for name, fn in cases.items():
        seconds = _time_many(fn, args.runs)
        print(f"  {name:8s} {seconds * 1000:10.3f} ms")


if __name__ == "__main__":
    main()
