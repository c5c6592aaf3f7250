#!/usr/bin/env python3
"""Example of building sphere ring geometries with torchrings."""

import math

import torch
import torchrings


def main():
    # 1. HEALPix rings
    nside = 4
    hp = torchrings.make_healpix_geometry(nside)
    print(f"HEALPix NSIDE={nside}: {hp.nrings} rings, {hp.npix} pixels")
    print(f"  total weight = {hp.total_weight():.15f} (4*pi = {4 * math.pi:.15f})")

    # 2. Gauss-Legendre grid, one ring per row of a (nrings, nphi) buffer
    gl = torchrings.make_gauss_geometry(nrings=8, nphi=16)
    print(f"\nGauss-Legendre grid: {gl.nrings} x {int(gl.nph[0])}")
    for ring in list(gl)[:3]:
        print(f"  theta={ring.theta:.6f} weight={ring.weight:.6e} ofs={ring.ofs}")

    # 3. Integrate cos^2(theta) over the sphere on each grid
    for kind, args in [("gauss", (8, 16)), ("ecp", (8, 16)), ("hw", (9, 16)), ("healpix", (8,))]:
        g = torchrings.make_geometry(kind, *args)
        z = torch.cos(g.theta)
        value = float((g.weight * g.nph.to(torch.float64) * z * z).sum())
        print(f"\n{kind:8s}: integral of cos^2 = {value:.12f} (exact {4 * math.pi / 3:.12f})")

    # 4. Mirror pairs used by transform engines
    print(f"\nHEALPix north/south pairs: {hp.pairs()[:4]} ...")


if __name__ == "__main__":
    main()
