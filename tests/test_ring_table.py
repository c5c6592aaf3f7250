import logging
import math

import numpy as np
import pytest
import torch

from torchrings import (
    InvalidConfiguration,
    Ring,
    RingTable,
    RingTableError,
    build_rings,
    make_gauss_geometry,
)


def _arrays(n: int = 3) -> dict:
    theta = torch.linspace(0.5, math.pi - 0.5, n, dtype=torch.float64)
    return dict(
        nph=torch.full((n,), 4, dtype=torch.int64),
        ofs=torch.arange(n, dtype=torch.int64) * 4,
        stride=torch.ones(n, dtype=torch.int64),
        phi0=torch.zeros(n, dtype=torch.float64),
        theta=theta,
        weight=torch.full((n,), 0.1, dtype=torch.float64),
    )


def test_from_arrays_packages_columns() -> None:
    t = RingTable.from_arrays(**_arrays())
    assert t.nrings == 3 and len(t) == 3
    assert t.npix == 12
    assert t.alt_weight is None
    assert t.ofs.dtype == torch.int64
    assert t.theta.dtype == torch.float64
    assert "nrings=3" in repr(t)


def test_from_arrays_copies_inputs() -> None:
    arrays = _arrays()
    t = RingTable.from_arrays(**arrays)
    arrays["theta"].fill_(0.0)
    arrays["nph"].fill_(99)
    assert float(t.theta[0]) == pytest.approx(0.5)
    assert int(t.nph[0]) == 4


def test_from_arrays_accepts_python_sequences() -> None:
    t = RingTable.from_arrays([2, 2], [0, 2], [1, 1], [0, 0], [1.0, 2.0], [1, 1])
    assert t.weight.dtype == torch.float64
    assert t.addresses().tolist() == [0, 1, 2, 3]


def test_alt_weight_slot_is_kept() -> None:
    arrays = _arrays()
    t = RingTable.from_arrays(**arrays, alt_weight=[1.0, 2.0, 3.0])
    assert t.alt_weight.tolist() == [1.0, 2.0, 3.0]
    assert "alt_weight" in t.dump_host()


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("nph", torch.tensor([4, 0, 4]), "nph >= 1"),
        ("theta", torch.tensor([0.5, 1.0, 4.0], dtype=torch.float64), r"\[0, pi\]"),
        ("weight", torch.tensor([0.1, float("nan"), 0.1], dtype=torch.float64), "finite"),
        ("ofs", torch.tensor([0, 4]), "differ in length"),
        ("stride", torch.ones(3, 1, dtype=torch.int64), "one-dimensional"),
        ("nph", torch.tensor([4.0, 4.0, 4.0]), "integers"),
    ],
)
def test_from_arrays_rejects_inconsistent_input(field, value, message) -> None:
    arrays = _arrays()
    arrays[field] = value
    with pytest.raises(RingTableError, match=message):
        RingTable.from_arrays(**arrays)


def test_from_arrays_rejects_empty_table() -> None:
    with pytest.raises(RingTableError):
        RingTable.from_arrays(**_arrays(0))


def test_iteration_yields_ring_records() -> None:
    g = make_gauss_geometry(3, 4)
    rings = list(g)
    assert len(rings) == 3
    assert isinstance(rings[1], Ring)
    assert rings[1].nph == 4
    assert rings[1].ofs == 4
    assert rings[1].theta == pytest.approx(math.pi / 2, abs=1e-15)


def test_dump_host_returns_numpy() -> None:
    g = make_gauss_geometry(4, 8)
    host = g.dump_host()
    assert host["nrings"] == 4
    assert host["npix"] == 32
    assert isinstance(host["theta"], np.ndarray)
    assert host["ofs"].dtype == np.int64
    np.testing.assert_allclose(host["weight"], g.weight.numpy())


def test_to_device_copies_table() -> None:
    g = make_gauss_geometry(4, 8)
    moved = g.to("cpu")
    assert isinstance(moved, RingTable)
    assert torch.equal(moved.theta, g.theta)


def test_pairs_without_mirror() -> None:
    t = RingTable.from_arrays([4, 4], [0, 4], [1, 1], [0.0, 0.0], [0.5, 1.0], [0.1, 0.1])
    assert t.pairs() == [(0, None), (1, None)]


def test_pairs_for_gauss_grid() -> None:
    g = make_gauss_geometry(5, 8)
    assert g.pairs() == [(0, 4), (1, 3), (2, None)]


def test_table_is_frozen() -> None:
    g = make_gauss_geometry(2, 2)
    with pytest.raises(AttributeError):
        g.theta = torch.zeros(2)


def test_build_rings_with_custom_populate() -> None:
    def populate(rings) -> None:
        rings.theta.copy_(torch.tensor([1.0, 2.0], dtype=torch.float64))
        rings.weight.fill_(math.pi)
        rings.nph.fill_(2)
        rings.phi0.zero_()
        rings.ofs.copy_(torch.tensor([0, 2]))
        rings.stride.fill_(1)

    t = build_rings(2, populate)
    assert t.total_weight() == pytest.approx(4.0 * math.pi)


def test_build_rings_propagates_populate_failure() -> None:
    seen = []

    def populate(rings) -> None:
        seen.append(rings)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        build_rings(3, populate)
    # the transient arrays were released on the failure path
    assert seen[0].theta is None


def test_build_rings_rejects_incomplete_population() -> None:
    def populate(rings) -> None:
        rings.theta.fill_(1.0)
        rings.weight.fill_(1.0)
        rings.nph.zero_()
        rings.phi0.zero_()
        rings.ofs.zero_()
        rings.stride.fill_(1)

    with pytest.raises(RingTableError):
        build_rings(2, populate)


def test_build_rings_rejects_empty() -> None:
    with pytest.raises(InvalidConfiguration):
        build_rings(0, lambda rings: None)


def test_packager_failures_are_logged(caplog) -> None:
    arrays = _arrays()
    arrays["nph"] = torch.tensor([4, 0, 4])
    with caplog.at_level(logging.ERROR, logger="torchrings"):
        with pytest.raises(RingTableError):
            RingTable.from_arrays(**arrays)
    assert any(
        rec.levelno == logging.ERROR and "Error in from_arrays" in rec.getMessage()
        for rec in caplog.records
    )


def test_addresses_stay_on_table_device() -> None:
    g = make_gauss_geometry(4, 8)
    assert g.addresses().device == g.nph.device


@pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
def test_addresses_on_moved_table() -> None:
    g = make_gauss_geometry(6, 10, stride_lon=2)
    moved = g.to("cuda")
    addr = moved.addresses()
    assert addr.device.type == "cuda"
    assert torch.equal(addr.cpu(), g.addresses())
