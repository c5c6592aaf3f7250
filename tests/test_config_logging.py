import logging
from types import SimpleNamespace

import pytest

import torchrings.geometry as geometry_mod
from torchrings import (
    DEFAULT_CONFIG,
    GeometryConfig,
    InvalidConfiguration,
    NumericalNonConvergence,
    ResourceExhaustion,
    get_config,
    make_ecp_geometry,
    make_gauss_geometry,
    make_hw_geometry,
    set_log_level,
)
from torchrings.logging import logger


def test_default_config_values() -> None:
    cfg = GeometryConfig()
    assert cfg.newton_tol == 3e-14
    assert cfg.newton_max_iter == 100
    assert cfg.pole_eps == 1e-15
    assert cfg.check_memory is True
    assert get_config() is DEFAULT_CONFIG


def test_config_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("TORCHRINGS_NEWTON_TOL", "1e-12")
    monkeypatch.setenv("TORCHRINGS_NEWTON_MAX_ITER", "7")
    monkeypatch.setenv("TORCHRINGS_POLE_EPS", "1e-9")
    monkeypatch.setenv("TORCHRINGS_CHECK_MEMORY", "0")
    monkeypatch.setenv("TORCHRINGS_MEMORY_FRACTION", "0.25")
    cfg = GeometryConfig.from_environment()
    assert cfg == GeometryConfig(
        newton_tol=1e-12,
        newton_max_iter=7,
        pole_eps=1e-9,
        check_memory=False,
        memory_fraction=0.25,
    )


def test_config_is_immutable() -> None:
    cfg = GeometryConfig()
    with pytest.raises(AttributeError):
        cfg.newton_max_iter = 3
    assert cfg.with_overrides(newton_max_iter=3).newton_max_iter == 3
    assert cfg.newton_max_iter == 100


def test_iteration_cap_comes_from_config() -> None:
    cfg = GeometryConfig(newton_max_iter=2)
    with pytest.raises(NumericalNonConvergence):
        make_gauss_geometry(32, 64, config=cfg)


def test_pole_clamp_comes_from_config() -> None:
    g = make_hw_geometry(5, 4, config=GeometryConfig(pole_eps=1e-6))
    assert float(g.theta[0]) == 1e-6


def test_memory_guard_raises_resource_exhaustion(monkeypatch) -> None:
    monkeypatch.setattr(
        geometry_mod.psutil, "virtual_memory", lambda: SimpleNamespace(available=64)
    )
    with pytest.raises(ResourceExhaustion) as excinfo:
        make_gauss_geometry(16, 32)
    assert excinfo.value.bytes_needed == 16 * 48
    assert isinstance(excinfo.value, MemoryError)

    g = make_gauss_geometry(16, 32, config=GeometryConfig(check_memory=False))
    assert g.nrings == 16


def test_allocation_failure_becomes_resource_exhaustion(monkeypatch) -> None:
    def fail(nrings):
        raise MemoryError("no room")

    monkeypatch.setattr(geometry_mod.RingSet, "allocate", classmethod(lambda cls, n: fail(n)))
    with pytest.raises(ResourceExhaustion, match="no room"):
        make_gauss_geometry(4, 8)


def test_failures_are_logged(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="torchrings"):
        with pytest.raises(InvalidConfiguration):
            make_ecp_geometry(5, 8)
    assert any(
        "make_ecp_geometry failed" in rec.getMessage() for rec in caplog.records
    )


def test_debug_summary_is_logged(caplog) -> None:
    previous = logger.level
    set_log_level("DEBUG")
    try:
        with caplog.at_level(logging.DEBUG, logger="torchrings"):
            make_gauss_geometry(4, 8)
    finally:
        logger.setLevel(previous)
    messages = [rec.getMessage() for rec in caplog.records]
    assert any("gauss geometry: nrings=4, npix=32" in m for m in messages)
    assert any("make_gauss_geometry completed" in m for m in messages)


def test_set_log_level_falls_back_to_info() -> None:
    previous = logger.level
    try:
        set_log_level("chatty")
        assert logger.level == logging.INFO
        set_log_level("warning")
        assert logger.level == logging.WARNING
    finally:
        logger.setLevel(previous)
