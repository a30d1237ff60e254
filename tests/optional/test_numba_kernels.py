import numpy as np
import pytest

pytest.importorskip("numba")

from common import settings
from util.path_ops import _laplacian_fixed_ends, smooth_polyline
from util.rmf import build_rmf

# JIT カーネルと純 Python カーネルが同じ結果を返すこと


def _wavy(n: int = 25) -> np.ndarray:
    x = np.linspace(0.0, 3.0, n)
    return np.stack([x, np.sin(3 * x), 0.3 * np.cos(5 * x)], axis=1)


@pytest.mark.optional
def test_smoothing_kernels_agree() -> None:
    pts = _wavy()
    jit = smooth_polyline(pts, iterations=4)
    ref = _laplacian_fixed_ends(pts, 4)
    np.testing.assert_allclose(jit, ref, atol=1e-12)


@pytest.mark.optional
def test_rmf_kernels_agree(monkeypatch: pytest.MonkeyPatch) -> None:
    pts = _wavy()
    with_jit = build_rmf(pts)
    monkeypatch.setenv("TB_USE_NUMBA", "0")
    settings.reload_from_env()
    assert settings.get().USE_NUMBA is False
    plain = build_rmf(pts)
    for a, b in zip(with_jit.frames, plain.frames):
        np.testing.assert_allclose(a.r, b.r, atol=1e-12)
        np.testing.assert_allclose(a.t, b.t, atol=1e-12)
