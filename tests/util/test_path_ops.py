from __future__ import annotations

import numpy as np
import pytest

from util.path_ops import bisect_path, nearest_index, smooth_polyline, weld_path, weld_points


def test_weld_points_merges_duplicates_and_keeps_order() -> None:
    pts = np.array([[0, 0, 0], [1, 0, 0], [1, 0, 0], [2, 0, 0], [0, 0, 0]], dtype=float)
    keep, xrefs = weld_points(pts)
    assert keep.tolist() == [0, 1, 3]
    # 代表は最初に出現した同値点
    assert xrefs.tolist() == [0, 1, 1, 3, 0]


def test_weld_points_identity_without_duplicates() -> None:
    pts = np.random.rand(20, 3)
    keep, xrefs = weld_points(pts)
    assert keep.tolist() == list(range(20))
    assert xrefs.tolist() == list(range(20))


def test_weld_is_idempotent() -> None:
    pts = np.array([[0, 0, 0], [0, 0, 0], [1, 1, 0], [1, 1, 0], [2, 0, 0]], dtype=float)
    keep, _ = weld_points(pts)
    again, _ = weld_points(pts[keep])
    assert again.tolist() == list(range(len(keep)))


def test_weld_tolerance_groups_near_points() -> None:
    pts = np.array([[0, 0, 0], [1e-12, 0, 0], [1.0, 0, 0]], dtype=float)
    keep, _ = weld_points(pts, tol=1e-6)
    assert keep.tolist() == [0, 2]


def test_weld_path_filters_parallel_sequence() -> None:
    path = ["a", "b", "c", "d"]
    pts = np.array([[0, 0, 0], [1, 0, 0], [1, 0, 0], [2, 0, 0]], dtype=float)
    welded, xrefs = weld_path(path, pts)
    assert welded == ("a", "b", "d")
    assert xrefs.tolist() == [0, 1, 1, 3]


def test_weld_path_length_mismatch_raises() -> None:
    with pytest.raises(ValueError):
        weld_path(["a"], np.zeros((2, 3)))


@pytest.mark.parametrize(
    "n, head, tail",
    [
        (5, (0, 1, 2), (4, 3, 2)),
        (4, (0, 1, 2), (3, 2)),
        (1, (0,), (0,)),
        (2, (0, 1), (1,)),
    ],
)
def test_bisect_path_shapes(n: int, head: tuple, tail: tuple) -> None:
    h, t = bisect_path(list(range(n)))
    assert h == head
    assert t == tail
    # 両半分は同じ中点で終わる
    assert h[-1] == t[-1] == n // 2


def test_bisect_path_empty() -> None:
    assert bisect_path([]) == ((), ())


def test_smooth_keeps_endpoints_fixed() -> None:
    pts = np.array([[0, 0, 0], [1, 3, 0], [2, -1, 0], [3, 2, 0], [4, 0, 0]], dtype=float)
    out = smooth_polyline(pts, iterations=3)
    np.testing.assert_allclose(out[0], pts[0])
    np.testing.assert_allclose(out[-1], pts[-1])
    # 入力は変更しない
    assert pts[1, 1] == 3


def test_smooth_single_iteration_is_neighbour_average() -> None:
    pts = np.array([[0, 0, 0], [1, 2, 0], [2, 0, 0]], dtype=float)
    out = smooth_polyline(pts, iterations=1)
    np.testing.assert_allclose(out[1], [1.0, 0.0, 0.0])


def test_smooth_zero_iterations_returns_copy() -> None:
    pts = np.random.rand(6, 3)
    out = smooth_polyline(pts, iterations=0)
    np.testing.assert_array_equal(out, pts)
    assert out is not pts


@pytest.mark.parametrize(
    "t, n, expected",
    [(0.0, 5, 0), (1.0, 5, 4), (0.5, 5, 2), (0.5, 4, 2), (0.49, 4, 1), (-1.0, 3, 0), (2.0, 3, 2), (0.3, 1, 0)],
)
def test_nearest_index_rounding(t: float, n: int, expected: int) -> None:
    assert nearest_index(t, n) == expected


def test_nearest_index_empty_raises() -> None:
    with pytest.raises(ValueError):
        nearest_index(0.5, 0)
