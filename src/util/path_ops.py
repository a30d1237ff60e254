"""
どこで: `util.path_ops`（Path Utilities）。
何を: 測地パスのサンプル列に対する溶接（weld）、端点固定ラプラシアン平滑化（smooth）、
      二分割（bisect）、および正規化時刻 t → 離散 index の丸め規則を提供する。
なぜ: RMF 構築はゼロ長セグメントを扱えないため重複サンプルを事前に除去し、
      経路のギザつきを端点を動かさずに抑え、2 端点の対称な移動経路を得るため。

提供関数:
- `weld_points(points, tol)` → `(keep, xrefs)`
- `weld_path(path, points, tol)` → `(welded_path, xrefs)`
- `smooth_polyline(points, iterations)` → `(N,3) float64`
- `bisect_path(path)` → `(head, tail)`
- `nearest_index(t, n)` → `int`

注意:
- 溶接は量子化座標をキーにしたハッシュバケットで判定する（tol=0 は完全一致）。
  バケット境界をまたぐ近接点は別扱いになりうる。
- 平滑化は `p_i ← (p_{i-1} + p_{i+1}) / 2` を内部点にのみ適用（端点は不変）。
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

import numpy as np
from numba import njit

from common import settings

T = TypeVar("T")


def _as_points(points: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"点列は形状 (N, 3) である必要があります: {arr.shape}")
    return arr


# ── weld ───────────────────────────────────────────────────────────────


def weld_points(
    points: np.ndarray | Sequence[Sequence[float]], tol: float | None = None
) -> tuple[np.ndarray, np.ndarray]:
    """許容値内で一致する点を代表 index へ束ねる。

    Parameters
    ----------
    points : array-like
        形状 `(N,3)` の点列。
    tol : float | None
        量子化幅。None は `settings.WELD_TOLERANCE`。

    Returns
    -------
    keep : np.ndarray
        残す index（昇順 = 元の順序を保持）。
    xrefs : np.ndarray
        `xrefs[i]` は点 i の代表 index（最初に出現した同値点）。重複が無ければ恒等写像。
    """
    pts = _as_points(points)
    step = float(settings.get().WELD_TOLERANCE if tol is None else tol)
    n = pts.shape[0]
    xrefs = np.empty(n, dtype=np.int64)
    buckets: dict[tuple[float, float, float], int] = {}
    for i in range(n):
        if step > 0.0:
            q = np.floor(pts[i] / step + 0.5)
            key = (float(q[0]), float(q[1]), float(q[2]))
        else:
            key = (float(pts[i, 0]), float(pts[i, 1]), float(pts[i, 2]))
        xrefs[i] = buckets.setdefault(key, i)
    keep = np.flatnonzero(xrefs == np.arange(n, dtype=np.int64))
    return keep, xrefs


def weld_path(
    path: Sequence[T],
    points: np.ndarray | Sequence[Sequence[float]],
    tol: float | None = None,
) -> tuple[tuple[T, ...], np.ndarray]:
    """`points[i]` を `path[i]` の空間位置として重複サンプルを除去する。"""
    pts = _as_points(points)
    if pts.shape[0] != len(path):
        raise ValueError("path と points の長さが一致しません")
    keep, xrefs = weld_points(pts, tol)
    return tuple(path[int(i)] for i in keep), xrefs


# ── smooth ─────────────────────────────────────────────────────────────


def _laplacian_fixed_ends(pts: np.ndarray, iterations: int) -> np.ndarray:
    out = pts.copy()
    n = out.shape[0]
    if n < 3:
        return out
    tmp = out.copy()
    for _ in range(iterations):
        for i in range(1, n - 1):
            for k in range(3):
                tmp[i, k] = (out[i - 1, k] + out[i + 1, k]) * 0.5
        for i in range(1, n - 1):
            for k in range(3):
                out[i, k] = tmp[i, k]
    return out


_laplacian_fixed_ends_njit = njit(cache=True)(_laplacian_fixed_ends)


def smooth_polyline(
    points: np.ndarray | Sequence[Sequence[float]], iterations: int | None = None
) -> np.ndarray:
    """端点固定のラプラシアン平滑化。

    Parameters
    ----------
    points : array-like
        形状 `(N,3)`。
    iterations : int | None
        反復回数。None は `settings.RMF_SMOOTH_ITERS`。0 以下はコピーを返す。
    """
    pts = _as_points(points)
    iters = int(settings.get().RMF_SMOOTH_ITERS if iterations is None else iterations)
    if iters <= 0 or pts.shape[0] < 3:
        return pts.copy()
    if settings.get().USE_NUMBA:
        return _laplacian_fixed_ends_njit(np.ascontiguousarray(pts), iters)
    return _laplacian_fixed_ends(pts, iters)


# ── bisect ─────────────────────────────────────────────────────────────


def bisect_path(path: Sequence[T]) -> tuple[tuple[T, ...], tuple[T, ...]]:
    """経路を中点で 2 分割する。

    - `head` は始点 → 中点、`tail` は終点 → 中点（逆順）。両者とも同じ中点サンプルで終わる。
    - 中点は `path[N // 2]`。両半分へ複製する。
    - 長さ: N が奇数なら ともに (N+1)/2、偶数なら head = N/2 + 1, tail = N/2。

    例::

        [a, b, c, d, e] -> head=(a, b, c),    tail=(e, d, c)
        [a, b, c, d]    -> head=(a, b, c),    tail=(d, c)
        [a, b]          -> head=(a, b),       tail=(b,)
    """
    n = len(path)
    if n == 0:
        return (), ()
    items = tuple(path)
    half = n // 2
    return items[: half + 1], items[half:][::-1]


# ── index rounding ─────────────────────────────────────────────────────


def nearest_index(t: float, n: int) -> int:
    """正規化時刻 t∈[0,1] を長さ n の列の最寄り index に写す（四捨五入、t はクランプ）。"""
    if n <= 0:
        raise ValueError("空の列には index を割り当てられません")
    tc = 0.0 if t < 0.0 else (1.0 if t > 1.0 else float(t))
    return min(n - 1, int(math.floor(tc * (n - 1) + 0.5)))


__all__ = [
    "weld_points",
    "weld_path",
    "smooth_polyline",
    "bisect_path",
    "nearest_index",
]
