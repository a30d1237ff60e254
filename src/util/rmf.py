"""
どこで: `util.rmf`（Rotation-Minimizing Frame Builder）。
何を: ポリラインに沿って、ねじれ最小の正規直交フレーム列 `(r, s, t)` を二重反射法で計算する。
なぜ: 移動するアンカー経路上でカーブ形状を「乗せて運ぶ」際、局所座標系がねじれたり飛んだり
      しないようにするため（カーブ符号化の基底として使う）。

アルゴリズム（Wang et al. 2008, double reflection）:
1) 接線 t_i = 次サンプルへの正規化ベクトル（ゼロ長セグメントは直前の接線を再利用、末尾は複製）。
2) 初期フレーム: t_0 と最も揃っていない座標軸から作る直交ベクトルを r_0 とする。
3) 各セグメント v1 = p_{i+1} - p_i について、
   r_i, t_i を v1 の二等分面で反射 → (rL, tL)、続いて v2 = t_{i+1} - tL の面で rL を再反射して r_{i+1}。
4) ゼロ長セグメントは直前フレームをそのまま複製。

不変条件:
- フレーム数 = 点数（≥1）。
- 各フレームは単位長かつ相互直交（数値誤差内）。
- `frame_at(t)` は t∈[0,1] を最寄りの離散フレームへ写す（補間しない）。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numba import njit

from common import settings

from .path_ops import nearest_index

_DEFAULT_TANGENT = (0.0, 0.0, 1.0)


def _frozen(v: np.ndarray) -> np.ndarray:
    out = np.array(v, dtype=np.float64, copy=True).reshape(3)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, slots=True)
class Frame:
    """正規直交フレーム 1 つ（`center` はサンプル位置）。"""

    r: np.ndarray
    s: np.ndarray
    t: np.ndarray
    center: np.ndarray

    @classmethod
    def from_arrays(
        cls, r: np.ndarray, s: np.ndarray, t: np.ndarray, center: np.ndarray
    ) -> "Frame":
        return cls(_frozen(r), _frozen(s), _frozen(t), _frozen(center))

    def basis(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """`(X, Y, Z) = (r, s, t)` を返す（カーブ符号化の基底）。"""
        return self.r, self.s, self.t


def orthogonal_vector(n: np.ndarray) -> np.ndarray:
    """単位ベクトル n に直交する（未正規化）ベクトル。

    n と最も揃っていない座標軸を捨てる分岐で、ほぼ平行な外積による不安定さを避ける。
    """
    x, y, z = float(n[0]), float(n[1]), float(n[2])
    ax, ay, az = abs(x), abs(y), abs(z)
    if ay >= 0.9 * ax and az >= 0.9 * ax:
        return np.array([0.0, -z, y], dtype=np.float64)
    if ax >= 0.9 * ay and az >= 0.9 * ay:
        return np.array([-z, 0.0, x], dtype=np.float64)
    return np.array([-y, x, 0.0], dtype=np.float64)


def _estimate_tangents(pts: np.ndarray, zero_norm: float) -> np.ndarray:
    """各サンプルの接線（ゼロ長は直前を再利用、先頭が縮退なら最初の有効接線）。"""
    n = pts.shape[0]
    tangents = np.empty((n, 3), dtype=np.float64)
    if n < 2:
        tangents[:] = _DEFAULT_TANGENT
        return tangents

    seg = pts[1:] - pts[:-1]
    lengths = np.sqrt(np.sum(seg * seg, axis=1))
    valid = lengths >= zero_norm
    if not np.any(valid):
        tangents[:] = _DEFAULT_TANGENT
        return tangents

    first = int(np.argmax(valid))
    prev = seg[first] / lengths[first]
    for i in range(n - 1):
        if valid[i]:
            prev = seg[i] / lengths[i]
        tangents[i] = prev
    tangents[n - 1] = tangents[n - 2]
    return tangents


def _double_reflection(
    points: np.ndarray,
    tangents: np.ndarray,
    r0: np.ndarray,
    zero_norm: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    n = points.shape[0]
    R = np.empty((n, 3), dtype=np.float64)
    S = np.empty((n, 3), dtype=np.float64)
    T = np.empty((n, 3), dtype=np.float64)

    # 初期フレーム（fromTR: s = t × r）
    t0x, t0y, t0z = tangents[0, 0], tangents[0, 1], tangents[0, 2]
    r0x, r0y, r0z = r0[0], r0[1], r0[2]
    s0x = t0y * r0z - t0z * r0y
    s0y = t0z * r0x - t0x * r0z
    s0z = t0x * r0y - t0y * r0x
    s0l = math.sqrt(s0x * s0x + s0y * s0y + s0z * s0z)
    R[0, 0], R[0, 1], R[0, 2] = r0x, r0y, r0z
    S[0, 0], S[0, 1], S[0, 2] = s0x / s0l, s0y / s0l, s0z / s0l
    T[0, 0], T[0, 1], T[0, 2] = t0x, t0y, t0z

    for i in range(n - 1):
        v1x = points[i + 1, 0] - points[i, 0]
        v1y = points[i + 1, 1] - points[i, 1]
        v1z = points[i + 1, 2] - points[i, 2]
        c1 = v1x * v1x + v1y * v1y + v1z * v1z
        if math.sqrt(c1) < zero_norm:
            for k in range(3):
                R[i + 1, k] = R[i, k]
                S[i + 1, k] = S[i, k]
                T[i + 1, k] = T[i, k]
            continue

        rix, riy, riz = R[i, 0], R[i, 1], R[i, 2]
        tix, tiy, tiz = T[i, 0], T[i, 1], T[i, 2]
        tjx, tjy, tjz = tangents[i + 1, 0], tangents[i + 1, 1], tangents[i + 1, 2]

        # 1 回目の反射（セグメント二等分面）
        f = 2.0 / c1 * (v1x * rix + v1y * riy + v1z * riz)
        rlx, rly, rlz = rix - f * v1x, riy - f * v1y, riz - f * v1z
        f = 2.0 / c1 * (v1x * tix + v1y * tiy + v1z * tiz)
        tlx, tly, tlz = tix - f * v1x, tiy - f * v1y, tiz - f * v1z

        # 2 回目の反射（tL → t_{i+1}）
        v2x, v2y, v2z = tjx - tlx, tjy - tly, tjz - tlz
        c2 = v2x * v2x + v2y * v2y + v2z * v2z
        if c2 > zero_norm * zero_norm:
            f = 2.0 / c2 * (v2x * rlx + v2y * rly + v2z * rlz)
            rjx, rjy, rjz = rlx - f * v2x, rly - f * v2y, rlz - f * v2z
        else:
            rjx, rjy, rjz = rlx, rly, rlz

        # fromST: s = t × r, r = s × t
        sjx = tjy * rjz - tjz * rjy
        sjy = tjz * rjx - tjx * rjz
        sjz = tjx * rjy - tjy * rjx
        sl = math.sqrt(sjx * sjx + sjy * sjy + sjz * sjz)
        sjx, sjy, sjz = sjx / sl, sjy / sl, sjz / sl
        tl = math.sqrt(tjx * tjx + tjy * tjy + tjz * tjz)
        tjx, tjy, tjz = tjx / tl, tjy / tl, tjz / tl
        rx = sjy * tjz - sjz * tjy
        ry = sjz * tjx - sjx * tjz
        rz = sjx * tjy - sjy * tjx
        rl = math.sqrt(rx * rx + ry * ry + rz * rz)

        R[i + 1, 0], R[i + 1, 1], R[i + 1, 2] = rx / rl, ry / rl, rz / rl
        S[i + 1, 0], S[i + 1, 1], S[i + 1, 2] = sjx, sjy, sjz
        T[i + 1, 0], T[i + 1, 1], T[i + 1, 2] = tjx, tjy, tjz

    return R, S, T


_double_reflection_njit = njit(cache=True)(_double_reflection)


class RMF:
    """回転最小化フレーム列（値型; 生成後は不変）。"""

    __slots__ = ("points", "frames")

    points: np.ndarray
    frames: tuple[Frame, ...]

    def __init__(self, points: np.ndarray, frames: Sequence[Frame]) -> None:
        pts = np.array(points, dtype=np.float64, copy=True).reshape(-1, 3)
        pts.setflags(write=False)
        if len(frames) != pts.shape[0]:
            raise ValueError("フレーム数と点数が一致しません")
        self.points = pts
        self.frames = tuple(frames)

    def __len__(self) -> int:
        return len(self.frames)

    def count(self) -> int:
        return len(self.frames)

    @property
    def front(self) -> Frame:
        return self.frames[0]

    @property
    def back(self) -> Frame:
        return self.frames[-1]

    def frame_at(self, t: float) -> Frame:
        """t∈[0,1]（クランプ）を最寄りの離散フレームへ写す。"""
        if not self.frames:
            raise ValueError("空の RMF からフレームは取り出せません")
        return self.frames[nearest_index(t, len(self.frames))]


def build_rmf(
    points: np.ndarray | Sequence[Sequence[float]], zero_norm: float | None = None
) -> RMF:
    """ポリラインから RMF を構築する。

    Parameters
    ----------
    points : array-like
        形状 `(N,3)`, N ≥ 1。
    zero_norm : float | None
        縮退セグメント判定の閾値。None は `settings.RMF_ZERO_NORM`。

    Returns
    -------
    RMF
        点ごとに 1 フレーム。すべて縮退した入力は +Z 接線から初期化したフレームの複製。
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3 or pts.shape[0] == 0:
        raise ValueError(f"RMF の入力は形状 (N>=1, 3) である必要があります: {pts.shape}")
    pts = np.ascontiguousarray(pts)
    eps = float(settings.get().RMF_ZERO_NORM if zero_norm is None else zero_norm)

    tangents = _estimate_tangents(pts, eps)
    r0 = orthogonal_vector(tangents[0])
    r0 = r0 / float(np.linalg.norm(r0))

    if settings.get().USE_NUMBA:
        R, S, T = _double_reflection_njit(pts, tangents, r0, eps)
    else:
        R, S, T = _double_reflection(pts, tangents, r0, eps)

    frames = [Frame.from_arrays(R[i], S[i], T[i], pts[i]) for i in range(pts.shape[0])]
    return RMF(pts, frames)


__all__ = ["Frame", "RMF", "build_rmf", "orthogonal_vector"]
