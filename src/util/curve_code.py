"""
どこで: `util.curve_code`（Curve Encoder / Decoder）。
何を: 制御点列を「基準線分 start→end + フレーム基底 (X, Y, Z)」に対する相対球座標
      `(arc_param, offset_ratio, theta, psi)` へ符号化し、その逆変換を提供する。
なぜ: 端点とフレームが時間とともに動いても、カーブのシルエットを相対的に保ったまま
      再構成（経路に沿って“乗せて運ぶ”）できるようにするため。

符号化（制御点 p ごと）:
- 線分上の最近点パラメータ t∈[0,1] と垂直オフセット d = p - proj を求める。
- `arc_param = 1 - t`, `offset_ratio = |d| / |end - start|`。
- `(theta, psi)` は d の方向を基底 (X, Y, Z) で表した球面角
  （theta: Z からの極角, psi: X→Y 方向の方位角）。|d| = 0 のときは (0, 0)。

復号は逆変換: 現在の線分上の点 `start + (1 - arc_param)(end - start)` に、
現在の基底で再構成した方向 × `offset_ratio × 現在の線分長` を加える。
縮退した基準線分で符号化した場合は比率の分母を 1 とし、縮退線分への復号は基点へ潰れる。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

EPS = 1e-12

VecLike = np.ndarray | Sequence[float]


def _vec3(v: VecLike) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"3 次元ベクトルが必要です: {arr.shape}")
    return arr


def global_to_local_spherical(
    x_axis: VecLike, y_axis: VecLike, z_axis: VecLike, direction: np.ndarray | VecLike
):
    """方向ベクトルを基底 (X, Y, Z) の球面角 `(theta, psi)` に変換する（ゼロベクトルは (0, 0)）。

    `direction` が形状 `(3,)` なら float の組、`(N,3)` なら長さ N の配列の組を返す。
    """
    d = np.asarray(direction, dtype=np.float64)
    single = d.ndim == 1
    d = np.atleast_2d(d)
    if d.ndim != 2 or d.shape[1] != 3:
        raise ValueError(f"方向は形状 (3,) または (N, 3) である必要があります: {d.shape}")
    lx = d @ _vec3(x_axis)
    ly = d @ _vec3(y_axis)
    lz = d @ _vec3(z_axis)
    zero = (lx == 0.0) & (ly == 0.0) & (lz == 0.0)
    theta = np.where(zero, 0.0, np.arctan2(np.hypot(lx, ly), lz))
    psi = np.where(zero, 0.0, np.arctan2(ly, lx))
    if single:
        return float(theta[0]), float(psi[0])
    return theta, psi


def local_spherical_to_global(
    x_axis: VecLike, y_axis: VecLike, z_axis: VecLike, theta, psi
) -> np.ndarray:
    """球面角 `(theta, psi)` を基底 (X, Y, Z) 上の単位ベクトルへ戻す。

    スカラー角なら形状 `(3,)`、長さ N の配列なら `(N,3)` を返す。
    """
    th = np.asarray(theta, dtype=np.float64)[..., None]
    ps = np.asarray(psi, dtype=np.float64)[..., None]
    st = np.sin(th)
    return (
        st * np.cos(ps) * _vec3(x_axis)
        + st * np.sin(ps) * _vec3(y_axis)
        + np.cos(th) * _vec3(z_axis)
    )


@dataclass(frozen=True, slots=True)
class CurveEncoding:
    """制御点ごとの `(arc_param, offset_ratio, theta, psi)`（形状 `(N,4)`、読み取り専用）。"""

    params: np.ndarray

    def __post_init__(self) -> None:
        arr = np.array(self.params, dtype=np.float64, copy=True)
        if arr.ndim != 2 or arr.shape[1] != 4:
            raise ValueError(f"CurveEncoding は形状 (N, 4) である必要があります: {arr.shape}")
        arr.setflags(write=False)
        object.__setattr__(self, "params", arr)

    def __len__(self) -> int:
        return int(self.params.shape[0])

    @property
    def arc_param(self) -> np.ndarray:
        return self.params[:, 0]

    @property
    def offset_ratio(self) -> np.ndarray:
        return self.params[:, 1]

    @property
    def theta(self) -> np.ndarray:
        return self.params[:, 2]

    @property
    def psi(self) -> np.ndarray:
        return self.params[:, 3]


def _segment(start: VecLike, end: VecLike) -> tuple[np.ndarray, np.ndarray, float, float]:
    a = _vec3(start)
    d = _vec3(end) - a
    length = float(np.linalg.norm(d))
    # 縮退線分では単位スケール（オフセットは絶対量で保持される）
    scale = length if length > EPS else 1.0
    return a, d, length, scale


def encode_curve(
    points: np.ndarray | Sequence[Sequence[float]],
    start: VecLike,
    end: VecLike,
    x_axis: VecLike,
    y_axis: VecLike,
    z_axis: VecLike,
) -> CurveEncoding:
    """制御点列を線分 start→end とフレーム基底に対して符号化する。

    Parameters
    ----------
    points : array-like
        形状 `(N,3)` の制御点。
    start, end : array-like
        基準線分の端点。
    x_axis, y_axis, z_axis : array-like
        正規直交基底（通常は RMF フレームの `(r, s, t)`）。

    Returns
    -------
    CurveEncoding
        長さ N の符号化。
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"制御点は形状 (N, 3) である必要があります: {pts.shape}")
    a, d, length, scale = _segment(start, end)

    if length > EPS:
        t = np.clip(((pts - a) @ d) / (length * length), 0.0, 1.0)
    else:
        t = np.zeros(pts.shape[0], dtype=np.float64)
    proj = a + t[:, None] * d
    offset = pts - proj
    mag = np.sqrt(np.sum(offset * offset, axis=1))
    theta, psi = global_to_local_spherical(x_axis, y_axis, z_axis, offset)

    params = np.stack([1.0 - t, mag / scale, theta, psi], axis=1)
    return CurveEncoding(params)


def decode_curve(
    encoding: CurveEncoding,
    start: VecLike,
    end: VecLike,
    x_axis: VecLike,
    y_axis: VecLike,
    z_axis: VecLike,
) -> np.ndarray:
    """`encode_curve` の逆変換。現在の線分と現在の基底で制御点 `(N,3)` を再構成する。"""
    a, d, length, _scale = _segment(start, end)
    p = encoding.params
    base = a + (1.0 - p[:, 0])[:, None] * d
    direction = local_spherical_to_global(x_axis, y_axis, z_axis, p[:, 2], p[:, 3])
    return base + direction * (p[:, 1] * length)[:, None]


__all__ = [
    "CurveEncoding",
    "encode_curve",
    "decode_curve",
    "global_to_local_spherical",
    "local_spherical_to_global",
]
