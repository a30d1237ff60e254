"""
どこで: `topoblend.core.nodes`
何を: 構造グラフのノード表現（パラメトリックな `Curve` / `Sheet`）。
      制御点の取得/設定、局所座標 → 空間位置、局所座標 → 最寄り制御点 index、
      折り畳み `fold_to`（アンカー座標への収縮量）、平行移動を提供する。
なぜ: タスクが「アタッチ位置」「折り畳み差分」「制御点の書き戻し」を一様に扱えるようにするため。

データモデル:
- `Curve.control_points: float64 (N, 3)`、局所座標は `(u, 0)`, u∈[0,1]。
- `Sheet.control_points: float64 (NU, NV, 3)`、局所座標は `(u, v)`。
- 評価はクランプ一様ノットの B-spline（次数は `min(degree, N-1)`）。端点は端の制御点に一致。

折り畳み（fold）:
- `fold_to(coord, apply)` はアンカー位置へ全制御点を寄せる差分 `cp - anchor` を返す。
  `apply=True` なら実際に制御点をアンカー位置へ潰す（GROW の準備）。
- シートは座標 1 つなら点へ、2 つ以上なら先頭と末尾の線分上の最近点へ寄せる。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Sequence

import numpy as np

from common.types import Coord

EPS = 1e-12


class NodeKind(str, Enum):
    CURVE = "curve"
    SHEET = "sheet"


def _clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else (1.0 if x > 1.0 else float(x))


def _bspline_point(ctrl: np.ndarray, degree: int, u: float) -> np.ndarray:
    """クランプ一様 B-spline を de Boor 法で評価する（ctrl: (N, D)）。"""
    n = ctrl.shape[0]
    p = min(int(degree), n - 1)
    if p <= 0:
        return ctrl[0].copy()
    inner = np.linspace(0.0, 1.0, n - p + 1)[1:-1]
    knots = np.concatenate([np.zeros(p + 1), inner, np.ones(p + 1)])
    u = _clamp01(u)
    if u >= 1.0:
        k = n - 1
    else:
        k = int(np.searchsorted(knots, u, side="right")) - 1
        k = min(max(k, p), n - 1)

    d = ctrl[k - p : k + 1].astype(np.float64, copy=True)
    for r in range(1, p + 1):
        for j in range(p, r - 1, -1):
            lo = knots[j + k - p]
            hi = knots[j + 1 + k - r]
            alpha = 0.0 if hi - lo <= 0.0 else (u - lo) / (hi - lo)
            d[j] = (1.0 - alpha) * d[j - 1] + alpha * d[j]
    return d[p]


def _closest_on_segment(pts: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    d = b - a
    dd = float(np.dot(d, d))
    if dd <= EPS:
        return np.broadcast_to(a, pts.shape).copy()
    t = np.clip(((pts - a) @ d) / dd, 0.0, 1.0)
    return a + t[..., None] * d


class Curve:
    """パラメトリックカーブノード。"""

    kind = NodeKind.CURVE

    __slots__ = ("id", "degree", "properties", "_ctrl")

    def __init__(
        self,
        node_id: str,
        control_points: np.ndarray | Sequence[Sequence[float]],
        *,
        degree: int = 3,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self.id = str(node_id)
        self.degree = int(degree)
        self.properties: dict[str, Any] = dict(properties or {})
        self._ctrl = self._normalize(control_points)

    @staticmethod
    def _normalize(points: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
        arr = np.array(points, dtype=np.float64, copy=True)
        if arr.ndim != 2 or arr.shape[1] != 3 or arr.shape[0] == 0:
            raise ValueError(f"カーブの制御点は形状 (N>=1, 3) である必要があります: {arr.shape}")
        return arr

    def __repr__(self) -> str:
        return f"Curve({self.id!r}, n={self.num_ctrl_points})"

    # ── 制御点 ───────────────────
    @property
    def num_ctrl_points(self) -> int:
        return int(self._ctrl.shape[0])

    def control_points(self) -> np.ndarray:
        """制御点のコピーを返す。"""
        return self._ctrl.copy()

    def control_point(self, idx: int) -> np.ndarray:
        return self._ctrl[int(idx)].copy()

    def set_control_points(self, points: np.ndarray | Sequence[Sequence[float]]) -> None:
        arr = self._normalize(points)
        if arr.shape != self._ctrl.shape:
            raise ValueError(f"制御点数が一致しません: {arr.shape} != {self._ctrl.shape}")
        self._ctrl = arr

    # ── 評価 ─────────────────────
    def position(self, coord: Coord | Sequence[float]) -> np.ndarray:
        return _bspline_point(self._ctrl, self.degree, float(coord[0]))

    def control_point_index_from_coord(self, coord: Coord | Sequence[float]) -> int:
        n = self.num_ctrl_points
        return int(np.floor(_clamp01(float(coord[0])) * (n - 1) + 0.5))

    # ── 変形 ─────────────────────
    def fold_to(self, coord: Coord | Sequence[float], apply: bool) -> np.ndarray:
        """アタッチ座標の制御点へ寄せる差分 `cp - anchor` を返す（apply=True で実際に潰す）。"""
        anchor = self._ctrl[self.control_point_index_from_coord(coord)].copy()
        deltas = self._ctrl - anchor
        if apply:
            self._ctrl = np.broadcast_to(anchor, self._ctrl.shape).copy()
        return deltas

    def move_by(self, delta: Sequence[float] | np.ndarray) -> None:
        self._ctrl = self._ctrl + np.asarray(delta, dtype=np.float64).reshape(3)

    def translate_to(self, pos: Sequence[float] | np.ndarray, idx: int) -> None:
        """制御点 idx が `pos` に来るよう全体を平行移動する。"""
        self.move_by(np.asarray(pos, dtype=np.float64) - self._ctrl[int(idx)])


class Sheet:
    """パラメトリックシートノード（テンソル積）。"""

    kind = NodeKind.SHEET

    __slots__ = ("id", "degree", "properties", "_ctrl")

    def __init__(
        self,
        node_id: str,
        control_grid: np.ndarray | Sequence[Sequence[Sequence[float]]],
        *,
        degree: int = 3,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self.id = str(node_id)
        self.degree = int(degree)
        self.properties: dict[str, Any] = dict(properties or {})
        self._ctrl = self._normalize(control_grid)

    @staticmethod
    def _normalize(grid: np.ndarray | Sequence[Sequence[Sequence[float]]]) -> np.ndarray:
        arr = np.array(grid, dtype=np.float64, copy=True)
        if arr.ndim != 3 or arr.shape[2] != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError(
                f"シートの制御点は形状 (NU>=1, NV>=1, 3) である必要があります: {arr.shape}"
            )
        return arr

    def __repr__(self) -> str:
        nu, nv = self.grid_shape
        return f"Sheet({self.id!r}, grid={nu}x{nv})"

    @property
    def grid_shape(self) -> tuple[int, int]:
        return int(self._ctrl.shape[0]), int(self._ctrl.shape[1])

    def control_points(self) -> np.ndarray:
        return self._ctrl.copy()

    def set_control_points(
        self, grid: np.ndarray | Sequence[Sequence[Sequence[float]]]
    ) -> None:
        arr = self._normalize(grid)
        if arr.shape != self._ctrl.shape:
            raise ValueError(f"制御点グリッドの形状が一致しません: {arr.shape} != {self._ctrl.shape}")
        self._ctrl = arr

    def position(self, coord: Coord | Sequence[float]) -> np.ndarray:
        u = float(coord[0])
        v = float(coord[1]) if len(coord) > 1 else 0.0
        nu, _nv = self.grid_shape
        # v 方向に各行を評価 → u 方向に評価
        rows = np.stack([_bspline_point(self._ctrl[i], self.degree, v) for i in range(nu)])
        return _bspline_point(rows, self.degree, u)

    def control_point_index_from_coord(self, coord: Coord | Sequence[float]) -> tuple[int, int]:
        nu, nv = self.grid_shape
        v = float(coord[1]) if len(coord) > 1 else 0.0
        iu = int(np.floor(_clamp01(float(coord[0])) * (nu - 1) + 0.5))
        iv = int(np.floor(_clamp01(v) * (nv - 1) + 0.5))
        return iu, iv

    def fold_to(self, coords: Sequence[Coord | Sequence[float]], apply: bool) -> np.ndarray:
        """アタッチ座標（1 つ=点, 2 つ以上=線分）へ寄せる差分グリッド `(NU, NV, 3)`。"""
        if len(coords) == 0:
            raise ValueError("fold_to には少なくとも 1 つの座標が必要です")
        if len(coords) == 1:
            target = np.broadcast_to(self.position(coords[0]), self._ctrl.shape).copy()
        else:
            a = self.position(coords[0])
            b = self.position(coords[-1])
            target = _closest_on_segment(self._ctrl, a, b)
        deltas = self._ctrl - target
        if apply:
            self._ctrl = target
        return deltas

    def move_by(self, delta: Sequence[float] | np.ndarray) -> None:
        self._ctrl = self._ctrl + np.asarray(delta, dtype=np.float64).reshape(3)


Node = Curve | Sheet


__all__ = ["NodeKind", "Curve", "Sheet", "Node"]
