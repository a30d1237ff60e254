"""
どこで: `topoblend.core.geodesic`
何を: 構造グラフ上の測地パス提供者。各ノードの局所座標をサンプリングして
      ノード内（カーブ: 連鎖, シート: 4 近傍格子）とリンク間（アタッチ座標同士）を結ぶ重み付きグラフを作り、
      Dijkstra で最短経路を `(node_id, coord)` の列として返す。
なぜ: GROW/SHRINK/MORPH の端点移動を「形状の上を通る経路」で振り付けるため。

API（外部協調者の契約）:
- `compute_distances(seed_position, excluded_node_ids)`: 除外ノード集合はスケジューラが所有し、明示引数で渡す。
- `smooth_path_coord_to(target_position)`: シード側 → ターゲット側の順に並んだ `PathPoint` 列。
  到達不能なら空タプル。

注意:
- リンク接合部では両ノードのサンプルが同位置に重なるため、経路には重複サンプルが含まれうる。
  RMF に渡す前に `util.path_ops.weld_path` で除去すること。
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Protocol, Sequence

import numpy as np

from common import settings
from common.types import Coord

from .nodes import NodeKind

if TYPE_CHECKING:
    from .graph import StructureGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PathPoint:
    """経路サンプル: ノード id と局所座標。"""

    node_id: str
    coord: Coord

    def position(self, graph: "StructureGraph") -> np.ndarray:
        node = graph.get_node(self.node_id)
        if node is None:
            raise KeyError(f"ノード '{self.node_id}' がグラフに存在しません")
        return node.position(self.coord)


Path = tuple[PathPoint, ...]


def path_positions(path: Sequence[PathPoint], graph: "StructureGraph") -> np.ndarray:
    """経路を空間位置 `(N,3)` へ変換する。"""
    if not path:
        return np.empty((0, 3), dtype=np.float64)
    return np.stack([p.position(graph) for p in path]).astype(np.float64, copy=False)


class PathProvider(Protocol):
    """測地パス提供者の契約（テストで差し替え可能）。"""

    def compute_distances(
        self, seed_position: np.ndarray, excluded_node_ids: Iterable[str] = ()
    ) -> None: ...

    def smooth_path_coord_to(self, target_position: np.ndarray) -> Path: ...


class GraphDistance:
    """サンプリング + Dijkstra による測地パス提供者。"""

    def __init__(self, graph: "StructureGraph", resolution: int | None = None) -> None:
        self.graph = graph
        res = settings.get().GEODESIC_RESOLUTION if resolution is None else resolution
        self.resolution = max(2, int(res))
        self._samples: list[PathPoint] = []
        self._positions = np.empty((0, 3), dtype=np.float64)
        self._dist = np.empty(0, dtype=np.float64)
        self._prev = np.empty(0, dtype=np.int64)
        self._source = -1

    # ── サンプリング ─────────────
    def _build(self, excluded: frozenset[str]) -> list[list[tuple[int, float]]]:
        samples: list[PathPoint] = []
        index: dict[tuple[str, Coord], int] = {}

        def add(node_id: str, coord: Coord) -> int:
            key = (node_id, coord)
            idx = index.get(key)
            if idx is None:
                idx = len(samples)
                index[key] = idx
                samples.append(PathPoint(node_id, coord))
            return idx

        def attach_key(node_id: str, coord: Coord) -> Coord:
            node = self.graph.nodes[node_id]
            if node.kind is NodeKind.CURVE:
                return (float(coord[0]), 0.0)
            return (float(coord[0]), float(coord[1]))

        live_links = [
            link
            for link in self.graph.edges
            if link.n1.id not in excluded and link.n2.id not in excluded
        ]
        attach: dict[str, list[Coord]] = {}
        for link in live_links:
            attach.setdefault(link.n1.id, []).append(attach_key(link.n1.id, link.coord1[0]))
            attach.setdefault(link.n2.id, []).append(attach_key(link.n2.id, link.coord2[0]))

        pairs: list[tuple[int, int]] = []
        grid = np.linspace(0.0, 1.0, self.resolution)
        for node in self.graph:
            if node.id in excluded:
                continue
            extra = attach.get(node.id, [])
            if node.kind is NodeKind.CURVE:
                us = sorted({float(u) for u in grid} | {float(c[0]) for c in extra})
                ids = [add(node.id, (u, 0.0)) for u in us]
                pairs.extend(zip(ids[:-1], ids[1:]))
            else:
                n = self.resolution
                ids2 = [[add(node.id, (float(grid[i]), float(grid[j]))) for j in range(n)] for i in range(n)]
                for i in range(n):
                    for j in range(n):
                        if i + 1 < n:
                            pairs.append((ids2[i][j], ids2[i + 1][j]))
                        if j + 1 < n:
                            pairs.append((ids2[i][j], ids2[i][j + 1]))
                for c in extra:
                    i = min(n - 1, max(0, int(np.floor(c[0] * (n - 1) + 0.5))))
                    j = min(n - 1, max(0, int(np.floor(c[1] * (n - 1) + 0.5))))
                    pairs.append((add(node.id, (float(c[0]), float(c[1]))), ids2[i][j]))

        for link in live_links:
            a = index[(link.n1.id, attach_key(link.n1.id, link.coord1[0]))]
            b = index[(link.n2.id, attach_key(link.n2.id, link.coord2[0]))]
            pairs.append((a, b))

        self._samples = samples
        if samples:
            self._positions = np.stack([p.position(self.graph) for p in samples])
        else:
            self._positions = np.empty((0, 3), dtype=np.float64)

        adjacency: list[list[tuple[int, float]]] = [[] for _ in samples]
        for a, b in pairs:
            if a == b:
                continue
            w = float(np.linalg.norm(self._positions[a] - self._positions[b]))
            adjacency[a].append((b, w))
            adjacency[b].append((a, w))
        return adjacency

    def _nearest(self, position: np.ndarray) -> int:
        if self._positions.shape[0] == 0:
            return -1
        d = self._positions - np.asarray(position, dtype=np.float64).reshape(1, 3)
        return int(np.argmin(np.sum(d * d, axis=1)))

    # ── 公開 API ─────────────────
    def compute_distances(
        self, seed_position: np.ndarray, excluded_node_ids: Iterable[str] = ()
    ) -> None:
        """シード位置（最寄りサンプル）から全サンプルへの測地距離を計算する。"""
        excluded = frozenset(excluded_node_ids)
        adjacency = self._build(excluded)
        n = len(self._samples)
        self._dist = np.full(n, np.inf, dtype=np.float64)
        self._prev = np.full(n, -1, dtype=np.int64)
        self._source = self._nearest(seed_position)
        if self._source < 0:
            logger.debug("geodesic: no samples outside excluded set %s", sorted(excluded))
            return

        self._dist[self._source] = 0.0
        heap: list[tuple[float, int]] = [(0.0, self._source)]
        while heap:
            d, u = heapq.heappop(heap)
            if d > self._dist[u]:
                continue
            for v, w in adjacency[u]:
                nd = d + w
                if nd < self._dist[v]:
                    self._dist[v] = nd
                    self._prev[v] = u
                    heapq.heappush(heap, (nd, v))

    def distance_to(self, target_position: np.ndarray) -> float:
        idx = self._nearest(target_position)
        return float(self._dist[idx]) if idx >= 0 and self._dist.size else float("inf")

    def smooth_path_coord_to(self, target_position: np.ndarray) -> Path:
        """シード → ターゲット（最寄りサンプル）の経路。到達不能なら空。"""
        target = self._nearest(target_position)
        if target < 0 or self._source < 0 or not np.isfinite(self._dist[target]):
            logger.debug("geodesic: target unreachable from seed")
            return ()
        chain: list[int] = []
        cur = target
        while cur >= 0:
            chain.append(cur)
            cur = int(self._prev[cur])
        chain.reverse()
        return tuple(self._samples[i] for i in chain)

    def shortest_path(
        self,
        seed_position: np.ndarray,
        target_position: np.ndarray,
        excluded_node_ids: Iterable[str] = (),
    ) -> Path:
        self.compute_distances(seed_position, excluded_node_ids)
        return self.smooth_path_coord_to(target_position)


__all__ = ["PathPoint", "Path", "PathProvider", "GraphDistance", "path_positions"]
