"""
どこで: `topoblend.runtime.context`
何を: タスクの種別列挙（`TaskKind`/`TaskState`）、準備成果物 `TaskArtifacts`、
      変種関数へ渡す読み取り文脈 `TaskContext` を定義する。
なぜ: prepare/execute の各変種が同じ型を受け渡しでき、成果物を生成後に不変として扱えるようにするため。

補足:
- `TaskArtifacts` の配列フィールドは生成時にコピーされ、書き込み不可になる。
- 未設定フィールドは None。None の成果物に依存するジオメトリ処理は実行時に no-op になる。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import numpy as np

from util.curve_code import CurveEncoding
from util.rmf import RMF

from ..core.geodesic import GraphDistance, Path, PathProvider
from ..core.graph import StructureGraph
from ..core.nodes import Node


class TaskKind(str, Enum):
    SHRINK = "shrink"
    MORPH = "morph"
    MERGE = "merge"
    SPLIT = "split"
    GROW = "grow"


# MORPH と同じ振る舞いをする種別
MORPH_LIKE = frozenset({TaskKind.MORPH, TaskKind.SPLIT, TaskKind.MERGE})


class TaskState(Enum):
    UNPREPARED = "unprepared"
    READY = "ready"
    RUNNING = "running"
    DONE = "done"


def _frozen_copy(arr: np.ndarray | None) -> np.ndarray | None:
    if arr is None:
        return None
    out = np.array(arr, dtype=np.float64, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, slots=True)
class TaskArtifacts:
    """prepare が一度だけ生成し、execute が読み取り専用で使う成果物。"""

    org_ctrl_points: np.ndarray | None = None
    deltas: np.ndarray | None = None
    path: Path | None = None
    path_a: Path | None = None
    path_b: Path | None = None
    rmf: RMF | None = None
    encoding: CurveEncoding | None = None
    anchor_node: str | None = None
    cp_idx: int | None = None
    target_cp_idx: int | None = None
    is_cut_node: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "org_ctrl_points", _frozen_copy(self.org_ctrl_points))
        object.__setattr__(self, "deltas", _frozen_copy(self.deltas))
        for name in ("path", "path_a", "path_b"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(value))

    @property
    def is_empty(self) -> bool:
        return self.org_ctrl_points is None and self.deltas is None and self.encoding is None

    def has_fold(self) -> bool:
        return self.org_ctrl_points is not None and self.deltas is not None

    def has_ride(self) -> bool:
        """2 本の経路に沿って符号化形状を運ぶ成果物が揃っているか。"""
        return (
            bool(self.path_a)
            and bool(self.path_b)
            and self.rmf is not None
            and self.encoding is not None
        )


@dataclass(frozen=True)
class TaskContext:
    """変種関数へ渡す文脈（グラフ参照・対象ノード・経路探索の除外集合）。"""

    active: StructureGraph
    target: StructureGraph | None
    kind: TaskKind
    node_id: str
    exclude: frozenset[str] = frozenset()
    path_provider: Callable[[StructureGraph], PathProvider] = field(default=GraphDistance)

    def node(self) -> Node:
        node = self.active.get_node(self.node_id)
        if node is None:
            raise KeyError(f"ノード '{self.node_id}' が active グラフに存在しません")
        return node

    def target_node(self) -> Node | None:
        if self.target is None:
            return None
        return self.target.get_node(self.active.correspondence(self.node_id))

    def shortest_path(self, seed: np.ndarray, goal: np.ndarray) -> Path:
        """active グラフ上、除外集合を避けた seed → goal の経路（到達不能なら空）。"""
        provider = self.path_provider(self.active)
        provider.compute_distances(seed, self.exclude)
        return tuple(provider.smooth_path_coord_to(goal))


__all__ = [
    "TaskKind",
    "TaskState",
    "MORPH_LIKE",
    "TaskArtifacts",
    "TaskContext",
]
