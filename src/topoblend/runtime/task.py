"""
どこで: `topoblend.runtime.task`
何を: 1 ノードぶんの変形タスク `Task`。時間窓（start, length）を持ち、
      初回実行時に一度だけ prepare して成果物を作り、以後は正規化時刻 t∈[0,1] ごとに execute する。
なぜ: (ノード種別 × 操作種別) の変種をレジストリで解決し、状態遷移と最終化を 1 箇所にまとめるため。

状態遷移:
    UNPREPARED --prepare/adopt--> READY --execute(t<1)--> RUNNING --execute(t==1)--> DONE
    reset() でいつでも UNPREPARED へ戻る。

不変条件:
- `current_time == int(start + t * length)`（最後に実行した t）。
- 成果物は prepare/adopt 以外で差し替えない。execute は成果物を書き換えない。
- t == 1 の execute でのみ位相（エッジ）を更新し、完了済みタスクは以後何もしない。
"""

from __future__ import annotations

import logging
from typing import Callable

from common import settings

from ..core.geodesic import GraphDistance, PathProvider
from ..core.graph import StructureGraph
from ..core.nodes import Node
from . import curve_ops, sheet_ops  # noqa: F401  (変種の登録)
from .context import TaskArtifacts, TaskContext, TaskKind, TaskState
from .registry import get_executor, get_preparer
from .topology import finalize

logger = logging.getLogger(__name__)


class Task:
    """active グラフ上の 1 ノードを target グラフへ向けて変形するタスク。"""

    def __init__(
        self,
        active: StructureGraph,
        target: StructureGraph | None,
        kind: TaskKind | str,
        node_id: str,
        task_id: int = 0,
        *,
        start: int = 0,
        length: int | None = None,
        path_provider: Callable[[StructureGraph], PathProvider] | None = None,
    ) -> None:
        if active.get_node(node_id) is None:
            raise KeyError(f"ノード '{node_id}' が active グラフに存在しません")
        self.active = active
        self.target = target
        self.kind = TaskKind(kind)
        self.node_id = str(node_id)
        self.task_id = task_id
        self._path_provider = path_provider or GraphDistance

        self._start = int(start)
        self._length = max(1, int(settings.get().DEFAULT_TASK_LENGTH if length is None else length))
        self._current_time = self._start
        self._is_ready = False
        self._is_done = False
        self._state = TaskState.UNPREPARED
        self._artifacts = TaskArtifacts()

    def __repr__(self) -> str:
        return (
            f"Task(id={self.task_id}, node={self.node_id!r}, kind={self.kind.value}, "
            f"window=[{self._start}, {self.end_time()}), state={self._state.value})"
        )

    # ── 状態 ─────────────────────
    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    @property
    def is_done(self) -> bool:
        return self._is_done

    @property
    def current_time(self) -> int:
        return self._current_time

    @property
    def artifacts(self) -> TaskArtifacts:
        return self._artifacts

    # ── 時間窓 ───────────────────
    @property
    def start(self) -> int:
        return self._start

    @property
    def length(self) -> int:
        return self._length

    def set_start(self, start: int) -> None:
        self._start = int(start)
        self._current_time = 0

    def set_length(self, length: int) -> None:
        self._length = max(1, int(length))

    def end_time(self) -> int:
        return self._start + self._length

    def still_working(self) -> bool:
        return self._current_time < self.end_time()

    def local_t(self, global_time: float) -> float:
        """大域時刻を正規化時刻へ。窓の前は -1、窓の後は 1 に張り付く。"""
        if global_time < self._start:
            return -1.0
        return min(1.0, (global_time - self._start) / self._length)

    def is_active(self, t: float) -> bool:
        return t >= 0.0 and not self._is_done

    # ── ノード参照 ───────────────
    def node(self) -> Node:
        node = self.active.get_node(self.node_id)
        if node is None:
            raise KeyError(f"ノード '{self.node_id}' が active グラフに存在しません")
        return node

    def target_node(self) -> Node | None:
        return self._context().target_node()

    def _context(self, exclude: frozenset[str] = frozenset()) -> TaskContext:
        return TaskContext(
            active=self.active,
            target=self.target,
            kind=self.kind,
            node_id=self.node_id,
            exclude=frozenset(exclude),
            path_provider=self._path_provider,
        )

    # ── ライフサイクル ───────────
    def prepare(self, exclude: frozenset[str] = frozenset()) -> TaskArtifacts:
        """成果物を生成して READY にする（`exclude` は経路探索で避けるノード id）。"""
        node = self.node()
        self._current_time = self._start
        self._is_done = False
        self._artifacts = get_preparer(node.kind, self.kind)(self._context(exclude))
        self._mark_ready()
        logger.debug("prepared %r (cut=%s)", self, self._artifacts.is_cut_node)
        return self._artifacts

    def adopt(self, artifacts: TaskArtifacts) -> None:
        """外部で用意した成果物を採用して READY にする（prepare を経由しない）。"""
        self._artifacts = artifacts
        self._is_done = False
        self._mark_ready()

    def _mark_ready(self) -> None:
        self._is_ready = True
        self._state = TaskState.READY
        self.node().properties["is_ready"] = True

    def execute(self, t: float, exclude: frozenset[str] = frozenset()) -> None:
        """正規化時刻 t で 1 ステップ進める。t < 0 または完了済みなら何もしない。"""
        if not self.is_active(t):
            return
        if not self._is_ready:
            self.prepare(exclude)

        t = min(1.0, float(t))
        self._current_time = int(self._start + t * self._length)
        ctx = self._context(exclude)
        node = self.node()
        moved = get_executor(node.kind, self.kind)(ctx, self._artifacts, t)
        if not moved:
            logger.debug("task %s: geometry skipped at t=%.3f", self.task_id, t)
        self._state = TaskState.RUNNING

        if t >= 1.0:
            finalize(ctx)
            self._is_done = True
            self._state = TaskState.DONE

    def reset(self) -> None:
        self._is_ready = False
        self._is_done = False
        self._current_time = self._start
        self._artifacts = TaskArtifacts()
        self._state = TaskState.UNPREPARED


__all__ = ["Task"]
