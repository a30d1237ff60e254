"""
どこで: `topoblend.runtime.scheduler`
何を: 複数の `Task` を大域時刻で駆動するスケジューラ。フレームごとに各タスクの正規化時刻を求めて
      execute し、経路探索で避けるべき「実行中ノード集合」を明示引数として渡す。
なぜ: 実行中集合をグラフの共有プロパティに置かず、フレーム内で一貫した値として配るため。

フレームの手順:
1) `running_node_ids(g)` を一度だけ計算（窓に入っていて未完了のタスクのノード）。
2) 開始時刻 → task_id の順に、窓に入ったタスクを `execute(local_t, exclude=running - {自ノード})`。
3) 例外は `logger.exception` で記録し `TaskError` として再送出。
"""

from __future__ import annotations

import logging
from typing import Iterable

from .errors import TaskError
from .task import Task

logger = logging.getLogger(__name__)


class Scheduler:
    """タスク列を時間窓どおりに実行する。`tick(dt)` で FrameClock 系のループにも載せられる。"""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: list[Task] = []
        self._time = 0.0
        for task in tasks:
            self.add_task(task)

    def add_task(self, task: Task) -> Task:
        self._tasks.append(task)
        return task

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(sorted(self._tasks, key=lambda t: (t.start, t.task_id)))

    @property
    def time(self) -> float:
        return self._time

    def total_duration(self) -> int:
        return max((t.end_time() for t in self._tasks), default=0)

    def running_node_ids(self, global_time: float) -> frozenset[str]:
        return frozenset(
            t.node_id for t in self._tasks if t.local_t(global_time) >= 0.0 and not t.is_done
        )

    def execute_frame(self, global_time: float) -> None:
        running = self.running_node_ids(global_time)
        for task in self.tasks:
            t = task.local_t(global_time)
            if not task.is_active(t):
                continue
            try:
                task.execute(t, exclude=running - {task.node_id})
            except Exception as e:
                logger.exception(
                    "[scheduler] task_id=%s node=%s kind=%s t=%.3f error=%s",
                    task.task_id,
                    task.node_id,
                    task.kind.value,
                    t,
                    e,
                )
                raise TaskError(task.task_id, e) from e

    def tick(self, dt: float) -> None:
        """大域時刻を `dt` フレーム進めて 1 フレーム実行する。"""
        self._time += dt
        self.execute_frame(self._time)

    def run(self, step: int = 1) -> int:
        """時刻 0 から全タスク完了まで `step` 刻みで実行し、実行したフレーム数を返す。"""
        if step <= 0:
            raise ValueError("step は 1 以上である必要があります")
        total = self.total_duration()
        frames = 0
        g = 0
        while g < total:
            self.execute_frame(g)
            frames += 1
            g += step
        self.execute_frame(total)
        self._time = float(total)
        logger.info("scheduler finished: %d task(s), %d frame(s)", len(self._tasks), frames + 1)
        return frames + 1

    def reset(self) -> None:
        for task in self._tasks:
            task.reset()
        self._time = 0.0


__all__ = ["Scheduler"]
