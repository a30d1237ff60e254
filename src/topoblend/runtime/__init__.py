"""
どこで: `topoblend.runtime` サブパッケージ。
何を: Task 状態機械、(ノード種別 × 操作種別) の prepare/execute 変種、位相の最終化、スケジューラ。
なぜ: コア（グラフ/ノード/測地パス）と数値ユーティリティの上に、時間窓つきの変形実行を組み立てるため。
"""

from .context import MORPH_LIKE, TaskArtifacts, TaskContext, TaskKind, TaskState
from .errors import TaskError
from .registry import missing_variants
from .scheduler import Scheduler
from .task import Task

__all__ = [
    "Task",
    "TaskKind",
    "TaskState",
    "TaskArtifacts",
    "TaskContext",
    "TaskError",
    "MORPH_LIKE",
    "Scheduler",
    "missing_variants",
]
