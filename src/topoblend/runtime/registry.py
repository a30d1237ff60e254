"""
どこで: `topoblend.runtime.registry`
何を: (ノード種別 × 操作種別) をキーとする prepare/execute 変種のレジストリとデコレータ。
なぜ: 種別の組み合わせごとの処理を分岐の連鎖ではなく登録で解決し、未実装の組み合わせを検出できるようにするため。

使い方:
    @preparer(NodeKind.CURVE, TaskKind.GROW)
    def prepare_grow_curve(ctx: TaskContext) -> TaskArtifacts: ...

    @executor(NodeKind.SHEET, *TaskKind)
    def execute_sheet(ctx, artifacts, t) -> bool: ...
"""

from __future__ import annotations

from itertools import product
from typing import Callable

from common.base_registry import BaseRegistry

from ..core.nodes import NodeKind
from .context import TaskArtifacts, TaskContext, TaskKind

Preparer = Callable[[TaskContext], TaskArtifacts]
# 戻り値: その時刻に形状を更新したか（成果物不足で何もしなければ False）
Executor = Callable[[TaskContext, TaskArtifacts, float], bool]

_preparers = BaseRegistry("preparer")
_executors = BaseRegistry("executor")


def preparer(node_kind: NodeKind, *task_kinds: TaskKind) -> Callable[[Preparer], Preparer]:
    return _preparers.register(*[(node_kind, k) for k in task_kinds])


def executor(node_kind: NodeKind, *task_kinds: TaskKind) -> Callable[[Executor], Executor]:
    return _executors.register(*[(node_kind, k) for k in task_kinds])


def get_preparer(node_kind: NodeKind, task_kind: TaskKind) -> Preparer:
    return _preparers.get((node_kind, task_kind))


def get_executor(node_kind: NodeKind, task_kind: TaskKind) -> Executor:
    return _executors.get((node_kind, task_kind))


def missing_variants() -> list[tuple[str, ...]]:
    """prepare/execute のどちらかが未登録の (ノード種別, 操作種別) を返す。"""
    expected = list(product(NodeKind, TaskKind))
    missing = set(_preparers.missing(expected)) | set(_executors.missing(expected))
    return sorted(missing)


__all__ = [
    "preparer",
    "executor",
    "get_preparer",
    "get_executor",
    "missing_variants",
]
