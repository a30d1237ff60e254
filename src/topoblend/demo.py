"""
どこで: `topoblend.demo`（`scripts/blend_demo.py` / `topoblend-demo` のエントリ）。
何を: 小さな構造グラフの組（台座シート + 脚/腕/尾のカーブ）を作り、MORPH/SHRINK/GROW の
      3 タスクをスケジューラで最後まで実行して、各ノードの端点とエッジ数をログへ出す。
なぜ: GUI 無しでタスクエンジン全体（準備 → 実行 → 位相更新）の通し動作を確認できるようにするため。

Usage:
    python scripts/blend_demo.py --length 40 --step 4
    TB_LOG_LEVEL=DEBUG python scripts/blend_demo.py
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

import numpy as np

from common.logging import setup_default_logging

from .core import Curve, Sheet, StructureGraph
from .runtime import Scheduler, Task, TaskKind

logger = logging.getLogger(__name__)


def _plate(node_id: str, size: float = 2.0, n: int = 4) -> Sheet:
    us = np.linspace(0.0, size, n)
    uu, vv = np.meshgrid(us, us, indexing="ij")
    grid = np.stack([uu, vv, np.zeros((n, n))], axis=-1)
    return Sheet(node_id, grid)


def _segment(node_id: str, a: Sequence[float], b: Sequence[float], n: int = 4) -> Curve:
    return Curve(node_id, np.linspace(np.asarray(a, float), np.asarray(b, float), n))


def build_demo_graphs() -> tuple[StructureGraph, StructureGraph]:
    """(active, target) の組を返す。対応関係は `properties["correspond"]` で相互に張る。"""
    active = StructureGraph("source")
    target = StructureGraph("target")

    base = active.add_node(_plate("base"))
    leg = active.add_node(_segment("leg", (0.5, 0.5, 0.0), (0.5, 0.5, 1.0)))
    arm = active.add_node(_segment("arm", (1.5, 0.5, 0.0), (1.5, 0.5, 0.8)))
    # GROW 対象は未接続のまま active に置いておく
    tail = active.add_node(_segment("tail", (1.0, 1.5, 0.0), (1.0, 1.5, 0.6)))

    t_base = target.add_node(_plate("t_base"))
    t_leg = target.add_node(_segment("t_leg", (1.5, 1.5, 0.0), (1.5, 1.5, 1.2)))
    t_tail = target.add_node(_segment("t_tail", (1.0, 1.5, 0.0), (1.0, 1.5, 0.6)))

    for a, t in ((base, t_base), (leg, t_leg), (tail, t_tail)):
        a.properties["correspond"] = t.id
        t.properties["correspond"] = a.id

    t_link_leg = target.add_edge(t_leg, t_base, (0.0, 0.0), (0.75, 0.75))
    target.add_edge(t_tail, t_base, (0.0, 0.0), (0.5, 0.75))
    active.add_edge(
        leg, base, (0.0, 0.0), (0.25, 0.25), properties={"correspond": t_link_leg.id}
    )
    active.add_edge(arm, base, (0.0, 0.0), (0.75, 0.25))
    return active, target


def build_scheduler(
    active: StructureGraph, target: StructureGraph, length: int
) -> Scheduler:
    scheduler = Scheduler()
    scheduler.add_task(Task(active, target, TaskKind.SHRINK, "arm", 0, start=0, length=length))
    scheduler.add_task(Task(active, target, TaskKind.MORPH, "leg", 1, start=length // 2, length=length))
    scheduler.add_task(Task(active, target, TaskKind.GROW, "tail", 2, start=length, length=length))
    return scheduler


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Run a toy topology blend end to end.")
    ap.add_argument("--length", type=int, default=40, help="frames per task")
    ap.add_argument("--step", type=int, default=1, help="frame step for the scheduler loop")
    ap.add_argument("--log-level", default=None, help="logging level (default: TB_LOG_LEVEL or INFO)")
    return ap.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_default_logging(args.log_level)

    active, target = build_demo_graphs()
    scheduler = build_scheduler(active, target, max(1, args.length))
    frames = scheduler.run(step=max(1, args.step))

    for node in active:
        if isinstance(node, Curve):
            cps = node.control_points()
            logger.info(
                "%s: start=%s end=%s edges=%d",
                node.id,
                np.round(cps[0], 3).tolist(),
                np.round(cps[-1], 3).tolist(),
                len(active.get_edges(node.id)),
            )
    logger.info("done in %d frame(s)", frames)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
