"""
どこで: `topoblend.runtime.topology`
何を: タスク終了時（t == 1）の位相更新。SHRINK はエッジ全削除、GROW は目標エッジの複製、
      MORPH/SPLIT/MERGE は対応関係に従ってエッジ端点を付け替える。
なぜ: 形状の変形と接続関係の更新を分け、どのノード種別でも同じ最終化を適用するため。

対応関係の欠落（リンク/ノードの `correspond` が無い）は、その 1 本を飛ばして DEBUG ログに残す。
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from common.types import Coord

from ..core.graph import Link
from ..core.nodes import Node
from .context import MORPH_LIKE, TaskContext, TaskKind

logger = logging.getLogger(__name__)


def future_other_node_coord(ctx: TaskContext, link: Link) -> tuple[Node, Coord] | None:
    """`link` の相手側が変形後に付く (active ノード, 局所座標)。対応が辿れなければ None。"""
    tn = ctx.target_node()
    if tn is None or ctx.target is None:
        return None
    tlink = ctx.target.get_edge(link.properties.get("correspond"))
    if tlink is None or not tlink.has_node(tn.id):
        return None
    t_other = tlink.other_node(tn.id)
    other = ctx.active.get_node(ctx.target.correspondence(t_other.id))
    if other is None:
        return None
    return other, tlink.get_coord_other(tn.id)[0]


def future_link_position(ctx: TaskContext, link: Link) -> np.ndarray | None:
    """`link` の変形後のアタッチ位置（active グラフ上で評価）。"""
    fnc = future_other_node_coord(ctx, link)
    if fnc is None:
        return None
    other, coord = fnc
    return other.position(coord)


def copy_target_edge(ctx: TaskContext, tlink: Link) -> Link | None:
    """目標リンクを active 側へ複製する（既存または対応欠落なら None）。"""
    n = ctx.node()
    tn = ctx.target_node()
    if tn is None or ctx.target is None:
        return None
    t_other = tlink.other_node(tn.id)
    other = ctx.active.get_node(ctx.target.correspondence(t_other.id))
    if other is None:
        logger.debug("copy edge skipped: %s has no correspondence", t_other.id)
        return None
    for link in ctx.active.get_edges(n.id):
        if link.properties.get("correspond") == tlink.id:
            return None
    return ctx.active.add_edge(
        n,
        other,
        tlink.get_coord(tn.id),
        tlink.get_coord_other(tn.id),
        properties={"correspond": tlink.id},
    )


def remove_all_edges(ctx: TaskContext) -> int:
    removed = 0
    for link in ctx.active.get_edges(ctx.node_id):
        if ctx.active.remove_edge(link.n1, link.n2):
            removed += 1
    return removed


def copy_target_edges(ctx: TaskContext) -> int:
    tn = ctx.target_node()
    if tn is None or ctx.target is None:
        return 0
    return sum(copy_target_edge(ctx, tl) is not None for tl in ctx.target.get_edges(tn.id))


def rewire_edges(ctx: TaskContext) -> int:
    """各エッジの相手側を対応先ノード/座標へ付け替える。"""
    rewired = 0
    for link in ctx.active.get_edges(ctx.node_id):
        fnc = future_other_node_coord(ctx, link)
        if fnc is None:
            logger.debug("rewire skipped: %s has no correspondence", link.id)
            continue
        other, coord = fnc
        link.replace(link.other_node(ctx.node_id).id, other, [coord])
        rewired += 1
    return rewired


def finalize(ctx: TaskContext) -> int:
    """種別に応じた最終化を適用し、変更したエッジ本数を返す。"""
    fn: Callable[[TaskContext], int]
    if ctx.kind is TaskKind.SHRINK:
        fn = remove_all_edges
    elif ctx.kind is TaskKind.GROW:
        fn = copy_target_edges
    elif ctx.kind in MORPH_LIKE:
        fn = rewire_edges
    else:  # pragma: no cover - 列挙は上で網羅
        raise ValueError(f"未知のタスク種別: {ctx.kind!r}")
    changed = fn(ctx)
    if ctx.kind is TaskKind.SHRINK:
        ctx.node().properties["is_ready"] = False
    logger.info("finalize %s/%s: %d edge(s)", ctx.node_id, ctx.kind.value, changed)
    return changed


__all__ = [
    "future_other_node_coord",
    "future_link_position",
    "copy_target_edge",
    "copy_target_edges",
    "remove_all_edges",
    "rewire_edges",
    "finalize",
]
