"""
どこで: `topoblend.runtime.sheet_ops`
何を: シートノードの prepare/execute 変種。
なぜ: シートは経路に乗せず、アタッチ座標（点/線分）への折り畳みと制御点差分の線形補間だけで振り付ける。
"""

from __future__ import annotations

import logging

from ..core.nodes import Node, NodeKind, Sheet
from .context import MORPH_LIKE, TaskArtifacts, TaskContext, TaskKind
from .registry import executor, preparer

logger = logging.getLogger(__name__)


def _sheet(node: Node) -> Sheet:
    if not isinstance(node, Sheet):
        raise TypeError(f"シートノードが必要です: {node!r}")
    return node


@preparer(NodeKind.SHEET, TaskKind.SHRINK)
def prepare_shrink_sheet(ctx: TaskContext) -> TaskArtifacts:
    sheet = _sheet(ctx.node())
    edges = ctx.active.get_edges(sheet.id)
    if len(edges) != 1:
        logger.debug("shrink %s: %d edge(s), geometry left as is", sheet.id, len(edges))
        return TaskArtifacts(org_ctrl_points=sheet.control_points())

    link = edges[0]
    sheet.move_by(link.position_other(sheet.id) - link.position(sheet.id))
    deltas = -sheet.fold_to(link.get_coord(sheet.id), apply=False)
    return TaskArtifacts(org_ctrl_points=sheet.control_points(), deltas=deltas)


@preparer(NodeKind.SHEET, TaskKind.GROW)
def prepare_grow_sheet(ctx: TaskContext) -> TaskArtifacts:
    sheet = _sheet(ctx.node())
    tn = ctx.target_node()
    if tn is None or ctx.target is None:
        logger.warning("grow %s: no corresponding target node", sheet.id)
        return TaskArtifacts(org_ctrl_points=sheet.control_points())
    tedges = ctx.target.get_edges(tn.id)
    if len(tedges) != 1:
        logger.debug("grow %s: %d target edge(s), geometry left as is", sheet.id, len(tedges))
        return TaskArtifacts(org_ctrl_points=sheet.control_points())

    tlink = tedges[0]
    coords = tlink.get_coord(tn.id)
    t_base = tlink.other_node(tn.id)
    base = ctx.active.get_node(ctx.target.correspondence(t_base.id))
    if base is not None:
        sheet.move_by(base.position(tlink.get_coord(t_base.id)[0]) - sheet.position(coords[0]))
    deltas = sheet.fold_to(coords, apply=True)
    return TaskArtifacts(org_ctrl_points=sheet.control_points(), deltas=deltas)


@preparer(NodeKind.SHEET, *MORPH_LIKE)
def prepare_morph_sheet(ctx: TaskContext) -> TaskArtifacts:
    """目標シートと格子形状が一致する場合のみ制御点ごとの差分を持つ。"""
    sheet = _sheet(ctx.node())
    org = sheet.control_points()
    tn = ctx.target_node()
    deltas = None
    if isinstance(tn, Sheet) and tn.grid_shape == sheet.grid_shape:
        deltas = tn.control_points() - org
    else:
        logger.debug("morph %s: target grid differs, geometry left as is", sheet.id)
    return TaskArtifacts(
        org_ctrl_points=org,
        deltas=deltas,
        is_cut_node=ctx.active.is_cut_node(sheet.id),
    )


@executor(NodeKind.SHEET, *TaskKind)
def execute_sheet(ctx: TaskContext, art: TaskArtifacts, t: float) -> bool:
    if not art.has_fold():
        return False
    _sheet(ctx.node()).set_control_points(art.org_ctrl_points + art.deltas * t)
    return True


__all__ = [
    "prepare_shrink_sheet",
    "prepare_grow_sheet",
    "prepare_morph_sheet",
    "execute_sheet",
]
