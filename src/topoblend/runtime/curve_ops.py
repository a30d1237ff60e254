"""
どこで: `topoblend.runtime.curve_ops`
何を: カーブノードの prepare/execute 変種（GROW / SHRINK / MORPH・SPLIT・MERGE）。
なぜ: カーブはアタッチ本数とカット判定で振り付けが大きく変わるため、種別ごとに登録して分岐を局所化する。

振り付けの概要:
- 1 本のエッジ: アタッチ点へ折り畳む（GROW は展開、SHRINK は収縮）。`org + deltas * t`。
- 2 本のエッジ: 2 アタッチ点を結ぶ測地経路を溶接・二分し、形状を「基準線分 + RMF 基底」で
  符号化して、各時刻で経路上の 2 点と RMF フレームから復号する。
- カットノード: 1 本のアンカーリンクへ折り畳みつつ、他のカーブ近傍の接続点を追従させる。
- MORPH 1 本: アタッチ点を現在位置 → 将来位置へ経路に沿って運び、形状を目標へ t² で寄せる。
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

import numpy as np

from util.curve_code import decode_curve, encode_curve
from util.path_ops import bisect_path, nearest_index, smooth_polyline, weld_path
from util.rmf import RMF, build_rmf

from ..core.geodesic import Path, path_positions
from ..core.graph import Link
from ..core.nodes import Curve, Node, NodeKind
from .context import MORPH_LIKE, TaskArtifacts, TaskContext, TaskKind
from .registry import executor, preparer
from .topology import future_link_position

logger = logging.getLogger(__name__)


# ── 共有ヘルパ ─────────────────────────────────────────────────────────


def _curve(node: Node) -> Curve:
    if not isinstance(node, Curve):
        raise TypeError(f"カーブノードが必要です: {node!r}")
    return node


def _welded_path(ctx: TaskContext, seed: np.ndarray, goal: np.ndarray) -> Path:
    path = ctx.shortest_path(seed, goal)
    if not path:
        logger.debug("%s: no path between attachments", ctx.node_id)
        return ()
    welded, _ = weld_path(path, path_positions(path, ctx.active))
    return welded


def _rmf_over(ctx: TaskContext, path: Path) -> RMF:
    return build_rmf(smooth_polyline(path_positions(path, ctx.active)))


def _anchor_link(links: Sequence[Link], node_id: str) -> Link:
    """シート近傍へのリンクを優先し、無ければ先頭リンク。"""
    for link in links:
        if link.other_node(node_id).kind is NodeKind.SHEET:
            return link
    return links[0]


def _apply_fold(curve: Curve, art: TaskArtifacts, t: float) -> bool:
    if not art.has_fold():
        return False
    curve.set_control_points(art.org_ctrl_points + art.deltas * t)
    return True


def _ride_paths(ctx: TaskContext, curve: Curve, art: TaskArtifacts, t: float) -> bool:
    """2 本の経路上の点と RMF フレームで符号化形状を復号する。"""
    if not art.has_ride():
        return False
    pa = art.path_a[nearest_index(t, len(art.path_a))].position(ctx.active)
    pb = art.path_b[nearest_index(t, len(art.path_b))].position(ctx.active)
    x, y, z = art.rmf.frame_at(t).basis()
    curve.set_control_points(decode_curve(art.encoding, pa, pb, x, y, z))
    return True


def _relink_neighbor(curve: Curve, link: Link, other: Curve) -> None:
    """`other` の接続制御点を `link` の自ノード側位置へ寄せ、遠い端へ向けて線形に減衰させる。"""
    n_ctrl = other.num_ctrl_points
    idx_control = other.control_point_index_from_coord(link.get_coord(other.id)[0])
    idx_anchor = 0 if idx_control > n_ctrl // 2 else n_ctrl - 1
    cps = other.control_points()
    delta = link.position(curve.id) - cps[idx_control]
    span = max(1, abs(idx_anchor - idx_control))
    w = np.clip(1.0 - np.abs(np.arange(n_ctrl) - idx_control) / span, 0.0, 1.0)
    other.set_control_points(cps + w[:, None] * delta)


def _execute_constrained(ctx: TaskContext, curve: Curve, art: TaskArtifacts, t: float) -> bool:
    moved = _apply_fold(curve, art, t)
    for link in ctx.active.get_edges(curve.id):
        other = link.other_node(curve.id)
        if other.id == art.anchor_node or not isinstance(other, Curve):
            continue
        _relink_neighbor(curve, link, other)
    if ctx.kind is TaskKind.SHRINK:
        curve.properties["is_ready"] = False
    return moved


# ── SHRINK ─────────────────────────────────────────────────────────────


@preparer(NodeKind.CURVE, TaskKind.SHRINK)
def prepare_shrink_curve(ctx: TaskContext) -> TaskArtifacts:
    curve = _curve(ctx.node())
    org = curve.control_points()
    edges = ctx.active.get_edges(curve.id)

    if ctx.active.is_cut_node(curve.id):
        link = _anchor_link(edges, curve.id)
        deltas = -curve.fold_to(link.get_coord(curve.id)[0], apply=False)
        return TaskArtifacts(
            org_ctrl_points=org,
            deltas=deltas,
            anchor_node=link.other_node(curve.id).id,
            is_cut_node=True,
        )

    if len(edges) == 1:
        deltas = -curve.fold_to(edges[0].get_coord(curve.id)[0], apply=False)
        return TaskArtifacts(org_ctrl_points=org, deltas=deltas)

    if len(edges) == 2:
        link_a, link_b = edges
        point_a = link_a.position(curve.id)
        point_b = link_b.position(curve.id)
        path = _welded_path(ctx, point_a, point_b)
        if not path:
            return TaskArtifacts(org_ctrl_points=org)
        head, tail = bisect_path(path)
        rmf = _rmf_over(ctx, head)
        x, y, z = rmf.front.basis()
        return TaskArtifacts(
            org_ctrl_points=org,
            path_a=head,
            path_b=tail,
            rmf=rmf,
            encoding=encode_curve(org, point_a, point_b, x, y, z),
        )

    logger.debug("shrink %s: %d edge(s), geometry left as is", curve.id, len(edges))
    return TaskArtifacts(org_ctrl_points=org)


# ── GROW ───────────────────────────────────────────────────────────────


@preparer(NodeKind.CURVE, TaskKind.GROW)
def prepare_grow_curve(ctx: TaskContext) -> TaskArtifacts:
    curve = _curve(ctx.node())
    tn = ctx.target_node()
    if tn is None or ctx.target is None:
        logger.warning("grow %s: no corresponding target node", curve.id)
        return TaskArtifacts(org_ctrl_points=curve.control_points())
    tedges = ctx.target.get_edges(tn.id)

    if ctx.target.is_cut_node(tn.id):
        tlink = _anchor_link(tedges, tn.id)
        deltas = curve.fold_to(tlink.get_coord(tn.id)[0], apply=True)
        return TaskArtifacts(
            org_ctrl_points=curve.control_points(),
            deltas=deltas,
            anchor_node=ctx.target.correspondence(tlink.other_node(tn.id).id),
            is_cut_node=True,
        )

    if len(tedges) == 1:
        tlink = tedges[0]
        t_base = tlink.other_node(tn.id)
        base = ctx.active.get_node(ctx.target.correspondence(t_base.id))
        coord_self = tlink.get_coord(tn.id)[0]
        if base is not None:
            curve.translate_to(
                base.position(tlink.get_coord(t_base.id)[0]),
                curve.control_point_index_from_coord(coord_self),
            )
        deltas = curve.fold_to(coord_self, apply=True)
        return TaskArtifacts(org_ctrl_points=curve.control_points(), deltas=deltas)

    if len(tedges) == 2:
        tlink_a, tlink_b = tedges
        other_a = ctx.active.get_node(ctx.target.correspondence(tlink_a.other_node(tn.id).id))
        other_b = ctx.active.get_node(ctx.target.correspondence(tlink_b.other_node(tn.id).id))
        if other_a is None or other_b is None:
            logger.debug("grow %s: neighbour without correspondence", curve.id)
            return TaskArtifacts(org_ctrl_points=curve.control_points())
        point_a = other_a.position(tlink_a.get_coord_other(tn.id)[0])
        point_b = other_b.position(tlink_b.get_coord_other(tn.id)[0])
        # 未接続の自ノードのサンプルには吸着させない
        path = _welded_path(replace(ctx, exclude=ctx.exclude | {curve.id}), point_a, point_b)
        if not path:
            return TaskArtifacts(org_ctrl_points=curve.control_points())

        # 中点 → 各端の向きに並べ替える
        head, tail = bisect_path(path)
        path_a, path_b = head[::-1], tail[::-1]
        rmf = _rmf_over(ctx, path_a)
        x, y, z = rmf.back.basis()
        encoding = encode_curve(curve.control_points(), point_a, point_b, x, y, z)

        curve.fold_to((0.5, 0.0), apply=True)
        curve.move_by(path_a[0].position(ctx.active) - curve.position((0.5, 0.0)))
        return TaskArtifacts(
            org_ctrl_points=curve.control_points(),
            path_a=path_a,
            path_b=path_b,
            rmf=rmf,
            encoding=encoding,
        )

    logger.debug("grow %s: %d target edge(s), geometry left as is", curve.id, len(tedges))
    return TaskArtifacts(org_ctrl_points=curve.control_points())


# ── MORPH / SPLIT / MERGE ──────────────────────────────────────────────


@preparer(NodeKind.CURVE, *MORPH_LIKE)
def prepare_morph_curve(ctx: TaskContext) -> TaskArtifacts:
    curve = _curve(ctx.node())
    org = curve.control_points()
    edges = ctx.active.get_edges(curve.id)

    if len(edges) == 1:
        link = edges[0]
        start = link.position(curve.id)
        end = future_link_position(ctx, link)
        path = _welded_path(ctx, start, end) if end is not None else ()

        target_cp_idx = None
        tn = ctx.target_node()
        if ctx.target is not None and isinstance(tn, Curve):
            tlink = ctx.target.get_edge(link.properties.get("correspond"))
            if tlink is not None and tlink.has_node(tn.id):
                target_cp_idx = tn.control_point_index_from_coord(tlink.get_coord(tn.id)[0])

        return TaskArtifacts(
            org_ctrl_points=org,
            path=path,
            cp_idx=curve.control_point_index_from_coord(link.get_coord(curve.id)[0]),
            target_cp_idx=target_cp_idx,
        )

    if len(edges) == 2:
        link_a, link_b = edges
        start_a = link_a.position(curve.id)
        start_b = link_b.position(curve.id)
        end_a = future_link_position(ctx, link_a)
        end_b = future_link_position(ctx, link_b)
        if end_a is None or end_b is None:
            logger.debug("morph %s: link without correspondence", curve.id)
            return TaskArtifacts(org_ctrl_points=org)
        path_a = _welded_path(ctx, start_a, end_a)
        path_b = _welded_path(ctx, start_b, end_b)
        if not path_a or not path_b:
            return TaskArtifacts(org_ctrl_points=org, path_a=path_a, path_b=path_b)

        # 長い方の経路でフレームを運ぶ; t=0 で元形状に一致させるため先頭フレームで符号化
        rmf = _rmf_over(ctx, path_a if len(path_a) >= len(path_b) else path_b)
        x, y, z = rmf.front.basis()
        return TaskArtifacts(
            org_ctrl_points=org,
            path_a=path_a,
            path_b=path_b,
            rmf=rmf,
            encoding=encode_curve(org, start_a, start_b, x, y, z),
        )

    logger.debug("morph %s: %d edge(s), geometry left as is", curve.id, len(edges))
    return TaskArtifacts(org_ctrl_points=org)


def _execute_single_morph(ctx: TaskContext, curve: Curve, art: TaskArtifacts, t: float) -> bool:
    if not art.path or art.cp_idx is None or art.org_ctrl_points is None:
        return False
    pos = art.path[nearest_index(t, len(art.path))].position(ctx.active)
    org = art.org_ctrl_points
    cps = org + (pos - org[art.cp_idx])

    tn = ctx.target_node()
    if (
        isinstance(tn, Curve)
        and art.target_cp_idx is not None
        and tn.num_ctrl_points == curve.num_ctrl_points
    ):
        tcp = tn.control_points()
        goal = tcp + (pos - tcp[art.target_cp_idx])
        w = t * t
        cps = cps * (1.0 - w) + goal * w
    curve.set_control_points(cps)
    return True


# ── execute ────────────────────────────────────────────────────────────


@executor(NodeKind.CURVE, TaskKind.SHRINK, TaskKind.GROW)
def execute_fold_curve(ctx: TaskContext, art: TaskArtifacts, t: float) -> bool:
    curve = _curve(ctx.node())
    if art.is_cut_node:
        return _execute_constrained(ctx, curve, art, t)
    if art.deltas is not None:
        return _apply_fold(curve, art, t)
    return _ride_paths(ctx, curve, art, t)


@executor(NodeKind.CURVE, *MORPH_LIKE)
def execute_morph_curve(ctx: TaskContext, art: TaskArtifacts, t: float) -> bool:
    curve = _curve(ctx.node())
    if art.path:
        return _execute_single_morph(ctx, curve, art, t)
    return _ride_paths(ctx, curve, art, t)


__all__ = [
    "prepare_shrink_curve",
    "prepare_grow_curve",
    "prepare_morph_curve",
    "execute_fold_curve",
    "execute_morph_curve",
]
