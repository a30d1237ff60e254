from __future__ import annotations

import numpy as np
import pytest

from tests._utils.builders import link_pair, plate, segment
from topoblend.core import Curve, StructureGraph
from topoblend.runtime import Task, TaskKind


def _spread(points: np.ndarray) -> float:
    return float(np.max(np.linalg.norm(points - points.mean(axis=0), axis=1)))


# ── SHRINK ─────────────────────────────────────────────────────────────


def test_single_edge_shrink_folds_to_attachment(leaf_graph: StructureGraph) -> None:
    task = Task(leaf_graph, None, TaskKind.SHRINK, "c", length=10)
    task.execute(0.5)
    np.testing.assert_allclose(
        leaf_graph.get_node("c").control_points(), [[0, 0, 0], [0.5, 0, 0], [1, 0, 0]]
    )
    task.execute(1.0)
    np.testing.assert_allclose(leaf_graph.get_node("c").control_points(), np.zeros((3, 3)))
    assert leaf_graph.get_edges("c") == []


def test_two_edge_shrink_rides_paths_to_midpoint(
    arch_graph: StructureGraph, arch_points: np.ndarray
) -> None:
    task = Task(arch_graph, None, TaskKind.SHRINK, "m", length=20)
    art = task.prepare()
    assert art.rmf is not None and art.encoding is not None
    assert abs(len(art.path_a) - len(art.path_b)) <= 1
    assert art.path_a[-1] == art.path_b[-1]
    assert not art.is_cut_node

    task.execute(0.0)
    np.testing.assert_allclose(arch_graph.get_node("m").control_points(), arch_points, atol=1e-9)

    task.execute(1.0)
    cps = arch_graph.get_node("m").control_points()
    # 両端は共有中点で一致する
    np.testing.assert_allclose(cps[0], cps[-1], atol=1e-12)
    assert _spread(cps) < 1e-9
    assert abs(cps[0][0] - 1.0) < 0.2
    assert arch_graph.get_edges("m") == []


def test_cut_node_shrink_relinks_curve_neighbours() -> None:
    g = StructureGraph()
    base = g.add_node(plate("base"))
    m = g.add_node(segment("m", (0.5, 0.5, 0.0), (0.5, 0.5, 1.0)))
    n = g.add_node(segment("n", (0.5, 0.5, 1.0), (1.5, 0.5, 1.0)))
    g.add_edge(m, base, (0.0, 0.0), (0.25, 0.25))
    g.add_edge(n, m, (0.0, 0.0), (1.0, 0.0))

    task = Task(g, None, TaskKind.SHRINK, "m", length=10)
    art = task.prepare()
    assert art.is_cut_node
    assert art.anchor_node == "base"

    task.execute(0.5)
    np.testing.assert_allclose(n.control_point(0), [0.5, 0.5, 0.5], atol=1e-12)
    np.testing.assert_allclose(n.control_point(3), [1.5, 0.5, 1.0])
    assert m.properties["is_ready"] is False

    task.execute(1.0)
    np.testing.assert_allclose(m.control_points(), np.tile([0.5, 0.5, 0.0], (4, 1)), atol=1e-12)
    np.testing.assert_allclose(n.control_point(0), [0.5, 0.5, 0.0], atol=1e-12)
    np.testing.assert_allclose(n.control_point(3), [1.5, 0.5, 1.0])
    assert g.get_edges("m") == []


# ── GROW ───────────────────────────────────────────────────────────────


def _grow_pair(target_points: np.ndarray, coords: list[tuple[float, float]]):
    active = StructureGraph("active")
    target = StructureGraph("target")
    base = active.add_node(plate("base"))
    m = active.add_node(Curve("m", target_points))
    t_base = target.add_node(plate("t_base"))
    t_m = target.add_node(Curve("t_m", target_points))
    link_pair(base, t_base)
    link_pair(m, t_m)
    for u, c in zip((0.0, 1.0), coords):
        target.add_edge(t_m, t_base, (u, 0.0), c)
    return active, target


def test_cut_node_grow_keeps_ready_flag_while_running() -> None:
    active = StructureGraph("active")
    target = StructureGraph("target")
    base = active.add_node(plate("base"))
    m = active.add_node(segment("m", (0.5, 0.5, 0.0), (0.5, 0.5, 1.0)))
    n = active.add_node(segment("n", (0.5, 0.5, 1.0), (1.5, 0.5, 1.0)))
    t_base = target.add_node(plate("t_base"))
    t_m = target.add_node(segment("t_m", (0.5, 0.5, 0.0), (0.5, 0.5, 1.0)))
    t_n = target.add_node(segment("t_n", (0.5, 0.5, 1.0), (1.5, 0.5, 1.0)))
    for a, t in ((base, t_base), (m, t_m), (n, t_n)):
        link_pair(a, t)
    target.add_edge(t_m, t_base, (0.0, 0.0), (0.25, 0.25))
    target.add_edge(t_n, t_m, (0.0, 0.0), (1.0, 0.0))

    task = Task(active, target, TaskKind.GROW, "m", length=10)
    art = task.prepare()
    assert art.is_cut_node
    assert art.anchor_node == "base"

    task.execute(0.5)
    assert m.properties["is_ready"] is True
    task.execute(1.0)
    assert m.properties["is_ready"] is True
    assert {link.other_node("m").id for link in active.get_edges("m")} == {"base", "n"}


def test_two_edge_grow_unfolds_between_attachments() -> None:
    # 端点は測地サンプル格子 (k/15) 上に置く
    arch = np.array([[0.4, 0.4, 0.0], [0.7, 0.4, 0.6], [1.3, 0.4, 0.6], [1.6, 0.4, 0.0]])
    active, target = _grow_pair(arch, [(0.2, 0.2), (0.8, 0.2)])
    task = Task(active, target, TaskKind.GROW, "m", length=20)

    art = task.prepare()
    assert art.encoding is not None
    m = active.get_node("m")
    assert _spread(m.control_points()) < 1e-9

    folded = m.control_points()
    task.execute(0.0)
    # 折り畳んだ中点から伸び始める
    assert _spread(m.control_points()) < 1e-9
    np.testing.assert_allclose(m.control_points(), folded, atol=1e-9)

    task.execute(1.0)
    np.testing.assert_allclose(m.control_points(), arch, atol=1e-9)
    edges = active.get_edges("m")
    assert len(edges) == 2
    assert {e.properties["correspond"] for e in edges} == {e.id for e in target.edges}


def test_single_edge_grow_translates_then_unfolds() -> None:
    shape = np.array([[0, 0, 0], [0, 0, 1], [0, 0, 2]], dtype=float)
    active = StructureGraph("active")
    target = StructureGraph("target")
    base = active.add_node(plate("base"))
    c = active.add_node(Curve("c", shape + [5, 5, 5]))
    t_base = target.add_node(plate("t_base"))
    t_c = target.add_node(Curve("t_c", shape))
    link_pair(base, t_base)
    link_pair(c, t_c)
    target.add_edge(t_c, t_base, (0.0, 0.0), (0.5, 0.5))

    task = Task(active, target, TaskKind.GROW, "c", length=10)
    task.execute(0.0)
    np.testing.assert_allclose(c.control_points(), np.tile([1.0, 1.0, 0.0], (3, 1)), atol=1e-12)

    task.execute(1.0)
    np.testing.assert_allclose(c.control_points(), shape + [1.0, 1.0, 0.0], atol=1e-12)
    assert active.get_edge_between("c", "base") is not None


def test_grow_without_correspondence_is_noop() -> None:
    active = StructureGraph()
    c = active.add_node(segment("c", (0, 0, 0), (0, 0, 1)))
    before = c.control_points()
    task = Task(active, StructureGraph(), TaskKind.GROW, "c")
    task.execute(0.3)
    task.execute(1.0)
    np.testing.assert_array_equal(c.control_points(), before)
    assert task.is_done


# ── MORPH ──────────────────────────────────────────────────────────────


def _morph_pair():
    active = StructureGraph("active")
    target = StructureGraph("target")
    base = active.add_node(plate("base"))
    c = active.add_node(segment("c", (0.5, 0.5, 0.0), (0.5, 0.5, 1.0)))
    t_base = target.add_node(plate("t_base"))
    t_c = target.add_node(segment("t_c", (1.2, 1.2, 0.0), (1.2, 1.2, 0.5)))
    link_pair(base, t_base)
    link_pair(c, t_c)
    t_link = target.add_edge(t_c, t_base, (0.0, 0.0), (0.6, 0.6))
    active.add_edge(c, base, (0.0, 0.0), (0.25, 0.25), properties={"correspond": t_link.id})
    return active, target


@pytest.mark.parametrize("kind", [TaskKind.MORPH, TaskKind.SPLIT, TaskKind.MERGE])
def test_single_edge_morph_moves_attachment_and_rewires(kind: TaskKind) -> None:
    active, target = _morph_pair()
    c = active.get_node("c")
    org = c.control_points()
    target_before = target.get_node("t_c").control_points()

    task = Task(active, target, kind, "c", length=10)
    art = task.prepare()
    assert art.cp_idx == 0 and art.target_cp_idx == 0
    assert art.path

    task.execute(0.0)
    np.testing.assert_allclose(c.control_points(), org, atol=1e-12)

    task.execute(1.0)
    np.testing.assert_allclose(
        c.control_points(), np.linspace([1.2, 1.2, 0.0], [1.2, 1.2, 0.5], 4), atol=1e-9
    )
    link = active.get_edge_between("c", "base")
    assert link.get_coord("base") == [(0.6, 0.6)]
    np.testing.assert_array_equal(target.get_node("t_c").control_points(), target_before)


def test_two_edge_morph_is_continuous_and_lands_on_new_attachments(
    arch_graph: StructureGraph, arch_points: np.ndarray
) -> None:
    target = StructureGraph("target")
    t_base = target.add_node(plate("t_base"))
    t_m = target.add_node(Curve("t_m", arch_points + [0.0, 0.7, 0.0]))
    link_pair(arch_graph.get_node("base"), t_base)
    link_pair(arch_graph.get_node("m"), t_m)
    for link, (u, c) in zip(arch_graph.get_edges("m"), [(0.0, (0.2, 0.6)), (1.0, (0.8, 0.6))]):
        t_link = target.add_edge(t_m, t_base, (u, 0.0), c)
        link.properties["correspond"] = t_link.id

    task = Task(arch_graph, target, TaskKind.MORPH, "m", length=10)
    task.execute(0.0)
    m = arch_graph.get_node("m")
    np.testing.assert_allclose(m.control_points(), arch_points, atol=1e-9)

    task.execute(1.0)
    cps = m.control_points()
    np.testing.assert_allclose(cps[0], [0.4, 1.2, 0.0], atol=1e-9)
    np.testing.assert_allclose(cps[-1], [1.6, 1.2, 0.0], atol=1e-9)
    coords = sorted(tuple(e.get_coord("base")[0]) for e in arch_graph.get_edges("m"))
    assert coords == [(0.2, 0.6), (0.8, 0.6)]


def test_morph_without_link_correspondence_keeps_shape(leaf_graph: StructureGraph) -> None:
    node = leaf_graph.get_node("c")
    before = node.control_points()
    task = Task(leaf_graph, StructureGraph(), TaskKind.MORPH, "c")
    task.execute(0.5)
    task.execute(1.0)
    np.testing.assert_array_equal(node.control_points(), before)
    assert len(leaf_graph.get_edges("c")) == 1
