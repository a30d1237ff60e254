from __future__ import annotations

import numpy as np
import pytest

from tests._utils.builders import plate, segment
from topoblend.core import StructureGraph


def _chain() -> StructureGraph:
    g = StructureGraph("chain")
    base = g.add_node(plate("base"))
    a = g.add_node(segment("a", (0.5, 0.5, 0), (0.5, 0.5, 1)))
    b = g.add_node(segment("b", (0.5, 0.5, 1), (1.5, 0.5, 1)))
    g.add_edge(a, base, (0.0, 0.0), (0.25, 0.25))
    g.add_edge(b, a, (0.0, 0.0), (1.0, 0.0))
    return g


def test_edges_and_neighbours() -> None:
    g = _chain()
    assert sorted(g.neighbors("a")) == ["b", "base"]
    link = g.get_edge_between("a", "b")
    assert link is not None
    assert link.other_node("a").id == "b"
    assert link.get_coord("a") == [(1.0, 0.0)]
    assert link.get_coord_other("a") == [(0.0, 0.0)]
    np.testing.assert_allclose(link.position("a"), [0.5, 0.5, 1.0])
    np.testing.assert_allclose(link.position_other("b"), [0.5, 0.5, 1.0])


def test_link_accepts_single_coord_or_list() -> None:
    g = StructureGraph()
    s = g.add_node(plate("s"))
    c = g.add_node(segment("c", (0, 0, 0), (0, 0, 1)))
    link = g.add_edge(c, s, (0.0,), [(0.0, 0.0), (1.0, 0.0)])
    assert link.get_coord("c") == [(0.0, 0.0)]
    assert len(link.get_coord("s")) == 2


def test_default_link_ids_are_unique_per_pair() -> None:
    g = StructureGraph()
    s = g.add_node(plate("s"))
    c = g.add_node(segment("c", (0, 0, 0), (0, 0, 1)))
    l1 = g.add_edge(c, s, (0.0, 0.0), (0.0, 0.0))
    l2 = g.add_edge(c, s, (1.0, 0.0), (1.0, 0.0))
    assert l1.id != l2.id
    with pytest.raises(ValueError):
        g.add_edge(c, s, (0.5, 0.0), (0.5, 0.5), link_id=l1.id)


def test_remove_edge() -> None:
    g = _chain()
    assert g.remove_edge("a", "b") is True
    assert g.remove_edge("a", "b") is False
    assert g.get_edges("b") == []


def test_replace_endpoint() -> None:
    g = _chain()
    link = g.get_edge_between("a", "b")
    base = g.get_node("base")
    link.replace("a", base, [(0.5, 0.5)])
    assert link.other_node("b") is base
    assert link.get_coord("base") == [(0.5, 0.5)]
    with pytest.raises(KeyError):
        link.other_node("a")


def test_cut_node_detection() -> None:
    g = _chain()
    assert g.is_cut_node("a") is True
    assert g.is_cut_node("b") is False
    assert g.is_cut_node("base") is False
    assert g.is_cut_node("missing") is False


def test_node_lookup_and_correspondence() -> None:
    g = _chain()
    assert g.get_node("zzz") is None
    assert g.get_node(None) is None
    assert g.correspondence("a") is None
    g.get_node("a").properties["correspond"] = "t_a"
    assert g.correspondence("a") == "t_a"
    with pytest.raises(ValueError):
        g.add_node(plate("base"))
