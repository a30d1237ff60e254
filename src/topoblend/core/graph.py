"""
どこで: `topoblend.core.graph`
何を: 構造グラフ（`StructureGraph`）とリンク（`Link`）。ノード/エッジ参照、ノードごとのエッジ列挙、
      エッジ端点の付け替え、カットノード判定、ノード/グラフ単位のプロパティ辞書を提供する。
なぜ: タスクが active（可変）/ target（不変扱い）の 2 つのグラフを同じ API で読み書きするため。

対応関係（correspondence）:
- `node.properties["correspond"]` は相手グラフのノード id。
- `link.properties["correspond"]` は相手グラフのリンク id。
- 欠落時は参照系ヘルパが None を返し、呼び出し側はその分岐を不適用として扱う。
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable, Iterator, Sequence

import numpy as np

from common.types import Coord

from .nodes import Node

logger = logging.getLogger(__name__)

NodeOrId = Node | str


def _as_coords(coords: Sequence[Any]) -> list[Coord]:
    """単一座標 `(u, v)` / 座標列 `[(u, v), ...]` のどちらも座標列へ正規化する。"""
    items = list(coords)
    if not items:
        raise ValueError("リンク座標は空であってはなりません")
    if isinstance(items[0], (int, float, np.floating, np.integer)):
        items = [items]
    out: list[Coord] = []
    for c in items:
        u = float(c[0])
        v = float(c[1]) if len(c) > 1 else 0.0
        out.append((u, v))
    return out


def _node_id(n: NodeOrId) -> str:
    return n if isinstance(n, str) else n.id


class Link:
    """2 ノード間の構造エッジ（各端の局所座標列を保持）。"""

    __slots__ = ("id", "n1", "n2", "coord1", "coord2", "properties")

    def __init__(
        self,
        n1: Node,
        n2: Node,
        coord1: Sequence[Any],
        coord2: Sequence[Any],
        *,
        link_id: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self.n1 = n1
        self.n2 = n2
        self.coord1 = _as_coords(coord1)
        self.coord2 = _as_coords(coord2)
        self.id = link_id if link_id is not None else f"{n1.id}:{n2.id}"
        self.properties: dict[str, Any] = dict(properties or {})

    def __repr__(self) -> str:
        return f"Link({self.id!r}, {self.n1.id!r}<->{self.n2.id!r})"

    def has_node(self, node_id: str) -> bool:
        return self.n1.id == node_id or self.n2.id == node_id

    def _side(self, node_id: str) -> int:
        if self.n1.id == node_id:
            return 1
        if self.n2.id == node_id:
            return 2
        raise KeyError(f"ノード '{node_id}' はリンク '{self.id}' に含まれません")

    def other_node(self, node_id: str) -> Node:
        return self.n2 if self._side(node_id) == 1 else self.n1

    def get_coord(self, node_id: str) -> list[Coord]:
        return list(self.coord1 if self._side(node_id) == 1 else self.coord2)

    def get_coord_other(self, node_id: str) -> list[Coord]:
        return list(self.coord2 if self._side(node_id) == 1 else self.coord1)

    def position(self, node_id: str) -> np.ndarray:
        """`node_id` 側のアタッチ位置（先頭座標を評価）。"""
        node = self.n1 if self._side(node_id) == 1 else self.n2
        return node.position(self.get_coord(node_id)[0])

    def position_other(self, node_id: str) -> np.ndarray:
        return self.other_node(node_id).position(self.get_coord_other(node_id)[0])

    def replace(self, old_id: str, new_node: Node, coords: Sequence[Any]) -> None:
        """`old_id` 側の端点を `new_node`（座標 `coords`）へ付け替える。"""
        if self._side(old_id) == 1:
            self.n1, self.coord1 = new_node, _as_coords(coords)
        else:
            self.n2, self.coord2 = new_node, _as_coords(coords)


class StructureGraph:
    """カーブ/シートノードとリンクからなる構造グラフ。"""

    def __init__(self, name: str = "graph") -> None:
        self.name = name
        self.nodes: dict[str, Node] = {}
        self.edges: list[Link] = []
        self.properties: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"StructureGraph({self.name!r}, nodes={len(self.nodes)}, edges={len(self.edges)})"

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes.values())

    # ── ノード ───────────────────
    def add_node(self, node: Node) -> Node:
        if node.id in self.nodes:
            raise ValueError(f"ノード '{node.id}' は既に存在します")
        self.nodes[node.id] = node
        return node

    def get_node(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def correspondence(self, node_id: str) -> str | None:
        """ノードの対応先 id（無ければ None）。"""
        node = self.get_node(node_id)
        if node is None:
            return None
        cid = node.properties.get("correspond")
        return str(cid) if cid is not None else None

    # ── エッジ ───────────────────
    def add_edge(
        self,
        n1: NodeOrId,
        n2: NodeOrId,
        coord1: Sequence[Any],
        coord2: Sequence[Any],
        *,
        link_id: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> Link:
        a = self.nodes[_node_id(n1)]
        b = self.nodes[_node_id(n2)]
        if link_id is None:
            # 同じノード対の 2 本目以降は連番を付ける
            base = f"{a.id}:{b.id}"
            link_id, k = base, 1
            while self.get_edge(link_id) is not None:
                link_id, k = f"{base}#{k}", k + 1
        link = Link(a, b, coord1, coord2, link_id=link_id, properties=properties)
        if self.get_edge(link.id) is not None:
            raise ValueError(f"リンク '{link.id}' は既に存在します")
        self.edges.append(link)
        return link

    def get_edge(self, link_id: str | None) -> Link | None:
        if link_id is None:
            return None
        for link in self.edges:
            if link.id == link_id:
                return link
        return None

    def get_edge_between(self, a: NodeOrId, b: NodeOrId) -> Link | None:
        ia, ib = _node_id(a), _node_id(b)
        for link in self.edges:
            if link.has_node(ia) and link.has_node(ib) and ia != ib:
                return link
        return None

    def get_edges(self, node_id: str) -> list[Link]:
        return [link for link in self.edges if link.has_node(node_id)]

    def remove_edge(self, a: NodeOrId, b: NodeOrId) -> bool:
        link = self.get_edge_between(a, b)
        if link is None:
            return False
        self.edges.remove(link)
        logger.debug("edge removed: %s", link.id)
        return True

    def neighbors(self, node_id: str) -> list[str]:
        return [link.other_node(node_id).id for link in self.get_edges(node_id)]

    # ── 位相 ─────────────────────
    def _reachable(self, seed: str, blocked: Iterable[str] = ()) -> set[str]:
        block = set(blocked)
        seen = {seed}
        queue = deque([seed])
        while queue:
            cur = queue.popleft()
            for nb in self.neighbors(cur):
                if nb in seen or nb in block:
                    continue
                seen.add(nb)
                queue.append(nb)
        return seen

    def is_cut_node(self, node_id: str) -> bool:
        """除去すると所属する連結成分が分断されるノードか（関節点判定）。"""
        if node_id not in self.nodes:
            return False
        nbs = set(self.neighbors(node_id))
        if len(nbs) < 2:
            return False
        component = self._reachable(node_id)
        start = next(iter(nbs))
        rest = self._reachable(start, blocked=(node_id,))
        return len(rest) < len(component) - 1


__all__ = ["Link", "StructureGraph"]
