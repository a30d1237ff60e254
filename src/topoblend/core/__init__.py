"""
どこで: `topoblend.core` サブパッケージ。
何を: 構造グラフ（StructureGraph/Link）・パラメトリックノード（Curve/Sheet）・測地パス提供者を提供。
なぜ: タスク実行層（runtime）が読み書きする外部協調者を、最小限の実装で同梱するため。
"""

from .geodesic import GraphDistance, PathPoint, path_positions
from .graph import Link, StructureGraph
from .nodes import Curve, NodeKind, Sheet

__all__ = [
    "Curve",
    "Sheet",
    "NodeKind",
    "Link",
    "StructureGraph",
    "GraphDistance",
    "PathPoint",
    "path_positions",
]
