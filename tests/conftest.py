"""共通フィクスチャ。

- 乱数シード固定
- 設定スナップショットの復元
- 小さな構造グラフ試料（台座シート + カーブ）
"""

from __future__ import annotations

from typing import Iterator

import numpy as np
import pytest

from common import settings
from tests._utils.builders import plate
from topoblend.core import Curve, StructureGraph

_TB_ENV = (
    "TB_WELD_TOLERANCE",
    "TB_RMF_ZERO_NORM",
    "TB_RMF_SMOOTH_ITERS",
    "TB_GEODESIC_RESOLUTION",
    "TB_DEFAULT_TASK_LENGTH",
    "TB_USE_NUMBA",
    "TB_CONFIG",
)


@pytest.fixture(scope="session", autouse=True)
def np_seed() -> None:
    """NumPy の乱数を固定。"""
    np.random.seed(12345)


@pytest.fixture(autouse=True)
def restore_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """テスト中の TB_* 変更を後始末し、設定を再読込する。"""
    for name in _TB_ENV:
        monkeypatch.delenv(name, raising=False)
    settings.reload_from_env()
    yield
    monkeypatch.undo()
    settings.reload_from_env()


@pytest.fixture()
def leaf_graph() -> StructureGraph:
    """台座 + 1 本だけ接続されたカーブ `c`（制御点 (0,0,0),(1,0,0),(2,0,0)）。"""
    g = StructureGraph("leaf")
    base = g.add_node(plate("base"))
    c = g.add_node(Curve("c", [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))
    g.add_edge(c, base, (0.0, 0.0), (0.0, 0.0))
    return g


@pytest.fixture()
def arch_points() -> np.ndarray:
    """台座上 (0.5,0.5,0) → (1.5,0.5,0) を跨ぐアーチ。"""
    return np.array(
        [
            [0.5, 0.5, 0.0],
            [0.75, 0.5, 0.5],
            [1.25, 0.5, 0.5],
            [1.5, 0.5, 0.0],
        ]
    )


@pytest.fixture()
def arch_graph(arch_points: np.ndarray) -> StructureGraph:
    """アーチ `m` の両端が台座に接続（カットノードではない 2 本エッジ）。"""
    g = StructureGraph("arch")
    base = g.add_node(plate("base"))
    m = g.add_node(Curve("m", arch_points))
    g.add_edge(m, base, (0.0, 0.0), (0.25, 0.25))
    g.add_edge(m, base, (1.0, 0.0), (0.75, 0.25))
    return g
