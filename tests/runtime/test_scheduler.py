from __future__ import annotations

import logging
import pickle

import numpy as np
import pytest

from tests._utils.builders import plate
from topoblend.core import Curve, StructureGraph
from topoblend.demo import build_demo_graphs, build_scheduler
from topoblend.runtime import Scheduler, Task, TaskError, TaskKind


class RecordingProvider:
    """経路を返さず、渡された除外集合だけを記録する。"""

    def __init__(self, calls: list) -> None:
        self.calls = calls

    def compute_distances(self, seed_position, excluded_node_ids=()) -> None:
        self.calls.append(frozenset(excluded_node_ids))

    def smooth_path_coord_to(self, target_position):
        return ()


class FailingProvider:
    def __init__(self, graph) -> None:
        pass

    def compute_distances(self, seed_position, excluded_node_ids=()) -> None:
        raise RuntimeError("boom")

    def smooth_path_coord_to(self, target_position):
        return ()


def _two_arches(arch_points: np.ndarray) -> StructureGraph:
    g = StructureGraph()
    base = g.add_node(plate("base"))
    for name, dy in (("m1", 0.0), ("m2", 1.0)):
        m = g.add_node(Curve(name, arch_points + [0.0, dy, 0.0]))
        g.add_edge(m, base, (0.0, 0.0), (0.25, 0.25 + dy / 2))
        g.add_edge(m, base, (1.0, 0.0), (0.75, 0.25 + dy / 2))
    return g


@pytest.mark.integration
def test_demo_blend_runs_to_completion() -> None:
    active, target = build_demo_graphs()
    scheduler = build_scheduler(active, target, length=8)
    assert scheduler.total_duration() == 16
    frames = scheduler.run()
    assert frames == 17
    assert all(t.is_done for t in scheduler.tasks)
    assert active.get_edges("arm") == []
    assert len(active.get_edges("tail")) == 1
    assert active.get_edge_between("leg", "base").get_coord("base") == [(0.75, 0.75)]


def test_running_set_excludes_own_node(arch_points: np.ndarray) -> None:
    g = _two_arches(arch_points)
    calls: list = []
    scheduler = Scheduler(
        [
            Task(g, None, TaskKind.SHRINK, "m1", 1, length=4, path_provider=lambda _g: RecordingProvider(calls)),
            Task(g, None, TaskKind.SHRINK, "m2", 2, start=2, length=4, path_provider=lambda _g: RecordingProvider(calls)),
        ]
    )
    assert scheduler.running_node_ids(0) == frozenset({"m1"})
    assert scheduler.running_node_ids(3) == frozenset({"m1", "m2"})

    scheduler.execute_frame(0)
    assert calls == [frozenset()]
    scheduler.execute_frame(2)
    assert calls[-1] == frozenset({"m1"})


def test_tick_advances_time(leaf_graph: StructureGraph) -> None:
    task = Task(leaf_graph, None, TaskKind.SHRINK, "c", length=4)
    scheduler = Scheduler([task])
    scheduler.tick(2)
    assert scheduler.time == 2
    assert task.current_time == 2
    scheduler.tick(2)
    assert task.is_done
    assert scheduler.running_node_ids(5) == frozenset()


def test_reset_rewinds_all_tasks(leaf_graph: StructureGraph) -> None:
    task = Task(leaf_graph, None, TaskKind.SHRINK, "c", length=2)
    scheduler = Scheduler([task])
    scheduler.run()
    scheduler.reset()
    assert scheduler.time == 0
    assert not task.is_done and not task.is_ready


def test_run_rejects_bad_step() -> None:
    with pytest.raises(ValueError):
        Scheduler().run(step=0)


def test_failures_are_logged_and_wrapped(
    arch_graph: StructureGraph, caplog: pytest.LogCaptureFixture
) -> None:
    task = Task(arch_graph, None, TaskKind.SHRINK, "m", 7, length=4, path_provider=FailingProvider)
    scheduler = Scheduler([task])
    with caplog.at_level(logging.ERROR, logger="topoblend.runtime.scheduler"):
        with pytest.raises(TaskError) as excinfo:
            scheduler.execute_frame(0)
    err = excinfo.value
    assert err.task_id == 7
    assert isinstance(err.original, RuntimeError)
    assert "[scheduler] task_id=7" in caplog.text

    restored = pickle.loads(pickle.dumps(err))
    assert str(restored) == str(err)
