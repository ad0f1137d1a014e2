"""Workflow execution simulator.

A run walks ``workflow.nodes`` in stored order and fabricates one step and two
log entries per node. Node configuration is never interpreted and edges take no
part in ordering, so a graph containing cycles runs like any other.
"""
from __future__ import annotations

import math
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from flask import current_app

from ..models.execution import Execution
from ..models.workflow import Workflow
from ..store import WorkflowStore
from ..utils.timestamps import serialize_timestamp, utcnow

PLACEHOLDER_INPUT: dict[str, Any] = {"processed": True}


class WorkflowExecutionError(Exception):
    """Raised when a workflow cannot be executed."""

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id


@dataclass(frozen=True)
class SimulationSettings:
    """Timing knobs for simulated runs."""

    min_duration_ms: int = 500
    max_duration_ms: int = 2500
    realtime: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> SimulationSettings:
        return cls(
            min_duration_ms=int(config.get("STEP_DURATION_MIN_MS", 500)),
            max_duration_ms=int(config.get("STEP_DURATION_MAX_MS", 2500)),
            realtime=bool(config.get("SIMULATE_STEP_DELAY", False)),
        )


def next_success_rate(runs: int, success_rate: float) -> float:
    """Fold one more successful run into a running success percentage.

    The previous success count is recovered by rounding, so the result drifts
    from an exact ratio over many runs.
    """

    # Half-up rounding, not Python's round-half-even.
    success_count = math.floor(success_rate * runs / 100 + 0.5)
    return (success_count + 1) / (runs + 1) * 100


def _node_id(node: dict[str, Any], index: int) -> str:
    identifier = node.get("id")
    if identifier is None or identifier == "":
        return f"node-{index}"
    return str(identifier)


def _node_name(node: dict[str, Any], index: int) -> str:
    data = node.get("data")
    if isinstance(data, dict):
        label = data.get("label")
        if isinstance(label, str) and label:
            return label
    return f"Step {index + 1}"


def _node_type(node: dict[str, Any]) -> str:
    node_type = node.get("type")
    if isinstance(node_type, str) and node_type:
        return node_type
    data = node.get("data")
    if isinstance(data, dict) and isinstance(data.get("type"), str):
        return data["type"]
    return "unknown"


def _log_entry(
    logs: list[dict[str, Any]],
    timestamp: datetime,
    level: str,
    message: str,
    node_id: str | None = None,
    data: dict[str, Any] | None = None,
) -> None:
    logs.append(
        {
            "id": f"log-{len(logs) + 1}",
            "timestamp": serialize_timestamp(timestamp),
            "level": level,
            "message": message,
            "nodeId": node_id,
            "data": data or {},
        }
    )


def run_workflow(
    store: WorkflowStore,
    workflow: Workflow,
    input_data: dict[str, Any],
    *,
    test_mode: bool = False,
    settings: SimulationSettings | None = None,
    rng: random.Random | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], datetime] = utcnow,
) -> Execution:
    """Simulate one run of ``workflow`` and return the finished execution.

    The execution is created as ``running`` before the first node and the step
    trail is saved after every node, so an exception part-way through leaves
    the steps produced so far on the record. Outside test mode a completed run
    also updates the workflow's run statistics.
    """

    settings = settings or SimulationSettings()
    rng = rng or random.Random()
    nodes = list(workflow.nodes or [])

    started_at = clock()
    logs: list[dict[str, Any]] = []
    mode = "test mode" if test_mode else "live mode"
    _log_entry(logs, started_at, "info", f"Workflow execution started ({mode})")

    execution = store.start_execution(
        workflow,
        input_data=input_data,
        test_mode=test_mode,
        total_steps=len(nodes),
        started_at=started_at,
        logs=logs,
    )
    current_app.logger.info(
        "Execution %s started for workflow %s (%s, %d nodes)",
        execution.id,
        workflow.id,
        mode,
        len(nodes),
    )

    steps: list[dict[str, Any]] = []
    cursor = started_at
    total_duration = 0

    for index, node in enumerate(nodes):
        if not isinstance(node, dict):
            raise WorkflowExecutionError(
                f"node at position {index} is not an object", node_id=f"node-{index}"
            )

        node_id = _node_id(node, index)
        node_name = _node_name(node, index)
        duration = rng.randint(settings.min_duration_ms, settings.max_duration_ms)
        if settings.realtime:
            sleep(duration / 1000)

        step_start = cursor
        step_end = step_start + timedelta(milliseconds=duration)
        steps.append(
            {
                "id": f"step-{index + 1}",
                "nodeId": node_id,
                "nodeName": node_name,
                "nodeType": _node_type(node),
                "status": "completed",
                "startedAt": serialize_timestamp(step_start),
                "completedAt": serialize_timestamp(step_end),
                "duration": duration,
                "inputData": input_data if index == 0 else dict(PLACEHOLDER_INPUT),
                "outputData": {
                    "success": True,
                    "nodeType": _node_type(node),
                    "timestamp": serialize_timestamp(step_end),
                },
            }
        )
        _log_entry(logs, step_start, "info", f"Processing {node_name}", node_id)
        _log_entry(logs, step_end, "info", f"Completed {node_name}", node_id)
        store.record_progress(execution, steps, logs)

        cursor = step_end
        total_duration += duration

    _log_entry(
        logs,
        cursor,
        "success",
        "Workflow execution completed successfully",
        data={"totalDuration": total_duration},
    )
    store.complete_execution(
        execution,
        completed_at=cursor,
        duration=total_duration,
        output_data={
            "success": True,
            "stepsCompleted": len(steps),
            "executionTime": total_duration,
        },
        steps=steps,
        logs=logs,
        metrics={
            "totalNodes": len(nodes),
            "successfulNodes": len(steps),
            "failedNodes": 0,
            "skippedNodes": 0,
            "retries": 0,
        },
    )

    if not test_mode:
        store.update_run_stats(
            workflow,
            runs=workflow.runs + 1,
            success_rate=next_success_rate(workflow.runs, workflow.success_rate),
        )

    current_app.logger.info(
        "Execution %s for workflow %s completed in %d ms", execution.id, workflow.id, total_duration
    )
    return execution
