"""Shared helpers for test configuration, recorders and sample clouds."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from patchgraph.instrumentation.timing import TimingRecorder
from patchgraph.utils.config_loader import Config, DEFAULT_CONFIG

# Cluster A: three points in z=0, pairwise closer than 2.
# Cluster B: two points stacked along z, ~9 away from A.
TWO_CLUSTERS = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [10.0, 0.0, 0.0],
        [10.0, 0.0, 1.0],
    ],
    dtype=np.float64,
)
TWO_CLUSTERS_RADIUS = 2.0


def _merge_dict(base: dict, override: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def make_config(overrides: dict | None = None) -> Config:
    data = _merge_dict(DEFAULT_CONFIG, overrides or {})
    data["instrumentation"]["enable_timing"] = False
    data["instrumentation"]["enable_detailed_timing"] = False
    return Config.from_dict(data)


def make_recorder(config: Config | None = None) -> TimingRecorder:
    cfg = config or make_config()
    return TimingRecorder(cfg.instrumentation)


def write_obj(path: Path, points: np.ndarray, faces: Optional[Iterable[Iterable[int]]] = None) -> Path:
    """Write a minimal OBJ with ``v`` lines (and optional 0-based faces)."""
    lines = [f"v {x!r} {y!r} {z!r}" for x, y, z in np.asarray(points, dtype=np.float64).tolist()]
    for face in faces or []:
        lines.append("f " + " ".join(str(int(i) + 1) for i in face))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def reset_logging() -> None:
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
        handler.close()
    logging.getLogger().disabled = False
