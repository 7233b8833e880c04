"""Timing instrumentation with JSONL output."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from patchgraph.utils.config_loader import InstrumentationConfig, TimingOutputConfig

SECTION_PREFIX = "pipeline"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TimingRecorder:
    """JSONL timing recorder controlled by instrumentation config.

    Sections are named ``pipeline/<stage>``; a stage is recorded only when
    timing is enabled and ``instrumentation.sections[<stage>]`` is true.
    """

    def __init__(self, config: InstrumentationConfig):
        self.config = config
        self.output: TimingOutputConfig = config.timing_output
        self.sections: Dict[str, bool] = config.sections
        self.enabled = bool(config.enable_timing)
        self.enable_detailed = bool(config.enable_detailed_timing)
        self._output_path = Path(self.output.path)
        self._records_written = 0
        if self.enabled:
            self._output_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def records_written(self) -> int:
        return self._records_written

    def _section_allowed(self, section: str) -> bool:
        if not self.enabled:
            return False
        prefix, sep, name = section.partition("/")
        if not sep or prefix != SECTION_PREFIX:
            return False
        return bool(self.sections.get(name, False))

    @contextmanager
    def section(self, name: str, metadata: Optional[Dict[str, object]] = None):
        """Context manager to record a timing section."""
        if not self._section_allowed(name):
            yield None
            return
        start_perf = time.perf_counter()
        start_iso = _now_iso()
        try:
            yield None
        finally:
            duration_ms = (time.perf_counter() - start_perf) * 1000.0
            record = {
                "type": "timing",
                "section": name,
                "duration_ms": duration_ms,
                "timestamp": start_iso,
            }
            if self.enable_detailed:
                record["perf_counter_start"] = start_perf
                record["perf_counter_end"] = start_perf + duration_ms / 1000.0
            if metadata:
                record["metadata"] = metadata
            self._write_record(record)

    def _write_record(self, record: Dict[str, object]) -> None:
        line = json.dumps(record, ensure_ascii=True)
        with self._output_path.open("a", encoding="utf-8") as f:
            f.write(line)
            f.write("\n")
        self._records_written += 1


__all__ = ["SECTION_PREFIX", "TimingRecorder"]
