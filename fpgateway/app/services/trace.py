"""
Normalization step tracing

When two captures of the same client hash differently, the question is
which property changed under normalization and how. A DebugSession records
each step the serializer takes: the property path, the kind of step, and
the value before and after it. Every recorded step is also written to this
module's logger at DEBUG level.

Tracing is opt-in per call: pass a session to serialize(), or use
generate_id_with_debug(), which opens and closes one for you.
"""

import enum
import json
import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fpgateway.app.services.normalization import json_safe

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1000
LOG_VALUE_LENGTH = 200
REPORT_RECENT_STEPS = 10


class NormalizationStepType(str, enum.Enum):
    NUMERIC_ROUND = "numeric_round"
    STRING_NORMALIZE = "string_normalize"
    ARRAY_SORT = "array_sort"
    OBJECT_KEY_SORT = "object_key_sort"
    FALLBACK_APPLIED = "fallback_applied"
    REPLACER_APPLIED = "replacer_applied"


@dataclass
class NormalizationStep:
    """One recorded step with JSON-safe snapshots of its input and output."""
    step_id: str
    type: NormalizationStepType
    property: str
    before: Any
    after: Any
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.before != self.after

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "stepId": self.step_id,
            "type": self.type.value,
            "property": self.property,
            "before": self.before,
            "after": self.after,
            "changed": self.changed,
        }
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


class DebugSession:
    """
    Collects normalization steps for one or more serialization passes.

    Only the first ``max_steps`` steps are kept; later ones are still
    counted in the summary.
    """

    def __init__(self, session_id: Optional[str] = None, max_steps: int = DEFAULT_MAX_STEPS):
        self.session_id = session_id or f"debug_{uuid.uuid4().hex[:12]}"
        self.max_steps = max(0, max_steps)
        self.steps: List[NormalizationStep] = []
        self.dropped_steps = 0
        self.fallbacks_applied = 0
        self.started_ns = time.perf_counter_ns()
        self.ended_ns: Optional[int] = None
        self._counts: Counter = Counter()
        logger.debug("Debug session started: %s", self.session_id)

    @property
    def active(self) -> bool:
        return self.ended_ns is None

    @property
    def total_steps(self) -> int:
        return sum(self._counts.values())

    def record(
        self,
        step_type: NormalizationStepType,
        prop: str,
        before: Any,
        after: Any,
        **metadata: Any,
    ):
        """
        Record one step.

        Args:
            step_type: Kind of step
            prop: Property path ("" for the document root)
            before: Value entering the step
            after: Value leaving the step
            **metadata: Extra detail stored with the step
        """
        if not self.active:
            return

        self._counts[step_type] += 1
        if step_type is NormalizationStepType.FALLBACK_APPLIED:
            self.fallbacks_applied += 1

        if len(self.steps) >= self.max_steps:
            self.dropped_steps += 1
            return

        step = NormalizationStep(
            step_id=f"step_{self.total_steps}",
            type=step_type,
            property=prop,
            before=json_safe(before),
            after=json_safe(after),
            metadata=json_safe(metadata),
        )
        self.steps.append(step)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s: %s [%s] %s -> %s",
                step_type.value,
                prop or "<root>",
                "CHANGED" if step.changed else "UNCHANGED",
                _truncate(step.before),
                _truncate(step.after),
            )

    def end(self) -> "DebugSession":
        """Stop recording; later record() calls are ignored."""
        if self.active:
            self.ended_ns = time.perf_counter_ns()
            logger.debug("Debug session ended: %s (%d steps in %.2f ms)",
                         self.session_id, self.total_steps, self.processing_time_ms)
        return self

    @property
    def processing_time_ms(self) -> float:
        ended = self.ended_ns if self.ended_ns is not None else time.perf_counter_ns()
        return (ended - self.started_ns) / 1_000_000

    def changed_steps(self) -> List[NormalizationStep]:
        return [step for step in self.steps if step.changed]

    def summary(self) -> Dict[str, Any]:
        return {
            "totalSteps": self.total_steps,
            "recordedSteps": len(self.steps),
            "droppedSteps": self.dropped_steps,
            "stepsByType": {step_type.value: count for step_type, count in sorted(self._counts.items())},
            "fallbacksApplied": self.fallbacks_applied,
            "processingTimeMs": self.processing_time_ms,
        }

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "summary": self.summary(),
            "steps": [step.as_dict() for step in self.steps],
        }

    def export(self) -> str:
        """Session as indented JSON text."""
        return json.dumps(self.as_dict(), indent=2, ensure_ascii=False)

    def create_summary_report(self) -> str:
        summary = self.summary()
        lines = [
            "=== Debug Session Summary ===",
            f"Session ID: {self.session_id}",
            f"Duration: {summary['processingTimeMs']:.2f}ms",
            f"Total Steps: {summary['totalSteps']}",
            f"Fallbacks Applied: {summary['fallbacksApplied']}",
        ]
        if self.dropped_steps:
            lines.append(f"Steps Not Recorded: {self.dropped_steps}")

        lines.append("")
        lines.append("=== Steps by Type ===")
        for name, count in summary["stepsByType"].items():
            lines.append(f"{name}: {count}")

        changed = self.changed_steps()
        if changed:
            lines.append("")
            lines.append("=== Recent Changes ===")
            for step in changed[-REPORT_RECENT_STEPS:]:
                lines.append(
                    f"{step.type.value}: {step.property or '<root>'}: "
                    f"{_truncate(step.before)} -> {_truncate(step.after)}"
                )

        return "\n".join(lines)


def start_debug_session(session_id: Optional[str] = None, max_steps: int = DEFAULT_MAX_STEPS) -> DebugSession:
    """Open a new session; pass it to serialize() and call end() when done."""
    return DebugSession(session_id, max_steps)


def _truncate(value: Any, max_length: int = LOG_VALUE_LENGTH) -> str:
    if isinstance(value, str):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
