"""
Conversion Trace Logger.

Records the step-by-step execution of one file conversion:
1. Lifecycle Phases (Alias binding, each pattern family, imports, validation).
2. Pattern Matches (Found a `then` span at offset 120).
3. Text Mutations (Span A rewritten to text B).

The output is a structured list of event dictionaries suitable for JSON
serialization. A logger is created per conversion call; nothing is shared
between files.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  PATTERN_MATCH = "pattern_match"
  TEXT_MUTATION = "text_mutation"
  ANALYSIS_WARNING = "analysis_warning"
  IMPORT_ACTION = "import_action"


@dataclass
class TraceEvent:
  id: str
  type: TraceEventType
  timestamp: float
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)


class TraceLogger:
  """
  Records conversion events for one file.
  """

  def __init__(self) -> None:
    self._events: List[TraceEvent] = []
    self._active_phases: List[str] = []  # Stack of phase IDs

  def start_phase(self, name: str, description: str = "") -> str:
    """Starts a nested phase (e.g., 'Family: then'). Returns Phase ID."""
    phase_id = str(uuid.uuid4())
    parent = self._active_phases[-1] if self._active_phases else None

    self._events.append(
      TraceEvent(
        id=phase_id,
        type=TraceEventType.PHASE_START,
        timestamp=time.time(),
        description=name,
        parent_id=parent,
        metadata={"detail": description},
      )
    )
    self._active_phases.append(phase_id)
    return phase_id

  def end_phase(self) -> None:
    """Ends the current active phase."""
    if not self._active_phases:
      return

    phase_id = self._active_phases.pop()
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()),
        type=TraceEventType.PHASE_END,
        timestamp=time.time(),
        description="End Phase",
        parent_id=phase_id,
      )
    )

  def log_match(self, kind: str, text: str, start: int) -> None:
    """Logs an extracted pattern."""
    preview = " ".join(text.split())[:80]
    self._log_simple(
      TraceEventType.PATTERN_MATCH,
      f"Found {kind} pattern at offset {start}",
      {"kind": kind, "start": start, "preview": preview},
    )

  def log_mutation(self, kind: str, before: str, after: str) -> None:
    """Logs a span rewrite."""
    self._log_simple(TraceEventType.TEXT_MUTATION, f"Rewrote {kind} pattern", {"before": before, "after": after})

  def log_warning(self, message: str) -> None:
    self._log_simple(TraceEventType.ANALYSIS_WARNING, message, {"level": "warning"})

  def log_import(self, statement: str, action: str = "inject") -> None:
    self._log_simple(TraceEventType.IMPORT_ACTION, f"{action.capitalize()} '{statement}'", {"action": action})

  def _log_simple(self, evt_type: TraceEventType, desc: str, meta: Dict[str, Any]) -> None:
    parent = self._active_phases[-1] if self._active_phases else None
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()), type=evt_type, timestamp=time.time(), description=desc, parent_id=parent, metadata=meta
      )
    )

  @property
  def events(self) -> List[TraceEvent]:
    return list(self._events)

  def export(self) -> List[Dict[str, Any]]:
    """Returns list of dicts for JSON serialization."""
    return [asdict(e) for e in self._events]
