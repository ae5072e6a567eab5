"""
Tests for the conversion trace logger.
"""

import json

from cy2pw.core.tracer import TraceEventType, TraceLogger


def test_phases_nest():
  tracer = TraceLogger()
  outer = tracer.start_phase("Conversion Pipeline", "a.cy.js")
  inner = tracer.start_phase("Family: then", "callback chains")
  tracer.end_phase()
  tracer.end_phase()

  events = tracer.events
  assert [e.type for e in events] == [
    TraceEventType.PHASE_START,
    TraceEventType.PHASE_START,
    TraceEventType.PHASE_END,
    TraceEventType.PHASE_END,
  ]
  assert events[0].metadata == {"detail": "a.cy.js"}
  assert events[1].parent_id == outer
  assert events[2].parent_id == inner
  assert events[3].description == "End Phase"


def test_end_phase_without_phase_is_noop():
  tracer = TraceLogger()
  tracer.end_phase()
  assert tracer.events == []


def test_simple_events_attach_to_active_phase():
  tracer = TraceLogger()
  phase = tracer.start_phase("Family: wait")
  tracer.log_match("wait", "cy.wait(\n  500);", 12)
  tracer.log_mutation("wait", "cy.wait(500);", "await page.waitForTimeout(500);")
  tracer.log_warning("careful")
  tracer.log_import("import fs from 'fs';")

  match, mutation, warning, imported = tracer.events[1:]
  assert match.parent_id == phase
  assert match.metadata == {"kind": "wait", "start": 12, "preview": "cy.wait( 500);"}
  assert mutation.metadata["after"] == "await page.waitForTimeout(500);"
  assert warning.metadata == {"level": "warning"}
  assert imported.description == "Inject 'import fs from 'fs';'"


def test_export_is_json_serializable():
  tracer = TraceLogger()
  tracer.start_phase("Import Fixer")
  tracer.log_import("x", "remove")
  exported = tracer.export()
  assert exported[1]["description"] == "Remove 'x'"
  assert json.loads(json.dumps(exported))[0]["type"] == "phase_start"
