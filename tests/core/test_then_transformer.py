"""
Tests for the callback chain transformer.
"""

from unittest.mock import patch

from cy2pw.core.chains import parse_chain
from cy2pw.core.models import Pattern
from cy2pw.core.then_transformer import NESTED_HEADER, ThenPatternTransformer
from cy2pw.enums import Complexity, PatternKind, ThenShape


def convert(code, declared=None):
  return ThenPatternTransformer().convert_then_pattern(Pattern.from_text(PatternKind.THEN, code), declared=declared)


def test_classify_shapes():
  transformer = ThenPatternTransformer()

  def shape(code):
    return transformer.classify(parse_chain(code, 0))

  assert shape("cy.get('a').then(x => { foo(x); })") == ThenShape.SIMPLE
  assert shape("cy.get('a').then(() => { cy.get('b').click(); })") == ThenShape.MULTI_STEP
  assert shape("cy.get('a').then(() => { cy.get('b').then(() => {}); })") == ThenShape.NESTED
  assert shape("cy.get('a').then(a => a).then(b => b)") == ThenShape.CHAINED
  assert shape("cy.get('a').then(handler)") == ThenShape.UNRECOGNIZED
  assert shape("cy.get('a').then(x => x).click()") == ThenShape.UNRECOGNIZED


def test_simple_callback():
  unit = convert("cy.get('#submit').then(($el) => {\n  expect($el).to.be.visible;\n});")
  assert unit.rewritten_text == "const element = page.locator('#submit');\nawait expect(element).toBeVisible();"
  assert unit.conversion_succeeded
  assert unit.is_structurally_valid
  assert unit.metadata.extra("shape") == "simple"
  assert unit.metadata.extra("binding") == "element"
  assert unit.metadata.complexity == Complexity.LOW
  assert not unit.requires_manual_review


def test_binding_avoids_declared_names():
  declared = {"element"}
  unit = convert("cy.get('#submit').then(($el) => {\n  expect($el).to.be.visible;\n});", declared=declared)
  assert unit.rewritten_text.startswith("const element2 = page.locator('#submit');")
  assert unit.metadata.extra("binding") == "element2"
  assert "element2" in declared


def test_conditional_raises_simple_complexity():
  unit = convert("cy.get('#a').then(($el) => {\n  if ($el.length) {\n    foo();\n  }\n});")
  assert unit.metadata.extra("shape") == "simple"
  assert unit.metadata.complexity == Complexity.MEDIUM


def test_chained_callbacks_share_result():
  unit = convert("cy.get('#count').then(($el) => $el.text()).then((text) => { expect(text).to.equal('3'); })")
  assert unit.rewritten_text == (
    "let result = page.locator('#count');\n"
    "result = await result.textContent();\n"
    "await expect(result).toBe('3');"
  )
  assert unit.metadata.extra("shape") == "chained"
  assert unit.metadata.complexity == Complexity.MEDIUM


def test_multi_step_callback():
  unit = convert(
    "cy.get('#name').then(($input) => {\n"
    "  cy.get('#save').click();\n"
    "  cy.get('#status').should('have.text', 'Saved');\n"
    "});"
  )
  assert unit.rewritten_text.split("\n") == [
    "const input = page.locator('#name');",
    "await page.locator('#save').click();",
    "await expect(page.locator('#status')).toHaveText('Saved');",
  ]
  assert unit.metadata.extra("shape") == "multi_step"
  assert unit.metadata.complexity == Complexity.MEDIUM


def test_window_callback_runs_in_browser():
  unit = convert("cy.window().then((win) => { win.localStorage.setItem('a','1'); })")
  assert unit.rewritten_text == "await page.evaluate(() => {\n  window.localStorage.setItem('a','1');\n});"
  assert unit.metadata.extra("binding") == "window"
  assert "Window callbacks run in the browser and cannot read test variables" in unit.notes


def test_nested_callbacks_are_flattened():
  unit = convert(
    "cy.get('#a').then(($a) => {\n"
    "  cy.get('#b').then(($b) => {\n"
    "    expect($b).to.be.visible;\n"
    "  });\n"
    "});"
  )
  assert unit.rewritten_text.split("\n") == [
    NESTED_HEADER,
    "// block 1",
    "const a = page.locator('#a');",
    "// block 2",
    "const b = page.locator('#b');",
    "await expect(b).toBeVisible();",
  ]
  assert unit.metadata.extra("nesting_level") == 2
  assert unit.metadata.complexity == Complexity.HIGH
  assert unit.requires_manual_review
  assert unit.conversion_succeeded


def test_unrecognized_chain_is_preserved():
  unit = convert("cy.get('a').then(handler);")
  assert unit.rewritten_text.startswith("// TODO(cy2pw): unrecognized callback chain, convert manually\n")
  assert unit.rewritten_text.endswith("cy.get('a').then(handler);")
  assert not unit.conversion_succeeded
  assert unit.requires_manual_review
  assert unit.metadata.extra("shape") == "unrecognized"
  assert unit.metadata.complexity == Complexity.HIGH


def test_errors_become_failed_units():
  with patch.object(ThenPatternTransformer, "_convert", side_effect=RuntimeError("boom")):
    unit = convert("cy.get('a').then(($a) => {});")
  assert not unit.conversion_succeeded
  assert unit.metadata.extra("shape") == "error"
  assert unit.rewritten_text.startswith("// TODO(cy2pw): conversion error (RuntimeError), convert manually")
