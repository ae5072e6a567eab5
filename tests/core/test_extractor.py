"""
Tests for pattern extraction per family.
"""

from cy2pw.core.chains import parse_chain
from cy2pw.core.extractor import PatternExtractor, estimate_complexity
from cy2pw.enums import Complexity, PatternKind


def test_then_patterns_skip_network_roots():
  code = "cy.get('#a').then(($el) => {\n  expect($el).to.be.visible;\n});\ncy.wait('@x').then(() => {});"
  patterns = PatternExtractor().extract_then_patterns(code)
  assert len(patterns) == 1
  assert patterns[0].kind == PatternKind.THEN
  assert patterns[0].raw_text.startswith("cy.get('#a')")
  assert patterns[0].raw_text.endswith("});")
  assert code[patterns[0].start : patterns[0].end] == patterns[0].raw_text


def test_then_patterns_inside_other_commands():
  code = "cy.get('form').within(() => {\n  cy.get('a').then(($a) => {});\n});"
  patterns = PatternExtractor().extract_then_patterns(code)
  assert [p.raw_text for p in patterns] == ["cy.get('a').then(($a) => {});"]


def test_wait_patterns_tag_intercepts():
  code = "cy.intercept('GET', '/api').as('x');\ncy.visit('/');\ncy.wait('@x');"
  patterns = PatternExtractor().extract_wait_patterns(code)
  assert [p.kind for p in patterns] == [PatternKind.INTERCEPT, PatternKind.WAIT]
  assert patterns[1].complexity == Complexity.MEDIUM


def test_command_patterns():
  code = "cy.visit('/');\ncy.get('a').then(() => {});\ncy.task('x');\ncy.wait(1);\ncy.login();"
  patterns = PatternExtractor().extract_command_patterns(code)
  assert [p.raw_text for p in patterns] == ["cy.visit('/');", "cy.task('x');"]


def test_custom_command_patterns():
  code = "cy.login('a');\ncy.visit('/');\ncy.findByText('x').then(() => {});"
  patterns = PatternExtractor().extract_custom_command_patterns(code)
  assert [p.raw_text for p in patterns] == ["cy.login('a');"]
  assert patterns[0].kind == PatternKind.CUSTOM_COMMAND


def test_structure_patterns():
  code = "describe('a', () => {\n  it('b', () => {\n  });\n});"
  patterns = PatternExtractor().extract_structure_patterns(code)
  assert [p.raw_text for p in patterns] == ["describe('a', () => {", "it('b', () => {"]


def test_extract_all_keys():
  result = PatternExtractor().extract_all("cy.visit('/');")
  assert list(result) == ["then", "wait", "command", "customCommand", "structure"]
  assert len(result["command"]) == 1


def test_estimate_complexity():
  def complexity(code):
    return estimate_complexity(parse_chain(code, 0))

  assert complexity("cy.get('a').click()") == Complexity.LOW
  assert complexity("cy.wait(500)") == Complexity.LOW
  assert complexity("cy.wait('@a')") == Complexity.MEDIUM
  assert complexity("cy.wait(['@a', '@b'])") == Complexity.MEDIUM
  assert complexity("cy.get('a').then(x => x).then(y => y)") == Complexity.MEDIUM
  assert complexity("cy.get('a').then(() => { if (x) { y(); } })") == Complexity.MEDIUM
  assert complexity("cy.get('a').then(() => { cy.get('b').then(() => {}); })") == Complexity.HIGH
