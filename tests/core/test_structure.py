"""
Tests for test block header conversion.
"""

from cy2pw.core.models import Pattern
from cy2pw.core.structure import StructureTransformer, find_block_headers
from cy2pw.enums import Complexity, PatternKind


def convert(header):
  return StructureTransformer().convert_structure_pattern(Pattern.from_text(PatternKind.STRUCTURE, header))


def test_suites():
  assert convert("describe('Login', () => {").rewritten_text == "test.describe('Login', () => {"
  assert convert("context.only('x', function () {").rewritten_text == "test.describe.only('x', () => {"


def test_tests():
  assert convert("it('works', () => {").rewritten_text == "test('works', async ({ page }) => {"
  assert convert("it.skip('w', async () => {").rewritten_text == "test.skip('w', async ({ page }) => {"


def test_hooks():
  assert convert("beforeEach(() => {").rewritten_text == "test.beforeEach(async ({ page }) => {"
  assert convert("after(() => {").rewritten_text == "test.afterAll(async () => {"


def test_before_hook_opens_own_page():
  unit = convert("before(() => {")
  assert unit.rewritten_text == "test.beforeAll(async ({ browser }) => {\n  const page = await browser.newPage();"
  assert unit.requires_manual_review
  assert unit.metadata.complexity == Complexity.MEDIUM
  assert unit.is_structurally_valid


def test_pending_test():
  assert convert("it('todo');").rewritten_text == "test.fixme('todo', async () => {});"


def test_options_are_dropped():
  unit = convert("it('works', { retries: 2 }, () => {")
  assert unit.rewritten_text == "test('works', async ({ page }) => {"
  assert any(note.startswith("Options of it() were dropped") for note in unit.notes)


def test_done_callback_is_flagged():
  unit = convert("it('w', (done) => {")
  assert unit.requires_manual_review
  assert "Manual review: Callback parameter 'done' of it() needs manual conversion" in unit.notes


def test_unparsable_header():
  unit = convert("foo(() => {")
  assert not unit.conversion_succeeded
  assert unit.rewritten_text.startswith("// TODO(cy2pw): test block header could not be parsed")


def test_find_block_headers():
  text = "describe('a', () => {\n  it('b', () => {\n  });\n});"
  headers = find_block_headers(text)
  assert [h.name for h in headers] == ["describe", "it"]
  assert text[headers[0].start : headers[0].end] == "describe('a', () => {"
  assert headers[1].arguments == ["'b'"]


def test_find_block_headers_ignores_member_calls():
  assert find_block_headers("foo.it('b', () => {});\nconst x = describe;") == []
