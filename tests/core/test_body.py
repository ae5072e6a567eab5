"""
Tests for callback body conversion.
"""

from cy2pw.core.body import BodyConverter, ensure_awaited
from cy2pw.core.context import ConversionContext
from cy2pw.enums import BindingKind


def element_context():
  return ConversionContext(bindings={"element": BindingKind.LOCATOR})


def test_ensure_awaited_adds_await():
  assert ensure_awaited("page.goto('/x');") == "await page.goto('/x');"


def test_ensure_awaited_parenthesises_further_use():
  code = "const t = page.locator('a').textContent().trim();"
  assert ensure_awaited(code) == "const t = (await page.locator('a').textContent()).trim();"


def test_ensure_awaited_leaves_awaited_and_combined_calls():
  assert ensure_awaited("await page.goto('/x');") == "await page.goto('/x');"
  combined = "await Promise.all([page.waitForResponse(r), page.click('a')]);"
  assert ensure_awaited(combined) == combined


def test_ensure_awaited_sub_apis():
  assert ensure_awaited("page.request.get('/x');") == "await page.request.get('/x');"


def test_ensure_awaited_locator_bindings():
  assert ensure_awaited("element.click();", ["element"]) == "await element.click();"
  assert ensure_awaited("element.click();") == "element.click();"


def test_jquery_getters_and_actions():
  ctx = element_context()
  converter = BodyConverter(ctx)

  assert converter.rewrite_jquery("const t = element.text();") == "const t = await element.textContent();"
  assert converter.rewrite_jquery("element.find('a').click();") == "await element.locator('a').click();"
  assert converter.rewrite_jquery("if (element.length > 0) {}") == "if ((await element.count()) > 0) {}"


def test_unsupported_jquery_method_is_flagged():
  ctx = element_context()
  text = BodyConverter(ctx).rewrite_jquery("element.slideUp();")
  assert text == "element.slideUp();"
  assert ctx.issues == ["Unsupported jQuery method .slideUp() on 'element'"]


def test_convert_runs_all_passes():
  ctx = element_context()
  converted = BodyConverter(ctx).convert("expect(element.text()).to.equal('Hi');")
  assert converted == "await expect(await element.textContent()).toBe('Hi');"


def test_convert_response_bindings_hoist_accessors():
  ctx = ConversionContext(bindings={"interception": BindingKind.RESPONSE})
  converted = BodyConverter(ctx).convert("expect(interception.response.body).to.have.length(2);")
  assert converted == "const responseBody = await interception.json();\nawait expect(responseBody).toHaveLength(2);"


def test_embedded_invocations():
  ctx = ConversionContext()
  converter = BodyConverter(ctx)
  assert converter.convert_invocations("const n = cy.get('a');") == "const n = page.locator('a');"
  assert converter.convert_invocations("  cy.visit('/');") == "  await page.goto('/');"


def test_convert_statements_keeps_order():
  ctx = ConversionContext()
  converted = BodyConverter(ctx).convert_statements("cy.get('#save').click();\ncy.get('#status').should('have.text', 'Saved');")
  assert converted == (
    "await page.locator('#save').click();\n"
    "await expect(page.locator('#status')).toHaveText('Saved');"
  )
