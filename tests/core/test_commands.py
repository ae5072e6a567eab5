"""
Tests for the command vocabulary shared by every family.
"""

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.body import BodyConverter
from cy2pw.core.chains import parse_chain
from cy2pw.core.commands import binding_name, custom_strategy, fixture_read, manual_comment
from cy2pw.core.context import ConversionContext
from cy2pw.enums import BindingKind, CommandStrategy


def convert(code, config=None, aliases=None, statement=True):
  ctx = ConversionContext(aliases, config)
  converted = BodyConverter(ctx).commands(ctx).convert_chain(parse_chain(code, 0), statement=statement)
  return converted, ctx


def test_visit():
  converted, _ = convert("cy.visit('/login')")
  assert converted.text == "await page.goto('/login');"


def test_type_with_key_tokens():
  converted, _ = convert("cy.get('#email').type('a@b.c{enter}')")
  assert converted.statements == [
    "await page.locator('#email').fill('a@b.c');",
    "await page.locator('#email').press('Enter');",
  ]

  converted, _ = convert("cy.get('input').type('{selectall}{backspace}')")
  assert converted.statements == [
    "await page.locator('input').press('ControlOrMeta+A');",
    "await page.locator('input').press('Backspace');",
  ]


def test_should_on_locators_and_url():
  converted, _ = convert("cy.contains('Save').should('be.visible')")
  assert converted.text == "await expect(page.getByText('Save')).toBeVisible();"

  converted, _ = convert("cy.get('li').should('have.length', 3)")
  assert converted.text == "await expect(page.locator('li')).toHaveCount(3);"

  converted, _ = convert("cy.url().should('include', '/dashboard')")
  assert converted.text == "await expect(page).toHaveURL(/\\/dashboard/);"


def test_bare_query_statement_asserts_attachment():
  converted, _ = convert("cy.get('#a')")
  assert converted.text == "await expect(page.locator('#a')).toBeAttached();"


def test_within_scopes_queries():
  converted, _ = convert("cy.get('form').within(() => { cy.get('input').type('x'); })")
  assert converted.text == "const scope = page.locator('form');\nawait scope.locator('input').fill('x');"


def test_each_becomes_for_loop():
  converted, _ = convert("cy.get('li').each(($li) => { cy.wrap($li).click(); })")
  assert converted.text == "for (const li of await page.locator('li').all()) {\n  await li.click();\n}"


def test_node_only_command_is_flagged():
  converted, ctx = convert("cy.task('db:seed')")
  assert converted.text.startswith("// TODO(cy2pw): cy.task() has no Playwright equivalent")
  assert converted.text.endswith(": cy.task('db:seed')")
  assert ctx.issues == ["cy.task() has no Playwright equivalent"]


def test_fixture_requires_imports():
  converted, ctx = convert("cy.fixture('users')", statement=False)
  assert converted.expression == "JSON.parse(fs.readFileSync(path.join('cypress/fixtures', 'users.json'), 'utf-8'))"
  assert ctx.imports == ["import fs from 'fs';", "import path from 'path';"]


def test_request_is_awaited_api_call():
  converted, _ = convert("cy.request('POST', '/api/items', { name: 'a' })")
  assert converted.text == "await page.request.post('/api/items', { data: { name: 'a' } });"


def test_debug_is_dropped_with_note():
  converted, ctx = convert("cy.debug()")
  assert converted.text == ""
  assert ctx.notes == ["cy.debug() was dropped, use page.pause() to step through"]
  assert not ctx.issues


def test_wait_then_without_parameter_keeps_the_wait():
  table = AliasSymbolTable.from_source("cy.intercept('/a').as('a');")
  converted, _ = convert("cy.wait('@a').then(() => { cy.get('b').click(); })", aliases=table)
  assert converted.text == (
    "await page.waitForResponse(response => response.url().includes('/a'));\n"
    "await page.locator('b').click();"
  )


def test_custom_command_utility_strategy():
  converted, ctx = convert("cy.login('u', 'p')")
  assert converted.text == "await login(page, 'u', 'p');"
  assert ctx.issues == ["Custom command 'login' needs a Playwright helper implementation"]


def test_custom_command_with_configured_helper():
  config = RuntimeConfig(command_helpers={"login": "./helpers/auth"})
  converted, ctx = convert("cy.login('u', 'p')", config=config)
  assert converted.text == "await login(page, 'u', 'p');"
  assert ctx.imports == ["import { login } from './helpers/auth';"]
  assert not ctx.issues


def test_custom_command_page_object_strategy():
  config = RuntimeConfig(page_object_commands={"login": "LoginPage"})
  converted, _ = convert("cy.login('u', 'p')", config=config)
  assert converted.text == "await new LoginPage(page).login('u', 'p');"


def test_direct_commands():
  converted, _ = convert("cy.findByRole('button', { name: 'Save' }).click()")
  assert converted.text == "await page.getByRole('button', { name: 'Save' }).click();"

  converted, ctx = convert("cy.getBySel('submit').click()")
  assert converted.text == "await page.getByTestId('submit').click();"
  assert "Set testIdAttribute: 'data-cy' in playwright.config for getByTestId" in ctx.notes


def test_custom_strategy_selection(config):
  assert custom_strategy("findByText", config) == CommandStrategy.DIRECT
  assert custom_strategy("login", config) == CommandStrategy.UTILITY
  assert custom_strategy("login", RuntimeConfig(page_object_commands={"login": "LoginPage"})) == CommandStrategy.PAGE_OBJECT
  assert custom_strategy("not-valid", config) == CommandStrategy.MANUAL


def test_binding_name():
  assert binding_name("$el") == "element"
  assert binding_name("$btn") == "btn"
  assert binding_name("$btn", "const btn = 1;") == "btnLocator"
  assert binding_name("item") == "item"


def test_manual_comment_collapses_whitespace():
  assert manual_comment("msg") == "// TODO(cy2pw): msg"
  assert manual_comment("msg", "cy.x(\n    1)") == "// TODO(cy2pw): msg: cy.x( 1)"


def test_fixture_read_adds_extension():
  assert fixture_read("'users'", "fx/") == "JSON.parse(fs.readFileSync(path.join('fx', 'users.json'), 'utf-8'))"


def test_alias_on_locator_declares_binding():
  converted, ctx = convert("cy.get('#save').as('saveButton')")
  assert converted.text == "const saveButton = page.locator('#save');\nawait expect(saveButton).toBeAttached();"
  assert ctx.bindings["saveButton"] == BindingKind.LOCATOR
