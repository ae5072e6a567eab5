"""
Tests for interception and wait rendering.
"""

from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.chains import parse_chain
from cy2pw.core.network import convert_intercept, fixture_path, plan_wait


def intercept(code):
  return convert_intercept(parse_chain(code, 0))


def test_inline_response_with_method_guard():
  converted = intercept("cy.intercept('GET', '/api/users', { statusCode: 200, body: [] }).as('getUsers')")

  assert converted.succeeded
  assert converted.text.startswith("await page.route('/api/users', async (route) => {")
  assert "if (route.request().method() !== 'GET') {" in converted.text
  assert "return route.continue();" in converted.text
  assert "status: 200," in converted.text
  assert "contentType: 'application/json'," in converted.text
  assert "body: JSON.stringify([])," in converted.text
  assert converted.metadata["intercept_shape"] == "inline"
  assert converted.metadata["alias_name"] == "getUsers"
  assert converted.metadata["http_method"] == "GET"


def test_pass_through_interception():
  converted = intercept("cy.intercept('/api/x')")
  assert converted.text == "await page.route('/api/x', (route) => route.continue());"
  assert converted.metadata["intercept_shape"] == "pass_through"


def test_fixture_response():
  converted = intercept("cy.intercept('GET', '/api/users', { fixture: 'users' })")

  assert "status: 200," in converted.text
  assert "path: 'cypress/fixtures/users.json'," in converted.text
  assert "// TODO(cy2pw): load fixture file users" in converted.text
  assert "Fixture file integration requires manual setup" in converted.issues
  assert converted.metadata["uses_fixture"]
  assert converted.metadata["intercept_shape"] == "fixture"


def test_request_handler_reply():
  converted = intercept("cy.intercept('POST', '/api/login', (req) => { req.reply({ statusCode: 401 }); })")

  assert "await route.fulfill({ status: 401 });" in converted.text
  assert "await route.continue();" not in converted.text
  assert converted.metadata["intercept_shape"] == "handler"


def test_request_handler_without_reply_continues():
  converted = intercept("cy.intercept('/api/x', (req) => { req.headers['x-test'] = '1'; })")

  assert "route.request().headers()['x-test'] = '1';" in converted.text
  assert "await route.continue();" in converted.text


def test_regex_url_delay_and_network_error():
  regex = intercept("cy.intercept(/users/)")
  assert regex.text == "await page.route(/users/, (route) => route.continue());"
  assert regex.metadata["intercept_shape"] == "regex"

  delayed = intercept("cy.intercept('/api/slow', { statusCode: 200, delay: 500 })")
  assert "await new Promise((resolve) => setTimeout(resolve, 500));" in delayed.text

  broken = intercept("cy.intercept('/api/down', { forceNetworkError: true })")
  assert "await route.abort();" in broken.text


def test_missing_url_fails():
  converted = intercept("cy.intercept()")
  assert not converted.succeeded
  assert converted.issues == ["Interception URL could not be identified"]


def test_plan_wait_resolved_alias():
  table = AliasSymbolTable.from_source("cy.intercept('/api/users').as('getUsers');")
  plan = plan_wait("'@getUsers'", table)

  assert plan.text == "await page.waitForResponse(response => response.url().includes('/api/users'));"
  assert plan.expression == "await page.waitForResponse(response => response.url().includes('/api/users'))"
  assert plan.metadata["wait_type"] == "alias"
  assert plan.metadata["resolved_urls"] == ["/api/users"]
  assert plan.metadata["unresolved_aliases"] == []


def test_plan_wait_unresolved_alias():
  plan = plan_wait("'@missing'", AliasSymbolTable())
  first_line, second_line = plan.text.split("\n")

  assert plan.succeeded
  assert first_line == "// TODO(cy2pw): unresolved alias @missing, no matching cy.intercept().as('missing') in this file"
  assert second_line == "await page.waitForResponse(response => response.url().includes('missing'));"
  assert plan.metadata["unresolved_aliases"] == ["missing"]


def test_plan_wait_multiple_aliases():
  table = AliasSymbolTable.from_source("cy.intercept('/a').as('a');\ncy.intercept('/b').as('b');")
  plan = plan_wait("['@a', '@b']", table)

  assert plan.expression.startswith("await Promise.all([\n")
  assert "  page.waitForResponse(response => response.url().includes('/a'))," in plan.text
  assert "  page.waitForResponse(response => response.url().includes('/b'))," in plan.text
  assert plan.metadata["wait_type"] == "multi_alias"
  assert plan.metadata["alias_names"] == ["a", "b"]


def test_plan_wait_durations():
  plan = plan_wait("500", AliasSymbolTable())
  assert plan.text == "await page.waitForTimeout(500);"
  assert plan.metadata["wait_type"] == "time"
  assert plan.notes == []

  named = plan_wait("TIMEOUT", AliasSymbolTable())
  assert named.text == "await page.waitForTimeout(TIMEOUT);"
  assert named.notes == ["Wait argument 'TIMEOUT' is assumed to be a duration in milliseconds"]


def test_plan_wait_unknown_argument():
  plan = plan_wait("'text'", AliasSymbolTable())
  assert not plan.succeeded
  assert plan.metadata["wait_type"] == "unknown"


def test_fixture_path():
  assert fixture_path("'users'", "cypress/fixtures/") == "'cypress/fixtures/users.json'"
  assert fixture_path("'data/list.json'", "fx") == "'fx/data/list.json'"
  assert fixture_path("name", "fx") == "`fx/${name}`"
