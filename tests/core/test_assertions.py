"""
Tests for assertion mapping.
"""

from cy2pw.core.assertions import convert_should, regex_from_literal, rewrite_expectations

LOCATOR = "page.locator('#a')"


def test_should_visibility_and_counts():
  assert convert_should(LOCATOR, True, ["'be.visible'"]) == ("await expect(page.locator('#a')).toBeVisible();", None)
  assert convert_should(LOCATOR, True, ["'have.length'", "3"])[0] == "await expect(page.locator('#a')).toHaveCount(3);"
  assert convert_should(LOCATOR, True, ["'not.exist'"])[0] == "await expect(page.locator('#a')).toHaveCount(0);"
  assert convert_should(LOCATOR, True, ["'have.length.greaterThan'", "2"])[0] == (
    "await expect(await page.locator('#a').count()).toBeGreaterThan(2);"
  )


def test_should_text_and_attributes():
  assert convert_should(LOCATOR, True, ["'contain'", "'Hi'"])[0] == "await expect(page.locator('#a')).toContainText('Hi');"
  assert convert_should(LOCATOR, True, ["'have.text'", "'Hi'"])[0] == "await expect(page.locator('#a')).toHaveText('Hi');"
  assert convert_should(LOCATOR, True, ["'have.attr'", "'href'", "'/x'"])[0] == (
    "await expect(page.locator('#a')).toHaveAttribute('href', '/x');"
  )
  assert convert_should(LOCATOR, True, ["'have.class'", "'active'"])[0] == (
    "await expect(page.locator('#a')).toHaveClass(/active/);"
  )


def test_should_on_page_url():
  statement, _ = convert_should("page.url()", False, ["'include'", "'/dash'"])
  assert statement == "await expect(page).toHaveURL(/\\/dash/);"


def test_should_unsupported_chainers():
  assert convert_should("x", False, ["'be.fuzzy'"]) == (None, "Unsupported assertion chainer 'be.fuzzy'")
  statement, issue = convert_should("x", False, ["cb"])
  assert statement is None
  assert issue == "Callback assertions in .should() need manual conversion"


def test_rewrite_value_expectations():
  text, issues = rewrite_expectations("expect(value).to.deep.equal({ a: 1 });")
  assert text == "await expect(value).toEqual({ a: 1 });"
  assert issues == []

  text, _ = rewrite_expectations("expect(flag).to.be.true;")
  assert text == "await expect(flag).toBe(true);"


def test_rewrite_locator_expectations():
  text, _ = rewrite_expectations("expect(element).to.have.text('Hi');", ["element"])
  assert text == "await expect(element).toHaveText('Hi');"

  text, _ = rewrite_expectations("expect(element).to.be.visible;", ["element"])
  assert text == "await expect(element).toBeVisible();"


def test_rewrite_property_chain():
  text, _ = rewrite_expectations("expect(obj).to.have.property('a').that.equals(1);")
  assert text == "await expect(obj).toHaveProperty('a', 1);"


def test_playwright_expectations_are_untouched():
  code = "await expect(x).toBe(1);\nawait expect(y).not.toBeVisible();"
  assert rewrite_expectations(code) == (code, [])


def test_unsupported_expectation_is_reported_and_kept():
  text, issues = rewrite_expectations("expect(x).to.satisfy(fn);")
  assert text == "expect(x).to.satisfy(fn);"
  assert len(issues) == 1


def test_regex_from_literal():
  assert regex_from_literal("'a.b'") == "/a\\.b/"
  assert regex_from_literal("/x/i") == "/x/i"
  assert regex_from_literal("name") == "new RegExp(name)"
