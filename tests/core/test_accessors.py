"""
Tests for response accessor rewriting.
"""

from cy2pw.core.accessors import (
  destructured_fields,
  expand_destructured,
  path_expression,
  references_data,
  rewrite_accessors,
  unique_name,
)
from cy2pw.enums import BindingKind


def test_rewrite_hoists_body_and_maps_status():
  text = "expect(i.response.body.id).to.equal(1);\nexpect(i.response.statusCode).to.equal(200);"
  rewrite = rewrite_accessors(text, "i", BindingKind.RESPONSE)

  assert rewrite.prelude == ["const responseBody = await i.json();"]
  assert rewrite.text == "expect(responseBody.id).to.equal(1);\nexpect(i.status()).to.equal(200);"
  assert rewrite.used == ["response.statusCode", "response.body"]
  assert rewrite.issues == []


def test_hoisted_names_avoid_declared_names():
  declared = {"responseBody"}
  rewrite = rewrite_accessors("log(r.response.body);", "r", BindingKind.RESPONSE, declared)

  assert rewrite.prelude == ["const responseBody2 = await r.json();"]
  assert "responseBody2" in declared


def test_unmapped_access_is_reported():
  rewrite = rewrite_accessors("log(i.response.foo);", "i", BindingKind.RESPONSE)
  assert rewrite.issues == ["Unmapped access 'i.response' needs manual conversion"]


def test_api_response_accessors():
  rewrite = rewrite_accessors("expect(resp.status).to.eq(201);", "resp", BindingKind.API_RESPONSE)
  assert rewrite.text == "expect(resp.status()).to.eq(201);"


def test_references_data():
  assert references_data("x.response.body", "x", BindingKind.RESPONSE)
  assert not references_data("x.foo", "x", BindingKind.RESPONSE)
  assert not references_data("'x.response.body'", "x", BindingKind.RESPONSE)


def test_path_expression():
  assert path_expression("resp", "response.body.id", BindingKind.RESPONSE) == "(await resp.json()).id"
  assert path_expression("resp", "response.statusCode", BindingKind.RESPONSE) == "resp.status()"
  assert path_expression("r", "status", BindingKind.API_RESPONSE) == "r.status()"
  assert path_expression("r", "nope", BindingKind.RESPONSE) is None


def test_unique_name():
  declared = {"a", "a2"}
  assert unique_name("a", declared) == "a3"
  assert "a3" in declared
  assert unique_name("b", declared) == "b"


def test_destructured_fields():
  assert destructured_fields("{ response }", BindingKind.RESPONSE) == {"response": "response"}
  assert destructured_fields("{ request, response: res }", BindingKind.RESPONSE) == {"request": "request", "res": "response"}
  assert destructured_fields("{ body }", BindingKind.API_RESPONSE) == {"body": "body"}
  assert destructured_fields("{ response = {} }", BindingKind.RESPONSE) is None
  assert destructured_fields("{ state }", BindingKind.RESPONSE) is None
  assert destructured_fields("resp", BindingKind.RESPONSE) is None


def test_expand_destructured_avoids_taken_names():
  declared = {"interception"}
  name, body = expand_destructured("{ response }", "log(response.statusCode);", BindingKind.RESPONSE, declared)

  assert name == "interception2"
  assert body == "log(interception2.response.statusCode);"
  assert declared == {"interception"}
  assert references_data(body, name, BindingKind.RESPONSE)
