"""
Command Vocabulary Converter.

Converts one Cypress invocation chain (`cy.get(sel).find('a').click()`)
into Playwright statements, link by link. The same converter serves the
command family (top-level chains), the callback transformer (the base of a
`.then()` chain) and the body converter (chains embedded in callback
bodies), so every entry point shares one vocabulary.

A chain is walked with a running `Subject`: the expression the next link
applies to and the kind of value it holds. Query links refine a locator,
action and assertion links emit awaited statements and mark the subject as
used, value links (`its`, `invoke`) turn the subject into a plain value.

Root commands outside the standard vocabulary are custom commands; the
strategy table for them lives here so embedded custom invocations and the
custom command family render them identically.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from cy2pw.core import network
from cy2pw.core.accessors import expand_destructured, path_expression, unique_name
from cy2pw.core.aliases import HTTP_METHODS, object_properties
from cy2pw.core.assertions import convert_should
from cy2pw.core.chains import Chain, Link, callback_argument, parse_callback
from cy2pw.core.context import ConversionContext
from cy2pw.core.scanning import (
  dedent_block,
  indent_block,
  is_identifier,
  is_string_literal,
  js_string,
  rename_identifier,
  split_trailing_return,
  strip_quotes,
)
from cy2pw.config import RuntimeConfig
from cy2pw.enums import BindingKind, CommandStrategy

MANUAL = network.MANUAL

# Converts a callback body under a context; injected by the body converter.
BodyConverterFn = Callable[[str, ConversionContext], str]

# Commands with no browser-side equivalent in Playwright.
NODE_ONLY_COMMANDS = {
  "task": "move the Node-side task into a fixture or helper",
  "exec": "run the command with child_process in a helper",
  "readFile": "read the file with fs in the test",
  "writeFile": "write the file with fs in the test",
  "session": "use storageState or a setup project for session caching",
  "origin": "cross-origin steps run directly on page in Playwright",
  "server": "cy.server() is obsolete, use page.route",
  "route": "cy.route() is obsolete, use page.route",
  "stub": "use a test double library for stubs",
  "spy": "use a test double library for spies",
  "on": "subscribe with page.on() instead",
  "once": "subscribe with page.once() instead",
}

STANDARD_COMMANDS = {
  "get",
  "contains",
  "url",
  "title",
  "location",
  "hash",
  "window",
  "document",
  "visit",
  "reload",
  "go",
  "viewport",
  "scrollTo",
  "wait",
  "intercept",
  "request",
  "log",
  "wrap",
  "fixture",
  "clearCookies",
  "clearAllCookies",
  "clearCookie",
  "setCookie",
  "getCookie",
  "getCookies",
  "clearLocalStorage",
  "screenshot",
  "focused",
  "clock",
  "tick",
  "pause",
  "debug",
}

KNOWN_COMMANDS = STANDARD_COMMANDS | set(NODE_ONLY_COMMANDS) | {"then"}

KEY_TOKENS = {
  "enter": "Enter",
  "esc": "Escape",
  "backspace": "Backspace",
  "del": "Delete",
  "tab": "Tab",
  "selectall": "ControlOrMeta+A",
  "uparrow": "ArrowUp",
  "downarrow": "ArrowDown",
  "leftarrow": "ArrowLeft",
  "rightarrow": "ArrowRight",
  "home": "Home",
  "end": "End",
  "pageup": "PageUp",
  "pagedown": "PageDown",
  "insert": "Insert",
  "movetostart": "Home",
  "movetoend": "End",
}

# Testing Library query commands -> Playwright locator factories.
TESTING_LIBRARY_QUERIES = {
  "Role": "getByRole",
  "Text": "getByText",
  "LabelText": "getByLabel",
  "PlaceholderText": "getByPlaceholder",
  "TestId": "getByTestId",
  "AltText": "getByAltText",
  "Title": "getByTitle",
  "DisplayValue": "locator",
}

DIRECT_COMMANDS = {
  "getBySel",
  "getBySelLike",
  "dataCy",
  "selectDropdown",
  "uploadFile",
  "customLog",
} | {f"{prefix}{query}" for prefix in ("findBy", "findAllBy") for query in TESTING_LIBRARY_QUERIES}

_PASSED_CLICK_OPTIONS = {"force", "timeout"}
_KEY_TOKEN_RE = re.compile(r"(\{\{\}|\{[A-Za-z]+\})")


@dataclass
class Subject:
  """
  Running state while walking a chain.

  Attributes:
      expression: Expression the next link applies to, None once the chain
          produced no value (e.g. after `cy.visit`).
      kind: Kind of value held by `expression`.
      used: True once an action or assertion consumed the subject.
  """

  expression: Optional[str]
  kind: BindingKind = BindingKind.VALUE
  used: bool = False


@dataclass
class ChainConversion:
  """
  Output of converting one chain.

  Attributes:
      statements: Statements to emit, in order.
      expression: Final subject expression (None when nothing remains).
      kind: Kind of the final subject.
      succeeded: False when the root command could not be converted at all.
  """

  statements: List[str] = field(default_factory=list)
  expression: Optional[str] = None
  kind: BindingKind = BindingKind.VALUE
  succeeded: bool = True

  @property
  def text(self) -> str:
    return "\n".join(self.statements)


def binding_name(param: str, body: str = "") -> str:
  """
  Derives the Playwright-side name for a callback parameter.

  A leading `$` is dropped, `$el`/`$elem` become `element`, and a name that
  would clash with another identifier already used in `body` gets a
  `Locator` suffix.

  Args:
      param: Callback parameter as written.
      body: Callback body, checked for clashes.

  Returns:
      str: The binding identifier.
  """
  base = param.lstrip("$") or "subject"
  if base in ("el", "elem"):
    base = "element"
  if base != param and re.search(rf"(?<![\w$.]){re.escape(base)}(?![\w$])", body):
    base += "Locator"
  return base


def custom_strategy(name: str, config: RuntimeConfig) -> CommandStrategy:
  """Selects how a non-standard command is rendered."""
  if name in config.page_object_commands:
    return CommandStrategy.PAGE_OBJECT
  if name in DIRECT_COMMANDS:
    return CommandStrategy.DIRECT
  if is_identifier(name):
    return CommandStrategy.UTILITY
  return CommandStrategy.MANUAL


def fixture_read(name: str, fixtures_dir: str) -> str:
  """Renders a synchronous JSON read of a fixture file."""
  if is_string_literal(name):
    file_name = strip_quotes(name)
    if "." not in file_name.rsplit("/", 1)[-1]:
      file_name += ".json"
    name = js_string(file_name)
  return f"JSON.parse(fs.readFileSync(path.join({js_string(fixtures_dir.rstrip('/'))}, {name}), 'utf-8'))"


def manual_comment(message: str, original: str = "") -> str:
  """A single-line manual review marker, optionally quoting the original code."""
  quoted = " ".join(original.split())
  return f"{MANUAL} {message}: {quoted}" if quoted else f"{MANUAL} {message}"


def _await_wrapped(expression: str) -> str:
  return f"({expression})" if expression.startswith("await ") else expression


def _property_path(expression: str, path: str) -> str:
  out = _await_wrapped(expression)
  for part in path.split("."):
    out += f".{part}" if is_identifier(part) else f"[{part if part.isdigit() else js_string(part)}]"
  return out


class CommandConverter:
  """
  Converts Cypress command chains under one `ConversionContext`.
  """

  def __init__(self, context: ConversionContext, convert_body: Optional[BodyConverterFn] = None):
    """
    Initializes the converter.

    Args:
        context: Conversion state (aliases, config, bindings, accumulators).
        convert_body: Converter applied to callback bodies of `then`,
            `within`, `each` and callback assertions. Without it, bodies are
            emitted unchanged and flagged for review.
    """
    self.context = context
    self._convert_body = convert_body
    self._roots: Dict[str, Callable[[Link, Subject, List[str]], None]] = {
      "get": self._get,
      "contains": self._contains,
      "url": self._value("page.url()"),
      "title": self._value("await page.title()"),
      "hash": self._value("new URL(page.url()).hash"),
      "location": self._location,
      "window": self._window,
      "document": self._window,
      "visit": self._visit,
      "reload": self._statement("await page.reload();"),
      "go": self._go,
      "viewport": self._viewport,
      "scrollTo": self._scroll_to,
      "wait": self._wait,
      "request": self._request,
      "log": self._log,
      "wrap": self._wrap,
      "fixture": self._fixture,
      "clearCookies": self._statement("await page.context().clearCookies();"),
      "clearAllCookies": self._statement("await page.context().clearCookies();"),
      "clearCookie": self._clear_cookie,
      "setCookie": self._set_cookie,
      "getCookie": self._get_cookie,
      "getCookies": self._value("await page.context().cookies()"),
      "clearLocalStorage": self._statement("await page.evaluate(() => localStorage.clear());"),
      "screenshot": self._screenshot,
      "focused": self._locator_value("page.locator(':focus')"),
      "clock": self._statement("await page.clock.install();"),
      "tick": self._tick,
      "pause": self._statement("await page.pause();"),
      "debug": self._debug,
    }
    self._links: Dict[str, Callable[[Link, Subject, List[str]], None]] = {
      "find": self._find,
      "get": self._find,
      "first": self._query("first()"),
      "last": self._query("last()"),
      "eq": self._eq,
      "filter": self._filter,
      "parent": self._query("locator('..')"),
      "next": self._query("locator('xpath=following-sibling::*[1]')"),
      "prev": self._query("locator('xpath=preceding-sibling::*[1]')"),
      "children": self._children,
      "contains": self._contains_link,
      "as": self._alias,
      "click": self._click,
      "dblclick": self._action("dblclick()"),
      "rightclick": self._action("click({ button: 'right' })"),
      "type": self._type,
      "clear": self._action("fill('')"),
      "check": self._action("check()"),
      "uncheck": self._action("uncheck()"),
      "select": self._select,
      "focus": self._action("focus()"),
      "blur": self._action("blur()"),
      "trigger": self._trigger,
      "scrollIntoView": self._action("scrollIntoViewIfNeeded()"),
      "selectFile": self._select_file,
      "submit": self._action("evaluate((form) => form.requestSubmit())"),
      "invoke": self._invoke,
      "its": self._its,
      "should": self._should,
      "and": self._should,
      "within": self._within,
      "each": self._each,
      "then": self._then,
    }

  # --- Entry points ---

  def convert_chain(self, chain: Chain, statement: bool = True) -> ChainConversion:
    """
    Converts a cy-rooted chain.

    Args:
        chain: The parsed chain (receiver `cy`).
        statement: True when the chain stands as its own statement. Then an
            unused final subject is still emitted (awaited values as
            expression statements, bare locators as attachment assertions).

    Returns:
        ChainConversion: Statements plus the final subject.
    """
    statements: List[str] = []
    root = chain.links[0]
    if root.name == "intercept":
      converted = network.convert_intercept(chain, self.context.config.fixtures_dir)
      self._absorb(converted)
      return ChainConversion([converted.text], None, BindingKind.VALUE, converted.succeeded)

    subject = Subject(None)
    if not self.convert_root(root, subject, statements):
      return ChainConversion([manual_comment(f"cy.{root.name}() could not be converted", chain.text)], None, succeeded=False)
    self.convert_links(chain.links[1:], subject, statements)
    if statement:
      self.finish_statement(subject, statements)
    return ChainConversion(statements, subject.expression, subject.kind)

  def convert_root(self, link: Link, subject: Subject, statements: List[str]) -> bool:
    """
    Converts the root command of a chain into the initial subject.

    Returns:
        bool: False when the command could not be converted.
    """
    if link.name in NODE_ONLY_COMMANDS:
      hint = NODE_ONLY_COMMANDS[link.name]
      self.context.flag(f"cy.{link.name}() has no Playwright equivalent")
      statements.append(manual_comment(f"cy.{link.name}() has no Playwright equivalent, {hint}", f"cy.{link.name}({link.args})"))
      subject.used = True
      return True
    handler = self._roots.get(link.name)
    if handler is not None:
      handler(link, subject, statements)
      return True
    return self.convert_custom(link, subject, statements)

  def convert_links(self, links: List[Link], subject: Subject, statements: List[str]) -> None:
    """Applies subject links in order."""
    for link in links:
      handler = self._links.get(link.name)
      if handler is None:
        self._unsupported(link, statements)
        continue
      handler(link, subject, statements)

  def convert_callback_body(self, body: str, context: ConversionContext) -> str:
    if self._convert_body is None:
      self.context.flag("Callback body was not converted")
      return body
    return self._convert_body(body, context)

  # --- Shared helpers ---

  def _base(self) -> str:
    return self.context.scope or "page"

  def _absorb(self, converted: network.NetworkConversion) -> None:
    for note in converted.notes:
      self.context.note(note)
    for issue in converted.issues:
      self.context.flag(issue)

  def finish_statement(self, subject: Subject, statements: List[str]) -> None:
    """Emits an unused final subject as a statement of its own."""
    if subject.used or subject.expression is None:
      return
    if subject.kind == BindingKind.LOCATOR:
      statements.append(f"await expect({subject.expression}).toBeAttached();")
    elif subject.expression.startswith("await "):
      statements.append(f"{subject.expression};")

  def _unsupported(self, link: Link, statements: List[str]) -> None:
    self.context.flag(f"Unsupported command .{link.name}()")
    statements.append(manual_comment(f".{link.name}() was not converted", f".{link.name}({link.args})"))

  def _require_locator(self, link: Link, subject: Subject, statements: List[str]) -> bool:
    if subject.kind == BindingKind.LOCATOR and subject.expression:
      return True
    self.context.flag(f".{link.name}() applied to a non-element subject")
    statements.append(manual_comment(f".{link.name}() needs an element subject", f".{link.name}({link.args})"))
    return False

  def _drop_options(self, link: Link, args: List[str], max_positional: int) -> List[str]:
    if len(args) > max_positional and args[-1].startswith("{"):
      self.context.note(f"Options of .{link.name}() were dropped")
      return args[:-1]
    return args

  def bind_callback(self, body: str, param: Optional[str], kind: BindingKind) -> Tuple[str, Optional[str]]:
    """Renames a callback parameter to its binding name."""
    if param and not is_identifier(param) and kind in (BindingKind.RESPONSE, BindingKind.API_RESPONSE):
      expanded = expand_destructured(param, body, kind, self.context.declared)
      if expanded is not None:
        name, body = expanded
        self.context.declared.add(name)
        return body, name
    if not param or not is_identifier(param):
      if param:
        self.context.flag(f"Destructured callback parameter '{param}' needs manual conversion")
      return body, None
    name = binding_name(param, body) if kind == BindingKind.LOCATOR or param.startswith("$") else param
    name = unique_name(name, self.context.declared)
    return rename_identifier(body, param, name), name

  # --- Root commands ---

  def _value(self, expression: str):
    def handler(link: Link, subject: Subject, statements: List[str]) -> None:
      subject.expression, subject.kind = expression, BindingKind.VALUE

    return handler

  def _locator_value(self, expression: str):
    def handler(link: Link, subject: Subject, statements: List[str]) -> None:
      subject.expression, subject.kind = expression, BindingKind.LOCATOR

    return handler

  def _statement(self, text: str):
    def handler(link: Link, subject: Subject, statements: List[str]) -> None:
      statements.append(text)
      subject.expression = None

    return handler

  def _get(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = self._drop_options(link, link.arguments, 1)
    selector = args[0] if args else "undefined"
    if is_string_literal(selector) and strip_quotes(selector).startswith("@"):
      name = strip_quotes(selector)[1:]
      if name in self.context.aliases:
        waited = network.plan_wait(selector, self.context.aliases)
        self._absorb(waited)
        self.context.note(f"cy.get('@{name}') reads the latest response, converted to a response wait")
        subject.expression, subject.kind = waited.expression, BindingKind.RESPONSE
        return
      kind = self.context.bindings.get(name, BindingKind.LOCATOR)
      subject.expression, subject.kind = name, kind
      return
    subject.expression, subject.kind = f"{self._base()}.locator({selector})", BindingKind.LOCATOR

  def _contains(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = self._drop_options(link, link.arguments, 2)
    if len(args) >= 2:
      expression = f"{self._base()}.locator({args[0]}).filter({{ hasText: {args[1]} }})"
    else:
      expression = f"{self._base()}.getByText({args[0] if args else 'undefined'})"
    subject.expression, subject.kind = expression, BindingKind.LOCATOR

  def _location(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    expression = "new URL(page.url())"
    if args:
      expression += f".{strip_quotes(args[0])}" if is_string_literal(args[0]) else f"[{args[0]}]"
    subject.expression, subject.kind = expression, BindingKind.VALUE

  def _window(self, link: Link, subject: Subject, statements: List[str]) -> None:
    subject.expression, subject.kind = link.name, BindingKind.WINDOW

  def _visit(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    url = args[0] if args else "'/'"
    if url.startswith("{"):
      url = object_properties(url).get("url", "'/'")
    elif len(args) > 1:
      self.context.note("Options of cy.visit() were dropped")
    statements.append(f"await page.goto({url});")
    subject.expression = None

  def _go(self, link: Link, subject: Subject, statements: List[str]) -> None:
    target = strip_quotes(link.arguments[0]) if link.arguments else "back"
    if target in ("back", "-1"):
      statements.append("await page.goBack();")
    elif target in ("forward", "1"):
      statements.append("await page.goForward();")
    else:
      self.context.flag(f"cy.go({target}) needs manual conversion")
      statements.append(manual_comment("history jumps need manual conversion", f"cy.go({link.args})"))
    subject.expression = None

  def _viewport(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if len(args) >= 2 and not is_string_literal(args[0]):
      statements.append(f"await page.setViewportSize({{ width: {args[0]}, height: {args[1]} }});")
    else:
      self.context.flag("Viewport presets need an explicit size")
      statements.append(manual_comment("viewport presets need an explicit size", f"cy.viewport({link.args})"))
    subject.expression = None

  def _scroll_to(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    positions = {
      "top": "0, 0",
      "bottom": "0, document.body.scrollHeight",
      "topLeft": "0, 0",
      "bottomLeft": "0, document.body.scrollHeight",
    }
    if args and is_string_literal(args[0]) and strip_quotes(args[0]) in positions:
      target = positions[strip_quotes(args[0])]
    elif len(args) >= 2:
      target = f"{args[0]}, {args[1]}"
    else:
      self.context.flag("cy.scrollTo() position needs manual conversion")
      statements.append(manual_comment("scroll position needs manual conversion", f"cy.scrollTo({link.args})"))
      subject.expression = None
      return
    statements.append(f"await page.evaluate(() => window.scrollTo({target}));")
    subject.expression = None

  def _wait(self, link: Link, subject: Subject, statements: List[str]) -> None:
    waited = network.plan_wait(link.args, self.context.aliases)
    self._absorb(waited)
    if not waited.succeeded:
      statements.append(manual_comment("wait could not be converted", f"cy.wait({link.args})"))
      subject.used = True
      subject.expression = None
      return
    if waited.expression is None:
      statements.append(waited.text)
      subject.expression = None
      return
    comments = [line for line in waited.text.split("\n") if line.startswith(MANUAL)]
    statements.extend(comments)
    if waited.metadata.get("unresolved_aliases"):
      self.context.flag(f"Unresolved alias @{waited.metadata['unresolved_aliases'][0]}")
    subject.expression, subject.kind = waited.expression, BindingKind.RESPONSE

  def _request(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    method, url, body = "GET", None, None
    options: List[str] = []
    if len(args) == 1 and args[0].startswith("{"):
      props = object_properties(args[0])
      url = props.get("url")
      method = strip_quotes(props.get("method", "'GET'")).upper()
      body = props.get("body")
      if "headers" in props:
        options.append(f"headers: {props['headers']}")
      if "qs" in props:
        options.append(f"params: {props['qs']}")
      if "failOnStatusCode" in props:
        options.append(f"failOnStatusCode: {props['failOnStatusCode']}")
      if "form" in props:
        self.context.note("cy.request form encoding should use the 'form' option of page.request")
    elif len(args) >= 2 and is_string_literal(args[0]) and strip_quotes(args[0]).upper() in HTTP_METHODS:
      method, url = strip_quotes(args[0]).upper(), args[1]
      body = args[2] if len(args) > 2 else None
    elif args:
      url = args[0]
      body = args[1] if len(args) > 1 else None

    if url is None:
      self.context.flag("cy.request() without a URL needs manual conversion")
      statements.append(manual_comment("request URL could not be identified", f"cy.request({link.args})"))
      subject.expression = None
      return
    if body is not None:
      options.insert(0, f"data: {body}")
    verb = method.lower()
    if verb not in ("get", "post", "put", "patch", "delete", "head"):
      options.insert(0, f"method: {js_string(method)}")
      verb = "fetch"
    suffix = f", {{ {', '.join(options)} }}" if options else ""
    subject.expression, subject.kind = f"await page.request.{verb}({url}{suffix})", BindingKind.API_RESPONSE

  def _log(self, link: Link, subject: Subject, statements: List[str]) -> None:
    statements.append(f"console.log({link.args.strip()});")
    subject.expression = None

  def _wrap(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    value = args[0] if args else "undefined"
    subject.expression = value
    subject.kind = self.context.bindings.get(value, BindingKind.VALUE)

  def _fixture(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    self.context.require_import("import fs from 'fs';")
    self.context.require_import("import path from 'path';")
    subject.expression = fixture_read(args[0] if args else "''", self.context.config.fixtures_dir)
    subject.kind = BindingKind.VALUE

  def _clear_cookie(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    name = args[0] if args else "''"
    statements.append(f"await page.context().clearCookies({{ name: {name} }});")
    subject.expression = None

  def _set_cookie(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if len(args) < 2:
      self._unsupported(link, statements)
      subject.expression = None
      return
    statements.append(f"await page.context().addCookies([{{ name: {args[0]}, value: {args[1]}, url: page.url() }}]);")
    subject.expression = None

  def _get_cookie(self, link: Link, subject: Subject, statements: List[str]) -> None:
    name = link.arguments[0] if link.arguments else "''"
    subject.expression = f"(await page.context().cookies()).find((cookie) => cookie.name === {name})"
    subject.kind = BindingKind.VALUE

  def _screenshot(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if args and is_string_literal(args[0]):
      statements.append(f"await page.screenshot({{ path: {js_string('screenshots/' + strip_quotes(args[0]) + '.png')} }});")
    else:
      statements.append("await page.screenshot();")
    subject.expression = None

  def _tick(self, link: Link, subject: Subject, statements: List[str]) -> None:
    statements.append(f"await page.clock.runFor({link.args.strip() or '0'});")
    subject.expression = None

  def _debug(self, link: Link, subject: Subject, statements: List[str]) -> None:
    self.context.note("cy.debug() was dropped, use page.pause() to step through")

  # --- Custom commands ---

  def convert_custom(self, link: Link, subject: Subject, statements: List[str]) -> bool:
    """
    Renders a non-standard root command according to its strategy.

    Returns:
        bool: False for the manual strategy.
    """
    config = self.context.config
    strategy = custom_strategy(link.name, config)
    args = link.arguments
    if strategy == CommandStrategy.PAGE_OBJECT:
      cls = config.page_object_commands[link.name]
      statements.append(f"await new {cls}(page).{link.name}({', '.join(args)});")
      subject.expression = None
      return True
    if strategy == CommandStrategy.DIRECT:
      self._direct(link, subject, statements)
      return True
    if strategy == CommandStrategy.UTILITY:
      converted_args = [self._callback_arg(arg) for arg in args]
      helper = config.command_helpers.get(link.name)
      if helper:
        self.context.require_import(f"import {{ {link.name} }} from '{helper}';")
      else:
        self.context.flag(f"Custom command '{link.name}' needs a Playwright helper implementation")
      subject.expression = f"await {link.name}({', '.join(['page'] + converted_args)})"
      subject.kind = BindingKind.VALUE
      return True
    self.context.flag(f"Custom command '{link.name}' could not be converted")
    return False

  def _direct(self, link: Link, subject: Subject, statements: List[str]) -> None:
    name = link.name
    args = link.arguments
    first = args[0] if args else "''"
    query = re.match(r"find(?:All)?By(\w+)$", name)
    if query:
      factory = TESTING_LIBRARY_QUERIES[query.group(1)]
      if factory == "locator":
        expression = f"{self._base()}.locator(`[value=\"${{{first}}}\"]`)"
      else:
        expression = f"{self._base()}.{factory}({', '.join(args)})"
      subject.expression, subject.kind = expression, BindingKind.LOCATOR
      return
    if name in ("getBySel", "dataCy"):
      attribute = self.context.config.test_id_attribute
      if attribute != "data-testid":
        self.context.note(f"Set testIdAttribute: '{attribute}' in playwright.config for getByTestId")
      subject.expression, subject.kind = f"{self._base()}.getByTestId({first})", BindingKind.LOCATOR
      return
    if name == "getBySelLike":
      attribute = self.context.config.test_id_attribute
      expression = f"{self._base()}.locator(`[{attribute}*=\"${{{first}}}\"]`)"
      subject.expression, subject.kind = expression, BindingKind.LOCATOR
      return
    if name == "selectDropdown":
      value = args[1] if len(args) > 1 else "''"
      statements.append(f"await {self._base()}.locator({first}).selectOption({value});")
    elif name == "uploadFile":
      files = args[1] if len(args) > 1 else "''"
      statements.append(f"await {self._base()}.locator({first}).setInputFiles({files});")
    elif name == "customLog":
      statements.append(f"console.log({link.args.strip()});")
    subject.expression = None

  def _callback_arg(self, arg: str) -> str:
    callback = parse_callback(arg)
    if callback is None:
      return arg
    body = callback.body if callback.is_block else callback.body + ";"
    converted = self.convert_callback_body(body, self.context.child())
    params = ", ".join(callback.params)
    return f"async ({params}) => {{\n{indent_block(converted, '  ')}\n}}"

  # --- Query links ---

  def _query(self, suffix: str):
    def handler(link: Link, subject: Subject, statements: List[str]) -> None:
      if self._require_locator(link, subject, statements):
        subject.expression = f"{subject.expression}.{suffix}"

    return handler

  def _find(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = self._drop_options(link, link.arguments, 1)
    if self._require_locator(link, subject, statements):
      subject.expression = f"{subject.expression}.locator({args[0] if args else 'undefined'})"

  def _eq(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if self._require_locator(link, subject, statements):
      subject.expression = f"{subject.expression}.nth({link.args.strip() or '0'})"

  def _filter(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if not args or parse_callback(args[0]) is not None:
      self._unsupported(link, statements)
      return
    if self._require_locator(link, subject, statements):
      subject.expression = f"{subject.expression}.and({self._base()}.locator({args[0]}))"

  def _children(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if not self._require_locator(link, subject, statements):
      return
    if args and is_string_literal(args[0]):
      selector = js_string(":scope > " + strip_quotes(args[0]))
    elif args:
      selector = f"`:scope > ${{{args[0]}}}`"
    else:
      selector = "':scope > *'"
    subject.expression = f"{subject.expression}.locator({selector})"

  def _contains_link(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = self._drop_options(link, link.arguments, 2)
    if not self._require_locator(link, subject, statements):
      return
    if len(args) >= 2:
      subject.expression = f"{subject.expression}.locator({args[0]}).filter({{ hasText: {args[1]} }})"
    else:
      subject.expression = f"{subject.expression}.getByText({args[0] if args else 'undefined'})"

  def _alias(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if not args or not is_string_literal(args[0]) or subject.expression is None:
      self._unsupported(link, statements)
      return
    name = strip_quotes(args[0])
    if not is_identifier(name):
      name = unique_name(re.sub(r"[^\w$]", "_", name), self.context.declared)
    statements.append(f"const {name} = {subject.expression};")
    self.context.declared.add(name)
    self.context.bindings[name] = subject.kind
    subject.expression = name

  # --- Actions ---

  def _action(self, call: str):
    def handler(link: Link, subject: Subject, statements: List[str]) -> None:
      if self._require_locator(link, subject, statements):
        if link.args.strip() and not link.args.strip().startswith("{"):
          self.context.note(f"Arguments of .{link.name}() were dropped")
        statements.append(f"await {subject.expression}.{call};")
        subject.used = True

    return handler

  def _click(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if not self._require_locator(link, subject, statements):
      return
    options = ""
    for arg in link.arguments:
      if arg.startswith("{"):
        props = object_properties(arg)
        kept = [f"{key}: {value}" for key, value in props.items() if key in _PASSED_CLICK_OPTIONS]
        if len(kept) != len(props):
          self.context.note("Unsupported .click() options were dropped")
        options = f"{{ {', '.join(kept)} }}" if kept else ""
      elif is_string_literal(arg):
        self.context.note(f"Click position {arg} was dropped")
      else:
        options = f"{{ position: {{ x: {arg}, y: {link.arguments[-1]} }} }}"
        break
    statements.append(f"await {subject.expression}.click({options});")
    subject.used = True

  def _type(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if not self._require_locator(link, subject, statements):
      return
    args = link.arguments
    text = args[0] if args else "''"
    if len(args) > 1:
      self.context.note("Options of .type() were dropped")
    subject.used = True
    if not is_string_literal(text) or text.startswith("`"):
      statements.append(f"await {subject.expression}.fill({text});")
      return
    typed = False
    buffer = ""
    steps: List[str] = []

    def flush() -> None:
      nonlocal buffer, typed
      if buffer:
        method = "pressSequentially" if typed else "fill"
        steps.append(f"await {subject.expression}.{method}({js_string(buffer)});")
        buffer = ""
        typed = True

    for part in _KEY_TOKEN_RE.split(strip_quotes(text)):
      if not part:
        continue
      if part == "{{}":
        buffer += "{"
      elif _KEY_TOKEN_RE.fullmatch(part):
        token = part[1:-1].lower()
        if token not in KEY_TOKENS:
          self.context.flag(f"Key sequence {part} needs manual conversion")
          continue
        flush()
        steps.append(f"await {subject.expression}.press({js_string(KEY_TOKENS[token])});")
        typed = True
      else:
        buffer += part
    flush()
    statements.extend(steps or [f"await {subject.expression}.fill('');"])

  def _select(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if self._require_locator(link, subject, statements):
      args = self._drop_options(link, link.arguments, 1)
      statements.append(f"await {subject.expression}.selectOption({args[0] if args else ''});")
      subject.used = True

  def _select_file(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if self._require_locator(link, subject, statements):
      args = self._drop_options(link, link.arguments, 1)
      statements.append(f"await {subject.expression}.setInputFiles({args[0] if args else '[]'});")
      subject.used = True

  def _trigger(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if not self._require_locator(link, subject, statements):
      return
    args = link.arguments
    event = strip_quotes(args[0]) if args else ""
    if event in ("mouseover", "mouseenter"):
      statements.append(f"await {subject.expression}.hover();")
    else:
      statements.append(f"await {subject.expression}.dispatchEvent({args[0] if args else 'undefined'});")
    subject.used = True

  # --- Values ---

  def _invoke(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if not args or not is_string_literal(args[0]) or subject.expression is None:
      self._unsupported(link, statements)
      return
    method = strip_quotes(args[0])
    rest = args[1:]
    expression = subject.expression
    if subject.kind == BindingKind.LOCATOR:
      mapped = {
        "text": f"await {expression}.textContent()",
        "val": f"await {expression}.inputValue()",
        "html": f"await {expression}.innerHTML()",
        "attr": f"await {expression}.getAttribute({', '.join(rest)})",
        "prop": f"await {expression}.evaluate((el, name) => el[name], {', '.join(rest)})",
        "css": f"await {expression}.evaluate((el, name) => getComputedStyle(el).getPropertyValue(name), {', '.join(rest)})",
      }
      if method in ("show", "hide"):
        display = "''" if method == "show" else "'none'"
        statements.append(f"await {expression}.evaluate((el) => {{ el.style.display = {display}; }});")
        return
      if method == "removeAttr" and rest:
        statements.append(f"await {expression}.evaluate((el, name) => el.removeAttribute(name), {rest[0]});")
        return
      if method not in mapped:
        self._unsupported(link, statements)
        return
      subject.expression, subject.kind = mapped[method], BindingKind.VALUE
      return
    if subject.kind == BindingKind.WINDOW:
      call = f"{expression}.{method}({', '.join(rest)})"
      subject.expression, subject.kind = f"await page.evaluate(() => {call})", BindingKind.VALUE
      return
    subject.expression = f"{_await_wrapped(expression)}.{method}({', '.join(rest)})"
    subject.kind = BindingKind.VALUE

  def _its(self, link: Link, subject: Subject, statements: List[str]) -> None:
    args = link.arguments
    if not args or not is_string_literal(args[0]) or subject.expression is None:
      self._unsupported(link, statements)
      return
    path = strip_quotes(args[0])
    expression = subject.expression
    if subject.kind in (BindingKind.RESPONSE, BindingKind.API_RESPONSE):
      target = expression if is_identifier(expression) else f"({expression})"
      mapped = path_expression(target, path, subject.kind)
      if mapped is None:
        self.context.flag(f"Response property '{path}' needs manual conversion")
        mapped = _property_path(expression, path)
      subject.expression, subject.kind = mapped, BindingKind.VALUE
      return
    if subject.kind == BindingKind.LOCATOR:
      if path == "length":
        subject.expression, subject.kind = f"await {expression}.count()", BindingKind.VALUE
        return
      subject.expression = f"await {expression}.evaluate((el) => el.{path})"
      subject.kind = BindingKind.VALUE
      return
    if subject.kind == BindingKind.WINDOW:
      subject.expression = f"await page.evaluate(() => {expression}.{path})"
      subject.kind = BindingKind.VALUE
      return
    subject.expression = _property_path(expression, path)

  # --- Assertions and callbacks ---

  def _should(self, link: Link, subject: Subject, statements: List[str]) -> None:
    if subject.expression is None:
      self._unsupported(link, statements)
      return
    args = link.arguments
    callback = parse_callback(args[0]) if args else None
    if callback is not None:
      statements.append(self._retrying_callback(callback.body if callback.is_block else callback.body + ";", callback.param, subject))
      subject.used = True
      return
    if subject.kind in (BindingKind.WINDOW, BindingKind.RESPONSE, BindingKind.API_RESPONSE):
      self.context.flag(f"Assertion on a {subject.kind.value} subject needs manual conversion")
      statements.append(manual_comment("assertion was not converted", f".{link.name}({link.args})"))
      subject.used = True
      return
    statement, issue = convert_should(subject.expression, subject.kind == BindingKind.LOCATOR, args)
    if statement is None:
      self.context.flag(issue or "Unsupported assertion")
      statements.append(manual_comment("assertion was not converted", f".{link.name}({link.args})"))
    else:
      statements.append(statement)
    subject.used = True

  def _retrying_callback(self, body: str, param: Optional[str], subject: Subject) -> str:
    body, name = self.bind_callback(body, param, subject.kind)
    lines = []
    bindings: Dict[str, BindingKind] = {}
    if name:
      lines.append(f"const {name} = {subject.expression};")
      bindings[name] = subject.kind
    lines.append(self.convert_callback_body(body, self.context.child(bindings)))
    inner = indent_block("\n".join(lines), "  ")
    self.context.note("Callback assertion converted to a retrying expect().toPass() block")
    return f"await expect(async () => {{\n{inner}\n}}).toPass();"

  def _within(self, link: Link, subject: Subject, statements: List[str]) -> None:
    callback = callback_argument(link)
    if callback is None or not self._require_locator(link, subject, statements):
      if callback is None:
        self._unsupported(link, statements)
      return
    scope = subject.expression
    if not is_identifier(scope):
      scope = unique_name("scope", self.context.declared)
      statements.append(f"const {scope} = {subject.expression};")
    body = callback.body if callback.is_block else callback.body + ";"
    if callback.param and is_identifier(callback.param):
      body = rename_identifier(body, callback.param, scope)
    statements.append(self.convert_callback_body(body, self.context.child({scope: BindingKind.LOCATOR}, scope=scope)))
    subject.used = True

  def _each(self, link: Link, subject: Subject, statements: List[str]) -> None:
    callback = callback_argument(link)
    if callback is None or not self._require_locator(link, subject, statements):
      if callback is None:
        self._unsupported(link, statements)
      return
    body = callback.body if callback.is_block else callback.body + ";"
    body, element = self.bind_callback(body, callback.params[0] if callback.params else None, BindingKind.LOCATOR)
    element = element or "element"
    index = callback.params[1] if len(callback.params) > 1 else None
    if index:
      header = f"for (const [{index}, {element}] of (await {subject.expression}.all()).entries()) {{"
    else:
      header = f"for (const {element} of await {subject.expression}.all()) {{"
    converted = self.convert_callback_body(body, self.context.child({element: BindingKind.LOCATOR}))
    statements.append(f"{header}\n{indent_block(converted, '  ')}\n}}")
    subject.used = True

  def _then(self, link: Link, subject: Subject, statements: List[str]) -> None:
    callback = callback_argument(link)
    if callback is None:
      self._unsupported(link, statements)
      return
    body = callback.body if callback.is_block else f"return {callback.body};"
    if subject.kind == BindingKind.WINDOW:
      if callback.param and is_identifier(callback.param):
        body = rename_identifier(body, callback.param, "window")
      self.context.note("Window callbacks run in the browser and cannot read test variables")
      statements.append(f"await page.evaluate(() => {{\n{indent_block(dedent_block(body), '  ')}\n}});")
      subject.expression, subject.used = None, True
      return
    body, name = self.bind_callback(body, callback.param, subject.kind)
    bindings: Dict[str, BindingKind] = {}
    if name:
      if subject.expression is None:
        self.context.flag("Callback parameter has no value to bind")
      else:
        statements.append(f"const {name} = {subject.expression};")
        self.context.declared.add(name)
        bindings[name] = subject.kind
    elif subject.expression is not None and subject.expression.startswith("await "):
      statements.append(f"{subject.expression};")
    remaining, returned = split_trailing_return(dedent_block(body))
    if remaining.strip():
      statements.append(self.convert_callback_body(remaining, self.context.child(bindings)))
    if returned is not None:
      hoisted, value = self.convert_returned(returned, bindings)
      statements.extend(hoisted)
      subject.expression, subject.kind, subject.used = value, bindings.get(value, BindingKind.VALUE), False
    else:
      subject.used = True

  def convert_returned(self, expression: str, bindings: Dict[str, BindingKind]) -> Tuple[List[str], str]:
    """
    Converts a returned callback value in expression position.

    Args:
        expression: The returned expression as written.
        bindings: Bindings of the callback that returned it.

    Returns:
        Tuple[List[str], str]: Hoisted statements the value depends on and
        the converted expression.
    """
    converted = self.convert_callback_body(f"return {expression};", self.context.child(bindings))
    converted = converted.rstrip()
    index = converted.rfind("\nreturn ")
    hoisted = converted[:index].split("\n") if index != -1 else []
    value = re.sub(r"^return\s+", "", converted[index + 1 :].strip()).rstrip(";").strip()
    return hoisted, value
