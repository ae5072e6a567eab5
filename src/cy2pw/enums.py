"""
Enumerations for cy2pw.

This module defines the standard enumerations used across the codebase to tag
extracted patterns, classify callback shapes and describe conversion outcomes.
"""

from enum import Enum


class PatternKind(str, Enum):
  """
  Coarse family tag attached to every extracted source span.
  """

  THEN = "then"
  WAIT = "wait"
  INTERCEPT = "intercept"
  CUSTOM_COMMAND = "customCommand"
  COMMAND = "command"  # Standard cy.* chains without callbacks
  STRUCTURE = "structure"  # describe / it / hook headers


class Complexity(str, Enum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"


class ThenShape(str, Enum):
  """
  Structural shapes of a callback chain, listed in classification priority.
  """

  SIMPLE = "simple"
  MULTI_STEP = "multi_step"
  NESTED = "nested"
  CHAINED = "chained"
  UNRECOGNIZED = "unrecognized"


class WaitType(str, Enum):
  ALIAS = "alias"
  MULTI_ALIAS = "multi_alias"
  TIME = "time"
  INTERCEPT = "intercept"
  UNKNOWN = "unknown"


class InterceptShape(str, Enum):
  """
  Response shapes of a network interception declaration.
  """

  INLINE = "inline"  # {statusCode, body} object
  FIXTURE = "fixture"  # {fixture: 'file.json'}
  REGEX = "regex"  # URL given as a regex literal
  HANDLER = "handler"  # (req) => {...} callback
  PASS_THROUGH = "pass_through"  # No response argument


class CommandStrategy(str, Enum):
  """
  Conversion strategies available to the custom command handler.
  """

  DIRECT = "direct"
  UTILITY = "utility"
  PAGE_OBJECT = "pageObject"
  MANUAL = "manual"


class BindingKind(str, Enum):
  """
  Kind of runtime value a converted callback parameter refers to.

  Drives which rewrites apply to the parameter inside a callback body
  (jQuery subject methods for locators, accessor calls for responses).
  """

  LOCATOR = "locator"
  VALUE = "value"
  RESPONSE = "response"  # page.waitForResponse() result
  API_RESPONSE = "api_response"  # page.request.* result
  WINDOW = "window"
