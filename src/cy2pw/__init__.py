"""
cy2pw Package.

A migration engine rewriting Cypress end-to-end specs into Playwright Test
specs.

Usage
-----

Simple String Conversion
^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import cy2pw
    result = cy2pw.convert("cy.visit('/login');")
    print(result.converted_code)
    # import { test, expect } from '@playwright/test';
    #
    # await page.goto('/login');

Advanced Usage (Converter)
^^^^^^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from cy2pw import ComplexPatternConverter, RuntimeConfig

    config = RuntimeConfig(convert_test_structure=False)
    converter = ComplexPatternConverter(config)
    res = converter.convert_file("cypress/e2e/login.cy.js")

    if not res.conversion_succeeded:
        print(res.validation_errors, res.summary.failed_patterns)
"""

from typing import Optional

from cy2pw.config import RuntimeConfig
from cy2pw.core.converter import ComplexPatternConverter
from cy2pw.core.models import FileConversionResult

__version__ = "0.1.0"


def convert(code: str, file_path: str = "<string>", config: Optional[RuntimeConfig] = None) -> FileConversionResult:
  """
  Converts a string of Cypress spec code to Playwright Test.

  This is a convenience wrapper around `ComplexPatternConverter`. Failures are
  reported on the result (`conversion_succeeded`, `validation_errors`), never
  raised.

  Args:
      code (str): The Cypress source code.
      file_path (str): Logical file name used in notes and traces.
      config (RuntimeConfig, optional): Runtime configuration. Defaults apply
          when omitted.

  Returns:
      FileConversionResult: The converted code with summary and notes.
  """
  return ComplexPatternConverter(config).convert(code, file_path)


__all__ = [
  "ComplexPatternConverter",
  "FileConversionResult",
  "RuntimeConfig",
  "convert",
  "__version__",
]
