"""
Command Transformer.

Converts standard Cypress chains without callbacks (`cy.visit(url)`,
`cy.get(sel).type('x{enter}')`, `cy.contains('Save').should('be.visible')`)
into awaited Playwright statements using the shared command vocabulary.
"""

from typing import Optional, Set

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.body import BodyConverter
from cy2pw.core.chains import callback_argument, parse_chain
from cy2pw.core.commands import NODE_ONLY_COMMANDS
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionUnit, Pattern
from cy2pw.core.units import failed_unit, make_unit
from cy2pw.enums import Complexity, PatternKind
from cy2pw.utils.console import log_warning

SCOPED_LINKS = {"within", "each"}


class CommandPatternTransformer:
  """
  Converts standard command chains.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    self.config = config or RuntimeConfig()

  def convert_command_pattern(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    declared: Optional[Set[str]] = None,
  ) -> ConversionUnit:
    """
    Converts one command chain.

    Args:
        pattern: The extracted pattern.
        aliases: Alias table of the file (used by `cy.get('@alias')`).
        config: Configuration overriding the transformer default.
        declared: Names already declared in the output file.

    Returns:
        ConversionUnit: The converted unit. Never raises.
    """
    original = pattern.raw_text
    try:
      chain = parse_chain(original.strip(), 0)
      if chain is None:
        return failed_unit(PatternKind.COMMAND, original, "command chain could not be parsed", Complexity.MEDIUM)

      ctx = ConversionContext(aliases, config or self.config)
      if declared is not None:
        ctx.declared = declared
      converted = BodyConverter(ctx).commands(ctx).convert_chain(chain, statement=True)
      if not converted.succeeded:
        return failed_unit(
          PatternKind.COMMAND, original, f"cy.{chain.command}() could not be converted", Complexity.MEDIUM, command_name=chain.command
        )

      rewritten = converted.text
      if not rewritten.strip():
        rewritten = f"// cy.{chain.command}() removed"

      scoped = any(link.name in SCOPED_LINKS or callback_argument(link) is not None for link in chain.links)
      complexity = Complexity.MEDIUM if scoped or chain.command in NODE_ONLY_COMMANDS else Complexity.LOW
      return make_unit(
        PatternKind.COMMAND,
        original,
        rewritten,
        ctx,
        complexity,
        command_name=chain.command,
        link_count=len(chain.links),
      )
    except Exception as e:
      log_warning(f"Command conversion failed: {escape(str(e))}")
      return failed_unit(PatternKind.COMMAND, original, f"conversion error ({type(e).__name__}), convert manually")
