"""
Custom Command Handler.

Converts invocations of project-defined Cypress commands
(`Cypress.Commands.add('login', ...)` used as `cy.login(user)`). Each command
is rendered with one of four strategies:

- **direct**: well-known community commands with a one-to-one Playwright
  equivalent (Testing Library `findBy*` queries, `getBySel`, ...).
- **pageObject**: commands configured in `page_object_commands` become a
  method call on a page object.
- **utility**: any other command becomes a call to an async helper taking
  `page` first; a helper skeleton is attached to the unit metadata.
- **manual**: invocations that cannot be parsed keep their original text.
"""

from typing import List, Optional, Set

from rich.markup import escape

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.core.body import BodyConverter
from cy2pw.core.chains import Chain, parse_callback, parse_chain
from cy2pw.core.commands import MANUAL, custom_strategy
from cy2pw.core.context import ConversionContext
from cy2pw.core.models import ConversionUnit, Pattern
from cy2pw.core.scanning import is_identifier
from cy2pw.core.units import failed_unit, make_unit
from cy2pw.enums import CommandStrategy, Complexity, PatternKind
from cy2pw.utils.console import log_warning

STRATEGY_COMPLEXITY = {
  CommandStrategy.DIRECT: Complexity.LOW,
  CommandStrategy.UTILITY: Complexity.LOW,
  CommandStrategy.PAGE_OBJECT: Complexity.MEDIUM,
  CommandStrategy.MANUAL: Complexity.HIGH,
}


def parameter_names(arguments: List[str]) -> List[str]:
  """Names for helper parameters, reusing identifier arguments."""
  names = []
  for index, arg in enumerate(arguments, 1):
    candidate = arg.strip()
    if parse_callback(candidate) is not None:
      candidate = "callback"
    elif not is_identifier(candidate) or candidate == "page":
      candidate = f"arg{index}"
    while candidate in names:
      candidate = f"{candidate}{index}"
    names.append(candidate)
  return names


def utility_skeleton(name: str, arguments: List[str]) -> str:
  """Source of an async helper standing in for a custom command."""
  params = ", ".join(["page"] + parameter_names(arguments))
  return (
    f"export async function {name}({params}) {{\n"
    f"  {MANUAL} port the body of Cypress.Commands.add('{name}') using page\n"
    "}"
  )


def page_object_skeleton(class_name: str, name: str, arguments: List[str]) -> str:
  """Source of a page object class exposing a custom command as a method."""
  params = ", ".join(parameter_names(arguments))
  return (
    f"export class {class_name} {{\n"
    "  constructor(page) {\n"
    "    this.page = page;\n"
    "  }\n"
    "\n"
    f"  async {name}({params}) {{\n"
    f"    {MANUAL} port the body of Cypress.Commands.add('{name}') using this.page\n"
    "  }\n"
    "}"
  )


class CustomCommandHandler:
  """
  Converts custom command invocations.
  """

  def __init__(self, config: Optional[RuntimeConfig] = None):
    """
    Initializes the handler.

    Args:
        config: Configuration holding `command_helpers` and
            `page_object_commands`.
    """
    self.config = config or RuntimeConfig()

  def strategy_for(self, name: str, config: Optional[RuntimeConfig] = None) -> CommandStrategy:
    return custom_strategy(name, config or self.config)

  def convert_custom_command(
    self,
    pattern: Pattern,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    declared: Optional[Set[str]] = None,
  ) -> ConversionUnit:
    """
    Converts one custom command chain.

    Links after the command (`cy.findByRole('button').click()`) go through
    the standard command vocabulary.

    Args:
        pattern: The extracted pattern.
        aliases: Alias table of the file.
        config: Configuration overriding the handler default.
        declared: Names already declared in the output file.

    Returns:
        ConversionUnit: The converted unit with `strategy` and
        `command_name` metadata. Never raises.
    """
    original = pattern.raw_text
    try:
      chain = parse_chain(original.strip(), 0)
      if chain is None:
        return self._manual(original, None, "custom command could not be parsed")
      return self._convert(chain, original, aliases, config or self.config, declared)
    except Exception as e:
      log_warning(f"Custom command conversion failed: {escape(str(e))}")
      return self._manual(original, None, f"conversion error ({type(e).__name__}), convert manually")

  def _convert(
    self,
    chain: Chain,
    original: str,
    aliases: Optional[AliasSymbolTable],
    config: RuntimeConfig,
    declared: Optional[Set[str]],
  ) -> ConversionUnit:
    name = chain.command
    strategy = self.strategy_for(name, config)
    if strategy == CommandStrategy.MANUAL:
      return self._manual(original, name, f"custom command cy.{name}() needs manual conversion")

    ctx = ConversionContext(aliases, config)
    if declared is not None:
      ctx.declared = declared
    converted = BodyConverter(ctx).commands(ctx).convert_chain(chain, statement=True)
    if not converted.succeeded:
      return self._manual(original, name, f"custom command cy.{name}() could not be converted")

    arguments = chain.links[0].arguments
    extra = {"strategy": strategy.value, "command_name": name}
    complexity = STRATEGY_COMPLEXITY[strategy]
    if strategy == CommandStrategy.UTILITY:
      extra["generated_utility_function"] = utility_skeleton(name, arguments)
      extra["helper_module"] = config.command_helpers.get(name)
      if any(parse_callback(arg) is not None for arg in arguments):
        complexity = Complexity.MEDIUM
    elif strategy == CommandStrategy.PAGE_OBJECT:
      class_name = config.page_object_commands[name]
      extra["page_object_class"] = class_name
      extra["page_object_skeleton"] = page_object_skeleton(class_name, name, arguments)
      ctx.note(f"Import {class_name} from your page object module")

    return make_unit(PatternKind.CUSTOM_COMMAND, original, converted.text, ctx, complexity, **extra)

  def _manual(self, original: str, name: Optional[str], message: str) -> ConversionUnit:
    return failed_unit(
      PatternKind.CUSTOM_COMMAND,
      original,
      message,
      strategy=CommandStrategy.MANUAL.value,
      command_name=name,
    )
