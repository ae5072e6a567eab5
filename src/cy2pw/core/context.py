"""
Conversion Context Module.

Holds the state shared by the body converter, command converter and
transformers while a single pattern is converted: the file's alias table,
the runtime configuration, the parameter bindings in scope, and the
accumulated notes, review issues and required imports.

A context lives for one pattern conversion. Nested callback bodies get a
child context sharing the accumulators but with their own bindings.
"""

from typing import Dict, List, Optional, Set

from cy2pw.config import RuntimeConfig
from cy2pw.core.aliases import AliasSymbolTable
from cy2pw.enums import BindingKind


class ConversionContext:
  """
  Mutable state container for converting one pattern.
  """

  def __init__(
    self,
    aliases: Optional[AliasSymbolTable] = None,
    config: Optional[RuntimeConfig] = None,
    bindings: Optional[Dict[str, BindingKind]] = None,
    scope: Optional[str] = None,
  ):
    """
    Initializes the context.

    Args:
        aliases: Alias table of the file being converted.
        config: Runtime configuration.
        bindings: Identifiers in scope mapped to the kind of value they hold.
        scope: Locator expression that `cy.get` resolves against inside a
            `.within()` callback.
    """
    self.aliases = aliases if aliases is not None else AliasSymbolTable()
    self.config = config or RuntimeConfig()
    self.bindings: Dict[str, BindingKind] = dict(bindings or {})
    self.scope = scope

    # Names declared in the emitted output (hoisted accessors, scopes)
    self.declared: Set[str] = set()

    self.notes: List[str] = []
    self.issues: List[str] = []
    self.imports: List[str] = []

  def child(self, bindings: Optional[Dict[str, BindingKind]] = None, scope: Optional[str] = None) -> "ConversionContext":
    """
    Creates a context for a nested callback body.

    The child inherits the bindings of its parent, extended with `bindings`,
    and shares the parent's accumulators and declared names.

    Args:
        bindings: Additional bindings introduced by the nested callback.
        scope: Scope locator for `.within()` bodies (inherits when None).

    Returns:
        ConversionContext: The nested context.
    """
    nested = ConversionContext(self.aliases, self.config, {**self.bindings, **(bindings or {})}, scope or self.scope)
    nested.declared = self.declared
    nested.notes = self.notes
    nested.issues = self.issues
    nested.imports = self.imports
    return nested

  @property
  def locator_names(self) -> List[str]:
    return [name for name, kind in self.bindings.items() if kind == BindingKind.LOCATOR]

  def note(self, message: str) -> None:
    if message not in self.notes:
      self.notes.append(message)

  def flag(self, issue: str) -> None:
    """Records a reason the conversion needs manual review."""
    if issue not in self.issues:
      self.issues.append(issue)

  def require_import(self, statement: str) -> None:
    if statement not in self.imports:
      self.imports.append(statement)

  @property
  def requires_manual_review(self) -> bool:
    return bool(self.issues)
