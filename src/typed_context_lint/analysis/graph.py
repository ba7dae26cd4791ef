"""
Capability Graph Resolution.

Pure functions over the interface composition graph. None of them mutate their
inputs; results are lists with duplicates (by identity) removed, in discovery
order.

Visibility follows package boundaries:

- a named protocol from another package is requested as a whole and never
  looked into;
- a named, exported protocol of the current package is requested itself and
  through its composed parts;
- unexported or anonymous protocols cannot be named from outside, so only
  their composed parts count.
"""

from typing import Iterable, List, Optional, Sequence

from typed_context_lint.program.lattice import satisfies
from typed_context_lint.program.model import ClassType, InterfaceType, TypeLike


def _unique(types: Iterable[TypeLike]) -> List[TypeLike]:
  result: List[TypeLike] = []
  for typ in types:
    if not any(typ is seen for seen in result):
      result.append(typ)
  return result


def is_context_type(typ: Optional[TypeLike], base_contexts: Sequence[InterfaceType]) -> bool:
  """
  Whether the type is a base context or a protocol composing one.

  Args:
      typ: Any resolved type.
      base_contexts: The shared base context protocols.

  Returns:
      True for context-like interfaces.
  """
  if any(typ is base for base in base_contexts):
    return True
  if not isinstance(typ, InterfaceType):
    return False
  return any(is_context_type(embed, base_contexts) for embed in typ.embeds)


def explicit_composition(typ: Optional[TypeLike], from_package: str) -> List[InterfaceType]:
  """
  Returns the interfaces a type explicitly requests, as seen from a package.

  For example, with ``A(other.B, _C, Protocol)`` exported from the current
  package and ``_C(other.D, Protocol)``, the result for ``A`` is
  ``[A, other.B, other.D]``.

  Args:
      typ: The type, usually a protocol.
      from_package: The package the request is made from.

  Returns:
      The requested interfaces. Empty for non-interface types.
  """
  if not isinstance(typ, InterfaceType):
    return []
  if typ.name is not None and typ.package != from_package:
    return [typ]

  result: List[InterfaceType] = [typ] if typ.exported else []
  for embed in typ.embeds:
    result.extend(explicit_composition(embed, from_package))
  return _unique(result)


def leaf_groups(typ: Optional[TypeLike]) -> List[InterfaceType]:
  """
  Returns the leaf capability groups of a type.

  Recursion through composed protocols stops at the first protocol that
  declares methods of its own (or is opaque); that protocol is the leaf.

  Args:
      typ: The type.

  Returns:
      The leaves. Empty for non-interface types.
  """
  if not isinstance(typ, InterfaceType):
    return []
  if typ.methods or typ.opaque:
    return [typ]
  result: List[InterfaceType] = []
  for embed in typ.embeds:
    result.extend(leaf_groups(embed))
  return _unique(result)


def explicitly_containing(typ: Optional[TypeLike], method: str) -> List[InterfaceType]:
  """
  Returns every protocol reachable from ``typ`` (itself included) that declares
  ``method`` directly.
  """
  if not isinstance(typ, InterfaceType):
    return []
  result: List[InterfaceType] = [typ] if method in typ.methods else []
  for embed in typ.embeds:
    result.extend(explicitly_containing(embed, method))
  return _unique(result)


def was_requested(declared: Optional[TypeLike], package: str, typ: TypeLike) -> bool:
  """
  Whether a variable of type ``declared`` has explicitly requested ``typ``.

  Args:
      declared: The variable's declared type.
      package: The variable's package.
      typ: The interface that was used.

  Returns:
      True if ``typ`` is one of the declared type's explicit interfaces; or the
      declared type does not satisfy it at all (a cast target); or ``typ`` is a
      named protocol whose own explicit parts were all requested.
  """
  if isinstance(typ, InterfaceType) and not satisfies(declared, typ):
    return True

  if any(typ is requested for requested in explicit_composition(declared, package)):
    return True

  if isinstance(typ, InterfaceType) and typ.name is not None:
    mentions = explicit_composition(typ, typ.package)
    if len(mentions) > 1 or (mentions and mentions[0] is not typ):
      return all(was_requested(declared, package, m) for m in mentions if m is not typ)

  return False


def method_was_requested(declared: Optional[TypeLike], package: str, method: str) -> bool:
  """Whether some protocol declaring ``method`` was requested by the declared type."""
  return any(was_requested(declared, package, embed) for embed in explicitly_containing(declared, method))


def expand_hidden_names(typ: TypeLike, package: str) -> List[TypeLike]:
  """
  Replaces protocols that ``package`` cannot name by nameable parts.

  A foreign unexported protocol (or an anonymous one) is replaced by the
  expansion of its composed protocols, plus an anonymous protocol holding its
  own methods, if it declares any.

  Args:
      typ: A type to display.
      package: The package the message is shown to.

  Returns:
      Types that can be written down in ``package``.
  """
  if not isinstance(typ, InterfaceType):
    return [typ]
  if typ.name is not None and (typ.exported or typ.package == package):
    return [typ]

  result: List[TypeLike] = []
  for embed in typ.embeds:
    result.extend(expand_hidden_names(embed, package))
  if typ.methods:
    result.append(InterfaceType(name=None, methods=dict(typ.methods)))
  return result


def short_type_name(typ: TypeLike, package: str) -> str:
  """
  Returns a display name: bare for the current package, ``module.Name`` otherwise.
  """
  if isinstance(typ, (InterfaceType, ClassType)) and typ.name is not None:
    if typ.package == package or not typ.module:
      return typ.name
    return f"{typ.module.rpartition('.')[2]}.{typ.name}"
  if isinstance(typ, InterfaceType):
    return typ.qualified_name
  return "Callable"


def type_names(types: Iterable[TypeLike], package: str) -> List[str]:
  """Display names of the types, hidden names expanded, sorted and de-duplicated."""
  names = {short_type_name(inner, package) for typ in types for inner in expand_hidden_names(typ, package)}
  return sorted(names)


def format_type_list(types: Iterable[TypeLike], package: str) -> str:
  return ", ".join(type_names(types, package))
