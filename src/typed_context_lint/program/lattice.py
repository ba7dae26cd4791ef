"""
Structural Satisfaction over the Capability Lattice.

Protocol satisfaction is modelled explicitly instead of relying on runtime
checks: a type is described by the set of member names reachable through it
plus the set of opaque interfaces it (transitively) composes, and a type
satisfies an interface when both sets cover the interface's sets.

Opaque interfaces (referenced but not loaded) have no known members, so they
can only be satisfied nominally, by composing them.
"""

from typing import Iterator, List, Optional, Set, Union

from typed_context_lint.program.model import ClassType, FunctionInfo, InterfaceType, Signature, TypeLike


def _walk(typ: Union[InterfaceType, ClassType]) -> Iterator[Union[InterfaceType, ClassType]]:
  """Yields the type and everything it composes or inherits, depth first, once each."""
  seen: Set[int] = set()
  stack: List[Union[InterfaceType, ClassType]] = [typ]
  while stack:
    current = stack.pop()
    if id(current) in seen:
      continue
    seen.add(id(current))
    yield current
    parents = current.embeds if isinstance(current, InterfaceType) else current.bases
    stack.extend(reversed(parents))


def find_method(typ: Optional[TypeLike], name: str) -> Optional[FunctionInfo]:
  """
  Finds the ``def`` providing member ``name`` on a class or interface.

  Own members win over composed ones; composed interfaces and bases are searched
  in declaration order.

  Args:
      typ: The type to search.
      name: The member name.

  Returns:
      The FunctionInfo, or None if the member is unknown.
  """
  if not isinstance(typ, (InterfaceType, ClassType)):
    return None
  for current in _walk(typ):
    method = current.methods.get(name)
    if method is not None:
      return method
  return None


def method_names(typ: Optional[TypeLike]) -> Set[str]:
  """
  Returns every member name reachable through the type.

  Args:
      typ: A class, interface or signature.

  Returns:
      The set of member names (``{"__call__"}`` for a signature).
  """
  if isinstance(typ, Signature):
    return {"__call__"}
  if not isinstance(typ, (InterfaceType, ClassType)):
    return set()
  names: Set[str] = set()
  for current in _walk(typ):
    names.update(current.methods)
  return names


def opaque_closure(typ: Optional[TypeLike]) -> Set[int]:
  """
  Returns the identities of the opaque interfaces reachable through the type.
  """
  if not isinstance(typ, (InterfaceType, ClassType)):
    return set()
  return {id(current) for current in _walk(typ) if isinstance(current, InterfaceType) and current.opaque}


def is_complete(typ: Optional[TypeLike]) -> bool:
  """
  Whether the full member set of the type is known.

  Args:
      typ: A class, interface or signature.

  Returns:
      False if an opaque interface or an unresolved base is reachable.
  """
  if isinstance(typ, Signature):
    return True
  if not isinstance(typ, (InterfaceType, ClassType)):
    return False
  for current in _walk(typ):
    if isinstance(current, InterfaceType) and current.opaque:
      return False
    if isinstance(current, ClassType) and not current.complete:
      return False
  return True


def satisfies(typ: Optional[TypeLike], iface: Optional[TypeLike]) -> bool:
  """
  Whether values of ``typ`` may be used where ``iface`` is required.

  Args:
      typ: The candidate type.
      iface: The required interface.

  Returns:
      True if ``typ`` is ``iface`` or structurally provides all of its members
      and composes all of its opaque parts.
  """
  if typ is iface and typ is not None:
    return True
  if not isinstance(iface, InterfaceType) or typ is None:
    return False
  return method_names(typ) >= method_names(iface) and opaque_closure(typ) >= opaque_closure(iface)
