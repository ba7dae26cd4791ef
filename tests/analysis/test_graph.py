"""
Tests for the pure capability graph functions.

Interfaces are built directly from the model, without parsing sources.
"""

import pytest

from typed_context_lint.analysis.graph import (
  expand_hidden_names,
  explicit_composition,
  explicitly_containing,
  format_type_list,
  is_context_type,
  leaf_groups,
  method_was_requested,
  short_type_name,
  type_names,
  was_requested,
)
from typed_context_lint.program.model import InterfaceType, Signature


def iface(name, package="mypkg", methods=(), embeds=(), module=None, opaque=False):
  return InterfaceType(
    name=name,
    module=module or package,
    package=package,
    methods={m: None for m in methods},
    embeds=list(embeds),
    opaque=opaque,
  )


@pytest.fixture
def ctx_base():
  return iface("Context", package="context", opaque=True)


def test_context_detection(ctx_base):
  request = iface("RequestContext", methods=["request"], embeds=[ctx_base])
  combined = iface("_Combined", embeds=[request])
  plain = iface("Reader", methods=["read"])

  assert is_context_type(ctx_base, [ctx_base])
  assert is_context_type(combined, [ctx_base])
  assert not is_context_type(plain, [ctx_base])
  assert not is_context_type(None, [ctx_base])


def test_leaf_groups_stop_at_first_protocol_with_methods():
  """
  A{B; C}, B{M}, C{D; N}, D{O}: C declares N itself so D is never reached.
  """
  d = iface("D", methods=["o"])
  c = iface("C", methods=["n"], embeds=[d])
  b = iface("B", methods=["m"])
  a = iface("A", embeds=[b, c])

  assert leaf_groups(a) == [b, c]
  assert leaf_groups(d) == [d]
  assert leaf_groups(None) == []


def test_leaf_groups_deduplicate_diamonds():
  shared = iface("Shared", methods=["s"])
  left = iface("Left", embeds=[shared])
  right = iface("Right", embeds=[shared])

  assert leaf_groups(iface("Top", embeds=[left, right])) == [shared]


def test_opaque_interface_is_a_leaf(ctx_base):
  assert leaf_groups(iface("_Wrapper", embeds=[ctx_base])) == [ctx_base]


def test_explicit_composition_respects_package_boundaries():
  foreign_b = iface("B", package="other", methods=["b"])
  foreign_d = iface("D", package="other", methods=["d"])
  hidden = iface("_C", embeds=[foreign_d])
  exported = iface("A", embeds=[foreign_b, hidden])

  assert explicit_composition(exported, "mypkg") == [exported, foreign_b, foreign_d]
  # Seen from another package, A is requested as a whole.
  assert explicit_composition(exported, "elsewhere") == [exported]
  assert explicit_composition(hidden, "mypkg") == [foreign_d]
  assert explicit_composition(Signature(), "mypkg") == []


def test_explicitly_containing_finds_every_declaration():
  inner = iface("Inner", methods=["m"])
  outer = iface("Outer", methods=["m", "n"], embeds=[inner])

  assert explicitly_containing(outer, "m") == [outer, inner]
  assert explicitly_containing(outer, "n") == [outer]
  assert explicitly_containing(outer, "missing") == []


def test_was_requested_direct_and_cast_exemption():
  a = iface("AContext", package="caps", methods=["a"])
  b = iface("BContext", package="caps", methods=["b"])
  c = iface("CContext", package="caps", methods=["c"])
  declared = iface("_AB", embeds=[a, b])

  assert was_requested(declared, "mypkg", a)
  # The declared type cannot satisfy C, so using C must have come from a cast.
  assert was_requested(declared, "mypkg", c)


def test_was_requested_through_constituents():
  j = iface("JContext", methods=["j"])
  k = iface("KContext", methods=["k"])
  whole = iface("IContext", embeds=[j, k])
  constituents = iface("_JK", embeds=[j, k])
  partial = iface("_J", methods=["k"], embeds=[j])

  assert was_requested(constituents, "mypkg", whole)
  # _J provides k() itself but never requests KContext.
  assert not was_requested(partial, "mypkg", whole)


def test_foreign_composition_is_not_a_request():
  secrets = iface("SecretsContext", package="infra", methods=["secrets"])
  database = iface("DatabaseContext", package="infra", methods=["database"], embeds=[secrets])

  assert was_requested(database, "service", database)
  assert not was_requested(database, "service", secrets)
  assert method_was_requested(database, "service", "database")
  assert not method_was_requested(database, "service", "secrets")


def test_expand_hidden_names():
  """
  i{j; k}, j{L}, k{m(); N} in a foreign package, all lower-case ones hidden.
  """
  big_l = iface("L", methods=["l"])
  big_n = iface("N", methods=["n"])
  j = iface("_j", embeds=[big_l])
  k = iface("_k", methods=["m"], embeds=[big_n])
  i = iface("_i", embeds=[j, k])

  expanded = expand_hidden_names(i, "main")

  assert expanded[:2] == [big_l, big_n]
  assert expanded[2].name is None and list(expanded[2].methods) == ["m"]
  assert type_names([i], "main") == ["Protocol[m()]", "mypkg.L", "mypkg.N"]
  # The defining package may name its own hidden protocols.
  assert expand_hidden_names(i, "mypkg") == [i]


def test_short_type_names():
  local = iface("Local")
  foreign = iface("Remote", package="infra", module="infra.contexts")

  assert short_type_name(local, "mypkg") == "Local"
  assert short_type_name(foreign, "mypkg") == "contexts.Remote"
  assert short_type_name(Signature(), "mypkg") == "Callable"
  assert format_type_list([foreign, local, local], "mypkg") == "Local, contexts.Remote"


def test_constituents_from_another_package_miss_the_base(ctx_base):
  """
  lib.IContext(JContext, KContext) where J and K compose the foreign base
  context: app._JK(JContext, KContext) never names the base itself, so
  IContext is not considered requested.
  """
  j = iface("JContext", package="lib", methods=["j"], embeds=[ctx_base])
  k = iface("KContext", package="lib", methods=["k"], embeds=[ctx_base])
  whole = iface("IContext", package="lib", embeds=[j, k])
  constituents = iface("_JK", package="app", embeds=[j, k])

  assert explicit_composition(whole, "lib") == [whole, j, ctx_base, k]
  assert not was_requested(constituents, "app", whole)
