"""
End-to-end tests for the interface analysis.

Each test writes a small source tree (see `context_tree` in conftest), runs the
full pass over the ``app`` package, and checks the reported diagnostics.
"""

from pathlib import Path

from typed_context_lint.enums import ProblemKind

THING_CONTEXT = """
from typing import Protocol

from app.contexts import DatabaseContext, HttpClientContext, RequestContext


class _ThingContext(RequestContext, DatabaseContext, HttpClientContext, Protocol):
    pass
"""


def test_unused_capability_is_reported(context_tree, lint):
  """
  Scenario: {Request, Database, HttpClient} requested; only request() and
  database().read(...) are used.
  Expectation: HttpClientContext unused, nothing unrequested.
  """
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """

def do_the_thing(ctx: _ThingContext, thing: str) -> str:
    user_key = ctx.request().user_key()
    return ctx.database().read(ctx, user_key)
""",
    }
  )

  diagnostics = lint()

  assert len(diagnostics) == 1
  d = diagnostics[0]
  assert d.kind == ProblemKind.UNUSED
  assert d.name == "ctx"
  assert d.interfaces == ["HttpClientContext"]
  assert d.message == (
    "ctx requests but does not use interface(s) HttpClientContext; "
    "remove to use the smallest possible interface"
  )
  assert Path(d.path).name == "thing.py"
  assert (d.line, d.column) == (10, 18)
  assert d.format() == f"{d.path}:10:{d.column}: {d.message}"


def test_fully_used_context_is_clean(context_tree, lint):
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """

def do_the_thing(ctx: _ThingContext) -> None:
    ctx.request()
    ctx.database()
    ctx.http_client()
""",
    }
  )

  assert lint() == []


def test_unrequested_capability_is_reported(context_tree, lint):
  """
  Scenario: ``ctx`` only requests DatabaseContext (which, being foreign,
  composes SecretsContext) but is passed where {Database, Secrets} is needed.
  Expectation: SecretsContext reported as used but not requested.
  """
  context_tree(
    {
      "infra/__init__.py": "",
      "infra/contexts.py": """
        from typing import Protocol

        from context import Context


        class SecretsContext(Context, Protocol):
            def secrets(self) -> str: ...


        class DatabaseContext(SecretsContext, Protocol):
            def database(self) -> object: ...
        """,
      "service/__init__.py": "",
      "service/users.py": """
        from typing import Protocol

        from infra.contexts import DatabaseContext, SecretsContext


        class _Needs(DatabaseContext, SecretsContext, Protocol):
            pass


        def load_user(ctx: _Needs) -> None:
            ctx.database()
            ctx.secrets()


        def handler(ctx: DatabaseContext) -> None:
            ctx.database()
            load_user(ctx)
        """,
    }
  )

  diagnostics = lint("service")

  assert len(diagnostics) == 1
  d = diagnostics[0]
  assert d.kind == ProblemKind.UNREQUESTED
  assert d.line == 15
  assert d.interfaces == ["contexts.SecretsContext"]
  assert d.message == (
    "ctx uses but does not explicitly request interface(s) contexts.SecretsContext; add it explicitly"
  )


def test_entirely_unused_variable_gets_single_verdict(context_tree, lint):
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """

def idle(ctx: _ThingContext) -> None:
    return None
""",
    }
  )

  diagnostics = lint()

  assert [d.kind for d in diagnostics] == [ProblemKind.ALL_UNUSED]
  assert diagnostics[0].interfaces == []
  assert diagnostics[0].message == (
    "no interfaces requested by ctx are used; remove them or rename it to _ if it's unused"
  )


def test_bare_base_context_is_never_reported(context_tree, lint):
  context_tree(
    {
      "app/thing.py": """
        from context import Context


        def idle(ctx: Context) -> None:
            return None
        """,
    }
  )

  assert lint() == []


def test_discard_name_is_never_reported(context_tree, lint):
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """

def idle(_: _ThingContext) -> None:
    return None
""",
    }
  )

  assert lint() == []


def test_cast_counts_only_the_overlap(context_tree, lint):
  """
  Scenario: a {A, B} context is cast to {B, C}.
  Expectation: B counts as used; A is unused; C need not be requested.
  """
  context_tree(
    {
      "app/thing.py": """
        from typing import Protocol, cast

        from app.contexts import AContext, BContext, CContext


        class _AB(AContext, BContext, Protocol):
            pass


        class _BC(BContext, CContext, Protocol):
            pass


        def convert(ctx: _AB) -> _BC:
            return cast(_BC, ctx)
        """,
    }
  )

  diagnostics = lint()

  assert len(diagnostics) == 1
  assert diagnostics[0].kind == ProblemKind.UNUSED
  assert diagnostics[0].interfaces == ["AContext"]


def test_requesting_constituents_counts_as_requesting_the_whole(write_tree, lint):
  """
  Scenario: IContext composes {J, K}; the caller requests J and K directly and
  passes ctx where IContext is needed.
  Expectation: no diagnostics.
  """
  write_tree(
    {
      "context.py": """
        from typing import Protocol


        class Context(Protocol):
            def done(self) -> bool: ...
        """,
      "app/__init__.py": "",
      "app/caps.py": """
        from typing import Protocol

        from context import Context


        class JContext(Context, Protocol):
            def j(self) -> int: ...


        class KContext(Context, Protocol):
            def k(self) -> int: ...


        class IContext(JContext, KContext, Protocol):
            pass


        class _JK(JContext, KContext, Protocol):
            pass


        def needs_i(ctx: IContext) -> int:
            return ctx.j() + ctx.k()


        def caller(ctx: _JK) -> int:
            return needs_i(ctx)
        """,
    }
  )

  assert lint() == []


def test_implementations_pool_their_usage(context_tree, lint):
  """
  Scenario: two implementations of Handler.handle each use half of the
  requested context.
  Expectation: no diagnostics for either.
  """
  context_tree(
    {
      "app/handlers.py": """
        from typing import Protocol

        from app.contexts import AContext, BContext


        class _HandlerContext(AContext, BContext, Protocol):
            pass


        class Handler(Protocol):
            def handle(self, ctx: _HandlerContext) -> int: ...


        class UsesA:
            def handle(self, ctx: _HandlerContext) -> int:
                return ctx.a()


        class UsesB:
            def handle(self, ctx: _HandlerContext) -> int:
                return ctx.b()
        """,
    }
  )

  assert lint() == []


def test_implementations_with_different_contexts(context_tree, lint):
  """
  Scenario: Handler.handle requests A and B; one implementation takes only
  AContext and uses a(), the other takes only BContext and uses b().
  Expectation: each is judged against its own type; no diagnostics.
  """
  context_tree(
    {
      "app/handlers.py": """
        from typing import Protocol

        from app.contexts import AContext, BContext


        class _AB(AContext, BContext, Protocol):
            pass


        class Handler(Protocol):
            def handle(self, ctx: _AB) -> int: ...


        class UsesA:
            def handle(self, ctx: AContext) -> int:
                return ctx.a()


        class UsesB:
            def handle(self, ctx: BContext) -> int:
                return ctx.b()
        """,
    }
  )

  assert lint() == []


def test_protocol_from_unloaded_module(context_tree, lint):
  """
  Scenario: the context composes LoggerContext from extlib, which is not part
  of the analyzed sources.
  Expectation: a member the loaded protocols do not declare is attributed to
  the unloaded one; it is reported only when no such member is accessed.
  """
  context_tree(
    {
      "app/handler.py": """
        from typing import Protocol

        import extlib

        from app.contexts import RequestContext


        class _HandlerContext(RequestContext, extlib.LoggerContext, Protocol):
            pass


        def handler(ctx: _HandlerContext) -> None:
            ctx.request()
            ctx.logger().info("hi")


        def quiet(ctx: _HandlerContext) -> None:
            ctx.request()
        """,
    }
  )

  diagnostics = lint()

  assert [(d.name, d.line, d.kind) for d in diagnostics] == [("ctx", 17, ProblemKind.UNUSED)]
  assert diagnostics[0].interfaces == ["extlib.LoggerContext"]


def test_test_files_are_not_reported(context_tree, lint):
  context_tree(
    {
      "app/test_thing.py": THING_CONTEXT
      + """

def idle(ctx: _ThingContext) -> None:
    return None
""",
      "app/thing_test.py": THING_CONTEXT
      + """

def idle(ctx: _ThingContext) -> None:
    return None
""",
    }
  )

  assert lint() == []


def test_memoized_function_context_is_not_entirely_unused(context_tree, lint):
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """
import cache


def _load(ctx: _ThingContext, key: str) -> str:
    return key


load = cache.cache(_load)


@cache.cache
def fetch(ctx: _ThingContext, key: str) -> str:
    return key
""",
    }
  )

  assert lint() == []


def test_key_params_function_is_untracked(context_tree, lint):
  context_tree(
    {
      "app/thing.py": THING_CONTEXT
      + """
import cache


def _load(ctx: _ThingContext, key: str) -> str:
    ctx.request()
    ctx.database()
    ctx.http_client()
    return key


def _load_key(ctx: _ThingContext, key: str) -> str:
    return key


load = cache.cache(_load, key=cache.key_params_fxn(_load_key))
""",
    }
  )

  assert lint() == []


def test_diagnostics_are_sorted_by_position(context_tree, lint):
  context_tree(
    {
      "app/b_mod.py": THING_CONTEXT
      + """

def second(ctx: _ThingContext) -> None:
    return None


def first(ctx: _ThingContext) -> None:
    return None
""",
      "app/a_mod.py": THING_CONTEXT
      + """

def only(ctx: _ThingContext) -> None:
    return None
""",
    }
  )

  diagnostics = lint()

  assert [(Path(d.path).name, d.line) for d in diagnostics] == [
    ("a_mod.py", 10),
    ("b_mod.py", 10),
    ("b_mod.py", 14),
  ]


def test_calling_a_protocol_fails_the_run(context_tree, lint_results):
  context_tree(
    {
      "app/thing.py": """
        from app.contexts import RequestContext


        def build() -> object:
            return RequestContext()
        """,
    }
  )

  results = lint_results()

  assert len(results) == 1
  assert results[0].success is False
  assert results[0].diagnostics == []
  assert "RequestContext" in results[0].errors[0]
