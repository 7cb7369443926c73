import pytest

from tstrace.analysis.calls import CallGraphResolver, resolve_call_hierarchy
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import DeclKind


PIPELINE = {
    "src/pipeline.ts": """
        export function processRequest(input: string): string {
          return validate(input);
        }

        export function validate(input: string): string {
          if (!input) {
            throw new Error("empty");
          }
          return sanitize(input) + sanitize(input);
        }

        export function sanitize(input: string): string {
          return normalize(input.trim());
        }

        function normalize(value: string): string {
          return value;
        }

        export function handle(raw: string): string {
          return processRequest(raw);
        }
    """,
    "src/cycle.ts": """
        export function ping(n: number): number {
          return n > 0 ? pong(n - 1) : 0;
        }

        export function pong(n: number): number {
          return ping(n);
        }
    """,
    "src/service.ts": """
        import { sanitize } from "./pipeline";

        export class Service {
          constructor(private readonly prefix: string) {}

          run(value: string): string {
            return this.format(sanitize(value));
          }

          format(value: string): string {
            return this.prefix + value;
          }
        }

        export function makeService(): Service {
          return new Service("> ");
        }
    """,
}


@pytest.fixture()
def index(make_project):
    return make_project(PIPELINE)


def test_depth_one_marks_unexpanded_edges(index, find_decl):
    validate = find_decl(index, "src/pipeline.ts", "validate")
    hierarchy = resolve_call_hierarchy(index, validate, depth=1)

    assert hierarchy.symbol.name == "validate"
    assert [c.target.name for c in hierarchy.outgoing_calls] == ["sanitize"]
    sanitize = hierarchy.outgoing_calls[0]
    assert sanitize.call_site_lines == [9]
    assert sanitize.depth_limited is True
    assert sanitize.outgoing_calls == []

    assert [c.source.name for c in hierarchy.incoming_callers] == ["processRequest"]
    caller = hierarchy.incoming_callers[0]
    assert caller.call_site_lines == [2]
    assert caller.depth_limited is True


def test_leaf_edges_are_not_depth_limited(index, find_decl):
    sanitize = find_decl(index, "src/pipeline.ts", "sanitize")
    hierarchy = resolve_call_hierarchy(index, sanitize, depth=1)

    normalize = hierarchy.outgoing_calls[0]
    assert normalize.target.name == "normalize"
    assert normalize.depth_limited is None
    assert sorted(c.source.name for c in hierarchy.incoming_callers) == ["run", "validate"]


def test_deeper_traversal_expands(index, find_decl):
    processor = find_decl(index, "src/pipeline.ts", "processRequest")
    resolver = CallGraphResolver(index)
    hierarchy = resolver.resolve(processor, depth=3)

    validate = hierarchy.outgoing_calls[0]
    sanitize = validate.outgoing_calls[0]
    normalize = sanitize.outgoing_calls[0]
    assert (validate.target.name, sanitize.target.name, normalize.target.name) == (
        "validate",
        "sanitize",
        "normalize",
    )
    assert normalize.depth_limited is None
    assert resolver.max_depth(hierarchy) == 3


def test_cycles_are_marked_with_unlimited_depth(index, find_decl):
    ping = find_decl(index, "src/cycle.ts", "ping")
    hierarchy = resolve_call_hierarchy(index, ping, depth=-1)

    pong = hierarchy.outgoing_calls[0]
    assert pong.target.name == "pong"
    assert pong.cyclic is None
    back = pong.outgoing_calls[0]
    assert back.target.name == "ping"
    assert back.cyclic is True
    assert back.outgoing_calls == []

    caller = hierarchy.incoming_callers[0]
    assert caller.source.name == "pong"
    assert caller.incoming_callers[0].cyclic is True


def test_method_calls_through_this(index, find_decl):
    run = find_decl(index, "src/service.ts", "run", DeclKind.METHOD)
    hierarchy = resolve_call_hierarchy(index, run)

    targets = sorted(c.target.name for c in hierarchy.outgoing_calls)
    assert targets == ["format", "sanitize"]


def test_constructor_calls(index, find_decl):
    make = find_decl(index, "src/service.ts", "makeService")
    hierarchy = resolve_call_hierarchy(index, make)
    assert [c.target.name for c in hierarchy.outgoing_calls] == ["Service"]

    ctor = find_decl(index, "src/service.ts", "constructor", DeclKind.CONSTRUCTOR)
    callers = resolve_call_hierarchy(index, ctor).incoming_callers
    assert [c.source.name for c in callers] == ["makeService"]


def test_non_callable_rejected(index, find_decl):
    service = find_decl(index, "src/service.ts", "Service", DeclKind.CLASS)
    with pytest.raises(NotCallableError):
        resolve_call_hierarchy(index, service)


@pytest.mark.parametrize("depth", [1, 3, -1])
def test_self_recursion_is_a_cyclic_edge(make_project, find_decl, depth):
    index = make_project(
        {
            "src/countdown.ts": """
                export function countdown(n: number): void {
                  if (n > 0) countdown(n - 1);
                }
            """,
        }
    )
    countdown = find_decl(index, "src/countdown.ts", "countdown")
    hierarchy = resolve_call_hierarchy(index, countdown, depth=depth)

    [call] = hierarchy.outgoing_calls
    assert call.target.name == "countdown"
    assert call.call_site_lines == [2]
    assert call.cyclic is True
    assert call.outgoing_calls == []

    [caller] = hierarchy.incoming_callers
    assert caller.source.name == "countdown"
    assert caller.cyclic is True
