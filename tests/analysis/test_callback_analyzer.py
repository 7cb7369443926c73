import pytest

from tstrace.analysis.callbacks import resolve_callbacks
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import DeclKind


TICKER = """
export function onTick(count: number): void {}

export function schedule(cb: (n: number) => void, delay: number, done?: () => void): () => void {
  setTimeout(() => cb(delay), delay);
  return () => {};
}

export class Ticker {
  handle(count: number): void {}
  start(): void {
    schedule(this.handle.bind(this), 10);
    [1, 2].forEach(onTick);
  }
}

schedule(onTick, 5);
schedule((onTick), 1, onTick);
onTick(1);

export interface Listener { (event: string): void }
export function subscribe(listener: Listener | undefined, name: string): void {}
"""


@pytest.fixture()
def index(make_project):
    return make_project({"src/ticker.ts": TICKER})


def test_usages_record_position_and_caller(index, find_decl):
    analysis = resolve_callbacks(index, find_decl(index, "src/ticker.ts", "onTick"))
    rows = [(u.line, u.called_by, u.parameter_index) for u in analysis.used_as_callback_in]

    # direct invocation on line 18 is not a callback usage
    assert rows == [
        (12, "forEach", 0),
        (16, "schedule", 0),
        (17, "schedule", 0),
        (17, "schedule", 2),
    ]
    assert all(u.callback_name == "onTick" for u in analysis.used_as_callback_in)
    assert all(u.bound_with_bind is None for u in analysis.used_as_callback_in)
    assert analysis.callback_parameters == []
    assert analysis.returns_function is False


def test_bound_method_usage(index, find_decl):
    handle = find_decl(index, "src/ticker.ts", "handle", DeclKind.METHOD)
    (usage,) = resolve_callbacks(index, handle).used_as_callback_in

    assert (usage.line, usage.called_by, usage.parameter_index) == (11, "schedule", 0)
    assert usage.bound_with_bind is True


def test_higher_order_function(index, find_decl):
    analysis = resolve_callbacks(index, find_decl(index, "src/ticker.ts", "schedule"))

    assert [(p.name, p.parameter_index, p.type) for p in analysis.callback_parameters] == [
        ("cb", 0, "(n: number) => void"),
        ("done", 2, "() => void"),
    ]
    assert analysis.returns_function is True
    assert analysis.return_function_type == "() => void"


def test_union_with_callable_member(index, find_decl):
    analysis = resolve_callbacks(index, find_decl(index, "src/ticker.ts", "subscribe"))
    assert [(p.name, p.type) for p in analysis.callback_parameters] == [("listener", "Listener | undefined")]


def test_non_callable_rejected(index, find_decl):
    with pytest.raises(NotCallableError):
        resolve_callbacks(index, find_decl(index, "src/ticker.ts", "Ticker", DeclKind.CLASS))
