import pytest

from tstrace.analysis.type_flows import resolve_type_flows
from tstrace.errors import NotCallableError
from tstrace.lang.typescript import DeclKind


FILES = {
    "src/models.ts": """
        export interface User { id: string }
        export type UserId = string;
        export enum Role { Admin, Guest }
        export class Account {
          owner?: User;
          get size(): number { return 1; }
        }
    """,
    "src/service.ts": """
        import { Account, Role, User, UserId } from "./models";

        export function assign(user: User, role: Role, accounts: Account[], retries = 3): Promise<User | undefined> {
          return Promise.resolve(user);
        }

        export const toId = (user: User): UserId => user.id;

        export function log(message: string): void {}
    """,
}


@pytest.fixture()
def index(make_project):
    return make_project(FILES)


def _types(param):
    return [t.name for t in param.resolved_types]


def test_parameters_and_return_resolve_to_user_types(index, find_decl):
    flow = resolve_type_flows(index, find_decl(index, "src/service.ts", "assign"))

    assert flow.symbol.name == "assign"
    assert [(p.name, p.type) for p in flow.parameters] == [
        ("user", "User"),
        ("role", "Role"),
        ("accounts", "Account[]"),
        ("retries", "number"),
    ]
    assert _types(flow.parameters[0]) == ["User"]
    assert _types(flow.parameters[1]) == ["Role"]
    assert _types(flow.parameters[2]) == ["Account"]
    assert _types(flow.parameters[3]) == []

    assert flow.return_type.name == "return"
    assert flow.return_type.type == "Promise<User | undefined>"
    assert _types(flow.return_type) == ["User"]


def test_referenced_types_are_deduplicated(index, find_decl):
    flow = resolve_type_flows(index, find_decl(index, "src/service.ts", "assign"))

    names = [t.name for t in flow.referenced_types]
    assert sorted(names) == ["Account", "Role", "User"]
    assert len(names) == len(set(names))
    user = next(t for t in flow.referenced_types if t.name == "User")
    assert (user.file_path, user.line) == ("src/models.ts", 1)


def test_arrow_function_variable(index, find_decl):
    flow = resolve_type_flows(index, find_decl(index, "src/service.ts", "toId", DeclKind.VARIABLE))

    assert [p.name for p in flow.parameters] == ["user"]
    assert flow.return_type.type == "UserId"
    assert _types(flow.return_type) == ["UserId"]


def test_void_return_is_reported_verbatim(index, find_decl):
    flow = resolve_type_flows(index, find_decl(index, "src/service.ts", "log"))

    assert flow.parameters[0].resolved_types == []
    assert flow.return_type.type == "void"
    assert flow.referenced_types == []


@pytest.mark.parametrize("name,kind", [("User", DeclKind.INTERFACE), ("size", DeclKind.GETTER)])
def test_non_callables_rejected(index, find_decl, name, kind):
    with pytest.raises(NotCallableError):
        resolve_type_flows(index, find_decl(index, "src/models.ts", name, kind))


# ---------------------------------------------------------------------------
# composite annotations
# ---------------------------------------------------------------------------

SHAPES = {
    "src/shapes.ts": """
        export interface A { a: number }
        export interface B { b: number }
        export class Box<T> { value?: T }
        export enum Color { Red, Green }
    """,
    "src/barrel.ts": """
        export { A } from "./shapes";
    """,
    "src/flows.ts": """
        import { A, B, Box, Color } from "./shapes";
        import { A as AA } from "./barrel";

        export function both(value: A & B): void {}
        export function pair(value: [A, B]): void {}
        export function mapper(value: (a: A) => B): void {}
        export function boxed(value: Box<A>): void {}
        export function red(value: Color.Red): void {}
        export function renamed(value: AA): void {}
    """,
}


@pytest.mark.parametrize(
    "fn,written,expected",
    [
        ("both", "A & B", ["A", "B"]),
        ("pair", "[A, B]", ["A", "B"]),
        ("mapper", "(a: A) => B", ["A", "B"]),
        ("boxed", "Box<A>", ["Box", "A"]),
        ("red", "Color.Red", ["Color"]),
        ("renamed", "AA", ["A"]),
    ],
)
def test_composite_parameter_types(make_project, find_decl, fn, written, expected):
    index = make_project(SHAPES)
    flow = resolve_type_flows(index, find_decl(index, "src/flows.ts", fn))

    [param] = flow.parameters
    assert param.type == written
    assert _types(param) == expected
    assert all(t.file_path == "src/shapes.ts" for t in param.resolved_types)
    assert flow.return_type.type == "void"


# ---------------------------------------------------------------------------
# inferred returns
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body,expected",
    [
        ("return s.trim();", "string"),
        ("return s.length;", "number"),
        ('return s.startsWith("a");', "boolean"),
        ('return s.split(",");', "string[]"),
        ("return n.toFixed(2);", "string"),
        ("return s.frobnicate();", "unknown"),
    ],
)
def test_inferred_return_of_primitive_members(make_project, find_decl, body, expected):
    index = make_project(
        {"src/text.ts": f"export function shape(s: string, n: number) {{ {body} }}\n"}
    )
    flow = resolve_type_flows(index, find_decl(index, "src/text.ts", "shape"))

    assert flow.return_type.type == expected
    assert flow.return_type.resolved_types == []
