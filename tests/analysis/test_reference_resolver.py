import pytest

from tstrace.analysis.references import ReferenceResolver, find_references
from tstrace.helpers import Deadline
from tstrace.lang.typescript import DeclKind
from tstrace.models import PartialReason, ReferenceKind


FILES = {
    "src/models.ts": """
        export interface User { id: string }
        export function loadUser(id: string): User {
          return { id };
        }
        export let counter = 0;
        export function reset(): void { counter = 0; }
    """,
    "src/app.ts": """
        import { counter, loadUser, User } from "./models";

        const current: User = loadUser("1");
        export function bump(): number {
          return counter;
        }
    """,
    "src/app.test.ts": """
        import { loadUser } from "./models";

        loadUser("test");
    """,
}


@pytest.fixture()
def index(make_project):
    return make_project(FILES)


def _kinds(infos, path):
    return [(i.line, i.kind) for i in infos if i.file == path]


def test_summary_counts_distinct_lines_per_file(index, find_decl):
    refs = find_references(index, find_decl(index, "src/models.ts", "loadUser"))

    by_file = {f.file_path: f.lines for f in refs.files}
    assert by_file == {"src/app.ts": [1, 3], "src/app.test.ts": [1, 3]}
    assert refs.file_count == 2
    assert refs.total_count == 4


def test_declaration_site_is_excluded(index, find_decl):
    resolver = ReferenceResolver(index)
    refs = resolver.find(find_decl(index, "src/models.ts", "loadUser"))
    assert all(r.file.rel_path != "src/models.ts" for r in refs)


def test_reference_kinds_are_exclusive(index, find_decl):
    resolver = ReferenceResolver(index)

    load = resolver.describe(resolver.find(find_decl(index, "src/models.ts", "loadUser")))
    assert _kinds(load, "src/app.ts") == [(1, ReferenceKind.IMPORT), (3, ReferenceKind.CALL)]

    user = resolver.describe(resolver.find(find_decl(index, "src/models.ts", "User", DeclKind.INTERFACE)))
    assert _kinds(user, "src/models.ts") == [(2, ReferenceKind.TYPE_REF)]
    assert _kinds(user, "src/app.ts") == [(1, ReferenceKind.IMPORT), (3, ReferenceKind.TYPE_REF)]

    counter = resolver.describe(resolver.find(find_decl(index, "src/models.ts", "counter")))
    assert _kinds(counter, "src/models.ts") == [(6, ReferenceKind.WRITE)]
    assert _kinds(counter, "src/app.ts") == [(1, ReferenceKind.IMPORT), (5, ReferenceKind.READ)]


def test_reference_context_and_column(index, find_decl):
    resolver = ReferenceResolver(index)
    infos = resolver.describe(resolver.find(find_decl(index, "src/models.ts", "loadUser")))
    call = next(i for i in infos if i.file == "src/app.ts" and i.kind == ReferenceKind.CALL)

    assert call.column == 23
    assert call.context == 'const current: User = loadUser("1");'


def test_file_summaries_flag_test_files(index, find_decl):
    resolver = ReferenceResolver(index)
    infos = resolver.describe(resolver.find(find_decl(index, "src/models.ts", "loadUser")))
    summaries = {s.file: s for s in resolver.file_summaries(infos)}

    assert summaries["src/app.test.ts"].is_test_file is True
    assert summaries["src/app.ts"].is_test_file is False
    assert summaries["src/app.ts"].kinds == [ReferenceKind.IMPORT, ReferenceKind.CALL]
    assert summaries["src/app.ts"].count == 2


def test_ignored_files_are_filtered(index, find_decl):
    is_ignored = index.file_filter(exclude_patterns=["*.test.ts"])
    resolver = ReferenceResolver(index, is_ignored=is_ignored)
    refs = resolver.resolve(find_decl(index, "src/models.ts", "loadUser"))
    assert [f.file_path for f in refs.files] == ["src/app.ts"]


def test_re_exports(make_project, find_decl):
    index = make_project(
        {
            "src/core.ts": "export function helper(): void {}\n",
            "src/index.ts": """
                export { helper as assist } from "./core";
                export * from "./core";
            """,
            "src/barrel.ts": 'export * from "./index";\n',
        }
    )
    resolver = ReferenceResolver(index)
    found = resolver.re_exports(find_decl(index, "src/core.ts", "helper"))
    rows = sorted((r.file, r.exported_as, r.from_, r.line, r.original_name) for r in found)

    assert rows == [
        ("src/barrel.ts", "helper", "./index", 1, "helper"),
        ("src/index.ts", "assist", "./core", 1, "helper"),
        ("src/index.ts", "helper", "./core", 2, "helper"),
    ]
    assert set(found[0].to_dict()) == {"exportedAs", "file", "from", "line", "originalName"}


def test_ignored_files_do_not_count(index, find_decl):
    decl = find_decl(index, "src/models.ts", "loadUser")
    everything = ReferenceResolver(index).resolve(decl)
    is_ignored = index.file_filter(include_patterns=["src/app.ts", "src/models.ts"])
    filtered = ReferenceResolver(index, is_ignored=is_ignored).resolve(decl)

    assert (everything.total_count, everything.file_count) == (4, 2)
    assert (filtered.total_count, filtered.file_count) == (2, 1)


# ---------------------------------------------------------------------------
# deadlines
# ---------------------------------------------------------------------------


def test_expired_deadline_stops_reference_search(index, find_decl):
    decl = find_decl(index, "src/models.ts", "loadUser")

    assert index.checker.find_references(decl)
    assert index.checker.find_references(decl, Deadline(0)) == []


def test_expired_deadline_marks_references_partial(index, find_decl):
    decl = find_decl(index, "src/models.ts", "loadUser")
    resolver = ReferenceResolver(index, deadline=Deadline(0))
    refs = resolver.resolve(decl)

    assert resolver.partial is True
    assert refs.partial is True
    assert refs.partial_reason == PartialReason.TIMEOUT
    assert refs.total_count == 0
    assert refs.to_dict()["partialReason"] == "timeout"

    complete = find_references(index, decl, Deadline(60_000))
    assert complete.partial is None
    assert complete.total_count == 4
