import pytest

from tstrace.analysis.hierarchy import TypeHierarchyResolver, resolve_type_hierarchy
from tstrace.errors import NotATypeError
from tstrace.lang.typescript import DeclKind


FILES = {
    "src/a/base.ts": """
        export interface Named { name: string }
        export interface Entity extends Named { id: string }

        export abstract class Base<T extends object = {}, K = string> implements Entity {
          id = "";
          name = "";
        }
    """,
    "src/b/base.ts": """
        export class Base {}
    """,
    "src/models.ts": """
        import { Base, Entity } from "./a/base";
        import { Base as OtherBase } from "./b/base";

        export class User extends Base implements Entity {}
        export class Admin extends User {}
        export class Legacy extends OtherBase {}
        export class Orphan extends Missing {}
    """,
}


@pytest.fixture()
def index(make_project):
    return make_project(FILES)


def _names(refs):
    return sorted(r.name for r in refs)


def test_class_supertypes(index, find_decl):
    user = resolve_type_hierarchy(index, find_decl(index, "src/models.ts", "User", DeclKind.CLASS))

    assert user.extends.name == "Base"
    assert user.extends.file_path == "src/a/base.ts"
    assert user.extends.is_abstract is True
    assert _names(user.implements) == ["Entity"]
    assert _names(user.subtypes) == ["Admin"]
    assert user.is_abstract is None


def test_subtypes_match_resolved_declaration_not_name(index, find_decl):
    a_base = resolve_type_hierarchy(index, find_decl(index, "src/a/base.ts", "Base", DeclKind.CLASS))
    b_base = resolve_type_hierarchy(index, find_decl(index, "src/b/base.ts", "Base", DeclKind.CLASS))

    assert _names(a_base.subtypes) == ["User"]
    assert _names(b_base.subtypes) == ["Legacy"]


def test_extends_and_subtypes_are_reflexive(index, find_decl):
    for source, name in (("src/models.ts", "User"), ("src/models.ts", "Admin"), ("src/models.ts", "Legacy")):
        child = find_decl(index, source, name, DeclKind.CLASS)
        parent_ref = resolve_type_hierarchy(index, child).extends
        parent = find_decl(index, parent_ref.file_path, parent_ref.name, DeclKind.CLASS)
        assert name in _names(resolve_type_hierarchy(index, parent).subtypes)


def test_interface_extends_are_listed_as_implements(index, find_decl):
    entity = resolve_type_hierarchy(index, find_decl(index, "src/a/base.ts", "Entity", DeclKind.INTERFACE))

    assert entity.extends is None
    assert _names(entity.implements) == ["Named"]
    assert _names(entity.subtypes) == ["Base", "User"]


def test_type_parameters_and_abstract(index, find_decl):
    base = resolve_type_hierarchy(index, find_decl(index, "src/a/base.ts", "Base", DeclKind.CLASS))

    assert base.is_abstract is True
    assert [(p.name, p.constraint, p.default) for p in base.type_parameters] == [
        ("T", "object", "{}"),
        ("K", None, "string"),
    ]


def test_unresolved_heritage_is_skipped(index, find_decl):
    orphan = resolve_type_hierarchy(index, find_decl(index, "src/models.ts", "Orphan", DeclKind.CLASS))
    assert orphan.extends is None
    assert orphan.implements == []


def test_expired_deadline_marks_partial(index, find_decl):
    class Expired:
        expired = True

    resolver = TypeHierarchyResolver(index, deadline=Expired())
    result = resolver.resolve(find_decl(index, "src/a/base.ts", "Base", DeclKind.CLASS))

    assert result.subtypes == []
    assert resolver.partial is True


def test_non_type_rejected(make_project, find_decl):
    index = make_project({"src/f.ts": "export function f(): void {}\n"})
    with pytest.raises(NotATypeError):
        resolve_type_hierarchy(index, find_decl(index, "src/f.ts", "f"))
