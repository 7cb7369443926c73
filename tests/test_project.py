from tstrace.project import (
    ProjectIndex,
    find_nearest_project_root,
    get_project_index,
    invalidate_project_index,
)
from tstrace.settings import ProjectSettings
from conftest import write_files


def _rel_paths(index: ProjectIndex):
    return [sf.rel_path for sf in index.source_files]


def test_scan_without_tsconfig_skips_ignored_dirs(make_project):
    index = make_project(
        {
            "src/a.ts": "export const a = 1;\n",
            "src/view.tsx": "export const v = 1;\n",
            "src/types.d.ts": "declare const g: number;\n",
            "src/readme.md": "# not code\n",
            "node_modules/dep/index.ts": "export const dep = 1;\n",
            "coverage/report.ts": "export const r = 1;\n",
        }
    )
    assert _rel_paths(index) == ["src/a.ts", "src/types.d.ts", "src/view.tsx"]
    assert index.tsconfig.path is None


def test_scan_honors_tsconfig_include_and_exclude(make_project):
    index = make_project(
        {
            "tsconfig.json": '{ "include": ["src"], "exclude": ["src/generated"] }',
            "src/a.ts": "export const a = 1;\n",
            "src/generated/api.ts": "export const api = 1;\n",
            "scripts/build.ts": "export const build = 1;\n",
        }
    )
    assert _rel_paths(index) == ["src/a.ts"]


def test_scan_with_files_only(make_project):
    index = make_project(
        {
            "tsconfig.json": '{ "files": ["src/entry.ts"] }',
            "src/entry.ts": "export const entry = 1;\n",
            "src/other.ts": "export const other = 1;\n",
        }
    )
    assert _rel_paths(index) == ["src/entry.ts"]


def test_ensure_file_adds_resolved_files(make_project, tmp_path):
    index = make_project(
        {
            "tsconfig.json": '{ "include": ["src"] }',
            "src/a.ts": "export const a = 1;\n",
            "vendor/extra.ts": "export const extra = 1;\n",
        }
    )
    extra = index.ensure_file(str(tmp_path / "vendor" / "extra.ts"))

    assert extra is not None
    assert extra.rel_path == "vendor/extra.ts"
    assert extra not in index.source_files
    assert extra in index.all_files
    assert index.ensure_file(str(tmp_path / "vendor" / "missing.ts")) is None


def test_file_filter_uses_ignore_file_and_patterns(make_project, tmp_path):
    index = make_project(
        {
            ".devtoolsignore": "# generated code\nsrc/gen/\n",
            "src/a.ts": "export const a = 1;\n",
            "src/gen/b.ts": "export const b = 1;\n",
            "lib/c.ts": "export const c = 1;\n",
        }
    )
    root = tmp_path.resolve()

    is_ignored = index.file_filter()
    assert is_ignored(str(root / "src" / "gen" / "b.ts"))
    assert not is_ignored(str(root / "src" / "a.ts"))

    only_src = index.file_filter(include_patterns=["src/**"])
    assert only_src(str(root / "lib" / "c.ts"))
    assert not only_src(str(root / "src" / "a.ts"))

    excluded = index.file_filter(exclude_patterns=["lib/"])
    assert excluded(str(root / "lib" / "c.ts"))


def test_settings_patterns_are_defaults(tmp_path):
    write_files(tmp_path, {"src/a.ts": "export const a = 1;\n", "lib/c.ts": "export const c = 1;\n"})
    settings = ProjectSettings(exclude_patterns=["lib/**"])
    index = ProjectIndex.build(str(tmp_path), settings)

    assert index.file_filter()(str(tmp_path.resolve() / "lib" / "c.ts"))
    assert not index.file_filter(exclude_patterns=[])(str(tmp_path.resolve() / "lib" / "c.ts"))


def test_project_index_cache(tmp_path):
    write_files(tmp_path, {"a.ts": "export const a = 1;\n"})
    try:
        first = get_project_index(str(tmp_path))
        assert get_project_index(str(tmp_path)) is first

        refreshed = get_project_index(str(tmp_path), force_refresh=True)
        assert refreshed is not first

        invalidate_project_index(str(tmp_path))
        assert get_project_index(str(tmp_path)) is not refreshed
    finally:
        invalidate_project_index()


def test_find_nearest_project_root(tmp_path):
    write_files(
        tmp_path,
        {
            "tsconfig.json": '{ "files": [], "references": [{ "path": "./packages/app" }] }',
            "packages/app/tsconfig.json": '{ "include": ["src"] }',
            "packages/app/src/main.ts": "export const main = 1;\n",
            "packages/lib/tsconfig.json": '{ "include": ["src"] }',
            "packages/lib/src/util.ts": "export const util = 1;\n",
            "loose/file.ts": "export const loose = 1;\n",
        },
    )
    root = tmp_path.resolve().as_posix()

    # solution config covers the app through its references
    assert find_nearest_project_root("packages/app/src/main.ts", root) == root
    # lib is not referenced, so its own config wins
    assert find_nearest_project_root("packages/lib/src/util.ts", root) == f"{root}/packages/lib"
    # only the root solution config is an ancestor
    assert find_nearest_project_root("loose/file.ts", root) == root


def test_find_nearest_project_root_without_configs(tmp_path):
    write_files(tmp_path, {"src/a.ts": "export const a = 1;\n"})
    root = tmp_path.resolve().as_posix()
    assert find_nearest_project_root(f"{root}/src/a.ts", root) == root


def test_find_nearest_project_root_with_unreadable_reference(tmp_path):
    write_files(
        tmp_path,
        {
            "tsconfig.json": '{ "files": [], "references": [{ "path": "./packages/app" }] }',
            "packages/app/tsconfig.json": "{ not json",
            "packages/app/src/main.ts": "export const main = 1;\n",
            "packages/other/src/x.ts": "export const x = 1;\n",
        },
    )
    root = tmp_path.resolve().as_posix()

    # the referenced directory still counts as covered by the solution config
    assert find_nearest_project_root("packages/app/src/main.ts", root) == root
    assert find_nearest_project_root("packages/other/src/x.ts", root) == root
