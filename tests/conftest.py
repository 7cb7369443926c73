import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest

from tstrace.project import ProjectIndex, invalidate_project_index


def write_files(root: Path, files: Dict[str, str]) -> None:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[[Dict[str, str]], ProjectIndex]:
    """Write `files` under tmp_path and return a freshly built index."""

    def _make(files: Dict[str, str]) -> ProjectIndex:
        write_files(tmp_path, files)
        return ProjectIndex.build(str(tmp_path))

    yield _make
    invalidate_project_index()


@pytest.fixture
def find_decl():
    """Look up a declaration by file and name in a built index."""

    def _find(index: ProjectIndex, rel_path: str, name: str, kind=None):
        sf = index.get_file(f"{index.root_dir}/{rel_path}")
        assert sf is not None, rel_path
        for decl in index.module_info(sf).declarations:
            if decl.name == name and (kind is None or decl.kind == kind):
                return decl
        raise AssertionError(f"{name} not declared in {rel_path}")

    return _find
