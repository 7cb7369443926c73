from pathlib import PurePosixPath

from tstrace.models import Confidence, FileReference
from tstrace.tools import helpers


def test_stringify_renders_locations_compactly():
    assert helpers.stringify({"file": "src/a.ts", "line": 3}) == "src/a.ts:3"
    assert helpers.stringify({"filePath": "src/a.ts", "line": 3, "column": 7}) == "src/a.ts:3:7"
    # anything beyond a position keeps the JSON form
    assert helpers.stringify({"file": "src/a.ts", "line": 3, "name": "x"}) == (
        '{"file": "src/a.ts", "line": 3, "name": "x"}'
    )


def test_stringify_collections_and_scalars():
    assert helpers.stringify([]) == "[]"
    assert helpers.stringify({"b", "a"}) == '["a", "b"]'
    assert helpers.stringify("one\r\ntwo\rthree") == "one\ntwo\nthree"
    assert helpers.stringify(12) == "12"


def test_convert_to_python_uses_camel_case_and_plain_values():
    converted = helpers.convert_to_python(
        {
            "refs": [FileReference(file_path="src/a.ts", lines=[1, 4])],
            "confidence": Confidence.HIGH,
            "path": PurePosixPath("src/b.ts"),
            "kinds": {"function", "class"},
        }
    )

    assert converted == {
        "refs": [{"filePath": "src/a.ts", "lines": [1, 4]}],
        "confidence": "high",
        "path": "src/b.ts",
        "kinds": ["class", "function"],
    }


def test_json_dumps_falls_back_to_str_for_nan():
    assert helpers.json_dumps({"x": float("nan")}) == "{'x': nan}"
