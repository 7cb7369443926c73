import json
from enum import Enum
from pathlib import PurePath
from typing import Any, Optional

from pydantic import BaseModel

_FILE_KEYS = ("file", "filePath")
_POSITION_KEYS = {"line", "column"}


def default(o: Any):
    if isinstance(o, PurePath):
        return o.as_posix()
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, set):
        return sorted(o)
    if isinstance(o, tuple):
        return list(o)
    return str(o)


def json_dumps(val: Any) -> str:
    try:
        return json.dumps(val, ensure_ascii=False, sort_keys=True, allow_nan=False, default=default)
    except (TypeError, ValueError):
        return str(val)


def format_location(value: dict[str, Any]) -> Optional[str]:
    """`src/a.ts:3:5` for a dict that holds nothing but a file and a position."""
    file_key = next((k for k in _FILE_KEYS if k in value), None)
    if file_key is None or "line" not in value:
        return None
    if set(value) - {file_key} - _POSITION_KEYS:
        return None
    parts = [str(value[file_key]), str(value["line"])]
    if "column" in value:
        parts.append(str(value["column"]))
    return ":".join(parts)


def stringify(value: Any) -> str:
    """One structured-text value: locations as `path:line`, other collections as JSON."""
    if isinstance(value, dict):
        s = format_location(value) or json_dumps(value)
    elif isinstance(value, (list, tuple, set)):
        s = json_dumps(value)
    else:
        s = str(value)
    return s.replace("\r\n", "\n").replace("\r", "\n")


def convert_to_python(obj: Any) -> Any:
    """Result models and collections as plain JSON-ready values with camelCase keys."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(obj, (Enum, PurePath)):
        return default(obj)
    if isinstance(obj, dict):
        return {k: convert_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_to_python(v) for v in obj]
    if isinstance(obj, set):
        return sorted(convert_to_python(v) for v in obj)
    return obj
