"""Row-to-dataclass mapping with type coercion.

Rows arrive as dicts of SQLite values. Fields annotated ``bool`` turn the
stored ``0``/``1`` back into ``False``/``True``; ``int`` and ``float``
fields accept numeric strings, with ``""`` read as zero. Columns without a
matching field are ignored.

The per-class coercion table is computed once and cached.
"""

import dataclasses
import types
from functools import cache
from typing import Any, TypeVar, get_args, get_origin, get_type_hints

T = TypeVar("T")

_COERCE: dict[type, Any] = {
    int: lambda v: int(v) if v != "" else 0,
    float: lambda v: float(v) if v != "" else 0.0,
    bool: lambda v: bool(int(v)) if isinstance(v, str) else bool(v),
    str: str,
}


def _target(annotation: Any) -> type | None:
    # X | None coerces like X; any other union is left alone.
    if get_origin(annotation) is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        annotation = args[0] if len(args) == 1 else None
    return annotation if annotation in _COERCE else None


@cache
def _coercions(cls: type) -> dict[str, type | None]:
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass; permalinks.data maps rows to dataclasses"
        raise TypeError(msg)
    # get_type_hints resolves string annotations from postponed evaluation.
    hints = get_type_hints(cls)
    return {f.name: _target(hints.get(f.name, f.type)) for f in dataclasses.fields(cls)}


def _build(cls: type[T], coercions: dict[str, type | None], row: dict[str, Any]) -> T:
    kwargs = {}
    for name, value in row.items():
        if name not in coercions:
            continue
        target = coercions[name]
        if target is not None and value is not None and not isinstance(value, target):
            value = _COERCE[target](value)
        kwargs[name] = value
    return cls(**kwargs)


def map_row(cls: type[T], row: dict[str, Any]) -> T:
    """Map one row onto ``cls``.

    Raises ``TypeError`` if ``cls`` is not a dataclass or a required field
    is missing from the row.
    """
    return _build(cls, _coercions(cls), row)


def map_rows(cls: type[T], rows: list[dict[str, Any]]) -> list[T]:
    """Map every row onto ``cls``."""
    coercions = _coercions(cls)
    return [_build(cls, coercions, row) for row in rows]
