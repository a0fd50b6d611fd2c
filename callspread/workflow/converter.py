"""Temporal DataConverter for callspread frozen-dataclass types.

Handles: Decimal, bytes, datetime, timedelta, Enum, tuples, and nested
dataclasses, which are tagged with __type__ on the way out so they can be
rebuilt on the way in.
"""

from __future__ import annotations

import base64
import dataclasses
import importlib
import json
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, get_type_hints

from temporalio.converter import (
    CompositePayloadConverter,
    DataConverter,
    DefaultPayloadConverter,
    JSONPlainPayloadConverter,
    JSONTypeConverter,
)

# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _to_json(obj: Any) -> Any:  # noqa: PLR0911
    """Recursively convert callspread values to JSON-compatible values."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Decimal):
        return {"__decimal__": str(obj)}
    if isinstance(obj, (bytes, bytearray)):
        return {"__bytes__": base64.b64encode(bytes(obj)).decode("ascii")}
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return {"__timedelta_s__": obj.total_seconds()}
    if isinstance(obj, Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        d: dict[str, Any] = {
            "__type__": f"{type(obj).__module__}.{type(obj).__qualname__}",
        }
        for field in dataclasses.fields(obj):
            d[field.name] = _to_json(getattr(obj, field.name))
        return d
    if isinstance(obj, (tuple, list)):
        return [_to_json(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_json(v) for k, v in obj.items()}
    msg = f"Cannot encode {type(obj).__name__} for Temporal"
    raise TypeError(msg)


class CallSpreadJSONEncoder(json.JSONEncoder):
    """JSON encoder using _to_json."""

    def default(self, o: Any) -> Any:
        return _to_json(o)

    def encode(self, o: Any) -> str:
        return super().encode(_to_json(o))


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

# Only classes from these modules are ever instantiated from a payload.
_ALLOWED_MODULES: frozenset[str] = frozenset({
    "callspread.core.types",
    "callspread.keeper.automation",
    "callspread.workflow.types",
})

_CLASS_CACHE: dict[str, type] = {}


def _resolve_class(fqn: str) -> type | None:
    """Resolve a fully qualified class name within _ALLOWED_MODULES."""
    if fqn in _CLASS_CACHE:
        return _CLASS_CACHE[fqn]
    module_name, _, class_name = fqn.rpartition(".")
    if module_name not in _ALLOWED_MODULES:
        return None
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    cls = getattr(module, class_name, None)
    if not isinstance(cls, type):
        return None
    _CLASS_CACHE[fqn] = cls
    return cls


def _from_json(hint: Any, value: Any) -> Any:  # noqa: PLR0911
    """Recursively convert JSON values back to callspread types."""
    if value is None:
        return None

    if isinstance(value, dict):
        if "__type__" in value:
            cls = _resolve_class(value["__type__"])
            if cls is None or not dataclasses.is_dataclass(cls):
                msg = f"Refusing to decode type {value['__type__']!r}"
                raise TypeError(msg)
            hints = get_type_hints(cls)
            kwargs: dict[str, Any] = {}
            for field in dataclasses.fields(cls):
                if field.name in value:
                    kwargs[field.name] = _from_json(
                        hints.get(field.name, Any), value[field.name],
                    )
            return cls(**kwargs)
        if "__decimal__" in value:
            return Decimal(value["__decimal__"])
        if "__bytes__" in value:
            return base64.b64decode(value["__bytes__"])
        if "__timedelta_s__" in value:
            return timedelta(seconds=value["__timedelta_s__"])

    if hint is Decimal and isinstance(value, (int, str)):
        return Decimal(str(value))
    if hint is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(hint, type) and issubclass(hint, Enum) and not isinstance(value, Enum):
        return hint(value)
    if isinstance(value, list):
        return tuple(_from_json(Any, x) for x in value)
    return value


class CallSpreadJSONTypeConverter(JSONTypeConverter):
    """Rebuild tagged JSON values into callspread types."""

    def to_typed_value(self, hint: type, value: Any) -> Any:
        if isinstance(value, dict) and any(
            tag in value for tag in ("__type__", "__decimal__", "__bytes__", "__timedelta_s__")
        ):
            return _from_json(hint, value)
        if hint is Decimal and isinstance(value, (int, str)):
            return Decimal(str(value))
        return JSONTypeConverter.Unhandled


# ---------------------------------------------------------------------------
# Wire up
# ---------------------------------------------------------------------------


class CallSpreadPayloadConverter(CompositePayloadConverter):
    """Default payload converters with the JSON one swapped for ours."""

    def __init__(self) -> None:
        json_converter = JSONPlainPayloadConverter(
            encoder=CallSpreadJSONEncoder,
            custom_type_converters=[CallSpreadJSONTypeConverter()],
        )
        super().__init__(
            *(
                c
                for c in DefaultPayloadConverter.default_encoding_payload_converters
                if not isinstance(c, JSONPlainPayloadConverter)
            ),
            json_converter,
        )


CALLSPREAD_DATA_CONVERTER = DataConverter(
    payload_converter_class=CallSpreadPayloadConverter,
)
