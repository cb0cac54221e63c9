# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import json
from abc import ABC
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import (
    Any,
    Dict,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

T = TypeVar("T", bound="JSONable")


def _snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class JSONable(ABC):
    """
    Base class for the protocol dataclasses. Field names are serialized in camelCase unless
    overridden by `_get_field_name_overrides`, and fields whose value is None are omitted.
    """

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def _json_name(cls, field_name: str) -> str:
        return cls._get_field_name_overrides().get(
            field_name, _snake_to_camel(field_name)
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for field in fields(self):  # type: ignore[arg-type]
            value = getattr(self, field.name)
            if value is None:
                continue
            result[self._json_name(field.name)] = _encode(value)
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def _from_dict(cls, json_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Converts a json dict into constructor kwargs. Subclasses can override this to handle
        fields which don't map one-to-one onto the JSON shape.
        """
        type_hints = get_type_hints(cls)
        data: Dict[str, Any] = {}
        for field in fields(cls):  # type: ignore[arg-type]
            json_name = cls._json_name(field.name)
            if json_name not in json_dict:
                continue
            data[field.name] = _decode(json_dict[json_name], type_hints[field.name])
        return data

    @classmethod
    def from_dict(cls: "type[T]", json_dict: Dict[str, Any]) -> T:
        return cls(**cls._from_dict(json_dict))

    @classmethod
    def from_json(cls: "type[T]", json_encoded: str) -> T:
        return cls.from_dict(json.loads(json_encoded))


def _encode(value: Any) -> Any:
    if isinstance(value, JSONable):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


def _decode(value: Any, field_type: Any) -> Any:
    if value is None:
        return None
    origin = get_origin(field_type)
    if origin is Union:
        non_null_args = [arg for arg in get_args(field_type) if arg is not type(None)]
        return _decode(value, non_null_args[0]) if non_null_args else value
    if origin is list:
        (item_type,) = get_args(field_type) or (Any,)
        return [_decode(item, item_type) for item in value]
    if origin is dict:
        args = get_args(field_type)
        item_type = args[1] if args else Any
        return {key: _decode(item, item_type) for key, item in value.items()}
    if isinstance(field_type, type):
        if issubclass(field_type, JSONable) and is_dataclass(field_type):
            return field_type.from_dict(value)
        if issubclass(field_type, Enum):
            return field_type(value)
    return value
