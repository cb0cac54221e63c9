from typing import Optional, TypeVar


T = TypeVar("T")


def none_throws(value: Optional[T], error_message: Optional[str] = None) -> T:
    if value is None:
        raise RuntimeError(error_message or "Unexpected None")
    return value


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value.lower().startswith("0x") else value
