from abc import ABC
from typing import (
    Optional,
    Any,
    Dict,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
import struct

T = TypeVar("T", bound="TLVCodable")


class TLVCodable(ABC):
    """
    Encodes the attributes named in `tlv_map` as tag-length-value records. Each value must fit
    in 255 bytes. Attributes set to None are left out.
    """

    def to_tlv(self, exclude: Optional[set] = None) -> bytes:
        result = bytearray()
        tlv_map = self.tlv_map()
        for attr_name, tag in tlv_map.items():
            if exclude and attr_name in exclude:
                continue
            value = getattr(self, attr_name)
            if value is None:
                continue
            encoded_value = self._encode_value(value)
            if len(encoded_value) > 255:
                raise ValueError(f"Value for {attr_name} is too long for a TLV record")
            result.extend(struct.pack("!BB", tag, len(encoded_value)))
            result.extend(encoded_value)
        return bytes(result)

    @classmethod
    def from_tlv(cls: "type[T]", data: bytes) -> T:
        obj = cls()
        index = 0
        tag_to_data: Dict[int, bytes] = {}
        while index + 2 <= len(data):
            tag, length = struct.unpack("!BB", data[index : index + 2])
            index += 2
            tag_to_data[tag] = data[index : index + length]
            index += length

        type_hints = get_type_hints(cls)
        for attr_name, tag in cls.tlv_map().items():
            value_bytes = tag_to_data.get(tag)
            if value_bytes is None:
                continue
            setattr(
                obj, attr_name, cls._decode_value(value_bytes, type_hints[attr_name])
            )
        return obj

    @classmethod
    def tlv_map(cls) -> Dict[str, int]:
        return {}

    @classmethod
    def _encode_value(cls, value: Any) -> bytes:
        if isinstance(value, bool):
            return struct.pack("!?", value)
        if isinstance(value, int):
            # Amounts are unsigned and may exceed 32 bits.
            return struct.pack("!Q", value)
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        raise ValueError(f"Unsupported type: {type(value)}")

    @classmethod
    def _decode_value(cls, value: bytes, attr_type: Type) -> Any:
        attr_type = unwrap_type(attr_type)
        if attr_type == bool:
            return struct.unpack("!?", value)[0]
        if attr_type == int:
            return int.from_bytes(value, byteorder="big")
        if attr_type == str:
            return value.decode("utf-8")
        if attr_type == bytes:
            return value
        raise ValueError(f"Unsupported type: {attr_type}")


def unwrap_type(typ):
    origin = get_origin(typ)
    if origin is Union:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        return unwrap_type(args[0])
    return typ
