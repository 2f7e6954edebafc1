import base64
import binascii
import math
import os
from typing import Iterable

from ..core.errors import ValidationError

MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_IMAGE_SIZE = 10 * 1024 * 1024
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

# base64 is ~4/3 of the binary size; the extra 0.01 is headroom for padding
BASE64_RATIO = 1.34


def strip_data_url(data: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix when present."""
    return data.split(",", 1)[1] if "," in data else data


def validate_base64_size(data: str, max_size_bytes: int = MAX_FILE_SIZE) -> bool:
    """Check an encoded payload's length without decoding it."""
    return len(strip_data_url(data or "")) <= math.ceil(max_size_bytes * BASE64_RATIO)


def validate_file_size(size: int, max_size: int = MAX_FILE_SIZE) -> bool:
    return 0 <= size <= max_size


def validate_file_extension(filename: str, allowed: Iterable[str] = IMAGE_EXTENSIONS) -> bool:
    ext = os.path.splitext(filename or "")[1].lower()
    return bool(ext) and ext in tuple(allowed)


def decode_base64_payload(data: str, max_size_bytes: int = MAX_FILE_SIZE) -> bytes:
    """Size-guard then decode. Oversized input is rejected before any decoding."""
    if not data:
        raise ValidationError("Arquivo vazio")
    if not validate_base64_size(data, max_size_bytes):
        raise ValidationError("Arquivo muito grande", {"max_size_bytes": max_size_bytes})
    try:
        raw = base64.b64decode(strip_data_url(data), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Conteúdo base64 inválido") from e
    if not validate_file_size(len(raw), max_size_bytes):
        raise ValidationError("Arquivo muito grande", {"max_size_bytes": max_size_bytes})
    return raw
