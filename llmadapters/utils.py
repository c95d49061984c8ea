"""Small helpers shared by adapters."""

import base64
from typing import Any


def delete_none_values(value: Any) -> Any:
    """Recursively drop dict entries whose value is None.

    List entries are kept as-is (a None inside a list is meaningful).

    Args:
        value: A JSON-like structure.

    Returns:
        A cleaned copy of the structure.
    """
    if isinstance(value, dict):
        return {key: delete_none_values(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [delete_none_values(item) for item in value]
    return value


def encode_image_to_base64(image_bytes: bytes) -> str:
    """Encode raw image bytes as standard base64 text."""
    return base64.b64encode(image_bytes).decode("ascii")
