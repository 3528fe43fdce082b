"""
Bedrock Geometry JSON Exporter

Writes a GeometryDocument as a .geo.json file. The game's JSON reader does
not accept exponent notation, so every number is written in plain decimal
form: floats via their shortest round-trip digits (16.0, 0.0625, 0.00001),
integers as integers. Short numeric arrays stay on one line.
"""

from pathlib import Path
from typing import Any, Union
import json
import logging
import math
import numpy as np

from ..errors import ExportError
from ..geometry import GeometryDocument

logger = logging.getLogger(__name__)


def format_number(value) -> str:
    """
    Format a number as plain decimal text.

    Args:
        value: int, float or NumPy scalar

    Returns:
        Text without exponent; floats always carry a decimal point
    """
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, (int, np.integer)):
        return str(int(value))

    value = float(value)
    if not math.isfinite(value):
        raise ExportError(f"Cannot write non-finite number {value}")
    if value == 0.0:
        return "0.0"

    text = np.format_float_positional(value, unique=True, trim="-")
    if "." not in text:
        text += ".0"
    return text


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, bool, int, float, np.generic))


def _encode(value: Any, indent: int, level: int) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (bool, int, float, np.generic)):
        return format_number(value)

    pad = " " * (indent * (level + 1))
    end = " " * (indent * level)

    if isinstance(value, dict):
        if not value:
            return "{}"
        items = [
            f"{pad}{json.dumps(str(key))}: {_encode(item, indent, level + 1)}"
            for key, item in value.items()
        ]
        return "{\n" + ",\n".join(items) + "\n" + end + "}"

    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if all(_is_scalar(item) for item in value):
            return "[" + ", ".join(_encode(item, indent, level) for item in value) + "]"
        items = [f"{pad}{_encode(item, indent, level + 1)}" for item in value]
        return "[\n" + ",\n".join(items) + "\n" + end + "]"

    raise ExportError(f"Cannot serialize value of type {type(value).__name__}")


def encode_json(data: Any, indent: int = 2) -> str:
    """Serialize dicts/lists/scalars to JSON text with plain decimal numbers."""
    return _encode(data, indent, 0) + "\n"


class GeometryJSONExporter:
    """
    Export a GeometryDocument to the minecraft:geometry JSON format.
    """

    def __init__(self, indent: int = 2):
        """
        Initialize the exporter.

        Args:
            indent: Spaces per nesting level
        """
        self.indent = indent

    def dumps(self, document: GeometryDocument) -> str:
        """Serialize a document to text."""
        return encode_json(document.to_dict(), self.indent)

    def export(self, document: GeometryDocument, output_path: Union[str, Path]) -> Path:
        """
        Write a document to a .geo.json file.

        Args:
            document: Geometry to write
            output_path: Output file path (parent directories are created)

        Returns:
            The written path

        Raises:
            ExportError: If the file cannot be written
        """
        output_path = Path(output_path)
        text = self.dumps(document)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ExportError(f"{output_path}: {e}") from e

        logger.debug(
            "Wrote %s (%d cubes, %d bytes)", output_path, document.cube_count, len(text)
        )
        return output_path
