"""
Export modules for Bedrock output.

Supported formats:
- Geometry JSON (.geo.json) - minecraft:geometry document
- Resource pack (.mcpack) - geometry, texture and client entity
- Add-on (.mcaddon) - resource pack plus behavior pack
"""

from .geometry_exporter import GeometryJSONExporter, encode_json, format_number
from .addon_exporter import AddonExporter, ArchiveReport, validate_archive

__all__ = [
    "GeometryJSONExporter", "AddonExporter", "ArchiveReport",
    "encode_json", "format_number", "validate_archive",
]
