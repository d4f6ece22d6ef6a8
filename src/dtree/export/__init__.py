"""Portable graph export, validation and merge."""

from __future__ import annotations

from dtree.export.builder import (
    ExportMode,
    build_export,
    export_filename,
    export_workspace,
    select_nodes,
)
from dtree.export.errors import (
    PARSE_ERROR_PREFIX,
    ImportParseError,
    ImportReadError,
    ImportValidationError,
)
from dtree.export.files import read_data_url, read_text, save_json
from dtree.export.importer import (
    DEFAULT_MERGE_OFFSET,
    load_nodes,
    merge_import,
    parse_payload,
    validate_import,
)
from dtree.export.payload import (
    FILE_SUFFIX,
    FORMAT_TAG,
    FORMAT_VERSION,
    ExportedEdge,
    ExportedNode,
    GraphPayload,
    PayloadSummary,
)

__all__ = [
    "DEFAULT_MERGE_OFFSET",
    "FILE_SUFFIX",
    "FORMAT_TAG",
    "FORMAT_VERSION",
    "PARSE_ERROR_PREFIX",
    "ExportMode",
    "ExportedEdge",
    "ExportedNode",
    "GraphPayload",
    "ImportParseError",
    "ImportReadError",
    "ImportValidationError",
    "PayloadSummary",
    "build_export",
    "export_filename",
    "export_workspace",
    "load_nodes",
    "merge_import",
    "parse_payload",
    "read_data_url",
    "read_text",
    "save_json",
    "select_nodes",
]
