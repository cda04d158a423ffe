# sdk/schema.py

"""Schema validation utilities for serialized block workspaces."""

from typing import Dict, Any
import jsonschema


class SchemaValidationError(Exception):
    """Exception raised when data doesn't match schema."""
    pass


def validate_schema(data: Any, schema: Dict[str, Any]) -> None:
    """Validate data against a JSON schema."""
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.exceptions.ValidationError as e:
        path = "/".join(str(p) for p in e.absolute_path)
        location = f" at '{path}'" if path else ""
        raise SchemaValidationError(f"{e.message}{location}") from e


# One serialized block. Children nest under "inputs" and "next", so the
# definition refers to itself.
BLOCK_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "type": {"type": "string", "minLength": 1},
        "id": {"type": "string"},
        "x": {"type": "number"},
        "y": {"type": "number"},
        "enabled": {"type": "boolean"},
        "disabled": {"type": "boolean"},
        "inline": {"type": "boolean"},
        "collapsed": {"type": "boolean"},
        "icons": {"type": "object"},
        "comment": {"type": ["string", "null"]},
        "fields": {"type": "object"},
        "extraState": {},
        "inputs": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "block": {"$ref": "#/definitions/block"},
                    "shadow": {"$ref": "#/definitions/block"},
                },
            },
        },
        "next": {
            "type": "object",
            "properties": {
                "block": {"$ref": "#/definitions/block"},
                "shadow": {"$ref": "#/definitions/block"},
            },
        },
    },
}

WORKSPACE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "definitions": {"block": BLOCK_SCHEMA},
    "properties": {
        "blocks": {
            "type": "object",
            "properties": {
                "languageVersion": {"type": "integer"},
                "blocks": {"type": "array", "items": {"$ref": "#/definitions/block"}},
            },
        },
        "variables": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "id": {"type": "string"},
                    "type": {"type": "string"},
                },
            },
        },
        "options": {
            "type": "object",
            "properties": {
                "oneBasedIndex": {"type": "boolean"},
            },
        },
    },
}


def validate_workspace_document(data: Any) -> None:
    """Validate a Blockly JSON workspace document."""
    validate_schema(data, WORKSPACE_SCHEMA)
