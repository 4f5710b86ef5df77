"""Turn the CLI's ``{"field": "type"}`` extraction schema into a pydantic model."""
import json

from pydantic import BaseModel, create_model

FIELD_TYPES: dict[str, type] = {
    "string": str,
    "number": float,
    "boolean": bool,
}


def parse_schema_arg(raw: str) -> dict[str, str]:
    """Parse the JSON schema argument. Raises ValueError on anything but a flat object."""
    try:
        schema = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Schema is not valid JSON: {e}") from None
    if not isinstance(schema, dict) or not schema:
        raise ValueError('Schema must be a non-empty JSON object like {"title": "string"}')
    return schema


def build_extraction_model(schema: dict[str, str], name: str = "ExtractedData") -> type[BaseModel]:
    """Build a model with one required field per schema entry."""
    fields = {}
    for key, type_name in schema.items():
        if not key.isidentifier() or key.startswith("_"):
            raise ValueError(f"Invalid field name {key!r}")
        py_type = FIELD_TYPES.get(str(type_name).lower())
        if py_type is None:
            allowed = ", ".join(FIELD_TYPES)
            raise ValueError(f"Unsupported type {type_name!r} for field {key!r} (expected one of: {allowed})")
        fields[key] = (py_type, ...)
    return create_model(name, **fields)
