"""
Conversion of schemas into function descriptors, and validation of the
payloads returned by the model.

A schema is a pydantic model class, or any type that pydantic can
validate through a TypeAdapter (for example, a TypedDict; below
Python 3.12 pydantic requires typing_extensions.TypedDict). Function
calls only accept object-shaped parameters, hence the schema root must
be an object: other schemas raise a ConfigurationError.

The JSON schema sent on the wire is stripped of the keys that some
providers reject or that carry no information for the model: the
references are inlined, and titles and defaults are removed. Field
descriptions are kept, as they guide the model in filling the fields.

Example:
    ```python
    from pydantic import BaseModel, Field
    from lmstruct.language_models.schema import build_function

    class Startup(BaseModel):
        name: str = Field(description="The name of the startup")
        description: str

    function = build_function(Startup)
    ```
"""

import json
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from lmstruct.errors import ConfigurationError
from .messages import FunctionDescriptor

FUNCTION_NAME = "print"
FUNCTION_DESCRIPTION = (
    "ALWAYS respond by calling this function with the given parameters"
)

# keys removed from the schema at any level
_STRIPPED_KEYS = {"$schema", "$defs", "definitions", "title", "default"}
# keys whose value is a mapping from names to subschemas
_NAMED_SUBSCHEMAS = {"properties", "patternProperties"}


class ValidationIssue(BaseModel):
    """A single reason why a payload does not conform to the schema."""

    path: tuple[str | int, ...] = ()
    message: str

    model_config = ConfigDict(frozen=True)

    @property
    def dotted_path(self) -> str:
        return ".".join(str(p) for p in self.path)


class SchemaValidationError(ValueError):
    """The payload does not conform to the schema."""

    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues = list(issues)
        super().__init__(
            "; ".join(
                f"{i.dotted_path}: {i.message}" if i.path else i.message
                for i in self.issues
            )
        )


@lru_cache(maxsize=256)
def _adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


def schema_adapter(schema: Any) -> TypeAdapter[Any]:
    """The pydantic TypeAdapter for a schema."""
    try:
        return _adapter(schema)
    except TypeError:
        # unhashable type specification
        return TypeAdapter(schema)


def _inline(node: Any, defs: dict[str, Any], seen: tuple[str, ...]) -> Any:
    if isinstance(node, list):
        return [_inline(n, defs, seen) for n in node]  # type: ignore
    if not isinstance(node, dict):
        return node

    node = dict(node)  # type: ignore
    ref = node.pop("$ref", None)
    if ref is not None:
        name = str(ref).split("/")[-1]
        if name in seen:
            raise ConfigurationError(
                f"Recursive schema '{name}' cannot be sent as a function"
            )
        if name not in defs:
            raise ConfigurationError(f"Unresolved schema reference {ref}")
        resolved = _inline(defs[name], defs, seen + (name,))
        # sibling keys (e.g. a description) override the referenced ones
        node = {**resolved, **node}

    cleaned: dict[str, Any] = {}
    for key, value in node.items():
        if key in _STRIPPED_KEYS:
            continue
        if key in _NAMED_SUBSCHEMAS and isinstance(value, dict):
            cleaned[key] = {
                name: _inline(sub, defs, seen)
                for name, sub in value.items()  # type: ignore
            }
        else:
            cleaned[key] = _inline(value, defs, seen)
    return cleaned


def compile_schema(schema: Any) -> dict[str, Any]:
    """
    Convert a schema into the JSON schema of function parameters.

    Args:
        schema: a pydantic model class or a type accepted by TypeAdapter

    Returns:
        a JSON schema dictionary, with references inlined and without
        titles and defaults

    Raises:
        ConfigurationError: if the schema root is not an object, or
            the schema cannot be converted
    """
    try:
        json_schema = schema_adapter(schema).json_schema()
    except Exception as e:
        raise ConfigurationError(
            f"Cannot convert schema to JSON schema: {e}"
        ) from e

    defs: dict[str, Any] = json_schema.get("$defs", {})
    compiled = _inline(json_schema, defs, ())
    if compiled.get("type") != "object":
        raise ConfigurationError("Schemas can ONLY be an object")
    return compiled


def build_function(
    schema: Any,
    name: str = FUNCTION_NAME,
    description: str = FUNCTION_DESCRIPTION,
) -> FunctionDescriptor:
    """Build the function descriptor the model is asked to call."""
    return FunctionDescriptor(
        name=name,
        description=description,
        parameters=compile_schema(schema),
    )


def schema_instructions(function: FunctionDescriptor) -> str:
    """
    Prompt instructions asking for a JSON object following the schema
    of a function. Used with models without native function calls.
    """
    return "\n".join(
        [
            "Respond ONLY with a JSON object conforming to the following "
            + "JSON schema, without any other text:",
            json.dumps(function.parameters, indent=2),
        ]
    )


def issues_from_error(error: PydanticValidationError) -> list[ValidationIssue]:
    """Convert the errors of a pydantic ValidationError into issues."""
    return [
        ValidationIssue(path=tuple(err["loc"]), message=err["msg"])
        for err in error.errors(include_url=False)
    ]


def validate_payload(schema: Any, payload: Any) -> Any:
    """
    Validate a decoded payload against the schema.

    Args:
        schema: a pydantic model class or a type accepted by TypeAdapter
        payload: the decoded JSON value

    Returns:
        the validated data (for a pydantic model, an instance of the
        model)

    Raises:
        SchemaValidationError: carrying the validation issues
    """
    try:
        return schema_adapter(schema).validate_python(payload)
    except PydanticValidationError as e:
        raise SchemaValidationError(issues_from_error(e)) from e
