# pyright: reportUnusedImport=false
# flake8: noqa

from .messages import (
    FunctionCall,
    FunctionDescriptor,
    Message,
    RawResponse,
    Usage,
)
from .base import CompletionModel, ModelRequestOptions
from .tokens import TokenEstimator
from .schema import (
    ValidationIssue,
    SchemaValidationError,
    build_function,
    compile_schema,
    validate_payload,
)
from .json_extract import extract_json, parse_unsafe_json
