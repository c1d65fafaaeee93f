"""Tagged-variant parameter schemas for tool input and their pydantic-backed validator."""

import math
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    Tag,
    ValidationError,
    create_model,
    model_validator,
)
from pydantic_core import PydanticCustomError


@dataclass(frozen=True)
class StringParam:
    description: str = ""
    required: bool = False
    default: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NumberParam:
    description: str = ""
    required: bool = False
    default: float | None = None
    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False


@dataclass(frozen=True)
class BooleanParam:
    description: str = ""
    required: bool = False
    default: bool | None = None


@dataclass(frozen=True)
class ArrayParam:
    items: "ParamSchema | None" = None
    description: str = ""
    required: bool = False
    default: list | None = None
    min_items: int | None = None
    max_items: int | None = None


@dataclass(frozen=True)
class ObjectParam:
    properties: dict[str, "ParamSchema"] = field(default_factory=dict)
    description: str = ""
    required: bool = False
    default: dict | None = None


ParamSchema = Union[StringParam, NumberParam, BooleanParam, ArrayParam, ObjectParam]
ToolSchema = dict[str, ParamSchema]


@dataclass
class ValidationResult:
    """Outcome of validate_tool_input. sanitized is set only when valid."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    sanitized: dict[str, Any] | None = None


def validate_tool_input(data: Any, schema: ToolSchema) -> ValidationResult:
    """
    Validate tool input against a schema.

    Unknown keys are dropped, missing optional keys take their default.
    Never raises for invalid input.
    """
    if not isinstance(data, dict):
        return ValidationResult(valid=False, errors=["Input must be an object"])

    try:
        parsed = _input_model(schema).model_validate(data)
    except ValidationError as e:
        errors = [_format_error(err, schema) for err in e.errors()]
        return ValidationResult(valid=False, errors=errors)

    sanitized = parsed.model_dump(by_alias=True, exclude_unset=True)
    return ValidationResult(valid=True, sanitized=sanitized)


class _ToolInput(BaseModel):
    """Base for generated input models. Fields are aliased to the parameter names."""

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls_and_fill_defaults(cls, data: Any) -> Any:
        # None counts as absent, and filled defaults are validated like input
        if not isinstance(data, dict):
            return data
        present = {key: value for key, value in data.items() if value is not None}
        for info in cls.model_fields.values():
            if info.alias not in present and not info.is_required() and info.default is not None:
                present[info.alias] = info.default
        return present


def _input_model(schema: ToolSchema) -> type[BaseModel]:
    """Build the pydantic model that validates input for a tool schema."""
    fields: dict[str, Any] = {}
    for index, (name, param) in enumerate(schema.items()):
        default = ... if param.required else param.default
        fields[f"p{index}"] = (_field_type(param), Field(default, alias=name))
    return create_model("ToolInput", __base__=_ToolInput, **fields)


def _require_number(value: Any) -> Any:
    # lax int also takes bools and numeric strings
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PydanticCustomError("number_type", "Input should be a number")
    return value


def _number_kind(value: Any) -> str:
    return "int" if isinstance(value, int) and not isinstance(value, bool) else "float"


def _int_bounds(param: NumberParam) -> dict[str, int | None]:
    # integer constraints must be integers themselves
    return {
        "ge": None if param.minimum is None else math.ceil(param.minimum),
        "le": None if param.maximum is None else math.floor(param.maximum),
    }


def _field_type(param: ParamSchema) -> Any:
    if isinstance(param, StringParam):
        if param.enum is not None:
            return Literal[param.enum]
        return Annotated[
            StrictStr,
            Field(min_length=param.min_length, max_length=param.max_length, pattern=param.pattern),
        ]

    if isinstance(param, NumberParam):
        if param.integer:
            return Annotated[int, Field(**_int_bounds(param)), BeforeValidator(_require_number)]
        # ints stay ints at any size, floats must be finite
        return Annotated[
            Union[
                Annotated[StrictInt, Field(**_int_bounds(param)), Tag("int")],
                Annotated[
                    StrictFloat,
                    Field(ge=param.minimum, le=param.maximum, allow_inf_nan=False),
                    Tag("float"),
                ],
            ],
            Discriminator(_number_kind),
        ]

    if isinstance(param, BooleanParam):
        return StrictBool

    if isinstance(param, ArrayParam):
        items = Any if param.items is None else _field_type(param.items)
        bounds = Field(min_length=param.min_items, max_length=param.max_items)
        return Annotated[list[items], bounds]

    if isinstance(param, ObjectParam):
        if not param.properties:
            return dict[str, Any]
        return _input_model(param.properties)

    raise TypeError(f"Unsupported parameter schema {type(param).__name__}")


_TYPE_MESSAGES = {
    "missing": "is required",
    "string_type": "must be a string",
    "string_pattern_mismatch": "does not match required pattern",
    "int_type": "must be a number",
    "float_type": "must be a number",
    "number_type": "must be a number",
    "finite_number": "must be a number",
    "int_from_float": "must be an integer",
    "bool_type": "must be a boolean",
    "list_type": "must be an array",
    "dict_type": "must be an object",
    "model_type": "must be an object",
}


def _locate(schema: ToolSchema, loc: tuple) -> tuple[str, str, ParamSchema | None]:
    """Map a pydantic error location to (object prefix, parameter name, schema)."""
    prefix, name, param = "", str(loc[0]), schema.get(loc[0])
    for part in loc[1:]:
        if isinstance(param, ArrayParam) and isinstance(part, int):
            name, param = f"{name}[{part}]", param.items
        elif isinstance(param, ObjectParam) and part in param.properties:
            prefix, name, param = f"{prefix}{name}.", part, param.properties[part]
        else:
            # union tags and dict keys
            break
    return prefix, name, param


def _format_error(error: dict, schema: ToolSchema) -> str:
    prefix, name, param = _locate(schema, error["loc"])
    kind = error["type"]

    message = _TYPE_MESSAGES.get(kind)
    if message is None and param is None:
        message = f"is invalid: {error['msg']}"
    elif message is None:
        if kind == "string_too_short":
            message = f"must be at least {param.min_length} characters"
        elif kind == "string_too_long":
            message = f"must be at most {param.max_length} characters"
        elif kind == "literal_error":
            message = f"must be one of: {', '.join(param.enum)}"
        elif kind == "greater_than_equal":
            message = f"must be at least {param.minimum}"
        elif kind == "less_than_equal":
            message = f"must be at most {param.maximum}"
        elif kind == "too_short":
            message = f"must have at least {param.min_items} items"
        elif kind == "too_long":
            message = f"must have at most {param.max_items} items"
        else:
            message = f"is invalid: {error['msg']}"

    return f"{prefix}Parameter '{name}' {message}"


def to_json_schema(schema: ToolSchema) -> dict[str, Any]:
    """Render a tool schema as a JSON Schema object for model providers."""
    return {
        "type": "object",
        "properties": {name: _param_json(param) for name, param in schema.items()},
        "required": [name for name, param in schema.items() if param.required],
    }


def _param_json(param: ParamSchema) -> dict[str, Any]:
    out: dict[str, Any] = {}

    if isinstance(param, StringParam):
        out["type"] = "string"
        if param.min_length is not None:
            out["minLength"] = param.min_length
        if param.max_length is not None:
            out["maxLength"] = param.max_length
        if param.pattern is not None:
            out["pattern"] = param.pattern
        if param.enum is not None:
            out["enum"] = list(param.enum)
    elif isinstance(param, NumberParam):
        out["type"] = "integer" if param.integer else "number"
        if param.minimum is not None:
            out["minimum"] = param.minimum
        if param.maximum is not None:
            out["maximum"] = param.maximum
    elif isinstance(param, BooleanParam):
        out["type"] = "boolean"
    elif isinstance(param, ArrayParam):
        out["type"] = "array"
        if param.items is not None:
            out["items"] = _param_json(param.items)
        if param.min_items is not None:
            out["minItems"] = param.min_items
        if param.max_items is not None:
            out["maxItems"] = param.max_items
    elif isinstance(param, ObjectParam):
        out.update(to_json_schema(param.properties))

    if param.description:
        out["description"] = param.description
    if param.default is not None:
        out["default"] = param.default
    return out
