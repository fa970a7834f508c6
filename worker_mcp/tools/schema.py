"""
Parameter descriptors for tool units.

A tool declares its parameters as a mapping of name -> `Param`. From that
mapping a pydantic model is built on demand, which both coerces incoming
arguments and produces the JSON schema advertised to clients.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, create_model

ParamType = Literal["number", "integer", "string", "boolean", "enum"]

_MISSING: Any = ...


class Param(BaseModel):
    """Type/validation descriptor for a single tool parameter."""

    model_config = ConfigDict(frozen=True)

    type: ParamType
    description: str = ""
    optional: bool = False
    default: Any = None
    choices: Optional[Tuple[str, ...]] = None
    minimum: Optional[float] = None

    def python_type(self) -> Any:
        if self.type == "number":
            return StrictInt | StrictFloat
        if self.type == "integer":
            return int
        if self.type == "boolean":
            return bool
        if self.type == "enum":
            return Literal[self.choices]  # type: ignore[valid-type]
        return str


def number(description: str = "", *, minimum: Optional[float] = None, default: Any = None, optional: bool = False) -> Param:
    return Param(
        type="number",
        description=description,
        minimum=minimum,
        default=default,
        optional=optional or default is not None,
    )


def integer(description: str = "", *, minimum: Optional[float] = None, default: Any = None, optional: bool = False) -> Param:
    return Param(
        type="integer",
        description=description,
        minimum=minimum,
        default=default,
        optional=optional or default is not None,
    )


def string(description: str = "", *, default: Optional[str] = None, optional: bool = False) -> Param:
    return Param(
        type="string",
        description=description,
        default=default,
        optional=optional or default is not None,
    )


def boolean(description: str = "", *, default: Optional[bool] = None, optional: bool = False) -> Param:
    return Param(
        type="boolean",
        description=description,
        default=default,
        optional=optional or default is not None,
    )


def enum(choices: List[str], description: str = "", *, default: Optional[str] = None, optional: bool = False) -> Param:
    if not choices:
        raise ValueError("enum parameters need at least one choice")
    return Param(
        type="enum",
        description=description,
        choices=tuple(choices),
        default=default,
        optional=optional or default is not None,
    )


def arguments_model(tool_name: str, schema: Dict[str, Param]) -> Type[BaseModel]:
    """Build the pydantic model that validates arguments for `schema`."""
    fields: Dict[str, Any] = {}
    for name, param in schema.items():
        annotation = param.python_type()
        if not param.optional:
            default = _MISSING
        elif param.default is None:
            annotation = Optional[annotation]
            default = None
        else:
            default = param.default
        fields[name] = (
            annotation,
            Field(default=default, description=param.description or None, ge=param.minimum),
        )

    model_name = "".join(part.capitalize() for part in tool_name.replace("-", "_").split("_")) or "Tool"
    return create_model(
        f"{model_name}Arguments",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


def coerce_arguments(tool_name: str, schema: Dict[str, Param], arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate and coerce raw call arguments against `schema`.

    Unknown arguments are dropped; missing optional ones take their default.
    Raises `pydantic.ValidationError` when the arguments do not fit.
    """
    model = arguments_model(tool_name, schema)
    return model.model_validate(arguments or {}).model_dump()


def input_schema(tool_name: str, schema: Dict[str, Param]) -> Dict[str, Any]:
    """JSON schema of the tool's arguments, as published through `tools/list`."""
    json_schema = arguments_model(tool_name, schema).model_json_schema()
    json_schema.pop("title", None)
    return json_schema


def describe_schema(schema: Dict[str, Param]) -> Dict[str, Dict[str, Any]]:
    """Plain descriptor map used by the discovery listing."""
    return {name: param.model_dump(exclude_none=True) for name, param in schema.items()}
