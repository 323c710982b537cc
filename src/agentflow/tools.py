import asyncio
import inspect
import json
import re
import types
import typing
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentflow.errors import ToolDecodeError, ToolError, ToolExecutionError


class ToolKind(Enum):
    """``UI`` tools are answered from outside the agent loop."""

    REGULAR = "regular"
    UI = "ui"


class ToolCallResult(BaseModel):
    tool_name: str
    output: Any


_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}

_SECTION_HEADER = re.compile(r"^(Args|Arguments|Parameters)\s*:?\s*$")
_GOOGLE_ENTRY = re.compile(r"^\*{0,2}(\w+)\s*(?:\(.*?\))?\s*:\s*(.*)$")
_REST_ENTRY = re.compile(r"^:param\s+(?:[\w\[\], ]+\s+)?(\w+)\s*:\s*(.*)$")
_NUMPY_ENTRY = re.compile(r"^(\w+)\s*:\s*.*$")


def _json_type(annotation: Any) -> str:
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(args[0]) if args else "null"
    return _JSON_TYPES.get(origin or annotation, "string")


def _type_hints(func: Callable) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except (NameError, TypeError):
        return {
            name: param.annotation
            for name, param in inspect.signature(func).parameters.items()
        }


def _schema_params(func: Callable) -> list[inspect.Parameter]:
    return [
        p for p in inspect.signature(func).parameters.values()
        if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Extract per-parameter descriptions from *func*'s docstring.

    Understands Google (``Args:``), reST (``:param x:``) and NumPy
    (``Parameters`` + dashes) styles.  Continuation lines are joined
    with newlines.
    """
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    lines = doc.splitlines()

    rest = {}
    for line in lines:
        m = _REST_ENTRY.match(line.strip())
        if m:
            rest[m.group(1)] = m.group(2).strip()
    if rest:
        return rest

    descs: dict[str, str] = {}
    in_section = False
    numpy_style = False
    current = None
    base_indent = None
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not in_section:
            if _SECTION_HEADER.match(stripped):
                in_section = True
                nxt = lines[i + 1].strip() if i + 1 < len(lines) else ""
                numpy_style = bool(nxt) and set(nxt) == {"-"}
            continue
        if not stripped or set(stripped) == {"-"}:
            continue
        indent = len(line) - len(line.lstrip())
        if numpy_style:
            if indent == 0:
                m = _NUMPY_ENTRY.match(stripped)
                if not m:
                    break
                current = m.group(1)
                descs[current] = ""
                continue
        else:
            if indent == 0:
                break
            if base_indent is None:
                base_indent = indent
            m = _GOOGLE_ENTRY.match(stripped)
            if indent == base_indent and m:
                current = m.group(1)
                descs[current] = m.group(2).strip()
                continue
        if current is not None:
            descs[current] = (
                f"{descs[current]}\n{stripped}" if descs[current] else stripped
            )
    return descs


def _summary(func: Callable) -> str:
    doc = inspect.getdoc(func)
    if not doc:
        return ""
    summary = []
    for line in doc.splitlines():
        stripped = line.strip()
        if _SECTION_HEADER.match(stripped) or _REST_ENTRY.match(stripped):
            break
        summary.append(line)
    return "\n".join(summary).strip()


def _input_model(func: Callable) -> tuple[str, type[BaseModel]] | None:
    """Return ``(param, model)`` if *func* takes a single pydantic model."""
    params = _schema_params(func)
    if len(params) != 1:
        return None
    annotation = _type_hints(func).get(params[0].name)
    if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
        return params[0].name, annotation
    return None


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    """Build a JSON schema for *func*'s parameters.

    Returns:
        The ``object`` schema and the list of required parameter names.
    """
    hints = _type_hints(func)
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for param in _schema_params(func):
        properties[param.name] = {
            "type": _json_type(hints.get(param.name, str)),
            "description": descriptions.get(param.name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(param.name)
    schema = {"type": "object", "properties": properties, "required": required}
    return schema, required


def _serialize(output: Any) -> str:
    if isinstance(output, str):
        return output
    if isinstance(output, BaseModel):
        return output.model_dump_json()
    return json.dumps(output)


class Tool(BaseModel):
    """A function the model may call.

    Build tools with the :func:`tool` decorator, or with
    :meth:`Tool.raw` for handlers that want the raw JSON argument
    string.

    Args:
        func: The sync or async callable that implements the tool.
        name: Unique name within a catalog.
        description: Shown to the model.
        parameters_schema: JSON schema of the arguments object.
        kind: ``ToolKind.UI`` for tools answered outside the loop.
        input_param: When set, arguments are validated into
            ``input_model`` and passed as this single parameter.
        input_model: Pydantic model the arguments decode into.
        raw_arguments: Pass the undecoded argument string to ``func``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict = Field(default_factory=dict)
    kind: ToolKind = ToolKind.REGULAR
    input_param: str | None = Field(default=None, exclude=True)
    input_model: type[BaseModel] | None = Field(default=None, exclude=True)
    raw_arguments: bool = Field(default=False, exclude=True)

    @classmethod
    def raw(
        cls,
        name: str,
        description: str,
        parameters_schema: dict,
        handler: Callable[[str], Any],
        kind: ToolKind = ToolKind.REGULAR,
    ) -> "Tool":
        """Wrap a handler that decodes its own JSON argument string."""
        return cls(
            func=handler,
            name=name,
            description=description,
            parameters_schema=parameters_schema,
            kind=kind,
            raw_arguments=True,
        )

    @property
    def is_ui(self) -> bool:
        return self.kind is ToolKind.UI

    def schema(self) -> dict:
        """Return an OpenAI-compatible function tool schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }

    def model_dump(self, **kwargs):
        """Override to return the JSON schema instead of internal attributes"""
        return self.schema()

    def model_dump_json(self, **kwargs):
        return json.dumps(self.schema())

    async def __call__(self, *args, **kwargs) -> ToolCallResult:
        if inspect.iscoroutinefunction(self.func):
            output = await self.func(*args, **kwargs)
        else:
            output = await asyncio.to_thread(self.func, *args, **kwargs)
        return ToolCallResult(tool_name=self.name, output=output)

    def decode(self, arguments: str) -> dict[str, Any]:
        """Decode a JSON argument string into keyword arguments.

        An empty string counts as ``{}``.

        Raises:
            ToolDecodeError: If the arguments are not a JSON object that
                fits the tool's signature or input model.
        """
        raw = arguments.strip() or "{}"
        if self.input_model is not None and self.input_param is not None:
            try:
                value = self.input_model.model_validate_json(raw)
            except ValidationError as e:
                raise ToolDecodeError(self.name, arguments, str(e)) from e
            return {self.input_param: value}

        try:
            params = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolDecodeError(self.name, arguments, str(e)) from e
        if not isinstance(params, dict):
            raise ToolDecodeError(
                self.name, arguments, "arguments must be a JSON object"
            )
        try:
            inspect.signature(self.func).bind(**params)
        except TypeError as e:
            raise ToolDecodeError(self.name, arguments, str(e)) from e
        return params

    async def invoke(self, arguments: str) -> str:
        """Decode *arguments*, run the tool and serialize its output.

        Raises:
            ToolDecodeError: The arguments could not be decoded.
            ToolExecutionError: The handler raised.
        """
        if self.raw_arguments:
            call = self(arguments)
        else:
            call = self(**self.decode(arguments))
        try:
            result = await call
            return _serialize(result.output)
        except ToolError:
            raise
        except Exception as e:
            raise ToolExecutionError(self.name, e) from e


def tool(
    func: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    kind: ToolKind = ToolKind.REGULAR,
):
    """Turn a function into a :class:`Tool`.

    Usable bare (``@tool``) or with arguments
    (``@tool(name=..., description=..., kind=ToolKind.UI)``).  The
    parameter schema comes from the signature and docstring, or from
    the pydantic model when the function takes a single model argument.
    """

    def wrap(f: Callable) -> Tool:
        model_param = _input_model(f)
        if model_param is not None:
            input_param, input_model = model_param
            schema = input_model.model_json_schema()
        else:
            input_param, input_model = None, None
            schema, _ = _build_parameters_schema(f)
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description if description is not None else _summary(f),
            parameters_schema=schema,
            kind=kind,
            input_param=input_param,
            input_model=input_model,
        )

    if func is not None:
        return wrap(func)
    return wrap


def build_catalog(tools: list[Tool]) -> dict[str, Tool]:
    """Index *tools* by name.

    Raises:
        ValueError: If two tools share a name.
    """
    catalog: dict[str, Tool] = {}
    for t in tools:
        if t.name in catalog:
            raise ValueError(f"Duplicate tool name: '{t.name}'")
        catalog[t.name] = t
    return catalog
