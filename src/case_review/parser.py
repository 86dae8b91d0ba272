"""Extract JSON from LLM output and validate it against a response schema."""
import copy
import json
import logging
import re
import warnings
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ResponseValidationError, UnparsableResponse, ValidationWarning


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCED = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
BOUND_ERRORS = {
    "greater_than_equal": "ge",
    "greater_than": "gt",
    "less_than_equal": "le",
    "less_than": "lt",
}
MAX_REPAIR_PASSES = 3


class ParsedResult(BaseModel, Generic[T]):
    """Validated value plus the raw object it came from."""
    data: dict
    value: T
    warnings: list[str] = Field(default_factory=list)
    source: str = "direct"


def _loads_object(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _balanced_object(content: str) -> dict | None:
    """First brace-balanced object, ignoring braces inside strings."""
    start = content.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(content)):
        char = content[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return _loads_object(content[start:i + 1])
    return None


def extract_json(raw_text: str) -> tuple[dict, str]:
    """Return the JSON object in an LLM response and which tier found it.

    Tiers: the whole text, then the first fenced code block, then the first
    top-level ``{...}`` span. Raises UnparsableResponse when none yields an
    object.
    """
    content = (raw_text or "").strip()

    data = _loads_object(content)
    if data is not None:
        return data, "direct"

    fenced = _FENCED.search(content)
    if fenced:
        data = _loads_object(fenced.group(1).strip())
        if data is not None:
            return data, "fenced"

    first, last = content.find("{"), content.rfind("}")
    if first != -1 and last > first:
        data = _loads_object(content[first:last + 1])
        if data is None:
            data = _balanced_object(content)
        if data is not None:
            return data, "span"

    raise UnparsableResponse(
        f"Could not parse JSON. Last 500 chars: {content[-500:]}",
        raw_text=raw_text,
    )


def parse_json(raw_text: str) -> dict:
    data, _ = extract_json(raw_text)
    return data


def _format_error(error: dict) -> str:
    where = ".".join(str(part) for part in error["loc"]) or "<root>"
    return f"{where}: {error['msg']}"


def _resolve(data, path: tuple):
    node = data
    for part in path:
        node = node[part]
    return node


def _set(data, path: tuple, value) -> None:
    _resolve(data, path[:-1])[path[-1]] = value


def _delete(data, path: tuple) -> None:
    try:
        parent = _resolve(data, path[:-1])
        if isinstance(parent, list):
            parent.pop(path[-1])
        else:
            parent.pop(path[-1], None)
    except (KeyError, IndexError, TypeError):
        pass


def _path_key(path: tuple) -> tuple:
    return tuple((1, part) if isinstance(part, int) else (0, str(part)) for part in path)


def emit_warning(message: str, collected: list[str]) -> None:
    """Record, log and raise a ValidationWarning for a best-effort repair."""
    collected.append(message)
    logger.warning(message)
    warnings.warn(message, ValidationWarning, stacklevel=3)


def _repair(data: dict, schema: type[T], collected: list[str]) -> T:
    """Clamp out-of-range numbers and drop invalid fields until the schema accepts the data."""
    errors: list[dict] = []
    for _ in range(MAX_REPAIR_PASSES):
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            errors = e.errors()

        removals = []
        for error in errors:
            loc = tuple(error["loc"])
            kind = error["type"]
            if not loc:
                raise ResponseValidationError(
                    f"{schema.__name__} failed validation", [_format_error(error)], data
                )
            if kind in BOUND_ERRORS:
                bound = error["ctx"][BOUND_ERRORS[kind]]
                try:
                    _set(data, loc, bound)
                except (KeyError, IndexError, TypeError):
                    removals.append(loc)
                    continue
                emit_warning(f"{_format_error(error)}; clamped to {bound}", collected)
            elif kind == "missing":
                indices = [i for i, part in enumerate(loc) if isinstance(part, int)]
                if indices:
                    removals.append(loc[:indices[-1] + 1])
                    emit_warning(f"{_format_error(error)}; dropped item", collected)
                elif len(loc) > 1:
                    removals.append(loc[:-1])
                    emit_warning(f"{_format_error(error)}; dropped section", collected)
                else:
                    raise ResponseValidationError(
                        f"{schema.__name__} failed validation", [_format_error(error)], data
                    )
            else:
                removals.append(loc)
                emit_warning(f"{_format_error(error)}; dropped", collected)

        for path in sorted(set(removals), key=_path_key, reverse=True):
            _delete(data, path)

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ResponseValidationError(
            f"{schema.__name__} failed validation",
            [_format_error(error) for error in e.errors()],
            data,
        ) from e


def validate_data(data: dict, schema: type[T], *, strict: bool = True) -> tuple[T, list[str]]:
    """Validate an extracted object against a schema.

    Strict mode turns any schema violation into ResponseValidationError.
    Lenient mode repairs what it can and reports each repair as a
    ValidationWarning.
    """
    if strict:
        try:
            return schema.model_validate(data), []
        except ValidationError as e:
            raise ResponseValidationError(
                f"{schema.__name__} failed validation",
                [_format_error(error) for error in e.errors()],
                data,
            ) from e

    collected: list[str] = []
    value = _repair(copy.deepcopy(data), schema, collected)
    return value, collected


def parse_structured_response(raw_text: str, schema: type[T], *, strict: bool = True) -> ParsedResult[T]:
    """Extract the JSON object from raw LLM text and validate it."""
    data, source = extract_json(raw_text)
    value, collected = validate_data(data, schema, strict=strict)
    return ParsedResult(data=data, value=value, warnings=collected, source=source)
