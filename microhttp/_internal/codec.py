"""Payload codec: request bodies out, typed values in."""

import dataclasses
import json
import types
import typing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar, get_args, get_origin

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_pascal, to_snake
from pydantic_core import PydanticSerializationError, to_jsonable_python

from microhttp.exceptions import DecodingError, EncodingError
from microhttp.models.upload import FileUploadRequest

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
DIAGNOSTIC_TEXT_MAX_LENGTH = 2048

NamingPolicy = Literal["camel", "pascal", "snake", "preserve"]

_NAMERS: dict[str, Callable[[str], str]] = {
    "camel": to_camel,
    "pascal": to_pascal,
    "snake": to_snake,
    "preserve": lambda name: name,
}


class JsonOptions(BaseModel):
    """JSON behavior for one client.

    Fields:
        naming: How model and dataclass field names appear on the wire.
        omit_none: Leave out fields whose value is None when encoding.
        case_insensitive: Match incoming keys to fields ignoring case.
        numbers_from_strings: Accept "42" where a number is expected.
    """

    naming: NamingPolicy = "camel"
    omit_none: bool = True
    case_insensitive: bool = True
    numbers_from_strings: bool = True

    model_config = {"frozen": True}


@dataclass(frozen=True)
class RequestBody:
    """Encoded request body, ready for ``httpx.AsyncClient.build_request``.

    JSON bodies use ``content``; multipart bodies use ``data`` and ``files``
    so httpx can stream file parts lazily.
    """

    content: bytes | None = None
    content_type: str | None = None
    data: Mapping[str, str] | None = None
    files: list[tuple[str, tuple[str, Any, str]]] | None = None

    @property
    def is_multipart(self) -> bool:
        return self.files is not None


def _truncate(text: str) -> str:
    if len(text) <= DIAGNOSTIC_TEXT_MAX_LENGTH:
        return text
    return text[:DIAGNOSTIC_TEXT_MAX_LENGTH] + "..."


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", None) or repr(target)


class PayloadCodec:
    """Converts between Python values and HTTP bodies."""

    def __init__(self, options: JsonOptions | None = None) -> None:
        self.options = options or JsonOptions()
        self._wire_name = _NAMERS[self.options.naming]
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    # =========================================================================
    # Encoding
    # =========================================================================

    def encode(self, value: Any) -> RequestBody:
        """Serialize ``value`` as a JSON request body.

        Raises:
            EncodingError: If the value is cyclic or not JSON-representable.
        """
        wire = self._to_wire(value, set())
        try:
            text = json.dumps(wire, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Failed to serialize {type(value).__name__}: {e}", value) from e
        return RequestBody(content=text.encode("utf-8"), content_type=JSON_CONTENT_TYPE)

    def encode_multipart(self, upload: FileUploadRequest) -> RequestBody:
        """Build a multipart body with one part per file and per form field."""
        files = [
            (item.field_name, (item.file_name, item.content, item.content_type))
            for item in upload.all_files()
        ]
        return RequestBody(data=dict(upload.form_fields or {}), files=files)

    def _to_wire(self, value: Any, seen: set[int]) -> Any:
        if value is None or isinstance(value, (str, bool, int, float)):
            return value

        marker = id(value)
        if marker in seen:
            raise EncodingError(
                f"Cyclic reference detected while serializing {type(value).__name__}", value
            )
        seen.add(marker)
        try:
            if isinstance(value, BaseModel):
                return self._fields_to_wire(
                    (
                        (name, field.serialization_alias or field.alias, getattr(value, name))
                        for name, field in type(value).model_fields.items()
                    ),
                    seen,
                )
            if dataclasses.is_dataclass(value) and not isinstance(value, type):
                return self._fields_to_wire(
                    ((f.name, None, getattr(value, f.name)) for f in dataclasses.fields(value)),
                    seen,
                )
            if isinstance(value, Mapping):
                return {str(key): self._to_wire(item, seen) for key, item in value.items()}
            if isinstance(value, (list, tuple, set, frozenset)):
                return [self._to_wire(item, seen) for item in value]
            try:
                return to_jsonable_python(value)
            except PydanticSerializationError as e:
                raise EncodingError(
                    f"Cannot serialize value of type {type(value).__name__}", value
                ) from e
        finally:
            seen.discard(marker)

    def _fields_to_wire(self, fields: Any, seen: set[int]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name, alias, item in fields:
            if item is None and self.options.omit_none:
                continue
            result[alias or self._wire_name(name)] = self._to_wire(item, seen)
        return result

    # =========================================================================
    # Decoding
    # =========================================================================

    def decode(self, text: str, target: type[T]) -> T:
        """Turn a response body into an instance of ``target``.

        ``str`` targets get the text back untouched. Everything else is
        parsed as JSON and validated; an empty body or a JSON ``null`` is a
        failure, never a silent None.

        Raises:
            DecodingError: If the body is not valid JSON, is empty or null,
                or does not validate against ``target``.
        """
        if target is str:
            return typing.cast(T, text)

        data = self._parse(text, target)
        if data is None:
            raise DecodingError(
                f"Failed to deserialize empty or null response as {_type_name(target)}",
                raw_text=_truncate(text),
                target=target,
            )
        return self._validate(data, target, text)

    def decode_sequence(self, payload: bytes | str, item_type: type[T]) -> list[T]:
        """Parse a JSON array into a list of ``item_type``. ``null`` gives []."""
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise DecodingError("Response stream is not valid UTF-8", target=item_type) from e
        data = self._parse(text, list[item_type])  # type: ignore[valid-type]
        if data is None:
            return []
        return self._validate(data, list[item_type], text)  # type: ignore[valid-type]

    def _parse(self, text: str, target: Any) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodingError(
                f"Failed to deserialize response as {_type_name(target)}: {_truncate(text)}",
                raw_text=_truncate(text),
                target=target,
            ) from e

    def _validate(self, data: Any, target: Any, text: str) -> Any:
        if target is Any or target is object:
            return data
        bound = self._bind(data, target)
        adapter = self._adapter(target)
        try:
            if self.options.numbers_from_strings:
                return adapter.validate_python(bound)
            return adapter.validate_json(json.dumps(bound), strict=True)
        except PydanticValidationError as e:
            raise DecodingError(
                f"Failed to deserialize response as {_type_name(target)}: {_truncate(text)}",
                raw_text=_truncate(text),
                target=target,
            ) from e

    def _adapter(self, target: Any) -> TypeAdapter[Any]:
        adapter = self._adapters.get(target)
        if adapter is None:
            adapter = TypeAdapter(target)
            self._adapters[target] = adapter
        return adapter

    def _bind(self, data: Any, target: Any) -> Any:
        """Rename incoming keys to the names pydantic validates against.

        Walks ``target`` alongside ``data`` so nested models, lists of
        models and dict values are handled too.
        """
        origin = get_origin(target)
        args = get_args(target)

        if origin is typing.Annotated:
            return self._bind(data, args[0])
        if origin is typing.Union or origin is types.UnionType:
            members = [arg for arg in args if arg is not type(None)]
            return self._bind(data, members[0]) if len(members) == 1 else data
        if isinstance(data, list) and origin in (list, set, frozenset, tuple, Sequence):
            if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
                return [self._bind(item, arg) for item, arg in zip(data, args, strict=False)]
            return [self._bind(item, args[0]) for item in data] if args else data
        if isinstance(data, dict) and origin in (dict, Mapping):
            return {key: self._bind(item, args[1]) for key, item in data.items()} if args else data

        if not isinstance(data, dict) or not isinstance(target, type):
            return data
        if issubclass(target, BaseModel):
            fields = {
                name: (_input_key(name, field), field.annotation)
                for name, field in target.model_fields.items()
            }
        elif dataclasses.is_dataclass(target):
            hints = typing.get_type_hints(target)
            fields = {f.name: (f.name, hints.get(f.name, Any)) for f in dataclasses.fields(target)}
        else:
            return data
        return self._bind_fields(data, fields)

    def _bind_fields(
        self, data: dict[str, Any], fields: dict[str, tuple[str, Any]]
    ) -> dict[str, Any]:
        lookup: dict[str, tuple[str, Any]] = {}
        for name, (input_key, annotation) in fields.items():
            for candidate in (name, input_key, self._wire_name(name)):
                lookup[self._fold(candidate)] = (input_key, annotation)

        bound: dict[str, Any] = {}
        for key, item in data.items():
            match = lookup.get(self._fold(key))
            if match is None:
                bound[key] = item
                continue
            input_key, annotation = match
            bound[input_key] = self._bind(item, annotation)
        return bound

    def _fold(self, key: str) -> str:
        return key.casefold() if self.options.case_insensitive else key


def _input_key(name: str, field: Any) -> str:
    if isinstance(field.validation_alias, str):
        return field.validation_alias
    return field.alias or name
