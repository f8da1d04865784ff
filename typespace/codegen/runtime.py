"""Runtime support modules copied verbatim into every generated package.

This module provides:
- ``_serde.py``: the pydantic base classes the generated types derive from
- ``_client.py``: the httpx transport, the API error type and page iteration
"""

__all__ = [
    'SERDE_MODULE_NAME',
    'SERDE_MODULE_CONTENT',
    'CLIENT_MODULE_NAME',
    'CLIENT_MODULE_CONTENT',
]

SERDE_MODULE_NAME = '_serde'
CLIENT_MODULE_NAME = '_client'


# =============================================================================
# Serialization Module Content
# =============================================================================

SERDE_MODULE_CONTENT = '''\
"""Serialization base classes for the generated types."""

from enum import Enum
from types import UnionType
from typing import Any, ClassVar, Union, get_args, get_origin

from pydantic import (
    BaseModel,
    ConfigDict,
    RootModel,
    TypeAdapter,
    model_serializer,
    model_validator,
)

__all__ = ["ApiEnum", "ApiModel", "FlattenedModel", "TaggedUnion", "is_empty"]

_EMPTY_CHECKS = {
    "none": lambda value: value is None,
    "zero": lambda value: value is None or value == 0,
    "empty": lambda value: value is None or len(value) == 0,
    "noop": lambda value: value is None or getattr(value, "is_noop", False),
}


def is_empty(value: Any, check: str) -> bool:
    """Return whether ``value`` counts as empty under the named check."""
    return _EMPTY_CHECKS[check](value)


class ApiModel(BaseModel):
    """Base class of every generated object type.

    Absent and ``null`` wire fields take the field default. Fields listed in
    ``__skip_if_empty__`` are left out of the serialized output when empty.
    """

    model_config = ConfigDict(
        validate_by_name=True,
        validate_by_alias=True,
        serialize_by_alias=True,
    )

    __skip_if_empty__: ClassVar[dict[str, str]] = {}

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @model_serializer(mode="wrap")
    def serialize_non_empty(self, handler):
        data = handler(self)
        if not isinstance(data, dict):
            return data
        fields = type(self).model_fields
        for name, check in self.__skip_if_empty__.items():
            if is_empty(getattr(self, name, None), check):
                data.pop(name, None)
                alias = fields[name].alias if name in fields else None
                if alias:
                    data.pop(alias, None)
        return data


class ApiEnum(str, Enum):
    """Base class of every generated enumeration.

    Unknown wire values never fail validation: they become a pseudo-member
    named ``FALLTHROUGH_STRING`` that keeps the raw value, so the value is
    passed through unchanged when serialized again.
    """

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        member = str.__new__(cls, value)
        member._name_ = "FALLTHROUGH_STRING"
        member._value_ = value
        return member

    @property
    def is_noop(self) -> bool:
        return self.value == ""

    @property
    def is_fallthrough(self) -> bool:
        return self._name_ == "FALLTHROUGH_STRING"

    @classmethod
    def parse(cls, text: str):
        return cls(text)

    @classmethod
    def variants(cls) -> list[str]:
        """Return the declared wire values, without the noop and fallback members."""
        return [member.value for member in cls if not (member.is_noop or member.is_fallthrough)]


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _is_structured(annotation: Any) -> bool:
    """Whether content of this type is written as JSON in the textual form."""
    inner = _unwrap_optional(annotation)
    if callable(getattr(inner, "parse", None)):
        return False
    if inner is Any or get_origin(inner) is not None:
        return True
    return isinstance(inner, type) and issubclass(inner, BaseModel)


def _to_text(annotation: Any, value: Any) -> str:
    if callable(getattr(_unwrap_optional(annotation), "parse", None)):
        return str(value)
    adapter = TypeAdapter(annotation)
    if _is_structured(annotation):
        return adapter.dump_json(value, by_alias=True).decode()
    data = adapter.dump_python(value, mode="json", by_alias=True)
    if isinstance(data, bool):
        return "true" if data else "false"
    return str(data)


def _from_text(annotation: Any, text: str) -> Any:
    parse = getattr(_unwrap_optional(annotation), "parse", None)
    if callable(parse):
        return parse(text)
    adapter = TypeAdapter(annotation)
    if _is_structured(annotation):
        return adapter.validate_json(text)
    return adapter.validate_strings(text)


class TaggedUnion(RootModel[Any]):
    """Base class of every generated ``oneOf`` / ``anyOf`` type.

    ``root`` holds one variant instance. When the union has a tag and a
    content field, the textual form is ``tag=content``; otherwise it is the
    JSON encoding of the value. Lists, mappings and objects are written as
    JSON inside ``content``, and a ``None`` content is written as the bare tag.
    """

    __tag__: ClassVar[str | None] = None
    __content__: ClassVar[str | None] = None
    __variants__: ClassVar[dict[str, Any]] = {}

    def __str__(self) -> str:
        if self.__tag__ is None or self.__content__ is None:
            return self.model_dump_json()
        tag = str(getattr(self.root, self.__tag__))
        field = type(self.root).model_fields.get(self.__content__)
        value = getattr(self.root, self.__content__, None)
        if field is None or value is None:
            return tag
        return f"{tag}={_to_text(field.annotation, value)}"

    @classmethod
    def parse(cls, text: str):
        """Build a value from its textual form; the inverse of ``str()``."""
        if cls.__tag__ is None or cls.__content__ is None:
            return cls.model_validate_json(text)

        tag, separator, content = text.partition("=")
        variant = cls.__variants__.get(tag)
        if variant is None:
            expected = ", ".join(cls.__variants__)
            raise ValueError(f"invalid {cls.__name__} {text!r}: expected one of {expected}")

        field = variant.model_fields.get(cls.__content__)
        if field is None or not (separator or field.is_required()):
            return cls(variant())
        return cls(variant(**{cls.__content__: _from_text(field.annotation, content)}))

    @classmethod
    def variants(cls) -> list[str]:
        return list(cls.__variants__)


class FlattenedModel(ApiModel):
    """Base class of every generated ``allOf`` type.

    Each member is a field named after the member type. The whole input object
    is validated by every member, and the serialized members are merged back
    into one object.
    """

    __flatten__: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def split_groups(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not cls.__flatten__:
            return data
        if data and set(data) <= set(cls.__flatten__) and all(
            value is None or isinstance(value, BaseModel) for value in data.values()
        ):
            return data
        return {group: data for group in cls.__flatten__}

    @model_serializer(mode="wrap")
    def serialize_non_empty(self, handler):
        data = handler(self)
        merged = {}
        for group in self.__flatten__:
            value = data.get(group) if isinstance(data, dict) else None
            if isinstance(value, dict):
                merged.update(value)
        return merged
'''


# =============================================================================
# Client Module Content
# =============================================================================

CLIENT_MODULE_CONTENT = '''\
"""HTTP transport for the generated client."""

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

__all__ = ["ApiError", "BaseClient", "encode_path", "iter_pages"]


class ApiError(Exception):
    """Raised when the API answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code of the response.
        error_code: Machine-readable error code from the body, if any.
        request_id: Server-side request identifier, if any.
        body: The parsed JSON body, or the raw text when it is not JSON.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_code: str | None = None,
        request_id: str | None = None,
        body: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.request_id = request_id
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [f"HTTP {self.status_code}"]
        if self.error_code:
            parts.append(f"[{self.error_code}]")
        parts.append(self.message)
        if self.request_id:
            parts.append(f"(request id {self.request_id})")
        return " ".join(parts)

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = response.text

        message = response.reason_phrase or "request failed"
        error_code = request_id = None
        if isinstance(body, dict):
            message = body.get("message") or message
            error_code = body.get("error_code")
            request_id = body.get("request_id")
        elif body:
            message = str(body)

        return cls(
            message,
            status_code=response.status_code,
            error_code=error_code,
            request_id=request_id,
            body=body,
        )


class BaseClient:
    """Async HTTP client shared by every resource.

    The host and token default to the ``<PREFIX>_HOST`` and ``<PREFIX>_TOKEN``
    environment variables, where ``<PREFIX>`` is ``env_prefix``.
    """

    env_prefix = "API"

    def __init__(
        self,
        host: str | None = None,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        host = host or os.environ.get(f"{self.env_prefix}_HOST")
        if not host and http_client is None:
            raise ValueError(
                f"no host given; pass host= or set {self.env_prefix}_HOST"
            )
        token = token or os.environ.get(f"{self.env_prefix}_TOKEN")

        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._http = http_client or httpx.AsyncClient(
            base_url=host.rstrip("/"), timeout=timeout
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ApiError: If the response status is not 2xx.
        """
        response = await self._http.request(
            method,
            path,
            params=self._query(params),
            json=json,
            headers=self._headers,
        )
        if response.is_error:
            raise ApiError.from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _query(params: dict[str, Any] | None) -> dict[str, Any]:
        query = {}
        for key, value in (params or {}).items():
            if value is None or value == "":
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif hasattr(value, "isoformat"):
                value = value.isoformat()
            query[key] = str(value)
        return query

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def encode_path(value: Any) -> str:
    """Percent-encode a path parameter, slashes included."""
    return quote(str(value), safe="")


async def iter_pages(fetch: Callable[[str | None], Awaitable[Any]]) -> AsyncIterator[Any]:
    """Yield the items of every page, following ``next_page`` until it is empty."""
    page_token = None
    while True:
        page = await fetch(page_token)
        for item in page.items:
            yield item
        page_token = page.next_page
        if not page_token:
            return
'''
