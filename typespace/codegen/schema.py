"""Schema loading and reference resolution for OpenAPI documents.

This module provides:

- :class:`SchemaLoader` for reading an OpenAPI document from a URL or a local
  JSON/YAML file, optionally validating its structure;
- :class:`SchemaResolver` for resolving local ``$ref`` JSON pointers.

Code generation works on the raw mapping rather than on validated models so
that every schema node keeps the JSON pointer it was found at; those pointers
are what the error messages report.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

import httpx
import yaml
from openapi_pydantic import parse_obj
from pydantic import ValidationError

from typespace.codegen.utils import is_url, json_pointer_escape, json_pointer_unescape
from typespace.exceptions import (
    BrokenReferenceError,
    SchemaLoadError,
    SchemaValidationError,
)

logger = logging.getLogger(__name__)

__all__ = ['SchemaLoader', 'SchemaResolver', 'schema_pointer']

SCHEMAS_PREFIX = '#/components/schemas/'


def schema_pointer(name: str) -> str:
    """Return the ``$ref`` pointer for a component schema name."""
    return f'{SCHEMAS_PREFIX}{json_pointer_escape(name)}'


def _error_location(loc: tuple) -> str:
    # openapi-pydantic prefixes each location with the version model it tried.
    parts = [str(part) for part in loc]
    if parts and re.fullmatch(r'\d+\.\d+(?:\.\d+)?', parts[0]):
        parts = parts[1:]
    return '.'.join(parts)


class SchemaLoader:
    """Loads OpenAPI documents from URLs or file paths.

    Example:
        >>> loader = SchemaLoader()
        >>> document = loader.load('https://api.example.com/openapi.json')
        >>> # or
        >>> document = loader.load('/path/to/openapi.yaml')
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        validate: bool = True,
    ):
        """Initialize the schema loader.

        Args:
            http_client: Optional HTTP client to use for URL requests.
                        If not provided, ``httpx.get`` is used.
            validate: Whether to validate the document structure with
                     openapi-pydantic after parsing it.
        """
        self._http_client = http_client
        self._validate = validate

    def load(self, source: str) -> dict[str, Any]:
        """Load an OpenAPI document from a URL or file path.

        Args:
            source: URL or file path to the OpenAPI document.

        Returns:
            The parsed document as a plain mapping.

        Raises:
            SchemaLoadError: If the document cannot be loaded from the source.
            SchemaValidationError: If the document is not valid OpenAPI.
        """
        if is_url(source):
            content = self._load_from_url(source)
        else:
            content = self._load_from_file(source)

        if not isinstance(content, dict):
            raise SchemaLoadError(
                source, cause=ValueError('document root must be a mapping')
            )

        if self._validate:
            self.validate(content, source)

        logger.debug(
            f'Loaded {source}: {len(content.get("paths") or {})} paths, '
            f'{len((content.get("components") or {}).get("schemas") or {})} schemas'
        )
        return content

    def validate(self, content: dict[str, Any], source: str) -> None:
        """Validate a parsed document against the OpenAPI object model.

        Raises:
            SchemaValidationError: If the document does not conform.
        """
        version = str(content.get('openapi', ''))
        if not version.startswith('3.'):
            raise SchemaValidationError(
                source, errors=[f"unsupported OpenAPI version '{version or 'missing'}'"]
            )

        try:
            parse_obj(content)
        except ValidationError as e:
            raise SchemaValidationError(
                source,
                errors=[
                    f'{_error_location(error["loc"])}: {error["msg"]}' for error in e.errors()
                ],
            )
        except ValueError as e:
            raise SchemaValidationError(source, errors=[str(e)])

    def _load_from_url(self, url: str) -> Any:
        try:
            if self._http_client:
                response = self._http_client.get(url)
            else:
                response = httpx.get(url, follow_redirects=True, timeout=30.0)

            response.raise_for_status()
            content_type = response.headers.get('content-type', '')
            content = response.text

            if 'yaml' in content_type or url.endswith(('.yaml', '.yml')):
                return yaml.safe_load(content)
            return json.loads(content)

        except httpx.HTTPError as e:
            raise SchemaLoadError(url, cause=e)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(url, cause=e)

    def _load_from_file(self, file_path: str) -> Any:
        path = Path(file_path)
        if not path.exists():
            raise SchemaLoadError(
                str(file_path), cause=FileNotFoundError(f'File not found: {path}')
            )

        try:
            content = path.read_text(encoding='utf-8')
            if path.suffix.lower() in ('.yaml', '.yml'):
                return yaml.safe_load(content)
            return json.loads(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(str(file_path), cause=e)
        except OSError as e:
            raise SchemaLoadError(str(file_path), cause=e)


class SchemaResolver:
    """Resolves local ``$ref`` pointers within a loaded document.

    Only same-document references (``#/...``) are supported; anything else is
    reported as a broken reference because the generated code would otherwise
    name a type that does not exist.
    """

    def __init__(self, document: dict[str, Any]):
        self.document = document

    @property
    def schemas(self) -> dict[str, Any]:
        return (self.document.get('components') or {}).get('schemas') or {}

    def resolve(self, reference: str) -> Any:
        """Follow a JSON pointer and return the node it designates.

        Args:
            reference: A ``$ref`` value such as ``#/components/schemas/Disk``.

        Returns:
            The referenced node.

        Raises:
            BrokenReferenceError: If the pointer is external or does not exist.
        """
        if not isinstance(reference, str) or not reference.startswith('#'):
            raise BrokenReferenceError(
                str(reference),
                'only references within the same document (#/...) are supported',
            )

        pointer = reference[1:].lstrip('/')
        tokens = pointer.split('/') if pointer else []

        current: Any = self.document
        for token in tokens:
            token = json_pointer_unescape(token)
            if isinstance(current, dict) and token in current:
                current = current[token]
            elif isinstance(current, list) and token.isdigit() and int(token) < len(current):
                current = current[int(token)]
            else:
                raise BrokenReferenceError(reference, self._describe_missing(reference))
        return current

    def resolve_object(self, node: Any) -> Any:
        """Resolve ``node`` if it is a reference object, following chains."""
        seen: set[str] = set()
        while isinstance(node, dict) and '$ref' in node:
            reference = node['$ref']
            if reference in seen:
                raise BrokenReferenceError(reference, 'circular reference chain')
            seen.add(reference)
            node = self.resolve(reference)
        return node

    def _describe_missing(self, reference: str) -> str:
        if reference.startswith(SCHEMAS_PREFIX):
            available = ', '.join(sorted(self.schemas)) or 'none'
            return f'schema not found in components.schemas (available: {available})'
        return 'pointer does not resolve within the document'
