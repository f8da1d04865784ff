"""Collection of the operations declared under ``paths``.

Every request body, 2xx JSON response and path/query parameter schema is
selected through the registry and added as an operation root, so that
unclassifiable shapes used by an operation are reported before emission.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from typespace.codegen.naming import field_name, type_name
from typespace.codegen.registry import ArrayType, ObjectType, TypeId, TypeRegistry
from typespace.codegen.schema import SchemaResolver
from typespace.codegen.utils import json_pointer_escape
from typespace.exceptions import EndpointGenerationError

logger = logging.getLogger(__name__)

__all__ = [
    'HTTP_METHODS',
    'JSON_CONTENT_TYPES',
    'OperationParameter',
    'Operation',
    'OperationCollector',
]

JSON_CONTENT_TYPES = {'application/json', 'text/json'}

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'patch', 'head', 'options')

DEFAULT_TAG = 'default'

PAGE_TOKEN = 'page_token'


@dataclass
class OperationParameter:
    name: str
    attr: str
    location: str
    required: bool
    type_id: TypeId
    description: str | None = None


@dataclass
class Operation:
    """One HTTP operation of the document.

    Attributes:
        operation_id: The document's operationId (or one derived from the route).
        method: Lowercase HTTP method.
        path: The templated URL path.
        tag: Resource the operation is grouped under.
        name: Python method name, unique within the tag.
        parameters: Path and query parameters, path parameters first.
        body: JSON request body type.
        response: 2xx JSON response type.
    """

    operation_id: str
    method: str
    path: str
    tag: str
    name: str
    parameters: list[OperationParameter] = field(default_factory=list)
    body: TypeId | None = None
    response: TypeId | None = None
    description: str | None = None
    deprecated: bool = False

    @property
    def path_parameters(self) -> list[OperationParameter]:
        return [p for p in self.parameters if p.location == 'path']

    @property
    def query_parameters(self) -> list[OperationParameter]:
        return [p for p in self.parameters if p.location == 'query']

    @property
    def origin(self) -> str:
        return f'{self.method.upper()} {self.path}'

    def page_item(self, registry: TypeRegistry) -> TypeId | None:
        """Return the item type when the operation lists a page of results.

        A paginated operation takes a ``page_token`` query parameter and
        returns an object with an ``items`` array and a ``next_page`` token.
        """
        if self.response is None:
            return None
        if not any(p.name == PAGE_TOKEN for p in self.query_parameters):
            return None
        page = registry.details(self.response)
        if not isinstance(page, ObjectType) or 'next_page' not in page.fields:
            return None
        items = page.fields.get('items')
        if items is None:
            return None
        array = registry.details(items)
        return array.element if isinstance(array, ArrayType) else None


class OperationCollector:
    """Builds :class:`Operation` records and registers their schemas.

    Example:
        >>> collector = OperationCollector(resolver, registry)
        >>> operations = collector.collect()
    """

    def __init__(self, resolver: SchemaResolver, registry: TypeRegistry):
        self.resolver = resolver
        self.registry = registry
        self._names: dict[str, set[str]] = {}

    def collect(self) -> list[Operation]:
        operations = []
        paths = self.resolver.document.get('paths') or {}
        for path, path_item in paths.items():
            path_item = self.resolver.resolve_object(path_item)
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue
                built = self._operation(path, method, operation, path_item)
                if built is not None:
                    operations.append(built)
        logger.debug(f'Collected {len(operations)} operations')
        return operations

    def _operation(
        self,
        path: str,
        method: str,
        operation: dict[str, Any],
        path_item: dict[str, Any],
    ) -> Operation | None:
        pointer = f'#/paths/{json_pointer_escape(path)}/{method}'
        operation_id = operation.get('operationId') or f'{method} {path}'
        tags = operation.get('tags') or [DEFAULT_TAG]
        tag = str(tags[0])

        body = self._request_body(operation, operation_id, pointer)
        if body is False:
            logger.warning(
                f'Skipping {method.upper()} {path}: request body is not JSON'
            )
            return None

        result = Operation(
            operation_id=operation_id,
            method=method,
            path=path,
            tag=tag,
            name=self._method_name(tag, operation_id),
            body=body,
            description=operation.get('summary') or operation.get('description'),
            deprecated=bool(operation.get('deprecated')),
        )
        result.parameters = self._parameters(operation, path_item, result, pointer)
        result.response = self._response(operation, operation_id, pointer)

        for type_id in [result.body, result.response] + [p.type_id for p in result.parameters]:
            if type_id is not None:
                self.registry.add_root(type_id, result.origin, operation=True)

        missing = {
            p.name for p in result.path_parameters
        } ^ set(_placeholders(path))
        if missing:
            raise EndpointGenerationError(
                operation_id,
                method=method,
                path=path,
                reason=f'path parameters do not match the template: {", ".join(sorted(missing))}',
            )
        return result

    def _method_name(self, tag: str, operation_id: str) -> str:
        taken = self._names.setdefault(tag, set())
        base = field_name(operation_id)
        name = base
        counter = 2
        while name in taken:
            name = f'{base}_{counter}'
            counter += 1
        taken.add(name)
        return name

    def _parameters(
        self,
        operation: dict[str, Any],
        path_item: dict[str, Any],
        result: Operation,
        pointer: str,
    ) -> list[OperationParameter]:
        # Operation-level parameters override path-level ones with the same name and location.
        merged: dict[tuple[str, str], tuple[dict[str, Any], str]] = {}
        path_pointer = pointer.rsplit('/', 1)[0]
        for index, raw in enumerate(path_item.get('parameters') or []):
            param = self.resolver.resolve_object(raw)
            merged[(param.get('name'), param.get('in'))] = (param, f'{path_pointer}/parameters/{index}')
        for index, raw in enumerate(operation.get('parameters') or []):
            param = self.resolver.resolve_object(raw)
            merged[(param.get('name'), param.get('in'))] = (param, f'{pointer}/parameters/{index}')

        taken = {'self', 'body'}
        parameters = []
        for (name, location), (param, param_pointer) in merged.items():
            if location not in ('path', 'query'):
                logger.debug(f'{result.origin}: ignoring {location} parameter {name}')
                continue
            type_id = self.registry.select(
                None,
                param.get('schema') or {'type': 'string'},
                f'{result.operation_id} {name}',
                f'{param_pointer}/schema',
            )
            attr = field_name(name)
            while attr in taken:
                attr = f'{attr}_'
            taken.add(attr)
            parameters.append(
                OperationParameter(
                    name=name,
                    attr=attr,
                    location=location,
                    required=location == 'path' or bool(param.get('required')),
                    type_id=type_id,
                    description=param.get('description'),
                )
            )
        return sorted(parameters, key=lambda p: p.location != 'path')

    def _request_body(
        self, operation: dict[str, Any], operation_id: str, pointer: str
    ) -> TypeId | None | bool:
        raw = operation.get('requestBody')
        if raw is None:
            return None
        body = self.resolver.resolve_object(raw)
        content = body.get('content') or {}
        media_type = _json_media_type(content)
        if media_type is None:
            return False if content else None

        content_type, media = media_type
        return self.registry.select(
            None,
            media.get('schema') or {},
            f'{type_name(operation_id)} request',
            f'{pointer}/requestBody/content/{json_pointer_escape(content_type)}/schema',
        )

    def _response(
        self, operation: dict[str, Any], operation_id: str, pointer: str
    ) -> TypeId | None:
        responses = operation.get('responses') or {}
        # YAML loads bare status codes as integers.
        by_status = {str(code): response for code, response in responses.items()}
        for status in sorted(by_status):
            if not status.startswith('2'):
                continue
            response = self.resolver.resolve_object(by_status[status])
            media_type = _json_media_type((response or {}).get('content') or {})
            if media_type is None:
                continue
            content_type, media = media_type
            if not media.get('schema'):
                continue
            return self.registry.select(
                None,
                media['schema'],
                f'{type_name(operation_id)} response',
                f'{pointer}/responses/{status}/content/{json_pointer_escape(content_type)}/schema',
            )
        return None


def _json_media_type(content: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    for content_type, media in content.items():
        if content_type in JSON_CONTENT_TYPES or content_type.endswith('+json'):
            return content_type, media or {}
    return None


def _placeholders(path: str) -> list[str]:
    names = []
    start = path.find('{')
    while start != -1:
        end = path.find('}', start)
        if end == -1:
            break
        names.append(path[start + 1:end])
        start = path.find('{', end)
    return names
