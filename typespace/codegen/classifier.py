"""Schema classification.

:class:`SchemaClassifier` maps one raw schema node onto one of the registry's
type details. Rules, in priority order:

1. a bare ``$ref`` becomes a :class:`ComponentSchema` pointing at the target;
2. ``oneOf`` / ``anyOf`` / ``allOf`` become compositions of selected members
   (a composition with a single non-null member plus ``null`` is an optional);
3. ``type: object`` or a ``properties`` map becomes an :class:`ObjectType`
   (or a :class:`MapType` when only ``additionalProperties`` is given);
4. a string ``enum`` (or string ``const``) becomes an :class:`EnumType`;
5. ``type: array`` becomes an :class:`ArrayType`;
6. a primitive ``type`` becomes a :class:`BasicType` carrying its format;
7. anything else is :class:`UnknownType`.

Nullability (``nullable: true`` or a ``type`` list containing ``null``) wraps
the classified shape in an :class:`OptionalType`.
"""

import logging
from typing import TYPE_CHECKING, Any

from typespace.codegen.registry import (
    AllOfType,
    AnyOfType,
    ArrayType,
    BasicType,
    ComponentSchema,
    EnumType,
    MapType,
    ObjectType,
    OneOfType,
    OptionalType,
    SchemaData,
    TypeDetails,
    TypeId,
    UnknownType,
)
from typespace.codegen.utils import json_pointer_escape

if TYPE_CHECKING:
    from typespace.codegen.registry import TypeRegistry

logger = logging.getLogger(__name__)

__all__ = ['SchemaClassifier', 'PRIMITIVE_TYPES', 'HOISTED_FIELDS']

PRIMITIVE_TYPES = ('string', 'integer', 'number', 'boolean')

HOISTED_FIELDS = ('id', 'name', 'description')

_COMPOSITIONS = {'oneOf': OneOfType, 'anyOf': AnyOfType, 'allOf': AllOfType}

# Keys that only document a schema; a $ref carrying them is still a bare $ref.
_ANNOTATION_KEYS = frozenset(
    {'description', 'title', 'example', 'examples', 'readOnly', 'writeOnly', 'deprecated'}
)


def _is_null(schema: Any) -> bool:
    return isinstance(schema, dict) and (
        schema.get('type') == 'null' or schema.get('enum') == [None]
    )


class SchemaClassifier:
    """Classifies raw schema nodes, selecting children through the registry."""

    def __init__(self, registry: 'TypeRegistry'):
        self._registry = registry

    def normalize(self, schema: Any) -> dict[str, Any]:
        """Collapse wrappers that do not change the shape of a schema.

        ``allOf`` with a single member (commonly used to attach a description
        to a ``$ref``) is replaced by that member.
        """
        if not isinstance(schema, dict):
            return {}

        members = schema.get('allOf')
        if (
            isinstance(members, list)
            and len(members) == 1
            and isinstance(members[0], dict)
            and not schema.get('properties')
            and not schema.get('nullable')
        ):
            merged = dict(members[0])
            for key in _ANNOTATION_KEYS | {'default'}:
                if key in schema and '$ref' not in merged:
                    merged.setdefault(key, schema[key])
            return self.normalize(merged)

        if '$ref' in schema and set(schema) - {'$ref'} <= _ANNOTATION_KEYS:
            return {'$ref': schema['$ref']}
        return schema

    def metadata(self, schema: dict[str, Any]) -> SchemaData:
        return SchemaData.from_schema(schema)

    def classify(self, schema: dict[str, Any], context: str, path: str) -> TypeDetails:
        """Classify ``schema`` into type details.

        Args:
            schema: The (normalized) raw schema node.
            context: Naming hint used for anonymous children.
            path: JSON pointer of ``schema`` within the document.

        Returns:
            The classified details. Children are already registered.
        """
        schema = self.normalize(schema)
        data = self.metadata(schema)

        if '$ref' in schema:
            target = self._registry.select(None, schema, context, path)
            return ComponentSchema(target, data)

        if self._is_nullable(schema):
            inner = self._select(self._without_null(schema), context, path)
            return OptionalType(inner)

        for keyword, kind in _COMPOSITIONS.items():
            members = schema.get(keyword)
            if isinstance(members, list) and members:
                return self._classify_composition(
                    schema, keyword, kind, members, context, path, data
                )

        declared = schema.get('type')

        if declared == 'object' or isinstance(schema.get('properties'), dict):
            return self._classify_object(schema, context, path, data)

        if declared in (None, 'string'):
            values = self._enum_values(schema)
            if values is not None:
                return EnumType(values, data)

        if declared == 'array':
            items = schema.get('items')
            if items is None:
                element = self._select({'x-typespace-any': True}, context, path)
            else:
                element = self._select(items, f'{context} item', f'{path}/items')
            return ArrayType(element)

        if declared in PRIMITIVE_TYPES:
            return BasicType(declared, data)

        if isinstance(declared, list):
            # Several non-null primitive types: an untyped JSON value.
            return BasicType('json', data)

        if schema.get('x-typespace-any'):
            return BasicType('json', data)

        logger.debug(f'Unrecognized schema shape at {path or context}')
        return UnknownType(data)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def _classify_composition(
        self,
        schema: dict[str, Any],
        keyword: str,
        kind: type,
        members: list[Any],
        context: str,
        path: str,
        data: SchemaData,
    ) -> TypeDetails:
        present = [
            (index, member) for index, member in enumerate(members) if not _is_null(member)
        ]

        if len(present) < len(members) and len(present) == 1:
            index, member = present[0]
            inner = self._select(member, context, f'{path}/{keyword}/{index}')
            return OptionalType(inner)

        selected: list[TypeId] = []
        for index, member in present:
            member_context = f'{context} {index}' if keyword == 'allOf' else f'{context} variant {index}'
            selected.append(self._select(member, member_context, f'{path}/{keyword}/{index}'))

        details = kind(selected, data)
        if len(present) < len(members):
            # null among several members: the union itself is optional.
            inner = self._registry.define_synthetic(f'{context} value', details, path)
            return OptionalType(inner)
        return details

    def _classify_object(
        self, schema: dict[str, Any], context: str, path: str, data: SchemaData
    ) -> TypeDetails:
        properties = schema.get('properties') or {}
        additional = schema.get('additionalProperties')

        if not properties and (additional is True or isinstance(additional, dict)):
            if additional is True or not additional:
                value = self._select({'x-typespace-any': True}, context, path)
            else:
                value = self._select(
                    additional, f'{context} value', f'{path}/additionalProperties'
                )
            return MapType(value)

        names = [name for name in HOISTED_FIELDS if name in properties]
        names += [name for name in properties if name not in HOISTED_FIELDS]

        fields: dict[str, TypeId] = {}
        field_data: dict[str, SchemaData] = {}
        for name in names:
            prop = properties[name] if isinstance(properties[name], dict) else {}
            fields[name] = self._select(
                prop,
                f'{context} {name}',
                f'{path}/properties/{json_pointer_escape(name)}',
            )
            field_data[name] = self.metadata(prop)

        required = schema.get('required') or []
        return ObjectType(
            fields,
            data,
            field_data=field_data,
            required=frozenset(name for name in required if isinstance(name, str)),
        )

    def _enum_values(self, schema: dict[str, Any]) -> list[str] | None:
        if isinstance(schema.get('const'), str):
            return [schema['const']]

        values = schema.get('enum')
        if not isinstance(values, list) or not values:
            return None
        strings = [value for value in values if value is not None]
        if not strings or not all(isinstance(value, str) for value in strings):
            return None
        return list(dict.fromkeys(strings))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _select(self, schema: Any, context: str, path: str) -> TypeId:
        return self._registry.select(None, schema, context, path)

    def _is_nullable(self, schema: dict[str, Any]) -> bool:
        if schema.get('nullable') is True:
            return True
        declared = schema.get('type')
        return isinstance(declared, list) and 'null' in declared

    def _without_null(self, schema: dict[str, Any]) -> dict[str, Any]:
        stripped = {key: value for key, value in schema.items() if key != 'nullable'}
        declared = schema.get('type')
        if isinstance(declared, list):
            remaining = [value for value in declared if value != 'null']
            if len(remaining) == 1:
                stripped['type'] = remaining[0]
            elif remaining:
                stripped['type'] = remaining
            else:
                stripped.pop('type')
        return stripped
