"""Type registry for managing discovered types during code generation.

The registry is an arena of :class:`TypeEntry` nodes addressed by
:data:`TypeId`. Every schema node that reaches code generation passes through
:meth:`TypeRegistry.select`, which returns the id of an existing equivalent
entry when there is one (same resolved ``$ref``, or same name and structure)
and classifies and inserts a new entry otherwise.

Cycles are broken by inserting a :class:`Placeholder` entry for a referenced
component before its children are classified and back-filling it afterwards.
A registry lives for a single generation run; nothing in it is global.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NewType

from typespace.codegen.naming import type_name
from typespace.codegen.schema import SCHEMAS_PREFIX, SchemaResolver, schema_pointer
from typespace.codegen.utils import json_pointer_unescape
from typespace.exceptions import NameCollisionError

if TYPE_CHECKING:
    from typespace.codegen.unions import FlattenedUnion

logger = logging.getLogger(__name__)

__all__ = [
    'TypeId',
    'SchemaData',
    'BasicType',
    'EnumType',
    'ObjectType',
    'OneOfType',
    'AnyOfType',
    'AllOfType',
    'ArrayType',
    'MapType',
    'OptionalType',
    'NamedType',
    'ComponentSchema',
    'Placeholder',
    'UnknownType',
    'TypeDetails',
    'TypeEntry',
    'TypeRegistry',
    'CLASS_KINDS',
]

TypeId = NewType('TypeId', int)


# =============================================================================
# Type details
# =============================================================================


@dataclass(frozen=True)
class SchemaData:
    """Metadata carried from a schema node to the emitted declaration."""

    description: str | None = None
    default: Any = None
    format: str | None = None
    title: str | None = None

    @classmethod
    def from_schema(cls, schema: dict[str, Any]) -> 'SchemaData':
        description = schema.get('description') or schema.get('title')
        return cls(
            description=description.strip() if isinstance(description, str) else None,
            default=schema.get('default'),
            format=schema.get('format'),
            title=schema.get('title'),
        )


@dataclass
class BasicType:
    kind: str
    data: SchemaData = field(default_factory=SchemaData)

    @property
    def format(self) -> str | None:
        return self.data.format


@dataclass
class EnumType:
    values: list[str]
    data: SchemaData = field(default_factory=SchemaData)


@dataclass
class ObjectType:
    """A product type; ``fields`` maps wire names to field types."""

    fields: dict[str, TypeId]
    data: SchemaData = field(default_factory=SchemaData)
    field_data: dict[str, SchemaData] = field(default_factory=dict)
    required: frozenset[str] = frozenset()


@dataclass
class OneOfType:
    members: list[TypeId]
    data: SchemaData = field(default_factory=SchemaData)
    union: 'FlattenedUnion | None' = None


@dataclass
class AnyOfType:
    members: list[TypeId]
    data: SchemaData = field(default_factory=SchemaData)
    union: 'FlattenedUnion | None' = None


@dataclass
class AllOfType:
    members: list[TypeId]
    data: SchemaData = field(default_factory=SchemaData)


@dataclass
class ArrayType:
    element: TypeId


@dataclass
class MapType:
    value: TypeId


@dataclass
class OptionalType:
    inner: TypeId


@dataclass
class NamedType:
    """A public name for an entry structurally identical to ``target``."""

    target: TypeId


@dataclass
class ComponentSchema:
    """A component schema whose body is a bare ``$ref`` to ``target``."""

    target: TypeId
    data: SchemaData = field(default_factory=SchemaData)


@dataclass
class Placeholder:
    pass


@dataclass
class UnknownType:
    data: SchemaData = field(default_factory=SchemaData)


TypeDetails = (
    BasicType
    | EnumType
    | ObjectType
    | OneOfType
    | AnyOfType
    | AllOfType
    | ArrayType
    | MapType
    | OptionalType
    | NamedType
    | ComponentSchema
    | Placeholder
    | UnknownType
)

# Kinds that are emitted as classes and therefore referenced by name.
CLASS_KINDS = (EnumType, ObjectType, OneOfType, AnyOfType, AllOfType)

_ALIAS_KINDS = (NamedType, ComponentSchema)


@dataclass
class TypeEntry:
    """A node of the registry.

    Attributes:
        id: The entry's handle.
        name: Sanitized type name; ``None`` for anonymous primitive shapes.
        details: What the entry is.
        path: JSON pointer of the schema node the entry was created from.
        hint: The naming context the entry was discovered under.
        component: Raw component name for ``components.schemas`` entries.
        synthetic: Whether the entry was created by the generator itself.
    """

    id: TypeId
    name: str | None
    details: TypeDetails
    path: str
    hint: str = ''
    component: str | None = None
    synthetic: bool = False


@dataclass
class Root:
    type_id: TypeId
    origin: str
    operation: bool = False


# =============================================================================
# Registry
# =============================================================================


class TypeRegistry:
    """Arena of discovered types for one generation run.

    Example:
        >>> registry = TypeRegistry(SchemaResolver(document))
        >>> disk = registry.select_component('Disk')
        >>> registry.select(None, {'$ref': '#/components/schemas/Disk'}) == disk
        True
    """

    def __init__(self, resolver: SchemaResolver):
        from typespace.codegen.classifier import SchemaClassifier

        self.resolver = resolver
        self.classifier = SchemaClassifier(self)
        self._entries: list[TypeEntry] = []
        self._by_ref: dict[str, TypeId] = {}
        self._by_signature: dict[tuple, TypeId] = {}
        # name -> document path of whoever claimed it
        self._names: dict[str, str] = {}
        self._named: dict[str, TypeId] = {}
        self._roots: list[Root] = []
        # Component names win over names synthesized for inline schemas.
        self._reserved = {type_name(name) for name in resolver.schemas}

    # -------------------------------------------------------------------------
    # Arena access
    # -------------------------------------------------------------------------

    def __getitem__(self, type_id: TypeId) -> TypeEntry:
        return self._entries[type_id]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TypeEntry]:
        return iter(self._entries)

    @property
    def roots(self) -> list[Root]:
        return list(self._roots)

    def add_root(self, type_id: TypeId, origin: str, operation: bool = False) -> None:
        self._roots.append(Root(type_id, origin, operation))

    def resolve(self, type_id: TypeId) -> TypeId:
        """Follow alias entries (``NamedType``, ``ComponentSchema``) to a concrete one."""
        seen = set()
        while isinstance(self._entries[type_id].details, _ALIAS_KINDS):
            if type_id in seen:
                break
            seen.add(type_id)
            type_id = self._entries[type_id].details.target
        return type_id

    def details(self, type_id: TypeId) -> TypeDetails:
        return self._entries[self.resolve(type_id)].details

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select(
        self,
        name: str | None,
        schema: Any,
        context: str = '',
        path: str = '',
    ) -> TypeId:
        """Return the TypeId for a schema node, classifying it if it is new.

        Args:
            name: Explicit name for the type. Anonymous inline schemas pass
                  ``None`` and are named from ``context``.
            schema: The raw schema node, inline or a ``$ref``.
            context: Naming hint for anonymous schemas, e.g. ``'Disk state'``.
            path: JSON pointer of ``schema`` within the document.

        Returns:
            The id of the (possibly pre-existing) entry.

        Raises:
            BrokenReferenceError: If a ``$ref`` does not resolve.
            NameCollisionError: If two different schemas claim the same name.
        """
        schema = self.classifier.normalize(schema)

        reference = schema.get('$ref')
        if isinstance(reference, str):
            target = self._select_reference(reference, context)
            if name is not None and type_name(name) != self._entries[target].name:
                details = ComponentSchema(target, SchemaData.from_schema(schema))
                return self._select_named(name, details, path or reference)
            return target

        if name is not None:
            return self._select_named(name, schema, path)

        return self._select_anonymous(schema, context, path)

    def select_component(self, raw_name: str) -> TypeId:
        """Return the TypeId for ``#/components/schemas/<raw_name>``."""
        return self._select_reference(schema_pointer(raw_name), raw_name)

    def _select_reference(self, reference: str, context: str) -> TypeId:
        if reference in self._by_ref:
            return self._by_ref[reference]

        target = self.resolver.resolve(reference)

        if not reference.startswith(SCHEMAS_PREFIX):
            # Parameters, request bodies... are plain inline schemas elsewhere.
            type_id = self.select(None, target, context, reference)
            self._by_ref[reference] = type_id
            return type_id

        component = json_pointer_unescape(reference[len(SCHEMAS_PREFIX):])
        return self._select_named(component, target, reference, reference=reference)

    def _select_named(
        self,
        raw_name: str,
        schema: dict[str, Any] | TypeDetails,
        path: str,
        reference: str | None = None,
    ) -> TypeId:
        name = type_name(raw_name)
        claimed_by = self._names.get(name)

        type_id = self._insert(name, Placeholder(), path, hint=raw_name)
        entry = self._entries[type_id]
        if reference is not None:
            entry.component = raw_name
            self._by_ref[reference] = type_id
        if claimed_by is None:
            self._named[name] = type_id

        if isinstance(schema, dict):
            details = self.classifier.classify(schema, raw_name, path)
        else:
            details = schema

        if claimed_by is not None:
            existing = self._named.get(name)
            if existing is None or self._signature(
                self._entries[existing].details
            ) != self._signature(details):
                raise NameCollisionError(name, claimed_by, path)
            # Same name, same shape: keep the first entry.
            logger.debug(f'{path} deduplicated into {claimed_by}')
            entry.name = None
            entry.details = NamedType(existing)
            if reference is not None:
                self._by_ref[reference] = existing
            return existing

        self._backfill(type_id, details)
        return type_id

    def _select_anonymous(self, schema: dict[str, Any], context: str, path: str) -> TypeId:
        details = self.classifier.classify(schema, context, path)
        signature = self._signature(details)

        if not isinstance(details, CLASS_KINDS):
            if signature in self._by_signature:
                return self._by_signature[signature]
            type_id = self._insert(None, details, path, hint=context)
            if not isinstance(details, UnknownType):
                self._by_signature[signature] = type_id
            return type_id

        name = self.unique_name(type_name(context or 'anonymous'), path, reuse=signature)
        if name in self._named:
            return self._named[name]

        type_id = self._insert(name, Placeholder(), path, hint=context)
        self._named[name] = type_id
        self._backfill(type_id, details)
        return type_id

    def define_synthetic(self, base: str, details: TypeDetails, path: str) -> TypeId:
        """Insert a generator-created type under a unique name derived from ``base``."""
        name = self.unique_name(type_name(base), path, reuse=self._signature(details))
        if name in self._named:
            return self._named[name]
        type_id = self._insert(name, Placeholder(), path, hint=base)
        self._entries[type_id].synthetic = True
        self._named[name] = type_id
        self._backfill(type_id, details)
        return type_id

    def unique_name(self, base: str, source: str, reuse: tuple | None = None) -> str:
        """Claim ``base`` (or ``base1``, ``base2``...) for ``source``.

        Component names are never handed out. When ``reuse`` is given and an
        entry already holding a candidate name has that signature, the
        candidate is returned without being claimed again.
        """
        candidate = base
        counter = 1
        while candidate in self._names or candidate in self._reserved:
            existing = self._named.get(candidate)
            if (
                reuse is not None
                and existing is not None
                and not self._entries[existing].component
                and self._signature(self._entries[existing].details) == reuse
            ):
                return candidate
            candidate = f'{base}{counter}'
            counter += 1
        self._names[candidate] = source
        return candidate

    def _insert(
        self, name: str | None, details: TypeDetails, path: str, hint: str = ''
    ) -> TypeId:
        type_id = TypeId(len(self._entries))
        if name is not None:
            self._names.setdefault(name, path)
        self._entries.append(TypeEntry(type_id, name, details, path, hint=hint))
        logger.debug(f'Registered #{type_id} {name or "<anonymous>"} from {path}')
        return type_id

    def _backfill(self, type_id: TypeId, details: TypeDetails) -> None:
        self._entries[type_id].details = details

    def finalize(self) -> None:
        """Flatten every union not flattened yet.

        Runs once classification is complete: while a recursive union is being
        classified its members can still be placeholders. Flattening adds the
        kind enums of tagged unions to the arena. Calling it again only handles
        unions registered since the previous call.
        """
        from typespace.codegen.unions import flatten_union

        for entry in list(self._entries):
            details = entry.details
            if isinstance(details, (OneOfType, AnyOfType)) and details.union is None:
                details.union = flatten_union(self, entry)

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def _signature(self, details: TypeDetails) -> tuple:
        match details:
            case BasicType(kind=kind):
                return ('basic', kind, details.format)
            case EnumType(values=values):
                return ('enum', tuple(values), details.data.default)
            case ObjectType(fields=fields):
                return ('object', tuple(fields.items()))
            case OneOfType(members=members):
                return ('one_of', tuple(members))
            case AnyOfType(members=members):
                return ('any_of', tuple(members))
            case AllOfType(members=members):
                return ('all_of', tuple(members))
            case ArrayType(element=element):
                return ('array', element)
            case MapType(value=value):
                return ('map', value)
            case OptionalType(inner=inner):
                return ('optional', inner)
            case NamedType(target=target) | ComponentSchema(target=target):
                return ('alias', target)
        return ('opaque', id(details))

    def children(self, type_id: TypeId) -> list[TypeId]:
        """Return the entries ``type_id`` refers to in emitted code."""
        match self._entries[type_id].details:
            case ObjectType(fields=fields):
                return list(fields.values())
            case OneOfType() | AnyOfType() as union if union.union is not None:
                return union.union.dependencies()
            case OneOfType(members=members) | AnyOfType(members=members):
                return list(members)
            case AllOfType(members=members):
                return list(members)
            case ArrayType(element=element):
                return [element]
            case MapType(value=value):
                return [value]
            case OptionalType(inner=inner):
                return [inner]
            case NamedType(target=target) | ComponentSchema(target=target):
                return [target]
        return []

    def reachable(self, roots: list[TypeId]) -> list[TypeId]:
        """Return every entry reachable from ``roots``, in discovery order."""
        seen: set[TypeId] = set()
        stack = list(roots)
        while stack:
            type_id = stack.pop()
            if type_id in seen:
                continue
            seen.add(type_id)
            stack.extend(self.children(type_id))
        return sorted(seen)
