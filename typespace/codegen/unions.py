"""Flattening of ``oneOf`` / ``anyOf`` members into tagged variants.

Given the members of a union, :func:`flatten_union` decides:

- whether every member is an object carrying a single-value enum field under
  one shared name (the **tag**);
- whether, once the tag is removed, every non-unit member has exactly one
  field and they all share its name (the **content** field);
- the shape of each variant: unit, content, struct or direct.

Members that are not objects (or unions whose tag cannot be inferred) become an
untagged union: named members are used directly, anonymous objects become
struct variants. Two members whose variant names sanitize identically raise
:class:`~typespace.exceptions.NameCollisionError`.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from typespace.codegen.naming import type_name
from typespace.codegen.registry import (
    AllOfType,
    AnyOfType,
    ArrayType,
    BasicType,
    EnumType,
    MapType,
    ObjectType,
    OneOfType,
    OptionalType,
    SchemaData,
    TypeId,
)
from typespace.exceptions import NameCollisionError

if TYPE_CHECKING:
    from typespace.codegen.registry import TypeEntry, TypeRegistry

logger = logging.getLogger(__name__)

__all__ = ['VariantShape', 'Variant', 'FlattenedUnion', 'flatten_union']


class VariantShape(str, Enum):
    UNIT = 'unit'
    CONTENT = 'content'
    STRUCT = 'struct'
    DIRECT = 'direct'


@dataclass
class Variant:
    """One variant of a flattened union.

    Attributes:
        name: PascalCase variant name, unique within the union.
        member: The member entry the variant was built from.
        shape: How the payload is carried.
        class_name: Name of the generated variant class; ``None`` for direct
            variants, which reuse the member's own type.
        tag_value: The discriminant literal, for tagged unions.
        fields: Payload fields by wire name (content and struct variants).
    """

    name: str
    member: TypeId
    shape: VariantShape
    class_name: str | None = None
    tag_value: str | None = None
    fields: dict[str, TypeId] = field(default_factory=dict)
    field_data: dict[str, SchemaData] = field(default_factory=dict)
    required: frozenset[str] = frozenset()


@dataclass
class FlattenedUnion:
    tag: str | None
    content: str | None
    variants: list[Variant]
    kind: TypeId | None = None
    degraded: bool = False

    @property
    def tagged(self) -> bool:
        return self.tag is not None

    def dependencies(self) -> list[TypeId]:
        """Entries referenced by the emitted union and its variant classes."""
        result: list[TypeId] = []
        for variant in self.variants:
            if variant.shape is VariantShape.DIRECT:
                result.append(variant.member)
            else:
                result.extend(variant.fields.values())
        if self.kind is not None:
            result.append(self.kind)
        return list(dict.fromkeys(result))


_KIND_NAMES = {
    ArrayType: 'array',
    MapType: 'map',
    OptionalType: 'optional',
    EnumType: 'enum',
    ObjectType: 'object',
    OneOfType: 'one of',
    AnyOfType: 'any of',
    AllOfType: 'all of',
}


def flatten_union(registry: 'TypeRegistry', entry: 'TypeEntry') -> FlattenedUnion:
    """Flatten the members of a ``OneOfType`` / ``AnyOfType`` entry.

    Args:
        registry: The registry holding ``entry`` and its members.
        entry: The union entry; its details must already be back-filled.

    Returns:
        The flattened union.

    Raises:
        NameCollisionError: If two members produce the same variant name.
    """
    union_name = entry.name or type_name(entry.hint or 'union')
    members = _unique_members(registry, entry.details.members)
    objects = [registry.details(member) for member in members]

    tag = None
    if members and all(isinstance(details, ObjectType) for details in objects):
        tag = _find_tag(registry, objects)

    if tag is None:
        degraded = _looks_discriminated(registry, objects)
        if degraded:
            logger.warning(
                f'Union {union_name} ({entry.path}): no discriminant shared by every '
                f'member, falling back to untagged struct variants'
            )
        variants = _untagged_variants(registry, union_name, members, entry.path)
        return FlattenedUnion(None, None, variants, degraded=degraded)

    content = _find_content(tag, objects)
    variants = []
    for member, details in zip(members, objects):
        tag_value = registry.details(details.fields[tag]).values[0]
        remaining = {
            wire: type_id for wire, type_id in details.fields.items() if wire != tag
        }
        if not remaining:
            shape = VariantShape.UNIT
        elif content is not None:
            shape = VariantShape.CONTENT
        else:
            shape = VariantShape.STRUCT

        variants.append(
            Variant(
                name=type_name(tag_value),
                member=member,
                shape=shape,
                tag_value=tag_value,
                fields=remaining,
                field_data={
                    wire: data
                    for wire, data in details.field_data.items()
                    if wire in remaining
                },
                required=details.required - {tag},
            )
        )

    _check_unique(union_name, variants, registry)
    for variant in variants:
        variant.class_name = registry.unique_name(
            type_name(f'{union_name} {variant.name}'), f'{entry.path}#{variant.tag_value}'
        )

    kind = registry.define_synthetic(
        f'{union_name} type',
        EnumType(
            [variant.tag_value for variant in variants],
            SchemaData(description=f'The kinds of {union_name}.'),
        ),
        f'{entry.path}#kind',
    )
    return FlattenedUnion(tag, content, variants, kind=kind)


# =============================================================================
# Detection
# =============================================================================


def _unique_members(registry: 'TypeRegistry', members: list[TypeId]) -> list[TypeId]:
    seen: set[TypeId] = set()
    result = []
    for member in members:
        resolved = registry.resolve(member)
        if resolved in seen:
            continue
        seen.add(resolved)
        result.append(member)
    return result


def _single_value_fields(registry: 'TypeRegistry', details: ObjectType) -> list[str]:
    return [
        wire
        for wire, type_id in details.fields.items()
        if isinstance(enum := registry.details(type_id), EnumType) and len(enum.values) == 1
    ]


def _find_tag(registry: 'TypeRegistry', objects: list[ObjectType]) -> str | None:
    """Pick the shared single-value field that tells the members apart.

    A shared field whose literal repeats across members (a version marker,
    say) is only used when no other candidate separates them; the duplicate
    variant names then surface as a collision.
    """
    candidates = [_single_value_fields(registry, details) for details in objects]
    shared = [
        wire for wire in candidates[0] if all(wire in fields for fields in candidates[1:])
    ]
    for wire in shared:
        values = [registry.details(details.fields[wire]).values[0] for details in objects]
        if len(set(values)) == len(values):
            return wire
    return shared[0] if shared else None


def _find_content(tag: str, objects: list[ObjectType]) -> str | None:
    names = set()
    for details in objects:
        remaining = [wire for wire in details.fields if wire != tag]
        if not remaining:
            continue
        if len(remaining) != 1:
            return None
        names.add(remaining[0])
    return names.pop() if len(names) == 1 else None


def _looks_discriminated(registry: 'TypeRegistry', objects: list) -> bool:
    """Whether all members are objects sharing an enum field that failed as a tag."""
    if len(objects) < 2 or not all(isinstance(details, ObjectType) for details in objects):
        return False
    shared = set(objects[0].fields)
    for details in objects[1:]:
        shared &= set(details.fields)
    return any(
        isinstance(registry.details(details.fields[wire]), EnumType)
        for wire in shared
        for details in objects
    )


# =============================================================================
# Variants
# =============================================================================


def _untagged_variants(
    registry: 'TypeRegistry', union_name: str, members: list[TypeId], path: str
) -> list[Variant]:
    variants = []
    for index, member in enumerate(members):
        entry = registry[member]
        details = registry.details(member)

        if isinstance(details, ObjectType) and entry.component is None and not entry.synthetic:
            name = _struct_variant_name(registry, details, index)
            variants.append(
                Variant(
                    name=name,
                    member=member,
                    shape=VariantShape.STRUCT,
                    fields=dict(details.fields),
                    field_data=dict(details.field_data),
                    required=details.required,
                )
            )
            continue

        variants.append(
            Variant(name=_direct_variant_name(registry, member), member=member, shape=VariantShape.DIRECT)
        )

    _check_unique(union_name, variants, registry)
    for variant in variants:
        if variant.shape is not VariantShape.STRUCT:
            continue
        class_name = type_name(f'{union_name} {variant.name}')
        if registry[variant.member].name == class_name:
            # The inline member was already named after this variant.
            variant.class_name = class_name
        else:
            variant.class_name = registry.unique_name(class_name, f'{path}#{variant.name}')
    return variants


def _struct_variant_name(registry: 'TypeRegistry', details: ObjectType, index: int) -> str:
    for type_id in details.fields.values():
        enum = registry.details(type_id)
        if isinstance(enum, EnumType) and len(enum.values) == 1:
            return type_name(enum.values[0])
    if len(details.fields) == 1:
        return type_name(next(iter(details.fields)))
    return f'Variant{index}'


def _direct_variant_name(registry: 'TypeRegistry', member: TypeId) -> str:
    entry = registry[member]
    if entry.name:
        return entry.name

    details = registry.details(member)
    if isinstance(details, BasicType):
        return type_name(details.format or details.kind)
    for kind, label in _KIND_NAMES.items():
        if isinstance(details, kind) and label:
            return type_name(label)
    return type_name(entry.hint or 'value')


def _check_unique(union_name: str, variants: list[Variant], registry: 'TypeRegistry') -> None:
    seen: dict[str, Variant] = {}
    for variant in variants:
        previous = seen.get(variant.name)
        if previous is not None:
            raise NameCollisionError(
                f'{union_name}.{variant.name}',
                registry[previous.member].path,
                registry[variant.member].path,
            )
        seen[variant.name] = variant
