"""Identifier sanitization for generated code.

Every name that reaches the generated package (class names, field names,
enum members, method names) goes through :func:`sanitize`. The mapping is pure
and idempotent: ``sanitize(sanitize(x), role) == sanitize(x, role)``.

Whenever the sanitized identifier differs from the wire name the emitter adds
an explicit alias so the original key is still read and written.
"""

import keyword
import re
from enum import Enum

from typespace.codegen.utils import remove_accents

__all__ = [
    'Role',
    'sanitize',
    'field_name',
    'type_name',
    'member_name',
    'split_words',
    'RESERVED_FIELD_NAMES',
    'RESERVED_TYPE_NAMES',
    'RESERVED_MEMBER_NAMES',
]


class Role(str, Enum):
    TYPE = 'type'
    FIELD = 'field'
    MEMBER = 'member'


# Names pydantic.BaseModel and the runtime base classes define on every model.
_MODEL_ATTRIBUTES = frozenset(
    {
        'construct',
        'copy',
        'dict',
        'drop_nulls',
        'json',
        'model_config',
        'model_fields',
        'schema',
        'serialize_non_empty',
        'split_groups',
        'validate',
    }
)

# Names used in field annotations; a field of the same name would shadow them in the class body.
_ANNOTATION_NAMES = frozenset({'bool', 'date', 'datetime', 'dict', 'float', 'int', 'list', 'str'})

RESERVED_FIELD_NAMES = frozenset(keyword.kwlist) | _MODEL_ATTRIBUTES | _ANNOTATION_NAMES

# Names imported into (or defined by) every generated types module.
RESERVED_TYPE_NAMES = frozenset(
    {
        'None',
        'True',
        'False',
        'Annotated',
        'Any',
        'ApiEnum',
        'ApiModel',
        'ClassVar',
        'Field',
        'FlattenedModel',
        'Literal',
        'RootModel',
        'TaggedUnion',
        'Union',
    }
)

RESERVED_MEMBER_NAMES = frozenset({'NOOP', 'FALLTHROUGH_STRING'})

_RESERVED = {
    Role.TYPE: RESERVED_TYPE_NAMES,
    Role.FIELD: RESERVED_FIELD_NAMES,
    Role.MEMBER: RESERVED_MEMBER_NAMES,
}

_NUMERIC_NAMES = {'+1': 'plus_one', '-1': 'minus_one'}

# Casing artifacts around embedded digits and acronyms.
_RESPLITS = {
    'i_pv4': 'ipv4',
    'i_pv6': 'ipv6',
    'ipv_4': 'ipv4',
    'ipv_6': 'ipv6',
    'vpc_4': 'vpc4',
    'vpc_6': 'vpc6',
}

_SIGILS = '$@_'

# Already in enum member form, e.g. VALUE_3D or READ_ONLY_1.
_CANONICAL_MEMBER = re.compile(r'[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*')

_PREFIXES = {Role.TYPE: 'Type', Role.FIELD: 'field', Role.MEMBER: 'VALUE'}
_EMPTY = {Role.TYPE: 'Unnamed', Role.FIELD: 'field', Role.MEMBER: 'EMPTY'}


def split_words(name: str) -> list[str]:
    """Split a raw name into lowercase words.

    camelCase, PascalCase, acronyms, hyphens, spaces and punctuation all act as
    word boundaries; a digit following a letter does not.
    """
    text = remove_accents(name)
    text = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', text)
    text = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', text)
    text = re.sub(r'[^A-Za-z0-9]+', '_', text).strip('_').lower()
    for artifact, fixed in _RESPLITS.items():
        text = re.sub(rf'(?:^|(?<=_)){artifact}(?=_|$)', fixed, text)
    return [word for word in text.split('_') if word]


def _case(words: list[str], role: Role) -> str:
    if not words:
        return _EMPTY[role]

    if role is Role.TYPE:
        cased = ''.join(word[0].upper() + word[1:] for word in words)
    elif role is Role.MEMBER:
        cased = '_'.join(words).upper()
    else:
        cased = '_'.join(words)

    if cased[0].isdigit():
        separator = '' if role is Role.TYPE else '_'
        cased = f'{_PREFIXES[role]}{separator}{cased}'
    return cased


def sanitize(raw_name: str, role: Role = Role.FIELD) -> str:
    """Map an arbitrary schema name to a valid Python identifier.

    Args:
        raw_name: The name as it appears in the OpenAPI document.
        role: What the identifier names: a class, a field or an enum member.

    Returns:
        A valid, non-reserved identifier in the canonical casing for the role.
    """
    reserved = _RESERVED[role]
    name = raw_name.strip()

    if name in _NUMERIC_NAMES:
        return _case(_NUMERIC_NAMES[name].split('_'), role)

    name = name.lstrip(_SIGILS)
    if name in reserved:
        return f'{name}_'
    # Already carries the reserved-word suffix.
    if name.endswith('_') and name[:-1] in reserved:
        return name
    if role is Role.MEMBER and _CANONICAL_MEMBER.fullmatch(name):
        return name

    cased = _case(split_words(name), role)
    if cased in reserved:
        return f'{cased}_'
    return cased


def field_name(raw_name: str) -> str:
    return sanitize(raw_name, Role.FIELD)


def type_name(raw_name: str) -> str:
    return sanitize(raw_name, Role.TYPE)


def member_name(raw_name: str) -> str:
    return sanitize(raw_name, Role.MEMBER)
