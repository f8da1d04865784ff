"""Rendering of the type registry as a pydantic types module.

:class:`TypeEmitter` walks the registry from its roots and renders every
reachable declaration as an ``ast`` node:

- objects become :class:`ApiModel` classes whose fields follow the primitive
  widening table (annotation, default and skip-if-empty check per shape);
- enums become :class:`ApiEnum` classes with ``NOOP`` and
  ``FALLTHROUGH_STRING`` members;
- unions become one class per variant plus a :class:`TaggedUnion` root model;
- ``allOf`` compositions become :class:`FlattenedModel` classes;
- named aliases (component ``$ref`` bodies, named primitives) become
  module-level assignments after every class.

Declarations are emitted in dependency order, children first, ties broken by
discovery order. A reference that points back into a class still being
declared (a cycle) is written as a quoted forward reference and the class is
rebuilt at the end of the module.
"""

import ast
import logging
from dataclasses import dataclass, field

from typespace.codegen.ast_utils import (
    ImportCollector,
    _all,
    _ann_assign,
    _assign,
    _attr,
    _call,
    _class,
    _keyword,
    _name,
    _subscript,
    _tuple,
    _union_expr,
)
from typespace.codegen.naming import field_name, member_name
from typespace.codegen.overrides import Override, get_override
from typespace.codegen.registry import (
    CLASS_KINDS,
    AllOfType,
    AnyOfType,
    ArrayType,
    BasicType,
    ComponentSchema,
    EnumType,
    MapType,
    NamedType,
    ObjectType,
    OneOfType,
    OptionalType,
    Placeholder,
    SchemaData,
    TypeId,
    TypeRegistry,
    UnknownType,
)
from typespace.codegen.runtime import SERDE_MODULE_NAME
from typespace.codegen.unions import FlattenedUnion, Variant, VariantShape
from typespace.exceptions import (
    CodeGenerationError,
    TypeGenerationError,
    UnknownSchemaError,
)

logger = logging.getLogger(__name__)

__all__ = ['TypeEmitter', 'Widened', 'enum_members']

_SERDE = f'.{SERDE_MODULE_NAME}'

_UNSIGNED_FORMATS = ('uint', 'uint8', 'uint16', 'uint32', 'uint64')


@dataclass
class Widened:
    """How a field of a given shape is declared.

    Attributes:
        annotation: The field's type annotation.
        default: Default value expression, when not a factory.
        factory: Name of a ``default_factory`` callable.
        check: Name of the empty check used to skip the field on output.
    """

    annotation: ast.expr
    default: ast.expr | None = None
    factory: str | None = None
    check: str | None = None


@dataclass
class _Scope:
    """Tracks imports and forward references while rendering one module."""

    imports: ImportCollector
    types_module: str | None = None
    declared: set[str] | None = None
    forward: bool = False

    def reference(self, name: str) -> ast.expr:
        if self.types_module is not None:
            self.imports.add_import(self.types_module, name)
        elif self.declared is not None and name not in self.declared:
            self.forward = True
        return _name(name)


@dataclass
class _Module:
    classes: list[ast.stmt] = field(default_factory=list)
    aliases: list[ast.stmt] = field(default_factory=list)
    names: list[str] = field(default_factory=list)
    rebuild: list[str] = field(default_factory=list)


def enum_members(values: list[str]) -> list[tuple[str, str]]:
    """Return ``(member name, value)`` pairs, deduplicating sanitized names."""
    seen: dict[str, int] = {}
    members = []
    for value in values:
        if value == '':
            continue
        name = member_name(value)
        if name in seen:
            seen[name] += 1
            name = f'{name}_{seen[name]}'
        else:
            seen[name] = 0
        members.append((name, value))
    return members


class TypeEmitter:
    """Renders a :class:`TypeRegistry` as one types module.

    Example:
        >>> emitter = TypeEmitter(registry)
        >>> module = emitter.emit(title='Oxide Region API')
        >>> source = ast.unparse(module)
    """

    def __init__(self, registry: TypeRegistry):
        self.registry = registry

    # -------------------------------------------------------------------------
    # Module
    # -------------------------------------------------------------------------

    def emit(self, title: str | None = None) -> ast.Module:
        """Render every declaration reachable from the registry roots.

        Raises:
            UnknownSchemaError: If an unclassifiable schema is used by an operation.
            TypeGenerationError: If a declaration cannot be rendered.
            CodeGenerationError: If a placeholder survived classification.
        """
        self.registry.finalize()
        self.check()

        imports = ImportCollector()
        scope = _Scope(imports, declared=set())
        module = _Module()
        emitted_overrides: set[str] = set()

        for type_id in self.order():
            entry = self.registry[type_id]
            override = get_override(entry.name)
            if override is not None:
                self._emit_override(override, module, scope, emitted_overrides)
            elif entry.name and isinstance(entry.details, CLASS_KINDS):
                self._emit_class(type_id, module, scope)
            elif entry.name and not isinstance(entry.details, NamedType):
                self._emit_alias(type_id, module, scope)

        body: list[ast.stmt] = []
        if title:
            body.append(ast.Expr(value=ast.Constant(value=f'Types for {title}.')))
        body.extend(imports.to_ast())
        if module.names:
            body.append(_all(module.names))
        body.extend(module.classes)
        body.extend(module.aliases)
        for name in module.rebuild:
            body.append(ast.Expr(value=_call(_attr(name, 'model_rebuild'))))

        result = ast.Module(body=body, type_ignores=[])
        ast.fix_missing_locations(result)
        logger.debug(f'Emitted {len(module.names)} declarations')
        return result

    def check(self) -> None:
        """Fail on shapes that must not reach the generated code."""
        for entry in self.registry:
            if isinstance(entry.details, Placeholder):
                raise CodeGenerationError(
                    f"Unresolved placeholder for '{entry.name or entry.hint}'",
                    context=entry.path,
                )

        for root in self.registry.roots:
            if not root.operation:
                continue
            for type_id in self.registry.reachable([root.type_id]):
                entry = self.registry[type_id]
                if isinstance(entry.details, UnknownType):
                    raise UnknownSchemaError(
                        entry.name or entry.hint or 'anonymous',
                        entry.path,
                        operation=root.origin,
                    )

    def order(self) -> list[TypeId]:
        """Return reachable entries children first, in discovery order."""
        order: list[TypeId] = []
        seen: set[TypeId] = set()

        def visit(type_id: TypeId) -> None:
            if type_id in seen:
                return
            seen.add(type_id)
            if get_override(self.registry[type_id].name) is None:
                for child in self.registry.children(type_id):
                    visit(child)
            order.append(type_id)

        for root in self.registry.roots:
            visit(root.type_id)
        return order

    # -------------------------------------------------------------------------
    # Type expressions
    # -------------------------------------------------------------------------

    def annotation(
        self, type_id: TypeId, imports: ImportCollector, types_module: str
    ) -> ast.expr:
        """Return the annotation for ``type_id`` as used from another module.

        Named types are imported from ``types_module``.
        """
        return self._expr(type_id, _Scope(imports, types_module=types_module))

    def concrete(self, type_id: TypeId) -> TypeId:
        # Follow aliases, but stop at hand-written declarations.
        seen = set()
        while type_id not in seen:
            seen.add(type_id)
            entry = self.registry[type_id]
            if get_override(entry.name) is not None:
                return type_id
            if not isinstance(entry.details, (NamedType, ComponentSchema)):
                return type_id
            type_id = entry.details.target
        return type_id

    def _expr(self, type_id: TypeId, scope: _Scope) -> ast.expr:
        type_id = self.concrete(type_id)
        entry = self.registry[type_id]
        details = entry.details

        if get_override(entry.name) is not None:
            return scope.reference(entry.name)

        match details:
            case BasicType():
                return self._basic_expr(details, scope)
            case EnumType() | ObjectType() | OneOfType() | AnyOfType() | AllOfType():
                return scope.reference(entry.name)
            case ArrayType(element=element):
                return _subscript('list', self._expr(element, scope))
            case MapType(value=value):
                return _subscript('dict', _tuple([_name('str'), self._expr(value, scope)]))
            case OptionalType(inner=inner):
                return self.optional(self._expr(inner, scope))
            case UnknownType():
                scope.imports.add_import('typing', 'Any')
                return _name('Any')
        raise CodeGenerationError(
            f"Cannot reference '{entry.name or entry.hint}'", context=entry.path
        )

    def _basic_expr(self, details: BasicType, scope: _Scope) -> ast.expr:
        if details.kind == 'integer':
            return _name('int')
        if details.kind == 'number':
            return _name('float')
        if details.kind == 'boolean':
            return _name('bool')
        if details.kind == 'string' and details.format in ('date-time', 'date'):
            name = 'datetime' if details.format == 'date-time' else 'date'
            scope.imports.add_import('datetime', name)
            return _name(name)
        if details.kind == 'json':
            scope.imports.add_import('typing', 'Any')
            return _name('Any')
        return _name('str')

    def optional(self, expr: ast.expr) -> ast.expr:
        if _is_optional(expr) or (isinstance(expr, ast.Name) and expr.id == 'Any'):
            return expr
        return _union_expr([expr, ast.Constant(value=None)])

    # -------------------------------------------------------------------------
    # Widening
    # -------------------------------------------------------------------------

    def widen(
        self,
        type_id: TypeId,
        data: SchemaData,
        scope: _Scope,
        request: bool = False,
    ) -> Widened:
        """Choose annotation, default and empty check for a field."""
        type_id = self.concrete(type_id)
        entry = self.registry[type_id]
        details = entry.details
        none = ast.Constant(value=None)

        if get_override(entry.name) is not None:
            return Widened(self.optional(scope.reference(entry.name)), none, check='none')

        match details:
            case BasicType():
                return self._widen_basic(details, data, scope, request)
            case EnumType(values=values):
                enum = scope.reference(entry.name)
                default = _pick_default(data, details.data)
                members = dict((value, name) for name, value in enum_members(values))
                if isinstance(default, str) and default in members:
                    return Widened(enum, _attr(entry.name, members[default]))
                return Widened(enum, _attr(entry.name, 'NOOP'), check='noop')
            case ObjectType() | OneOfType() | AnyOfType() | AllOfType():
                return Widened(self.optional(scope.reference(entry.name)), none, check='none')
            case ArrayType():
                return Widened(self._expr(type_id, scope), factory='list', check='empty')
            case MapType():
                return Widened(self._expr(type_id, scope), factory='dict', check='empty')
            case OptionalType() | UnknownType():
                return Widened(self.optional(self._expr(type_id, scope)), none, check='none')
        raise CodeGenerationError(
            f"Cannot declare a field of '{entry.name or entry.hint}'", context=entry.path
        )

    def _widen_basic(
        self, details: BasicType, data: SchemaData, scope: _Scope, request: bool
    ) -> Widened:
        annotation = self._basic_expr(details, scope)
        default = _pick_default(data, details.data)
        none = ast.Constant(value=None)

        match details.kind:
            case 'integer':
                if isinstance(default, int) and not isinstance(default, bool) and default:
                    return Widened(annotation, ast.Constant(value=default))
                if (details.format or '') in _UNSIGNED_FORMATS:
                    return Widened(annotation, ast.Constant(value=0))
                return Widened(annotation, ast.Constant(value=0), check='zero')
            case 'number':
                if isinstance(default, (int, float)) and not isinstance(default, bool) and default:
                    return Widened(annotation, ast.Constant(value=float(default)))
                return Widened(annotation, ast.Constant(value=0.0), check='zero')
            case 'boolean':
                if request:
                    # Requests leave unset flags to the server.
                    return Widened(self.optional(annotation), none, check='none')
                return Widened(annotation, ast.Constant(value=default is True))
            case 'json':
                return Widened(annotation, none, check='none')

        if details.format in ('date-time', 'date'):
            return Widened(self.optional(annotation), none, check='none')
        if isinstance(default, str) and default:
            return Widened(annotation, ast.Constant(value=default))
        return Widened(annotation, ast.Constant(value=''), check='empty')

    def _field(
        self,
        wire: str,
        attr: str,
        widened: Widened,
        data: SchemaData | None,
        forward: bool,
    ) -> ast.AnnAssign:
        annotation = widened.annotation
        if forward:
            annotation = ast.Constant(value=ast.unparse(annotation))

        keywords = []
        if widened.factory is not None:
            keywords.append(_keyword('default_factory', _name(widened.factory)))
        elif widened.default is not None and (attr != wire or (data and data.description)):
            keywords.append(_keyword('default', widened.default))
        if attr != wire:
            keywords.append(_keyword('alias', ast.Constant(value=wire)))
        if data is not None and data.description:
            keywords.append(_keyword('description', ast.Constant(value=data.description)))

        if keywords:
            value = _call(_name('Field'), keywords=keywords)
        else:
            value = widened.default
        return _ann_assign(attr, annotation, value)

    def _fields(
        self,
        class_name: str,
        fields: dict[str, TypeId],
        field_data: dict[str, SchemaData],
        scope: _Scope,
        taken: set[str] | None = None,
    ) -> tuple[list[ast.stmt], dict[str, str], bool]:
        """Render object fields; returns statements, skip checks and forward flag."""
        statements = []
        skip: dict[str, str] = {}
        any_forward = False
        taken = set(taken or ())
        request = class_name.endswith('Request')

        for wire, type_id in fields.items():
            attr = _unique_attr(field_name(wire), taken)
            data = field_data.get(wire) or SchemaData()
            scope.forward = False
            widened = self.widen(type_id, data, scope, request=request)
            forward = scope.forward
            any_forward = any_forward or forward
            statement = self._field(wire, attr, widened, data, forward)
            if isinstance(statement.value, ast.Call):
                scope.imports.add_import('pydantic', 'Field')
            statements.append(statement)
            if widened.check is not None:
                skip[attr] = widened.check
        return statements, skip, any_forward

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def _declare(
        self,
        module: _Module,
        scope: _Scope,
        node: ast.ClassDef,
        rebuild: bool = False,
    ) -> None:
        module.classes.append(node)
        module.names.append(node.name)
        scope.declared.add(node.name)
        if rebuild:
            module.rebuild.append(node.name)

    def _emit_override(
        self, override: Override, module: _Module, scope: _Scope, done: set[str]
    ) -> None:
        if override.name in done:
            return
        done.add(override.name)
        for required in override.requires:
            dependency = get_override(required)
            if dependency is not None:
                self._emit_override(dependency, module, scope, done)

        scope.imports.add_imports(override.imports)
        for node in override.to_ast():
            module.classes.append(node)
            if isinstance(node, ast.ClassDef):
                module.names.append(node.name)
                scope.declared.add(node.name)

    def _emit_class(self, type_id: TypeId, module: _Module, scope: _Scope) -> None:
        entry = self.registry[type_id]
        try:
            match entry.details:
                case EnumType():
                    self._emit_enum(entry.name, entry.details, module, scope)
                case ObjectType():
                    self._emit_object(entry.name, entry.details, module, scope)
                case OneOfType(union=union) | AnyOfType(union=union):
                    self._emit_union(entry.name, union, entry.details.data, module, scope)
                case AllOfType():
                    self._emit_all_of(entry.name, entry.path, entry.details, module, scope)
        except TypeGenerationError:
            raise
        except CodeGenerationError as e:
            raise TypeGenerationError(entry.name, schema_path=entry.path, cause=e) from e

    def _emit_enum(
        self, name: str, details: EnumType, module: _Module, scope: _Scope
    ) -> None:
        scope.imports.add_import(_SERDE, 'ApiEnum')
        members = enum_members(details.values)
        body: list[ast.stmt] = [_assign(_name('NOOP'), ast.Constant(value=''))]
        body += [_assign(_name(member), ast.Constant(value=value)) for member, value in members]
        if '*' not in details.values:
            body.append(_assign(_name('FALLTHROUGH_STRING'), ast.Constant(value='*')))
        node = _class(name, [_name('ApiEnum')], body, docstring=details.data.description)
        self._declare(module, scope, node)

    def _emit_object(
        self, name: str, details: ObjectType, module: _Module, scope: _Scope
    ) -> None:
        scope.imports.add_import(_SERDE, 'ApiModel')
        statements, skip, forward = self._fields(
            name, details.fields, details.field_data, scope
        )
        body = _skip_table(skip) + statements
        node = _class(name, [_name('ApiModel')], body, docstring=details.data.description)
        self._declare(module, scope, node, rebuild=forward)

    def _emit_all_of(
        self, name: str, path: str, details: AllOfType, module: _Module, scope: _Scope
    ) -> None:
        scope.imports.add_import(_SERDE, 'FlattenedModel')
        groups: list[str] = []
        statements = []
        forward = False

        for member in details.members:
            target = self.concrete(member)
            member_entry = self.registry[target]
            if not isinstance(
                member_entry.details, (ObjectType, AllOfType, OneOfType, AnyOfType)
            ) or not member_entry.name:
                raise TypeGenerationError(
                    name,
                    schema_path=path,
                    reason=f"allOf member '{member_entry.name or member_entry.hint}' is not an object",
                )
            group = _unique_attr(field_name(member_entry.name), set(groups))
            groups.append(group)
            scope.forward = False
            annotation = self.optional(scope.reference(member_entry.name))
            forward = forward or scope.forward
            statements.append(
                self._field(
                    group, group, Widened(annotation, ast.Constant(value=None)), None, scope.forward
                )
            )

        body: list[ast.stmt] = [
            _assign(_name('__flatten__'), _tuple([ast.Constant(value=g) for g in groups]))
        ]
        node = _class(
            name, [_name('FlattenedModel')], body + statements, docstring=details.data.description
        )
        self._declare(module, scope, node, rebuild=forward)

    def _emit_union(
        self,
        name: str,
        union: FlattenedUnion,
        data: SchemaData,
        module: _Module,
        scope: _Scope,
    ) -> None:
        scope.imports.add_import(_SERDE, 'TaggedUnion')
        forward = False
        choices: list[ast.expr] = []

        for variant in union.variants:
            if variant.shape is VariantShape.DIRECT:
                scope.forward = False
                choices.append(self._expr(variant.member, scope))
                forward = forward or scope.forward
            else:
                self._emit_variant(variant, union, module, scope)
                choices.append(_name(variant.class_name))

        choices = _dedupe(choices)
        root = _union_expr(choices)
        if union.tagged and len(choices) > 1:
            scope.imports.add_import('typing', 'Annotated')
            scope.imports.add_import('pydantic', 'Field')
            root = _subscript(
                'Annotated',
                _tuple([
                    root,
                    _call(
                        _name('Field'),
                        keywords=[_keyword('discriminator', ast.Constant(value=field_name(union.tag)))],
                    ),
                ]),
            )
        if forward:
            root = ast.Constant(value=ast.unparse(root))

        body: list[ast.stmt] = []
        if union.tagged:
            body.append(_assign(_name('__tag__'), ast.Constant(value=field_name(union.tag))))
            if union.content is not None:
                body.append(
                    _assign(_name('__content__'), ast.Constant(value=field_name(union.content)))
                )
            body.append(
                _assign(
                    _name('__variants__'),
                    ast.Dict(
                        keys=[ast.Constant(value=v.tag_value) for v in union.variants],
                        values=[_name(v.class_name) for v in union.variants],
                    ),
                )
            )
        body.append(_ann_assign('root', root))

        node = _class(name, [_name('TaggedUnion')], body, docstring=data.description)
        self._declare(module, scope, node, rebuild=forward)

    def _emit_variant(
        self, variant: Variant, union: FlattenedUnion, module: _Module, scope: _Scope
    ) -> None:
        scope.imports.add_import(_SERDE, 'ApiModel')
        body: list[ast.stmt] = []
        taken: set[str] = set()

        if union.tagged:
            scope.imports.add_import('typing', 'Literal')
            tag_attr = field_name(union.tag)
            taken.add(tag_attr)
            literal = ast.Constant(value=variant.tag_value)
            body.append(
                self._field(
                    union.tag,
                    tag_attr,
                    Widened(_subscript('Literal', literal), ast.Constant(value=variant.tag_value)),
                    None,
                    False,
                )
            )

        forward = False
        if variant.shape is VariantShape.CONTENT:
            wire, type_id = next(iter(variant.fields.items()))
            attr = field_name(wire)
            scope.forward = False
            annotation = self._expr(type_id, scope)
            forward = scope.forward
            default = ast.Constant(value=None) if _is_optional(annotation) else None
            body.append(
                self._field(
                    wire, attr, Widened(annotation, default), variant.field_data.get(wire), forward
                )
            )
        elif variant.shape is VariantShape.STRUCT:
            statements, skip, forward = self._fields(
                variant.class_name, variant.fields, variant.field_data, scope, taken
            )
            body = _skip_table(skip) + body + statements

        if any(isinstance(s.value, ast.Call) for s in body if isinstance(s, ast.AnnAssign)):
            scope.imports.add_import('pydantic', 'Field')

        member_data = getattr(self.registry.details(variant.member), 'data', None)
        docstring = member_data.description if isinstance(member_data, SchemaData) else None
        node = _class(variant.class_name, [_name('ApiModel')], body, docstring=docstring)
        self._declare(module, scope, node, rebuild=forward)

    def _emit_alias(self, type_id: TypeId, module: _Module, scope: _Scope) -> None:
        entry = self.registry[type_id]
        if isinstance(entry.details, UnknownType):
            logger.warning(
                f"Schema '{entry.name}' at {entry.path} has no recognizable shape; "
                f'declaring it as Any'
            )
        target = self._expr(type_id, scope)
        module.aliases.append(_assign(_name(entry.name), target))
        module.names.append(entry.name)


# =============================================================================
# Helpers
# =============================================================================


def _pick_default(data: SchemaData, fallback: SchemaData):
    if data.default is not None:
        return data.default
    return fallback.default


def _is_optional(expr: ast.expr) -> bool:
    return (
        isinstance(expr, ast.BinOp)
        and isinstance(expr.op, ast.BitOr)
        and isinstance(expr.right, ast.Constant)
        and expr.right.value is None
    )


def _unique_attr(attr: str, taken: set[str]) -> str:
    candidate = attr
    counter = 2
    while candidate in taken:
        candidate = f'{attr}_{counter}'
        counter += 1
    taken.add(candidate)
    return candidate


def _dedupe(expressions: list[ast.expr]) -> list[ast.expr]:
    seen = set()
    result = []
    for expr in expressions:
        text = ast.unparse(expr)
        if text in seen:
            continue
        seen.add(text)
        result.append(expr)
    return result


def _skip_table(skip: dict[str, str]) -> list[ast.stmt]:
    if not skip:
        return []
    return [
        _assign(
            _name('__skip_if_empty__'),
            ast.Dict(
                keys=[ast.Constant(value=attr) for attr in skip],
                values=[ast.Constant(value=check) for check in skip.values()],
            ),
        )
    ]
