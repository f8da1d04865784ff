"""Resource module generation.

One module per operation tag, each holding a class with one async method per
operation, plus the ``resources`` package ``__init__`` and the client package
``__init__`` that exposes every resource as a property of ``Client``.
"""

import ast
import logging
from dataclasses import dataclass, field

from typespace.codegen.ast_utils import (
    ImportCollector,
    _all,
    _argument,
    _arguments,
    _assign,
    _async_func,
    _attr,
    _call,
    _class,
    _docstring,
    _func,
    _keyword,
    _name,
    _subscript,
)
from typespace.codegen.emitter import TypeEmitter
from typespace.codegen.naming import field_name, type_name
from typespace.codegen.operations import PAGE_TOKEN, Operation, OperationParameter
from typespace.codegen.overrides import get_override
from typespace.codegen.registry import (
    AllOfType,
    AnyOfType,
    ObjectType,
    OneOfType,
    TypeId,
    TypeRegistry,
)
from typespace.codegen.runtime import CLIENT_MODULE_NAME

logger = logging.getLogger(__name__)

__all__ = [
    'Resource',
    'group_resources',
    'ResourceGenerator',
    'RESOURCES_PACKAGE',
]

RESOURCES_PACKAGE = 'resources'

_CLIENT = f'..{CLIENT_MODULE_NAME}'

# Names the package __init__ already binds.
_RESERVED_CLASSES = {'ApiError', 'BaseClient', 'Client'}
# Attributes of BaseClient a resource property must not shadow.
_RESERVED_PROPERTIES = {'aclose', 'env_prefix', 'request'}

_MODEL_KINDS = (ObjectType, AllOfType, OneOfType, AnyOfType)


@dataclass
class Resource:
    tag: str
    class_name: str
    module_name: str
    operations: list[Operation] = field(default_factory=list)

    @property
    def property_name(self) -> str:
        if self.module_name in _RESERVED_PROPERTIES:
            return f'{self.module_name}_'
        return self.module_name


def group_resources(operations: list[Operation]) -> list[Resource]:
    """Group operations by tag, in order of first appearance."""
    resources: dict[str, Resource] = {}
    for operation in operations:
        module_name = field_name(operation.tag)
        resource = resources.get(module_name)
        if resource is None:
            class_name = type_name(operation.tag)
            if class_name in _RESERVED_CLASSES:
                class_name = f'{class_name}Resource'
            resource = Resource(operation.tag, class_name, module_name)
            resources[module_name] = resource
        resource.operations.append(operation)
    return list(resources.values())


class ResourceGenerator:
    """Builds the resource modules and the package ``__init__``.

    Args:
        registry: The registry the operations' types were selected into.
        emitter: The emitter that rendered the types module; used for annotations.
        types_module: Module name of the types module inside the package.
    """

    def __init__(self, registry: TypeRegistry, emitter: TypeEmitter, types_module: str = 'types'):
        self.registry = registry
        self.emitter = emitter
        self.types_module = types_module

    # -------------------------------------------------------------------------
    # Resource modules
    # -------------------------------------------------------------------------

    def build_resource(self, resource: Resource) -> ast.Module:
        imports = ImportCollector()
        imports.add_import(_CLIENT, 'BaseClient')

        init = _func(
            '__init__',
            [_argument('self'), _argument('client', _name('BaseClient'))],
            [_assign(_attr('self', '_client'), _name('client'))],
        )
        body: list[ast.stmt] = [init]
        taken = {operation.name for operation in resource.operations}

        for operation in resource.operations:
            body.append(self._method(operation, imports))
            item = operation.page_item(self.registry)
            if item is None:
                continue
            name = f'{operation.name}_all'
            if name in taken:
                logger.debug(f'{operation.origin}: {name} already defined, no page iterator')
                continue
            taken.add(name)
            body.append(self._page_iterator(name, operation, item, imports))

        node = _class(
            resource.class_name,
            [],
            body,
            docstring=f"Operations tagged '{resource.tag}'.",
        )
        statements: list[ast.stmt] = [_docstring(f'{resource.class_name} resource.')]
        statements.extend(imports.to_ast())
        statements.append(_all([resource.class_name]))
        statements.append(node)
        module = ast.Module(body=statements, type_ignores=[])
        ast.fix_missing_locations(module)
        return module

    def build_resources_init(self, resources: list[Resource]) -> ast.Module:
        imports = ImportCollector()
        for resource in resources:
            imports.add_import(f'.{resource.module_name}', resource.class_name)
        statements: list[ast.stmt] = imports.to_ast()
        statements.append(_all(resource.class_name for resource in resources))
        module = ast.Module(body=statements, type_ignores=[])
        ast.fix_missing_locations(module)
        return module

    def build_package_init(
        self,
        resources: list[Resource],
        env_prefix: str,
        title: str | None = None,
    ) -> ast.Module:
        imports = ImportCollector()
        imports.add_imports({f'.{CLIENT_MODULE_NAME}': {'ApiError', 'BaseClient'}})

        body: list[ast.stmt] = [_assign(_name('env_prefix'), ast.Constant(value=env_prefix))]
        for resource in resources:
            imports.add_import(f'.{RESOURCES_PACKAGE}', resource.class_name)
            body.append(
                _func(
                    resource.property_name,
                    [_argument('self')],
                    [ast.Return(value=_call(_name(resource.class_name), [_name('self')]))],
                    returns=_name(resource.class_name),
                    decorators=[_name('property')],
                )
            )

        docstring = f'Client for {title}.\n\n' if title else 'API client.\n\n'
        docstring += (
            f'The host and token default to the {env_prefix}_HOST and '
            f'{env_prefix}_TOKEN environment variables.'
        )
        client = _class('Client', [_name('BaseClient')], body, docstring=docstring)

        names = ['ApiError', 'Client', *(resource.class_name for resource in resources)]
        statements: list[ast.stmt] = []
        if title:
            statements.append(_docstring(f'Client package for {title}.'))
        statements.extend(imports.to_ast())
        statements.append(_all(names))
        statements.append(client)
        module = ast.Module(body=statements, type_ignores=[])
        ast.fix_missing_locations(module)
        return module

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    def _annotation(self, type_id: TypeId, imports: ImportCollector) -> ast.expr:
        return self.emitter.annotation(type_id, imports, f'..{self.types_module}')

    def _signature(
        self,
        operation: Operation,
        imports: ImportCollector,
        exclude: set[str] = frozenset(),
    ) -> tuple[list[ast.arg], list[ast.arg], list[ast.expr | None]]:
        args = [_argument('self')]
        for param in operation.path_parameters:
            args.append(_argument(param.attr, self._annotation(param.type_id, imports)))
        if operation.body is not None:
            args.append(_argument('body', self._annotation(operation.body, imports)))

        kwonlyargs = []
        kw_defaults: list[ast.expr | None] = []
        for param in operation.query_parameters:
            if param.name in exclude:
                continue
            annotation = self._annotation(param.type_id, imports)
            if param.required:
                kwonlyargs.append(_argument(param.attr, annotation))
                kw_defaults.append(None)
            else:
                kwonlyargs.append(_argument(param.attr, self.emitter.optional(annotation)))
                kw_defaults.append(ast.Constant(value=None))
        return args, kwonlyargs, kw_defaults

    def _method(self, operation: Operation, imports: ImportCollector) -> ast.AsyncFunctionDef:
        args, kwonlyargs, kw_defaults = self._signature(operation, imports)

        keywords = []
        if operation.query_parameters:
            keywords.append(
                _keyword(
                    'params',
                    ast.Dict(
                        keys=[ast.Constant(value=p.name) for p in operation.query_parameters],
                        values=[_name(p.attr) for p in operation.query_parameters],
                    ),
                )
            )
        if operation.body is not None:
            keywords.append(_keyword('json', self._dump_body(operation.body, imports)))

        request = ast.Await(
            value=_call(
                _attr(_attr('self', '_client'), 'request'),
                [ast.Constant(value=operation.method.upper()), self._path(operation, imports)],
                keywords,
            )
        )

        body: list[ast.stmt] = []
        docstring = self._describe(operation)
        if docstring:
            body.append(_docstring(docstring))

        if operation.response is None:
            body.append(ast.Expr(value=request))
            returns: ast.expr = ast.Constant(value=None)
        else:
            imports.add_import('pydantic', 'TypeAdapter')
            returns = self._annotation(operation.response, imports)
            body.append(_assign(_name('data'), request))
            body.append(
                ast.Return(
                    value=_call(
                        _attr(_call(_name('TypeAdapter'), [returns]), 'validate_python'),
                        [_name('data')],
                    )
                )
            )

        return _async_func(
            operation.name,
            args,
            body,
            returns=returns,
            kwonlyargs=kwonlyargs,
            kw_defaults=kw_defaults,
        )

    def _page_iterator(
        self, name: str, operation: Operation, item: TypeId, imports: ImportCollector
    ) -> ast.FunctionDef:
        imports.add_import('collections.abc', 'AsyncIterator')
        imports.add_import(_CLIENT, 'iter_pages')
        args, kwonlyargs, kw_defaults = self._signature(operation, imports, exclude={PAGE_TOKEN})

        call_args = [_name(p.attr) for p in operation.path_parameters]
        if operation.body is not None:
            call_args.append(_name('body'))
        call_keywords = [
            _keyword(p.attr, _name(PAGE_TOKEN if p.name == PAGE_TOKEN else p.attr))
            for p in operation.query_parameters
        ]
        fetch = ast.Lambda(
            args=_arguments([_argument(PAGE_TOKEN)], None, None, None),
            body=_call(_attr('self', operation.name), call_args, call_keywords),
        )

        return _func(
            name,
            args,
            [
                _docstring(f'Iterate over every item of {operation.name}, following next_page.'),
                ast.Return(value=_call(_name('iter_pages'), [fetch])),
            ],
            returns=_subscript('AsyncIterator', self._annotation(item, imports)),
            kwonlyargs=kwonlyargs,
            kw_defaults=kw_defaults,
        )

    def _path(self, operation: Operation, imports: ImportCollector) -> ast.expr:
        params: dict[str, OperationParameter] = {p.name: p for p in operation.path_parameters}
        if not params:
            return ast.Constant(value=operation.path)

        imports.add_import(_CLIENT, 'encode_path')
        values: list[ast.expr] = []
        rest = operation.path
        while '{' in rest:
            before, _, after = rest.partition('{')
            name, _, rest = after.partition('}')
            if before:
                values.append(ast.Constant(value=before))
            values.append(
                ast.FormattedValue(
                    value=_call(_name('encode_path'), [_name(params[name].attr)]),
                    conversion=-1,
                )
            )
        if rest:
            values.append(ast.Constant(value=rest))
        return ast.JoinedStr(values=values)

    def _dump_body(self, type_id: TypeId, imports: ImportCollector) -> ast.expr:
        entry = self.registry[self.emitter.concrete(type_id)]
        if get_override(entry.name) is not None or isinstance(entry.details, _MODEL_KINDS):
            return _call(
                _attr('body', 'model_dump'),
                keywords=[
                    _keyword('mode', ast.Constant(value='json')),
                    _keyword('by_alias', ast.Constant(value=True)),
                ],
            )
        imports.add_import('pydantic', 'TypeAdapter')
        return _call(
            _attr(_call(_name('TypeAdapter'), [self._annotation(type_id, imports)]), 'dump_python'),
            [_name('body')],
            [
                _keyword('mode', ast.Constant(value='json')),
                _keyword('by_alias', ast.Constant(value=True)),
            ],
        )

    def _describe(self, operation: Operation) -> str | None:
        lines = []
        if operation.description:
            lines.append(operation.description.strip())
        if operation.deprecated:
            lines.append('Deprecated.')
        lines.append(operation.origin)
        return '\n\n'.join(lines)
