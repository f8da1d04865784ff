"""Small constructors for the `ast` nodes the generated modules are made of.

The helpers default every expression to a load context so callers can nest
them freely; `ImportCollector` gathers the `from x import y` lines a module
needs while its body is being built.
"""

import ast
import sys
from collections.abc import Iterable

__all__ = [
    # AST helpers
    '_name',
    '_attr',
    '_subscript',
    '_union_expr',
    '_tuple',
    '_keyword',
    '_argument',
    '_assign',
    '_ann_assign',
    '_call',
    '_arguments',
    '_func',
    '_async_func',
    '_class',
    '_docstring',
    '_all',
    # Import collection
    'ImportCollector',
]


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _attr(value: str | ast.expr, attr: str) -> ast.Attribute:
    return ast.Attribute(
        value=_name(value) if isinstance(value, str) else value,
        attr=attr,
        ctx=ast.Load(),
    )


def _subscript(generic: str, inner: ast.expr) -> ast.Subscript:
    return ast.Subscript(value=_name(generic), slice=inner, ctx=ast.Load())


def _union_expr(types: list[ast.expr]) -> ast.expr:
    # A | B | C (using pipe operator instead of Union[A, B, C])
    if not types:
        raise ValueError('_union_expr requires at least one type')
    result = types[0]
    for t in types[1:]:
        result = ast.BinOp(left=result, op=ast.BitOr(), right=t)
    return result


def _tuple(elts: list[ast.expr]) -> ast.Tuple:
    return ast.Tuple(elts=elts, ctx=ast.Load())


def _keyword(arg: str | None, value: ast.expr) -> ast.keyword:
    return ast.keyword(arg=arg, value=value)


def _argument(name: str, value: ast.expr | None = None) -> ast.arg:
    return ast.arg(
        arg=name,
        annotation=value,
    )


def _assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    if isinstance(target, ast.Name):
        target = ast.Name(id=target.id, ctx=ast.Store())
    elif isinstance(target, ast.Attribute):
        target.ctx = ast.Store()
    return ast.Assign(
        targets=[target],
        value=value,
    )


def _ann_assign(
    target: str, annotation: ast.expr, value: ast.expr | None = None
) -> ast.AnnAssign:
    return ast.AnnAssign(
        target=ast.Name(id=target, ctx=ast.Store()),
        annotation=annotation,
        value=value,
        simple=1,
    )


def _call(
    func: ast.expr,
    args: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    return ast.Call(
        func=func,
        args=args or [],
        keywords=keywords or [],
    )


def _arguments(
    args: list[ast.arg],
    defaults: list[ast.expr] | None,
    kwonlyargs: list[ast.arg] | None,
    kw_defaults: list[ast.expr | None] | None,
) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=args,
        vararg=None,
        kwarg=None,
        kwonlyargs=kwonlyargs or [],
        kw_defaults=kw_defaults or [],
        defaults=defaults or [],
    )


def _func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    defaults: list[ast.expr] | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
    decorators: list[ast.expr] | None = None,
) -> ast.FunctionDef:
    return ast.FunctionDef(
        name=name,
        args=_arguments(args, defaults, kwonlyargs, kw_defaults),
        body=body,
        decorator_list=decorators or [],
        returns=returns,
        type_params=[],
    )


def _async_func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    defaults: list[ast.expr] | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
) -> ast.AsyncFunctionDef:
    return ast.AsyncFunctionDef(
        name=name,
        args=_arguments(args, defaults, kwonlyargs, kw_defaults),
        body=body,
        decorator_list=[],
        returns=returns,
        type_params=[],
    )


def _docstring(text: str) -> ast.Expr:
    return ast.Expr(value=ast.Constant(value=text))


def _class(
    name: str,
    bases: list[ast.expr],
    body: list[ast.stmt],
    docstring: str | None = None,
) -> ast.ClassDef:
    if docstring:
        body = [_docstring(docstring), *body]
    return ast.ClassDef(
        name=name,
        bases=bases,
        keywords=[],
        body=body or [ast.Pass()],
        decorator_list=[],
        type_params=[],
    )


def _all(names: Iterable[str]) -> ast.Assign:
    return _assign(
        target=_name('__all__'),
        value=ast.Tuple(
            elts=[ast.Constant(value=name) for name in names], ctx=ast.Load()
        ),
    )


# =============================================================================
# Import Collection
# =============================================================================


class ImportCollector:
    """Accumulates the imports of one generated module.

    Names are grouped per source module and deduplicated; `to_ast` renders
    them in a stable order so regenerated files diff cleanly.

    Example:
        >>> collector = ImportCollector()
        >>> collector.add_imports({'typing': {'Any', 'Literal'}})
        >>> collector.add_import('._serde', 'ApiModel')
        >>> imports = collector.to_ast()
    """

    def __init__(self):
        self._imports: dict[str, set[str]] = {}

    def add_imports(self, imports: dict[str, set[str]]) -> None:
        """Merge a `{module: names}` mapping, as carried by overrides."""
        for module, names in imports.items():
            self._imports.setdefault(module, set()).update(names)

    def add_import(self, module: str, name: str) -> None:
        """Add a single import.

        Args:
            module: The module to import from (e.g., 'typing', '._serde').
            name: The name to import (e.g., 'Any', 'ApiModel').
        """
        self._imports.setdefault(module, set()).add(name)

    def _get_import_category(self, module: str) -> int:
        # stdlib, then third party, then relative
        if module.startswith('.'):
            return 2

        base_module = module.split('.')[0]
        if base_module in sys.stdlib_module_names:
            return 0

        return 1

    def to_ast(self) -> list[ast.ImportFrom]:
        """Render the collected imports as `ImportFrom` nodes.

        Imports are sorted according to Python conventions: standard library,
        then third-party, then relative imports. Within each category modules
        are sorted alphabetically, and so are the names of each import.

        Returns:
            One statement per source module.
        """
        import_stmts = []

        sorted_modules = sorted(
            self._imports.items(),
            key=lambda x: (self._get_import_category(x[0]), x[0]),
        )

        for module, names in sorted_modules:
            if module.startswith('.'):
                level = len(module) - len(module.lstrip('.'))
                import_module = module.lstrip('.') or None
            else:
                level = 0
                import_module = module

            import_stmts.append(
                ast.ImportFrom(
                    module=import_module,
                    names=[ast.alias(name=name, asname=None) for name in sorted(names)],
                    level=level,
                )
            )
        return import_stmts
