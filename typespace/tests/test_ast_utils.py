"""Test suite for ast_utils module.

This module tests the AST helper functions and the import collector used to
build generated modules.
"""

import ast

import pytest

from typespace.codegen.ast_utils import (
    ImportCollector,
    _all,
    _ann_assign,
    _argument,
    _assign,
    _async_func,
    _attr,
    _call,
    _class,
    _func,
    _keyword,
    _name,
    _subscript,
    _tuple,
    _union_expr,
)


def _unparse(node: ast.AST) -> str:
    return ast.unparse(ast.fix_missing_locations(node))


class TestExpressions:
    """Tests for expression helpers."""

    def test_name(self):
        node = _name('Disk')
        assert isinstance(node, ast.Name)
        assert isinstance(node.ctx, ast.Load)
        assert node.id == 'Disk'

    def test_attr_from_string(self):
        assert _unparse(_attr('DiskState', 'NOOP')) == 'DiskState.NOOP'

    def test_chained_attr(self):
        assert _unparse(_attr(_attr('self', '_client'), 'request')) == 'self._client.request'

    def test_subscript(self):
        assert _unparse(_subscript('list', _name('Disk'))) == 'list[Disk]'

    def test_subscript_with_tuple(self):
        node = _subscript('dict', _tuple([_name('str'), _name('int')]))
        assert _unparse(node) == 'dict[str, int]'

    def test_union_of_one(self):
        assert _unparse(_union_expr([_name('int')])) == 'int'

    def test_union_uses_pipe(self):
        node = _union_expr([_name('int'), _name('str'), ast.Constant(value=None)])
        assert _unparse(node) == 'int | str | None'

    def test_union_requires_a_type(self):
        with pytest.raises(ValueError):
            _union_expr([])

    def test_call(self):
        node = _call(
            _name('Field'),
            keywords=[_keyword('default_factory', _name('list'))],
        )
        assert _unparse(node) == 'Field(default_factory=list)'

    def test_call_with_args_and_keywords(self):
        node = _call(_name('f'), [ast.Constant(value=1)], [_keyword('x', ast.Constant(value=2))])
        assert _unparse(node) == 'f(1, x=2)'


class TestStatements:
    """Tests for statement helpers."""

    def test_assign_sets_store_context(self):
        node = _assign(_name('NOOP'), ast.Constant(value=''))
        assert isinstance(node.targets[0].ctx, ast.Store)
        assert _unparse(node) == "NOOP = ''"

    def test_assign_attribute(self):
        node = _assign(_attr('self', '_client'), _name('client'))
        assert isinstance(node.targets[0].ctx, ast.Store)
        assert _unparse(node) == 'self._client = client'

    def test_ann_assign_with_value(self):
        node = _ann_assign('size', _name('int'), ast.Constant(value=0))
        assert _unparse(node) == 'size: int = 0'

    def test_ann_assign_without_value(self):
        assert _unparse(_ann_assign('value', _name('str'))) == 'value: str'

    def test_all(self):
        assert _unparse(_all(['Disk', 'DiskState'])) == "__all__ = ('Disk', 'DiskState')"


class TestDefinitions:
    """Tests for function and class helpers."""

    def test_func_with_kwonly_args(self):
        node = _func(
            'disk_list_all',
            [_argument('self')],
            [ast.Pass()],
            returns=_name('None'),
            kwonlyargs=[_argument('project', _name('str')), _argument('limit', _name('int'))],
            kw_defaults=[None, ast.Constant(value=None)],
        )
        assert _unparse(node) == (
            'def disk_list_all(self, *, project: str, limit: int=None) -> None:\n    pass'
        )

    def test_func_with_decorator(self):
        node = _func('disks', [_argument('self')], [ast.Pass()], decorators=[_name('property')])
        assert _unparse(node).startswith('@property\ndef disks(self):')

    def test_async_func(self):
        node = _async_func('disk_view', [_argument('self'), _argument('disk', _name('str'))], [ast.Pass()])
        assert isinstance(node, ast.AsyncFunctionDef)
        assert _unparse(node).startswith('async def disk_view(self, disk: str):')

    def test_class_with_docstring(self):
        node = _class('Disk', [_name('ApiModel')], [], docstring='A disk.')
        source = _unparse(node)
        assert source.startswith('class Disk(ApiModel):')
        assert isinstance(node.body[0], ast.Expr)
        assert node.body[0].value.value == 'A disk.'

    def test_empty_class_gets_pass(self):
        node = _class('Empty', [_name('ApiModel')], [])
        assert isinstance(node.body[0], ast.Pass)


class TestImportCollector:
    """Tests for ImportCollector."""

    def test_deduplicates(self):
        collector = ImportCollector()
        collector.add_import('typing', 'Any')
        collector.add_import('typing', 'Any')
        collector.add_imports({'typing': {'Any', 'Literal'}})

        statements = collector.to_ast()
        assert len(statements) == 1
        assert [alias.name for alias in statements[0].names] == ['Any', 'Literal']

    def test_sorted_by_category(self):
        collector = ImportCollector()
        collector.add_import('._serde', 'ApiModel')
        collector.add_import('pydantic', 'Field')
        collector.add_import('typing', 'Any')
        collector.add_import('datetime', 'datetime')

        lines = [_unparse(statement) for statement in collector.to_ast()]
        assert lines == [
            'from datetime import datetime',
            'from typing import Any',
            'from pydantic import Field',
            'from ._serde import ApiModel',
        ]

    def test_parent_relative_import(self):
        collector = ImportCollector()
        collector.add_import('..types', 'Disk')

        statement = collector.to_ast()[0]
        assert statement.level == 2
        assert statement.module == 'types'
        assert _unparse(statement) == 'from ..types import Disk'
