"""Test suite for the Codegen class and the file writer.

This module covers the full generation pipeline: rendering every module in
memory, writing the package, and leaving the output untouched on failure.
"""

import ast
import copy
import json
from unittest.mock import patch

import pytest

from typespace.codegen.codegen import Codegen
from typespace.codegen.writer import PythonFileWriter, render_module, validate_source
from typespace.config import DocumentConfig
from typespace.exceptions import (
    CodeGenerationError,
    OutputError,
    SchemaValidationError,
    UnknownSchemaError,
)

from .fixtures import (
    COLLIDING_NAMES_SPEC,
    REGION_SPEC,
    SELECTOR_SPEC,
    UNKNOWN_RESPONSE_SPEC,
)


@pytest.fixture
def write_spec(tmp_path):
    """Fixture writing a document to a temporary JSON file."""

    def write(spec: dict) -> str:
        path = tmp_path / 'openapi.json'
        path.write_text(json.dumps(spec))
        return str(path)

    return write


def _codegen(source: str, output, **kwargs) -> Codegen:
    kwargs.setdefault('validate_document', False)
    return Codegen(DocumentConfig(source=source, output=str(output), **kwargs))


class TestRender:
    """Tests for Codegen.render."""

    def test_files(self, write_spec, tmp_path):
        files = _codegen(write_spec(REGION_SPEC), tmp_path / 'region').render()
        assert sorted(files) == [
            '__init__.py',
            '_client.py',
            '_serde.py',
            'resources/__init__.py',
            'resources/disks.py',
            'resources/instances.py',
            'resources/vpcs.py',
            'types.py',
        ]

    def test_every_module_parses(self, write_spec, tmp_path):
        files = _codegen(write_spec(REGION_SPEC), tmp_path / 'region').render()
        for relative, source in files.items():
            ast.parse(source, relative)

    def test_load_populates_state(self, write_spec, tmp_path):
        codegen = _codegen(write_spec(REGION_SPEC), tmp_path / 'region')
        registry = codegen.load()
        assert codegen.title == 'Region API'
        assert len(codegen.operations) == 6
        assert codegen.load() is registry

    def test_types_only(self, write_spec, tmp_path):
        files = _codegen(
            write_spec(REGION_SPEC), tmp_path / 'region', generate_resources=False
        ).render()
        assert sorted(files) == ['__init__.py', '_serde.py', 'types.py']
        assert files['__init__.py'].startswith('"""Types for Region API."""')
        # Operation bodies are not registered without resources.
        assert 'InstanceCreateRequest' not in files['types.py']

    def test_custom_types_file(self, write_spec, tmp_path):
        files = _codegen(
            write_spec(REGION_SPEC), tmp_path / 'region', types_file='models.py'
        ).render()
        assert 'models.py' in files
        assert 'from ..models import' in files['resources/disks.py']

    def test_env_prefix(self, write_spec, tmp_path):
        files = _codegen(write_spec(REGION_SPEC), tmp_path / 'region', env_prefix='oxide').render()
        assert "env_prefix = 'OXIDE'" in files['__init__.py']
        assert 'OXIDE_HOST' in files['__init__.py']

    def test_resource_methods(self, write_spec, tmp_path):
        files = _codegen(write_spec(REGION_SPEC), tmp_path / 'region').render()
        disks = files['resources/disks.py']
        assert 'class Disks:' in disks
        assert 'async def disk_list(self, *, project: str' in disks
        assert 'def disk_list_all(self, *, project: str' in disks
        assert "f'/v1/disks/{encode_path(disk)}'" in disks
        assert 'async def disk_delete(self, disk: str) -> None:' in disks
        assert 'Deprecated.' in disks

    def test_validation_enabled_by_default(self, write_spec, tmp_path):
        spec = {'openapi': '3.0.3', 'paths': {}}
        codegen = Codegen(DocumentConfig(source=write_spec(spec), output=str(tmp_path / 'x')))
        with pytest.raises(SchemaValidationError):
            codegen.render()


class TestGenerate:
    """Tests for Codegen.generate."""

    def test_writes_package(self, write_spec, tmp_path):
        output = tmp_path / 'region'
        written = _codegen(write_spec(REGION_SPEC), output).generate()

        assert (output / 'types.py').exists()
        assert (output / 'resources' / 'disks.py').exists()
        assert len(written) == 8

    def test_package_name_nests_package(self, write_spec, tmp_path):
        written = _codegen(write_spec(REGION_SPEC), tmp_path, package_name='region').generate()

        assert (tmp_path / 'region' / '__init__.py').exists()
        assert all(str(path).startswith(str(tmp_path / 'region')) for path in written)

    def test_unknown_schema_writes_nothing(self, write_spec, tmp_path):
        output = tmp_path / 'unknown'
        with pytest.raises(UnknownSchemaError):
            _codegen(write_spec(UNKNOWN_RESPONSE_SPEC), output).generate()
        assert not output.exists()

    def test_name_collision_writes_nothing(self, write_spec, tmp_path):
        output = tmp_path / 'colliding'
        with pytest.raises(CodeGenerationError):
            _codegen(write_spec(COLLIDING_NAMES_SPEC), output).generate()
        assert not output.exists()

    def test_invalid_source_writes_nothing(self, write_spec, tmp_path):
        output = tmp_path / 'broken'
        codegen = _codegen(write_spec(REGION_SPEC), output)
        with patch.object(Codegen, 'render', return_value={'types.py': 'class :\n'}):
            with pytest.raises(CodeGenerationError, match='types.py'):
                codegen.generate()
        assert not output.exists()


class TestDeterminism:
    """Rendering the same document always produces the same files."""

    def test_render_twice(self, write_spec, tmp_path):
        codegen = _codegen(write_spec(REGION_SPEC), tmp_path / 'region')
        assert codegen.render() == codegen.render()

    def test_separate_runs(self, write_spec, tmp_path):
        source = write_spec(REGION_SPEC)
        first = _codegen(source, tmp_path / 'region').render()
        second = _codegen(source, tmp_path / 'region').render()
        assert first == second

    def test_recursive_union_in_any_component_order(self, write_spec, tmp_path):
        spec = copy.deepcopy(SELECTOR_SPEC)
        schemas = spec['components']['schemas']
        reordered = copy.deepcopy(spec)
        reordered['components']['schemas'] = dict(reversed(list(schemas.items())))

        files = _codegen(write_spec(spec), tmp_path / 'first').render()
        other = _codegen(write_spec(reordered), tmp_path / 'second').render()

        for source in (files['types.py'], other['types.py']):
            assert "__variants__ = {'b': TreeB, 'c': TreeC}" in source
            assert 'TreeB.model_rebuild()' in source


class TestWriter:
    """Tests for the file writer."""

    def test_render_module(self):
        module = ast.Module(body=[ast.Pass()], type_ignores=[])
        assert render_module(module) == 'pass\n'

    def test_validate_source(self):
        with pytest.raises(CodeGenerationError, match='not valid Python'):
            validate_source('def broken(:\n', 'broken.py')

    def test_write_creates_directories(self, tmp_path):
        writer = PythonFileWriter(tmp_path / 'out')
        path = writer.write('resources/__init__.py', '')
        assert path.exists()

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('')
        writer = PythonFileWriter(blocker)
        with pytest.raises(OutputError):
            writer.write('types.py', '')
