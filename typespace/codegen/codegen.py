"""Code generation module for typespace.

This module provides the :class:`Codegen` class that turns one OpenAPI
document into a typed client package.
"""

import ast
import logging
from typing import Any

from upath import UPath

from typespace.codegen.ast_utils import _docstring
from typespace.codegen.emitter import TypeEmitter
from typespace.codegen.operations import Operation, OperationCollector
from typespace.codegen.resources import (
    RESOURCES_PACKAGE,
    Resource,
    ResourceGenerator,
    group_resources,
)
from typespace.codegen.registry import TypeRegistry
from typespace.codegen.runtime import (
    CLIENT_MODULE_CONTENT,
    CLIENT_MODULE_NAME,
    SERDE_MODULE_CONTENT,
    SERDE_MODULE_NAME,
)
from typespace.codegen.schema import SchemaLoader, SchemaResolver, schema_pointer
from typespace.codegen.writer import PythonFileWriter, render_module
from typespace.config import DocumentConfig

logger = logging.getLogger(__name__)

__all__ = ['Codegen']


class Codegen:
    """Generates a client package from an OpenAPI document.

    The run has two phases. :meth:`render` loads the document, registers every
    component schema in document order and then every operation, and renders
    all modules in memory. :meth:`generate` writes the rendered files. Any
    error raised while rendering aborts the run before a file is written.

    Attributes:
        config: The document configuration.
        document: The loaded document (populated by :meth:`load`).
        registry: The type registry (populated by :meth:`load`).
        operations: The collected operations (populated by :meth:`load`).

    Example:
        >>> from typespace.config import DocumentConfig
        >>> from typespace.codegen.codegen import Codegen
        >>>
        >>> config = DocumentConfig(source='./openapi.json', output='./client')
        >>> Codegen(config).generate()
        # Creates ./client/__init__.py, types.py, resources/...
    """

    def __init__(self, config: DocumentConfig, schema_loader: SchemaLoader | None = None):
        self.config = config
        self.schema_loader = schema_loader or SchemaLoader(validate=config.validate_document)
        self.document: dict[str, Any] | None = None
        self.registry: TypeRegistry | None = None
        self.operations: list[Operation] = []

    @property
    def title(self) -> str | None:
        info = (self.document or {}).get('info') or {}
        return info.get('title')

    def load(self) -> TypeRegistry:
        """Load the document and register its components and operations."""
        if self.registry is not None:
            return self.registry

        logger.info(f'Loading {self.config.source}')
        self.document = self.schema_loader.load(self.config.source)
        resolver = SchemaResolver(self.document)
        registry = TypeRegistry(resolver)

        for name in resolver.schemas:
            type_id = registry.select_component(name)
            registry.add_root(type_id, schema_pointer(name))

        if self.config.generate_resources:
            self.operations = OperationCollector(resolver, registry).collect()
        registry.finalize()

        logger.info(
            f'Registered {len(resolver.schemas)} component schemas, '
            f'{len(self.operations)} operations, {len(registry)} types'
        )
        self.registry = registry
        return registry

    def render(self) -> dict[str, str]:
        """Render every module of the package.

        Returns:
            A mapping of paths relative to the output directory to sources.
        """
        registry = self.load()
        emitter = TypeEmitter(registry)
        types_module = self.config.types_module

        files = {
            f'{SERDE_MODULE_NAME}.py': SERDE_MODULE_CONTENT,
            self.config.types_file: render_module(emitter.emit(self.title), self.config.types_file),
        }

        if not self.config.generate_resources:
            files['__init__.py'] = render_module(self._bare_init(), '__init__.py')
            return files

        resources = group_resources(self.operations)
        generator = ResourceGenerator(registry, emitter, types_module)
        files[f'{CLIENT_MODULE_NAME}.py'] = CLIENT_MODULE_CONTENT
        files.update(self._render_resources(generator, resources))
        files['__init__.py'] = render_module(
            generator.build_package_init(resources, self.config.env_prefix, self.title),
            '__init__.py',
        )
        return files

    def _render_resources(
        self, generator: ResourceGenerator, resources: list[Resource]
    ) -> dict[str, str]:
        files = {}
        for resource in resources:
            relative = f'{RESOURCES_PACKAGE}/{resource.module_name}.py'
            files[relative] = render_module(generator.build_resource(resource), relative)
            logger.debug(f'Rendered resource {resource.class_name} ({len(resource.operations)} operations)')
        relative = f'{RESOURCES_PACKAGE}/__init__.py'
        files[relative] = render_module(generator.build_resources_init(resources), relative)
        return files

    def _bare_init(self) -> ast.Module:
        body = []
        if self.title:
            body.append(_docstring(f'Types for {self.title}.'))
        return ast.Module(body=body, type_ignores=[])

    def generate(self) -> list[UPath]:
        """Render the package and write it to its package directory.

        Returns:
            The written files.
        """
        files = self.render()
        writer = PythonFileWriter(self.config.package_dir)
        written = writer.write_all(files)
        logger.info(f'Wrote {len(written)} files to {self.config.package_dir}')
        return written
