"""typespace - Generate typed Python clients from OpenAPI documents.

typespace maps the schemas of an OpenAPI 3.x document onto pydantic models,
enumerations and tagged unions, and generates an async httpx client with one
resource class per operation tag.

Quick Start:
    >>> from typespace import Codegen, DocumentConfig
    >>>
    >>> config = DocumentConfig(
    ...     source='https://api.example.com/openapi.json',
    ...     output='./client'
    ... )
    >>> Codegen(config).generate()

CLI Usage:
    $ typespace generate --config typespace.yaml
    $ typespace validate ./api.yaml
"""

from importlib.metadata import PackageNotFoundError, version

from typespace.codegen.codegen import Codegen
from typespace.codegen.registry import TypeRegistry
from typespace.codegen.schema import SchemaLoader, SchemaResolver
from typespace.config import CodegenConfig, DocumentConfig, get_config
from typespace.exceptions import (
    BrokenReferenceError,
    CodeGenerationError,
    ConfigurationError,
    EndpointGenerationError,
    NameCollisionError,
    OutputError,
    SchemaError,
    SchemaLoadError,
    SchemaValidationError,
    TypeGenerationError,
    TypespaceError,
    UnknownSchemaError,
)

__all__ = [
    # Main classes
    'Codegen',
    'SchemaLoader',
    'SchemaResolver',
    'TypeRegistry',
    # Configuration
    'CodegenConfig',
    'DocumentConfig',
    'get_config',
    # Exceptions
    'TypespaceError',
    'SchemaError',
    'SchemaLoadError',
    'SchemaValidationError',
    'BrokenReferenceError',
    'CodeGenerationError',
    'TypeGenerationError',
    'UnknownSchemaError',
    'NameCollisionError',
    'EndpointGenerationError',
    'ConfigurationError',
    'OutputError',
]

try:
    __version__ = version('typespace')
except PackageNotFoundError:
    __version__ = 'unknown'
