"""Code generation module for typespace.

Main Components:
    - Codegen: Orchestrates one generation run
    - SchemaLoader / SchemaResolver: Load documents and resolve ``$ref`` pointers
    - TypeRegistry: Arena of discovered types, deduplicated by reference and shape
    - SchemaClassifier: Maps schema nodes onto registry kinds
    - flatten_union: Turns oneOf/anyOf members into tagged variants
    - TypeEmitter: Renders the types module
    - ResourceGenerator: Renders the resource modules and the client

Example:
    >>> from typespace.codegen import Codegen
    >>> from typespace.config import DocumentConfig
    >>>
    >>> config = DocumentConfig(source='./openapi.json', output='./client')
    >>> Codegen(config).generate()
"""

from typespace.codegen.ast_utils import ImportCollector
from typespace.codegen.classifier import SchemaClassifier
from typespace.codegen.codegen import Codegen
from typespace.codegen.emitter import TypeEmitter
from typespace.codegen.naming import Role, field_name, member_name, sanitize, type_name
from typespace.codegen.operations import Operation, OperationCollector
from typespace.codegen.registry import TypeEntry, TypeRegistry
from typespace.codegen.resources import ResourceGenerator
from typespace.codegen.schema import SchemaLoader, SchemaResolver
from typespace.codegen.unions import FlattenedUnion, Variant, flatten_union
from typespace.codegen.writer import PythonFileWriter

__all__ = [
    'Codegen',
    'SchemaLoader',
    'SchemaResolver',
    'TypeRegistry',
    'TypeEntry',
    'SchemaClassifier',
    'FlattenedUnion',
    'Variant',
    'flatten_union',
    'TypeEmitter',
    'Operation',
    'OperationCollector',
    'ResourceGenerator',
    'PythonFileWriter',
    'ImportCollector',
    'Role',
    'sanitize',
    'field_name',
    'type_name',
    'member_name',
]
