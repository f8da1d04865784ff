"""Custom exceptions for typespace.

Each exception keeps its structured details next to
the rendered message so callers can report them without parsing text.
Every generator-time error is fatal for the run: nothing is written once one
of these has been raised.
"""


class TypespaceError(Exception):
    """Base exception for all typespace errors.

    All exceptions raised by the generator inherit from this class, making it
    easy to catch every typespace-related error with a single except clause.

    Example:
        try:
            codegen.generate()
        except TypespaceError as e:
            print(f"typespace error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class SchemaError(TypespaceError):
    """Base exception for schema-related errors."""

    pass


class SchemaLoadError(SchemaError):
    """Failed to load an OpenAPI document from a source.

    Attributes:
        source: The source path or URL that failed to load.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, source: str, cause: Exception | None = None):
        self.source = source
        self.cause = cause
        message = f"Failed to load schema from '{source}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


class SchemaValidationError(SchemaError):
    """Document failed OpenAPI specification validation.

    Attributes:
        source: The source path or URL of the invalid document.
        errors: List of validation error messages.
    """

    def __init__(self, source: str, errors: list[str] | None = None):
        self.source = source
        self.errors = errors or []
        message = f"Schema validation failed for '{source}'"
        if errors:
            message += f': {"; ".join(errors)}'
        super().__init__(message)


class BrokenReferenceError(SchemaError):
    """A ``$ref`` pointer does not resolve within the document.

    Attributes:
        reference: The ``$ref`` string that could not be resolved.
        reason: Explanation of why the reference couldn't be resolved.
    """

    def __init__(self, reference: str, reason: str | None = None):
        self.reference = reference
        self.reason = reason
        message = f"Broken reference '{reference}'"
        if reason:
            message += f': {reason}'
        super().__init__(message)


class CodeGenerationError(TypespaceError):
    """Error during code generation.

    Attributes:
        context: Additional context about what was being generated.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self, message: str, context: str | None = None, cause: Exception | None = None
    ):
        self.context = context
        self.cause = cause
        full_message = message
        if context:
            full_message = f'{message} (while generating {context})'
        if cause:
            full_message += f': {cause}'
        super().__init__(full_message)


class TypeGenerationError(CodeGenerationError):
    """Error generating a type from a schema.

    Attributes:
        type_name: The name of the type being generated.
        schema_path: The path to the schema in the OpenAPI document.
    """

    def __init__(
        self,
        type_name: str,
        schema_path: str | None = None,
        cause: Exception | None = None,
        reason: str | None = None,
    ):
        self.type_name = type_name
        self.schema_path = schema_path
        message = f"Failed to generate type '{type_name}'"
        if schema_path:
            message += f" at '{schema_path}'"
        if reason:
            message += f': {reason}'
        super().__init__(message, context=type_name, cause=cause)


class UnknownSchemaError(TypeGenerationError):
    """A schema with no recognizable shape is used by an operation.

    Attributes:
        type_name: The name assigned to the unclassifiable schema.
        schema_path: Where the schema lives in the document.
        operation: The operation path that reaches it.
    """

    def __init__(
        self, type_name: str, schema_path: str, operation: str | None = None
    ):
        self.operation = operation
        reason = 'schema shape could not be classified'
        if operation:
            reason += f' and is used by {operation}'
        super().__init__(type_name, schema_path=schema_path, reason=reason)


class NameCollisionError(CodeGenerationError):
    """Two distinct types sanitize to the same emitted identifier.

    Attributes:
        name: The identifier both sources map to.
        first_source: Document path (or description) of the first schema.
        second_source: Document path (or description) of the second schema.
    """

    def __init__(self, name: str, first_source: str, second_source: str):
        self.name = name
        self.first_source = first_source
        self.second_source = second_source
        super().__init__(
            f"Name collision on '{name}' between '{first_source}' "
            f"and '{second_source}'"
        )


class EndpointGenerationError(CodeGenerationError):
    """Error generating a resource method for an operation.

    Attributes:
        operation_id: The operationId of the endpoint.
        method: The HTTP method of the endpoint.
        path: The URL path of the endpoint.
    """

    def __init__(
        self,
        operation_id: str,
        method: str | None = None,
        path: str | None = None,
        cause: Exception | None = None,
        reason: str | None = None,
    ):
        self.operation_id = operation_id
        self.method = method
        self.path = path
        message = f"Failed to generate endpoint '{operation_id}'"
        if method and path:
            message += f' ({method.upper()} {path})'
        if reason:
            message += f': {reason}'
        super().__init__(message, context=operation_id, cause=cause)


class ConfigurationError(TypespaceError):
    """Error in configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class OutputError(TypespaceError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)
