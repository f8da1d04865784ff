import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from upath import UPath

from typespace.exceptions import ConfigurationError

DEFAULT_FILENAMES = ['typespace.yaml', 'typespace.yml']
ENV_PREFIX = 'TYPESPACE_'


class DocumentConfig(BaseModel):
    """Represents a single document to be processed."""

    source: str = Field(..., description='Path or URL to the OpenAPI document.')

    output: str = Field(..., description='Output directory of the generated package.')

    package_name: str | None = Field(
        None,
        description=(
            'Import name of the generated package. When set, the package is written to '
            'output/<package_name>; otherwise output is the package directory.'
        ),
    )

    types_file: str = Field(
        'types.py', description='File name of the generated types module.'
    )

    generate_resources: bool = Field(
        True, description='Whether to generate the client and its resource modules.'
    )

    validate_document: bool = Field(
        True, description='Whether to validate the document structure before generating.'
    )

    env_prefix: str = Field(
        'API',
        description='Prefix of the HOST and TOKEN environment variables read by the generated client.',
    )

    @field_validator('types_file')
    @classmethod
    def _check_types_file(cls, value: str) -> str:
        stem = value.removesuffix('.py')
        if not value.endswith('.py') or not stem.isidentifier():
            raise ValueError(f"types_file must be a Python module file name, got '{value}'")
        return value

    @field_validator('package_name')
    @classmethod
    def _check_package_name(cls, value: str | None) -> str | None:
        if value is not None and not value.isidentifier():
            raise ValueError(f"package_name must be a valid Python identifier, got '{value}'")
        return value

    @field_validator('env_prefix')
    @classmethod
    def _check_env_prefix(cls, value: str) -> str:
        value = value.strip().rstrip('_').upper()
        if not value:
            raise ValueError('env_prefix must not be empty')
        return value

    @property
    def types_module(self) -> str:
        return self.types_file.removesuffix('.py')

    @property
    def package_dir(self) -> UPath:
        """Directory the generated package is written to."""
        output = UPath(self.output)
        return output / self.package_name if self.package_name else output

    def get_package_name(self) -> str:
        return self.package_name or UPath(self.output).name.replace('-', '_').lower()


class CodegenConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_nested_delimiter='__')

    documents: list[DocumentConfig] = Field(
        ..., description='List of OpenAPI documents to process.'
    )


def load_yaml(path: str | Path) -> dict:
    return yaml.safe_load(Path(path).read_text())


def _validate(data: dict, source: str) -> CodegenConfig:
    if not isinstance(data, dict):
        raise ConfigurationError('Configuration must be a mapping', config_path=source)
    try:
        return CodegenConfig(**data)
    except ValidationError as e:
        first = e.errors()[0]
        field = '.'.join(str(part) for part in first['loc'])
        raise ConfigurationError(
            f'Invalid configuration: {first["msg"]}',
            config_path=source,
            field=field,
        ) from e


def get_config(path: str | None = None) -> CodegenConfig:
    """Load configuration from a file or from the working directory.

    Raises:
        ConfigurationError: If no configuration is found or it is invalid.
    """
    if path:
        if not Path(path).exists():
            raise ConfigurationError('Configuration file not found', config_path=path)
        try:
            data = load_yaml(path)
        except yaml.YAMLError as e:
            raise ConfigurationError(f'Cannot parse configuration: {e}', config_path=path) from e
        return _validate(data or {}, path)

    cwd = os.getcwd()

    for filename in DEFAULT_FILENAMES:
        candidate = Path(cwd) / filename
        if candidate.exists():
            return _validate(load_yaml(candidate) or {}, str(candidate))

    candidate = Path(cwd) / 'pyproject.toml'

    if candidate.exists():
        import tomllib

        pyproject = tomllib.loads(candidate.read_text())
        tools = pyproject.get('tool', {})

        if 'typespace' in tools:
            return _validate(tools['typespace'], str(candidate))

    if os.environ.get(f'{ENV_PREFIX}DOCUMENTS'):
        # A JSON list, e.g. TYPESPACE_DOCUMENTS='[{"source": ..., "output": ...}]'
        return _validate({}, f'${ENV_PREFIX}DOCUMENTS')

    raise ConfigurationError(
        f'No configuration found; create {DEFAULT_FILENAMES[0]} or add [tool.typespace] to pyproject.toml'
    )
