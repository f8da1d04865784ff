"""Test CLI functionality."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from typespace.cli import app
from typespace.config import CodegenConfig, DocumentConfig
from typespace.exceptions import ConfigurationError, UnknownSchemaError

from .fixtures import REGION_SPEC, UNKNOWN_RESPONSE_SPEC


@pytest.fixture
def runner():
    """Fixture providing CLI test runner."""
    return CliRunner()


@pytest.fixture
def sample_config():
    """Fixture providing sample configuration."""
    return CodegenConfig(
        documents=[DocumentConfig(source='https://api.example.com/openapi.json', output='./region')]
    )


class TestGenerateCommand:
    """Test the generate command."""

    @patch('typespace.cli.get_config')
    @patch('typespace.cli.Codegen')
    def test_generate_without_config_file(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        """Test generate command without specifying config file."""
        mock_get_config.return_value = sample_config
        mock_codegen_instance = MagicMock()
        mock_codegen_instance.generate.return_value = ['region/types.py']
        mock_codegen_class.return_value = mock_codegen_instance

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with(None)
        mock_codegen_class.assert_called_once_with(sample_config.documents[0])
        mock_codegen_instance.generate.assert_called_once()
        assert 'region/types.py' in result.stdout

    @patch('typespace.cli.get_config')
    @patch('typespace.cli.Codegen')
    def test_generate_with_short_config_option(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.return_value = []

        result = runner.invoke(app, ['generate', '-c', 'typespace.yaml'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with('typespace.yaml')

    @patch('typespace.cli.get_config')
    @patch('typespace.cli.Codegen')
    def test_generate_multiple_documents(self, mock_codegen_class, mock_get_config, runner):
        """Test generate command with multiple documents."""
        mock_get_config.return_value = CodegenConfig(
            documents=[
                DocumentConfig(source='api1.json', output='./gen1'),
                DocumentConfig(source='api2.json', output='./gen2'),
            ]
        )
        mock_codegen_class.return_value.generate.return_value = []

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0
        assert mock_codegen_class.call_count == 2
        assert result.stdout.count('Generated files:') == 2

    @patch('typespace.cli.get_config')
    def test_generate_config_error(self, mock_get_config, runner):
        """Test generate command when config loading fails."""
        mock_get_config.side_effect = ConfigurationError('No configuration found')

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'Error:' in result.stdout
        assert 'No configuration found' in result.stdout

    @patch('typespace.cli.get_config')
    @patch('typespace.cli.Codegen')
    def test_generate_codegen_error(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        """Test generate command when code generation fails."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.side_effect = UnknownSchemaError(
            'ThingListResponse', '#/paths/~1things/get', 'GET /things'
        )

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'Error:' in result.stdout
        assert 'ThingListResponse' in result.stdout

    def test_generate_end_to_end(self, runner, tmp_path, monkeypatch):
        source = tmp_path / 'openapi.json'
        source.write_text(json.dumps(REGION_SPEC))
        (tmp_path / 'typespace.yaml').write_text(
            f'documents:\n  - source: {source}\n    output: {tmp_path / "region"}\n'
            '    validate_document: false\n'
        )
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0, result.stdout
        assert (tmp_path / 'region' / 'types.py').exists()


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_document(self, runner, tmp_path):
        source = tmp_path / 'openapi.json'
        source.write_text(json.dumps(REGION_SPEC))

        result = runner.invoke(app, ['validate', str(source)])

        assert result.exit_code == 0
        assert 'Valid:' in result.stdout
        assert '13 component schemas' in result.stdout
        assert '6 operations' in result.stdout

    def test_missing_document(self, runner, tmp_path):
        result = runner.invoke(app, ['validate', str(tmp_path / 'missing.json')])

        assert result.exit_code == 1
        assert 'Error:' in result.stdout

    def test_unknown_schema_is_not_a_validation_failure(self, runner, tmp_path):
        source = tmp_path / 'openapi.json'
        source.write_text(json.dumps(UNKNOWN_RESPONSE_SPEC))

        result = runner.invoke(app, ['validate', str(source)])

        assert result.exit_code == 0
        assert '1 operations' in result.stdout


class TestVersionCommand:
    """Test the version command."""

    def test_version(self, runner):
        with patch('typespace.__version__', '1.2.3'):
            result = runner.invoke(app, ['version'])

        assert result.exit_code == 0
        assert 'typespace version: 1.2.3' in result.stdout
