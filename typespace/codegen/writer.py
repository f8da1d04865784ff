"""Rendering and writing of generated Python modules.

Modules are unparsed and syntax-checked in memory first; files are only
written once every module of a package has rendered, so a failing run leaves
the output directory untouched.
"""

import ast
import logging
from pathlib import Path

from upath import UPath

from typespace.exceptions import CodeGenerationError, OutputError

logger = logging.getLogger(__name__)

__all__ = ['PythonFileWriter', 'render_module', 'validate_source']


def render_module(module: ast.Module, filename: str = '<generated>') -> str:
    """Unparse an AST module and check that the result compiles.

    Args:
        module: The module to render.
        filename: Name reported in syntax errors.

    Returns:
        The Python source, terminated by a newline.

    Raises:
        CodeGenerationError: If the rendered source is not valid Python.
    """
    ast.fix_missing_locations(module)
    source = ast.unparse(module) + '\n'
    validate_source(source, filename)
    return source


def validate_source(source: str, filename: str = '<generated>') -> None:
    try:
        compile(source, filename, 'exec')
    except SyntaxError as e:
        raise CodeGenerationError(
            f'Generated code is not valid Python: {e.msg} (line {e.lineno})',
            context=filename,
            cause=e,
        ) from e


class PythonFileWriter:
    """Writes rendered sources below an output directory.

    Example:
        >>> writer = PythonFileWriter('./client')
        >>> writer.write_all({'__init__.py': '', 'types.py': source})
    """

    def __init__(self, output: UPath | Path | str):
        self.output = output if isinstance(output, UPath) else UPath(output)

    def write_all(self, files: dict[str, str]) -> list[UPath]:
        """Write every ``{relative path: source}`` entry.

        Sources are validated before the first file is written.

        Raises:
            CodeGenerationError: If a source is not valid Python.
            OutputError: If a file cannot be written.
        """
        for relative, source in files.items():
            if relative.endswith('.py'):
                validate_source(source, relative)

        written = []
        for relative, source in files.items():
            written.append(self.write(relative, source))
        return written

    def write(self, relative: str, source: str) -> UPath:
        path = self.output / relative
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding='utf-8')
        except OSError as e:
            raise OutputError(str(path), cause=e) from e
        logger.debug(f'Wrote {path}')
        return path
