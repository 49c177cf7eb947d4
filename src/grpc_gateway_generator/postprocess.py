"""Post-processing steps that run over the files written by a compilation."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, override

logger = logging.getLogger(__name__)

DEFAULT_LINE_LENGTH = 120


class FormatterError(Exception):
    """Raised when formatting the generated sources fails."""

    pass


class PostProcessor(Protocol):
    """A step that runs over the files a compilation has written."""

    def format(self, paths: Sequence[Path]) -> None:
        """Process the written files.

        Only the given files are touched. Other files in the output directory are left alone.

        Raises:
            FormatterError: If processing fails. The generated output must not be used then.
        """
        ...


class NoopPostProcessor:
    """Leaves the generated files as they are."""

    def format(self, paths: Sequence[Path]) -> None:
        logger.info("Skipping formatting of %d file(s).", len(paths))


class RuffFormatter:
    """Formats generated Python files with ruff."""

    def __init__(self, executable: str = "ruff", line_length: int = DEFAULT_LINE_LENGTH):
        """Initialize the formatter.

        Args:
            executable (str): The ruff executable.
            line_length (int): The line length to format with.
        """
        self.executable = executable
        self.line_length = line_length

    @override
    def __repr__(self) -> str:
        return f"RuffFormatter(executable={self.executable!r}, line_length={self.line_length})"

    def format(self, paths: Sequence[Path]) -> None:
        """Sort imports and format each of the given `.py` files.

        Import sorting is best effort. A failing `ruff format` is fatal.

        Args:
            paths (Sequence[Path]): The written files.

        Raises:
            FormatterError: If ruff is missing or exits with a non-zero status.
        """
        files = sorted({Path(path) for path in paths if Path(path).suffix == ".py" and Path(path).is_file()})

        if not files:
            logger.warning("No files to format.")
            return

        logger.info("Formatting %d file(s) with ruff...", len(files))

        for path in files:
            try:
                # Run ruff check --fix to fix import ordering
                subprocess.run(
                    [self.executable, "check", "--fix", "--select", "I", str(path)],
                    capture_output=True,
                    check=False,  # Don't raise on non-zero exit
                )

                result = subprocess.run(
                    [self.executable, "format", "--line-length", str(self.line_length), str(path)],
                    capture_output=True,
                    text=True,
                    check=False,
                )

            except FileNotFoundError as e:
                logger.error("ruff not found. Please install ruff: pip install ruff")
                raise FormatterError(f"{self.executable} command not found.") from e

            if result.returncode != 0:
                error_msg = f"Formatting '{path}' failed with exit status {result.returncode}:\n{result.stderr}"
                logger.error(error_msg)
                raise FormatterError(error_msg)

        logger.info("Formatted %d file(s).", len(files))
