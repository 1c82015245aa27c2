"""
Load SQL files for catalog extraction.

Scripts exported from SQL*Plus style tools carry client directives
(``SET``, ``PROMPT``, ``SPOOL``, ...) and ``/`` statement terminators
that are not SQL; those lines are removed before parsing.
"""

import logging
import re
from pathlib import Path
from typing import List, Tuple


logger = logging.getLogger(__name__)

CLIENT_DIRECTIVE = re.compile(
    r"^\s*(SET\s+(DEFINE|ECHO|FEEDBACK|SERVEROUTPUT|HEADING|PAGESIZE|LINESIZE|TERMOUT|VERIFY|TIMING)"
    r"|PROMPT|SPOOL|WHENEVER|EXIT|REM|DEFINE)\b",
    re.IGNORECASE
)


class SQLFileLoader:
    """Load SQL files as ``(catalog_name, sql_content)`` pairs."""

    def __init__(self):
        self.files: List[Tuple[str, str, Path]] = []  # [(catalog_name, sql_content, path), ...]

    def load_file(self, path: Path) -> Tuple[str, str]:
        """
        Load a single SQL file.

        Args:
            path: Path to SQL file

        Returns:
            Tuple of (catalog_name, normalized_sql); the name is the file stem
        """
        path = Path(path)

        with open(path, encoding="utf-8", errors="replace") as f:
            sql_content = self.normalize_sql(f.read())

        self.files.append((path.stem, sql_content, path))
        logger.debug(f"[SQL_LOAD] {path.name}: {len(sql_content)} chars")

        return path.stem, sql_content

    def load_directory(self, dir_path: Path, pattern: str = "*.sql") -> List[Tuple[str, str]]:
        """
        Load all SQL files from a directory, in file name order.

        Args:
            dir_path: Directory path
            pattern: Glob pattern for files (default: *.sql, also *.SQL)

        Returns:
            List of (catalog_name, sql_content) tuples
        """
        dir_path = Path(dir_path)

        if not dir_path.is_dir():
            raise ValueError(f"Not a directory: {dir_path}")

        patterns = [pattern]
        if pattern == "*.sql":
            patterns.append("*.SQL")

        paths = sorted({p for pat in patterns for p in dir_path.glob(pat) if p.is_file()})
        results = [self.load_file(p) for p in paths]

        logger.info(f"Loaded {len(results)} SQL files from {dir_path}")

        return results

    @staticmethod
    def normalize_sql(sql: str) -> str:
        """
        Remove client directives and turn ``/`` terminator lines into ``;``.

        Comments and string literals are left for the parser.
        """
        lines = []
        for line in sql.splitlines():
            stripped = line.strip()
            if stripped == "/":
                if lines and not lines[-1].rstrip().endswith(";"):
                    lines[-1] = lines[-1].rstrip() + ";"
                continue
            if CLIENT_DIRECTIVE.match(line):
                continue
            lines.append(line)
        return "\n".join(lines).strip()
