"""Best-effort syntax check for files written by the agent.

Only the formats the stack can already parse are checked. A failed check
never blocks the write; it becomes a warning in the tool output.
"""
from __future__ import annotations

import ast
import json
from pathlib import Path
from typing import Optional

import yaml

PYTHON_SUFFIXES = {".py", ".pyi"}
JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}


def validate(path: Path, text: str) -> Optional[str]:
    """Return a warning message if `text` does not parse as `path`'s format."""
    suffix = path.suffix.lower()
    if suffix in PYTHON_SUFFIXES:
        try:
            ast.parse(text, filename=path.name)
        except SyntaxError as e:
            return f"Python syntax error in {path.name} at line {e.lineno}: {e.msg}"
        except ValueError as e:
            return f"Python source {path.name} cannot be parsed: {e}"
    elif suffix in JSON_SUFFIXES:
        try:
            json.loads(text)
        except ValueError as e:
            return f"Invalid JSON in {path.name}: {e}"
    elif suffix in YAML_SUFFIXES:
        try:
            yaml.safe_load(text)
        except yaml.YAMLError as e:
            return f"Invalid YAML in {path.name}: {e}"
    return None
