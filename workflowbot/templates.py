"""
templates.py

Responsibility: Load the canonical workflow files from a local directory tree.

Rules:
- Walk template files in sorted order so duplicate detection is deterministic.
- Each regular file becomes one entry keyed by its base name; subdirectories are
  traversed but not represented in the key.
- Contents are opaque bytes; nothing is rendered or normalized.

This module intentionally does NOT know about GitHub or CLI parsing.
"""

from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


class TemplateError(RuntimeError):
    pass


def _iter_template_files(template_dir: Path) -> list[Path]:
    files: list[Path] = []
    for root, _dirs, filenames in os.walk(template_dir):
        root_path = Path(root)
        for name in filenames:
            path = root_path / name
            if path.is_file():
                files.append(path)
    files.sort(key=lambda p: str(p.relative_to(template_dir)).replace(os.sep, "/"))
    return files


def load_templates(template_dir: str | Path) -> Mapping[str, bytes]:
    """
    Return a read-only mapping of file name -> desired content.

    Raises `TemplateError` if the directory is missing, holds no files, or two files
    in different subdirectories share a name.
    """
    tpl_dir = Path(template_dir).resolve()
    if not tpl_dir.exists() or not tpl_dir.is_dir():
        raise TemplateError(f"Template directory not found: {tpl_dir}")

    templates: dict[str, bytes] = {}
    origins: dict[str, Path] = {}
    for path in _iter_template_files(tpl_dir):
        rel = path.relative_to(tpl_dir)
        if path.name in templates:
            raise TemplateError(f"Duplicate template name '{path.name}': {origins[path.name]} and {rel}")
        try:
            templates[path.name] = path.read_bytes()
        except OSError as e:
            raise TemplateError(f"Failed reading template file: {rel}") from e
        origins[path.name] = rel

    if not templates:
        raise TemplateError(f"No templates found in {tpl_dir}")

    return MappingProxyType(templates)
