"""Find imports that no loaded .proto file satisfies.

Works on raw source text only; no descriptors are involved. Every call
recomputes the answer from the complete file mapping it is given.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from protoc_transcoder.config import WELL_KNOWN_IMPORT_PREFIX

logger = logging.getLogger(__name__)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_IMPORT_STATEMENT = re.compile(
    r"""\bimport\s+(?:(?:public|weak)\s+)?(["'])([^"'\n]+)\1\s*;"""
)


@dataclass(frozen=True)
class FileNode:
    path: str
    text: str
    imports: List[str] = field(default_factory=list)


def extract_imports(text: str) -> List[str]:
    """Return the paths of every ``import "...";`` statement, in order."""
    stripped = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", text))
    return [m.group(2) for m in _IMPORT_STATEMENT.finditer(stripped)]


def is_well_known_import(path: str) -> bool:
    return path.startswith(WELL_KNOWN_IMPORT_PREFIX)


def is_relative_import(path: str) -> bool:
    return path.startswith("./") or path.startswith("../")


def normalize_import_path(origin: str, target: str) -> str:
    """Resolve a relative import against the directory of the importing file.

    The origin's file name is popped, then each target segment is applied:
    ``..`` pops a directory, ``.`` is ignored, anything else is pushed.
    Non-relative imports are returned unchanged.
    """
    if not is_relative_import(target):
        return target

    stack = origin.split("/")[:-1]
    for segment in target.split("/"):
        if segment == "..":
            if stack:
                stack.pop()
        elif segment in (".", ""):
            continue
        else:
            stack.append(segment)
    return "/".join(stack)


def canonical_path(path: str) -> str:
    """Collapse ``.``, ``..`` and empty segments so equivalent spellings share a key."""
    stack: List[str] = []
    for segment in path.replace("\\", "/").split("/"):
        if segment in (".", ""):
            continue
        if segment == "..":
            if stack:
                stack.pop()
            continue
        stack.append(segment)
    return "/".join(stack)


def build_file_graph(files: Mapping[str, str]) -> Dict[str, FileNode]:
    return {
        path: FileNode(path=path, text=text, imports=extract_imports(text))
        for path, text in files.items()
    }


def resolve_import(files: Mapping[str, str], origin: str, target: str) -> Optional[str]:
    """Return the loaded file key an import refers to, or None if it is missing."""
    by_canonical = {canonical_path(p): p for p in files}
    for candidate in (target, normalize_import_path(origin, target)):
        if candidate in files:
            return candidate
        key = by_canonical.get(canonical_path(candidate))
        if key is not None:
            return key
    return None


def find_unresolved_imports(files: Mapping[str, str], main_file: str) -> List[str]:
    """List the import paths referenced by any loaded file that no file satisfies.

    Imports under the bundled well-known namespace are always satisfied. The
    main file is scanned first; results keep first-seen order, and imports
    that name the same resolved file are reported once.
    """
    graph = build_file_graph(files)
    loaded: Set[str] = set(files) | {canonical_path(p) for p in files}

    order = [main_file] if main_file in graph else []
    order.extend(p for p in graph if p != main_file)

    unresolved: List[str] = []
    seen: Set[str] = set()
    for path in order:
        for target in graph[path].imports:
            if is_well_known_import(target):
                continue
            normalized = normalize_import_path(path, target)
            if (
                target in loaded
                or normalized in loaded
                or canonical_path(normalized) in loaded
            ):
                continue
            # Relative spellings from different directories name different files.
            key = canonical_path(normalized)
            if key in seen:
                continue
            seen.add(key)
            unresolved.append(target)

    if unresolved:
        logger.info("Unresolved imports: %s", ", ".join(unresolved))
    return unresolved
