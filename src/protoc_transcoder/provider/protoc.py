"""Compile in-memory .proto sources into a FileDescriptorSet with protoc."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import List, Mapping, Optional

from google.protobuf import descriptor_pb2 as d2

from protoc_transcoder.config import protoc_executable
from protoc_transcoder.imports import canonical_path
from protoc_transcoder.provider.descriptor_set import (
    DescriptorProviderError,
    load_descriptor_set,
)

logger = logging.getLogger(__name__)


def compile_sources(
    files: Mapping[str, str],
    main_file: str,
    protoc: Optional[str] = None,
    include_dirs: Optional[List[str]] = None,
) -> d2.FileDescriptorSet:
    """Run protoc over ``files`` (path -> source text) and return the descriptor set.

    Every file is written under its canonical path in a temporary include
    root, so relative spellings of the same file collapse to one entry.
    """
    protoc = protoc or protoc_executable()
    main_key = canonical_path(main_file)
    if main_key not in {canonical_path(p) for p in files}:
        raise DescriptorProviderError(f"Main file '{main_file}' is not among the loaded files")

    with tempfile.TemporaryDirectory() as td:
        root = Path(td) / "src"
        for path, text in files.items():
            target = root / canonical_path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")

        inc_args: List[str] = ["-I", str(root)]
        for inc in include_dirs or []:
            inc_args.extend(["-I", inc])

        desc_path = os.path.join(td, "descriptor_set.pb")
        cmd = [protoc, "--include_imports", f"--descriptor_set_out={desc_path}"] + inc_args + [main_key]
        logger.info("Running %s", " ".join(cmd))
        try:
            subprocess.run(cmd, check=True, capture_output=True, cwd=str(root))
        except FileNotFoundError as e:
            raise DescriptorProviderError(
                f"'{protoc}' not found. Install the Protocol Buffers compiler or set "
                "PROTOC_TRANSCODER_PROTOC."
            ) from e
        except subprocess.CalledProcessError as e:
            raise DescriptorProviderError(
                f"protoc failed: {e.stderr.decode('utf-8', errors='ignore').strip()}"
            ) from e

        return load_descriptor_set(desc_path)


def compile_proto_file(proto_path: str, protoc: Optional[str] = None) -> d2.FileDescriptorSet:
    """Compile a .proto file on disk, with its own directory as the include root."""
    path = Path(proto_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DescriptorProviderError(f"Cannot read '{proto_path}': {e}") from e
    return compile_sources(
        {path.name: text},
        path.name,
        protoc=protoc,
        include_dirs=[str(path.parent.resolve())],
    )
