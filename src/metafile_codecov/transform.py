"""Metafile to Codecov bundle analysis mapping.

This module converts a bun/esbuild metafile into the Codecov bundle analysis
payload (version "3"). The mapping is pure apart from two inputs: the clock
(default `builtAt`) and optional reads of emitted files under `outputDir` for
gzip sizing.

Mapping rules:
    * Every output gets an ordinal in metafile order and a chunk uniqueId of
      ``"<ordinal>-<outputPath>"``. Source maps consume an ordinal but produce
      neither an asset nor a chunk, so ids of the other outputs stay stable.
    * Each non-map output becomes one `Asset` and one `Chunk`. Entry outputs
      (those with ``entryPoint``) are both ``entry`` and ``initial``.
    * Chunk ``dynamicImports`` lists non-external ``dynamic-import`` targets.
    * Each input becomes one `Module`, linked to every non-map chunk whose
      ``inputs`` mapping contains it, in output order. Inputs that no output
      references still produce a module with no chunk ids.

Public Functions:
    transform_metafile: Build the payload for one metafile
    load_metafile: Parse and validate metafile JSON
    payload_to_json: Serialize a payload to its wire JSON
"""
from __future__ import annotations

import json
import logging
import os
import posixpath
import re
import time
from typing import Dict, List, Optional, Union

from pydantic import BaseModel

from ._version import PLUGIN_NAME, __version__
from .compress import get_gzip_size
from .models.codecov import Asset, BundlerInfo, Chunk, Module, OutputPayload, PluginInfo
from .models.metafile import Metafile, MetafileOutput
from .normalize import normalize_asset_name

logger = logging.getLogger(__name__)

__all__ = ["TransformOptions", "load_metafile", "payload_to_json", "transform_metafile"]

_SOURCE_MAP_SUFFIX = ".map"
_DYNAMIC_IMPORT = "dynamic-import"
_EXTENSION = re.compile(r"\.[^.]+$")


class TransformOptions(BaseModel):
    """Options for `transform_metafile`."""

    # Name for this bundle in Codecov
    bundleName: str
    # Directory containing the build output files (enables gzip sizes)
    outputDir: Optional[str] = None
    bundler: Optional[BundlerInfo] = None
    # Unix timestamp (ms) when the build started; defaults to now
    builtAt: Optional[int] = None
    # Build duration in milliseconds
    duration: Optional[int] = None


def _is_source_map(output_path: str) -> bool:
    return output_path.endswith(_SOURCE_MAP_SUFFIX)


def _strip_extension(path: str) -> str:
    # Drops the final ".ext": "file." is kept, ".hidden" becomes "".
    return _EXTENSION.sub("", posixpath.basename(path), count=1)


def _read_output_file(output_dir: str, output_path: str) -> Optional[bytes]:
    """Read an emitted file from ``output_dir`` by its base name.

    Any OS-level failure (missing file, permissions, directory) yields None.
    """
    file_path = os.path.join(output_dir, posixpath.basename(output_path))
    try:
        with open(file_path, "rb") as f:
            return f.read()
    except OSError as e:
        logger.debug("gzip size unavailable for %s: %s", output_path, e)
        return None


def _gzip_size_for(output_dir: Optional[str], output_path: str) -> Optional[int]:
    if output_dir is None:
        return None
    content = _read_output_file(output_dir, output_path)
    if content is None:
        return None
    return get_gzip_size(output_path, content)


def _dynamic_imports(output: MetafileOutput) -> List[str]:
    return [
        imp.path
        for imp in output.imports
        if imp.kind == _DYNAMIC_IMPORT and not imp.external
    ]


def _chunk_name(output_path: str, output: MetafileOutput) -> str:
    if output.entryPoint:
        return _strip_extension(output.entryPoint)
    return _strip_extension(output_path)


def transform_metafile(metafile: Metafile, options: TransformOptions) -> OutputPayload:
    """Transform a bun/esbuild metafile into a Codecov bundle analysis payload.

    Args:
        metafile: Validated metafile for one build.
        options: Bundle name plus optional output directory, bundler info and
            timing values.

    Returns:
        The payload; serialize with `payload_to_json` before uploading.
    """
    output_dir = os.path.abspath(options.outputDir) if options.outputDir else None
    output_entries = list(metafile.outputs.items())

    # Ordinals count every output, source maps included.
    chunk_ids: Dict[str, str] = {
        output_path: f"{ordinal}-{output_path}"
        for ordinal, (output_path, _output) in enumerate(output_entries)
    }
    bundle_outputs = [
        (output_path, output)
        for output_path, output in output_entries
        if not _is_source_map(output_path)
    ]

    assets: List[Asset] = []
    chunks: List[Chunk] = []
    for output_path, output in bundle_outputs:
        assets.append(
            Asset(
                name=output_path,
                size=output.bytes,
                gzipSize=_gzip_size_for(output_dir, output_path),
                normalized=normalize_asset_name(output_path),
            )
        )
        is_entry = output.entryPoint is not None
        chunks.append(
            Chunk(
                id=output_path,
                uniqueId=chunk_ids[output_path],
                entry=is_entry,
                initial=is_entry,
                names=[_chunk_name(output_path, output)],
                files=[output_path],
                dynamicImports=_dynamic_imports(output),
            )
        )

    modules: List[Module] = []
    for input_path, source in metafile.inputs.items():
        modules.append(
            Module(
                name=input_path,
                size=source.bytes,
                chunkUniqueIds=[
                    chunk_ids[output_path]
                    for output_path, output in bundle_outputs
                    if input_path in output.inputs
                ],
            )
        )

    built_at = options.builtAt if options.builtAt is not None else int(time.time() * 1000)
    logger.debug(
        "Transformed metafile bundle=%s assets=%d chunks=%d modules=%d",
        options.bundleName,
        len(assets),
        len(chunks),
        len(modules),
    )
    return OutputPayload(
        bundleName=options.bundleName,
        bundler=options.bundler,
        builtAt=built_at,
        duration=options.duration,
        assets=assets,
        chunks=chunks,
        modules=modules,
        plugin=PluginInfo(name=PLUGIN_NAME, version=__version__),
    )


def load_metafile(raw: Union[str, bytes]) -> Metafile:
    """Parse and validate metafile JSON.

    Raises:
        pydantic.ValidationError: If the document is not JSON or does not
            match the metafile shape.
    """
    return Metafile.model_validate_json(raw)


def payload_to_json(payload: OutputPayload, indent: Optional[int] = 2) -> str:
    """Serialize a payload to the JSON document Codecov expects."""
    return json.dumps(payload.model_dump(mode="json"), indent=indent, ensure_ascii=False)
