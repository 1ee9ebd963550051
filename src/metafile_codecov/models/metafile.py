"""Pydantic models for the build manifest written by bun or esbuild.

Both bundlers emit the same "metafile" shape (`bun build --metafile`, or
esbuild with `metafile: true`). Field names follow the JSON keys verbatim so a
metafile can be validated directly with `Metafile.model_validate_json`.
Unknown keys are ignored; the transform only reads the fields modelled here.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class InputImport(BaseModel):
    """An import statement found in a source file."""

    path: str
    kind: str
    original: Optional[str] = None


class MetafileInput(BaseModel):
    """A source file consumed by the build."""

    bytes: int
    imports: List[InputImport] = Field(default_factory=list)
    format: Optional[str] = None


class OutputInput(BaseModel):
    """Contribution of one source file to an output file."""

    bytesInOutput: int


class OutputImport(BaseModel):
    """An import left in an emitted file (another chunk or an external)."""

    path: str
    kind: str
    original: Optional[str] = None
    external: Optional[bool] = None


class MetafileOutput(BaseModel):
    """An emitted file, including source maps."""

    bytes: int
    # Keyed by source path; insertion order is the bundler's order.
    inputs: Dict[str, OutputInput] = Field(default_factory=dict)
    imports: List[OutputImport] = Field(default_factory=list)
    exports: List[str] = Field(default_factory=list)
    entryPoint: Optional[str] = None


class Metafile(BaseModel):
    """The complete manifest for one build."""

    inputs: Dict[str, MetafileInput] = Field(default_factory=dict)
    outputs: Dict[str, MetafileOutput] = Field(default_factory=dict)
