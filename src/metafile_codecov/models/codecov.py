"""Pydantic models for the Codecov bundle analysis payload (version "3").

These models are the target structure of `metafile_codecov.transform`. Field
names are the wire names Codecov expects, so `model_dump(mode="json")` yields
the upload body directly.

Serialization contract:
    * `Asset.gzipSize` is always written, as `null` when unknown.
    * Optional fields that were not supplied (`bundler`, `duration`,
      `Module.size`) are dropped instead of being written as `null`.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, model_serializer

SCHEMA_VERSION = "3"


def _drop_none(data: Dict[str, Any], keys: tuple[str, ...]) -> Dict[str, Any]:
    for key in keys:
        if data.get(key) is None:
            data.pop(key, None)
    return data


class BundlerInfo(BaseModel):
    name: str
    version: str


class PluginInfo(BaseModel):
    name: str
    version: str


class Asset(BaseModel):
    """One emitted file with its raw and gzip sizes."""

    name: str
    size: int
    gzipSize: Optional[int] = None
    normalized: str


class Chunk(BaseModel):
    """One emitted file seen as a code-splitting unit."""

    id: str
    uniqueId: str
    entry: bool
    initial: bool
    names: List[str] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list)
    dynamicImports: List[str] = Field(default_factory=list)


class Module(BaseModel):
    """One source file and the chunks it ended up in."""

    name: str
    size: Optional[int] = None
    chunkUniqueIds: List[str] = Field(default_factory=list)

    @model_serializer(mode="wrap")
    def _omit_missing_size(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        return _drop_none(handler(self), ("size",))


class OutputPayload(BaseModel):
    """The document uploaded to Codecov for one bundle."""

    version: str = SCHEMA_VERSION
    bundleName: str
    bundler: Optional[BundlerInfo] = None
    builtAt: int
    duration: Optional[int] = None
    assets: List[Asset] = Field(default_factory=list)
    chunks: List[Chunk] = Field(default_factory=list)
    modules: List[Module] = Field(default_factory=list)
    plugin: PluginInfo

    @model_serializer(mode="wrap")
    def _omit_unset_optionals(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        return _drop_none(handler(self), ("bundler", "duration"))
