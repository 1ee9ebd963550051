"""Convert bun/esbuild metafiles into Codecov bundle analysis payloads.

Public API:
    transform_metafile, load_metafile, payload_to_json: metafile -> payload
    normalize_asset_name: content-hash stripping for asset names
    get_gzip_size: gzip size of compressible assets
    upload_bundle_stats: two-step upload to Codecov
    GitHub Actions helpers: get_service_params, fetch_oidc_token, ...

Example:
    >>> from metafile_codecov import TransformOptions, load_metafile, transform_metafile
    >>> metafile = load_metafile('{"inputs": {}, "outputs": {}}')
    >>> transform_metafile(metafile, TransformOptions(bundleName="my-app")).version
    '3'
"""
from __future__ import annotations

from ._version import PLUGIN_NAME, __version__
from .compress import get_gzip_size
from .models.codecov import Asset, BundlerInfo, Chunk, Module, OutputPayload, PluginInfo
from .models.metafile import Metafile, MetafileInput, MetafileOutput
from .normalize import normalize_asset_name
from .providers.github import (
    GitHubActionsParams,
    MissingEnvironmentError,
    OidcTokenError,
    encode_slug,
    extract_branch,
    extract_pr_number,
    fetch_oidc_token,
    get_service_params,
    is_github_actions,
)
from .transform import TransformOptions, load_metafile, payload_to_json, transform_metafile
from .upload import (
    MalformedResponseError,
    RequestFailedError,
    UploadResult,
    upload_bundle_stats,
    with_retry,
)

__all__ = [
    "PLUGIN_NAME",
    "__version__",
    "Asset",
    "BundlerInfo",
    "Chunk",
    "GitHubActionsParams",
    "MalformedResponseError",
    "Metafile",
    "MetafileInput",
    "MetafileOutput",
    "MissingEnvironmentError",
    "Module",
    "OidcTokenError",
    "OutputPayload",
    "PluginInfo",
    "RequestFailedError",
    "TransformOptions",
    "UploadResult",
    "encode_slug",
    "extract_branch",
    "extract_pr_number",
    "fetch_oidc_token",
    "get_gzip_size",
    "get_service_params",
    "is_github_actions",
    "load_metafile",
    "normalize_asset_name",
    "payload_to_json",
    "transform_metafile",
    "upload_bundle_stats",
    "with_retry",
]
