"""Main CLI entry point for metafile-codecov.

This module provides a command-line interface using Typer. A single command
runs the whole pipeline:
1.  Loading configuration (environment variables and `.env`).
2.  Reading and validating the metafile JSON.
3.  Transforming it into a Codecov bundle analysis payload
    (metafile_codecov.transform).
4.  Writing the payload to a file or stdout.
5.  Optionally uploading it to Codecov using GitHub Actions OIDC
    (metafile_codecov.upload, metafile_codecov.providers.github).

Usage:
    metafile-codecov -f metafile.json -n my-app --output-dir dist --upload
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Optional

import httpx
import typer
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from ._version import __version__
from .config import Settings, get_settings
from .models.codecov import BundlerInfo
from .providers.github import (
    MissingEnvironmentError,
    OidcTokenError,
    fetch_oidc_token,
    get_service_params,
    is_github_actions,
)
from .transform import TransformOptions, load_metafile, payload_to_json, transform_metafile
from .upload import UploadResult, upload_bundle_stats

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Convert metafile output to Codecov bundle analysis format.",
    add_completion=False,
)


class UploadFailedError(RuntimeError):
    """The upload could not be attempted or did not succeed."""


async def run_upload(
    payload: str,
    settings: Settings,
    *,
    env: Optional[Mapping[str, str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> UploadResult:
    """Upload bundle stats to Codecov via GitHub Actions OIDC.

    Detects the GitHub Actions environment, fetches an OIDC token, gathers
    service parameters and performs the two-step upload.

    Raises:
        UploadFailedError: Outside GitHub Actions or when the upload fails.
        MissingEnvironmentError: If a required Actions variable is unset.
        OidcTokenError: If no OIDC token could be obtained.
    """
    if not is_github_actions(env):
        raise UploadFailedError("--upload is only supported in GitHub Actions")

    typer.echo("Fetching OIDC token...", err=True)
    oidc_token = await fetch_oidc_token(env, client, timeout=settings.HTTP_TIMEOUT)

    typer.echo("Gathering service parameters...", err=True)
    service_params = get_service_params(env)

    typer.echo("Uploading bundle stats to Codecov...", err=True)
    result = await upload_bundle_stats(
        payload,
        oidc_token,
        service_params,
        api_url=settings.CODECOV_API_URL,
        client=client,
        max_attempts=settings.UPLOAD_MAX_ATTEMPTS,
        retry_delay_ms=settings.UPLOAD_RETRY_DELAY_MS,
        timeout=settings.HTTP_TIMEOUT,
    )
    if not result.success:
        raise UploadFailedError(f"Upload failed: {result.error}")

    typer.echo("Upload successful", err=True)
    return result


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command(help="Transform a metafile and optionally upload it to Codecov.")
def convert(
    metafile: Path = typer.Option(
        ...,
        "--metafile",
        "-f",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Path to metafile JSON",
    ),
    bundle_name: str = typer.Option(..., "--bundle-name", "-n", help="Bundle name for Codecov"),
    output_dir: Optional[str] = typer.Option(
        None, "--output-dir", help="Build output directory for gzip size calculation"
    ),
    bundler_name: str = typer.Option("bun", "--bundler-name", help="Bundler name"),
    bundler_version: Optional[str] = typer.Option(
        None,
        "--bundler-version",
        help="Bundler version (bundler info is only reported when set)",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write output to file instead of stdout"
    ),
    upload: bool = typer.Option(
        False, "--upload", help="Upload bundle stats to Codecov (GitHub Actions OIDC)"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version",
    ),
) -> None:
    """Convert a metafile into a Codecov bundle analysis payload."""
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    try:
        parsed = load_metafile(metafile.read_bytes())
    except ValidationError as e:
        typer.echo(f"Error: invalid metafile {metafile}: {e}", err=True)
        raise typer.Exit(code=1) from e
    logger.debug(
        "Loaded metafile %s inputs=%d outputs=%d",
        metafile,
        len(parsed.inputs),
        len(parsed.outputs),
    )

    payload = transform_metafile(
        parsed,
        TransformOptions(
            bundleName=bundle_name,
            outputDir=output_dir,
            bundler=(
                BundlerInfo(name=bundler_name, version=bundler_version)
                if bundler_version
                else None
            ),
        ),
    )
    rendered = payload_to_json(payload)

    if output is not None:
        output.write_text(rendered, encoding="utf-8")
        typer.echo(f"Wrote Codecov bundle analysis to {output}", err=True)
    else:
        typer.echo(rendered)

    if upload:
        try:
            asyncio.run(run_upload(rendered, settings))
        except (UploadFailedError, MissingEnvironmentError, OidcTokenError, httpx.HTTPError) as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=1) from e


def main() -> None:  # pragma: no cover - console script shim
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
