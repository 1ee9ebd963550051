"""GitHub Actions service parameters and OIDC token retrieval.

Codecov identifies tokenless uploads from GitHub Actions by a set of service
parameters (branch, commit, slug, run id, ...) plus an OIDC JWT minted by the
Actions runtime for the ``https://codecov.io`` audience.

Every function reads the environment through an explicit ``env`` mapping that
defaults to ``os.environ``; pass a plain dict to get deterministic behaviour.

Environment variables consumed (names are fixed by GitHub):
    GITHUB_ACTIONS, GITHUB_REPOSITORY, GITHUB_SHA, GITHUB_REF,
    GITHUB_REF_NAME, GITHUB_HEAD_REF, GITHUB_RUN_ID, GITHUB_SERVER_URL,
    GITHUB_JOB, ACTIONS_ID_TOKEN_REQUEST_URL, ACTIONS_RUNTIME_TOKEN
"""
from __future__ import annotations

import logging
import os
import re
from typing import Any, Literal, Mapping, Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

__all__ = [
    "GitHubActionsParams",
    "MissingEnvironmentError",
    "OidcTokenError",
    "encode_slug",
    "extract_branch",
    "extract_pr_number",
    "fetch_oidc_token",
    "get_service_params",
    "is_github_actions",
]

OIDC_AUDIENCE = "https://codecov.io"
DEFAULT_SERVER_URL = "https://github.com"

_PR_REF = re.compile(r"^refs/pull/(\d+)/merge$")

Env = Mapping[str, str]


class MissingEnvironmentError(RuntimeError):
    """A required CI environment variable is not set."""


class OidcTokenError(RuntimeError):
    """The Actions runtime did not hand out an OIDC token."""


class GitHubActionsParams(BaseModel):
    """Service parameters posted to Codecov when requesting an upload URL."""

    branch: str
    commit: str
    pr: str
    service: Literal["github-actions"] = "github-actions"
    slug: str
    build: str
    buildURL: str
    job: str


def _env(env: Optional[Env]) -> Env:
    return os.environ if env is None else env


def encode_slug(owner_repo: str) -> str:
    """Encode a GitHub ``owner/repo`` slug into Codecov's wire format.

    >>> encode_slug("octo-org/octo-repo")
    'octo-org:::octo-repo::::'
    >>> encode_slug("no-slash")
    'no-slash::::'
    """
    owner, sep, repo = owner_repo.partition("/")
    if not sep:
        return f"{owner_repo}::::"
    return f"{owner}:::{repo}::::"


def is_github_actions(env: Optional[Env] = None) -> bool:
    """Return True when running inside GitHub Actions."""
    return _env(env).get("GITHUB_ACTIONS") == "true"


def extract_pr_number(ref: str) -> str:
    """Return the pull request number from a ``GITHUB_REF``, or ``""``.

    >>> extract_pr_number("refs/pull/42/merge")
    '42'
    >>> extract_pr_number("refs/heads/main")
    ''
    """
    match = _PR_REF.match(ref)
    return match.group(1) if match else ""


def extract_branch(env: Optional[Env] = None) -> str:
    # GITHUB_HEAD_REF is only set for pull_request events.
    values = _env(env)
    return values.get("GITHUB_HEAD_REF") or values.get("GITHUB_REF_NAME") or ""


def _require(values: Env, name: str, hint: str = "") -> str:
    value = values.get(name)
    if not value:
        raise MissingEnvironmentError(f"{name} is not set{hint}")
    return value


def get_service_params(env: Optional[Env] = None) -> GitHubActionsParams:
    """Gather Codecov service parameters from GitHub Actions variables.

    Raises:
        MissingEnvironmentError: If GITHUB_REPOSITORY or GITHUB_SHA is unset.
    """
    values = _env(env)
    repository = _require(values, "GITHUB_REPOSITORY")
    commit = _require(values, "GITHUB_SHA")

    server_url = values.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL
    run_id = values.get("GITHUB_RUN_ID") or ""

    return GitHubActionsParams(
        branch=extract_branch(values),
        commit=commit,
        pr=extract_pr_number(values.get("GITHUB_REF") or ""),
        slug=encode_slug(repository),
        build=run_id,
        buildURL=f"{server_url}/{repository}/actions/runs/{run_id}" if run_id else "",
        job=values.get("GITHUB_JOB") or "",
    )


async def fetch_oidc_token(
    env: Optional[Env] = None,
    client: Optional[httpx.AsyncClient] = None,
    *,
    timeout: float = 30.0,
) -> str:
    """Fetch an OIDC JWT for the Codecov audience from the Actions runtime.

    Requires the workflow permission ``id-token: write``, which makes the
    runtime export ACTIONS_ID_TOKEN_REQUEST_URL and ACTIONS_RUNTIME_TOKEN.

    Raises:
        MissingEnvironmentError: If either runtime variable is unset.
        OidcTokenError: On a non-2xx response or a response without ``value``.
    """
    values = _env(env)
    request_url = _require(
        values,
        "ACTIONS_ID_TOKEN_REQUEST_URL",
        ". Ensure the workflow has 'permissions: id-token: write'.",
    )
    runtime_token = _require(values, "ACTIONS_RUNTIME_TOKEN")

    # The request URL already carries an api-version query string.
    url = f"{request_url}&audience={OIDC_AUDIENCE}"
    owns_client = client is None
    http = client if client is not None else httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.get(url, headers={"Authorization": f"Bearer {runtime_token}"})
    finally:
        if owns_client:
            await http.aclose()

    if not response.is_success:
        raise OidcTokenError(
            f"OIDC token request failed: {response.status_code} {response.reason_phrase}"
        )
    try:
        data: Any = response.json()
    except ValueError as e:
        raise OidcTokenError(f"OIDC token response is not JSON: {e}") from e
    token = data.get("value") if isinstance(data, dict) else None
    if not token:
        raise OidcTokenError("OIDC token response missing 'value' field")
    logger.debug("Obtained OIDC token for audience %s", OIDC_AUDIENCE)
    return str(token)
