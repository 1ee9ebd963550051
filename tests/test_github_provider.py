from __future__ import annotations

from typing import List

import httpx
import pytest

from metafile_codecov.providers.github import (
    MissingEnvironmentError,
    OidcTokenError,
    encode_slug,
    extract_branch,
    extract_pr_number,
    fetch_oidc_token,
    get_service_params,
    is_github_actions,
)

BASE_ENV = {
    "GITHUB_ACTIONS": "true",
    "GITHUB_REPOSITORY": "owner/repo",
    "GITHUB_SHA": "abc123def456",
    "GITHUB_REF": "refs/heads/main",
    "GITHUB_REF_NAME": "main",
    "GITHUB_RUN_ID": "98765",
    "GITHUB_SERVER_URL": "https://github.com",
    "GITHUB_JOB": "build",
}

OIDC_ENV = {
    "ACTIONS_ID_TOKEN_REQUEST_URL": "https://token.actions.example.com/token?api-version=2.0",
    "ACTIONS_RUNTIME_TOKEN": "runtime-secret",
}


def test_encode_slug():
    assert encode_slug("owner/repo") == "owner:::repo::::"
    assert encode_slug("no-slash") == "no-slash::::"
    # Only the first slash splits owner from repo.
    assert encode_slug("owner/repo/extra") == "owner:::repo/extra::::"


def test_is_github_actions():
    assert is_github_actions({"GITHUB_ACTIONS": "true"}) is True
    assert is_github_actions({"GITHUB_ACTIONS": "false"}) is False
    assert is_github_actions({"GITHUB_ACTIONS": "TRUE"}) is False
    assert is_github_actions({}) is False


def test_is_github_actions_defaults_to_process_env(monkeypatch):
    monkeypatch.setenv("GITHUB_ACTIONS", "true")
    assert is_github_actions() is True
    monkeypatch.delenv("GITHUB_ACTIONS")
    assert is_github_actions() is False


@pytest.mark.parametrize(
    "ref,expected",
    [
        ("refs/pull/42/merge", "42"),
        ("refs/pull/1234/merge", "1234"),
        ("refs/heads/main", ""),
        ("refs/pull/42/head", ""),
        ("refs/pull/abc/merge", ""),
        ("", ""),
    ],
)
def test_extract_pr_number(ref: str, expected: str):
    assert extract_pr_number(ref) == expected


def test_extract_branch_precedence():
    assert extract_branch({"GITHUB_HEAD_REF": "feature/x", "GITHUB_REF_NAME": "42/merge"}) == "feature/x"
    assert extract_branch({"GITHUB_HEAD_REF": "", "GITHUB_REF_NAME": "main"}) == "main"
    assert extract_branch({}) == ""


def test_service_params_for_push():
    params = get_service_params(BASE_ENV)
    assert params.model_dump() == {
        "branch": "main",
        "commit": "abc123def456",
        "pr": "",
        "service": "github-actions",
        "slug": "owner:::repo::::",
        "build": "98765",
        "buildURL": "https://github.com/owner/repo/actions/runs/98765",
        "job": "build",
    }


def test_service_params_for_pull_request():
    env = {
        **BASE_ENV,
        "GITHUB_REF": "refs/pull/7/merge",
        "GITHUB_REF_NAME": "7/merge",
        "GITHUB_HEAD_REF": "feature/login",
    }
    params = get_service_params(env)
    assert params.pr == "7"
    assert params.branch == "feature/login"


def test_service_params_defaults_without_run_id():
    env = {"GITHUB_REPOSITORY": "owner/repo", "GITHUB_SHA": "abc"}
    params = get_service_params(env)
    assert params.build == ""
    assert params.buildURL == ""
    assert params.job == ""
    assert params.branch == ""


def test_service_params_default_server_url():
    env = {"GITHUB_REPOSITORY": "owner/repo", "GITHUB_SHA": "abc", "GITHUB_RUN_ID": "1"}
    assert get_service_params(env).buildURL == "https://github.com/owner/repo/actions/runs/1"


@pytest.mark.parametrize("missing", ["GITHUB_REPOSITORY", "GITHUB_SHA"])
def test_service_params_require_repository_and_sha(missing: str):
    env = {k: v for k, v in BASE_ENV.items() if k != missing}
    with pytest.raises(MissingEnvironmentError, match=missing):
        get_service_params(env)


def _token_client(status: int, body, calls: List[httpx.Request]) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_oidc_token():
    calls: List[httpx.Request] = []
    async with _token_client(200, {"value": "eyJ.jwt"}, calls) as client:
        token = await fetch_oidc_token(OIDC_ENV, client)
    assert token == "eyJ.jwt"
    (request,) = calls
    assert request.method == "GET"
    assert request.headers["Authorization"] == "Bearer runtime-secret"
    assert request.url.params["audience"] == "https://codecov.io"
    assert request.url.params["api-version"] == "2.0"


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["ACTIONS_ID_TOKEN_REQUEST_URL", "ACTIONS_RUNTIME_TOKEN"])
async def test_fetch_oidc_token_requires_runtime_env(missing: str):
    env = {k: v for k, v in OIDC_ENV.items() if k != missing}
    with pytest.raises(MissingEnvironmentError, match=missing):
        await fetch_oidc_token(env)


@pytest.mark.asyncio
async def test_fetch_oidc_token_failed_status():
    calls: List[httpx.Request] = []
    async with _token_client(403, {"message": "denied"}, calls) as client:
        with pytest.raises(OidcTokenError, match="403 Forbidden"):
            await fetch_oidc_token(OIDC_ENV, client)
    # Token requests are not retried.
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_fetch_oidc_token_missing_value():
    calls: List[httpx.Request] = []
    async with _token_client(200, {"count": 1}, calls) as client:
        with pytest.raises(OidcTokenError, match="'value'"):
            await fetch_oidc_token(OIDC_ENV, client)
