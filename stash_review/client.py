"""Stash REST API client and configuration helpers."""

from __future__ import annotations

import base64
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from dotenv import load_dotenv
from loguru import logger

from stash_review.collector import (
    CommentPage,
    ReportExtractionError,
    extract_comment_page,
    extract_diffs,
    extract_pull_request,
    extract_user,
)
from stash_review.models import Comment, CommentReport, DiffReport, PullRequest, User
from stash_review.pagination import collect_pull_request_comments

REST_API_PREFIX = "/rest/api/1.0"
DEFAULT_TIMEOUT_SECONDS = 10.0
STASH_URL_ENV_VAR = "STASH_URL"
STASH_LOGIN_ENV_VAR = "STASH_LOGIN"
STASH_PASSWORD_ENV_VAR = "STASH_PASSWORD"
STASH_TIMEOUT_ENV_VAR = "STASH_TIMEOUT_SECONDS"
STASH_VERIFY_TLS_ENV_VAR = "STASH_VERIFY_TLS"

HTTP_OK = frozenset({200})
HTTP_CREATED = frozenset({201})
HTTP_NO_CONTENT = frozenset({204})

ResultT = TypeVar("ResultT")


class StashConfigError(ValueError):
    """Raised when Stash connection settings are missing or invalid."""


class StashClientError(RuntimeError):
    """Raised when a Stash API call fails.

    ``status_code`` and ``status_text`` are set when the server answered with an
    unexpected status; they are None for transport and extraction failures, whose
    original exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status_code: int | None = None,
        status_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.status_text = status_text


@dataclass(frozen=True, slots=True)
class StashCredentials:
    """Login and password used for HTTP basic authentication."""

    login: str
    password: str

    def basic_auth_header(self) -> str:
        token = base64.b64encode(f"{self.login}:{self.password}".encode()).decode("ascii")
        return f"Basic {token}"

    def __repr__(self) -> str:
        return f"StashCredentials(login={self.login!r}, password='***')"


@dataclass(frozen=True, slots=True)
class StashSettings:
    """Connection settings for one Stash server."""

    base_url: str
    credentials: StashCredentials
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    verify_tls: bool = True


def _pull_request_path(project: str, repository: str, pull_request_id: str) -> str:
    return (
        f"/projects/{quote(project, safe='')}/repos/{quote(repository, safe='')}"
        f"/pull-requests/{quote(pull_request_id, safe='')}"
    )


class StashClient:
    """Client for the Stash pull request review API.

    Every call opens its own HTTP client and closes it before returning, whatever the
    outcome. ``transport`` replaces the network layer, e.g. with ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        credentials: StashCredentials,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        verify_tls: bool = True,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._timeout_seconds = timeout_seconds
        self._verify_tls = verify_tls
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _create_http_client(self) -> httpx.Client:
        """Build the HTTP client used for a single call."""
        return httpx.Client(
            base_url=f"{self._base_url}{REST_API_PREFIX}",
            timeout=self._timeout_seconds,
            verify=self._verify_tls,
            transport=self._transport,
        )

    def _authorize(self, request: httpx.Request) -> None:
        """Attach the configured credentials to a request."""
        request.headers["Authorization"] = self._credentials.basic_auth_header()

    def _call(
        self,
        method: str,
        endpoint: str,
        *,
        accepted_statuses: frozenset[int],
        extract: Callable[[str], ResultT],
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> ResultT:
        """Execute one API call and hand the response body to ``extract``."""
        with self._create_http_client() as http_client:
            request = http_client.build_request(method, endpoint, params=params, json=json_body)
            self._authorize(request)
            try:
                response = http_client.send(request)
            except httpx.RequestError as error:
                raise StashClientError(
                    f"Stash request {method} '{endpoint}' did not complete: {error!r}",
                    endpoint=endpoint,
                ) from error

            logger.debug(f"{method} {endpoint} -> {response.status_code}")
            if response.status_code not in accepted_statuses:
                status_text = response.reason_phrase
                raise StashClientError(
                    f"Stash request {method} '{endpoint}' failed with status "
                    f"{response.status_code} ({status_text}).",
                    endpoint=endpoint,
                    status_code=response.status_code,
                    status_text=status_text,
                )

            try:
                return extract(response.text)
            except ReportExtractionError as error:
                raise StashClientError(
                    f"Unable to read Stash response for {method} '{endpoint}': {error}",
                    endpoint=endpoint,
                ) from error

    def get_user(self, user_slug: str) -> User:
        """Fetch a user by slug."""
        return self._call(
            "GET",
            f"/users/{quote(user_slug, safe='')}",
            accepted_statuses=HTTP_OK,
            extract=extract_user,
        )

    def get_pull_request(
        self, project: str, repository: str, pull_request_id: str
    ) -> PullRequest:
        """Fetch a pull request with its version and reviewers."""
        return self._call(
            "GET",
            _pull_request_path(project, repository, pull_request_id),
            accepted_statuses=HTTP_OK,
            extract=lambda body: extract_pull_request(
                project, repository, pull_request_id, body
            ),
        )

    def get_pull_request_comments_page(
        self,
        project: str,
        repository: str,
        pull_request_id: str,
        path: str,
        start: int = 0,
    ) -> CommentPage:
        """Fetch one page of the comments attached to a file of a pull request."""
        return self._call(
            "GET",
            f"{_pull_request_path(project, repository, pull_request_id)}/comments",
            accepted_statuses=HTTP_OK,
            extract=extract_comment_page,
            params={"path": path, "start": start},
        )

    def get_pull_request_comments(
        self, project: str, repository: str, pull_request_id: str, path: str
    ) -> CommentReport:
        """Fetch every comment attached to a file of a pull request, across all pages."""
        return collect_pull_request_comments(self, project, repository, pull_request_id, path)

    def get_pull_request_diffs(
        self, project: str, repository: str, pull_request_id: str
    ) -> DiffReport:
        """Fetch the diff of a pull request with its line and file comments."""
        return self._call(
            "GET",
            f"{_pull_request_path(project, repository, pull_request_id)}/diff",
            accepted_statuses=HTTP_OK,
            extract=extract_diffs,
            params={"withComments": "true"},
        )

    def post_comment_on_pull_request(
        self, project: str, repository: str, pull_request_id: str, message: str
    ) -> None:
        """Post a general comment on a pull request."""
        self._call(
            "POST",
            f"{_pull_request_path(project, repository, pull_request_id)}/comments",
            accepted_statuses=HTTP_CREATED,
            extract=_ignore_body,
            json_body={"text": message},
        )

    def post_comment_line_on_pull_request(
        self,
        project: str,
        repository: str,
        pull_request_id: str,
        message: str,
        path: str,
        line: int,
        line_type: str,
    ) -> None:
        """Post a comment anchored to one line of a file in a pull request."""
        self._call(
            "POST",
            f"{_pull_request_path(project, repository, pull_request_id)}/comments",
            accepted_statuses=HTTP_CREATED,
            extract=_ignore_body,
            json_body={
                "text": message,
                "anchor": {"line": line, "lineType": str(line_type), "path": path},
            },
        )

    def delete_pull_request_comment(
        self, project: str, repository: str, pull_request_id: str, comment: Comment
    ) -> None:
        """Delete a comment; its version must match the server's current version."""
        self._call(
            "DELETE",
            f"{_pull_request_path(project, repository, pull_request_id)}/comments/{comment.id}",
            accepted_statuses=HTTP_NO_CONTENT,
            extract=_ignore_body,
            params={"version": comment.version},
        )

    def approve_pull_request(
        self, project: str, repository: str, pull_request_id: str
    ) -> None:
        """Approve a pull request as the authenticated user."""
        self._call(
            "POST",
            f"{_pull_request_path(project, repository, pull_request_id)}/approve",
            accepted_statuses=HTTP_OK,
            extract=_ignore_body,
        )

    def reset_pull_request_approval(
        self, project: str, repository: str, pull_request_id: str
    ) -> None:
        """Withdraw the authenticated user's approval of a pull request."""
        self._call(
            "DELETE",
            f"{_pull_request_path(project, repository, pull_request_id)}/approve",
            accepted_statuses=HTTP_OK,
            extract=_ignore_body,
        )

    def add_pull_request_reviewer(
        self,
        project: str,
        repository: str,
        pull_request_id: str,
        version: int,
        users: Iterable[User],
    ) -> None:
        """Set reviewers on a pull request at the given pull request version."""
        self._call(
            "PUT",
            _pull_request_path(project, repository, pull_request_id),
            accepted_statuses=HTTP_OK,
            extract=_ignore_body,
            json_body={
                "id": pull_request_id,
                "version": version,
                "reviewers": [{"user": {"name": user.name}} for user in users],
            },
        )


def _ignore_body(_body: str) -> None:
    """Extractor for calls whose response body is not used."""
    return None


def _parse_verify_tls(value: str | None) -> bool:
    if value is None:
        return True
    return value.strip().lower() not in {"0", "false", "no", "off"}


def load_stash_settings() -> StashSettings:
    """Read Stash connection settings from the environment and a local .env file."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    base_url = os.getenv(STASH_URL_ENV_VAR)
    if not base_url:
        raise StashConfigError(f"Missing Stash URL. Set {STASH_URL_ENV_VAR}.")

    login = os.getenv(STASH_LOGIN_ENV_VAR)
    password = os.getenv(STASH_PASSWORD_ENV_VAR)
    if not login or password is None:
        raise StashConfigError(
            f"Missing Stash credentials. Set {STASH_LOGIN_ENV_VAR} and {STASH_PASSWORD_ENV_VAR}."
        )

    timeout_value = os.getenv(STASH_TIMEOUT_ENV_VAR)
    timeout_seconds = DEFAULT_TIMEOUT_SECONDS
    if timeout_value is not None:
        try:
            timeout_seconds = float(timeout_value)
        except ValueError as error:
            raise StashConfigError(
                f"{STASH_TIMEOUT_ENV_VAR} must be a number, got '{timeout_value}'."
            ) from error
        if timeout_seconds <= 0:
            raise StashConfigError(
                f"{STASH_TIMEOUT_ENV_VAR} must be positive, got '{timeout_value}'."
            )

    return StashSettings(
        base_url=base_url,
        credentials=StashCredentials(login=login, password=password),
        timeout_seconds=timeout_seconds,
        verify_tls=_parse_verify_tls(os.getenv(STASH_VERIFY_TLS_ENV_VAR)),
    )


def build_stash_client(
    settings: StashSettings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> StashClient:
    """Build a Stash client from explicit settings or from the environment."""
    resolved = settings if settings is not None else load_stash_settings()
    return StashClient(
        resolved.base_url,
        resolved.credentials,
        timeout_seconds=resolved.timeout_seconds,
        verify_tls=resolved.verify_tls,
        transport=transport,
    )
