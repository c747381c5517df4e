"""GitHub REST integration: list issues, look up releases, probe rate limits."""
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import requests
from dataclasses import dataclass, field
from datetime import datetime
from gettext import gettext as _
from typing import Callable, Iterator, Optional

from turtlehub import APP_NAME, __version__

log = logging.getLogger(__name__)

ISSUES_PAGE_SIZE = 50


@dataclass
class GitHubConfig:
    token: Optional[str] = None
    base_url: str = "https://api.github.com"
    timeout: int = 30

    @property
    def headers(self) -> dict:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"{APP_NAME}/{__version__}",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def authenticated(self) -> bool:
        return bool(self.token)


# ── Models ────────────────────────────────────────────────────────────

@dataclass
class Issue:
    number: int
    title: str
    author: str
    html_url: str
    assignee: Optional[str] = None
    pull_request_url: Optional[str] = None
    checked: bool = field(default=False, compare=False)

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request_url is not None

    @classmethod
    def from_api(cls, data: dict) -> Issue:
        assignee = data.get("assignee") or {}
        pull_request = data.get("pull_request")
        return cls(
            number=int(data["number"]),
            title=data.get("title") or "",
            author=(data.get("user") or {}).get("login", ""),
            html_url=data.get("html_url", ""),
            assignee=assignee.get("login"),
            pull_request_url=(pull_request.get("html_url", "")
                              if pull_request is not None else None),
        )


@dataclass
class Release:
    tag_name: str
    html_url: str

    @classmethod
    def from_api(cls, data: dict) -> Release:
        return cls(tag_name=data["tag_name"], html_url=data.get("html_url", ""))


@dataclass
class RateLimit:
    remaining: int
    limit: int


# ── Exceptions ────────────────────────────────────────────────────────

class GitHubError(Exception):
    pass


class AuthenticationError(GitHubError):
    pass


class InvalidCredentialsError(AuthenticationError):
    pass


class RateLimitExceededError(GitHubError):
    pass


# ── Requests ──────────────────────────────────────────────────────────

def _raise_for_status(r: requests.Response) -> None:
    if r.status_code in (403, 429) and r.headers.get("X-RateLimit-Remaining") == "0":
        reset = r.headers.get("X-RateLimit-Reset")
        message = _("API rate limit exceeded.")
        if reset and reset.isdigit():
            when = datetime.fromtimestamp(int(reset)).strftime("%H:%M")
            message += " " + _("The limit resets at {time}.").format(time=when)
        raise RateLimitExceededError(message)
    if r.status_code == 401:
        raise AuthenticationError(_("Authentication failed. Check your API token."))
    if not 200 <= r.status_code < 300:
        raise GitHubError(f"GitHub request failed: {r.status_code} {r.text}")


def _get_json(config: GitHubConfig, path: str, params: dict | None = None):
    url = f"{config.base_url.rstrip('/')}{path}"
    try:
        r = requests.get(url, headers=config.headers, params=params, timeout=config.timeout)
    except requests.RequestException as e:
        raise GitHubError(_("Connection failed: {error}").format(error=str(e))) from e
    _raise_for_status(r)
    try:
        return r.json()
    except ValueError as e:
        raise GitHubError(_("Malformed response from {url}").format(url=url)) from e


def list_issues(config: GitHubConfig, owner: str, repo: str,
                page_size: int = ISSUES_PAGE_SIZE, page: int = 1) -> list[Issue]:
    """Fetch one page of open issues (pull requests included)."""
    data = _get_json(config, f"/repos/{owner}/{repo}/issues",
                     params={"per_page": page_size, "page": page})
    if not isinstance(data, list):
        raise GitHubError(_("Malformed issue list for {owner}/{repo}").format(owner=owner, repo=repo))
    return [Issue.from_api(item) for item in data]


def iter_issue_pages(config: GitHubConfig, owner: str, repo: str,
                     page_size: int = ISSUES_PAGE_SIZE,
                     cancelled: Callable[[], bool] | None = None) -> Iterator[list[Issue]]:
    """Yield pages of issues, starting at page 1, until an empty page.

    ``cancelled`` is polled before every request; once it returns True no
    further page is requested.
    """
    page = 1
    while cancelled is None or not cancelled():
        issues = list_issues(config, owner, repo, page_size, page)
        log.info("Got %d issues (page %d)", len(issues), page)
        if not issues:
            return
        yield issues
        page += 1
    log.info("Issue download cancelled before page %d", page)


def get_latest_release(config: GitHubConfig, owner: str, repo: str) -> Release:
    data = _get_json(config, f"/repos/{owner}/{repo}/releases/latest")
    try:
        return Release.from_api(data)
    except (KeyError, TypeError, AttributeError) as e:
        raise GitHubError(_("Malformed release for {owner}/{repo}").format(owner=owner, repo=repo)) from e


def get_rate_limit(config: GitHubConfig) -> RateLimit:
    """Return the core API rate limit for the current credentials."""
    data = _get_json(config, "/rate_limit")
    try:
        core = data["resources"]["core"]
        return RateLimit(remaining=int(core["remaining"]), limit=int(core["limit"]))
    except (KeyError, TypeError, ValueError) as e:
        raise GitHubError(_("Malformed rate limit response")) from e


def check_credentials(config: GitHubConfig) -> bool:
    """True if the configured token is accepted by GitHub."""
    if not config.authenticated:
        return False
    try:
        _get_json(config, "/user")
    except AuthenticationError:
        return False
    return True
