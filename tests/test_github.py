"""Tests for the GitHub REST service."""
from unittest.mock import patch

import pytest
import requests


def _issue_json(number, title="Crash on start", login="alice", assignee=None, pr=False):
    data = {
        "number": number,
        "title": title,
        "user": {"login": login},
        "assignee": {"login": assignee} if assignee else None,
        "html_url": f"https://github.com/o/r/issues/{number}",
    }
    if pr:
        data["pull_request"] = {"html_url": f"https://github.com/o/r/pull/{number}"}
    return data


class TestGitHubConfig:
    def test_anonymous_headers(self):
        from turtlehub.services.github import GitHubConfig
        config = GitHubConfig()
        assert "Authorization" not in config.headers
        assert config.headers["User-Agent"].startswith("TurtleHub/")
        assert not config.authenticated

    def test_token_header(self):
        from turtlehub.services.github import GitHubConfig
        config = GitHubConfig(token="secret")
        assert config.headers["Authorization"] == "Bearer secret"
        assert config.authenticated


class TestIssueModel:
    def test_from_api(self):
        from turtlehub.services.github import Issue
        issue = Issue.from_api(_issue_json(7, "Title", "bob", assignee="carol"))
        assert issue.number == 7
        assert issue.title == "Title"
        assert issue.author == "bob"
        assert issue.assignee == "carol"
        assert issue.html_url.endswith("/issues/7")
        assert not issue.is_pull_request
        assert not issue.checked

    def test_pull_request_marker(self):
        from turtlehub.services.github import Issue
        issue = Issue.from_api(_issue_json(8, pr=True))
        assert issue.is_pull_request
        assert issue.pull_request_url.endswith("/pull/8")

    def test_empty_pull_request_object_still_marks(self):
        from turtlehub.services.github import Issue
        data = _issue_json(9)
        data["pull_request"] = {}
        assert Issue.from_api(data).is_pull_request


class TestRequests:
    def test_list_issues_params(self, make_response):
        from turtlehub.services.github import GitHubConfig, list_issues
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(json_data=[_issue_json(1), _issue_json(2)])
            issues = list_issues(GitHubConfig(), "owner", "repo", 50, 3)
        assert [i.number for i in issues] == [1, 2]
        url = get.call_args.args[0]
        assert url == "https://api.github.com/repos/owner/repo/issues"
        assert get.call_args.kwargs["params"] == {"per_page": 50, "page": 3}

    def test_rate_limit_exceeded(self, make_response):
        from turtlehub.services.github import GitHubConfig, RateLimitExceededError, list_issues
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(
                403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"})
            with pytest.raises(RateLimitExceededError, match="rate limit"):
                list_issues(GitHubConfig(), "o", "r")

    def test_forbidden_without_rate_limit_is_generic(self, make_response):
        from turtlehub.services.github import (
            GitHubConfig, GitHubError, RateLimitExceededError, list_issues,
        )
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(403, headers={"X-RateLimit-Remaining": "42"},
                                             text="forbidden")
            with pytest.raises(GitHubError) as exc_info:
                list_issues(GitHubConfig(), "o", "r")
        assert not isinstance(exc_info.value, RateLimitExceededError)
        assert "403" in str(exc_info.value)

    def test_unauthorized(self, make_response):
        from turtlehub.services.github import AuthenticationError, GitHubConfig, list_issues
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(401)
            with pytest.raises(AuthenticationError):
                list_issues(GitHubConfig(token="bad"), "o", "r")

    def test_connection_error_is_wrapped(self):
        from turtlehub.services.github import GitHubConfig, GitHubError, list_issues
        with patch("turtlehub.services.github.requests.get",
                   side_effect=requests.ConnectionError("no route")):
            with pytest.raises(GitHubError) as exc_info:
                list_issues(GitHubConfig(), "o", "r")
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_malformed_json(self, make_response):
        from turtlehub.services.github import GitHubConfig, GitHubError, list_issues
        r = make_response()
        r.json.side_effect = ValueError("not json")
        with patch("turtlehub.services.github.requests.get", return_value=r):
            with pytest.raises(GitHubError, match="Malformed"):
                list_issues(GitHubConfig(), "o", "r")

    def test_issue_list_must_be_a_list(self, make_response):
        from turtlehub.services.github import GitHubConfig, GitHubError, list_issues
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(json_data={"message": "huh"})
            with pytest.raises(GitHubError):
                list_issues(GitHubConfig(), "o", "r")

    def test_latest_release(self, make_response):
        from turtlehub.services.github import GitHubConfig, get_latest_release
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(json_data={
                "tag_name": "v0.5.0", "html_url": "https://github.com/d/T/releases/v0.5.0"})
            release = get_latest_release(GitHubConfig(), "d", "T")
        assert release.tag_name == "v0.5.0"
        assert get.call_args.args[0].endswith("/repos/d/T/releases/latest")

    def test_rate_limit_probe(self, make_response):
        from turtlehub.services.github import GitHubConfig, get_rate_limit
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(json_data={
                "resources": {"core": {"remaining": 57, "limit": 60}}})
            rate = get_rate_limit(GitHubConfig())
        assert (rate.remaining, rate.limit) == (57, 60)

    def test_rate_limit_without_core_resource(self, make_response):
        from turtlehub.services.github import GitHubConfig, GitHubError, get_rate_limit
        with patch("turtlehub.services.github.requests.get") as get:
            get.return_value = make_response(json_data={"resources": {}})
            with pytest.raises(GitHubError):
                get_rate_limit(GitHubConfig())


class TestCheckCredentials:
    def test_without_token(self):
        from turtlehub.services.github import GitHubConfig, check_credentials
        with patch("turtlehub.services.github.requests.get") as get:
            assert check_credentials(GitHubConfig()) is False
        get.assert_not_called()

    def test_rejected_token(self, make_response):
        from turtlehub.services.github import GitHubConfig, check_credentials
        with patch("turtlehub.services.github.requests.get", return_value=make_response(401)):
            assert check_credentials(GitHubConfig(token="bad")) is False

    def test_accepted_token(self, make_response):
        from turtlehub.services.github import GitHubConfig, check_credentials
        with patch("turtlehub.services.github.requests.get",
                   return_value=make_response(json_data={"login": "me"})) as get:
            assert check_credentials(GitHubConfig(token="good")) is True
        assert get.call_args.args[0].endswith("/user")


class TestIssuePaging:
    def _pages(self, sizes):
        from turtlehub.services.github import Issue
        pages, n = [], 0
        for size in sizes:
            page = []
            for _ in range(size):
                n += 1
                page.append(Issue(n, f"Issue {n}", "alice", f"https://x/{n}"))
            pages.append(page)
        return pages

    def test_pages_until_empty(self):
        from turtlehub.services.github import GitHubConfig, iter_issue_pages
        with patch("turtlehub.services.github.list_issues",
                   side_effect=self._pages([50, 50, 13, 0])) as list_issues:
            pages = list(iter_issue_pages(GitHubConfig(), "o", "r"))
        assert sum(len(p) for p in pages) == 113
        assert list_issues.call_count == 4
        assert [c.args[4] for c in list_issues.call_args_list] == [1, 2, 3, 4]
        assert all(c.args[3] == 50 for c in list_issues.call_args_list)

    def test_empty_repository(self):
        from turtlehub.services.github import GitHubConfig, iter_issue_pages
        with patch("turtlehub.services.github.list_issues", return_value=[]) as list_issues:
            assert list(iter_issue_pages(GitHubConfig(), "o", "r")) == []
        assert list_issues.call_count == 1

    def test_cancelled_between_pages(self):
        from turtlehub.services.github import GitHubConfig, iter_issue_pages
        calls = []
        with patch("turtlehub.services.github.list_issues",
                   side_effect=self._pages([50, 50, 50, 0])) as list_issues:
            for page in iter_issue_pages(GitHubConfig(), "o", "r",
                                         cancelled=lambda: len(calls) >= 1):
                calls.append(page)
        assert len(calls) == 1
        assert list_issues.call_count == 1
