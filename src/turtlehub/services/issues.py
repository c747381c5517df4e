"""Issue filters: small predicates over :class:`Issue` and a combinator."""

from __future__ import annotations

from typing import Callable, Iterable

from turtlehub.services.github import Issue

IssuePredicate = Callable[[Issue], bool]


def searchable_text(issue: Issue) -> str:
    """Text a search query is matched against: every column of the list."""
    parts = [str(issue.number), issue.title, issue.author]
    if issue.assignee:
        parts.append(issue.assignee)
    return "\n".join(parts).lower()


def text_match(query: str) -> IssuePredicate:
    """Case-insensitive substring match; an empty query matches everything."""
    needle = query.lower()
    if not needle:
        return lambda issue: True
    return lambda issue: needle in searchable_text(issue)


def pull_request_policy(include_pull_requests: bool) -> IssuePredicate:
    if include_pull_requests:
        return lambda issue: True
    return lambda issue: not issue.is_pull_request


def all_of(*predicates: IssuePredicate) -> IssuePredicate:
    return lambda issue: all(p(issue) for p in predicates)


def build_filter(query: str = "", include_pull_requests: bool = False) -> IssuePredicate:
    return all_of(text_match(query), pull_request_policy(include_pull_requests))


def filter_issues(issues: Iterable[Issue], query: str = "",
                  include_pull_requests: bool = False) -> list[Issue]:
    """Return the visible subset of ``issues``, keeping their order."""
    predicate = build_filter(query, include_pull_requests)
    return [issue for issue in issues if predicate(issue)]
