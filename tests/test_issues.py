"""Tests for the issue filters."""
import pytest


def _make_issue(number, title, author="alice", assignee=None, pr=False):
    from turtlehub.services.github import Issue
    return Issue(
        number=number, title=title, author=author,
        html_url=f"https://github.com/o/r/issues/{number}",
        assignee=assignee,
        pull_request_url=f"https://github.com/o/r/pull/{number}" if pr else None,
    )


@pytest.fixture
def issues():
    return [
        _make_issue(1, "Crash when opening settings"),
        _make_issue(2, "Add dark theme", author="bob", assignee="carol"),
        _make_issue(3, "Fix crash in parser", author="dave", pr=True),
        _make_issue(14, "Typo in README", pr=True),
        _make_issue(21, "Slow startup", author="Erin"),
    ]


class TestTextMatch:
    def test_empty_query_keeps_everything(self, issues):
        from turtlehub.services.issues import filter_issues
        assert filter_issues(issues, "", True) == issues

    def test_case_insensitive(self, issues):
        from turtlehub.services.issues import filter_issues
        result = filter_issues(issues, "CRASH", True)
        assert [i.number for i in result] == [1, 3]

    def test_matches_author_and_assignee(self, issues):
        from turtlehub.services.issues import filter_issues
        assert [i.number for i in filter_issues(issues, "carol", True)] == [2]
        assert [i.number for i in filter_issues(issues, "erin", True)] == [21]

    def test_matches_number(self, issues):
        from turtlehub.services.issues import filter_issues
        assert [i.number for i in filter_issues(issues, "14", True)] == [14]
        assert [i.number for i in filter_issues(issues, "1", True)] == [1, 14, 21]

    def test_hash_is_not_part_of_the_number(self, issues):
        from turtlehub.services.issues import filter_issues
        assert filter_issues(issues, "#", True) == []
        assert filter_issues(issues, "#14", True) == []

    def test_no_match(self, issues):
        from turtlehub.services.issues import filter_issues
        assert filter_issues(issues, "nothing like this", True) == []


class TestPullRequestPolicy:
    def test_excludes_pull_requests(self, issues):
        from turtlehub.services.issues import filter_issues
        result = filter_issues(issues, "", False)
        assert [i.number for i in result] == [1, 2, 21]

    def test_include_is_identity(self, issues):
        from turtlehub.services.issues import pull_request_policy
        keep = pull_request_policy(True)
        assert all(keep(i) for i in issues)

    @pytest.mark.parametrize("query", ["", "crash", "typo", "a", "zzz"])
    def test_toggle_only_grows_visible_set(self, issues, query):
        from turtlehub.services.issues import filter_issues
        without = filter_issues(issues, query, False)
        with_prs = filter_issues(issues, query, True)
        assert set(i.number for i in without) <= set(i.number for i in with_prs)
        assert all(not i.is_pull_request for i in without)


class TestCombinators:
    def test_all_of_is_conjunction(self, issues):
        from turtlehub.services.issues import all_of, pull_request_policy, text_match
        predicate = all_of(text_match("crash"), pull_request_policy(False))
        assert [i.number for i in issues if predicate(i)] == [1]

    def test_all_of_without_predicates_keeps_everything(self, issues):
        from turtlehub.services.issues import all_of
        assert all(all_of()(i) for i in issues)

    def test_filter_matches_definition(self, issues):
        from turtlehub.services.issues import filter_issues, searchable_text
        for query in ["crash", "ADD", "o", "3", "parser"]:
            for include in (True, False):
                expected = [
                    i for i in issues
                    if query.lower() in searchable_text(i)
                    and (include or not i.is_pull_request)
                ]
                assert filter_issues(issues, query, include) == expected
