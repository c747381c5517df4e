"""State of one issue browser session, independent of any widget toolkit.

The session owns the issue collection, the filter inputs, the "fixed" marks
and the update notification state. It is mutated only from the thread that
drives the dialog. :meth:`IssueBrowserSession.setup_credentials` and
:meth:`IssueBrowserSession.download_pages` run on the fetch worker; they touch
nothing but ``config``, which the dialog leaves alone while a fetch runs.
"""
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from gettext import gettext as _
from typing import Callable, Iterator, Optional

from turtlehub.services.github import (
    GitHubConfig, GitHubError, InvalidCredentialsError, Issue,
    RateLimitExceededError, check_credentials, get_rate_limit, iter_issue_pages,
)
from turtlehub.services.issues import filter_issues
from turtlehub.services.keystore import get_stored_api_token
from turtlehub.services.settings import Settings
from turtlehub.services.updater import UpdateChecker

log = logging.getLogger(__name__)

_REPOSITORY_RE = re.compile(
    r"^(?:https?://github\.com/)?(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


@dataclass
class IssueBrowserParameters:
    owner: str
    repository: str
    show_prs_by_default: bool = False

    @classmethod
    def parse(cls, text: str, show_prs_by_default: bool = False) -> IssueBrowserParameters:
        """Parse ``owner/repo`` or a github.com repository URL."""
        m = _REPOSITORY_RE.match(text.strip())
        if not m:
            raise ValueError(f"Not a GitHub repository: {text!r}")
        return cls(m.group("owner"), m.group("repo"), show_prs_by_default)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repository}"


class UpdateChoice(enum.Enum):
    CANCEL = "cancel"    # dismiss the question, keep the notification
    ACCEPT = "accept"    # open the release page and close the dialog
    DECLINE = "decline"  # hide the notification for this session


def log_failure(exc: BaseException) -> str:
    """Log a failed issue download and return the message shown to the user."""
    if isinstance(exc, RateLimitExceededError):
        log.warning("Rate limit exceeded: %s", exc)
    elif isinstance(exc, GitHubError):
        log.error("Issue request failed: %s", exc)
    else:
        log.error("Unexpected error while loading issues", exc_info=exc)
    return str(exc) or type(exc).__name__


class IssueBrowserSession:
    """Issue collection, filter and selection state behind the issue browser."""

    def __init__(self, parameters: IssueBrowserParameters,
                 config: GitHubConfig | None = None,
                 settings: Settings | None = None):
        self.parameters = parameters
        self.settings = settings or Settings.get()
        self.config = config or GitHubConfig(
            base_url=self.settings.api_base_url,
            timeout=int(self.settings["request_timeout"]),
        )

        self.issues: list[Issue] = []
        self.visible: list[Issue] = []
        self.selected: Optional[Issue] = None
        self.query = ""
        self.include_pull_requests = parameters.show_prs_by_default
        self._remembered_fixed: set[int] = set()

        self.reload_enabled = True
        self.search_enabled = True
        self.busy = False
        self.status_text = _("Ready")
        self.status_is_error = False

        self.update_checker = UpdateChecker(self.config)
        self.update_notification_visible = False

    # ── Credentials ───────────────────────────────────────────────

    def setup_credentials(self):
        """Attach the stored API token, if any; otherwise stay anonymous."""
        token = get_stored_api_token(self.config.base_url)
        if token is None:
            log.info("No API token stored for %s, using unauthenticated requests",
                     self.config.base_url)
            return
        self.config.token = token
        if self.settings.strict_credential_check:
            if not check_credentials(self.config):
                raise InvalidCredentialsError(_("API token is not valid"))
            log.info("API token is valid")

    # ── Fetching ──────────────────────────────────────────────────

    def begin_fetch(self):
        self.query = ""
        self.reload_enabled = False
        self.busy = True
        self.status_is_error = False
        self.status_text = _("Downloading…")

    def add_page(self, page: list[Issue]) -> list[Issue]:
        """Append a downloaded page and return the new visible subset."""
        for issue in page:
            if issue.number in self._remembered_fixed:
                issue.checked = True
        self.issues.extend(page)
        return self.apply_filter()

    def end_fetch(self):
        self.reload_enabled = True
        self.busy = False
        self.status_text = _("Ready")

    def fail(self, message: str):
        """Put the session into its terminal error state."""
        self.query = ""
        self.search_enabled = False
        self.reload_enabled = False
        self.busy = False
        self.status_is_error = True
        self.status_text = _("Error: {error}").format(error=message)

    def reset(self):
        """Forget downloaded issues before a reload; "fixed" marks survive."""
        self._remembered_fixed |= {issue.number for issue in self.issues if issue.checked}
        self.issues = []
        self.visible = []
        self.selected = None

    def log_rate_limit(self):
        if not self.settings["log_rate_limit"]:
            return
        try:
            rate = get_rate_limit(self.config)
        except GitHubError as e:
            log.warning("Could not read rate limit: %s", e)
            return
        log.info("Rate limit: %d/%d", rate.remaining, rate.limit)

    def download_pages(self, cancelled: Callable[[], bool] | None = None) -> Iterator[list[Issue]]:
        """Network half of a fetch. Safe to run on a worker thread."""
        log.info("Downloading issues of %s", self.parameters.full_name)
        self.log_rate_limit()
        yield from iter_issue_pages(self.config, self.parameters.owner,
                                    self.parameters.repository, cancelled=cancelled)
        self.log_rate_limit()

    # ── Filtering & selection ─────────────────────────────────────

    def apply_filter(self) -> list[Issue]:
        self.visible = filter_issues(self.issues, self.query, self.include_pull_requests)
        if self.selected is not None and self.selected not in self.visible:
            self.selected = None
        return self.visible

    def set_query(self, text: str) -> list[Issue]:
        self.query = text
        return self.apply_filter()

    def set_include_pull_requests(self, include: bool) -> list[Issue]:
        self.include_pull_requests = include
        return self.apply_filter()

    def select(self, issue: Optional[Issue]):
        self.selected = issue

    @property
    def can_open_selected(self) -> bool:
        return self.selected is not None

    def set_checked(self, issue: Issue, checked: bool):
        issue.checked = checked
        if not checked:
            self._remembered_fixed.discard(issue.number)

    @property
    def issues_fixed(self) -> list[Issue]:
        """Every downloaded issue marked fixed, whatever the current filter."""
        return [issue for issue in self.issues if issue.checked]

    # ── Update notification ───────────────────────────────────────

    def check_for_update(self) -> bool:
        """True if a newer release was found and the notification should show."""
        if not self.settings["check_for_updates"]:
            return False
        if self.update_checker.check():
            self.update_notification_visible = True
            return True
        return False

    def update_message(self) -> str:
        this_version, new_version = self.update_checker.versions()
        return "\n".join([
            _("There is a new version of TurtleHub available. Would you like to update now?"),
            "",
            _("Your version: {version}").format(version=this_version),
            _("New version: {version}").format(version=new_version),
        ])

    def resolve_update(self, choice: UpdateChoice) -> bool:
        """Apply the answer to the update question; True means close the dialog."""
        if choice is UpdateChoice.CANCEL:
            return False
        self.update_notification_visible = False
        return choice is UpdateChoice.ACCEPT
