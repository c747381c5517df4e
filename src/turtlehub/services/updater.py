"""In-app update checker against the TurtleHub GitHub releases."""

from __future__ import annotations

import logging
from typing import Optional

from packaging.version import InvalidVersion, Version

from turtlehub import RELEASE_OWNER, RELEASE_REPOSITORY, __version__
from turtlehub.services.github import GitHubConfig, GitHubError, Release, get_latest_release

log = logging.getLogger(__name__)


def parse_release_version(tag_name: str) -> Version:
    """Parse a release tag such as ``v0.1.1`` (the prefix character is dropped)."""
    if tag_name[:1].isalpha():
        tag_name = tag_name[1:]
    return Version(tag_name)


def is_newer_version(tag_name: str, current: str = __version__) -> bool:
    try:
        return parse_release_version(tag_name) > Version(current)
    except InvalidVersion:
        log.warning("Cannot compare release tag %r with version %r", tag_name, current)
        return False


class UpdateChecker:
    """Looks up the latest release once per session and remembers it."""

    def __init__(self, config: GitHubConfig, current_version: str = __version__,
                 owner: str = RELEASE_OWNER, repo: str = RELEASE_REPOSITORY):
        self._config = config
        self._owner = owner
        self._repo = repo
        self.current_version = current_version
        self.latest_release: Optional[Release] = None

    @property
    def checked(self) -> bool:
        return self.latest_release is not None

    @property
    def update_available(self) -> bool:
        return self.checked and is_newer_version(self.latest_release.tag_name, self.current_version)

    def check(self) -> bool:
        """Fetch the latest release and tell whether it is newer.

        Only the first successful call hits the network; later calls return
        False without fetching, so a notification is shown at most once.
        """
        if self.checked:
            return False

        log.info("Checking for new %s release", self._repo)
        try:
            latest = get_latest_release(self._config, self._owner, self._repo)
        except GitHubError as e:
            log.warning("Update check failed: %s", e)
            return False
        log.info("Found %s (this is %s)", latest.tag_name, self.current_version)

        self.latest_release = latest
        return self.update_available

    def versions(self) -> tuple[str, str]:
        """(this version, new version) for display."""
        if self.latest_release is None:
            return self.current_version, ""
        return self.current_version, str(parse_release_version(self.latest_release.tag_name))
