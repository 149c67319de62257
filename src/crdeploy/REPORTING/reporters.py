# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Progress reporters. Reporting is best effort: failures raise ReportingError,
which callers log and swallow.
"""
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.error import URLError

from .pull_request import PullRequestContext
from ..MODELS.errors import ReportingError
from ..UTILS.http import send_request

logger = logging.getLogger(__name__)


class ProgressReporter(ABC):
    """
    Publishes a note and later replaces its text.
    """

    @abstractmethod
    def post(self, text: str):
        """Publish a new note and return a handle for updating it."""

    @abstractmethod
    def update(self, handle, text: str) -> None:
        """Replace the text of a previously posted note."""


class LoggingReporter(ProgressReporter):
    """
    Writes notes to the log, for runs without a pull request to comment on.
    """

    def __init__(self):
        self._handles = itertools.count(1)

    def post(self, text: str) -> int:
        handle = next(self._handles)
        logger.info("Progress note #%d:\n%s", handle, text)
        return handle

    def update(self, handle, text: str) -> None:
        logger.debug("Progress note #%s updated:\n%s", handle, text)


class GitHubCommentReporter(ProgressReporter):
    """
    Posts notes as pull request comments through the GitHub REST API.
    """

    def __init__(self, token: str, pull_request: PullRequestContext, timeout: float = 30):
        """
        :param token: Token allowed to comment on the repository's pull requests.
        :param pull_request: The pull request to comment on.
        :param timeout: Per-request timeout in seconds.
        """
        self.token = token
        self.pull_request = pull_request
        self.timeout = timeout

    @property
    def _headers(self):
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _repo_url(self) -> str:
        return f"{self.pull_request.api_url.rstrip('/')}/repos/{self.pull_request.repository}"

    def post(self, text: str) -> int:
        url = f"{self._repo_url()}/issues/{self.pull_request.number}/comments"
        try:
            response = send_request(
                "POST", url, self._headers, {"body": text}, timeout=self.timeout
            )
            return response.json()["id"]
        except (URLError, OSError, ValueError, KeyError) as e:
            raise ReportingError(f"Unable to add pull request comment: {e}") from e

    def update(self, handle, text: str) -> None:
        if handle is None:
            raise ReportingError("No pull request comment to update")
        url = f"{self._repo_url()}/issues/comments/{handle}"
        try:
            send_request("PATCH", url, self._headers, {"body": text}, timeout=self.timeout)
        except (URLError, OSError) as e:
            raise ReportingError(f"Unable to update pull request comment: {e}") from e


def build_reporter(
    token: Optional[str], pull_request: Optional[PullRequestContext]
) -> ProgressReporter:
    """Comment on the pull request when possible, otherwise log."""
    if token and pull_request:
        return GitHubCommentReporter(token, pull_request)
    return LoggingReporter()
