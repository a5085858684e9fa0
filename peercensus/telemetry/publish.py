"""Publish the telemetry log into a git history and rotate it.

One archive cycle, all under the log's lock:

    finalize -> git add/commit -> git push -> purge

The local file is purged even when commit or push fails, so a failed push
loses that window's observations; they are never carried into the next cycle.
"""
from __future__ import annotations

import logging
import os
import subprocess
from urllib.parse import urlparse

from peercensus import config
from peercensus.credentials import AccessToken
from peercensus.errors import PublishError
from peercensus.telemetry.log import TelemetryLog

logger = logging.getLogger(__name__)

# Inline credential helper: answers git's username/password query from the
# child environment so the token never appears on a command line.
_CREDENTIAL_HELPER = (
    '!f() { test "$1" = get || exit 0; '
    'echo "username=${PEERCENSUS_GIT_USERNAME}"; '
    'echo "password=${PEERCENSUS_GIT_PASSWORD}"; }; f'
)

_PLAINTEXT_SCHEMES = ("http", "https")


def _command_name(args: tuple) -> str:
    i = 0
    while i < len(args) and args[i] == "-c":
        i += 2
    return args[i] if i < len(args) else "git"


class GitRepository:
    """Thin wrapper over the git CLI for one working tree."""

    def __init__(self, directory: str = config.REPO_DIR,
                 author_name: str = config.GIT_UPLOADER_NAME,
                 author_email: str = config.GIT_UPLOADER_EMAIL,
                 plaintext_schemes: tuple = _PLAINTEXT_SCHEMES) -> None:
        self.directory = directory
        self.author_name = author_name
        self.author_email = author_email
        self.plaintext_schemes = plaintext_schemes

    def _git(self, *args: str, env: dict | None = None,
             timeout: float | None = None) -> str:
        name = _command_name(args)
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.directory, capture_output=True, text=True, errors="replace",
                env=env, timeout=timeout,
            )
        except FileNotFoundError as e:
            raise PublishError("git executable not found") from e
        except subprocess.TimeoutExpired as e:
            raise PublishError(f"git {name} timed out") from e
        except OSError as e:
            raise PublishError(f"git {name} failed: {e}") from e
        if result.returncode != 0:
            detail = result.stderr.strip().splitlines()
            raise PublishError(
                f"git {name} failed: {detail[-1] if detail else result.returncode}"
            )
        return result.stdout.strip()

    def relative_path(self, path: str) -> str:
        repo = os.path.realpath(self.directory)
        target = os.path.realpath(path)
        rel = os.path.relpath(target, repo)
        if rel == os.curdir or rel.startswith(os.pardir + os.sep) or rel == os.pardir:
            raise PublishError(f"{path} is not inside the repository {self.directory}")
        return rel.replace(os.sep, "/")

    def commit_file(self, path: str, message: str) -> str:
        """Stage exactly one path and commit it on top of HEAD.

        Returns the new commit id.
        """
        rel = self.relative_path(path)
        self._git("add", "--", rel)
        tree = self._git("write-tree")
        head = self._git("rev-parse", "--verify", "HEAD")

        env = dict(os.environ)
        env.update({
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_COMMITTER_NAME": self.author_name,
            "GIT_COMMITTER_EMAIL": self.author_email,
        })
        commit = self._git("commit-tree", tree, "-p", head, "-m", message, env=env)
        self._git("update-ref", "HEAD", commit, head)
        return commit

    def remote_url(self, remote: str) -> str:
        """URL git push will use; pushurl wins over url when set."""
        return self._git("remote", "get-url", "--push", remote)

    def push(self, remote: str, refspec: str, username: str,
             token: AccessToken, timeout: float | None = None) -> None:
        """Push refspec to remote with username/token as plaintext credentials."""
        url = self.remote_url(remote)
        if urlparse(url).scheme not in self.plaintext_schemes:
            raise PublishError(
                f"Remote {remote} does not accept plaintext credentials"
            )

        env = dict(os.environ)
        env.update({
            "GIT_TERMINAL_PROMPT": "0",
            "PEERCENSUS_GIT_USERNAME": username,
            "PEERCENSUS_GIT_PASSWORD": token.reveal(),
        })
        try:
            self._git(
                "-c", "credential.helper=",
                "-c", f"credential.helper={_CREDENTIAL_HELPER}",
                "push", remote, refspec,
                env=env, timeout=timeout,
            )
        finally:
            env.clear()


class ArchivePublisher:
    """Runs archive cycles against one log and one repository."""

    def __init__(self, log: TelemetryLog, repo: GitRepository,
                 remote: str = config.GIT_REMOTE,
                 refspec: str = config.GIT_REFSPEC,
                 push_timeout: float | None = config.PUSH_TIMEOUT_SECONDS) -> None:
        self._log = log
        self._repo = repo
        self.remote = remote
        self.refspec = refspec
        self.push_timeout = push_timeout

    def commit_message(self) -> str:
        try:
            name = self._repo.relative_path(self._log.path)
        except PublishError:
            name = os.path.basename(self._log.path)
        return f"Automatically updated {name}"

    def run_cycle(self, token: AccessToken) -> bool:
        """Finalize, commit, push and purge the log.

        Returns True if the log was published. Any commit or push failure is
        logged and swallowed; FatalStorageError from purge propagates.
        """
        published = False
        with self._log.exclusive():
            try:
                self._log.finalize()
                self._repo.commit_file(self._log.path, self.commit_message())
                self._repo.push(
                    self.remote, self.refspec, self._repo.author_name, token,
                    timeout=self.push_timeout,
                )
                published = True
            except (PublishError, OSError) as e:
                logger.warning("Uploading recent peers JSON file failed: %s", e)
            except Exception as e:  # keep the scheduler loop alive
                logger.warning("Uploading recent peers JSON file failed: %s", e, exc_info=True)
            finally:
                self._log.purge()

        if published:
            logger.info("Successfully uploaded recent peers JSON file")
        return published
