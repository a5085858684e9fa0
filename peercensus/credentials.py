"""Access token used to push the archived log, and how it is obtained."""
from __future__ import annotations

import os

import click

from peercensus import config
from peercensus.errors import CredentialInputError


class AccessToken:
    """A secret held in a mutable buffer so it can be zeroed after use."""

    def __init__(self, value: str = "") -> None:
        self._buffer = bytearray(value.encode("utf-8"))

    def __bool__(self) -> bool:
        return len(self._buffer) > 0

    def __repr__(self) -> str:
        return "AccessToken(<set>)" if self else "AccessToken(<empty>)"

    def reveal(self) -> str:
        return self._buffer.decode("utf-8")

    def wipe(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        del self._buffer[:]

    def __enter__(self) -> "AccessToken":
        return self

    def __exit__(self, *exc) -> None:
        self.wipe()


def read_access_token(prompt: bool = True) -> AccessToken:
    """Get the push token from the environment or an echo-less prompt.

    An empty answer yields an empty token, which disables archiving.
    Raises CredentialInputError if the prompt cannot be read.
    """
    env_value = os.environ.pop(config.ACCESS_TOKEN_ENV, "")
    if env_value or not prompt:
        return AccessToken(env_value.strip())

    try:
        value = click.prompt(
            "Enter Git access token to use when uploading recent peers JSON file",
            default="",
            show_default=False,
            hide_input=True,
            err=True,
        )
    except (click.Abort, EOFError, OSError) as e:
        raise CredentialInputError("Getting access token failed") from e
    return AccessToken(value.strip())
