"""Error types and user-facing error reporting.

Every failure that reaches the command dispatch is one of the errors below,
or a library error that `create_user_friendly_error` knows how to phrase.
"""

import sqlite3
from typing import Optional

import click
import requests


class GhAlfredError(Exception):
    """Base class for all gh-alfred errors."""


class ConfigurationError(GhAlfredError):
    """Missing credential, missing database path or unreadable config/state file."""


class FetchError(GhAlfredError):
    """A page of the bulk repository walk could not be fetched or parsed."""


class RateLimitError(FetchError):
    """The remote API rejected a request because the rate limit was exhausted."""


class PersistError(GhAlfredError):
    """A batch could not be written to the cache database."""


class DaemonError(GhAlfredError):
    """The background refresh process could not be detached."""


class SearchError(GhAlfredError):
    """A live search request failed."""


def create_user_friendly_error(error: Exception) -> str:
    """Turn an exception into a one-line message suitable for stderr.

    Args:
        error: The exception raised by a command

    Returns:
        Human readable message
    """
    if isinstance(error, GhAlfredError):
        message = str(error)
        cause = error.__cause__
        if cause is not None and str(cause) and str(cause) not in message:
            message = f"{message} ({cause})"
        return message

    if isinstance(error, requests.Timeout):
        return "The remote API did not answer in time"
    if isinstance(error, requests.ConnectionError):
        return "Could not reach the remote API, check your network connection"
    if isinstance(error, sqlite3.Error):
        return f"Cache database error: {error}"
    if isinstance(error, PermissionError):
        return f"Permission denied: {error.filename or error}"
    if isinstance(error, FileNotFoundError):
        return f"File not found: {error.filename or error}"

    return str(error) or error.__class__.__name__


class ErrorHandler:
    """Reports command failures in a consistent format."""

    def __init__(self, verbose: bool = False):
        """Initialize error handler.

        Args:
            verbose: Print exception details in addition to the message
        """
        self.verbose = verbose

    def report(self, action: str, error: Exception, ctx: Optional[click.Context] = None) -> None:
        """Print an error for a failed action and exit with status 1.

        Args:
            action: What was being done, e.g. "searching repositories"
            error: The exception that aborted the action
            ctx: Click context to exit through (optional)
        """
        click.echo(f"Error {action}: {create_user_friendly_error(error)}", err=True)
        if self.verbose:
            click.echo(f"Details: {error!r}", err=True)
        if ctx is not None:
            ctx.exit(1)
