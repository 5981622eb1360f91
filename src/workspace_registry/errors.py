# Copyright 2026 Google LLC
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
#
# SPDX-License-Identifier: Apache-2.0


"""Structured error system for workspace-registry.

Every error has a unique ``WR-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Error kinds and how the HTTP layer treats them::

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │ Code                         │ Handling                             │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ WR-UNKNOWN-PACKAGE           │ Not a local package. The request is  │
    │                              │ proxied to the upstream registry.    │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ WR-MANIFEST-READ-FAILURE     │ package.json missing or not JSON.    │
    │                              │ Served as a 500.                     │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ WR-FILE-READ-FAILURE         │ A file vanished or changed while it  │
    │                              │ was hashed or archived. 500, or an   │
    │                              │ aborted stream once bytes were sent. │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ WR-WORKSPACE-LISTING-FAILURE │ The workspace lister failed. 500;    │
    │                              │ the next request retries.            │
    └──────────────────────────────┴──────────────────────────────────────┘

Usage::

    from workspace_registry.errors import E, WorkspaceRegistryError

    raise WorkspaceRegistryError(
        code=E.UNKNOWN_PACKAGE,
        message=f'Unknown package {name}',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all workspace-registry diagnostic codes."""

    UNKNOWN_PACKAGE = 'WR-UNKNOWN-PACKAGE'
    MANIFEST_READ_FAILURE = 'WR-MANIFEST-READ-FAILURE'
    FILE_READ_FAILURE = 'WR-FILE-READ-FAILURE'
    WORKSPACE_LISTING_FAILURE = 'WR-WORKSPACE-LISTING-FAILURE'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``WR-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class WorkspaceRegistryError(Exception):
    """Base exception for all workspace-registry errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def message(self) -> str:
        """Human-readable description of what went wrong."""
        return self.info.message

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint

    def to_dict(self) -> dict[str, str]:
        """Return the error as a JSON-serializable mapping."""
        return {
            'error': self.code.value,
            'message': self.info.message,
            'hint': self.info.hint,
        }


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.UNKNOWN_PACKAGE: ErrorInfo(
        code=E.UNKNOWN_PACKAGE,
        message='The requested package is not a member of the local workspace.',
        hint='The request is forwarded to the upstream registry.',
    ),
    E.MANIFEST_READ_FAILURE: ErrorInfo(
        code=E.MANIFEST_READ_FAILURE,
        message="A workspace package's package.json is missing, unreadable, or not valid JSON.",
        hint='Check that every workspace member has a valid package.json.',
    ),
    E.FILE_READ_FAILURE: ErrorInfo(
        code=E.FILE_READ_FAILURE,
        message='A file disappeared or changed while the package was hashed or archived.',
        hint='Retry the request once the build writing to the package has finished.',
    ),
    E.WORKSPACE_LISTING_FAILURE: ErrorInfo(
        code=E.WORKSPACE_LISTING_FAILURE,
        message='The workspace lister command failed or printed unparseable output.',
        hint="Run 'yarn workspaces info --json' in the workspace root to see the error.",
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"WR-UNKNOWN-PACKAGE"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: WorkspaceRegistryError, *, file: TextIO | None = None) -> None:
    """Render an error in compiler style, colored when writing to a TTY.

    Output format::

        error[WR-WORKSPACE-LISTING-FAILURE]: yarn exited with status 1
          |
          = hint: Run 'yarn workspaces info --json' in the workspace root.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.info.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            hint = rich_escape(exc.hint)
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {hint}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.info.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'ERRORS',
    'E',
    'ErrorCode',
    'ErrorInfo',
    'WorkspaceRegistryError',
    'explain',
    'render_error',
]
