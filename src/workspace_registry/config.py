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


"""Settings and CLI argument parsing.

Configuration is loaded with the following priority (highest wins):

1. CLI arguments          (``--port``, ``--workspace-root``, ...)
2. Environment variables  (``WORKSPACE_REGISTRY_PORT=4873``)
3. ``.<env>.env`` file    (selected with ``--env staging``)
4. ``.env`` file          (shared defaults)
5. Defaults defined in :class:`Settings`
"""

from __future__ import annotations

import argparse
import shlex
from collections.abc import Sequence
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from workspace_registry.cache import DEFAULT_TTL_SECONDS
from workspace_registry.workspace import DEFAULT_LISTER_COMMAND

DEFAULT_PORT = 4321
DEFAULT_UPSTREAM_URL = 'https://registry.npmjs.com/'


def _build_env_files(env: str | None) -> tuple[str, ...]:
    """Build the list of .env files to load, most specific last."""
    files: list[str] = ['.env']
    if env:
        files.append(f'.{env}.env')
    return tuple(files)


class Settings(BaseSettings):
    """Registry settings loaded from env vars and .env files.

    Every field can be set with a ``WORKSPACE_REGISTRY_``-prefixed
    environment variable, e.g. ``WORKSPACE_REGISTRY_CACHE_TTL=30``.
    """

    model_config = SettingsConfigDict(
        env_prefix='WORKSPACE_REGISTRY_',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    host: str = '127.0.0.1'
    port: int = DEFAULT_PORT
    # Address advertised in tarball URLs. Empty means http://localhost:<port>.
    base_url: str = ''

    workspace_root: str = '.'
    lister_command: str = shlex.join(DEFAULT_LISTER_COMMAND)
    lister_timeout: float = 60.0

    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_timeout: float = 30.0

    cache_ttl: float = DEFAULT_TTL_SECONDS

    log_format: Literal['console', 'json'] = 'console'
    log_level: Literal['debug', 'info', 'warning'] = 'info'

    @property
    def advertised_url(self) -> str:
        """Base address embedded in ``dist.tarball`` URLs."""
        return (self.base_url or f'http://localhost:{self.port}').rstrip('/')

    @property
    def lister_argv(self) -> list[str]:
        """The lister command split into arguments."""
        return shlex.split(self.lister_command)


def make_settings(env: str | None = None) -> Settings:
    """Create Settings with the appropriate .env files for the environment."""
    env_files = _build_env_files(env)
    return Settings(_env_file=env_files)  # type: ignore[call-arg] - pydantic-settings accepts _env_file at runtime


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Every option defaults to ``None`` so that :func:`apply_args` can
    tell an explicit flag from an unset one.
    """
    parser = argparse.ArgumentParser(
        prog='workspace-registry',
        description='Serve the packages of a local yarn workspace as an npm registry.',
    )
    parser.add_argument(
        '--env',
        default=None,
        metavar='ENV',
        help='Environment name; loads .<ENV>.env on top of .env',
    )
    parser.add_argument('--host', default=None, help='Interface to listen on (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=None, help=f'Port to listen on (default: {DEFAULT_PORT})')
    parser.add_argument(
        '--base-url',
        default=None,
        metavar='URL',
        help='Address advertised in tarball URLs (default: http://localhost:<port>)',
    )
    parser.add_argument(
        '--workspace-root',
        default=None,
        metavar='DIR',
        help='Directory the workspace lister runs in (default: current directory)',
    )
    parser.add_argument(
        '--upstream-url',
        default=None,
        metavar='URL',
        help=f'Registry that non-workspace requests are proxied to (default: {DEFAULT_UPSTREAM_URL})',
    )
    parser.add_argument(
        '--cache-ttl',
        type=float,
        default=None,
        metavar='SECONDS',
        help=f'Staleness window for cached listings, hashes and metadata (default: {DEFAULT_TTL_SECONDS})',
    )
    parser.add_argument(
        '--log-format',
        choices=['console', 'json'],
        default=None,
        help='Log output format (default: console)',
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning'],
        default=None,
        help='Minimum log level (default: info)',
    )
    parser.add_argument(
        '--explain',
        default=None,
        metavar='CODE',
        help='Explain an error code (e.g. WR-UNKNOWN-PACKAGE) and exit',
    )
    return parser.parse_args(argv)


def apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return ``settings`` with every explicitly passed CLI option applied."""
    fields = (
        'host',
        'port',
        'base_url',
        'workspace_root',
        'upstream_url',
        'cache_ttl',
        'log_format',
        'log_level',
    )
    update = {name: getattr(args, name) for name in fields if getattr(args, name, None) is not None}
    return settings.model_copy(update=update)


__all__ = [
    'DEFAULT_PORT',
    'DEFAULT_UPSTREAM_URL',
    'Settings',
    'apply_args',
    'make_settings',
    'parse_args',
]
