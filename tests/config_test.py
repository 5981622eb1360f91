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


"""Tests for settings loading and CLI overrides."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from workspace_registry.config import DEFAULT_PORT, DEFAULT_UPSTREAM_URL, Settings, apply_args, make_settings, parse_args


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each test in an empty directory with no registry env vars."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith('WORKSPACE_REGISTRY_'):
            monkeypatch.delenv(name)
    return tmp_path


class TestSettings:
    """Tests for Settings defaults and sources."""

    def test_defaults(self) -> None:
        """Defaults serve the current directory on localhost:4321."""
        settings = make_settings()
        assert settings.host == '127.0.0.1'
        assert settings.port == DEFAULT_PORT == 4321
        assert settings.workspace_root == '.'
        assert settings.upstream_url == DEFAULT_UPSTREAM_URL
        assert settings.cache_ttl == 10.0
        assert settings.lister_argv == ['yarn', 'workspaces', 'info', '--json']

    def test_advertised_url_follows_port(self) -> None:
        """Without a base URL, tarballs point at localhost on the listening port."""
        assert Settings(port=4873).advertised_url == 'http://localhost:4873'

    def test_advertised_url_strips_slash(self) -> None:
        """An explicit base URL is used without its trailing slash."""
        assert Settings(base_url='http://registry.local/').advertised_url == 'http://registry.local'

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Prefixed environment variables override defaults."""
        monkeypatch.setenv('WORKSPACE_REGISTRY_PORT', '4873')
        monkeypatch.setenv('WORKSPACE_REGISTRY_LISTER_COMMAND', 'yarn --silent workspaces info')
        settings = make_settings()
        assert settings.port == 4873
        assert settings.lister_argv == ['yarn', '--silent', 'workspaces', 'info']

    def test_env_files(self, isolated_env: Path) -> None:
        """The named environment's file wins over the shared .env."""
        (isolated_env / '.env').write_text('WORKSPACE_REGISTRY_PORT=5000\nWORKSPACE_REGISTRY_CACHE_TTL=3\n')
        (isolated_env / '.staging.env').write_text('WORKSPACE_REGISTRY_PORT=6000\n')
        settings = make_settings(env='staging')
        assert settings.port == 6000
        assert settings.cache_ttl == 3.0

    def test_env_var_beats_env_file(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Process environment wins over .env files."""
        (isolated_env / '.env').write_text('WORKSPACE_REGISTRY_HOST=0.0.0.0\n')
        monkeypatch.setenv('WORKSPACE_REGISTRY_HOST', '::1')
        assert make_settings().host == '::1'


class TestArgs:
    """Tests for parse_args and apply_args."""

    def test_unset_flags_are_none(self) -> None:
        """Nothing passed means nothing overridden."""
        args = parse_args([])
        assert args.port is None
        assert args.env is None
        settings = make_settings()
        assert apply_args(settings, args) == settings

    def test_flags_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CLI flags win over environment variables."""
        monkeypatch.setenv('WORKSPACE_REGISTRY_PORT', '4873')
        args = parse_args([
            '--port',
            '9000',
            '--workspace-root',
            '/src/monorepo',
            '--cache-ttl',
            '2.5',
            '--log-format',
            'json',
        ])
        settings = apply_args(make_settings(), args)
        assert settings.port == 9000
        assert settings.workspace_root == '/src/monorepo'
        assert settings.cache_ttl == 2.5
        assert settings.log_format == 'json'

    def test_invalid_choice(self) -> None:
        """Unknown log formats are rejected by argparse."""
        with pytest.raises(SystemExit):
            parse_args(['--log-format', 'xml'])
