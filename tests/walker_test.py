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


"""Tests for walk_files."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from workspace_registry.walker import EXCLUDED_DIRS, walk_files


def _touch(root: Path, *relatives: str) -> None:
    for rel in relatives:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel)


class TestWalkFiles:
    """Tests for the deterministic directory walk."""

    def test_sorted_depth_first(self, tmp_path: Path) -> None:
        """Entries come out in sorted order, descending into directories in place."""
        _touch(tmp_path, 'b.txt', 'a/z.txt', 'a/c/d.txt', 'c.txt', 'A.txt')
        rel = [p.relative_to(tmp_path).as_posix() for p in walk_files(tmp_path)]
        assert rel == ['A.txt', 'a/c/d.txt', 'a/z.txt', 'b.txt', 'c.txt']

    def test_paths_are_absolute(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Relative roots still yield absolute paths."""
        _touch(tmp_path, 'pkg/index.js')
        monkeypatch.chdir(tmp_path)
        paths = list(walk_files('pkg'))
        assert [p.resolve() for p in paths] == [(tmp_path / 'pkg' / 'index.js').resolve()]
        assert all(p.is_absolute() for p in paths)

    def test_node_modules_excluded_at_any_depth(self, tmp_path: Path) -> None:
        """node_modules subtrees are skipped wherever they appear."""
        _touch(
            tmp_path,
            'index.js',
            'node_modules/dep/index.js',
            'lib/node_modules/nested/index.js',
            'lib/util.js',
        )
        rel = [p.relative_to(tmp_path).as_posix() for p in walk_files(tmp_path)]
        assert rel == ['index.js', 'lib/util.js']
        assert 'node_modules' in EXCLUDED_DIRS

    def test_empty_directories_yield_nothing(self, tmp_path: Path) -> None:
        """Directories contribute no entries of their own."""
        (tmp_path / 'empty' / 'deeper').mkdir(parents=True)
        assert list(walk_files(tmp_path)) == []

    def test_restartable(self, tmp_path: Path) -> None:
        """Each call walks the current tree."""
        _touch(tmp_path, 'a.txt')
        assert len(list(walk_files(tmp_path))) == 1
        _touch(tmp_path, 'b.txt')
        assert len(list(walk_files(tmp_path))) == 2

    @pytest.mark.skipif(not hasattr(os, 'mkfifo'), reason='needs FIFOs')
    def test_special_files_ignored(self, tmp_path: Path) -> None:
        """Only regular files are yielded."""
        _touch(tmp_path, 'a.txt')
        os.mkfifo(tmp_path / 'pipe')
        assert [p.name for p in walk_files(tmp_path)] == ['a.txt']

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        """A missing root surfaces as OSError."""
        with pytest.raises(OSError):
            list(walk_files(tmp_path / 'missing'))
