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


"""Shared test fakes for workspace-registry.

Usage::

    from tests._fakes import CountingLister, FakeClock, write_package

    pkg_dir = write_package(tmp_path, 'packages/pkg-a', 'pkg-a', '1.0.0', files={'index.js': 'A'})
    lister = CountingLister({'pkg-a': pkg_dir})
    clock = FakeClock()
"""

from tests._fakes._clock import FakeClock as FakeClock
from tests._fakes._http import streaming_response as streaming_response
from tests._fakes._workspace import (
    CountingLister as CountingLister,
    FailingLister as FailingLister,
    write_package as write_package,
)

__all__ = [
    'CountingLister',
    'FailingLister',
    'FakeClock',
    'streaming_response',
    'write_package',
]
