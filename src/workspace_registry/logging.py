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


"""Structured logging for workspace-registry.

Everything the server prints goes to stderr through one structlog
``ProcessorFormatter``: the registry's own events, uvicorn's access log
and httpx's request log. ``--log-format`` picks the renderer:

- ``console`` (default): key=value lines, colored on a TTY.
- ``json``: one JSON object per line, for log shippers.

Usage::

    from workspace_registry.logging import configure_logging, get_logger

    configure_logging(level='debug')
    log = get_logger('workspace_registry.hashing')
    log.debug('package_hashed', path='packages/pkg-a', fingerprint='9d5e...')
"""

from __future__ import annotations

import logging
import sys
from typing import Final, Literal

import structlog

LogLevel = Literal['debug', 'info', 'warning']

_LEVELS: Final[dict[str, int]] = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
}

# Chatty at INFO; only shown when debugging.
_NOISY_LOGGERS: Final[tuple[str, ...]] = ('httpx', 'httpcore')


def configure_logging(*, level: LogLevel = 'info', json_log: bool = False) -> None:
    """Route structlog and stdlib logging to stderr.

    Args:
        level: Minimum level for every logger.
        json_log: Render JSON lines instead of console output.
    """
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=_LEVELS[level], force=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
    ]
    renderer: structlog.types.Processor
    if json_log:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through the standard library directly.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == 'debug' else logging.WARNING)


def get_logger(name: str = 'workspace_registry') -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'LogLevel',
    'configure_logging',
    'get_logger',
]
