# Copyright 2025 Qilimanjaro Quantum Tech
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
"""Loguru sinks of the compiler diagnostics, described in a YAML file, and routing of stdlib loggers."""

from __future__ import annotations

import inspect
import logging
import sys
from pathlib import Path

from loguru import logger
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from ruamel.yaml import YAML

from quboforge.settings import get_settings

STANDARD_STREAMS = {"stderr": sys.stderr, "stdout": sys.stdout}


class SinkConfig(BaseModel):
    """One ``logger.add`` call. Options left as None keep the loguru defaults."""

    sink: str | Path
    level: str = "WARNING"
    format: str | None = None
    filter: str | dict[str, str] | None = None
    colorize: bool = False
    enqueue: bool = False
    rotation: str | None = None
    serialize: bool = False

    def add(self) -> int:
        """
        Returns:
            int: the loguru handler id of the new sink.
        """
        options = self.model_dump(exclude={"sink"}, exclude_none=True)
        target = STANDARD_STREAMS.get(self.sink.lower(), self.sink) if isinstance(self.sink, str) else self.sink
        return logger.add(target, **options)


class InterceptLibraryConfig(BaseModel):
    name: str
    level: str = "ERROR"


class LoggingSettings(BaseSettings):
    sinks: list[SinkConfig] = []
    intercept_libraries: list[InterceptLibraryConfig] = []

    @classmethod
    def load(cls, path: str | Path) -> LoggingSettings:
        data = YAML(typ="safe").load(Path(path))
        return cls(**(data or {}))


class InterceptHandler(logging.Handler):
    """Forwards stdlib records to loguru, keeping only the loggers under ``name_prefix`` when one is given."""

    def __init__(self, *, name_prefix: str | None = None) -> None:
        super().__init__()
        self.name_prefix = name_prefix

    def emit(self, record: logging.LogRecord) -> None:
        if self.name_prefix and not record.name.startswith(self.name_prefix):
            return
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # report the caller of the stdlib logger, not the logging module itself
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame, depth = frame.f_back, depth + 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(config_path: str | Path | None = None) -> list[int]:
    """Replaces the loguru sinks by the ones of a logging configuration file and routes stdlib logging to loguru.

    Args:
        config_path (str | Path | None, optional): the configuration file. Relative paths are resolved against the
            working directory. Defaults to ``QUBOFORGE_LOGGING_CONFIG_PATH``.

    Returns:
        list[int]: the loguru handler ids of the configured sinks.
    """
    path = Path(config_path if config_path is not None else get_settings().logging_config_path).expanduser()
    config = LoggingSettings.load(path.resolve())

    logger.remove()
    handler_ids = [sink.add() for sink in config.sinks]
    for library in config.intercept_libraries:
        logging.getLogger(library.name).setLevel(library.level)

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.NOTSET, force=True)
    for name in list(logging.root.manager.loggerDict):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    return handler_ids
