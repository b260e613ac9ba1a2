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
import logging
import sys

import pytest
from loguru import logger
from loguru_caplog import loguru_caplog as caplog  # noqa: F401

from quboforge import _logging
from quboforge._logging import InterceptHandler, LoggingSettings, SinkConfig
from quboforge.core.compiler import compile_model
from quboforge.core.model import Model, ObjectiveSense
from quboforge.core.variables import LEQ, Domain, Variable


@pytest.fixture
def records():
    messages = []
    handler_id = logger.add(messages.append, level=0, format="{level.no}|{function}|{message}")
    yield messages
    logger.remove(handler_id)


def _stdlib_record(name, level, msg):
    return logging.LogRecord(name=name, level=level, pathname=__file__, lineno=1, msg=msg, args=(), exc_info=None)


# ---------- Compiler diagnostics ----------
def test_always_feasible_constraint_is_logged(caplog):  # noqa: F811
    b = [Variable(f"b({i})", Domain.BINARY) for i in range(2)]
    x = Variable("x", Domain.INTEGER, bounds=(0, 10))

    m = Model("test")
    m.set_objective(x + 1, sense=ObjectiveSense.MAXIMIZE)
    m.add_constraint("con2", LEQ(b[1], 2))

    compile_model(m)

    assert 'constraint "con2" was not added to model "test" because it is always feasible.' in caplog.text


# ---------- Configuration file ----------
def test_configure_logging_from_file(tmp_path):
    log_file = tmp_path / "quboforge.log"
    config = tmp_path / "logging.yaml"
    config.write_text(
        f"sinks:\n"
        f"  - sink: {log_file}\n"
        f"    level: DEBUG\n"
        f"    format: '{{level}} {{message}}'\n"
        f"intercept_libraries:\n"
        f"  - name: noisy\n"
        f"    level: ERROR\n",
        encoding="utf-8",
    )

    handler_ids = _logging.configure_logging(config)
    try:
        assert len(handler_ids) == 1
        logger.debug("compiling")
        logging.getLogger("stdlib").warning("intercepted")
        assert logging.getLogger("noisy").level == logging.ERROR
        assert isinstance(logging.root.handlers[0], InterceptHandler)
    finally:
        logger.remove()

    content = log_file.read_text(encoding="utf-8")
    assert "DEBUG compiling" in content
    assert "WARNING intercepted" in content


def test_configure_logging_reads_the_settings_path(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("QUBOFORGE_LOGGING_CONFIG_PATH", "missing.yaml")
    _logging.get_settings.cache_clear()
    try:
        with pytest.raises(FileNotFoundError, match=r"missing.yaml"):
            _logging.configure_logging()
    finally:
        _logging.get_settings.cache_clear()


def test_default_logging_config():
    settings = LoggingSettings.load(_logging.get_settings().logging_config_path)
    assert [sink.sink for sink in settings.sinks] == ["stderr"]
    assert settings.sinks[0].level == "WARNING"
    assert {library.name for library in settings.intercept_libraries} == {"numpy", "scipy"}


def test_empty_logging_config(tmp_path):
    config = tmp_path / "empty.yaml"
    config.write_text("", encoding="utf-8")
    settings = LoggingSettings.load(config)
    assert settings.sinks == []
    assert settings.intercept_libraries == []


@pytest.mark.parametrize(("name", "stream"), [("stdout", sys.stdout), ("STDERR", sys.stderr)])
def test_standard_stream_sinks(monkeypatch, name, stream):
    added = []
    monkeypatch.setattr(_logging.logger, "add", lambda target, **kwargs: added.append((target, kwargs)) or 7)

    assert SinkConfig(sink=name, level="DEBUG").add() == 7
    target, options = added[0]
    assert target is stream
    assert options["level"] == "DEBUG"
    assert "format" not in options
    assert "sink" not in options


# ---------- Stdlib interception ----------
def test_stdlib_records_point_at_their_caller(records):
    stdlib_logger = logging.getLogger("quboforge.tests")
    handler = InterceptHandler()
    stdlib_logger.addHandler(handler)
    stdlib_logger.propagate = False
    try:
        stdlib_logger.warning("from the standard library")
    finally:
        stdlib_logger.removeHandler(handler)
        stdlib_logger.propagate = True

    assert records == ["30|test_stdlib_records_point_at_their_caller|from the standard library\n"]


def test_intercept_filters_by_prefix(records):
    handler = InterceptHandler(name_prefix="quboforge")
    handler.emit(_stdlib_record("other", logging.WARNING, "ignored"))
    handler.emit(_stdlib_record("quboforge.core", logging.WARNING, "kept"))
    assert len(records) == 1
    assert records[0].endswith("|kept\n")


def test_unknown_stdlib_levels_keep_their_number(records):
    InterceptHandler().emit(_stdlib_record("quboforge", 25, "custom level"))
    assert len(records) == 1
    assert records[0].startswith("25|")
