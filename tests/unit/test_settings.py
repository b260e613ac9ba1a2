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

from pathlib import Path

import pytest
from pydantic import ValidationError

from quboforge.settings import EncodingMethod, QuboForgeSettings, default_logging_config_path, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch):
    for name in (
        "QUBOFORGE_DEFAULT_ENCODING_ATOL",
        "QUBOFORGE_DEFAULT_ENCODING_METHOD",
        "QUBOFORGE_STABLE_QUADRATIZATION",
        "QUBOFORGE_PENALTY_MAX_DENOMINATOR",
        "QUBOFORGE_LOGGING_CONFIG_PATH",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = QuboForgeSettings(_env_file=None)
    assert settings.default_encoding_atol == 0.25
    assert settings.default_encoding_method is EncodingMethod.BINARY
    assert settings.stable_quadratization is False
    assert settings.penalty_max_denominator == 10**6
    assert settings.logging_config_path == default_logging_config_path()


def test_default_logging_config_path_exists():
    path = default_logging_config_path()
    assert path.name == "logging_config.yaml"
    assert path.is_file()


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("QUBOFORGE_DEFAULT_ENCODING_ATOL", "0.1")
    monkeypatch.setenv("QUBOFORGE_DEFAULT_ENCODING_METHOD", "one_hot")
    monkeypatch.setenv("QUBOFORGE_STABLE_QUADRATIZATION", "true")
    monkeypatch.setenv("QUBOFORGE_LOGGING_CONFIG_PATH", str(tmp_path / "logging.yaml"))

    settings = get_settings()
    assert settings.default_encoding_atol == 0.1
    assert settings.default_encoding_method is EncodingMethod.ONE_HOT
    assert settings.stable_quadratization is True
    assert settings.logging_config_path == Path(tmp_path / "logging.yaml")


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("QUBOFORGE_DEFAULT_ENCODING_ATOL", "0"),
        ("QUBOFORGE_DEFAULT_ENCODING_METHOD", "ternary"),
        ("QUBOFORGE_PENALTY_MAX_DENOMINATOR", "-1"),
    ],
)
def test_invalid_environment(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        get_settings()
