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

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_logging_config_path() -> Path:
    return Path(__file__).with_name("logging_config.yaml").resolve()


class EncodingMethod(str, Enum):
    UNARY = "unary"
    BINARY = "binary"
    ARITHMETIC = "arithmetic"
    ONE_HOT = "one_hot"
    DOMAIN_WALL = "domain_wall"


class QuboForgeSettings(BaseSettings):
    """
    Environment-based configuration settings for quboforge.

    These settings are automatically loaded from environment variables
    prefixed with `QUBOFORGE_`, or from a local `.env` file if present.
    They provide the defaults of every compilation that does not override them.
    """

    model_config = SettingsConfigDict(env_prefix="quboforge_", env_file=".env", env_file_encoding="utf-8")

    default_encoding_atol: PositiveFloat = Field(
        default=0.25,
        description="Tolerance used to size the encoding of real variables. [env: QUBOFORGE_DEFAULT_ENCODING_ATOL]",
    )
    default_encoding_method: EncodingMethod = Field(
        default=EncodingMethod.BINARY,
        description="Encoding used for integer and real variables. [env: QUBOFORGE_DEFAULT_ENCODING_METHOD]",
    )
    stable_quadratization: bool = Field(
        default=False,
        description="Use the deterministic quadratization mode. [env: QUBOFORGE_STABLE_QUADRATIZATION]",
    )
    penalty_max_denominator: PositiveInt = Field(
        default=10**6,
        description="Largest denominator used to rationalize penalty coefficients. [env: QUBOFORGE_PENALTY_MAX_DENOMINATOR]",
    )
    logging_config_path: Path = Field(
        default_factory=default_logging_config_path,
        description="YAML file used for logging configuration. [env: QUBOFORGE_LOGGING_CONFIG_PATH]",
    )


@lru_cache(maxsize=1)
def get_settings() -> QuboForgeSettings:
    """
    Returns a singleton instance of QuboForgeSettings.

    This function caches the parsed environment-based settings to avoid
    redundant re-parsing across the application lifecycle.

    Returns:
        QuboForgeSettings: The cached configuration object populated from environment variables.
    """
    return QuboForgeSettings()
