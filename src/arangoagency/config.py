# Copyright 2025 Sushanth (https://github.com/sushanthpy)
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

"""
Connection configuration.

Values can be passed explicitly or picked up from the environment:

    ARANGO_AGENCY_ENDPOINTS   comma-separated agent endpoints
    ARANGO_AGENCY_TIMEOUT     request timeout in seconds (default 30)
    ARANGO_AGENCY_VERIFY      verify TLS certificates (default true)
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .errors import ConfigError

DEFAULT_TIMEOUT = 30.0

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class ConnectionConfig:
    """Settings for a connection to a set of agents."""
    endpoints: List[str] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT
    verify: bool = True

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigError(
                f"Timeout must be positive, got {self.timeout}",
                context={"timeout": self.timeout},
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConnectionConfig":
        """
        Build a config from ARANGO_AGENCY_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ.

        Raises:
            ConfigError: If a variable holds an unparsable value.
        """
        env = os.environ if environ is None else environ

        endpoints = [
            ep.strip()
            for ep in env.get("ARANGO_AGENCY_ENDPOINTS", "").split(",")
            if ep.strip()
        ]

        raw_timeout = env.get("ARANGO_AGENCY_TIMEOUT")
        timeout = DEFAULT_TIMEOUT
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"ARANGO_AGENCY_TIMEOUT is not a number: {raw_timeout!r}",
                    context={"ARANGO_AGENCY_TIMEOUT": raw_timeout},
                )

        raw_verify = env.get("ARANGO_AGENCY_VERIFY", "").lower()
        if not raw_verify or raw_verify in _TRUE_VALUES:
            verify = True
        elif raw_verify in _FALSE_VALUES:
            verify = False
        else:
            raise ConfigError(
                f"ARANGO_AGENCY_VERIFY is not a boolean: {raw_verify!r}",
                context={"ARANGO_AGENCY_VERIFY": raw_verify},
            )

        return cls(endpoints=endpoints, timeout=timeout, verify=verify)
