"""Fetcher configuration.

Settings are resolved once, at startup, from defaults, the process
environment and explicit overrides (in that order of precedence, lowest
first). Components receive the resulting :class:`FetcherConfig` instead of
reading the environment themselves.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger("repofetch.config")

ENV_PREFIX = "REPOFETCH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


@dataclass
class FetcherConfig:
    """Options shared by the fetcher, the git client and the CLI.

    Attributes:
        verbose: Log raw git output instead of rendering progress rows.
        git_binary: Program used for every git invocation.
        temp_prefix: Prefix of sparse-fetch temporary workspaces.
        progress_step: Minimum percent advance before an intermediate
            progress update is forwarded to the tracker.
        timeout: Overall deadline in seconds, None for no deadline.
    """

    verbose: bool = False
    git_binary: str = "git"
    temp_prefix: str = "repofetch-"
    progress_step: int = 5
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.git_binary:
            raise ValueError("git_binary must not be empty")
        if not 0 <= self.progress_step <= 100:
            raise ValueError("progress_step must be between 0 and 100")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def default(cls) -> "FetcherConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FetcherConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", sorted(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "FetcherConfig":
        """Resolve configuration from ``REPOFETCH_*`` variables.

        Explicit keyword overrides (other than None) win over the
        environment.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        raw = env.get(f"{ENV_PREFIX}VERBOSE")
        if raw is not None:
            values["verbose"] = _parse_bool(raw)
        raw = env.get(f"{ENV_PREFIX}GIT")
        if raw:
            values["git_binary"] = raw
        raw = env.get(f"{ENV_PREFIX}TEMP_PREFIX")
        if raw:
            values["temp_prefix"] = raw
        raw = env.get(f"{ENV_PREFIX}PROGRESS_STEP")
        if raw:
            values["progress_step"] = int(raw)
        raw = env.get(f"{ENV_PREFIX}TIMEOUT")
        if raw:
            values["timeout"] = float(raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
