"""Run configuration loading."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from terrainmap.contracts import validate_run_config
from terrainmap.terrain.pool import default_concurrency
from terrainmap.terrain.source import DEFAULT_URL_TEMPLATE, DEFAULT_USER_AGENT
from terrainmap.terrain.tiling import MAX_TILES

ENV_CONFIG = "TERRAINMAP_CONFIG"
ENV_ACCESS_TOKEN = "MAPBOX_ACCESS_TOKEN"


@dataclass(frozen=True)
class RunConfig:
    """Tile source and fetch settings for a run."""

    url_template: str = DEFAULT_URL_TEMPLATE
    access_token: str | None = None
    timeout: float = 30.0
    retries: int = 2
    backoff: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT
    concurrency: int | None = None
    max_tiles: int = MAX_TILES

    @property
    def workers(self) -> int:
        """Configured worker count, falling back to two per CPU when unset."""
        if self.concurrency is None:
            return default_concurrency()
        return self.concurrency

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Return a copy with every non-None override applied.

        Overrides are checked against the run config schema, so a worker count
        or tile budget below 1 raises jsonschema.ValidationError.
        """
        values = {key: value for key, value in overrides.items() if value is not None}
        validate_run_config(values)
        return replace(self, **values)

    def as_dict(self) -> dict[str, Any]:
        payload = {field.name: getattr(self, field.name) for field in fields(self)}
        payload["access_token"] = "***" if self.access_token else None
        return payload


def config_from_mapping(payload: Mapping[str, Any]) -> RunConfig:
    """Validate a raw config payload and build a RunConfig."""
    validate_run_config(payload)
    known = {field.name for field in fields(RunConfig)}
    return RunConfig(**{key: value for key, value in payload.items() if key in known})


def _config_path(path: Path | None) -> Path | None:
    if path:
        return path
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path)
    return None


def load_run_config(path: Path | None = None) -> RunConfig:
    """Load run configuration from JSON and the environment.

    The access token from ``MAPBOX_ACCESS_TOKEN`` is used when the file does
    not provide one.
    """
    config_path = _config_path(path)
    config = RunConfig()
    if config_path is not None:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(payload, Mapping):
            raise TypeError("Run config must be a JSON object.")
        config = config_from_mapping(payload)
    if not config.access_token:
        token = os.environ.get(ENV_ACCESS_TOKEN)
        if token:
            config = replace(config, access_token=token)
    return config
