from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
for entry in (SRC_ROOT, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from terrainmap import config as run_config  # noqa: E402
from tests.utils import encode_png, terrain_rgb  # noqa: E402


def pytest_collection_modifyitems(config, items) -> None:
    """Skip integration tests unless explicitly selected via -m integration."""
    markexpr = config.option.markexpr or ""
    if "integration" in markexpr:
        return
    skip_integration = pytest.mark.skip(reason="integration tests run only with -m integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch) -> None:
    """Prevent local configs and tokens from bleeding into tests."""
    monkeypatch.delenv(run_config.ENV_CONFIG, raising=False)
    monkeypatch.delenv(run_config.ENV_ACCESS_TOKEN, raising=False)


@pytest.fixture(scope="session")
def elevation_field() -> np.ndarray:
    """256x256 elevations that differ per pixel (metres)."""
    rows, cols = np.mgrid[0:256, 0:256]
    return 100.0 + cols * 0.5 + rows * 2.0


@pytest.fixture(scope="session")
def terrain_png(tmp_path_factory, elevation_field) -> bytes:
    """Encoded Terrain-RGB PNG for ``elevation_field``."""
    path = tmp_path_factory.mktemp("png") / "tile.png"
    return encode_png(terrain_rgb(elevation_field), path)
