"""Module entrypoint for `python -m terrainmap`."""

from __future__ import annotations

from terrainmap.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
