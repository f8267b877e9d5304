"""Module entry point: python -m path_memory ..."""

from __future__ import annotations

from path_memory.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
