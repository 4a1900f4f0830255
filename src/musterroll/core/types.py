"""Type aliases used across MusterRoll."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
Grid = list[list[str]]  # source rows as cell strings, header row first
