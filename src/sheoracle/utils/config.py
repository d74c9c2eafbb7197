"""
sheoracle Runtime Settings

Values come from the environment so that CI jobs can narrow a run without
touching code.
"""

import os
from typing import List, Optional


def _split(value: str) -> List[str]:
    return [item.strip().upper() for item in value.split(",") if item.strip()]


class Settings:
    """Environment-backed settings (SHEORACLE_* variables)."""

    def __init__(self):
        self.reload()

    def reload(self) -> "Settings":
        self.BACKEND: str = os.environ.get("SHEORACLE_BACKEND", "openfhe")
        self.LOG_LEVEL: str = os.environ.get("SHEORACLE_LOG_LEVEL", "INFO").upper()
        self.KINDS: List[str] = _split(os.environ.get("SHEORACLE_KINDS", ""))
        self.MATCH: Optional[str] = os.environ.get("SHEORACLE_MATCH") or None
        return self

    def __repr__(self) -> str:
        return (f"Settings(BACKEND={self.BACKEND!r}, LOG_LEVEL={self.LOG_LEVEL!r}, "
                f"KINDS={self.KINDS!r}, MATCH={self.MATCH!r})")


settings = Settings()
