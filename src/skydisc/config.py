"""Runtime settings read from the environment (and a local ``.env`` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_ROOT = Path(__file__).parent.parent.parent


@dataclass(frozen=True)
class Settings:
    data_dir: Path  # skyfield downloads and data files (de421.bsp, hip_main.dat, *.fab)
    ephemeris: str  # JPL ephemeris file name
    log_level: str
    output_dir: Path  # Default destination for exported maps


def load_settings() -> Settings:
    """Read settings after loading ``.env``. Values already in the environment win.

    Environment variables:
        SKYDISC_DATA_DIR: Defaults to ``<repo>/resources``.
        SKYDISC_EPHEMERIS: Defaults to ``de421.bsp``.
        SKYDISC_LOG_LEVEL: Defaults to ``INFO``.
        SKYDISC_OUTPUT_DIR: Defaults to ``<repo>/results``.
    """
    load_dotenv()
    return Settings(
        data_dir=Path(os.environ.get("SKYDISC_DATA_DIR", _ROOT / "resources")),
        ephemeris=os.environ.get("SKYDISC_EPHEMERIS", "de421.bsp"),
        log_level=os.environ.get("SKYDISC_LOG_LEVEL", "INFO").upper(),
        output_dir=Path(os.environ.get("SKYDISC_OUTPUT_DIR", _ROOT / "results")),
    )
