"""Overlay configuration — defaults with LUMASCOPE_* environment overrides."""

import math
import os
from dataclasses import dataclass

from errors import InvalidInput
from scope.histogram import DEFAULT_BIN_COUNT, DEFAULT_SAMPLE_BUDGET

# Bin groups fed to the curve generator (None = one point per bin)
DEFAULT_MAX_POINTS = 64

# Overlay size in view points
DEFAULT_WIDTH = 256.0
DEFAULT_HEIGHT = 96.0


@dataclass(frozen=True)
class OverlaySettings:
    bins: int = DEFAULT_BIN_COUNT
    sample_budget: int | None = DEFAULT_SAMPLE_BUDGET
    tension: float = 0.0
    max_points: int | None = DEFAULT_MAX_POINTS
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT


def _positive_int(env: dict, name: str, default, allow_zero_as_none: bool = False):
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidInput(f"{name} must be an integer, got {raw!r}") from None
    if value == 0 and allow_zero_as_none:
        return None
    if value <= 0:
        raise InvalidInput(f"{name} must be positive, got {value}")
    return value


def load_settings(env: dict | None = None) -> OverlaySettings:
    """Build OverlaySettings from environment variables.

    LUMASCOPE_BINS           histogram bin count
    LUMASCOPE_SAMPLE_BUDGET  max pixels visited per frame (0 = every pixel)
    LUMASCOPE_TENSION        cardinal spline tension (0 = Catmull-Rom)
    LUMASCOPE_MAX_POINTS     curve points per histogram (0 = one per bin)
    """
    env = os.environ if env is None else env

    tension = OverlaySettings.tension
    raw_tension = env.get("LUMASCOPE_TENSION", "").strip()
    if raw_tension:
        try:
            tension = float(raw_tension)
        except ValueError:
            raise InvalidInput(
                f"LUMASCOPE_TENSION must be a number, got {raw_tension!r}"
            ) from None
        if not math.isfinite(tension):
            raise InvalidInput("LUMASCOPE_TENSION must be finite")

    return OverlaySettings(
        bins=_positive_int(env, "LUMASCOPE_BINS", DEFAULT_BIN_COUNT),
        sample_budget=_positive_int(
            env, "LUMASCOPE_SAMPLE_BUDGET", DEFAULT_SAMPLE_BUDGET, True
        ),
        tension=tension,
        max_points=_positive_int(env, "LUMASCOPE_MAX_POINTS", DEFAULT_MAX_POINTS, True),
    )
