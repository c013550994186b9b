r"""
Sampling configuration and profile definitions.

Profiles trade run time for confidence:
    - quick: 20 trials, 0.5s calibration (smoke checks)
    - standard: 100 trials, 2s calibration (default)
    - thorough: 500 trials, 5s calibration

    from micro_bench.config import PROFILES, get_profile

    profile = get_profile("standard")
    print(f"Trials: {profile.trials}, target: {profile.target:.0%}")
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

__all__ = [
    "PROFILES",
    "DEFAULT_PROFILE",
    "DEFAULT_RPC_ADDRESS",
    "SamplingProfile",
    "get_profile",
    "get_env",
    "parse_address",
    "ENV_PREFIX",
]

# Look for .env in current dir, then next to the package
_env_file = Path(".env")
if not _env_file.exists():
    _env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

ENV_PREFIX = "MICRO_BENCH_"


@dataclass(frozen=True, slots=True)
class SamplingProfile:
    """Sampling parameters shared by the estimation strategies.

    Attributes:
        name: Profile name.
        trials: Samples per measurement point.
        calibration_seconds: Duration used to calibrate the baseline count.
        probe: Second probe count ``h`` of the two-point strategy.
        target: Largest accepted overhead fraction of total time.
        ladder_trials: Samples per rung of the ladder strategy.
    """

    name: str
    trials: int = 100
    calibration_seconds: float = 2.0
    probe: int = 2
    target: float = 0.01
    ladder_trials: int = 50


PROFILES: dict[str, SamplingProfile] = {
    "quick": SamplingProfile(
        name="quick",
        trials=20,
        calibration_seconds=0.5,
        ladder_trials=10,
    ),
    "standard": SamplingProfile(name="standard"),
    "thorough": SamplingProfile(
        name="thorough",
        trials=500,
        calibration_seconds=5.0,
        ladder_trials=200,
    ),
}

DEFAULT_PROFILE = "standard"

DEFAULT_RPC_ADDRESS = "127.0.0.1:9998"


def get_profile(name: str) -> SamplingProfile:
    """Get sampling profile by name.

    Args:
        name: Profile name (quick, standard, thorough).

    Returns:
        SamplingProfile for the requested name.

    Raises:
        ValueError: If profile name is not recognized.
    """
    if name not in PROFILES:
        valid = ", ".join(PROFILES.keys())
        msg = f"Unknown profile '{name}'. Valid profiles: {valid}"
        raise ValueError(msg)
    return PROFILES[name]


def get_env(key: str, *, default: str | None = None) -> str | None:
    """Get environment variable with MICRO_BENCH_ prefix.

    Args:
        key: Variable name without prefix (e.g., "LOG_LEVEL").
        default: Default value if not set.

    Returns:
        Environment variable value or default.
    """
    return os.environ.get(f"{ENV_PREFIX}{key}", default)


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``tcp://host:port``) into a socket address.

    Raises:
        ValueError: If the port is missing or not a number.
    """
    address = address.removeprefix("tcp://")
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        msg = f"Invalid address '{address}', expected host:port"
        raise ValueError(msg)
    return host or "127.0.0.1", int(port)
