"""Client for the optional remote memory accelerator."""

from .client import (
    AcceleratorClient,
    AcceleratorError,
    AcceleratorTimeoutError,
    AcceleratorUnavailableError,
    HealthState,
    RelevantMemory,
)

__all__ = [
    "AcceleratorClient",
    "AcceleratorError",
    "AcceleratorTimeoutError",
    "AcceleratorUnavailableError",
    "HealthState",
    "RelevantMemory",
]
