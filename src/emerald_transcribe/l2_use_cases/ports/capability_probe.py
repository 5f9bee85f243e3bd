"""Port: compute capability probing."""

from __future__ import annotations

from typing import Protocol

from emerald_transcribe.l1_entities.device_profile import DeviceProfile


class CapabilityProbe(Protocol):
    def probe(self) -> DeviceProfile:
        """Return ACCELERATED when a GPU backend is usable, PORTABLE otherwise. Never raises."""
        ...
