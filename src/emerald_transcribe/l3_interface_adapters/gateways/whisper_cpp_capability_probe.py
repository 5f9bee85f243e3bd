"""Gateway: whisper.cpp capability probe -- implements CapabilityProbe port."""

from __future__ import annotations

import logging
import re

from emerald_transcribe.l1_entities.device_profile import DeviceProfile

log = logging.getLogger('emerald.probe')

# Matches both "CUDA = 1" (older builds) and "CUDA : ARCHS = ..." backend sections (newer ggml).
_GPU_BACKEND = re.compile(r'\b(cuda|metal|vulkan|coreml|sycl|hipblas)\s*(?:=\s*1\b|:)', re.IGNORECASE)


def has_gpu_backend(system_info: str) -> bool:
    return _GPU_BACKEND.search(system_info) is not None


class WhisperCppCapabilityProbe:
    """Selects ACCELERATED when the installed whisper.cpp build reports a GPU backend."""

    def probe(self) -> DeviceProfile:
        try:
            from pywhispercpp.model import Model  # noqa: PLC0415 -- deferred: loads the native extension

            info = str(Model.system_info())
        except Exception as exc:
            log.warning('Capability probe failed, using portable profile: %s', exc)
            return DeviceProfile.PORTABLE

        profile = DeviceProfile.ACCELERATED if has_gpu_backend(info) else DeviceProfile.PORTABLE
        log.info('Capability probe: %s (%s)', profile.value, info.strip())
        return profile
