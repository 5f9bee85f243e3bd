"""Use case: device-keyed, single-flight model cache."""

from __future__ import annotations

import asyncio
import logging

from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import ModelLoadError
from emerald_transcribe.l2_use_cases.ports.inference_engine import ModelLoader, TranscriptionPipeline
from emerald_transcribe.l2_use_cases.ports.model_resolver import FileProgressCallback

log = logging.getLogger('emerald.cache')


def _on_loop(callback: FileProgressCallback) -> FileProgressCallback:
    """Wrap *callback* so calls from a loader thread run on the current event loop."""
    loop = asyncio.get_running_loop()

    def _forward(event: object) -> None:
        loop.call_soon_threadsafe(callback, event)

    return _forward


class ModelCache:
    """Holds at most one load per device profile for the life of the worker process.

    Concurrent ``get_or_load`` calls for the same profile await one shared
    task, so they all see the same handle (or the same ModelLoadError).
    A failed load is evicted; the next call starts a fresh attempt.
    """

    def __init__(self, loader: ModelLoader) -> None:
        self._loader = loader
        self._loads: dict[DeviceProfile, asyncio.Task[TranscriptionPipeline]] = {}

    async def get_or_load(
        self,
        profile: DeviceProfile,
        on_progress: FileProgressCallback | None = None,
    ) -> TranscriptionPipeline:
        task = self._loads.get(profile)
        if task is None:
            log.info('Loading model for %s', profile.value)
            task = asyncio.create_task(self._load(profile, on_progress))
            self._loads[profile] = task
        else:
            log.debug('Joining existing load for %s', profile.value)
        # shield: one cancelled waiter must not cancel the load the others share
        return await asyncio.shield(task)

    async def _load(
        self,
        profile: DeviceProfile,
        on_progress: FileProgressCallback | None,
    ) -> TranscriptionPipeline:
        callback = _on_loop(on_progress) if on_progress is not None else None
        try:
            handle = await asyncio.to_thread(self._loader.load, profile, callback)
        except ModelLoadError:
            self._evict(profile)
            raise
        except Exception as exc:
            self._evict(profile)
            raise ModelLoadError(f'Failed to load model ({profile.value}): {exc}') from exc
        log.info('Model ready for %s', profile.value)
        return handle

    def _evict(self, profile: DeviceProfile) -> None:
        log.warning('Model load failed for %s; evicting cache entry', profile.value)
        self._loads.pop(profile, None)
