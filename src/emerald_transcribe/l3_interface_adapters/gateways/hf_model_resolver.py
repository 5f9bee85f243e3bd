"""Gateway: HuggingFace model resolver -- implements ModelResolver port."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from huggingface_hub import hf_hub_download
from pywhispercpp.constants import MODELS_DIR

from emerald_transcribe.l1_entities.device_profile import DeviceProfile
from emerald_transcribe.l1_entities.errors import ModelLoadError
from emerald_transcribe.l1_entities.protocol import DoneStatus, InitiateStatus, ProgressStatus

log = logging.getLogger('emerald.download')

WHISPER_CPP_REPO = 'ggerganov/whisper.cpp'
DEFAULT_MODEL_NAME = 'base'


def _make_progress_class(filename: str, callback: Callable[[object], None]) -> type:
    """Create a tqdm-compatible class that reports byte progress for *filename* via *callback*."""

    class _ProgressReporter:
        def __init__(self, *args, **kwargs):
            self.total: int = kwargs.get('total', 0) or 0
            self.n: int = kwargs.get('initial', 0) or 0
            callback(InitiateStatus(file=filename, total=self.total))
            if self.n:
                callback(ProgressStatus(file=filename, loaded=self.n, total=self.total))

        def update(self, n: int = 1) -> None:
            self.n += n
            loaded = min(self.n, self.total) if self.total > 0 else self.n
            callback(ProgressStatus(file=filename, loaded=loaded, total=self.total))

        def close(self) -> None:
            pass

        def set_description(self, *a, **kw) -> None:
            pass

        def set_description_str(self, *a, **kw) -> None:
            pass

        def set_postfix_str(self, *a, **kw) -> None:
            pass

        def refresh(self) -> None:
            pass

        def __enter__(self):
            return self

        def __exit__(self, *args):
            self.close()

    return _ProgressReporter


class HfModelResolver:
    """Resolves a device profile to local whisper.cpp weights, downloading from HF if needed.

    Every file resolved reports ``initiate`` -> ``progress``* -> ``done``,
    including cache hits, so a host always sees the files a profile uses.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        repo_id: str = WHISPER_CPP_REPO,
        *,
        token: str | None = None,
        endpoint: str | None = None,
    ) -> None:
        self._model_name = model_name
        self._repo_id = repo_id
        self._token = token
        self._endpoint = endpoint

    def files_for(self, profile: DeviceProfile) -> list[str]:
        return [profile.weights_filename(self._model_name)]

    def resolve(self, profile: DeviceProfile, on_progress: Callable[[object], None] | None = None) -> str:
        if Path(self._model_name).is_absolute():
            if not Path(self._model_name).exists():
                raise ModelLoadError(f'Model file not found: {self._model_name}')
            return self._model_name

        paths = [self._fetch(filename, on_progress) for filename in self.files_for(profile)]
        return paths[0]

    def _fetch(self, filename: str, on_progress: Callable[[object], None] | None) -> str:
        cache_dir = Path(MODELS_DIR) / 'whisper-cpp'
        cache_dir.mkdir(parents=True, exist_ok=True)
        local_path = cache_dir / filename
        if local_path.exists():
            log.debug('Cache hit: %s', local_path)
            if on_progress is not None:
                size = local_path.stat().st_size
                on_progress(InitiateStatus(file=filename, total=size))
                on_progress(ProgressStatus(file=filename, loaded=size, total=size))
                on_progress(DoneStatus(file=filename))
            return str(local_path)

        log.info('Downloading %s from %s', filename, self._repo_id)
        kwargs: dict = dict(repo_id=self._repo_id, filename=filename, local_dir=cache_dir)
        if self._token is not None:
            kwargs['token'] = self._token
        if self._endpoint is not None:
            kwargs['endpoint'] = self._endpoint
        if on_progress is not None:
            kwargs['tqdm_class'] = _make_progress_class(filename, on_progress)
        try:
            path = hf_hub_download(**kwargs)
        except Exception as exc:
            raise ModelLoadError(f'Failed to download {filename}: {exc}') from exc
        if on_progress is not None:
            on_progress(DoneStatus(file=filename))
        return path
