"""L1 entity: compute backend selection and its fixed precision configuration."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProfileSpec:
    dtype: dict[str, str] = field(default_factory=dict)
    weights_suffix: str = ''
    size_mb: int = 0


class DeviceProfile(enum.Enum):
    ACCELERATED = 'accelerated'
    PORTABLE = 'portable'

    @property
    def spec(self) -> ProfileSpec:
        return _PROFILE_SPECS[self]

    @property
    def size_mb(self) -> int:
        """Approximate download size shown before loading starts."""
        return self.spec.size_mb

    def weights_filename(self, model_name: str) -> str:
        return f'ggml-{model_name}{self.spec.weights_suffix}.bin'


_PROFILE_SPECS: dict[DeviceProfile, ProfileSpec] = {
    DeviceProfile.ACCELERATED: ProfileSpec(
        dtype={'encoder': 'f16', 'decoder': 'f16'},
        weights_suffix='',
        size_mb=148,
    ),
    DeviceProfile.PORTABLE: ProfileSpec(
        dtype={'encoder': 'q8_0', 'decoder': 'q8_0'},
        weights_suffix='-q8_0',
        size_mb=82,
    ),
}
