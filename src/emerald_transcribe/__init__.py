"""emerald-transcribe -- on-device speech transcription with word-level timestamps."""

__version__ = '0.1.0'
