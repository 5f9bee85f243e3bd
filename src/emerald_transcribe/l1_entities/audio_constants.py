"""Audio format constants shared by every layer."""

SAMPLE_RATE = 16000
CHUNK_LENGTH_S = 30.0
