"""Canonical WAV container for uploaded recordings.

The recording page encodes its capture as single-channel 16-bit linear PCM
behind a 44-byte RIFF header.  ``read_wav_header`` checks an upload against
that layout before it is sent to the transcription service, and
``encode_wav`` produces the same layout for non-browser clients.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

from voicelink.core.errors import AudioFormatError

HEADER_SIZE = 44
PCM_FORMAT = 1
CHANNELS = 1
BITS_PER_SAMPLE = 16

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavInfo:
    sample_rate: int
    channels: int
    bits_per_sample: int
    data_length: int

    @property
    def duration(self) -> float:
        """Length of the recording in seconds."""
        frame_size = self.channels * self.bits_per_sample // 8
        return self.data_length / frame_size / self.sample_rate


def encode_wav(pcm: bytes, sample_rate: int) -> bytes:
    """Wrap little-endian 16-bit mono samples in a canonical WAV header."""
    if len(pcm) % 2:
        raise AudioFormatError("PCM payload is not aligned to 16-bit samples")
    block_align = CHANNELS * BITS_PER_SAMPLE // 8
    header = _HEADER.pack(
        b"RIFF",
        HEADER_SIZE - 8 + len(pcm),
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        CHANNELS,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        len(pcm),
    )
    return header + pcm


def read_wav_header(data: bytes) -> WavInfo:
    if not data:
        raise AudioFormatError("Empty audio upload")
    if len(data) < HEADER_SIZE:
        raise AudioFormatError("Audio upload is shorter than a WAV header")

    (
        riff, _riff_size, wave, fmt, fmt_size, format_tag, channels,
        sample_rate, byte_rate, block_align, bits, data_tag, data_length,
    ) = _HEADER.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise AudioFormatError("Audio upload is not a canonical WAV file")
    if fmt_size != 16 or format_tag != PCM_FORMAT:
        raise AudioFormatError("Audio upload is not linear PCM")
    if channels != CHANNELS or bits != BITS_PER_SAMPLE:
        raise AudioFormatError(
            f"Expected mono 16-bit audio, got {channels} channel(s) at {bits} bits"
        )
    if sample_rate <= 0:
        raise AudioFormatError("Invalid sample rate")
    if block_align != channels * bits // 8 or byte_rate != sample_rate * block_align:
        raise AudioFormatError("Inconsistent byte rate or block align")
    if data_length > len(data) - HEADER_SIZE:
        raise AudioFormatError("WAV data length exceeds the uploaded payload")

    return WavInfo(
        sample_rate=sample_rate,
        channels=channels,
        bits_per_sample=bits,
        data_length=data_length,
    )
