from __future__ import annotations

import struct

import pytest

from voicelink.audio.wav import HEADER_SIZE, encode_wav, read_wav_header
from voicelink.core.errors import AudioFormatError


def _patch(data: bytes, offset: int, fmt: str, value) -> bytes:
    buf = bytearray(data)
    struct.pack_into(fmt, buf, offset, value)
    return bytes(buf)


class TestEncodeWav:
    def test_header_layout(self):
        pcm = b"\x01\x00" * 8
        data = encode_wav(pcm, 16000)

        assert len(data) == HEADER_SIZE + len(pcm)
        assert data[:4] == b"RIFF"
        assert struct.unpack_from("<I", data, 4)[0] == len(data) - 8
        assert data[8:16] == b"WAVEfmt "
        assert struct.unpack_from("<HHIIHH", data, 20) == (1, 1, 16000, 32000, 2, 16)
        assert data[36:40] == b"data"
        assert struct.unpack_from("<I", data, 40)[0] == len(pcm)
        assert data[HEADER_SIZE:] == pcm

    def test_rejects_odd_length(self):
        with pytest.raises(AudioFormatError):
            encode_wav(b"\x00\x00\x00", 16000)


class TestReadWavHeader:
    def test_valid(self, wav_bytes):
        info = read_wav_header(wav_bytes)
        assert info.sample_rate == 16000
        assert info.channels == 1
        assert info.bits_per_sample == 16
        assert info.data_length == 3200
        assert info.duration == pytest.approx(0.1)

    def test_empty(self):
        with pytest.raises(AudioFormatError, match="Empty"):
            read_wav_header(b"")

    def test_truncated_header(self, wav_bytes):
        with pytest.raises(AudioFormatError):
            read_wav_header(wav_bytes[:20])

    def test_not_riff(self, wav_bytes):
        with pytest.raises(AudioFormatError):
            read_wav_header(b"OggS" + wav_bytes[4:])

    def test_stereo_rejected(self, wav_bytes):
        with pytest.raises(AudioFormatError, match="mono"):
            read_wav_header(_patch(wav_bytes, 22, "<H", 2))

    def test_float_format_rejected(self, wav_bytes):
        with pytest.raises(AudioFormatError, match="PCM"):
            read_wav_header(_patch(wav_bytes, 20, "<H", 3))

    def test_inconsistent_byte_rate(self, wav_bytes):
        with pytest.raises(AudioFormatError):
            read_wav_header(_patch(wav_bytes, 28, "<I", 12345))

    def test_data_length_beyond_payload(self, wav_bytes):
        with pytest.raises(AudioFormatError):
            read_wav_header(_patch(wav_bytes, 40, "<I", 10_000_000))
