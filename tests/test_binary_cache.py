"""Tests for the binary fast-load cache codec."""
import gzip
import struct
import zlib

import pytest

from core.exceptions import CorruptDataError
from index.builder import IndexBuilder
from index.models import AliasIndex
from storage.binary_cache import (
    CODEC_CBOR,
    CODEC_JSON,
    COMPRESSION_GZIP,
    COMPRESSION_NONE,
    HEADER_SIZE,
    MAGIC,
    decode_index,
    encode_index,
    read_header,
)


@pytest.fixture
def index(factory, seeds):
    return IndexBuilder(factory).build(seeds)


class TestEncodeDecode:

    @pytest.mark.parametrize("codec", ["cbor", "json"])
    @pytest.mark.parametrize("compress", [True, False])
    def test_decoded_index_equals_original(self, index, codec, compress):
        data = encode_index(index, codec=codec, compress=compress)
        assert decode_index(data) == index

    def test_header_fields(self, index):
        # Act
        data = encode_index(index, codec="json", compress=False)
        header = read_header(data)

        # Assert
        assert data[:8] == MAGIC
        assert header.codec == CODEC_JSON
        assert header.compression == COMPRESSION_NONE
        assert header.record_count == len(index)
        assert header.payload_len == len(data) - HEADER_SIZE
        assert header.uncompressed_len == header.payload_len

    def test_cbor_gzip_header(self, index):
        header = read_header(encode_index(index))
        assert (header.codec, header.compression) == (CODEC_CBOR, COMPRESSION_GZIP)

    def test_encoding_is_deterministic(self, index):
        assert encode_index(index) == encode_index(index)

    def test_empty_index(self):
        empty = AliasIndex(records=())
        assert decode_index(encode_index(empty)) == empty

    def test_unknown_codec_name(self, index):
        with pytest.raises(KeyError):
            encode_index(index, codec="msgpack")


class TestCorruption:

    @pytest.fixture
    def data(self, index):
        return encode_index(index)

    def test_every_flipped_header_byte_is_detected(self, data):
        for position in range(HEADER_SIZE):
            corrupted = bytearray(data)
            corrupted[position] ^= 0xFF
            with pytest.raises(CorruptDataError):
                decode_index(bytes(corrupted))

    def test_truncated_payload(self, data):
        with pytest.raises(CorruptDataError):
            decode_index(data[:-10])

    def test_short_file(self):
        with pytest.raises(CorruptDataError):
            read_header(b"ALIASBIN")

    def test_corrupted_payload(self, data):
        corrupted = bytearray(data)
        corrupted[-5] ^= 0xFF
        with pytest.raises(CorruptDataError):
            decode_index(bytes(corrupted))

    def test_record_count_mismatch(self, index):
        # Arrange: header claims one record more than the payload holds
        data = bytearray(encode_index(index, compress=False))
        struct.pack_into("<I", data, 0x20, len(index) + 1)
        struct.pack_into("<I", data, 0x24, zlib.crc32(bytes(data[:0x24])) & 0xFFFFFFFF)

        # Act / Assert
        with pytest.raises(CorruptDataError, match="Record count"):
            decode_index(bytes(data))

    def test_valid_gzip_of_garbage(self, index):
        # Arrange: rebuild a self-consistent file around an undecodable payload
        raw = b"\xff\xfe not cbor"
        payload = gzip.compress(raw, mtime=0)
        head = struct.pack("<8sHHBBHQQI", MAGIC, 1, 100, CODEC_CBOR, COMPRESSION_GZIP, 0,
                           len(payload), len(raw), 0)
        data = head + struct.pack("<I", zlib.crc32(head) & 0xFFFFFFFF) + payload

        # Act / Assert
        with pytest.raises(CorruptDataError):
            decode_index(data)
