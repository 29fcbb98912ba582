"""
Binary fast-load cache codec.

File layout (little-endian)::

    offset  size  field
    0x00    8     magic                b"ALIASBIN"
    0x08    2     header version       1
    0x0A    2     dataset kind         100 = alias index
    0x0C    1     codec                0 = JSON, 1 = CBOR
    0x0D    1     compression          0 = none, 1 = gzip
    0x0E    2     reserved             0
    0x10    8     payload length
    0x18    8     uncompressed length
    0x20    4     record count
    0x24    4     CRC32 of bytes 0x00..0x23
    0x28    ...   payload

The header checksum is verified before any other header value is trusted.
"""
from __future__ import annotations

import gzip
import struct
import zlib
from dataclasses import dataclass

import cbor2
import orjson

from core.exceptions import CorruptDataError
from index.models import AliasIndex

MAGIC = b"ALIASBIN"
HEADER_VERSION = 1
DATASET_ALIAS_INDEX = 100

CODEC_JSON = 0
CODEC_CBOR = 1
COMPRESSION_NONE = 0
COMPRESSION_GZIP = 1

CODECS = {"json": CODEC_JSON, "cbor": CODEC_CBOR}

_HEADER = struct.Struct("<8sHHBBHQQII")
HEADER_SIZE = _HEADER.size
_CRC_SPAN = HEADER_SIZE - 4


@dataclass(frozen=True)
class CacheHeader:
    version: int
    dataset_kind: int
    codec: int
    compression: int
    payload_len: int
    uncompressed_len: int
    record_count: int


def _serialize(index: AliasIndex, codec: int) -> bytes:
    document = index.to_dict()
    if codec == CODEC_CBOR:
        return cbor2.dumps(document)
    return orjson.dumps(document)


def _deserialize(raw: bytes, codec: int) -> dict:
    if codec == CODEC_CBOR:
        return cbor2.loads(raw)
    return orjson.loads(raw)


def encode_index(index: AliasIndex, codec: str = "cbor", compress: bool = True) -> bytes:
    """Serialize an index into header + payload bytes."""
    codec_id = CODECS[codec]
    raw = _serialize(index, codec_id)
    payload = gzip.compress(raw, mtime=0) if compress else raw

    head = _HEADER.pack(
        MAGIC,
        HEADER_VERSION,
        DATASET_ALIAS_INDEX,
        codec_id,
        COMPRESSION_GZIP if compress else COMPRESSION_NONE,
        0,
        len(payload),
        len(raw),
        len(index.records),
        0,
    )
    crc = zlib.crc32(head[:_CRC_SPAN]) & 0xFFFFFFFF
    return head[:_CRC_SPAN] + struct.pack("<I", crc) + payload


def read_header(data: bytes) -> CacheHeader:
    """Parse and validate the header.

    Raises:
        CorruptDataError: Short file, bad checksum, or unsupported header values
    """
    if len(data) < HEADER_SIZE:
        raise CorruptDataError(f"Cache too short for header: {len(data)} bytes")

    (magic, version, kind, codec, compression, _reserved,
     payload_len, uncompressed_len, record_count, crc) = _HEADER.unpack_from(data)

    expected_crc = zlib.crc32(data[:_CRC_SPAN]) & 0xFFFFFFFF
    if crc != expected_crc:
        raise CorruptDataError(f"Cache header checksum mismatch: {crc:#010x} != {expected_crc:#010x}")
    if magic != MAGIC:
        raise CorruptDataError(f"Bad cache magic: {magic!r}")
    if version != HEADER_VERSION:
        raise CorruptDataError(f"Unsupported cache header version: {version}")
    if kind != DATASET_ALIAS_INDEX:
        raise CorruptDataError(f"Unexpected dataset kind: {kind}")
    if codec not in (CODEC_JSON, CODEC_CBOR):
        raise CorruptDataError(f"Unknown codec: {codec}")
    if compression not in (COMPRESSION_NONE, COMPRESSION_GZIP):
        raise CorruptDataError(f"Unknown compression: {compression}")
    if payload_len != len(data) - HEADER_SIZE:
        raise CorruptDataError(f"Payload length {payload_len} != {len(data) - HEADER_SIZE} bytes present")

    return CacheHeader(
        version=version,
        dataset_kind=kind,
        codec=codec,
        compression=compression,
        payload_len=payload_len,
        uncompressed_len=uncompressed_len,
        record_count=record_count,
    )


def decode_index(data: bytes) -> AliasIndex:
    """Rebuild an index from cache bytes.

    Raises:
        CorruptDataError: Any header, payload or structure problem
    """
    header = read_header(data)
    payload = data[HEADER_SIZE:]

    try:
        raw = gzip.decompress(payload) if header.compression == COMPRESSION_GZIP else payload
    except (OSError, EOFError, zlib.error) as e:
        raise CorruptDataError(f"Cache payload does not decompress: {e}") from e
    if len(raw) != header.uncompressed_len:
        raise CorruptDataError(f"Uncompressed length {len(raw)} != {header.uncompressed_len}")

    try:
        index = AliasIndex.from_dict(_deserialize(raw, header.codec))
    except (ValueError, TypeError, KeyError, AttributeError, cbor2.CBORDecodeError) as e:
        raise CorruptDataError(f"Cache payload is malformed: {e}") from e

    if len(index.records) != header.record_count:
        raise CorruptDataError(f"Record count {len(index.records)} != {header.record_count}")
    return index
