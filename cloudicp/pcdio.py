"""Reading and writing point clouds in the PCD file format."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np


class PCDError(ValueError):
    """Raised when a PCD file cannot be read or written."""


_TYPES = {
    ("F", 4): "<f4",
    ("F", 8): "<f8",
    ("I", 1): "<i1",
    ("I", 2): "<i2",
    ("I", 4): "<i4",
    ("I", 8): "<i8",
    ("U", 1): "<u1",
    ("U", 2): "<u2",
    ("U", 4): "<u4",
    ("U", 8): "<u8",
}


@dataclass(frozen=True)
class _Header:
    fields: list
    dtypes: list
    counts: list
    points: int
    data: str

    def index_of(self, name):
        try:
            return self.fields.index(name)
        except ValueError:
            raise PCDError(f"PCD file has no {name} field") from None


def _parse_header(raw):
    entries = {}
    pos = 0
    while "DATA" not in entries:
        if pos >= len(raw):
            raise PCDError("PCD header has no DATA line")
        end = raw.find(b"\n", pos)
        stop = len(raw) if end == -1 else end
        line = raw[pos:stop].decode("ascii", "replace").strip()
        pos = stop + 1
        if line and not line.startswith("#"):
            key, *values = line.split()
            entries[key.upper()] = values

    fields = entries.get("FIELDS") or entries.get("COLUMNS")
    if not fields:
        raise PCDError("PCD header has no FIELDS line")
    n = len(fields)
    sizes = entries.get("SIZE", ["4"] * n)
    types = entries.get("TYPE", ["F"] * n)
    counts = entries.get("COUNT", ["1"] * n)
    if not len(sizes) == len(types) == len(counts) == n:
        raise PCDError("PCD header field descriptions disagree in length")
    try:
        sizes = [int(size) for size in sizes]
        counts = [int(count) for count in counts]
        if "POINTS" in entries:
            points = int(entries["POINTS"][0])
        else:
            points = int(entries["WIDTH"][0]) * int(entries.get("HEIGHT", ["1"])[0])
    except (ValueError, IndexError, KeyError) as exc:
        raise PCDError("malformed PCD header") from exc
    if points < 0 or any(count < 1 for count in counts):
        raise PCDError("malformed PCD header")

    dtypes = []
    for kind, size in zip(types, sizes):
        key = (kind.upper(), size)
        if key not in _TYPES:
            raise PCDError(f"unsupported field type {kind} of size {size}")
        dtypes.append(np.dtype(_TYPES[key]))

    data = entries["DATA"][0].lower() if entries["DATA"] else ""
    return _Header(list(fields), dtypes, counts, points, data), pos


def _lzf_decompress(data, expected_size):
    out = bytearray()
    pos = 0
    end = len(data)
    while pos < end:
        ctrl = data[pos]
        pos += 1
        if ctrl < 32:
            length = ctrl + 1
            if pos + length > end:
                raise PCDError("compressed PCD data is truncated")
            out += data[pos:pos + length]
            pos += length
            continue
        length = ctrl >> 5
        if length == 7:
            if pos >= end:
                raise PCDError("compressed PCD data is truncated")
            length += data[pos]
            pos += 1
        if pos >= end:
            raise PCDError("compressed PCD data is truncated")
        ref = len(out) - ((ctrl & 0x1F) << 8) - 1 - data[pos]
        pos += 1
        length += 2
        if ref < 0:
            raise PCDError("compressed PCD data refers before its start")
        if ref + length <= len(out):
            out += out[ref:ref + length]
        else:
            for offset in range(length):
                out.append(out[ref + offset])
    if len(out) != expected_size:
        raise PCDError("compressed PCD data has the wrong size")
    return bytes(out)


def _read_ascii(body, header, indices):
    width = sum(header.counts)
    tokens = body.decode("ascii", "replace").split()
    needed = header.points * width
    if len(tokens) < needed:
        raise PCDError("PCD file has fewer values than its header announces")
    try:
        values = np.array(tokens[:needed], dtype=np.float64).reshape(header.points, width)
    except ValueError as exc:
        raise PCDError("PCD file holds a value that is not a number") from exc
    offsets = np.cumsum([0] + header.counts[:-1])
    return values[:, offsets[indices]]


def _read_binary(body, header, indices):
    record = np.dtype(
        [(f"f{i}", dtype, (count,)) for i, (dtype, count) in enumerate(zip(header.dtypes, header.counts))]
    )
    needed = header.points * record.itemsize
    if len(body) < needed:
        raise PCDError("binary PCD data is truncated")
    table = np.frombuffer(body[:needed], dtype=record, count=header.points)
    return np.column_stack([table[f"f{i}"][:, 0] for i in indices])


def _read_compressed(body, header, indices):
    if len(body) < 8:
        raise PCDError("compressed PCD data is truncated")
    compressed_size, raw_size = struct.unpack_from("<II", body)
    payload = body[8:8 + compressed_size]
    if len(payload) < compressed_size:
        raise PCDError("compressed PCD data is truncated")
    data = _lzf_decompress(payload, raw_size)
    sizes = [dtype.itemsize * count * header.points for dtype, count in zip(header.dtypes, header.counts)]
    if len(data) < sum(sizes):
        raise PCDError("compressed PCD data is smaller than its header announces")
    columns = []
    offset = 0
    for dtype, count, size in zip(header.dtypes, header.counts, sizes):
        block = np.frombuffer(data[offset:offset + size], dtype=dtype)
        columns.append(block.reshape(header.points, count)[:, 0])
        offset += size
    return np.column_stack([columns[i] for i in indices])


_READERS = {
    "ascii": _read_ascii,
    "binary": _read_binary,
    "binary_compressed": _read_compressed,
}


def load_pcd(path):
    """Load the x, y, z coordinates of a PCD file as an (N, 3) float32 array."""
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise PCDError(f"cannot read {path}: {exc.strerror}") from exc
    header, pos = _parse_header(raw)
    reader = _READERS.get(header.data)
    if reader is None:
        raise PCDError(f"unsupported PCD data encoding {header.data!r}")
    indices = [header.index_of(axis) for axis in ("x", "y", "z")]
    if header.points == 0:
        return np.empty((0, 3), dtype=np.float32)
    return np.asarray(reader(raw[pos:], header, indices), dtype=np.float32)


def _format(value):
    return f"{float(value):.8g}"


def save_pcd(path, points):
    """Write an (N, 3) point cloud to an ASCII PCD file."""
    cloud = np.asarray(points, dtype=np.float32)
    if cloud.ndim != 2 or cloud.shape[1] != 3:
        raise ValueError("points must be an array of shape (N, 3)")
    if len(cloud) == 0:
        raise PCDError("point cloud has no data")
    count = len(cloud)
    lines = [
        "# .PCD v0.7 - Point Cloud Data file format",
        "VERSION 0.7",
        "FIELDS x y z",
        "SIZE 4 4 4",
        "TYPE F F F",
        "COUNT 1 1 1",
        f"WIDTH {count}",
        "HEIGHT 1",
        "VIEWPOINT 0 0 0 1 0 0 0",
        f"POINTS {count}",
        "DATA ascii",
    ]
    lines.extend(" ".join(_format(value) for value in point) for point in cloud)
    try:
        Path(path).write_text("\n".join(lines) + "\n", encoding="ascii", newline="\n")
    except OSError as exc:
        raise PCDError(f"cannot write {path}: {exc.strerror}") from exc