"""Reading frames of a KITTI-style Velodyne sequence."""

from __future__ import annotations

import argparse
import operator
import sys
from pathlib import Path

import numpy as np

DEFAULT_SEQUENCE = "/home/dataset/sequences/00"

_POINT_DTYPE = np.dtype("<f4")
_FIELDS_PER_POINT = 4
_RECORD_BYTES = _FIELDS_PER_POINT * _POINT_DTYPE.itemsize
_DIGITS = 6


def read_bin_file(path):
    """Read x, y, z, intensity float32 records from a raw file as an (N, 4) array.

    A trailing partial record is ignored. Raises OSError if the file cannot be read.
    """
    raw = Path(path).read_bytes()
    usable = len(raw) - len(raw) % _RECORD_BYTES
    if usable == 0:
        return np.empty((0, _FIELDS_PER_POINT), dtype=_POINT_DTYPE)
    points = np.frombuffer(raw[:usable], dtype=_POINT_DTYPE)
    return points.reshape(-1, _FIELDS_PER_POINT).copy()


class FrameReader:
    """Reads numbered frames from the ``velodyne`` directory of a sequence."""

    def __init__(self, base_path):
        self.base_path = Path(base_path)

    def frame_path(self, frame_number):
        """Return the path of a frame, its number padded to six digits."""
        name = str(operator.index(frame_number))
        if len(name) > _DIGITS:
            raise ValueError(f"frame number {frame_number} has more than {_DIGITS} digits")
        return self.base_path / "velodyne" / f"{name.rjust(_DIGITS, '0')}.bin"

    def get_frame(self, frame_number):
        """Load one frame as an (N, 4) float32 array of x, y, z, intensity."""
        return read_bin_file(self.frame_path(frame_number))


def main(argv=None):
    """Print the size and first point of the first frames of a sequence."""
    parser = argparse.ArgumentParser(
        description="Print the size and first point of Velodyne frames."
    )
    parser.add_argument("base_path", nargs="?", default=DEFAULT_SEQUENCE)
    parser.add_argument("--frames", type=int, default=10)
    args = parser.parse_args(argv)

    reader = FrameReader(args.base_path)
    status = 0
    for index in range(args.frames):
        path = reader.frame_path(index)
        try:
            cloud = reader.get_frame(index)
        except OSError as exc:
            print(f"cannot open file: {path} ({exc.strerror})", file=sys.stderr)
            status = 1
            continue
        print(f"Frame {index} cloud size: {len(cloud)}")
        if len(cloud):
            for value in cloud[0]:
                print(f"Frame {index} cloud point: {float(value):f}")
    return status


if __name__ == "__main__":
    sys.exit(main())