import struct

import numpy as np
import pytest

from cloudicp.pcdio import PCDError, load_pcd, save_pcd


def _header(fields, sizes, types, counts, points, data):
    return (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        f"FIELDS {' '.join(fields)}\n"
        f"SIZE {' '.join(map(str, sizes))}\n"
        f"TYPE {' '.join(types)}\n"
        f"COUNT {' '.join(map(str, counts))}\n"
        f"WIDTH {points}\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {points}\n"
        f"DATA {data}\n"
    ).encode("ascii")


def test_save_then_load_round_trip(tmp_path):
    points = np.array([[0.1, -2.5, 3.75], [1e-3, 42.0, -0.125], [7.0, 8.0, 9.0]])
    path = tmp_path / "cloud.pcd"
    save_pcd(path, points)
    loaded = load_pcd(path)
    assert loaded.shape == (3, 3)
    np.testing.assert_allclose(loaded, points.astype(np.float32), rtol=1e-7)


def test_saved_header_follows_format(tmp_path):
    path = tmp_path / "cloud.pcd"
    save_pcd(path, [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    lines = path.read_text().splitlines()
    assert lines[0] == "# .PCD v0.7 - Point Cloud Data file format"
    assert "FIELDS x y z" in lines
    assert "POINTS 2" in lines
    assert lines[10] == "DATA ascii"
    assert len(lines) == 13


def test_load_ascii_with_extra_fields(tmp_path):
    path = tmp_path / "extra.pcd"
    body = b"1 2 3 0.5\n4 5 6 0.25\n"
    path.write_bytes(_header(["x", "y", "z", "intensity"], [4] * 4, ["F"] * 4, [1] * 4, 2, "ascii") + body)
    np.testing.assert_array_equal(load_pcd(path), np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float32))


def test_load_ascii_with_fields_in_other_order(tmp_path):
    path = tmp_path / "order.pcd"
    body = b"0.5 3 2 1\n"
    path.write_bytes(_header(["intensity", "z", "y", "x"], [4] * 4, ["F"] * 4, [1] * 4, 1, "ascii") + body)
    np.testing.assert_array_equal(load_pcd(path), np.array([[1, 2, 3]], dtype=np.float32))


def test_load_binary(tmp_path):
    values = np.array([[1.0, 2.0, 3.0, 9.0], [-4.0, 5.5, 6.0, 8.0]], dtype="<f4")
    path = tmp_path / "binary.pcd"
    path.write_bytes(
        _header(["x", "y", "z", "intensity"], [4] * 4, ["F"] * 4, [1] * 4, 2, "binary") + values.tobytes()
    )
    np.testing.assert_array_equal(load_pcd(path), values[:, :3])


def test_load_binary_compressed_with_back_reference(tmp_path):
    x_block = struct.pack("<3f", 1.0, 1.0, 1.0)
    yz_block = struct.pack("<6f", 2.0, 3.0, 4.0, 5.0, 6.0, 7.0)
    payload = bytes([3]) + x_block[:4] + bytes([0xC0, 3]) + bytes([23]) + yz_block
    raw_size = len(x_block) + len(yz_block)
    path = tmp_path / "compressed.pcd"
    path.write_bytes(
        _header(["x", "y", "z"], [4] * 3, ["F"] * 3, [1] * 3, 3, "binary_compressed")
        + struct.pack("<II", len(payload), raw_size)
        + payload
    )
    expected = np.array([[1.0, 2.0, 5.0], [1.0, 3.0, 6.0], [1.0, 4.0, 7.0]], dtype=np.float32)
    np.testing.assert_array_equal(load_pcd(path), expected)


def test_load_empty_cloud(tmp_path):
    path = tmp_path / "empty.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4] * 3, ["F"] * 3, [1] * 3, 0, "ascii"))
    assert load_pcd(path).shape == (0, 3)


def test_missing_file_raises(tmp_path):
    with pytest.raises(PCDError):
        load_pcd(tmp_path / "absent.pcd")


def test_missing_axis_raises(tmp_path):
    path = tmp_path / "noz.pcd"
    path.write_bytes(_header(["x", "y"], [4, 4], ["F", "F"], [1, 1], 1, "ascii") + b"1 2\n")
    with pytest.raises(PCDError, match="z"):
        load_pcd(path)


def test_unknown_encoding_raises(tmp_path):
    path = tmp_path / "odd.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4] * 3, ["F"] * 3, [1] * 3, 1, "hex") + b"00\n")
    with pytest.raises(PCDError):
        load_pcd(path)


def test_truncated_binary_raises(tmp_path):
    path = tmp_path / "short.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4] * 3, ["F"] * 3, [1] * 3, 2, "binary") + b"\x00" * 12)
    with pytest.raises(PCDError):
        load_pcd(path)


def test_header_without_data_raises(tmp_path):
    path = tmp_path / "nodata.pcd"
    path.write_bytes(b"VERSION 0.7\nFIELDS x y z\n")
    with pytest.raises(PCDError):
        load_pcd(path)


def test_save_empty_cloud_raises(tmp_path):
    with pytest.raises(PCDError):
        save_pcd(tmp_path / "empty.pcd", np.empty((0, 3)))


def test_save_wrong_shape_raises(tmp_path):
    with pytest.raises(ValueError):
        save_pcd(tmp_path / "bad.pcd", [[1.0, 2.0]])