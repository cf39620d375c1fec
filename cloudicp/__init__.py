"""ICP registration of 3D point clouds, with KITTI Velodyne and PCD file support."""

__version__ = "0.1.0"

__all__ = ["compare", "icp", "kitti", "pcdio"]