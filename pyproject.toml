[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cloudicp"
version = "0.1.0"
description = "Point-to-point ICP registration for 3D point clouds, with KITTI Velodyne frame reading and PCD file support"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["icp", "point cloud", "registration", "pcd", "kitti", "lidar", "velodyne"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cloudicp-frames = "cloudicp.kitti:main"
cloudicp-compare = "cloudicp.compare:main"

[tool.hatch.build.targets.wheel]
packages = ["cloudicp"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
