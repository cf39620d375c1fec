# cloudicp

Rigid registration of 3D point clouds with the iterative closest point
(ICP) algorithm. The package also reads and writes the point cloud files
that registration usually involves:

- KITTI Velodyne scans (`velodyne/NNNNNN.bin`, four little-endian float32
  values per point: x, y, z, intensity)
- PCD files: reading `ascii`, `binary` and `binary_compressed` data with
  x, y, z fields; writing ASCII files with x, y, z fields

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

### Comparing two ICP runs on a pair of clouds

```
cloudicp-compare source.pcd target.pcd [num_threads] [--output FILE]
```

Loads both clouds and aligns the source to the target twice: once with
`reference_icp` (the serial baseline) and once with `perform_icp`. It prints
the point counts, the time taken by each run in milliseconds, whether the
baseline converged, its fitness score, both final 4x4 transformations and a
speedup or slowdown ratio. Progress of `perform_icp` (one line per
iteration, and the iteration at which it converged) is logged to standard
output. The source cloud, transformed by the result of `perform_icp`, is
written to `transformed_source.pcd`, or to the file given with `--output`.

`num_threads` defaults to the number of processors when it is omitted or
zero or less. It is only reported; see the last section.

If a cloud cannot be loaded or the result cannot be written, the message is
printed to standard error and the exit status is 1. Missing file arguments
give a usage message and an error status.

### Inspecting KITTI frames

```
cloudicp-frames [BASE_PATH] [--frames N]
```

Reads frames `0` to `N-1` (ten by default) from `BASE_PATH/velodyne/`
(`/home/dataset/sequences/00` by default) and prints, for each frame, the
number of points and the x, y, z and intensity of its first point. A frame
that cannot be opened is reported on standard error, the remaining frames
are still read, and the exit status is 1.

## Library use

```python
from cloudicp.kitti import FrameReader
from cloudicp.pcdio import load_pcd, save_pcd
from cloudicp.icp import perform_icp, transform_points, find_nearest_points, compute_error

reader = FrameReader("/data/kitti/sequences/00")
print(reader.frame_path(7))   # /data/kitti/sequences/00/velodyne/000007.bin
scan = reader.get_frame(7)    # (N, 4) float32 array: x, y, z, intensity

source = load_pcd("source.pcd")   # (N, 3) float32 array
target = load_pcd("target.pcd")

result = perform_icp(source, target, max_iterations=50, convergence_threshold=1e-6)
aligned = transform_points(source, result.transformation)
save_pcd("aligned.pcd", aligned)

matches = find_nearest_points(aligned, target)
print("mean squared error:", compute_error(aligned, target, matches))
```

### `cloudicp.icp`

- `transform_points(points, transformation)` applies a 4x4 rigid
  transformation to an (N, 3) cloud. Extra columns, such as intensity, are
  dropped.
- `find_nearest_points(source, target)` returns, for each source point, the
  index of its nearest target point by brute-force search, or -1 when the
  target is empty.
- `compute_error(source, target, correspondences)` returns the mean squared
  distance over the correspondences that are not -1, and 0.0 when there are
  none.
- `perform_icp(source, target, max_iterations=50, convergence_threshold=1e-6)`
  starts from the identity, pairs every source point with its nearest target
  point, solves for the best rotation and translation with an SVD (correcting
  reflections), and stops after `max_iterations` passes or once the mean
  squared error changes by less than `convergence_threshold`.
- `reference_icp(source, target, max_iterations=10)` is the baseline used by
  `cloudicp-compare`. It stops after `max_iterations` updates, when an update
  is the identity, or when the error changes by less than 1e-12 (all counted
  as converged), and stops without converging when fewer than three
  correspondences are found. Its `error` is the fitness score: the mean
  squared nearest-neighbour distance of the aligned source.

Both ICP functions return an `ICPResult` with `transformation` (a 4x4
array), `converged`, `iterations` (the number of updates applied), `error`
and `errors` (the error measured on each pass).

### `cloudicp.pcdio`

`load_pcd(path)` returns the x, y and z fields of a PCD file as an (N, 3)
float32 array; other fields are ignored. `save_pcd(path, points)` writes an
(N, 3) cloud as an ASCII PCD file and refuses an empty cloud. Unreadable,
malformed or unsupported files, and files that cannot be written, raise
`cloudicp.pcdio.PCDError`.

### `cloudicp.compare`

`run_icp_comparison(source_file, target_file, num_threads=-1,
output_file="transformed_source.pcd")` does the work of `cloudicp-compare`
and returns a `ComparisonReport`; `str(report)` is the text the command
prints.

## What the package does not do

- Nearest-neighbour search and the ICP passes run in a single process with
  NumPy. The thread count given to `cloudicp-compare` or
  `run_icp_comparison` is shown in the report but does not change how the
  work is done.
- There is no viewer: results are printed and saved as PCD files only.
- `cloudicp-compare` uses fixed settings for both runs (50 iterations and a
  threshold of 1e-6 for `perform_icp`, 10 iterations for `reference_icp`);
  other settings are available through the library functions.