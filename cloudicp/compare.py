"""Compare the baseline serial ICP with the vectorised ICP on two PCD files."""

from __future__ import annotations

import argparse
import logging
import math
import os
import sys
import time
from dataclasses import dataclass

import numpy as np

from .icp import ICPResult, perform_icp, reference_icp, transform_points
from .pcdio import PCDError, load_pcd, save_pcd

DEFAULT_OUTPUT = "transformed_source.pcd"


def _format_matrix(matrix):
    cells = [[f"{float(value):g}" for value in row] for row in np.asarray(matrix)]
    width = max(len(cell) for row in cells for cell in row)
    return "\n".join(" ".join(cell.rjust(width) for cell in row) for row in cells)


def _ratio(numerator, denominator):
    if denominator == 0:
        return math.nan if numerator == 0 else math.inf
    return numerator / denominator


@dataclass(frozen=True)
class ComparisonReport:
    """Results and timings of one comparison run; ``str()`` gives the printed report."""

    num_threads: int
    source_points: int
    target_points: int
    reference: ICPResult
    reference_ms: int
    parallel: ICPResult
    parallel_ms: int
    output_file: str

    def __str__(self):
        lines = [
            f"Using {self.num_threads} threads",
            f"Loaded source cloud with {self.source_points} points",
            f"Loaded target cloud with {self.target_points} points",
            "",
            "===== Reference ICP (Serial) =====",
            f"Reference ICP completed in {self.reference_ms} ms",
            f"Reference ICP has converged: {'true' if self.reference.converged else 'false'}",
            f"Reference ICP fitness score: {self.reference.error:g}",
            "Reference ICP transformation matrix:",
            _format_matrix(self.reference.transformation),
            "",
            "===== Parallel ICP =====",
            f"Parallel ICP completed in {self.parallel_ms} ms",
            "Final transformation matrix:",
            _format_matrix(self.parallel.transformation),
            f"Transformed point cloud saved to '{self.output_file}'",
            "",
            "===== Performance Comparison =====",
            f"Reference ICP (Serial): {self.reference_ms} ms",
            f"Parallel ICP ({self.num_threads} threads): {self.parallel_ms} ms",
        ]
        if self.parallel_ms < self.reference_ms:
            speedup = _ratio(self.reference_ms, self.parallel_ms)
            lines.append(f"Speedup: {speedup:g}x faster in parallel")
        else:
            slowdown = _ratio(self.parallel_ms, self.reference_ms)
            lines.append(f"Slowdown: {slowdown:g}x slower in parallel")
        return "\n".join(lines)


def _load(path, role):
    try:
        return load_pcd(path)
    except PCDError as exc:
        raise PCDError(f"Failed to load {role} cloud: {path} ({exc})") from exc


def _elapsed_ms(start):
    return int((time.perf_counter() - start) * 1000)


def run_icp_comparison(source_file, target_file, num_threads=-1, output_file=DEFAULT_OUTPUT):
    """Register source onto target with both ICP variants and save the aligned source.

    A thread count of zero or less means all available processors. Raises
    PCDError if a cloud cannot be loaded or the result cannot be saved.
    """
    if num_threads <= 0:
        num_threads = os.cpu_count() or 1

    source = _load(source_file, "source")
    target = _load(target_file, "target")

    start = time.perf_counter()
    reference = reference_icp(source, target)
    reference_ms = _elapsed_ms(start)

    start = time.perf_counter()
    parallel = perform_icp(source, target)
    parallel_ms = _elapsed_ms(start)

    save_pcd(output_file, transform_points(source, parallel.transformation))

    return ComparisonReport(
        num_threads=num_threads,
        source_points=len(source),
        target_points=len(target),
        reference=reference,
        reference_ms=reference_ms,
        parallel=parallel,
        parallel_ms=parallel_ms,
        output_file=str(output_file),
    )


def main(argv=None):
    """Command-line entry point; returns the process exit status."""
    parser = argparse.ArgumentParser(
        description="Compare a serial ICP baseline with the vectorised ICP."
    )
    parser.add_argument("source", help="source PCD file")
    parser.add_argument("target", help="target PCD file")
    parser.add_argument("num_threads", nargs="?", type=int, default=-1)
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help="where to save the aligned source")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
    try:
        report = run_icp_comparison(args.source, args.target, args.num_threads, args.output)
    except PCDError as exc:
        print(exc, file=sys.stderr)
        return 1
    print(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())