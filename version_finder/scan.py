"""
Directory scan: detect versions for every file below a directory.

Useful to find programs whose version cannot be determined. Each file
gets its own sequential pipeline; files may be processed in parallel.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from .logging_config import get_logger
from .pipeline import STATUS_UNDETERMINED, Detection, VersionFinder


def iter_files(directory: str) -> list[str]:
    """
    List regular files below directory, sorted.

    Args:
        directory: Directory to walk

    Returns:
        Sorted file paths
    """
    files: list[str] = []
    for root, dirs, names in os.walk(directory):
        dirs.sort()
        for name in names:
            path = os.path.join(root, name)
            if os.path.isfile(path):
                files.append(path)
    return sorted(files)


def scan_directory(
    finder: VersionFinder,
    directory: str,
    max_workers: int = 1,
    undetermined_only: bool = False,
) -> list[Detection]:
    """
    Detect versions for all files below a directory.

    Args:
        finder: Configured VersionFinder
        directory: Directory to scan
        max_workers: Number of programs examined concurrently
        undetermined_only: Keep only undetermined results

    Returns:
        Detections in file order

    Raises:
        NotADirectoryError: If directory is not a directory
        PrivilegeSetupError: If the sandbox cannot be used
    """
    if not os.path.isdir(directory):
        raise NotADirectoryError(directory)

    logger = get_logger()
    paths = iter_files(directory)
    logger.debug(f"Scanning {len(paths)} files in {directory} with {max_workers} worker(s)")

    # Verify once up front instead of racing inside the workers
    finder.ensure_prerequisites()

    results: dict[str, Detection] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(finder.detect, path): path for path in paths}
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    detections = [results[path] for path in paths]
    if undetermined_only:
        detections = [d for d in detections if d.status == STATUS_UNDETERMINED]
    return detections
