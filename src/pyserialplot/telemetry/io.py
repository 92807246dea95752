import os
from typing import List, Optional

from loguru import logger


def _resolve_path(filename: str, data_path: Optional[str] = None) -> str:
    if data_path is not None and not os.path.isabs(filename):
        return os.path.join(data_path, filename)
    return filename


def read_lines(
    filename: str,
    data_path: Optional[str] = None,
    encoding: str = "utf-8",
    crop: Optional[List[int]] = None,
) -> List[str]:
    """
    Read a telemetry capture file as complete lines.

    Parameters
    ----------
    filename : str
        Name of the capture file.
    data_path : str, optional
        Directory joined with ``filename`` when ``filename`` is relative.
    encoding : str, default="utf-8"
        Text encoding. Undecodable bytes are replaced rather than raising.
    crop : List[int], optional
        Line index range [start, end]. If None, all lines are returned.

    Returns
    -------
    List[str]
        Lines without their ``\\n`` / ``\\r\\n`` terminators.

    Raises
    ------
    FileNotFoundError
        If the capture file does not exist.
    """
    fp = _resolve_path(filename, data_path)
    if not os.path.exists(fp):
        logger.error(f"Capture file not found: {fp}")
        raise FileNotFoundError(f"Capture file not found: {fp}")

    rel_fp = os.path.relpath(fp, os.getcwd()) if os.path.isabs(fp) else fp
    logger.info(f"Reading capture file: {rel_fp}")
    with open(fp, "r", encoding=encoding, errors="replace", newline="") as f:
        lines = [line.rstrip("\r\n") for line in f]

    if crop is not None:
        if len(crop) != 2:
            raise ValueError(f"crop must be [start, end], got {crop}")
        lines = lines[crop[0] : crop[1]]
    logger.info(f"--Lines: {len(lines)}")
    return lines
