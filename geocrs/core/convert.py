"""
Conversion through the ogr2ogr command line tool.

Used as a workaround when writing through the bindings drops the CRS.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from ..config import DEFAULT_DRIVER

logger = logging.getLogger(__name__)


class Ogr2OgrNotFoundError(RuntimeError):
    """Raised when the ogr2ogr executable is not on PATH."""


class Ogr2OgrError(RuntimeError):
    """Raised when ogr2ogr exits with a non-zero status."""

    def __init__(self, command: List[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"ogr2ogr exited with status {returncode}: {stderr.strip()}")


def find_ogr2ogr() -> str:
    """
    Locate the ogr2ogr executable.

    Raises:
        Ogr2OgrNotFoundError: If ogr2ogr is not installed
    """
    executable = shutil.which("ogr2ogr")
    if executable is None:
        raise Ogr2OgrNotFoundError(
            "ogr2ogr not found. Install GDAL (e.g. conda install -c conda-forge gdal) "
            "and make sure ogr2ogr is on PATH"
        )
    return executable


def _srs_argument(srs: Union[int, str]) -> str:
    return f"EPSG:{srs}" if isinstance(srs, int) else str(srs)


def build_ogr2ogr_command(
    src: Union[str, Path],
    dst: Union[str, Path],
    driver: str = DEFAULT_DRIVER,
    assign_srs: Optional[Union[int, str]] = None,
    target_srs: Optional[Union[int, str]] = None,
    layer_options: Optional[Mapping[str, str]] = None,
    overwrite: bool = True,
    executable: Optional[str] = None
) -> List[str]:
    """
    Build the ogr2ogr argument vector.

    Args:
        src: Input dataset
        dst: Output dataset
        driver: Output driver name (-f)
        assign_srs: CRS to assign to the output without reprojecting (-a_srs)
        target_srs: CRS to reproject to (-t_srs)
        layer_options: Layer creation options (-lco KEY=VALUE)
        overwrite: Replace an existing output (-overwrite)
        executable: ogr2ogr path (looked up on PATH when omitted)

    Returns:
        Command as a list of arguments
    """
    command = [executable or find_ogr2ogr(), "-f", driver]
    if overwrite:
        command.append("-overwrite")
    if assign_srs is not None:
        command.extend(["-a_srs", _srs_argument(assign_srs)])
    if target_srs is not None:
        command.extend(["-t_srs", _srs_argument(target_srs)])
    for key, value in (layer_options or {}).items():
        command.extend(["-lco", f"{key}={value}"])
    command.extend([str(dst), str(src)])
    return command


def convert_file(
    src: Union[str, Path],
    dst: Union[str, Path],
    driver: str = DEFAULT_DRIVER,
    assign_srs: Optional[Union[int, str]] = None,
    target_srs: Optional[Union[int, str]] = None,
    layer_options: Optional[Mapping[str, str]] = None,
    overwrite: bool = True
) -> Dict[str, Union[str, int, List[str]]]:
    """
    Convert a dataset with ogr2ogr.

    Args:
        src: Input dataset
        dst: Output dataset
        driver: Output driver name
        assign_srs: CRS to assign without reprojecting
        target_srs: CRS to reproject to
        layer_options: Layer creation options
        overwrite: Replace an existing output

    Returns:
        Dictionary with command, returncode, output and stderr

    Raises:
        FileNotFoundError: If the input does not exist
        Ogr2OgrNotFoundError: If ogr2ogr is not installed
        Ogr2OgrError: If ogr2ogr fails
    """
    src = Path(src)
    dst = Path(dst)
    if not src.exists():
        raise FileNotFoundError(f"File not found: {src}")

    command = build_ogr2ogr_command(
        src, dst,
        driver=driver,
        assign_srs=assign_srs,
        target_srs=target_srs,
        layer_options=layer_options,
        overwrite=overwrite,
    )
    # the GeoJSON driver cannot overwrite in place even with -overwrite
    if overwrite and dst.exists():
        dst.unlink()
    dst.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Running %s", " ".join(command))
    result = subprocess.run(command, check=False, capture_output=True, text=True)
    if result.returncode != 0:
        raise Ogr2OgrError(command, result.returncode, result.stderr or "")

    return {
        'command': command,
        'returncode': result.returncode,
        'output': str(dst),
        'stderr': result.stderr or "",
    }
