"""
Core read/write, CRS detection and repair engine for GeoCRS.
"""

from .fetch import download_file, is_remote
from .io import list_drivers, has_driver, layer_info, read_geojson, write_geojson
from .crs import (
    get_crs_info, resolve_epsg, crs_member, crs_fragment,
    read_crs_member, parse_crs_member, detect_crs_loss
)
from .convert import convert_file, Ogr2OgrError, Ogr2OgrNotFoundError
from .patch import patch_crs, embed_crs, find_crs_line, CRSPatchError
from .workflow import RoundTrip
from .report import generate_report, format_report_text, save_report, load_report

__all__ = [
    "download_file",
    "is_remote",
    "list_drivers",
    "has_driver",
    "layer_info",
    "read_geojson",
    "write_geojson",
    "get_crs_info",
    "resolve_epsg",
    "crs_member",
    "crs_fragment",
    "read_crs_member",
    "parse_crs_member",
    "detect_crs_loss",
    "convert_file",
    "Ogr2OgrError",
    "Ogr2OgrNotFoundError",
    "patch_crs",
    "embed_crs",
    "find_crs_line",
    "CRSPatchError",
    "RoundTrip",
    "generate_report",
    "format_report_text",
    "save_report",
    "load_report",
]
