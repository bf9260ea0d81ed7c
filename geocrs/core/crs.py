"""
CRS (Coordinate Reference System) inspection and the GeoJSON ``crs`` member.

Handles CRS summaries, building and parsing the legacy ``crs`` member, and
detecting when a written file no longer carries the CRS of its source.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import geopandas as gpd
from pyproj import CRS
from pyproj.exceptions import CRSError

from .io import read_geojson

logger = logging.getLogger(__name__)

CRS_STYLES = ('epsg', 'name')
WGS84_EPSG = 4326

_LINK_EPSG_PATTERN = re.compile(r'epsg[/:.=]+(\d+)', re.IGNORECASE)


def get_crs_info(gdf: gpd.GeoDataFrame) -> Dict[str, Union[str, int, bool, None]]:
    """
    Extract CRS information from a GeoDataFrame.

    Args:
        gdf: GeoDataFrame to analyze

    Returns:
        Dictionary with CRS information:
        - crs: CRS string representation
        - epsg: EPSG code (if available)
        - is_geographic: Whether CRS is geographic
        - is_projected: Whether CRS is projected
        - units: CRS units
        - name: CRS name
    """
    if gdf.crs is None:
        return {
            'crs': None,
            'epsg': None,
            'is_geographic': None,
            'is_projected': None,
            'units': None,
            'name': None
        }

    crs = gdf.crs

    return {
        'crs': crs.to_string(),
        'epsg': resolve_epsg(crs),
        'is_geographic': crs.is_geographic,
        'is_projected': crs.is_projected,
        'units': crs.axis_info[0].unit_name if crs.axis_info else None,
        'name': crs.name
    }


def resolve_epsg(value: Union[int, str, CRS, None]) -> Optional[int]:
    """
    Resolve an EPSG code from an int, a CRS string or a pyproj CRS.

    An exact match is tried first, then a lower-confidence match so that a
    CRS with incomplete metadata still maps to its registry code.

    Returns:
        EPSG code, or None if it cannot be determined
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None

    try:
        crs = value if isinstance(value, CRS) else CRS.from_user_input(value)
    except CRSError:
        return None

    epsg = crs.to_epsg()
    if epsg is None:
        epsg = crs.to_epsg(min_confidence=70)
    if epsg is None and crs.equals(CRS.from_epsg(WGS84_EPSG), ignore_axis_order=True):
        # OGC:CRS84 is WGS 84 with lon/lat axis order
        epsg = WGS84_EPSG
    return epsg


def is_default_geojson_crs(crs: Union[int, str, CRS, None]) -> bool:
    """
    Check whether a CRS is the GeoJSON default (WGS 84 / OGC:CRS84).

    A file without a crs member is read as WGS 84, so omitting the member
    is not a loss for these.
    """
    return resolve_epsg(crs) == WGS84_EPSG


def crs_member(epsg: int, style: str = "epsg") -> Dict[str, Any]:
    """
    Build the legacy GeoJSON crs member for an EPSG code.

    Args:
        epsg: EPSG code
        style: "epsg" for {"type": "EPSG", ...} or "name" for the OGC URN form

    Returns:
        The member as a dictionary

    Raises:
        ValueError: If the code is not a positive integer or the style is unknown
    """
    if isinstance(epsg, bool) or not isinstance(epsg, int) or epsg <= 0:
        raise ValueError(f"EPSG code must be a positive integer, got {epsg!r}")
    if style == 'epsg':
        return {'type': 'EPSG', 'properties': {'code': epsg}}
    if style == 'name':
        return {'type': 'name', 'properties': {'name': f'urn:ogc:def:crs:EPSG::{epsg}'}}
    raise ValueError(f"Unknown crs member style {style!r}, expected one of {CRS_STYLES}")


def crs_fragment(epsg: int, style: str = "epsg") -> str:
    """Return the crs member as the single line spliced into a FeatureCollection."""
    return '"crs": ' + json.dumps(crs_member(epsg, style)) + ','


def read_crs_member(source: Union[str, Path, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Get the top-level crs member of a GeoJSON document.

    Args:
        source: Path to a file, JSON text, or an already parsed document

    Returns:
        The crs member, or None if the document has none
    """
    if isinstance(source, dict):
        document = source
    elif isinstance(source, str) and source.lstrip().startswith('{'):
        document = json.loads(source)
    else:
        document = json.loads(Path(source).read_text(encoding='utf-8'))

    member = document.get('crs') if isinstance(document, dict) else None
    return member if isinstance(member, dict) else None


def parse_crs_member(member: Optional[Dict[str, Any]]) -> Optional[CRS]:
    """
    Interpret a GeoJSON crs member as a pyproj CRS.

    Supports the "name", "EPSG" and "link" member types.

    Returns:
        CRS, or None if the member is missing or cannot be interpreted
    """
    if not member:
        return None

    member_type = str(member.get('type', '')).lower()
    properties = member.get('properties') or {}

    try:
        if member_type == 'name' and properties.get('name'):
            return CRS.from_user_input(properties['name'])
        if member_type == 'epsg' and properties.get('code') is not None:
            return CRS.from_epsg(int(properties['code']))
        if member_type in ('link', 'url') and properties.get('href'):
            match = _LINK_EPSG_PATTERN.search(properties['href'])
            if match:
                return CRS.from_epsg(int(match.group(1)))
    except (CRSError, TypeError, ValueError) as e:
        logger.warning("Could not interpret crs member %s: %s", member, e)
        return None

    logger.warning("Unsupported crs member: %s", member)
    return None


def detect_crs_loss(
    expected_crs: Union[int, str, CRS, None],
    output_path: Union[str, Path]
) -> Dict[str, Any]:
    """
    Check whether a written GeoJSON file still carries the source CRS.

    Args:
        expected_crs: CRS the dataset had before it was written
        output_path: Path of the written GeoJSON file

    Returns:
        Dictionary with:
        - expected_epsg: EPSG code of the source CRS
        - written_member: crs member found in the output text
        - written_epsg: EPSG code the member resolves to
        - reread_crs: CRS string GDAL reports when reading the output back
        - lost: Whether the CRS was lost
        - reason: Short explanation
    """
    output_path = Path(output_path)
    expected_epsg = resolve_epsg(expected_crs)
    member = read_crs_member(output_path)
    written_crs = parse_crs_member(member)
    written_epsg = resolve_epsg(written_crs)

    reread = read_geojson(output_path)
    reread_crs = reread.crs.to_string() if reread.crs is not None else None

    if expected_crs is None:
        lost, reason = False, "source has no CRS"
    elif member is None and is_default_geojson_crs(expected_crs):
        lost, reason = False, "WGS 84 is implied by GeoJSON"
    elif member is None:
        lost, reason = True, "crs member missing from output"
    elif written_crs is None:
        lost, reason = True, "crs member could not be interpreted"
    elif written_epsg is not None and written_epsg == expected_epsg:
        lost, reason = False, "crs member present"
    elif expected_epsg is not None:
        lost = True
        reason = f"crs member resolves to EPSG:{written_epsg}, expected EPSG:{expected_epsg}"
    else:
        source = expected_crs if isinstance(expected_crs, CRS) else CRS.from_user_input(expected_crs)
        lost = not written_crs.equals(source, ignore_axis_order=True)
        reason = "crs member does not match source CRS" if lost else "crs member present"

    if lost:
        logger.warning("CRS lost writing %s: %s", output_path, reason)

    return {
        'expected_epsg': expected_epsg,
        'written_member': member,
        'written_epsg': written_epsg,
        'reread_crs': reread_crs,
        'lost': lost,
        'reason': reason,
    }
