"""
Manual repair of the crs member in written GeoJSON files.

GDAL writes a FeatureCollection with one top-level member per line, so the
crs member can be spliced in as a single line. Files without that layout
are rewritten structurally instead.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import DEFAULT_EPSG, PATCH_STYLE
from .crs import crs_fragment, crs_member

logger = logging.getLogger(__name__)

_CRS_LINE = re.compile(r'^\s*"crs"\s*:')
_FEATURES_LINE = re.compile(r'^\s*"features"\s*:')
_MEMBER_LINE = re.compile(r'^\s*"(?:[^"\\]|\\.)*"\s*:')


class CRSPatchError(ValueError):
    """Raised when a file cannot be patched safely."""


def _line_depths(lines: List[str]) -> List[int]:
    """Nesting depth of objects/arrays at the start of each line."""
    depths = []
    depth = 0
    in_string = False
    escaped = False
    for line in lines:
        depths.append(depth)
        for char in line:
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char in '{[':
                depth += 1
            elif char in '}]':
                depth -= 1
    return depths


def find_crs_line(lines: List[str]) -> int:
    """
    Find the line where the crs member belongs.

    Args:
        lines: Lines of a GeoJSON FeatureCollection

    Returns:
        Zero-based index of an existing top-level crs line, otherwise of the
        top-level features line

    Raises:
        CRSPatchError: If neither member starts a line at the top level
    """
    depths = _line_depths(lines)
    features_index = None
    for index, (line, depth) in enumerate(zip(lines, depths)):
        if depth != 1:
            continue
        if _CRS_LINE.match(line):
            return index
        if features_index is None and _FEATURES_LINE.match(line):
            features_index = index

    if features_index is None:
        raise CRSPatchError("No top-level \"features\" member on its own line")
    return features_index


def _member_end(depths: List[int], start: int) -> int:
    """Index of the first line after the member starting at start."""
    for index in range(start + 1, len(depths)):
        if depths[index] <= 1:
            return index
    return len(depths)


def _load_feature_collection(text: str, path: Path) -> Dict[str, Any]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise CRSPatchError(f"{path} is not valid JSON: {e}")
    if not isinstance(document, dict) or document.get('type') != 'FeatureCollection':
        raise CRSPatchError(f"{path} is not a GeoJSON FeatureCollection")
    return document


def patch_crs(
    path: Union[str, Path],
    epsg: int = DEFAULT_EPSG,
    line_index: Optional[int] = None,
    style: str = PATCH_STYLE,
    output: Optional[Union[str, Path]] = None
) -> Dict[str, Any]:
    """
    Splice a crs member into a written GeoJSON file.

    The fragment replaces an existing crs member or is inserted in front of
    the features member. The file is only written when the patched text is
    still valid JSON. Line endings are kept as they are.

    Args:
        path: GeoJSON file to patch
        epsg: EPSG code to write
        line_index: Zero-based line to patch. It must start a top-level
            member or be blank. A crs or blank line is overwritten, any
            other member gets the fragment inserted in front of it.
            Located automatically when omitted.
        style: crs member style ("epsg" or "name")
        output: Where to write the result (in place when omitted)

    Returns:
        Dictionary with path, line_index, fragment and replaced

    Raises:
        CRSPatchError: If the file cannot be patched safely
    """
    path = Path(path)
    output = Path(output) if output is not None else path
    text = path.read_bytes().decode('utf-8')
    _load_feature_collection(text, path)

    newline = "\r\n" if "\r\n" in text else "\n"
    lines = text.split(newline)
    depths = _line_depths(lines)

    if line_index is None:
        line_index = find_crs_line(lines)
    elif not 0 <= line_index < len(lines):
        raise CRSPatchError(f"Line {line_index + 1} is out of range, file has {len(lines)} lines")
    elif depths[line_index] != 1 or not (
            _MEMBER_LINE.match(lines[line_index]) or not lines[line_index].strip()):
        raise CRSPatchError(
            f"Line {line_index + 1} does not start a top-level member: "
            f"{lines[line_index].strip()[:60]!r}"
        )

    target = lines[line_index]
    fragment = crs_fragment(epsg, style)
    replaced = bool(_CRS_LINE.match(target))

    if replaced:
        indent = target[:len(target) - len(target.lstrip())]
        end = _member_end(depths, line_index)
        if not lines[end - 1].rstrip().endswith(','):
            fragment = fragment[:-1]
        patched = lines[:line_index] + [indent + fragment] + lines[end:]
    elif not target.strip():
        # blank padding line left by GDAL for the crs member
        patched = lines[:line_index] + [fragment] + lines[line_index + 1:]
    else:
        indent = target[:len(target) - len(target.lstrip())]
        patched = lines[:line_index] + [indent + fragment] + lines[line_index:]

    new_text = newline.join(patched)

    try:
        json.loads(new_text)
    except json.JSONDecodeError as e:
        raise CRSPatchError(f"Patching line {line_index + 1} of {path} would produce invalid JSON: {e}")

    output.write_bytes(new_text.encode('utf-8'))
    logger.info("%s crs member at line %d of %s",
                "Replaced" if replaced else "Inserted", line_index + 1, output)

    return {
        'path': str(output),
        'line_index': line_index,
        'fragment': fragment,
        'replaced': replaced,
    }


def embed_crs(
    path: Union[str, Path],
    epsg: int = DEFAULT_EPSG,
    style: str = PATCH_STYLE,
    output: Optional[Union[str, Path]] = None
) -> Dict[str, Any]:
    """
    Set the crs member by rewriting the whole document.

    Used for files that do not have one top-level member per line, such as
    minified GeoJSON. The member is placed after "type" and "name".

    Returns:
        Dictionary with path, member and replaced

    Raises:
        CRSPatchError: If the file is not a GeoJSON FeatureCollection
    """
    path = Path(path)
    output = Path(output) if output is not None else path
    document = _load_feature_collection(path.read_text(encoding='utf-8'), path)

    member = crs_member(epsg, style)
    replaced = 'crs' in document

    rebuilt = {}
    for key in ('type', 'name'):
        if key in document:
            rebuilt[key] = document[key]
    rebuilt['crs'] = member
    for key, value in document.items():
        if key not in rebuilt:
            rebuilt[key] = value

    output.write_text(json.dumps(rebuilt, ensure_ascii=False), encoding='utf-8')
    logger.info("Embedded crs member EPSG:%d in %s", epsg, output)

    return {
        'path': str(output),
        'member': member,
        'replaced': replaced,
    }
