"""
GeoJSON reading and writing through GDAL/OGR.

Handles driver discovery, layer summaries, and the read/write round trip.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import fiona
import geopandas as gpd

from ..config import DEFAULT_DRIVER

logger = logging.getLogger(__name__)


def list_drivers() -> Dict[str, str]:
    """
    List the OGR vector drivers available to this installation.
    
    Returns:
        Dictionary mapping driver name to access mode ("r", "rw" or "raw")
    """
    return dict(sorted(fiona.supported_drivers.items()))


def has_driver(name: str, mode: str = "r") -> bool:
    """
    Check whether a driver is available with the requested access mode.
    
    Args:
        name: Driver name, e.g. "GeoJSON"
        mode: Mode letters that must all be supported ("r", "w", "a")
        
    Returns:
        True if the driver is listed and supports every requested mode
    """
    available = list_drivers().get(name)
    if available is None:
        return False
    return all(letter in available for letter in mode)


def layer_info(path: Union[str, Path], layer: Optional[str] = None) -> Dict[str, Any]:
    """
    Summarise a vector file the way ogrinfo does.
    
    Args:
        path: Path to the dataset
        layer: Optional layer name (first layer when omitted)
        
    Returns:
        Dictionary with driver, layers, layer, feature_count, schema,
        bounds and crs_wkt
        
    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    layers = fiona.listlayers(path)
    with fiona.open(path, layer=layer) as src:
        return {
            'path': str(path),
            'driver': src.driver,
            'layers': layers,
            'layer': src.name,
            'feature_count': len(src),
            'schema': {
                'geometry': src.schema.get('geometry'),
                'properties': dict(src.schema.get('properties', {})),
            },
            'bounds': list(src.bounds),
            'crs_wkt': src.crs_wkt or None,
        }


def read_geojson(path: Union[str, Path], layer: Optional[str] = None) -> gpd.GeoDataFrame:
    """
    Read a GeoJSON (or any OGR-readable) file.
    
    Args:
        path: Path to the file
        layer: Optional layer name
        
    Returns:
        GeoDataFrame with the CRS reported by GDAL (None if it found none)
        
    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    kwargs = {'layer': layer} if layer is not None else {}
    gdf = gpd.read_file(path, **kwargs)
    logger.info("Read %d features from %s (crs=%s)", len(gdf), path, gdf.crs)
    return gdf


def write_geojson(
    gdf: gpd.GeoDataFrame,
    path: Union[str, Path],
    driver: str = DEFAULT_DRIVER,
    overwrite: bool = True,
    **layer_options: Any
) -> Path:
    """
    Write a GeoDataFrame with the given OGR driver.
    
    Args:
        gdf: GeoDataFrame to write
        path: Output path
        driver: OGR driver name
        overwrite: Remove an existing output first
        **layer_options: Layer creation options passed to GDAL,
            e.g. RFC7946="NO" or WRITE_NAME="NO"
        
    Returns:
        Path of the written file
        
    Raises:
        FileExistsError: If the output exists and overwrite is False
    """
    path = Path(path)
    if path.exists():
        if not overwrite:
            raise FileExistsError(f"Output already exists: {path}")
        # the GeoJSON driver will not replace an existing file
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    gdf.to_file(path, driver=driver, **layer_options)
    logger.info("Wrote %d features to %s with driver %s", len(gdf), path, driver)
    return path


def read_text_lines(path: Union[str, Path]) -> List[str]:
    """Return the lines of a written file, without line terminators."""
    return Path(path).read_text(encoding='utf-8').splitlines()
