"""
GeoCRS: GeoJSON CRS round-trip checking and repair.

Reads and writes GeoJSON through GDAL/OGR, detects when the coordinate
reference system is dropped on write, and repairs the written output.
"""

__version__ = "0.1.0"
__author__ = "GeoCRS Team"
__email__ = "team@geocrs.dev"
