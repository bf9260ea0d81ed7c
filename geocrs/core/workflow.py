"""
GeoJSON round trip with CRS loss detection and repair.

Fetches a dataset, reads it, writes it back to GeoJSON, checks the written
crs member, and applies the available workarounds when it is missing.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import geopandas as gpd

from ..config import DEFAULT_DRIVER, DEFAULT_TIMEOUT, PATCH_STYLE
from .convert import Ogr2OgrNotFoundError, convert_file
from .crs import detect_crs_loss, get_crs_info, resolve_epsg
from .fetch import download_file, is_remote
from .io import read_geojson, write_geojson
from .patch import CRSPatchError, embed_crs, patch_crs

logger = logging.getLogger(__name__)

WORKAROUNDS = ('complete_crs', 'ogr2ogr', 'patch')

# drivers whose output is a single GeoJSON text document
GEOJSON_DRIVERS = ('GeoJSON',)


class RoundTrip:
    """
    State of one read/write/repair run over a single dataset.
    """

    def __init__(
        self,
        epsg: Optional[int] = None,
        driver: str = DEFAULT_DRIVER,
        patch_style: str = PATCH_STYLE,
        timeout: float = DEFAULT_TIMEOUT,
        layer_options: Optional[Dict[str, str]] = None
    ):
        if driver not in GEOJSON_DRIVERS:
            raise ValueError(
                f"Driver {driver!r} does not write GeoJSON text, "
                f"expected one of {', '.join(GEOJSON_DRIVERS)}"
            )
        self.epsg = epsg
        self.driver = driver
        self.patch_style = patch_style
        self.timeout = timeout
        self.layer_options = layer_options or {}

        self.source = None
        self.source_path = None
        self.output_path = None
        self.gdf = None
        self.crs_info = {}
        self.loss = None
        self.workarounds = []
        self.repaired_by = None
        self.verification = None
        self.steps = []

    @property
    def expected_epsg(self) -> Optional[int]:
        """EPSG code the output must carry."""
        if self.epsg is not None:
            return self.epsg
        return self.crs_info.get('epsg')

    def _record(self, step: str, success: bool, **details: Any) -> Dict[str, Any]:
        entry = {'step': step, 'success': success}
        entry.update(details)
        self.steps.append(entry)
        return entry

    def fetch(self, source: Union[str, Path]) -> Path:
        """
        Download a remote source, or accept a local path.

        Raises:
            FileNotFoundError: If a local source does not exist
            requests.HTTPError: If the download fails
        """
        self.source = str(source)
        if is_remote(source):
            self.source_path = download_file(str(source), timeout=self.timeout)
            self._record('fetch', True, source=self.source, path=str(self.source_path), downloaded=True)
        else:
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")
            self.source_path = path
            self._record('fetch', True, source=self.source, path=str(path), downloaded=False)
        return self.source_path

    def read(self) -> gpd.GeoDataFrame:
        """Read the fetched dataset and record its CRS."""
        if self.source_path is None:
            raise ValueError("No source fetched")

        self.gdf = read_geojson(self.source_path)
        self.crs_info = get_crs_info(self.gdf)
        self._record('read', True, feature_count=len(self.gdf), crs_info=self.crs_info)
        return self.gdf

    def write(self, output_path: Union[str, Path], **layer_options: str) -> Path:
        """Write the dataset back out with the configured driver."""
        if self.gdf is None:
            raise ValueError("No dataset read")

        options = dict(self.layer_options, **layer_options)
        self.output_path = write_geojson(self.gdf, output_path, driver=self.driver, **options)
        self._record('write', True, output=str(self.output_path), layer_options=options)
        return self.output_path

    def inspect(self) -> Dict[str, Any]:
        """Compare the CRS of the written file with the source CRS."""
        if self.output_path is None:
            raise ValueError("No output written")

        expected = self.expected_epsg if self.expected_epsg is not None else self.gdf.crs
        self.loss = detect_crs_loss(expected, self.output_path)
        self._record('inspect', True, lost=self.loss['lost'], reason=self.loss['reason'])
        return self.loss

    def _complete_crs(self, epsg: int) -> Dict[str, Any]:
        gdf = self.gdf.set_crs(epsg=epsg, allow_override=True)
        write_geojson(gdf, self.output_path, driver=self.driver, **self.layer_options)
        return {'crs': gdf.crs.to_string()}

    def _ogr2ogr(self, epsg: int) -> Dict[str, Any]:
        staging = self.output_path.with_name(f"{self.output_path.stem}.ogr2ogr{self.output_path.suffix}")
        try:
            result = convert_file(
                self.source_path, staging,
                driver=self.driver,
                assign_srs=epsg,
                layer_options=self.layer_options,
            )
        except Exception:
            staging.unlink(missing_ok=True)
            raise
        staging.replace(self.output_path)
        return {'command': result['command']}

    def _patch(self, epsg: int) -> Dict[str, Any]:
        try:
            return patch_crs(self.output_path, epsg=epsg, style=self.patch_style)
        except CRSPatchError as e:
            logger.info("Line patch not possible (%s), rewriting document", e)
            return embed_crs(self.output_path, epsg=epsg, style=self.patch_style)

    def apply_workarounds(self, epsg: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Try each workaround in turn until the output carries the CRS.

        Order: rebuild the CRS from its EPSG code and write again, convert
        with ogr2ogr -a_srs, then patch the written text.

        Args:
            epsg: EPSG code to restore (defaults to the source CRS)

        Returns:
            List of attempts with name, success and details
        """
        if self.output_path is None:
            raise ValueError("No output written")

        if epsg is not None:
            self.epsg = resolve_epsg(epsg)
        epsg = self.expected_epsg
        if epsg is None:
            self._record('workarounds', False, error="No EPSG code to restore")
            return self.workarounds

        handlers = {
            'complete_crs': self._complete_crs,
            'ogr2ogr': self._ogr2ogr,
            'patch': self._patch,
        }

        for name in WORKAROUNDS:
            attempt = {'name': name, 'epsg': epsg}
            try:
                attempt['details'] = handlers[name](epsg)
                check = detect_crs_loss(epsg, self.output_path)
                attempt['success'] = not check['lost']
                attempt['reason'] = check['reason']
            except Ogr2OgrNotFoundError as e:
                attempt['success'] = False
                attempt['skipped'] = True
                attempt['error'] = str(e)
            except Exception as e:
                logger.warning("Workaround %s failed: %s", name, e)
                attempt['success'] = False
                attempt['error'] = str(e)

            self.workarounds.append(attempt)
            if attempt['success']:
                self.repaired_by = name
                break

        self._record('workarounds', self.repaired_by is not None,
                     attempts=len(self.workarounds), repaired_by=self.repaired_by)
        return self.workarounds

    def verify(self) -> Dict[str, Any]:
        """Re-read the final output and check that its CRS is present."""
        if self.output_path is None:
            raise ValueError("No output written")

        reread = read_geojson(self.output_path)
        crs = reread.crs
        epsg = resolve_epsg(crs)
        expected = self.expected_epsg
        success = crs is not None and (expected is None or epsg == expected)

        self.verification = {
            'success': success,
            'crs': crs.to_string() if crs is not None else None,
            'epsg': epsg,
            'expected_epsg': expected,
            'feature_count': len(reread),
        }
        self._record('verify', success, crs=self.verification['crs'], epsg=epsg)
        return self.verification

    def run(
        self,
        source: Union[str, Path],
        output_path: Union[str, Path],
        workarounds: bool = True,
        progress_callback: Optional[Callable] = None
    ) -> Dict[str, Any]:
        """
        Complete round trip: fetch, read, write, inspect, repair, verify.

        Args:
            source: URL or local path of the dataset
            output_path: Where to write the GeoJSON output
            workarounds: Whether to try to repair a lost CRS
            progress_callback: Optional progress callback function

        Returns:
            Dictionary with the round trip results
        """
        if progress_callback:
            progress_callback(0, "Fetching source")
        self.fetch(source)

        if progress_callback:
            progress_callback(20, "Reading dataset")
        self.read()

        if progress_callback:
            progress_callback(40, "Writing GeoJSON")
        self.write(output_path)

        if progress_callback:
            progress_callback(60, "Inspecting written CRS")
        self.inspect()

        if self.loss['lost'] and workarounds:
            if progress_callback:
                progress_callback(70, "Applying workarounds")
            self.apply_workarounds()

        if progress_callback:
            progress_callback(90, "Verifying output")
        self.verify()

        if progress_callback:
            progress_callback(100, "Round trip complete")

        return self.results()

    def results(self) -> Dict[str, Any]:
        """Collect the state of the run into a dictionary."""
        return {
            'success': bool(self.verification and self.verification['success']),
            'source': self.source,
            'source_path': str(self.source_path) if self.source_path else None,
            'output_path': str(self.output_path) if self.output_path else None,
            'driver': self.driver,
            'feature_count': len(self.gdf) if self.gdf is not None else 0,
            'source_crs': self.crs_info,
            'expected_epsg': self.expected_epsg,
            'loss_detection': self.loss,
            'workarounds': self.workarounds,
            'repaired_by': self.repaired_by,
            'verification': self.verification,
            'processing_steps': self.steps,
        }
