"""
Tests for the workflow module.
"""

import pytest

from geocrs.core import io, workflow
from geocrs.core.convert import Ogr2OgrError, Ogr2OgrNotFoundError
from geocrs.core.workflow import RoundTrip, WORKAROUNDS


@pytest.fixture
def lossy_writer(monkeypatch, strip_crs):
    """Make every write drop the crs member, like the buggy writer."""
    def _write(gdf, path, **kwargs):
        return strip_crs(io.write_geojson(gdf, path, **kwargs))

    monkeypatch.setattr(workflow, "write_geojson", _write)


@pytest.fixture
def no_ogr2ogr(monkeypatch):
    def _convert(*args, **kwargs):
        raise Ogr2OgrNotFoundError("ogr2ogr not found")

    monkeypatch.setattr(workflow, "convert_file", _convert)


class TestRoundTripSteps:
    """Test the individual round trip steps."""

    def test_fetch_local(self, sample_geojson):
        roundtrip = RoundTrip()
        path = roundtrip.fetch(sample_geojson)

        assert path == sample_geojson
        assert roundtrip.steps[0]['step'] == 'fetch'
        assert roundtrip.steps[0]['downloaded'] is False

    def test_fetch_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RoundTrip().fetch(tmp_path / 'missing.geojson')

    def test_fetch_remote(self, monkeypatch, sample_geojson):
        monkeypatch.setattr(workflow, "download_file", lambda url, timeout: sample_geojson)

        roundtrip = RoundTrip()
        path = roundtrip.fetch("https://example.com/places.geojson")

        assert path == sample_geojson
        assert roundtrip.steps[0]['downloaded'] is True

    def test_read(self, sample_geojson):
        roundtrip = RoundTrip()
        roundtrip.fetch(sample_geojson)
        gdf = roundtrip.read()

        assert len(gdf) == 3
        assert roundtrip.crs_info['epsg'] == 4283
        assert roundtrip.expected_epsg == 4283

    def test_explicit_epsg_overrides_source(self, sample_geojson):
        roundtrip = RoundTrip(epsg=28355)
        roundtrip.fetch(sample_geojson)
        roundtrip.read()

        assert roundtrip.expected_epsg == 28355

    def test_steps_out_of_order(self, tmp_path):
        roundtrip = RoundTrip()

        with pytest.raises(ValueError, match="No source fetched"):
            roundtrip.read()
        with pytest.raises(ValueError, match="No dataset read"):
            roundtrip.write(tmp_path / 'out.geojson')
        with pytest.raises(ValueError, match="No output written"):
            roundtrip.inspect()

    def test_write_and_inspect_kept(self, tmp_path, sample_geojson):
        roundtrip = RoundTrip()
        roundtrip.fetch(sample_geojson)
        roundtrip.read()
        roundtrip.write(tmp_path / 'out.geojson')
        loss = roundtrip.inspect()

        assert loss['lost'] is False

    def test_write_and_inspect_lost(self, tmp_path, sample_geojson, lossy_writer):
        roundtrip = RoundTrip()
        roundtrip.fetch(sample_geojson)
        roundtrip.read()
        roundtrip.write(tmp_path / 'out.geojson')
        loss = roundtrip.inspect()

        assert loss['lost'] is True
        assert loss['reason'] == "crs member missing from output"

    def test_non_geojson_driver_rejected(self):
        with pytest.raises(ValueError, match="does not write GeoJSON text"):
            RoundTrip(driver='ESRI Shapefile')


class TestApplyWorkarounds:
    """Test the workaround chain."""

    def _prepared(self, source, output):
        roundtrip = RoundTrip()
        roundtrip.fetch(source)
        roundtrip.read()
        roundtrip.write(output)
        roundtrip.inspect()
        return roundtrip

    def test_patch_repairs_when_others_fail(self, tmp_path, sample_geojson, lossy_writer, no_ogr2ogr):
        roundtrip = self._prepared(sample_geojson, tmp_path / 'out.geojson')

        attempts = roundtrip.apply_workarounds()

        assert [a['name'] for a in attempts] == list(WORKAROUNDS)
        assert attempts[0]['success'] is False
        assert attempts[1]['skipped'] is True
        assert attempts[2]['success'] is True
        assert roundtrip.repaired_by == 'patch'

    def test_stops_at_first_success(self, tmp_path, lost_crs_geojson):
        roundtrip = self._prepared(lost_crs_geojson, tmp_path / 'out.geojson')
        # the source itself has no crs member, so it reads as WGS 84
        attempts = roundtrip.apply_workarounds(epsg=4283)

        assert len(attempts) == 1
        assert attempts[0]['name'] == 'complete_crs'
        assert attempts[0]['success'] is True
        assert roundtrip.repaired_by == 'complete_crs'

    def test_ogr2ogr_failure_recorded(self, monkeypatch, tmp_path, sample_geojson, lossy_writer):
        def _convert(*args, **kwargs):
            raise Ogr2OgrError(["ogr2ogr"], 1, "ERROR 1: failed")

        monkeypatch.setattr(workflow, "convert_file", _convert)
        roundtrip = self._prepared(sample_geojson, tmp_path / 'out.geojson')

        attempts = roundtrip.apply_workarounds()

        assert attempts[1]['success'] is False
        assert 'failed' in attempts[1]['error']
        assert 'skipped' not in attempts[1]
        assert roundtrip.repaired_by == 'patch'

    def test_ogr2ogr_repairs(self, monkeypatch, tmp_path, sample_geojson, lossy_writer):
        def _convert(src, dst, **kwargs):
            # a converter that honours -a_srs
            io.write_geojson(io.read_geojson(src).set_crs(epsg=kwargs['assign_srs'], allow_override=True), dst)
            return {'command': ['ogr2ogr', '-a_srs', f"EPSG:{kwargs['assign_srs']}"]}

        monkeypatch.setattr(workflow, "convert_file", _convert)
        roundtrip = self._prepared(sample_geojson, tmp_path / 'out.geojson')

        attempts = roundtrip.apply_workarounds()

        assert roundtrip.repaired_by == 'ogr2ogr'
        assert len(attempts) == 2
        assert not (tmp_path / 'out.ogr2ogr.geojson').exists()

    def test_ogr2ogr_failure_removes_staging_file(self, monkeypatch, tmp_path, sample_geojson, lossy_writer):
        def _convert(src, dst, **kwargs):
            dst.write_text('{"type": "FeatureCol', encoding='utf-8')
            raise Ogr2OgrError(["ogr2ogr"], 1, "ERROR 1: disk full")

        monkeypatch.setattr(workflow, "convert_file", _convert)
        roundtrip = self._prepared(sample_geojson, tmp_path / 'out.geojson')

        attempts = roundtrip.apply_workarounds()

        assert 'disk full' in attempts[1]['error']
        assert not (tmp_path / 'out.ogr2ogr.geojson').exists()
        assert roundtrip.repaired_by == 'patch'

    def test_no_epsg_to_restore(self, tmp_path, sample_no_crs_gdf):
        roundtrip = RoundTrip()
        roundtrip.gdf = sample_no_crs_gdf
        roundtrip.write(tmp_path / 'out.geojson')

        attempts = roundtrip.apply_workarounds()

        assert attempts == []
        assert roundtrip.steps[-1]['success'] is False
        assert roundtrip.steps[-1]['error'] == "No EPSG code to restore"


class TestRun:
    """Test the complete round trip."""

    def test_run_clean(self, tmp_path, sample_geojson):
        progress = []
        results = RoundTrip().run(sample_geojson, tmp_path / 'out.geojson',
                                  progress_callback=lambda pct, msg: progress.append(pct))

        assert results['success'] is True
        assert results['loss_detection']['lost'] is False
        assert results['workarounds'] == []
        assert results['verification']['epsg'] == 4283
        assert progress[0] == 0 and progress[-1] == 100

    def test_run_repairs(self, tmp_path, sample_geojson, lossy_writer, no_ogr2ogr):
        results = RoundTrip().run(sample_geojson, tmp_path / 'out.geojson')

        assert results['success'] is True
        assert results['loss_detection']['lost'] is True
        assert results['repaired_by'] == 'patch'
        assert results['verification']['crs'] is not None
        assert [s['step'] for s in results['processing_steps']] == [
            'fetch', 'read', 'write', 'inspect', 'workarounds', 'verify'
        ]

    def test_run_without_workarounds(self, tmp_path, sample_geojson, lossy_writer):
        results = RoundTrip().run(sample_geojson, tmp_path / 'out.geojson', workarounds=False)

        assert results['success'] is False
        assert results['workarounds'] == []
        assert results['verification']['epsg'] != 4283

    def test_run_embeds_when_line_patch_impossible(self, monkeypatch, tmp_path, sample_geojson, no_ogr2ogr, strip_crs):
        def _write_minified(gdf, path, **kwargs):
            io.write_geojson(gdf, path, **kwargs)
            text = strip_crs(path).read_text(encoding='utf-8')
            path.write_text(" ".join(text.split("\n")), encoding='utf-8')
            return path

        monkeypatch.setattr(workflow, "write_geojson", _write_minified)

        results = RoundTrip().run(sample_geojson, tmp_path / 'out.geojson')

        assert results['success'] is True
        assert results['repaired_by'] == 'patch'
        assert results['workarounds'][-1]['details']['member'] == {'type': 'EPSG', 'properties': {'code': 4283}}
