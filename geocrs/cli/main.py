import argparse
import json
import logging
import sys
from pathlib import Path

from geocrs.config import load_overrides, load_settings
from geocrs.core.convert import convert_file
from geocrs.core.crs import get_crs_info, read_crs_member
from geocrs.core.fetch import download_file
from geocrs.core.io import has_driver, layer_info, list_drivers, read_geojson
from geocrs.core.patch import patch_crs
from geocrs.core.report import format_report_text, generate_report, save_report
from geocrs.core.workflow import GEOJSON_DRIVERS, RoundTrip


def _parse_layer_options(pairs):
    options = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Layer option must be KEY=VALUE, got {pair!r}")
        options[key] = value
    return options


def _cmd_drivers(args: argparse.Namespace) -> int:
    if args.check:
        if has_driver(args.check):
            print(f"Driver {args.check} is available.")
            return 0
        print(f"Driver {args.check} is not available.")
        return 1
    for name, mode in list_drivers().items():
        print(f"{name:<24} {mode}")
    return 0


def _cmd_fetch(args: argparse.Namespace) -> int:
    try:
        path = download_file(args.url, args.output, timeout=args.settings['timeout'],
                             chunk_size=args.settings['chunk_size'])
        print(f"Downloaded to {path}")
        return 0
    except Exception as exc:
        print(f"Download failed: {exc}")
        return 1


def _cmd_inspect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: input not found: {input_path}")
        return 1
    try:
        info = layer_info(input_path)
        gdf = read_geojson(input_path)
        print(f"Driver:   {info['driver']}")
        print(f"Layer:    {info['layer']}")
        print(f"Features: {info['feature_count']}")
        print(f"Geometry: {info['schema']['geometry']}")
        print(f"CRS:      {get_crs_info(gdf)}")
        if input_path.suffix.lower() in ('.geojson', '.json'):
            print(f"crs member: {json.dumps(read_crs_member(input_path))}")
        return 0
    except Exception as exc:
        print(f"Inspection failed: {exc}")
        return 1


def _cmd_convert(args: argparse.Namespace) -> int:
    try:
        result = convert_file(
            args.src, args.dst,
            driver=args.driver or args.settings['driver'],
            assign_srs=args.a_srs,
            target_srs=args.t_srs,
            layer_options=_parse_layer_options(args.lco),
        )
        print(f"Converted {args.src} to {result['output']}")
        return 0
    except Exception as exc:
        print(f"Conversion failed: {exc}")
        return 1


def _cmd_patch(args: argparse.Namespace) -> int:
    try:
        result = patch_crs(
            args.input,
            epsg=args.epsg if args.epsg is not None else args.settings['epsg'],
            line_index=args.line - 1 if args.line is not None else None,
            style=args.style or args.settings['patch_style'],
            output=args.output,
        )
        action = "Replaced" if result['replaced'] else "Inserted"
        print(f"{action} line {result['line_index'] + 1} of {result['path']}: {result['fragment']}")
        return 0
    except Exception as exc:
        print(f"Patch failed: {exc}")
        return 1


def _cmd_roundtrip(args: argparse.Namespace) -> int:
    settings = args.settings
    # GEOCRS_EPSG only applies when set, otherwise the source CRS is kept
    epsg = args.epsg if args.epsg is not None else load_overrides().get('epsg')
    try:
        roundtrip = RoundTrip(
            epsg=epsg,
            driver=args.driver or settings['driver'],
            patch_style=args.style or settings['patch_style'],
            timeout=settings['timeout'],
            layer_options=_parse_layer_options(args.lco),
        )
        results = roundtrip.run(args.source, args.output, workarounds=not args.no_workarounds)
    except Exception as exc:
        print(f"Round trip failed: {exc}")
        return 1

    report = generate_report(results, processing_options={
        'driver': roundtrip.driver,
        'epsg': epsg,
        'patch_style': roundtrip.patch_style,
        'workarounds': not args.no_workarounds,
    })
    print(format_report_text(report))
    if args.report:
        save_report(report, args.report)
        print(f"Report written to {args.report}")
    return 0 if results['success'] else 1


def app() -> None:
    parser = argparse.ArgumentParser(
        prog="geocrs",
        description="GeoCRS - GeoJSON CRS round-trip checking and repair",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_drivers = subparsers.add_parser("drivers", help="List available OGR drivers")
    p_drivers.add_argument("--check", metavar="NAME", help="Only check that driver NAME is available")
    p_drivers.set_defaults(func=_cmd_drivers)

    p_fetch = subparsers.add_parser("fetch", help="Download a remote dataset")
    p_fetch.add_argument("url", help="URL to download")
    p_fetch.add_argument("-o", "--output", help="Destination file or directory")
    p_fetch.set_defaults(func=_cmd_fetch)

    p_inspect = subparsers.add_parser("inspect", help="Show layer and CRS information")
    p_inspect.add_argument("input", help="Path to a vector file")
    p_inspect.set_defaults(func=_cmd_inspect)

    p_convert = subparsers.add_parser("convert", help="Convert a dataset with ogr2ogr")
    p_convert.add_argument("src", help="Input dataset")
    p_convert.add_argument("dst", help="Output dataset")
    p_convert.add_argument("--driver", help="Output driver (default: GeoJSON)")
    p_convert.add_argument("--a-srs", dest="a_srs", help="Assign output CRS, e.g. EPSG:4283")
    p_convert.add_argument("--t-srs", dest="t_srs", help="Reproject to CRS, e.g. EPSG:4326")
    p_convert.add_argument("--lco", action="append", metavar="KEY=VALUE", help="Layer creation option")
    p_convert.set_defaults(func=_cmd_convert)

    p_patch = subparsers.add_parser("patch", help="Splice a crs member into a GeoJSON file")
    p_patch.add_argument("input", help="GeoJSON file to patch")
    p_patch.add_argument("--epsg", type=int, help="EPSG code (default: 4283)")
    p_patch.add_argument("--line", type=int, help="1-based line to patch (located automatically if omitted)")
    p_patch.add_argument("--style", choices=["epsg", "name"], help="crs member style")
    p_patch.add_argument("-o", "--output", help="Write to this path instead of in place")
    p_patch.set_defaults(func=_cmd_patch)

    p_roundtrip = subparsers.add_parser("roundtrip", help="Read, write, check and repair a dataset")
    p_roundtrip.add_argument("source", help="URL or path of the dataset")
    p_roundtrip.add_argument("output", help="GeoJSON output path")
    p_roundtrip.add_argument("--epsg", type=int,
                             help="EPSG code the output must carry (default: GEOCRS_EPSG, else the source CRS)")
    p_roundtrip.add_argument("--driver", choices=GEOJSON_DRIVERS, help="Output driver (default: GeoJSON)")
    p_roundtrip.add_argument("--style", choices=["epsg", "name"], help="crs member style for patching")
    p_roundtrip.add_argument("--lco", action="append", metavar="KEY=VALUE", help="Layer creation option")
    p_roundtrip.add_argument("--report", help="Optional path to write a JSON report")
    p_roundtrip.add_argument("--no-workarounds", action="store_true", default=False)
    p_roundtrip.set_defaults(func=_cmd_roundtrip)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        args.settings = load_settings()
    except ValueError as exc:
        print(f"Configuration error: {exc}")
        sys.exit(1)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    app()
