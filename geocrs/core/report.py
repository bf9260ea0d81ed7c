"""
Report generation for GeoCRS round trips.

Handles JSON report creation, text formatting for the CLI, and persistence.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from .. import __version__


def generate_report(
    roundtrip_results: Dict,
    processing_options: Dict = None
) -> Dict[str, Any]:
    """
    Generate a JSON report for a single round trip.

    Args:
        roundtrip_results: Results from RoundTrip.run
        processing_options: Options used for processing

    Returns:
        Report dictionary
    """
    loss = roundtrip_results.get('loss_detection') or {}
    verification = roundtrip_results.get('verification') or {}
    source_crs = roundtrip_results.get('source_crs') or {}

    report = {
        'geocrs_version': __version__,
        'timestamp': pd.Timestamp.now().isoformat(),
        'status': _determine_status(roundtrip_results),
        'file_info': {
            'source': roundtrip_results.get('source'),
            'source_path': roundtrip_results.get('source_path'),
            'output_path': roundtrip_results.get('output_path'),
            'driver': roundtrip_results.get('driver'),
            'feature_count': roundtrip_results.get('feature_count', 0)
        },
        'crs_before': source_crs,
        'crs_after': {
            'crs': verification.get('crs'),
            'epsg': verification.get('epsg')
        },
        'expected_epsg': roundtrip_results.get('expected_epsg'),
        'loss_detection': loss,
        'workarounds': roundtrip_results.get('workarounds', []),
        'repaired_by': roundtrip_results.get('repaired_by'),
        'processing_steps': roundtrip_results.get('processing_steps', []),
        'warnings': _collect_warnings(roundtrip_results)
    }

    if processing_options:
        report['processing_options'] = processing_options

    report['integrity_score'] = _calculate_integrity_score(roundtrip_results)

    return report


def _determine_status(results: Dict) -> str:
    verification = results.get('verification')
    if not verification:
        return 'error'
    lost = (results.get('loss_detection') or {}).get('lost', False)
    if not verification.get('success', False):
        return 'lost'
    return 'repaired' if lost else 'clean'


def _collect_warnings(results: Dict) -> List[str]:
    warnings = []
    source_crs = results.get('source_crs') or {}
    loss = results.get('loss_detection') or {}

    if not source_crs.get('crs'):
        warnings.append("Source dataset has no CRS information")
    if loss.get('lost'):
        warnings.append(f"CRS lost on write: {loss.get('reason')}")
    for attempt in results.get('workarounds', []):
        if attempt.get('skipped'):
            warnings.append(f"Workaround {attempt['name']} skipped: {attempt.get('error')}")
        elif not attempt.get('success') and attempt.get('error'):
            warnings.append(f"Workaround {attempt['name']} failed: {attempt['error']}")
    if results.get('repaired_by') == 'patch':
        warnings.append("Output CRS was restored by patching the written text")

    return warnings


def _calculate_integrity_score(results: Dict) -> float:
    """
    Calculate an integrity score (0-100) for the written output.

    Args:
        results: Round trip results

    Returns:
        Score between 0 and 100
    """
    score = 100.0

    # Missing source CRS (-20 points)
    if not (results.get('source_crs') or {}).get('crs'):
        score -= 20

    # CRS dropped on the first write (-30 points)
    if (results.get('loss_detection') or {}).get('lost', False):
        score -= 30

    # Output still without the expected CRS (-50 points)
    verification = results.get('verification') or {}
    if not verification.get('success', False):
        score -= 50

    # Failed workarounds (-5 points each)
    failed = sum(
        1 for attempt in results.get('workarounds', [])
        if not attempt.get('success') and not attempt.get('skipped')
    )
    score -= failed * 5

    return max(0, min(100, score))


def format_report_text(report: Dict) -> str:
    """
    Format a report as plain text for the terminal.

    Args:
        report: Report from generate_report

    Returns:
        Multi-line summary
    """
    file_info = report.get('file_info', {})
    crs_before = report.get('crs_before', {})
    crs_after = report.get('crs_after', {})
    loss = report.get('loss_detection') or {}

    lines = [
        f"Source:        {file_info.get('source')}",
        f"Output:        {file_info.get('output_path')}",
        f"Features:      {file_info.get('feature_count', 0)}",
        f"CRS before:    {_describe_crs(crs_before)}",
        f"CRS written:   {'lost (' + loss.get('reason', '') + ')' if loss.get('lost') else 'kept'}",
    ]

    for attempt in report.get('workarounds', []):
        outcome = 'ok' if attempt.get('success') else 'skipped' if attempt.get('skipped') else 'failed'
        lines.append(f"  workaround {attempt.get('name')}: {outcome}")

    lines.extend([
        f"CRS after:     {_describe_crs(crs_after)}",
        f"Status:        {report.get('status')}",
        f"Integrity:     {report.get('integrity_score')}",
    ])

    for warning in report.get('warnings', []):
        lines.append(f"Warning: {warning}")

    return "\n".join(lines)


def _describe_crs(info: Dict) -> str:
    if not info or not info.get('crs'):
        return 'none'
    if info.get('epsg'):
        return f"EPSG:{info['epsg']}"
    return str(info['crs'])


def save_report(report: Dict, output_path: Union[str, Path]) -> None:
    """
    Save a report to a JSON file.

    Args:
        report: Report dictionary to save
        output_path: Path to save the report
    """
    output_path = Path(output_path)

    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)


def load_report(report_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a report from a JSON file.

    Args:
        report_path: Path to the report file

    Returns:
        Loaded report dictionary
    """
    report_path = Path(report_path)

    with open(report_path, 'r', encoding='utf-8') as f:
        return json.load(f)
