"""
Reporting Module
================

Generate segmentation reports (CSV, JSON, HTML) from a completed run or
from the segmentation currently stored.

Usage:
    from retail_segmentation.common import Reporter

    reporter = Reporter(output_dir="outputs/reports")
    reporter.generate_segmentation_report(results, "customer_segments")
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Dict, Any, Optional
from datetime import datetime
import json
from loguru import logger


class Reporter:
    """
    Report generation for customer segmentation results.

    Example:
        >>> reporter = Reporter(output_dir="outputs/reports")
        >>> reporter.generate_segmentation_report(results, "customer_segments")
    """

    def __init__(self, output_dir: str = "outputs/reports"):
        """
        Initialize Reporter.

        Args:
            output_dir: Directory for saving reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Reporter initialized. Output: {self.output_dir}")

    def generate_segmentation_report(
        self,
        results: Dict[str, Any],
        report_name: str,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Generate customer segmentation report.

        Args:
            results: Segmentation results containing:
                - assignments: DataFrame, one row per customer
                - segments: List of per-segment summaries
                - metrics: Clustering metrics (inertia, silhouette, ...)
                - statistical_tests: Per-feature Kruskal-Wallis results
                - run: Run metadata (iterations, converged, ...)
            report_name: Base name for report files
            formats: Output formats (default: csv, json, html)

        Returns:
            Dictionary of format -> file path
        """
        formats = formats or ['csv', 'json', 'html']
        output_paths = {}
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        assignments = results.get('assignments', pd.DataFrame())
        segments = results.get('segments', [])
        metrics = results.get('metrics', {})
        tests = results.get('statistical_tests', {})
        run = results.get('run', {})

        # CSV Export
        if 'csv' in formats and not assignments.empty:
            csv_path = self.output_dir / f"{report_name}_{timestamp}.csv"
            assignments.to_csv(csv_path, index=False)
            output_paths['csv'] = csv_path
            logger.info(f"Saved CSV report: {csv_path}")

        # JSON Export
        if 'json' in formats:
            json_path = self.output_dir / f"{report_name}_{timestamp}.json"

            json_data = {
                'generated_at': timestamp,
                'n_segments': len(segments),
                'n_customers': len(assignments),
                'run': self._convert_to_serializable(run),
                'metrics': self._convert_to_serializable(metrics),
                'segments': self._convert_to_serializable(segments),
                'statistical_tests': self._convert_to_serializable(tests),
            }

            with open(json_path, 'w') as f:
                json.dump(json_data, f, indent=2)
            output_paths['json'] = json_path
            logger.info(f"Saved JSON report: {json_path}")

        # HTML Report
        if 'html' in formats:
            html_path = self.output_dir / f"{report_name}_{timestamp}.html"
            html_path.write_text(
                self._generate_segmentation_html(assignments, segments, metrics, tests, run, report_name)
            )
            output_paths['html'] = html_path
            logger.info(f"Saved HTML report: {html_path}")

        logger.info(f"Generated segmentation report: {report_name}")
        return output_paths

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert numpy/pandas values into plain JSON types."""
        if isinstance(obj, pd.DataFrame):
            return self._convert_to_serializable(obj.to_dict('records'))
        if isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple, np.ndarray)):
            return [self._convert_to_serializable(v) for v in obj]
        if isinstance(obj, (bool, np.bool_)):
            return bool(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, (float, np.floating)):
            return None if np.isnan(obj) else float(obj)
        return obj

    @staticmethod
    def _format_number(value: Any, fmt: str = ".3f") -> str:
        if value is None:
            return "N/A"
        return format(value, fmt)

    def _generate_segmentation_html(
        self,
        assignments: pd.DataFrame,
        segments: List[Dict[str, Any]],
        metrics: Dict[str, Any],
        tests: Dict[str, Dict[str, Any]],
        run: Dict[str, Any],
        report_name: str
    ) -> str:
        """Render segment profiles, clustering quality and feature tests as one HTML page."""
        fmt = self._format_number

        profile_rows = "\n".join(
            f"<tr><td>{s.get('segment_id')}</td><td>{s.get('segment_name')}</td>"
            f"<td>{s.get('customer_count', 0)}</td>"
            f"<td>{fmt(s.get('avg_value'), ',.2f')}</td>"
            f"<td>{fmt(s.get('avg_frequency'), '.1f')}</td>"
            f"<td>{fmt(s.get('avg_order_value'), ',.2f')}</td>"
            f"<td>{fmt(s.get('avg_recency'), '.0f')}</td></tr>"
            for s in segments
        )

        test_rows = "\n".join(
            f"<tr><td>{feature}</td><td>{fmt(t.get('kruskal_h_statistic'), '.2f')}</td>"
            f"<td>{fmt(t.get('kruskal_p_value'), '.4f')}</td>"
            f"<td>{'yes' if t.get('significant') else 'no'}</td></tr>"
            for feature, t in tests.items()
        ) or '<tr><td colspan="4">Not enough segments to compare</td></tr>'

        quality = [
            ('Customers', len(assignments)),
            ('Segments', len(segments)),
            ('Iterations', run.get('iterations', 'N/A')),
            ('Converged', run.get('converged', 'N/A')),
            ('Inertia', fmt(metrics.get('inertia'), '.4f')),
            ('Silhouette', fmt(metrics.get('silhouette_score'))),
            ('Davies-Bouldin', fmt(metrics.get('davies_bouldin'))),
        ]
        quality_items = "\n".join(f"<li><b>{label}:</b> {value}</li>" for label, value in quality)

        return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{report_name} - Customer Segments</title>
<style>
    body {{ font-family: Helvetica, Arial, sans-serif; margin: 32px; color: #222; }}
    h1 {{ border-bottom: 2px solid #2d6a4f; padding-bottom: 6px; }}
    ul.quality {{ list-style: none; padding: 0; display: flex; flex-wrap: wrap; gap: 24px; }}
    table {{ border-collapse: collapse; margin: 16px 0; min-width: 60%; }}
    th, td {{ padding: 8px 12px; border: 1px solid #ccc; text-align: right; }}
    th {{ background: #2d6a4f; color: #fff; }}
    td:nth-child(2) {{ text-align: left; }}
    .generated {{ color: #777; font-size: 0.85em; }}
</style>
</head>
<body>
<h1>Customer Segmentation: {report_name}</h1>
<p class="generated">Generated {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>

<h2>Run</h2>
<ul class="quality">
{quality_items}
</ul>

<h2>Segments</h2>
<table>
<tr><th>ID</th><th>Name</th><th>Customers</th><th>Avg Value</th><th>Avg Purchases</th><th>Avg Order</th><th>Avg Days Since Purchase</th></tr>
{profile_rows}
</table>

<h2>Feature Differences (Kruskal-Wallis)</h2>
<table>
<tr><th>Feature</th><th>H</th><th>p-value</th><th>Significant</th></tr>
{test_rows}
</table>
</body>
</html>
"""
