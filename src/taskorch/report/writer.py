from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from secrets import token_hex
from typing import Any

from taskorch.report.render_html import render_html
from taskorch.report.render_junit import render_junit
from taskorch.state.model import TaskResult
from taskorch.util.fs import ensure_directory, write_text_atomic

logger = logging.getLogger(__name__)

REPORT_PREFIX = "e2e-results"


def new_report_stamp(at: datetime) -> str:
    """``YYYYMMDD_HHMMSS_<6 hex>``; the suffix keeps same-second runs apart."""
    return f"{at.strftime('%Y%m%d_%H%M%S')}_{token_hex(3)}"


@dataclass(slots=True)
class ReportPaths:
    json: Path
    junit: Path
    html: Path


def write_reports(
    report_dir: Path,
    report: dict[str, Any],
    results: list[TaskResult],
    *,
    stamp: str,
) -> ReportPaths:
    """Write JSON, JUnit XML and HTML reports under a shared timestamped stem."""
    ensure_directory(report_dir)
    stem = f"{REPORT_PREFIX}-{stamp}"
    paths = ReportPaths(
        json=report_dir / f"{stem}.json",
        junit=report_dir / f"{stem}.xml",
        html=report_dir / f"{stem}.html",
    )

    write_text_atomic(paths.json, json.dumps(report, ensure_ascii=False, indent=2) + "\n")
    logger.info("JSON report: %s", paths.json)
    write_text_atomic(paths.junit, render_junit(results))
    logger.info("JUnit XML report: %s", paths.junit)
    write_text_atomic(paths.html, render_html(report))
    logger.info("HTML report: %s", paths.html)
    return paths
