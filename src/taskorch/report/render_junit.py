from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from taskorch.state.model import TaskResult

SUITES_NAME = "E2E Tests"
SUITE_NAME = "E2E Test Suite"

# Characters outside the XML 1.0 Char production (ANSI escapes included).
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _xml_text(value: str) -> str:
    return _INVALID_XML_CHARS.sub("\ufffd", value)


def _seconds(value: float) -> str:
    return f"{value:.3f}"


def render_junit(results: list[TaskResult]) -> str:
    failures = sum(1 for r in results if r.status == "failed")
    skipped = sum(1 for r in results if r.status == "skipped")
    total_time = sum(r.duration_sec for r in results)

    suites = ET.Element(
        "testsuites",
        {
            "name": SUITES_NAME,
            "tests": str(len(results)),
            "failures": str(failures),
            "time": _seconds(total_time),
        },
    )
    suite = ET.SubElement(
        suites,
        "testsuite",
        {
            "name": SUITE_NAME,
            "tests": str(len(results)),
            "failures": str(failures),
            "skipped": str(skipped),
            "time": _seconds(total_time),
        },
    )
    for result in results:
        case = ET.SubElement(
            suite,
            "testcase",
            {
                "name": _xml_text(result.name),
                "classname": _xml_text(result.environment),
                "time": _seconds(result.duration_sec),
            },
        )
        if result.status == "failed":
            message = _xml_text(result.error or "Test failed")
            failure = ET.SubElement(case, "failure", {"message": message})
            failure.text = _xml_text(result.error or "")
        elif result.status == "skipped":
            ET.SubElement(case, "skipped", {"message": _xml_text(result.skip_reason or "skipped")})

    ET.indent(suites, space="  ")
    body = ET.tostring(suites, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"
