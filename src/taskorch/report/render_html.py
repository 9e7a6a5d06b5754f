from __future__ import annotations

from typing import Any

from jinja2 import Environment

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: system-ui, -apple-system, sans-serif; padding: 2rem; background: #f9fafb; }
    .container { max-width: 1200px; margin: 0 auto; }
    .header { background: white; padding: 2rem; border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); margin-bottom: 2rem; }
    h1 { font-size: 2rem; margin-bottom: 1rem; }
    .summary { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 1rem; }
    .stat { background: #f3f4f6; padding: 1rem; border-radius: 6px; }
    .stat-label { font-size: 0.875rem; color: #6b7280; margin-bottom: 0.25rem; }
    .stat-value { font-size: 1.5rem; font-weight: 600; }
    .results { background: white; padding: 2rem; border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }
    table { width: 100%; border-collapse: collapse; }
    th { text-align: left; padding: 0.75rem; border-bottom: 2px solid #e5e7eb; font-weight: 600; }
    td { padding: 0.75rem; border-bottom: 1px solid #e5e7eb; }
    .badge { display: inline-block; padding: 0.25rem 0.75rem; border-radius: 9999px; font-size: 0.875rem; font-weight: 500; }
    .badge-passed { background: #dcfce7; color: #166534; }
    .badge-failed { background: #fee2e2; color: #991b1b; }
    .badge-skipped { background: #fef3c7; color: #92400e; }
    .badge-pending, .badge-running { background: #e5e7eb; color: #374151; }
    .status-indicator { width: 80px; height: 80px; border-radius: 50%; background: {{ status_color }}; color: white; display: flex; align-items: center; justify-content: center; font-size: 2rem; font-weight: 600; margin: 0 auto 1rem; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <div class="status-indicator">{% if summary.success %}&#10003;{% else %}&#10007;{% endif %}</div>
      <h1>{{ title }}</h1>
      <div class="summary">
        <div class="stat">
          <div class="stat-label">Total Tests</div>
          <div class="stat-value">{{ summary.total }}</div>
        </div>
        <div class="stat">
          <div class="stat-label">Passed</div>
          <div class="stat-value" style="color: #22c55e">{{ summary.passed }}</div>
        </div>
        <div class="stat">
          <div class="stat-label">Failed</div>
          <div class="stat-value" style="color: #ef4444">{{ summary.failed }}</div>
        </div>
        <div class="stat">
          <div class="stat-label">Skipped</div>
          <div class="stat-value" style="color: #f59e0b">{{ summary.skipped }}</div>
        </div>
        <div class="stat">
          <div class="stat-label">Pass Rate</div>
          <div class="stat-value">{{ "%.1f"|format(summary.passRate) }}%</div>
        </div>
        <div class="stat">
          <div class="stat-label">Duration</div>
          <div class="stat-value">{{ "%.2f"|format(summary.duration) }}s</div>
        </div>
      </div>
    </div>
    <div class="results">
      <h2 style="margin-bottom: 1rem;">Test Results</h2>
      <table>
        <thead>
          <tr>
            <th>Test</th>
            <th>Environment</th>
            <th>Status</th>
            <th>Duration</th>
          </tr>
        </thead>
        <tbody>
{% for result in results %}
          <tr>
            <td>{{ result.name }}</td>
            <td>{{ result.environment }}</td>
            <td><span class="badge badge-{{ result.status }}">{{ result.status }}</span></td>
            <td>{{ "%.2f"|format(result.duration) }}s</td>
          </tr>
{% endfor %}
        </tbody>
      </table>
    </div>
  </div>
</body>
</html>
"""

_env = Environment(autoescape=True)


def render_html(report: dict[str, Any], *, title: str = "E2E Test Results") -> str:
    """Render the JSON report structure as a self-contained HTML page."""
    summary = report["summary"]
    template = _env.from_string(HTML_TEMPLATE)
    return template.render(
        title=title,
        summary=summary,
        results=report["results"],
        status_color="#22c55e" if summary["success"] else "#ef4444",
    )
