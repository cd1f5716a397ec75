"""HTML report generator: a self-contained HTML page for one test run."""

from __future__ import annotations

import base64
import html
import json
import logging
from pathlib import Path

from steprunner.models.report import ActionRecord, ReportData

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")


def format_duration(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{ms / 60000:.1f}m"


def _embed_image(path: Path) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    try:
        if not path.is_file() or path.stat().st_size == 0:
            return ""
        data = base64.b64encode(path.read_bytes()).decode()
    except OSError as e:
        logger.warning("Could not read screenshot %s: %s", path, e)
        return ""
    mime = "image/png" if path.suffix.lower() == ".png" else "image/jpeg"
    return f"data:{mime};base64,{data}"


def find_screenshot_file(screenshot: str, screenshots_dir: Path | None) -> Path | None:
    """Locate the image an action refers to.

    Tries the recorded path, then the same file name in ``screenshots_dir``,
    then any image there whose name contains the recorded file's stem (the
    provider may have changed the extension or added a suffix).
    """
    recorded = Path(screenshot)
    if recorded.is_file():
        return recorded
    if screenshots_dir is None or not screenshots_dir.is_dir():
        logger.warning("Screenshot file not found: %s", recorded)
        return None

    candidate = screenshots_dir / recorded.name
    if candidate.is_file():
        return candidate

    stem = recorded.stem.lower()
    similar = sorted(
        p for p in screenshots_dir.iterdir()
        if p.suffix.lower() in IMAGE_SUFFIXES and stem in p.name.lower()
    )
    if similar:
        logger.debug("Using %s for missing screenshot %s", similar[0].name, recorded.name)
        return similar[0]

    logger.warning("Screenshot file not found: %s", recorded)
    return None


def _format_params(params: dict) -> str:
    if not params:
        return "<em>None</em>"
    rows = []
    for key, value in params.items():
        shown = value if isinstance(value, str) else json.dumps(value, default=str)
        rows.append(f"<div><strong>{html.escape(str(key))}:</strong> <code>{html.escape(shown)}</code></div>")
    return "".join(rows)


def _build_action_item(idx: int, action: ActionRecord, screenshots_dir: Path | None) -> str:
    status = action.status.value

    details = ""
    if action.description:
        details += f'<div class="action-desc">{html.escape(action.description)}</div>'
    if action.error:
        failure = f" ({action.failure_kind.value.replace('_', ' ')})" if action.failure_kind else ""
        details += f'<div class="error-box"><strong>Error{failure}:</strong> <pre>{html.escape(action.error)}</pre></div>'
    details += f'''
        <div class="detail-section">
          <div class="detail-label">Parameters</div>
          <div class="detail-content">{_format_params(action.params)}</div>
        </div>'''

    if action.screenshot:
        found = find_screenshot_file(action.screenshot, screenshots_dir)
        data_uri = _embed_image(found) if found else ""
        if data_uri:
            label = html.escape(found.name)
            details += f'''
        <div class="detail-section">
          <div class="detail-label">Screenshot</div>
          <img class="screenshot-img" src="{data_uri}" alt="{label}" loading="lazy" onclick="openModal(this)"/>
          <div class="screenshot-label">{label}</div>
        </div>'''

    return f'''
    <div class="action-item {status}" data-status="{status}">
      <div class="action-header" onclick="this.parentElement.classList.toggle('expanded')">
        <div class="action-title">
          <span class="action-number">{idx}</span>
          <span class="action-tool">{html.escape(action.tool_name)}</span>
          {'<span class="badge assertion">assertion</span>' if action.assertion else ''}
        </div>
        <div class="action-status">
          <span class="badge {status}">{status}</span>
          <span class="duration">{action.duration_ms}ms</span>
          <span class="expand-arrow">&#9660;</span>
        </div>
      </div>
      <div class="action-details">{details}
      </div>
    </div>'''


def generate_html_report(
    data: ReportData,
    output_path: Path,
    screenshots_dir: Path | str | None = None,
) -> None:
    """Generate a self-contained HTML report with an action timeline."""
    shots_dir = Path(screenshots_dir) if screenshots_dir else None
    rate = round(data.success_rate * 100, 1)
    result = data.test_result.value
    result_class = "pass" if data.passed else "fail"

    items = [
        _build_action_item(i, action, shots_dir)
        for i, action in enumerate(data.actions, start=1)
    ]
    embedded = sum(1 for item in items if "screenshot-img" in item)
    logger.debug("Actions with screenshots: %d/%d", embedded, len(items))

    partial = ""
    if not data.completed:
        partial = '<div class="partial-banner">Run was interrupted; this report covers the actions executed before the interruption.</div>'

    source = ""
    if data.source_text:
        source = f'<details class="source"><summary>Test definition</summary><pre>{html.escape(data.source_text)}</pre></details>'

    report_html = f'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Test Report &mdash; {html.escape(data.test_name)}</title>
<style>
  :root {{ --pass: #22c55e; --fail: #ef4444; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; --accent: #6366f1; }}
  * {{ margin: 0; padding: 0; box-sizing: border-box; }}
  body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }}
  .container {{ max-width: 1200px; margin: 0 auto; }}
  h1 {{ font-size: 1.8rem; margin-bottom: 0.3rem; }}
  h2 {{ font-size: 1.1rem; }}
  .meta {{ color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }}
  .summary {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(140px, 1fr)); gap: 0.8rem; margin-bottom: 1.5rem; }}
  .stat {{ background: var(--card); border-radius: 8px; padding: 1rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); text-align: center; }}
  .stat .value {{ font-size: 1.8rem; font-weight: 700; }}
  .stat .label {{ font-size: 0.8rem; color: var(--muted); }}
  .stat.pass .value {{ color: var(--pass); }}
  .stat.fail .value {{ color: var(--fail); }}
  .progress {{ display: flex; height: 28px; border-radius: 6px; overflow: hidden; background: var(--border); margin-bottom: 1.5rem; font-size: 0.8rem; color: white; }}
  .progress div {{ display: flex; align-items: center; justify-content: center; white-space: nowrap; }}
  .progress .passed {{ background: var(--pass); }}
  .progress .failed {{ background: var(--fail); }}
  .partial-banner {{ background: #fefce8; border: 1px solid #fde68a; color: #92400e; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 1rem; font-size: 0.88rem; }}
  .source {{ background: var(--card); border-radius: 8px; padding: 0.8rem 1rem; margin-bottom: 1.5rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); }}
  .source pre {{ margin-top: 0.5rem; font-size: 0.82rem; white-space: pre-wrap; }}
  .timeline-header {{ display: flex; justify-content: space-between; align-items: center; margin-bottom: 0.8rem; flex-wrap: wrap; gap: 0.5rem; }}
  .badge {{ display: inline-block; padding: 0.15rem 0.55rem; border-radius: 9999px; font-size: 0.7rem; font-weight: 600; text-transform: uppercase; white-space: nowrap; }}
  .badge.passed {{ background: #dcfce7; color: #166534; }}
  .badge.failed {{ background: #fecaca; color: #991b1b; }}
  .badge.assertion {{ background: #e0e7ff; color: #3730a3; }}
  .action-item {{ background: var(--card); border-radius: 8px; margin-bottom: 0.6rem; box-shadow: 0 1px 3px rgba(0,0,0,0.08); overflow: hidden; }}
  .action-item.passed {{ border-left: 4px solid var(--pass); }}
  .action-item.failed {{ border-left: 4px solid var(--fail); }}
  .action-header {{ display: flex; justify-content: space-between; align-items: center; padding: 0.7rem 1rem; cursor: pointer; user-select: none; }}
  .action-header:hover {{ background: #f8fafc; }}
  .action-title, .action-status {{ display: flex; align-items: center; gap: 0.5rem; }}
  .action-number {{ width: 24px; height: 24px; border-radius: 50%; background: #f1f5f9; display: inline-flex; align-items: center; justify-content: center; font-size: 0.75rem; font-weight: 600; }}
  .action-tool {{ font-family: monospace; font-weight: 600; }}
  .duration {{ font-size: 0.78rem; color: var(--muted); }}
  .expand-arrow {{ color: var(--muted); font-size: 0.7rem; transition: transform 0.2s; }}
  .action-item.expanded .expand-arrow {{ transform: rotate(180deg); }}
  .action-details {{ display: none; padding: 0 1rem 1rem 1rem; font-size: 0.85rem; }}
  .action-item.expanded .action-details {{ display: block; }}
  .action-desc {{ color: var(--muted); margin-bottom: 0.6rem; }}
  .error-box {{ background: #fef2f2; border: 1px solid #fecaca; color: #991b1b; border-radius: 6px; padding: 0.6rem 0.8rem; margin-bottom: 0.8rem; }}
  .error-box pre {{ white-space: pre-wrap; font-size: 0.8rem; margin-top: 0.3rem; }}
  .detail-section {{ margin-bottom: 0.8rem; }}
  .detail-label {{ font-size: 0.8rem; color: var(--muted); text-transform: uppercase; letter-spacing: 0.05em; margin-bottom: 0.3rem; }}
  .detail-content code {{ background: #f1f5f9; padding: 0.1rem 0.3rem; border-radius: 3px; font-size: 0.8rem; word-break: break-all; }}
  .screenshot-img {{ max-width: 480px; width: 100%; border-radius: 6px; border: 1px solid var(--border); cursor: pointer; }}
  .modal {{ display: none; position: fixed; inset: 0; z-index: 1000; background: rgba(0,0,0,0.85); align-items: center; justify-content: center; flex-direction: column; }}
  .modal.open {{ display: flex; }}
  .modal img {{ max-width: 92%; max-height: 85%; object-fit: contain; border-radius: 6px; }}
  .modal-caption {{ color: #e2e8f0; margin-top: 0.6rem; font-size: 0.85rem; }}
  .modal-close {{ position: absolute; top: 1rem; right: 1.5rem; color: white; font-size: 2rem; cursor: pointer; }}
  .screenshot-label {{ font-size: 0.75rem; color: var(--muted); margin-top: 0.2rem; }}
  .filter-bar {{ display: flex; gap: 0.5rem; flex-wrap: wrap; }}
  .filter-btn {{ padding: 0.3rem 0.8rem; border-radius: 6px; border: 1px solid var(--border); background: var(--card); cursor: pointer; font-size: 0.82rem; }}
  .filter-btn.active {{ background: var(--accent); color: white; border-color: var(--accent); }}
  .footer {{ margin-top: 2rem; text-align: center; color: var(--muted); font-size: 0.8rem; }}
</style>
</head>
<body>
<div class="container">
  <h1>{html.escape(data.test_name)}</h1>
  <p class="meta">Started {data.start_time.strftime("%Y-%m-%d %H:%M:%S")} &middot; {data.planned_steps} planned / {data.expected_steps} defined steps</p>

  {partial}

  <div class="summary">
    <div class="stat {result_class}"><div class="value">{result.upper()}</div><div class="label">Test Result</div></div>
    <div class="stat"><div class="value">{data.total_actions}</div><div class="label">Total Actions</div></div>
    <div class="stat pass"><div class="value">{data.passed_actions}</div><div class="label">Passed</div></div>
    <div class="stat fail"><div class="value">{data.failed_actions}</div><div class="label">Failed</div></div>
    <div class="stat"><div class="value">{rate}%</div><div class="label">Success Rate</div></div>
    <div class="stat"><div class="value">{format_duration(data.duration_ms)}</div><div class="label">Duration</div></div>
  </div>

  <div class="progress">
    <div class="passed" style="width: {rate}%">{data.passed_actions} Passed</div>
    <div class="failed" style="width: {round(100 - rate, 1) if data.total_actions else 0}%">{data.failed_actions} Failed</div>
  </div>

  {source}

  <div class="timeline-header">
    <h2>Action Timeline</h2>
    <div class="filter-bar">
      <button class="filter-btn active" onclick="filterActions('all')">All</button>
      <button class="filter-btn" onclick="filterActions('passed')">Passed</button>
      <button class="filter-btn" onclick="filterActions('failed')">Failed</button>
      <button class="filter-btn" onclick="expandAll()">Expand All</button>
      <button class="filter-btn" onclick="collapseAll()">Collapse All</button>
    </div>
  </div>

  <div id="action-list">
    {"".join(items)}
  </div>

  <div class="footer">
    Start: {data.start_time.strftime("%H:%M:%S")} | End: {data.end_time.strftime("%H:%M:%S")} | Duration: {data.duration_ms / 1000:.2f}s
  </div>

  <div id="screenshot-modal" class="modal" onclick="closeModal()">
    <span class="modal-close" onclick="closeModal()">&times;</span>
    <img id="modal-img" alt="" onclick="event.stopPropagation()"/>
    <div id="modal-caption" class="modal-caption"></div>
  </div>
</div>

<script>
function filterActions(status) {{
  document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
  event.target.classList.add('active');
  document.querySelectorAll('.action-item').forEach(item => {{
    item.style.display = status === 'all' || item.dataset.status === status ? '' : 'none';
  }});
}}
function expandAll() {{
  document.querySelectorAll('.action-item').forEach(i => i.classList.add('expanded'));
}}
function collapseAll() {{
  document.querySelectorAll('.action-item').forEach(i => i.classList.remove('expanded'));
}}
function openModal(img) {{
  document.getElementById('modal-img').src = img.src;
  document.getElementById('modal-caption').textContent = img.alt;
  document.getElementById('screenshot-modal').classList.add('open');
}}
function closeModal() {{
  document.getElementById('screenshot-modal').classList.remove('open');
}}
document.addEventListener('keydown', e => {{
  if (e.key === 'Escape') closeModal();
}});
</script>
</body>
</html>'''

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_html)
