from __future__ import annotations

from html import escape
from typing import Iterable

_STYLE = """
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{
      font-family: system-ui, -apple-system, sans-serif;
      background: #0a0a0a;
      color: #fff;
      padding: 2rem;
      min-height: 100vh;
    }}
    .container {{ max-width: 800px; margin: 0 auto; }}
    h1 {{ margin-bottom: 1rem; }}
    .info {{
      background: #1a1a1a;
      padding: 1.5rem;
      border-radius: 8px;
      margin-top: 1rem;
    }}
    ul {{ list-style: none; margin-top: 1rem; }}
    li {{ padding: 0.4rem 0; border-bottom: 1px solid #2a2a2a; font-family: ui-monospace, monospace; }}
    .muted {{ color: #9a9a9a; }}
"""

_HEAD = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta http-equiv="Cache-Control" content="no-store, no-cache, must-revalidate">
  <meta http-equiv="Pragma" content="no-cache">
  <meta http-equiv="Expires" content="0">
  {refresh}
  <title>{title}</title>
  <style>{style}</style>
</head>
"""


def _head(title: str, *, refresh_s: int | None = None) -> str:
    refresh = f'<meta http-equiv="refresh" content="{refresh_s}">' if refresh_s else ""
    return _HEAD.format(refresh=refresh, title=escape(title), style=_STYLE.format())


def render_summary_page(project_id: str, paths: Iterable[str]) -> str:
    items = "".join(f"<li>{escape(path)}</li>" for path in paths)
    return f"""{_head(f"Draft Preview - Project {project_id[:8]}", refresh_s=5)}<body>
  <div class="container">
    <h1>Draft Preview</h1>
    <p class="muted">The preview server is not answering yet. Generated files:</p>
    <div class="info">
      <ul>{items}</ul>
    </div>
  </div>
</body>
</html>
"""


def render_placeholder_page(project_id: str) -> str:
    return f"""{_head(f"Draft Preview - Project {project_id[:8]}", refresh_s=3)}<body>
  <div class="container">
    <h1>Building preview...</h1>
    <div class="info">
      <p class="muted">This page refreshes on its own once the draft is ready.</p>
    </div>
  </div>
</body>
</html>
"""
