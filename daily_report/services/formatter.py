"""HTML report formatter."""

import html
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

from daily_report.errors import ReportError
from daily_report.schemas.report import ReportDocument
from daily_report.schemas.workflow import WorkflowResult

logger = logging.getLogger(__name__)

# Output keys holding the human-readable report, in priority order
EXTRACTION_RULES: List[Tuple[str, str]] = [
    ("text", "narrative text"),
    ("report", "report body"),
    ("content", "generic content"),
]

STYLE = """
    body {
      font-family: Arial, sans-serif;
      line-height: 1.6;
      color: #333;
      max-width: 800px;
      margin: 0 auto;
      padding: 20px;
    }
    .header {
      background-color: #f4f4f4;
      padding: 20px;
      border-radius: 5px;
      margin-bottom: 20px;
    }
    .content {
      background-color: #ffffff;
      padding: 20px;
      border: 1px solid #ddd;
      border-radius: 5px;
    }
    h1 {
      color: #2c3e50;
    }
    pre {
      background-color: #f5f5f5;
      padding: 10px;
      border-radius: 3px;
      overflow-x: auto;
    }
    .footer {
      margin-top: 30px;
      padding-top: 20px;
      border-top: 1px solid #eee;
      font-size: 12px;
      color: #777;
    }
    .error {
      color: #d32f2f;
    }
"""


def format_date(value: datetime) -> str:
    """Short date used in titles and subjects (dd.mm.yyyy)."""
    return value.strftime("%d.%m.%Y")


def extract_content(outputs: Any) -> str:
    """
    Pick the report body out of workflow outputs.

    Rules in EXTRACTION_RULES are tried in order and the first non-empty
    match wins. A mapping with no match is serialized into a <pre> block.

    Args:
        outputs: Workflow outputs (normally a mapping)

    Returns:
        HTML fragment
    """
    if isinstance(outputs, dict):
        for key, label in EXTRACTION_RULES:
            value = outputs.get(key)
            if value not in (None, ""):
                logger.debug(f"Using '{key}' output as {label}")
                return value if isinstance(value, str) else str(value)

        serialized = json.dumps(outputs, indent=2, ensure_ascii=False)
        return "<pre>" + html.escape(serialized, quote=False) + "</pre>"

    if isinstance(outputs, str):
        return outputs

    return str(outputs)


class ReportFormatter:
    """Render workflow results and failures into HTML documents."""

    def __init__(
        self,
        title: str = "Daily Report",
        company_name: str = "Your Company",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.title = title
        self.company_name = company_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def format(self, result: WorkflowResult, now: Optional[datetime] = None) -> ReportDocument:
        """
        Render a successful workflow result.

        Args:
            result: Outputs of a succeeded run
            now: Generation time (defaults to the formatter clock)

        Returns:
            ReportDocument
        """
        now = now or self.clock()
        title = f"{self.title} - {format_date(now)}"
        content = extract_content(result.outputs)

        parts = [self._head(title)]
        parts.append(
            f"""  <div class="header">
    <h1>{html.escape(title)}</h1>
  </div>
  <div class="content">
{content}
  </div>
"""
        )

        # Footer
        parts.append('  <div class="footer">\n')
        parts.append("    <p>This report was generated automatically.</p>\n")
        metrics = self._metrics(result)
        if metrics:
            parts.append(f"    <p>{metrics}</p>\n")
        parts.append(f"    <p>&copy; {now.year} {html.escape(self.company_name)}</p>\n")
        parts.append("  </div>\n</body>\n</html>\n")

        return ReportDocument(title=title, html="".join(parts), generated_at=now)

    def format_error(self, error: BaseException, now: Optional[datetime] = None) -> ReportDocument:
        """Render an error notification for a failed pipeline run."""
        now = now or self.clock()
        title = f"Error: {self.title} could not be generated"

        details = "N/A"
        if isinstance(error, ReportError) and error.details is not None:
            details = error.details if isinstance(error.details, str) else json.dumps(
                error.details, ensure_ascii=False, default=str
            )

        body = f"""{self._head(title)}  <h2 class="error">{html.escape(title)}</h2>
  <p><strong>Date:</strong> {now.strftime("%d.%m.%Y %H:%M:%S")}</p>
  <p><strong>Error message:</strong> {html.escape(str(error), quote=False)}</p>
  <p><strong>Details:</strong> {html.escape(details, quote=False)}</p>
  <p>Please contact your system administrator.</p>
</body>
</html>
"""
        return ReportDocument(title=title, html=body, generated_at=now, is_error=True)

    @staticmethod
    def _head(title: str) -> str:
        return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{html.escape(title)}</title>
  <style>{STYLE}  </style>
</head>
<body>
"""

    @staticmethod
    def _metrics(result: WorkflowResult) -> str:
        items = []
        if result.elapsed_time is not None:
            items.append(f"Elapsed time: {result.elapsed_time:.2f}s")
        if result.total_tokens is not None:
            items.append(f"Total tokens: {result.total_tokens}")
        return " | ".join(items)
