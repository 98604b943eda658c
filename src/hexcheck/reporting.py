"""
Console output for check runs.

Renders the manifest buffer with its annotations drawn at the end of each
line, followed by a summary table, using the Rich library.
"""

import json
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .annotations import AnnotationLayer
from .buffers import ManifestBuffer
from .checker import outdated
from .dependency import CheckResult


class UpdateReporter:
    """Formats and displays update check results."""

    def __init__(self, annotator: AnnotationLayer, console: Optional[Console] = None):
        self.annotator = annotator
        self.console = console or Console()

    def render_buffer(self, buffer: ManifestBuffer) -> None:
        """Print the buffer lines, with annotations after the line end."""
        by_line = {}
        for annotation in self.annotator.annotations(buffer):
            by_line.setdefault(annotation.line, []).append(annotation.text)

        style = self.annotator.style.style
        width = len(str(len(buffer.lines)))
        for index, line in enumerate(buffer.lines):
            text = Text(f"{index + 1:>{width}} ", style="dim")
            text.append(line)
            for message in by_line.get(index, []):
                text.append("  ")
                text.append(message, style=style)
            self.console.print(text, overflow="ellipsis", no_wrap=True)

    def print_summary(self, results: List[CheckResult]) -> None:
        """Print a table of outdated dependencies."""
        updates = outdated(results)
        if not updates:
            self.console.print("✅ All dependencies are up to date.", style="green")
            return

        table = Table(
            title="📦 Updates available", box=box.ROUNDED, title_style="bold cyan"
        )
        table.add_column("Line", justify="right")
        table.add_column("Package", style="bold")
        table.add_column("Current")
        table.add_column("Latest", style="green")

        for result in updates:
            table.add_row(
                str(result.dependency.line + 1),
                result.dependency.name,
                result.dependency.version,
                result.latest_version,
            )

        self.console.print(table)

    def print_report(self, buffer: ManifestBuffer, results: List[CheckResult]) -> None:
        self.console.print()
        self.render_buffer(buffer)
        self.console.print()
        self.print_summary(results)

    def to_json(self, buffer: ManifestBuffer, results: List[CheckResult]) -> str:
        """Serialize the annotations drawn on ``buffer``."""
        annotated_lines = {a.line for a in self.annotator.annotations(buffer)}
        data = {
            "manifest": buffer.path,
            "checked": len(results),
            "updates": [
                {
                    "package": result.dependency.name,
                    "line": result.dependency.line,
                    "current": result.dependency.version,
                    "latest": result.latest_version,
                }
                for result in outdated(results)
                if result.dependency.line in annotated_lines
            ],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)
