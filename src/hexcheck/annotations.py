"""
End-of-line annotations on manifest buffers.

Annotations live in a named namespace on the buffer, so clearing hexcheck's
marks never disturbs anything else drawn on the same buffer.
"""

from dataclasses import dataclass
from typing import List, Optional

from rich.style import Style

from .buffers import ManifestBuffer
from .cli_config import DisplayConfig

NAMESPACE = "hexcheck_updates"


@dataclass(frozen=True)
class Annotation:
    """Text drawn after the end of a buffer line."""

    line: int
    text: str


class AnnotationStyle:
    """Rich style derived from the display settings."""

    def __init__(self, display: Optional[DisplayConfig] = None):
        self.display = display or DisplayConfig()

    @property
    def style(self) -> Style:
        return Style(
            color=self.display.highlight_color or None,
            italic=self.display.italic,
            bold=self.display.bold,
        )

    def format(self, version: str) -> str:
        return f"{self.display.message_prefix or ''}{version}"


class AnnotationLayer:
    """Draws and clears annotations in one namespace."""

    def __init__(self, style: Optional[AnnotationStyle] = None, namespace: str = NAMESPACE):
        self.style = style or AnnotationStyle()
        self.namespace = namespace

    def annotate(self, buffer: ManifestBuffer, line: int, text: str) -> Annotation:
        """Attach ``text`` to the end of ``line``."""
        if not buffer.is_valid():
            raise ValueError(f"Buffer {buffer.handle} is no longer valid")
        if line < 0:
            raise ValueError(f"Invalid line number: {line}")

        annotation = Annotation(line=line, text=text)
        buffer.namespaces.setdefault(self.namespace, []).append(annotation)
        return annotation

    def annotate_version(
        self, buffer: ManifestBuffer, line: int, version: str
    ) -> Annotation:
        """Attach the configured update message for ``version``."""
        return self.annotate(buffer, line, self.style.format(version))

    def clear(self, buffer: ManifestBuffer) -> None:
        buffer.namespaces.pop(self.namespace, None)

    def annotations(self, buffer: ManifestBuffer) -> List[Annotation]:
        """Current annotations, in line order."""
        return sorted(
            buffer.namespaces.get(self.namespace, []), key=lambda a: a.line
        )
