"""
Mix manifest parsing.

Dependencies are recognized one line at a time by the ``{:name, "version"}``
tuple shape used in the ``deps`` list of a ``mix.exs``. A declaration split
across several lines is not recognized.
"""

import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .dependency import Dependency
from .error_handling import ErrorCategory, get_error_handler, log_parsing_error
from .notifications import NotificationLevel, Notifier

DEPENDENCY_PATTERN = re.compile(r'\{:\s*([A-Za-z0-9_]+)\s*,\s*"([^"]+)"')


def parse_dependency_line(
    line: str, line_num: int, source_file: str = ""
) -> Optional[Dependency]:
    """
    Match one manifest line.

    Args:
        line: Raw line text
        line_num: 1-based line number
        source_file: Path recorded on the dependency

    Returns:
        Optional[Dependency]: The declared dependency, or None for other lines
    """
    match = DEPENDENCY_PATTERN.search(line)
    if not match:
        return None
    return Dependency(
        name=match.group(1),
        version=match.group(2),
        line=line_num - 1,
        source_file=source_file,
    )


def _collect(
    lines: Iterable[str],
    source_file: str,
    line_processor: Callable[[str, int, str], Optional[Dependency]],
) -> List[Dependency]:
    dependencies = []
    for line_num, line in enumerate(lines, 1):
        try:
            dependency = line_processor(line, line_num, source_file)
        except (ValueError, TypeError) as e:
            log_parsing_error(
                f"Could not process line: {line.strip()[:100]}",
                module="parsers",
                function="_collect",
                line_number=line_num,
                file_path=source_file or None,
                exception=e,
            )
            continue
        if dependency is not None:
            dependencies.append(dependency)
    return dependencies


def parse_manifest_text(text: str, source_file: str = "") -> List[Dependency]:
    """Parse manifest content that is already in memory."""
    return _collect(text.splitlines(), source_file, parse_dependency_line)


def parse_mix_exs(
    file_path: str, notifier: Optional[Notifier] = None
) -> List[Dependency]:
    """
    Parse a mix.exs file into its declared dependencies, in line order.

    A file that cannot be opened is reported through ``notifier`` and
    yields an empty list; this never raises.
    """
    try:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            return _collect(f, str(file_path), parse_dependency_line)
    except OSError as e:
        get_error_handler().warning(
            ErrorCategory.FILESYSTEM,
            "Manifest could not be opened",
            "parsers",
            "parse_mix_exs",
            exception=e,
            details={"file_path": Path(file_path).name},
        )
        if notifier is not None:
            notifier.notify(f"mix.exs not found: {file_path}", NotificationLevel.WARN)
        return []
