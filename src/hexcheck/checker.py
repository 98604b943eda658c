"""
Update-check orchestration.

A check run clears the buffer's previous annotations, locates and parses the
manifest, then looks up every dependency concurrently. Lookups finish in any
order; each one is handled on the event loop as it arrives, and an annotation
is drawn only if its buffer is still open at that moment.
"""

import asyncio
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx
from rich.console import Console

from .annotations import AnnotationLayer, AnnotationStyle
from .buffers import BufferResolver, ManifestBuffer
from .cli_config import HexcheckConfig
from .dependency import CheckResult
from .error_handling import ErrorCategory, get_error_handler
from .notifications import NotificationLevel, Notifier
from .parsers import parse_mix_exs
from .registry_clients import HexClient, get_registry_client
from .structured_logging import log_check_complete, log_check_start

ClientFactory = Callable[[], HexClient]


@dataclass
class CheckContext:
    """Everything a check run needs, scoped to one host session."""

    config: HexcheckConfig
    notifier: Notifier
    annotator: AnnotationLayer
    resolver: BufferResolver = field(default_factory=BufferResolver)
    transport: Optional[httpx.AsyncBaseTransport] = None

    def create_client(self) -> HexClient:
        return get_registry_client(
            self.config.network, self.notifier, transport=self.transport
        )


def create_context(
    config: Optional[HexcheckConfig] = None,
    console: Optional[Console] = None,
    quiet: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CheckContext:
    """Build a session context with default collaborators."""
    config = config or HexcheckConfig()
    return CheckContext(
        config=config,
        notifier=Notifier(console=console, quiet=quiet),
        annotator=AnnotationLayer(AnnotationStyle(config.display)),
        transport=transport,
    )


class UpdateChecker:
    """
    Checks a manifest buffer for outdated dependencies.

    Receives a buffer, draws annotations on it, and returns the per-dependency
    results so callers can report on them.
    """

    def __init__(
        self,
        context: CheckContext,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.context = context
        self.client_factory = client_factory or context.create_client

    async def check(
        self, buffer: ManifestBuffer, cwd: Optional[str] = None
    ) -> List[CheckResult]:
        """
        Run one check against ``buffer``.

        Args:
            buffer: Buffer to annotate
            cwd: Directory searched for a mix.exs when the buffer is not one

        Returns:
            List[CheckResult]: One result per parsed dependency, in
            completion order
        """
        notifier = self.context.notifier
        self.context.annotator.clear(buffer)

        manifest_path = self.context.resolver.resolve_manifest_path(
            buffer, cwd if cwd is not None else os.getcwd()
        )
        if not manifest_path:
            notifier.notify(
                "Could not locate mix.exs for this buffer", NotificationLevel.WARN
            )
            return []

        dependencies = parse_mix_exs(manifest_path, notifier)
        if not dependencies:
            notifier.notify(
                f"No dependencies found in {manifest_path}", NotificationLevel.INFO
            )
            return []

        run_id = f"check_{uuid.uuid4().hex[:12]}"
        start_time = time.time()
        log_check_start(run_id, manifest_path, len(dependencies))

        results: List[CheckResult] = []
        unresolved = 0
        async with self.client_factory() as client:
            tasks = [
                asyncio.ensure_future(client.check_dependency(dependency))
                for dependency in dependencies
            ]
            for finished in asyncio.as_completed(tasks):
                try:
                    result = await finished
                except Exception as e:
                    unresolved += 1
                    get_error_handler().error(
                        ErrorCategory.NETWORK,
                        f"Dependency check failed: {e}",
                        "checker",
                        "check",
                        exception=e,
                    )
                    continue

                if result.latest_version is None:
                    unresolved += 1
                results.append(result)
                self._apply_result(buffer, result)

        log_check_complete(
            run_id,
            manifest_path,
            int((time.time() - start_time) * 1000),
            updates_count=len([r for r in results if r.has_update]),
            unresolved_count=unresolved,
        )
        return results

    def _apply_result(self, buffer: ManifestBuffer, result: CheckResult) -> bool:
        if not result.has_update:
            return False
        # The buffer may have been closed while the lookup was in flight.
        if not buffer.is_valid():
            return False
        self.context.annotator.annotate_version(
            buffer, result.dependency.line, result.latest_version
        )
        return True


def run_check(
    context: CheckContext,
    buffer: ManifestBuffer,
    cwd: Optional[str] = None,
) -> List[CheckResult]:
    """Synchronous entry point for hosts without a running event loop."""
    return asyncio.run(UpdateChecker(context).check(buffer, cwd))


def outdated(results: List[CheckResult]) -> List[CheckResult]:
    """Results with a newer release available, in manifest line order."""
    return sorted(
        (result for result in results if result.has_update),
        key=lambda result: result.dependency.line,
    )
