"""
Shared fixtures for hexcheck tests.
"""

import io
import json
from typing import Dict, List, Tuple, Union

import httpx
import pytest
from rich.console import Console

from hexcheck.error_handling import setup_error_handling
from hexcheck.notifications import Notifier

MIX_EXS_LINES = [
    "defmodule MyApp.MixProject do",
    "  use Mix.Project",
    "",
    "  def project do",
    "    [",
    "      app: :my_app,",
    '      version: "0.1.0",',
    "      deps: deps()",
    "    ]",
    "  end",
    "",
    "  defp deps do",
    "    [",
    '      {:phoenix, "~> 1.7.0"},',
    '      {:plug_cowboy, "2.6.1"},',
    '      {:jason, "1.4.0"},',
    '      {:ecto_sql, "~> 3.10"},',
    '      {:telemetry, "1.2.1", only: :dev}',
    "    ]",
    "  end",
    "end",
]

# Registry answers keyed by package name: (status, body)
RegistryAnswer = Tuple[int, Union[str, bytes]]


def releases_body(*versions: str) -> str:
    return json.dumps({"releases": [{"version": v} for v in versions]})


DEFAULT_ANSWERS: Dict[str, RegistryAnswer] = {
    "phoenix": (200, releases_body("1.7.10", "1.7.0", "1.6.16")),
    "plug_cowboy": (200, releases_body("2.6.1", "2.6.0")),
    "jason": (200, releases_body("1.4.0", "1.4.4", "1.3.0")),
    "ecto_sql": (500, "internal error"),
    "telemetry": (200, releases_body()),
}


class RecordingTransport(httpx.MockTransport):
    """MockTransport that answers by package name and keeps the requests."""

    def __init__(self, answers: Dict[str, RegistryAnswer]):
        self.answers = answers
        self.requests: List[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        package = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        status, body = self.answers.get(package, (404, ""))
        content = body.encode("utf-8") if isinstance(body, str) else body
        return httpx.Response(status, content=content)


@pytest.fixture(autouse=True)
def fresh_error_handler():
    """Each test gets its own error handler and statistics."""
    return setup_error_handling()


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def sample_mix_exs(temp_dir):
    manifest = temp_dir / "mix.exs"
    manifest.write_text("\n".join(MIX_EXS_LINES) + "\n")
    return manifest


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120, color_system=None)


@pytest.fixture
def notifier(console):
    return Notifier(console=console)


@pytest.fixture
def make_transport():
    def factory(answers=None):
        return RecordingTransport(DEFAULT_ANSWERS if answers is None else answers)

    return factory


@pytest.fixture
def hex_transport(make_transport):
    return make_transport()
