"""hexcheck: annotate a mix.exs with the newest Hex releases of its dependencies."""

import logging

__version__ = "1.0.0"

logging.getLogger("hexcheck").addHandler(logging.NullHandler())
