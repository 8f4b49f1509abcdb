"""Global pytest configuration.

We explicitly disable auto-loading of external pytest plugins to prevent
environment-provided plugins from interfering with test discovery and capture
in this repository's harness.
"""

import logging
import os
import warnings

os.environ.setdefault("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")
os.environ.setdefault("PYTHONWARNINGS", "default")
# Never pick up a real engine from the environment during tests.
os.environ.pop("NVCOMP_LIBRARY", None)

# Torch can log from atexit hooks after pytest has closed its capture streams.
for _logger_name in ["torch._dynamo", "torch._dynamo.utils"]:
    _logger = logging.getLogger(_logger_name)
    _logger.handlers.clear()
    _logger.addHandler(logging.NullHandler())
    _logger.propagate = False

warnings.filterwarnings(
    "ignore",
    message=".*CUDA initialization.*",
    category=UserWarning,
)

