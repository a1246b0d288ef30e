"""nettap - forward a browser tab's API traffic to a collector.

Attaches to Chrome tabs over the DevTools Protocol, pairs each XHR/Fetch
request with its response, resolves both bodies and posts the finished record
to a remote collector exactly once.

PUBLIC API:
  - TabMonitor: Watch tabs and forward their traffic
  - EventCorrelator: Per-tab request/response correlation
  - NetworkEventRecord: Canonical record sent to the collector
  - load_config: Load nettap.toml
  - main: Entry point function for CLI
  - __version__: Package version string
"""

from importlib.metadata import PackageNotFoundError, version

from nettap.config import load_config
from nettap.correlator import EventCorrelator
from nettap.models import NetworkEventRecord
from nettap.monitor import TabMonitor

try:
    __version__ = version("nettap")
except PackageNotFoundError:
    __version__ = "0.0.0"


def main():
    """Entry point for nettap."""
    from nettap.cli import main as cli_main

    return cli_main()


__all__ = ["TabMonitor", "EventCorrelator", "NetworkEventRecord", "load_config", "main", "__version__"]
