r"""
Command-line interface for micro-bench.

    micro-bench run benches.py -b sort
    micro-bench serve benches.py --rpc :9998
"""

from micro_bench.cli.main import app, main

__all__ = [
    "app",
    "main",
]
