"""
publish_bench — .NET publish-scenario benchmarking harness.

Publish a sample project through one publish scenario, launch the produced
app, capture its streams, and record a run receipt.
"""

__version__ = "0.1.0"
HARNESS_VERSION = "v0"
PACKAGE_NAME = "publish_bench"
SCHEMA_VERSION = "0.1"
