"""Pytest configuration.

IMPORTANT: Environment variables must be set BEFORE importing filemeta.
The global settings singleton is created at import time, so the env var
setup happens at module level and package imports are deferred to inside
fixtures and test modules.
"""

import os

# Readable logs in test output, and deterministic loader defaults regardless
# of the developer's shell or .env file
os.environ.setdefault("FILEMETA_LOG_LEVEL", "debug")
os.environ.setdefault("FILEMETA_LOG_FORMAT", "text")
os.environ["FILEMETA_PRELOAD_BLOCK_LOCATIONS"] = "true"
os.environ.pop("FILEMETA_PRELOAD_BLOCK_LOCATIONS_OVERRIDES", None)
os.environ["FILEMETA_ICEBERG_DATAFILES_IN_TABLE_LOCATION_ONLY"] = "true"
