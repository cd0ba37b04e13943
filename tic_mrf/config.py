"""Shared configuration for the MRF generator.

Environment variables are read once at import time so the CLI, the storage
layer and the review session agree on the same defaults.
"""

import os

# Root directory for generated MRF documents and the manifest
MRF_DATA_DIR = os.getenv("MRF_DATA_DIR", "./data/mrf")

# Grouping methodology used when a session does not choose one
MRF_GROUPING_METHOD = os.getenv("MRF_GROUPING_METHOD", "mrf")

# Log level for the command-line entry point
MRF_LOG_LEVEL = os.getenv("MRF_LOG_LEVEL", "INFO").upper()
