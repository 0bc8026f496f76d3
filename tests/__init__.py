"""
ocigen Test Suite
=================

Unit tests for the docker-inspect to OCI bundle translation.

Test Categories:
    - test_basic.py: Import tests and package metadata
    - test_capabilities.py: Capability template + add/drop mapping
    - test_hooks.py: Hook parsing, resolution and compilation
    - test_snapshot.py: Parsing daemon inspect/info documents
    - test_process.py: config.json translation
    - test_runtime.py: runtime.json translation (namespaces, resources)
    - test_bundle.py: End-to-end generation and writing
    - test_daemon.py: docker CLI access
    - test_cli.py: Command line interface

Running Tests:
    pytest tests/ -v

Note:
    No test needs a Docker daemon; daemon calls and filesystem lookups are
    replaced with fakes.
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
