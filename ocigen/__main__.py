#!/usr/bin/env python3
"""
ocigen entry point.
Allows running as: python3 -m ocigen <container>
"""

import sys

from ocigen.cli import main

if __name__ == "__main__":
    sys.exit(main())
