#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
import sys
from pathlib import Path

# Allow running ffbuild.py from a checkout without installing it
sys.path.insert(1, str(Path(__file__).resolve().parent))

import pyffbuild.__main__  # noqa: E402

pyffbuild.__main__.main()
