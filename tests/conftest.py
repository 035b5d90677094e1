# ABOUTME: Ensures local package imports resolve from the repository root during pytest runs.
# ABOUTME: Lets the suite import spanlens without an editable install in local and CI execution.

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
