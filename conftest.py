# ==============================================================================
# conftest.py  –  Shared pytest setup
#   • project root on sys.path (namespace package, no install needed)
#   • console-only logging during tests
# ==============================================================================

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("CHESSTAB_LOG_DIR", "")
