import os
import sys

# Make the project root and the shared test helpers importable
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(TESTS_DIR))
sys.path.insert(0, TESTS_DIR)

from support import HOLDER  # noqa: E402

# The HTTP module wires a default service at import time
os.environ.setdefault("TOKEN_STORE_PATH", ":memory:")
os.environ.setdefault("TIMELOCK_DEV_BALANCES", f"{HOLDER}:1000")
