"""Print the stored hydration record for the configured key.

Usage:
    python scripts/show_state.py [key]
"""

import json
import sys

from repo_state import StateRepo
from settings import settings

key = sys.argv[1] if len(sys.argv) > 1 else settings.state_key
raw = StateRepo().read(key)
if raw is None:
    print(f"No record stored under '{key}'")
    sys.exit(1)

try:
    print(json.dumps(json.loads(raw), indent=2))
except ValueError:
    print(f"Record under '{key}' is not valid JSON:")
    print(raw)
