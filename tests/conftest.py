import sys
from pathlib import Path
import os


# Ensure project src is on path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for p in (ROOT, SRC):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

# Keep test runs local and fast: no remote backend, no artificial latency
os.environ.setdefault("SCORING_BACKEND_URL", "")
os.environ.setdefault("SIMULATED_LATENCY_SECONDS", "0")
os.environ.setdefault("STAGE_INTERVAL_SECONDS", "0")
