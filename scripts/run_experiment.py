"""
Run Experiment Script.

Usage:
    python scripts/run_experiment.py --items 500 --bidders 20
    python scripts/run_experiment.py --config conf/config.yaml auction.duration=120
"""

import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from auction.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
