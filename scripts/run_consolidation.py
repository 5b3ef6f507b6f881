#!/usr/bin/env python3
"""
Consolidation Pipeline - command line wrapper

Usage:
    python scripts/run_consolidation.py iut -o results -n kd_rnaseq \
        -c kd1_vs_ctrl.tsv,kd2_vs_ctrl.tsv -l kd1,kd2
    python scripts/run_consolidation.py regions -o results -n chart \
        -w w150.tsv,w500.tsv,w1000.tsv --method empirical --direction up
    python scripts/run_consolidation.py integrate -o results -n integration \
        -c results/kd_rnaseq_iut.tsv,results/tmt_iut.tsv -l rnaseq,tmt --match_column symbol
"""

import sys
from pathlib import Path

# Add the repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from diffconsol.main import main


if __name__ == "__main__":
    sys.exit(main())
