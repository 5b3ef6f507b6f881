"""
Shared pytest fixtures for the consolidation test suite.
"""

import numpy as np
import pandas as pd
import pytest

from diffconsol.domain.models import ContrastTable, WindowSet


@pytest.fixture
def random_seed():
    """Consistent random seed for reproducible tests."""
    return 42


def make_contrast(name, features, logfc, pvalues, **extra):
    table = pd.DataFrame(
        {"logFC": logfc, "PValue": pvalues, **extra},
        index=pd.Index(features, name="feature_id"),
    )
    return ContrastTable(name=name, table=table)


@pytest.fixture
def contrast_pair():
    """Two knockdown-vs-control contrasts over the same five genes."""
    features = ["g1", "g2", "g3", "g4", "g5"]
    kd1 = make_contrast(
        "kd1",
        features,
        [2.0, -1.5, 1.0, 0.5, -0.2],
        [0.001, 0.002, 0.01, 0.3, 0.8],
        symbol=["A", "B", "C", "D", "E"],
        FDR=[0.005, 0.005, 0.017, 0.375, 0.8],
    )
    kd2 = make_contrast(
        "kd2",
        features,
        [1.5, -2.0, -1.0, 0.7, -0.1],
        [0.004, 0.0005, 0.02, 0.2, 0.9],
    )
    return kd1, kd2


@pytest.fixture
def random_contrasts(random_seed):
    """Three random contrasts over 200 features."""
    rng = np.random.default_rng(random_seed)
    features = [f"gene{i}" for i in range(200)]
    return [
        make_contrast(
            f"c{k}",
            features,
            rng.normal(0, 1, size=200),
            rng.uniform(0, 1, size=200),
        )
        for k in range(3)
    ]


@pytest.fixture
def window_sets():
    """Two window-width runs over a small stretch of chr1 and chr2."""
    narrow = pd.DataFrame(
        {
            "chrom": ["chr1", "chr1", "chr1", "chr1", "chr2"],
            "start": [1001, 1151, 1301, 5001, 501],
            "end": [1150, 1300, 1450, 5150, 650],
            "logFC": [2.5, 2.2, 1.8, -0.3, -2.0],
            "PValue": [1e-5, 1e-4, 1e-3, 0.6, 1e-4],
        }
    )
    wide = pd.DataFrame(
        {
            "chrom": ["chr1", "chr1", "chr2"],
            "start": [1001, 5001, 401],
            "end": [1500, 5500, 900],
            "logFC": [2.0, 0.1, -1.5],
            "PValue": [1e-6, 0.9, 1e-3],
        }
    )
    return [WindowSet(name="w150", table=narrow), WindowSet(name="w500", table=wide)]
