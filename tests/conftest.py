import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def cbs():
    """Five customers in CBS layout (weeks)."""
    return pd.DataFrame({
        "cust": [1, 2, 3, 4, 5],
        "x": [0, 2, 5, 1, 12],
        "t_x": [0.0, 10.5, 30.0, 3.2, 38.0],
        "T_cal": [39.0, 39.0, 39.0, 20.0, 39.0],
        "litt": [0.0, 1.2, 5.9, 1.16, 14.7],
    })
