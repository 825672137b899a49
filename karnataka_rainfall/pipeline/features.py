import math
from typing import Tuple

import numpy as np
import pandas as pd


# Year is scaled as (year - YEAR_EPOCH) / YEAR_SCALE for both training and
# inference; changing either invalidates any cached model.
YEAR_EPOCH = 2020
YEAR_SCALE = 5.0

FEATURE_NAMES = [
    "normal_rainfall",
    "deviation_percent",
    "year_scaled",
    "is_hobli",
    "is_taluk",
    "is_district",
]


def level_to_one_hot(level: object) -> Tuple[int, int, int]:
    """One-hot (hobli, taluk, district) flags; unknown codes give all zeros."""
    code = str(level if level is not None else "").strip().upper()
    return (int(code == "H"), int(code == "T"), int(code == "D"))


def encode_features(
    normal_rainfall: float,
    deviation_percent: float,
    year: int,
    level: object,
) -> np.ndarray:
    """
    Encode one observation as the 6-element model input.

    A NaN deviation is encoded as 0. A NaN normal is passed through, so
    callers must filter those rows out before training.
    """
    deviation = deviation_percent if math.isfinite(deviation_percent) else 0.0
    h, t, d = level_to_one_hot(level)
    return np.array(
        [
            float(normal_rainfall),
            float(deviation),
            (year - YEAR_EPOCH) / YEAR_SCALE,
            h,
            t,
            d,
        ],
        dtype=float,
    )


def encode_frame(df: pd.DataFrame) -> np.ndarray:
    """Vectorised ``encode_features`` over an observation frame."""
    if df.empty:
        return np.empty((0, len(FEATURE_NAMES)), dtype=float)
    codes = df["level"].astype(str).str.strip().str.upper()
    X = np.column_stack(
        [
            df["normal_rainfall"].astype(float).to_numpy(),
            df["deviation_percent"].astype(float).fillna(0.0).to_numpy(),
            (df["year"].astype(float).to_numpy() - YEAR_EPOCH) / YEAR_SCALE,
            (codes == "H").astype(int).to_numpy(),
            (codes == "T").astype(int).to_numpy(),
            (codes == "D").astype(int).to_numpy(),
        ]
    )
    return X.astype(float)
