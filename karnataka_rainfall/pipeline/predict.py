import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ..exceptions import NoDataError
from .features import encode_features
from .hierarchy import Hierarchy, HistoryRecord, history_key
from .preprocess import Level


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedHistory:
    records: Tuple[HistoryRecord, ...]
    level: Level
    key: str


def _finite_mean(values: Sequence[float]) -> float:
    finite = [v for v in values if math.isfinite(v)]
    if not finite:
        return math.nan
    return float(np.mean(finite))


def summarize_history(records: Sequence[HistoryRecord]) -> Tuple[float, float]:
    """
    Mean normal rainfall and mean deviation over the finite values of a
    node's history. A deviation column with no finite values averages to 0.
    """
    mean_normal = _finite_mean([r.normal_rainfall for r in records])
    mean_deviation = _finite_mean([r.deviation_percent for r in records])
    if math.isnan(mean_deviation):
        mean_deviation = 0.0
    return mean_normal, mean_deviation


def predict_for_node(
    model,
    records: Sequence[HistoryRecord],
    level: Level,
    target_year: int,
) -> float:
    """
    Predict annual rainfall (mm) for one node from its history.

    Ancestors are not consulted here; use ``resolve_history`` first.
    """
    if not records:
        raise NoDataError("No history rows to predict from.")

    mean_normal, mean_deviation = summarize_history(records)
    if math.isnan(mean_normal):
        raise NoDataError(
            "History has no usable normal rainfall figure.",
            context={"rows": len(records)},
        )

    x = encode_features(mean_normal, mean_deviation, target_year, level.value)
    value = float(np.ravel(model.predict(x.reshape(1, -1)))[0])
    return max(0.0, value)


def resolve_history(
    hierarchy: Hierarchy,
    district: str,
    taluk: Optional[str] = None,
    hobli: Optional[str] = None,
) -> ResolvedHistory:
    """
    Find the most specific non-empty history for a selected path, falling
    back Hobli -> Taluk -> District.
    """
    candidates = []
    if taluk and hobli:
        candidates.append((Level.HOBLI, history_key(Level.HOBLI, hobli, district, taluk)))
    if taluk:
        candidates.append((Level.TALUK, history_key(Level.TALUK, taluk, district)))
    candidates.append((Level.DISTRICT, history_key(Level.DISTRICT, district)))

    for level, key in candidates:
        records = hierarchy.history_for(key)
        if records:
            if key != candidates[0][1]:
                logger.info("No history for %s; using %s.", candidates[0][1], key)
            return ResolvedHistory(records=records, level=level, key=key)

    raise NoDataError(
        f"No rainfall history for {district!r} at any level.",
        context={"district": district, "taluk": taluk, "hobli": hobli},
    )
