"""
Rainfall prediction service.

Runs the startup sequence (load every year's table, normalise, build the
hierarchy, train or load the model) once, then answers hierarchy lookups and
predictions against the resulting read-only state.

Usage:
    service = RainfallService.from_config(Config.from_env())
    service.load()
    result = service.predict("Mysuru", "Nanjangud", "Hullahalli")
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .advisory.advisory_engine import (
    CropRecommendation,
    build_advisory_report,
    get_crop_recommendations,
    rainfall_band,
)
from .advisory.seasonal import MonthlyRainfall, distribute_annual_to_months
from .config import Config
from .exceptions import NotReadyError
from .pipeline.hierarchy import Hierarchy, build_hierarchy
from .pipeline.predict import predict_for_node, resolve_history
from .pipeline.preprocess import Observation, load_rainfall_tables
from .pipeline.train import ModelStore, train_or_load_model, train_or_load_model_async


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionResult:
    location: str
    annual_rainfall_mm: int
    monthly: List[MonthlyRainfall]
    recommendations: List[CropRecommendation]
    band: str
    # Level whose history fed the model; may be an ancestor of the selection.
    data_level: str
    history_rows: int
    target_year: int

    def to_dict(self) -> Dict:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _location_label(district: str, taluk: Optional[str], hobli: Optional[str]) -> str:
    return " > ".join(part for part in (district, taluk, hobli) if part)


class RainfallService:

    def __init__(self, data_dir: Path, years: Iterable[int], store: ModelStore):
        self.data_dir = Path(data_dir)
        self.years = list(years)
        self.store = store
        self._hierarchy: Optional[Hierarchy] = None
        self._model = None
        self._ready = False

    @classmethod
    def from_config(cls, config: Config) -> "RainfallService":
        return cls(
            data_dir=config.DATA_DIR,
            years=config.years(),
            store=ModelStore(config.MODEL_PATH),
        )

    # ── Startup ───────────────────────────────────────────────
    def load(self) -> None:
        """Blocking startup: read the tables, build the hierarchy, get a model."""
        self.initialize(load_rainfall_tables(self.data_dir, self.years))

    async def start(self) -> None:
        """Startup for use inside an event loop; training yields between passes."""
        observations = load_rainfall_tables(self.data_dir, self.years)
        hierarchy = build_hierarchy(observations)
        model = await train_or_load_model_async(observations, self.store)
        self._publish(hierarchy, model)

    def initialize(self, observations: List[Observation]) -> None:
        hierarchy = build_hierarchy(observations)
        model = train_or_load_model(observations, self.store)
        self._publish(hierarchy, model)

    def _publish(self, hierarchy: Hierarchy, model) -> None:
        self._hierarchy = hierarchy
        self._model = model
        self._ready = True
        if model is None:
            logger.warning("Startup finished without a model; predictions are unavailable.")
        else:
            logger.info(
                "Rainfall service ready: %d districts.", len(hierarchy.districts)
            )

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def has_model(self) -> bool:
        return self._model is not None

    def _require_hierarchy(self) -> Hierarchy:
        if not self._ready or self._hierarchy is None:
            raise NotReadyError("Rainfall data has not finished loading.")
        return self._hierarchy

    # ── Hierarchy lookups ─────────────────────────────────────
    def get_hierarchy(self) -> List[str]:
        return self._require_hierarchy().district_names()

    def taluks(self, district: str) -> List[str]:
        return self._require_hierarchy().taluk_names(district)

    def hoblis(self, district: str, taluk: str) -> List[str]:
        return self._require_hierarchy().hobli_names(district, taluk)

    # ── Prediction ────────────────────────────────────────────
    def predict(
        self,
        district: str,
        taluk: Optional[str] = None,
        hobli: Optional[str] = None,
        target_year: Optional[int] = None,
    ) -> PredictionResult:
        hierarchy = self._require_hierarchy()
        if not taluk:
            # A hobli is only addressable through its taluk.
            hobli = None
        if self._model is None:
            raise NotReadyError("No trained rainfall model is available.")
        if target_year is None:
            target_year = datetime.now().year

        resolved = resolve_history(hierarchy, district, taluk, hobli)
        annual = predict_for_node(self._model, resolved.records, resolved.level, target_year)
        annual_mm = _round_half_up(annual)

        return PredictionResult(
            location=_location_label(district, taluk, hobli),
            annual_rainfall_mm=annual_mm,
            monthly=distribute_annual_to_months(annual),
            recommendations=get_crop_recommendations(annual_mm),
            band=rainfall_band(annual_mm),
            data_level=resolved.level.label,
            history_rows=len(resolved.records),
            target_year=int(target_year),
        )

    def advisory(
        self,
        district: str,
        taluk: Optional[str] = None,
        hobli: Optional[str] = None,
        target_year: Optional[int] = None,
    ) -> str:
        result = self.predict(district, taluk, hobli, target_year)
        return build_advisory_report(
            location=result.location,
            annual_rainfall=result.annual_rainfall_mm,
            monthly=result.monthly,
            recommendations=result.recommendations,
            data_level=result.data_level,
            target_year=result.target_year,
        )

    def model_info(self) -> Dict:
        meta = self.store.load_metadata()
        return {
            "ready": self._ready,
            "has_model": self.has_model,
            "model_name": meta.get("model_name"),
            "version": meta.get("version"),
            "n_training_rows": meta.get("n_training_rows"),
            "training_mse": meta.get("training_mse"),
            "feature_names": meta.get("feature_names"),
            "hyperparameters": meta.get("hyperparameters"),
        }
