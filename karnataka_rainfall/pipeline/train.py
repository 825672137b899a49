import argparse
import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import joblib
import numpy as np
from sklearn.metrics import mean_squared_error
from sklearn.neural_network import MLPRegressor

from ..exceptions import NoTrainingDataError
from .features import FEATURE_NAMES, YEAR_EPOCH, YEAR_SCALE, encode_frame
from .preprocess import Observation, observations_to_frame


logger = logging.getLogger(__name__)

# Fixed, deliberately small network; these are not tuned per dataset.
HIDDEN_LAYERS = (16, 8)
LEARNING_RATE = 0.03
BATCH_SIZE = 32
EPOCHS = 20
RANDOM_STATE = 42


def _get_version_stamp() -> str:
    return datetime.now(timezone.utc).strftime("v%Y%m%d%H%M%S")


class ModelStore:
    """
    File-backed cache for the trained model.

    ``load`` never raises: a missing or unreadable file is a cache miss.
    ``save`` writes to a temporary file in the same directory and then
    replaces the target, so readers never see a partially written model.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.metadata_path = self.path.with_name(f"{self.path.stem}_metadata.json")

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[MLPRegressor]:
        if not self.path.exists():
            logger.info("No cached model at %s; training from scratch.", self.path)
            return None
        try:
            model = joblib.load(self.path)
        except Exception as exc:
            logger.warning(
                "Cached model at %s could not be loaded (%s); treating as cache miss.",
                self.path,
                exc,
            )
            return None
        logger.info("Loaded cached model from %s", self.path)
        return model

    def load_metadata(self) -> Dict:
        if not self.metadata_path.exists():
            return {}
        try:
            return json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable model metadata at %s: %s", self.metadata_path, exc)
            return {}

    def save(self, model: MLPRegressor, metadata: Optional[Dict] = None) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            os.close(fd)
            try:
                joblib.dump(model, tmp_name)
                os.replace(tmp_name, self.path)
            finally:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
            if metadata is not None:
                self.metadata_path.write_text(
                    json.dumps(metadata, indent=2), encoding="utf-8"
                )
        except OSError as exc:
            logger.error("Failed to persist model to %s: %s", self.path, exc)
            return False
        logger.info("Saved model to %s", self.path)
        return True

    def clear(self) -> None:
        for path in (self.path, self.metadata_path):
            if path.exists():
                path.unlink()
                logger.info("Removed %s", path)


def build_training_set(observations: Iterable[Observation]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build (X, y) from every observation with finite normal and actual
    rainfall. Deviation may still be NaN; it is encoded as 0.
    """
    df = observations_to_frame(observations)
    usable = df[np.isfinite(df["normal_rainfall"]) & np.isfinite(df["actual_rainfall"])]
    if usable.empty:
        raise NoTrainingDataError(
            "No observation has both a normal and an actual rainfall figure.",
            context={"rows": int(len(df))},
        )
    logger.info(
        "Training set: %d usable rows out of %d observations.", len(usable), len(df)
    )
    X = encode_frame(usable)
    y = usable["actual_rainfall"].to_numpy(dtype=float)
    return X, y


def make_model() -> MLPRegressor:
    return MLPRegressor(
        hidden_layer_sizes=HIDDEN_LAYERS,
        activation="relu",
        solver="adam",
        learning_rate_init=LEARNING_RATE,
        batch_size=BATCH_SIZE,
        shuffle=True,
        random_state=RANDOM_STATE,
    )


def _log_epoch(model: MLPRegressor, epoch: int) -> None:
    logger.debug("Epoch %d/%d - loss %.4f", epoch, EPOCHS, model.loss_)


def train_model(X: np.ndarray, y: np.ndarray) -> MLPRegressor:
    """
    Fit the regressor for EPOCHS sequential passes over the full training
    set, each pass in mini-batches of BATCH_SIZE rows.
    """
    model = make_model()
    for epoch in range(1, EPOCHS + 1):
        model.partial_fit(X, y)
        _log_epoch(model, epoch)
    return model


async def train_model_async(X: np.ndarray, y: np.ndarray) -> MLPRegressor:
    """Same as ``train_model`` but yields to the event loop between passes."""
    model = make_model()
    for epoch in range(1, EPOCHS + 1):
        model.partial_fit(X, y)
        _log_epoch(model, epoch)
        await asyncio.sleep(0)
    return model


def build_metadata(model: MLPRegressor, X: np.ndarray, y: np.ndarray) -> Dict:
    mse = mean_squared_error(y, model.predict(X))
    return {
        "model_name": "MLPRegressor",
        "version": _get_version_stamp(),
        "created_at": datetime.now(timezone.utc).isoformat(),
        "n_training_rows": int(len(y)),
        "training_mse": float(mse),
        "feature_names": FEATURE_NAMES,
        "year_epoch": YEAR_EPOCH,
        "year_scale": YEAR_SCALE,
        "hyperparameters": {
            "hidden_layer_sizes": list(HIDDEN_LAYERS),
            "activation": "relu",
            "solver": "adam",
            "learning_rate_init": LEARNING_RATE,
            "batch_size": BATCH_SIZE,
            "epochs": EPOCHS,
            "random_state": RANDOM_STATE,
        },
    }


def _prepare(
    observations: Iterable[Observation], store: ModelStore
) -> Tuple[Optional[MLPRegressor], Optional[Tuple[np.ndarray, np.ndarray]]]:
    cached = store.load()
    if cached is not None:
        return cached, None
    try:
        return None, build_training_set(observations)
    except NoTrainingDataError as exc:
        logger.warning("%s No model will be available.", exc.message)
        return None, None


def _persist(model: MLPRegressor, X: np.ndarray, y: np.ndarray, store: ModelStore) -> None:
    metadata = build_metadata(model, X, y)
    logger.info(
        "Training complete (%d rows, MSE %.2f).",
        metadata["n_training_rows"],
        metadata["training_mse"],
    )
    store.save(model, metadata)


def train_or_load_model(
    observations: Iterable[Observation], store: ModelStore
) -> Optional[MLPRegressor]:
    """
    Return the cached model if one exists, otherwise train on the
    observations and persist the result. Returns None when there is
    nothing to train on.
    """
    cached, training_set = _prepare(observations, store)
    if cached is not None or training_set is None:
        return cached
    X, y = training_set
    model = train_model(X, y)
    _persist(model, X, y, store)
    return model


async def train_or_load_model_async(
    observations: Iterable[Observation], store: ModelStore
) -> Optional[MLPRegressor]:
    cached, training_set = _prepare(observations, store)
    if cached is not None or training_set is None:
        return cached
    X, y = training_set
    model = await train_model_async(X, y)
    _persist(model, X, y, store)
    return model


def main(argv=None) -> None:
    from ..config import Config
    from ..observability import setup_logging
    from .preprocess import load_rainfall_tables

    parser = argparse.ArgumentParser(description="Train the annual rainfall model.")
    parser.add_argument("--retrain", action="store_true", help="Discard the cached model first.")
    args = parser.parse_args(argv)

    config = Config.from_env()
    setup_logging(config.LOG_LEVEL, json_output=config.LOG_JSON)
    store = ModelStore(config.MODEL_PATH)
    if args.retrain:
        store.clear()

    observations = load_rainfall_tables(config.DATA_DIR, config.years())
    train_or_load_model(observations, store)


if __name__ == "__main__":
    main()
