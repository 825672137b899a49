"""Pytest configuration and shared fixtures."""

import csv
from pathlib import Path
from typing import Dict, List

import numpy as np
import pytest

from karnataka_rainfall.pipeline.preprocess import (
    ACTUAL_COLUMN,
    DEPARTURE_COLUMN,
    LEVEL_COLUMN,
    NAME_COLUMN,
    NORMAL_COLUMN,
    normalize_row,
)
from karnataka_rainfall.pipeline.train import ModelStore


HEADER = ["Sl No", LEVEL_COLUMN, NAME_COLUMN, NORMAL_COLUMN, ACTUAL_COLUMN, DEPARTURE_COLUMN]


def make_row(level, name, normal="", actual="", dep="") -> Dict[str, str]:
    return {
        LEVEL_COLUMN: level,
        NAME_COLUMN: name,
        NORMAL_COLUMN: normal,
        ACTUAL_COLUMN: actual,
        DEPARTURE_COLUMN: dep,
    }


def make_observations(rows, year=2020):
    return [normalize_row(row, year) for row in rows]


# One year's table in source order: District, its Taluks, each followed by
# its Hoblis.
MYSURU_ROWS = [
    make_row("D", "Mysuru", "786", "812", "3"),
    make_row("T", "Nanjangud", "706", "690", "-2"),
    make_row("H", "Hullahalli", "690", "701", "2"),
    make_row("H", "Chinnadagudihundi", "712", "655", "-8"),
    make_row("T", "Hunsur", "880", "1,012", "15"),
    make_row("H", "Bilikere", "845", "930", "10"),
    make_row("D", "Mandya", "701", "640", "-9"),
    make_row("T", "Maddur", "720", "705", "-2"),
    make_row("H", "Koppa", "731", "", ""),
]


class StubModel:
    """Stands in for the regressor; returns a fixed value and records inputs."""

    def __init__(self, value=900.0):
        self.value = value
        self.calls: List[np.ndarray] = []

    def predict(self, X):
        X = np.asarray(X, dtype=float)
        self.calls.append(X)
        return np.full(len(X), self.value)


class InMemoryStore:
    """Model cache double holding a ready-made model."""

    def __init__(self, model=None):
        self.model = model
        self.saved = []

    def load(self):
        return self.model

    def save(self, model, metadata=None):
        self.saved.append((model, metadata))
        self.model = model
        return True

    def load_metadata(self):
        return {"model_name": "StubModel", "version": "test"}


@pytest.fixture
def mysuru_observations():
    return make_observations(MYSURU_ROWS, year=2020)


@pytest.fixture
def stub_model():
    return StubModel()


@pytest.fixture
def model_store(tmp_path) -> ModelStore:
    return ModelStore(tmp_path / "models" / "rainfall_model.pkl")


def write_year_csv(directory: Path, year: int, rows) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{year}.csv"
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=HEADER)
        writer.writeheader()
        for idx, row in enumerate(rows, start=1):
            writer.writerow({"Sl No": idx, **row})
    return path


def scaled_rows(factor: float):
    """MYSURU_ROWS with every numeric figure scaled, for a second year."""
    rows = []
    for row in MYSURU_ROWS:
        scaled = dict(row)
        for col in (NORMAL_COLUMN, ACTUAL_COLUMN):
            text = row[col].replace(",", "")
            if text:
                scaled[col] = f"{float(text) * factor:.1f}"
        rows.append(scaled)
    return rows


@pytest.fixture
def data_dir(tmp_path) -> Path:
    directory = tmp_path / "data"
    write_year_csv(directory, 2020, MYSURU_ROWS)
    write_year_csv(directory, 2021, scaled_rows(1.1))
    return directory
