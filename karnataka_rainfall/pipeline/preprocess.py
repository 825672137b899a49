import logging
import math
import re
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

# Column headers of the published district/taluk/hobli rainfall tables.
LEVEL_COLUMN = "District(D)/Taluk(T)/Hobli(H)"
NAME_COLUMN = "Name"
NORMAL_COLUMN = "Normal (mm)"
ACTUAL_COLUMN = "Actual (mm)"
DEPARTURE_COLUMN = "%DEP"

# Longest leading decimal number, optionally signed and with an exponent.
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class Level(str, Enum):
    DISTRICT = "D"
    TALUK = "T"
    HOBLI = "H"

    @classmethod
    def parse(cls, code: object) -> Optional["Level"]:
        """Case-insensitive lookup of a single-letter level code."""
        value = str(code if code is not None else "").strip().upper()
        for level in cls:
            if level.value == value:
                return level
        return None

    @property
    def label(self) -> str:
        return self.name.title()


@dataclass(frozen=True)
class Observation:
    year: int
    level: str
    name: str
    normal_rainfall: float
    actual_rainfall: float
    deviation_percent: float


def safe_num(value: object) -> float:
    """
    Parse a rainfall figure such as " 1,234.5 " or "12%" into a float.

    Thousands separators and whitespace are stripped, then the leading number
    is read and any trailing text ("mm", "%") is ignored. Text with no leading
    number, or one that is not finite, becomes NaN instead of raising.
    """
    text = "".join(str(value if value is not None else "").replace(",", "").split())
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return math.nan
    number = float(match.group(0))
    return number if math.isfinite(number) else math.nan


def normalize_row(row: Mapping[str, object], year: int) -> Optional[Observation]:
    """
    Convert one raw table row into an Observation.

    Returns None when the row has no name or no level code; such rows are
    dropped from every downstream structure.
    """
    level = str(row.get(LEVEL_COLUMN) or "").strip()
    name = str(row.get(NAME_COLUMN) or "").strip()
    if not name or not level:
        return None

    return Observation(
        year=int(year),
        level=level,
        name=name,
        normal_rainfall=safe_num(row.get(NORMAL_COLUMN)),
        actual_rainfall=safe_num(row.get(ACTUAL_COLUMN)),
        deviation_percent=safe_num(row.get(DEPARTURE_COLUMN)),
    )


def load_year_file(path: Path, year: int) -> List[Observation]:
    """
    Load one year's rainfall table and normalise every row.

    All cells are read as text so that the numeric parsing contract of
    ``safe_num`` applies uniformly, including to values such as "1,024".
    """
    path = Path(path)
    logger.info("Loading %d rainfall table from %s", year, path)
    df = pd.read_csv(
        path,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    df.columns = [str(c).strip() for c in df.columns]

    missing = [
        col
        for col in (LEVEL_COLUMN, NAME_COLUMN, NORMAL_COLUMN, ACTUAL_COLUMN, DEPARTURE_COLUMN)
        if col not in df.columns
    ]
    if missing:
        # Rows still normalise (numbers become NaN), but this is worth knowing.
        logger.warning(
            "Rainfall table %s is missing columns %s. Available columns: %s",
            path,
            missing,
            list(df.columns),
        )

    observations = []
    rejected = 0
    for record in df.to_dict(orient="records"):
        obs = normalize_row(record, year)
        if obs is None:
            rejected += 1
            continue
        observations.append(obs)

    logger.info(
        "Normalised %d rows for %d (%d rejected without name/level).",
        len(observations),
        year,
        rejected,
    )
    return observations


def load_rainfall_tables(data_dir: Path, years: Iterable[int]) -> List[Observation]:
    """
    Load ``<data_dir>/<year>.csv`` for every year, preserving year order and
    row order within each year.
    """
    data_dir = Path(data_dir)
    observations: List[Observation] = []
    for year in years:
        path = data_dir / f"{year}.csv"
        if not path.exists():
            raise FileNotFoundError(
                f"Rainfall table for {year} not found at {path}."
            )
        observations.extend(load_year_file(path, year))
    logger.info("Loaded %d observations in total.", len(observations))
    return observations


def observations_to_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """Flatten observations into the tabular form used for training."""
    columns = [
        "year",
        "level",
        "name",
        "normal_rainfall",
        "actual_rainfall",
        "deviation_percent",
    ]
    df = pd.DataFrame([asdict(obs) for obs in observations], columns=columns)
    for col in ("normal_rainfall", "actual_rainfall", "deviation_percent"):
        df[col] = df[col].astype(float)
    df["year"] = df["year"].astype(np.int64)
    return df
