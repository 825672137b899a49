import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class Config:
    def __init__(self):
        # Directory holding one <year>.csv rainfall table per configured year
        self.DATA_DIR = Path(os.environ.get('RAINFALL_DATA_DIR') or PROJECT_ROOT / 'data')
        # Comma-separated list of years to load, in order
        self.YEARS = os.environ.get('RAINFALL_YEARS', '2020,2021,2022')
        # Trained model cache; delete the file to force retraining
        self.MODEL_PATH = Path(
            os.environ.get('RAINFALL_MODEL_PATH')
            or PROJECT_ROOT / 'models' / 'rainfall_model.pkl'
        )
        self.LOG_LEVEL = os.environ.get('RAINFALL_LOG_LEVEL', 'INFO')
        self.LOG_JSON = os.environ.get('RAINFALL_LOG_JSON', '').lower() in ('1', 'true', 'yes')

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Config":
        """Read settings from the environment, filling gaps from a .env file."""
        load_dotenv(dotenv_path, override=False)
        return cls()

    def years(self) -> List[int]:
        return [int(y) for y in str(self.YEARS).split(',') if y.strip()]
