from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Bundled reference data
    reference_data_path: Path = DATA_DIR / "reference.json"
    substances_list_path: Path = DATA_DIR / "substances.json"
    routes_list_path: Path = DATA_DIR / "routes.json"

    # The experience document (single JSON array, rewritten wholesale)
    experiences_path: Path = Path("experiences.json")

    # Fallback active window for substances without timing data
    default_active_minutes: int = 60

    # Quick-add appends to the latest experience within this window
    quick_add_window_hours: int = 24

    # Trophy stand windows
    stats_year_days: int = 365
    stats_month_days: int = 30


@lru_cache
def get_settings() -> Settings:
    return Settings()
