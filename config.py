import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        data_dir: Path,
        database_url: str,
        timezone: str,
        fx_url: str,
        fx_timeout_secs: float,
        fx_refresh_minutes: int,
        fx_cache_path: Path,
        trend_months: int,
    ) -> None:
        self.data_dir = data_dir
        self.database_url = database_url
        self.timezone = timezone
        self.fx_url = fx_url
        self.fx_timeout_secs = fx_timeout_secs
        self.fx_refresh_minutes = fx_refresh_minutes
        self.fx_cache_path = fx_cache_path
        self.trend_months = trend_months


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "UTC")
    fx_url = os.getenv(
        "FINANCE_FX_URL", "https://api.exchangerate-api.com/v4/latest/USD"
    )
    fx_timeout_secs = float(os.getenv("FINANCE_FX_TIMEOUT_SECS", "5"))
    fx_refresh_minutes = int(os.getenv("FINANCE_FX_REFRESH_MINUTES", "60"))
    fx_cache_path = Path(
        os.getenv("FINANCE_FX_CACHE_PATH", str(data_dir / "exchange_rates.json"))
    )
    trend_months = int(os.getenv("FINANCE_TREND_MONTHS", "6"))
    return Settings(
        data_dir=data_dir,
        database_url=database_url,
        timezone=timezone,
        fx_url=fx_url,
        fx_timeout_secs=fx_timeout_secs,
        fx_refresh_minutes=fx_refresh_minutes,
        fx_cache_path=fx_cache_path,
        trend_months=trend_months,
    )
