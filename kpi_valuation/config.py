from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    value_tolerance: float = 0.01
    unknown_scope_label: str = "Unknown"
    week_mode: str = "legacy"
    valuation_cache_ttl_seconds: float = 45.0
    feature_valuation_cache: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="KPI_",
        extra="ignore",
    )

    def model_post_init(self, __context):
        # Anything other than an explicit ISO request keeps the legacy week numbering
        mode = (self.week_mode or "").strip().lower()
        self.week_mode = "iso" if mode == "iso" else "legacy"
        if self.value_tolerance < 0:
            self.value_tolerance = 0.0

settings = Settings()
