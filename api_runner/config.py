# api_runner/config.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RunnerSettings(BaseSettings):
    """
    Environment-driven defaults for the runner.
    Override via API_RUNNER_* environment variables or a .env file.
    The test case document's own ``config`` block still wins for run settings.
    """
    log_level: str = Field(default="WARNING")
    output_file: str = Field(default="test_results.json")
    user_agent: str = Field(default="API-Test-Runner/1.0")
    verify_ssl: bool = Field(default=True)
    follow_redirects: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="API_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
