from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Dict, Any, Literal
from pathlib import Path


class Settings(BaseSettings):
    # Sectioning and task budgets (bytes, UTF-8)
    SECTION_SPLIT_BYTES: int = 10000  # Parse-time section split threshold
    TASK_BUDGET_BYTES: int = 8192  # Transformation-time task budget

    # Rewrite service
    REWRITE_PROVIDER: str = "dummy"  # dummy|openai
    REWRITE_CONCURRENCY: int = 3  # Simultaneous in-flight submissions
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_BASE_URL: Optional[str] = None

    # Prompting
    PROMPT_FILE: Optional[str] = None  # Style guide prepended to every prompt
    TARGET_LANGUAGE: str = "Traditional Chinese"

    # Observability
    LOG_FORMAT: Literal["json", "plain", "auto"] = "auto"
    LOG_DEBUG: bool = Field(
        default=False,
        description="Emit debug-level events such as task plans",
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8"
    )

    @model_validator(mode="after")
    def _check_budgets(self) -> "Settings":
        # Sections must never be split finer than a task can hold
        if self.SECTION_SPLIT_BYTES < self.TASK_BUDGET_BYTES:
            raise ValueError(
                "SECTION_SPLIT_BYTES must not be smaller than TASK_BUDGET_BYTES "
                f"({self.SECTION_SPLIT_BYTES} < {self.TASK_BUDGET_BYTES})"
            )
        if self.TASK_BUDGET_BYTES <= 0:
            raise ValueError("TASK_BUDGET_BYTES must be positive")
        if self.REWRITE_CONCURRENCY < 1:
            raise ValueError("REWRITE_CONCURRENCY must be at least 1")
        return self

    @classmethod
    def load_config(cls, config_file: Optional[str] = None) -> "Settings":
        """Load settings from a config file, falling back to env and defaults."""
        config_data: Dict[str, Any] = {}

        # Find config file
        if config_file:
            config_path: Optional[Path] = Path(config_file)
        else:
            # Auto-discover .docshard.{yaml,yml,toml}
            for ext in ["yaml", "yml", "toml"]:
                config_path = Path(f".docshard.{ext}")
                if config_path.exists():
                    break
            else:
                config_path = None

        if config_path and config_path.exists():
            if config_path.suffix in [".yaml", ".yml"]:
                import yaml  # type: ignore[import-untyped]

                with open(config_path) as f:
                    config_data = yaml.safe_load(f) or {}
            elif config_path.suffix == ".toml":
                import tomllib

                with open(config_path, "rb") as f:
                    config_data = tomllib.load(f)

        # Keys missing from the file are read from the environment
        return cls(**config_data)


# Default settings - replaced by load_config() by embedding applications
SETTINGS = Settings()
