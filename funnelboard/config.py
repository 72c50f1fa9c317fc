"""FUNNELBOARD — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"

    # ── Formula evaluator limits ──
    formula_max_length: int = 500  # Same cap the metric editor enforces
    formula_max_depth: int = 32  # Nested parentheses / calls / negations
    formula_max_nodes: int = 256  # Expression tree size
    formula_step_budget: int = 10_000  # Node visits per evaluation

    # ── Funnel filters ──
    regex_max_length: int = 256

    # ── Dashboard ──
    dashboard_schema_version: str = "1.0.0"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/funnelboard.db"
        return "sqlite:///./funnelboard.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
