import logging
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Action settings, loaded from environment variables and .env file.

    Inputs wired by action.yml:
        PROJECT_PATH      - Move package to audit (contains sources/ and test_results.txt)
        REPORT_PATH       - Directory the generated report.md is written to
        SQLITE_PATH       - Directory holding db.sqlite (downloaded from the latest release if unset)
        CHARACTER_PATH    - Comma-separated character JSON files for the audit flow
        ACTION_TYPE       - "audit" or "comment"
        MODE              - "release" starts the learning persona without GitHub interaction
        GITHUB_TOKEN      - Token used for releases and issue comments
        OPENAI_API_KEY    - Key for the openai model provider
        DEEPSEEK_API_KEY  - Key for the deepseek model provider

    Relative paths resolve against GITHUB_WORKSPACE when the runner sets it,
    otherwise against the parent of the working directory (the action checked
    out next to the audited package).
    """

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    project_path: str = ""
    report_path: str = "./"
    sqlite_path: str = ""
    character_path: str = ""

    action_type: str = ""
    mode: str = ""

    # Environment (development | production)
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )

    # GitHub
    github_token: str = ""
    github_workspace: str = ""  # set by the Actions runner

    # Model providers (litellm format model names)
    openai_api_key: str = ""
    deepseek_api_key: str = ""
    openai_model: str = "gpt-4o"
    deepseek_model: str = "deepseek/deepseek-chat"

    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def base_dir(self) -> Path:
        if self.github_workspace:
            return Path(self.github_workspace)
        return Path.cwd().parent

    def resolve(self, value: str) -> Path:
        """Resolve a configured path against base_dir; absolute paths pass through."""
        return (self.base_dir / (value or "./")).resolve()

    @property
    def project_dir(self) -> Path | None:
        return self.resolve(self.project_path) if self.project_path else None

    @property
    def report_dir(self) -> Path:
        return self.resolve(self.report_path)

    @property
    def sqlite_dir(self) -> Path:
        return self.resolve(self.sqlite_path)


settings = Settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# Warn about missing config in production
if settings.is_production and not settings.github_token:
    logger.warning("GITHUB_TOKEN is not set; release snapshots and comments are unavailable")
