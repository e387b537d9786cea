import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from devstats.infrastructure.github_client import CONNECTOR_LIMIT, DEFAULT_API_URL


class Settings(BaseModel):
    """Runtime configuration read from the environment (and a .env file)."""
    model_config = ConfigDict(frozen=True)

    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_API_URL
    log_level: str = "INFO"
    connector_limit: int = Field(CONNECTOR_LIMIT, ge=1)


def load_settings() -> Settings:
    load_dotenv()

    # The browser build used VITE_GITHUB_ACCESS_TOKEN; keep honouring it
    token = os.getenv("GITHUB_TOKEN") or os.getenv("VITE_GITHUB_ACCESS_TOKEN") or None

    return Settings(
        github_token=token,
        github_api_url=os.getenv("GITHUB_API_URL", DEFAULT_API_URL),
        log_level=os.getenv("DEVSTATS_LOG_LEVEL", "INFO").upper(),
        connector_limit=int(os.getenv("DEVSTATS_CONNECTOR_LIMIT", CONNECTOR_LIMIT)),
    )
