"""Auto-load environment variables from .env file."""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env(directory: Optional[Path] = None) -> bool:
    """Load .env file if it exists (NVD_API_KEY usually lives there)."""
    env_file = (directory or Path.cwd()) / ".env"
    if env_file.exists():
        load_dotenv(env_file)
        return True
    return False
