"""Environment variable loading for CLI scripts."""
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env_if_present(env_file: Optional[str] = None) -> bool:
    """
    Load a .env file (default: project root) without overriding variables
    already set in the environment. Returns True if something was loaded.
    """
    if env_file is None:
        # tenderwatch/utils/env.py -> project root
        project_root = Path(__file__).resolve().parent.parent.parent
        env_file = str(project_root / ".env")

    if not Path(env_file).exists():
        return False

    loaded = load_dotenv(env_file, override=False)
    if loaded:
        logger.debug("Loaded environment variables from %s", env_file)
    return loaded
