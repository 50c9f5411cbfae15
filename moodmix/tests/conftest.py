import logging
import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _clear_credentials_env():
    """Keep credentials and MoodMix settings from leaking in from the developer's shell or .env."""
    keys = [
        'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REDIRECT_URI',
        'YOUTUBE_API_KEY', 'OPENWEATHER_API_KEY', 'FITBIT_CLIENT_ID', 'FITBIT_CLIENT_SECRET',
        'MOODMIX_REQUEST_TIMEOUT', 'MOODMIX_MARKET', 'MOODMIX_TOKENS_FILE',
    ]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture(autouse=True)
def _reset_moodmix_logger():
    """CLI runs install handlers bound to the captured streams of that test; drop them afterwards."""
    logger = logging.getLogger('moodmix')
    level = logger.level
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)
