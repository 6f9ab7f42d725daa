import pytest
import sentry_sdk


@pytest.fixture(scope="session", autouse=True)
def _sentry_disabled():
    """Keep overlay failure captures local, whatever SENTRY_DSN says."""
    sentry_sdk.init(dsn="")
    yield
