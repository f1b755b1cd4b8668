import os
import tempfile
import pytest
from menu_scanner.core import config
from menu_scanner.main import app
from menu_scanner.store.db import ScanStore

@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment with mock settings"""
    # Store original values
    original_use_mock = config.settings.USE_MOCK
    original_store = getattr(app.state, "store", None)

    # Create temporary database for tests
    temp_db = tempfile.NamedTemporaryFile(suffix='.sqlite', delete=False)
    temp_db_path = temp_db.name
    temp_db.close()

    # Tests patch the model client explicitly
    config.settings.USE_MOCK = False

    app.state.store = ScanStore(temp_db_path)
    app.state.store.init_db()

    yield

    # Restore original values
    config.settings.USE_MOCK = original_use_mock
    app.state.store = original_store

    try:
        if os.path.exists(temp_db_path):
            os.unlink(temp_db_path)
    except OSError:
        # If cleanup fails, it's not critical for tests
        pass

@pytest.fixture
def store(setup_test_environment) -> ScanStore:
    """The temporary store the app is using for this test"""
    return app.state.store
