import os
from pathlib import Path

import pytest

TEST_SIGNING_SECRET = "test-guest-authorization-secret"
TEST_LEDGER_SECRET = "test-ledger-callback-secret"


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Fetch and activate the domain by pushing the associated domain_context. The activated domain can then be referred to elsewhere as `current_domain`
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("GUEST_AUTHORIZATION_SECRET", TEST_SIGNING_SECRET)
    os.environ.setdefault("CAPTCHA_ADAPTER", "fake")
    os.environ.setdefault("LEDGER_CALLBACK_SECRET", TEST_LEDGER_SECRET)

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db(request):
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    setup_db(ordering)

    yield

    drop_db(ordering)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Every test starts with fresh fakes and freshly read settings."""
    from ordering.config import reset_settings
    from ordering.guest.captcha import reset_captcha_verifier
    from ordering.inventory import reset_inventory_service
    from ordering.ledger import reset_ledger
    from ordering.location import reset_directory
    from payments.gateway import reset_gateway

    resets = [
        reset_settings,
        reset_gateway,
        reset_inventory_service,
        reset_directory,
        reset_captcha_verifier,
        reset_ledger,
    ]
    for reset in resets:
        reset()

    yield

    for reset in resets:
        reset()


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()
