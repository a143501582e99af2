import os
from dataclasses import replace
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the settings overlay and configures logging once for the run.
    """
    os.environ["APP_ENV"] = session.config.option.env

    from shared.logging import configure_logging

    configure_logging()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def settings():
    """Test settings: no deliberate delays between notifications."""
    from shared.config import load_settings, reset_settings, set_settings

    test_settings = replace(load_settings(), same_recipient_delay=0)
    set_settings(test_settings)
    yield test_settings
    reset_settings()


@pytest.fixture(autouse=True)
def database(settings):
    """A fresh in-memory database for every test."""
    from shared.database import configure_database, drop_db, reset_database, setup_db

    engine = configure_database("sqlite://")
    setup_db(engine)
    yield engine
    drop_db(engine)
    reset_database()


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically reset adapter singletons after every test"""
    yield

    from notifications.channel import reset_channel
    from payments.gateway import reset_gateway
    from pricing.currency import reset_currency_service
    from pricing.currency.provider import reset_provider

    reset_gateway()
    reset_channel()
    reset_provider()
    reset_currency_service()


# ---------------------------------------------------------------------------
# Fake adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def fake_gateway():
    from payments.gateway import set_gateway
    from payments.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture()
def fake_channel():
    from notifications.channel import set_channel
    from notifications.channel.fake_channel import FakeChannel

    channel = FakeChannel()
    set_channel(channel)
    return channel


@pytest.fixture()
def fake_provider():
    from pricing.currency.provider import set_provider
    from pricing.currency.provider.fake_adapter import FakeRateProvider

    provider = FakeRateProvider({"USD_NGN": 1520.0, "NGN_USD": 1 / 1520.0, "USD_GBP": 0.8})
    set_provider(provider)
    return provider


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------
@pytest.fixture()
def profiles():
    """A customer, two tailors and an admin."""
    from identity.profile import Profile, ProfileRole
    from shared.database import session_scope

    people = {
        "customer": Profile(
            id="cust-001", email="ada@example.com", first_name="Ada", last_name="Obi", role=ProfileRole.CUSTOMER.value
        ),
        "tailor": Profile(
            id="tailor-001",
            email="kemi@stitches.example.com",
            first_name="Kemi",
            last_name="Bello",
            role=ProfileRole.TAILOR.value,
        ),
        "other_tailor": Profile(
            id="tailor-002",
            email="musa@threads.example.com",
            first_name="Musa",
            last_name="Ali",
            role=ProfileRole.TAILOR.value,
        ),
        "admin": Profile(
            id="admin-001", email="ops@tailormint.example.com", first_name="Ops", role=ProfileRole.ADMIN.value
        ),
    }
    with session_scope() as session:
        session.add_all(people.values())
    return people


SHIPPING_ADDRESS = {
    "street_address": "12 Admiralty Way",
    "city": "Lagos",
    "state": "LA",
    "zip_code": "101233",
}


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def place_order(profiles, fake_gateway, fake_channel, fake_provider, shipping_address):
    """Run the full bag → checkout → payment flow and return the order id."""
    from ordering.bag.store import BagStore
    from ordering.checkout.initiation import CheckoutInitiator
    from payments.checkout_events import PaymentEventHandler

    def _place(customer_id="cust-001", tailor_id="tailor-001", prices=(130.0,), completion_weeks=None):
        store = BagStore()
        for index, price in enumerate(prices):
            store.add_item(
                customer_id,
                tailor_id,
                design_id=f"design-{index}",
                price=price,
                completion_weeks=completion_weeks,
            )
        redirect = CheckoutInitiator().initiate(customer_id, shipping_address, tailor_id=tailor_id)
        payload, signature = fake_gateway.completed_event_for(redirect.session_id)
        outcome = PaymentEventHandler().handle(payload, signature)
        return outcome.order_id

    return _place
