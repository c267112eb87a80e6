from decimal import Decimal

import pytest
from ordering.checkout.engine import GuestContact, SettlementEngine
from ordering.guest.captcha import set_captcha_verifier
from ordering.guest.captcha.fake_adapter import FakeCaptchaVerifier
from ordering.guest.issuance import IssueGuestAuthorization
from ordering.inventory import set_inventory_service
from ordering.inventory.fake_adapter import FakeInventoryService
from ordering.ledger import set_ledger
from ordering.ledger.fake_adapter import FakeLedger
from ordering.location import set_directory
from ordering.location.fake_adapter import InMemoryLocationDirectory
from ordering.location.port import Location, MenuOption, MenuProduct, OptionGroup
from payments.gateway import set_gateway
from payments.gateway.fake_adapter import FakeGateway
from protean import current_domain
from protean.integrations.pytest import DomainFixture

NORTH = "loc-north"
SOUTH = "loc-south"


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------
@pytest.fixture()
def latte():
    return MenuProduct(
        id="latte",
        name="Latte",
        base_price=Decimal("4.50"),
        option_groups=(
            OptionGroup(
                id="size",
                name="Size",
                required=True,
                options=(
                    MenuOption(id="regular", name="Regular"),
                    MenuOption(id="large", name="Large", price_modifier=Decimal("0.80")),
                ),
            ),
            OptionGroup(
                id="milk",
                name="Milk",
                options=(
                    MenuOption(id="dairy", name="Dairy"),
                    MenuOption(id="oat", name="Oat milk", price_modifier=Decimal("0.50")),
                ),
            ),
        ),
    )


@pytest.fixture()
def bagel():
    return MenuProduct(
        id="bagel",
        name="Bagel",
        base_price=Decimal("3.00"),
        option_groups=(
            OptionGroup(
                id="extras",
                name="Extras",
                multi_select=True,
                options=(
                    MenuOption(id="cheese", name="Cheese", price_modifier=Decimal("1.00")),
                    MenuOption(id="egg", name="Egg", price_modifier=Decimal("1.50")),
                ),
            ),
        ),
    )


@pytest.fixture()
def muffin():
    return MenuProduct(id="muffin", name="Muffin", base_price=Decimal("3.25"))


@pytest.fixture()
def directory(latte, bagel, muffin):
    """North serves everything; South has no bagels."""
    directory = InMemoryLocationDirectory()
    directory.add_location(Location(id=NORTH, name="North Campus"))
    directory.add_location(Location(id=SOUTH, name="South Campus"))
    directory.add_product(latte, location_ids=[NORTH, SOUTH])
    directory.add_product(bagel, location_ids=[NORTH])
    directory.add_product(muffin, location_ids=[NORTH, SOUTH])
    set_directory(directory)
    return directory


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def inventory():
    service = FakeInventoryService()
    set_inventory_service(service)
    return service


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def ledger():
    fake = FakeLedger()
    set_ledger(fake)
    return fake


@pytest.fixture()
def captcha():
    verifier = FakeCaptchaVerifier()
    set_captcha_verifier(verifier)
    return verifier


@pytest.fixture()
def engine(gateway, ledger, inventory, directory):
    return SettlementEngine(gateway=gateway, ledger=ledger)


# ---------------------------------------------------------------------------
# Guests
# ---------------------------------------------------------------------------
@pytest.fixture()
def guest():
    return GuestContact(email="sam@example.com", first_name="Sam", last_name="Taylor")


@pytest.fixture()
def issue_guest_authorization(captcha):
    """Callable issuing a fresh guest authorization in wire form."""

    def _issue():
        return current_domain.process(IssueGuestAuthorization(captcha_token="captcha-ok"), asynchronous=False)

    return _issue
