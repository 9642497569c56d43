import pytest
from decimal import Decimal
import uuid

from jewelbill import create_app
from jewelbill.database import get_session
from jewelbill.models import Product
from jewelbill.services.auth_service import issue_token


@pytest.fixture(scope='function')
def app():
    """Application with a fresh in-memory database per test."""
    app = create_app('config.TestingConfig')
    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


def _make_product(session, **kwargs):
    suffix = str(uuid.uuid4())[:8]
    fields = {
        'name': f'Gold Chain {suffix}',
        'description': 'Test product',
        'category': 'CHAINS',
        'material': 'GOLD_22K',
        'purity': '22K',
        'gross_weight': Decimal('5.500'),
        'net_weight': Decimal('5.000'),
        'stock': 10,
        'is_active': True,
    }
    fields.update(kwargs)
    product = Product(**fields)
    session.add(product)
    session.commit()
    # Load every column so the instance stays readable after the session is removed
    session.refresh(product)
    return product


@pytest.fixture(scope='function')
def inr_product(session):
    """Product offered in both markets, Rs. 10,000 / BD 100.000."""
    return _make_product(session, price_inr=Decimal('10000.00'), price_bhd=Decimal('100.000'))


@pytest.fixture(scope='function')
def india_only_product(session):
    """Product with no BHD price."""
    return _make_product(session, name='Temple Necklace', price_inr=Decimal('45999.00'), price_bhd=None)


@pytest.fixture(scope='function')
def inactive_product(session):
    return _make_product(session, name='Retired Ring', price_inr=Decimal('5000.00'), is_active=False)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for products with custom fields."""
    def factory(**kwargs):
        return _make_product(session, **kwargs)
    return factory


@pytest.fixture(scope='function')
def admin_token(app):
    return issue_token(app.config['ADMIN_EMAIL'], app.config)


@pytest.fixture(scope='function')
def auth_headers(admin_token):
    return {'Authorization': f'Bearer {admin_token}'}


@pytest.fixture(scope='function')
def bill_payload(inr_product):
    """A valid INR bill request: 2 x Rs. 10,000 at 12% making, 3% GST."""
    return {
        'customerName': 'Asha Rao',
        'customerEmail': 'asha@example.com',
        'customerPhone': '+91 98400 12345',
        'customerAddress': '12 Car Street, Salem',
        'currency': 'INR',
        'makingChargePercent': '12',
        'gstPercent': '3',
        'vatPercent': '10',
        'paymentMethod': 'CASH',
        'items': [{'productId': inr_product.id, 'quantity': 2}],
    }
