"""
Pytest configuration and fixtures for the gift draw service tests.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from giftdraw import create_app
from giftdraw.extensions import db
from giftdraw.models import User
from giftdraw.security import hash_password


AUTHOR_EMAIL = 'author@example.com'
AUTHOR_PASSWORD = 'correct-horse-battery'


@pytest.fixture
def app():
    """Create application for testing on an in-memory database."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'WTF_CSRF_ENABLED': False,
        'DRAW_CREATE_BACKOFF_BASE': 0,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def author(app):
    """A registered user who creates draws."""
    user = User(email=AUTHOR_EMAIL, password_hash=hash_password(AUTHOR_PASSWORD))
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_client(client, author):
    """Test client logged in as the author."""
    response = client.post('/auth/login', json={'email': AUTHOR_EMAIL, 'password': AUTHOR_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def participants_payload():
    """Four valid participants for a draw creation request."""
    return [
        {'name': 'Alice', 'surname': 'Smith', 'email': 'alice@example.com', 'gift_preferences': 'Books'},
        {'name': 'Bob', 'surname': 'Jones', 'email': 'bob@example.com', 'gift_preferences': ''},
        {'name': 'Carol', 'surname': 'White', 'email': 'carol@example.com', 'gift_preferences': 'Tea'},
        {'name': 'Dave', 'surname': 'Brown', 'email': 'dave@example.com', 'gift_preferences': 'Socks'},
    ]
