"""
Integration tests for API routes.
Tests the auth and draws blueprints through the Flask test client.
"""
import json

import pytest

from giftdraw import create_app
from giftdraw.errors import StoreError
from giftdraw.extensions import db
from giftdraw.models import Draw, Match, Participant, User
from giftdraw.security import hash_password
from giftdraw.services.store import DrawStore


def create_draw(client, participants, name='Office party'):
    return client.post('/draws', json={'name': name, 'participants': participants})


class TestAuth:
    """Tests for /auth endpoints."""

    def test_register_and_login(self, client):
        response = client.post('/auth/register', json={'email': 'New@Example.com', 'password': 'long-enough'})
        assert response.status_code == 201
        assert json.loads(response.data)['email'] == 'new@example.com'

        response = client.post('/auth/login', json={'email': 'new@example.com', 'password': 'long-enough'})
        assert response.status_code == 200

    def test_register_duplicate_email(self, client, author):
        response = client.post('/auth/register', json={'email': author.email, 'password': 'long-enough'})
        assert response.status_code == 400

    def test_login_wrong_password(self, client, author):
        response = client.post('/auth/login', json={'email': author.email, 'password': 'nope'})
        assert response.status_code == 401

    def test_logout(self, auth_client):
        assert auth_client.post('/auth/logout').status_code == 200
        assert auth_client.get('/draws').status_code == 401

    def test_csrf_token_endpoint(self, client):
        response = client.get('/auth/csrf')
        assert response.status_code == 200
        assert json.loads(response.data)['csrf_token']

    def test_session_anonymous(self, client):
        response = client.get('/auth/session')

        assert response.status_code == 200
        assert json.loads(response.data) == {'user': None}

    def test_session_logged_in(self, auth_client, author):
        response = auth_client.get('/auth/session')

        assert response.status_code == 200
        assert json.loads(response.data)['user'] == {
            'id': author.id,
            'email': author.email,
            'must_change_password': False,
        }

        auth_client.post('/auth/logout')
        assert json.loads(auth_client.get('/auth/session').data)['user'] is None


class TestCsrf:

    @pytest.fixture
    def csrf_app(self):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite://',
            'LOG_LEVEL': 'WARNING',
        })
        with app.app_context():
            db.create_all()
            yield app
            db.session.remove()
            db.drop_all()

    def test_post_without_token_rejected(self, csrf_app):
        client = csrf_app.test_client()
        response = client.post('/auth/login', json={'email': 'a@example.com', 'password': 'x'})

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Bad Request'

    def test_post_with_header_token(self, csrf_app):
        client = csrf_app.test_client()
        token = json.loads(client.get('/auth/csrf').data)['csrf_token']

        response = client.post(
            '/auth/register',
            json={'email': 'a@example.com', 'password': 'long-enough'},
            headers={'X-CSRFToken': token},
        )
        assert response.status_code == 201


class TestCreateDraw:
    """Tests for POST /draws."""

    def test_create_draw(self, auth_client, participants_payload, author):
        response = create_draw(auth_client, participants_payload, name='  Office party  ')

        assert response.status_code == 201
        data = json.loads(response.data)
        assert set(data) == {'id', 'name', 'created_at'}
        assert data['name'] == 'Office party'

        draw = db.session.get(Draw, data['id'])
        assert draw.author_id == author.id
        assert Participant.query.filter_by(draw_id=draw.id).count() == 4

    def test_requires_login(self, client, participants_payload):
        response = create_draw(client, participants_payload)
        assert response.status_code == 401

    def test_invalid_json(self, auth_client):
        response = auth_client.post('/draws', data='not json', content_type='application/json')
        assert response.status_code == 400

    def test_too_few_participants(self, auth_client, participants_payload):
        response = create_draw(auth_client, participants_payload[:2])

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['error'] == 'Validation Error'
        assert data['details'][0]['field'] == 'participants'
        assert Draw.query.count() == 0

    def test_too_many_participants(self, auth_client):
        participants = [
            {'name': f'P{i}', 'surname': 'S', 'email': f'p{i}@example.com', 'gift_preferences': ''}
            for i in range(33)
        ]
        response = create_draw(auth_client, participants)
        assert response.status_code == 400

    def test_blank_name_and_bad_email(self, auth_client, participants_payload):
        participants_payload[1]['email'] = 'not-an-email'
        response = create_draw(auth_client, participants_payload, name='   ')

        assert response.status_code == 400
        fields = {d['field'] for d in json.loads(response.data)['details']}
        assert 'name' in fields
        assert 'participants.1.email' in fields

    def test_gift_preferences_required(self, auth_client, participants_payload):
        del participants_payload[0]['gift_preferences']
        response = create_draw(auth_client, participants_payload)

        assert response.status_code == 400
        fields = [d['field'] for d in json.loads(response.data)['details']]
        assert fields == ['participants.0.gift_preferences']
        assert Draw.query.count() == 0

    def test_participant_failure_leaves_nothing(self, auth_client, participants_payload, mocker):
        insert = mocker.patch.object(
            DrawStore, 'bulk_insert_participants', side_effect=StoreError('database unavailable'),
        )

        response = create_draw(auth_client, participants_payload)

        assert response.status_code == 500
        assert 'after 10 attempts' in json.loads(response.data)['message']
        assert insert.call_count == 10
        assert Draw.query.count() == 0
        assert Participant.query.count() == 0

    def test_draw_header_failure(self, auth_client, participants_payload, mocker):
        mocker.patch.object(DrawStore, 'insert_draw', side_effect=StoreError('database unavailable'))
        insert = mocker.patch.object(DrawStore, 'bulk_insert_participants')

        response = create_draw(auth_client, participants_payload)

        assert response.status_code == 500
        assert insert.call_count == 0


class TestListDraws:

    def test_lists_own_draws_newest_first(self, auth_client, participants_payload):
        first = json.loads(create_draw(auth_client, participants_payload, name='First').data)
        second = json.loads(create_draw(auth_client, participants_payload, name='Second').data)

        response = auth_client.get('/draws')

        assert response.status_code == 200
        assert [d['id'] for d in json.loads(response.data)] == [second['id'], first['id']]


class TestDrawParticipants:

    def test_lists_participants(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)

        response = auth_client.get(f"/draws/{draw['id']}/participants")

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [p['name'] for p in data['participants']] == ['Alice', 'Bob', 'Carol', 'Dave']
        assert data['has_matches'] is False

    def test_not_found(self, auth_client):
        assert auth_client.get('/draws/999/participants').status_code == 404

    def test_other_users_draw_forbidden(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)
        auth_client.post('/auth/logout')

        db.session.add(User(email='other@example.com', password_hash=hash_password('other-password')))
        db.session.commit()
        auth_client.post('/auth/login', json={'email': 'other@example.com', 'password': 'other-password'})

        assert auth_client.get(f"/draws/{draw['id']}/participants").status_code == 403
        assert auth_client.post(f"/draws/{draw['id']}/match").status_code == 403


class TestGenerateMatches:
    """Tests for POST /draws/{id}/match."""

    def test_generate_matches(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)

        response = auth_client.post(f"/draws/{draw['id']}/match")

        assert response.status_code == 200
        assert json.loads(response.data)['message'] == 'Matches created successfully'

        matches = Match.query.filter_by(draw_id=draw['id']).all()
        participant_ids = {p.id for p in Participant.query.filter_by(draw_id=draw['id'])}
        assert len(matches) == 4
        assert {m.giver_id for m in matches} == participant_ids
        assert {m.recipient_id for m in matches} == participant_ids
        assert all(m.giver_id != m.recipient_id for m in matches)

        data = json.loads(auth_client.get(f"/draws/{draw['id']}/participants").data)
        assert data['has_matches'] is True

    def test_participants_linked_to_accounts(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)

        auth_client.post(f"/draws/{draw['id']}/match")

        participants = Participant.query.filter_by(draw_id=draw['id']).all()
        assert all(p.user_id is not None for p in participants)
        alice = User.query.filter_by(email='alice@example.com').one()
        assert alice.must_change_password is True

    def test_already_matched(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)
        auth_client.post(f"/draws/{draw['id']}/match")

        response = auth_client.post(f"/draws/{draw['id']}/match")

        assert response.status_code == 400
        assert 'already' in json.loads(response.data)['message']
        assert Match.query.filter_by(draw_id=draw['id']).count() == 4

    def test_insufficient_participants(self, auth_client, participants_payload, author):
        draw = json.loads(create_draw(auth_client, participants_payload[:3]).data)
        Participant.query.filter_by(draw_id=draw['id'], name='Carol').delete()
        db.session.commit()

        response = auth_client.post(f"/draws/{draw['id']}/match")

        assert response.status_code == 400
        assert 'At least 3 participants' in json.loads(response.data)['message']
        assert Match.query.count() == 0

    def test_persistence_failure(self, auth_client, participants_payload, mocker):
        draw = json.loads(create_draw(auth_client, participants_payload).data)
        mocker.patch.object(DrawStore, 'bulk_insert_matches', side_effect=StoreError('disk full'))

        response = auth_client.post(f"/draws/{draw['id']}/match")

        assert response.status_code == 500
        assert Match.query.count() == 0

    def test_not_found(self, auth_client):
        assert auth_client.post('/draws/999/match').status_code == 404


class TestProvisionedAccounts:
    """Credentials for new accounts are returned to the draw author."""

    def test_match_response_lists_new_accounts(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)

        data = json.loads(auth_client.post(f"/draws/{draw['id']}/match").data)

        assert data['unlinked_participants'] == []
        assert [a['email'] for a in data['accounts']] == [
            'alice@example.com', 'bob@example.com', 'carol@example.com', 'dave@example.com',
        ]
        for account in data['accounts']:
            participant = db.session.get(Participant, account['participant_id'])
            assert participant.email == account['email']
            assert account['temporary_password']

    def test_existing_account_gets_no_credentials(self, auth_client, participants_payload, author):
        participants_payload[3]['email'] = author.email

        draw = json.loads(create_draw(auth_client, participants_payload).data)
        data = json.loads(auth_client.post(f"/draws/{draw['id']}/match").data)

        assert author.email not in [a['email'] for a in data['accounts']]
        assert len(data['accounts']) == 3
        assert Participant.query.filter_by(email=author.email).one().user_id == author.id

    def test_temporary_password_must_be_changed(self, auth_client, participants_payload):
        draw = json.loads(create_draw(auth_client, participants_payload).data)
        account = json.loads(auth_client.post(f"/draws/{draw['id']}/match").data)['accounts'][0]
        auth_client.post('/auth/logout')

        response = auth_client.post('/auth/login', json={
            'email': account['email'],
            'password': account['temporary_password'],
        })
        assert response.status_code == 200
        assert json.loads(response.data)['must_change_password'] is True

        assert auth_client.get('/draws').status_code == 403
        assert json.loads(auth_client.get('/auth/session').data)['user']['must_change_password'] is True

        response = auth_client.post('/auth/change-password', json={
            'current_password': account['temporary_password'],
            'new_password': 'a-brand-new-password',
        })
        assert response.status_code == 200
        assert auth_client.get('/draws').status_code == 200
