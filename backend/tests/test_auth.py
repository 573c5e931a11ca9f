"""
Phone OTP login and token authentication.
"""

from datetime import timedelta

import jwt

from freshcorner.extensions import db
from freshcorner.models import OtpVerification, User
from freshcorner.services import sms_service
from freshcorner.time_utils import utcnow

from conftest import auth_headers, make_user, reload


def _request(client, phone="01712345678"):
    return client.post('/api/auth/request-otp', json={'phone': phone})


def _latest_code(phone):
    row = (
        db.session.query(OtpVerification)
        .filter_by(phone=phone)
        .order_by(OtpVerification.id.desc())
        .first()
    )
    return row.otp_code


class TestRequestOtp:

    def test_issues_six_digit_code(self, client):
        resp = _request(client)
        assert resp.status_code == 200
        assert resp.json['success'] is True
        assert resp.json['expires_in'] == 300

        code = _latest_code("01712345678")
        assert len(code) == 6 and code.isdigit()

    def test_code_is_logged_by_sms_gateway(self, client, caplog):
        caplog.set_level("INFO")
        _request(client)
        assert _latest_code("01712345678") in caplog.text

    def test_send_failure_still_succeeds(self, client, monkeypatch):
        def broken_gateway(phone, code):
            raise RuntimeError('gateway down')

        monkeypatch.setattr(sms_service, 'send_otp', broken_gateway)
        resp = _request(client)
        assert resp.status_code == 200
        assert resp.json['success'] is True
        assert db.session.query(OtpVerification).filter_by(phone='01712345678').count() == 1

    def test_missing_phone(self, client):
        resp = client.post('/api/auth/request-otp', json={})
        assert resp.status_code == 400
        assert resp.json['success'] is False

    def test_short_phone(self, client):
        resp = _request(client, phone="0171")
        assert resp.status_code == 400
        assert db.session.query(OtpVerification).count() == 0


class TestVerifyOtp:

    def test_new_phone_creates_verified_customer(self, client):
        _request(client)
        resp = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': _latest_code('01712345678')})

        assert resp.status_code == 200
        assert resp.json['is_new_user'] is True
        user = resp.json['user']
        assert user['role'] == 'customer'
        assert user['is_verified'] is True
        assert user['phone_verified'] is True

        claims = jwt.decode(resp.json['token'], 'test-jwt-secret-of-at-least-32-bytes', algorithms=['HS256'])
        assert claims['user_id'] == user['id']
        assert claims['phone'] == '01712345678'
        assert claims['role'] == 'customer'
        assert claims['exp'] - claims['iat'] == 30 * 24 * 3600

    def test_existing_phone_stamps_login(self, client):
        existing = make_user("01712345678")
        _request(client)
        resp = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': _latest_code('01712345678')})

        assert resp.status_code == 200
        assert resp.json['is_new_user'] is False
        assert resp.json['user']['id'] == existing.id
        assert reload(User, existing.id).last_login_at is not None
        assert db.session.query(User).count() == 1

    def test_code_is_single_use(self, client):
        _request(client)
        code = _latest_code('01712345678')
        first = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': code})
        second = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': code})
        assert first.status_code == 200
        assert second.status_code == 400

    def test_wrong_code_creates_nothing(self, client):
        _request(client)
        code = _latest_code('01712345678')
        wrong = '000000' if code != '000000' else '111111'
        resp = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': wrong})

        assert resp.status_code == 400
        assert 'token' not in resp.json
        assert db.session.query(User).count() == 0

    def test_expired_code_rejected(self, client):
        _request(client)
        row = db.session.query(OtpVerification).filter_by(phone='01712345678').one()
        row.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        resp = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': row.otp_code})
        assert resp.status_code == 400
        assert db.session.query(User).count() == 0

    def test_deactivated_user_refused(self, client):
        make_user("01712345678", is_active=False)
        _request(client)
        resp = client.post('/api/auth/verify-otp', json={'phone': '01712345678', 'otp': _latest_code('01712345678')})
        assert resp.status_code == 401


class TestTokens:

    def test_me_returns_current_user(self, client, customer, customer_headers):
        resp = client.get('/api/auth/me', headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json['user']['id'] == customer.id

    def test_missing_header(self, client):
        assert client.get('/api/auth/me').status_code == 401

    def test_malformed_header(self, client):
        assert client.get('/api/auth/me', headers={'Authorization': 'Token abc'}).status_code == 401

    def test_bad_signature(self, client, customer):
        token = jwt.encode(
            {'user_id': customer.id, 'phone': customer.phone, 'role': 'customer',
             'iat': utcnow(), 'exp': utcnow() + timedelta(days=1)},
            'some-other-secret-that-is-also-32-bytes',
            algorithm='HS256',
        )
        resp = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert resp.status_code == 401

    def test_expired_token(self, client, customer):
        token = jwt.encode(
            {'user_id': customer.id, 'phone': customer.phone, 'role': 'customer',
             'iat': utcnow() - timedelta(days=31), 'exp': utcnow() - timedelta(days=1)},
            'test-jwt-secret-of-at-least-32-bytes',
            algorithm='HS256',
        )
        resp = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert resp.status_code == 401

    def test_missing_claims(self, client, customer):
        token = jwt.encode(
            {'user_id': customer.id, 'exp': utcnow() + timedelta(days=1)},
            'test-jwt-secret-of-at-least-32-bytes',
            algorithm='HS256',
        )
        resp = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert resp.status_code == 401

    def test_deactivated_user_token_stops_working(self, client, customer, customer_headers):
        customer.is_active = False
        db.session.commit()
        assert client.get('/api/auth/me', headers=customer_headers).status_code == 401

    def test_unknown_user(self, client, customer):
        headers = auth_headers(customer)
        db.session.delete(customer)
        db.session.commit()
        assert client.get('/api/auth/me', headers=headers).status_code == 401
