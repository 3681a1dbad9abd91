from decimal import Decimal

from ledger import Caller, request_withdrawal
from models import Investment, InvestmentStatus, Referral, User, WithdrawalRequest
from extensions import db
from conftest import PASSWORD, balance_of, login

BANK = ("First Bank", "0123456789", "Ada Obi")


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_signup_with_referral_code(client, account):
    response = client.post("/api/signup", json={
        "username": "newbie",
        "email": "Newbie@Example.com",
        "password": "secret1",
        "referralCode": account.referral_code.lower(),
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["user"]["email"] == "newbie@example.com"
    assert Referral.query.filter_by(referrer_id=account.id).count() == 1


def test_signup_validation(client, account):
    assert client.post("/api/signup", json={}).status_code == 400
    assert client.post("/api/signup", json={
        "username": "x", "email": "x@example.com", "password": "123",
    }).status_code == 400
    assert client.post("/api/signup", json={
        "username": "dup", "email": account.email, "password": "secret1",
    }).status_code == 400
    response = client.post("/api/signup", json={
        "username": "y", "email": "y@example.com", "password": "secret1", "referralCode": "BADCODE",
    })
    assert response.status_code == 400
    assert User.query.filter_by(email="y@example.com").first() is None


def test_non_string_fields_are_bad_requests(client, account):
    response = client.post("/api/signup", json={
        "username": "z", "email": 12345, "password": "secret1",
    })
    assert response.status_code == 400
    assert response.get_json()["error"] == "bad_request"
    assert User.query.count() == 1

    response = client.post("/api/login", json={"email": account.email, "password": ["secret"]})
    assert response.status_code == 400

    login(client, account)
    response = client.post("/api/investments", json={"amount": 2500, "profitModel": ["percentage"]})
    assert response.status_code == 400
    assert Investment.query.count() == 0


def test_login_and_logout(client, account):
    assert client.post("/api/login", json={"email": account.email, "password": "wrong"}).status_code == 401

    response = login(client, account)
    assert response.status_code == 200
    assert client.get("/api/profile").status_code == 200

    client.post("/api/logout")
    response = client.get("/api/profile")
    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_investment_flow_over_http(client, account, admin):
    login(client, account)
    response = client.post("/api/investments", json={"amount": 2500})
    assert response.status_code == 201
    investment_id = response.get_json()["investment"]["id"]
    assert response.get_json()["investment"]["status"] == "pending"

    # owner cannot approve
    assert client.post(f"/admin/investments/{investment_id}/approve").status_code == 403

    client.post("/api/logout")
    login(client, admin)
    response = client.post(f"/admin/investments/{investment_id}/approve")
    assert response.status_code == 200
    assert response.get_json()["investment"]["status"] == "active"

    response = client.post(f"/admin/investments/{investment_id}/approve")
    assert response.status_code == 409
    assert response.get_json()["error"] == "invalid_state"

    client.post("/api/logout")
    login(client, account)
    response = client.post(f"/api/investments/{investment_id}/claim")
    assert response.status_code == 200
    body = response.get_json()
    assert body["payout"]["day"] == 1
    assert body["balance"] == 270.0

    response = client.post(f"/api/investments/{investment_id}/claim")
    assert response.status_code == 409
    assert response.get_json()["error"] == "already_claimed_today"

    payouts = client.get(f"/api/investments/{investment_id}/payouts").get_json()["payouts"]
    assert len(payouts) == 1
    assert db.session.get(Investment, investment_id).status == InvestmentStatus.ACTIVE.value


def test_invalid_investment_amount_returns_400(client, account):
    login(client, account)
    response = client.post("/api/investments", json={"amount": 100})
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_amount"

    response = client.post("/api/investments", json={"amount": 2500, "profitModel": "compound"})
    assert response.status_code == 400


def test_withdrawal_flow_over_http(client, make_account, admin):
    user = make_account(balance="1000")
    login(client, user)

    response = client.post("/api/withdrawals", json={
        "amount": 5000, "bankName": "First Bank", "accountNumber": "0123456789", "accountName": "Ada Obi",
    })
    assert response.status_code == 400
    assert response.get_json()["error"] == "insufficient_funds"

    response = client.post("/api/withdrawals", json={
        "amount": 300, "bankName": "First Bank", "accountNumber": "123", "accountName": "Ada Obi",
    })
    assert response.get_json()["error"] == "invalid_bank_details"

    response = client.post("/api/withdrawals", json={
        "amount": 300, "bankName": "First Bank", "accountNumber": "0123456789", "accountName": "Ada Obi",
    })
    assert response.status_code == 201
    withdrawal_id = response.get_json()["withdrawal"]["id"]

    client.post("/api/logout")
    login(client, admin)
    pending = client.get("/admin/withdrawals").get_json()["withdrawals"]
    assert [w["id"] for w in pending] == [withdrawal_id]
    assert pending[0]["email"] == user.email

    assert client.post(f"/admin/withdrawals/{withdrawal_id}/approve").status_code == 200
    assert db.session.get(WithdrawalRequest, withdrawal_id).status == "approved"
    assert balance_of(user.id) == Decimal("700.00")


def test_admin_endpoints(client, account, admin, make_account):
    inviter = make_account(balance="1000")
    loner = make_account(balance="1000")
    db.session.add(Referral(referrer_id=inviter.id, referred_id=account.id))
    db.session.commit()
    invited_request = request_withdrawal(Caller.from_user(inviter), "300", *BANK)
    lone_request = request_withdrawal(Caller.from_user(loner), "300", *BANK)

    login(client, account)
    assert client.get("/admin/stats").status_code == 403

    client.post("/api/logout")
    login(client, admin)
    stats = client.get("/admin/stats").get_json()
    assert stats["totalUsers"] == 4

    withdrawals = client.get("/admin/withdrawals").get_json()["withdrawals"]
    flags = {w["id"]: w["hasInvited"] for w in withdrawals}
    assert flags == {invited_request.id: True, lone_request.id: False}

    response = client.post("/admin/notifications", json={
        "userId": account.id, "title": "Hello", "message": "Welcome aboard",
    })
    assert response.status_code == 201

    response = client.post("/admin/sweep")
    assert response.status_code == 200
    assert response.get_json()["result"]["completed"] == 0

    client.post("/api/logout")
    login(client, account)
    notifications = client.get("/api/notifications").get_json()
    assert notifications["unread"] == 1
    note_id = notifications["notifications"][0]["id"]
    assert client.post(f"/api/notifications/{note_id}/read").status_code == 200
    assert client.get("/api/notifications").get_json()["unread"] == 0


def test_unknown_route_is_json_404(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_profile_summary(client, account):
    login(client, account, PASSWORD)
    body = client.get("/api/profile").get_json()
    assert body["balance"] == 0.0
    assert body["referralLink"].endswith(account.referral_code)
    assert body["activeInvestments"] == 0
