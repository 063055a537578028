from fastapi.testclient import TestClient
from sqlalchemy import func, select

from fleetkeeper.main import create_app
from fleetkeeper.models import AuthUser

from conftest import login, make_settings, register, sign_up_and_in


def test_protected_page_redirects_to_login(client) -> None:
    response = client.get("/", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_register_redirects_to_login_with_message(client) -> None:
    response = register(client, "owner@acme.test")

    assert response.status_code == 303
    assert response.headers["location"] == "/login?registered=1"

    page = client.get(response.headers["location"])
    assert "Registration successful! Please sign in with your new account." in page.text


def test_registration_leaves_browser_signed_out(client) -> None:
    register(client, "owner@acme.test")

    response = client.get("/trucks", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_register_shows_field_errors(client) -> None:
    response = register(client, "owner@acme.test", confirm_password="different")

    assert response.status_code == 400
    assert "Passwords must match" in response.text


def test_duplicate_registration_rejected(client, app) -> None:
    register(client, "owner@acme.test")

    response = register(client, "owner@acme.test", company_name="Copycat Freight")

    assert response.status_code == 400
    assert "Failed to create an account. An account with this email already exists" in response.text
    with app.state.session_factory() as db:
        assert db.scalar(select(func.count()).select_from(AuthUser)) == 1


def test_login_with_wrong_password(client) -> None:
    register(client, "owner@acme.test")

    response = login(client, "owner@acme.test", "not-the-password")

    assert response.status_code == 400
    assert "Failed to sign in. Invalid login credentials" in response.text


def test_login_validation_errors(client) -> None:
    response = client.post("/login", data={"email": "nope", "password": ""}, follow_redirects=False)

    assert response.status_code == 400
    assert "Invalid email address" in response.text
    assert "Password is required" in response.text


def test_login_reaches_dashboard(client) -> None:
    sign_up_and_in(client, "owner@acme.test")

    response = client.get("/")

    assert response.status_code == 200
    assert "Dashboard" in response.text
    assert "Acme Hauling" in response.text


def test_signed_in_user_is_sent_away_from_login(signed_in) -> None:
    for path in ("/login", "/register"):
        response = signed_in.get(path, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/"


def test_logout(signed_in) -> None:
    response = signed_in.post("/logout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    assert signed_in.get("/", follow_redirects=False).headers["location"] == "/login"


def test_auth_forms_are_rate_limited() -> None:
    app = create_app(make_settings(AUTH_RATE_LIMIT_PER_MINUTE=2))

    with TestClient(app, raise_server_exceptions=False) as client:
        statuses = [login(client, "owner@acme.test").status_code for _ in range(3)]
        page = client.get("/login")

    assert statuses == [400, 400, 429]
    assert page.status_code == 200
