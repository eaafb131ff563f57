import pytest

from backend.gateway.server import create_app, shutdown


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_unknown_route_returns_json(client):
    response = client.get("/does-not-exist")
    assert response.status_code == 404
    assert response.get_json() == {"message": "Not Found"}


def test_unknown_api_route_requires_token(client):
    # The global hook runs before routing, so unknown API paths still need a token
    response = client.get("/api/does-not-exist")
    assert response.status_code == 401


def test_shutdown_stops_sweeper_and_pool(app, scheduler):
    app.extensions["auth"].sweeper.start()

    shutdown(app)

    scheduler.shutdown.assert_called_once_with(wait=False)
    app.extensions["database"].close.assert_called_once()


def test_create_app_without_secret_aborts(monkeypatch, mocker):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    mocker.patch("backend.auth_service.config.load_dotenv")

    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        create_app()
