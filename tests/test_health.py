import pytest
from fastapi import status

def test_health_check(client):
    """Test the /health endpoint returns 200 and up status."""
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "up"
    assert data["environment"] == "testing"
    assert "version" in data
    assert "timestamp" in data

def test_readiness_check(client):
    """Test the /readiness endpoint returns 200 and database status."""
    response = client.get("/readiness")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ready"
    assert data["components"]["database"] == "connected"

def test_root_endpoint(client):
    """Test the API root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "OKR Performance Management API" in response.json()["message"]

def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers

def test_missing_token_is_rejected(client):
    response = client.get("/api/reviews/me/active")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False

def test_garbage_token_is_rejected(client):
    response = client.get("/api/reviews/me/active", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["msg"] == "Could not validate credentials"

def test_expired_token_is_reported(client, employee_user):
    from datetime import timedelta
    from okrapp.services.auth import create_access_token

    token = create_access_token({"sub": employee_user.id, "role": "EMPLOYEE"}, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/reviews/me/active", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["msg"] == "TOKEN_EXPIRED"
