def test_healthcheck(api_client):
    response = api_client.get("/api/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["embedding_backend"] == "hash"
