from types import SimpleNamespace

from diverwell.rate_limiter import check_rate_limit, get_client_ip


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}


def test_check_rate_limit_counts_within_window():
    results = [check_rate_limit("test:10.0.0.1", limit=2, window_seconds=60) for _ in range(3)]

    assert [allowed for allowed, _, _ in results] == [True, True, False]
    assert results[-1][1] == 2
    assert 0 < results[-1][2] <= 60


def test_client_ip_prefers_forwarded_header():
    forwarded = SimpleNamespace(headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.2"}, client=None)
    direct = SimpleNamespace(headers={}, client=SimpleNamespace(host="10.0.0.7"))

    assert get_client_ip(forwarded) == "203.0.113.9"
    assert get_client_ip(direct) == "10.0.0.7"
    assert get_client_ip(SimpleNamespace(headers={}, client=None)) == "unknown"
