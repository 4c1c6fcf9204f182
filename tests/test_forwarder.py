import requests

from service.forwarder import Forwarder

READING = {"temperature": 24.0, "humidity": 51.0, "timestamp": "2024-05-01T12:00:00.000Z"}


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


def test_inactive_without_flag_or_url():
    assert Forwarder("http://main:3000").forward(READING) is None
    assert Forwarder(None, enabled=True).forward(READING) is None


def test_posts_reading_with_timeout(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return FakeResponse(200)

    monkeypatch.setattr(requests, "post", fake_post)
    forwarder = Forwarder("http://main:3000", enabled=True, timeout_s=2.0, port=4001)

    worker = forwarder.forward(READING)
    worker.join(5.0)

    assert calls == [
        (
            "http://main:3000/api/sensor-data",
            {"ip": "localhost:4001", "temperature": 24.0, "humidity": 51.0, "timestamp": "2024-05-01T12:00:00.000Z"},
            2.0,
        )
    ]


def test_errors_are_dropped(monkeypatch):
    def refused(url, json=None, timeout=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests, "post", refused)
    forwarder = Forwarder("http://main:3000", enabled=True)

    assert forwarder._post(forwarder.build_payload(READING)) is False


def test_non_200_is_not_success(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, json=None, timeout=None: FakeResponse(503))
    forwarder = Forwarder("http://main:3000", enabled=True)

    assert forwarder._post(forwarder.build_payload(READING)) is False
