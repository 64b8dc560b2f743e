from src.services.notification_service import NotificationService


def test_events_reach_listeners():
    service = NotificationService()
    received = []
    service.subscribe(received.append)

    service.application_started("user-1", "Backend Engineer", "Acme")
    service.application_failed("user-1", "Backend Engineer", "Acme", "timeout", final=True)

    assert [event["event"] for event in received] == ["application_started", "application_failed"]
    assert received[1]["final"] is True
    assert received[1]["error"] == "timeout"


def test_failing_listener_is_isolated(caplog):
    service = NotificationService()
    received = []

    def broken(message):
        raise RuntimeError("smtp down")

    service.subscribe(broken)
    service.subscribe(received.append)

    message = service.application_completed("user-1", "Backend Engineer", "Acme", "https://acme.com/thanks")

    assert message["confirmation_url"] == "https://acme.com/thanks"
    assert len(received) == 1
    assert "smtp down" in caplog.text
