import pytest
import requests

from propertyhub.core.deps import get_translator
from propertyhub.core.errors import TranslationError, TranslatorNotConfiguredError
from propertyhub.main import app
from propertyhub.services.translator import TranslatorClient, estimate_character_count


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def translations(*texts):
    return [{"translations": [{"text": text, "to": "en"}]} for text in texts]


def make_client(responses, key="secret"):
    sleeps = []
    session = FakeSession(responses)
    client = TranslatorClient(key, region="westeurope", session=session, sleep=sleeps.append, clock=FakeClock())
    return client, session, sleeps


def test_batch_maps_results_back_to_input_positions():
    client, session, _ = make_client([FakeResponse(payload=translations("Nice house", "Sea view"))])

    result = client.translate_batch(["Casa  bonita\n", "", "Vistas al mar"])

    assert result == ["Nice house", "", "Sea view"]
    call = session.calls[0]
    assert call["url"] == "https://api.cognitive.microsofttranslator.com/translate"
    assert call["params"] == {"api-version": "3.0", "from": "es", "to": "en"}
    assert call["headers"]["Ocp-Apim-Subscription-Key"] == "secret"
    assert call["headers"]["Ocp-Apim-Subscription-Region"] == "westeurope"
    assert call["json"] == [{"text": "Casa bonita"}, {"text": "Vistas al mar"}]


def test_only_three_texts_per_call_and_long_texts_are_capped():
    client, session, _ = make_client([FakeResponse(payload=translations("a", "b", "c"))])

    client.translate_batch(["x" * 3500, "b", "c", "d"])

    sent = session.calls[0]["json"]
    assert len(sent) == 3
    assert sent[0]["text"] == "x" * 3000 + "..."


def test_missing_translation_falls_back_to_input():
    client, _, _ = make_client([FakeResponse(payload=[])])
    assert client.translate_batch(["hola"]) == ["hola"]


def test_all_empty_texts_skip_the_api():
    client, session, _ = make_client([])
    assert client.translate_batch(["  ", ""]) == ["", ""]
    assert session.calls == []


def test_missing_key_raises():
    client, _, _ = make_client([], key="")
    with pytest.raises(TranslatorNotConfiguredError):
        client.translate_batch(["hola"])


def test_throttled_response_adds_cooldown_and_raises():
    client, _, sleeps = make_client([FakeResponse(429, text="Too Many Requests")])

    with pytest.raises(TranslationError) as excinfo:
        client.translate_batch(["hola"])

    assert excinfo.value.status_code == 429
    assert excinfo.value.is_rate_limited
    assert client.failure_count == 1
    assert sleeps[-1] == pytest.approx(30.0)


def test_recent_failure_triggers_cooldown_before_next_call():
    client, _, sleeps = make_client([FakeResponse(500, text="boom"), FakeResponse(payload=translations("hi"))])

    with pytest.raises(TranslationError):
        client.translate_batch(["hola"])
    sleeps.clear()
    client.translate_batch(["hola"])

    assert sleeps[0] == pytest.approx(10.0)
    assert client.failure_count == 0


def test_calls_are_spaced_two_seconds_apart():
    client, _, sleeps = make_client([FakeResponse(payload=translations("a")), FakeResponse(payload=translations("b"))])

    client.translate_batch(["uno"])
    client.translate_batch(["dos"])

    assert sleeps == [pytest.approx(2.0)]


def test_transport_errors_become_translation_errors():
    client, _, _ = make_client([requests.ConnectionError("down")])
    with pytest.raises(TranslationError):
        client.translate_batch(["hola"])
    assert client.failure_count == 1


def test_unreadable_body_counts_as_a_failure():
    client, _, _ = make_client([FakeResponse(200, payload=ValueError("Expecting value"), text="<html>")])

    with pytest.raises(TranslationError):
        client.translate_batch(["hola"])
    assert client.failure_count == 1


def test_translate_text_returns_input_for_blank_text():
    client, session, _ = make_client([])
    assert client.translate_text("   ") == "   "
    assert session.calls == []


def test_rate_limit_status_reports_counters():
    client, _, _ = make_client([FakeResponse(payload=translations("a"))])
    client.translate_batch(["uno"])

    status = client.rate_limit_status()
    assert status["requestCount"] == 1
    assert status["maxRequests"] == 20
    assert status["lastFailure"] is None


def test_estimate_counts_descriptions():
    estimate = estimate_character_count([{"description": "abcd"}, {"description": " "}, {"description": "ab"}, {}])

    assert estimate["descriptionCount"] == 2
    assert estimate["totalCharacters"] == 6
    assert estimate["avgCharsPerDescription"] == 3
    assert estimate["estimatedBatches"] == 1
    assert estimate["estimatedCost"] == "FREE"


def test_translate_route_without_key(admin_client):
    resp = admin_client.post("/api/translate/single", json={"text": "Casa bonita"})
    assert resp.status_code == 503


def test_translate_routes_use_the_injected_client(admin_client):
    client, _, _ = make_client([FakeResponse(payload=translations("Nice house"))])
    app.dependency_overrides[get_translator] = lambda: client

    resp = admin_client.post("/api/translate/single", json={"text": "Casa bonita"})

    assert resp.status_code == 200
    assert resp.json()["data"]["translatedText"] == "Nice house"
    status = admin_client.get("/api/translate/status").json()["data"]
    assert status["requestCount"] == 1


def test_translate_upstream_error_is_500(admin_client):
    client, _, _ = make_client([FakeResponse(403, text="Forbidden")])
    app.dependency_overrides[get_translator] = lambda: client

    resp = admin_client.post("/api/translate/batch", json={"texts": ["hola"]})

    assert resp.status_code == 500
    assert resp.json()["detail"]["error"] == "Batch translation failed"


def test_estimate_route(admin_client):
    resp = admin_client.post("/api/translate/estimate", json={"properties": [{"description": "abc"}]})
    assert resp.json()["data"]["descriptionCount"] == 1


def test_translate_requires_admin(client):
    assert client.post("/api/translate/estimate", json={"properties": []}).status_code == 401
