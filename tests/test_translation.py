import pytest

from propertyhub.core.errors import TranslationError, TranslatorNotConfiguredError
from propertyhub.services.translation import retry_delay, translate_properties


class ScriptedTranslator:
    """Replays a list of outcomes, one per translate_batch call."""

    def __init__(self, outcomes=None, configured=True):
        self.outcomes = list(outcomes or [])
        self.configured = configured
        self.calls = []

    def translate_batch(self, texts, target="en", source="es"):
        self.calls.append(list(texts))
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return [f"EN {text}" for text in texts]


def run(translator, properties, **kwargs):
    sleeps = []
    kwargs.setdefault("translate_mode", "all")
    result = translate_properties(
        translator,
        properties,
        initial_cooldown=10,
        batch_delay=8,
        sleep=sleeps.append,
        clock=lambda: 0.0,
        **kwargs,
    )
    return result, sleeps


def test_retry_delay_backs_off_harder_when_throttled():
    throttled = TranslationError("slow down", status_code=429)
    failed = TranslationError("boom", status_code=500)

    assert [retry_delay(throttled, n) for n in (1, 2, 3, 6)] == [15, 30, 60, 240]
    assert [retry_delay(failed, n) for n in (1, 2, 3)] == [5, 10, 15]


def test_translates_descriptions_and_marks_records():
    properties = [{"id": "1", "description": "Casa"}, {"id": "2", "description": ""}, {"id": "3", "description": "Piso"}]
    translator = ScriptedTranslator()

    result, sleeps = run(translator, properties)

    assert translator.calls == [["Casa", "Piso"]]
    first, second, third = result["properties"]
    assert first["description"] == "EN Casa"
    assert first["isTranslated"] is True
    assert first["targetLang"] == "en"
    assert "isTranslated" not in second
    assert third["description"] == "EN Piso"
    assert result["stats"]["translated"] == 2
    assert result["stats"]["noDescription"] == 1
    assert result["stats"]["successRate"] == "66.7%"
    assert sleeps == [10]
    assert properties[0]["description"] == "Casa"


def test_delay_only_between_successful_batches():
    properties = [{"id": str(i), "description": f"texto {i}"} for i in range(7)]

    result, sleeps = run(ScriptedTranslator(), properties)

    assert result["stats"]["translated"] == 7
    assert sleeps == [10, 8, 8]


def test_throttled_batch_is_retried_with_backoff():
    properties = [{"id": "1", "description": "Casa"}]
    throttled = TranslationError("slow down", status_code=429)
    translator = ScriptedTranslator([throttled, throttled])

    result, sleeps = run(translator, properties)

    assert len(translator.calls) == 3
    assert sleeps == [10, 15, 30]
    assert result["properties"][0]["description"] == "EN Casa"


def test_batch_is_skipped_after_max_retries():
    properties = [{"id": str(i), "description": f"texto {i}"} for i in range(4)]
    failures = [TranslationError("boom", status_code=500)] * 2
    translator = ScriptedTranslator(failures)

    result, sleeps = run(translator, properties, max_retries=2)

    stats = result["stats"]
    assert stats["skipped"] == 3
    assert stats["translated"] == 1
    assert stats["noDescription"] == 0
    assert sleeps == [10, 5, 10, 30]
    assert result["properties"][0]["description"] == "texto 0"
    assert result["properties"][3]["description"] == "EN texto 3"


def test_limit_mode_only_touches_the_first_records():
    properties = [{"id": str(i), "description": f"texto {i}"} for i in range(5)]

    result, _ = run(ScriptedTranslator(), properties, translate_mode="limit", translate_limit=2)

    assert len(result["properties"]) == 5
    assert result["stats"]["processed"] == 2
    assert result["stats"]["translateLimit"] == 2
    assert [p.get("isTranslated", False) for p in result["properties"]] == [True, True, False, False, False]


def test_unconfigured_translator_fails_before_waiting():
    sleeps = []
    with pytest.raises(TranslatorNotConfiguredError):
        translate_properties(ScriptedTranslator(configured=False), [{"description": "Casa"}], sleep=sleeps.append)
    assert sleeps == []


def test_oversized_batches_are_split_to_the_client_limit():
    properties = [{"id": str(i), "description": f"texto {i}"} for i in range(4)]
    translator = ScriptedTranslator()

    result, _ = run(translator, properties, batch_size=4)

    assert [len(call) for call in translator.calls] == [3, 1]
    assert result["stats"]["translated"] == 4
    assert result["stats"]["noDescription"] == 0
    assert result["stats"]["batchSize"] == 3
