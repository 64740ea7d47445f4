"""Tests for the batch translator."""
import asyncio
import copy
from types import SimpleNamespace

from ai_translate.catalog import Catalog, StringUnit
from ai_translate.openai_utils import TranslationClient
from ai_translate.translator import BatchTranslator, Outcome, Progress, chunked


class FakeClient:
    """Records calls and answers '[<target>]<text>', or None for texts in `fail`."""

    def __init__(self, fail=(), track_concurrency=False):
        self.fail = set(fail)
        self.calls = []
        self.track_concurrency = track_concurrency
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate(self, text, source, target, context=None):
        self.calls.append((text, source, target, context))
        if self.track_concurrency:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            await asyncio.sleep(0)
            self.in_flight -= 1
        if text in self.fail:
            return None
        return f"[{target}]{text}"


def _catalog(strings, source="en"):
    return Catalog.from_dict({"sourceLanguage": source, "strings": strings})


def _unit(value, state="translated"):
    return {"stringUnit": {"state": state, "value": value}}


def _run(translator, cat):
    return asyncio.run(translator.run(cat))


GREETING = {"greeting": {"localizations": {"en": _unit("Hello")}}}


class TestEndToEnd:
    def test_adds_missing_language(self):
        cat = _catalog(copy.deepcopy(GREETING))
        client = FakeClient()
        stats = _run(BatchTranslator(client, ["fr"]), cat)

        locs = cat.strings["greeting"].localizations
        assert locs["fr"].string_unit == StringUnit("translated", "[fr]Hello")
        assert locs["en"].string_unit == StringUnit("translated", "Hello")
        assert stats[Outcome.TRANSLATED] == 1

    def test_target_equal_to_source_untouched(self):
        cat = _catalog(copy.deepcopy(GREETING))
        client = FakeClient()
        stats = _run(BatchTranslator(client, ["en"]), cat)

        assert client.calls == []
        assert cat.strings["greeting"].localizations["en"].string_unit == StringUnit("translated", "Hello")
        assert stats[Outcome.SKIPPED] == 1


class TestDecisions:
    def test_existing_translation_skipped(self):
        cat = _catalog({"greeting": {"localizations": {"en": _unit("Hello"), "fr": _unit("Salut")}}})
        client = FakeClient()
        _run(BatchTranslator(client, ["fr"]), cat)
        assert client.calls == []
        assert cat.strings["greeting"].localizations["fr"].value == "Salut"

    def test_force_retranslates(self):
        cat = _catalog({"greeting": {"localizations": {"en": _unit("Hello"), "fr": _unit("Salut")}}})
        client = FakeClient()
        _run(BatchTranslator(client, ["fr"], force=True), cat)
        assert client.calls == [("Hello", "en", "fr", None)]
        assert cat.strings["greeting"].localizations["fr"].value == "[fr]Hello"

    def test_error_and_stale_states_retranslated(self):
        cat = _catalog({
            "a": {"localizations": {"en": _unit("A"), "fr": _unit("A", "error")}},
            "b": {"localizations": {"en": _unit("B"), "fr": _unit("B?", "needs_review")}},
            "c": {"localizations": {"en": _unit("C"), "fr": _unit("")}},
        })
        client = FakeClient()
        _run(BatchTranslator(client, ["fr"]), cat)
        assert sorted(call[0] for call in client.calls) == ["A", "B", "C"]

    def test_unsupported_format_skipped(self):
        plural = {"variations": {"plural": {"other": _unit("%lld Artikel")}}}
        cat = _catalog({"%lld items": {"localizations": {"en": _unit("%lld items"), "de": plural}}})
        client = FakeClient()
        stats = _run(BatchTranslator(client, ["de"], force=True), cat)
        assert client.calls == []
        assert cat.strings["%lld items"].to_dict()["localizations"]["de"] == plural
        assert stats[Outcome.UNSUPPORTED] == 1

    def test_key_used_when_source_missing(self):
        cat = _catalog({"Settings": {"comment": "Tab title"}})
        client = FakeClient()
        _run(BatchTranslator(client, ["de"]), cat)
        assert client.calls == [("Settings", "en", "de", "Tab title")]
        assert cat.strings["Settings"].localizations["de"].value == "[de]Settings"

    def test_should_translate_false_uses_key(self):
        cat = _catalog({"AppName": {"shouldTranslate": False, "localizations": {"en": _unit("My App")}}})
        client = FakeClient()
        stats = _run(BatchTranslator(client, ["de", "fr"]), cat)
        assert client.calls == []
        for lang in ("de", "fr"):
            assert cat.strings["AppName"].localizations[lang].string_unit == StringUnit("translated", "AppName")
        assert stats[Outcome.NOT_TRANSLATABLE] == 2

    def test_failure_recorded_and_isolated(self):
        cat = _catalog({
            "bad": {"localizations": {"en": _unit("Broken")}},
            "good": {"localizations": {"en": _unit("Fine")}},
        })
        client = FakeClient(fail={"Broken"})
        stats = _run(BatchTranslator(client, ["de", "fr"]), cat)

        for lang in ("de", "fr"):
            assert cat.strings["bad"].localizations[lang].string_unit == StringUnit("error", "Broken")
            assert cat.strings["good"].localizations[lang].string_unit == StringUnit("translated", f"[{lang}]Fine")
        assert stats[Outcome.FAILED] == 2
        assert stats[Outcome.TRANSLATED] == 2

    def test_languages_in_order_per_entry(self):
        cat = _catalog(copy.deepcopy(GREETING))
        client = FakeClient()
        _run(BatchTranslator(client, ["ja", "de", "fr"]), cat)
        assert [call[2] for call in client.calls] == ["ja", "de", "fr"]

    def test_blank_source_stored_unchanged(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)

        openai_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
        cat = _catalog({
            "arrow": {"localizations": {"en": _unit("\u2192")}},
            "spaces": {"localizations": {"en": _unit("  ")}},
        })
        stats = _run(BatchTranslator(TranslationClient(openai_client, "gpt-4o-mini"), ["fr"]), cat)

        assert requests == []
        assert cat.strings["arrow"].localizations["fr"].string_unit == StringUnit("translated", "\u2192")
        assert cat.strings["spaces"].localizations["fr"].string_unit == StringUnit("translated", "  ")
        assert stats[Outcome.TRANSLATED] == 2


class TestConcurrency:
    def test_batches_bound_in_flight_requests(self):
        strings = {f"key{i:02d}": {"localizations": {"en": _unit(f"Text {i}")}} for i in range(12)}
        cat = _catalog(strings)
        client = FakeClient(track_concurrency=True)
        stats = _run(BatchTranslator(client, ["de", "fr"], concurrency=5), cat)

        assert client.max_in_flight <= 5
        assert len(client.calls) == 24
        assert stats.total == 24

    def test_batches_complete_in_sequence(self):
        strings = {f"key{i}": {"localizations": {"en": _unit(f"Text {i}")}} for i in range(4)}
        cat = _catalog(strings)
        client = FakeClient(track_concurrency=True)
        _run(BatchTranslator(client, ["de"], concurrency=2), cat)
        first_batch = {call[0] for call in client.calls[:2]}
        assert first_batch == {"Text 0", "Text 1"}


class TestProgress:
    def test_thresholds(self):
        progress = Progress(total=20)
        assert not progress.advance(1)
        assert progress.advance(1)
        assert progress.last_reported == 10
        assert progress.advance(10)
        assert progress.percentage == 60
        assert not progress.advance(1)
        assert progress.advance(100)
        assert progress.done == 20
        assert progress.percentage == 100

    def test_empty(self):
        assert Progress(total=0).percentage == 100

    def test_checkpoints(self):
        strings = {f"key{i:02d}": {"localizations": {"en": _unit(f"Text {i}")}} for i in range(10)}
        cat = _catalog(strings)
        saved = []
        translator = BatchTranslator(FakeClient(), ["de"], concurrency=1, on_checkpoint=lambda c: saved.append(c))
        _run(translator, cat)
        # One save per 10% step except the last, which the caller handles
        assert len(saved) == 9
        assert all(c is cat for c in saved)


class TestChunked:
    def test_chunked(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunked([], 3) == []
