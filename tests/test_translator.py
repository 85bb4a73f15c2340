import pytest

from conftest import StubTranslationProvider, make_srt, uppercase_dialogue
from subtranslate.core.translator import SubtitleTranslator, split_batches
from subtranslate.parsers.subtitle_parser import SubtitleDocument
from subtranslate.utils.exceptions import TranslationFailed


def test_small_document_is_sent_in_one_call():
    provider = StubTranslationProvider()
    document = SubtitleDocument(make_srt(10))

    result = SubtitleTranslator(provider).translate(document, 'he')

    assert len(provider.calls) == 1
    assert provider.calls[0] == (document.text, 'en', 'he')
    assert result.text == document.text


def test_chunk_round_trip_keeps_count_and_order():
    provider = StubTranslationProvider()
    document = SubtitleDocument(make_srt(2500))

    result = SubtitleTranslator(provider, line_threshold=1000, batch_size=100).translate(document, 'he')

    assert len(provider.calls) == 25
    assert len(result.entries) == 2500
    assert [e.index for e in result.entries] == list(range(1, 2501))
    assert [e.lines for e in result.entries] == [e.lines for e in document.entries]


def test_batches_hold_whole_entries():
    document = SubtitleDocument(make_srt(250))

    batches = split_batches(document, 100)

    assert [len(SubtitleDocument(b).entries) for b in batches] == [100, 100, 50]
    assert batches[1].startswith("101\n")


def test_split_batches_rejects_zero_size():
    with pytest.raises(ValueError):
        split_batches(SubtitleDocument(make_srt(1)), 0)


def test_document_at_threshold_is_not_chunked():
    provider = StubTranslationProvider()
    document = SubtitleDocument(make_srt(250))
    translator = SubtitleTranslator(provider, line_threshold=document.line_count)

    translator.translate(document, 'he')

    assert len(provider.calls) == 1


def test_failed_batch_aborts_whole_translation():
    seen = []

    def fail_on_second(text):
        seen.append(text)
        if len(seen) == 2:
            raise TranslationFailed("boom")
        return text

    provider = StubTranslationProvider(fail_on_second)
    translator = SubtitleTranslator(provider, line_threshold=10, batch_size=5)

    with pytest.raises(TranslationFailed):
        translator.translate(SubtitleDocument(make_srt(20)), 'he')
    assert len(provider.calls) == 2


def test_empty_input_fails_without_calling_provider():
    provider = StubTranslationProvider()

    with pytest.raises(TranslationFailed):
        SubtitleTranslator(provider).translate(SubtitleDocument("  \n"), 'he')
    assert provider.calls == []


def test_empty_reply_fails():
    provider = StubTranslationProvider(lambda text: "\n")
    with pytest.raises(TranslationFailed):
        SubtitleTranslator(provider).translate(SubtitleDocument(make_srt(2)), 'he')


def test_structure_check_is_off_by_default():
    provider = StubTranslationProvider(lambda text: make_srt(1))
    result = SubtitleTranslator(provider).translate(SubtitleDocument(make_srt(3)), 'he')
    assert len(result.entries) == 1


def test_structure_check_rejects_dropped_entries():
    provider = StubTranslationProvider(lambda text: make_srt(1))
    translator = SubtitleTranslator(provider, verify_structure=True)

    with pytest.raises(TranslationFailed):
        translator.translate(SubtitleDocument(make_srt(3)), 'he')


def test_structure_check_accepts_translated_dialogue():
    provider = StubTranslationProvider(uppercase_dialogue)
    translator = SubtitleTranslator(provider, verify_structure=True)

    result = translator.translate(SubtitleDocument(make_srt(3)), 'he')

    assert [e.lines for e in result.entries] == [["HELLO THERE 1"], ["HELLO THERE 2"], ["HELLO THERE 3"]]
