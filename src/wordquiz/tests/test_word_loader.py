"""Tests for word bank loading."""
import asyncio
from pathlib import Path

import httpx
import pytest

from wordquiz.exceptions import WordBankValidationError, WordSourceError
from wordquiz.services.fallback_words import get_fallback_bank
from wordquiz.services.word_loader import (
    FileWordSource,
    HttpWordSource,
    WordBankLoader,
    parse_word_bank,
)

BASE_URL = "https://words.example.com/words"


def fill_source(source, word_data, skip=()) -> None:
    """Give the stub source a bank for every pair except those skipped."""
    for difficulty in ("easy", "medium", "hard"):
        for category in ("general", "academic", "business"):
            if (difficulty, category) not in skip:
                source.add(difficulty, category, word_data(4, difficulty, category))


def test_parse_word_bank(word_data) -> None:
    data = word_data(3, "medium", "academic")

    bank = parse_word_bank("medium", "academic", data)

    assert bank.key == "medium_academic"
    assert len(bank) == 3
    assert bank.terms() == [word["word"] for word in data["words"]]
    assert bank[0].incorrect_definitions == tuple(data["words"][0]["incorrect_options"])
    assert bank[0].to_dict() == data["words"][0]


@pytest.mark.parametrize("data", [None, [], {"words": "Happy"}, {"category": "general"}, {"words": []}])
def test_parse_word_bank_rejects_bad_document(data) -> None:
    with pytest.raises(WordBankValidationError):
        parse_word_bank("easy", "general", data)


@pytest.mark.parametrize(
    "field, value",
    [
        ("word", ""),
        ("word", None),
        ("pronunciation", "   "),
        ("correct_definition", 42),
        ("incorrect_options", ["one", "two"]),
        ("incorrect_options", "one, two, three"),
        ("incorrect_options", ["one", "", "three"]),
    ],
)
def test_parse_word_bank_rejects_bad_entry(word_data, field: str, value) -> None:
    """Test one bad entry rejects the whole bank."""
    data = word_data(3)
    data["words"][1][field] = value

    with pytest.raises(WordBankValidationError) as exc_info:
        parse_word_bank("easy", "general", data)

    assert exc_info.value.index == 1


def test_parse_word_bank_accepts_extra_options(word_data) -> None:
    data = word_data(1)
    data["words"][0]["incorrect_options"].append("A fourth wrong answer")

    bank = parse_word_bank("easy", "general", data)

    assert len(bank[0].incorrect_definitions) == 4


def test_fallback_bank_for_unknown_pair() -> None:
    bank = get_fallback_bank("hard", "business")

    assert bank.difficulty == "hard"
    assert bank.category == "business"
    assert bank.terms() == ["Happy", "Brave"]


def test_fallback_bank_for_known_pair() -> None:
    assert get_fallback_bank("medium", "general").terms() == ["Serendipity"]
    assert get_fallback_bank("hard", "general").terms() == ["Ubiquitous"]


@pytest.mark.asyncio
async def test_file_source(words_dir: Path, write_bank, word_data) -> None:
    data = word_data(2, "easy", "business")
    write_bank("easy", "business", data)
    source = FileWordSource(words_dir)

    assert await source.fetch("easy", "business") == data


@pytest.mark.asyncio
async def test_file_source_missing_file(words_dir: Path) -> None:
    source = FileWordSource(words_dir)

    with pytest.raises(WordSourceError) as exc_info:
        await source.fetch("hard", "academic")

    assert exc_info.value.difficulty == "hard"
    assert exc_info.value.category == "academic"


@pytest.mark.asyncio
async def test_file_source_invalid_json(words_dir: Path, write_bank) -> None:
    write_bank("easy", "general", "{not json")

    with pytest.raises(WordSourceError):
        await FileWordSource(words_dir).fetch("easy", "general")


@pytest.mark.asyncio
async def test_load_caches_bank(loader: WordBankLoader, source, word_data) -> None:
    source.add("easy", "general", word_data(3))

    first = await loader.load("easy", "general")
    second = await loader.load("easy", "general")

    assert first.success and first.source == "source"
    assert second.success and second.source == "cache"
    assert second.bank is first.bank
    assert source.calls == [("easy", "general")]
    assert loader.get_cached("easy", "general") is first.bank


@pytest.mark.asyncio
async def test_load_falls_back_when_missing(loader: WordBankLoader, source) -> None:
    result = await loader.load("medium", "general")

    assert not result.success
    assert result.source == "fallback"
    assert "not found" in result.error
    assert result.bank.terms() == ["Serendipity"]
    assert loader.is_degraded("medium", "general")

    cached = await loader.load("medium", "general")
    assert cached.source == "cache"
    assert not cached.success
    assert len(source.calls) == 1


@pytest.mark.asyncio
async def test_load_falls_back_on_invalid_data(loader: WordBankLoader, source, word_data) -> None:
    data = word_data(2)
    del data["words"][0]["pronunciation"]
    source.add("easy", "general", data)

    result = await loader.load("easy", "general")

    assert result.source == "fallback"
    assert result.bank.terms() == ["Happy", "Brave"]


@pytest.mark.asyncio
async def test_concurrent_loads_share_one_fetch(loader: WordBankLoader, source, word_data) -> None:
    source.add("hard", "academic", word_data(3, "hard", "academic"))
    source.gate = asyncio.Event()

    first = asyncio.create_task(loader.load("hard", "academic"))
    second = asyncio.create_task(loader.load("hard", "academic"))
    await asyncio.sleep(0)
    source.gate.set()
    results = await asyncio.gather(first, second)

    assert source.calls == [("hard", "academic")]
    assert results[0].bank is results[1].bank


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_fetch(loader: WordBankLoader, source, word_data) -> None:
    source.add("easy", "business", word_data(3, "easy", "business"))
    source.gate = asyncio.Event()

    first = asyncio.create_task(loader.load("easy", "business"))
    second = asyncio.create_task(loader.load("easy", "business"))
    await asyncio.sleep(0)
    first.cancel()
    await asyncio.sleep(0)
    source.gate.set()
    result = await second

    assert first.cancelled()
    assert result.success
    assert result.source == "source"
    assert len(result.bank) == 3
    assert source.calls == [("easy", "business")]


@pytest.mark.asyncio
async def test_preload_all(loader: WordBankLoader, source, word_data) -> None:
    fill_source(source, word_data, skip={("hard", "business")})
    events = []

    report = await loader.preload_all(on_progress=events.append)

    assert report.success_count == 8
    assert report.failed_count == 1
    assert len(report.details) == 9
    failed = [detail for detail in report.details if not detail["success"]]
    assert failed == [{"difficulty": "hard", "category": "business", "success": False}]
    assert [event["current"] for event in events] == list(range(1, 10))
    assert all(event["total"] == 9 for event in events)
    assert loader.is_degraded("hard", "business")


@pytest.mark.asyncio
async def test_preload_all_limits_concurrency(source, word_data) -> None:
    fill_source(source, word_data)
    source.delay = 0.01
    loader = WordBankLoader(source=source, max_concurrent=3)

    report = await loader.preload_all()

    assert report.success_count == 9
    assert source.max_in_flight <= 3


@pytest.mark.asyncio
async def test_preload_all_survives_unexpected_errors(loader: WordBankLoader, source, word_data) -> None:
    fill_source(source, word_data)
    source.add("easy", "academic", RuntimeError("disk on fire"))

    report = await loader.preload_all()

    assert report.success_count == 8
    assert report.failed_count == 1
    assert loader.get_cached("easy", "academic") is None


@pytest.mark.asyncio
async def test_preload_reports_cached_fallback_as_failed(loader: WordBankLoader, source, word_data) -> None:
    fill_source(source, word_data, skip={("easy", "general")})
    await loader.load("easy", "general")

    report = await loader.preload_all(difficulties=["easy"])

    assert report.success_count == 2
    assert report.failed_count == 1


@pytest.mark.asyncio
async def test_http_source_preload(word_data) -> None:
    """Test a missing remote file falls back while the rest load."""
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        difficulty, filename = request.url.path.split("/")[-2:]
        category = filename.removesuffix(".json")
        requested.append((difficulty, category))
        if (difficulty, category) == ("hard", "business"):
            return httpx.Response(404)
        return httpx.Response(200, json=word_data(3, difficulty, category))

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    loader = WordBankLoader(source=HttpWordSource(BASE_URL, client=client))

    report = await loader.preload_all()
    await loader.aclose()

    assert report.success_count == 8
    assert report.failed_count == 1
    assert len(requested) == 9
    assert loader.is_degraded("hard", "business")
    assert loader.get_cached("hard", "business").terms() == ["Happy", "Brave"]
    assert client.is_closed


@pytest.mark.asyncio
async def test_http_source_not_found() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    source = HttpWordSource(BASE_URL, client=client)

    with pytest.raises(WordSourceError) as exc_info:
        await source.fetch("hard", "business")
    await source.aclose()

    assert "404" in exc_info.value.message


@pytest.mark.asyncio
async def test_http_source_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("general.json"):
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text="<html>not json</html>")

    source = HttpWordSource(BASE_URL + "/", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert source.url_for("easy", "general") == f"{BASE_URL}/easy/general.json"
    with pytest.raises(WordSourceError):
        await source.fetch("easy", "general")
    with pytest.raises(WordSourceError):
        await source.fetch("easy", "business")
    await source.aclose()
