from __future__ import annotations

from marketlens.pipeline.dedupe import deduplicate, positional_similarity


def test_positional_similarity_edges():
    assert positional_similarity("", "abc") == 0.0
    assert positional_similarity("abc", "abc") == 1.0
    assert positional_similarity("abcd", "abxx") == 0.5
    # Shorter string is scored against the longer length.
    assert positional_similarity("ab", "abcd") == 0.5


def test_duplicate_url_keeps_higher_relevance(result_factory):
    low = result_factory("https://a.com/1", title="Solar outlook", relevance=0.4)
    high = result_factory("https://a.com/1", title="Solar outlook", relevance=0.9)

    assert deduplicate([low, high]) == [high]
    assert deduplicate([high, low]) == [high]


def test_duplicate_url_with_equal_relevance_keeps_first(result_factory):
    first = result_factory("https://a.com/1", title="First", relevance=0.5)
    second = result_factory("https://a.com/1", title="Second", relevance=0.5)

    assert deduplicate([first, second]) == [first]


def test_near_duplicate_title_is_dropped(result_factory):
    original = result_factory(
        "https://a.com/1", title="Wind power capacity hits record", content="Alpha " * 20
    )
    copy = result_factory(
        "https://b.com/2", title="Wind power capacity hits records", content="Omega " * 20
    )

    assert deduplicate([original, copy]) == [original]


def test_distinct_results_survive(result_factory):
    a = result_factory("https://a.com/1", title="Battery storage prices", content="Lithium " * 20)
    b = result_factory("https://b.com/2", title="Offshore wind auctions", content="Turbines " * 20)

    out = deduplicate([a, b])

    assert out == [a, b]
    assert len({r.url for r in out}) == len(out)


def test_title_similarity_at_threshold_is_kept(result_factory):
    first = result_factory("https://a.com/1", title="ABCDEFGHIJ", content="Lithium " * 10)
    second = result_factory("https://b.com/2", title="ABCDEFGHxy", content="Turbines " * 10)

    assert positional_similarity(first.title, second.title) == 0.8
    assert deduplicate([first, second]) == [first, second]


def test_content_similarity_at_threshold_is_kept(result_factory):
    body = "0123456789" * 10
    first = result_factory("https://a.com/1", title="Battery outlook", content=body)
    second = result_factory("https://b.com/2", title="Wind auctions", content=body[:90] + "x" * 10)

    assert positional_similarity(first.content, second.content) == 0.9
    assert deduplicate([first, second]) == [first, second]


def test_near_duplicate_content_is_dropped(result_factory):
    body = "0123456789" * 10
    first = result_factory("https://a.com/1", title="Battery outlook", content=body)
    second = result_factory("https://b.com/2", title="Wind auctions", content=body[:95] + "x" * 5)

    assert positional_similarity(first.title, second.title) < 0.8
    assert deduplicate([first, second]) == [first]
