import threading

import pytest
import re2

from html2json.dom import Document
from html2json.errors import CacheError, ConversionError, RegexCompileError, TypeMismatchError
from html2json.pipes import (
    RegexCache,
    apply_pipe,
    apply_pipes,
    run_pipeline,
    source_value,
    split_source_and_transforms,
)
from html2json.spec import parse_pipe_command, parse_selector_string


def pipes(*tokens):
    return tuple(parse_pipe_command(token) for token in tokens)


@pytest.fixture
def cache() -> RegexCache:
    return RegexCache()


class TestTransforms:
    """Transform pipes applied left to right."""

    def test_trim_then_upper(self, cache):
        assert apply_pipes("  hi  ", pipes("trim", "upper"), cache) == "HI"

    def test_order_matters(self, cache):
        assert apply_pipes("  hi  ", pipes("upper", "substr:0:3"), cache) == "  H"
        assert apply_pipes("  hi  ", pipes("substr:0:3", "upper"), cache) == "  H"
        assert apply_pipes("  hi  ", pipes("trim", "substr:0:1"), cache) == "h"
        assert apply_pipes("  hi  ", pipes("substr:0:1", "trim"), cache) == ""

    def test_lower(self, cache):
        assert apply_pipe("Hello World", parse_pipe_command("lower"), cache) == "hello world"

    @pytest.mark.parametrize("token, expected", [
        ("substr:0:4", "Hell"),
        ("substr:6", "World"),
        ("substr:2:5", "llo"),
        ("substr:5:2", ""),
        ("substr:4:4", ""),
        ("substr:0:100", "Hello World"),
    ])
    def test_substr(self, cache, token, expected):
        assert apply_pipe("Hello World", parse_pipe_command(token), cache) == expected

    def test_substr_counts_characters(self, cache):
        assert apply_pipe("héllo wörld", parse_pipe_command("substr:1:4"), cache) == "éll"

    def test_parse_number(self, cache):
        assert apply_pipe(" 99.99 ", parse_pipe_command("parseAs:number"), cache) == 99.99
        assert apply_pipe("3.14159", parse_pipe_command("parseAs:float"), cache) == 3.14159
        assert apply_pipe("1e3", parse_pipe_command("parseAs:number"), cache) == 1000.0

    def test_parse_number_non_finite_is_null(self, cache):
        assert apply_pipe("NaN", parse_pipe_command("parseAs:number"), cache) is None

    @pytest.mark.parametrize("text", ["abc", "", "1_000", "1,5", "١٢", "１２"])
    def test_parse_number_failure(self, cache, text):
        with pytest.raises(ConversionError):
            apply_pipe(text, parse_pipe_command("parseAs:number"), cache)

    def test_parse_int(self, cache):
        value = apply_pipe(" 42 ", parse_pipe_command("parseAs:int"), cache)
        assert value == 42
        assert isinstance(value, int)
        assert apply_pipe("-7", parse_pipe_command("parseAs:int"), cache) == -7

    @pytest.mark.parametrize("text", ["4.2", "abc", "1_000", "99999999999999999999"])
    def test_parse_int_failure(self, cache, text):
        with pytest.raises(ConversionError) as exc_info:
            apply_pipe(text, parse_pipe_command("parseAs:int"), cache)
        assert exc_info.value.target == "int"

    def test_non_string_input_is_type_mismatch(self, cache):
        with pytest.raises(TypeMismatchError) as exc_info:
            apply_pipes("42", pipes("parseAs:int", "upper"), cache)
        assert exc_info.value.pipe == "upper"


class TestRegexPipe:
    """Regex extraction with optional capture group."""

    def test_capture_group(self, cache):
        pipe = parse_pipe_command(r"regex:\$(\d+\.\d+)")
        assert apply_pipe("Price: $25.00", pipe, cache) == "25.00"

    def test_whole_match_without_group(self, cache):
        pipe = parse_pipe_command(r"regex:\d+")
        assert apply_pipe("abc 123 def", pipe, cache) == "123"

    def test_unmatched_group_falls_back_to_whole_match(self, cache):
        pipe = parse_pipe_command(r"regex:(x)?\d+")
        assert apply_pipe("n 42", pipe, cache) == "42"

    def test_no_match_is_null(self, cache):
        pipe = parse_pipe_command(r"regex:\$(\d+\.\d+)")
        assert apply_pipe("Price: $1,199.99", pipe, cache) is None

    def test_null_short_circuits_following_pipes(self, cache):
        chain = pipes(r"regex:\$(\d+\.\d+)", "parseAs:number", "upper")
        assert apply_pipes("no price here", chain, cache) is None
        assert apply_pipes("Price: $25.00", chain[:2], cache) == 25.0

    def test_invalid_pattern(self, cache):
        with pytest.raises(RegexCompileError) as exc_info:
            apply_pipe("text", parse_pipe_command("regex:(unclosed"), cache)
        assert exc_info.value.pattern == "(unclosed"

    def test_nested_quantifier_runs_in_linear_time(self, cache):
        pipe = parse_pipe_command("regex:^(a+)+$")
        assert apply_pipe("a" * 5000 + "!", pipe, cache) is None
        assert apply_pipe("aaaa", pipe, cache) == "aaaa"


class TestRegexCache:
    """Explicit, injectable regex cache."""

    def test_compiles_once(self, cache):
        first = cache.get(r"\d+")
        assert cache.get(r"\d+") is first
        assert r"\d+" in cache
        assert len(cache) == 1

    def test_caches_are_isolated(self):
        one, two = RegexCache(), RegexCache()
        one.get("a+")
        assert "a+" not in two

    def test_nested_repetition_rejected(self, cache):
        with pytest.raises(RegexCompileError):
            cache.get("((a{100}){100}){100}")

    def test_program_over_memory_budget_rejected(self):
        small = RegexCache(max_size=20_000)
        small.get(r"\d{1,3}")
        with pytest.raises(RegexCompileError):
            small.get(r"\pL{500}")

    def test_failed_compile_not_cached(self, cache):
        with pytest.raises(RegexCompileError):
            cache.get("[")
        assert "[" not in cache

    def test_corrupted_entry_raises(self, cache):
        cache.get("abc")
        cache._patterns["abc"] = re2.compile("xyz")
        with pytest.raises(CacheError):
            cache.get("abc")

    def test_concurrent_lookups(self, cache):
        results = []

        def worker():
            for _ in range(100):
                results.append(cache.get(r"(\w+)@(\w+)"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 800
        assert all(result is results[0] for result in results)
        assert len(cache) == 1


class TestSources:
    """Source pipes decide the starting value."""

    HTML = """
    <div class="item" data-id="7"><span>Price: $25.00</span></div>
    <item><title>Post</title><link>https://example.com/post</item>
    <p>Before<img src="x.png">after image</p>
    """

    @pytest.fixture
    def document(self):
        return Document.parse(self.HTML)

    def test_split(self):
        source, transforms = split_source_and_transforms(pipes("attr:href", "trim"))
        assert source.name == "href"
        assert [str(t) for t in transforms] == ["trim"]
        assert split_source_and_transforms(pipes("trim"))[0] is None

    def test_default_source_is_text(self, document):
        node = document.query_one(None, ".item")
        assert source_value(node, None) == "Price: $25.00"

    def test_attr_source(self, document):
        node = document.query_one(None, ".item")
        assert source_value(node, parse_pipe_command("attr:data-id")) == "7"
        assert source_value(node, parse_pipe_command("attr:missing")) is None

    def test_void_source_reads_following_text(self, document):
        link = document.query_one(None, "item link")
        assert link.text() == ""
        assert source_value(link, parse_pipe_command("void")) == "https://example.com/post"

    def test_void_source_on_regular_element(self, document):
        node = document.query_one(None, ".item span")
        assert source_value(node, parse_pipe_command("void")) == "Price: $25.00"

    def test_void_image(self, document):
        img = document.query_one(None, "img")
        assert source_value(img, parse_pipe_command("void")) == "after image"

    def test_no_node_is_null(self, cache):
        assert run_pipeline(None, pipes("trim", "parseAs:int"), cache) is None

    def test_run_pipeline(self, document, cache):
        field = parse_selector_string("attr:data-id | parseAs:int")
        node = document.query_one(None, ".item")
        assert run_pipeline(node, field.pipes, cache) == 7

    def test_missing_attr_then_transforms_stays_null(self, document, cache):
        node = document.query_one(None, ".item")
        assert run_pipeline(node, pipes("attr:missing", "parseAs:int"), cache) is None
