"""
Merged result stream tests.

Pure tests of the line pipeline and stream combinators; no HTTP involved.
"""

import re

import pytest

from sf_bulk_manager.core.bulk.results import (
    JunkLineFilter,
    LinePipeline,
    MergeState,
    append_newline,
    concat_streams,
    deduplicate_header,
    merge_streams,
    split_lines,
)


def merged(*segments, junk_filter=None):
    return merge_streams([[s] if isinstance(s, bytes) else s for s in segments],
                         junk_filter).read()


# ============================================================================
# TestHeaderDeduplication
# ============================================================================

class TestHeaderDeduplication:
    """Exactly one header line, whatever the number of segments."""

    @pytest.mark.parametrize("n_segments", [1, 2, 5])
    def test_single_header_for_n_segments(self, n_segments):
        segments = [f"Id,Name\n00{i},Row{i}\n".encode() for i in range(n_segments)]
        output = merged(*segments)
        lines = output.split(b"\n")
        assert lines.count(b"Id,Name") == 1
        assert lines[0] == b"Id,Name"
        assert output == b"Id,Name\n" + b"".join(
            f"00{i},Row{i}\n".encode() for i in range(n_segments))

    def test_header_state_is_shared_across_segments(self):
        state = MergeState()
        assert deduplicate_header(state, b"Id,Name") == b"Id,Name"
        assert deduplicate_header(state, b"001,Foo") == b"001,Foo"
        assert deduplicate_header(state, b"Id,Name") is None
        assert state.header == b"Id,Name"
        assert state.headers_dropped == 1

    def test_comparison_is_exact_bytes(self):
        output = merged(b"Id,Name\n001,Foo\n", b"id,name\n002,Bar\n", b"Id,Name \n003,Baz\n")
        assert output == b"Id,Name\n001,Foo\nid,name\n002,Bar\nId,Name \n003,Baz\n"

    def test_header_repeated_inside_a_segment_is_dropped(self):
        assert merged(b"Id,Name\n001,Foo\nId,Name\n002,Bar\n") == b"Id,Name\n001,Foo\n002,Bar\n"

    def test_header_is_first_non_junk_line(self):
        output = merged(b"# generated\nId,Name\n001,Foo\n", b"Id,Name\n002,Bar\n")
        assert output == b"Id,Name\n001,Foo\n002,Bar\n"


# ============================================================================
# TestJunkFiltering
# ============================================================================

class TestJunkFiltering:

    def test_records_not_found_line_dropped(self):
        output = merged(b"Id,Name\n001,Foo\n", b"Records not found for this query\n")
        assert output == b"Id,Name\n001,Foo\n"

    def test_only_sentinel_gives_empty_output(self):
        assert merged(b"Records not found for this query") == b""

    def test_comment_lines_dropped(self):
        output = merged(b"Id,Name\n#comment\n001,Foo\n# another\n")
        assert output == b"Id,Name\n001,Foo\n"

    def test_hash_inside_line_is_kept(self):
        assert merged(b"Id,Name\n001,Foo#1\n") == b"Id,Name\n001,Foo#1\n"

    def test_non_junk_lines_keep_relative_order(self):
        output = merged(b"H\nc\n#x\na\n", b"H\nb\nRecords not found for this query\nd\n")
        assert output.split(b"\n")[:-1] == [b"H", b"c", b"a", b"b", b"d"]

    def test_additional_patterns(self):
        junk = JunkLineFilter()
        junk.add_pattern("^WARNING:")
        junk.add_pattern(re.compile(r"DROP ME"))
        junk.add_pattern(rb"^--")
        output = merged(b"Id\nWARNING: slow\n1\nplease DROP ME\n-- note\n2\n", junk_filter=junk)
        assert output == b"Id\n1\n2\n"

    def test_filter_counts_dropped_lines(self):
        state = MergeState()
        junk = JunkLineFilter()
        assert junk(state, b"#x") is None
        assert junk(state, b"Records not found for this query") is None
        assert junk(state, b"001,Foo") == b"001,Foo"
        assert state.junk_dropped == 2


# ============================================================================
# TestBlankLinesAndNewlines
# ============================================================================

class TestBlankLinesAndNewlines:

    def test_blank_and_whitespace_lines_dropped(self):
        output = merged(b"\n\nId,Name\n\n001,Foo\n   \n\t\n002,Bar\n\n")
        assert output == b"Id,Name\n001,Foo\n002,Bar\n"

    def test_missing_trailing_newline_does_not_join_segments(self):
        assert merged(b"Id,Name\n001,Foo", b"Id,Name\n002,Bar") == b"Id,Name\n001,Foo\n002,Bar\n"

    def test_every_line_has_exactly_one_newline(self):
        output = merged(b"Id,Name\r\n001,Foo\r\n", b"Id,Name\r\n002,Bar\r\n")
        assert output == b"Id,Name\r\n001,Foo\r\n002,Bar\r\n"
        assert b"\n\n" not in output

    def test_append_newline_stage(self):
        assert append_newline(MergeState(), b"abc") == b"abc\n"


# ============================================================================
# TestStreaming
# ============================================================================

class TestStreaming:

    def test_lines_split_across_chunks(self):
        chunks = [b"Id,Na", b"me\n00", b"1,Foo\n002", b",Bar"]
        assert list(split_lines(chunks)) == [b"Id,Name", b"001,Foo", b"002,Bar"]

    def test_empty_chunks_ignored(self):
        assert list(split_lines([b"", b"a\n", b"", b"b"])) == [b"a", b"b"]

    def test_zero_segments_gives_empty_stream(self):
        stream = merge_streams([])
        assert stream.read() == b""
        assert stream.header is None

    def test_concat_adds_separator_after_each_stream(self):
        assert b"".join(concat_streams([[b"a"], [b"b"]])) == b"a\nb\n"

    def test_producers_are_called_lazily_in_order(self):
        calls = []

        def producer(name, body):
            def produce():
                calls.append(name)
                return iter([body])
            return produce

        stream = merge_streams([producer("s1", b"H\n1\n"), producer("s2", b"H\n2\n")])
        assert calls == []
        assert next(stream) == b"H\n"
        assert calls == ["s1"]
        assert stream.read() == b"1\n2\n"
        assert calls == ["s1", "s2"]

    def test_early_close_releases_open_segment(self):
        closed = []

        def segment(name):
            try:
                yield b"Id,Name\n"
                yield b"001,Foo\n"
                yield b"002,Bar\n"
            finally:
                closed.append(name)

        opened = []

        def producer(name):
            def produce():
                opened.append(name)
                return segment(name)
            return produce

        with merge_streams([producer("s1"), producer("s2")]) as stream:
            assert next(stream) == b"Id,Name\n"
        assert closed == ["s1"]
        assert opened == ["s1"]

    def test_mid_stream_error_propagates(self):
        def failing():
            yield b"Id,Name\n001,Foo\n"
            raise IOError("connection reset")

        stream = merge_streams([failing()])
        assert next(stream) == b"Id,Name\n"
        with pytest.raises(IOError):
            stream.read()

    def test_write_to_file(self, tmp_path):
        path = tmp_path / "out" / "results.csv"
        written = merge_streams([[b"Id\n1\n"], [b"Id\n2\n"]]).save(path, show_progress=False)
        assert path.read_bytes() == b"Id\n1\n2\n"
        assert written == len(b"Id\n1\n2\n")

    def test_pipeline_stage_order(self):
        pipeline = LinePipeline([JunkLineFilter(), deduplicate_header, append_newline])
        assert pipeline.process(b"#Id") is None
        assert pipeline.process(b"Id") == b"Id\n"
        assert pipeline.process(b"Id") is None
        assert pipeline.process(b"1") == b"1\n"
        assert pipeline.state.lines_in == 4
        assert pipeline.state.lines_out == 2
