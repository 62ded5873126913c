# -*- coding: utf-8 -*-
"""
Assembly of query results into one CSV stream.

A query job can produce several batches (PK chunking) and each batch can
produce several result segments (the service caps segment size). Every
segment is a complete CSV file with its own header line. This module
stitches the segments together into one stream that has:

    - exactly one header line, the first non-blank line seen,
    - no junk lines ("Records not found for this query", '#' comments),
    - no blank lines,
    - every line terminated by exactly one newline.

The work is done lazily: segments are opened one at a time, in
enumeration order, and never buffered whole. Lines flow through a small
pipeline of stages that share a MergeState, so the recorded header is
one piece of state for the whole merge rather than per segment.
"""

import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from tqdm.auto import tqdm

from .batches import BatchEnumerator, ResultLocator


NEWLINE = b'\n'

DEFAULT_JUNK_PATTERNS = (
    re.compile(rb'Records not found for this query'),
    re.compile(rb'^#'),
)


#=============================================================================
# Line Pipeline
#=============================================================================

@dataclass
class MergeState:
    """Rolling state shared by every stage across all segments of one merge."""

    header: Optional[bytes] = None
    segments: int = 0
    lines_in: int = 0
    lines_out: int = 0
    junk_dropped: int = 0
    headers_dropped: int = 0


def compile_pattern(pattern):
    """Compile a str, bytes or compiled pattern into a bytes regex."""
    if isinstance(pattern, re.Pattern):
        if isinstance(pattern.pattern, str):
            return re.compile(pattern.pattern.encode('utf-8'), pattern.flags & ~re.UNICODE)
        return pattern
    if isinstance(pattern, str):
        pattern = pattern.encode('utf-8')
    return re.compile(pattern)


class JunkLineFilter:
    """Drops lines matching any registered pattern (searched anywhere in the line)."""

    def __init__(self, patterns=DEFAULT_JUNK_PATTERNS):
        self.patterns = [compile_pattern(p) for p in patterns]

    def add_pattern(self, pattern):
        self.patterns.append(compile_pattern(pattern))

    def is_junk(self, line: bytes) -> bool:
        return any(p.search(line) for p in self.patterns)

    def __call__(self, state: MergeState, line: bytes) -> Optional[bytes]:
        if self.is_junk(line):
            state.junk_dropped += 1
            return None
        return line


def deduplicate_header(state: MergeState, line: bytes) -> Optional[bytes]:
    """
    Record the first non-blank line as the header and drop later copies of it.

    Comparison is exact bytes. Whitespace-only lines are dropped.
    """
    if not line.strip():
        return None
    if state.header is None:
        state.header = line
        return line
    if line == state.header:
        state.headers_dropped += 1
        return None
    return line


def append_newline(state: MergeState, line: bytes) -> bytes:
    return line + NEWLINE


class LinePipeline:
    """Runs each line through the stages in order; a stage returning None drops it."""

    def __init__(self, stages, state: MergeState = None):
        self.stages = list(stages)
        self.state = state or MergeState()

    def process(self, line: bytes) -> Optional[bytes]:
        self.state.lines_in += 1
        for stage in self.stages:
            line = stage(self.state, line)
            if line is None:
                return None
        self.state.lines_out += 1
        return line


def build_pipeline(junk_filter: JunkLineFilter = None, state: MergeState = None) -> LinePipeline:
    """Junk filter, then header de-duplication, then newline re-append."""
    return LinePipeline(
        [junk_filter or JunkLineFilter(), deduplicate_header, append_newline],
        state=state,
    )


#=============================================================================
# Stream Combinators
#=============================================================================

def _close(stream):
    close = getattr(stream, 'close', None)
    if close is not None:
        close()


def concat_streams(producers: Iterable, state: MergeState = None,
                   separator: bytes = NEWLINE) -> Iterator[bytes]:
    """
    Chain byte streams in order, with a separator after each one.

    Each producer is either an iterable of bytes or a zero-argument
    callable returning one; callables are only invoked when their turn
    comes. The separator guarantees a line never spans two streams, even
    when a stream lacks a trailing newline. Every opened stream is closed
    when it is exhausted or when this generator is closed.
    """
    for producer in producers:
        stream = producer() if callable(producer) else producer
        if state is not None:
            state.segments += 1
        try:
            yield from stream
        finally:
            _close(stream)
        yield separator


def split_lines(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """
    Split a chunked byte stream on newlines, dropping empty lines.

    Terminators are stripped. Only the unfinished tail of the current line
    is held between chunks.
    """
    pending = b''
    try:
        for chunk in chunks:
            if not chunk:
                continue
            parts = (pending + chunk).split(NEWLINE)
            pending = parts.pop()
            for line in parts:
                if line:
                    yield line
        if pending:
            yield pending
    finally:
        _close(chunks)


#=============================================================================
# Merged Stream
#=============================================================================

class MergedResultStream:
    """
    Iterator over the merged CSV, one newline-terminated line (bytes) at a time.

    Closing the stream, or leaving its context manager, releases the
    segment connection currently open.
    """

    def __init__(self, producers: Iterable, junk_filter: JunkLineFilter = None):
        self.state = MergeState()
        self.pipeline = build_pipeline(junk_filter, self.state)
        self._lines = split_lines(concat_streams(producers, self.state))
        self._iterator = self._run()

    def _run(self):
        try:
            for line in self._lines:
                out = self.pipeline.process(line)
                if out is not None:
                    yield out
            logging.info(
                f"Merged {self.state.segments} result segment(s) into "
                f"{self.state.lines_out} lines ({self.state.junk_dropped} junk, "
                f"{self.state.headers_dropped} repeated headers dropped)."
            )
        finally:
            self._lines.close()

    @property
    def header(self) -> Optional[bytes]:
        """The header line recorded so far (None until one has been read)."""
        return self.state.header

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        return next(self._iterator)

    def close(self):
        self._iterator.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def read(self) -> bytes:
        """Drain the rest of the stream into memory. Only for small results."""
        return b''.join(self)

    def write_to(self, fileobj, progress=None) -> int:
        """
        Drain the stream into a binary file object.

        Returns:
            int: Number of bytes written.
        """
        written = 0
        with self:
            for line in self:
                fileobj.write(line)
                written += len(line)
                if progress is not None:
                    progress.update(len(line))
        return written

    def save(self, path: str | Path, show_progress: bool = True) -> int:
        """Write the merged CSV to a file, showing a byte counter."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f, tqdm(
                desc="Writing results", unit="B", unit_scale=True,
                disable=not show_progress) as progress:
            written = self.write_to(f, progress=progress)
        logging.info(f"Saved {written} bytes of results to {path}.")
        return written


def merge_streams(producers: Iterable, junk_filter: JunkLineFilter = None) -> MergedResultStream:
    """Merge an ordered sequence of segment streams (or stream producers) into one."""
    return MergedResultStream(producers, junk_filter)


#=============================================================================
# Assembler
#=============================================================================

class ResultStreamAssembler:
    """Builds the merged result stream of a query job."""

    def __init__(self, enumerator: BatchEnumerator, locator: ResultLocator,
                 junk_patterns=DEFAULT_JUNK_PATTERNS):
        self.enumerator = enumerator
        self.locator = locator
        self.junk_filter = JunkLineFilter(junk_patterns)

    def add_junk_pattern(self, pattern):
        """Register an extra pattern; matching lines are dropped from the output."""
        self.junk_filter.add_pattern(pattern)

    def segment_producers(self, job_id: str = None) -> list[Callable[[], Iterator[bytes]]]:
        """
        Resolve every eligible batch and its segments, in enumeration order.

        Returns one zero-argument producer per segment; nothing is downloaded
        until a producer is called.
        """
        producers = []
        for batch in self.enumerator.list_batches(job_id):
            for segment in self.locator.resolve_segments(batch.id, job_id):
                producers.append(self._producer(segment))
        return producers

    def _producer(self, segment):
        def produce():
            return self.locator.fetch_segment(segment.id, segment.batch_id, segment.job_id)
        return produce

    def assemble(self, job_id: str = None) -> MergedResultStream:
        """
        Merge all result segments of a query job into one CSV stream.

        The job is assumed to have finished successfully. A job whose only
        batch is the PK chunking placeholder yields an empty stream.
        """
        producers = self.segment_producers(job_id)
        return merge_streams(producers, JunkLineFilter(self.junk_filter.patterns))
