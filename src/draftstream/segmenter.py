"""Split streamed model output into response and reasoning channels.

Generated text may carry an internal reasoning block wrapped in paired
markers. Two spellings are accepted, in any letter case:

    <think> ... </think>
    <Thinking> ... </Thinking>

Classification always re-reads the whole buffer accumulated so far rather
than the newest fragment. A marker split across two network chunks simply
fails to match until both halves have arrived; until then the partial text
is shown as response and is reclassified on the next fragment.

Only the first marker pair is extracted. Marker text after a closed pair is
left in the response verbatim.
"""

import re
from dataclasses import dataclass

OPEN_MARKER_RE = re.compile(r"<think(?:ing)?>", re.IGNORECASE)
CLOSE_MARKER_RE = re.compile(r"</think(?:ing)?>", re.IGNORECASE)

# What happens to an opening marker that is never closed once the stream ends.
DANGLING_SPLIT = "split"  # keep text after the marker as reasoning
DANGLING_PLAIN = "plain"  # show the whole buffer as response
DANGLING_POLICIES = (DANGLING_SPLIT, DANGLING_PLAIN)


@dataclass(frozen=True)
class Segments:
    """Result of classifying a buffer."""

    response: str = ""
    reasoning: str = ""
    inside_reasoning: bool = False


def _marker_at(buffer: str, span: tuple[int, int]) -> bool:
    return OPEN_MARKER_RE.fullmatch(buffer, span[0], span[1]) is not None


def segment(
    buffer: str,
    previous: Segments | None = None,
    open_span: tuple[int, int] | None = None,
) -> Segments:
    """Classify ``buffer`` into response and reasoning text.

    ``previous`` is the result of the last call for the same stream and
    ``open_span`` the ``(start, end)`` offsets where its opening marker was
    seen. Both are optional; with a growing buffer the result is the same
    without them.
    """
    remembered = open_span
    if open_span is not None and not _marker_at(buffer, open_span):
        open_span = None
    if open_span is None:
        match = OPEN_MARKER_RE.search(buffer)
        if match:
            open_span = match.span()

    if open_span is not None:
        start, end = open_span
        before = buffer[:start].strip()
        closing = CLOSE_MARKER_RE.search(buffer, end)
        if closing is None:
            return Segments(before, buffer[end:].strip(), True)
        after = buffer[closing.end():].strip()
        return Segments(
            f"{before} {after}".strip(),
            buffer[end:closing.start()].strip(),
            False,
        )

    if previous is not None and previous.inside_reasoning and remembered is not None:
        # Marker no longer visible but we were inside a block: keep the
        # response we had and treat the rest of the buffer as reasoning.
        return Segments(previous.response, buffer[remembered[1]:].strip(), True)

    return Segments(buffer.strip(), "", False)


def finalize_segments(buffer: str, dangling_open: str = DANGLING_SPLIT) -> Segments:
    """Classify a complete buffer after the stream has closed.

    A matched pair or plain text classify exactly as while streaming. An
    opening marker that never closed is resolved by ``dangling_open``.
    """
    result = segment(buffer)
    if not result.inside_reasoning:
        return result
    if dangling_open == DANGLING_PLAIN:
        return Segments(buffer.strip(), "", False)
    return Segments(result.response, result.reasoning, False)


class Segmenter:
    """Incremental driver around :func:`segment` for one stream."""

    def __init__(self, dangling_open: str = DANGLING_SPLIT):
        if dangling_open not in DANGLING_POLICIES:
            raise ValueError(f"Unknown dangling marker policy: {dangling_open!r}")
        self.dangling_open = dangling_open
        self.buffer = ""
        self.result = Segments()
        self._open_span: tuple[int, int] | None = None

    def feed(self, fragment: str) -> Segments:
        """Append a fragment and reclassify the whole buffer."""
        self.buffer += fragment
        if self._open_span is None:
            match = OPEN_MARKER_RE.search(self.buffer)
            if match:
                self._open_span = match.span()
        self.result = segment(self.buffer, self.result, self._open_span)
        return self.result

    def finalize(self) -> Segments:
        """Run the closing pass over the complete buffer."""
        self.result = finalize_segments(self.buffer, self.dangling_open)
        return self.result
