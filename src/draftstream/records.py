"""Convert turns to and from their stored text form.

A stored assistant record is the response text followed, when there is any
reasoning, by a blank line and the reasoning wrapped in ``<Thinking>``
markers. Loading accepts both marker spellings in any case, plus the
``Thinking:`` separator written by older versions.
"""

from .core import ASSISTANT, USER, StoredTurnRecord, Turn
from .segmenter import OPEN_MARKER_RE, Segments, finalize_segments

OPEN_MARKER = "<Thinking>"
CLOSE_MARKER = "</Thinking>"
LEGACY_SEPARATOR = "Thinking:"


def serialize(response: str, reasoning: str = "") -> str:
    """Join a response and its reasoning into one storable blob.

    A response that contains the legacy separator always gets a marker
    block, even an empty one, so loading never splits it on the separator.
    """
    if not reasoning and LEGACY_SEPARATOR not in response:
        return response
    return f"{response}\n\n{OPEN_MARKER}{reasoning}{CLOSE_MARKER}"


def deserialize(content: str) -> Segments:
    """Split a stored blob back into response and reasoning."""
    if OPEN_MARKER_RE.search(content):
        return finalize_segments(content)
    if LEGACY_SEPARATOR in content:
        response, _, reasoning = content.partition(LEGACY_SEPARATOR)
        return Segments(response.strip(), reasoning.strip(), False)
    return Segments(content.strip(), "", False)


def turn_to_record(turn: Turn) -> StoredTurnRecord | None:
    """Build the record to store for ``turn``, or None if nothing to store.

    Failed assistant turns are stored with the text streamed before the
    failure, never with the error message shown in its place.
    """
    if turn.role == USER:
        if not turn.response_text.strip():
            return None
        return StoredTurnRecord(role=USER, content=turn.response_text, created_at=turn.created_at)

    response = turn.partial_response if turn.failed else turn.response_text
    if not response.strip():
        return None
    return StoredTurnRecord(
        role=ASSISTANT,
        content=serialize(response, turn.reasoning_text),
        created_at=turn.created_at,
    )


def record_to_turn(record: StoredTurnRecord, turn_id: str) -> Turn:
    """Rebuild a finalized turn from a stored record."""
    turn = Turn(id=turn_id, role=record.role)
    if record.created_at is not None:
        turn.created_at = record.created_at
    if record.role == ASSISTANT:
        parts = deserialize(record.content)
        turn.response_text = parts.response
        turn.reasoning_text = parts.reasoning
    else:
        turn.response_text = record.content
    return turn
