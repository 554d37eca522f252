"""SemanticScannerのテスト"""

from unittest.mock import MagicMock

import pytest

from ai_note.inference import (
    InferenceErrorKind,
    MalformedResponseError,
    RateLimitedError,
    SemanticScanner,
    to_inferred_records,
)
from ai_note.inference.semantic import build_prompt, parse_payload
from ai_note.todo import Confidence, TodoOrigin, TodoStatus


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.return_value = {
        "todos": [
            {
                "content": " Email the landlord ",
                "lineNumber": 4,
                "confidence": "high",
                "reasoning": "Explicit intent",
            },
            {"content": "Fix flaky test", "lineNumber": 9, "confidence": "low"},
        ]
    }
    return client


def test_scan_returns_candidates(mock_client):
    scanner = SemanticScanner(mock_client)

    candidates = scanner.scan("I need to email the landlord")

    assert [(c.text, c.line_number, c.confidence) for c in candidates] == [
        ("Email the landlord", 4, Confidence.HIGH),
        ("Fix flaky test", 9, Confidence.LOW),
    ]
    assert candidates[0].reasoning == "Explicit intent"
    assert candidates[1].reasoning is None

    messages = mock_client.chat.call_args.args[0]
    assert messages[0]["role"] == "system"
    assert "I need to email the landlord" in messages[1]["content"]


def test_prompt_mentions_explicit_markers():
    prompt = build_prompt("body")
    assert '"- [ ]", "TODO:", "DONE:", or "IN PROGRESS:"' in prompt
    assert '{"todos": []}' in prompt


def test_empty_todos_is_success():
    assert parse_payload({"todos": []}) == []


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {},
        {"todos": "none"},
        {"todos": ["text"]},
        {"todos": [{"lineNumber": 1, "confidence": "high"}]},
        {"todos": [{"content": "  ", "lineNumber": 1, "confidence": "high"}]},
        {"todos": [{"content": "x", "lineNumber": "3", "confidence": "high"}]},
        {"todos": [{"content": "x", "lineNumber": 0, "confidence": "high"}]},
        {"todos": [{"content": "x", "lineNumber": True, "confidence": "high"}]},
        {"todos": [{"content": "x", "lineNumber": 2, "confidence": "certain"}]},
    ],
)
def test_malformed_payload_fails_whole_scan(payload):
    with pytest.raises(MalformedResponseError) as excinfo:
        parse_payload(payload)
    assert excinfo.value.kind is InferenceErrorKind.UNKNOWN


def test_one_bad_item_rejects_all(mock_client):
    mock_client.chat.return_value["todos"].append({"content": "x"})
    with pytest.raises(MalformedResponseError):
        SemanticScanner(mock_client).scan("doc")


def test_provider_errors_propagate(mock_client):
    mock_client.chat.side_effect = RateLimitedError("Rate limit exceeded", 429)
    with pytest.raises(RateLimitedError):
        SemanticScanner(mock_client).scan("doc")


def test_to_inferred_records(mock_client):
    candidates = SemanticScanner(mock_client).scan("doc")
    candidates.append(candidates[0])

    records = to_inferred_records("/n/a.md", candidates, clock=lambda: 777)

    assert [r.identity for r in records] == [
        "/n/a.md:semantic:4:777:0",
        "/n/a.md:semantic:9:777:1",
        "/n/a.md:semantic:4:777:2",
    ]
    first = records[0]
    assert first.origin is TodoOrigin.INFERRED
    assert first.status is TodoStatus.PENDING
    assert first.confidence is Confidence.HIGH
    assert first.surrounding_text == "Explicit intent"
    assert first.created_at == first.updated_at == 777
