"""Tests for CodeSummarizer + structured summary parsing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from repohelp.ingest.summarizer import (
    CHUNK_DELIMITER,
    CODE_DELIMITER,
    CodeSummarizer,
    SummarizationError,
    SummaryChunk,
    parse_summary,
)


def _mock_completion(text: str | None):
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    return patch("repohelp.rag.llm_client.litellm.completion", return_value=mock)


# ------------------------------------------------------------------
# parse_summary
# ------------------------------------------------------------------

def test_parse_summary_without_delimiters_is_one_chunk():
    assert parse_summary("- Handles login.\n- Posts to /api/session.") == [
        SummaryChunk(text="- Handles login.\n- Posts to /api/session.")
    ]


def test_parse_summary_file_chunk_then_units():
    text = (
        "- Login page.\n"
        f"{CHUNK_DELIMITER}\n"
        "- submit() posts the form.\n"
        f"{CODE_DELIMITER}\n"
        "function submit() { post(); }\n"
        f"{CHUNK_DELIMITER}\n"
        "- validate() checks the email.\n"
    )
    chunks = parse_summary(text)
    assert [c.text for c in chunks] == [
        "- Login page.",
        "- submit() posts the form.",
        "- validate() checks the email.",
    ]
    assert chunks[0].code is None
    assert chunks[1].code == "function submit() { post(); }"
    assert chunks[2].code is None
    assert [c.ordinal for c in chunks] == [0, 1, 2]


def test_parse_summary_leading_delimiter_leaves_file_slot_empty():
    text = f"{CHUNK_DELIMITER}\nunit one\n{CODE_DELIMITER}\ndef f(): pass"
    assert parse_summary(text) == [
        SummaryChunk(text="unit one", code="def f(): pass", ordinal=1)
    ]


def test_parse_summary_empty_unit_keeps_later_ordinals():
    text = f"- file\n{CHUNK_DELIMITER}\n\n{CHUNK_DELIMITER}\n- second unit"
    chunks = parse_summary(text)
    assert [(c.ordinal, c.text) for c in chunks] == [(0, "- file"), (2, "- second unit")]


def test_parse_summary_strips_code_fences():
    text = f"- unit\n{CODE_DELIMITER}\n```python\ndef f():\n    return 1\n```"
    (chunk,) = parse_summary(text)
    assert chunk.code == "def f():\n    return 1"


def test_parse_summary_drops_empty_chunks():
    text = f"{CHUNK_DELIMITER}\n- only unit\n{CHUNK_DELIMITER}\n   \n{CHUNK_DELIMITER}"
    assert parse_summary(text) == [SummaryChunk(text="- only unit", ordinal=1)]


def test_parse_summary_tolerates_padded_delimiters():
    text = f"- file\n  ===  CHUNK ===  \n- unit"
    assert [c.text for c in parse_summary(text)] == ["- file", "- unit"]


def test_parse_summary_empty_text():
    assert parse_summary("") == []
    assert parse_summary(None) == []


def test_parse_summary_delimiter_inside_line_is_text():
    text = f"- mentions {CHUNK_DELIMITER} inline"
    assert len(parse_summary(text)) == 1


# ------------------------------------------------------------------
# CodeSummarizer
# ------------------------------------------------------------------

def test_summarize_returns_chunks():
    with _mock_completion(f"- file\n{CHUNK_DELIMITER}\n- unit"):
        chunks = CodeSummarizer().summarize("src/app.js", "const x = 1;")
    assert [c.text for c in chunks] == ["- file", "- unit"]


def test_summarize_prompt_contains_path_and_delimiters():
    with _mock_completion("- file") as mock_call:
        CodeSummarizer().summarize("src/app.js", "const x = 1;")
    prompt = mock_call.call_args[1]["messages"][0]["content"]
    assert "src/app.js" in prompt
    assert "const x = 1;" in prompt
    assert CHUNK_DELIMITER in prompt
    assert CODE_DELIMITER in prompt


def test_summarize_truncates_raw_text():
    with _mock_completion("- file") as mock_call:
        CodeSummarizer(max_chars=10).summarize("a.py", "x" * 10 + "TAIL")
    prompt = mock_call.call_args[1]["messages"][0]["content"]
    assert "TAIL" not in prompt


def test_summarize_custom_model_and_max_tokens():
    with _mock_completion("- file") as mock_call:
        CodeSummarizer(model="openai/gpt-4o", max_tokens=200).summarize("a.py", "text")
    call_kwargs = mock_call.call_args[1]
    assert call_kwargs["model"] == "openai/gpt-4o"
    assert call_kwargs["max_tokens"] == 200


def test_summarize_llm_failure_raises():
    with patch(
        "repohelp.rag.llm_client.litellm.completion", side_effect=Exception("API error")
    ):
        with pytest.raises(SummarizationError, match="a.py"):
            CodeSummarizer().summarize("a.py", "text")


@pytest.mark.parametrize("content", [None, "", "   \n"])
def test_summarize_empty_output_raises(content):
    with _mock_completion(content):
        with pytest.raises(SummarizationError, match="Empty summary"):
            CodeSummarizer().summarize("a.py", "text")
