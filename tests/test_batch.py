from __future__ import annotations

import pytest

from conftest import FakeInvoker, flashcards_json, mcqs_json
from studygen.batch import (
    BatchOrchestrator,
    analyze_transcript,
    chunk_size_for,
    generate_flashcards,
    generate_mcqs,
    normalize_mcq,
)
from studygen.errors import ConfigurationError, ParseError, TransportError
from studygen.models import OP_FLASHCARDS, OP_MCQS, CourseData, GenerationRequest


def _request(operation: str, count: int, difficulty: int, existing=()) -> GenerationRequest:
    return GenerationRequest(
        operation=operation,
        transcript="Cells divide by mitosis and meiosis.",
        language="en",
        course=CourseData(subject="Biology", outline=("Cells", "Division")),
        count=count,
        difficulty=difficulty,
        existing=tuple(existing),
    )


@pytest.mark.parametrize(
    "difficulty, requested, expected",
    [
        (5, 12, 5),
        (5, 3, 3),
        (4, 20, 7),
        (4, 6, 6),
        (3, 30, 30),
        (1, 8, 8),
    ],
)
def test_chunk_size_policy(difficulty: int, requested: int, expected: int) -> None:
    assert chunk_size_for(difficulty, requested) == expected


def test_expert_difficulty_runs_three_batches_with_progress_before_each_call() -> None:
    events = []
    invoker = FakeInvoker([flashcards_json(5, 1), flashcards_json(5, 6), flashcards_json(2, 11)], events)

    result = generate_flashcards(
        _request(OP_FLASHCARDS, 12, 5),
        invoker,
        lambda current, total: events.append(("progress", current, total)),
    )

    assert len(result["flashcards"]) == 12
    assert events == [
        ("progress", 1, 3),
        ("call", 1),
        ("progress", 2, 3),
        ("call", 2),
        ("progress", 3, 3),
        ("call", 3),
    ]
    assert "create 5 flashcards" in invoker.prompts[0]
    assert "create 2 flashcards" in invoker.prompts[2]


def test_low_difficulty_makes_one_call_without_progress() -> None:
    progress = []
    invoker = FakeInvoker([flashcards_json(8)])

    result = generate_flashcards(_request(OP_FLASHCARDS, 8, 2), invoker, lambda *args: progress.append(args))

    assert len(result["flashcards"]) == 8
    assert len(invoker.prompts) == 1
    assert progress == []


def test_flashcard_batches_pass_collected_cards_as_existing_context() -> None:
    invoker = FakeInvoker([flashcards_json(5, 1), flashcards_json(5, 6)])
    prior = [{"question": "Earlier card", "answer": "Earlier answer"}]

    generate_flashcards(_request(OP_FLASHCARDS, 10, 5, existing=prior), invoker)

    assert "- Earlier card" in invoker.prompts[0]
    assert "- Question 1" not in invoker.prompts[0]
    assert "Earlier card" in invoker.prompts[1]
    assert "- Question 5" in invoker.prompts[1]


def test_partial_failure_returns_items_collected_so_far() -> None:
    invoker = FakeInvoker([flashcards_json(5), TransportError("connection reset")])
    orchestrator = BatchOrchestrator(invoker, OP_FLASHCARDS)

    items = orchestrator.generate(_request(OP_FLASHCARDS, 15, 5))

    assert [item["question"] for item in items] == [f"Question {n}" for n in range(1, 6)]
    assert len(invoker.prompts) == 2
    assert orchestrator.state.batches_attempted == 2
    assert orchestrator.state.batches_succeeded == 1
    assert orchestrator.state.remaining == 10


def test_first_batch_failure_reraises_original_error() -> None:
    error = ParseError("Failed to parse AI response after all repair attempts")
    invoker = FakeInvoker([error])

    with pytest.raises(ParseError) as excinfo:
        generate_mcqs(_request(OP_MCQS, 15, 5), invoker)

    assert excinfo.value is error


def test_unparseable_batch_after_success_is_absorbed() -> None:
    invoker = FakeInvoker([mcqs_json(7), "no json here at all"])

    result = generate_mcqs(_request(OP_MCQS, 14, 4), invoker)

    assert len(result["mcqs"]) == 7


def test_configuration_error_is_never_absorbed() -> None:
    invoker = FakeInvoker([flashcards_json(5), ConfigurationError("API key configuration error")])

    with pytest.raises(ConfigurationError):
        generate_flashcards(_request(OP_FLASHCARDS, 10, 5), invoker)


def test_batch_output_is_capped_at_requested_count() -> None:
    invoker = FakeInvoker([flashcards_json(9)])

    result = generate_flashcards(_request(OP_FLASHCARDS, 6, 3), invoker)

    assert len(result["flashcards"]) == 6


def test_mcq_batches_do_not_carry_existing_context() -> None:
    invoker = FakeInvoker([mcqs_json(5), mcqs_json(5, 6)])

    result = generate_mcqs(_request(OP_MCQS, 10, 5), invoker)

    assert len(result["mcqs"]) == 10
    assert "already exist" not in invoker.prompts[1]
    assert invoker.operations == [OP_MCQS, OP_MCQS]


def test_malformed_mcqs_are_dropped() -> None:
    raw = (
        '{"questions": ['
        '{"question": "Q1", "A": "a", "B": "b", "C": "c", "D": "d", "correct": "c"},'
        '{"question": "Q2", "A": "a", "B": "b", "C": "c", "D": "d", "correct": "E"},'
        '{"question": "Q3", "A": "a", "B": "b", "correct": "A"}'
        "]}"
    )
    invoker = FakeInvoker([raw])

    result = generate_mcqs(_request(OP_MCQS, 3, 2), invoker)

    assert result == {
        "mcqs": [{"question": "Q1", "A": "a", "B": "b", "C": "c", "D": "d", "correct": "C"}]
    }


@pytest.mark.parametrize(
    "correct, expected",
    [
        ("Answer: C", "C"),
        ("d", "D"),
        ("B) Mitochondria", "B"),
        ("Answer", None),
        ("all of them", None),
        (None, None),
    ],
)
def test_normalize_mcq_reads_a_standalone_answer_letter(correct, expected) -> None:
    item = {"question": "Q", "A": "a", "B": "b", "C": "c", "D": "d", "correct": correct}

    normalized = normalize_mcq(item)

    if expected is None:
        assert normalized is None
    else:
        assert normalized["correct"] == expected


def test_normalize_mcq_rejects_non_objects() -> None:
    assert normalize_mcq(["not", "a", "dict"]) is None


def test_analyze_transcript_returns_subject_and_outline() -> None:
    invoker = FakeInvoker(['```json\n{"subject": "Biology", "outline": ["Cells", "DNA", ""]}\n```'])

    result = analyze_transcript("Cells contain DNA.", "fr", invoker)

    assert result == {"subject": "Biology", "outline": ["Cells", "DNA"]}
    assert "Respond in French." in invoker.prompts[0]


def test_analyze_transcript_without_subject_is_a_parse_error() -> None:
    invoker = FakeInvoker(['{"outline": ["Cells"]}'])

    with pytest.raises(ParseError):
        analyze_transcript("Cells contain DNA.", "en", invoker)
