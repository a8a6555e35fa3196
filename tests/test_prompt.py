from __future__ import annotations

import pytest

from studygen.models import OP_ANALYZE, OP_FLASHCARDS, OP_MCQS, CourseData, GenerationRequest
from studygen.prompt import build_prompt, interpolate, load_template


def _request(**overrides) -> GenerationRequest:
    values = dict(
        operation=OP_FLASHCARDS,
        transcript="Photosynthesis turns light into chemical energy.",
        language="en",
        course=CourseData(subject="Botany", outline=("Light", "Chlorophyll")),
        count=4,
        difficulty=3,
    )
    values.update(overrides)
    return GenerationRequest(**values)


def test_interpolate_fills_known_and_blanks_unknown_placeholders() -> None:
    assert interpolate("{{a}} and {{b}}", {"a": "x"}) == "x and "


def test_interpolated_values_are_not_rescanned() -> None:
    assert interpolate("{{a}}", {"a": "{{b}}", "b": "no"}) == "{{b}}"


def test_unknown_operation_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_template("essay")


def test_flashcard_prompt_embeds_course_and_difficulty() -> None:
    prompt = build_prompt(OP_FLASHCARDS, _request(difficulty=1))
    assert "Course Subject: Botany" in prompt
    assert "Course Outline: Light, Chlorophyll" in prompt
    assert "DIFFICULTY LEVEL: 1/5" in prompt
    assert "maximum of 50 words" in prompt
    assert "create 4 flashcards" in prompt
    assert "{{" not in prompt


def test_prompt_is_deterministic() -> None:
    request = _request(difficulty=5)
    assert build_prompt(OP_MCQS, request) == build_prompt(OP_MCQS, request)


def test_out_of_range_difficulty_uses_medium_tier() -> None:
    prompt = build_prompt(OP_MCQS, _request(difficulty=9))
    assert "DIFFICULTY LEVEL: 3/5" in prompt
    assert "Keep questions under 30 words" in prompt


def test_language_directive() -> None:
    assert "Create the questions in French." in build_prompt(OP_MCQS, _request(language="fr"))
    assert "Respond in English." in build_prompt(OP_ANALYZE, _request(operation=OP_ANALYZE))


def test_existing_flashcards_are_listed() -> None:
    existing = ({"question": "What is chlorophyll?", "answer": "A pigment"}, {"answer": "orphan"})
    prompt = build_prompt(OP_FLASHCARDS, _request(existing=existing))
    assert "Do NOT repeat" in prompt
    assert "- What is chlorophyll?" in prompt
    assert "orphan" not in prompt
