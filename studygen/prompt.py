"""Prompt assembly for transcript analysis, flashcards and MCQs."""

from __future__ import annotations

import re
from typing import Dict

from .config import DEFAULT_DIFFICULTY
from .models import OP_ANALYZE, OP_FLASHCARDS, OP_MCQS, GenerationRequest

PLACEHOLDER_RE = re.compile(r"{{(\w+)}}")

PROMPT_ANALYZE = r"""You are an educational assistant helping university students study.
Analyze the following course transcript and:
1. Determine the main subject of the course
2. Create a concise outline with 3-5 key points

Transcript:
{{transcript}}

Respond in {{language}}.

IMPORTANT: Respond ONLY with a valid JSON object and nothing else. No markdown formatting, no backticks, no explanation text.
The JSON must have this exact structure:
{"subject": "The main subject of the course", "outline": ["Key point 1", "Key point 2", "Key point 3"]}
"""

PROMPT_FLASHCARDS = r"""You are an educational assistant helping university students study.
Based on the following course information and transcript, create {{count}} flashcards with questions and answers.

Course Subject: {{subject}}
Course Outline: {{outline}}

Original Transcript:
{{transcript}}

DIFFICULTY LEVEL: {{difficulty}}/5
{{difficultyInstructions}}

IMPORTANT INSTRUCTIONS:
1. Use the actual content from the transcript to create questions, not just the subject and outline
2. Vary the question types between:
   - Definitions (What is...?)
   - Comparisons (How does X compare to Y?)
   - Applications (How would you use...?)
   - Analysis (Why does...?)
   - Cause and Effect (What happens when...?)
   - Examples (Give an example of...)
3. Use different question formats:
   - Open-ended questions
   - Fill-in-the-blank statements
   - True/False with explanation
   - "Identify the concept" questions
4. Vary the cognitive depth:
   - Basic recall (remembering facts)
   - Understanding (explaining concepts)
   - Application (using knowledge in new situations)
   - Analysis (breaking down complex ideas)
5. Make questions:
   - Based on specific details from the transcript
   - Challenging but clear
   - Focused on key concepts
   - Different from each other
{{existingInstructions}}
Create the flashcards in {{language}}.

IMPORTANT: Respond ONLY with a valid JSON object and nothing else. No markdown formatting, no backticks, no explanation text.
The JSON must have this exact structure:
{"flashcards": [
  {"question": "Question 1", "answer": "Answer 1"},
  {"question": "Question 2", "answer": "Answer 2"},
  ... and so on for all {{count}} flashcards
]}
"""

PROMPT_MCQS = r"""You are an educational assistant helping university students study.
Based on the following course information and transcript, create {{count}} multiple choice questions.

Course Subject: {{subject}}
Course Outline: {{outline}}

Original Transcript:
{{transcript}}

DIFFICULTY LEVEL: {{difficulty}}/5
{{difficultyInstructions}}

IMPORTANT INSTRUCTIONS:
1. Each question must have exactly 4 options (A, B, C, D)
2. Exactly one option must be correct
3. The other 3 options must be plausible but incorrect
4. Use actual content from the transcript
5. Vary question difficulty and cognitive levels

Create the questions in {{language}}.

CRITICAL: Reply ONLY with a valid JSON object. No explanations, no markdown formatting, no code block markers.

Use this JSON format:

{"questions": [
  {
    "question": "What is the primary function of mitochondria in a cell?",
    "A": "Protein synthesis",
    "B": "Energy production",
    "C": "Cell division",
    "D": "Waste elimination",
    "correct": "B"
  }
]}

Now create {{count}} questions in this exact format based on the transcript provided.
"""

FLASHCARD_DIFFICULTY = {
    1: (
        "Keep questions extremely simple and basic. Use elementary vocabulary and straightforward concepts. "
        "Focus only on the most fundamental information. Avoid complex terminology - use simple words. "
        "IMPORTANT: Limit answers to a maximum of 50 words. Each question should be no more than 20 words. "
        "Each question and answer combined should not exceed 70 words total."
    ),
    2: (
        "Keep questions fairly simple with basic concepts. Use common vocabulary that's accessible to beginners. "
        "Limit technical terms to only the most essential ones. Create direct questions with clear answers. "
        "IMPORTANT: Limit answers to a maximum of 75 words. Each question should be no more than 25 words. "
        "Each question and answer combined should not exceed 100 words total."
    ),
    3: (
        "Use moderate complexity with standard academic vocabulary. Balance basic recall with some analytical "
        "questions. Include key technical terms where appropriate. "
        "IMPORTANT: Limit answers to a maximum of 100 words. Each question should be no more than 30 words. "
        "Each question and answer combined should not exceed 130 words total."
    ),
    4: (
        "Create challenging questions requiring deeper understanding. Use advanced vocabulary and academic "
        "language. Encourage application of knowledge to novel situations. "
        "IMPORTANT: Limit answers to a maximum of 120 words. Each question should be no more than 40 words. "
        "Each question and answer combined should not exceed 160 words total."
    ),
    5: (
        "Create very challenging questions at graduate/PhD level. Use specialized terminology and advanced "
        "theoretical concepts. Include questions requiring evaluation of competing theories. "
        "IMPORTANT: Limit answers to a maximum of 150 words. Each question should be no more than 50 words. "
        "Each question and answer combined should not exceed 200 words total."
    ),
}

MCQ_DIFFICULTY = {
    1: (
        "Keep questions extremely simple and basic. Use elementary vocabulary. Make all options clearly "
        "distinct from each other. IMPORTANT: Keep questions under 20 words. Keep each answer option under 10 words."
    ),
    2: (
        "Keep questions fairly simple with basic concepts. Use common vocabulary that's accessible to beginners. "
        "Make incorrect options plausible but clearly different from the correct answer. "
        "IMPORTANT: Keep questions under 25 words. Keep each answer option under 15 words."
    ),
    3: (
        "Use moderate complexity with standard academic vocabulary. Balance basic recall with some analytical "
        "questions. Make incorrect options reasonably plausible. "
        "IMPORTANT: Keep questions under 30 words. Keep each answer option under 20 words."
    ),
    4: (
        "Create challenging questions requiring deeper understanding. Use advanced vocabulary and academic "
        "language. Make incorrect options very plausible and require careful discrimination. "
        "IMPORTANT: Keep questions under 40 words. Keep each answer option under 25 words."
    ),
    5: (
        "Create very challenging questions at graduate/PhD level. Use specialized terminology and advanced "
        "theoretical concepts. Make incorrect options extremely plausible, differing in subtle but important ways. "
        "IMPORTANT: Keep questions under 50 words. Keep each answer option under 30 words."
    ),
}

LANGUAGE_NAMES = {"en": "English", "fr": "French"}

TEMPLATES = {
    OP_ANALYZE: PROMPT_ANALYZE,
    OP_FLASHCARDS: PROMPT_FLASHCARDS,
    OP_MCQS: PROMPT_MCQS,
}


def load_template(operation: str) -> str:
    try:
        return TEMPLATES[operation]
    except KeyError:
        raise ValueError(f"Unknown prompt operation: {operation}") from None


def interpolate(template: str, variables: Dict[str, str]) -> str:
    return PLACEHOLDER_RE.sub(lambda match: variables.get(match.group(1), ""), template)


def _tier(difficulty: int) -> int:
    return difficulty if difficulty in FLASHCARD_DIFFICULTY else DEFAULT_DIFFICULTY


def _existing_instructions(request: GenerationRequest) -> str:
    questions = [
        str(item.get("question", "")).strip()
        for item in request.existing
        if isinstance(item, dict) and item.get("question")
    ]
    if not questions:
        return ""
    listed = "\n".join(f"- {question}" for question in questions)
    return (
        "\nThe following flashcards already exist. Do NOT repeat or closely paraphrase any of them:\n"
        f"{listed}\n"
    )


def build_prompt(operation: str, request: GenerationRequest) -> str:
    template = load_template(operation)
    variables = {
        "transcript": request.transcript,
        "language": LANGUAGE_NAMES.get(request.language, "English"),
    }
    if operation != OP_ANALYZE:
        tier = _tier(request.difficulty)
        table = FLASHCARD_DIFFICULTY if operation == OP_FLASHCARDS else MCQ_DIFFICULTY
        variables.update(
            {
                "subject": request.course.subject,
                "outline": ", ".join(request.course.outline),
                "count": str(request.count),
                "difficulty": str(tier),
                "difficultyInstructions": table[tier],
                "existingInstructions": _existing_instructions(request),
            }
        )
    return interpolate(template, variables)
