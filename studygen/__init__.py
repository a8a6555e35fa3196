"""Study material generation: flashcards and MCQs from course transcripts."""
