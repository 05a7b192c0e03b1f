"""
In-progress test sessions
"""

import logging
from datetime import datetime

from ...utils import Timer
from ..models import DetailedTestStats, Word, WordResult

logger = logging.getLogger(__name__)


class TestSession:
    """Represents a single quiz over a list of words"""

    __test__ = False

    def __init__(self, session_id: str, words: list[Word]):
        self.session_id = session_id
        self.words = words
        self.current_word_index = 0
        self.word_results: list[WordResult] = []
        self.timer = Timer()
        self.word_timer = Timer()
        self.created_at = datetime.now()

    def start(self):
        """Start timing the session and its first word"""
        self.timer.start()
        self.word_timer.start()

    def get_current_word(self) -> Word | None:
        """Get the word currently being asked"""
        if self.current_word_index < len(self.words):
            return self.words[self.current_word_index]
        return None

    def is_finished(self) -> bool:
        """Check if every word was answered"""
        return self.current_word_index >= len(self.words)

    def record_answer(
        self,
        correct: bool,
        used_hint: bool = False,
        hints_count: int = 0,
        time_spent: int | None = None,
    ) -> WordResult | None:
        """Record the answer for the current word and move to the next one"""
        word = self.get_current_word()
        if word is None:
            logger.warning(f"Session {self.session_id}: answer after the last word ignored")
            return None

        if time_spent is None:
            time_spent = self.word_timer.elapsed_ms() or 0

        result = WordResult(
            word_id=word.id,
            correct=correct,
            time_spent=max(0, time_spent),
            used_hint=used_hint or hints_count > 0,
            hints_count=max(0, hints_count),
        )
        self.word_results.append(result)
        self.current_word_index += 1
        self.word_timer.start()
        return result

    def to_stats(self) -> DetailedTestStats:
        """Per-word results of the answered part of the session"""
        self.timer.stop()
        return DetailedTestStats(
            word_results=list(self.word_results),
            total_time=self.timer.elapsed_ms(),
        )
