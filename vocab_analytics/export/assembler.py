"""
Export document assembly and import (overwrite / merge)
"""

import copy
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..analytics.aggregation import AggregationEngine, chronological
from ..config import Settings, get_settings
from ..core.errors import ImportValidationError, InvalidRecord
from ..core.models import (
    AppState,
    Statistics,
    TestHistoryItem,
    Word,
    WordPerformance,
    parse_word_performance,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "3.0"

ImportMode = Literal["overwrite", "merge"]


class ExportDocumentModel(BaseModel):
    """Top-level shape of an export document.

    Only the container types are checked here; individual records are parsed
    afterwards and skipped one by one when malformed.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    metadata: dict[str, Any] | None = None
    version: str | float | None = None
    words: list[Any] | None = None
    statistics: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("statistics", "stats")
    )
    test_history: list[Any] | None = Field(
        default=None, validation_alias=AliasChoices("testHistory", "test_history")
    )
    word_performance: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("wordPerformance", "word_performance")
    )

    @model_validator(mode="after")
    def require_content(self) -> "ExportDocumentModel":
        if self.words is None and self.statistics is None and self.test_history is None:
            raise ValueError("document contains no words, statistics or test history")
        return self

    @property
    def format_version(self) -> str | None:
        if self.metadata and self.metadata.get("version") is not None:
            return str(self.metadata["version"])
        return str(self.version) if self.version is not None else None


@dataclass
class ImportResult:
    success: bool
    mode: str
    state: AppState | None = None
    version: str | None = None
    words_imported: int = 0
    tests_imported: int = 0
    performances_imported: int = 0
    attempts_imported: int = 0
    skipped_records: int = 0
    error: str | None = None


@dataclass
class _ParsedDocument:
    words: list[Word] | None = None
    statistics: Statistics | None = None
    test_history: list[TestHistoryItem] | None = None
    word_performance: dict[str, WordPerformance] | None = None
    skipped: int = 0
    skipped_details: list[str] = field(default_factory=list)


class ExportAssembler:
    """Builds export documents and applies them back onto a state snapshot"""

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AggregationEngine | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.engine = engine or AggregationEngine(settings or get_settings())
        self.clock = clock

    # Export

    def export_document(self, state: AppState) -> dict[str, Any]:
        """Self-describing document that fully reconstructs ``state``"""
        return {
            "metadata": {
                "exportedAt": self.clock().isoformat(),
                "totalWords": len(state.words),
                "totalTests": len(state.test_history),
                "totalWordPerformance": len(state.word_performance),
                "version": EXPORT_VERSION,
            },
            "words": [w.to_dict() for w in state.words],
            "statistics": state.statistics.to_dict(),
            "testHistory": [t.to_dict() for t in state.test_history],
            "wordPerformance": {
                word_id: p.to_dict() for word_id, p in state.word_performance.items()
            },
        }

    def export_json(self, state: AppState, indent: int = 2) -> str:
        return json.dumps(self.export_document(state), ensure_ascii=False, indent=indent)

    # Import

    def validate(self, payload: Any) -> ExportDocumentModel:
        """Check the document's top-level shape, before anything is touched"""
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise ImportValidationError(f"Document is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ImportValidationError("Document must be a JSON object")

        try:
            return ExportDocumentModel.model_validate(payload)
        except ValidationError as e:
            raise ImportValidationError(f"Invalid export document: {e}") from e

    def import_document(
        self, state: AppState, payload: Any, mode: ImportMode = "overwrite"
    ) -> ImportResult:
        """Apply an export document to ``state``.

        The input state is left untouched; the result carries the new state.
        """
        if mode not in ("overwrite", "merge"):
            return ImportResult(success=False, mode=mode, error=f"Unknown import mode: {mode}")

        try:
            document = self.validate(payload)
        except ImportValidationError as e:
            logger.warning(f"Import rejected: {e}")
            return ImportResult(success=False, mode=mode, error=str(e))

        parsed = self._parse_records(document)
        if parsed.skipped:
            logger.warning(f"Skipped {parsed.skipped} malformed records during import")

        if mode == "overwrite":
            result = self._overwrite(parsed)
        else:
            result = self._merge(state, parsed)

        result.version = document.format_version
        result.skipped_records = parsed.skipped
        logger.info(
            f"Imported ({mode}, version {result.version}): {result.words_imported} words, "
            f"{result.tests_imported} tests, {result.performances_imported} performance records"
        )
        return result

    def _parse_records(self, document: ExportDocumentModel) -> _ParsedDocument:
        parsed = _ParsedDocument()

        def skip(error: InvalidRecord) -> None:
            parsed.skipped += 1
            parsed.skipped_details.append(str(error))

        if document.words is not None:
            parsed.words = []
            for raw in document.words:
                try:
                    parsed.words.append(Word.from_dict(raw))
                except InvalidRecord as e:
                    skip(e)

        if document.statistics is not None:
            try:
                parsed.statistics = Statistics.from_dict(document.statistics)
            except InvalidRecord as e:
                skip(e)

        if document.test_history is not None:
            parsed.test_history = []
            for raw in document.test_history:
                try:
                    parsed.test_history.append(TestHistoryItem.from_dict(raw))
                except InvalidRecord as e:
                    skip(e)

        if document.word_performance is not None:
            parsed.word_performance = {}
            for word_id, raw in document.word_performance.items():
                try:
                    performance, skipped_attempts = parse_word_performance(str(word_id), raw)
                except InvalidRecord as e:
                    skip(e)
                    continue
                parsed.skipped += skipped_attempts
                parsed.word_performance[performance.word_id] = performance

        return parsed

    def _overwrite(self, parsed: _ParsedDocument) -> ImportResult:
        """Replace all local data, components the document omits become empty"""
        new_state = AppState(
            words=parsed.words or [],
            statistics=parsed.statistics or Statistics(),
            test_history=parsed.test_history or [],
            word_performance=parsed.word_performance or {},
        )
        result = ImportResult(success=True, mode="overwrite", state=new_state)
        result.words_imported = len(new_state.words)
        result.tests_imported = len(new_state.test_history)
        result.performances_imported = len(new_state.word_performance)
        result.attempts_imported = sum(len(p.attempts) for p in new_state.word_performance.values())
        return result

    def _merge(self, state: AppState, parsed: _ParsedDocument) -> ImportResult:
        """Union the document into the state without duplicating anything"""
        new_state = copy.deepcopy(state)
        new_state.skipped_records = 0
        result = ImportResult(success=True, mode="merge", state=new_state)
        had_history = bool(state.test_history) or state.statistics.tests_completed > 0

        # Imported ids of words that lost the english conflict, mapped to the kept id
        renamed: dict[str, str] = {}
        known_english = {w.english.casefold(): w.id for w in new_state.words}
        known_ids = {w.id for w in new_state.words}
        for word in parsed.words or []:
            key = word.english.casefold()
            if word.id in known_ids:
                continue
            if key in known_english:
                renamed[word.id] = known_english[key]
                continue
            new_state.words.append(word)
            known_english[key] = word.id
            known_ids.add(word.id)
            result.words_imported += 1

        known_tests = {t.id for t in new_state.test_history}
        added_tests = []
        for test in parsed.test_history or []:
            if test.id in known_tests:
                continue
            if renamed:
                test = replace(test, wrong_words=[renamed.get(w, w) for w in test.wrong_words])
            added_tests.append(test)
            known_tests.add(test.id)
        if added_tests:
            new_state.test_history = sorted(
                new_state.test_history + added_tests, key=lambda t: t.timestamp, reverse=True
            )
        result.tests_imported = len(added_tests)

        for word_id, incoming in (parsed.word_performance or {}).items():
            target_id = renamed.get(word_id, word_id)
            if target_id != word_id:
                incoming = replace(incoming, word_id=target_id)
            existing = new_state.word_performance.get(target_id)
            if existing is None:
                new_state.word_performance[target_id] = incoming
                result.performances_imported += 1
                result.attempts_imported += len(incoming.attempts)
                continue

            seen = {a.content_key() for a in existing.attempts}
            fresh = []
            for attempt in incoming.attempts:
                key = attempt.content_key()
                if key not in seen:
                    seen.add(key)
                    fresh.append(attempt)
            if not fresh:
                continue
            merged = existing.with_attempts(existing.attempts + fresh)
            merged.english = merged.english or incoming.english
            merged.italian = merged.italian or incoming.italian
            merged.chapter = merged.chapter or incoming.chapter
            new_state.word_performance[target_id] = merged
            result.performances_imported += 1
            result.attempts_imported += len(fresh)

        if not had_history and parsed.statistics is not None:
            new_state.statistics = parsed.statistics
        elif added_tests:
            statistics = new_state.statistics
            for test in chronological(added_tests):
                statistics = self.engine.apply_test(statistics, test)
            new_state.statistics = statistics

        return result
