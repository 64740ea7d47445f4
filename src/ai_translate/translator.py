"""
Batch translation of a string catalog.

Entries are processed in fixed-size batches. Every entry of a batch gets its
own task which walks the requested languages in order, so each key is only
ever mutated by one task. A batch finishes completely before the next one is
started.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable

from ai_translate.catalog import Catalog, LocalizationGroup, STATE_ERROR, STATE_TRANSLATED
from ai_translate.openai_utils import TranslationClient

logger = logging.getLogger(__name__)

PROGRESS_STEP_PERCENT = 10


class Outcome(enum.Enum):
    TRANSLATED = "translated"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"
    NOT_TRANSLATABLE = "not_translatable"
    FAILED = "failed"


@dataclass
class TranslationStats:
    counts: dict[Outcome, int] = field(default_factory=lambda: {outcome: 0 for outcome in Outcome})

    def add(self, outcomes: list[Outcome]):
        for outcome in outcomes:
            self.counts[outcome] += 1

    def __getitem__(self, outcome: Outcome) -> int:
        return self.counts[outcome]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass
class Progress:
    """Completed work items out of entries x languages, reported in 10% steps."""
    total: int
    done: int = 0
    last_reported: int = 0

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return self.done * 100 // self.total

    def advance(self, count: int) -> bool:
        """Adds completed items; returns True when a new 10% threshold was crossed."""
        self.done = min(self.total, self.done + count)
        step = self.percentage // PROGRESS_STEP_PERCENT * PROGRESS_STEP_PERCENT
        if step > self.last_reported:
            self.last_reported = step
            return True
        return False


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchTranslator:

    def __init__(
        self,
        client: TranslationClient,
        languages: list[str],
        concurrency: int = 5,
        force: bool = False,
        on_checkpoint: Callable[[Catalog], None] | None = None,
    ):
        self.client = client
        self.languages = list(languages)
        self.concurrency = concurrency
        self.force = force
        self.on_checkpoint = on_checkpoint

    async def process_entry_language(
        self, key: str, group: LocalizationGroup, source_language: str, target_language: str
    ) -> Outcome:
        """Brings one (entry, language) pair up to date."""
        unit = group.localizations.get(target_language)

        if unit is not None and unit.has_translation and not self.force:
            return Outcome.SKIPPED
        if unit is not None and not unit.is_supported_format:
            logger.warning(f"Unsupported format in entry with key: {key} ({target_language})")
            return Outcome.UNSUPPORTED

        source_unit = group.localizations.get(source_language)
        source_text = source_unit.value if source_unit is not None and source_unit.value is not None else key

        if group.should_translate is False:
            group.set_string(target_language, key, STATE_TRANSLATED)
            logger.debug(f"[{target_language}] {key} -> skip")
            return Outcome.NOT_TRANSLATABLE

        translation = await self.client.translate(
            source_text, source_language, target_language, context=group.comment
        )
        if translation is None:
            group.set_string(target_language, source_text, STATE_ERROR)
            return Outcome.FAILED

        group.set_string(target_language, translation, STATE_TRANSLATED)
        return Outcome.TRANSLATED

    async def process_entry(self, key: str, group: LocalizationGroup, source_language: str) -> list[Outcome]:
        """Translates one entry into every requested language, in list order."""
        outcomes = []
        for language in self.languages:
            outcomes.append(await self.process_entry_language(key, group, source_language, language))
        return outcomes

    async def run(self, catalog: Catalog) -> TranslationStats:
        """
        Translates every entry of the catalog in place.

        The checkpoint callback, when given, is called with the catalog each
        time progress crosses a 10% threshold before the last batch.
        """
        keys = catalog.sorted_keys()
        progress = Progress(total=len(keys) * len(self.languages))
        stats = TranslationStats()
        batches = chunked(keys, self.concurrency)

        logger.info(
            f"Translating {len(keys)} keys into {len(self.languages)} language(s) "
            f"in {len(batches)} batches of up to {self.concurrency}."
        )

        for batch in batches:
            tasks = [
                self.process_entry(key, catalog.strings[key], catalog.source_language)
                for key in batch
            ]
            batch_outcomes = await asyncio.gather(*tasks)

            for outcomes in batch_outcomes:
                stats.add(outcomes)
            if progress.advance(sum(len(outcomes) for outcomes in batch_outcomes)):
                logger.info(f"Progress: {progress.done}/{progress.total} ({progress.percentage}%)")
                # The caller saves the finished catalog itself
                if self.on_checkpoint is not None and progress.done < progress.total:
                    self.on_checkpoint(catalog)

        return stats
