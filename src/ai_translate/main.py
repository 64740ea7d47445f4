import asyncio
import logging
import sys
import time

import click

from ai_translate import __version__
from ai_translate.catalog import Catalog, CatalogError
from ai_translate.config import (
    Config,
    ConfigError,
    DEFAULT_CONCURRENCY,
    DEFAULT_ENV_FILE,
    gather_languages,
    resolve_config,
    setup_logging,
)
from ai_translate.file_utils import load_catalog, save_catalog
from ai_translate.openai_utils import TranslationClient
from ai_translate.translator import BatchTranslator, Outcome, TranslationStats

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Formats elapsed time as e.g. '1 hour, 2 minutes, 3 seconds'."""
    remaining = int(round(seconds))
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)
    parts = []
    for amount, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if amount:
            parts.append(f"{amount} {unit}{'' if amount == 1 else 's'}")
    return ", ".join(parts) or "0 seconds"


class CatalogWriter:
    """Saves the catalog over the input file, backing up the original on the first save only."""

    def __init__(self, path: str, backup: bool):
        self.path = path
        self.backup_pending = backup

    def __call__(self, catalog: Catalog):
        save_catalog(self.path, catalog, backup=self.backup_pending)
        self.backup_pending = False
        logger.info(f"Saved {self.path}")


async def translate_file(input_file: str, config: Config) -> TranslationStats:
    """Loads the catalog, translates it and writes it back to the same path."""
    catalog = load_catalog(input_file)
    logger.info(f"Loaded {len(catalog.strings)} keys from {input_file} (source language: {catalog.source_language}).")

    writer = CatalogWriter(input_file, backup=not config.skip_backup)
    client = TranslationClient.from_config(config)
    translator = BatchTranslator(
        client,
        list(config.languages),
        concurrency=config.concurrency,
        force=config.force,
        on_checkpoint=writer,
    )
    try:
        stats = await translator.run(catalog)
    finally:
        await client.close()

    writer(catalog)
    return stats


def log_summary(stats: TranslationStats, elapsed: float):
    logger.info("--- Translation Summary ---")
    logger.info(f"Translated: {stats[Outcome.TRANSLATED]}")
    logger.info(f"Already translated: {stats[Outcome.SKIPPED]}")
    logger.info(f"Marked as not translatable: {stats[Outcome.NOT_TRANSLATABLE]}")
    logger.info(f"Unsupported format: {stats[Outcome.UNSUPPORTED]}")
    if stats[Outcome.FAILED]:
        logger.warning(f"Failed: {stats[Outcome.FAILED]} (stored with state 'error')")
    logger.info(f"All languages done. Total time: {format_duration(elapsed)}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-l", "--languages", default="",
    help="A comma separated list of language codes (must match the language codes used by xcstrings).",
)
@click.option("-k", "--openai-key", default="", help="Your OpenAI API key, see: https://platform.openai.com/api-keys")
@click.option("--host", "openai_host", default="", help="Your OpenAI proxy host.")
@click.option("-m", "--model", default="", help="Your model, see: https://platform.openai.com/docs/models")
@click.option(
    "-c", "--concurrency", type=click.IntRange(min=1), default=None,
    help=f"Number of keys translated concurrently. [default: {DEFAULT_CONCURRENCY}]",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every translation and error details.")
@click.option(
    "-s", "--skip-backup", is_flag=True,
    help="By default a backup of the input will be created. When this flag is provided, the backup is skipped.",
)
@click.option(
    "-f", "--force", is_flag=True,
    help="Forces all strings to be translated, even if an existing translation is present.",
)
@click.option("--env-file", default=DEFAULT_ENV_FILE, show_default=True, help="File to read fallback settings from.")
@click.version_option(__version__, prog_name="ai-translate")
def cli(
    input_file: str,
    languages: str,
    openai_key: str,
    openai_host: str,
    model: str,
    concurrency: int | None,
    verbose: bool,
    skip_backup: bool,
    force: bool,
    env_file: str,
) -> None:
    """Translates the missing strings of an Xcode string catalog (.xcstrings) with an OpenAI model."""
    setup_logging(verbose)

    try:
        config = resolve_config(
            languages=gather_languages(languages),
            openai_key=openai_key,
            openai_host=openai_host,
            model=model,
            concurrency=concurrency,
            verbose=verbose,
            skip_backup=skip_backup,
            force=force,
            env_file=env_file,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    logger.debug(f"Using languages: {', '.join(config.languages)}")
    logger.debug(f"Using model: {config.model}")
    logger.debug(f"Using host: {config.openai_host}")

    start = time.monotonic()
    try:
        stats = asyncio.run(translate_file(input_file, config))
    except CatalogError as e:
        logger.critical(f"FATAL: {e}", exc_info=verbose)
        sys.exit(1)

    log_summary(stats, time.monotonic() - start)
