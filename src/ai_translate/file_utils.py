import json
import logging
import os
import shutil
import tempfile

from ai_translate.catalog import Catalog, CatalogError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".original"


def backup_path_for(path: str) -> str:
    return f"{path}{BACKUP_SUFFIX}"


def dump_json(data: dict) -> str:
    """Serializes a document the way Xcode lays out string catalogs."""
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False, separators=(",", " : "))


def read_json_file(path: str) -> dict:
    """Reads and parses a JSON file.

    Args:
        path: Location of the file on disk.

    Returns:
        The decoded JSON document.

    Raises:
        CatalogError: if the file is missing, unreadable, not UTF-8 or not valid JSON.
    """
    logger.debug(f"Reading JSON from {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise CatalogError(f"File not found: {path}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CatalogError(f"Failed to decode JSON from {path}: {e}") from e
    except OSError as e:
        raise CatalogError(f"Could not read {path}: {e}") from e


def write_json_file(path: str, data: dict, backup: bool = False):
    """Writes a dictionary to a JSON file, replacing the target atomically.

    Args:
        path: The file to (over)write.
        data: The dictionary to write as JSON.
        backup: Move the current file to ``<path>.original`` first, replacing
            any earlier backup.

    Raises:
        CatalogError: if the backup or the write fails.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=".ai-translate-", suffix=".tmp", delete=False
        ) as f:
            tmp_path = f.name
            f.write(dump_json(data))

        # Temporary files are created 0600
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)

        if backup and os.path.exists(path):
            backup_path = backup_path_for(path)
            if os.path.exists(backup_path):
                os.remove(backup_path)
            os.replace(path, backup_path)
            logger.info(f"Backed up {path} to {backup_path}")

        os.replace(tmp_path, path)
        tmp_path = None
        logger.debug(f"Successfully wrote {path}")
    except (OSError, ValueError) as e:
        raise CatalogError(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)


def load_catalog(path: str) -> Catalog:
    return Catalog.from_dict(read_json_file(path))


def save_catalog(path: str, catalog: Catalog, backup: bool = False):
    write_json_file(path, catalog.to_dict(), backup=backup)
