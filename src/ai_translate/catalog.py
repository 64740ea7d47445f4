"""
In-memory model of an Xcode string catalog (.xcstrings).

Only the plain ``stringUnit`` form of a localization is modelled. Units using
``variations`` (plural / device) or ``substitutions`` are kept as raw mappings
and written back untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from jsonschema import validate, ValidationError

logger = logging.getLogger(__name__)

STATE_TRANSLATED = "translated"
STATE_ERROR = "error"

UNSUPPORTED_UNIT_KEYS = ("variations", "substitutions")

CATALOG_SCHEMA = {
    "type": "object",
    "required": ["sourceLanguage", "strings"],
    "properties": {
        "sourceLanguage": {"type": "string", "minLength": 1},
        "version": {"type": "string"},
        "strings": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "comment": {"type": "string"},
                    "shouldTranslate": {"type": "boolean"},
                    "localizations": {
                        "type": "object",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {
                                "stringUnit": {
                                    "type": "object",
                                    "required": ["state", "value"],
                                    "properties": {
                                        "state": {"type": "string"},
                                        "value": {"type": "string"},
                                    },
                                },
                            },
                        },
                    },
                },
            },
        },
    },
}


class CatalogError(Exception):
    """Raised when a catalog cannot be read, parsed or written."""


@dataclass
class StringUnit:
    state: str
    value: str

    @classmethod
    def from_dict(cls, data: dict) -> "StringUnit":
        return cls(state=data["state"], value=data["value"])

    def to_dict(self) -> dict:
        return {"state": self.state, "value": self.value}


@dataclass
class StringLocalization:
    """A localization in the plain string unit form."""
    string_unit: StringUnit | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    is_supported_format = True

    @property
    def has_translation(self) -> bool:
        return (
            self.string_unit is not None
            and self.string_unit.state == STATE_TRANSLATED
            and bool(self.string_unit.value)
        )

    @property
    def value(self) -> str | None:
        return self.string_unit.value if self.string_unit else None

    def to_dict(self) -> dict:
        data = dict(self.extra)
        if self.string_unit is not None:
            data["stringUnit"] = self.string_unit.to_dict()
        return data


@dataclass
class UnsupportedLocalization:
    """A plural, device-variant or substitution localization, passed through as-is."""
    raw: dict[str, Any]

    is_supported_format = False
    has_translation = False
    value = None

    def to_dict(self) -> dict:
        return dict(self.raw)


LocalizationUnit = StringLocalization | UnsupportedLocalization


def parse_localization_unit(data: dict) -> LocalizationUnit:
    """Picks the unit variant from the keys present in the raw mapping."""
    if any(key in data for key in UNSUPPORTED_UNIT_KEYS):
        return UnsupportedLocalization(raw=dict(data))
    extra = {key: value for key, value in data.items() if key != "stringUnit"}
    string_unit = StringUnit.from_dict(data["stringUnit"]) if "stringUnit" in data else None
    return StringLocalization(string_unit=string_unit, extra=extra)


@dataclass
class LocalizationGroup:
    comment: str | None = None
    should_translate: bool | None = None
    localizations: dict[str, LocalizationUnit] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    # Written back even when empty if the input had the key
    localizations_present: bool = field(default=False, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "LocalizationGroup":
        known = ("comment", "shouldTranslate", "localizations")
        return cls(
            comment=data.get("comment"),
            should_translate=data.get("shouldTranslate"),
            localizations={
                lang: parse_localization_unit(unit)
                for lang, unit in data.get("localizations", {}).items()
            },
            extra={key: value for key, value in data.items() if key not in known},
            localizations_present="localizations" in data,
        )

    def to_dict(self) -> dict:
        data = dict(self.extra)
        if self.comment is not None:
            data["comment"] = self.comment
        if self.should_translate is not None:
            data["shouldTranslate"] = self.should_translate
        if self.localizations or self.localizations_present:
            data["localizations"] = {
                lang: unit.to_dict() for lang, unit in self.localizations.items()
            }
        return data

    def set_string(self, language: str, value: str, state: str = STATE_TRANSLATED):
        """Stores a plain string unit for the language, keeping any extra unit fields."""
        existing = self.localizations.get(language)
        extra = existing.extra if isinstance(existing, StringLocalization) else {}
        self.localizations[language] = StringLocalization(
            string_unit=StringUnit(state=state, value=value), extra=dict(extra)
        )


@dataclass
class Catalog:
    source_language: str
    strings: dict[str, LocalizationGroup] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        """
        Builds a catalog from a decoded .xcstrings document.

        Raises:
            CatalogError: if the document does not match CATALOG_SCHEMA.
        """
        try:
            validate(instance=data, schema=CATALOG_SCHEMA)
        except ValidationError as e:
            location = "/".join(str(part) for part in e.absolute_path) or "<root>"
            raise CatalogError(f"Invalid string catalog at '{location}': {e.message}") from e

        catalog = cls(
            source_language=data["sourceLanguage"],
            strings={
                key: LocalizationGroup.from_dict(group)
                for key, group in data["strings"].items()
            },
            extra={
                key: value for key, value in data.items()
                if key not in ("sourceLanguage", "strings")
            },
        )
        logger.debug(f"Parsed catalog with {len(catalog.strings)} keys, source language '{catalog.source_language}'.")
        return catalog

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["sourceLanguage"] = self.source_language
        data["strings"] = {key: group.to_dict() for key, group in self.strings.items()}
        return data

    def sorted_keys(self) -> list[str]:
        return sorted(self.strings)
