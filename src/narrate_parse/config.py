"""Parser options and layered configuration lookup."""

from typing import Any, Protocol

from pydantic import BaseModel, Field, TypeAdapter

# Keys read through ConfigResolver, with their defaults
DEFAULTS: dict[str, Any] = {
    "words_per_minute": 200,
    "sentence_words_per_second": 4,
    "confidence_base": 0.7,
    "chapter_max_level": 2,
    "max_file_size_mb": 50,
    "min_sentence_length": 5,
    "max_sentence_length": 500,
    "include_code_blocks": False,
    "include_tables": False,
    "short_chapter_words": 500,
}

_BOOL = TypeAdapter(bool)


class ConfigLookup(Protocol):
    """Anything with a dict-style get, such as a plain dict."""

    def get(self, key: str, default: Any = None) -> Any: ...


class ParserOptions(BaseModel):
    """Per-instance parser options."""

    extract_media: bool = True  # EPUB asset extraction
    preserve_html: bool = False  # Keep inline markup in sentence text
    chapter_sensitivity: float = Field(default=0.8, ge=0.0, le=1.0)
    strict_mode: bool = False  # Escalate structural warnings to errors
    verbose: bool = False
    config: dict[str, Any] = Field(default_factory=dict)


class ConfigResolver:
    """Resolve a key from options.config, then the injected lookup, then DEFAULTS."""

    def __init__(self, options: ParserOptions, lookup: ConfigLookup | None = None):
        self.options = options
        self.lookup = lookup

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.options.config:
            return self.options.config[key]
        fallback = DEFAULTS.get(key, default)
        if self.lookup is not None:
            return self.lookup.get(key, fallback)
        return fallback

    def get_int(self, key: str) -> int:
        return int(self.get(key))

    def get_float(self, key: str) -> float:
        return float(self.get(key))

    def get_bool(self, key: str) -> bool:
        """Read a flag, accepting strings such as "false", "0", "no" and "off"."""
        value = self.get(key)
        if isinstance(value, str):
            value = value.strip()
        return _BOOL.validate_python(value)
