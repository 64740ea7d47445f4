import logging
import unicodedata

from openai import AsyncOpenAI

from ai_translate.config import Config

# Logger setup is handled in main, we just get it here.
logger = logging.getLogger(__name__)

# --- Model Configuration ---
REQUEST_TIMEOUT_SECONDS = 60.0
# Single attempt per string; failures are recorded, not retried.
MAX_RETRIES = 0

SYSTEM_PROMPT = """\
You are a translator tool that translates UI strings for a software application.
Your inputs will be a source language, a target language, the original text, and
optionally some context to help you understand how the original text is used within
the application. Each piece of information will be inside some XML-like tags.
In your response include *only* the translation, and do not include any metadata, tags,
periods, quotes, or new lines, unless included in the original text.
Keep printf-style placeholders such as %@, %d, %lld or %1$@ and multi-letter
acronyms exactly as they appear in the original text."""


def is_blank_text(text: str) -> bool:
    """True for text made only of whitespace, symbols and control characters."""
    for char in text:
        if char.isspace():
            continue
        category = unicodedata.category(char)
        if category.startswith("S") or category in ("Cc", "Cf"):
            continue
        return False
    return True


def build_translation_request(text: str, source: str, target: str, context: str | None = None) -> str:
    request = f"<source>{source}</source>"
    request += f"<target>{target}</target>"
    request += f"<original>{text}</original>"
    if context:
        request += f"<context>{context}</context>"
    return request


def create_openai_client(config: Config) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=config.openai_key,
        base_url=config.base_url,
        timeout=REQUEST_TIMEOUT_SECONDS,
        max_retries=MAX_RETRIES,
    )


class TranslationClient:
    """Translates single strings through a chat completion endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str, verbose: bool = False):
        self.client = client
        self.model = model
        self.verbose = verbose

    @classmethod
    def from_config(cls, config: Config) -> "TranslationClient":
        return cls(create_openai_client(config), config.model, verbose=config.verbose)

    async def translate(self, text: str, source: str, target: str, context: str | None = None) -> str | None:
        """
        Translates one string.

        Args:
            text: The original text.
            source: Language code of the original text.
            target: Language code to translate into.
            context: Optional hint on how the string is used.

        Returns:
            The translation, the unchanged text when there is nothing to
            translate, or None if the request failed.
        """
        if not text or is_blank_text(text):
            return text

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_translation_request(text, source, target, context)},
        ]

        try:
            response = await self.client.chat.completions.create(model=self.model, messages=messages)
        except Exception as e:
            logger.error(f"Failed to translate '{text}' into {target}")
            if self.verbose:
                logger.error(f"Error details: {e}", exc_info=True)
            return None

        translation = None
        if response.choices:
            translation = response.choices[0].message.content
        if translation is None:
            translation = text

        logger.debug(f"[{target}] {text} -> {translation}")
        return translation

    async def close(self):
        await self.client.close()
