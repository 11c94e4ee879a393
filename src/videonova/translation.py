"""
Transcript translation with OpenAI chat completions.
"""

import logging

from openai import AsyncOpenAI, OpenAIError

from .errors import ProviderError
from .models import AUTO_LANGUAGE, TranslationResult

logger = logging.getLogger("videonova")

SYSTEM_PROMPT = (
    "You are a professional translator specializing in spoken content for voice-over. "
    "Always provide accurate, natural translations."
)


def get_language_name(language_code: str) -> str:
    """Get human-readable language name from language code."""
    language_names = {
        "ru": "Russian",
        "de": "German",
        "fr": "French",
        "es": "Spanish",
        "it": "Italian",
        "pt": "Portuguese",
        "ja": "Japanese",
        "ko": "Korean",
        "zh": "Chinese",
        "ar": "Arabic",
        "hi": "Hindi",
        "en": "English",
        "uk": "Ukrainian",
        "pl": "Polish",
        "nl": "Dutch",
        "sv": "Swedish",
        "no": "Norwegian",
        "da": "Danish",
        "fi": "Finnish",
        "tr": "Turkish",
        "he": "Hebrew",
        "th": "Thai",
        "vi": "Vietnamese",
    }
    code = language_code.lower()
    if code in language_names:
        return language_names[code]
    # Whisper reports full names ("english")
    if len(code) > 3:
        return language_code.capitalize()
    return language_code.upper()


def build_prompt(text: str, target_lang: str, source_lang: str | None) -> str:
    target = get_language_name(target_lang)
    if source_lang and source_lang != AUTO_LANGUAGE:
        head = f"Translate the following text from {get_language_name(source_lang)} to {target}."
    else:
        head = f"Translate the following text to {target}. Detect the source language automatically."
    return (
        f"{head}\n"
        "Maintain the original tone, style, and meaning. Keep technical terms accurate.\n"
        "Return only the translated text without any explanations or additional text.\n\n"
        f"Text to translate:\n{text}"
    )


class OpenAITranslator:
    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    async def translate(
        self, text: str, target_lang: str, source_lang: str | None = None
    ) -> TranslationResult:
        """
        Translate `text` into `target_lang`.

        Empty input is returned as-is without a request; the provider may also
        legitimately answer with empty text.
        """
        if not text.strip():
            return TranslationResult(translated_text="", target_lang=target_lang, source_lang=source_lang)

        logger.info(
            "Translating %d characters (%s -> %s) using %s...",
            len(text),
            source_lang or AUTO_LANGUAGE,
            target_lang,
            self.model,
        )
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(text, target_lang, source_lang)},
                ],
                temperature=0.3,
                max_tokens=min(4096, max(len(text) * 2, 256)),
            )
        except OpenAIError as e:
            raise ProviderError(f"Failed to translate text: {e}") from e

        choices = response.choices or []
        content = choices[0].message.content if choices else None
        translated_text = (content or "").strip()
        logger.info("Translation completed: %d -> %d characters", len(text), len(translated_text))
        return TranslationResult(
            translated_text=translated_text, target_lang=target_lang, source_lang=source_lang
        )
