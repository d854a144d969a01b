# app/services/text_normalizer.py

import unicodedata


def normalize_message(text: str | None) -> str:
    """
    Fold compatibility glyphs to their canonical ASCII-ish form (NFKC).

    Banks and spammers both send "stylized" text, e.g. mathematical sans-serif
    letters ("𝖽𝖾𝖻𝗂𝗍𝖾𝖽" -> "debited"). Every keyword pattern runs on the
    normalized text. NFKC is idempotent, so normalizing twice is harmless.
    """
    if not text:
        return ""
    return unicodedata.normalize("NFKC", str(text))
