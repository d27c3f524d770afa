"""
Virtual Lab Assistant - Text Utilities
=======================================
Helpers for text cleaning and for the image heuristics of the chat
pipeline:

  • ``find_image_references`` – ``images/...`` paths mentioned in text.
  • ``normalize_image_links`` – rewrite those mentions as Markdown embeds.
  • ``match_images``          – image files whose name appears in a question.

Everything here is stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path

# Control characters except \n \r \t, plus BOM / zero-width / soft hyphen.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# ``images/Capacitor.png`` with an optional leading slash; the path ends
# before whitespace, a closing bracket, or trailing punctuation.
_IMAGE_PATH = r"/?images/[\w\-./%]+?\.(?:png|jpe?g|gif|svg|webp)"
_PATH_END = r"(?=[\s)\]}.,!?;:]|$)"

_LABELLED_IMAGE_RE = re.compile(rf"\b(Photo|Symbol|Image|Figure|Pic|Picture)\s*:\s*({_IMAGE_PATH}){_PATH_END}", re.IGNORECASE)
_BARE_IMAGE_RE = re.compile(rf"(^|\s|(?<!\])\()({_IMAGE_PATH}){_PATH_END}", re.IGNORECASE | re.MULTILINE)
_ANY_IMAGE_RE = re.compile(rf"(?<![\w/]){_IMAGE_PATH}{_PATH_END}", re.IGNORECASE)

IMAGE_EXTENSIONS: frozenset[str] = frozenset({".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp"})


def clean_text(text: str) -> str:
    """
    Sanitise raw document text for embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse horizontal whitespace, *preserving* newlines.
        4. Strip every line.
        5. Collapse 3+ consecutive blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _web_path(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def find_image_references(text: str) -> list[str]:
    """
    Return the distinct ``/images/...`` paths mentioned in *text*, in order.

    ``"Symbol: images/Capacitor.png."`` → ``["/images/Capacitor.png"]``
    """
    found: list[str] = []
    for match in _ANY_IMAGE_RE.finditer(text):
        path = _web_path(match.group(0))
        if path not in found:
            found.append(path)
    return found


def normalize_image_links(text: str) -> str:
    """
    Turn image mentions into Markdown image embeds.

    Labelled references keep their label::

        "Symbol: images/Capacitor.png."  → "Symbol: ![](/images/Capacitor.png)."
        "as in images/setup.jpg"         → "as in ![](/images/setup.jpg)"

    Paths already inside ``![](...)`` are left alone.
    """
    if not text:
        return ""

    out = _LABELLED_IMAGE_RE.sub(lambda m: f"{m.group(1)}: ![]({_web_path(m.group(2))})", text)
    out = _BARE_IMAGE_RE.sub(lambda m: f"{m.group(1)}![]({_web_path(m.group(2))})", out)
    return out


def _stem_to_phrase(stem: str) -> str:
    return re.sub(r"[_\-]+", " ", stem).strip().lower()


def match_images(question: str, available: list[str]) -> list[str]:
    """
    Pick images whose file name is named in *question*.

    ``available`` holds web paths such as ``/images/Variable_Resistor.png``;
    the stem is compared as a whole phrase (underscores and hyphens read
    as spaces, case-insensitive, optional plural ``s``).
    """
    question_lower = question.lower()
    matched: list[str] = []
    for path in available:
        phrase = _stem_to_phrase(Path(path).stem)
        if len(phrase) < 3:
            continue
        pattern = r"\b" + r"\s+".join(re.escape(word) for word in phrase.split()) + r"s?\b"
        if re.search(pattern, question_lower) and path not in matched:
            matched.append(path)
    return matched


def list_image_paths(images_dir: Path) -> list[str]:
    """Return ``/images/<relative path>`` for every image file under *images_dir*."""
    if not images_dir.is_dir():
        return []
    return sorted(
        "/images/" + p.relative_to(images_dir).as_posix()
        for p in images_dir.rglob("*")
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )
