"""
Text Format - Ordered transform pipeline for anagram service responses

Turns the loosely formatted text returned by the anagram backend into an
HTML fragment that only carries <b>, <br> and <p> markup.

Stages run in a fixed order; each one is a pure str -> str function that can
be called on its own:

    1. decode_unicode_escapes     \\uXXXX and simple backslash escapes
    2. decode_html_entities       &amp; &#39; ...
    3. newlines_to_breaks         \\n -> <br>
    4. markdown_bold_to_html      **hello world** -> <b>Hello World</b>
    5. bold_heading_sections      ### Heading: -> <b>Heading:</b>
    6. capitalize_quoted_phrases  "jane doe" -> "Jane Doe"
    7. finalize_fragment          optional caption, apostrophe stripping

Entities decoded in stage 2 are not re-escaped: the backend is trusted to
send text, not markup.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import html
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

BREAK = "<br>"

# Surrogate pair first so that two escapes combine into one character
_ESCAPE_PATTERN = re.compile(
    r"\\u([dD][89abAB][0-9a-fA-F]{2})\\u([dD][c-fC-F][0-9a-fA-F]{2})"
    r"|\\u([0-9a-fA-F]{4})"
    r"|\\([nrt\"\\/])"
)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    '"': '"',
    "\\": "\\",
    "/": "/",
}

_BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")

# A line starts at the beginning of the text or right after a <br>
_HEADING_PATTERN = re.compile(
    r"(?:^|(?<=<br>))###[ \t]*((?:(?!<br>)[^\r\n:])+:)",
    re.MULTILINE,
)

_QUOTED_PATTERN = re.compile(r'"(.*?)"')
_TAG_SPLIT = re.compile(r"(<[^>]*>)")


# =============================================================================
# Word helpers
# =============================================================================

def capitalize_word(word: str) -> str:
    """Upper-case the first letter, lower-case the rest. Empty words pass through."""
    if not word:
        return word
    return word[0].upper() + word[1:].lower()


def title_case_words(text: str) -> str:
    """
    Title-case every word of text, splitting on single spaces.

    Empty words produced by repeated spaces are kept as-is, so the spacing of
    the input is preserved exactly.
    """
    return " ".join(capitalize_word(word) for word in text.split(" "))


def _title_case_outside_tags(text: str) -> str:
    parts = _TAG_SPLIT.split(text)
    return "".join(
        part if _TAG_SPLIT.fullmatch(part) else title_case_words(part)
        for part in parts
    )


# =============================================================================
# Stages
# =============================================================================

def decode_unicode_escapes(text: str) -> str:
    """
    Decode literal backslash escapes (\\uXXXX, \\n, \\t, ...).

    Malformed escapes, including lone UTF-16 surrogates, are left untouched.
    """
    def _replace(match: "re.Match[str]") -> str:
        high, low, code, simple = match.groups()
        if high is not None:
            pair = (int(high, 16) - 0xD800) * 0x400 + (int(low, 16) - 0xDC00)
            return chr(0x10000 + pair)
        if code is not None:
            value = int(code, 16)
            if 0xD800 <= value <= 0xDFFF:
                return match.group(0)
            return chr(value)
        return _SIMPLE_ESCAPES[simple]

    return _ESCAPE_PATTERN.sub(_replace, text)


def decode_html_entities(text: str) -> str:
    """Decode named and numeric HTML entities."""
    return html.unescape(text)


def newlines_to_breaks(text: str) -> str:
    """Replace each newline with a <br> marker. CRLF counts as one newline."""
    return text.replace("\r\n", "\n").replace("\n", BREAK)


def markdown_bold_to_html(text: str) -> str:
    """Replace **phrase** with <b>Title Cased Phrase</b>."""
    return _BOLD_PATTERN.sub(
        lambda m: f"<b>{title_case_words(m.group(1))}</b>",
        text,
    )


def bold_heading_sections(text: str) -> str:
    """
    Bold '### Heading:' phrases found at the start of a line.

    The phrase stops at the first colon; a heading line without a colon is
    left as it is.
    """
    return _HEADING_PATTERN.sub(lambda m: f"<b>{m.group(1)}</b>", text)


def capitalize_quoted_phrases(text: str) -> str:
    """Title-case each word inside double quotes, leaving tags intact."""
    return _QUOTED_PATTERN.sub(
        lambda m: f'"{_title_case_outside_tags(m.group(1))}"',
        text,
    )


def finalize_fragment(
    text: str,
    caption: Optional[str] = None,
    strip_apostrophes: bool = False,
) -> str:
    """
    Apply the variant-dependent last step.

    Args:
        text: Fragment produced by the previous stages
        caption: Submitted word shown above the body (escaped)
        strip_apostrophes: Drop ' characters from the body

    Returns:
        Final fragment
    """
    if strip_apostrophes:
        text = text.replace("'", "")

    if caption and caption.strip():
        heading = html.escape(title_case_words(caption.strip()), quote=False)
        text = f"<p><b>{heading}</b></p>{text}"

    return text


# =============================================================================
# Pipeline
# =============================================================================

@dataclass(frozen=True)
class TransformStage:
    """A named str -> str transform."""
    name: str
    func: Callable[[str], str]

    def __call__(self, text: str) -> str:
        return self.func(text)


DEFAULT_STAGES: Tuple[TransformStage, ...] = (
    TransformStage("unicode_escape_decode", decode_unicode_escapes),
    TransformStage("html_entity_decode", decode_html_entities),
    TransformStage("newline_to_break", newlines_to_breaks),
    TransformStage("bold_markdown_to_html", markdown_bold_to_html),
    TransformStage("heading_colon_bold", bold_heading_sections),
    TransformStage("quoted_phrase_title_case", capitalize_quoted_phrases),
)


class TextTransformPipeline:
    """
    Runs the transform stages in order, then the finalization step.

    Example:
        pipeline = TextTransformPipeline()
        fragment = pipeline.transform('He said **hello world**\\n')
        # 'He said <b>Hello World</b><br>'
    """

    def __init__(self, stages: Iterable[TransformStage] = DEFAULT_STAGES):
        self.stages: Tuple[TransformStage, ...] = tuple(stages)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def transform(
        self,
        raw: str,
        caption: Optional[str] = None,
        strip_apostrophes: bool = False,
    ) -> str:
        """
        Transform raw backend text into an HTML fragment.

        Args:
            raw: Untrusted response text
            caption: Optional user input to prepend as a caption
            strip_apostrophes: Remove apostrophes (progressive documents)

        Returns:
            HTML fragment
        """
        text = raw or ""
        for stage in self.stages:
            text = stage(text)
        return finalize_fragment(text, caption=caption, strip_apostrophes=strip_apostrophes)


_default_pipeline = TextTransformPipeline()


def format_api_response(
    raw: str,
    caption: Optional[str] = None,
    strip_apostrophes: bool = False,
) -> str:
    """Transform raw response text with the default pipeline."""
    return _default_pipeline.transform(raw, caption=caption, strip_apostrophes=strip_apostrophes)
