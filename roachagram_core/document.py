"""
Document Builder - Themed HTML documents for transformed fragments

Wraps a fragment produced by the text pipeline into a complete document:
- Static: the fragment sits directly in a styled body
- Progressive: the fragment is held in a script literal and revealed one
  character at a time, tags as a single step

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import logging
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from jinja2 import Environment, BaseLoader, select_autoescape
from markupsafe import Markup

logger = logging.getLogger(__name__)

FONT_STYLESHEET = "https://fonts.googleapis.com/css?family=Open+Sans:400,700&display=swap"
DEFAULT_FONT_FAMILY = "'Open Sans', Arial, sans-serif"
DEFAULT_REVEAL_SPEED_MS = 30


class DocumentMode(str, Enum):
    """Shape of the generated document."""
    STATIC = "static"
    PROGRESSIVE = "progressive"


@dataclass
class DocumentTheme:
    """Colors, font and reveal speed of a document."""
    background_color: str = "white"
    text_color: str = "black"
    reveal_speed_ms: int = DEFAULT_REVEAL_SPEED_MS
    font_family: str = DEFAULT_FONT_FAMILY

    @classmethod
    def light(cls, **overrides: Any) -> "DocumentTheme":
        return cls(**{"background_color": "white", "text_color": "black", **overrides})

    @classmethod
    def dark(cls, **overrides: Any) -> "DocumentTheme":
        return cls(**{"background_color": "#1E1E1E", "text_color": "#F2F2F2", **overrides})

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["DocumentTheme"] = None) -> "DocumentTheme":
        """
        Build a theme from a dict with snake_case or camelCase keys.

        Unknown keys are ignored; missing keys come from base (light theme by default).
        """
        theme = base or cls.light()
        aliases = {
            "background_color": ("background_color", "backgroundColor"),
            "text_color": ("text_color", "textColor"),
            "reveal_speed_ms": ("reveal_speed_ms", "revealSpeedMs"),
            "font_family": ("font_family", "fontFamily"),
        }
        values = asdict(theme)
        for field_name, keys in aliases.items():
            for key in keys:
                if data.get(key) is not None:
                    values[field_name] = data[key]
                    break
        values["reveal_speed_ms"] = max(1, int(values["reveal_speed_ms"]))
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Characters that could end a declaration or the <style> block
_CSS_UNSAFE = re.compile(r"[<>{};\\]")


def css_value(value: Any) -> Markup:
    """Filter a theme value for use inside a <style> block."""
    return Markup(_CSS_UNSAFE.sub("", str(value)))


def escape_template_literal(fragment: str) -> str:
    """
    Escape a fragment for a JavaScript template literal inside <script>.

    The escapes are undone by the JavaScript parser, so the revealed text is
    identical to the fragment.
    """
    return (
        fragment.replace("\\", "\\\\")
        .replace("`", "\\`")
        .replace("${", "\\${")
        .replace("</", "<\\/")
    )


# =============================================================================
# Template Strings
# =============================================================================

_HEAD = """<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link href="{{ font_stylesheet }}" rel="stylesheet">
    <style>
      body {
        color: {{ theme.text_color | css }};
        background-color: {{ theme.background_color | css }};
        font-family: {{ theme.font_family | css }};
        margin: 0;
        padding: 10px;
        border: 0;
      }
    </style>
  </head>"""

STATIC_TEMPLATE = """<!DOCTYPE html>
<html>
  """ + _HEAD + """
  <body>
    <p>{{ fragment }}</p>
  </body>
</html>
"""

PROGRESSIVE_TEMPLATE = """<!DOCTYPE html>
<html>
  """ + _HEAD + """
  <body>
    <p id="reveal"></p>
    <script>
      (function () {
        const text = `{{ literal }}`;
        const target = document.getElementById("reveal");
        let index = 0;
        const timer = setInterval(function () {
          if (index >= text.length) {
            clearInterval(timer);
            return;
          }
          if (text[index] === "<") {
            const close = text.indexOf(">", index);
            index = close === -1 ? text.length : close + 1;
          } else {
            index += 1;
          }
          target.innerHTML = text.slice(0, index);
        }, {{ theme.reveal_speed_ms | int }});
      })();
    </script>
  </body>
</html>
"""


class HtmlDocumentBuilder:
    """
    Builds static or progressively revealed HTML documents.

    Example:
        builder = HtmlDocumentBuilder(DocumentTheme.dark(reveal_speed_ms=20))
        html = builder.build(fragment, DocumentMode.PROGRESSIVE)
    """

    def __init__(self, theme: Optional[DocumentTheme] = None):
        self.theme = theme or DocumentTheme.light()
        self.env = Environment(
            loader=BaseLoader(),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["css"] = css_value
        self._static = self.env.from_string(STATIC_TEMPLATE)
        self._progressive = self.env.from_string(PROGRESSIVE_TEMPLATE)

    def build_static(self, fragment: str) -> str:
        """Embed the fragment directly in the document body."""
        return self._static.render(
            theme=self.theme,
            font_stylesheet=FONT_STYLESHEET,
            fragment=Markup(fragment),
        )

    def build_progressive(self, fragment: str) -> str:
        """Embed the fragment as a script literal revealed character by character."""
        return self._progressive.render(
            theme=self.theme,
            font_stylesheet=FONT_STYLESHEET,
            literal=Markup(escape_template_literal(fragment)),
        )

    def build(self, fragment: str, mode: DocumentMode = DocumentMode.STATIC) -> str:
        mode = DocumentMode(mode)
        logger.debug(f"Building {mode.value} document ({len(fragment)} chars)")
        if mode == DocumentMode.PROGRESSIVE:
            return self.build_progressive(fragment)
        return self.build_static(fragment)
