"""DocumentRenderer — turns an artifact into a downloadable HTML file.

Two formats come out of one Jinja2 layout:

  - primary: Word-compatible HTML saved as ``.doc``
  - print:   the same HTML saved as ``.html`` with a script that opens
             the browser's print dialog on load

Section bodies are plain text with a small markup vocabulary
(``**bold**``, ``<u>underline</u>``, and ``**<u>Header</u>**`` lines for
section headers).  Everything else is escaped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import jinja2
from markupsafe import Markup, escape

from relocation_flows.models.artifact import Artifact, DownloadFormat
from relocation_flows.models.flow import FlowCategory

PRINT_SCRIPT = "<script>window.onload=function(){window.print();}</script>"

_EXTENSIONS: dict[DownloadFormat, str] = {
    DownloadFormat.PRIMARY: "doc",
    DownloadFormat.PRINT: "html",
}

_UNDERLINE = re.compile(r"<u>([^<]+)</u>")
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_HEADER = re.compile(r"<strong><u>([^<]+)</u></strong>")

# Sentinels survive escaping untouched
_U_OPEN, _U_CLOSE = "\x00U\x00", "\x00/U\x00"
_H_OPEN, _H_CLOSE = "\x00H\x00", "\x00/H\x00"


def format_body(text: str) -> Markup:
    """Escape *text* and apply the bold / underline / header markup.

    ``**<u>Title</u>**`` becomes ``<h3>Title</h3>`` without stray line
    breaks around it; remaining newlines become ``<br>``.
    """
    body = _UNDERLINE.sub(lambda m: f"{_U_OPEN}{m.group(1)}{_U_CLOSE}", text or "")
    body = str(escape(body))
    body = body.replace(_U_OPEN, "<u>").replace(_U_CLOSE, "</u>")
    body = _BOLD.sub(r"<strong>\1</strong>", body)
    body = _HEADER.sub(lambda m: f"{_H_OPEN}{m.group(1)}{_H_CLOSE}", body)

    body = re.sub(r"\n*" + re.escape(_H_OPEN), "\n\n" + _H_OPEN, body)
    body = re.sub(re.escape(_H_CLOSE) + r"\n*", _H_CLOSE + "\n", body)
    body = body.strip("\n").replace("\n", "<br>\n")

    body = body.replace(_H_OPEN, "<h3>").replace(_H_CLOSE, "</h3>")
    body = re.sub(r"</h3>\s*<br>\s*", "</h3>\n", body)
    body = re.sub(r"(<br>\s*)+<h3>", "\n<h3>", body)
    return Markup(body)


def safe_filename(title: str) -> str:
    """Filesystem-safe stem: word characters, dots and dashes only."""
    stem = re.sub(r"[^\w.\-]+", "-", title.strip(), flags=re.UNICODE)
    stem = re.sub(r"-{2,}", "-", stem).strip("-.")
    return stem or "document"


@dataclass(frozen=True)
class RenderedFile:
    """A rendered artifact ready to be written to disk."""

    filename: str
    extension: str
    html: str

    @property
    def name(self) -> str:
        return f"{self.filename}.{self.extension}"


class DocumentRenderer:
    """Renders artifacts through ``layouts/document.html.jinja2``.

    Args:
        template_dir: optional override for the layout directory
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "layouts"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters["body"] = format_body

    def render(
        self,
        artifact: Artifact,
        fmt: DownloadFormat,
        *,
        generated_at: datetime,
        tag: str | None = None,
    ) -> RenderedFile:
        """Render *artifact* in *fmt*.

        *tag* is appended to the file stem; callers pass something unique
        per artifact so two artifacts with the same title never share a file.
        """
        html = self._env.get_template("document.html.jinja2").render(
            title=artifact.title,
            subtitle=artifact.subtitle,
            date=generated_at.strftime("%B %d, %Y"),
            sections=artifact.sections,
            # Letters carry their own header block; guides get a title page
            show_heading=artifact.flow_type.category is FlowCategory.GUIDE,
        )
        if fmt is DownloadFormat.PRINT:
            html = html.replace("</head>", f"{PRINT_SCRIPT}</head>", 1)

        stem = f"{safe_filename(artifact.title)}-{generated_at:%Y-%m-%d}"
        if tag:
            stem = f"{stem}-{safe_filename(tag)}"
        return RenderedFile(
            filename=stem,
            extension=_EXTENSIONS[fmt],
            html=html,
        )
