"""
Markdown log of one detection/recognition attempt.

    run_log = RunLogger(url="https://example.com/login", command_line="autocaptcha solve ...")
    run_log.log_heading("Detection")
    run_log.log_pairs(result.pairs)
    run_log.log_recognition(recognition)
    run_log.finalize(success=True, duration_ms=830)

Sections are kept in memory and the whole file is rewritten after every
call, so an interrupted run still leaves a readable log.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union

PAIR_COLUMNS = ["Rank", "Distance", "Image", "Input", "Reason"]


def _anchor(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.strip().lower())
    return re.sub(r"\s+", "-", slug)


def _cell(value: Any) -> str:
    return str(value).replace("|", "\\|")


class RunLogger:
    """Writes ``<log_dir>/run-<session>.md``."""

    def __init__(
        self,
        url: Optional[str] = None,
        command_line: Optional[str] = None,
        log_dir: Union[str, Path] = "./logs",
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.url = url
        self.command_line = command_line
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self.path = log_dir / f'run-{self.session_id}.md'
        # (title, lines) per section; the first one has no heading
        self._sections: List[tuple] = [("", [])]
        self._flush()

    @property
    def log_path(self) -> str:
        return str(self.path)

    def _render(self) -> str:
        out = [f"# autocaptcha run {self.session_id}", ""]
        titles = [title for title, _ in self._sections if title]
        if titles:
            out += [f"- [{t}](#{_anchor(t)})" for t in titles] + [""]
        if self.command_line:
            out += ["```bash", self.command_line, "```", ""]
        if self.url:
            out += [f"- **URL**: {self.url}", ""]
        for title, lines in self._sections:
            if title:
                out += ["---", "", f"## {title}", ""]
            out += lines
        return "\n".join(out) + "\n"

    def _flush(self) -> None:
        self.path.write_text(self._render(), encoding="utf-8")

    def _add(self, *lines: str) -> None:
        self._sections[-1][1].extend(lines)
        self._flush()

    def log_heading(self, title: str):
        self._sections.append((title, []))
        self._flush()

    def log_kv(self, key: str, value: Any):
        self._add(f"- {key}: {value}")

    def log_pairs(self, pairs: List[Any], source: str = ""):
        """Table of ranked pairings, one row per ``Pairing.to_dict()``."""
        if source:
            self._add(f"- Source: {source}", "")
        if not pairs:
            self._add("", "No image/input pair found.", "")
            return
        rows = ["", "| " + " | ".join(PAIR_COLUMNS) + " |", "|" + "---|" * len(PAIR_COLUMNS)]
        for p in pairs:
            d = p.to_dict()
            cells = [d["rank"], d["distance"], d["imageSelector"], d["inputSelector"], d["imageReason"]]
            rows.append("| " + " | ".join(_cell(c) for c in cells) + " |")
        self._add(*rows, "")

    def log_recognition(self, result: Any):
        """Provider outcome of a ``RecognitionResult``."""
        self.log_kv("Provider", result.provider or "-")
        if result.success:
            self._add(f"- Text: `{result.text}`", "")
            return
        kind = result.error_kind.value if result.error_kind else "UnknownError"
        self._add(f"- Error kind: {kind}", "")
        self.log_error(result.message)

    def log_success(self, message: str):
        self._add(f"✅ **SUCCESS:** {message}", "")

    def log_error(self, message: str):
        self._add(f"❌ **ERROR:** {message}", "")

    def finalize(self, success: bool, duration_ms: int = 0, error: Optional[str] = None):
        self._sections.append(("Summary", [
            f"**Status:** {'✅ SUCCESS' if success else '❌ FAILED'}",
            f"**Duration:** {duration_ms}ms",
        ]))
        if error:
            self._sections[-1][1].extend(["", f"**Error:** {error}"])
        self._flush()
