"""Terminal rendering of the live step list.

Sections are printed flush left, their child steps indented by four spaces. Each line is
`[<glyph>] <label>` with the glyph taken from `PROGRESS_GLYPH`:

- NONE: " " (space)
- PROCESSING: ">"
- DONE: "✓" (U+2713)
- STOPPED: "✗" (U+2717)

With `color=True` the line is wrapped in an ANSI colour: yellow while processing, green
when done, red when stopped. Steps that have not started stay uncoloured.
"""

from __future__ import annotations

from collections.abc import Iterable

from .steps import Step, StepProgress

PROGRESS_GLYPH: dict[StepProgress, str] = {
    StepProgress.NONE: " ",
    StepProgress.PROCESSING: ">",
    StepProgress.DONE: "\u2713",  # ✓
    StepProgress.STOPPED: "\u2717",  # ✗
}

ANSI_COLORS: dict[StepProgress, str] = {
    StepProgress.PROCESSING: "33",
    StepProgress.DONE: "32",
    StepProgress.STOPPED: "31",
}


def render_step(step: Step, *, color: bool = False) -> str:
    indent = "" if step.is_section else "    "
    glyph = PROGRESS_GLYPH.get(step.progress, " ")
    line = f"{indent}[{glyph}] {step.label}"
    code = ANSI_COLORS.get(step.progress)
    if not color or code is None:
        return line
    return f"\033[{code}m{line}\033[0m"


def render_steps(steps: Iterable[Step], *, color: bool = False) -> str:
    lines = [render_step(step, color=color) for step in steps]
    return "\n".join(lines) + "\n"
