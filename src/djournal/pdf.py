"""PDF export built on reportlab's canvas.

The layout is a single flowing column on A4: a purple header band, titled
sections for each part of the day, then the activity entries with their
images. Pages are produced with `invariant=1` so the same days rendered at
the same `now` give byte-identical files.
"""

from __future__ import annotations

import base64
import io
import logging
from datetime import datetime
from typing import Optional

from reportlab.lib.colors import HexColor, black, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen.canvas import Canvas

from .formatting import (
    capitalize_key,
    current_elapsed_seconds,
    format_duration,
    format_report_date,
    time_since_label,
)
from .models import COUNTER, DayState

logger = logging.getLogger(__name__)

MARGIN = 50
HEADER_HEIGHT = 100

# Minimum room left on the page before an entry / an image starts
ENTRY_BREAK = 150
IMAGE_BREAK = 250

IMAGE_MAX_WIDTH = 400
IMAGE_MAX_HEIGHT = 300

PURPLE = HexColor("#6B46C1")
RULE_GREY = HexColor("#CCCCCC")
MUTED_GREY = HexColor("#999999")
EMPTY_GREY = HexColor("#666666")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

IMAGE_PLACEHOLDER = "[Image could not be embedded]"


def decode_image(image: str) -> bytes:
    """Decode a data URL or bare base64 string to raw bytes."""
    payload = image.split(",", 1)[1] if "," in image else image
    return base64.b64decode(payload)


def fit_image(width: float, height: float, max_width: float, max_height: float) -> tuple[float, float]:
    """Scale (width, height) down to fit the box, keeping the aspect ratio."""
    if width <= 0 or height <= 0:
        return max_width, max_height
    scale = min(max_width / width, max_height / height, 1.0)
    return width * scale, height * scale


class PageWriter:
    """A top-down cursor over a reportlab canvas."""

    def __init__(self, canvas: Canvas):
        self.canvas = canvas
        self.width, self.height = A4
        self.y = self.height - MARGIN

    @property
    def content_width(self) -> float:
        return self.width - 2 * MARGIN

    @property
    def remaining(self) -> float:
        return self.y - MARGIN

    def new_page(self) -> None:
        self.canvas.showPage()
        self.y = self.height - MARGIN

    def ensure(self, needed: float) -> None:
        if self.remaining < needed:
            self.new_page()

    def gap(self, amount: float = 10) -> None:
        self.y -= amount

    def header(self, report_date: str) -> None:
        c = self.canvas
        c.setFillColor(PURPLE)
        c.rect(0, self.height - HEADER_HEIGHT, self.width, HEADER_HEIGHT, stroke=0, fill=1)
        c.setFillColor(white)
        c.setFont(FONT_BOLD, 24)
        c.drawCentredString(self.width / 2, self.height - 45, "DAILY JOURNAL REPORT")
        c.setFont(FONT, 14)
        c.drawCentredString(self.width / 2, self.height - 75, report_date)
        self.y = self.height - HEADER_HEIGHT - 30

    def section(self, title: str) -> None:
        self.ensure(60)
        c = self.canvas
        c.setFillColor(PURPLE)
        c.setStrokeColor(PURPLE)
        c.setFont(FONT_BOLD, 16)
        c.drawString(MARGIN, self.y - 16, title)
        underline_y = self.y - 19
        c.setLineWidth(1)
        c.line(MARGIN, underline_y, MARGIN + c.stringWidth(title, FONT_BOLD, 16), underline_y)
        self.y -= 30

    def text(self, value: str, size: int = 12, color=black, font: str = FONT) -> None:
        """Write wrapped text, breaking pages as lines run out."""
        leading = size * 1.3
        c = self.canvas
        for line in simpleSplit(value, font, size, self.content_width) or [""]:
            if self.remaining < leading:
                self.new_page()
            c.setFillColor(color)
            c.setFont(font, size)
            c.drawString(MARGIN, self.y - size, line)
            self.y -= leading

    def rule(self) -> None:
        c = self.canvas
        c.setStrokeColor(RULE_GREY)
        c.setLineWidth(1)
        c.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= 10

    def image(self, image: str) -> None:
        """Embed an entry image, or a placeholder line if it cannot be decoded."""
        try:
            reader = ImageReader(io.BytesIO(decode_image(image)))
            width, height = fit_image(*reader.getSize(), IMAGE_MAX_WIDTH, IMAGE_MAX_HEIGHT)
            # The whole image stays above the bottom margin
            self.ensure(max(IMAGE_BREAK, height + 10))
            self.canvas.drawImage(reader, MARGIN, self.y - height, width=width, height=height)
        except Exception as e:
            logger.warning("Could not embed entry image: %s", e)
            self.text(IMAGE_PLACEHOLDER, size=10, color=MUTED_GREY)
            return
        self.y -= height + 10


def _render_day(
    writer: PageWriter,
    state: DayState,
    now: datetime,
    username: Optional[str],
    profile: Optional[dict[str, str]],
) -> None:
    writer.header(format_report_date(state.date))

    if username:
        writer.section("USER INFORMATION")
        writer.text(f"User: {username}")
        writer.gap()

    if profile:
        writer.section("PROFILE")
        for key, value in profile.items():
            writer.text(f"{capitalize_key(key)}: {value}")
        writer.gap()

    if state.previous_bedtime or state.wake_time:
        writer.section("SLEEP METRICS")
        if state.previous_bedtime:
            writer.text(f"Bedtime: {state.previous_bedtime}")
        if state.wake_time:
            writer.text(f"Wake Time: {state.wake_time}")
        writer.gap()

    if state.time_since_trackers:
        writer.section("TIME SINCE TRACKERS")
        for tracker in state.time_since_trackers:
            since = time_since_label(tracker.reference_date, now)
            writer.text(
                f"• {tracker.name}: {format_report_date(tracker.reference_date)} ({since})"
            )
        writer.gap()

    if state.duration_trackers:
        writer.section("DURATION TRACKERS")
        for tracker in state.duration_trackers:
            if tracker.is_timer:
                stored = format_duration(tracker.value)
                if tracker.is_running and tracker.start_time is not None:
                    live = format_duration(current_elapsed_seconds(tracker, now))
                    line = f"• {tracker.name} (timer): {live} [RUNNING - stored: {stored}]"
                else:
                    line = f"• {tracker.name} (timer): {stored}"
            elif tracker.kind == COUNTER:
                line = f"• {tracker.name} (counter): {tracker.value} minutes"
            else:
                line = f"• {tracker.name} ({tracker.kind}): {tracker.value}"
            writer.text(line)
        writer.gap()

    if state.custom_counters:
        writer.section("CUSTOM COUNTERS")
        for counter in state.custom_counters:
            writer.text(f"• {counter.name}: {counter.value}")
        writer.gap()

    filled_templates = [f for f in state.template_fields if f.value]
    if filled_templates:
        writer.section("TEMPLATE FIELDS")
        for field in filled_templates:
            writer.text(f"{capitalize_key(field.key)}: {field.value}")
        writer.gap()

    filled_one_offs = [f for f in state.one_off_fields if f.value]
    if filled_one_offs:
        writer.section("DAILY FIELDS")
        for field in filled_one_offs:
            writer.text(f"{capitalize_key(field.key)}: {field.value}")
        writer.gap()

    if state.tasks:
        writer.section("DAILY TASKS")
        for task in state.tasks:
            mark = "[x]" if task.done else "[ ]"
            writer.text(f"{mark} {task.text}")
        writer.gap()

    writer.section("ACTIVITY ENTRIES")
    if not state.entries:
        writer.text("No entries today", color=EMPTY_GREY)
        return

    for entry in state.entries:
        writer.ensure(ENTRY_BREAK)
        writer.rule()
        writer.text(entry.timestamp, size=11, color=PURPLE, font=FONT_BOLD)
        writer.text(entry.text)
        if entry.image:
            writer.gap(5)
            writer.image(entry.image)
        writer.gap()


def render_pdf(
    states: list[DayState],
    now: datetime,
    username: Optional[str] = None,
    profile: Optional[dict[str, str]] = None,
) -> bytes:
    """Render one or more days as a PDF document.

    Each day after the first starts on a new page. Image problems never fail
    the export; the entry gets a placeholder line instead.

    Args:
        states: Days to render, in output order
        now: Reference time for time-since trackers and running timers
        username: Display name for the user section
        profile: Profile fields shown on every day

    Returns:
        The PDF file contents
    """
    buffer = io.BytesIO()
    canvas = Canvas(buffer, pagesize=A4, invariant=1)
    canvas.setTitle("Daily Journal Report")
    writer = PageWriter(canvas)

    for index, state in enumerate(states):
        if index > 0:
            writer.new_page()
        _render_day(writer, state, now, username, profile)

    canvas.showPage()
    canvas.save()
    return buffer.getvalue()
