"""Board composer for the arrivals display."""

from __future__ import annotations

from PIL import Image, ImageColor, ImageDraw, ImageFont

from stopboard.rendering.frame_data import BoardData, BoardRow

DISPLAY_WIDTH = 480
MIN_DISPLAY_WIDTH = 320
VISIBLE_ROWS = 10

HEADER_HEIGHT = 56
HEADER_BORDER = 6
ROW_HEIGHT = 36
TICKER_HEIGHT = 20

BADGE_LEFT = 8
BADGE_WIDTH = 48
BADGE_MARGIN = 6
DESTINATION_LEFT = BADGE_LEFT + BADGE_WIDTH + 10
COUNTDOWN_WIDTH = 56

COLOR_BACKGROUND = (255, 255, 255)
COLOR_ROW_ALT = (248, 251, 254)
COLOR_HEADER_BORDER = (111, 34, 130)
COLOR_TITLE = (0, 68, 148)
COLOR_SUBTITLE = (156, 163, 175)
COLOR_CLOCK_BOX = (0, 0, 0)
COLOR_COUNTDOWN = (255, 205, 0)
COLOR_BADGE_TEXT = (255, 255, 255)
COLOR_LIVE = (21, 128, 61)
COLOR_ESTIMATED = (107, 114, 128)
COLOR_PLACEHOLDER = (156, 163, 175)
COLOR_TICKER = (55, 65, 81)

NOW_TEXT = "NOW"
OVER_HOUR_TEXT = "+1h"
EMPTY_TEXT = "No buses expected soon."
LOADING_TEXT = "Fetching times..."

FONT = ImageFont.load_default()


def format_countdown(minutes: int) -> str:
    """Countdown label: NOW when due, +1h beyond an hour, otherwise minutes."""
    if minutes <= 0:
        return NOW_TEXT
    if minutes > 59:
        return OVER_HOUR_TEXT
    return f"{minutes} min"


def _text_size(draw: ImageDraw.ImageDraw, text: str) -> tuple[int, int]:
    bbox = draw.textbbox((0, 0), text, font=FONT)
    return bbox[2] - bbox[0], bbox[3] - bbox[1]


def _draw_header(draw: ImageDraw.ImageDraw, data: BoardData, width: int) -> None:
    draw.rectangle((0, HEADER_HEIGHT - HEADER_BORDER, width - 1, HEADER_HEIGHT - 1), fill=COLOR_HEADER_BORDER)
    draw.text((BADGE_LEFT, 12), data.stop_name.upper(), font=FONT, fill=COLOR_TITLE)
    draw.text((BADGE_LEFT, 30), data.area.upper(), font=FONT, fill=COLOR_SUBTITLE)

    clock_width, clock_height = _text_size(draw, data.clock_time)
    box_right = width - BADGE_LEFT
    box_left = box_right - clock_width - 12
    box_top = 10
    box_bottom = box_top + clock_height + 12
    draw.rectangle((box_left, box_top, box_right, box_bottom), fill=COLOR_CLOCK_BOX)
    draw.text((box_left + 6, box_top + 6), data.clock_time, font=FONT, fill=COLOR_COUNTDOWN)


def _draw_row(draw: ImageDraw.ImageDraw, index: int, row: BoardRow, width: int) -> None:
    top = HEADER_HEIGHT + index * ROW_HEIGHT
    bottom = top + ROW_HEIGHT - 1
    background = COLOR_ROW_ALT if index % 2 == 1 else COLOR_BACKGROUND
    draw.rectangle((0, top, width - 1, bottom), fill=background)

    badge_color = ImageColor.getrgb(row.color)
    draw.rectangle(
        (BADGE_LEFT, top + BADGE_MARGIN, BADGE_LEFT + BADGE_WIDTH - 1, bottom - BADGE_MARGIN),
        fill=badge_color,
    )
    line_width, line_height = _text_size(draw, row.line_id)
    draw.text(
        (BADGE_LEFT + (BADGE_WIDTH - line_width) // 2, top + (ROW_HEIGHT - line_height) // 2),
        row.line_id,
        font=FONT,
        fill=COLOR_BADGE_TEXT,
    )

    draw.text((DESTINATION_LEFT, top + 6), row.destination.upper(), font=FONT, fill=COLOR_TITLE)
    tag = "LIVE" if row.is_live else "EST"
    draw.text((DESTINATION_LEFT, top + 20), tag, font=FONT, fill=COLOR_LIVE if row.is_live else COLOR_ESTIMATED)

    box_right = width - BADGE_LEFT
    box_left = box_right - COUNTDOWN_WIDTH
    draw.rectangle((box_left, top + 4, box_right, bottom - 4), fill=COLOR_CLOCK_BOX)
    countdown = format_countdown(row.minutes)
    text_width, text_height = _text_size(draw, countdown)
    draw.text(
        (box_left + (COUNTDOWN_WIDTH - text_width) // 2, top + (ROW_HEIGHT - text_height) // 2),
        countdown,
        font=FONT,
        fill=COLOR_COUNTDOWN,
    )


def board_height(row_count: int) -> int:
    return HEADER_HEIGHT + max(row_count, 1) * ROW_HEIGHT + TICKER_HEIGHT


def compose_board(data: BoardData, width: int = DISPLAY_WIDTH, visible_rows: int = VISIBLE_ROWS) -> Image.Image:
    """Compose an RGB image of the board showing at most ``visible_rows`` arrivals."""
    if width < MIN_DISPLAY_WIDTH:
        raise ValueError(f"Width must be at least {MIN_DISPLAY_WIDTH}, got {width}.")
    if visible_rows < 1:
        raise ValueError(f"visible_rows must be positive, got {visible_rows}.")

    rows = list(data.rows)[:visible_rows]
    height = board_height(len(rows))
    image = Image.new("RGB", (width, height), COLOR_BACKGROUND)
    draw = ImageDraw.Draw(image)

    _draw_header(draw, data, width)

    if rows:
        for idx, row in enumerate(rows):
            _draw_row(draw, idx, row, width)
    else:
        placeholder = LOADING_TEXT if data.loading else EMPTY_TEXT
        text_width, text_height = _text_size(draw, placeholder)
        draw.text(
            ((width - text_width) // 2, HEADER_HEIGHT + (ROW_HEIGHT - text_height) // 2),
            placeholder,
            font=FONT,
            fill=COLOR_PLACEHOLDER,
        )

    if data.ticker_text:
        draw.text((BADGE_LEFT, height - TICKER_HEIGHT + 4), data.ticker_text, font=FONT, fill=COLOR_TICKER)

    return image


__all__ = ["compose_board", "format_countdown", "board_height"]
