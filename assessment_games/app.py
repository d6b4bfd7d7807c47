"""Pygame shell for the cognitive assessment games.

Four tasks are reachable from the main menu:
- Maze Navigation (arrow keys)
- Clock Drawing (drag the hands with the mouse)
- N-Back Memory (Space on a match)
- Trail Making (drag from dot to dot)

Generation, timing and scoring live in the engine modules; screens here only
translate pygame events into engine calls and draw engine snapshots.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import Clock, RealClock
from .clock_drawing import ClockConfig, ClockEngine, ClockPayload, Hand, build_clock_test, hand_tip
from .cognitive_core import GameSnapshot, Point, SessionState, format_mm_ss
from .maze import Cell, MazeConfig, MazeEngine, MazePayload, build_maze_test
from .nback import NBackConfig, NBackEngine, NBackPayload, NBackScore, Shape, build_nback_test
from .results import (
    AssessmentResult,
    append_result_jsonl,
    clock_assessment_result,
    maze_assessment_result,
    nback_assessment_result,
    trail_assessment_result,
)
from .settings import AppSettings, configure_logging
from .trail import DotStatus, TrailConfig, TrailEngine, TrailPayload, TrailResult, build_trail_test

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 600)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
BOARD_BG = (249, 250, 251)
WALL_COLOR = (51, 51, 51)
CELL_BORDER = (221, 221, 221)
PLAYER_COLOR = (87, 181, 231)
EXIT_COLOR = (76, 175, 80)
ERROR_COLOR = (244, 67, 54)
LINE_COLOR = (51, 51, 51)

SHAPE_COLORS: dict[Shape, tuple[int, int, int]] = {
    Shape.SQUARE: (87, 181, 231),
    Shape.CIRCLE: (141, 211, 199),
    Shape.TRIANGLE: (255, 159, 127),
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, settings: AppSettings) -> None:
        self._surface = surface
        self._settings = settings
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the root screen; it handles its own quit behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def record(self, result: AssessmentResult) -> None:
        logger.info("%s finished: %s", result.test_code, result.metrics)
        path = self._settings.results_path
        if path is None:
            return
        try:
            append_result_jsonl(path, result)
        except OSError:
            logger.exception("Could not write result to %s", path)

    def new_seed(self) -> int:
        if self._settings.fixed_seed is not None:
            return self._settings.fixed_seed
        return random.SystemRandom().randint(1, 2**31 - 1)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _draw_frame(
    surface: pygame.Surface,
    title: str,
    tag: str,
    fonts: tuple[pygame.font.Font, pygame.font.Font],
) -> pygame.Rect:
    """Draw the shared panel chrome and return the content rect below the header."""

    title_font, hint_font = fonts
    w, h = surface.get_size()
    surface.fill(BG)

    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 8))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_img = hint_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_img, (header.x + 12, header.y + (header.h - tag_img.get_height()) // 2))
    title_img = title_font.render(title, True, TEXT_MAIN)
    surface.blit(title_img, title_img.get_rect(center=(frame.centerx, header.centery)))

    return pygame.Rect(frame.x + 12, header.bottom + 10, frame.w - 24, frame.bottom - header.bottom - 20)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if self._items:
            self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, "MENU", (self._title_font, self._hint_font))

        row_h = 44
        gap = 8
        total_h = row_h * len(self._items) + gap * max(0, len(self._items) - 1)
        y = content.y + max(8, (content.h - total_h) // 2)
        for idx, item in enumerate(self._items):
            row = pygame.Rect(content.x + 40, y, content.w - 80, row_h)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196) if selected else (62, 84, 152), row, 2 if selected else 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 12, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(surface.get_width() // 2, surface.get_height() - 34)))


class _GameScreen:
    """Shared chrome for the game screens: header, status line, prompt, board origin."""

    tag = "TASK"

    def __init__(self, app: App) -> None:
        self._app = app
        self._title_font = pygame.font.Font(None, 42)
        self._small_font = pygame.font.Font(None, 26)
        self._hint_font = pygame.font.Font(None, 22)
        self._board_origin = (0, 0)

    def _leave(self) -> None:
        self._app.pop()

    def _handle_common_key(self, event: pygame.event.Event) -> bool:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._leave()
            return True
        return False

    def _to_board(self, pos: tuple[int, int]) -> Point:
        ox, oy = self._board_origin
        return Point(float(pos[0] - ox), float(pos[1] - oy))

    def _render_chrome(self, surface: pygame.Surface, snap: GameSnapshot, status: str) -> pygame.Rect:
        content = _draw_frame(surface, snap.title, self.tag, (self._title_font, self._hint_font))
        status_img = self._small_font.render(status, True, TEXT_MAIN)
        surface.blit(status_img, (content.x, content.y))

        y = content.bottom - 22 * 6
        for line in snap.prompt.split("\n")[:6]:
            img = self._hint_font.render(line, True, TEXT_MUTED)
            surface.blit(img, (content.right - 360, y))
            y += 22
        return pygame.Rect(content.x, content.y + 32, content.w, content.h - 32)


class MazeScreen(_GameScreen):
    tag = "MAZE"

    def __init__(self, app: App, *, clock: Clock, config: MazeConfig | None = None) -> None:
        super().__init__(app)
        self._engine: MazeEngine = build_maze_test(
            clock=clock,
            seed=app.new_seed(),
            config=config,
            on_complete=self._on_complete,
        )

    def _on_complete(self, time_s: float) -> None:
        self._app.record(maze_assessment_result(self._engine.result(), seed=self._engine.seed))

    def _leave(self) -> None:
        self._engine.reset()
        super()._leave()

    def handle_event(self, event: pygame.event.Event) -> None:
        if self._handle_common_key(event) or event.type != pygame.KEYDOWN:
            return
        moves = {
            pygame.K_UP: (0, -1),
            pygame.K_RIGHT: (1, 0),
            pygame.K_DOWN: (0, 1),
            pygame.K_LEFT: (-1, 0),
        }
        if event.key in moves:
            self._engine.move(*moves[event.key])
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._engine.start()
        elif event.key == pygame.K_r:
            self._engine.reset()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        payload = snap.payload
        assert isinstance(payload, MazePayload)

        board = self._render_chrome(surface, snap, f"Time: {payload.display_time}")
        self._board_origin = (board.x, board.y)
        cs = payload.cell_size
        grid = payload.grid
        pygame.draw.rect(surface, BOARD_BG, pygame.Rect(board.x, board.y, grid.width * cs, grid.height * cs))
        for y, row in enumerate(grid.cells):
            for x, cell in enumerate(row):
                rect = pygame.Rect(board.x + x * cs, board.y + y * cs, cs, cs)
                if cell is Cell.WALL:
                    pygame.draw.rect(surface, WALL_COLOR, rect)
                else:
                    pygame.draw.rect(surface, CELL_BORDER, rect, 1)

        for pos, color in ((grid.exit, EXIT_COLOR), (payload.player, PLAYER_COLOR)):
            center = (board.x + pos[0] * cs + cs // 2, board.y + pos[1] * cs + cs // 2)
            pygame.draw.circle(surface, color, center, max(2, cs // 3))


class NBackScreen(_GameScreen):
    tag = "N-BACK"

    def __init__(self, app: App, *, clock: Clock, config: NBackConfig | None = None) -> None:
        super().__init__(app)
        self._config = config or NBackConfig()
        self._engine: NBackEngine = build_nback_test(
            clock=clock,
            seed=app.new_seed(),
            config=self._config,
            on_complete=self._on_complete,
        )

    def _on_complete(self, score: NBackScore) -> None:
        self._app.record(nback_assessment_result(score, seed=self._engine.seed, n=self._config.n_value))

    def _leave(self) -> None:
        self._engine.reset()
        super()._leave()

    def handle_event(self, event: pygame.event.Event) -> None:
        if self._handle_common_key(event) or event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_SPACE:
            self._engine.signal_match()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if self._engine.state is SessionState.COMPLETED:
                self._engine.reset()
            self._engine.start()
        elif event.key == pygame.K_r:
            self._engine.reset()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        payload = snap.payload
        assert isinstance(payload, NBackPayload)

        status = f"Correct: {payload.correct}   Incorrect: {payload.incorrect}   Missed: {payload.missed}"
        board = self._render_chrome(surface, snap, status)
        canvas = pygame.Rect(board.x, board.y, 300, 300)
        self._board_origin = (canvas.x, canvas.y)
        pygame.draw.rect(surface, BOARD_BG, canvas)

        if payload.feedback is not None:
            color = EXIT_COLOR if payload.feedback == "correct" else ERROR_COLOR
            pygame.draw.rect(surface, color, canvas, 6)

        if payload.stimulus is None:
            return
        size = int(min(canvas.w, canvas.h) * 0.3)
        cx, cy = canvas.center
        color = SHAPE_COLORS[payload.stimulus]
        if payload.stimulus is Shape.SQUARE:
            pygame.draw.rect(surface, color, pygame.Rect(cx - size // 2, cy - size // 2, size, size))
        elif payload.stimulus is Shape.CIRCLE:
            pygame.draw.circle(surface, color, (cx, cy), size // 2)
        else:
            half = size // 2
            pygame.draw.polygon(surface, color, [(cx, cy - half), (cx + half, cy + half), (cx - half, cy + half)])


class ClockScreen(_GameScreen):
    tag = "CLOCK"

    def __init__(self, app: App, *, clock: Clock, config: ClockConfig | None = None) -> None:
        super().__init__(app)
        self._engine: ClockEngine = build_clock_test(clock=clock, config=config, on_complete=self._on_complete)

    def _on_complete(self, score: int) -> None:
        self._app.record(clock_assessment_result(self._engine.result()))

    def handle_event(self, event: pygame.event.Event) -> None:
        if self._handle_common_key(event):
            return
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._engine.submit()
            elif event.key == pygame.K_r:
                self._engine.reset()
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self._engine.press(self._to_board(event.pos))
        elif event.type == pygame.MOUSEMOTION:
            self._engine.move(self._to_board(event.pos))
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self._engine.release()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        payload = snap.payload
        assert isinstance(payload, ClockPayload)

        status = f"Target: {payload.target_label}"
        if payload.score is not None:
            status += f"   Score: {payload.score}/100"
        board = self._render_chrome(surface, snap, status)
        self._board_origin = (board.x, board.y)
        ox, oy = self._board_origin

        def at(p: Point) -> tuple[int, int]:
            return (int(round(ox + p.x)), int(round(oy + p.y)))

        center = payload.center
        r = payload.radius
        pygame.draw.circle(surface, (255, 255, 255), at(center), int(r - 2))
        pygame.draw.circle(surface, PLAYER_COLOR, at(center), int(r - 2), 2)
        for i in range(12):
            marker = 15 if i % 3 == 0 else 10
            inner = hand_tip(center, i * 30.0, r - marker)
            outer = hand_tip(center, i * 30.0, r - 2)
            pygame.draw.line(surface, LINE_COLOR, at(inner), at(outer), 3 if i % 3 == 0 else 2)
            if i % 3 == 0:
                label = self._small_font.render("12" if i == 0 else str(i), True, LINE_COLOR)
                surface.blit(label, label.get_rect(center=at(hand_tip(center, i * 30.0, r - 30))))

        hour_color = (87, 181, 231) if payload.captured is Hand.HOUR else LINE_COLOR
        minute_color = (87, 181, 231) if payload.captured is Hand.MINUTE else (102, 102, 102)
        pygame.draw.line(surface, hour_color, at(center), at(payload.hour_tip), 8)
        pygame.draw.line(surface, minute_color, at(center), at(payload.minute_tip), 4)
        pygame.draw.circle(surface, LINE_COLOR, at(center), 5)


class TrailScreen(_GameScreen):
    tag = "TRAIL"

    def __init__(self, app: App, *, clock: Clock, config: TrailConfig | None = None) -> None:
        super().__init__(app)
        self._engine: TrailEngine = build_trail_test(
            clock=clock,
            seed=app.new_seed(),
            config=config,
            on_complete=self._on_complete,
        )
        self._dot_font = pygame.font.Font(None, 24)

    def _on_complete(self, result: TrailResult) -> None:
        self._app.record(trail_assessment_result(result, seed=self._engine.seed))

    def _leave(self) -> None:
        self._engine.reset()
        super()._leave()

    def handle_event(self, event: pygame.event.Event) -> None:
        if self._handle_common_key(event):
            return
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._engine.start()
            elif event.key == pygame.K_r:
                self._engine.reset()
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self._engine.press(self._to_board(event.pos))
        elif event.type == pygame.MOUSEMOTION:
            self._engine.move(self._to_board(event.pos))
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self._engine.release(self._to_board(event.pos))

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        payload = snap.payload
        assert isinstance(payload, TrailPayload)

        status = f"Time: {format_mm_ss(snap.elapsed_s)}   Errors: {payload.errors}"
        board = self._render_chrome(surface, snap, status)
        self._board_origin = (board.x, board.y)
        ox, oy = self._board_origin

        def at(p: Point) -> tuple[int, int]:
            return (int(round(ox + p.x)), int(round(oy + p.y)))

        pygame.draw.rect(surface, (255, 255, 255), pygame.Rect(ox, oy, payload.canvas_size, payload.canvas_size))

        lines = list(payload.lines)
        if payload.rubber_band is not None:
            lines.append(payload.rubber_band)
        for line in lines:
            color = ERROR_COLOR if line.is_error else LINE_COLOR
            pygame.draw.line(surface, color, at(line.start), at(line.end), 3)

        for dot, status_ in zip(payload.dots, payload.statuses, strict=True):
            color = EXIT_COLOR if status_ is DotStatus.DONE else PLAYER_COLOR
            if status_ is DotStatus.PENDING:
                color = (120, 175, 205)
            pygame.draw.circle(surface, color, at(dot.position), 20)
            label = self._dot_font.render(str(dot.number), True, (255, 255, 255))
            surface.blit(label, label.get_rect(center=at(dot.position)))


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    settings = AppSettings.from_env()
    configure_logging(settings.log_level)

    pygame.init()
    pygame.display.set_caption("Cognitive Assessment Games")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    frame_clock = pygame.time.Clock()

    app = App(surface=surface, settings=settings)
    real_clock = RealClock()

    main_items = [
        MenuItem("Maze Navigation", lambda: app.push(MazeScreen(app, clock=real_clock))),
        MenuItem("Clock Drawing", lambda: app.push(ClockScreen(app, clock=real_clock))),
        MenuItem("N-Back Memory", lambda: app.push(NBackScreen(app, clock=real_clock))),
        MenuItem("Trail Making", lambda: app.push(TrailScreen(app, clock=real_clock))),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Cognitive Assessment", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
