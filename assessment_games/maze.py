from __future__ import annotations

import heapq
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

from .clock import Clock
from .cognitive_core import (
    ConfigError,
    GameSnapshot,
    ScheduledTask,
    SeededRng,
    SessionState,
    format_mm_ss,
)

logger = logging.getLogger(__name__)

GridPos = tuple[int, int]

# Up, right, down, left. Carving order matters for seeded reproducibility.
DIRECTIONS: tuple[GridPos, ...] = ((0, -1), (1, 0), (0, 1), (-1, 0))

MIN_MAZE_SIZE = 5
TICK_INTERVAL_S = 1.0


@dataclass(frozen=True, slots=True)
class MazeConfig:
    maze_size: int = 10
    cell_size: int = 40
    complexity: float = 0.7  # looseness; lower values open more extra cells


class Cell(IntEnum):
    PATH = 0
    WALL = 1


@dataclass(frozen=True, slots=True)
class MazeGrid:
    cells: tuple[tuple[Cell, ...], ...]  # row-major, cells[y][x]
    entry: GridPos
    exit: GridPos
    repaired: bool = False

    @property
    def width(self) -> int:
        return len(self.cells[0]) if self.cells else 0

    @property
    def height(self) -> int:
        return len(self.cells)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def is_path(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and self.cells[y][x] is Cell.PATH


@dataclass(frozen=True, slots=True)
class MazeResult:
    time_s: float
    completed: bool


@dataclass(frozen=True, slots=True)
class MazePayload:
    grid: MazeGrid
    player: GridPos
    cell_size: int
    display_time: str


def _manhattan(a: GridPos, b: GridPos) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def find_path(
    cells: list[list[Cell]] | tuple[tuple[Cell, ...], ...],
    start: GridPos,
    goal: GridPos,
) -> list[GridPos] | None:
    """A* over 4-connected PATH cells with unit cost and a Manhattan heuristic.

    Returns the cell route from ``start`` to ``goal`` inclusive, or None when
    no route exists. Equal f-scores are expanded in discovery order.
    """

    height = len(cells)
    width = len(cells[0]) if height else 0

    def passable(x: int, y: int) -> bool:
        return 0 <= x < width and 0 <= y < height and cells[y][x] is not Cell.WALL

    if not passable(*start) or not passable(*goal):
        return None

    counter = 0
    open_heap: list[tuple[int, int, GridPos]] = [(_manhattan(start, goal), counter, start)]
    g_score: dict[GridPos, int] = {start: 0}
    came_from: dict[GridPos, GridPos] = {}
    closed: set[GridPos] = set()

    while open_heap:
        _, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue
        closed.add(current)

        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            return path

        for dx, dy in DIRECTIONS:
            nxt = (current[0] + dx, current[1] + dy)
            if nxt in closed or not passable(*nxt):
                continue
            g = g_score[current] + 1
            if g < g_score.get(nxt, g + 1):
                g_score[nxt] = g
                came_from[nxt] = current
                counter += 1
                heapq.heappush(open_heap, (g + _manhattan(nxt, goal), counter, nxt))

    return None


def carve_repair_path(cells: list[list[Cell]], start: GridPos, goal: GridPos) -> None:
    """Carve a stair-step corridor from ``goal`` back to ``start``.

    Columns are closed first, then rows. Walls on the way are overwritten.
    """

    x, y = goal
    while (x, y) != start:
        cells[y][x] = Cell.PATH
        if x > start[0]:
            x -= 1
        elif x < start[0]:
            x += 1
        elif y > start[1]:
            y -= 1
        else:
            y += 1
    cells[start[1]][start[0]] = Cell.PATH


def generate_maze(width: int, height: int, looseness: float, *, rng: SeededRng) -> MazeGrid:
    """Randomized depth-first carving on the even lattice, then loosening.

    Entry is fixed at (1, 1) and exit at (width - 2, height - 2). The result
    always has a 4-connected route between them; if carving left them
    disconnected a direct corridor is carved and ``repaired`` is set.
    """

    if width < MIN_MAZE_SIZE or height < MIN_MAZE_SIZE:
        raise ConfigError(f"maze must be at least {MIN_MAZE_SIZE}x{MIN_MAZE_SIZE}")
    if not (0.0 <= looseness <= 1.0):
        raise ConfigError("looseness must be in [0.0, 1.0]")

    cells = [[Cell.WALL for _ in range(width)] for _ in range(height)]

    start = (rng.randint(0, width // 2 - 1) * 2, rng.randint(0, height // 2 - 1) * 2)
    cells[start[1]][start[0]] = Cell.PATH
    stack: list[GridPos] = [start]

    while stack:
        cx, cy = stack[-1]
        neighbors: list[tuple[int, int, int, int]] = []
        for dx, dy in DIRECTIONS:
            nx = cx + dx * 2
            ny = cy + dy * 2
            if 0 <= nx < width and 0 <= ny < height and cells[ny][nx] is Cell.WALL:
                neighbors.append((nx, ny, dx, dy))

        if neighbors:
            nx, ny, dx, dy = rng.choice(neighbors)
            cells[cy + dy][cx + dx] = Cell.PATH
            cells[ny][nx] = Cell.PATH
            stack.append((nx, ny))
        else:
            stack.pop()

    extra = int((1.0 - looseness) * width * height * 0.1)
    for _ in range(extra):
        x = rng.randint(1, width - 2)
        y = rng.randint(1, height - 2)
        cells[y][x] = Cell.PATH

    entry = (1, 1)
    exit_ = (width - 2, height - 2)
    cells[entry[1]][entry[0]] = Cell.PATH
    cells[exit_[1]][exit_[0]] = Cell.PATH

    repaired = False
    if find_path(cells, entry, exit_) is None:
        carve_repair_path(cells, entry, exit_)
        repaired = True
        logger.info("Maze %dx%d had no route from entry to exit; carved a repair corridor", width, height)

    return MazeGrid(
        cells=tuple(tuple(row) for row in cells),
        entry=entry,
        exit=exit_,
        repaired=repaired,
    )


class MazeEngine:
    """Timed maze navigation: idle -> active -> completed, reset back to idle."""

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: MazeConfig | None = None,
        on_complete: Callable[[float], None] | None = None,
    ) -> None:
        cfg = config or MazeConfig()
        if cfg.maze_size < MIN_MAZE_SIZE:
            raise ConfigError(f"maze_size must be >= {MIN_MAZE_SIZE}")
        if cfg.cell_size <= 0:
            raise ConfigError("cell_size must be > 0")
        if not (0.0 <= cfg.complexity <= 1.0):
            raise ConfigError("complexity must be in [0.0, 1.0]")

        self._clock = clock
        self._seed = int(seed)
        self._cfg = cfg
        self._on_complete = on_complete
        self._rng = SeededRng(self._seed)
        self._task = ScheduledTask(clock)

        self._state = SessionState.IDLE
        self._started_at_s: float | None = None
        self._ended_at_s: float | None = None
        self._display_elapsed_s = 0
        self._grid = self._new_grid()
        self._player: GridPos = self._grid.entry

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def grid(self) -> MazeGrid:
        return self._grid

    @property
    def player(self) -> GridPos:
        return self._player

    @property
    def tick_pending(self) -> bool:
        return self._task.pending

    def start(self) -> None:
        if self._state is not SessionState.IDLE:
            return
        self._state = SessionState.ACTIVE
        self._started_at_s = self._clock.now()
        self._display_elapsed_s = 0
        self._task.schedule(TICK_INTERVAL_S, self._tick)
        logger.debug("Maze session started (seed=%d)", self._seed)

    def reset(self) -> None:
        self._task.cancel()
        self._state = SessionState.IDLE
        self._started_at_s = None
        self._ended_at_s = None
        self._display_elapsed_s = 0
        self._grid = self._new_grid()
        self._player = self._grid.entry
        logger.debug("Maze reset")

    def update(self) -> None:
        self._task.poll()

    def move(self, dx: int, dy: int) -> bool:
        """Step the player one cell. Returns True if the move was accepted."""

        if self._state is not SessionState.ACTIVE:
            return False
        if (abs(int(dx)), abs(int(dy))) not in ((0, 1), (1, 0)):
            return False

        nx = self._player[0] + int(dx)
        ny = self._player[1] + int(dy)
        if not self._grid.is_path(nx, ny):
            return False

        self._player = (nx, ny)
        if self._player == self._grid.exit:
            self._complete()
        return True

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._ended_at_s if self._ended_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s)

    def result(self) -> MazeResult:
        return MazeResult(time_s=self.elapsed_s(), completed=self._state is SessionState.COMPLETED)

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            title="Maze Navigation",
            state=self._state,
            prompt=self._prompt_text(),
            elapsed_s=float(self._display_elapsed_s),
            payload=MazePayload(
                grid=self._grid,
                player=self._player,
                cell_size=self._cfg.cell_size,
                display_time=format_mm_ss(self._display_elapsed_s),
            ),
        )

    def _prompt_text(self) -> str:
        if self._state is SessionState.IDLE:
            return "Navigate through the maze to reach the green exit. Press Enter to start."
        if self._state is SessionState.COMPLETED:
            return f"Maze completed! Time: {format_mm_ss(self.elapsed_s())}. Press R for another maze."
        return "Use the arrow keys to move."

    def _new_grid(self) -> MazeGrid:
        return generate_maze(self._cfg.maze_size, self._cfg.maze_size, self._cfg.complexity, rng=self._rng)

    def _tick(self) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        self._display_elapsed_s = int(self.elapsed_s())
        self._task.schedule(TICK_INTERVAL_S, self._tick)

    def _complete(self) -> None:
        self._task.cancel()
        self._ended_at_s = self._clock.now()
        self._state = SessionState.COMPLETED
        time_s = self.elapsed_s()
        self._display_elapsed_s = int(time_s)
        logger.debug("Maze completed in %.3fs", time_s)
        if self._on_complete is not None:
            self._on_complete(time_s)


def build_maze_test(
    *,
    clock: Clock,
    seed: int,
    config: MazeConfig | None = None,
    on_complete: Callable[[float], None] | None = None,
) -> MazeEngine:
    return MazeEngine(clock=clock, seed=seed, config=config, on_complete=on_complete)
