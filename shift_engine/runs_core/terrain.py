"""
Terrain Skeleton
================

Coarse tile model of a level used for validation: the piste corridor row by
row, obstacle clusters, impassable steep bands, and access-road bypass lanes.
Reachability is a 4-connected flood fill from the groomer's spawn tile.

The rendering layer builds the real tile grid; this model only has to agree
with it on what is piste and what is connected.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from shift_engine.runs_core.config_loader import GenerationConfig, RunConfig, get_config
from shift_engine.runs_core.level import (
    AccessPath,
    LevelDescriptor,
    PisteShape,
    PisteVariation,
    SlalomGate,
)
from shift_engine.runs_core.rng import SeededRNG, derive_seed

TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class PisteRow:
    """Piste extent on one row, in tiles."""
    center_x: float
    width: int

    @property
    def left(self) -> int:
        """First piste column."""
        return int(math.ceil(self.center_x - self.width / 2.0))

    @property
    def right(self) -> int:
        """One past the last piste column."""
        return int(math.ceil(self.center_x + self.width / 2.0))

    def contains(self, x: int) -> bool:
        return self.left <= x < self.right


def compute_piste_rows(
    width: int,
    height: int,
    shape: PisteShape,
    piste_width: float,
    variation: PisteVariation,
) -> List[PisteRow]:
    """
    Piste center and width for every row of the level.

    Args:
        width: Level width in tiles.
        height: Level height in tiles.
        shape: Piste shape.
        piste_width: Piste width as a fraction of level width.
        variation: Per-level frequency/amplitude/phase tweaks.

    Returns:
        One PisteRow per row, top to bottom.
    """
    half = int(width * piste_width / 2)
    base = half * 2
    amp = variation.amp_scale
    fo = variation.freq_offset
    phase = variation.phase
    wphase = variation.width_phase

    rows: List[PisteRow] = []
    for y in range(height):
        p = y / height
        center = width / 2.0
        row_width = float(base)

        if shape == PisteShape.WIDE:
            row_width = base * 1.25
        elif shape == PisteShape.GENTLE_CURVE:
            center += math.sin(p * TWO_PI * (1.0 + 0.25 * fo) + phase) * width * 0.15 * amp
        elif shape == PisteShape.WINDING:
            center += math.sin(p * math.pi * (3.0 + fo) + phase) * width * 0.2 * amp
            row_width = base * (0.8 + 0.2 * math.cos(p * math.pi * 3.0 + wphase))
        elif shape == PisteShape.SERPENTINE:
            center += math.sin(p * math.pi * (4.0 + fo) + phase) * width * 0.25 * amp
            row_width = base * (0.7 + 0.3 * abs(math.cos(p * math.pi * 4.0 + wphase)))
        elif shape == PisteShape.FUNNEL:
            center += math.sin(p * math.pi + phase) * width * 0.05 * amp
            row_width = base * (1.2 - 0.5 * p)
        elif shape == PisteShape.DOGLEG:
            side = 1.0 if phase < math.pi else -1.0
            bend = 0.35 + 0.3 * (wphase / TWO_PI)
            center += side * width * 0.18 * amp * math.tanh((p - bend) * 12.0)
        elif shape == PisteShape.HOURGLASS:
            row_width = base * (0.55 + 0.45 * abs(2.0 * p - 1.0))

        w = max(3, min(width - 4, int(row_width)))
        lo = w / 2.0 + 2
        hi = width - w / 2.0 - 2
        center = width / 2.0 if lo > hi else max(lo, min(hi, center))
        rows.append(PisteRow(center_x=center, width=w))

    return rows


def piste_row_range(height: int, gen: GenerationConfig) -> range:
    """Rows that can hold groomable piste."""
    return range(gen.piste_top_margin, max(gen.piste_top_margin, height - gen.piste_bottom_margin))


def estimate_piste_tiles(rows: List[PisteRow], height: int, gen: GenerationConfig) -> int:
    """Piste tile count before obstacles, used for time budgets."""
    return sum(rows[y].width for y in piste_row_range(height, gen))


def spawn_row(height: int, gen: GenerationConfig) -> int:
    """Row where the groomer starts."""
    return max(0, min(height - gen.spawn_row_margin, int(height * gen.spawn_row_fraction)))


def gate_tile(gate: SlalomGate, rows: List[PisteRow], height: int) -> Tuple[int, int]:
    """Tile (x, y) at the center of a slalom gate."""
    y = max(0, min(height - 1, int(gate.y * height)))
    row = rows[y]
    x = int(round(row.center_x + gate.offset * row.width / 2.0))
    x = max(row.left, min(row.right - 1, x))
    return (x, y)


def _row_span(start: float, end: float, height: int) -> range:
    first = max(0, int(math.floor(start * height)))
    last = min(height - 1, int(math.ceil(end * height)))
    return range(first, last + 1)


@dataclass
class TerrainSkeleton:
    """
    Tile masks for one level, all shaped (height, width).

    ``reachable`` marks every traversable tile connected to the spawn tile.
    """
    width: int
    height: int
    rows: List[PisteRow]
    piste: np.ndarray
    obstacles: np.ndarray
    blocked_steep: np.ndarray
    lanes: np.ndarray
    lane_masks: List[np.ndarray]
    spawn: Tuple[int, int]
    gate_tiles: List[Tuple[int, int]]
    reachable: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.reachable = flood_fill(self.traversable, self.spawn)

    @property
    def groomable(self) -> np.ndarray:
        """Piste tiles the groomer is expected to cover."""
        return self.piste & ~self.obstacles & ~self.blocked_steep

    @property
    def traversable(self) -> np.ndarray:
        return self.groomable | self.lanes

    @property
    def groomable_count(self) -> int:
        return int(np.count_nonzero(self.groomable))

    @property
    def reachable_groomable_count(self) -> int:
        return int(np.count_nonzero(self.groomable & self.reachable))

    @property
    def reachable_share(self) -> float:
        """Percentage of groomable tiles connected to the spawn tile."""
        total = self.groomable_count
        if total == 0:
            return 0.0
        return 100.0 * self.reachable_groomable_count / total

    def isolated_regions(self) -> int:
        """Number of groomable regions not connected to the spawn tile."""
        remaining = self.groomable & ~self.reachable
        count = 0
        while remaining.any():
            ys, xs = np.nonzero(remaining)
            region = flood_fill(remaining, (int(xs[0]), int(ys[0])))
            remaining &= ~region
            count += 1
        return count

    def is_reachable(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            return False
        return bool(self.reachable[y, x])


def flood_fill(mask: np.ndarray, start: Tuple[int, int]) -> np.ndarray:
    """
    4-connected region of ``mask`` containing ``start``.

    Args:
        mask: Boolean array (height, width).
        start: (x, y) start tile.

    Returns:
        Boolean array, all False if the start tile is not in the mask.
    """
    height, width = mask.shape
    region = np.zeros_like(mask, dtype=bool)
    sx, sy = start
    if not (0 <= sx < width and 0 <= sy < height) or not mask[sy, sx]:
        return region

    queue = deque([(sx, sy)])
    region[sy, sx] = True
    while queue:
        x, y = queue.popleft()
        for nx, ny in ((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)):
            if 0 <= nx < width and 0 <= ny < height and mask[ny, nx] and not region[ny, nx]:
                region[ny, nx] = True
                queue.append((nx, ny))
    return region


def _place_obstacles(
    level: LevelDescriptor,
    rows: List[PisteRow],
    piste: np.ndarray,
    gen: GenerationConfig,
) -> np.ndarray:
    """Scatter small rock/tree clusters on the piste, away from the spawn rows."""
    obstacles = np.zeros_like(piste)
    if not level.obstacles or level.obstacle_density <= 0:
        return obstacles

    piste_tiles = int(np.count_nonzero(piste))
    clusters = int(round(level.obstacle_density * piste_tiles / gen.obstacle_cluster_tiles))
    if clusters == 0:
        return obstacles

    rng = SeededRNG(derive_seed(level.seed, "skeleton"))
    spawn_y = spawn_row(level.height, gen)
    candidate_rows = [y for y in piste_row_range(level.height, gen) if abs(y - spawn_y) > 3]
    if not candidate_rows:
        return obstacles

    for _ in range(clusters):
        y = rng.pick(candidate_rows)
        row = rows[y]
        x = rng.integer_in_range(row.left, row.right - 1)
        size_x = rng.integer_in_range(1, 2)
        size_y = rng.integer_in_range(1, 2)
        obstacles[y:y + size_y, x:x + size_x] = True

    return obstacles & piste


def _blocked_steep_rows(
    level: LevelDescriptor,
    piste: np.ndarray,
    gen: GenerationConfig,
) -> np.ndarray:
    """Piste tiles on steep bands the groomer cannot cross."""
    blocked = np.zeros_like(piste)
    for zone in level.steep_zones:
        if zone.slope < gen.slide_slope_threshold:
            continue
        winched = level.has_winch and any(a.y <= zone.start_y for a in level.winch_anchors)
        if winched:
            continue
        first = max(0, int(math.floor(zone.start_y * level.height)))
        last = min(level.height, int(math.ceil(zone.end_y * level.height)))
        blocked[first:last, :] = True
    return blocked & piste


def _access_lane(
    path: AccessPath,
    rows: List[PisteRow],
    height: int,
    width: int,
    lane_width: int,
) -> np.ndarray:
    """Road tiles running alongside the piste edge for one access path."""
    lane = np.zeros((height, width), dtype=bool)
    prev_edge: Optional[int] = None
    for y in _row_span(path.start_y, path.end_y, height):
        row = rows[y]
        edge = row.left if path.side == "left" else row.right
        other = edge if prev_edge is None else prev_edge
        lo, hi = min(edge, other), max(edge, other)
        if path.side == "left":
            lane[y, max(0, lo - lane_width):max(0, hi)] = True
        else:
            lane[y, min(width, lo):min(width, hi + lane_width)] = True
        prev_edge = edge
    return lane


def build_skeleton(level: LevelDescriptor, config: Optional[RunConfig] = None) -> TerrainSkeleton:
    """
    Build the coarse terrain model of a level.

    Args:
        level: Level to model.
        config: Run configuration. Uses default if None.

    Returns:
        TerrainSkeleton with reachability already computed.
    """
    if config is None:
        config = get_config()
    gen = config.generation

    rows = compute_piste_rows(
        level.width, level.height, level.piste_shape, level.piste_width, level.piste_variation
    )

    piste = np.zeros((level.height, level.width), dtype=bool)
    for y in piste_row_range(level.height, gen):
        row = rows[y]
        piste[y, max(0, row.left):min(level.width, row.right)] = True

    obstacles = _place_obstacles(level, rows, piste, gen)
    blocked = _blocked_steep_rows(level, piste, gen)

    lane_masks = [
        _access_lane(path, rows, level.height, level.width, gen.access_lane_width)
        for path in level.access_paths
    ]
    lanes = np.zeros_like(piste)
    for mask in lane_masks:
        lanes |= mask

    sy = spawn_row(level.height, gen)
    spawn = (int(math.floor(rows[sy].center_x)), sy)
    gates = [gate_tile(g, rows, level.height) for g in level.slalom_gates]

    return TerrainSkeleton(
        width=level.width,
        height=level.height,
        rows=rows,
        piste=piste,
        obstacles=obstacles,
        blocked_steep=blocked,
        lanes=lanes,
        lane_masks=lane_masks,
        spawn=spawn,
        gate_tiles=gates,
    )


def render_ascii(skeleton: TerrainSkeleton) -> str:
    """
    Text map of a skeleton.

    Legend: ``.`` piste, ``o`` obstacle, ``^`` impassable steep, ``=`` road,
    ``S`` spawn, ``G`` gate, ``!`` groomable but unreachable, space off-piste.
    """
    groomable = skeleton.groomable
    gates = set(skeleton.gate_tiles)
    lines = []
    for y in range(skeleton.height):
        chars = []
        for x in range(skeleton.width):
            if (x, y) == skeleton.spawn:
                ch = "S"
            elif (x, y) in gates:
                ch = "G"
            elif skeleton.obstacles[y, x]:
                ch = "o"
            elif skeleton.lanes[y, x]:
                ch = "="
            elif skeleton.blocked_steep[y, x]:
                ch = "^"
            elif groomable[y, x]:
                ch = "." if skeleton.reachable[y, x] else "!"
            else:
                ch = " "
            chars.append(ch)
        lines.append("".join(chars).rstrip())
    return "\n".join(lines)
