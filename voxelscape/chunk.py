"""
Voxel chunks: terrain fill and face-culled surface meshing
"""
import asyncio
import inspect
import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache
from typing import List, Optional, Tuple

import noise
import numpy as np
import pygame

from voxelscape.constants import (
    BLOCK_EMPTY, BLOCK_SOLID, BLOCK_HEIGHT_OFFSET, BOTTOM_FACE_LIGHT, CAVE_WALL_COLOR,
    CAVE_WALL_NEIGHBORS, COLUMN_QUERY_CONCURRENCY, ELEVATION_PER_BLOCK, FACES,
    FALLBACK_NOISE_SCALE, HEIGHT_BANDS, SIDE_FACE_LIGHT, TOP_FACE_LIGHT, WORLD_SEED
)
from voxelscape.elevation import ElevationProvider

logger = logging.getLogger(__name__)

QUAD_TRIANGLES = np.array([0, 1, 2, 0, 2, 3], dtype=np.uint32)


class ChunkState(Enum):
    """Lifecycle of a voxel chunk"""
    EMPTY = auto()
    GENERATING = auto()
    READY = auto()
    DISPOSED = auto()


@dataclass(eq=False)
class ChunkMesh:
    """Indexed triangle mesh of one chunk, in chunk-local coordinates"""
    positions: np.ndarray
    normals: np.ndarray
    colors: np.ndarray
    indices: np.ndarray
    origin: Tuple[int, int, int] = (0, 0, 0)
    released: bool = False

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def quad_count(self) -> int:
        return self.vertex_count // 4

    def release(self) -> None:
        """Drop the vertex buffers. Safe to call more than once."""
        if self.released:
            return
        self.positions = np.zeros((0, 3), dtype=np.float32)
        self.normals = np.zeros((0, 3), dtype=np.float32)
        self.colors = np.zeros((0, 3), dtype=np.float32)
        self.indices = np.zeros(0, dtype=np.uint32)
        self.released = True

    def top_faces(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get the upward-facing quads of the mesh

        Returns:
            (corners, colors): the minimum corner (x, y, z) of each top quad
            as integers and its color as RGB floats
        """
        quads = self.positions.reshape(-1, 4, 3)
        upward = self.normals.reshape(-1, 4, 3)[:, 0, 1] > 0
        corners = quads[upward].min(axis=1).astype(np.int32)
        colors = self.colors.reshape(-1, 4, 3)[upward][:, 0]
        return corners, colors


def hsl_to_rgb(hue: float, saturation: float, lightness: float) -> Tuple[float, float, float]:
    """Convert HSL in [0, 1] to RGB in [0, 1]"""
    color = pygame.Color(0, 0, 0)
    color.hsla = (hue * 360.0, saturation * 100.0, lightness * 100.0, 100.0)
    return color.r / 255.0, color.g / 255.0, color.b / 255.0


def band_color(height_ratio: float) -> Tuple[float, float, float]:
    """Hue, saturation and lightness of the height band a ratio falls into"""
    for upper, hue, saturation, lightness, per_ratio in HEIGHT_BANDS:
        if height_ratio < upper:
            break
    return hue, saturation, lightness + height_ratio * per_ratio


def face_light(direction: Tuple[int, int, int]) -> float:
    """Lighting multiplier for a face direction"""
    if direction[1] > 0:
        return TOP_FACE_LIGHT
    if direction[1] < 0:
        return BOTTOM_FACE_LIGHT
    return SIDE_FACE_LIGHT


@lru_cache(maxsize=None)
def face_palette(max_height: int) -> np.ndarray:
    """
    Precompute face colors for a chunk height

    Returns:
        Array indexed [cave_wall, y, face] -> RGB
    """
    palette = np.zeros((2, max_height, len(FACES), 3), dtype=np.float32)
    for y in range(max_height):
        height_ratio = y / max_height
        for face_index, (direction, _) in enumerate(FACES):
            light = face_light(direction)
            for cave_wall, (hue, saturation, lightness) in enumerate((band_color(height_ratio),
                                                                      CAVE_WALL_COLOR)):
                palette[cave_wall, y, face_index] = hsl_to_rgb(hue, saturation,
                                                               min(1.0, lightness * light))
    palette.setflags(write=False)
    return palette


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class VoxelChunk:
    """Dense block grid of one chunk plus its surface mesh"""

    def __init__(self, size: int, max_height: int,
                 elevation_provider: Optional[ElevationProvider] = None,
                 chunk_x: int = 0, chunk_z: int = 0, seed: int = WORLD_SEED,
                 concurrency: int = COLUMN_QUERY_CONCURRENCY):
        """
        Initialize an empty chunk

        Args:
            size: Blocks along x and z
            max_height: Blocks along y
            elevation_provider: Source of column heights and occupancy; None
                fills every column from the local noise height
            chunk_x: Chunk x-coordinate
            chunk_z: Chunk z-coordinate
            seed: Seed of the local fallback noise
            concurrency: Column queries allowed in flight at once
        """
        self.size = size
        self.max_height = max_height
        self.elevation_provider = elevation_provider
        self.chunk_x = chunk_x
        self.chunk_z = chunk_z
        self.seed = seed
        self.concurrency = concurrency

        # Flat grid: x + y*size + z*size*max_height
        self.blocks = np.zeros(size * max_height * size, dtype=np.uint8)
        self.heights = np.zeros((size, size), dtype=np.int32)  # [z, x]
        self.mesh: Optional[ChunkMesh] = None
        self.state = ChunkState.EMPTY

    @property
    def key(self) -> Tuple[int, int]:
        return self.chunk_x, self.chunk_z

    @property
    def origin(self) -> Tuple[int, int, int]:
        return self.chunk_x * self.size, 0, self.chunk_z * self.size

    def in_bounds(self, x: int, y: int, z: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.max_height and 0 <= z < self.size

    def index(self, x: int, y: int, z: int) -> int:
        return x + y * self.size + z * self.size * self.max_height

    def voxels(self) -> np.ndarray:
        """View of the grid indexed [z, y, x]"""
        return self.blocks.reshape(self.size, self.max_height, self.size)

    def get_block(self, x: int, y: int, z: int) -> int:
        """
        Get the block id at a local position

        Returns:
            The block id, BLOCK_EMPTY outside the chunk
        """
        if not self.in_bounds(x, y, z):
            return BLOCK_EMPTY
        return int(self.blocks[self.index(x, y, z)])

    def set_block(self, x: int, y: int, z: int, block_id: int) -> None:
        """Set the block id at a local position; positions outside the chunk are ignored"""
        if self.in_bounds(x, y, z):
            self.blocks[self.index(x, y, z)] = block_id

    def is_solid(self, x: int, y: int, z: int) -> bool:
        return self.get_block(x, y, z) != BLOCK_EMPTY

    def solid_count(self) -> int:
        return int(np.count_nonzero(self.blocks))

    def column_height(self, elevation: float) -> int:
        """Convert an elevation sample into a block count for one column"""
        height = math.floor(elevation / ELEVATION_PER_BLOCK) + BLOCK_HEIGHT_OFFSET
        return max(1, min(self.max_height - 1, height))

    def fallback_height(self, x: int, z: int) -> int:
        """
        Deterministic noise-only column height

        Args:
            x: Local x-coordinate
            z: Local z-coordinate

        Returns:
            Column height in [1, max_height - 1] (1 for single-layer chunks)
        """
        world_x = self.chunk_x * self.size + x
        world_z = self.chunk_z * self.size + z
        n = noise.pnoise2(
            world_x / FALLBACK_NOISE_SCALE,
            world_z / FALLBACK_NOISE_SCALE,
            octaves=1,
            repeatx=10000,
            repeaty=10000,
            base=self.seed % 1024
        )
        height = int(((n + 1) / 2) * (self.max_height - 1)) + 1
        return max(1, min(self.max_height - 1, height))

    async def _query_column(self, x: int, z: int) -> Tuple[int, List[bool]]:
        provider = self.elevation_provider
        elevation = await _resolve(provider.get_elevation_for_chunk(self.chunk_x, self.chunk_z, x, z))
        height = self.column_height(elevation)
        column = []
        for y in range(height):
            exists = await _resolve(provider.should_block_exist(self.chunk_x, self.chunk_z,
                                                                x, y, z, height))
            column.append(bool(exists))
        return height, column

    async def _fill_column(self, x: int, z: int, semaphore: asyncio.Semaphore) -> None:
        if self.elevation_provider is None:
            height = self.fallback_height(x, z)
            column = [True] * height
        else:
            async with semaphore:
                try:
                    height, column = await self._query_column(x, z)
                except Exception:
                    logger.warning(
                        "Elevation query failed for column (%d, %d) of chunk (%d, %d), using noise height",
                        x, z, self.chunk_x, self.chunk_z, exc_info=True
                    )
                    height = self.fallback_height(x, z)
                    column = [True] * height

        self.heights[z, x] = height
        for y, exists in enumerate(column):
            self.set_block(x, y, z, BLOCK_SOLID if exists else BLOCK_EMPTY)

        # Let other chunks and the frame loop run between columns
        await asyncio.sleep(0)

    async def generate_terrain(self) -> None:
        """
        Fill the grid column by column from the elevation provider.

        Columns are independent, so they are queried concurrently up to the
        configured limit. A failing column falls back to the local noise
        height; the chunk as a whole always finishes.
        """
        self.state = ChunkState.GENERATING
        semaphore = asyncio.Semaphore(self.concurrency)
        await asyncio.gather(*(
            self._fill_column(x, z, semaphore)
            for z in range(self.size)
            for x in range(self.size)
        ))
        self.state = ChunkState.READY
        logger.debug("Chunk (%d, %d) generated with %d solid blocks",
                     self.chunk_x, self.chunk_z, self.solid_count())

    def build_mesh(self) -> ChunkMesh:
        """
        Build a face-culled mesh of the solid blocks.

        A face is emitted wherever the neighbouring cell is empty, and cells
        outside the chunk always count as empty, so chunk borders are closed.

        Returns:
            The new mesh, which replaces (and releases) any previous one
        """
        solid = self.voxels() != BLOCK_EMPTY
        padded = np.pad(solid, 1, mode='constant', constant_values=False)

        # Neighbor occupancy per face direction, shared by culling and tinting
        neighbors = []
        for (dx, dy, dz), _ in FACES:
            neighbors.append(padded[1 + dz:1 + dz + self.size,
                                    1 + dy:1 + dy + self.max_height,
                                    1 + dx:1 + dx + self.size])
        cave_wall = np.sum(neighbors, axis=0) < CAVE_WALL_NEIGHBORS

        palette = face_palette(self.max_height)
        positions = []
        normals = []
        colors = []
        for face_index, (direction, corners) in enumerate(FACES):
            zs, ys, xs = np.nonzero(solid & ~neighbors[face_index])
            if len(xs) == 0:
                continue

            cells = np.stack([xs, ys, zs], axis=1).astype(np.float32)
            quads = cells[:, None, :] + np.asarray(corners, dtype=np.float32)[None, :, :]
            positions.append(quads.reshape(-1, 3))
            normals.append(np.tile(np.asarray(direction, dtype=np.float32), (len(xs) * 4, 1)))
            face_colors = palette[cave_wall[zs, ys, xs].astype(np.intp), ys, face_index]
            colors.append(np.repeat(face_colors, 4, axis=0))

        if positions:
            positions = np.concatenate(positions)
            normals = np.concatenate(normals)
            colors = np.concatenate(colors)
        else:
            positions = np.zeros((0, 3), dtype=np.float32)
            normals = np.zeros((0, 3), dtype=np.float32)
            colors = np.zeros((0, 3), dtype=np.float32)

        starts = np.arange(len(positions) // 4, dtype=np.uint32) * 4
        indices = (starts[:, None] + QUAD_TRIANGLES[None, :]).reshape(-1)

        self._release_mesh()
        self.mesh = ChunkMesh(positions, normals, colors, indices, origin=self.origin)
        if self.state == ChunkState.DISPOSED:
            self.state = ChunkState.READY
        return self.mesh

    def _release_mesh(self) -> None:
        if self.mesh is not None:
            self.mesh.release()
            self.mesh = None

    def dispose(self) -> None:
        """Release the mesh. Safe without a mesh and safe to repeat."""
        self._release_mesh()
        self.state = ChunkState.DISPOSED
