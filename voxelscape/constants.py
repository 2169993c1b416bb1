"""Terrain and streaming constants"""
from dataclasses import dataclass
from typing import Optional, Tuple
import pygame

# Chunk layout
CHUNK_SIZE = 32  # Blocks along x and z
CHUNK_HEIGHT = 64  # Blocks along y
VIEW_DISTANCE = 2  # Chunks kept around the viewpoint (square radius)
COLUMN_QUERY_CONCURRENCY = 32  # Column elevation queries in flight per chunk

# World generation
WORLD_SEED = 12345
ELEVATION_PER_BLOCK = 100  # Elevation units per block of column height
BLOCK_HEIGHT_OFFSET = 5  # Blocks added on top of the scaled elevation
FALLBACK_NOISE_SCALE = 20.0  # World blocks per fallback noise unit

# Block ids
BLOCK_EMPTY = 0
BLOCK_SOLID = 1

# Face directions with the corner offsets of each quad, wound the same way
FACES = (
    ((1, 0, 0), ((1, 1, 0), (1, 1, 1), (1, 0, 1), (1, 0, 0))),
    ((-1, 0, 0), ((0, 1, 1), (0, 1, 0), (0, 0, 0), (0, 0, 1))),
    ((0, 1, 0), ((0, 1, 1), (1, 1, 1), (1, 1, 0), (0, 1, 0))),
    ((0, -1, 0), ((0, 0, 0), (1, 0, 0), (1, 0, 1), (0, 0, 1))),
    ((0, 0, 1), ((1, 1, 1), (0, 1, 1), (0, 0, 1), (1, 0, 1))),
    ((0, 0, -1), ((0, 1, 0), (1, 1, 0), (1, 0, 0), (0, 0, 0))),
)

# Height bands: (upper height ratio, hue, saturation, base lightness, lightness per ratio)
HEIGHT_BANDS = (
    (0.2, 0.50, 0.7, 0.4, 0.3),  # Water-green lowlands
    (0.6, 0.325, 0.6, 0.3, 0.4),  # Forest
    (0.8, 0.15, 0.3, 0.3, 0.3),  # Stone
    (float('inf'), 0.6, 0.1, 0.9, 0.0),  # Snow
)
CAVE_WALL_COLOR = (0.075, 0.2, 0.3)  # hue, saturation, lightness
CAVE_WALL_NEIGHBORS = 4  # Fewer occupied neighbors than this reads as a cave wall

# Face lighting multipliers
TOP_FACE_LIGHT = 1.2
BOTTOM_FACE_LIGHT = 0.6
SIDE_FACE_LIGHT = 0.8

# Preview window
SCREEN_WIDTH = 1280
SCREEN_HEIGHT = 720
TILE_SIZE = 3  # Pixels per block in the preview
PAN_SPEED = 4.0  # Blocks per frame
FPS = 60
BACKGROUND_COLOR = (20, 24, 32)
VIEWPOINT_COLOR = (255, 80, 80)

KEY_LEFT = pygame.K_LEFT
KEY_RIGHT = pygame.K_RIGHT
KEY_UP = pygame.K_UP
KEY_DOWN = pygame.K_DOWN
KEY_RESET = pygame.K_r
KEY_QUIT = pygame.K_ESCAPE


@dataclass(frozen=True)
class OctaveBand:
    """One fractal noise band of the elevation sum"""
    frequency: float
    amplitude: float  # Amplitude of the first octave
    octaves: int
    scale: float  # Multiplier applied to the summed band
    lacunarity: float = 2.0
    persistence: float = 0.5


class TerrainSettings:
    """Every tunable of terrain synthesis, fixed for one world"""

    def __init__(self, seed: int = WORLD_SEED):
        self.seed = seed

        # Elevation
        self.base_elevation = 2500.0
        self.domain_warp_frequency = 0.005
        self.domain_warp_amplitude = 50.0
        self.ridge_frequency_scale = 1.3
        self.large_terrain = OctaveBand(frequency=0.01, amplitude=1.0, octaves=4, scale=3500.0)
        self.medium_hills = OctaveBand(frequency=0.012, amplitude=0.6, octaves=3, scale=1500.0 * 0.5)
        self.small_detail = OctaveBand(frequency=0.036, amplitude=0.4, octaves=2, scale=600.0)
        self.fine_detail = OctaveBand(frequency=0.072, amplitude=0.25, octaves=1, scale=200.0)

        # Cave sampling
        self.cave_scales = (0.015, 0.04, 0.08)
        self.cave_weights = (1.0, 0.3, 0.1)
        self.cave_normalizer = 1.4

        # Cave depth rules. Depths are counted in blocks below the surface
        # cutoff, not from the top of the chunk, so the brackets start at the
        # cutoff and stay small. Nothing above the cutoff is ever carved.
        # Cave density is built from |noise| with noise in [-1, 1], which
        # clusters near zero, so the thresholds are low to keep caves sparse.
        self.surface_cutoff = 45
        self.shallow_cave_depth = 5
        self.mid_depth_cutoff = 15
        self.deep_cave_depth = 30
        self.shallow_cave_threshold = 0.06
        self.mid_cave_threshold = 0.10
        self.deep_cave_threshold = 0.14

    def get_bands(self) -> Tuple[OctaveBand, OctaveBand, OctaveBand, OctaveBand]:
        """Get the elevation bands from broadest to finest"""
        return (self.large_terrain, self.medium_hills, self.small_detail, self.fine_detail)

    def get_carve_threshold(self, depth: float) -> Optional[float]:
        """
        Get the cave threshold for a depth below the surface cutoff

        Args:
            depth: Blocks below the surface cutoff (negative above it)

        Returns:
            The threshold, or None where carving is never allowed
        """
        if depth < max(0, self.shallow_cave_depth):
            return None
        if depth < self.mid_depth_cutoff:
            return self.shallow_cave_threshold
        if depth > self.deep_cave_depth:
            return self.deep_cave_threshold
        return self.mid_cave_threshold
