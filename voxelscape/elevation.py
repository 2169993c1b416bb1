"""
Elevation and cave carving for the voxel world
"""
import logging
from typing import Awaitable, Optional, Protocol, Tuple, Union

from voxelscape.constants import CHUNK_SIZE, OctaveBand, TerrainSettings
from voxelscape.noise_field import NoiseField

logger = logging.getLogger(__name__)


class ElevationProvider(Protocol):
    """Anything that can answer column heights and block occupancy for chunks"""

    def get_elevation_for_chunk(self, chunk_x: int, chunk_z: int,
                                local_x: int, local_z: int) -> Union[float, Awaitable[float]]:
        ...

    def should_block_exist(self, chunk_x: int, chunk_z: int, local_x: int, local_y: int,
                           local_z: int, surface_height: int) -> Union[bool, Awaitable[bool]]:
        ...


class ElevationService:
    """Turns world coordinates into surface heights and cave decisions"""

    def __init__(self, settings: Optional[TerrainSettings] = None, chunk_size: int = CHUNK_SIZE):
        """
        Create an elevation service

        Args:
            settings: Terrain tunables and seed, defaults to TerrainSettings()
            chunk_size: Blocks per chunk along x and z
        """
        self.settings = settings or TerrainSettings()
        self.chunk_size = chunk_size
        self.noise = NoiseField(self.settings.seed)
        logger.debug("Elevation service ready (seed=%d, chunk_size=%d)", self.seed, chunk_size)

    @property
    def seed(self) -> int:
        return self.noise.seed

    def domain_warp(self, x: float, y: float) -> Tuple[float, float]:
        """
        Offset a sample point by low-frequency noise

        Args:
            x: Sample x-coordinate
            y: Sample y-coordinate

        Returns:
            The warped (x, y) pair
        """
        frequency = self.settings.domain_warp_frequency
        amplitude = self.settings.domain_warp_amplitude
        wx = x + self.noise.noise2d(x * frequency, y * frequency) * amplitude
        wy = y + self.noise.noise2d((x + 100) * frequency, (y + 100) * frequency) * amplitude
        return wx, wy

    def ridged_noise2d(self, x: float, y: float) -> float:
        """Noise folded into sharp crests for mountain ridges"""
        ridge = 1.0 - abs(self.noise.noise2d(x, y))
        return ridge * ridge

    def _sum_band(self, band: OctaveBand, x: float, y: float, ridged: bool = False) -> float:
        total = 0.0
        amplitude = band.amplitude
        frequency = band.frequency
        ridge_scale = self.settings.ridge_frequency_scale

        for _ in range(band.octaves):
            total += self.noise.noise2d(x * frequency, y * frequency) * amplitude
            if ridged:
                total += self.ridged_noise2d(x * frequency * ridge_scale,
                                             y * frequency * ridge_scale) * amplitude
            frequency *= band.lacunarity
            amplitude *= band.persistence

        return total * band.scale

    def get_elevation(self, world_x: float, world_z: float) -> float:
        """
        Get the surface elevation of a world column

        Args:
            world_x: X coordinate in world blocks
            world_z: Z coordinate in world blocks

        Returns:
            Non-negative elevation in elevation units
        """
        settings = self.settings
        wx, wz = self.domain_warp(world_x, world_z)

        elevation = self._sum_band(settings.large_terrain, wx, wz)
        elevation += self._sum_band(settings.medium_hills, world_x, world_z, ridged=True)
        elevation += self._sum_band(settings.small_detail, world_x, world_z)
        elevation += self._sum_band(settings.fine_detail, world_x, world_z)
        elevation += settings.base_elevation

        return max(0.0, elevation)

    def carve_threshold(self, world_y: float) -> Optional[float]:
        """Cave threshold for a height, None where caves are not allowed"""
        return self.settings.get_carve_threshold(self.settings.surface_cutoff - world_y)

    def cave_density(self, world_x: float, world_y: float, world_z: float) -> float:
        """Combined multi-scale cave noise at a world point"""
        total = 0.0
        for scale, weight in zip(self.settings.cave_scales, self.settings.cave_weights):
            total += abs(self.noise.noise3d(world_x * scale, world_y * scale, world_z * scale)) * weight
        return total / self.settings.cave_normalizer

    def should_carve_block(self, world_x: float, world_y: float, world_z: float) -> bool:
        """
        Decide whether a block is hollowed out by a cave

        Args:
            world_x: X coordinate in world blocks
            world_y: Y coordinate in world blocks
            world_z: Z coordinate in world blocks

        Returns:
            True if the block should be empty
        """
        threshold = self.carve_threshold(world_y)
        if threshold is None:
            return False
        return self.cave_density(world_x, world_y, world_z) < threshold

    def to_world(self, chunk_x: int, chunk_z: int, local_x: int, local_z: int) -> Tuple[int, int]:
        """Convert chunk-local column coordinates to world blocks"""
        return chunk_x * self.chunk_size + local_x, chunk_z * self.chunk_size + local_z

    async def get_elevation_for_chunk(self, chunk_x: int, chunk_z: int,
                                      local_x: int, local_z: int) -> float:
        """Elevation of one column of a chunk"""
        world_x, world_z = self.to_world(chunk_x, chunk_z, local_x, local_z)
        return self.get_elevation(world_x, world_z)

    def should_block_exist(self, chunk_x: int, chunk_z: int, local_x: int, local_y: int,
                           local_z: int, surface_height: int) -> bool:
        """
        Decide whether a chunk-local block is solid

        Args:
            chunk_x: Chunk x-coordinate
            chunk_z: Chunk z-coordinate
            local_x: Block x within the chunk
            local_y: Block y (world height)
            local_z: Block z within the chunk
            surface_height: Column height in blocks

        Returns:
            True if the block lies under the surface and is not carved
        """
        if local_y >= surface_height:
            return False
        world_x, world_z = self.to_world(chunk_x, chunk_z, local_x, local_z)
        return not self.should_carve_block(world_x, local_y, world_z)
