"""
Streaming of voxel chunks around a moving viewpoint
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

from voxelscape.chunk import ChunkMesh, VoxelChunk
from voxelscape.constants import CHUNK_HEIGHT, CHUNK_SIZE, VIEW_DISTANCE, TerrainSettings
from voxelscape.elevation import ElevationProvider, ElevationService

logger = logging.getLogger(__name__)

ChunkKey = Tuple[int, int]


class SceneConsumer(Protocol):
    def add(self, mesh: ChunkMesh) -> None: ...

    def remove(self, mesh: ChunkMesh) -> None: ...


class EntityRegistry(Protocol):
    def create_entity(self) -> Any: ...

    def add_component(self, entity: Any, name: str, data: Any) -> None: ...

    def destroy_entity(self, entity: Any) -> None: ...


@dataclass
class LoadedChunk:
    """A generated chunk and what was handed out for it"""
    entity: Any
    chunk: VoxelChunk
    mesh: ChunkMesh


class ChunkManager:
    """Keeps the chunks within view distance of a viewpoint loaded"""

    def __init__(self, scene: SceneConsumer, registry: EntityRegistry,
                 elevation_provider: Optional[ElevationProvider] = None,
                 chunk_size: int = CHUNK_SIZE, chunk_height: int = CHUNK_HEIGHT,
                 view_distance: int = VIEW_DISTANCE,
                 settings: Optional[TerrainSettings] = None):
        """
        Initialize the manager with nothing loaded

        Args:
            scene: Receives each finished chunk mesh
            registry: Issues one entity per finished chunk
            elevation_provider: Terrain source, defaults to an ElevationService
            chunk_size: Blocks per chunk along x and z
            chunk_height: Blocks per chunk along y
            view_distance: Square radius, in chunks, kept loaded
            settings: Terrain settings for the default provider and the
                fallback noise seed
        """
        self.scene = scene
        self.registry = registry
        self.settings = settings or TerrainSettings()
        self.chunk_size = chunk_size
        self.chunk_height = chunk_height
        self.view_distance = view_distance
        if elevation_provider is None:
            elevation_provider = ElevationService(self.settings, chunk_size=chunk_size)
        self.elevation_provider = elevation_provider

        self.chunks: Dict[ChunkKey, LoadedChunk] = {}
        self.in_flight: Set[ChunkKey] = set()
        self.view_chunk: Optional[ChunkKey] = None
        self._tasks: Set[asyncio.Task] = set()
        self._epoch = 0

    def chunk_coords(self, x: float, z: float) -> ChunkKey:
        """Chunk coordinates containing a world position"""
        return int(x // self.chunk_size), int(z // self.chunk_size)

    def chunk_origin(self, chunk_x: int, chunk_z: int) -> Tuple[int, int, int]:
        return chunk_x * self.chunk_size, 0, chunk_z * self.chunk_size

    def is_loaded(self, key: ChunkKey) -> bool:
        return key in self.chunks

    def loaded_keys(self) -> Set[ChunkKey]:
        return set(self.chunks)

    @property
    def pending_count(self) -> int:
        return len(self.in_flight)

    def load_chunks_around(self, view_x: float, view_z: float) -> List[ChunkKey]:
        """
        Start generating missing chunks near a viewpoint and drop distant ones.

        Must be called from a running event loop. Generation runs as
        independent tasks; this call never waits for them.

        Args:
            view_x: Viewpoint x-coordinate in world blocks
            view_z: Viewpoint z-coordinate in world blocks

        Returns:
            Keys of the chunks whose generation was started by this call
        """
        loop = asyncio.get_running_loop()
        center_x, center_z = self.chunk_coords(view_x, view_z)
        self.view_chunk = (center_x, center_z)

        started = []
        for dx in range(-self.view_distance, self.view_distance + 1):
            for dz in range(-self.view_distance, self.view_distance + 1):
                key = (center_x + dx, center_z + dz)
                if key in self.chunks or key in self.in_flight:
                    continue
                self.in_flight.add(key)
                task = loop.create_task(self._generate_chunk(key, self._epoch))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                started.append(key)

        for key in list(self.chunks):
            distance = max(abs(key[0] - center_x), abs(key[1] - center_z))
            if distance > self.view_distance:
                self.unload_chunk(key)

        if started:
            logger.debug("Started %d chunk(s) around (%d, %d)", len(started), center_x, center_z)
        return started

    async def _generate_chunk(self, key: ChunkKey, epoch: int) -> None:
        chunk_x, chunk_z = key
        try:
            while True:
                chunk = VoxelChunk(self.chunk_size, self.chunk_height, self.elevation_provider,
                                   chunk_x, chunk_z, seed=self.settings.seed)
                await chunk.generate_terrain()
                mesh = chunk.build_mesh()
                if epoch == self._epoch:
                    break

                # Started before a reset; the result belongs to the old world.
                # The key keeps its marker, so regenerate here if it is wanted again.
                chunk.dispose()
                if not self._in_view(key):
                    return
                epoch = self._epoch
                logger.debug("Regenerating chunk (%d, %d) after reset", chunk_x, chunk_z)

            self._attach(key, chunk, mesh)
        except Exception:
            logger.exception("Generation of chunk (%d, %d) failed", chunk_x, chunk_z)
        finally:
            self.in_flight.discard(key)

    def _in_view(self, key: ChunkKey) -> bool:
        if self.view_chunk is None:
            return False
        distance = max(abs(key[0] - self.view_chunk[0]), abs(key[1] - self.view_chunk[1]))
        return distance <= self.view_distance

    def _attach(self, key: ChunkKey, chunk: VoxelChunk, mesh: ChunkMesh) -> None:
        chunk_x, chunk_z = key
        position = self.chunk_origin(chunk_x, chunk_z)
        mesh.origin = position

        entity = self.registry.create_entity()
        self.registry.add_component(entity, 'Transform', {'mesh': mesh, 'position': position})
        self.registry.add_component(entity, 'VoxelData', {
            'chunk': chunk,
            'blocks': chunk.blocks,
            'chunk_x': chunk_x,
            'chunk_z': chunk_z,
        })
        self.scene.add(mesh)
        self.chunks[key] = LoadedChunk(entity, chunk, mesh)
        logger.debug("Chunk (%d, %d) loaded with %d quads", chunk_x, chunk_z, mesh.quad_count)

    def unload_chunk(self, key: ChunkKey) -> None:
        """Detach and release a loaded chunk; unknown keys are ignored"""
        loaded = self.chunks.pop(key, None)
        if loaded is None:
            return
        self.scene.remove(loaded.mesh)
        loaded.chunk.dispose()
        self.registry.destroy_entity(loaded.entity)
        logger.debug("Chunk (%d, %d) unloaded", key[0], key[1])

    def reset(self) -> None:
        """
        Unload every chunk.

        Generation already in flight still finishes, but its result is
        discarded instead of being loaded. If a later load_chunks_around
        wants the same key again, that task regenerates it for the new world
        rather than a second task being started.
        """
        self._epoch += 1
        for key in list(self.chunks):
            self.unload_chunk(key)
        self.view_chunk = None
        logger.info("Chunk manager reset (%d generation(s) still in flight)", len(self.in_flight))

    async def wait_until_idle(self) -> None:
        """Wait until every scheduled generation task has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
