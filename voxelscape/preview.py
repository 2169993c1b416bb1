"""
Top-down pygame preview of streamed terrain
"""
import asyncio
import logging
import weakref
from typing import Iterable, Optional

import pygame

from voxelscape.chunk import ChunkMesh
from voxelscape.chunk_manager import ChunkManager
from voxelscape.constants import (
    BACKGROUND_COLOR, CHUNK_HEIGHT, CHUNK_SIZE, FPS, KEY_DOWN, KEY_LEFT, KEY_QUIT,
    KEY_RESET, KEY_RIGHT, KEY_UP, PAN_SPEED, SCREEN_HEIGHT, SCREEN_WIDTH, TILE_SIZE,
    VIEW_DISTANCE, VIEWPOINT_COLOR, TerrainSettings
)
from voxelscape.world import Scene, World

logger = logging.getLogger(__name__)


def render_chunk_surface(mesh: ChunkMesh, chunk_size: int) -> pygame.Surface:
    """
    Paint the top faces of a chunk mesh onto a surface, highest face winning

    Args:
        mesh: Chunk mesh in chunk-local coordinates
        chunk_size: Blocks per chunk along x and z

    Returns:
        A chunk_size*TILE_SIZE square surface
    """
    surface = pygame.Surface((chunk_size * TILE_SIZE, chunk_size * TILE_SIZE))
    surface.fill(BACKGROUND_COLOR)
    corners, colors = mesh.top_faces()
    for (x, _, z), rgb in sorted(zip(corners.tolist(), colors.tolist()), key=lambda face: face[0][1]):
        color = tuple(int(channel * 255) for channel in rgb)
        surface.fill(color, pygame.Rect(x * TILE_SIZE, z * TILE_SIZE, TILE_SIZE, TILE_SIZE))
    return surface


class SurfaceCache:
    """Rendered chunk surfaces keyed by the mesh object itself"""

    def __init__(self, chunk_size: int):
        self.chunk_size = chunk_size
        self._surfaces: 'weakref.WeakKeyDictionary[ChunkMesh, pygame.Surface]' = weakref.WeakKeyDictionary()

    def get(self, mesh: ChunkMesh) -> pygame.Surface:
        surface = self._surfaces.get(mesh)
        if surface is None:
            surface = render_chunk_surface(mesh, self.chunk_size)
            self._surfaces[mesh] = surface
        return surface

    def prune(self, live: Iterable[ChunkMesh]) -> None:
        """Forget surfaces of meshes that are no longer drawn"""
        keep = set(live)
        for mesh in list(self._surfaces.keys()):
            if mesh not in keep:
                del self._surfaces[mesh]

    def clear(self) -> None:
        self._surfaces.clear()

    def __contains__(self, mesh: ChunkMesh) -> bool:
        return mesh in self._surfaces

    def __len__(self) -> int:
        return len(self._surfaces)


class Preview:
    """Window that pans a viewpoint over the streamed world"""

    def __init__(self, settings: Optional[TerrainSettings] = None):
        pygame.init()
        pygame.display.set_caption("voxelscape")
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        self.clock = pygame.time.Clock()

        self.scene = Scene()
        self.world = World()
        self.manager = ChunkManager(self.scene, self.world, chunk_size=CHUNK_SIZE,
                                    chunk_height=CHUNK_HEIGHT, view_distance=VIEW_DISTANCE,
                                    settings=settings)
        self.view_x = CHUNK_SIZE / 2
        self.view_z = CHUNK_SIZE / 2
        self.surfaces = SurfaceCache(CHUNK_SIZE)
        self.running = False

    def _handle_input(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == KEY_QUIT:
                    self.running = False
                elif event.key == KEY_RESET:
                    self.manager.reset()
                    self.surfaces.clear()

        keys = pygame.key.get_pressed()
        if keys[KEY_LEFT] or keys[pygame.K_a]:
            self.view_x -= PAN_SPEED
        if keys[KEY_RIGHT] or keys[pygame.K_d]:
            self.view_x += PAN_SPEED
        if keys[KEY_UP] or keys[pygame.K_w]:
            self.view_z -= PAN_SPEED
        if keys[KEY_DOWN] or keys[pygame.K_s]:
            self.view_z += PAN_SPEED

    def _draw(self):
        self.screen.fill(BACKGROUND_COLOR)
        center_x = SCREEN_WIDTH // 2
        center_y = SCREEN_HEIGHT // 2

        meshes = self.scene.meshes
        self.surfaces.prune(meshes)
        for mesh in meshes:
            origin_x, _, origin_z = mesh.origin
            screen_x = center_x + int((origin_x - self.view_x) * TILE_SIZE)
            screen_y = center_y + int((origin_z - self.view_z) * TILE_SIZE)
            self.screen.blit(self.surfaces.get(mesh), (screen_x, screen_y))

        pygame.draw.circle(self.screen, VIEWPOINT_COLOR, (center_x, center_y), 4)
        pygame.display.flip()

    async def run(self):
        """Run the frame loop until the window is closed"""
        self.running = True
        logger.info("Preview started, %d chunk(s) in view", (2 * VIEW_DISTANCE + 1) ** 2)
        try:
            while self.running:
                self._handle_input()
                self.manager.load_chunks_around(self.view_x, self.view_z)
                self._draw()
                # Give chunk generation a turn before the next frame
                await asyncio.sleep(0)
                self.clock.tick(FPS)
        finally:
            self.manager.reset()
            pygame.quit()
