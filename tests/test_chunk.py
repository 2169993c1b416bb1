"""
Tests for the chunk module
"""
import asyncio
import logging

import numpy as np
import pytest

from voxelscape.chunk import ChunkState, VoxelChunk, face_palette
from voxelscape.constants import BLOCK_EMPTY, BLOCK_SOLID, TerrainSettings
from voxelscape.elevation import ElevationService


class FlatProvider:
    """Provider with a constant elevation, optionally failing on one column"""

    def __init__(self, elevation=800.0, failing_column=None, fail_occupancy=False):
        self.elevation = elevation
        self.failing_column = failing_column
        self.fail_occupancy = fail_occupancy

    def get_elevation_for_chunk(self, chunk_x, chunk_z, local_x, local_z):
        if (local_x, local_z) == self.failing_column and not self.fail_occupancy:
            raise RuntimeError("elevation backend unavailable")
        return self.elevation

    def should_block_exist(self, chunk_x, chunk_z, local_x, local_y, local_z, surface_height):
        if (local_x, local_z) == self.failing_column and self.fail_occupancy:
            raise RuntimeError("occupancy backend unavailable")
        return local_y < surface_height


class SlowProvider:
    """Async provider that records how many column queries overlap"""

    def __init__(self):
        self.active = 0
        self.peak = 0

    async def get_elevation_for_chunk(self, chunk_x, chunk_z, local_x, local_z):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        self.active -= 1
        return 300.0

    async def should_block_exist(self, chunk_x, chunk_z, local_x, local_y, local_z, surface_height):
        return local_y < surface_height


def test_chunk_creation():
    """Test that a chunk starts empty with the right grid size"""
    chunk = VoxelChunk(8, 16, chunk_x=3, chunk_z=-2)
    assert chunk.state == ChunkState.EMPTY
    assert chunk.blocks.shape == (8 * 16 * 8,)
    assert chunk.key == (3, -2)
    assert chunk.origin == (24, 0, -16)
    assert chunk.solid_count() == 0
    assert chunk.mesh is None


def test_chunk_set_get_block():
    """Test block access and the flat index layout"""
    chunk = VoxelChunk(4, 8)
    chunk.set_block(1, 5, 2, BLOCK_SOLID)
    assert chunk.get_block(1, 5, 2) == BLOCK_SOLID
    assert chunk.blocks[1 + 5 * 4 + 2 * 4 * 8] == BLOCK_SOLID
    assert chunk.voxels()[2, 5, 1] == BLOCK_SOLID

    cube = VoxelChunk(4, 4)
    assert cube.index(1, 2, 3) == 1 + 2 * 4 + 3 * 4 * 4


def test_out_of_bounds_reads_empty():
    """Test that positions outside the chunk read as empty and writes are ignored"""
    chunk = VoxelChunk(4, 8)
    chunk.blocks.fill(BLOCK_SOLID)
    for position in [(-1, 0, 0), (4, 0, 0), (0, -1, 0), (0, 8, 0), (0, 0, -1), (0, 0, 4)]:
        assert chunk.get_block(*position) == BLOCK_EMPTY
        assert chunk.is_solid(*position) is False

    empty = VoxelChunk(4, 8)
    empty.set_block(4, 0, 0, BLOCK_SOLID)
    empty.set_block(0, 0, -1, BLOCK_SOLID)
    assert empty.solid_count() == 0


def test_single_voxel_mesh():
    """Test that one solid voxel gives a closed cube"""
    chunk = VoxelChunk(1, 1)
    chunk.set_block(0, 0, 0, BLOCK_SOLID)
    mesh = chunk.build_mesh()

    assert mesh.quad_count == 6
    assert mesh.vertex_count == 24
    assert mesh.triangle_count == 12
    assert len(mesh.indices) == 36
    assert mesh.indices.max() == 23
    assert {tuple(normal) for normal in mesh.normals.tolist()} == {
        (1.0, 0.0, 0.0), (-1.0, 0.0, 0.0), (0.0, 1.0, 0.0),
        (0.0, -1.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0),
    }
    assert mesh.positions.min() == 0.0
    assert mesh.positions.max() == 1.0


def test_empty_chunk_mesh():
    """Test that an empty chunk builds an empty mesh"""
    mesh = VoxelChunk(4, 4).build_mesh()
    assert mesh.vertex_count == 0
    assert mesh.triangle_count == 0


def test_shared_faces_are_culled():
    """Test that faces between two solid voxels are not emitted"""
    chunk = VoxelChunk(4, 4)
    chunk.set_block(1, 1, 1, BLOCK_SOLID)
    chunk.set_block(2, 1, 1, BLOCK_SOLID)
    mesh = chunk.build_mesh()
    assert mesh.quad_count == 10
    assert mesh.triangle_count == 20


def test_chunk_boundary_faces_are_emitted():
    """Test that a completely solid chunk is closed at its borders"""
    chunk = VoxelChunk(2, 2)
    chunk.blocks.fill(BLOCK_SOLID)
    mesh = chunk.build_mesh()
    # Only the outer faces: 6 sides of 2x2 quads
    assert mesh.quad_count == 24


def test_cave_wall_tint():
    """Test that thinly supported voxels get the cave wall color"""
    chunk = VoxelChunk(3, 3)
    chunk.blocks.fill(BLOCK_SOLID)
    mesh = chunk.build_mesh()
    palette = face_palette(3)
    top = 2

    corners, colors = mesh.top_faces()
    by_corner = {tuple(corner): color for corner, color in zip(corners.tolist(), colors.tolist())}
    assert len(by_corner) == 9

    # Top center has 5 occupied neighbors, a top corner only 3
    assert np.allclose(by_corner[(1, 3, 1)], palette[0, 2, top])
    assert np.allclose(by_corner[(0, 3, 0)], palette[1, 2, top])
    assert not np.allclose(palette[0, 2, top], palette[1, 2, top])


def test_face_lighting():
    """Test that top faces are brighter than sides, and sides brighter than bottoms"""
    palette = face_palette(8)
    top, bottom, side = palette[1, 0, 2].sum(), palette[1, 0, 3].sum(), palette[1, 0, 0].sum()
    assert top > side > bottom


def test_height_bands():
    """Test that low and very high voxels get different colors"""
    palette = face_palette(10)
    assert not np.allclose(palette[0, 0, 2], palette[0, 9, 2])
    # Snow is close to white
    assert palette[0, 9, 2].min() > 0.8


def test_dispose_is_safe():
    """Test that dispose works with and without a mesh and after rebuilds"""
    chunk = VoxelChunk(2, 2)
    chunk.dispose()
    assert chunk.state == ChunkState.DISPOSED

    chunk.set_block(0, 0, 0, BLOCK_SOLID)
    first = chunk.build_mesh()
    assert chunk.state == ChunkState.READY
    second = chunk.build_mesh()
    assert first.released is True
    assert second.released is False

    chunk.dispose()
    chunk.dispose()
    assert chunk.mesh is None
    assert second.released is True
    assert second.vertex_count == 0

    third = chunk.build_mesh()
    assert third.quad_count == 6
    chunk.dispose()
    assert third.released is True


def test_mesh_origin():
    """Test that the mesh is offset to the chunk's world position"""
    chunk = VoxelChunk(4, 8, chunk_x=2, chunk_z=-1)
    assert chunk.build_mesh().origin == (8, 0, -4)


def test_column_height_conversion():
    """Test the elevation to block count rule and its clamping"""
    chunk = VoxelChunk(4, 16)
    assert chunk.column_height(500.0) == 10
    assert chunk.column_height(-500.0) == 1
    assert chunk.column_height(1e9) == 15


def test_fallback_height_is_deterministic():
    """Test the noise-only column height"""
    chunk = VoxelChunk(8, 16, chunk_x=-3, chunk_z=5, seed=99)
    same = VoxelChunk(8, 16, chunk_x=-3, chunk_z=5, seed=99)
    for x in range(8):
        for z in range(8):
            height = chunk.fallback_height(x, z)
            assert 1 <= height <= 15
            assert height == same.fallback_height(x, z)


def test_generate_without_provider():
    """Test that a chunk without a provider fills solid columns from noise"""
    chunk = VoxelChunk(6, 12, chunk_x=1, chunk_z=1)
    asyncio.run(chunk.generate_terrain())

    assert chunk.state == ChunkState.READY
    assert chunk.heights.min() >= 1
    assert chunk.heights.max() <= 11
    assert chunk.solid_count() == int(chunk.heights.sum())


def test_generate_with_elevation_service_is_reproducible():
    """Test that regenerating a chunk reproduces identical terrain"""
    settings = TerrainSettings(seed=4242)

    def generate():
        chunk = VoxelChunk(4, 64, ElevationService(settings, chunk_size=4), chunk_x=-1, chunk_z=2)
        asyncio.run(chunk.generate_terrain())
        return chunk

    first = generate()
    second = generate()
    assert first.state == ChunkState.READY
    assert np.array_equal(first.blocks, second.blocks)
    assert np.array_equal(first.heights, second.heights)
    assert first.heights.min() >= 1
    assert first.heights.max() <= 63


def test_column_fallback_on_elevation_failure(caplog):
    """Test that a failing column falls back to noise and the chunk still completes"""
    chunk = VoxelChunk(4, 16, FlatProvider(failing_column=(1, 2)))
    with caplog.at_level(logging.WARNING, logger="voxelscape.chunk"):
        asyncio.run(chunk.generate_terrain())

    assert chunk.state == ChunkState.READY
    assert 1 <= chunk.heights[2, 1] <= 16
    assert chunk.heights[2, 1] == chunk.fallback_height(1, 2)
    # Every other column used the provider: floor(800 / 100) + 5
    others = [chunk.heights[z, x] for z in range(4) for x in range(4) if (x, z) != (1, 2)]
    assert all(height == 13 for height in others)
    assert any("Elevation query failed" in record.getMessage() for record in caplog.records)


def test_column_fallback_on_occupancy_failure():
    """Test that an occupancy error for one column is also recovered from"""
    chunk = VoxelChunk(4, 16, FlatProvider(failing_column=(0, 0), fail_occupancy=True))
    asyncio.run(chunk.generate_terrain())

    assert chunk.state == ChunkState.READY
    height = chunk.fallback_height(0, 0)
    assert chunk.heights[0, 0] == height
    assert all(chunk.is_solid(0, y, 0) for y in range(height))


def test_column_queries_are_bounded():
    """Test that concurrent column queries respect the limit"""
    provider = SlowProvider()
    chunk = VoxelChunk(4, 8, provider, concurrency=3)
    asyncio.run(chunk.generate_terrain())

    assert chunk.state == ChunkState.READY
    assert 1 < provider.peak <= 3
    # floor(300 / 100) + 5 clamped to max_height - 1
    assert (chunk.heights == 7).all()
    assert chunk.solid_count() == 4 * 4 * 7


@pytest.mark.parametrize("size,height", [(1, 1), (3, 5), (5, 3)])
def test_mesh_buffers_are_consistent(size, height):
    """Test that mesh buffers line up for any chunk shape"""
    chunk = VoxelChunk(size, height)
    chunk.blocks.fill(BLOCK_SOLID)
    mesh = chunk.build_mesh()

    assert mesh.positions.shape == (mesh.vertex_count, 3)
    assert mesh.normals.shape == mesh.positions.shape
    assert mesh.colors.shape == mesh.positions.shape
    assert mesh.quad_count == 2 * (size * size + 2 * size * height)
    assert mesh.indices.max() == mesh.vertex_count - 1
