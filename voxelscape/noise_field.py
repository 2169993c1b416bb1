"""
Deterministic hash-based noise for terrain synthesis
"""
import math

MASK_32 = 0xFFFFFFFF
PRIME_X = 374761393
PRIME_Y = 668265263
PRIME_MIX = 1274126177

WARP_STRENGTH = 0.7
DIAGONAL_WEIGHT = 0.1


def quintic(t: float) -> float:
    """Quintic smoothing curve 6t^5 - 15t^4 + 10t^3"""
    return t * t * t * (t * (t * 6 - 15) + 10)


class NoiseField:
    """Scalar value noise seeded once at construction"""

    def __init__(self, seed: int):
        """
        Create a noise field

        Args:
            seed: World seed, fixed for the lifetime of the field
        """
        self._seed = int(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def hash(self, x: int, y: int) -> float:
        """
        Mix the seed and a lattice point into a value in [0, 1)

        Args:
            x: Lattice x-coordinate
            y: Lattice y-coordinate

        Returns:
            Pseudo-random value for the point
        """
        h = (self._seed + x * PRIME_X + y * PRIME_Y) & MASK_32
        h = ((h ^ (h >> 13)) * PRIME_MIX) & MASK_32
        h ^= h >> 16
        return h / 4294967296.0

    def noise2d(self, x: float, y: float) -> float:
        """
        Smooth 2D value noise in roughly [-1, 1]

        The sample point is jittered by a trigonometric warp before the
        lattice lookup so features do not line up with the grid.
        """
        jx = x + math.sin(y * 12.9898 + x * 4.1414) * WARP_STRENGTH
        jy = y + math.cos(x * 78.233 + y * 7.5175) * WARP_STRENGTH

        ix = math.floor(jx)
        iy = math.floor(jy)
        u = quintic(jx - ix)
        v = quintic(jy - iy)

        a = self.hash(ix, iy)
        b = self.hash(ix + 1, iy)
        c = self.hash(ix, iy + 1)
        d = self.hash(ix + 1, iy + 1)

        # Weak diagonal samples for isotropy
        e = self.hash(ix - 1, iy - 1) * DIAGONAL_WEIGHT
        f = self.hash(ix + 2, iy + 2) * DIAGONAL_WEIGHT

        i1 = a + u * (b - a)
        i2 = c + u * (d - c)
        value = i1 + v * (i2 - i1)
        return value * 2.0 - 1.0 + (e - f)

    def noise3d(self, x: float, y: float, z: float) -> float:
        """
        Approximate 3D noise from rotated 2D samples.

        Good enough for carving caves, not a true volumetric lattice.
        """
        skew = (x + y + z) / 3.0
        nx = x + skew + math.sin(y * 0.1)
        ny = y + skew + math.cos(z * 0.1)
        nz = z + skew + math.sin(x * 0.1)

        layer1 = self.noise2d(nx * 0.8 + nz * 0.2, ny * 0.9 + nx * 0.1)
        layer2 = self.noise2d(ny * 0.7 + nx * 0.3, nz * 0.8 + ny * 0.2)
        layer3 = self.noise2d(nz * 0.9 + ny * 0.1, nx * 0.6 + nz * 0.4)
        layer4 = self.noise2d((nx + ny) * 0.5 + nz * 0.3, (ny + nz) * 0.5 + nx * 0.3) * 0.5

        return layer1 * 0.4 + layer2 * 0.3 + layer3 * 0.2 + layer4 * 0.1
