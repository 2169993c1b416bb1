from setuptools import setup, find_packages

setup(
    name="voxelscape",
    version="0.1.0",
    packages=find_packages(exclude=["tests"]),
    install_requires=[
        "pygame>=2.0.0",  # HSL color conversion and the preview window
        "numpy>=1.20.0",
        "noise>=1.2.2",  # Perlin noise for the fallback column height
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": ["voxelscape-preview=voxelscape.__main__:main"],
    },
)
