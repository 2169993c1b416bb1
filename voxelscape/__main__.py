"""
Main entry point for the voxelscape preview
"""
import asyncio
import logging

from voxelscape.preview import Preview


def main():
    """Open the preview window"""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    preview = Preview()
    asyncio.run(preview.run())


if __name__ == "__main__":
    main()
