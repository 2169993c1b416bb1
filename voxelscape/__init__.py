"""
Procedural voxel terrain: noise synthesis, cave carving, meshing and chunk streaming
"""
