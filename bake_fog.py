# bake_fog.py

"""
================================================================================
OFFLINE FOG MESH BAKER SCRIPT
================================================================================
This script is a command-line tool for building every fog tile mesh of a map
once and exporting it to disk ("baking"). Each distinct tile mesh is written
as a compressed `.npz` file named after its content hash, so identical tiles
(e.g. fully locked ones) are stored only once. A `manifest.json` maps tile
coordinates to hashes, and preview PNGs of the cell classes and terrain types
are saved next to it.

Usage:
    python bake_fog.py --config path/to/your/fog_config.json
================================================================================
"""
import os
import sys
import json
import logging
import argparse
import time
import collections
import numpy as np
from PIL import Image
from tqdm import tqdm

# Add project root to Python path to allow importing from fog_generator
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from fog_generator import color_maps
from fog_generator import config as DEFAULTS
from fog_generator.mesh_builder import TileMesh
from fog_generator.runtime.fog_system import FogSystem

# --- Helpers ---
def save_tile_mesh(mesh: TileMesh, directory: str, file_hash: str) -> str:
    """Writes one mesh as a compressed .npz archive and returns its path."""
    os.makedirs(directory, exist_ok=True)
    file_path = os.path.join(directory, f"{file_hash}.npz")
    np.savez_compressed(
        file_path,
        vertices=mesh.vertices,
        uvs=mesh.uvs,
        unlock_encoding=mesh.unlock_encoding,
        normals=mesh.normals,
        triangles=mesh.triangles,
        bounds_min=mesh.bounds_min,
        bounds_max=mesh.bounds_max,
    )
    return file_path

def save_preview_image(color_array: np.ndarray, file_path: str) -> str:
    """
    Saves a (width, height, 3) color array as a PNG with Pillow, palettized
    when it has few colors. The image is flipped so +z points up.
    """
    # Pillow works with (height, width, channels) arrays.
    img_data = np.ascontiguousarray(np.transpose(color_array, (1, 0, 2))[::-1])
    img = Image.fromarray(img_data, 'RGB')

    colors = img.getcolors(257)
    if colors and len(colors) <= 256:
        img = img.quantize(colors=256)
        img.save(file_path, 'PNG')
        return 'palettized'

    img.save(file_path, 'PNG')
    return 'full'

# --- Main Baking Function ---
def bake_fog(config_path: str, output_root: str = "baked_fog"):
    """
    Loads a configuration, builds every fog tile mesh, and saves the unique
    meshes, the manifest and the preview images to a structured output directory.
    """
    # 1. --- Setup Logging ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )
    logger = logging.getLogger("Baker")

    # 2. --- Load Configuration ---
    logger.info(f"Loading configuration from: {config_path}")
    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.critical(f"Failed to load or parse config file: {e}")
        return False

    fog_params = config.get('fog_parameters', {})

    # 3. --- Initialize the Fog System (no camera: every tile is built) ---
    try:
        fog = FogSystem(config=fog_params, logger=logger)
    except ValueError as e:
        logger.critical(f"Invalid fog configuration: {e}")
        return False

    seed = fog_params.get('seed', DEFAULTS.DEFAULT_SEED)
    base_output_dir = os.path.join(output_root, f"seed_{seed}")
    tiles_dir = os.path.join(base_output_dir, "tiles")

    # 4. --- Main Baking Loop ---
    total_tiles = fog.tile_count_x * fog.tile_count_z
    logger.info(f"Starting bake for a {fog.tile_count_x}x{fog.tile_count_z} tile grid ({total_tiles} tiles)...")
    start_time = time.perf_counter()

    manifest_tiles = [[None] * fog.tile_count_x for _ in range(fog.tile_count_z)]
    saved_hashes = set()
    stats = collections.Counter()

    for tile in tqdm(list(fog.iter_tiles()), desc="Baking Tiles"):
        fog.regenerate_tile(tile.tile_x, tile.tile_z)
        if tile.mesh.is_empty:
            stats['empty'] += 1
            continue

        file_hash = tile.mesh.content_hash()
        manifest_tiles[tile.tile_z][tile.tile_x] = file_hash
        if file_hash not in saved_hashes:
            saved_hashes.add(file_hash)
            save_tile_mesh(tile.mesh, tiles_dir, file_hash)
        stats['triangles'] += tile.mesh.triangle_count

    # 5. --- Preview Images ---
    os.makedirs(base_output_dir, exist_ok=True)
    class_colors = color_maps.get_class_color_array(fog.cell_classes, color_maps.create_cell_class_lut())
    save_preview_image(class_colors, os.path.join(base_output_dir, "cell_classes.png"))
    if hasattr(fog.terrain, 'type_grid'):
        terrain_colors = color_maps.get_terrain_color_array(fog.terrain.type_grid, color_maps.create_terrain_lut())
        save_preview_image(terrain_colors, os.path.join(base_output_dir, "terrain_types.png"))

    # --- Finalization ---
    manifest = {
        "settings": fog.settings,
        "tile_counts": [fog.tile_count_x, fog.tile_count_z],
        "grid_counts": [fog.grid_count_x, fog.grid_count_z],
        "tiles": manifest_tiles,
        "statistics": fog.statistics(),
    }
    manifest_path = os.path.join(base_output_dir, "manifest.json")
    with open(manifest_path, 'w') as f:
        json.dump(manifest, f, indent=2)

    end_time = time.perf_counter()
    logger.info(f"Baking complete! Total time: {end_time - start_time:.2f} seconds.")
    logger.info(
        f"  - {total_tiles} tiles -> {len(saved_hashes)} unique meshes saved "
        f"({stats['empty']} empty, {stats['triangles']} triangles in total)"
    )
    logger.info(f"Baked fog and manifest.json saved to: {base_output_dir}")
    return True


# --- Command-Line Interface ---
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Offline baker for the tiled fog-of-war mesh.")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to the JSON configuration file for the map to be baked."
    )
    parser.add_argument(
        "--output",
        type=str,
        default="baked_fog",
        help="Root directory for baked output."
    )
    args = parser.parse_args()
    if not bake_fog(args.config, args.output):
        sys.exit(1)
