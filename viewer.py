# viewer.py

"""
================================================================================
FOG DEBUG VIEWER
================================================================================
An interactive top-down Pygame view of a live `FogSystem`. It draws the cell
classes (or terrain types / heights) of the whole map, the tile grid with the
active tiles highlighted, and the camera's frustum footprint on the ground.

Controls:
    W/A/S/D   Move the camera over the map
    Q/E       Lower / raise the camera
    Z/X       Tilt the camera towards / away from the horizon
    C         Toggle frustum culling
    V         Cycle view mode (classes, terrain, height)
    R         Regenerate every tile
    Click     Unlock a circle of terrain under the cursor
    Esc       Quit

Usage:
    python viewer.py --config config/fog_config.json
================================================================================
"""
import os
import sys
import json
import math
import logging
import logging.config
import argparse

import numpy as np
import pygame

from fog_generator import color_maps
from fog_generator.runtime import FogSystem, PerspectiveCamera

# --- Application Constants ---
SCREEN_WIDTH = 900
SCREEN_HEIGHT = 900
MAP_MARGIN_PIXELS = 20
CAMERA_MOVE_SPEED = 2.0
CAMERA_CLIMB_SPEED = 1.0
TILT_STEP_RADIANS = 0.02
MAX_TILT_RADIANS = 1.4
UNLOCK_RADIUS = 15.0
VIEW_MODES = ("classes", "terrain", "height")

COLOR_BACKGROUND = (10, 10, 20)
COLOR_TILE_ACTIVE = (0, 255, 120)
COLOR_TILE_INACTIVE = (60, 60, 80)
COLOR_FRUSTUM = (255, 220, 0)
COLOR_CAMERA = (255, 80, 255)

class FogViewerApp:
    """The main application class for the fog debug viewer."""
    def __init__(self, config_path: str, log_config_path: str):
        self._setup_logging(log_config_path)
        self.config = self._load_config(config_path)
        fog_params = self.config.get('fog_parameters', {})
        camera_params = self.config.get('camera', {})

        self.logger.info("Initializing Pygame...")
        pygame.init()
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        pygame.display.set_caption("Fog Debug Viewer")
        self.clock = pygame.time.Clock()

        try:
            self.fog = FogSystem(config=fog_params, logger=self.logger)
        except ValueError as e:
            self.logger.critical(f"Invalid fog configuration: {e}")
            sys.exit(1)

        map_width = self.fog.settings['map_width']
        map_height = self.fog.settings['map_height']
        self.tilt = 0.0
        self.camera = PerspectiveCamera.top_down(
            map_width / 2, map_height / 2, camera_params.get('height', 30.0),
            fov_degrees=camera_params.get('fov_degrees', 60.0),
            aspect=camera_params.get('aspect', 16.0 / 9.0),
            far_clip=camera_params.get('far_clip', 1000.0),
        )
        self.fog.set_camera(self.camera)
        self.fog.initialize()

        # Uniform world-to-screen scale that fits the whole map.
        self.scale = min(
            (SCREEN_WIDTH - 2 * MAP_MARGIN_PIXELS) / map_width,
            (SCREEN_HEIGHT - 2 * MAP_MARGIN_PIXELS) / map_height,
        )
        self.view_mode_index = 0
        self._map_surface = None
        self.is_running = True

    def _setup_logging(self, log_config_path: str):
        """Initializes logging from a dictConfig file, or a basic console setup without one."""
        if os.path.exists(log_config_path):
            with open(log_config_path, 'rt') as f:
                log_config = json.load(f)
            for handler in log_config.get('handlers', {}).values():
                if 'filename' in handler:
                    os.makedirs(os.path.dirname(handler['filename']) or '.', exist_ok=True)
            logging.config.dictConfig(log_config)
        else:
            logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
        self.logger = logging.getLogger(__name__)

    def _load_config(self, config_path: str) -> dict:
        self.logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            self.logger.critical(f"Configuration file not found at {config_path}. Exiting.")
            sys.exit(1)
        except json.JSONDecodeError:
            self.logger.critical(f"Error decoding JSON from {config_path}. Exiting.")
            sys.exit(1)

    # --- Coordinate Helpers ---
    def world_to_screen(self, world_x: float, world_z: float) -> tuple[float, float]:
        # +z points up on screen.
        screen_x = MAP_MARGIN_PIXELS + world_x * self.scale
        screen_y = MAP_MARGIN_PIXELS + (self.fog.settings['map_height'] - world_z) * self.scale
        return screen_x, screen_y

    def screen_to_world(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        world_x = (screen_x - MAP_MARGIN_PIXELS) / self.scale
        world_z = self.fog.settings['map_height'] - (screen_y - MAP_MARGIN_PIXELS) / self.scale
        return world_x, world_z

    # --- Main Loop ---
    def run(self):
        while self.is_running:
            self.handle_events()
            self.update()
            self.draw()
            self.clock.tick(60)

        self.logger.info("Exiting viewer.")
        pygame.quit()

    def handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.is_running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.is_running = False
                elif event.key == pygame.K_c:
                    self.fog.set_frustum_culling_enabled(not self.fog.culling_enabled)
                elif event.key == pygame.K_v:
                    self.view_mode_index = (self.view_mode_index + 1) % len(VIEW_MODES)
                    self._map_surface = None
                    self.logger.info(f"View mode: {VIEW_MODES[self.view_mode_index]}")
                elif event.key == pygame.K_r:
                    self.fog.regenerate_all()
                    self._map_surface = None
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                world_x, world_z = self.screen_to_world(*event.pos)
                if self.fog.unlock_area(world_x, world_z, UNLOCK_RADIUS):
                    self._map_surface = None

    def update(self):
        """Handles continuous input, then runs the per-frame fog tick."""
        keys = pygame.key.get_pressed()
        if keys[pygame.K_w]:
            self.camera.move(dz=CAMERA_MOVE_SPEED)
        if keys[pygame.K_s]:
            self.camera.move(dz=-CAMERA_MOVE_SPEED)
        if keys[pygame.K_a]:
            self.camera.move(dx=-CAMERA_MOVE_SPEED)
        if keys[pygame.K_d]:
            self.camera.move(dx=CAMERA_MOVE_SPEED)
        if keys[pygame.K_q]:
            self.camera.move(dy=-CAMERA_CLIMB_SPEED)
        if keys[pygame.K_e]:
            self.camera.move(dy=CAMERA_CLIMB_SPEED)
        if keys[pygame.K_z] or keys[pygame.K_x]:
            step = TILT_STEP_RADIANS if keys[pygame.K_z] else -TILT_STEP_RADIANS
            self.tilt = min(max(self.tilt + step, 0.0), MAX_TILT_RADIANS)
            self.camera.set_forward((0.0, -math.cos(self.tilt), math.sin(self.tilt)))

        self.fog.update(self.camera)

    # --- Rendering ---
    def _build_map_surface(self) -> pygame.Surface:
        mode = VIEW_MODES[self.view_mode_index]
        if mode == "terrain" and hasattr(self.fog.terrain, 'type_grid'):
            colors = color_maps.get_terrain_color_array(self.fog.terrain.type_grid, color_maps.create_terrain_lut())
        elif mode == "height" and hasattr(self.fog.terrain, 'height_grid'):
            colors = color_maps.get_height_color_array(self.fog.terrain.height_grid, color_maps.create_height_lut())
        else:
            colors = color_maps.get_class_color_array(self.fog.cell_classes, color_maps.create_cell_class_lut())

        surface = pygame.surfarray.make_surface(np.ascontiguousarray(colors))
        surface = pygame.transform.flip(surface, False, True)
        size = (
            math.ceil(self.fog.settings['map_width'] * self.scale),
            math.ceil(self.fog.settings['map_height'] * self.scale),
        )
        return pygame.transform.scale(surface, size)

    def draw(self):
        self.screen.fill(COLOR_BACKGROUND)

        if self._map_surface is None:
            self._map_surface = self._build_map_surface()
        self.screen.blit(self._map_surface, (MAP_MARGIN_PIXELS, MAP_MARGIN_PIXELS))

        # --- Tile grid, active tiles on top ---
        for tile in sorted(self.fog.iter_tiles(), key=lambda t: t.active):
            min_x, min_z, max_x, max_z = tile.world_bounds
            left, top = self.world_to_screen(min_x, max_z)
            right, bottom = self.world_to_screen(max_x, min_z)
            color = COLOR_TILE_ACTIVE if tile.active else COLOR_TILE_INACTIVE
            pygame.draw.rect(self.screen, color, pygame.Rect(left, top, right - left, bottom - top), 2 if tile.active else 1)

        # --- Frustum footprint and camera ---
        points = self.fog.frustum_ground_points
        if points is not None:
            pygame.draw.polygon(self.screen, COLOR_FRUSTUM, [self.world_to_screen(x, z) for x, z in points], 2)
        cam_x, cam_z = self.camera.position[0], self.camera.position[2]
        pygame.draw.circle(self.screen, COLOR_CAMERA, [int(v) for v in self.world_to_screen(cam_x, cam_z)], 5)

        culling = "on" if self.fog.culling_enabled else "off"
        pygame.display.set_caption(
            f"Fog Debug Viewer | {VIEW_MODES[self.view_mode_index]} | "
            f"{self.fog.active_tile_count()}/{self.fog.tile_count_x * self.fog.tile_count_z} tiles active | "
            f"culling {culling} | camera y={self.camera.position[1]:.1f}"
        )
        pygame.display.flip()


# --- Command-Line Interface ---
if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Interactive top-down debug viewer for the fog mesh.")
    parser.add_argument("--config", type=str, default="config/fog_config.json",
                        help="Path to the JSON fog configuration.")
    parser.add_argument("--log-config", type=str, default="config/logging_config.json",
                        help="Path to an optional logging dictConfig JSON file.")
    args = parser.parse_args()

    app = FogViewerApp(config_path=args.config, log_config_path=args.log_config)
    app.run()
