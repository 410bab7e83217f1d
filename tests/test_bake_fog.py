import json
import os

import numpy as np

from bake_fog import bake_fog

def write_config(tmp_path, **overrides):
    fog_parameters = {
        "map_width": 100.0,
        "map_height": 100.0,
        "cell_size": 5.0,
        "data_cell_size": 5.0,
        "seed": 21,
        "unlock_threshold": 2.0,
    }
    fog_parameters.update(overrides)
    path = tmp_path / "fog_config.json"
    path.write_text(json.dumps({"fog_parameters": fog_parameters}))
    return str(path)

def test_bake_writes_manifest_meshes_and_previews(tmp_path):
    output = tmp_path / "out"
    assert bake_fog(write_config(tmp_path), str(output))

    base = output / "seed_21"
    manifest = json.loads((base / "manifest.json").read_text())
    assert manifest["tile_counts"] == [2, 2]
    assert manifest["grid_counts"] == [20, 20]

    hashes = {h for row in manifest["tiles"] for h in row}
    assert None not in hashes
    assert sorted(os.listdir(base / "tiles")) == sorted(f"{h}.npz" for h in hashes)
    assert (base / "cell_classes.png").exists()
    assert (base / "terrain_types.png").exists()

    mesh = np.load(base / "tiles" / f"{manifest['tiles'][0][0]}.npz")
    assert mesh["vertices"].shape == (11 * 11, 3)
    assert mesh["triangles"].shape[1] == 3

def test_bake_rejects_missing_config(tmp_path):
    assert not bake_fog(str(tmp_path / "missing.json"), str(tmp_path / "out"))

def test_bake_rejects_invalid_parameters(tmp_path):
    assert not bake_fog(write_config(tmp_path, cell_size=-1.0), str(tmp_path / "out"))
