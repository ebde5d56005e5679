import json
import sys
import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from mosaickit.build import BuildConfig, RunTokenIssuer, build_step, iter_build_steps
from mosaickit.cli import (create_parser, layout_definition_from_args, parse_column_defs,
                           parse_offset, parse_row_defs, run)
from mosaickit.color import BLACK, WHITE, Pixel
from mosaickit.config import Settings
from mosaickit.errors import MosaicError, OutOfBounds
from mosaickit.export import ExportManager
from mosaickit.image_io import load_indexed_image
from mosaickit.indexed_image import IndexedImage
from mosaickit.layers import LayerMode
from mosaickit.layout import GridDefMode, RowDef, SectionLayout
from mosaickit.palettes import (DEFAULT_PALETTE, NamedPalette, apply_palette,
                                available_palettes, get_palette, palette_info)

RED = Pixel(200, 50, 50)


def _quadrant_image(size=32) -> IndexedImage:
    """Black, white, red and blue quadrants."""
    half = size // 2
    grid = np.zeros((size, size), dtype=np.int32)
    grid[:half, half:] = 1
    grid[half:, :half] = 2
    grid[half:, half:] = 3
    palette = (WHITE, BLACK, RED, Pixel(50, 120, 200))
    return IndexedImage.from_quantized(size, size, palette, grid.ravel())


def _write_png(path: Path, size=32) -> Path:
    rgba = _quadrant_image(size).to_rgba()
    Image.fromarray(rgba).save(path)
    return path


# --- build pipeline ---------------------------------------------------------

def test_iter_build_steps_covers_the_image():
    image = _quadrant_image()
    config = BuildConfig(SectionLayout.uniform([16, 16], [16, 16]), image_ref="quadrants")
    steps = list(iter_build_steps(image, config, mode=LayerMode.DISCRETE))

    assert [(s.x, s.y) for s in steps] == [(0, 0), (16, 0), (0, 16), (16, 16)]
    assert [s.section_index for s in steps] == [0, 1, 2, 3]
    for step in steps:
        assert len(step.layers) == 1
        assert step.layers[0].pixel_count == 256
        assert step.patch.size == (16, 16)


def test_build_step_with_offset_mixes_colors():
    image = _quadrant_image()
    config = BuildConfig(SectionLayout.uniform([16], [16]), offset_x=8, offset_y=8)
    step = build_step(image, config.plan(), 0)

    assert (step.x, step.y) == (8, 8)
    assert [layer.pixel_count for layer in step.layers] == [64, 128, 192, 256]


def test_build_step_outside_image_raises():
    image = _quadrant_image()
    config = BuildConfig(SectionLayout.uniform([16], [16]), offset_x=24)
    with pytest.raises(OutOfBounds):
        build_step(image, config.plan(), 0)
    with pytest.raises(MosaicError):
        build_step(image, config.plan(), 0)


def test_clamped_to_keeps_layout_inside_image():
    image = _quadrant_image()
    config = BuildConfig(SectionLayout.uniform([16], [16]), offset_x=40, offset_y=-5)
    clamped = config.clamped_to(image)
    assert (clamped.offset_x, clamped.offset_y) == (16, 0)
    assert clamped.layout is config.layout

    inside = BuildConfig(SectionLayout.uniform([16], [16]), offset_x=4, offset_y=4)
    assert inside.clamped_to(image) is inside


def test_run_tokens_increase_and_only_latest_is_current():
    issuer = RunTokenIssuer()
    assert issuer.latest is None
    assert not issuer.is_current(0)

    first = issuer.issue()
    second = issuer.issue()
    assert second > first
    assert issuer.is_current(second)
    assert not issuer.is_current(first)


def test_run_tokens_are_unique_across_threads():
    issuer = RunTokenIssuer()
    tokens = []
    lock = threading.Lock()

    def worker():
        for _ in range(100):
            token = issuer.issue()
            with lock:
                tokens.append(token)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(tokens) == list(range(400))
    assert issuer.latest == 399


# --- colors and palettes ----------------------------------------------------

@pytest.mark.parametrize("text,expected", [
    ("#c83232", Pixel(200, 50, 50)),
    ("C83232", Pixel(200, 50, 50)),
    ("#fff", WHITE),
    ("not a color", BLACK),
    ("#12345", BLACK),
])
def test_pixel_from_hex(text, expected):
    assert Pixel.from_hex(text) == expected


def test_pixel_components_are_masked_to_bytes():
    pixel = Pixel(300, -1, 0, 511)
    assert pixel == Pixel(44, 255, 0, 255)
    assert pixel.rgb == (44, 255, 0)
    assert pixel.hex == "#2cff00"
    assert pixel.brightness == pytest.approx(0.299 * 44 + 0.587 * 255)


def test_pixel_from_hex_option_and_coerce():
    assert Pixel.from_hex_option(None) is None
    assert Pixel.from_hex_option("  ") is None
    assert Pixel.coerce((-56, 50, 50)) == Pixel(200, 50, 50)
    assert Pixel.coerce("#000") == BLACK
    with pytest.raises(ValueError):
        Pixel.coerce((1, 2))


def test_named_palettes():
    assert "DEFAULT" in available_palettes()
    assert get_palette("default") is DEFAULT_PALETTE
    assert DEFAULT_PALETTE.hex_values == ["#000000", "#ffffff", "#c83232", "#3278c8"]
    assert palette_info("greyscale")["colors"][0]["hex"] == "#000000"
    with pytest.raises(ValueError):
        get_palette("nope")


def test_named_palette_limits():
    with pytest.raises(ValueError):
        NamedPalette("EMPTY", ())
    with pytest.raises(ValueError):
        NamedPalette("BIG", tuple((i, i, i) for i in range(17)))
    palette = NamedPalette("HALF", ((10, 20, 30, 128),))
    assert palette.colors == (Pixel(10, 20, 30, 255),)


def test_apply_palette_keeps_image_palette_length():
    image = IndexedImage(2, 1, (BLACK, WHITE), [0, 1])
    restyled = apply_palette(image, get_palette("brick_classic"))
    assert len(restyled.palette) == 2
    assert restyled.palette[0] == Pixel.from_hex("#05131d")
    assert np.array_equal(restyled.pixels, image.pixels)

    three = IndexedImage(3, 1, (BLACK, RED, WHITE), [0, 1, 2])
    padded = apply_palette(three, [(1, 2, 3)])
    assert padded.palette == (Pixel(1, 2, 3), BLACK, BLACK)


# --- settings ---------------------------------------------------------------

def test_settings_defaults_when_file_missing(tmp_path):
    settings = Settings.from_yaml(str(tmp_path / "missing.yaml"))
    assert settings.build.patch_size == 16
    assert settings.build.layer_mode == "cumulative"
    assert settings.build.background_color == Pixel(220, 220, 220)
    assert settings.layout.normalize == "add_cell"


def test_settings_yaml_round_trip_and_overrides(tmp_path):
    path = str(tmp_path / "conf" / "mosaickit.yaml")
    settings = Settings.from_yaml(path, patch_size=8, layer_mode="discrete", output_dir=None)
    settings.save_yaml(path)

    loaded = Settings.from_yaml(path, palette="greyscale")
    assert loaded.build.patch_size == 8
    assert loaded.build.layer_mode == "discrete"
    assert loaded.palette == "greyscale"
    assert loaded.to_dict()["output"] == settings.to_dict()["output"]


@pytest.mark.parametrize("overrides", [
    {"patch_size": 0},
    {"layer_mode": "sideways"},
    {"max_layers": 17},
    {"normalize": "stretch"},
    {"palette": "unknown"},
    {"layer_scale": 0},
    {"no_such_key": 1},
])
def test_settings_rejects_invalid_values(tmp_path, overrides):
    with pytest.raises(ValueError):
        Settings.from_yaml(str(tmp_path / "missing.yaml"), **overrides)


# --- image io and export ----------------------------------------------------

def test_load_indexed_image_sorts_palette(tmp_path):
    path = _write_png(tmp_path / "quadrants.png")
    image = load_indexed_image(str(path))
    assert image.size == (32, 32)
    assert image.palette[0] == BLACK
    assert image.palette[-1] == WHITE
    assert image == _quadrant_image()

    with pytest.raises(FileNotFoundError):
        load_indexed_image(str(tmp_path / "missing.png"))


def test_export_build_writes_layers_legend_and_manifest(tmp_path):
    settings = Settings.from_yaml(str(tmp_path / "missing.yaml"), output_dir=str(tmp_path / "out"))
    image = _quadrant_image()
    config = BuildConfig(SectionLayout.uniform([16], [16]), image_ref="quadrants.png", offset_x=8, offset_y=8)

    results = ExportManager(settings).export_build(image, config)

    assert results["steps"] == 1
    assert len(results["layer_images"]) == 4
    first_layer = Image.open(results["layer_images"][0])
    assert first_layer.size == (16 * 8, 16 * 8)

    with open(results["manifest"], encoding="utf-8") as f:
        manifest = json.load(f)
    assert manifest["offset"] == [8, 8]
    assert manifest["steps"][0]["layers"] == [0, 1, 2, 3]

    legend = Path(results["legend"]).read_text(encoding="utf-8").splitlines()
    assert legend[0] == "palette_index,hex_color,count,percentage"
    assert len(legend) == 5


# --- command line -----------------------------------------------------------

def test_parse_layout_definitions():
    assert parse_row_defs("16:32,32;16:64") == [RowDef(16, (32, 32)), RowDef(16, (64,))]
    columns = parse_column_defs("32:16,16")
    assert columns[0].width == 32 and columns[0].cell_heights == (16, 16)
    assert parse_offset("4,-2") == (4, -2)
    with pytest.raises(ValueError):
        parse_row_defs("16:0")
    with pytest.raises(ValueError):
        parse_offset("4")


def test_layout_definition_from_args_defaults_to_one_plate(tmp_path):
    settings = Settings.from_yaml(str(tmp_path / "missing.yaml"))
    args = create_parser().parse_args(["image.png"])
    definition = layout_definition_from_args(args, settings)
    assert definition.mode is GridDefMode.BY_ROWS
    assert definition.row_defs == (RowDef(16, (32,)),)

    args = create_parser().parse_args(["image.png", "--columns", "16:16"])
    assert layout_definition_from_args(args, settings).mode is GridDefMode.BY_COLUMNS


def test_run_prints_plan(tmp_path, capsys):
    path = _write_png(tmp_path / "quadrants.png")
    args = create_parser().parse_args([
        str(path),
        "--rows", "16:16,16;16:16,16",
        "--step", "2",
        "--mode", "discrete",
        "-c", str(tmp_path / "missing.yaml"),
    ])

    assert run(args)
    out = capsys.readouterr().out
    assert "Steps: 4" in out
    assert "Step 2/4 at (16, 0), plate 2" in out


def test_run_normalizes_ragged_layout_and_exports(tmp_path, capsys):
    path = _write_png(tmp_path / "quadrants.png")
    args = create_parser().parse_args([
        str(path),
        "--rows", "16:16,16;16:16",
        "--export",
        "-o", str(tmp_path / "out"),
        "-c", str(tmp_path / "missing.yaml"),
    ])

    assert run(args)
    out = capsys.readouterr().out
    assert "normalizing with 'add_cell'" in out
    assert "Steps: 4" in out
    assert (tmp_path / "out" / "manifest.json").exists()


def test_run_reports_errors(tmp_path, capsys):
    args = create_parser().parse_args([
        str(tmp_path / "missing.png"),
        "-c", str(tmp_path / "missing.yaml"),
    ])
    assert not run(args)
    assert "Error:" in capsys.readouterr().out


def test_run_applies_palette_named_in_config_file(tmp_path):
    path = _write_png(tmp_path / "quadrants.png")
    config_path = tmp_path / "mosaickit.yaml"
    config_path.write_text("palette: GREYSCALE\n", encoding="utf-8")
    args = create_parser().parse_args([
        str(path),
        "--rows", "32:32",
        "--export",
        "-o", str(tmp_path / "out"),
        "-c", str(config_path),
    ])

    assert run(args)
    with open(tmp_path / "out" / "manifest.json", encoding="utf-8") as f:
        manifest = json.load(f)
    assert manifest["palette_ref"] == "GREYSCALE"
    assert manifest["image"]["palette"] == get_palette("greyscale").hex_values


def test_run_without_palette_keeps_image_colors(tmp_path):
    path = _write_png(tmp_path / "quadrants.png")
    args = create_parser().parse_args([
        str(path),
        "--rows", "32:32",
        "--export",
        "-o", str(tmp_path / "out"),
        "-c", str(tmp_path / "missing.yaml"),
    ])

    assert run(args)
    with open(tmp_path / "out" / "manifest.json", encoding="utf-8") as f:
        manifest = json.load(f)
    assert manifest["palette_ref"] == ""
    assert manifest["image"]["palette"] == ["#000000", "#c83232", "#3278c8", "#ffffff"]
