"""
Export manager for build instruction files (layer PNGs, JSON, CSV).
"""

import csv
import json
import os
from datetime import datetime
from typing import Any, Dict, List

from .build import BuildConfig, BuildStep, iter_build_steps
from .config import Settings
from .image_io import save_rgb
from .indexed_image import IndexedImage
from .layers import LayerMode, color_usage


class ExportManager:
    """Writes the files a printed or on-screen build guide is assembled from."""

    def __init__(self, settings: Settings):
        """Initialize export manager with settings and create the output directory."""
        self.settings = settings
        self.output_dir = settings.output.output_dir
        os.makedirs(self.output_dir, exist_ok=True)

    def export_build(self, image: IndexedImage, config: BuildConfig) -> Dict[str, Any]:
        """
        Export every step of a build.

        Args:
            image: Indexed source image, palette already applied
            config: Build config with a clamped offset

        Returns:
            Dictionary with output paths and step count
        """
        print("Exporting build instructions...")

        steps = list(iter_build_steps(
            image,
            config,
            patch_size=self.settings.build.patch_size,
            mode=LayerMode(self.settings.build.layer_mode),
            max_layers=self.settings.build.max_layers,
        ))

        layer_files = []
        for step in steps:
            layer_files.extend(self.export_step_layers(step))

        legend_path = self._export_csv_legend(image)
        manifest_path = self._export_json_manifest(image, config, steps)

        print(f"[OK] {len(steps)} steps exported to {self.output_dir}")
        return {
            "steps": len(steps),
            "layer_images": layer_files,
            "legend": legend_path,
            "manifest": manifest_path,
        }

    def export_step_layers(self, step: BuildStep) -> List[str]:
        """Write one PNG per layer of a step."""
        paths = []
        background = self.settings.build.background_color
        for layer_number, layer in enumerate(step.layers, start=1):
            path = os.path.join(
                self.output_dir,
                "steps",
                f"step_{step.index + 1:04d}_layer_{layer_number:02d}.png",
            )
            save_rgb(layer.render(step.patch.palette, background), path, self.settings.output.layer_scale)
            paths.append(path)
        return paths

    def _export_csv_legend(self, image: IndexedImage) -> str:
        """Export CSV legend with piece counts, most used first."""
        csv_path = os.path.join(self.output_dir, "legend.csv")
        total = image.width * image.height

        with open(csv_path, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=['palette_index', 'hex_color', 'count', 'percentage'])
            writer.writeheader()
            for index, count in color_usage(image):
                writer.writerow({
                    'palette_index': index,
                    'hex_color': image.palette[index].hex,
                    'count': count,
                    'percentage': f"{count / total * 100:.2f}%",
                })

        print(f"  CSV: {os.path.basename(csv_path)}")
        return csv_path

    def _export_json_manifest(self, image: IndexedImage, config: BuildConfig,
                              steps: List[BuildStep]) -> str:
        """Export JSON manifest with the plan and per-step layer order."""
        json_path = os.path.join(self.output_dir, "manifest.json")

        manifest = {
            'generated_at': datetime.now().isoformat(),
            'image': {
                'ref': config.image_ref,
                'width': image.width,
                'height': image.height,
                'palette': [color.hex for color in image.palette],
            },
            'layout': {
                'width': config.layout.width,
                'height': config.layout.height,
                'sections': [
                    {'x': s.x, 'y': s.y, 'width': s.width, 'height': s.height}
                    for s in config.layout.sections
                ],
            },
            'offset': [config.offset_x, config.offset_y],
            'palette_ref': config.palette_ref,
            'patch_size': self.settings.build.patch_size,
            'layer_mode': self.settings.build.layer_mode,
            'steps': [
                {
                    'index': step.index,
                    'section': step.section_index,
                    'x': step.x,
                    'y': step.y,
                    'layers': [layer.palette_index for layer in step.layers],
                }
                for step in steps
            ],
        }

        with open(json_path, 'w', encoding='utf-8') as jsonfile:
            json.dump(manifest, jsonfile, indent=2)

        print(f"  JSON: {os.path.basename(json_path)}")
        return json_path
