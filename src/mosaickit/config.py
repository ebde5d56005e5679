"""
Configuration management for mosaic build instructions.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from .color import Pixel
from .layers import MAX_LAYERS, LayerMode
from .layout import DEFAULT_CELL_WIDTH, DEFAULT_ROW_HEIGHT, NormalizeStrategy
from .palettes import available_palettes


@dataclass
class BuildSettings:
    """Patch and layer parameters."""
    patch_size: int = 16
    layer_mode: str = LayerMode.CUMULATIVE.value
    max_layers: int = MAX_LAYERS
    layer_background: str = "#dcdcdc"

    @property
    def background_color(self) -> Pixel:
        return Pixel.from_hex(self.layer_background)


@dataclass
class LayoutSettings:
    """Defaults for new layouts and how ragged ones are squared off."""
    default_row_height: int = DEFAULT_ROW_HEIGHT
    default_cell_width: int = DEFAULT_CELL_WIDTH
    normalize: str = NormalizeStrategy.ADD_CELL.value


@dataclass
class OutputSettings:
    """Export configuration."""
    output_dir: str = "out"
    layer_scale: int = 8


@dataclass
class Settings:
    """Main configuration class."""
    palette: Optional[str] = None
    config_file: Optional[str] = None

    build: BuildSettings = field(default_factory=BuildSettings)
    layout: LayoutSettings = field(default_factory=LayoutSettings)
    output: OutputSettings = field(default_factory=OutputSettings)

    @classmethod
    def from_yaml(cls, config_path: str, **overrides) -> "Settings":
        """Load configuration from YAML file with optional overrides."""
        if not os.path.exists(config_path):
            # Missing file means defaults
            settings = cls()
            settings.config_file = config_path
            settings._apply_overrides(overrides)
            settings.validate()
            return settings

        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        settings = cls(
            palette=data.get('palette'),
            config_file=config_path,
            build=BuildSettings(**data.get('build', {})),
            layout=LayoutSettings(**data.get('layout', {})),
            output=OutputSettings(**data.get('output', {})),
        )
        settings._apply_overrides(overrides)
        settings.validate()
        return settings

    def _apply_overrides(self, overrides: dict):
        """Apply CLI overrides to whichever section owns the key."""
        for key, value in overrides.items():
            if value is None:
                continue
            if key in ('palette', 'config_file'):
                setattr(self, key, value)
            elif hasattr(self.build, key):
                setattr(self.build, key, value)
            elif hasattr(self.layout, key):
                setattr(self.layout, key, value)
            elif hasattr(self.output, key):
                setattr(self.output, key, value)
            else:
                raise ValueError(f"Unknown setting '{key}'")

    def validate(self):
        """Validate configuration parameters."""
        if self.build.patch_size <= 0:
            raise ValueError("Patch size must be positive")

        if self.build.layer_mode not in [mode.value for mode in LayerMode]:
            raise ValueError(f"Unknown layer mode '{self.build.layer_mode}'")

        if not (1 <= self.build.max_layers <= MAX_LAYERS):
            raise ValueError(f"Max layers must be between 1 and {MAX_LAYERS}")

        if Pixel.from_hex_option(self.build.layer_background) is None:
            raise ValueError("Layer background color must not be blank")

        if self.layout.default_row_height <= 0 or self.layout.default_cell_width <= 0:
            raise ValueError("Default layout sizes must be positive")

        if self.layout.normalize not in [strategy.value for strategy in NormalizeStrategy]:
            raise ValueError(f"Unknown normalization strategy '{self.layout.normalize}'")

        if self.palette is not None and self.palette.upper() not in available_palettes():
            raise ValueError(f"Unknown palette '{self.palette}'")

        if self.output.layer_scale < 1:
            raise ValueError("Layer scale must be at least 1")

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            'palette': self.palette,
            'build': {
                'patch_size': self.build.patch_size,
                'layer_mode': self.build.layer_mode,
                'max_layers': self.build.max_layers,
                'layer_background': self.build.layer_background,
            },
            'layout': {
                'default_row_height': self.layout.default_row_height,
                'default_cell_width': self.layout.default_cell_width,
                'normalize': self.layout.normalize,
            },
            'output': {
                'output_dir': self.output.output_dir,
                'layer_scale': self.output.layer_scale,
            },
        }

    def save_yaml(self, path: Optional[str] = None):
        """Save configuration to YAML file."""
        if path is None:
            path = self.config_file or "mosaickit.yaml"

        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)
