"""
Snapgram Command Line Interface

Entry point for the photo editor and data store tools.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from tabulate import tabulate
from tqdm import tqdm

from ..config import load_config
from ..editor import (
    AdjustmentSet, FilterCompositor, PRESETS, build_filter_chain, encode_jpeg,
    list_presets, preset_filter_string
)
from ..utils.logging import setup_logging_from_config
from .db_commands import db

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.webp', '.tif', '.tiff'}


def adjustment_options(func):
    """Slider and preset options shared by the editor commands."""
    options = [
        click.option('--brightness', '-b', type=click.FloatRange(0, 200), default=100.0,
                     show_default=True, help='Brightness in percent'),
        click.option('--contrast', '-k', type=click.FloatRange(0, 200), default=100.0,
                     show_default=True, help='Contrast in percent'),
        click.option('--saturation', '-s', type=click.FloatRange(0, 200), default=100.0,
                     show_default=True, help='Saturation in percent'),
        click.option('--blur', type=click.FloatRange(0, 10), default=0.0,
                     show_default=True, help='Blur radius in px'),
        click.option('--preset', '-p', type=click.Choice(list(PRESETS)), default=None,
                     help='Preset filter applied after the sliders'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _compositor(ctx, brightness: float, contrast: float, saturation: float,
                blur: float, preset: Optional[str],
                quality: Optional[float] = None) -> FilterCompositor:
    compositor = FilterCompositor.from_config(ctx.obj.get('config', {}))
    if quality is not None:
        compositor.jpeg_quality = quality
    compositor.set_adjustments(brightness=brightness, contrast=contrast,
                               saturation=saturation, blur=blur)
    compositor.select_preset(preset)
    return compositor


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    Snapgram - photo filters and social data tools

    Apply the editor's sliders and presets to images from the command line
    and manage the local data store.
    """
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)

    if not logging.getLogger().handlers:
        setup_logging_from_config(ctx.obj['config'])
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.ERROR)

    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


main.add_command(db)


@main.command()
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
def presets(output_json: bool):
    """List the built-in presets and their filter strings."""
    rows = [(preset.name, preset_filter_string(preset) or 'none') for preset in list_presets()]

    if output_json:
        click.echo(json.dumps([{'name': name, 'filter': css} for name, css in rows], indent=2))
        return

    click.echo(tabulate(rows, headers=['Preset', 'Filter'], tablefmt='grid'))


@main.command()
@adjustment_options
def chain(brightness: float, contrast: float, saturation: float, blur: float,
          preset: Optional[str]):
    """Print the composite filter string for the given sliders and preset."""
    adjustments = AdjustmentSet(brightness=brightness, contrast=contrast,
                                saturation=saturation, blur=blur, active_preset=preset)
    click.echo(build_filter_chain(adjustments).to_css())


@main.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=False),
              help='Where to write the edited JPEG')
@adjustment_options
@click.option('--quality', type=click.FloatRange(0.0, 1.0), default=None,
              help='JPEG quality (0-1), defaults to editor.jpeg_quality')
@click.pass_context
def edit(ctx, image: str, output: str, brightness: float, contrast: float,
         saturation: float, blur: float, preset: Optional[str],
         quality: Optional[float] = None):
    """
    Apply sliders and a preset to IMAGE and export it as JPEG.

    IMAGE: Path to the source image
    """
    quiet = ctx.obj.get('quiet', False)
    compositor = _compositor(ctx, brightness, contrast, saturation, blur, preset, quality)

    if not compositor.load(image):
        click.echo(f"❌ Could not load {image}: {compositor.load_error}", err=True)
        ctx.exit(1)

    data = compositor.export()
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)

    if not quiet:
        width, height = compositor.size
        click.echo(f"✅ Wrote {output_path} ({width}x{height}, {len(data)} bytes)")
        click.echo(f"   Filter: {compositor.filter_string}")


@main.command()
@click.argument('directory', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--output-dir', '-o', required=True,
              type=click.Path(file_okay=False, dir_okay=True),
              help='Directory for the edited JPEGs')
@adjustment_options
@click.option('--recursive/--no-recursive', default=False, help='Process subdirectories')
@click.pass_context
def batch(ctx, directory: str, output_dir: str, brightness: float, contrast: float,
          saturation: float, blur: float, preset: Optional[str], recursive: bool = False):
    """
    Apply the same sliders and preset to every image in DIRECTORY.

    DIRECTORY: Path to directory containing images
    """
    quiet = ctx.obj.get('quiet', False)
    pattern = '**/*' if recursive else '*'
    images = sorted(p for p in Path(directory).glob(pattern)
                    if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)
    if not images:
        click.echo(f"No images found in {directory}")
        return

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    compositor = _compositor(ctx, brightness, contrast, saturation, blur, preset)

    written, failed = 0, []
    for path in tqdm(images, desc="Applying filters", disable=quiet):
        if not compositor.load(path):
            failed.append(path)
            continue
        (out_dir / f"{path.stem}.jpg").write_bytes(compositor.export())
        written += 1

    if not quiet:
        click.echo(f"✅ Edited {written} of {len(images)} images into {out_dir}")
    for path in failed:
        click.echo(f"⚠️  Skipped {path}: could not be decoded", err=True)


@main.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False))
@click.option('--output-dir', '-o', required=True,
              type=click.Path(file_okay=False, dir_okay=True),
              help='Directory for the preset thumbnails')
@click.option('--size', type=int, default=None, help='Longest thumbnail edge in px')
@click.pass_context
def thumbnails(ctx, image: str, output_dir: str, size: Optional[int] = None):
    """Render one thumbnail of IMAGE per preset."""
    compositor = FilterCompositor.from_config(ctx.obj.get('config', {}))
    if not compositor.load(image):
        click.echo(f"❌ Could not load {image}: {compositor.load_error}", err=True)
        ctx.exit(1)

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, thumb in compositor.preview_thumbnails(size).items():
        (out_dir / f"{name.lower()}.jpg").write_bytes(encode_jpeg(thumb, compositor.jpeg_quality))

    if not ctx.obj.get('quiet', False):
        click.echo(f"✅ Wrote {len(PRESETS)} preset thumbnails to {out_dir}")


if __name__ == '__main__':
    main()
