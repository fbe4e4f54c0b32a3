#!/usr/bin/env python3
"""
photogallery Command Line Interface

Builds the photo manifest, thumbnails and normalized sources for the gallery
site, or lists what a build would pick up.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from tqdm import tqdm

from photogallery.config import GalleryConfig, load_config
from photogallery.exceptions import GalleryError, ScanRootMissing
from photogallery.pipeline import GalleryPipeline
from photogallery.utils.logging import setup_console_logging

logger = logging.getLogger(__name__)


def _build_config(ctx: click.Context, **overrides) -> GalleryConfig:
    try:
        return ctx.obj['config'].replace(**overrides)
    except (TypeError, ValueError) as e:
        raise click.UsageError(str(e), ctx=ctx)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.version_option(package_name='photogallery')
@click.pass_context
def main(ctx, config_path: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    photogallery - build the photo manifest for the gallery site

    Scans the photo directory, keeps thumbnails up to date, reads EXIF data
    and writes the JSON manifest the front end loads.
    """
    if ctx.obj is None:
        ctx.obj = {}

    try:
        raw_config = load_config(config_path, strict=config_path is not None)
        config = GalleryConfig.from_dict(raw_config)
    except (TypeError, ValueError) as e:
        raise click.UsageError(f"Invalid configuration: {e}", ctx=ctx)

    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    else:
        level = config.log_level
    setup_console_logging(level, log_file=config.log_file)

    ctx.obj['config'] = config
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.command()
@click.option('--photos-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory containing the photos (one sub-directory per category)')
@click.option('--thumbnails-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory thumbnails are written to')
@click.option('--manifest', 'manifest_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Manifest JSON file to write')
@click.option('--full', is_flag=True, help='Rebuild ids from scratch instead of keeping existing ones')
@click.option('--incremental', is_flag=True, help='Keep ids from the existing manifest')
@click.option('--prune', is_flag=True, help='Drop manifest entries whose file no longer exists')
@click.option('--normalize', is_flag=True, help='Rotate and downscale full-size photos in place')
@click.option('--no-normalize', is_flag=True, help='Leave full-size photos untouched')
@click.option('--workers', '-w', type=click.IntRange(min=1), help='Photos processed concurrently')
@click.option('--thumbnail-width', type=click.IntRange(min=1), help='Thumbnail width in pixels')
@click.option('--no-thumbnails', is_flag=True, help='Skip thumbnail generation')
@click.option('--no-progress', is_flag=True, help='Hide the progress bar')
@click.pass_context
def build(ctx, photos_dir: Optional[Path], thumbnails_dir: Optional[Path],
          manifest_path: Optional[Path], full: bool, incremental: bool, prune: bool,
          normalize: bool, no_normalize: bool, workers: Optional[int], thumbnail_width: Optional[int],
          no_thumbnails: bool, no_progress: bool):
    """
    Build or update the photo manifest.

    Exits non-zero only when the photo directory cannot be read or the
    manifest cannot be read or written; problems with individual photos
    are reported as warnings.
    """
    quiet = ctx.obj.get('quiet', False)
    if full and incremental:
        raise click.UsageError("--full and --incremental are mutually exclusive", ctx=ctx)
    if normalize and no_normalize:
        raise click.UsageError("--normalize and --no-normalize are mutually exclusive", ctx=ctx)

    config = _build_config(
        ctx,
        photos_dir=photos_dir,
        thumbnails_dir=thumbnails_dir,
        manifest_path=manifest_path,
        mode='full' if full else ('incremental' if incremental else None),
        prune=prune or None,
        normalize_sources=True if normalize else (False if no_normalize else None),
        concurrency=workers,
        thumbnail_width=thumbnail_width,
        thumbnails_enabled=False if no_thumbnails else None,
    )

    if not quiet:
        click.echo(f"Scanning photos in: {config.photos_dir}")

    with tqdm(total=0, desc="Processing photos", unit="photo",
              disable=quiet or no_progress, leave=False) as bar:
        def report(completed: int, total: int):
            bar.total = total
            bar.update(completed - bar.n)

        pipeline = GalleryPipeline(config, progress_callback=report)
        try:
            summary = pipeline.run()
        except GalleryError as e:
            bar.close()
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

    if not quiet:
        click.echo(summary.stats.format_summary())
        if summary.manifest_written:
            click.echo(f"Data saved to: {summary.manifest_path}")


@main.command()
@click.option('--photos-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory containing the photos')
@click.option('--json', 'as_json', is_flag=True, help='Print the file list as JSON')
@click.pass_context
def scan(ctx, photos_dir: Optional[Path], as_json: bool):
    """
    List the photos a build would process, with their categories.

    Nothing is decoded or written.
    """
    config = _build_config(ctx, photos_dir=photos_dir)
    pipeline = GalleryPipeline(config)

    try:
        files = pipeline.discover()
    except ScanRootMissing:
        files = ()
    except GalleryError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if as_json:
        click.echo(json.dumps([
            {'path': f.relative_path, 'category': f.category, 'title': f.title}
            for f in files
        ], indent=2))
        return

    for f in files:
        click.echo(f"{f.category:<16} {f.relative_path}")
    if not ctx.obj.get('quiet', False):
        click.echo(f"{len(files)} photos")


if __name__ == '__main__':
    main()
