"""
Application entry point and dark-theme stylesheet.

Usage:
    python -m image_crop_tool photo.jpg
    image-crop-tool photo.jpg --aspect 16:9 -o out.jpg     (after pip install)
"""

import logging
import sys
from pathlib import Path

import typer
from PyQt6.QtWidgets import QApplication, QFileDialog

from image_crop_tool.config import IMAGE_EXTENSIONS
from image_crop_tool.crop_dialog import CropDialog
from image_crop_tool.errors import CropToolError
from image_crop_tool.image_io import extension_for_media_type, media_type_for_path, unique_path
from image_crop_tool.settings import load_settings, parse_aspect_ratio, validate_settings

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QDialog { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QPushButton:disabled { color: #666; }
    QToolBar { background: #333; border-bottom: 1px solid #444; spacing: 4px; padding: 4px; }
    QToolButton:checked { background: #3a6ea5; border-radius: 4px; }
"""

cli = typer.Typer(help="Interactively crop, zoom and rotate an image", add_completion=False)


def _pick_image() -> Path | None:
    patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
    path, _ = QFileDialog.getOpenFileName(None, "Select Image", "", f"Images ({patterns})")
    return Path(path) if path else None


def _default_output(image: Path, media_type: str) -> Path:
    return unique_path(image.with_name(f"{image.stem}-cropped{extension_for_media_type(media_type)}"))


@cli.command()
def main(
    image: Path | None = typer.Argument(None, exists=True, dir_okay=False, help="Image to crop"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Where to write the cropped image"),
    aspect: str | None = typer.Option(None, "--aspect", help="Crop aspect ratio, e.g. 16:9, 1.5 or free"),
    long_side: int | None = typer.Option(None, "--long-side", help="Longer side of the output in pixels"),
    quality: int | None = typer.Option(None, "--quality", help="JPEG/WebP quality (1-100)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open IMAGE in the crop editor and save the result."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = dict(load_settings())
    if aspect is not None:
        try:
            settings["aspect_ratio"] = parse_aspect_ratio(aspect)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--aspect") from exc
    if long_side is not None:
        settings["output_long_side"] = long_side
    if quality is not None:
        settings["quality"] = quality
    errors = validate_settings(settings)
    if errors:
        typer.echo("Error: " + "; ".join(errors), err=True)
        raise typer.Exit(2)

    app = QApplication(sys.argv[:1])
    app.setStyleSheet(DARK_STYLESHEET)

    if image is None:
        image = _pick_image()
        if image is None:
            raise typer.Exit(1)

    try:
        data = image.read_bytes()
    except OSError as exc:
        typer.echo(f"Error: cannot read {image}: {exc}", err=True)
        raise typer.Exit(1) from exc

    dialog = CropDialog(data, media_type_for_path(image), settings, title=f"Crop {image.name}")
    dialog.exec()

    result = dialog.output
    if result is None:
        if dialog.error_message:
            typer.echo(f"Error: {dialog.error_message}", err=True)
        else:
            typer.echo("Cancelled", err=True)
        raise typer.Exit(1)

    out_path = output if output is not None else _default_output(image, result.media_type)
    try:
        out_path.write_bytes(result.data)
    except OSError as exc:
        typer.echo(f"Error: cannot write {out_path}: {exc}", err=True)
        raise typer.Exit(1) from exc
    logger.info("Saved %dx%d crop to %s", result.width, result.height, out_path)
    typer.echo(str(out_path))


def run():
    try:
        cli()
    except CropToolError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
