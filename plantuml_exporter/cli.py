"""CLI entry point for plantuml-exporter.

Replace ```` ```plantuml ```` blocks in Markdown files with image links
served by a PlantUML server.

Usage::

    plantuml-exporter export notes.md
    plantuml-exporter export *.md --in-place --format svg
    plantuml-exporter render notes.md -o images/
    plantuml-exporter encode diagram.puml
    plantuml-exporter decode SyfFKj2rKt3CoKnELR1Io4ZDoSa70000
    plantuml-exporter config set output-format svg
"""

import argparse
import logging
import sys
from pathlib import Path

import colorlog

from plantuml_exporter import __version__
from plantuml_exporter.encoder import decode, encode
from plantuml_exporter.errors import ExporterError
from plantuml_exporter.plugin import EXPORT_COMMAND_ID, ExporterPlugin, HeadlessHost
from plantuml_exporter.render import DiagramRenderer
from plantuml_exporter.settings import (
    AUTO_SETTINGS_FILENAME,
    DEFAULT_SETTINGS,
    SETTING_KEYS,
    OutputFormat,
    SettingsFile,
    WriteMode,
)
from plantuml_exporter.store import FileSystemStore

_log = logging.getLogger("plantuml")

_SUMMARY_SEP = "=" * 78
"""Separator line for the export summary block."""


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_colorized_logging():
    """Configure colorized logging output."""
    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)-9s%(reset)s: "
            "%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _setup_logging(verbose: bool) -> None:
    """Initialize colorized logging and optionally enable debug level."""
    setup_colorized_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _setting_key(value: str) -> str:
    """Accept ``output-format`` as well as ``output_format``."""
    key = value.replace("-", "_")
    if key not in SETTING_KEYS:
        raise argparse.ArgumentTypeError(
            f"unknown setting {value!r} (choose from: "
            f"{', '.join(k.replace('_', '-') for k in SETTING_KEYS)})"
        )
    return key


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    # -- Parent parsers for shared argument groups -----------------------------
    verbose_parent = argparse.ArgumentParser(add_help=False)
    verbose_parent.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="FILE",
        help=f"Settings file (default: {AUTO_SETTINGS_FILENAME} in the "
             "current directory)",
    )

    server_parent = argparse.ArgumentParser(add_help=False)
    server_parent.add_argument(
        "--server-url",
        default=None,
        metavar="URL",
        help="PlantUML server base URL for this run "
             "(overrides the settings file)",
    )
    server_parent.add_argument(
        "--format",
        dest="output_format",
        choices=[f.value for f in OutputFormat],
        default=None,
        help="Image format for this run (overrides the settings file)",
    )

    # -- Main parser -----------------------------------------------------------
    parser = argparse.ArgumentParser(
        prog="plantuml-exporter",
        description="Replace PlantUML code blocks in Markdown files with "
                    "links to rendered images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  export        Replace PlantUML blocks with image links
  render        Download the rendered images of a file's PlantUML blocks
  encode        Print the PlantUML URL token for a diagram
  decode        Print the diagram source for a PlantUML URL token
  config        Show or change the saved settings

Examples:
  %(prog)s export notes.md                  Write notes-exported.md
  %(prog)s export notes.md --in-place       Rewrite notes.md
  %(prog)s render notes.md -o images/       Save notes-01.png, ...
  %(prog)s encode diagram.puml              Print URL token
  %(prog)s config set output-format svg     Persist a setting

Run '%(prog)s COMMAND --help' for command-specific options.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # -- export ----------------------------------------------------------------
    p_export = subparsers.add_parser(
        "export",
        parents=[verbose_parent, config_parent, server_parent],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        help="Replace PlantUML blocks with image links",
        description="Replace every ```plantuml block with a Markdown image "
                    "link to the PlantUML server.",
        epilog="""
Examples:
  %(prog)s notes.md                         Write notes-exported.md
  %(prog)s docs/*.md                        Export several files
  %(prog)s notes.md --in-place              Overwrite notes.md
  %(prog)s notes.md --format svg            Link SVG images
        """,
    )
    p_export.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="Markdown file(s) to export (supports shell globs)",
    )
    mode = p_export.add_mutually_exclusive_group()
    mode.add_argument(
        "--in-place",
        dest="write_mode",
        action="store_const",
        const=WriteMode.IN_PLACE.value,
        default=None,
        help="Overwrite the source file",
    )
    mode.add_argument(
        "--new-file",
        dest="write_mode",
        action="store_const",
        const=WriteMode.NEW_FILE.value,
        help="Write <name>-exported<ext> next to the source file",
    )

    # -- render ----------------------------------------------------------------
    p_render = subparsers.add_parser(
        "render",
        parents=[verbose_parent, config_parent, server_parent],
        formatter_class=argparse.RawDescriptionHelpFormatter,
        help="Download rendered images for a file's PlantUML blocks",
        description="Fetch the image of every PlantUML block from the server "
                    "and save it as <name>-NN.<format>.",
    )
    p_render.add_argument(
        "file",
        type=Path,
        help="Markdown file whose diagrams to render",
    )
    p_render.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory for the images (default: next to the file)",
    )

    # -- encode ----------------------------------------------------------------
    p_encode = subparsers.add_parser(
        "encode",
        help="Print the PlantUML URL token for a diagram",
        description="Encode diagram source (from FILE or stdin) into a "
                    "PlantUML URL token.",
    )
    p_encode.add_argument(
        "file",
        nargs="?",
        type=Path,
        default=None,
        help="Diagram source file (default: read stdin)",
    )

    # -- decode ----------------------------------------------------------------
    p_decode = subparsers.add_parser(
        "decode",
        help="Print the diagram source for a PlantUML URL token",
        description="Decode a PlantUML URL token back into diagram source.",
    )
    p_decode.add_argument("token", help="Encoded diagram token")

    # -- config ----------------------------------------------------------------
    p_config = subparsers.add_parser(
        "config",
        help="Show or change the saved settings",
        description="Show or change the settings used by 'export' and "
                    "'render'.",
        epilog=f"""
Settings:
  server-url      PlantUML server base URL
  output-format   {' | '.join(f.value for f in OutputFormat)}
  write-mode      {' | '.join(m.value for m in WriteMode)}
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_sub = p_config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser(
        "show", parents=[config_parent], help="Print the current settings",
    )
    p_set = config_sub.add_parser(
        "set", parents=[config_parent], help="Change and save one setting",
    )
    p_set.add_argument("key", type=_setting_key, help="Setting name")
    p_set.add_argument("value", help="New value")
    config_sub.add_parser(
        "reset", parents=[config_parent], help="Restore the default settings",
    )

    return parser


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _resolve_file_paths(raw_paths: list[Path], kind: str) -> list[Path] | None:
    """Resolve and validate a list of file paths.

    Returns resolved paths on success, or ``None`` on first error
    (after logging the error).
    """
    resolved: list[Path] = []
    for p in raw_paths:
        rp = p.resolve()
        if not rp.exists():
            _log.error("%s not found: %s", kind, p)
            return None
        if not rp.is_file():
            _log.error("Not a file: %s", p)
            return None
        resolved.append(rp)
    return resolved


def _settings_file(args: argparse.Namespace) -> SettingsFile:
    return SettingsFile(args.config or Path(AUTO_SETTINGS_FILENAME))


def _run_overrides(args: argparse.Namespace) -> dict[str, str]:
    """Per-run settings given on the command line."""
    overrides = {}
    for key in SETTING_KEYS:
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    return overrides


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_export(args: argparse.Namespace) -> int:
    """Handle the ``export`` command."""
    _setup_logging(args.verbose)

    paths = _resolve_file_paths(args.files, "Markdown file")
    if paths is None:
        return 1

    host = HeadlessHost(store=FileSystemStore(paths[0].parent))
    plugin = ExporterPlugin(host, _settings_file(args))
    try:
        plugin.start()
        plugin.override_settings(**_run_overrides(args))
    except ExporterError as e:
        _log.error("%s", e)
        return 1

    settings = plugin.settings
    _log.info("plantuml-exporter %s", __version__)
    _log.info("Server: %s", settings.server_url)
    _log.info(
        "Format: %s, mode: %s",
        settings.output_format.value, settings.write_mode.value,
    )

    written = 0
    skipped = 0
    failed = 0
    try:
        for path in paths:
            store = FileSystemStore(path.parent)
            host.store = store
            host.document = store.document_for(path)
            _log.info("Exporting %s...", path.name)
            result = host.run_command(EXPORT_COMMAND_ID)
            if not result.ok:
                failed += 1
            elif result.target is None:
                skipped += 1
            else:
                written += 1
    finally:
        plugin.stop()

    _log.info(_SUMMARY_SEP)
    _log.info(
        "Results: %d exported, %d without diagrams, %d failed",
        written, skipped, failed,
    )
    _log.info(_SUMMARY_SEP)
    return 1 if failed > 0 else 0


def _cmd_render(args: argparse.Namespace) -> int:
    """Handle the ``render`` command."""
    _setup_logging(args.verbose)

    paths = _resolve_file_paths([args.file], "Markdown file")
    if paths is None:
        return 1
    path = paths[0]
    out_dir = args.output_dir or path.parent

    try:
        settings = _settings_file(args).load().with_changes(**_run_overrides(args))
        text = path.read_text(encoding="utf-8")
        with DiagramRenderer(settings) as renderer:
            written = renderer.render_document(text, out_dir, path.stem)
    except (ExporterError, OSError) as e:
        _log.error("%s", e)
        return 1

    if not written:
        _log.info("No PlantUML code blocks found in %s", path.name)
    else:
        _log.info("Rendered %d diagram(s) to %s", len(written), out_dir)
    return 0


def _cmd_encode(args: argparse.Namespace) -> int:
    """Handle the ``encode`` command."""
    try:
        if args.file is not None:
            source = args.file.read_text(encoding="utf-8")
        else:
            source = sys.stdin.read()
        print(encode(source))
    except (ExporterError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def _cmd_decode(args: argparse.Namespace) -> int:
    """Handle the ``decode`` command."""
    try:
        print(decode(args.token))
    except ExporterError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def _print_settings(plugin: ExporterPlugin, settings_file: SettingsFile) -> None:
    print(f"# {settings_file.path}")
    for key, value in plugin.settings.to_dict().items():
        print(f"{key.replace('_', '-')} = {value}")


def _cmd_config(args: argparse.Namespace) -> int:
    """Handle the ``config`` command."""
    settings_file = _settings_file(args)
    plugin = ExporterPlugin(HeadlessHost(store=FileSystemStore(Path.cwd())), settings_file)
    try:
        plugin.load_config()
        if args.config_command == "set":
            plugin.update_settings(**{args.key: args.value})
        elif args.config_command == "reset":
            plugin.update_settings(**DEFAULT_SETTINGS.to_dict())
    except ExporterError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    _print_settings(plugin, settings_file)
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> int:
    """Main entry point."""
    parser = _build_parser()

    # Show help if no arguments provided.
    if len(sys.argv) == 1:
        parser.print_help()
        return 0

    args = parser.parse_args()

    # No subcommand given (e.g. only --version was handled by argparse).
    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "export": _cmd_export,
        "render": _cmd_render,
        "encode": _cmd_encode,
        "decode": _cmd_decode,
        "config": _cmd_config,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
