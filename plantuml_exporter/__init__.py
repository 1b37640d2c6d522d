"""PlantUML diagram exporter for Markdown documents.

Finds ```` ```plantuml ```` code blocks in a Markdown document, encodes each
block into a PlantUML URL token, and replaces the block with an image link
served by a PlantUML server.  The result is written either to a sibling
``<name>-exported.md`` document or back over the source.

Key features:
- Single-pass block substitution (identical blocks are each replaced in place)
- PlantUML deflate + base64 token encoding and decoding
- Per-block failure isolation: blocks that cannot be encoded are kept
- New-file or in-place output with idempotent re-export
- Persistent settings (server URL, image format, write mode)
- Optional download of the rendered images

Note: Public names are re-exported lazily, so importing the package does
not load its submodules (or ``httpx``) until a name is used.  Use explicit
imports from submodules
(e.g., ``from plantuml_exporter.exporter import export_diagrams``)
or access via this package.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("plantuml-exporter")
except PackageNotFoundError:
    __version__ = "0.0.0"  # fallback for uninstalled dev usage


def __getattr__(name: str):
    """Lazy imports to keep package import cheap."""
    _lazy_imports = {
        # plantuml_exporter.encoder
        "encode": "plantuml_exporter.encoder",
        "decode": "plantuml_exporter.encoder",
        # plantuml_exporter.errors
        "ExporterError": "plantuml_exporter.errors",
        "EncodingError": "plantuml_exporter.errors",
        "StoreError": "plantuml_exporter.errors",
        "SettingsError": "plantuml_exporter.errors",
        "RenderError": "plantuml_exporter.errors",
        # plantuml_exporter.fences
        "Block": "plantuml_exporter.fences",
        "FenceDef": "plantuml_exporter.fences",
        "PLANTUML_FENCE": "plantuml_exporter.fences",
        "find_blocks": "plantuml_exporter.fences",
        "replace_blocks": "plantuml_exporter.fences",
        # plantuml_exporter.references
        "image_reference": "plantuml_exporter.references",
        "image_url": "plantuml_exporter.references",
        # plantuml_exporter.exporter
        "ExportResult": "plantuml_exporter.exporter",
        "Outcome": "plantuml_exporter.exporter",
        "export_diagrams": "plantuml_exporter.exporter",
        "exported_path": "plantuml_exporter.exporter",
        "route_output": "plantuml_exporter.exporter",
        "transform": "plantuml_exporter.exporter",
        # plantuml_exporter.settings
        "OutputFormat": "plantuml_exporter.settings",
        "Settings": "plantuml_exporter.settings",
        "SettingsFile": "plantuml_exporter.settings",
        "WriteMode": "plantuml_exporter.settings",
        # plantuml_exporter.store
        "Document": "plantuml_exporter.store",
        "DocumentStore": "plantuml_exporter.store",
        "FileSystemStore": "plantuml_exporter.store",
        # plantuml_exporter.plugin
        "ExporterPlugin": "plantuml_exporter.plugin",
        "HeadlessHost": "plantuml_exporter.plugin",
        # plantuml_exporter.render
        "DiagramRenderer": "plantuml_exporter.render",
    }

    if name in _lazy_imports:
        import importlib
        module = importlib.import_module(_lazy_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'plantuml_exporter' has no attribute {name!r}")


__all__ = [
    "Block",
    "decode",
    "DiagramRenderer",
    "Document",
    "DocumentStore",
    "encode",
    "EncodingError",
    "export_diagrams",
    "exported_path",
    "ExporterError",
    "ExporterPlugin",
    "ExportResult",
    "FenceDef",
    "FileSystemStore",
    "find_blocks",
    "HeadlessHost",
    "image_reference",
    "image_url",
    "Outcome",
    "OutputFormat",
    "PLANTUML_FENCE",
    "RenderError",
    "replace_blocks",
    "route_output",
    "Settings",
    "SettingsError",
    "SettingsFile",
    "StoreError",
    "transform",
    "WriteMode",
]
