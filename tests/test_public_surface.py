"""Test public API surface - ensure imports work and the package layout holds.

This test verifies:
- gltfread exposes the reader, its options and result models
- The version string is available
- Namespace subpackages (kernel, _internal) import without __init__ files
"""

from pathlib import Path


def test_root_exports():
    """Everything in __all__ is importable from the package root."""
    import gltfread

    for name in gltfread.__all__:
        assert hasattr(gltfread, name), name
    assert isinstance(gltfread.__version__, str)


def test_reader_is_the_entrypoint():
    """GltfReader reads bytes and returns a result model."""
    from gltfread import GltfReader, GltfReaderResult

    result = GltfReader().read_gltf(b'{"asset": {"version": "2.0"}}')
    assert isinstance(result, GltfReaderResult)
    assert result.ok


def test_result_models_serialize():
    """Result and option models are plain pydantic models."""
    from gltfread import GltfReaderOptions, ImageReaderResult

    options = GltfReaderOptions(decode_draco=False)
    dumped = options.model_dump()
    assert dumped["decode_draco"] is False
    assert dumped["ktx2_transcode_targets"]["etc1s_rgb"] == "NONE"
    assert ImageReaderResult().model_dump() == {"image": None, "errors": [], "warnings": []}


def test_source_layout():
    """kernel and _internal are namespace subpackages of src/gltfread."""
    repo_root = Path(__file__).resolve().parent.parent
    src = repo_root / "src" / "gltfread"
    assert (src / "__init__.py").exists()
    assert (src / "kernel").is_dir()
    assert (src / "_internal").is_dir()

    import gltfread.kernel.model  # noqa: F401
    import gltfread._internal.images  # noqa: F401
