"""
Tests for the version module of the bridge transfer SDK.
"""
import re
import importlib
from importlib import metadata as importlib_metadata
from unittest.mock import patch, mock_open

from bridge_sdk import __version__


def _missing_metadata(name):
    raise importlib_metadata.PackageNotFoundError(name)


def test_version_format():
    """Test that the version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+$', __version__), "Version should follow semantic versioning"


@patch('importlib.metadata.version')
@patch('builtins.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_file(mock_open_file, mock_metadata_version):
    """When metadata lookup fails, pyproject.toml is read"""
    mock_metadata_version.side_effect = importlib_metadata.PackageNotFoundError
    import bridge_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    import bridge_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"
    mock_metadata_version.assert_called_with("bridge-transfer-sdk")


def test_version_file_not_found(monkeypatch):
    """If pyproject.toml is missing, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _missing_metadata)
    m = mock_open()
    m.side_effect = FileNotFoundError()
    with patch('builtins.open', m):
        import bridge_sdk.version as vmod
        importlib.reload(vmod)
    assert vmod.__version__ == "0.3.0"


def test_version_key_error(monkeypatch):
    """If TOML exists but missing version key, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _missing_metadata)
    with patch('builtins.open', mock_open(read_data=b'[project]\nname = "bridge-transfer-sdk"\n')):
        import bridge_sdk.version as vmod
        importlib.reload(vmod)
    assert vmod.__version__ == "0.3.0"


def test_version_toml_decode_error(monkeypatch):
    """If TOML parse fails, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', _missing_metadata)
    with patch('builtins.open', mock_open(read_data=b'invalid = = toml')):
        import bridge_sdk.version as vmod
        importlib.reload(vmod)
    assert vmod.__version__ == "0.3.0"


def test_read_version_from_checkout(monkeypatch, tmp_path):
    """A source checkout without metadata reads its own pyproject.toml"""
    import bridge_sdk.version as vmod
    monkeypatch.setattr(importlib_metadata, 'version', _missing_metadata)
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nversion = "9.8.7"\n')
    monkeypatch.setattr(vmod, 'PYPROJECT', pyproject)

    assert vmod.read_version() == "9.8.7"

    monkeypatch.setattr(vmod, 'PYPROJECT', tmp_path / "missing.toml")
    assert vmod.read_version() == vmod.FALLBACK_VERSION
