"""
Tests for the version module.
"""
import re
import importlib
from importlib import metadata as importlib_metadata
from unittest.mock import patch

import pytest

import mintauth
import mintauth.version
from mintauth import __version__


@pytest.fixture(autouse=True)
def _restore_version():
    yield
    importlib.reload(mintauth.version)


def test_version_format():
    """The version string starts with a semantic version"""
    assert re.match(r'^\d+\.\d+\.\d+', __version__)
    assert mintauth.__version__ == __version__


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    import mintauth.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"
    mock_metadata_version.assert_called_once_with("mintauth")


@patch('importlib.metadata.version')
def test_version_when_not_installed(mock_metadata_version):
    """An uninstalled source tree reports a placeholder version"""
    mock_metadata_version.side_effect = importlib_metadata.PackageNotFoundError
    import mintauth.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.0.0+unknown"
