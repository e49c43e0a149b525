# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Unit tests for the version.py utility module."""

import json
import pathlib

import pytest
from pydantic import ValidationError

from favicon_resolver.utils.version import Version, fetch_app_version_from_file

VERSION_INFORMATION: dict = {
    "source": "https://localhost/favicon-resolver",
    "version": "dev",
    "commit": "TBD",
    "build": "TBD",
}


@pytest.fixture(name="version_dir")
def fixture_version_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create a valid version.json file."""
    (tmp_path / "version.json").write_text(json.dumps(VERSION_INFORMATION))
    return tmp_path


def test_fetch_app_version_from_file(version_dir: pathlib.Path) -> None:
    """Happy path test for fetch_app_version_from_file()."""
    version: Version = fetch_app_version_from_file(version_dir)

    assert version.version == "dev"
    assert str(version.source) == "https://localhost/favicon-resolver"
    assert version.commit == "TBD"
    assert version.build == "TBD"


def test_fetch_app_version_from_file_invalid_path() -> None:
    """Test that the 'version.json' file cannot be read when provided
    an invalid path, raising a FileNotFoundError.
    """
    with pytest.raises(FileNotFoundError) as excinfo:
        fetch_app_version_from_file(pathlib.Path("invalid"))

    assert "No such file or directory: 'invalid/version.json'" in str(excinfo.value)


def test_version_extra_forbid(tmp_path: pathlib.Path) -> None:
    """Test that fetch_app_version_from_file raises an error for incorrect files."""
    (tmp_path / "version.json").write_text(
        json.dumps({**VERSION_INFORMATION, "incorrect": "this should not be here"})
    )

    with pytest.raises(ValidationError):
        fetch_app_version_from_file(tmp_path)
