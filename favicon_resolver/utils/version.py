# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Versioning utility module"""

import json
import pathlib

from pydantic import BaseModel, ConfigDict, HttpUrl


class Version(BaseModel):
    """Model for version.json data"""

    model_config = ConfigDict(extra="forbid")

    source: HttpUrl
    version: str
    commit: str
    build: str


def fetch_app_version_from_file(
    root_path: pathlib.Path = pathlib.Path.cwd(),
) -> Version:
    """Fetch the content of the version.json file, which contains the SHA-1 hash
    commit value, repo source url, version, and CI build values.
    During deployment, this file is written and values are populated for
    the deployed version of the service.

    Errors are not handled here as the desired behavior is for the service to crash.
    Raises:
        FileNotFoundError if file cannot be found.
        JSONDecodeError if the file cannot be processed.
        ValidationError if Pydantic model validation for Version fails.
    """
    version_file: pathlib.Path = root_path / "version.json"
    version_file_content: dict = json.loads(version_file.read_text())
    return Version(**version_file_content)
