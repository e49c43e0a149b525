# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Module for test configurations for the integration test directory."""

from typing import Any, Callable, Iterator

import pytest
from starlette.testclient import TestClient

from favicon_resolver.icons import get_resolver
from favicon_resolver.main import app

SetupResolverFixture = Callable[[Any], None]


@pytest.fixture(name="client")
def fixture_test_client() -> TestClient:
    """Return a FastAPI TestClient instance.

    Note that this will NOT trigger lifespan events for the app, see:
    https://fastapi.tiangolo.com/advanced/testing-events/
    """
    return TestClient(app)


@pytest.fixture(name="setup_resolver")
def fixture_setup_resolver() -> Iterator[SetupResolverFixture]:
    """Return a function that overrides the application's icon resolver dependency.
    The override is removed after the test.
    """

    def setup_resolver(resolver: Any) -> None:
        """Set the icon resolver dependency override"""
        app.dependency_overrides[get_resolver] = lambda: resolver

    yield setup_resolver

    app.dependency_overrides.pop(get_resolver, None)
