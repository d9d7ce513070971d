#
#  Copyright (C) 2017-2025 Dremio Corporation
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#

"""
Global pytest fixtures for athenads tests.
"""
import os
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from athenads.api.models import QueryResponse
from athenads.api.transport import AthenaAsyncHttpClient
from athenads.config import settings


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files"""
    with TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_config_dir(temp_config_dir):
    """Mock the home directory to use our temporary directory"""
    with patch.object(Path, "home", return_value=temp_config_dir):
        old_env = os.environ.get("XDG_CONFIG_HOME")
        os.environ["XDG_CONFIG_HOME"] = str(temp_config_dir)
        yield temp_config_dir
        if old_env:
            os.environ["XDG_CONFIG_HOME"] = old_env
        else:
            os.environ.pop("XDG_CONFIG_HOME", None)


@pytest.fixture
def mock_settings_instance():
    """Install a settings instance pointing at a test proxy"""
    old_settings = settings._settings.get()
    try:
        settings._settings.set(
            settings.Settings.model_validate(
                {
                    "athena": {
                        "uri": "https://test-proxy.example.com",
                        "token": "test-token",
                        "datasource_id": 7,
                        "region": "us-east-1",
                        "work_group": "primary",
                    },
                }
            )
        )
        yield settings.instance()
    finally:
        settings._settings.set(old_settings)


def make_response(results: Dict[str, Any], status: int = 200) -> QueryResponse:
    """Build a QueryResponse from the proxy's JSON shape"""
    response = QueryResponse.model_validate({"results": results})
    response.status = status
    return response


@pytest.fixture
def mock_client():
    """An AthenaAsyncHttpClient whose query() is an AsyncMock"""
    client = MagicMock(spec=AthenaAsyncHttpClient)
    client.query = AsyncMock(return_value=make_response({}))
    return client
