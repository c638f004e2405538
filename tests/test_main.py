import json
import logging

import pytest

from mcinstall.__main__ import main


@pytest.mark.asyncio
async def test_malformed_config_exits_with_error(tmp_path, caplog):
    path = tmp_path / 'launcher_config.json'
    path.write_text("{not json")

    with caplog.at_level(logging.INFO):
        assert await main(path) == 1
    assert "Installation failed" in caplog.text


@pytest.mark.asyncio
async def test_unknown_loader_exits_with_error(tmp_path, caplog):
    path = tmp_path / 'launcher_config.json'
    path.write_text(json.dumps({"basepath": ":thisdir:/data", "loader": "liteloader"}))

    with caplog.at_level(logging.INFO):
        assert await main(path) == 1
    assert "Unknown loader 'liteloader'" in caplog.text
    assert not (tmp_path / 'data').exists()
