import json
import os

import pytest

from conftest import make_zip, sha1
from mcinstall.errors import InstallError, InstanceAlreadyExists
from mcinstall.installer import GameInstaller, InstallProgress
from mcinstall.loader import LoaderKind
from mcinstall.progress import ProgressChannel

CLIENT_JAR = make_zip({"net/minecraft/client/Main.class": b"main"})
LIBRARY_JAR = make_zip({"com/example/Lib.class": b"lib"})
SOUND = b"sound"
LOG_CONFIG = b"<Configuration/>"


@pytest.fixture
def served(http, config):
    index = http.add('https://example.test/indexes/5.json',
                     {"objects": {"minecraft/sounds/a.ogg": {"hash": sha1(SOUND), "size": len(SOUND)}}})
    http.add(f"https://resources.download.minecraft.net/{sha1(SOUND)[:2]}/{sha1(SOUND)}", SOUND)
    http.add('https://example.test/client.jar', CLIENT_JAR)
    http.add('https://example.test/client-1.12.xml', LOG_CONFIG)
    http.add('https://libraries.test/com/example/lib/1.0/lib-1.0.jar', LIBRARY_JAR)
    descriptor = {
        "id": "1.20.1",
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "javaVersion": {"component": "java-runtime-gamma", "majorVersion": 17},
        "downloads": {"client": {"url": "https://example.test/client.jar", "sha1": sha1(CLIENT_JAR)}},
        "assetIndex": {"id": "5", "url": "https://example.test/indexes/5.json", "sha1": sha1(index)},
        "logging": {"client": {
            "argument": "-Dlog4j.configurationFile=${path}",
            "file": {"id": "client-1.12.xml", "url": "https://example.test/client-1.12.xml", "sha1": sha1(LOG_CONFIG)},
        }},
        "libraries": [{
            "name": "com.example:lib:1.0",
            "downloads": {"artifact": {
                "path": "com/example/lib/1.0/lib-1.0.jar",
                "url": "https://libraries.test/com/example/lib/1.0/lib-1.0.jar",
                "sha1": sha1(LIBRARY_JAR),
            }},
        }],
    }
    descriptor_text = http.add('https://example.test/v/1.20.1.json', descriptor).decode('utf-8')
    http.add('https://example.test/manifest.json', {
        "versions": [{"id": "1.20.1", "type": "release", "url": "https://example.test/v/1.20.1.json"}],
    })
    # Java 17 already provisioned
    java_bin = config.java_installs_dir / 'java_17' / 'bin'
    java_bin.mkdir(parents=True)
    (java_bin / 'java').write_bytes(b"java")
    os.chmod(java_bin / 'java', 0o755)
    return descriptor_text


@pytest.mark.asyncio
async def test_create_instance(ctx, config, served):
    installer = GameInstaller(ctx)
    asset_events = []

    result = await installer.create_instance('survival', '1.20.1',
                                             progress=InstallProgress(assets=ProgressChannel(asset_events.append)))

    root = config.instance_dir('survival')
    assert result.instance_dir == root
    assert result.descriptor.id == '1.20.1'
    assert result.assets_downloaded == 1
    assert [lib.name for lib in result.libraries] == ["com.example:lib:1.0"]
    assert result.java_binary == (config.java_installs_dir / 'java_17' / 'bin' / 'java').resolve()

    assert (root / 'details.json').read_text() == served
    instance_config = json.loads((root / 'config.json').read_text())
    assert instance_config['mod_type'] == 'Vanilla'
    assert instance_config['ram_in_mb'] == config.ram_in_mb
    profiles = json.loads((root / '.minecraft' / 'launcher_profiles.json').read_text())
    assert profiles['profiles']['custom-1.20.1']['lastVersionId'] == '1.20.1'
    assert (root / '.minecraft/versions/1.20.1/1.20.1.jar').read_bytes() == CLIENT_JAR
    assert (root / 'logging-client-1.12.xml').read_bytes() == LOG_CONFIG
    assert (root / 'libraries/com/example/lib/1.0/lib-1.0.jar').read_bytes() == LIBRARY_JAR
    assert asset_events[-1].done == 1

    classpath = (await installer.build_classpath('survival')).split(os.pathsep)
    assert classpath == [
        str(root / 'libraries/com/example/lib/1.0/lib-1.0.jar'),
        str((root / '.minecraft/versions/1.20.1/1.20.1.jar').resolve()),
    ]
    assert await installer.stale_locks('survival') == []


@pytest.mark.asyncio
async def test_existing_instance_is_refused(ctx, config, served, http):
    installer = GameInstaller(ctx)
    await installer.create_instance('survival', '1.20.1')
    http.requests.clear()

    with pytest.raises(InstanceAlreadyExists):
        await installer.create_instance('survival', '1.20.1')
    assert http.requests == []


@pytest.mark.asyncio
async def test_stale_loader_lock_is_reported(ctx, config):
    root = config.instance_dir('broken')
    root.mkdir(parents=True)
    (root / 'loader.lock').write_text("crashed")

    assert await GameInstaller(ctx).stale_locks('broken') == [root / 'loader.lock']


@pytest.mark.asyncio
async def test_optifine_is_not_installable(ctx, config, served):
    installer = GameInstaller(ctx)
    await installer.create_instance('survival', '1.20.1')

    with pytest.raises(InstallError):
        await installer.install_loader('survival', LoaderKind.OPTIFINE)
    assert json.loads((config.instance_dir('survival') / 'config.json').read_text())['mod_type'] == 'Vanilla'


@pytest.mark.asyncio
async def test_install_loader_dispatches_quilt(ctx, config, served, http):
    installer = GameInstaller(ctx)
    await installer.create_instance('survival', '1.20.1')
    meta = config.quilt_meta_url
    http.add(f"{meta}/versions/loader/1.20.1", [{"loader": {"version": "0.26.0"}}])
    http.add(f"{meta}/versions/loader/1.20.1/0.26.0/profile/json", {"libraries": []})

    await installer.install_loader('survival', LoaderKind.QUILT)

    root = config.instance_dir('survival')
    assert json.loads((root / 'config.json').read_text())['mod_type'] == 'Quilt'
    assert json.loads((root / 'fabric.json').read_text()) == {"libraries": []}
