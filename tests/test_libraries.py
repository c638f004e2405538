import pytest

from conftest import make_zip, sha1
from mcinstall.context import InstallContext
from mcinstall.errors import ExtractionError, IntegrityError
from mcinstall.libraries import LibraryResolver
from mcinstall.models import LibraryEntry, VersionDescriptor, parse_model
from mcinstall.natives import NativeExtractor, companion_native_url, native_package_text, remap_native, \
    rewrite_classifier_url, MACOS_ARM_LWJGL_294_1, MACOS_ARM_LWJGL_294_2, OBJC_BRIDGE_ARM64_URL
from mcinstall.platform_info import Platform

PLAIN_JAR = make_zip({"com/example/Plain.class": b"class"})
PLATFORM_JAR = make_zip({"META-INF/MANIFEST.MF": b"manifest"})
COMPANION_JAR = make_zip({"liblwjgl.so": b"lwjgl natives"})
OPENAL_JAR = make_zip({"libopenal.so": b"openal", "META-INF/MANIFEST.MF": b"manifest"})


def descriptor_with(libraries):
    return parse_model(VersionDescriptor, {
        "id": "1.12.2",
        "downloads": {"client": {"url": "https://example.test/client.jar"}},
        "assetIndex": {"id": "1.12", "url": "https://example.test/1.12.json"},
        "libraries": libraries,
    }, 'descriptor')


def serve_libraries(http):
    http.add("https://libraries.test/com/example/plain/1.0/plain-1.0.jar", PLAIN_JAR)
    http.add("https://libraries.test/org/lwjgl/lwjgl-platform-2.9.0.jar", PLATFORM_JAR)
    http.add("https://libraries.test/org/lwjgl/lwjgl-platform-2.9.0-natives-linux.jar", COMPANION_JAR)
    http.add("https://libraries.test/openal-natives-linux.jar", OPENAL_JAR)
    return [
        {
            "name": "com.example:plain:1.0",
            "downloads": {"artifact": {
                "path": "com/example/plain/1.0/plain-1.0.jar",
                "url": "https://libraries.test/com/example/plain/1.0/plain-1.0.jar",
                "sha1": sha1(PLAIN_JAR),
            }},
        },
        {
            "name": "org.lwjgl.lwjgl:lwjgl-platform:2.9.0",
            "downloads": {"artifact": {"url": "https://libraries.test/org/lwjgl/lwjgl-platform-2.9.0.jar"}},
            "natives": {"linux": "natives-linux", "osx": "natives-osx"},
        },
        {
            "name": "com.example:mac-only:1.0",
            "downloads": {"artifact": {"path": "mac-only.jar", "url": "https://libraries.test/mac-only.jar"}},
            "rules": [{"action": "allow", "os": {"name": "osx"}}],
        },
        {
            "name": "com.example:openal:1.0",
            "downloads": {"classifiers": {
                "natives-linux": {
                    "path": "com/example/openal/1.0/openal-1.0-natives-linux.jar",
                    "url": "https://libraries.test/openal-natives-linux.jar",
                    "sha1": sha1(OPENAL_JAR),
                },
                "natives-osx": {"path": "openal-osx.jar", "url": "https://libraries.test/openal-natives-osx.jar"},
            }},
            "extract": {"exclude": ["META-INF/"]},
        },
    ]


@pytest.mark.asyncio
async def test_install_libraries_and_natives(ctx, http, tmp_path):
    descriptor = descriptor_with(serve_libraries(http))
    instance_dir = tmp_path / 'instance'

    installed = await LibraryResolver(ctx).install(descriptor, instance_dir)

    assert [lib.name for lib in installed] == [
        "com.example:plain:1.0", "org.lwjgl.lwjgl:lwjgl-platform:2.9.0", "com.example:openal:1.0",
    ]
    libraries_dir = instance_dir / 'libraries'
    assert (libraries_dir / 'com/example/plain/1.0/plain-1.0.jar').read_bytes() == PLAIN_JAR
    assert (libraries_dir / 'com/example/openal/1.0/openal-1.0-natives-linux.jar').is_file()

    natives = libraries_dir / 'natives'
    assert (natives / 'liblwjgl.so').read_bytes() == b"lwjgl natives"
    assert (natives / 'libopenal.so').read_bytes() == b"openal"
    assert not (natives / 'META-INF').exists()

    assert "https://libraries.test/mac-only.jar" not in http.requests
    assert "https://libraries.test/openal-natives-osx.jar" not in http.requests


@pytest.mark.asyncio
async def test_reinstall_skips_verified_jars(ctx, http, tmp_path):
    descriptor = descriptor_with(serve_libraries(http)[:1])
    resolver = LibraryResolver(ctx)
    await resolver.install(descriptor, tmp_path)
    http.requests.clear()

    await resolver.install(descriptor, tmp_path)
    assert http.requests == []


@pytest.mark.asyncio
async def test_bad_hash_aborts_batch(ctx, http, tmp_path):
    libraries = serve_libraries(http)
    http.add("https://libraries.test/com/example/plain/1.0/plain-1.0.jar", b"tampered")

    with pytest.raises(IntegrityError):
        await LibraryResolver(ctx).install(descriptor_with(libraries), tmp_path)
    assert not (tmp_path / 'libraries/com/example/plain/1.0/plain-1.0.jar').exists()


@pytest.mark.asyncio
async def test_missing_native_retries_arm64_name(config, http, tmp_path):
    http.add("https://libraries.test/lwjgl-2.9.0-natives-linux-arm64.jar", COMPANION_JAR)
    library = parse_model(LibraryEntry, {
        "name": "org.lwjgl.lwjgl:lwjgl:2.9.0",
        "downloads": {"artifact": {"url": "https://libraries.test/lwjgl-2.9.0.jar"}},
        "natives": {"linux": "natives-linux"},
    }, 'library')
    jar_path = tmp_path / 'lwjgl-2.9.0.jar'
    jar_path.write_bytes(PLATFORM_JAR)

    async with InstallContext(config, http=http, platform=Platform('linux', 'arm64')) as arm_ctx:
        extractor = NativeExtractor(arm_ctx, tmp_path / 'libraries', lambda lib: True)
        await extractor.extract_natives_field(library, jar_path)

    assert http.requests == [
        "https://libraries.test/lwjgl-2.9.0-natives-linux.jar",
        "https://libraries.test/lwjgl-2.9.0-natives-linux-arm64.jar",
    ]
    assert (tmp_path / 'libraries' / 'natives' / 'liblwjgl.so').is_file()


@pytest.mark.asyncio
async def test_exclusion_escaping_natives_is_rejected(ctx, tmp_path):
    extractor = NativeExtractor(ctx, tmp_path / 'libraries', lambda lib: True)
    extractor.natives_dir.mkdir(parents=True)
    (extractor.natives_dir / 'META-INF').mkdir()
    (extractor.natives_dir / 'liblwjgl.so').write_bytes(b"so")
    outside = tmp_path / 'etc'
    outside.mkdir()
    (outside / 'passwd').write_text("root")

    with pytest.raises(ExtractionError):
        await extractor.apply_exclusions(["META-INF/", "../../etc"])

    assert (extractor.natives_dir / 'META-INF').is_dir()
    assert (outside / 'passwd').read_text() == "root"


@pytest.mark.asyncio
async def test_exclusions_remove_paths(ctx, tmp_path):
    extractor = NativeExtractor(ctx, tmp_path / 'libraries', lambda lib: True)
    (extractor.natives_dir / 'META-INF').mkdir(parents=True)
    (extractor.natives_dir / 'liblwjgl.so').write_bytes(b"so")

    await extractor.apply_exclusions(["META-INF/", "", "missing.txt"])

    assert not (extractor.natives_dir / 'META-INF').exists()
    assert (extractor.natives_dir / 'liblwjgl.so').is_file()


def test_companion_native_url():
    x64 = Platform('linux', 'x64')
    arm64 = Platform('osx', 'arm64')
    assert companion_native_url("https://x.test/a-1.0.jar", "natives-linux", x64) == "https://x.test/a-1.0-natives-linux.jar"
    url = MACOS_ARM_LWJGL_294_1[:-len("-natives-osx.jar")] + ".jar"
    assert companion_native_url(url, "natives-osx", arm64) == MACOS_ARM_LWJGL_294_2


def test_rewrite_classifier_url():
    assert rewrite_classifier_url(MACOS_ARM_LWJGL_294_1) == MACOS_ARM_LWJGL_294_2
    assert rewrite_classifier_url("https://x.test/other.jar") == "https://x.test/other.jar"


def test_native_package_architecture():
    x64 = Platform('linux', 'x64')
    arm64 = Platform('linux', 'arm64')
    text = native_package_text("org.lwjgl:lwjgl:3.3.1:natives-linux-arm64", None)
    assert arm64.native_name_compatible(text)
    assert not x64.native_name_compatible(text)
    assert x64.native_name_compatible(native_package_text("org.lwjgl:lwjgl:3.3.1:natives-linux", None))


def library(name, url=None):
    data = {"name": name}
    if url:
        data["downloads"] = {"artifact": {"url": url}}
    return parse_model(LibraryEntry, data, 'library')


def test_remap_lwjgl_natives():
    arm64 = Platform('linux', 'arm64')
    [remapped] = remap_native(library("org.lwjgl:lwjgl-glfw:3.2.2:natives-linux"), arm64)
    assert remapped.name == "org.lwjgl:lwjgl-glfw:3.3.1:natives-linux-arm64"
    assert remapped.artifact.url == \
        "https://repo1.maven.org/maven2/org/lwjgl/lwjgl-glfw/3.3.1/lwjgl-glfw-3.3.1-natives-linux-arm64.jar"
    assert remapped.rules[0].os.name == 'linux-arm64'

    [mac] = remap_native(library("org.lwjgl:lwjgl:3.3.1:natives-macos"), Platform('osx', 'arm64'))
    assert mac.name == "org.lwjgl:lwjgl:3.3.1:natives-macos-arm64"

    # x64 keeps the version it was given
    [x64] = remap_native(library("org.lwjgl:lwjgl:3.2.2:natives-linux-arm64"), Platform('linux', 'x64'))
    assert x64.name == "org.lwjgl:lwjgl:3.2.2:natives-linux"


def test_remap_ignores_non_native_and_unknown_packages():
    arm64 = Platform('linux', 'arm64')
    assert remap_native(library("org.lwjgl:lwjgl:3.2.2"), arm64) == []
    assert remap_native(library("org.lwjgl.lwjgl:lwjgl-platform:2.9.4:natives-linux"), arm64) == []
    assert remap_native(library("com.example:native-thing:1.0"), arm64) == []


def test_remap_objc_bridge():
    [bridge] = remap_native(library("ca.weblite:java-objc-bridge:1.0.0:natives-osx"), Platform('osx', 'arm64'))
    assert bridge.name == "ca.weblite:java-objc-bridge:1.1"
    assert bridge.artifact.url == OBJC_BRIDGE_ARM64_URL
    assert bridge.rules[0].os.name == 'osx-arm64'


@pytest.mark.asyncio
async def test_foreign_native_is_replaced_by_remap(ctx, http, tmp_path):
    replacement = make_zip({"liblwjgl.so": b"x64 natives"})
    http.add("https://repo1.maven.org/maven2/org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1-natives-linux.jar", replacement)
    foreign = library("org.lwjgl:lwjgl:3.3.1:natives-linux-arm64",
                      "https://libraries.test/lwjgl-3.3.1-natives-linux-arm64.jar")
    jar_path = tmp_path / 'lwjgl-3.3.1-natives-linux-arm64.jar'
    jar_path.write_bytes(make_zip({"libarm64-only.so": b"arm64"}))
    libraries_dir = tmp_path / 'libraries'

    extractor = NativeExtractor(ctx, libraries_dir, LibraryResolver(ctx).is_allowed)
    await extractor.extract_name_natives(foreign, jar_path)

    assert (libraries_dir / 'org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1-natives-linux.jar').read_bytes() == replacement
    assert (libraries_dir / 'natives' / 'liblwjgl.so').read_bytes() == b"x64 natives"
    assert not (libraries_dir / 'natives' / 'libarm64-only.so').exists()


@pytest.mark.asyncio
async def test_disallowed_remap_is_skipped(ctx, http, tmp_path):
    foreign = library("ca.weblite:java-objc-bridge:1.0.0:natives-osx-arm64", "https://libraries.test/objc.jar")
    jar_path = tmp_path / 'objc.jar'
    jar_path.write_bytes(make_zip({"libjcocoa.dylib": b"mac"}))

    extractor = NativeExtractor(ctx, tmp_path / 'libraries', LibraryResolver(ctx).is_allowed)
    await extractor.extract_name_natives(foreign, jar_path)

    assert http.requests == []
    assert not (tmp_path / 'libraries' / 'natives' / 'libjcocoa.dylib').exists()


@pytest.mark.asyncio
async def test_arm64_linux_swaps_lwjgl_and_drops_x64_natives(config, http, tmp_path):
    maven = "https://repo1.maven.org/maven2/org/lwjgl/lwjgl/3.3.1"
    main_jar = make_zip({"org/lwjgl/Version.class": b"lwjgl"})
    natives_jar = make_zip({
        "META-INF/MANIFEST.MF": b"manifest",
        "linux/arm64/org/lwjgl/liblwjgl.so": b"arm64",
        "linux/x64/org/lwjgl/liblwjgl.so": b"x64",
    })
    http.add(f"{maven}/lwjgl-3.3.1.jar", main_jar)
    http.add(f"{maven}/lwjgl-3.3.1-natives-linux-arm64.jar", natives_jar)
    descriptor = descriptor_with([
        {"name": "org.lwjgl:lwjgl:3.2.2",
         "downloads": {"artifact": {"path": "org/lwjgl/lwjgl/3.2.2/lwjgl-3.2.2.jar",
                                    "url": "https://libraries.test/org/lwjgl/lwjgl/3.2.2/lwjgl-3.2.2.jar"}}},
        {"name": "org.lwjgl:lwjgl:3.2.2:natives-linux",
         "downloads": {"artifact": {"path": "org/lwjgl/lwjgl/3.2.2/lwjgl-3.2.2-natives-linux.jar",
                                    "url": "https://libraries.test/org/lwjgl/lwjgl/3.2.2/lwjgl-3.2.2-natives-linux.jar"}},
         "rules": [{"action": "allow", "os": {"name": "linux"}}]},
    ])
    instance_dir = tmp_path / 'instance'

    async with InstallContext(config, http=http, platform=Platform('linux', 'arm64')) as arm_ctx:
        installed = await LibraryResolver(arm_ctx).install(descriptor, instance_dir)

    assert [lib.name for lib in installed] == ["org.lwjgl:lwjgl:3.3.1", "org.lwjgl:lwjgl:3.3.1:natives-linux-arm64"]
    assert not any(url.startswith("https://libraries.test/") for url in http.requests)
    libraries_dir = instance_dir / 'libraries'
    assert (libraries_dir / 'org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1.jar').read_bytes() == main_jar
    natives = libraries_dir / 'natives'
    assert (natives / 'linux/arm64/org/lwjgl/liblwjgl.so').read_bytes() == b"arm64"
    assert not (natives / 'linux' / 'x64').exists()
    assert not (natives / 'META-INF').exists()
