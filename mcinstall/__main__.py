# __main__.py
import asyncio
import logging
import sys

from .config import load_config
from .context import InstallContext
from .errors import InstallError
from .installer import GameInstaller
from .loader import LoaderKind

log = logging.getLogger('mcinstall')

DEFAULT_VERSION = '1.20'


async def main(config_path=None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        config = load_config(config_path)
        logging.getLogger().setLevel(getattr(logging, str(config.log_level).upper(), logging.INFO))

        version = config.version or DEFAULT_VERSION
        instance = config.instance or version
        loader = LoaderKind.parse(config.loader) if config.loader else None
        async with InstallContext(config) as ctx:
            installer = GameInstaller(ctx)
            if installer.instance_dir(instance).exists():
                log.info(f"Instance {instance} already exists, skipping creation.")
                await installer.stale_locks(instance)
                if loader is not None:
                    await installer.install_loader(instance, loader)
            else:
                await installer.create_instance(instance, version, loader)

            classpath = await installer.build_classpath(instance)
            log.info(f"Classpath for {instance}: {classpath}")
    except (InstallError, ValueError) as e:
        log.error(f"--- Installation failed ---\n{e}")
        return 1
    except Exception:
        log.exception("--- An error occurred during setup ---")
        return 1
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
    except KeyboardInterrupt:
        log.info("Installation cancelled by user.")
        sys.exit(130)


# --- Script Entry Point ---
if __name__ == "__main__":
    run()
