# main.py
import sys
import time
import threading

# CRITICAL: Import logging setup FIRST before any core modules
import core.library_logging
import logging
logger = logging.getLogger(__name__)

# Wrap all further imports to catch errors
try:
    from flask import Flask
    from core.settings_manager import settings
    from core.event_bus import EventBus
    from core.errors import InitializationError
    from core.store import get_store
    from core.library import PromptLibrary
    from core.library_api import create_library_api
    import config
except Exception as e:
    logger.critical(f"FATAL: Import error during startup: {e}", exc_info=True)
    sys.exit(1)


def create_app(library):
    app = Flask(__name__)
    app.register_blueprint(create_library_api(library))
    return app


def build_library():
    """Store client plus library context, wired from config."""
    store = get_store(config.STORE)
    return PromptLibrary(
        store,
        max_history=config.MAX_HISTORY_VERSIONS,
        seed_source=config.SEED_FILE,
        seed_on_empty=config.SEED_ON_EMPTY,
        event_bus=EventBus(replay_size=config.EVENT_REPLAY_SIZE)
    )


def main():
    start_time = time.time()
    core.library_logging.set_level(config.LOG_LEVEL)
    settings.register_reload_callback('LOG_LEVEL', core.library_logging.set_level)

    try:
        library = build_library()
        library.start()
    except InitializationError as e:
        logger.critical(f"Prompt library could not start: {e}")
        sys.exit(1)

    app = create_app(library)

    def run_api_server():
        try:
            app.run(host=config.WEB_HOST, port=config.WEB_PORT, debug=False, threaded=True)
        except Exception as e:
            logger.error(f"API server crashed: {e}", exc_info=True)

    try:
        settings.start_file_watcher()

        api_thread = threading.Thread(target=run_api_server, daemon=True, name="LibraryAPI")
        api_thread.start()

        logger.info(f"Prompt library is running on {config.API_URL} "
                    f"({library.client.backend_name} store, ready in {time.time() - start_time:.2f}s)")

        while api_thread.is_alive():
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("\nShutting down...")
    finally:
        library.stop()
        settings.stop_file_watcher()


if __name__ == "__main__":
    main()
