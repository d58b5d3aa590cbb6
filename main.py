import asyncio
import json
import sys

from config import default_config, get_log_level, load_config, validate_config
from menus.album_menu import album_menu, prompt_for_redirect
from spotify_api.session import RandomifySession
from utils.logger import setup_logging, log_error, log_warning


async def run_app(config: dict) -> None:
    async with RandomifySession(config, redirect_handler=prompt_for_redirect) as session:
        await album_menu(session)


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_warning(f"{e} Using built-in defaults.")
        log_warning("Create config.json with spotify_client_secret to sign in to Spotify.")
        config = default_config()
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1
    except ValueError as e:
        log_error(f"Error loading config: {e}")
        return 1

    setup_logging(get_log_level(config))

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(error)
        return 1

    try:
        asyncio.run(run_app(config))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
