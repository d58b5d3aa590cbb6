import webbrowser
from typing import Optional

import questionary

from spotify_api.auth import check_spotify_credentials
from spotify_api.pipeline import PipelineState, ViewState
from spotify_api.session import RandomifySession
from utils.logger import log_error, log_info, log_success, log_warning

MENU_RANDOMIFY = "Randomify"
MENU_LISTEN = "Listen on Spotify"
MENU_LOGIN = "Login to Spotify"
MENU_CREDENTIALS = "Show credentials status"
MENU_EXIT = "Exit"


def render_album_card(view: ViewState) -> str:
    """Return the album card as plain text."""

    # No album has been fetched yet; the placeholder fields are not data.
    if view.album.id is None:
        if view.state is PipelineState.ERROR and view.error:
            return f"Loading...\n⚠️ Last fetch failed: {view.error}"
        return "Loading..."

    lines = [
        "=" * 50,
        f"🎵 {view.album.name}",
        f"   {view.album.artist}",
        f"   Artist image: {view.artist.thumbnail}",
        f"   Cover:        {view.album.image}",
        f"   Link:         {view.album.url}",
        "=" * 50,
    ]
    if view.is_loading:
        lines.append("Loading next album...")
    if view.state is PipelineState.ERROR and view.error:
        lines.append(f"⚠️ Last fetch failed: {view.error}")
    return "\n".join(lines)


async def prompt_for_redirect(auth_url: str) -> Optional[str]:
    """Walk the user through the browser login and return what they paste back."""

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    if await questionary.confirm("Open the authorize URL in your default browser?", default=True).ask_async():
        if not webbrowser.open(auth_url):
            log_warning("Could not open a browser; copy the URL above instead.")

    pasted = await questionary.text(
        "Paste the full redirect URL (preferred) OR just the code=... value:"
    ).ask_async()
    return (pasted or "").strip() or None


def show_credentials(config: dict) -> None:
    status = check_spotify_credentials(config)
    log_info(f"Client ID: {status['client_id'] or '(missing)'}")
    log_info(f"Client secret: {'set' if status['has_client_secret'] else '(missing)'}")
    log_info(f"Redirect URI: {status['redirect_uri'] or '(missing)'}")
    log_info(f"Scopes: {', '.join(status['scopes']) or '(none)'}")
    if status["ok"]:
        log_success(status["message"])
    else:
        log_warning(status["message"])


def open_album(view: ViewState) -> bool:
    url = view.album.listen_url
    if not url:
        log_warning("No album loaded yet.")
        return False
    log_info(f"Opening {url}")
    return webbrowser.open(url)


async def album_menu(session: RandomifySession) -> None:
    """
    Display the album card and handle user selections until Exit.
    """
    if await session.start() is None:
        log_error("Could not sign in to Spotify. Use 'Login to Spotify' to try again.")

    while True:
        print("\n" + render_album_card(session.snapshot))

        choices = [MENU_RANDOMIFY, MENU_LISTEN, MENU_LOGIN, MENU_CREDENTIALS, MENU_EXIT]
        choice = await questionary.select("🎲 What would you like to do?", choices=choices).ask_async()

        if choice == MENU_RANDOMIFY:
            if not session.is_authorized:
                log_warning("Not signed in. Use 'Login to Spotify' first.")
                continue
            result = await session.randomify()
            if not result.ok:
                log_error(f"Randomify failed: {result.error}")

        elif choice == MENU_LISTEN:
            open_album(session.snapshot)

        elif choice == MENU_LOGIN:
            if await session.start() is None:
                log_error("Spotify login failed.")
            else:
                log_success("Signed in to Spotify.")

        elif choice == MENU_CREDENTIALS:
            show_credentials(session.config)

        elif choice == MENU_EXIT or choice is None:
            log_info("Exiting program...")
            break
