"""Command line entry points: serve the HTTP API, capture a login, ask once."""
import logging
import sys

import click
from dotenv import load_dotenv

from .config import ControllerConfig
from .engine.errors import BridgeError, ConfigurationError
from .session.identity import Identity
from .session.store import store_from_config

log = logging.getLogger(__name__)

_READ_LOCAL_STORAGE = "() => Object.assign({}, window.localStorage)"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose):
    """chat-bridge: request/response API over a chat web app."""
    load_dotenv()
    _setup_logging(verbose)


@main.command()
@click.option("--host", "-H", default=None, help="Bind address (default: $HOST or 0.0.0.0).")
@click.option("--port", "-p", default=None, type=int, help="Port (default: $PORT or 3000).")
@click.option("--headed", is_flag=True, help="Show the browser window.")
def serve(host, port, headed):
    """Start the HTTP API and launch the browser in the background."""
    import uvicorn

    from .controller import ChatController
    from .server import build_app

    overrides = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    if headed:
        overrides["headless"] = False
    config = ControllerConfig.from_env(**overrides)
    try:
        controller = ChatController(config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    app = build_app(controller, api_key=config.api_key)
    log.info("chat-bridge listening on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


@main.command()
def login():
    """Open a visible browser, log in by hand, then save the session identity."""
    from playwright.sync_api import sync_playwright

    config = ControllerConfig.from_env()
    try:
        store = store_from_config(config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    site = config.site
    click.echo("--- LOCAL LOGIN TOOL ---")
    click.echo(f"A browser window will open. Log in to {site.name}, then press ENTER here.")

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=False)
        context = browser.new_context(no_viewport=True, locale=site.locale)
        page = context.new_page()
        page.goto(site.login_url)

        click.prompt("Press ENTER after you see the chat interface", default="",
                     show_default=False, prompt_suffix=" > ")

        click.echo("Capturing session...")
        cookies = context.cookies()
        user_agent = page.evaluate("() => navigator.userAgent")
        local_storage = {}
        if page.url.startswith(site.origin):
            local_storage = page.evaluate(_READ_LOCAL_STORAGE) or {}
        browser.close()

    identity = Identity(cookies=cookies, user_agent=user_agent, local_storage=local_storage)
    if not identity.is_valid:
        raise click.ClickException("no cookies captured; were you logged in?")
    if not store.save(identity):
        raise click.ClickException("saving the session failed; see log above")
    click.echo(f"SUCCESS: session saved ({len(cookies)} cookies, "
               f"{len(local_storage)} localStorage entries).")


@main.command()
@click.argument("prompt")
@click.option("--headed", is_flag=True, help="Show the browser window.")
def ask(prompt, headed):
    """Launch the browser, ask PROMPT once, print the answer."""
    from .controller import ChatController

    config = ControllerConfig.from_env(**({"headless": False} if headed else {}))
    try:
        controller = ChatController(config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    try:
        controller.start()
        click.echo(controller.ask(prompt))
    except BridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        controller.close()


if __name__ == "__main__":
    main()
