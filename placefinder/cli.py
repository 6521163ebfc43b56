"""Click CLI commands for placefinder."""

import asyncio
import logging
from typing import Optional

import click

from . import constants
from .controller import SearchController
from .sources import LocalLocationSource, ProxyLocationSource

logger = logging.getLogger(__name__)

# Simulated gap between keystrokes; shorter than the debounce so typing a
# whole query coalesces into a single lookup.
KEYSTROKE_INTERVAL = 0.05


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """placefinder: resolve place names to coordinates."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')


@cli.command()
@click.option('--host', default='127.0.0.1', help='Interface to bind')
@click.option('--port', default=8000, type=int, help='Port to listen on')
@click.option('--reload', is_flag=True, help='Reload on code changes')
def serve(host: str, port: int, reload: bool):
    """Run the /location proxy API."""
    import uvicorn  # noqa: import here so the library does not need a server

    uvicorn.run("backend.app:app", host=host, port=port, reload=reload)


@cli.command()
@click.argument('query')
@click.option('--pick', '-p', type=int, default=None,
              help='Commit the N-th suggestion (1-based)')
@click.option('--proxy', default=None,
              help=f'Proxy base URL, e.g. {constants.PROXY_URL}; omit to geocode in-process')
def search(query: str, pick: Optional[int], proxy: Optional[str]):
    """Type QUERY into a search field and list the suggestions."""
    asyncio.run(async_search(query, pick, proxy))


async def async_search(query: str, pick: Optional[int], proxy: Optional[str]):
    """Drive a SearchController the way a user would: type, wait, pick."""
    if proxy:
        source = ProxyLocationSource(proxy)
    else:
        from backend.geocoder import GeocoderService  # noqa: import here to avoid provider setup on --help
        source = LocalLocationSource(GeocoderService())

    committed = {}

    def _on_change(label, coordinates):
        committed['label'], committed['coordinates'] = label, coordinates

    controller = SearchController(source, _on_change)
    try:
        for i in range(1, len(query) + 1):
            controller.input(query[:i])
            await asyncio.sleep(KEYSTROKE_INTERVAL)
        await controller.wait_idle()

        state = controller.state
        if not state.candidates:
            message = "Search failed, try again" if state.search_failed else "No locations found"
            raise click.ClickException(message)

        for i, candidate in enumerate(state.candidates, start=1):
            where = candidate.coordinates or "needs details"
            click.echo(f"  [{i}] {candidate.label}  ({where})")

        if pick is None:
            return
        if not 1 <= pick <= len(state.candidates):
            raise click.BadParameter(f"choose 1..{len(state.candidates)}", param_hint='--pick')

        for _ in range(pick):
            controller.key('down')
        selection = await controller.key('enter')
        if selection is None:
            raise click.ClickException("Could not resolve the selected location")
        click.echo(f"\nSelected: {committed['label']}")
        click.echo(f"Coordinates: {committed['coordinates']}")
    finally:
        controller.close()
        await source.aclose()


def main():
    cli()


if __name__ == '__main__':
    main()
