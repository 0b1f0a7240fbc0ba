import asyncio
import logging

import click

from .rtc import AiortcTransportFactory, Microphone
from .session import SanctuaryClient


@click.command()
@click.option('--url', default='http://localhost:3000', show_default=True, help='Server base URL.')
@click.option('--name', default='', help='Display name (blank picks a guest name).')
@click.option('--room', 'room_id', default='fireside', show_default=True)
@click.option('--channel', 'channel_id', default='lounge', show_default=True)
@click.option('--device', default='default', show_default=True, help='Capture device.')
@click.option('--format', 'fmt', default='pulse', show_default=True, help='ffmpeg input format for the device.')
@click.option('-v', '--verbose', is_flag=True)
def main(url, name, room_id, channel_id, device, fmt, verbose):
    """Join a room's voice channel from the terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s  [%(levelname)s]  %(name)-12s  %(message)s",
    )
    for quiet in ('aioice', 'aiortc', 'socketio', 'engineio'):
        logging.getLogger(quiet).setLevel(logging.WARNING)

    async def run():
        client = SanctuaryClient(
            url, name, room_id,
            transport_factory=AiortcTransportFactory(),
            microphone_factory=lambda: Microphone.open(device, fmt),
        )
        await client.connect()
        await client.join_voice(channel_id)
        try:
            await client.sio.wait()
        finally:
            await client.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
