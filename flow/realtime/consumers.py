import json

from channels.generic.websocket import AsyncWebsocketConsumer

from flow.services.broadcast import BOARDS_GROUP


class BoardUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes ``board.changed`` hints; clients re-fetch the named board."""

    async def connect(self):
        await self.channel_layer.group_add(BOARDS_GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "boards": ["triage", "queue", "beds", "appointments"]}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(BOARDS_GROUP, self.channel_name)

    async def board_changed(self, event):
        # event: {"type": "board.changed", "board": "beds", "ward": "icu"}
        await self.send(json.dumps(event))
