from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

BOARDS_GROUP = "boards"


def board_changed(board: str, **keys) -> None:
    """Tell websocket listeners that a read-model changed.

    Sent only after the surrounding transaction commits; listeners re-query
    the board, nothing else travels over the socket.
    """
    event = {"type": "board.changed", "board": board, **keys}

    def _send():
        channel_layer = get_channel_layer()
        if channel_layer is not None:
            async_to_sync(channel_layer.group_send)(BOARDS_GROUP, event)

    transaction.on_commit(_send)
