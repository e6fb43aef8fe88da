from .client import (
    FakeNotifier,
    Message,
    Notifier,
    ZulipNotifier,
    create_notifier,
    render_messages,
)

__all__ = [
    "FakeNotifier",
    "Message",
    "Notifier",
    "ZulipNotifier",
    "create_notifier",
    "render_messages",
]
