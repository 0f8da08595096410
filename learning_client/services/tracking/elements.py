"""
Content elements and event sources supplied by the hosting view

The tracker never touches a real DOM. The host keeps these objects in sync
with whatever it renders and pushes UI events through an EventSource.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]

# HTMLMediaElement.HAVE_CURRENT_DATA
READY_HAVE_CURRENT_DATA = 2


@dataclass
class ScrollableContent:
    """Scroll geometry of an HTML reading pane, in pixels"""
    scroll_top: float = 0
    client_height: float = 0
    scroll_height: float = 0


@dataclass
class MediaPlayback:
    """Playback state of a video element"""
    current_time: float = 0
    duration: float = 0
    paused: bool = True
    seeking: bool = False
    ready_state: int = 0

    @property
    def is_playing(self) -> bool:
        return self.ready_state >= READY_HAVE_CURRENT_DATA and not self.paused and not self.seeking


class EventSource:
    """Minimal listener registry standing in for window/element event targets"""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def add_listener(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(items) for items in self._listeners.values())

    def dispatch(self, event: str) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Listener for {event} failed: {str(e)}")
