"""
Streaming State Schema
======================

Bounded Context: Externally observable session status

Immutable snapshot types owned by SessionStateStore. Readers always get a
complete, consistent snapshot; the store swaps snapshots on each transition.

Types:
- StreamingStatus: processing phase enum
- StreamingFrame: most recent frame preview
- StreamingProgress: processed/total/percent triple
- StreamingState: the full record
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class StreamingStatus(str, Enum):
    """Processing phase of the coordinator."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    UPLOADING = "uploading"
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERROR = "error"


STREAMING_STATUSES = frozenset({StreamingStatus.PROCESSING, StreamingStatus.PAUSED})


@dataclass(frozen=True)
class StreamingFrame:
    """
    Most recent processed frame.

    Attributes:
        image: data URI (data:image/jpeg;base64,...)
        frame_number: Source frame index
        timestamp: Position in the source (seconds)
        processing_time: Backend processing time for the frame (seconds)
    """
    image: str
    frame_number: int = 0
    timestamp: float = 0.0
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'image': self.image,
            'frame_number': self.frame_number,
            'timestamp': self.timestamp,
            'processing_time': self.processing_time,
        }


@dataclass(frozen=True)
class StreamingProgress:
    """Job progress as last reported by the backend."""
    processed: int = 0
    total: int = 0
    percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {'processed': self.processed, 'total': self.total, 'percent': self.percent}


@dataclass(frozen=True)
class StreamingState:
    """
    Externally visible coordinator status.

    Invariants:
        - is_streaming implies status in {processing, paused}
        - status == disconnected implies not is_connected and session_id == ""
    """
    status: StreamingStatus = StreamingStatus.DISCONNECTED
    is_connected: bool = False
    is_streaming: bool = False
    is_paused: bool = False
    session_id: str = ""
    error: Optional[str] = None
    current_frame: Optional[StreamingFrame] = None
    detections: Tuple[Dict[str, Any], ...] = ()
    unique_plates: Tuple[Dict[str, Any], ...] = ()
    progress: StreamingProgress = field(default_factory=StreamingProgress)
    processing_speed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (frame image included)."""
        return {
            'status': self.status.value,
            'is_connected': self.is_connected,
            'is_streaming': self.is_streaming,
            'is_paused': self.is_paused,
            'session_id': self.session_id,
            'error': self.error,
            'current_frame': self.current_frame.to_dict() if self.current_frame else None,
            'detections': list(self.detections),
            'unique_plates': list(self.unique_plates),
            'progress': self.progress.to_dict(),
            'processing_speed': self.processing_speed,
        }
