from __future__ import annotations

from PySide6.QtCore import QObject, Signal


class EventBus(QObject):
    """Named dashboard events. Subscribers connect to the signals they need."""
    # (theme id, sub-theme id or None)
    theme_changed = Signal(str, object)
    # (control id, new value)
    control_changed = Signal(str, object)
    # TimeExtent or None
    time_window_changed = Signal(object)
    # TemporalBinding
    binding_changed = Signal(object)
    # AppState after every reconciliation
    state_changed = Signal(object)
    # EntityIndex once loaded
    index_loaded = Signal(object)
