# visibility.py
# Which narrative section is on screen. The page reports ratios; we turn them into transitions.

import logging
from collections import defaultdict

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
DEFAULT_MARGIN = 0.10


def crosses(ratio, threshold=DEFAULT_THRESHOLD):
    """More than ``threshold`` of the section sits inside the margin-trimmed viewport."""
    return ratio is not None and ratio > threshold


class VisibilitySignal:
    """
    Subscription point for section visibility transitions.

    The browser observer sends the intersection ratio of a section every
    time it moves past one of its steps (the ratio is already measured
    against the viewport with ``margin`` trimmed top and bottom).
    ``observe`` keeps one visible/hidden flag per section and only fans
    out a change of that flag; subscribers only ever hear about sections
    becoming visible.
    """

    def __init__(self, threshold=DEFAULT_THRESHOLD):
        self.threshold = threshold
        self._subs = defaultdict(list)
        self._any = []
        self._visible = {}

    def on_visibility_change(self, section_id, callback):
        self._subs[section_id].append(callback)

    def on_any(self, callback):
        self._any.append(callback)

    def observe(self, section_id, ratio):
        """Record a measured ratio. True if it made the section newly visible."""
        now = crosses(ratio, self.threshold)
        if now == self._visible.get(section_id, False):
            return False
        self._visible[section_id] = now
        self.report(section_id, now)
        return now

    def report(self, section_id, is_visible=True):
        if not is_visible:
            return
        callbacks = self._subs.get(section_id, []) + self._any
        if not callbacks:
            logger.debug("No subscriber for section %r", section_id)
        for cb in callbacks:
            cb(section_id)
