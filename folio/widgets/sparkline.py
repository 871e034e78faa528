from __future__ import annotations

from typing import List, Sequence

from PySide6.QtCore import QPointF
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import QWidget

from folio.trading.models import CostHistoryPoint, PointType

LINE_COLOR = QColor("#0A84FF")
BUY_COLOR = QColor("#30D158")
SELL_COLOR = QColor("#FF453A")
INITIAL_COLOR = QColor("#8E8E93")


def marker_color(point_type: PointType) -> QColor:
    if point_type is PointType.BUY:
        return BUY_COLOR
    if point_type is PointType.SELL:
        return SELL_COLOR
    return INITIAL_COLOR


class CostHistorySparkline(QWidget):
    """Average cost over a holding's ledger, one marker per event.

    - Draws only what the cost-basis engine produced; never recomputes.
    - A single point is drawn centred, a flat series along the middle.
    """

    def __init__(self, color: QColor = LINE_COLOR, parent=None) -> None:
        super().__init__(parent)
        self._color = QColor(color)
        self._history: List[CostHistoryPoint] = []
        self.setMinimumHeight(48)

    def update_color(self, c: QColor) -> None:
        self._color = QColor(c)
        self.update()

    def update_history(self, history: Sequence[CostHistoryPoint]) -> None:
        self._history = list(history)
        self.update()

    def history(self) -> List[CostHistoryPoint]:
        return list(self._history)

    def values(self) -> List[float]:
        return [float(p.average_cost) for p in self._history]

    def layout_points(self, width: int, height: int) -> List[QPointF]:
        """Map history to widget coordinates with 4px padding."""
        data = self.values()
        if not data:
            return []
        top = 4
        h = max(1, height - 8)
        left = 4
        w = max(8, width - 8)

        lo = min(data)
        hi = max(data)
        rng = hi - lo
        pts: List[QPointF] = []
        for i, v in enumerate(data):
            if len(data) == 1:
                x = left + w / 2
            else:
                x = left + (i / (len(data) - 1)) * w
            y = top + h / 2 if rng == 0 else top + (1 - (v - lo) / rng) * h
            pts.append(QPointF(x, y))
        return pts

    def paintEvent(self, event):  # type: ignore[override]
        if not self._history:
            return
        r = self.rect()
        pts = self.layout_points(r.width(), r.height())
        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing)
        pen = QPen(self._color)
        pen.setWidth(2)
        p.setPen(pen)
        for i in range(1, len(pts)):
            p.drawLine(pts[i - 1], pts[i])
        for point, pt in zip(self._history, pts):
            c = marker_color(point.type)
            p.setPen(QPen(c))
            p.setBrush(c)
            p.drawEllipse(pt, 3, 3)
        p.end()
