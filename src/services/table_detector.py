"""Table Detector component for finding table regions, rule lines and cells in page images."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from models.data_models import (
    BoundingBox,
    BoxKind,
    BoxRole,
    CapabilityStatus,
    DetectionMode,
    LineOrientation,
    TableCell,
    TableLine,
    TableRegion,
    Unit,
)
from services.coordinate_converter import CoordinateConverter
from services.morphology_loader import MorphologyEngineLoader
from utils.image_utils import as_pixel_array, luminance_mean


logger = logging.getLogger(__name__)

DARK_THRESHOLD = 128
REGION_DARK_THRESHOLD = 150
MIN_LINE_RATIO = 0.3
SEED_STEP = 20
SEED_MARGIN = 50
MAX_FLOOD_PIXELS = 10000

Rectangle = Tuple[int, int, int, int]


class TableDetectionError(Exception):
    """Exception raised when table detection fails."""
    pass


@dataclass
class RegionCriteria:
    """Size limits a candidate table region must satisfy."""
    min_width: int = 100
    min_width_ratio: float = 0.10
    min_height: int = 50
    min_height_ratio: float = 0.05
    max_ratio: float = 0.95

    def accepts(self, width: float, height: float, image_width: int, image_height: int) -> bool:
        """Check a region against the limits for the given image size."""
        return (
            width >= max(self.min_width, image_width * self.min_width_ratio) and
            height >= max(self.min_height, image_height * self.min_height_ratio) and
            width <= image_width * self.max_ratio and
            height <= image_height * self.max_ratio
        )


def parse_mode(mode: Union[DetectionMode, str]) -> DetectionMode:
    if isinstance(mode, DetectionMode):
        return mode
    # "table" was the original name of the regions mode
    if mode == "table":
        return DetectionMode.REGIONS
    return DetectionMode(mode)


# ---------------------------------------------------------------------------
# Pixel-scan primitives
# ---------------------------------------------------------------------------

def longest_dark_runs(dark: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Find the longest run of dark pixels in every row.

    Args:
        dark: Boolean array (rows x cols)

    Returns:
        Tuple of (run lengths, run start columns), one entry per row
    """
    rows, cols = dark.shape
    current = np.zeros(rows, dtype=np.int64)
    best = np.zeros(rows, dtype=np.int64)
    best_end = np.zeros(rows, dtype=np.int64)

    for col in range(cols):
        current = (current + 1) * dark[:, col]
        improved = current > best
        best = np.where(improved, current, best)
        best_end = np.where(improved, col, best_end)

    starts = np.where(best > 0, best_end - best + 1, 0)
    return best, starts


def detect_horizontal_lines(
    gray: np.ndarray,
    min_line_length: Optional[float] = None,
) -> List[TableLine]:
    """
    Detect rows holding a long run of dark pixels.

    Args:
        gray: Luminance array (H x W)
        min_line_length: Minimum run; defaults to 30% of the width

    Returns:
        One TableLine per qualifying row, top to bottom
    """
    height, width = gray.shape
    if min_line_length is None:
        min_line_length = width * MIN_LINE_RATIO

    runs, starts = longest_dark_runs(gray < DARK_THRESHOLD)
    return [
        TableLine(x=int(starts[y]), y=y, orientation=LineOrientation.HORIZONTAL,
                  width=int(runs[y]), height=1)
        for y in range(height)
        if runs[y] > 0 and runs[y] >= min_line_length
    ]


def detect_vertical_lines(
    gray: np.ndarray,
    min_line_length: Optional[float] = None,
) -> List[TableLine]:
    """Detect columns holding a long run of dark pixels (see detect_horizontal_lines)."""
    height, width = gray.shape
    if min_line_length is None:
        min_line_length = height * MIN_LINE_RATIO

    runs, starts = longest_dark_runs((gray < DARK_THRESHOLD).T)
    return [
        TableLine(x=x, y=int(starts[x]), orientation=LineOrientation.VERTICAL,
                  width=1, height=int(runs[x]))
        for x in range(width)
        if runs[x] > 0 and runs[x] >= min_line_length
    ]


def filter_lines(
    positions: List[int],
    max_dimension: int,
    min_distance: Optional[float] = None,
) -> List[int]:
    """
    Collapse clusters of near-duplicate line positions.

    Args:
        positions: Candidate positions (any order)
        max_dimension: Image dimension along the scan axis
        min_distance: Required gap to the last kept line; defaults to
            max(10, 1% of max_dimension)

    Returns:
        Sorted positions, each at least min_distance from the previous one
    """
    if not positions:
        return []
    if min_distance is None:
        min_distance = max(10, max_dimension * 0.01)

    ordered = sorted(positions)
    kept = [ordered[0]]
    for position in ordered[1:]:
        if position - kept[-1] >= min_distance:
            kept.append(position)
    return kept


def is_valid_cell(x: int, y: int, width: int, height: int, image_width: int, image_height: int) -> bool:
    """Check a grid cell candidate against size, bounds and aspect limits."""
    if width < 20 or height < 15:
        return False
    if width > image_width * 0.9 or height > image_height * 0.9:
        return False
    if x < 0 or y < 0 or x + width > image_width or y + height > image_height:
        return False

    aspect_ratio = width / height
    return 0.1 <= aspect_ratio <= 10


def create_cells_from_lines(
    horizontal: List[int],
    vertical: List[int],
    image_width: int,
    image_height: int,
) -> List[TableCell]:
    """
    Build cells at every row-band x column-band intersection.

    Args:
        horizontal: Sorted y positions of horizontal rules
        vertical: Sorted x positions of vertical rules
        image_width: Image width in pixels
        image_height: Image height in pixels

    Returns:
        Valid cells in row-major order with zero-based row/col indices
    """
    cells: List[TableCell] = []
    if len(horizontal) < 2 or len(vertical) < 2:
        return cells

    for row in range(len(horizontal) - 1):
        for col in range(len(vertical) - 1):
            x = vertical[col]
            y = horizontal[row]
            width = vertical[col + 1] - vertical[col]
            height = horizontal[row + 1] - horizontal[row]
            if is_valid_cell(x, y, width, height, image_width, image_height):
                cells.append(TableCell(x=x, y=y, width=width, height=height, row=row, col=col))
    return cells


def find_table_region(
    gray: np.ndarray,
    start_x: int,
    start_y: int,
    visited: np.ndarray,
    criteria: RegionCriteria,
) -> Optional[TableRegion]:
    """
    Flood-fill the dark area around a seed and test its bounding box.

    At most MAX_FLOOD_PIXELS pixels are visited per flood.
    """
    height, width = gray.shape
    min_x = max_x = start_x
    min_y = max_y = start_y

    stack = [(start_x, start_y)]
    filled = 0

    while stack and filled < MAX_FLOOD_PIXELS:
        x, y = stack.pop()
        if x < 0 or x >= width or y < 0 or y >= height:
            continue
        if visited[y, x] or gray[y, x] >= REGION_DARK_THRESHOLD:
            continue

        visited[y, x] = True
        filled += 1
        min_x, max_x = min(min_x, x), max(max_x, x)
        min_y, max_y = min(min_y, y), max(max_y, y)
        stack.extend(((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)))

    region_width = max_x - min_x
    region_height = max_y - min_y
    if not criteria.accepts(region_width, region_height, width, height):
        return None
    return TableRegion(x=min_x, y=min_y, width=region_width, height=region_height)


def detect_table_regions(gray: np.ndarray, criteria: Optional[RegionCriteria] = None) -> List[TableRegion]:
    """Seed flood fills on a coarse grid and collect accepted regions."""
    criteria = criteria or RegionCriteria()
    height, width = gray.shape
    visited = np.zeros((height, width), dtype=bool)
    regions: List[TableRegion] = []

    for y in range(0, height - SEED_MARGIN, SEED_STEP):
        for x in range(0, width - SEED_MARGIN, SEED_STEP):
            if visited[y, x]:
                continue
            region = find_table_region(gray, x, y, visited, criteria)
            if region:
                regions.append(region)
    return regions


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class TableDetectionStrategy:
    """Turns a page image into table boxes for one detection mode."""

    name = "base"

    def __init__(self, converter: CoordinateConverter, criteria: Optional[RegionCriteria] = None):
        self._converter = converter
        self._criteria = criteria or RegionCriteria()

    def detect(self, pixels: np.ndarray, mode: DetectionMode) -> List[BoundingBox]:
        raise NotImplementedError

    def _to_box(
        self,
        rect: Rectangle,
        role: BoxRole,
        box_id: str,
        row: Optional[int] = None,
        col: Optional[int] = None,
    ) -> BoundingBox:
        """Convert a raster rectangle to a point-space table box."""
        coords = self._converter.raster_to_point(*rect)
        return BoundingBox(
            id=box_id,
            x=coords.pt.x,
            y=coords.pt.y,
            width=coords.pt.width,
            height=coords.pt.height,
            unit=Unit.POINT,
            kind=BoxKind.TABLE,
            role=role,
            row=row,
            col=col,
        )


class MorphologicalStrategy(TableDetectionStrategy):
    """Detection with OpenCV thresholding, erosion/dilation and contours."""

    name = "morphological"

    def __init__(self, cv: Any, converter: CoordinateConverter, criteria: Optional[RegionCriteria] = None):
        super().__init__(converter, criteria)
        self._cv = cv

    def detect(self, pixels: np.ndarray, mode: DetectionMode) -> List[BoundingBox]:
        cv = self._cv
        height, width = pixels.shape[:2]
        binary = cv.adaptiveThreshold(
            self._grayscale(pixels),
            255,
            cv.ADAPTIVE_THRESH_MEAN_C,
            cv.THRESH_BINARY_INV,
            15,
            10,
        )
        token = uuid.uuid4().hex[:8]

        if mode == DetectionMode.REGIONS:
            return self._detect_regions(binary, width, height, token)
        if mode == DetectionMode.LINES:
            return self._detect_lines(binary, width, height, token)
        return self._detect_cells(binary, width, height, token)

    def _grayscale(self, pixels: np.ndarray) -> np.ndarray:
        cv = self._cv
        if pixels.ndim == 2:
            return pixels
        if pixels.shape[2] == 4:
            return cv.cvtColor(pixels, cv.COLOR_RGBA2GRAY)
        return cv.cvtColor(pixels, cv.COLOR_RGB2GRAY)

    def _structure(self, binary: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
        """Erode then dilate with a rectangular element of (width, height)."""
        cv = self._cv
        kernel = cv.getStructuringElement(cv.MORPH_RECT, size)
        return cv.dilate(cv.erode(binary, kernel), kernel)

    def _contour_rects(self, mask: np.ndarray) -> List[Rectangle]:
        cv = self._cv
        # OpenCV 3 returns (image, contours, hierarchy), OpenCV 4 (contours, hierarchy)
        contours = cv.findContours(mask, cv.RETR_EXTERNAL, cv.CHAIN_APPROX_SIMPLE)[-2]
        rects = [tuple(int(v) for v in cv.boundingRect(c)) for c in contours]
        return sorted(rects, key=lambda r: (r[1], r[0]))

    def _detect_regions(self, binary: np.ndarray, width: int, height: int, token: str) -> List[BoundingBox]:
        cv = self._cv
        horizontal = self._structure(binary, (max(25, width // 15), 1))
        vertical = self._structure(binary, (1, max(25, height // 15)))

        mask = cv.bitwise_or(horizontal, vertical)
        clean = cv.getStructuringElement(cv.MORPH_RECT, (5, 5))
        mask = cv.morphologyEx(mask, cv.MORPH_CLOSE, clean)
        mask = cv.morphologyEx(mask, cv.MORPH_OPEN, clean)

        rects = self._contour_rects(mask)
        logger.debug(f"Found {len(rects)} contours in region mode")
        return [
            self._to_box(rect, BoxRole.REGION, f"table-region-{token}-{i}")
            for i, rect in enumerate(rects)
            if self._criteria.accepts(rect[2], rect[3], width, height)
        ]

    def _detect_lines(self, binary: np.ndarray, width: int, height: int, token: str) -> List[BoundingBox]:
        horizontal = self._structure(binary, (max(15, width // 12), 1))
        vertical = self._structure(binary, (1, max(15, height // 12)))
        boxes: List[BoundingBox] = []

        for i, (x, y, w, h) in enumerate(self._contour_rects(horizontal)):
            if w > width * 0.1 or w * h > 1000:
                boxes.append(self._to_box((x, y, w, max(1, h)), BoxRole.HORIZONTAL_LINE, f"hline-{token}-{i}"))

        for i, (x, y, w, h) in enumerate(self._contour_rects(vertical)):
            if h > height * 0.1 or w * h > 1000:
                boxes.append(self._to_box((x, y, max(1, w), h), BoxRole.VERTICAL_LINE, f"vline-{token}-{i}"))

        return boxes

    def _detect_cells(self, binary: np.ndarray, width: int, height: int, token: str) -> List[BoundingBox]:
        cv = self._cv
        horizontal = self._structure(binary, (max(15, width // 12), 1))
        vertical = self._structure(binary, (1, max(15, height // 12)))

        mask = cv.bitwise_and(horizontal, vertical)
        mask = cv.dilate(mask, cv.getStructuringElement(cv.MORPH_RECT, (3, 3)))

        return [
            self._to_box(rect, BoxRole.CELL, f"cell-{token}-{i}")
            for i, rect in enumerate(self._contour_rects(mask))
            if 15 < rect[2] < width * 0.5 and 15 < rect[3] < height * 0.5
        ]


class PixelScanStrategy(TableDetectionStrategy):
    """Dependency-free approximation based on dark-run scanning and flood fill."""

    name = "pixel_scan"

    def detect(self, pixels: np.ndarray, mode: DetectionMode) -> List[BoundingBox]:
        gray = luminance_mean(pixels)
        height, width = gray.shape
        token = uuid.uuid4().hex[:8]

        horizontal = detect_horizontal_lines(gray)
        vertical = detect_vertical_lines(gray)
        logger.debug(f"Detected {len(horizontal)} horizontal and {len(vertical)} vertical line rows")

        boxes: List[BoundingBox] = []
        if mode == DetectionMode.CELLS and len(horizontal) >= 2 and len(vertical) >= 2:
            rows = filter_lines([line.y for line in horizontal], height)
            cols = filter_lines([line.x for line in vertical], width)
            logger.debug(f"Filtered to {len(rows)} horizontal, {len(cols)} vertical lines")
            for cell in create_cells_from_lines(rows, cols, width, height):
                boxes.append(self._to_box(
                    (cell.x, cell.y, cell.width, cell.height),
                    BoxRole.CELL,
                    f"cell-{token}-{cell.row}-{cell.col}",
                    row=cell.row,
                    col=cell.col,
                ))
        elif mode == DetectionMode.LINES:
            boxes.extend(self._line_boxes(horizontal, height, "hline", BoxRole.HORIZONTAL_LINE, token))
            boxes.extend(self._line_boxes(vertical, width, "vline", BoxRole.VERTICAL_LINE, token))

        if mode == DetectionMode.REGIONS or not boxes:
            for i, region in enumerate(detect_table_regions(gray, self._criteria)):
                boxes.append(self._to_box(
                    (region.x, region.y, region.width, region.height),
                    BoxRole.REGION,
                    f"table-region-{token}-{i}",
                ))
        return boxes

    def _line_boxes(
        self,
        lines: List[TableLine],
        dimension: int,
        prefix: str,
        role: BoxRole,
        token: str,
    ) -> List[BoundingBox]:
        """Keep the first line of every de-duplicated position."""
        horizontal = role == BoxRole.HORIZONTAL_LINE
        by_position: Dict[int, TableLine] = {}
        for line in lines:
            by_position.setdefault(line.y if horizontal else line.x, line)

        boxes = []
        for i, position in enumerate(filter_lines(list(by_position), dimension)):
            line = by_position[position]
            rect = (line.x, line.y, line.width or 1, line.height or 1)
            boxes.append(self._to_box(rect, role, f"{prefix}-{token}-{i}"))
        return boxes


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class TableDetector:
    """Chooses a detection strategy by engine availability and runs it."""

    def __init__(
        self,
        converter: Optional[CoordinateConverter] = None,
        loader: Optional[MorphologyEngineLoader] = None,
        criteria: Optional[RegionCriteria] = None,
    ):
        """
        Initialize the table detector.

        Args:
            converter: Raster-to-point converter (300 DPI by default)
            loader: Morphology engine loader; defaults to trying cv2
            criteria: Region size limits shared by both strategies
        """
        self._converter = converter or CoordinateConverter()
        self._loader = loader or MorphologyEngineLoader()
        self._criteria = criteria or RegionCriteria()
        self._fallback = PixelScanStrategy(self._converter, self._criteria)
        self._primary: Optional[MorphologicalStrategy] = None
        self.last_strategy: Optional[str] = None

    @property
    def capability_status(self) -> CapabilityStatus:
        return self._loader.status

    def select_strategy(self) -> TableDetectionStrategy:
        """Primary strategy when the morphology engine is ready, fallback otherwise."""
        if self._loader.status == CapabilityStatus.LOADING:
            self._loader.load()

        if self._loader.is_ready:
            if self._primary is None:
                self._primary = MorphologicalStrategy(self._loader.engine, self._converter, self._criteria)
            return self._primary
        return self._fallback

    def detect(self, image: Any, mode: Union[DetectionMode, str] = DetectionMode.REGIONS) -> List[BoundingBox]:
        """
        Detect table structure on a page image.

        Args:
            image: RasterImage, PIL image or numpy array
            mode: regions, lines or cells

        Returns:
            Table boxes in points; empty when nothing is found or the image
            is missing

        Raises:
            TableDetectionError: If the selected strategy fails unexpectedly
        """
        mode = parse_mode(mode)
        pixels = as_pixel_array(image)
        if pixels is None:
            logger.warning("No usable image for table detection")
            return []

        strategy = self.select_strategy()
        self.last_strategy = strategy.name
        logger.info(f"Detecting tables ({mode.value}) with {strategy.name} strategy")

        try:
            boxes = strategy.detect(pixels, mode)
        except TableDetectionError:
            raise
        except Exception as e:
            raise TableDetectionError(f"{strategy.name} detection failed: {e}") from e

        logger.info(f"Table detection produced {len(boxes)} boxes")
        return boxes
