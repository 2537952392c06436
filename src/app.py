"""Streamlit web frontend for the PDF Page Annotator."""

import streamlit as st
import sys
from pathlib import Path
from dotenv import load_dotenv
from PIL import Image, ImageDraw

# Load environment variables from .env
load_dotenv()

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from models.config import AnnotatorConfig, OCRSettings
from models.data_models import BoxKind, BoxStats, CapabilityStatus, DetectionMode, OCRLanguage, OCRLevel, Unit
from services.exporter import ExportError, export_filename, to_json
from services.ocr_engine import OCRError
from services.page_annotator import PageAnnotator
from services.pdf_rasterizer import PDFRasterError
from services.table_detector import TableDetectionError

DISPLAY_WIDTH = 800

LANGUAGES = {
    "English": OCRLanguage.ENGLISH,
    "Japanese": OCRLanguage.JAPANESE,
    "English + Japanese": OCRLanguage.ENGLISH_JAPANESE,
}

UNITS = {
    "Points (pt)": Unit.POINT,
    "Pixels (px)": Unit.PIXEL,
    "Millimeters (mm)": Unit.MILLIMETER,
}

# Outline colour per box provenance
KIND_COLORS = {
    BoxKind.MANUAL: (220, 38, 38),
    BoxKind.OCR: (37, 99, 235),
    BoxKind.TABLE: (22, 163, 74),
}


def init_session_state():
    """Initialize session state variables."""
    if "annotator" not in st.session_state:
        st.session_state.annotator = PageAnnotator(AnnotatorConfig.from_env())
    if "loaded_file" not in st.session_state:
        st.session_state.loaded_file = None


def render_page(annotator: PageAnnotator) -> Image.Image:
    """Scale the raster to the display width and outline every box on it."""
    raster = annotator.info.raster_image
    display_height = round(DISPLAY_WIDTH * raster.height / raster.width)
    annotator.set_display_size(DISPLAY_WIDTH, display_height)

    image = Image.fromarray(raster.pixels).resize((DISPLAY_WIDTH, display_height))
    draw = ImageDraw.Draw(image)
    for box, rect in annotator.display_rects():
        if rect is None:
            continue
        color = KIND_COLORS[box.effective_kind]
        draw.rectangle([rect.x, rect.y, rect.x + rect.width, rect.y + rect.height], outline=color, width=2)
    return image


def main():
    """Main Streamlit app."""
    st.set_page_config(
        page_title="PDF Page Annotator",
        page_icon="📐",
        layout="wide",
    )

    init_session_state()
    annotator: PageAnnotator = st.session_state.annotator

    st.title("📐 PDF Page Annotator")
    st.markdown("Mark tables and text on a PDF page and export the boxes in pt, px and mm")
    st.divider()

    uploaded_file = st.file_uploader(
        "Upload PDF Document",
        type=["pdf"],
        help="Upload the PDF document you want to annotate",
    )

    if uploaded_file is None:
        st.info("Please upload a PDF document to annotate.")
        return

    if st.session_state.loaded_file != uploaded_file.name:
        try:
            annotator.load_pdf(uploaded_file.getvalue(), uploaded_file.name)
            st.session_state.loaded_file = uploaded_file.name
        except PDFRasterError as e:
            st.error(f"Cannot open PDF: {str(e)}")
            return

    info = annotator.info
    page = st.number_input(
        f"Page (1-{info.total_pages})",
        min_value=1,
        max_value=info.total_pages,
        value=info.current_page,
        step=1,
    )
    if page != info.current_page:
        annotator.go_to_page(int(page))

    render_sidebar(annotator)

    col_image, col_boxes = st.columns([3, 2])
    with col_image:
        st.image(render_page(annotator), width=DISPLAY_WIDTH)
    with col_boxes:
        render_box_list(annotator)
        render_exports(annotator)


def render_sidebar(annotator: PageAnnotator):
    """Detection, OCR and manual drawing controls."""
    with st.sidebar:
        st.header("Table Detection")
        if annotator.capability_status == CapabilityStatus.FAILED:
            st.caption("OpenCV unavailable: using pixel-scan fallback")

        mode = st.radio(
            "Detect",
            options=[m.value for m in DetectionMode],
            index=[m.value for m in DetectionMode].index(annotator.config.detection_mode.value),
            horizontal=True,
        )
        col1, col2 = st.columns(2)
        with col1:
            if st.button("🔍 Detect Tables", use_container_width=True):
                with st.spinner("Detecting tables..."):
                    try:
                        boxes = annotator.detect_tables(mode)
                        st.success(f"Found {len(boxes)} boxes ({annotator.last_strategy})")
                    except TableDetectionError as e:
                        st.error(f"Table detection failed: {str(e)}")
        with col2:
            if st.button("🧹 Clear Tables", use_container_width=True):
                annotator.clear_table_boxes()

        st.divider()
        st.header("OCR")
        current = annotator.config.ocr
        language_name = st.selectbox("Language", options=list(LANGUAGES.keys()))
        level = st.selectbox(
            "Level",
            options=[lvl.value for lvl in OCRLevel],
            index=[lvl.value for lvl in OCRLevel].index(current.level.value),
        )
        min_confidence = st.slider("Minimum Confidence", 0, 100, int(current.min_confidence))
        enhance = st.checkbox("Enhance image", value=current.enhance_image)

        if st.button("🔤 Run OCR", use_container_width=True):
            settings = OCRSettings(
                language=LANGUAGES[language_name],
                level=OCRLevel(level),
                min_confidence=float(min_confidence),
                enhance_image=enhance,
            )
            with st.spinner("Recognizing text..."):
                try:
                    annotator.run_ocr(settings)
                    st.success(f"Added {len(annotator.store.get_by_kind(BoxKind.OCR))} OCR boxes")
                except OCRError as e:
                    st.error(f"OCR failed: {str(e)}")

        st.divider()
        st.header("Draw Box")
        st.caption("Coordinates in display pixels of the page image")
        x = st.number_input("X", min_value=0.0, value=0.0)
        y = st.number_input("Y", min_value=0.0, value=0.0)
        width = st.number_input("Width", min_value=0.0, value=100.0)
        height = st.number_input("Height", min_value=0.0, value=50.0)
        if st.button("➕ Add Box", use_container_width=True):
            if annotator.add_display_rectangle(x, y, width, height) is None:
                st.warning(f"Box must be larger than {annotator.config.min_draw_size:g}px on both sides")


def format_kind_counts(stats: BoxStats) -> str:
    return ", ".join(f"{kind.value}: {count}" for kind, count in stats.counts_by_kind.items())


def render_box_list(annotator: PageAnnotator):
    """Stored boxes in the selected unit, with per-box removal."""
    stats = annotator.store.stats()
    st.subheader(f"Bounding Boxes ({stats.total})")
    if stats.total == 0:
        st.caption("No boxes yet")
        return

    unit = UNITS[st.selectbox("Unit", options=list(UNITS.keys()))]
    st.caption(format_kind_counts(stats))

    for box, rect in annotator.boxes_in_unit(unit):
        col_text, col_button = st.columns([5, 1])
        with col_text:
            st.text(
                f"{box.effective_kind.value:6} {rect.x:g}, {rect.y:g}  "
                f"{rect.width:g} x {rect.height:g} {unit.value}"
            )
        with col_button:
            if st.button("✕", key=f"remove-{box.id}"):
                annotator.store.remove(box.id)
                st.rerun()

    if st.button("🗑️ Clear All", use_container_width=True):
        annotator.store.clear()
        st.rerun()


def render_exports(annotator: PageAnnotator):
    st.divider()
    st.download_button(
        label="📥 Download Boxes (JSON)",
        data=to_json(annotator.export_boxes()),
        file_name=export_filename(annotator.info, "bboxes"),
        mime="application/json",
        use_container_width=True,
    )

    if annotator.text_data is not None:
        try:
            payload = annotator.export_ocr()
        except ExportError as e:
            st.error(str(e))
            return
        st.download_button(
            label="📥 Download OCR Results (JSON)",
            data=to_json(payload),
            file_name=export_filename(annotator.info, "ocr"),
            mime="application/json",
            use_container_width=True,
        )


if __name__ == "__main__":
    main()
