import logging
from typing import List

import streamlit as st
from pydantic import ValidationError

from config import DEFAULT_NUM_PAGES, GEMINI_API_KEY, LOG_LEVEL, MAX_COMIC_PAGES, MAX_STORY_CHARS
from errors import ComicError
from export_utils import make_pdf_bytes
from models import (
    AspectRatio,
    CaptionPlacement,
    ComicEra,
    ComicStyle,
    GenerationOptions,
    ImageModel,
    Panel,
    TextModel,
)
from pipeline import get_client
from runner import ComicRun, run_comic

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

_ERA_LABELS = {
    ComicEra.OLD: "Vintage (1950s-70s)",
    ComicEra.NEW: "Modern (2000s-Now)",
    ComicEra.FUTURISTIC: "Futuristic/Sci-Fi",
}
_ASPECT_LABELS = {
    AspectRatio.SQUARE: "Square (1:1)",
    AspectRatio.PORTRAIT: "Portrait (9:16)",
    AspectRatio.LANDSCAPE: "Landscape (16:9)",
}
_IMAGE_MODEL_LABELS = {
    ImageModel.IMAGEN_3: "Imagen 3 (Quality Focus)",
    ImageModel.GEMINI_2_FLASH_IMG: "Gemini 2.0 Flash Image (Speed Focus)",
}
_PLACEMENT_LABELS = {
    CaptionPlacement.IN_UI: "Show in UI (below image)",
    CaptionPlacement.IN_IMAGE: "Embed in image (AI attempts)",
}

st.set_page_config(page_title="AI Comic Creator", page_icon="💬", layout="wide")

st.title("💬 AI Comic Creator")
st.caption("Turn your stories into comic strips: provide your narrative, choose your style, and let Gemini draw it.")

# ---------- Sidebar Controls ----------
with st.sidebar:
    st.header("API")
    api_key = st.text_input(
        "Your Gemini API Key",
        value=GEMINI_API_KEY,
        type="password",
        help="Used solely for API calls. It is not stored.",
    )

    st.header("Story")
    story = st.text_area(
        "Your story",
        height=220,
        max_chars=MAX_STORY_CHARS,
        placeholder="Type or paste your comic story here. Describe characters, scenes, and actions...",
    )

    st.header("Look")
    style = st.selectbox("Comic style 🎨", list(ComicStyle), format_func=lambda s: s.value)
    era = st.selectbox("Era", list(ComicEra), format_func=_ERA_LABELS.get, index=1)
    aspect_ratio = st.selectbox("Aspect ratio", list(AspectRatio), format_func=_ASPECT_LABELS.get)
    num_pages = st.number_input(f"Number of pages (1-{MAX_COMIC_PAGES})", 1, MAX_COMIC_PAGES, DEFAULT_NUM_PAGES)

    st.header("Text")
    include_captions = st.checkbox("Include captions & dialogue", value=True)
    caption_placement = st.radio(
        "Caption placement",
        list(CaptionPlacement),
        format_func=_PLACEMENT_LABELS.get,
        disabled=not include_captions,
    )

    st.header("Models")
    text_model = st.selectbox("Text model", list(TextModel), format_func=lambda m: m.value)
    image_model = st.selectbox(
        "Image model", list(ImageModel), format_func=_IMAGE_MODEL_LABELS.get, index=1
    )

    generate_btn = st.button("🎨 Create My Comic!", use_container_width=True, disabled=not api_key.strip())

# ---------- Session state ----------
if "run" not in st.session_state:
    st.session_state.run = None
if "errors" not in st.session_state:
    st.session_state.errors = []


def _render_panels(container, panels: List[Panel], stopped: bool = False) -> None:
    with container.container():
        cols = st.columns(3)
        for i, p in enumerate(panels):
            with cols[i % 3]:
                if p.status == "ready":
                    st.image(p.image.data, caption=f"Panel {p.index}", use_container_width=True)
                elif p.status == "failed":
                    st.error(f"⚠️ Image Error (panel {p.index})")
                elif stopped:
                    st.warning(f"Not generated (panel {p.index})")
                else:
                    st.info(f"⏳ Generating panel {p.index}...")
                if p.caption:
                    st.markdown(f"**Scene {p.index}:** {p.caption}")
                for line in p.dialogues:
                    st.write(line)
                if not p.caption and not p.dialogues:
                    st.caption(f"Scene {p.index}")


T1, T2 = st.tabs(["Comic", "Export"])

with T1:
    if generate_btn:
        st.session_state.errors = []
        st.session_state.run = None
        try:
            options = GenerationOptions(
                story=story,
                style=style,
                era=era,
                aspect_ratio=aspect_ratio,
                num_pages=int(num_pages),
                include_captions=include_captions,
                caption_placement=caption_placement,
                text_model=text_model,
                image_model=image_model,
            )
            run = ComicRun(options, get_client(api_key.strip()))
        except ValidationError as e:
            st.session_state.errors = [err["msg"] for err in e.errors()]
        except ComicError as e:
            st.session_state.errors = [str(e)]
        else:
            st.session_state.run = run
            bar = st.progress(0, text="Preparing your comic...")
            grid = st.empty()
            for progress in run_comic(run):
                bar.progress(int(progress.percentage), text=progress.label)
                if run.panels:
                    _render_panels(grid, run.panels)
            bar.empty()
            grid.empty()
            if run.fatal_error is not None:
                message = str(run.fatal_error)
                if not run.panels:
                    st.session_state.run = None
                st.session_state.errors.append(message)
            st.session_state.errors.extend(str(e) for e in run.panel_errors)

    if st.session_state.errors:
        with st.container(border=True):
            st.subheader("Operation Failed")
            for msg in st.session_state.errors:
                st.error(msg)
            if st.button("Dismiss", key="dismiss_errors"):
                st.session_state.errors = []
                st.rerun()

    run = st.session_state.run
    if run is None or not run.panels:
        st.info('Your comic will appear here. Fill out the form and click "Create My Comic!"')
    else:
        st.subheader("Your Generated Comic")
        _render_panels(st.empty(), run.panels, stopped=run.stopped)

with T2:
    st.subheader("Export")
    run = st.session_state.run
    if run is None or not run.panels:
        st.info("Generate a comic first.")
    else:
        pdf_bytes = make_pdf_bytes(run.panels, run.options.aspect_ratio)
        st.download_button(
            "📄 Download Comic as PDF",
            data=pdf_bytes,
            file_name="ai-comic.pdf",
            mime="application/pdf",
            use_container_width=True,
        )
