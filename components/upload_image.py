import streamlit as st

from components.result_view import render_analyze_button
from components.session import run
from services.controller import CaptureAnalyzeController


def render_upload_image(controller: CaptureAnalyzeController):
    """
    Static upload mode: pick an image file, preview it and analyze it.
    """
    st.subheader("Upload an image")
    limit_mb = controller.media.max_upload_bytes / (1024 * 1024)

    # bumping the nonce gives a fresh (empty) uploader widget
    if "uploader_nonce" not in st.session_state:
        st.session_state.uploader_nonce = 0
    if "last_upload_id" not in st.session_state:
        st.session_state.last_upload_id = None

    uploaded_file = st.file_uploader(
        f"Choose an image (Max {limit_mb:g}MB: JPEG, PNG, GIF, WEBP)...",
        type=["jpg", "jpeg", "png", "gif", "webp"],
        key=f"image_upload_{st.session_state.uploader_nonce}",
    )

    if uploaded_file is None:
        if controller.state.selected_image is not None:
            controller.clear_selection()
        st.session_state.last_upload_id = None
    elif uploaded_file.file_id != st.session_state.last_upload_id:
        st.session_state.last_upload_id = uploaded_file.file_id
        selected = run(controller.select_file(uploaded_file))
        if selected is None:
            # invalid file: drop it from the widget too
            st.session_state.uploader_nonce += 1
            st.session_state.last_upload_id = None

    selected = controller.state.selected_image
    if selected is not None:
        st.image(selected.raw_file.getvalue(), caption="Uploaded preview", use_container_width=True)
        if st.button("Clear Image"):
            controller.reset()
            st.session_state.uploader_nonce += 1
            st.session_state.last_upload_id = None
            st.rerun()

    render_analyze_button(controller)
