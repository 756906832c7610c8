import streamlit as st

from components.camera_live import render_camera_live
from components.result_view import render_status
from components.session import get_controller, run, show_notifications
from components.upload_image import render_upload_image
from services.config import configure_logging, load_config
from services.gemini_service import GeminiEmotionClassifier, get_gemini_api_key, init_gemini
from services.state import AcquisitionMode


st.set_page_config(
    page_title="EmotiVision",
    page_icon="😄",
    layout="centered",
)

MODE_LABELS = {
    "🖼️ Upload image": AcquisitionMode.STATIC_UPLOAD,
    "📷 Live camera": AcquisitionMode.LIVE_CAMERA,
}


def setup_classifier(controller, config):
    """Create the Gemini model once per session / API key."""
    st.sidebar.header("Gemini configuration")
    st.sidebar.text_input(
        "Gemini API key",
        type="password",
        key="gemini_api_key",
        help="Paste a key from Google AI Studio, or set GEMINI_API_KEY in the environment / secrets.",
    )

    api_key = get_gemini_api_key()
    if not api_key:
        controller.classifier = None
        st.sidebar.info("No GEMINI_API_KEY found, emotion analysis is disabled.")
        return

    if st.session_state.get("gemini_key_in_use") != api_key:
        with st.spinner("Initializing Gemini model..."):
            model, model_info = init_gemini(api_key, config.gemini_model)
        if model is None:
            controller.classifier = None
            st.sidebar.error(f"❌ **Gemini initialization failed:** {model_info}")
            return
        controller.classifier = GeminiEmotionClassifier(model, timeout=config.classification_timeout)
        st.session_state.gemini_key_in_use = api_key
        st.session_state.gemini_model_name = model_info

    st.sidebar.success(f"Gemini ready ({st.session_state.get('gemini_model_name')}).")


def main():
    config = load_config()
    configure_logging(config.log_level)
    controller = get_controller(config)

    st.title("EmotiVision")
    st.write("Upload an image or capture a frame from your camera to detect the predominant emotion using AI.")

    setup_classifier(controller, config)

    # --- Image source ---
    st.sidebar.header("Image source")
    current_label = next(label for label, mode in MODE_LABELS.items() if mode is controller.state.mode)
    label = st.sidebar.radio(
        "Source",
        options=list(MODE_LABELS),
        index=list(MODE_LABELS).index(current_label),
    )
    if MODE_LABELS[label] is not controller.state.mode:
        run(controller.switch_mode(MODE_LABELS[label]))

    st.markdown("---")

    if controller.state.mode is AcquisitionMode.LIVE_CAMERA:
        render_camera_live(controller)
    else:
        render_upload_image(controller)

    render_status(controller.state)
    show_notifications()

    st.caption(
        "AI analysis provides an estimate. Results may vary based on image quality "
        "and facial expression clarity."
    )


if __name__ == "__main__":
    main()
