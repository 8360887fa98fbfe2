"""
Streamlit front-end: the daily AI newspaper.

    streamlit run ainews/app.py
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import streamlit as st
from openai import OpenAI
from supabase import create_client

from ainews.bookmarks import BookmarkService, SaveOutcome, SaveState, SaveTracker, sync_save_states
from ainews.media import OpenAISpeech, SpeechChain
from ainews.newspaper import (
    ARCHIVE,
    ARTICLE,
    BACK_COVER,
    COVER,
    INDEX,
    LIBRARY,
    ArticleView,
    Newspaper,
    build_newspaper,
    relevance_badge,
)
from ainews.playback import PlaybackController, resolve_audio
from ainews.retrieval import NewspaperData, fetch_daily_metadata, load_newspaper, placeholder_edition
from ainews.settings import ConfigurationError, FrontendSettings, load_env_files

PRIORITY_COLORS = {"LOW": "gray", "MED": "blue", "HIGH": "orange", "ALERT": "red"}


def _safe_rerun():
    """Handle rerun across Streamlit versions."""
    if hasattr(st, "rerun"):
        st.rerun()
    else:
        st.experimental_rerun()


def _format_day(day: date) -> str:
    return day.strftime("%A, %d %B %Y")


# ----------------------------
# Clients & data
# ----------------------------
@st.cache_resource
def get_settings() -> Optional[FrontendSettings]:
    load_env_files()
    try:
        return FrontendSettings.from_env()
    except ConfigurationError:
        return None


@st.cache_resource
def get_reader(url: str, key: str):
    """Shared anonymous client for read-only queries."""
    return create_client(url, key)


def get_session_client(settings: FrontendSettings):
    """Per-browser-session client; it carries the signed-in user's auth session."""
    if "sb" not in st.session_state:
        st.session_state["sb"] = create_client(settings.supabase_url, settings.supabase_anon_key)
    return st.session_state["sb"]


@st.cache_data(ttl=3600, show_spinner=False)
def load_edition(_client: Any, url: str, archive_days: int, index_days: int) -> Newspaper:
    # `url` only keys the cache; `_client` is not hashed
    data = load_newspaper(_client, archive_days=archive_days, index_days=index_days)
    if not data.today.news and not data.archive:
        data = NewspaperData(today=placeholder_edition())
    podcast = fetch_daily_metadata(_client, data.today.date)
    return build_newspaper(data, podcast)


@st.cache_resource
def get_fallback_speech(api_key: Optional[str], model: str, voice: str) -> Optional[SpeechChain]:
    if not api_key:
        return None
    return SpeechChain([OpenAISpeech(OpenAI(api_key=api_key, timeout=30), model=model, voice=voice)])


# ----------------------------
# Auth (email one-time code / magic link)
# ----------------------------
def sign_in_sidebar(client: Any) -> Optional[str]:
    """
    Email sign-in through Supabase Auth.

    Reading needs no account; saving clippings does. Returns the user id
    when signed in.
    """
    with st.sidebar:
        if st.session_state.get("user_id"):
            st.success(f"Signed in as {st.session_state.get('user_email')}")
            if st.button("Logout"):
                try:
                    client.auth.sign_out()
                except Exception as e:
                    st.warning(f"Sign-out failed: {e}")
                for key in ["user_id", "user_email", "otp_email", "save_state", "save_state_user", "picker_for"]:
                    st.session_state.pop(key, None)
                _safe_rerun()
            return st.session_state["user_id"]

        st.header("Sign in")
        if not st.session_state.get("otp_email"):
            email = st.text_input("Email")
            if st.button("Send me a login code") and email.strip():
                try:
                    client.auth.sign_in_with_otp({"email": email.strip()})
                except Exception as e:
                    st.error(f"Could not send the code: {e}")
                else:
                    st.session_state["otp_email"] = email.strip()
                    _safe_rerun()
            return None

        st.caption(f"We sent a code to {st.session_state['otp_email']}.")
        code = st.text_input("Code from the email")
        cols = st.columns(2)
        if cols[0].button("Verify") and code.strip():
            try:
                resp = client.auth.verify_otp(
                    {"email": st.session_state["otp_email"], "token": code.strip(), "type": "email"}
                )
            except Exception as e:
                st.error(f"Invalid code: {e}")
            else:
                if resp.user:
                    st.session_state["user_id"] = resp.user.id
                    st.session_state["user_email"] = resp.user.email
                    _safe_rerun()
        if cols[1].button("Use another email"):
            st.session_state.pop("otp_email", None)
            _safe_rerun()
    return None


# ----------------------------
# Page renderers
# ----------------------------
def render_cover(paper: Newspaper):
    st.markdown("<h1 style='text-align:center'>AI News Daily</h1>", unsafe_allow_html=True)
    st.markdown(f"<p style='text-align:center'>{_format_day(paper.edition.date)}</p>", unsafe_allow_html=True)
    if paper.podcast and paper.podcast.podcast_url:
        st.markdown("### 🎙️ Today's podcast")
        st.audio(paper.podcast.podcast_url, format="audio/mpeg")
        if paper.podcast.podcast_script:
            with st.expander("Show transcript"):
                st.text(paper.podcast.podcast_script)
    st.caption("Use the sidebar or the arrows to turn the page.")


def render_index(paper: Newspaper):
    st.header("Index")
    if not paper.articles:
        st.info("No relevant AI news today. Come back tomorrow for more updates.")
        return
    for pos, view in enumerate(paper.articles):
        cols = st.columns([5, 1])
        if cols[0].button(view.item.title, key=f"index_{view.item.id}", use_container_width=True):
            st.session_state["page"] = paper.page_of_article(pos)
            _safe_rerun()
        cols[1].markdown(f"Relevance: **{view.item.relevance_score}/10**")


def render_listen(view: ArticleView, speech: Optional[SpeechChain]):
    player: PlaybackController = st.session_state.setdefault("playback", PlaybackController())
    playing = player.is_playing(view.item.id)
    if st.button("⏹ Stop" if playing else "▶️ Listen", key=f"listen_{view.item.id}"):
        player.toggle(view.item.id)
        _safe_rerun()

    if player.is_playing(view.item.id):
        # On-demand synthesis is paid; keep the result for the session
        sources = st.session_state.setdefault("audio_sources", {})
        if view.item.id not in sources:
            sources[view.item.id] = resolve_audio(view.item, speech)
        source = sources[view.item.id]
        if source.kind == "url":
            st.audio(source.url, format="audio/mpeg", autoplay=True)
        elif source.kind == "bytes":
            st.audio(source.data, format="audio/mpeg", autoplay=True)
        else:
            st.warning("Audio unavailable for this article.")


def render_folder_picker(view: ArticleView, bookmarks: BookmarkService, user_id: str, tracker: SaveTracker):
    st.markdown("**Save to...**")
    folders = bookmarks.list_folders(user_id)
    options = {"General (no folder)": None}
    options.update({f.name: f.id for f in folders})
    choice = st.selectbox("Folder", list(options), key=f"folder_{view.item.id}")

    new_name = st.text_input("New folder", key=f"new_folder_{view.item.id}", placeholder="Folder name")
    cols = st.columns(3)
    if cols[0].button("Create folder", key=f"create_{view.item.id}") and new_name.strip():
        if bookmarks.create_folder(user_id, new_name) is None:
            st.error("Could not create the folder.")
        else:
            _safe_rerun()
    if cols[1].button("Save here", key=f"save_here_{view.item.id}"):
        outcome = bookmarks.save(user_id, view.item.id, options[choice])
        st.session_state["save_state"][view.item.id] = tracker.finish(outcome)
        st.session_state.pop("picker_for", None)
        if outcome is SaveOutcome.ALREADY_SAVED:
            st.toast("Already saved!")
        elif outcome is SaveOutcome.FAILED:
            st.error("Error saving the article.")
        else:
            st.toast("Saved")
        _safe_rerun()
    if cols[2].button("Cancel", key=f"cancel_{view.item.id}"):
        tracker.cancel()
        st.session_state["save_state"][view.item.id] = tracker.state
        st.session_state.pop("picker_for", None)
        _safe_rerun()


def render_save(view: ArticleView, bookmarks: Optional[BookmarkService], user_id: Optional[str]):
    states = st.session_state.setdefault("save_state", {})
    tracker = SaveTracker(states.get(view.item.id, SaveState.UNSAVED))

    if tracker.state is SaveState.SAVED:
        st.button("🔖 Saved", key=f"save_{view.item.id}", disabled=True)
    elif st.button("🔖 Save", key=f"save_{view.item.id}"):
        if not user_id or bookmarks is None:
            st.warning("Please sign in to save news.")
        elif tracker.begin():
            st.session_state["picker_for"] = view.item.id

    if tracker.state is SaveState.SAVING and st.session_state.get("picker_for") == view.item.id:
        render_folder_picker(view, bookmarks, user_id, tracker)
    states[view.item.id] = tracker.state


def render_article(view: ArticleView, speech, bookmarks, user_id):
    item, seg = view.item, view.segments
    header = st.columns([3, 1])
    header[0].caption(item.created_at.strftime("%d/%m/%Y"))
    header[1].caption(f"Page {view.number}")

    st.header(item.title)
    color = PRIORITY_COLORS.get(view.priority, "blue")
    st.markdown(f":{color}[**{view.priority}**] · Relevance {item.relevance_score}/10")
    if item.image_url:
        st.image(item.image_url, use_container_width=True)

    actions = st.columns(2)
    with actions[0]:
        render_listen(view, speech)
    with actions[1]:
        render_save(view, bookmarks, user_id)

    st.markdown(f"#### {seg.lead}")
    if seg.analysis:
        st.write(seg.analysis)
    if seg.recommendation:
        st.info(f"**Recommendation:** {seg.recommendation}")
    if seg.sources:
        st.markdown("**Sources:** " + " · ".join(f"[{idx + 1}]({url})" for idx, url in enumerate(seg.sources)))
    if item.original_url:
        st.markdown(f"[Read full article →]({item.original_url})")


def render_archive(paper: Newspaper):
    st.header("Archive")
    st.caption("Last 15 days")
    if not paper.archive:
        st.info("No news in the archive yet.")
        return
    for edition in paper.archive:
        st.subheader(_format_day(edition.date))
        for item in edition.news:
            cols = st.columns([5, 1])
            cols[0].markdown(f"[{item.title}]({item.original_url})")
            cols[1].caption(relevance_badge(item.relevance_score))


def render_library(bookmarks: Optional[BookmarkService], user_id: Optional[str]):
    st.header("My clippings")
    if not user_id or bookmarks is None:
        st.info("Sign in to see your saved articles.")
        return

    library = bookmarks.load_library(user_id)
    current = st.session_state.get("library_folder")
    folder = next((f for f in library.folders if f.id == current), None)

    if folder is None:
        st.subheader("Folders")
        counts = library.counts()
        cols = st.columns(3)
        for idx, f in enumerate(library.folders):
            if cols[idx % 3].button(f"📁 {f.name} ({counts[f.id]} articles)", key=f"lib_{f.id}"):
                st.session_state["library_folder"] = f.id
                _safe_rerun()
        st.subheader("Unsorted clippings")
        clippings = library.unsorted
    else:
        if st.button("← Back"):
            st.session_state.pop("library_folder", None)
            _safe_rerun()
        st.subheader(folder.name)
        clippings = library.in_folder(folder.id)

    if not clippings:
        st.caption("No clippings here.")
    for saved in clippings:
        title = saved.news.title if saved.news else "Unknown title"
        when = saved.created_at.strftime("%d/%m/%Y") if saved.created_at else ""
        st.markdown(f"📄 **{title}**  \n{when}")


# ----------------------------
# Streamlit frontend
# ----------------------------
def streamlit_main():
    st.set_page_config(page_title="AI News Daily", page_icon="📰", layout="centered")

    settings = get_settings()
    session_client = bookmarks = user_id = None
    if settings is None:
        st.warning("Supabase is not configured; showing a demo edition.")
        paper = build_newspaper(NewspaperData(today=placeholder_edition()))
        speech = None
    else:
        reader = get_reader(settings.supabase_url, settings.supabase_anon_key)
        paper = load_edition(reader, settings.supabase_url, settings.archive_days, settings.index_days)
        speech = get_fallback_speech(settings.openai_api_key, settings.openai_tts_model, settings.openai_tts_voice)
        session_client = get_session_client(settings)
        bookmarks = BookmarkService(session_client)
        user_id = sign_in_sidebar(session_client)

    sync_save_states(st.session_state, bookmarks, user_id)

    pages = paper.pages
    st.session_state.setdefault("page", 0)
    st.session_state["page"] = min(st.session_state["page"], len(pages) - 1)

    with st.sidebar:
        st.header("Contents")
        labels = [p.label for p in pages]
        picked = st.radio("Go to", range(len(pages)), format_func=lambda i: labels[i], index=st.session_state["page"])
        if picked != st.session_state["page"]:
            st.session_state["page"] = picked
            _safe_rerun()

    page = pages[st.session_state["page"]]
    if page.kind == COVER:
        render_cover(paper)
    elif page.kind == INDEX:
        render_index(paper)
    elif page.kind == ARTICLE:
        render_article(page.article, speech, bookmarks, user_id)
    elif page.kind == ARCHIVE:
        render_archive(paper)
    elif page.kind == LIBRARY:
        render_library(bookmarks, user_id)
    elif page.kind == BACK_COVER:
        st.markdown("<h2 style='text-align:center'>End of edition</h2>", unsafe_allow_html=True)

    st.markdown("---")
    nav = st.columns([1, 3, 1])
    if nav[0].button("◀", disabled=st.session_state["page"] == 0):
        st.session_state["page"] -= 1
        _safe_rerun()
    nav[1].markdown(
        f"<p style='text-align:center'>{st.session_state['page'] + 1} / {len(pages)}</p>", unsafe_allow_html=True
    )
    if nav[2].button("▶", disabled=st.session_state["page"] >= len(pages) - 1):
        st.session_state["page"] += 1
        _safe_rerun()


if __name__ == "__main__":
    streamlit_main()
