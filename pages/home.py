# Home: public feed of recent entries with likes.
import streamlit as st

import config
import routes
from feed import truncate


def _load_feed(services, force=False):
    viewer = services.session.user_id
    if force or not st.session_state.get("feed_loaded") or st.session_state.get("feed_viewer") != viewer:
        services.feed.load(services.cache, viewer)
        st.session_state.feed_loaded = True
        st.session_state.feed_viewer = viewer


def _render_item(services, item, index):
    entry = item.entry
    liked = services.cache.is_liked(entry.id)
    created = entry.created.astimezone(services.tz)
    with st.container(border=True, key=f"bubble_{entry.id}"):
        st.markdown(f"**{item.nickname}** · {created.strftime('%b %d')}")
        for line in entry.content:
            st.markdown(f"• {truncate(line)}")
        with st.expander("Read"):
            st.caption(created.strftime("%B %d, %Y"))
            for line in entry.content:
                st.markdown(f"• {line}")
        label = f"{'🌳' if liked else '🌱'} {entry.like_count}"
        if st.button(label, key=f"like_{entry.id}_{index}"):
            result = services.likes.toggle(services.session.user_id, entry.id)
            if result.redirect:
                routes.navigate(st.session_state, result.redirect)
                st.rerun()
            elif not result.ok:
                st.error(result.error)
            else:
                st.rerun()


def render(services):
    st.markdown(f"### {config.TAGLINE}")
    if not services.session.is_authenticated and st.button("Get started", type="primary", key="get_started"):
        routes.navigate(st.session_state, routes.SIGNUP)
        st.rerun()

    refresh = st.button("Refresh feed", key="feed_refresh")
    _load_feed(services, force=refresh)

    items = services.cache.items
    if not items:
        st.caption("No entries yet. Be the first to share what you are grateful for.")
        return
    cols = st.columns(3)
    for i, item in enumerate(items):
        with cols[i % 3]:
            _render_item(services, item, i)
