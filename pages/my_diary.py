# My diary: contribution grid, today's entry editor, nickname, past entries with filters and paging.
from datetime import datetime, timedelta, timezone

import pandas as pd
import streamlit as st

import config
import contributions
import routes
from diary import EditSession

WRITTEN, BLANK = "🟩", "⬜"
MONTH_OPTIONS = [None] + list(range(1, 13))
DAY_OPTIONS = [None] + list(range(1, 32))


def _contribution_frame(index, blocks):
    frames = []
    for block in blocks:
        columns = {}
        for n, week in enumerate(block.weeks):
            cells = []
            for day in week:
                if day is None:
                    cells.append("")
                else:
                    cells.append(WRITTEN if day.isoformat() in index else BLANK)
            columns[f"{block.label} {n + 1}" if n else block.label] = cells
        frames.append(pd.DataFrame(columns, index=contributions.WEEKDAYS))
    return pd.concat(frames, axis=1)


def _render_stats(services, user_id):
    now = datetime.now(timezone.utc)
    today = now.astimezone(services.tz).date()
    stamps = services.diaries.timestamps_since(user_id, now - timedelta(days=config.INDEX_WINDOW_DAYS))
    index = contributions.build_index(stamps, config.INDEX_WINDOW_DAYS, now, services.tz)
    total = services.diaries.count(user_id)
    streak = contributions.current_streak(index, today)

    total_col, streak_col = st.columns(2)
    with total_col:
        st.metric("Entries", total)
    with streak_col:
        st.metric("Streak", f"🔥 {streak}")
    blocks = contributions.layout_months(today, config.GRID_MONTHS)
    st.dataframe(_contribution_frame(index, blocks), width="stretch")
    st.caption(f"{BLANK} not written  {WRITTEN} written")


def _render_editor(services, user_id, editor):
    st.markdown("**Three good things**")
    for i, line in enumerate(list(editor.lines)):
        text_col, rm_col = st.columns([6, 1])
        with text_col:
            value = st.text_input(
                f"Grateful for #{i + 1}",
                value=line,
                max_chars=config.MAX_LINE_LENGTH,
                key=f"edit_line_{editor.entry_id or 'new'}_{i}_{len(editor.lines)}",
            )
            editor.set_line(i, value)
            st.caption(f"{len(editor.lines[i])}/{config.MAX_LINE_LENGTH}")
        with rm_col:
            if len(editor.lines) > 1 and st.button("✕", key=f"rm_line_{i}"):
                editor.remove_line(i)
                st.rerun()
    if len(editor.lines) < config.MAX_LINES and st.button("Add a line", key="add_line"):
        editor.add_line()
        st.rerun()

    save_col, cancel_col = st.columns(2)
    with save_col:
        if st.button("Save", type="primary", key="save_entry", disabled=not editor.can_save()):
            with st.spinner("Saving…"):
                result = editor.save(services.diaries, user_id)
            if result.ok:
                services.editor = None
                st.session_state.feed_loaded = False
                st.rerun()
            else:
                st.error(result.error)
    with cancel_col:
        if st.button("Cancel", key="cancel_edit"):
            services.editor = None
            st.rerun()


def _render_entry(services, entry, key_prefix, editable):
    created = entry.created.astimezone(services.tz)
    with st.container(border=True, key=f"{key_prefix}_{entry.id}"):
        st.caption(f"{created.strftime('%B %d, %Y')} · 🌳 {entry.like_count}")
        for line in entry.content:
            st.markdown(f"• {line}")
        if editable:
            edit_col, del_col = st.columns(2)
            with edit_col:
                if st.button("Edit", key=f"{key_prefix}_edit_{entry.id}"):
                    services.editor = EditSession.for_entry(entry)
                    st.rerun()
            with del_col:
                if st.button("Delete", key=f"{key_prefix}_del_{entry.id}"):
                    st.session_state.delete_target = entry.id
                    st.rerun()


def _render_today(services, user_id):
    st.markdown("### Today")
    today_entry = services.diaries.get_today(user_id)
    if services.editor is not None:
        _render_editor(services, user_id, services.editor)
    elif today_entry:
        _render_entry(services, today_entry, "today", editable=True)
    else:
        st.caption("Nothing written yet today.")
        if st.button("Write", type="primary", key="start_entry"):
            services.editor = EditSession()
            st.rerun()


def _render_delete_confirm(services, user_id):
    target = st.session_state.get("delete_target")
    if not target:
        return
    st.warning("Delete this entry? This cannot be undone.")
    yes_col, no_col = st.columns(2)
    with yes_col:
        if st.button("Delete", key="delete_confirm_btn"):
            result = services.diaries.delete(user_id, target)
            st.session_state.delete_target = None
            if not result.ok:
                st.error(result.error)
            else:
                st.session_state.feed_loaded = False
                st.rerun()
    with no_col:
        if st.button("Cancel", key="delete_cancel"):
            st.session_state.delete_target = None
            st.rerun()


def _render_filters(services):
    current = services.date_filter
    this_year = datetime.now(timezone.utc).astimezone(services.tz).year
    years = [None] + list(range(this_year, this_year - 5, -1))

    def fmt(value):
        return "All" if value is None else str(value)

    def on_year():
        services.date_filter = services.date_filter.with_year(st.session_state.filter_year)
        services.page = 1

    def on_month():
        services.date_filter = services.date_filter.with_month(st.session_state.filter_month)
        st.session_state.filter_day = None
        services.page = 1

    def on_day():
        services.date_filter = services.date_filter.with_day(st.session_state.filter_day)
        services.page = 1

    st.session_state.setdefault("filter_year", current.year if current.year in years else None)
    st.session_state.setdefault("filter_month", current.month)
    st.session_state.setdefault("filter_day", current.day)
    year_col, month_col, day_col, clear_col = st.columns(4)
    with year_col:
        st.selectbox("Year", years, format_func=fmt, key="filter_year", on_change=on_year)
    with month_col:
        st.selectbox("Month", MONTH_OPTIONS, format_func=fmt, key="filter_month", on_change=on_month)
    with day_col:
        st.selectbox("Day", DAY_OPTIONS, format_func=fmt, key="filter_day", on_change=on_day)
    with clear_col:
        if current.active and st.button("Clear", key="filter_clear"):
            services.date_filter = current.cleared()
            services.page = 1
            for key in ("filter_year", "filter_month", "filter_day"):
                st.session_state.pop(key, None)
            st.rerun()
    notice = services.date_filter.notice(datetime.now(timezone.utc), services.tz)
    if notice:
        st.caption(notice)


def _render_list(services, user_id):
    st.markdown("### My entries")
    _render_filters(services)
    page = services.diaries.list_page(user_id, services.page, config.PER_PAGE, services.date_filter)
    if page.total_pages and services.page > page.total_pages:
        services.page = page.total_pages
        st.rerun()
    if not page.items:
        st.caption("No entries for this selection.")
        return
    cols = st.columns(3)
    for i, entry in enumerate(page.items):
        with cols[i % 3]:
            _render_entry(services, entry, "list", editable=services.diaries.is_today(entry))

    if page.total_pages > 1:
        prev_col, label_col, next_col = st.columns([1, 2, 1])
        with prev_col:
            if st.button("←", key="page_prev", disabled=services.page <= 1):
                services.page = max(1, services.page - 1)
                st.rerun()
        with label_col:
            st.markdown(f"{services.page} / {page.total_pages}")
        with next_col:
            if st.button("→", key="page_next", disabled=services.page >= page.total_pages):
                services.page = min(page.total_pages, services.page + 1)
                st.rerun()


def _render_nickname(services):
    with st.expander("Change nickname"):
        with st.form("nickname"):
            nickname = st.text_input("New nickname", value=services.session.profile.nickname, key="new_nickname")
            if st.form_submit_button("Save nickname"):
                result = services.gateway.update_nickname(nickname)
                if result.redirect:
                    routes.navigate(st.session_state, result.redirect)
                    st.rerun()
                elif result.ok:
                    st.session_state.feed_loaded = False
                    st.success("Nickname updated.")
                else:
                    st.error(result.error)


def render(services):
    profile = services.session.profile
    if profile is None:
        routes.navigate(st.session_state, routes.LOGIN)
        st.rerun()
        return
    st.markdown(f"## {profile.nickname}'s grove")
    _render_stats(services, profile.id)
    _render_nickname(services)
    _render_today(services, profile.id)
    _render_delete_confirm(services, profile.id)
    _render_list(services, profile.id)
