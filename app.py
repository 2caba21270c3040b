# Gratitude Grove entry point: config, logging, session restore, routing.
import logging
from datetime import datetime, timedelta

import extra_streamlit_components as stx
import streamlit as st

import auth
import config
import routes
from services import ensure_services
from session import browser_token

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(
    page_title=config.APP_NAME,
    page_icon="🌳",
    layout="centered",
    initial_sidebar_state="collapsed",
)


def _set_cookie(name, value):
    cookies = stx.CookieManager(key="cookie_manager")
    cookies.set(name, value, expires_at=datetime.now() + timedelta(days=config.SESSION_DAYS), key="cookie_set_token")


services = ensure_services(st.session_state, browser_token(st.session_state, st.context.cookies, _set_cookie))

if routes.STATE_KEY not in st.session_state:
    routes.navigate(st.session_state, st.query_params.get("route") or routes.HOME)


def _go(route):
    routes.navigate(st.session_state, route)
    st.rerun()


def _render_header():
    top_col1, top_col2 = st.columns([3, 2])
    with top_col1:
        if st.button(f"🌳 {config.APP_NAME}", key="nav_home", type="tertiary"):
            _go(routes.HOME)
    with top_col2:
        profile = services.session.profile
        if profile:
            name_col, diary_col, out_col = st.columns(3)
            with name_col:
                st.markdown(f"**{profile.nickname}**")
            with diary_col:
                if st.button("My diary", key="nav_my_diary"):
                    _go(routes.MY_DIARY)
            with out_col:
                if st.button("Sign out", key="nav_sign_out"):
                    services.gateway.sign_out()
                    services.editor = None
                    _go(routes.HOME)
        else:
            login_col, signup_col = st.columns(2)
            with login_col:
                if st.button("Sign in", key="nav_login"):
                    _go(routes.LOGIN)
            with signup_col:
                if st.button("Sign up", key="nav_signup"):
                    _go(routes.SIGNUP)
    st.divider()


def main():
    requested = routes.current(st.session_state)
    route = routes.resolve(requested, services.session.is_authenticated)
    if route != requested:
        routes.navigate(st.session_state, route)
    st.query_params["route"] = route

    _render_header()
    if route == routes.LOGIN:
        auth.render_login(services)
    elif route == routes.SIGNUP:
        auth.render_signup(services)
    elif route == routes.MY_DIARY:
        from pages import my_diary
        my_diary.render(services)
    else:
        from pages import home
        home.render(services)


if __name__ == "__main__":
    main()
