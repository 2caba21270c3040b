# Sign up, sign in, sign out, nickname change; login and signup forms.
import logging
import re

import streamlit as st

import config
import routes
from db import PROFILES, Backend, RemoteError
from models import Profile, Result
from session import SessionStore

logger = logging.getLogger(__name__)

NICKNAME_PATTERN = re.compile(r"[가-힣a-zA-Z0-9]*")

MSG_MISSING_FIELDS = "Please fill in every field."
MSG_MISSING_LOGIN = "Enter your email and password."
MSG_PASSWORD_SHORT = f"Password must be at least {config.PASSWORD_MIN} characters."
MSG_NICKNAME_LONG = f"Nickname can be at most {config.NICKNAME_MAX} characters."
MSG_NICKNAME_CHARS = "Nickname may only contain Hangul, English letters and digits."
MSG_NICKNAME_EMPTY = "Enter a nickname."
MSG_EMAIL_IN_USE = "This email is already in use."
MSG_NICKNAME_IN_USE = "This nickname is already in use."
MSG_ALREADY_IN_USE = "This email or nickname is already in use."
MSG_SIGNUP_FAILED = "Sign up failed. Please try again."
MSG_SIGNIN_FAILED = "Sign in failed. Please try again."
MSG_INVALID_CREDENTIALS = "Email or password is incorrect."
MSG_LOGIN_REQUIRED = "Please sign in first."
MSG_NICKNAME_UPDATE_FAILED = "Could not change your nickname."


def validate_nickname(value: str) -> str:
    if len(value) > config.NICKNAME_MAX:
        return MSG_NICKNAME_LONG
    if not NICKNAME_PATTERN.fullmatch(value):
        return MSG_NICKNAME_CHARS
    return ""


def validate_password(value: str) -> str:
    return "" if len(value) >= config.PASSWORD_MIN else MSG_PASSWORD_SHORT


def _profile_from_rpc(data) -> Profile | None:
    # Procedures may answer with one row or a list of rows.
    if isinstance(data, list):
        data = data[0] if data else None
    return Profile.from_row(data) if data else None


class CredentialGateway:
    """Turns signup/signin/availability intents into remote calls and Results."""

    def __init__(self, backend: Backend, session: SessionStore):
        self.backend = backend
        self.session = session

    def check_email_available(self, email: str) -> bool:
        try:
            row = self.backend.select_one(PROFILES, "id", [("email", "eq", email)])
        except RemoteError as e:
            logger.error("Email availability check failed: %s", e)
            return False
        return row is None

    def check_nickname_available(self, nickname: str, exclude_user_id: str | None = None) -> bool:
        filters = [("nickname", "eq", nickname)]
        if exclude_user_id:
            filters.append(("id", "neq", exclude_user_id))
        try:
            row = self.backend.select_one(PROFILES, "id", filters)
        except RemoteError as e:
            logger.error("Nickname availability check failed: %s", e)
            return False
        return row is None

    def sign_up(self, email: str, password: str, nickname: str) -> Result:
        email = (email or "").strip()
        if not email or not password or not nickname:
            return Result.failure(MSG_MISSING_FIELDS)
        problem = validate_password(password) or validate_nickname(nickname)
        if problem:
            return Result.failure(problem)

        if not self.check_email_available(email):
            return Result.failure(MSG_EMAIL_IN_USE)
        if not self.check_nickname_available(nickname):
            return Result.failure(MSG_NICKNAME_IN_USE)

        try:
            data = self.backend.rpc(
                "signup_user",
                {"p_email": email, "p_password": password, "p_nickname": nickname},
            )
        except RemoteError as e:
            # The availability checks above can race; the remote constraint decides.
            if e.is_unique_violation:
                logger.info("Signup rejected by unique constraint for %s", email)
                return Result.failure(MSG_ALREADY_IN_USE)
            logger.exception("Signup failed")
            return Result.failure(MSG_SIGNUP_FAILED)

        try:
            profile = _profile_from_rpc(data)
        except (KeyError, TypeError) as e:
            logger.error("Signup returned an unexpected row: %s", e)
            return Result.failure(MSG_SIGNUP_FAILED)
        if profile is None:
            logger.error("Signup returned no row for %s", email)
            return Result.failure(MSG_SIGNUP_FAILED)
        self.session.set_active(profile)
        logger.info("Signed up %s", profile.id)
        return Result.success(profile)

    def sign_in(self, email: str, password: str) -> Result:
        email = (email or "").strip()
        if not email or not password:
            return Result.failure(MSG_MISSING_LOGIN)
        try:
            data = self.backend.rpc("signin_user", {"p_email": email, "p_password": password})
        except RemoteError:
            logger.exception("Signin failed")
            return Result.failure(MSG_SIGNIN_FAILED)
        try:
            profile = _profile_from_rpc(data)
        except (KeyError, TypeError) as e:
            logger.error("Signin returned an unexpected row: %s", e)
            return Result.failure(MSG_SIGNIN_FAILED)
        if profile is None:
            return Result.failure(MSG_INVALID_CREDENTIALS)
        self.session.set_active(profile)
        logger.info("Signed in %s", profile.id)
        return Result.success(profile)

    def sign_out(self) -> None:
        self.session.clear()

    def update_nickname(self, nickname: str) -> Result:
        profile = self.session.profile
        if profile is None:
            return Result.failure(MSG_LOGIN_REQUIRED, redirect=routes.LOGIN)
        if not nickname:
            return Result.failure(MSG_NICKNAME_EMPTY)
        problem = validate_nickname(nickname)
        if problem:
            return Result.failure(problem)
        if not self.check_nickname_available(nickname, profile.id):
            return Result.failure(MSG_NICKNAME_IN_USE)
        try:
            self.backend.update(PROFILES, {"nickname": nickname}, [("id", "eq", profile.id)])
        except RemoteError as e:
            if e.is_unique_violation:
                return Result.failure(MSG_NICKNAME_IN_USE)
            logger.exception("Nickname update failed")
            return Result.failure(MSG_NICKNAME_UPDATE_FAILED)
        updated = Profile(id=profile.id, email=profile.email, nickname=nickname, created_at=profile.created_at)
        self.session.set_active(updated)
        return Result.success(updated)


def render_login(services) -> None:
    st.markdown("### Sign in")
    with st.form("login"):
        email = st.text_input("Email", placeholder="example@email.com", key="login_email")
        password = st.text_input("Password", type="password", placeholder="Your password", key="login_password")
        submitted = st.form_submit_button("Sign in")
        if submitted:
            result = services.gateway.sign_in(email, password)
            if result.ok:
                routes.navigate(st.session_state, routes.HOME)
                st.rerun()
            else:
                st.error(result.error)
    if st.button("Create an account", key="to_signup"):
        routes.navigate(st.session_state, routes.SIGNUP)
        st.rerun()


def render_signup(services) -> None:
    st.markdown("### Create an account")
    with st.form("signup"):
        email = st.text_input("Email", placeholder="example@email.com", key="signup_email")
        password = st.text_input(
            "Password", type="password", placeholder=f"At least {config.PASSWORD_MIN} characters", key="signup_password"
        )
        nickname = st.text_input(
            "Nickname", placeholder=f"Up to {config.NICKNAME_MAX} characters", key="signup_nickname"
        )
        check = st.form_submit_button("Check nickname")
        submitted = st.form_submit_button("Sign up")
        if check:
            problem = validate_nickname(nickname) or ("" if nickname else MSG_NICKNAME_EMPTY)
            if problem:
                st.error(problem)
            elif services.gateway.check_nickname_available(nickname):
                st.success("This nickname is available.")
            else:
                st.error(MSG_NICKNAME_IN_USE)
        if submitted:
            result = services.gateway.sign_up(email, password, nickname)
            if result.ok:
                routes.navigate(st.session_state, routes.HOME)
                st.rerun()
            else:
                st.error(result.error)
    if st.button("I already have an account", key="to_login"):
        routes.navigate(st.session_state, routes.LOGIN)
        st.rerun()
