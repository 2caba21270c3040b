import tempfile
import unittest
from pathlib import Path
from unittest import mock

import auth
import routes
from auth import CredentialGateway, validate_nickname, validate_password
from db import PROFILES, InMemoryBackend, RemoteError
from session import SessionStore


class ValidationTests(unittest.TestCase):
    def test_nickname_accepts_hangul_letters_digits_up_to_six(self):
        for value in ["", "abc", "abcdef", "가나다", "한글ab12", "ABC123"]:
            self.assertEqual(validate_nickname(value), "", value)

    def test_nickname_too_long(self):
        self.assertEqual(validate_nickname("abcdefg"), auth.MSG_NICKNAME_LONG)
        self.assertEqual(validate_nickname("가나다라마바사"), auth.MSG_NICKNAME_LONG)

    def test_nickname_disallowed_characters(self):
        for value in ["ab c", "ab_", "é", "ㄱㄴ", "abc\n", "a-b", "😀"]:
            self.assertEqual(validate_nickname(value), auth.MSG_NICKNAME_CHARS, value)

    def test_password_length(self):
        self.assertEqual(validate_password("1234567"), auth.MSG_PASSWORD_SHORT)
        self.assertEqual(validate_password("12345678"), "")


class GatewayTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.backend = InMemoryBackend(tz="Asia/Seoul")
        self.session = SessionStore(Path(tmp.name) / "session.json")
        self.gateway = CredentialGateway(self.backend, self.session)

    def _register(self, email="a@x.com", nickname="abc", password="12345678"):
        result = self.gateway.sign_up(email, password, nickname)
        self.assertTrue(result.ok, result.error)
        self.gateway.sign_out()
        return result.value

    def test_sign_up_adopts_and_persists_profile(self):
        result = self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertTrue(result.ok)
        self.assertEqual(result.value.email, "a@x.com")
        self.assertEqual(result.value.nickname, "abc")
        self.assertEqual(self.session.profile, result.value)
        self.assertEqual(SessionStore(self.session.path).restore(), result.value)

    def test_sign_up_with_registered_email_does_not_call_procedure(self):
        self._register(nickname="first")
        with mock.patch.object(self.backend, "rpc", wraps=self.backend.rpc) as rpc:
            result = self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertFalse(result.ok)
        self.assertEqual(result.error, auth.MSG_EMAIL_IN_USE)
        rpc.assert_not_called()
        self.assertFalse(self.session.is_authenticated)

    def test_sign_up_with_taken_nickname(self):
        self._register(email="b@x.com", nickname="abc")
        result = self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertEqual(result.error, auth.MSG_NICKNAME_IN_USE)

    def test_sign_up_validates_before_any_remote_call(self):
        with mock.patch.object(self.backend, "select_one") as select_one, \
                mock.patch.object(self.backend, "rpc") as rpc:
            self.assertEqual(self.gateway.sign_up("a@x.com", "short", "abc").error, auth.MSG_PASSWORD_SHORT)
            self.assertEqual(self.gateway.sign_up("a@x.com", "12345678", "ab c").error, auth.MSG_NICKNAME_CHARS)
            self.assertEqual(self.gateway.sign_up("", "12345678", "abc").error, auth.MSG_MISSING_FIELDS)
        select_one.assert_not_called()
        rpc.assert_not_called()

    def test_race_past_availability_checks_is_rejected_by_remote(self):
        self._register(email="a@x.com", nickname="abc")
        # Both checks ran before the competing signup landed.
        with mock.patch.object(self.gateway, "check_email_available", return_value=True), \
                mock.patch.object(self.gateway, "check_nickname_available", return_value=True):
            result = self.gateway.sign_up("a@x.com", "12345678", "other")
        self.assertFalse(result.ok)
        self.assertEqual(result.error, auth.MSG_ALREADY_IN_USE)
        self.assertFalse(self.session.is_authenticated)
        self.assertEqual(len(self.backend.tables[PROFILES]), 1)

    def test_sign_up_remote_failure_is_generic(self):
        with mock.patch.object(self.backend, "rpc", side_effect=RemoteError("HTTP 500: boom", status=500)):
            result = self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertEqual(result.error, auth.MSG_SIGNUP_FAILED)
        self.assertNotIn("boom", result.error)

    def test_availability_checks_fail_closed(self):
        with mock.patch.object(self.backend, "select_one", side_effect=RemoteError("down")):
            self.assertFalse(self.gateway.check_email_available("free@x.com"))
            self.assertFalse(self.gateway.check_nickname_available("free"))

    def test_nickname_check_can_exclude_own_row(self):
        profile = self._register()
        self.assertFalse(self.gateway.check_nickname_available("abc"))
        self.assertTrue(self.gateway.check_nickname_available("abc", exclude_user_id=profile.id))

    def test_sign_in(self):
        profile = self._register()
        result = self.gateway.sign_in("a@x.com", "12345678")
        self.assertTrue(result.ok)
        self.assertEqual(result.value, profile)
        self.assertTrue(self.session.is_authenticated)

    def test_sign_in_does_not_reveal_which_part_was_wrong(self):
        self._register()
        wrong_password = self.gateway.sign_in("a@x.com", "wrongpass")
        unknown_email = self.gateway.sign_in("nobody@x.com", "12345678")
        self.assertEqual(wrong_password.error, auth.MSG_INVALID_CREDENTIALS)
        self.assertEqual(unknown_email.error, auth.MSG_INVALID_CREDENTIALS)
        self.assertFalse(self.session.is_authenticated)

    def test_sign_in_accepts_single_row_object(self):
        row = {"id": "u9", "email": "a@x.com", "nickname": "abc", "created_at": "2025-01-01T00:00:00+00:00"}
        with mock.patch.object(self.backend, "rpc", return_value=row):
            result = self.gateway.sign_in("a@x.com", "12345678")
        self.assertEqual(result.value.id, "u9")

    def test_sign_in_remote_failure(self):
        with mock.patch.object(self.backend, "rpc", side_effect=RemoteError("HTTP 503: down", status=503)):
            result = self.gateway.sign_in("a@x.com", "12345678")
        self.assertEqual(result.error, auth.MSG_SIGNIN_FAILED)

    def test_sign_in_requires_fields(self):
        self.assertEqual(self.gateway.sign_in("", "").error, auth.MSG_MISSING_LOGIN)

    def test_sign_out_clears_session(self):
        self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.gateway.sign_out()
        self.assertFalse(self.session.is_authenticated)
        self.assertFalse(self.session.path.exists())

    def test_update_nickname_requires_session(self):
        result = self.gateway.update_nickname("new")
        self.assertFalse(result.ok)
        self.assertEqual(result.redirect, routes.LOGIN)

    def test_update_nickname(self):
        self.gateway.sign_up("a@x.com", "12345678", "abc")
        result = self.gateway.update_nickname("새별명")
        self.assertTrue(result.ok)
        self.assertEqual(self.session.profile.nickname, "새별명")
        self.assertEqual(SessionStore(self.session.path).restore().nickname, "새별명")
        self.assertEqual(self.backend.tables[PROFILES][0]["nickname"], "새별명")

    def test_update_nickname_to_own_current_value(self):
        self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertTrue(self.gateway.update_nickname("abc").ok)

    def test_update_nickname_taken_by_someone_else(self):
        self._register(email="b@x.com", nickname="taken")
        self.gateway.sign_up("a@x.com", "12345678", "abc")
        result = self.gateway.update_nickname("taken")
        self.assertEqual(result.error, auth.MSG_NICKNAME_IN_USE)
        self.assertEqual(self.session.profile.nickname, "abc")

    def test_update_nickname_validates(self):
        self.gateway.sign_up("a@x.com", "12345678", "abc")
        self.assertEqual(self.gateway.update_nickname("toolongname").error, auth.MSG_NICKNAME_LONG)


if __name__ == "__main__":
    unittest.main()
