"""
Tests for the authentication manager
"""

import os
import shutil
import tempfile
from unittest.mock import Mock, patch

from services.auth_service.auth_manager import AuthManager
from services.auth_service.user_repository import UserRepository


class TestAuthManager:
    """Test sign-in state kept in Streamlit session state"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.repository = UserRepository(os.path.join(self.temp_dir, "users.db"))

        self.mock_st = Mock()
        self.mock_st.session_state = {}
        self.st_patcher = patch('services.auth_service.auth_manager.st', self.mock_st)
        self.st_patcher.start()

        self.auth = AuthManager(user_repository=self.repository)

    def teardown_method(self):
        self.st_patcher.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_guest_has_no_principal(self):
        assert self.auth.get_current_user_id() is None
        assert self.auth.get_current_user() is None

    def test_sign_up_signs_in(self):
        success, message = self.auth.sign_up("ada@example.com", "secret-pass", "secret-pass", "Ada")

        assert success is True
        assert "Ada" in message
        user = self.auth.get_current_user()
        assert user.email == "ada@example.com"
        assert self.auth.get_current_user_id() == user.user_id

    def test_sign_up_password_mismatch(self):
        success, message = self.auth.sign_up("ada@example.com", "secret-pass", "other-pass")

        assert success is False
        assert message == "Passwords do not match"
        assert self.auth.get_current_user_id() is None

    def test_sign_in_failure_message(self):
        success, message = self.auth.sign_in("nobody@example.com", "secret-pass")

        assert success is False
        assert message == "Invalid email or password"

    def test_sign_out(self):
        self.repository.create_user("ada@example.com", "secret-pass")
        self.auth.sign_in("ada@example.com", "secret-pass")

        self.auth.sign_out()

        assert self.auth.get_current_user_id() is None
        assert "user_session" not in self.mock_st.session_state
