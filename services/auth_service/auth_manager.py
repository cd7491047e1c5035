"""
Authentication service - email/password sign-in kept in Streamlit session state.
"""

import streamlit as st
from typing import Optional, Tuple

from config.app_config import get_config
from services.auth_service.models import User
from services.auth_service.user_repository import AuthError, get_user_repository
from utils.logging_config import get_logger, log_user_interaction


class AuthManager:
    """
    Authentication manager service.
    Produces the principal (user id) for the current browser session.
    """

    SESSION_KEY = "user_session"

    def __init__(self, user_repository=None):
        self.user_repository = user_repository or get_user_repository()
        self.logger = get_logger(__name__)
        self.config = get_config()

    def get_current_user_id(self) -> Optional[str]:
        """User id of the signed-in user, None for a guest"""
        session = st.session_state.get(self.SESSION_KEY)
        if isinstance(session, dict):
            return session.get("user_id")
        return None

    def get_current_user(self) -> Optional[User]:
        user_id = self.get_current_user_id()
        if not user_id:
            return None
        return self.user_repository.get_user_by_id(user_id)

    def sign_in(self, email: str, password: str) -> Tuple[bool, str]:
        """
        Authenticate and store the principal in session state

        Returns:
            (success, message) tuple
        """
        try:
            user = self.user_repository.authenticate(email, password)
        except AuthError as e:
            return False, str(e)

        st.session_state[self.SESSION_KEY] = {
            "user_id": user.user_id,
            "email": user.email,
            "display_name": user.display_name,
        }
        log_user_interaction(self.logger, "signed_in", user_id=user.user_id)
        return True, f"Welcome, {user.display_name}!"

    def sign_up(self, email: str, password: str, confirm_password: str,
                first_name: str = "", last_name: str = "") -> Tuple[bool, str]:
        """
        Register a new account and sign it in

        Returns:
            (success, message) tuple
        """
        if not self.config.auth.allow_self_registration:
            return False, "Registration is disabled"
        if password != confirm_password:
            return False, "Passwords do not match"

        try:
            self.user_repository.create_user(email, password, first_name, last_name)
        except AuthError as e:
            return False, str(e)

        log_user_interaction(self.logger, "signed_up")
        return self.sign_in(email, password)

    def sign_out(self):
        """Forget the principal; the session continues as a guest"""
        user_id = self.get_current_user_id()
        if self.SESSION_KEY in st.session_state:
            del st.session_state[self.SESSION_KEY]
        if user_id:
            log_user_interaction(self.logger, "signed_out", user_id=user_id)

    def render_auth_forms(self):
        """Render sign-in / sign-up forms for guests"""
        sign_in_tab, sign_up_tab = st.tabs(["Sign In", "Sign Up"])

        with sign_in_tab:
            with st.form("sign_in_form", clear_on_submit=False):
                email = st.text_input("Email", key="sign_in_email")
                password = st.text_input("Password", type="password", key="sign_in_password")
                if st.form_submit_button("Sign In", type="primary", use_container_width=True):
                    success, message = self.sign_in(email, password)
                    if success:
                        st.rerun()
                    else:
                        st.error(message)

        with sign_up_tab:
            if not self.config.auth.allow_self_registration:
                st.info("Registration is disabled")
                return
            with st.form("sign_up_form", clear_on_submit=False):
                col1, col2 = st.columns(2)
                with col1:
                    first_name = st.text_input("First name", key="sign_up_first_name")
                with col2:
                    last_name = st.text_input("Last name", key="sign_up_last_name")
                email = st.text_input("Email", key="sign_up_email")
                password = st.text_input("Password", type="password", key="sign_up_password")
                confirm_password = st.text_input("Confirm password", type="password",
                                                 key="sign_up_confirm_password")
                if st.form_submit_button("Create Account", type="primary", use_container_width=True):
                    success, message = self.sign_up(email, password, confirm_password,
                                                    first_name, last_name)
                    if success:
                        st.rerun()
                    else:
                        st.error(message)

    def render_user_menu(self):
        """Render the signed-in user's name and sign-out button"""
        session = st.session_state.get(self.SESSION_KEY) or {}
        st.write(f"**{session.get('display_name', session.get('email', ''))}**")
        if st.button("Sign Out", use_container_width=True, key="sign_out_button"):
            self.sign_out()
            st.rerun()


# Global authentication service instance
_auth_manager: Optional[AuthManager] = None


def get_auth_manager() -> AuthManager:
    """Get the global authentication manager service instance"""
    global _auth_manager
    if _auth_manager is None:
        _auth_manager = AuthManager()
    return _auth_manager
