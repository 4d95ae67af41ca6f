"""
Authentication service for the networking matcher admin console
Admins sign in with Supabase auth; access requires a row in admin_users
"""
import logging
import streamlit as st
from typing import Optional, Dict, Any

from supabase_client import get_client, get_admin_client

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, client=None, admin_client=None):
        self.client = client if client is not None else get_client()
        self._admin_client = admin_client

    @property
    def admin_client(self):
        if self._admin_client is None:
            self._admin_client = get_admin_client()
        return self._admin_client

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Sign in an admin; non-admin accounts are signed straight back out"""
        try:
            response = self.client.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except Exception as e:
            logger.warning(f"Admin sign-in failed for {email}: {e}")
            return {"success": False, "error": str(e)}

        if not self.is_admin(email):
            self.sign_out()
            return {"success": False, "error": "This account does not have admin access."}

        return {"success": True, "user": response.user, "session": response.session}

    def sign_out(self) -> Dict[str, Any]:
        """Sign out current user"""
        try:
            self.client.auth.sign_out()
            return {"success": True}
        except Exception as e:
            return {"success": False, "error": str(e)}

    def is_admin(self, email: str) -> bool:
        """Check the admin_users allow-list"""
        if not email:
            return False
        try:
            response = self.admin_client.table("admin_users") \
                .select("email") \
                .eq("email", email.strip().lower()) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"Could not check admin_users for {email}: {e}")
            return False
        return bool(response.data)


def init_session_state():
    """Initialize authentication and attendee session state"""
    if "authenticated" not in st.session_state:
        st.session_state.authenticated = False
    if "admin_email" not in st.session_state:
        st.session_state.admin_email = None
    if "member_id" not in st.session_state:
        st.session_state.member_id = None


def require_admin(func):
    """Decorator to require a signed-in admin for a page"""
    def wrapper(*args, **kwargs):
        init_session_state()
        if not st.session_state.authenticated:
            st.warning("Please log in as an admin to access this page.")
            return
        return func(*args, **kwargs)
    return wrapper
