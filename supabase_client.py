"""
Supabase client configuration for the networking matcher
"""
import os
from typing import Optional
from supabase import create_client, Client
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _settings() -> dict:
    return {
        "url": os.getenv("SUPABASE_URL", ""),
        "anon_key": os.getenv("SUPABASE_ANON_KEY", ""),
        "service_key": os.getenv("SUPABASE_SERVICE_KEY", ""),
    }


def get_supabase_client() -> Client:
    """Get Supabase client with anon key (used for admin sign-in)"""
    settings = _settings()
    if not settings["url"] or not settings["anon_key"]:
        raise ValueError("Missing SUPABASE_URL or SUPABASE_ANON_KEY. Check your .env file.")
    return create_client(settings["url"], settings["anon_key"])


def get_supabase_admin_client() -> Client:
    """Get Supabase client with service key (members, vectors and intros tables)"""
    settings = _settings()
    if not settings["url"] or not settings["service_key"]:
        raise ValueError("Missing SUPABASE_URL or SUPABASE_SERVICE_KEY. Check your .env file.")
    return create_client(settings["url"], settings["service_key"])


# Singleton client instances
_client: Optional[Client] = None
_admin_client: Optional[Client] = None


def get_client() -> Client:
    """Get or create singleton Supabase client"""
    global _client
    if _client is None:
        _client = get_supabase_client()
    return _client


def get_admin_client() -> Client:
    """Get or create singleton Supabase admin client"""
    global _admin_client
    if _admin_client is None:
        _admin_client = get_supabase_admin_client()
    return _admin_client
