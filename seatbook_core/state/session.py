import streamlit as st

# Central registry for session-state keys used across the app.
SESSION_DEFAULTS = {
    "auth_token": None,
    "manager_id": None,
    "library_id": None,
    "selected_seat": None,
    "selected_shift": None,
    "work_offline": False,
    "last_sync_result": None,
    "flash_message": None,
}

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."


def init_state():
    """Initialize session state with defaults."""
    for k, v in SESSION_DEFAULTS.items():
        if k not in st.session_state:
            st.session_state[k] = v


def _clear_all_state():
    for key in list(st.session_state.keys()):
        del st.session_state[key]

    for k, v in SESSION_DEFAULTS.items():
        st.session_state[k] = v


def end_session(service=None):
    """
    Tear the session down: local store, query cache and session state.
    Used on logout.
    """
    if service is not None:
        service.end_session()
    else:
        from seatbook_core.cache import clear_query_cache
        clear_query_cache()

    _clear_all_state()


def clear_expired_session(service) -> bool:
    """
    Sign out after the backend rejected the credential.

    The service has already dropped its local data (possibly from the
    connection monitor thread); this clears the identity kept in session
    state so the expired token is not sent again. Call at the top of
    every script run, before the token is handed to the service.
    """
    if not service.consume_session_expired():
        return False
    _clear_all_state()
    return True
