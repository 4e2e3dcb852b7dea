"""Execution Log - every delivery attempt and administrative action."""

import streamlit as st

from webhook_scheduler.dashboard import get_service, logs_frame
from webhook_scheduler.theme import hero, set_theme


set_theme(page_title="Execution Log", page_icon="📜")
hero("Execution Log", "Newest first. Attempts are logged as success/error, admin actions as info.")

service = get_service()

PAGE_SIZE = 50

if "log_page" not in st.session_state:
    st.session_state.log_page = 0

page = service.list_logs(limit=PAGE_SIZE, offset=st.session_state.log_page * PAGE_SIZE)
total = page["total"]
pages = max(1, (total + PAGE_SIZE - 1) // PAGE_SIZE)

st.caption(f"{total} entries, page {st.session_state.log_page + 1} of {pages}")

if page["logs"]:
    df = logs_frame(page["logs"])
    only = st.multiselect("Status", ["success", "error", "info"], default=["success", "error", "info"])
    st.dataframe(df[df["status"].isin(only)], use_container_width=True, hide_index=True)
else:
    st.info("No executions recorded yet.")

prev_col, next_col = st.columns(2)
if prev_col.button("← Newer", disabled=st.session_state.log_page == 0):
    st.session_state.log_page -= 1
    st.rerun()
if next_col.button("Older →", disabled=st.session_state.log_page + 1 >= pages):
    st.session_state.log_page += 1
    st.rerun()
