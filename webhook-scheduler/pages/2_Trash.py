import streamlit as st

from webhook_scheduler.dashboard import get_service, jobs_frame
from webhook_scheduler.scheduler.errors import SchedulerError
from webhook_scheduler.scheduler.service import BULK_DELETE_CONFIRMATION, EMPTY_TRASH_CONFIRMATION
from webhook_scheduler.theme import hero, set_theme


set_theme(page_title="Trash", page_icon="🗑️")
hero("Trash", "Soft-deleted webhooks. Restore them or delete them for good.")

service = get_service()
trashed = service.list_trash()

if trashed:
    st.dataframe(jobs_frame(trashed), use_container_width=True, hide_index=True)

    labels = {f"{j.name} ({j.id[:8]})": j for j in trashed}
    selected = labels[st.selectbox("Webhook", list(labels))]

    c1, c2 = st.columns(2)
    if c1.button("♻️ Restore"):
        service.restore(selected.id)
        st.success("Restored")
        st.rerun()
    if c2.button("❌ Delete permanently"):
        service.purge(selected.id)
        st.success("Deleted permanently")
        st.rerun()
else:
    st.info("Trash is empty.")

st.divider()
st.subheader("Danger zone")

col_all, col_empty = st.columns(2)

with col_all:
    st.caption(f'Type "{BULK_DELETE_CONFIRMATION}" to move every webhook to the trash.')
    confirm_all = st.text_input("Confirmation", key="confirm_all")
    if st.button("Move all to trash"):
        try:
            n = service.soft_delete_all(confirm_all)
            st.success(f"{n} webhook(s) moved to trash")
        except SchedulerError as e:
            st.error(str(e))

with col_empty:
    st.caption(f'Type "{EMPTY_TRASH_CONFIRMATION}" to permanently delete everything in the trash.')
    confirm_empty = st.text_input("Confirmation", key="confirm_empty")
    if st.button("Empty trash"):
        try:
            n = service.empty_trash(confirm_empty)
            st.success(f"{n} webhook(s) permanently deleted")
        except SchedulerError as e:
            st.error(str(e))
