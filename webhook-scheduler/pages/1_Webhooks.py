from datetime import date, datetime, time

import streamlit as st

from webhook_scheduler.dashboard import get_service, jobs_frame
from webhook_scheduler.scheduler.domain import JobStatus
from webhook_scheduler.scheduler.errors import JobValidationError, SchedulerError
from webhook_scheduler.theme import hero, set_theme, status_badge


set_theme(page_title="Webhooks", page_icon="📬")
hero("Webhooks", "Scheduled jobs, manual execution and cancellation.")

service = get_service()


# --------------------------------------------------------------------------------------
# Create
# --------------------------------------------------------------------------------------

with st.expander("➕ Schedule a webhook", expanded=False):
    with st.form("create_webhook", clear_on_submit=False):
        name = st.text_input("Name")
        url = st.text_input("Webhook URL", placeholder="https://example.com/hook")
        message = st.text_area("Message")

        mode = st.radio("Schedule", ["Once", "Every N minutes"], horizontal=True)
        c1, c2, c3 = st.columns(3)
        run_date = c1.date_input("Date", value=date.today())
        run_time = c2.time_input("Time", value=time(hour=datetime.now().hour, minute=0))
        interval = c3.number_input("Interval (minutes)", min_value=1, value=60, step=1)

        leads_raw = st.text_area("Leads (one per line: name,email)", placeholder="Jane Doe,jane@example.com")
        tags_raw = st.text_input("Tags (comma separated)")
        max_retries = st.number_input("Max retries", min_value=0, value=3, step=1)
        submitted = st.form_submit_button("Schedule")

    if submitted:
        leads = []
        for line in leads_raw.splitlines():
            if not line.strip():
                continue
            lead_name, _, email = line.partition(",")
            leads.append({"name": lead_name.strip(), "email": email.strip()})

        spec = {
            "name": name,
            "webhookUrl": url,
            "message": message,
            "leads": leads,
            "tags": [t.strip() for t in tags_raw.split(",") if t.strip()],
            "maxRetries": int(max_retries),
        }
        if mode == "Once":
            spec["scheduledDate"] = run_date.strftime("%Y-%m-%d")
            spec["scheduledTime"] = run_time.strftime("%H:%M")
        else:
            spec["intervalMinutes"] = int(interval)

        try:
            created = service.receive(spec)
            st.success(f"Scheduled {created['id']} (due {created['due_at']})")
        except JobValidationError as e:
            for err in e.errors:
                st.error(err)


# --------------------------------------------------------------------------------------
# List
# --------------------------------------------------------------------------------------

status_filter = st.selectbox("Status", ["all", *JobStatus.ALL])
jobs = service.list_jobs(status=None if status_filter == "all" else status_filter)

if not jobs:
    st.info("No webhooks match this filter.")
    st.stop()

st.dataframe(jobs_frame(jobs), use_container_width=True, hide_index=True)

st.subheader("Actions")
labels = {f"{j.name} ({j.id[:8]})": j for j in jobs}
selected = labels[st.selectbox("Webhook", list(labels))]

st.markdown(status_badge(selected.status), unsafe_allow_html=True)
if selected.last_error_message:
    st.caption(f"Last error: {selected.last_error_message}")

a1, a2, a3 = st.columns(3)

if a1.button("▶️ Execute now", disabled=selected.status != JobStatus.PENDING):
    try:
        result = service.execute(selected.id)
        (st.success if result.success else st.warning)(result.message)
    except SchedulerError as e:
        st.error(str(e))

if a2.button("🚫 Cancel", disabled=selected.status != JobStatus.PENDING):
    try:
        service.cancel(selected.id)
        st.success("Webhook cancelled")
    except SchedulerError as e:
        st.error(str(e))

if a3.button("🗑️ Move to trash"):
    service.soft_delete(selected.id)
    st.success("Moved to trash")

with st.expander("Execution log"):
    page = service.list_logs(selected.id, limit=20)
    for entry in page["logs"]:
        d = entry.to_dict()
        st.write(f"`{d['timestamp']}` **{entry.status}** {entry.message}")
        if entry.error_message:
            st.caption(entry.error_message)
