import plotly.graph_objects as go
import streamlit as st

from webhook_scheduler.dashboard import get_runtime, get_service, logs_frame
from webhook_scheduler.theme import STATUS_COLORS, hero, set_theme

set_theme()

hero(
    "Webhook Scheduler",
    "Scheduled webhook deliveries with retries and a trash for deleted jobs.",
)

service = get_service()
stats = service.stats()

stat_cols = st.columns(6)
for col, (label, key) in zip(
    stat_cols,
    [
        ("Total", "total"),
        ("Pending", "pending"),
        ("Sent", "sent"),
        ("Failed", "failed"),
        ("Cancelled", "cancelled"),
        ("In trash", "deleted"),
    ],
):
    col.metric(label, stats.get(key, 0))

chart_col, health_col = st.columns([3, 2])

with chart_col:
    st.subheader("Jobs by status")
    statuses = ["pending", "executing", "sent", "failed", "cancelled"]
    values = [stats.get(s, 0) for s in statuses]
    if sum(values):
        fig = go.Figure(
            go.Bar(
                x=statuses,
                y=values,
                marker_color=[STATUS_COLORS[s] for s in statuses],
            )
        )
        fig.update_layout(height=300, margin=dict(l=20, r=20, t=20, b=20))
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No webhooks scheduled yet. POST a job to /api/webhooks/receive to get started.")

with health_col:
    st.subheader("Configuration")
    cfg = get_runtime().config
    st.write(f"**Database:** `{cfg.database_url.split(':', 1)[0]}`")
    st.write(f"**Tick:** every {cfg.tick_seconds}s, up to {cfg.max_concurrency} deliveries at once")
    st.write(f"**Delivery timeout:** {cfg.delivery_timeout_seconds}s")
    st.write(f"**Default max retries:** {cfg.default_max_retries}")
    st.write(f"**Schedule timezone:** {cfg.timezone}")
    st.caption("Deliveries run in the API/MCP process, not in Streamlit.")

st.subheader("Recent activity")
page = service.list_logs(limit=15)
if page["logs"]:
    st.dataframe(logs_frame(page["logs"]), use_container_width=True, hide_index=True)
else:
    st.caption("No executions recorded yet.")
