import html

import streamlit as st


_BASE_CSS = """
.hero {
    background: linear-gradient(135deg, #0ea5e9 0%, #06b6d4 50%, #14b8a6 100%);
    border-radius: 20px;
    padding: 1.6rem 2.2rem;
    margin-bottom: 1.5rem;
    color: white;
    box-shadow: 0 10px 40px rgba(14, 165, 233, 0.3);
}
.hero h1 { font-size: 2rem; font-weight: 800; margin: 0 0 0.4rem 0; }
.hero p { margin: 0; font-size: 1.02rem; opacity: 0.95; }
.status-badge {
    display: inline-block;
    padding: 0.2rem 0.7rem;
    border-radius: 12px;
    font-weight: 600;
    font-size: 0.82rem;
    white-space: nowrap;
}
.status-pending { background: #fef3c7; color: #92400e; border: 1px solid #fcd34d; }
.status-executing { background: #e0f2fe; color: #075985; border: 1px solid #7dd3fc; }
.status-sent { background: #dcfce7; color: #166534; border: 1px solid #86efac; }
.status-failed { background: #fee2e2; color: #991b1b; border: 1px solid #fca5a5; }
.status-cancelled { background: #f1f5f9; color: #475569; border: 1px solid #cbd5e1; }
.status-unknown { background: #f1f5f9; color: #475569; border: 1px solid #cbd5e1; }
"""

STATUS_ICONS = {
    "pending": "⏳",
    "executing": "🔄",
    "sent": "✅",
    "failed": "❌",
    "cancelled": "🚫",
}

STATUS_COLORS = {
    "pending": "#F59E0B",
    "executing": "#0EA5E9",
    "sent": "#10B981",
    "failed": "#EF4444",
    "cancelled": "#94A3B8",
}


def set_theme(
    page_title: str = "Webhook Scheduler",
    page_icon: str = "⏱️",
    layout: str = "wide",
    initial_sidebar_state: str = "expanded",
):
    """Configure Streamlit page & inject global CSS.

    Safe to call once at top of each page. Subsequent calls will be ignored by
    Streamlit for page_config but CSS will still be (re)injected.
    """
    try:
        st.set_page_config(
            page_title=page_title,
            page_icon=page_icon,
            layout=layout,
            initial_sidebar_state=initial_sidebar_state,
        )
    except Exception:  # noqa: BLE001
        # set_page_config can only be called once; ignore if already set.
        pass

    st.markdown(f"<style>{_BASE_CSS}</style>", unsafe_allow_html=True)


def hero(title: str, subtitle: str = "") -> None:
    sub = f"<p>{html.escape(subtitle)}</p>" if subtitle else ""
    st.markdown(f'<div class="hero"><h1>{html.escape(title)}</h1>{sub}</div>', unsafe_allow_html=True)


def status_badge(status: str) -> str:
    """HTML badge for a job status; unknown values get a neutral style."""
    key = str(status or "").strip().lower()
    css = key if key in STATUS_ICONS else "unknown"
    icon = STATUS_ICONS.get(key, "•")
    label = html.escape(key or "unknown")
    return f'<span class="status-badge status-{css}">{icon} {label}</span>'
