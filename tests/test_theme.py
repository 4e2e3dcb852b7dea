from webhook_scheduler import theme


def test_status_badge_known_status():
    badge = theme.status_badge("sent")
    assert 'class="status-badge status-sent"' in badge
    assert "sent" in badge


def test_status_badge_unknown_status_is_escaped():
    badge = theme.status_badge("<b>weird</b>")
    assert "status-unknown" in badge
    assert "<b>" not in badge


def test_set_theme():
    # Outside a Streamlit run set_theme must not raise.
    try:
        theme.set_theme(page_title="Tests")
    except Exception as e:
        assert False, f"set_theme raised an exception: {e}"
