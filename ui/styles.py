"""Centralized CSS theme for the StrataLens UI."""

# ── Brand colours ──────────────────────────────────────────────
BRAND_PRIMARY = "#6366F1"      # Indigo-500
BRAND_SECONDARY = "#8B5CF6"    # Violet-500
BRAND_ACCENT = "#22D3EE"       # Cyan-400
BRAND_SUCCESS = "#10B981"      # Emerald-500
BRAND_WARNING = "#F59E0B"      # Amber-500
BRAND_DANGER = "#EF4444"       # Red-500
BRAND_TEXT = "#1a1a2e"         # Dark text
BRAND_TEXT_MUTED = "#6b7280"   # Gray-500
BRAND_BORDER = "#E5E7EB"       # Gray-200


def inject_global_css():
    """Inject the global CSS theme into Streamlit via st.markdown."""
    import streamlit as st

    st.markdown(f"""
    <style>
    @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700;800&display=swap');

    html, body, [data-testid="stAppViewContainer"] {{
        font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif !important;
    }}
    .stApp {{ background: #FFFFFF !important; }}

    [data-testid="stSidebar"] {{
        background: #FFFFFF !important;
        border-right: 1px solid {BRAND_BORDER} !important;
    }}

    .stTabs [data-baseweb="tab-list"] {{
        gap: 6px;
        border-bottom: 1px solid {BRAND_BORDER};
    }}
    .stTabs [aria-selected="true"] {{
        color: {BRAND_PRIMARY} !important;
        border-bottom: 2px solid {BRAND_PRIMARY} !important;
    }}

    .stButton > button {{
        border-radius: 10px !important;
        font-weight: 600 !important;
        transition: all .2s ease !important;
    }}
    .stButton > button:hover {{
        border-color: {BRAND_PRIMARY} !important;
        color: {BRAND_PRIMARY} !important;
    }}

    .stratum-error {{
        color: {BRAND_DANGER};
        font-size: 12px;
        font-weight: 500;
    }}

    @keyframes fadeInUp {{
        from {{ opacity: 0; transform: translateY(8px); }}
        to   {{ opacity: 1; transform: translateY(0); }}
    }}
    </style>
    """, unsafe_allow_html=True)


# ── Reusable HTML fragments ────────────────────────────────────

def hero_banner(title: str, subtitle: str) -> str:
    """Full-width gradient hero banner."""
    sub_html = f"""<p style="color:{BRAND_TEXT_MUTED}; font-size:1.05rem; margin:0;">{subtitle}</p>""" if subtitle else ""
    return f"""
    <div style="
        background: linear-gradient(135deg, rgba(99,102,241,.15), rgba(139,92,246,.1), rgba(34,211,238,.08));
        border: 1px solid {BRAND_BORDER};
        border-radius: 20px;
        padding: 36px;
        margin-bottom: 24px;
        text-align: center;
        animation: fadeInUp .6s ease-out;
    ">
        <h1 style="
            font-size: 2.4rem;
            margin: 0 0 8px 0;
            background: linear-gradient(135deg, {BRAND_PRIMARY}, {BRAND_ACCENT});
            -webkit-background-clip: text;
            -webkit-text-fill-color: transparent;
            font-weight: 800;
        ">{title}</h1>
        {sub_html}
    </div>
    """


def section_header(icon: str, title: str, subtitle: str = "") -> str:
    """Styled section header with icon."""
    sub_html = f'<p style="color:{BRAND_TEXT_MUTED}; font-size:14px; margin:4px 0 0 0;">{subtitle}</p>' if subtitle else ""
    return f"""
    <div style="margin-bottom: 16px;">
        <h3 style="font-weight:700; color:{BRAND_TEXT}; margin:0;">{icon} {title}</h3>
        {sub_html}
    </div>
    """


def kpi_card(label: str, value, icon: str = "📊", color: str = BRAND_PRIMARY) -> str:
    """White KPI card with a coloured accent."""
    return f"""
    <div style="
        background: #FFFFFF;
        border: 1px solid {BRAND_BORDER};
        border-top: 3px solid {color};
        border-radius: 16px;
        padding: 18px;
        text-align: center;
    ">
        <div style="font-size: 22px; margin-bottom: 4px;">{icon}</div>
        <div style="font-size: 26px; font-weight: 700; color: {BRAND_TEXT}; line-height: 1.2;">{value}</div>
        <div style="font-size: 12px; color: {BRAND_TEXT_MUTED}; text-transform: uppercase;
                    letter-spacing: 0.06em; margin-top: 6px; font-weight: 600;">{label}</div>
    </div>
    """


def status_badge(text: str, variant: str = "info") -> str:
    """Inline status badge. variant: info | success | warning | danger."""
    colours = {
        "info":    (BRAND_PRIMARY, f"{BRAND_PRIMARY}18"),
        "success": (BRAND_SUCCESS, f"{BRAND_SUCCESS}18"),
        "warning": (BRAND_WARNING, f"{BRAND_WARNING}18"),
        "danger":  (BRAND_DANGER,  f"{BRAND_DANGER}18"),
    }
    fg, bg = colours.get(variant, colours["info"])
    return (f'<span style="background:{bg}; color:{fg}; padding:4px 14px; border-radius:20px;'
            f' font-size:13px; font-weight:600;">{text}</span>')
